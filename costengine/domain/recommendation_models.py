"""
Domain models for optimization recommendations.
"""
from typing import Any, Dict, List, Mapping, Optional, Tuple
from dataclasses import dataclass, field

from costengine.domain.cost_models import CURRENCY_USD, ResourceDescriptor


CATEGORY_COST = "COST"
ACTION_MODIFY = "MODIFY"
PROJECTION_MONTHLY = "monthly"

MODIFICATION_GENERATION_UPGRADE = "generation_upgrade"
MODIFICATION_GRAVITON_MIGRATION = "graviton_migration"
MODIFICATION_VOLUME_TYPE_UPGRADE = "volume_type_upgrade"


@dataclass(frozen=True)
class RecommendationFilter:
    """AND-combined filter over target resources; empty fields match anything."""
    region: str = ""
    resource_type: str = ""
    sku: str = ""
    tags: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RecommendationsRequest:
    """Batch of resources to scan for cheaper equivalents."""
    target_resources: Tuple[ResourceDescriptor, ...] = ()
    filter: Optional[RecommendationFilter] = None


@dataclass(frozen=True)
class ResourceRecommendationInfo:
    """Identifies which resource a recommendation applies to."""
    provider: str
    resource_type: str
    region: str
    sku: str
    id: str = ""
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "provider": self.provider,
            "resource_type": self.resource_type,
            "region": self.region,
            "sku": self.sku,
            "id": self.id,
            "name": self.name,
        }


@dataclass(frozen=True)
class ModifyAction:
    """Change the resource's configuration in place."""
    modification_type: str
    current_config: Mapping[str, str]
    recommended_config: Mapping[str, str]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "modification_type": self.modification_type,
            "current_config": dict(self.current_config),
            "recommended_config": dict(self.recommended_config),
        }


@dataclass(frozen=True)
class RecommendationImpact:
    """Monthly cost effect of applying a recommendation."""
    estimated_savings: float
    current_cost: float
    projected_cost: float
    savings_percentage: float
    currency: str = CURRENCY_USD
    projection_period: str = PROJECTION_MONTHLY

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "estimated_savings": self.estimated_savings,
            "currency": self.currency,
            "projection_period": self.projection_period,
            "current_cost": self.current_cost,
            "projected_cost": self.projected_cost,
            "savings_percentage": self.savings_percentage,
        }


@dataclass(frozen=True)
class Recommendation:
    """A single cost-optimization recommendation."""
    id: str
    resource: ResourceRecommendationInfo
    action: ModifyAction
    impact: Optional[RecommendationImpact]
    priority: str
    confidence_score: float
    description: str
    reasoning: Tuple[str, ...] = ()
    metadata: Mapping[str, str] = field(default_factory=dict)
    category: str = CATEGORY_COST
    action_type: str = ACTION_MODIFY
    source: str = "aws-public"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "category": self.category,
            "action_type": self.action_type,
            "resource": self.resource.to_dict(),
            "modify": self.action.to_dict(),
            "impact": self.impact.to_dict() if self.impact else None,
            "priority": self.priority,
            "confidence_score": self.confidence_score,
            "description": self.description,
            "reasoning": list(self.reasoning),
            "metadata": dict(self.metadata),
            "source": self.source,
        }


@dataclass
class RecommendationSummary:
    """Aggregate figures over a batch of recommendations."""
    total_recommendations: int = 0
    total_estimated_savings: float = 0.0
    currency: str = CURRENCY_USD
    projection_period: str = PROJECTION_MONTHLY
    count_by_category: Dict[str, int] = field(default_factory=dict)
    count_by_action_type: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_recommendations": self.total_recommendations,
            "total_estimated_savings": round(self.total_estimated_savings, 4),
            "currency": self.currency,
            "projection_period": self.projection_period,
            "count_by_category": dict(self.count_by_category),
            "count_by_action_type": dict(self.count_by_action_type),
        }


@dataclass
class RecommendationsResult:
    """Recommendations produced for one batch request."""
    recommendations: List[Recommendation]
    summary: RecommendationSummary

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "summary": self.summary.to_dict(),
        }
