"""
Batch cost-optimization recommendations.

Scans a bounded batch of resources for cheaper drop-in replacements:
newer instance generations, Graviton (arm64) families and gp2 -> gp3
volume migrations. A candidate is only recommended when its rate is no
higher than the current one.
"""
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple
import logging
import time
import uuid

from costengine.core.config import EngineSettings
from costengine.domain.cost_models import HOURS_PER_MONTH, ResourceDescriptor
from costengine.domain.errors import InvalidResourceError
from costengine.domain.recommendation_models import (
    MODIFICATION_GENERATION_UPGRADE,
    MODIFICATION_GRAVITON_MIGRATION,
    MODIFICATION_VOLUME_TYPE_UPGRADE,
    ModifyAction,
    Recommendation,
    RecommendationFilter,
    RecommendationImpact,
    RecommendationsRequest,
    RecommendationsResult,
    RecommendationSummary,
    ResourceRecommendationInfo,
)
from costengine.pricing.source import PricingSource
from costengine.services.attributes import (
    OS_LINUX,
    TENANCY_SHARED,
    attribute_source_for,
    extract_database_attributes,
    resolve_sku,
)
from costengine.services.instance_types import (
    GRAVITON_RDS_ENGINES,
    generation_upgrade,
    graviton_equivalent,
    rds_generation_upgrade,
    rds_graviton_equivalent,
)
from costengine.services.resource_identity import ServiceResolver, ServiceType
from costengine.utils.log_sanitizer import sanitize_tags


logger = logging.getLogger(__name__)


CONFIDENCE_GENERATION_UPGRADE = 0.9
CONFIDENCE_GRAVITON_MIGRATION = 0.7
CONFIDENCE_VOLUME_TYPE_UPGRADE = 0.9

DEFAULT_EBS_RECOMMENDATION_SIZE_GB = 100.0
RECOMMENDATION_SOURCE = "aws-public"


def priority_for(savings_percentage: float) -> str:
    if savings_percentage >= 20:
        return "HIGH"
    if savings_percentage >= 10:
        return "MEDIUM"
    return "LOW"


def correlation_for(resource: ResourceDescriptor) -> Tuple[str, str]:
    """
    Correlation id and display name for a resource.

    The native id wins over the resource_id tag; the descriptor name wins
    over the name tag.
    """
    resource_id = resource.id.strip() or resource.tags.get("resource_id", "").strip()
    name = resource.name.strip() or resource.tags.get("name", "").strip()
    return resource_id, name


def matches_filter(resource: ResourceDescriptor, criteria: Optional[RecommendationFilter], resolver: ServiceResolver) -> bool:
    """AND over region, normalized resource type, SKU and tag equality."""
    if criteria is None:
        return True
    if criteria.region and resource.region != criteria.region:
        return False
    if criteria.resource_type and resolver.normalized(resource.resource_type) != criteria.resource_type:
        return False
    if criteria.sku and resolve_sku(resource) != criteria.sku:
        return False
    for key, value in criteria.tags.items():
        if resource.tags.get(key) != value:
            return False
    return True


def summarize(recommendations: List[Recommendation]) -> RecommendationSummary:
    """
    Aggregate recommendation counts and savings.

    Recommendations without an impact are counted but contribute no savings.
    """
    summary = RecommendationSummary()
    for rec in recommendations:
        summary.total_recommendations += 1
        summary.count_by_category[rec.category] = summary.count_by_category.get(rec.category, 0) + 1
        summary.count_by_action_type[rec.action_type] = summary.count_by_action_type.get(rec.action_type, 0) + 1
        if rec.impact is None:
            logger.warning("Recommendation %s has no impact; excluded from savings total", rec.id)
            continue
        summary.total_estimated_savings += rec.impact.estimated_savings
    return summary


class RecommendationGenerator:
    """Produces recommendations for a batch of resources against one pricing source."""

    def __init__(self, pricing: PricingSource, settings: EngineSettings):
        self.pricing = pricing
        self.settings = settings
        self._recommenders: Dict[ServiceType, Callable[[ResourceDescriptor], List[Recommendation]]] = {
            ServiceType.EC2: self._recommend_ec2,
            ServiceType.EBS: self._recommend_ebs,
            ServiceType.RDS: self._recommend_rds,
        }

    def generate(self, request: Optional[RecommendationsRequest], trace_id: str = "") -> RecommendationsResult:
        """
        Generate recommendations for every matching resource in a batch.

        Args:
            request: Target resources and an optional filter
            trace_id: Correlation id for logs and errors

        Returns:
            RecommendationsResult with recommendations and summary

        Raises:
            InvalidResourceError: If the request is missing, the batch is too
                                  large, or strict validation rejects a resource
        """
        if request is None:
            raise InvalidResourceError("recommendations request is required", trace_id=trace_id)

        started = time.monotonic()
        resolver = ServiceResolver()
        criteria = self._normalize_filter(request.filter, resolver)
        targets = tuple(request.target_resources)

        if not targets and criteria is not None and criteria.sku:
            # Filter-only requests describe a single resource
            targets = (ResourceDescriptor(
                provider="aws",
                resource_type=criteria.resource_type,
                sku=criteria.sku,
                region=criteria.region or self.settings.region,
                tags=dict(criteria.tags),
            ),)

        if len(targets) > self.settings.max_batch_size:
            raise InvalidResourceError(
                f"batch size {len(targets)} exceeds maximum of {self.settings.max_batch_size}",
                trace_id=trace_id,
                details={"batch_size": len(targets), "max_batch_size": self.settings.max_batch_size},
            )

        recommendations: List[Recommendation] = []
        skipped = 0
        for resource in targets:
            recs = self._recommend_for(resource, criteria, resolver, trace_id)
            if recs is None:
                skipped += 1
                continue
            recommendations.extend(recs)

        summary = summarize(recommendations)
        logger.info(
            "Generated %d recommendations for %d resources (%d skipped), savings $%.2f/month in %.1fms [trace_id=%s]",
            len(recommendations),
            len(targets),
            skipped,
            summary.total_estimated_savings,
            (time.monotonic() - started) * 1000,
            trace_id,
        )
        return RecommendationsResult(recommendations=recommendations, summary=summary)

    def _normalize_filter(
        self, criteria: Optional[RecommendationFilter], resolver: ServiceResolver
    ) -> Optional[RecommendationFilter]:
        if criteria is None or not criteria.resource_type:
            return criteria
        return replace(criteria, resource_type=resolver.normalized(criteria.resource_type))

    def _recommend_for(
        self,
        resource: ResourceDescriptor,
        criteria: Optional[RecommendationFilter],
        resolver: ServiceResolver,
        trace_id: str,
    ) -> Optional[List[Recommendation]]:
        """Recommendations for one resource, or None when it was skipped."""
        if self.settings.test_mode:
            logger.debug(
                "Evaluating %s %s tags=%s [trace_id=%s]",
                resource.resource_type,
                resource.sku,
                sanitize_tags(resource.tags),
                trace_id,
            )

        provider = resource.provider.strip().lower()
        if provider and provider != "aws":
            if self.settings.strict_validation:
                raise InvalidResourceError(f"unsupported provider {resource.provider!r}", trace_id=trace_id)
            logger.debug("Skipping non-AWS resource (provider=%s)", resource.provider)
            return None

        if not matches_filter(resource, criteria, resolver):
            return None

        if resource.region and resource.region != self.settings.region:
            logger.debug("Skipping resource in region %s (serving %s)", resource.region, self.settings.region)
            return None

        service = resolver.service(resource.resource_type)
        recommender = self._recommenders.get(service)
        if recommender is None:
            if self.settings.strict_validation:
                raise InvalidResourceError(
                    f"recommendations not supported for resource type {resource.resource_type!r}",
                    trace_id=trace_id,
                )
            logger.debug("No recommendations for service %s", service.value)
            return None
        return recommender(resource)

    def _resource_info(self, resource: ResourceDescriptor, service: ServiceType, sku: str) -> ResourceRecommendationInfo:
        resource_id, name = correlation_for(resource)
        return ResourceRecommendationInfo(
            provider="aws",
            resource_type=service.value,
            region=resource.region or self.settings.region,
            sku=sku,
            id=resource_id,
            name=name,
        )

    def _build(
        self,
        info: ResourceRecommendationInfo,
        modification_type: str,
        config_key: str,
        current_value: str,
        target_value: str,
        current_monthly: float,
        projected_monthly: float,
        confidence: float,
        description: str,
        reasoning: Tuple[str, ...],
        metadata: Dict[str, str],
    ) -> Recommendation:
        savings = current_monthly - projected_monthly
        percentage = (savings / current_monthly * 100.0) if current_monthly > 0 else 0.0
        return Recommendation(
            id=str(uuid.uuid4()),
            resource=info,
            action=ModifyAction(
                modification_type=modification_type,
                current_config={config_key: current_value},
                recommended_config={config_key: target_value},
            ),
            impact=RecommendationImpact(
                estimated_savings=savings,
                current_cost=current_monthly,
                projected_cost=projected_monthly,
                savings_percentage=percentage,
            ),
            priority=priority_for(percentage),
            confidence_score=confidence,
            description=description,
            reasoning=reasoning,
            metadata=metadata,
            source=RECOMMENDATION_SOURCE,
        )

    def _recommend_ec2(self, resource: ResourceDescriptor) -> List[Recommendation]:
        sku = resolve_sku(resource)
        current_rate, found = self.pricing.ec2_on_demand_price_per_hour(sku, OS_LINUX, TENANCY_SHARED)
        if not found:
            logger.debug("No EC2 price for %s; no recommendations", sku)
            return []

        info = self._resource_info(resource, ServiceType.EC2, sku)
        recommendations: List[Recommendation] = []
        emitted = set()
        candidates = (
            (MODIFICATION_GENERATION_UPGRADE, generation_upgrade(sku), CONFIDENCE_GENERATION_UPGRADE),
            (MODIFICATION_GRAVITON_MIGRATION, graviton_equivalent(sku), CONFIDENCE_GRAVITON_MIGRATION),
        )
        for modification_type, target, confidence in candidates:
            if not target or target in emitted:
                continue
            target_rate, target_found = self.pricing.ec2_on_demand_price_per_hour(target, OS_LINUX, TENANCY_SHARED)
            if not target_found or target_rate > current_rate:
                continue
            emitted.add(target)

            if modification_type == MODIFICATION_GRAVITON_MIGRATION:
                description = f"Migrate {sku} to Graviton {target}"
                reasoning = (
                    "Graviton instances offer better price-performance for most workloads",
                    "Requires an arm64-compatible application and AMI",
                )
                metadata = {"current_architecture": "x86_64", "recommended_architecture": "arm64"}
            else:
                description = f"Upgrade {sku} to newer generation {target}"
                reasoning = (
                    "Newer generation offers equal or better performance at the same or lower price",
                    "Drop-in replacement with the same architecture",
                )
                metadata = {}
            metadata.update({
                "current_hourly_rate": f"{current_rate:.4f}",
                "recommended_hourly_rate": f"{target_rate:.4f}",
            })

            recommendations.append(self._build(
                info,
                modification_type,
                "instance_type",
                sku,
                target,
                current_rate * HOURS_PER_MONTH,
                target_rate * HOURS_PER_MONTH,
                confidence,
                description,
                reasoning,
                metadata,
            ))
        return recommendations

    def _recommend_ebs(self, resource: ResourceDescriptor) -> List[Recommendation]:
        volume_type = resolve_sku(resource).lower()
        if volume_type != "gp2":
            return []

        size_gb, _ = attribute_source_for(resource).number("size", "volume_size")
        if size_gb is None:
            size_gb = DEFAULT_EBS_RECOMMENDATION_SIZE_GB

        gp2_rate, gp2_found = self.pricing.ebs_price_per_gb_month("gp2")
        gp3_rate, gp3_found = self.pricing.ebs_price_per_gb_month("gp3")
        if not (gp2_found and gp3_found) or gp3_rate > gp2_rate:
            return []

        info = self._resource_info(resource, ServiceType.EBS, "gp2")
        return [self._build(
            info,
            MODIFICATION_VOLUME_TYPE_UPGRADE,
            "volume_type",
            "gp2",
            "gp3",
            gp2_rate * size_gb,
            gp3_rate * size_gb,
            CONFIDENCE_VOLUME_TYPE_UPGRADE,
            f"Migrate {size_gb:g} GB volume from gp2 to gp3",
            (
                "gp3 provides a 3000 IOPS / 125 MB/s baseline independent of size",
                "Volume type can be changed in place without downtime",
            ),
            {"size_gb": f"{size_gb:g}"},
        )]

    def _recommend_rds(self, resource: ResourceDescriptor) -> List[Recommendation]:
        sku = resolve_sku(resource)
        attrs = extract_database_attributes(attribute_source_for(resource))
        current_rate, found = self.pricing.rds_on_demand_price_per_hour(sku, attrs.engine)
        if not found:
            logger.debug("No RDS price for %s (%s); no recommendations", sku, attrs.engine)
            return []

        info = self._resource_info(resource, ServiceType.RDS, sku)
        candidates = [(MODIFICATION_GENERATION_UPGRADE, rds_generation_upgrade(sku), CONFIDENCE_GENERATION_UPGRADE)]
        if attrs.engine in GRAVITON_RDS_ENGINES:
            candidates.append((MODIFICATION_GRAVITON_MIGRATION, rds_graviton_equivalent(sku), CONFIDENCE_GRAVITON_MIGRATION))

        recommendations: List[Recommendation] = []
        emitted = set()
        for modification_type, target, confidence in candidates:
            if not target or target in emitted:
                continue
            target_rate, target_found = self.pricing.rds_on_demand_price_per_hour(target, attrs.engine)
            if not target_found or target_rate > current_rate:
                continue
            emitted.add(target)

            if modification_type == MODIFICATION_GRAVITON_MIGRATION:
                description = f"Migrate {sku} to Graviton {target} ({attrs.engine})"
            else:
                description = f"Upgrade {sku} to newer generation {target} ({attrs.engine})"
            recommendations.append(self._build(
                info,
                modification_type,
                "instance_class",
                sku,
                target,
                current_rate * HOURS_PER_MONTH,
                target_rate * HOURS_PER_MONTH,
                confidence,
                description,
                ("Instance class can be changed during a maintenance window",),
                {"engine": attrs.engine},
            ))
        return recommendations
