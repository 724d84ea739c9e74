"""
Domain models for cost estimation.
Defines resource descriptors and the results of each cost query.
"""
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from costengine.domain.errors import InvalidResourceError


HOURS_PER_MONTH = 730.0
CURRENCY_USD = "USD"


def parse_utilization(value: Any) -> float:
    """
    Coerce a utilization percentage to float.

    Raises:
        InvalidResourceError: If the value is not numeric
    """
    if isinstance(value, bool):
        raise InvalidResourceError(f"utilization_percentage must be a number, got {value!r}")
    try:
        percentage = float(value)
    except (TypeError, ValueError) as error:
        raise InvalidResourceError(f"utilization_percentage must be a number, got {value!r}") from error
    if not math.isfinite(percentage):
        raise InvalidResourceError(f"utilization_percentage must be finite, got {value!r}")
    return percentage


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    A cloud resource to be priced.

    resource_type may be a canonical short form ("ec2") or the
    vendor-hierarchical form ("aws:ec2/instance:Instance").
    """
    provider: str = ""
    resource_type: str = ""
    sku: str = ""
    region: str = ""
    tags: Mapping[str, str] = field(default_factory=dict)
    id: str = ""
    name: str = ""
    attributes: Optional[Mapping[str, Any]] = None
    utilization_percentage: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceDescriptor":
        """
        Build a descriptor from a JSON-like mapping, ignoring unknown keys.

        Raises:
            InvalidResourceError: If tags or attributes are not objects, or
                utilization_percentage is not a number
        """
        tags = data.get("tags") or {}
        if not isinstance(tags, Mapping):
            raise InvalidResourceError(f"tags must be an object, got {type(tags).__name__}")
        attributes = data.get("attributes")
        if attributes is not None and not isinstance(attributes, Mapping):
            raise InvalidResourceError(f"attributes must be an object, got {type(attributes).__name__}")
        utilization = data.get("utilization_percentage")
        if utilization is not None:
            utilization = parse_utilization(utilization)
        return cls(
            provider=str(data.get("provider") or ""),
            resource_type=str(data.get("resource_type") or ""),
            sku=str(data.get("sku") or ""),
            region=str(data.get("region") or ""),
            tags={str(k): str(v) for k, v in tags.items()},
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            attributes=attributes,
            utilization_percentage=utilization,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            "provider": self.provider,
            "resource_type": self.resource_type,
            "sku": self.sku,
            "region": self.region,
            "tags": dict(self.tags),
        }
        if self.id:
            result["id"] = self.id
        if self.name:
            result["name"] = self.name
        if self.attributes is not None:
            result["attributes"] = dict(self.attributes)
        if self.utilization_percentage is not None:
            result["utilization_percentage"] = self.utilization_percentage
        return result


@dataclass(frozen=True)
class ImpactMetric:
    """A non-monetary impact figure attached to an estimate (e.g. carbon)."""
    kind: str
    value: float
    unit: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"kind": self.kind, "value": self.value, "unit": self.unit}


class GrowthType(str, Enum):
    """How a resource's cost is expected to change over time, for forecasting."""
    UNSPECIFIED = "unspecified"
    NONE = "none"
    LINEAR = "linear"


@dataclass(frozen=True)
class CostEstimate:
    """Projected monthly cost of a single resource."""
    cost_per_month: float
    unit_price: float
    billing_detail: str
    currency: str = CURRENCY_USD
    impact_metrics: Tuple[ImpactMetric, ...] = ()
    growth_type: GrowthType = GrowthType.UNSPECIFIED

    @classmethod
    def zero(cls, billing_detail: str) -> "CostEstimate":
        """A $0 estimate carrying an explanation."""
        return cls(cost_per_month=0.0, unit_price=0.0, billing_detail=billing_detail)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "cost_per_month": self.cost_per_month,
            "unit_price": self.unit_price,
            "currency": self.currency,
            "billing_detail": self.billing_detail,
            "impact_metrics": [metric.to_dict() for metric in self.impact_metrics],
            "growth_type": self.growth_type.value,
        }


@dataclass(frozen=True)
class FocusCostRecord:
    """
    A FinOps FOCUS 1.2 cost row for a public-pricing estimate.

    Public list prices carry no discounts, so billed, effective and list
    cost are always equal. Billing-account fields (account id, invoice id)
    are not known from public pricing and are left out.
    """
    billed_cost: float
    list_unit_price: float
    service_category: str
    service_name: str
    pricing_unit: str
    charge_period_start: datetime
    charge_period_end: datetime
    region_id: str
    resource_type: str
    sku_id: str
    charge_category: str = "Usage"
    charge_class: str = "Regular"
    charge_frequency: str = "Usage-Based"
    pricing_category: str = "Standard"
    billing_currency: str = CURRENCY_USD
    service_provider_name: str = "AWS"

    @property
    def effective_cost(self) -> float:
        return self.billed_cost

    @property
    def list_cost(self) -> float:
        return self.billed_cost

    @property
    def charge_description(self) -> str:
        return f"Public pricing estimate for {self.resource_type} in {self.region_id}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary keyed by FOCUS column names."""
        return {
            "BilledCost": self.billed_cost,
            "EffectiveCost": self.effective_cost,
            "ListCost": self.list_cost,
            "ListUnitPrice": self.list_unit_price,
            "ServiceCategory": self.service_category,
            "ServiceName": self.service_name,
            "ServiceProviderName": self.service_provider_name,
            "ChargeCategory": self.charge_category,
            "ChargeClass": self.charge_class,
            "ChargeFrequency": self.charge_frequency,
            "ChargeDescription": self.charge_description,
            "PricingCategory": self.pricing_category,
            "PricingUnit": self.pricing_unit,
            "ChargePeriodStart": self.charge_period_start.isoformat(),
            "ChargePeriodEnd": self.charge_period_end.isoformat(),
            "RegionId": self.region_id,
            "BillingCurrency": self.billing_currency,
            "ResourceType": self.resource_type,
            "SkuId": self.sku_id,
        }


@dataclass(frozen=True)
class ActualCostResult:
    """Cost attributed to a resource over a historical window."""
    timestamp: datetime
    cost: float
    usage_amount: float
    usage_unit: str
    source: str
    focus_record: Optional[FocusCostRecord] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "cost": self.cost,
            "usage_amount": self.usage_amount,
            "usage_unit": self.usage_unit,
            "source": self.source,
        }
        if self.focus_record is not None:
            result["focus_record"] = self.focus_record.to_dict()
        return result

@dataclass(frozen=True)
class PricingSpec:
    """Billing metadata for a resource, without a computed cost."""
    provider: str
    resource_type: str
    sku: str
    region: str
    billing_mode: str
    rate_per_unit: float
    unit: str
    description: str
    currency: str = CURRENCY_USD
    source: str = "aws-public"
    assumptions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "provider": self.provider,
            "resource_type": self.resource_type,
            "sku": self.sku,
            "region": self.region,
            "billing_mode": self.billing_mode,
            "rate_per_unit": self.rate_per_unit,
            "currency": self.currency,
            "unit": self.unit,
            "description": self.description,
            "source": self.source,
            "assumptions": list(self.assumptions),
        }


@dataclass(frozen=True)
class SupportsResult:
    """Whether this instance can price a resource."""
    supported: bool
    reason: str = ""
    supported_metrics: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "supported": self.supported,
            "reason": self.reason,
            "supported_metrics": list(self.supported_metrics),
        }


@dataclass(frozen=True)
class ActualCostRequest:
    """
    Request for the cost of a resource over [start, end].

    The resource is identified by (in priority order) an ARN, an explicit
    descriptor, a JSON-encoded resource_id, or the provider/resource_type/
    sku/region tags.
    """
    resource: Optional[ResourceDescriptor] = None
    resource_id: str = ""
    arn: str = ""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    tags: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PluginInfo:
    """Identity of this pricing instance."""
    name: str
    version: str
    region: str
    providers: List[str] = field(default_factory=lambda: ["aws"])

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "version": self.version,
            "region": self.region,
            "providers": list(self.providers),
        }
