"""
Per-service classification metadata.

Growth hints for projected estimates and the FinOps FOCUS columns attached
to actual-cost results.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict

from costengine.domain.cost_models import FocusCostRecord, GrowthType
from costengine.services.resource_identity import ServiceType


@dataclass(frozen=True)
class ServiceClassification:
    service_name: str
    focus_category: str
    pricing_unit: str
    growth_type: GrowthType


OTHER_CATEGORY = "Other"
DEFAULT_PRICING_UNIT = "Units"

# Services missing here get no growth hint and the "Other" FOCUS category
SERVICE_CLASSIFICATIONS: Dict[ServiceType, ServiceClassification] = {
    ServiceType.EC2: ServiceClassification("Amazon EC2", "Compute", "Hours", GrowthType.NONE),
    ServiceType.EBS: ServiceClassification("Amazon EBS", "Storage", "GB-Mo", GrowthType.NONE),
    ServiceType.RDS: ServiceClassification("Amazon RDS", "Databases", "Hours", GrowthType.NONE),
    # Control plane only; worker nodes are EC2
    ServiceType.EKS: ServiceClassification("Amazon EKS", "Compute", "Hours", GrowthType.NONE),
    ServiceType.S3: ServiceClassification("Amazon S3", "Storage", "GB-Mo", GrowthType.LINEAR),
    ServiceType.LAMBDA: ServiceClassification("AWS Lambda", "Compute", "GB-Seconds", GrowthType.NONE),
    ServiceType.DYNAMODB: ServiceClassification("Amazon DynamoDB", "Databases", "Requests", GrowthType.LINEAR),
    ServiceType.ELB: ServiceClassification("Elastic Load Balancing", "Networking", "Hours", GrowthType.NONE),
    ServiceType.NATGW: ServiceClassification("Amazon VPC NAT Gateway", "Networking", "Hours", GrowthType.NONE),
    ServiceType.CLOUDWATCH: ServiceClassification(
        "Amazon CloudWatch", "Management and Governance", "GB", GrowthType.NONE
    ),
    ServiceType.ELASTICACHE: ServiceClassification("Amazon ElastiCache", "Databases", "Hours", GrowthType.NONE),
}


def growth_type_for(service: ServiceType) -> GrowthType:
    classification = SERVICE_CLASSIFICATIONS.get(service)
    return classification.growth_type if classification else GrowthType.UNSPECIFIED


def service_name_for(service: ServiceType) -> str:
    classification = SERVICE_CLASSIFICATIONS.get(service)
    return classification.service_name if classification else f"AWS {service.value}"


def build_focus_record(
    service: ServiceType,
    resource_type: str,
    region: str,
    sku: str,
    cost: float,
    unit_price: float,
    start: datetime,
    end: datetime,
) -> FocusCostRecord:
    """
    Build the FOCUS row for a public-pricing actual-cost result.

    Args:
        service: Resolved service
        resource_type: Resource type as the caller sent it
        region: Region the cost was priced in
        sku: Instance type, volume type, ...
        cost: Cost over the charge period
        unit_price: Rate the cost was derived from
        start: Charge period start
        end: Charge period end

    Returns:
        FocusCostRecord with billed = effective = list cost
    """
    classification = SERVICE_CLASSIFICATIONS.get(service)
    return FocusCostRecord(
        billed_cost=cost,
        list_unit_price=unit_price,
        service_category=classification.focus_category if classification else OTHER_CATEGORY,
        service_name=service_name_for(service),
        pricing_unit=classification.pricing_unit if classification else DEFAULT_PRICING_UNIT,
        charge_period_start=start,
        charge_period_end=end,
        region_id=region,
        resource_type=resource_type,
        sku_id=sku,
    )
