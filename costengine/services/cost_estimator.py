"""
Per-service cost calculators.

Each calculator turns a resource descriptor plus pricing lookups into a
monthly CostEstimate. A pricing miss is never an error: it yields a $0
estimate whose billing detail explains what was missing.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import logging

from costengine.domain.cost_models import HOURS_PER_MONTH, CostEstimate, ImpactMetric, ResourceDescriptor
from costengine.domain.errors import InvalidResourceError
from costengine.pricing.source import CarbonEstimator, PricingSource
from costengine.services.attributes import (
    AttributeSource,
    attribute_source_for,
    extract_database_attributes,
    extract_ec2_attributes,
    extract_function_attributes,
    resolve_sku,
)
from costengine.services.resource_identity import ServiceType
from costengine.services.tiered_pricing import calculate_tiered_cost


logger = logging.getLogger(__name__)


PRICING_NOT_FOUND_TEMPLATE = '{label} "{sku}" not found in pricing data'
PRICING_UNAVAILABLE_TEMPLATE = "{label} pricing data not available for region {region}"
UNSUPPORTED_TEMPLATE = 'Resource type "{resource_type}" not supported for cost estimation'

DEFAULT_EBS_SIZE_GB = 8.0
DEFAULT_S3_SIZE_GB = 1.0
DEFAULT_UTILIZATION = 0.5
MAX_CAPACITY_UNITS_WARNING = 1000.0
MAX_CUSTOM_METRICS = 1_000_000.0
MAX_CACHE_NODES = 1000

CARBON_METRIC = "carbon_footprint"
CARBON_UNIT = "gCO2e"

_ELASTICACHE_ENGINES = {"redis": "Redis", "memcached": "Memcached", "valkey": "Valkey"}

_ZERO_COST_DETAILS = {
    ServiceType.VPC: "VPC has no direct cost; charges apply to resources inside it",
    ServiceType.SUBNET: "Subnet has no direct cost",
    ServiceType.SECURITY_GROUP: "Security group has no direct cost",
    ServiceType.IAM: "IAM resources are free of charge",
}


@dataclass(frozen=True)
class EstimationContext:
    """Per-request values every calculator may need."""
    region: str
    carbon_estimator: Optional[CarbonEstimator] = None
    utilization: float = DEFAULT_UTILIZATION
    trace_id: str = ""


Calculator = Callable[[ResourceDescriptor, PricingSource, EstimationContext], CostEstimate]


def pricing_not_found(label: str, sku: str) -> str:
    return PRICING_NOT_FOUND_TEMPLATE.format(label=label, sku=sku)


def pricing_unavailable(label: str, region: str) -> str:
    return PRICING_UNAVAILABLE_TEMPLATE.format(label=label, region=region)


def strict_tag_number(
    source: AttributeSource,
    key: str,
    context: EstimationContext,
    maximum: Optional[float] = None,
) -> Optional[float]:
    """
    Parse a caller-supplied usage tag that must be well formed when present.

    Returns:
        The parsed value, or None when the key is absent

    Raises:
        InvalidResourceError: If the value is empty, non-numeric, negative
                              or above maximum
    """
    raw = source.raw_text(key)
    if raw is None:
        return None
    if raw == "":
        raise InvalidResourceError(f"tag {key!r} must not be empty", trace_id=context.trace_id)
    try:
        value = float(raw)
    except ValueError as error:
        raise InvalidResourceError(
            f"tag {key!r} must be a number (got {raw!r})", trace_id=context.trace_id
        ) from error
    if value != value or value in (float("inf"), float("-inf")):
        raise InvalidResourceError(f"tag {key!r} must be a finite number", trace_id=context.trace_id)
    if value < 0:
        raise InvalidResourceError(f"tag {key!r} must not be negative (got {raw})", trace_id=context.trace_id)
    if maximum is not None and value > maximum:
        raise InvalidResourceError(
            f"tag {key!r} must not exceed {maximum:g} (got {raw})", trace_id=context.trace_id
        )
    return value


def _carbon_metrics(instance_type: str, context: EstimationContext, multiplier: float = 1.0) -> Tuple[ImpactMetric, ...]:
    if context.carbon_estimator is None or not instance_type:
        return ()
    grams, ok = context.carbon_estimator.estimate_grams_co2e(
        instance_type, context.region, context.utilization, HOURS_PER_MONTH
    )
    if not ok:
        logger.debug("No carbon data for %s", instance_type)
        return ()
    return (ImpactMetric(kind=CARBON_METRIC, value=grams * multiplier, unit=CARBON_UNIT),)


def estimate_ec2(resource: ResourceDescriptor, pricing: PricingSource, context: EstimationContext) -> CostEstimate:
    sku = resolve_sku(resource)
    attrs = extract_ec2_attributes(attribute_source_for(resource))

    hourly, found = pricing.ec2_on_demand_price_per_hour(sku, attrs.os, attrs.tenancy)
    if not found:
        logger.debug("EC2 price miss for %s (%s, %s) [trace_id=%s]", sku, attrs.os, attrs.tenancy, context.trace_id)
        return CostEstimate.zero(pricing_not_found("EC2 instance type", sku))

    return CostEstimate(
        cost_per_month=hourly * HOURS_PER_MONTH,
        unit_price=hourly,
        billing_detail=f"On-demand {attrs.os}, {attrs.tenancy} tenancy, 730 hrs/month",
        impact_metrics=_carbon_metrics(sku, context),
    )


def estimate_ebs(resource: ResourceDescriptor, pricing: PricingSource, context: EstimationContext) -> CostEstimate:
    volume_type = resolve_sku(resource) or "gp2"
    source = attribute_source_for(resource)

    size_gb, _ = source.number("size", "volume_size")
    defaulted = size_gb is None
    if defaulted:
        size_gb = DEFAULT_EBS_SIZE_GB

    rate, found = pricing.ebs_price_per_gb_month(volume_type)
    if not found:
        return CostEstimate.zero(pricing_not_found("EBS volume type", volume_type))

    suffix = " (defaulted)" if defaulted else ""
    return CostEstimate(
        cost_per_month=rate * size_gb,
        unit_price=rate,
        billing_detail=f"{volume_type} volume, {size_gb:g} GB{suffix}, ${rate:.4f}/GB-month",
    )


def estimate_rds(resource: ResourceDescriptor, pricing: PricingSource, context: EstimationContext) -> CostEstimate:
    instance_type = resolve_sku(resource)
    attrs = extract_database_attributes(attribute_source_for(resource))

    hourly, found = pricing.rds_on_demand_price_per_hour(instance_type, attrs.engine)
    if not found:
        return CostEstimate.zero(pricing_not_found(f"RDS instance type ({attrs.engine})", instance_type))

    notes: List[str] = []
    if attrs.engine_defaulted:
        if attrs.raw_engine:
            notes.append(f"engine {attrs.raw_engine!r} not recognized, defaulted to {attrs.engine}")
        else:
            notes.append(f"engine defaulted to {attrs.engine}")
    if attrs.storage_defaulted:
        notes.append(f"storage defaulted to {attrs.storage_gb:g}GB")

    storage_rate, storage_found = pricing.rds_storage_price_per_gb_month(attrs.storage_type)
    storage_cost = storage_rate * attrs.storage_gb if storage_found else 0.0
    if not storage_found:
        logger.warning("RDS storage pricing missing for %s [trace_id=%s]", attrs.storage_type, context.trace_id)
        notes.append(f"{attrs.storage_type} storage pricing unavailable")

    if attrs.multi_az:
        notes.append("Multi-AZ deployment priced at the Single-AZ rate")

    monthly = hourly * HOURS_PER_MONTH + storage_cost

    detail = (
        f"RDS {instance_type} {attrs.engine}, 730 hrs/month + "
        f"{attrs.storage_gb:g}GB {attrs.storage_type} storage"
    )
    if notes:
        detail += f" ({'; '.join(notes)})"
    return CostEstimate(cost_per_month=monthly, unit_price=hourly, billing_detail=detail)


def estimate_eks(resource: ResourceDescriptor, pricing: PricingSource, context: EstimationContext) -> CostEstimate:
    source = attribute_source_for(resource)
    extended = (
        resource.sku.strip().lower() == "cluster-extended"
        or source.text("support_type").lower() == "extended"
    )
    hourly, found = pricing.eks_cluster_price_per_hour(extended)
    if not found:
        return CostEstimate.zero(pricing_unavailable("EKS", context.region))

    support = "extended" if extended else "standard"
    return CostEstimate(
        cost_per_month=hourly * HOURS_PER_MONTH,
        unit_price=hourly,
        billing_detail=(
            f"EKS cluster ({support} support), 730 hrs/month "
            "(control plane only; worker nodes billed separately)"
        ),
    )


def estimate_s3(resource: ResourceDescriptor, pricing: PricingSource, context: EstimationContext) -> CostEstimate:
    storage_class = (resource.sku.strip() or "STANDARD").upper()
    size_gb, _ = attribute_source_for(resource).number("size")
    defaulted = size_gb is None
    if defaulted:
        size_gb = DEFAULT_S3_SIZE_GB

    rate, found = pricing.s3_price_per_gb_month(storage_class)
    if not found:
        return CostEstimate.zero(pricing_not_found("S3 storage class", storage_class))

    suffix = " (defaulted)" if defaulted else ""
    return CostEstimate(
        cost_per_month=rate * size_gb,
        unit_price=rate,
        billing_detail=f"S3 {storage_class} storage, {size_gb:g} GB{suffix}, ${rate:.4f}/GB-month",
    )


def estimate_lambda(resource: ResourceDescriptor, pricing: PricingSource, context: EstimationContext) -> CostEstimate:
    attrs = extract_function_attributes(attribute_source_for(resource), resource.sku.strip())

    request_price, request_found = pricing.lambda_price_per_request()
    gb_second_price, gb_second_found = pricing.lambda_price_per_gb_second(attrs.architecture)
    if not (request_found and gb_second_found):
        return CostEstimate.zero(pricing_unavailable("Lambda", context.region))

    gb_seconds = (attrs.memory_mb / 1024.0) * (attrs.avg_duration_ms / 1000.0) * attrs.requests_per_month
    monthly = attrs.requests_per_month * request_price + gb_seconds * gb_second_price

    defaulted = [
        name
        for name, flag in (
            ("memory", attrs.memory_defaulted),
            ("requests", attrs.requests_defaulted),
            ("duration", attrs.duration_defaulted),
        )
        if flag
    ]
    detail = (
        f"Lambda {attrs.memory_mb:g}MB ({attrs.architecture}), "
        f"{attrs.requests_per_month:,.0f} requests/month, {attrs.avg_duration_ms:g}ms avg duration"
    )
    if defaulted:
        detail += f" (defaulted: {', '.join(defaulted)})"
    return CostEstimate(cost_per_month=monthly, unit_price=gb_second_price, billing_detail=detail)


def _capacity_mode(sku: str) -> str:
    mode = sku.strip().lower()
    if mode in ("", "on-demand", "ondemand", "on_demand", "pay_per_request", "pay-per-request"):
        return "on-demand"
    if mode == "provisioned":
        return "provisioned"
    logger.warning("Unknown DynamoDB capacity mode %r, assuming on-demand", sku)
    return "on-demand"


def estimate_dynamodb(resource: ResourceDescriptor, pricing: PricingSource, context: EstimationContext) -> CostEstimate:
    mode = _capacity_mode(resource.sku)
    source = attribute_source_for(resource)
    unavailable: List[str] = []
    total = 0.0
    unit_price = 0.0

    def component(name: str, quantity: float, lookup: Callable[[], Tuple[float, bool]], hours: float = 1.0) -> float:
        rate, found = lookup()
        if not found:
            logger.warning("DynamoDB %s pricing unavailable [trace_id=%s]", name, context.trace_id)
            unavailable.append(name)
            return 0.0
        return quantity * rate * hours

    storage_gb, _ = source.number("storage_gb")
    storage_gb = storage_gb or 0.0

    if mode == "provisioned":
        rcu, _ = source.number("read_capacity_units")
        wcu, _ = source.number("write_capacity_units")
        rcu, wcu = rcu or 0.0, wcu or 0.0
        total += component("RCU", rcu, pricing.dynamodb_provisioned_rcu_price, HOURS_PER_MONTH)
        total += component("WCU", wcu, pricing.dynamodb_provisioned_wcu_price, HOURS_PER_MONTH)
        unit_price = pricing.dynamodb_provisioned_rcu_price()[0]
        detail = f"DynamoDB provisioned, {rcu:g} RCU, {wcu:g} WCU, 730 hrs/month, {storage_gb:g}GB storage"
    else:
        reads, _ = source.number("read_requests_per_month")
        writes, _ = source.number("write_requests_per_month")
        reads, writes = reads or 0.0, writes or 0.0
        total += component("read requests", reads, pricing.dynamodb_on_demand_read_price)
        total += component("write requests", writes, pricing.dynamodb_on_demand_write_price)
        unit_price = pricing.dynamodb_on_demand_read_price()[0]
        detail = f"DynamoDB on-demand, {reads:,.0f} reads, {writes:,.0f} writes, {storage_gb:g}GB storage"

    total += component("storage", storage_gb, pricing.dynamodb_storage_price_per_gb_month)

    if unavailable:
        detail += f" (pricing unavailable: {', '.join(unavailable)})"
    if total == 0:
        detail += " (missing or zero usage inputs)"
    return CostEstimate(cost_per_month=total, unit_price=unit_price, billing_detail=detail)


def estimate_elb(resource: ResourceDescriptor, pricing: PricingSource, context: EstimationContext) -> CostEstimate:
    sku = resource.sku.strip().lower()
    is_network = "nlb" in sku or "network" in sku
    label, unit_label = ("NLB", "NLCU") if is_network else ("ALB", "LCU")

    source = attribute_source_for(resource)
    capacity_units, _ = source.number("nlcu_per_hour" if is_network else "lcu_per_hour", "capacity_units")
    capacity_units = capacity_units or 0.0
    if capacity_units > MAX_CAPACITY_UNITS_WARNING:
        logger.warning(
            "%s capacity units %.1f look unusually high [trace_id=%s]", label, capacity_units, context.trace_id
        )

    if is_network:
        hourly, found = pricing.nlb_price_per_hour()
        unit_rate, unit_found = pricing.nlb_price_per_nlcu()
    else:
        hourly, found = pricing.alb_price_per_hour()
        unit_rate, unit_found = pricing.alb_price_per_lcu()
    if not found:
        return CostEstimate.zero(pricing_unavailable(label, context.region))

    monthly = HOURS_PER_MONTH * hourly
    detail = f"{label}, 730 hrs/month, {capacity_units:.1f} {unit_label} avg/hr"
    if unit_found:
        monthly += HOURS_PER_MONTH * capacity_units * unit_rate
    else:
        detail += f" ({unit_label} pricing unavailable)"
    return CostEstimate(cost_per_month=monthly, unit_price=hourly, billing_detail=detail)


def estimate_nat_gateway(resource: ResourceDescriptor, pricing: PricingSource, context: EstimationContext) -> CostEstimate:
    data_gb = strict_tag_number(attribute_source_for(resource), "data_processed_gb", context)

    price, found = pricing.nat_gateway_price()
    if not found:
        return CostEstimate.zero(pricing_unavailable("NAT Gateway", context.region))

    monthly = price.hourly_rate * HOURS_PER_MONTH
    if data_gb is None:
        detail = "NAT Gateway, 730 hrs/month (data processing cost not included; use 'data_processed_gb' tag)"
    elif data_gb == 0:
        detail = "NAT Gateway, 730 hrs/month, 0 GB data processed"
    else:
        monthly += data_gb * price.data_processing_rate
        detail = (
            f"NAT Gateway, 730 hrs/month + {data_gb:g} GB data processed "
            f"at ${price.data_processing_rate:.4f}/GB"
        )
    return CostEstimate(cost_per_month=monthly, unit_price=price.hourly_rate, billing_detail=detail)


def estimate_cloudwatch(resource: ResourceDescriptor, pricing: PricingSource, context: EstimationContext) -> CostEstimate:
    mode = resource.sku.strip().lower() or "logs"
    if mode not in ("logs", "metrics", "combined"):
        logger.warning("Unknown CloudWatch SKU %r, assuming logs", resource.sku)
        mode = "logs"

    source = attribute_source_for(resource)
    ingestion_gb = strict_tag_number(source, "log_ingestion_gb", context)
    storage_gb = strict_tag_number(source, "log_storage_gb", context)
    metrics = strict_tag_number(source, "custom_metrics", context, maximum=MAX_CUSTOM_METRICS)

    parts: List[str] = []
    unavailable: List[str] = []
    total = 0.0

    if mode in ("logs", "combined"):
        if ingestion_gb:
            tiers, found = pricing.cloudwatch_logs_ingestion_tiers()
            if found:
                total += calculate_tiered_cost(ingestion_gb, tiers)
            else:
                unavailable.append("log ingestion")
            parts.append(f"{ingestion_gb:g} GB logs ingested")
        if storage_gb:
            rate, found = pricing.cloudwatch_logs_storage_price()
            if found:
                total += storage_gb * rate
            else:
                unavailable.append("log storage")
            parts.append(f"{storage_gb:g} GB logs stored")

    if mode in ("metrics", "combined") and metrics:
        tiers, found = pricing.cloudwatch_metrics_tiers()
        if found:
            total += calculate_tiered_cost(metrics, tiers)
        else:
            unavailable.append("custom metrics")
        parts.append(f"{metrics:g} custom metrics")

    if not parts:
        return CostEstimate.zero(
            "CloudWatch: No usage specified (use log_ingestion_gb, log_storage_gb or custom_metrics tags)"
        )

    for name in unavailable:
        logger.warning("CloudWatch %s pricing unavailable [trace_id=%s]", name, context.trace_id)
    detail = "CloudWatch: " + ", ".join(parts)
    if unavailable:
        detail += f" (pricing unavailable: {', '.join(unavailable)})"
    return CostEstimate(cost_per_month=total, unit_price=0.0, billing_detail=detail)


def estimate_elasticache(resource: ResourceDescriptor, pricing: PricingSource, context: EstimationContext) -> CostEstimate:
    source = attribute_source_for(resource)
    node_type = resource.sku.strip() or source.text("node_type", "cache_node_type")
    if not node_type:
        raise InvalidResourceError(
            "ElastiCache node type is required (set sku or the 'node_type' tag)", trace_id=context.trace_id
        )

    raw_engine = source.text("engine").lower()
    engine = _ELASTICACHE_ENGINES.get(raw_engine or "redis")
    if engine is None:
        logger.warning("Unknown ElastiCache engine %r, assuming Redis", raw_engine)
        engine = "Redis"

    node_key = "num_nodes" if source.has("num_nodes") else "num_cache_nodes"
    nodes = strict_tag_number(source, node_key, context, maximum=MAX_CACHE_NODES)
    if nodes is None:
        nodes = 1.0
    if nodes < 1 or nodes != int(nodes):
        raise InvalidResourceError(
            f"tag {node_key!r} must be a whole number between 1 and {MAX_CACHE_NODES}",
            trace_id=context.trace_id,
        )
    node_count = int(nodes)

    hourly, found = pricing.elasticache_on_demand_price_per_hour(node_type, engine)
    if not found:
        return CostEstimate.zero(pricing_not_found(f"ElastiCache node type ({engine})", node_type))

    instance_type = node_type[len("cache."):] if node_type.startswith("cache.") else node_type
    return CostEstimate(
        cost_per_month=hourly * node_count * HOURS_PER_MONTH,
        unit_price=hourly,
        billing_detail=f"ElastiCache {node_type} {engine}, {node_count} node(s), 730 hrs/month",
        impact_metrics=_carbon_metrics(instance_type, context, multiplier=node_count),
    )


def _zero_cost(service: ServiceType) -> Calculator:
    def estimate(resource: ResourceDescriptor, pricing: PricingSource, context: EstimationContext) -> CostEstimate:
        return CostEstimate.zero(_ZERO_COST_DETAILS[service])
    return estimate


CALCULATORS: Dict[ServiceType, Calculator] = {
    ServiceType.EC2: estimate_ec2,
    ServiceType.EBS: estimate_ebs,
    ServiceType.RDS: estimate_rds,
    ServiceType.EKS: estimate_eks,
    ServiceType.S3: estimate_s3,
    ServiceType.LAMBDA: estimate_lambda,
    ServiceType.DYNAMODB: estimate_dynamodb,
    ServiceType.ELB: estimate_elb,
    ServiceType.NATGW: estimate_nat_gateway,
    ServiceType.CLOUDWATCH: estimate_cloudwatch,
    ServiceType.ELASTICACHE: estimate_elasticache,
    ServiceType.VPC: _zero_cost(ServiceType.VPC),
    ServiceType.SUBNET: _zero_cost(ServiceType.SUBNET),
    ServiceType.SECURITY_GROUP: _zero_cost(ServiceType.SECURITY_GROUP),
    ServiceType.IAM: _zero_cost(ServiceType.IAM),
}


def estimate_cost(
    resource: ResourceDescriptor,
    service: ServiceType,
    pricing: PricingSource,
    context: EstimationContext,
) -> CostEstimate:
    """
    Dispatch a resource to its service calculator.

    Args:
        resource: Resource to price (never mutated)
        service: Service detected for the resource
        pricing: Pricing source for the instance region
        context: Per-request estimation context

    Returns:
        Monthly CostEstimate; $0 with explanation for unsupported types

    Raises:
        InvalidResourceError: If a strictly validated usage tag is malformed
    """
    calculator = CALCULATORS.get(service)
    if calculator is None:
        return CostEstimate.zero(UNSUPPORTED_TEMPLATE.format(resource_type=resource.resource_type))
    return calculator(resource, pricing, context)
