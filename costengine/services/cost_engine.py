"""
Cost engine service.
Entry point for projected cost, actual cost, pricing specification,
recommendation and supports queries against a single AWS region.
"""
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
import json
import logging
import time
import uuid

from costengine.core.config import EngineSettings
from costengine.domain.cost_models import (
    HOURS_PER_MONTH,
    ActualCostRequest,
    ActualCostResult,
    CostEstimate,
    GrowthType,
    PluginInfo,
    PricingSpec,
    ResourceDescriptor,
    SupportsResult,
    parse_utilization,
)
from costengine.domain.errors import InvalidResourceError, RegionMismatchError, TimestampResolutionError
from costengine.domain.recommendation_models import RecommendationsRequest, RecommendationsResult
from costengine.pricing.source import CarbonEstimator, PricingSource
from costengine.services.classification import build_focus_record, growth_type_for
from costengine.services.cost_estimator import (
    CARBON_METRIC,
    DEFAULT_UTILIZATION,
    EstimationContext,
    estimate_cost,
)
from costengine.services.pricing_spec import build_pricing_spec
from costengine.services.recommendations import RecommendationGenerator
from costengine.services.resource_identity import ResolvedType, ServiceResolver, ServiceType
from costengine.services.resource_locator import descriptor_from_arn, descriptor_from_tags
from costengine.services.timestamp_resolver import (
    determine_confidence,
    merge_tags,
    resolve_timestamps,
    validate_window,
)
from costengine.utils.log_sanitizer import sanitize_tags


logger = logging.getLogger(__name__)


# Services billed globally; an empty region means "this instance's region"
GLOBAL_SERVICES = frozenset({ServiceType.S3, ServiceType.IAM})
CARBON_SERVICES = frozenset({ServiceType.EC2, ServiceType.ELASTICACHE})

ACTUAL_COST_SOURCE = "aws-public-fallback"


def new_trace_id() -> str:
    return uuid.uuid4().hex


class CostEngine:
    """
    Prices AWS resources for one region from an immutable pricing source.

    Holds no per-request state; every public method may be called
    concurrently.
    """

    def __init__(
        self,
        pricing: PricingSource,
        settings: EngineSettings,
        carbon_estimator: Optional[CarbonEstimator] = None,
    ):
        """
        Initialize the engine.

        Args:
            pricing: Pricing source for settings.region
            settings: Engine settings resolved at startup
            carbon_estimator: Optional carbon footprint estimator

        Raises:
            ValueError: If the pricing source serves a different region
        """
        if pricing.region() != settings.region:
            raise ValueError(
                f"pricing source region {pricing.region()!r} does not match configured region {settings.region!r}"
            )
        self.pricing = pricing
        self.settings = settings
        self.carbon_estimator = carbon_estimator
        self.recommendation_generator = RecommendationGenerator(pricing, settings)

    def plugin_info(self) -> PluginInfo:
        return PluginInfo(
            name=self.settings.plugin_name,
            version=self.settings.plugin_version,
            region=self.settings.region,
        )

    def _validate_resource(
        self,
        resource: Optional[ResourceDescriptor],
        resolver: ServiceResolver,
        trace_id: str,
    ) -> Tuple[ResolvedType, str]:
        """
        Check a descriptor is well formed and belongs to this region.

        Returns:
            (resolved type, effective region)

        Raises:
            InvalidResourceError: If the descriptor is missing or malformed
            RegionMismatchError: If the resource belongs to another region
        """
        if resource is None:
            raise InvalidResourceError("resource descriptor is required", trace_id=trace_id)
        if resource.provider.strip().lower() != "aws":
            raise InvalidResourceError(
                f"unsupported provider {resource.provider!r}; only 'aws' is supported",
                trace_id=trace_id,
            )
        if not resource.resource_type.strip():
            raise InvalidResourceError("resource_type is required", trace_id=trace_id)

        resolved = resolver.resolve(resource.resource_type)
        region = resource.region.strip()
        if not region:
            if resolved.service not in GLOBAL_SERVICES:
                raise InvalidResourceError("region is required", trace_id=trace_id)
            region = self.settings.region
        if region != self.settings.region:
            raise RegionMismatchError(self.settings.region, region, trace_id=trace_id)
        return resolved, region

    def _context(self, resource: ResourceDescriptor, region: str, trace_id: str) -> EstimationContext:
        utilization = DEFAULT_UTILIZATION
        if resource.utilization_percentage is not None:
            try:
                percentage = parse_utilization(resource.utilization_percentage)
            except InvalidResourceError as error:
                raise InvalidResourceError(error.message, trace_id=trace_id) from error
            utilization = min(max(percentage / 100.0, 0.0), 1.0)
        return EstimationContext(
            region=region,
            carbon_estimator=self.carbon_estimator,
            utilization=utilization,
            trace_id=trace_id,
        )

    def get_projected_cost(self, resource: Optional[ResourceDescriptor], trace_id: str = "") -> CostEstimate:
        """
        Projected monthly cost of a resource.

        Args:
            resource: Resource descriptor
            trace_id: Correlation id (generated when empty)

        Returns:
            CostEstimate for 730 hours of operation

        Raises:
            InvalidResourceError: If the descriptor is malformed
            RegionMismatchError: If the resource is in another region
        """
        trace_id = trace_id or new_trace_id()
        started = time.monotonic()
        resolver = ServiceResolver()
        resolved, region = self._validate_resource(resource, resolver, trace_id)

        if self.settings.test_mode:
            logger.debug(
                "Projected cost request %s sku=%s tags=%s [trace_id=%s]",
                resource.resource_type,
                resource.sku,
                sanitize_tags(resource.tags),
                trace_id,
            )

        estimate = estimate_cost(resource, resolved.service, self.pricing, self._context(resource, region, trace_id))
        growth_type = growth_type_for(resolved.service)
        if growth_type is not GrowthType.UNSPECIFIED:
            estimate = replace(estimate, growth_type=growth_type)
            logger.debug(
                "Applied growth hint %s for %s [trace_id=%s]", growth_type.value, resolved.service.value, trace_id
            )
        logger.info(
            "Projected cost %s (%s) %s: $%.4f/month in %.1fms [trace_id=%s]",
            resource.resource_type,
            resolved.service.value,
            resource.sku,
            estimate.cost_per_month,
            (time.monotonic() - started) * 1000,
            trace_id,
        )
        return estimate

    def _locate_resource(
        self,
        request: ActualCostRequest,
        tags: Dict[str, str],
        trace_id: str,
    ) -> ResourceDescriptor:
        """Find the resource an actual-cost request refers to: ARN, descriptor, JSON id, then tags."""
        if request.arn:
            try:
                return descriptor_from_arn(request.arn, tags, default_region=self.settings.region)
            except InvalidResourceError as error:
                raise InvalidResourceError(error.message, trace_id=trace_id) from error

        if request.resource is not None:
            return request.resource

        if request.resource_id.lstrip().startswith("{"):
            try:
                payload: Any = json.loads(request.resource_id)
            except json.JSONDecodeError as error:
                raise InvalidResourceError(f"resource_id is not valid JSON: {error}", trace_id=trace_id) from error
            if isinstance(payload, dict) and payload.get("resource_type"):
                try:
                    return replace(ResourceDescriptor.from_dict(payload), tags=tags)
                except InvalidResourceError as error:
                    raise InvalidResourceError(f"invalid resource_id: {error.message}", trace_id=trace_id) from error

        resource = descriptor_from_tags(tags)
        if resource is None:
            raise InvalidResourceError(
                "resource could not be identified: provide an ARN, a resource descriptor, "
                "a JSON resource_id, or provider/resource_type/sku/region tags",
                trace_id=trace_id,
            )
        return resource

    def get_actual_cost(
        self,
        request: Optional[ActualCostRequest],
        trace_id: str = "",
        now: Optional[datetime] = None,
    ) -> ActualCostResult:
        """
        Cost of a resource over a historical window.

        The window comes from explicit timestamps or the pulumi:created tag;
        the projected monthly cost is scaled by runtime_hours / 730.

        Args:
            request: Actual-cost request
            trace_id: Correlation id (generated when empty)
            now: Current time, for tests

        Returns:
            ActualCostResult whose source encodes the confidence level

        Raises:
            InvalidResourceError: If the request, resource or window is invalid
            RegionMismatchError: If the resource is in another region
        """
        trace_id = trace_id or new_trace_id()
        if request is None:
            raise InvalidResourceError("actual cost request is required", trace_id=trace_id)

        base_tags = dict(request.resource.tags) if request.resource is not None else {}
        tags = {**base_tags, **merge_tags(request.resource_id, request.tags)}
        resource = self._locate_resource(request, tags, trace_id)
        resolver = ServiceResolver()
        resolved, region = self._validate_resource(resource, resolver, trace_id)

        try:
            resolution = resolve_timestamps(request.start, request.end, tags, now=now)
        except TimestampResolutionError as error:
            raise TimestampResolutionError(error.message, trace_id=trace_id) from error
        validate_window(resolution, trace_id=trace_id)

        confidence = determine_confidence(resolution)
        source = f"{ACTUAL_COST_SOURCE}[confidence:{confidence.value}]"
        if resolution.is_imported:
            source += " imported resource"

        hours = resolution.runtime_hours
        if hours == 0:
            logger.info("Zero-length window for %s; returning $0 [trace_id=%s]", resource.resource_type, trace_id)
            return ActualCostResult(
                timestamp=resolution.start,
                cost=0.0,
                usage_amount=0.0,
                usage_unit="hours",
                source=source,
                focus_record=build_focus_record(
                    resolved.service, resource.resource_type, region, resource.sku,
                    0.0, 0.0, resolution.start, resolution.end,
                ),
            )

        estimate = estimate_cost(resource, resolved.service, self.pricing, self._context(resource, region, trace_id))
        cost = estimate.cost_per_month * hours / HOURS_PER_MONTH
        source += (
            f" | Fallback estimate: {estimate.billing_detail} x {hours:.2f} hours / 730 = ${cost:.4f}"
        )
        logger.info(
            "Actual cost %s over %.2fh (%s, %s): $%.4f [trace_id=%s]",
            resource.resource_type,
            hours,
            resolution.source,
            confidence.value,
            cost,
            trace_id,
        )
        return ActualCostResult(
            timestamp=resolution.start,
            cost=cost,
            usage_amount=hours,
            usage_unit="hours",
            source=source,
            focus_record=build_focus_record(
                resolved.service, resource.resource_type, region, resource.sku,
                cost, estimate.unit_price, resolution.start, resolution.end,
            ),
        )

    def get_pricing_spec(self, resource: Optional[ResourceDescriptor], trace_id: str = "") -> PricingSpec:
        """
        Billing metadata for a resource, validated like a projected-cost query.
        """
        trace_id = trace_id or new_trace_id()
        resolved, region = self._validate_resource(resource, ServiceResolver(), trace_id)
        return build_pricing_spec(resource, resolved.service, self.pricing, region)

    def get_recommendations(
        self,
        request: Optional[RecommendationsRequest],
        trace_id: str = "",
    ) -> RecommendationsResult:
        trace_id = trace_id or new_trace_id()
        return self.recommendation_generator.generate(request, trace_id=trace_id)

    def supports(self, resource: Optional[ResourceDescriptor], trace_id: str = "") -> SupportsResult:
        """
        Whether this instance can price a resource.

        Unlike the cost queries, an unsupported provider, region or type is
        reported in the result rather than raised.
        """
        if resource is None:
            raise InvalidResourceError("resource descriptor is required", trace_id=trace_id or new_trace_id())

        if resource.provider.strip().lower() != "aws":
            return SupportsResult(False, f"provider {resource.provider!r} not supported")

        service = ServiceResolver().service(resource.resource_type)
        region = resource.region.strip()
        if not region and service in GLOBAL_SERVICES:
            region = self.settings.region
        if region != self.settings.region:
            return SupportsResult(
                False, f"region {region!r} not served by this instance ({self.settings.region})"
            )
        if service == ServiceType.UNKNOWN:
            return SupportsResult(False, f"resource type {resource.resource_type!r} not supported")

        metrics: Tuple[str, ...] = ()
        if self.carbon_estimator is not None and service in CARBON_SERVICES:
            metrics = (CARBON_METRIC,)
        return SupportsResult(True, "", metrics)


_cost_engine: Optional[CostEngine] = None


def get_cost_engine() -> CostEngine:
    """
    Get the global cost engine, loading pricing data on first use.

    Returns:
        CostEngine for the configured region
    """
    global _cost_engine
    if _cost_engine is None:
        from costengine.core.config import config
        from costengine.pricing.embedded_pricing import create_embedded_pricing_client

        settings = config.engine_settings()
        pricing = create_embedded_pricing_client(settings.region, config.PRICING_DATA_PATH or None)
        _cost_engine = CostEngine(pricing, settings)
    return _cost_engine
