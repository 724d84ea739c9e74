"""
API routes for cost queries.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from costengine.domain.cost_models import ActualCostRequest, ResourceDescriptor
from costengine.domain.errors import CostEngineError, InvalidResourceError, RegionMismatchError
from costengine.domain.recommendation_models import RecommendationFilter, RecommendationsRequest
from costengine.services.cost_engine import get_cost_engine


logger = logging.getLogger(__name__)
router = APIRouter()

HTTP_MISDIRECTED_REQUEST = 421


class ResourceModel(BaseModel):
    """A resource to be priced."""
    provider: str = Field(default="", description="Cloud provider (must be 'aws')")
    resource_type: str = Field(default="", description="Canonical ('ec2') or hierarchical ('aws:ec2/instance:Instance') type")
    sku: str = Field(default="", description="Instance type, volume type, storage class, ...")
    region: str = Field(default="", description="AWS region code")
    tags: Dict[str, str] = Field(default_factory=dict, description="Resource tags and usage hints")
    id: str = Field(default="", description="Optional caller-side resource id")
    name: str = Field(default="", description="Optional resource name")
    attributes: Optional[Dict[str, Any]] = Field(None, description="Optional structured attributes")
    utilization_percentage: Optional[float] = Field(None, description="Average utilization, 0-100")


class ActualCostRequestModel(BaseModel):
    """Request model for historical cost."""
    resource: Optional[ResourceModel] = Field(None, description="Explicit resource descriptor")
    resource_id: str = Field(default="", description="Resource id; may be a JSON-encoded descriptor")
    arn: str = Field(default="", description="AWS ARN of the resource")
    start: Optional[datetime] = Field(None, description="Window start (RFC3339)")
    end: Optional[datetime] = Field(None, description="Window end (RFC3339); defaults to now")
    tags: Dict[str, str] = Field(default_factory=dict, description="Request tags, override resource tags")


class RecommendationFilterModel(BaseModel):
    """AND-combined filter over target resources; empty fields match anything."""
    region: str = Field(default="", description="Only resources in this region")
    resource_type: str = Field(default="", description="Only resources of this type (canonical or hierarchical)")
    sku: str = Field(default="", description="Only resources with this SKU")
    tags: Dict[str, str] = Field(default_factory=dict, description="Only resources carrying all of these tags")


class RecommendationsRequestModel(BaseModel):
    """Request model for cost optimization recommendations."""
    target_resources: List[ResourceModel] = Field(default_factory=list, description="Resources to analyze")
    filter: Optional[RecommendationFilterModel] = Field(None, description="Optional filter over target resources")


def _to_descriptor(model: Optional[ResourceModel]) -> Optional[ResourceDescriptor]:
    if model is None:
        return None
    return ResourceDescriptor(
        provider=model.provider,
        resource_type=model.resource_type,
        sku=model.sku,
        region=model.region,
        tags=dict(model.tags),
        id=model.id,
        name=model.name,
        attributes=model.attributes,
        utilization_percentage=model.utilization_percentage,
    )


def _to_filter(model: Optional[RecommendationFilterModel]) -> Optional[RecommendationFilter]:
    if model is None:
        return None
    return RecommendationFilter(
        region=model.region,
        resource_type=model.resource_type,
        sku=model.sku,
        tags=dict(model.tags),
    )


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


def _raise_for_engine_error(error: CostEngineError) -> None:
    """
    Map an engine error onto an HTTP error.

    Raises:
        HTTPException: 421 for region mismatch, 400 for invalid input
    """
    if isinstance(error, RegionMismatchError):
        raise HTTPException(status_code=HTTP_MISDIRECTED_REQUEST, detail=error.to_dict()) from error
    if isinstance(error, InvalidResourceError):
        raise HTTPException(status_code=400, detail=error.to_dict()) from error
    raise HTTPException(status_code=500, detail=error.to_dict()) from error


@router.post("/api/costs/projected")
async def projected_cost(request: Request, resource: ResourceModel) -> Dict[str, Any]:
    """
    Projected monthly cost of a single resource.

    Args:
        request: FastAPI request object
        resource: Resource descriptor

    Returns:
        JSON response with the cost estimate

    Raises:
        HTTPException: 400 for invalid input, 421 for another region's resource
    """
    trace_id = _trace_id(request)
    try:
        estimate = get_cost_engine().get_projected_cost(_to_descriptor(resource), trace_id=trace_id)
        return {"status": "ok", "trace_id": trace_id, "estimate": estimate.to_dict()}
    except CostEngineError as error:
        _raise_for_engine_error(error)
    except HTTPException:
        raise
    except Exception as error:
        logger.error("Unexpected error in projected cost [trace_id=%s]: %s", trace_id, error, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while estimating cost"
        ) from error


@router.post("/api/costs/actual")
async def actual_cost(request: Request, actual_request: ActualCostRequestModel) -> Dict[str, Any]:
    """
    Cost of a resource over a historical window.

    Args:
        request: FastAPI request object
        actual_request: Resource identification and time window

    Returns:
        JSON response with the actual cost result
    """
    trace_id = _trace_id(request)
    try:
        engine_request = ActualCostRequest(
            resource=_to_descriptor(actual_request.resource),
            resource_id=actual_request.resource_id,
            arn=actual_request.arn,
            start=actual_request.start,
            end=actual_request.end,
            tags=dict(actual_request.tags),
        )
        result = get_cost_engine().get_actual_cost(engine_request, trace_id=trace_id)
        return {"status": "ok", "trace_id": trace_id, "results": [result.to_dict()]}
    except CostEngineError as error:
        _raise_for_engine_error(error)
    except HTTPException:
        raise
    except Exception as error:
        logger.error("Unexpected error in actual cost [trace_id=%s]: %s", trace_id, error, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while computing actual cost"
        ) from error


@router.post("/api/costs/pricing-spec")
async def pricing_spec(request: Request, resource: ResourceModel) -> Dict[str, Any]:
    """Billing metadata for a resource."""
    trace_id = _trace_id(request)
    try:
        spec = get_cost_engine().get_pricing_spec(_to_descriptor(resource), trace_id=trace_id)
        return {"status": "ok", "trace_id": trace_id, "spec": spec.to_dict()}
    except CostEngineError as error:
        _raise_for_engine_error(error)
    except HTTPException:
        raise
    except Exception as error:
        logger.error("Unexpected error in pricing spec [trace_id=%s]: %s", trace_id, error, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while building pricing spec"
        ) from error


@router.post("/api/costs/recommendations")
async def recommendations(
    request: Request,
    recommendations_request: RecommendationsRequestModel
) -> Dict[str, Any]:
    """
    Cost optimization recommendations for a batch of resources.

    Args:
        request: FastAPI request object
        recommendations_request: Target resources and optional filter

    Returns:
        JSON response with recommendations and their summary
    """
    trace_id = _trace_id(request)
    try:
        engine_request = RecommendationsRequest(
            target_resources=tuple(
                _to_descriptor(resource) for resource in recommendations_request.target_resources
            ),
            filter=_to_filter(recommendations_request.filter),
        )
        result = get_cost_engine().get_recommendations(engine_request, trace_id=trace_id)
        return {"status": "ok", "trace_id": trace_id, **result.to_dict()}
    except CostEngineError as error:
        _raise_for_engine_error(error)
    except HTTPException:
        raise
    except Exception as error:
        logger.error("Unexpected error in recommendations [trace_id=%s]: %s", trace_id, error, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while generating recommendations"
        ) from error


@router.post("/api/costs/supports")
async def supports(request: Request, resource: ResourceModel) -> Dict[str, Any]:
    """Whether this instance can price a resource."""
    trace_id = _trace_id(request)
    try:
        result = get_cost_engine().supports(_to_descriptor(resource), trace_id=trace_id)
        return {"status": "ok", "trace_id": trace_id, **result.to_dict()}
    except CostEngineError as error:
        _raise_for_engine_error(error)
    except HTTPException:
        raise
    except Exception as error:
        logger.error("Unexpected error in supports [trace_id=%s]: %s", trace_id, error, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while checking support"
        ) from error


@router.get("/api/plugin/info")
async def plugin_info() -> Dict[str, Any]:
    """Name, version and region of this instance."""
    return get_cost_engine().plugin_info().to_dict()
