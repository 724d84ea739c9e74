"""
Exceptions raised by the cost engine.
The API layer maps these onto HTTP status codes.
"""
from typing import Any, Dict, Optional


class CostEngineError(Exception):
    """Base class for errors surfaced to callers of the cost engine."""

    code = "INTERNAL"

    def __init__(self, message: str, trace_id: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.trace_id = trace_id
        self.details: Dict[str, Any] = dict(details or {})
        if trace_id:
            self.details.setdefault("trace_id", trace_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "trace_id": self.trace_id,
            "details": self.details,
        }


class InvalidResourceError(CostEngineError):
    """Raised when a request or resource descriptor is malformed."""

    code = "INVALID_RESOURCE"


class TimestampResolutionError(InvalidResourceError):
    """Raised when an actual-cost window cannot be established."""
    pass


class RegionMismatchError(CostEngineError):
    """Raised when a resource belongs to a region this instance does not serve."""

    code = "UNSUPPORTED_REGION"

    def __init__(self, plugin_region: str, resource_region: str, trace_id: str = ""):
        super().__init__(
            f"resource region {resource_region!r} does not match plugin region {plugin_region!r}",
            trace_id=trace_id,
            details={"plugin_region": plugin_region, "resource_region": resource_region},
        )
        self.plugin_region = plugin_region
        self.resource_region = resource_region
