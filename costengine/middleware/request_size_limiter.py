"""
Request size limiting middleware for FastAPI.
Protects cost endpoints from oversized payloads.
"""
from typing import Any, Dict, Optional, Set
import json
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from costengine.core.config import MAX_MAX_BATCH_SIZE

logger = logging.getLogger(__name__)


# Size limit constants
MAX_REQUEST_BODY_SIZE = 1_048_576  # 1 MB in bytes
MAX_TARGET_RESOURCES = MAX_MAX_BATCH_SIZE
MAX_TAGS_PER_RESOURCE = 200

RECOMMENDATIONS_ENDPOINT = "/api/costs/recommendations"

# Endpoints that require size limiting
PROTECTED_ENDPOINTS: Set[str] = {
    "/api/costs/projected",
    "/api/costs/actual",
    "/api/costs/pricing-spec",
    "/api/costs/supports",
    RECOMMENDATIONS_ENDPOINT,
}


def _too_large(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content={
            "status": "error",
            "error": "request_too_large",
            "message": message,
        }
    )


class RequestSizeLimiterMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for request size limiting.

    Applies size limits only to the cost endpoints.
    Other routes pass through untouched.
    """

    async def dispatch(self, request: Request, call_next: ASGIApp):
        """
        Process request and apply size limits if applicable.

        Args:
            request: FastAPI request object
            call_next: Next middleware or route handler

        Returns:
            Response object
        """
        path = request.url.path

        if path not in PROTECTED_ENDPOINTS:
            return await call_next(request)

        try:
            content_length = request.headers.get("Content-Length")
            if content_length:
                try:
                    if int(content_length) > MAX_REQUEST_BODY_SIZE:
                        logger.info(
                            "Request body size exceeded for %s: %s bytes (limit: %d)",
                            path, content_length, MAX_REQUEST_BODY_SIZE,
                        )
                        return _too_large("Request body size exceeds allowed limit of 1 MB.")
                except ValueError:
                    # Invalid Content-Length header, continue to body reading
                    pass

            body_bytes = await request.body()
            if len(body_bytes) > MAX_REQUEST_BODY_SIZE:
                logger.info(
                    "Request body size exceeded for %s: %d bytes (limit: %d)",
                    path, len(body_bytes), MAX_REQUEST_BODY_SIZE,
                )
                return _too_large("Request body size exceeds allowed limit of 1 MB.")

            if body_bytes:
                try:
                    body_json = json.loads(body_bytes.decode("utf-8"))
                    validation_error = self._validate_payload(path, body_json)
                    if validation_error:
                        logger.info("Payload validation failed for %s: %s", path, validation_error)
                        return _too_large(validation_error)
                except (json.JSONDecodeError, UnicodeDecodeError):
                    # Let FastAPI report malformed bodies
                    pass

            # Starlette requires the body to be restored for downstream reads
            async def receive():
                return {"type": "http.request", "body": body_bytes}

            request._receive = receive

        except Exception as error:
            # Fail closed
            logger.error("Error during size limiting for %s: %s", path, error, exc_info=True)
            return _too_large("Request validation failed.")

        return await call_next(request)

    def _validate_payload(self, path: str, body_json: Any) -> Optional[str]:
        """
        Validate payload-specific constraints based on endpoint.

        Args:
            path: Request path
            body_json: Parsed JSON body

        Returns:
            Error message if validation fails, None if valid
        """
        if not isinstance(body_json, dict):
            return None

        if path == RECOMMENDATIONS_ENDPOINT:
            resources = body_json.get("target_resources") or []
            if isinstance(resources, list):
                if len(resources) > MAX_TARGET_RESOURCES:
                    return (
                        f"Too many target resources: {len(resources)} "
                        f"(limit: {MAX_TARGET_RESOURCES})"
                    )
                for resource in resources:
                    error = self._validate_tags(resource)
                    if error:
                        return error
            return None

        error = self._validate_tags(body_json)
        if error:
            return error
        resource = body_json.get("resource")
        return self._validate_tags(resource)

    def _validate_tags(self, resource: Any) -> Optional[str]:
        if not isinstance(resource, dict):
            return None
        tags: Dict[str, Any] = resource.get("tags") or {}
        if isinstance(tags, dict) and len(tags) > MAX_TAGS_PER_RESOURCE:
            return f"Too many tags: {len(tags)} (limit: {MAX_TAGS_PER_RESOURCE})"
        return None
