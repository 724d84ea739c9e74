"""
Trace id middleware.
Every request gets a trace id, taken from the caller or generated.
"""
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


TRACE_ID_HEADER = "X-Trace-Id"
MAX_TRACE_ID_LENGTH = 128


class TraceIdMiddleware(BaseHTTPMiddleware):
    """
    Stores the trace id on request.state.trace_id and echoes it back.

    Caller-supplied ids longer than MAX_TRACE_ID_LENGTH are replaced.
    """

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get(TRACE_ID_HEADER, "").strip()
        if not trace_id or len(trace_id) > MAX_TRACE_ID_LENGTH:
            trace_id = uuid.uuid4().hex
        request.state.trace_id = trace_id

        response: Response = await call_next(request)
        response.headers[TRACE_ID_HEADER] = trace_id
        return response
