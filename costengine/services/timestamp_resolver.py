"""
Actual-cost window resolution.

Decides which [start, end] window an actual-cost query covers and how much
to trust it. Explicit timestamps always win; otherwise the Pulumi creation
tag supplies the start.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Mapping, Optional

from costengine.domain.errors import InvalidResourceError, TimestampResolutionError


logger = logging.getLogger(__name__)


TAG_PULUMI_CREATED = "pulumi:created"
TAG_PULUMI_EXTERNAL = "pulumi:external"
# pulumi:modified is never consulted for the window

SOURCE_EXPLICIT = "explicit"
SOURCE_PULUMI_CREATED = "pulumi:created"
SOURCE_MIXED = "mixed"


class ConfidenceLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class TimestampResolution:
    """A resolved actual-cost window and where its bounds came from."""
    start: datetime
    end: datetime
    source: str
    is_imported: bool = False

    @property
    def runtime_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600.0


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_rfc3339(value: str) -> Optional[datetime]:
    """
    Parse an RFC 3339 timestamp; None if malformed or lacking an offset.
    """
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed


def merge_tags(resource_id: str, request_tags: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """
    Merge tags embedded in a JSON resource_id with the request's own tags.

    Request tags win on conflict. A resource_id that is not a JSON object is
    treated as carrying no tags.
    """
    merged: Dict[str, str] = {}
    if resource_id and resource_id.lstrip().startswith("{"):
        try:
            payload = json.loads(resource_id)
        except json.JSONDecodeError:
            logger.debug("resource_id is not valid JSON; ignoring embedded tags")
            payload = {}
        embedded = payload.get("tags") if isinstance(payload, dict) else None
        if isinstance(embedded, dict):
            merged.update({str(k): str(v) for k, v in embedded.items()})
    if request_tags:
        merged.update(request_tags)
    return merged


def is_imported(tags: Mapping[str, str]) -> bool:
    """Exact, case-sensitive match on "true"."""
    return tags.get(TAG_PULUMI_EXTERNAL) == "true"


def resolve_timestamps(
    start: Optional[datetime],
    end: Optional[datetime],
    tags: Mapping[str, str],
    now: Optional[datetime] = None,
) -> TimestampResolution:
    """
    Resolve the actual-cost window.

    Priority:
        1. explicit start and end -> "explicit"
        2. explicit start only -> end = now, "mixed"
        3. creation tag start -> end explicit ("mixed") or now ("pulumi:created")

    Args:
        start: Explicit start, if supplied
        end: Explicit end, if supplied
        tags: Merged resource tags
        now: Current time (defaults to datetime.now(timezone.utc))

    Returns:
        TimestampResolution

    Raises:
        TimestampResolutionError: If no start can be determined
    """
    imported = is_imported(tags)
    current = ensure_utc(now) or datetime.now(timezone.utc)
    start = ensure_utc(start)
    end = ensure_utc(end)

    if start is not None:
        if end is not None:
            return TimestampResolution(start, end, SOURCE_EXPLICIT, imported)
        return TimestampResolution(start, current, SOURCE_MIXED, imported)

    created_raw = tags.get(TAG_PULUMI_CREATED, "")
    created = parse_rfc3339(created_raw) if created_raw else None
    if created_raw and created is None:
        logger.warning("Ignoring malformed %s tag %r", TAG_PULUMI_CREATED, created_raw)

    if created is not None:
        if end is not None:
            return TimestampResolution(created, end, SOURCE_MIXED, imported)
        return TimestampResolution(created, current, SOURCE_PULUMI_CREATED, imported)

    raise TimestampResolutionError(
        f"start time required: provide explicit Start or {TAG_PULUMI_CREATED} tag"
    )


def determine_confidence(resolution: Optional[TimestampResolution]) -> ConfidenceLevel:
    """
    Confidence in a resolved window.

    Explicit windows are HIGH. Derived windows are HIGH for natively
    created resources and MEDIUM for imported ones, whose creation tag
    records the import rather than the real creation. No window is LOW.
    """
    if resolution is None:
        return ConfidenceLevel.LOW
    if resolution.source == SOURCE_EXPLICIT:
        return ConfidenceLevel.HIGH
    if resolution.is_imported:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.HIGH


def validate_window(resolution: TimestampResolution, trace_id: str = "") -> None:
    """
    Reject windows that end before they start.

    Zero-length windows are valid and are priced at $0 by the caller.

    Raises:
        InvalidResourceError: If end precedes start
    """
    if resolution.end < resolution.start:
        raise InvalidResourceError(
            f"invalid time range: end {resolution.end.isoformat()} is before start {resolution.start.isoformat()}",
            trace_id=trace_id,
        )
