"""
Helpers for keeping log lines small and free of secrets.
"""
from typing import Dict, Mapping, Optional

MAX_LOGGED_TAGS = 5
_SECRET_MARKERS = ("secret", "password", "token", "credential", "apikey", "api_key")


def sanitize_tags(tags: Optional[Mapping[str, str]], limit: int = MAX_LOGGED_TAGS) -> Dict[str, str]:
    """
    Copy at most `limit` tags, dropping keys that look like secrets.

    Keys are taken in sorted order so the same input always logs the same way.
    """
    if not tags:
        return {}
    sanitized: Dict[str, str] = {}
    for key in sorted(tags):
        lowered = key.lower()
        if any(marker in lowered for marker in _SECRET_MARKERS):
            continue
        sanitized[key] = tags[key]
        if len(sanitized) >= limit:
            break
    return sanitized
