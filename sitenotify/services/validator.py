"""Content validator - gates notification content before display and navigation.

All functions here are pure and never raise. Anything they cannot positively
accept is rejected.
"""
import json
import logging
import re
from typing import Any, Dict, Mapping

logger = logging.getLogger(__name__)

DANGEROUS_PATTERNS = (
    re.compile(r"<\s*/?\s*script", re.IGNORECASE),
    re.compile(r"\bjavascript\s*:", re.IGNORECASE),
    re.compile(r"\bvbscript\s*:", re.IGNORECASE),
    re.compile(r"\bdata\s*:(?:\s*[a-z]+/[a-z0-9.+-]+|\S*[,;])", re.IGNORECASE),
    re.compile(r"\bfile\s*:\s*/", re.IGNORECASE),
    re.compile(r"\bon[a-z]+\s*=", re.IGNORECASE),
)

DANGEROUS_SCHEME = re.compile(r"(?:javascript|vbscript|data|file)\s*:", re.IGNORECASE)

# Removal patterns, applied in order
SCRIPT_BLOCK = re.compile(r"<\s*script\b.*?>.*?<\s*/\s*script\s*>", re.IGNORECASE | re.DOTALL)
SCRIPT_TAG = re.compile(r"<\s*/?\s*script\b[^>]*>?", re.IGNORECASE)
SCHEME_PREFIX = re.compile(
    r"\b(?:javascript|vbscript)\s*:"
    r"|\bdata\s*:(?:\s*[a-z]+/[a-z0-9.+-]+[;,]?|\S*[,;])"
    r"|\bfile\s*:\s*/+",
    re.IGNORECASE,
)
EVENT_HANDLER_ATTR = re.compile(
    r"\bon[a-z]+\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s>]*)",
    re.IGNORECASE,
)

RELATIVE_PATH = re.compile(r"^/(?!/)[^\s\\]*$")
ROUTE_NAME = re.compile(r"^[A-Za-z0-9-]+$")
CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
MAX_URL_LENGTH = 2048
MAX_STRIP_PASSES = 10

ALLOWED_DATA_FIELDS = ("type", "id", "url", "title", "message")


def _contains_dangerous(text: str) -> bool:
    return any(pattern.search(text) for pattern in DANGEROUS_PATTERNS)


def _field(notification: Any, name: str) -> Any:
    if isinstance(notification, Mapping):
        return notification.get(name)
    return getattr(notification, name, None)


def validate_for_display(notification: Any) -> bool:
    """Return True if the notification may be shown.

    Accepts a mapping or any object with ``title``, ``body`` and ``data``
    attributes.
    """
    try:
        title = _field(notification, "title")
        body = _field(notification, "body")
        data = _field(notification, "data")

        if not title and not body:
            logger.warning("Blocked notification without title or body")
            return False

        for value in (title, body):
            if value is None:
                continue
            if not isinstance(value, str):
                logger.warning("Blocked notification with non-text title or body")
                return False
            if _contains_dangerous(value):
                logger.warning("Blocked notification with suspicious title or body")
                return False

        if data:
            serialized = json.dumps(data, default=str)
            if _contains_dangerous(serialized):
                logger.warning("Blocked notification with suspicious data payload")
                return False

        return True
    except Exception as e:
        logger.error(f"Notification validation failed, blocking display: {e}")
        return False


def sanitize_for_navigation(url: Any) -> bool:
    """Return True if ``url`` is a safe in-app navigation target.

    Only app-relative paths (``/projects/42``) and bare route names
    (``notifications``) are accepted.
    """
    try:
        if not isinstance(url, str) or not url:
            return False
        if len(url) > MAX_URL_LENGTH:
            return False
        if CONTROL_CHARS.search(url):
            return False
        if DANGEROUS_SCHEME.search(url) or _contains_dangerous(url):
            logger.warning("Blocked unsafe navigation target")
            return False
        return bool(RELATIVE_PATH.match(url) or ROUTE_NAME.match(url))
    except Exception as e:
        logger.error(f"Navigation target validation failed, blocking: {e}")
        return False


def strip_dangerous(text: str) -> str:
    """Remove script tags, dangerous URI schemes and inline event handlers.

    Removal repeats until nothing changes, since taking out one pattern can
    join its neighbours into another. Text that still looks dangerous after
    that is dropped entirely.
    """
    cleaned = text
    for _ in range(MAX_STRIP_PASSES):
        previous = cleaned
        cleaned = SCRIPT_BLOCK.sub("", cleaned)
        cleaned = SCRIPT_TAG.sub("", cleaned)
        cleaned = SCHEME_PREFIX.sub("", cleaned)
        cleaned = EVENT_HANDLER_ATTR.sub("", cleaned)
        if cleaned == previous:
            break
    if _contains_dangerous(cleaned):
        return ""
    return cleaned.strip()


def sanitize_data(data: Any) -> Dict[str, str]:
    """Reduce an inbound data payload to the whitelisted string fields."""
    if not isinstance(data, Mapping):
        return {}

    sanitized: Dict[str, str] = {}
    for name in ALLOWED_DATA_FIELDS:
        value = data.get(name)
        if isinstance(value, str) and value:
            try:
                cleaned = strip_dangerous(value)
            except Exception as e:
                logger.error(f"Failed to sanitize field {name}, dropping it: {e}")
                continue
            if cleaned:
                sanitized[name] = cleaned
    return sanitized


def scrub_outbound_data(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Strip dangerous patterns from every string value, keeping all keys.

    Used for payloads this device sends, where routing keys such as
    ``clientId`` must survive.
    """
    scrubbed: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            scrubbed[key] = strip_dangerous(value)
        elif isinstance(value, Mapping):
            scrubbed[key] = scrub_outbound_data(value)
        else:
            scrubbed[key] = value
    return scrubbed
