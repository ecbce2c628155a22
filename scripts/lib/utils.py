"""
Utility functions for Lead Conversation Hub.
Ordered field-alias resolution, safe coercion and zero-safe maths.

Usage:
    from scripts.lib.utils import resolve_field, MESSAGE_FIELD_ALIASES

    sender = resolve_field(raw_message, MESSAGE_FIELD_ALIASES["sender"], "")

Backend records name the same logical field several ways (``sender`` vs
``sender_email`` vs ``from``). Each logical field gets one ordered alias tuple
below; the first alias holding a usable value wins.
"""
import math
from collections.abc import Mapping
from typing import Any, Dict, Optional, Tuple

from scripts.lib.errors import SchemaValidationError

# ---------------------------------------------------------------------------
# Alias tables (priority order, first match wins)
# ---------------------------------------------------------------------------
MESSAGE_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "response_id"),
    "sender": ("sender", "sender_email", "from"),
    "recipient": ("recipient", "receiver", "to", "receiver_email"),
    "sender_name": ("sender_name", "from_name"),
    "body": ("body", "content"),
    "subject": ("subject",),
    "timestamp": ("timestamp",),
    "type": ("type",),
    "associated_account": ("associated_account", "sender"),
    "in_reply_to": ("in_reply_to",),
}

THREAD_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "conversation_id": ("conversation_id", "id"),
    "associated_account": ("associated_account",),
    "created_at": ("createdAt", "created_at"),
    "updated_at": ("updatedAt", "updated_at"),
    "last_message_at": ("lastMessageAt", "last_updated"),
    "lead_name": ("lead_name", "source_name", "name", "client_name", "sender_name"),
    "client_email": ("client_email", "source", "email", "sender_email", "lead_email"),
    "phone": ("phone", "phone_number", "contact_phone"),
    "location": ("location", "address", "city", "area"),
    "source_name": ("source_name", "source", "channel"),
    "ai_summary": ("ai_summary", "summary"),
    "budget_range": ("budget_range", "budget"),
    "timeline": ("timeline", "timeframe"),
    "preferred_property_types": ("preferred_property_types", "property_types"),
    "priority": ("priority",),
    "subject": ("subject",),
}

THREAD_FLAG_FIELDS: Tuple[str, ...] = (
    "lcp_enabled",
    "flag",
    "flag_for_review",
    "flag_review_override",
    "spam",
    "busy",
    "read",
    "completed",
)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def resolve_field(record: Mapping, aliases: Tuple[str, ...], default: Any = None) -> Any:
    """
    Return the first non-blank value found under any of ``aliases``.

    Args:
        record: Raw mapping to read from.
        aliases: Keys to try, highest priority first.
        default: Value returned when every alias is missing or blank.
    """
    for key in aliases:
        value = record.get(key)
        if not _is_blank(value):
            return value
    return default


def resolve_text(record: Mapping, aliases: Tuple[str, ...], default: str = "") -> str:
    """Like resolve_field, but always hands back a string."""
    value = resolve_field(record, aliases)
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def strict_flag(value: Any) -> bool:
    """Only the boolean ``True`` counts as set; ``"true"`` and ``1`` do not."""
    return value is True


def require_mapping(value: Any, field: str) -> Mapping:
    """Narrow a loosely-typed payload to a mapping or raise SchemaValidationError."""
    if not isinstance(value, Mapping):
        raise SchemaValidationError(
            f"Expected an object for '{field}', got {type(value).__name__}",
            field=field, value=value,
        )
    return value


def safe_float(val: Any) -> Optional[float]:
    """Convert a value to a finite float, returning None on failure."""
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, str):
        val = val.strip()
        if not val:
            return None
    try:
        result = float(val)
    except (ValueError, TypeError):
        return None
    if not math.isfinite(result):
        return None
    return result


def safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Zero-safe division."""
    if denominator == 0:
        return default
    return numerator / denominator


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves upward (2.5 -> 3), unlike the banker's rounding of round()."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def percent(part: float, whole: float) -> int:
    """Whole-number percentage of ``part`` in ``whole``; 0 when ``whole`` is 0."""
    return int(round_half_up(safe_div(part, whole) * 100))
