"""
Lead Conversation Hub — Thread Processor
==========================================

Maps a raw backend thread record onto the canonical Thread.

The database stores contact details under several names (``source_name`` is
usually the contact name, ``source`` the contact email); the ordered alias
lists live in scripts.lib.utils.THREAD_FIELD_ALIASES.

Derived fields:
  last_message_at  timestamp of the newest processed message, not the raw field
  ai_score         ev_score of the first scored message in array order
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import List, Optional

from models.conversation_models import Message, RawThread, Thread
from scripts.lib.logger import setup_logger
from scripts.lib.timestamps import now_utc
from scripts.lib.utils import (
    THREAD_FIELD_ALIASES as ALIASES,
    THREAD_FLAG_FIELDS,
    require_mapping,
    resolve_text,
    safe_float,
    strict_flag,
)

logger = setup_logger(__name__)


def resolve_conversation_id(raw: Mapping, raw_messages: Optional[list] = None) -> str:
    """Thread id from conversation_id → id, else the first message that names one."""
    conversation_id = resolve_text(raw, ALIASES["conversation_id"])
    if conversation_id:
        return conversation_id
    for msg in raw_messages or []:
        if isinstance(msg, Mapping):
            candidate = resolve_text(msg, ("conversation_id",))
            if candidate:
                return candidate
    return ""


def get_most_recent_message(messages: List[Message]) -> Optional[Message]:
    """Newest message by local_date; the earliest in list order wins a tie."""
    if not messages:
        return None
    # max() keeps the first of equal maxima
    return max(messages, key=lambda m: m.local_date)


def get_ai_score(messages: List[Message]) -> Optional[float]:
    """Score of the first message carrying one, in list order (not by recency)."""
    for msg in messages:
        if msg.ev_score is not None:
            return msg.ev_score
    return None


def derive_last_message_at(raw: Mapping, messages: List[Message]) -> str:
    newest = get_most_recent_message(messages)
    if newest is not None:
        return newest.timestamp
    return resolve_text(raw, ALIASES["last_message_at"]) or now_utc().isoformat()


def process_thread(
    raw: RawThread,
    messages: List[Message],
    conversation_id: Optional[str] = None,
    log: Optional[logging.Logger] = None,
) -> Thread:
    """
    Build a canonical Thread from a raw record and its processed messages.

    Args:
        raw: Raw thread mapping.
        messages: Messages already run through process_message.
        conversation_id: Pre-resolved id; resolved from ``raw`` when omitted.
        log: Logger for diagnostics (default: module logger).

    Raises:
        SchemaValidationError: ``raw`` is not a mapping.
    """
    raw = require_mapping(raw, "thread")
    log = log or logger

    if conversation_id is None:
        conversation_id = resolve_conversation_id(raw)
    if not conversation_id:
        log.debug("Thread has no conversation id; keeping it with an empty id")

    now_iso = now_utc().isoformat()
    flags = {name: strict_flag(raw.get(name)) for name in THREAD_FLAG_FIELDS}

    return Thread(
        conversation_id=conversation_id,
        associated_account=resolve_text(raw, ALIASES["associated_account"]),
        created_at=resolve_text(raw, ALIASES["created_at"]) or now_iso,
        updated_at=resolve_text(raw, ALIASES["updated_at"]) or now_iso,
        last_message_at=derive_last_message_at(raw, messages),
        lead_name=resolve_text(raw, ALIASES["lead_name"], "Unknown Lead"),
        client_email=resolve_text(raw, ALIASES["client_email"]),
        phone=resolve_text(raw, ALIASES["phone"]),
        location=resolve_text(raw, ALIASES["location"]),
        source_name=resolve_text(raw, ALIASES["source_name"]),
        ai_summary=resolve_text(raw, ALIASES["ai_summary"]),
        lcp_flag_threshold=safe_float(raw.get("lcp_flag_threshold")),
        budget_range=resolve_text(raw, ALIASES["budget_range"]),
        timeline=resolve_text(raw, ALIASES["timeline"]),
        preferred_property_types=resolve_text(raw, ALIASES["preferred_property_types"]),
        priority=resolve_text(raw, ALIASES["priority"], "normal"),
        subject=resolve_text(raw, ALIASES["subject"]),
        ai_score=get_ai_score(messages),
        **flags,
    )
