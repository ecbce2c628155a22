"""
Lead Conversation Hub — Message Processor
===========================================

Maps one loosely-typed backend message record onto the canonical Message.

Field resolution (first non-blank wins):
  sender       sender → sender_email → from → ""
  recipient    recipient → receiver → to → receiver_email → ""
  sender_name  sender_name → from_name → local part of sender → "Unknown"
  id           id → response_id → msg-<epoch ms>-<random>

The message always belongs to the conversation it is processed for; a
conversation_id carried on the raw record is ignored.
"""
from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional

from models.conversation_models import INBOUND_EMAIL, Message, RawMessage
from scripts.lib.logger import setup_logger
from scripts.lib.timestamps import now_utc, parse_timestamp
from scripts.lib.utils import (
    MESSAGE_FIELD_ALIASES as ALIASES,
    require_mapping,
    resolve_field,
    resolve_text,
    safe_float,
    strict_flag,
)

logger = setup_logger(__name__)


def generate_message_id() -> str:
    """Synthetic id for records that carry neither id nor response_id."""
    return f"msg-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def derive_sender_name(raw: Mapping, sender: str) -> str:
    """Explicit name field, else the sender address' local part, else 'Unknown'."""
    name = resolve_text(raw, ALIASES["sender_name"])
    if name:
        return name
    local_part = sender.split("@")[0].strip()
    return local_part or "Unknown"


def coerce_ev_score(value: Any) -> Optional[float]:
    """Numbers and numeric strings become floats; anything else (or NaN/inf) is None."""
    return safe_float(value)


def _timestamp_text(raw_timestamp: Any, local_date: datetime) -> str:
    if isinstance(raw_timestamp, str) and raw_timestamp.strip():
        return raw_timestamp
    return local_date.isoformat()


def process_message(
    raw: RawMessage,
    conversation_id: str,
    log: Optional[logging.Logger] = None,
) -> Message:
    """
    Build a canonical Message from a raw backend record.

    Args:
        raw: Raw message mapping (any subset of the RawMessage keys).
        conversation_id: Id of the owning conversation.
        log: Logger for timestamp repair warnings (default: module logger).

    Returns:
        Message with a guaranteed-valid ``local_date``.

    Raises:
        SchemaValidationError: ``raw`` is not a mapping.
    """
    raw = require_mapping(raw, "message")

    raw_timestamp = resolve_field(raw, ALIASES["timestamp"])
    if raw_timestamp is None:
        local_date = now_utc()
    else:
        local_date = parse_timestamp(raw_timestamp, log=log or logger)

    sender = resolve_text(raw, ALIASES["sender"])
    recipient = resolve_text(raw, ALIASES["recipient"])
    response_id = resolve_field(raw, ("response_id",))
    metadata = raw.get("metadata")

    return Message(
        id=resolve_text(raw, ALIASES["id"]) or generate_message_id(),
        conversation_id=conversation_id,
        response_id=str(response_id) if response_id is not None else None,
        sender_name=derive_sender_name(raw, sender),
        sender_email=sender,
        recipient_email=recipient,
        body=resolve_text(raw, ALIASES["body"]),
        subject=resolve_text(raw, ALIASES["subject"]),
        timestamp=_timestamp_text(raw_timestamp, local_date),
        local_date=local_date,
        type=resolve_text(raw, ALIASES["type"]) or INBOUND_EMAIL,
        read=strict_flag(raw.get("read")),
        ev_score=coerce_ev_score(raw.get("ev_score")),
        associated_account=resolve_text(raw, ALIASES["associated_account"]),
        in_reply_to=resolve_text(raw, ALIASES["in_reply_to"]) or None,
        is_first_email=strict_flag(raw.get("is_first_email")),
        metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
    )
