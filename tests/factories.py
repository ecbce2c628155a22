"""Factories for canonical conversation objects used across the tests."""

from datetime import datetime, timedelta, timezone
from itertools import count

from models.conversation_models import (
    INBOUND_EMAIL,
    OUTBOUND_EMAIL,
    Conversation,
    Message,
    Thread,
)

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

_ids = count(1)


def make_message(when: datetime, type: str = INBOUND_EMAIL, ev_score=None,
                 conversation_id: str = "conv-1", body: str = "", **kwargs) -> Message:
    return Message(
        id=kwargs.pop("id", f"m-{next(_ids)}"),
        conversation_id=conversation_id,
        timestamp=kwargs.pop("timestamp", when.isoformat()),
        local_date=when,
        type=type,
        ev_score=ev_score,
        body=body,
        **kwargs,
    )


def make_thread(conversation_id: str = "conv-1", created_at: datetime = FIXED_NOW,
                last_message_at=None, **kwargs) -> Thread:
    created = created_at.isoformat() if isinstance(created_at, datetime) else created_at
    if last_message_at is None:
        last_message_at = created
    elif isinstance(last_message_at, datetime):
        last_message_at = last_message_at.isoformat()
    return Thread(
        conversation_id=conversation_id,
        created_at=created,
        updated_at=created,
        last_message_at=last_message_at,
        **kwargs,
    )


def make_conversation(messages=None, conversation_id: str = "conv-1", **thread_kwargs) -> Conversation:
    return Conversation(
        thread=make_thread(conversation_id=conversation_id, **thread_kwargs),
        messages=messages or [],
    )


def exchange(start: datetime, *steps) -> list:
    """Build messages from (minutes_after_start, type) pairs."""
    return [make_message(start + timedelta(minutes=m), type=t) for m, t in steps]
