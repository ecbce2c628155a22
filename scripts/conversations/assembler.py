"""
Lead Conversation Hub — Conversation Assembler
================================================

Turns the raw ``get_all_threads`` payload into recency-sorted Conversations.

Each raw item is either ``{"thread": {...}, "messages": [...]}`` or a bare
thread record (messages then read from the same object). Items that are not
objects, or whose thread payload is not an object, are dropped with a
warning; one bad record never aborts the batch.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

from models.conversation_models import Conversation, Message, RawConversationItem
from scripts.conversations.message_processor import process_message
from scripts.conversations.thread_processor import process_thread, resolve_conversation_id
from scripts.lib.errors import SchemaValidationError
from scripts.lib.logger import setup_logger
from scripts.lib.timestamps import parse_timestamp

logger = setup_logger(__name__)


def assemble_conversation(
    item: RawConversationItem,
    log: Optional[logging.Logger] = None,
) -> Conversation:
    """
    Assemble one Conversation from a raw item.

    Raises:
        SchemaValidationError: the item or its thread payload is not an object.
    """
    log = log or logger
    if not isinstance(item, Mapping):
        raise SchemaValidationError("Invalid thread item", field="item", value=item)

    raw_thread = item.get("thread") or item
    if not isinstance(raw_thread, Mapping):
        raise SchemaValidationError("Invalid thread data", field="thread", value=raw_thread)

    raw_messages = item.get("messages") or []
    if not isinstance(raw_messages, list):
        log.warning("Ignoring non-list messages payload (%s)", type(raw_messages).__name__)
        raw_messages = []

    conversation_id = resolve_conversation_id(raw_thread, raw_messages)

    messages: List[Message] = []
    for index, raw_message in enumerate(raw_messages):
        try:
            messages.append(process_message(raw_message, conversation_id, log=log))
        except SchemaValidationError as e:
            log.warning(
                "Dropping message %d of conversation %r: %s", index, conversation_id, e,
            )

    thread = process_thread(raw_thread, messages, conversation_id=conversation_id, log=log)
    return Conversation(thread=thread, messages=messages)


def sort_by_last_message(
    conversations: Iterable[Conversation],
    log: Optional[logging.Logger] = None,
) -> List[Conversation]:
    """Most recent conversation first."""
    log = log or logger
    return sorted(
        conversations,
        key=lambda c: parse_timestamp(c.thread.last_message_at, log=log),
        reverse=True,
    )


def assemble_conversations(
    raw_items: Any,
    log: Optional[logging.Logger] = None,
) -> List[Conversation]:
    """
    Process a raw threads response into a structured Conversation list.

    Args:
        raw_items: List of raw conversation items from the backend.
        log: Logger for dropped-record warnings (default: module logger).

    Returns:
        Conversations sorted by ``thread.last_message_at``, newest first.
    """
    log = log or logger
    if not isinstance(raw_items, list):
        log.warning(
            "assemble_conversations received non-list data (%s)", type(raw_items).__name__,
        )
        return []

    conversations: List[Conversation] = []
    for index, item in enumerate(raw_items):
        try:
            conversations.append(assemble_conversation(item, log=log))
        except SchemaValidationError as e:
            log.warning("Skipping item %d: %s", index, e)

    dropped = len(raw_items) - len(conversations)
    log.debug("Assembled %d conversations (%d dropped)", len(conversations), dropped)
    return sort_by_last_message(conversations, log=log)


def find_conversation(
    conversations: Iterable[Conversation],
    conversation_id: str,
) -> Optional[Conversation]:
    """Look up a conversation by its thread id."""
    if not conversation_id:
        return None
    for conversation in conversations:
        if conversation.thread.conversation_id == conversation_id:
            return conversation
    return None
