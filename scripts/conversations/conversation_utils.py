"""
Lead Conversation Hub — Conversation Utilities
================================================

Per-conversation helpers over the canonical model. All ordering uses
``Message.local_date``, which the processors guarantee is valid.

Functions:
  sort_messages_by_date()        - Messages newest-first (or oldest-first)
  get_conversation_duration()    - Last minus first message time
  get_average_response_time()    - Mean gap across ALL adjacent message pairs
  get_conversation_stats()       - Totals, direction split, timings
  group_messages_by_date()       - Chronological buckets keyed "June 18, 2025"
"""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from models.conversation_models import Conversation, ConversationStats, Message
from scripts.lib.timestamps import parse_timestamp


def sort_messages_by_date(messages: List[Message], ascending: bool = False) -> List[Message]:
    """Return a new list sorted by local_date (newest first unless ``ascending``)."""
    return sorted(messages, key=lambda m: m.local_date, reverse=not ascending)


def get_most_recent_message(conversation: Conversation) -> Optional[Message]:
    if not conversation.messages:
        return None
    return sort_messages_by_date(conversation.messages)[0]


def get_first_message(conversation: Conversation) -> Optional[Message]:
    if not conversation.messages:
        return None
    return sort_messages_by_date(conversation.messages, ascending=True)[0]


def get_conversation_duration(conversation: Conversation) -> timedelta:
    """Time between the first and last message; zero with fewer than two."""
    if len(conversation.messages) < 2:
        return timedelta(0)
    ordered = sort_messages_by_date(conversation.messages, ascending=True)
    return ordered[-1].local_date - ordered[0].local_date


def get_messages_in_time_range(
    conversation: Conversation,
    start: datetime,
    end: datetime,
) -> List[Message]:
    """Messages whose local_date lies within [start, end]."""
    start = parse_timestamp(start)
    end = parse_timestamp(end)
    return [m for m in conversation.messages if start <= m.local_date <= end]


def group_messages_by_date(messages: List[Message]) -> Dict[str, List[Message]]:
    """Bucket messages per calendar day, oldest first inside each bucket."""
    groups: Dict[str, List[Message]] = defaultdict(list)
    for msg in sort_messages_by_date(messages, ascending=True):
        day = msg.local_date
        groups[f"{day:%B} {day.day}, {day.year}"].append(msg)
    return dict(groups)


def get_latest_evaluable_message(conversation: Conversation) -> Optional[Message]:
    """Most recent message that carries an EV score."""
    scored = [m for m in conversation.messages if m.ev_score is not None]
    if not scored:
        return None
    return sort_messages_by_date(scored)[0]


def get_average_response_time(conversation: Conversation) -> timedelta:
    """
    Mean gap between consecutive messages, whoever sent them.

    This is a pacing measure for a single thread. For "how fast do we answer
    leads" use dashboard_metrics.calculate_average_response_latency, which
    only counts inbound messages answered by an outbound one.
    """
    ordered = sort_messages_by_date(conversation.messages, ascending=True)
    if len(ordered) < 2:
        return timedelta(0)

    total = timedelta(0)
    for previous, current in zip(ordered, ordered[1:]):
        total += current.local_date - previous.local_date
    return total / (len(ordered) - 1)


def get_conversation_stats(conversation: Conversation) -> ConversationStats:
    messages = conversation.messages
    first = get_first_message(conversation)
    last = get_most_recent_message(conversation)

    return ConversationStats(
        total_messages=len(messages),
        client_messages=sum(1 for m in messages if m.direction == "inbound"),
        user_messages=sum(1 for m in messages if m.direction == "outbound"),
        duration_seconds=get_conversation_duration(conversation).total_seconds(),
        avg_response_seconds=get_average_response_time(conversation).total_seconds(),
        first_message=first.timestamp if first else None,
        last_message=last.timestamp if last else None,
        first_message_type=first.type if first else None,
        last_message_type=last.type if last else None,
    )


def format_duration(duration: timedelta) -> str:
    """Format as '2d 3h 15m', '3h 15m' or '15m'."""
    total_minutes = max(int(duration.total_seconds() // 60), 0)
    days, remainder = divmod(total_minutes, 60 * 24)
    hours, minutes = divmod(remainder, 60)

    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def get_conversation_title(conversation: Conversation) -> str:
    thread = conversation.thread
    return thread.lead_name or thread.source_name or thread.client_email or "Unknown"


def is_conversation_completed(conversation: Conversation) -> bool:
    return conversation.thread.completed


def is_conversation_flagged_for_review(conversation: Conversation) -> bool:
    return conversation.thread.flag_for_review


def is_conversation_busy(conversation: Conversation) -> bool:
    return conversation.thread.busy
