"""
Lead Conversation Hub — Conversation Analytics
================================================

Derived views over assembled conversations: EV aggregation, status
classification, the conversation list's filtering and sorting, and the
analytics-screen summaries.

Functions:
  calculate_ev_score()           - Mean message EV score, 2 decimals
  determine_status()             - spam > flagged > completed > pending > active
  process_conversations_data()   - Conversation -> ProcessedConversation
  filter_conversations()         - AND-combined list filters
  sort_conversations()           - Stable sort by date/name/EV/status
  calculate_conversation_metrics() - Status counts + mean EV
  filter_by_analytics_filters()  - Analytics-screen filters
  calculate_average_ev_by_message() - EV by message position
  calculate_key_metrics()        - Headline numbers for the analytics screen
"""
from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from models.conversation_models import (
    AnalyticsFilters,
    Conversation,
    ConversationFilters,
    ConversationMetrics,
    ConversationStatus,
    EVDataPoint,
    KeyMetrics,
    Message,
    ProcessedConversation,
    SortConfig,
    SortDirection,
    SortField,
    Thread,
)
from scripts.conversations.conversation_utils import sort_messages_by_date
from scripts.conversations.dashboard_metrics import calculate_average_response_latency
from scripts.lib.logger import null_logger, setup_logger
from scripts.lib.timestamps import (
    is_today,
    is_yesterday,
    now_utc,
    parse_timestamp,
    try_parse_timestamp,
)
from scripts.lib.utils import round_half_up, safe_div

logger = setup_logger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _numeric_scores(messages: List[Message]) -> List[float]:
    return [
        m.ev_score for m in messages
        if m.ev_score is not None and math.isfinite(m.ev_score)
    ]


def calculate_ev_score(messages: List[Message]) -> Optional[float]:
    """Average EV score across scored messages, or None when nothing is scored."""
    scores = _numeric_scores(messages)
    if not scores:
        return None
    return round_half_up(sum(scores) / len(scores), 2)


def determine_status(thread: Thread) -> ConversationStatus:
    """Classify a thread; the first matching rule wins."""
    if thread.spam:
        return ConversationStatus.SPAM
    if thread.flag or thread.flag_for_review:
        return ConversationStatus.FLAGGED
    if thread.completed:
        return ConversationStatus.COMPLETED
    if thread.busy:
        return ConversationStatus.PENDING
    return ConversationStatus.ACTIVE


def format_last_activity(
    last_message_at: str,
    now: Optional[datetime] = None,
    log: Optional[logging.Logger] = None,
) -> str:
    """Human label for the last activity: 'Just now', '3h ago', 'Yesterday', '4d ago', 'Jun 18, 2025'."""
    log = log or logger
    now = parse_timestamp(now, log=log) if now else now_utc()
    date = try_parse_timestamp(last_message_at, log=log)
    if date is None:
        return "Unknown"

    elapsed = now - date
    if elapsed.total_seconds() < 0:
        return "Just now"

    if is_today(date, now):
        hours = int(elapsed.total_seconds() // 3600)
        if hours < 1:
            return "Just now"
        return f"{hours}h ago"

    if is_yesterday(date, now):
        return "Yesterday"

    if elapsed.days < 7:
        return f"{elapsed.days}d ago"

    return f"{date:%b} {date.day}, {date.year}"


def process_conversation(
    conversation: Conversation,
    now: Optional[datetime] = None,
    log: Optional[logging.Logger] = None,
) -> ProcessedConversation:
    return ProcessedConversation(
        thread=conversation.thread,
        messages=conversation.messages,
        ev_score=calculate_ev_score(conversation.messages),
        status=determine_status(conversation.thread),
        last_activity=format_last_activity(conversation.thread.last_message_at, now, log),
    )


def process_conversations_data(
    conversations: List[Conversation],
    now: Optional[datetime] = None,
    log: Optional[logging.Logger] = None,
) -> List[ProcessedConversation]:
    """Decorate each conversation with its EV score, status and activity label."""
    log = log or logger
    now = parse_timestamp(now, log=log) if now else now_utc()
    return [process_conversation(c, now, log) for c in conversations]


def _searchable_text(conversation: ProcessedConversation) -> str:
    thread = conversation.thread
    parts = [thread.lead_name, thread.client_email, thread.location, thread.ai_summary]
    parts.extend(m.body for m in conversation.messages)
    return " ".join(p or "" for p in parts).lower()


def _in_date_range(
    conversation: ProcessedConversation,
    start: Optional[datetime],
    end: Optional[datetime],
    log: logging.Logger,
) -> bool:
    last_message = try_parse_timestamp(conversation.thread.last_message_at, log=null_logger())
    if last_message is None:
        log.warning(
            "Excluding conversation %r from date filter: bad last_message_at",
            conversation.thread.conversation_id,
        )
        return False
    if start is not None and last_message < parse_timestamp(start):
        return False
    if end is not None and last_message > parse_timestamp(end):
        return False
    return True


def filter_conversations(
    conversations: List[ProcessedConversation],
    filters: ConversationFilters,
    log: Optional[logging.Logger] = None,
) -> List[ProcessedConversation]:
    """
    Keep the conversations matching every populated filter.

    Unscored conversations are never removed by the EV range; the range
    bounds are inclusive.
    """
    log = log or logger
    min_ev, max_ev = filters.ev_score_range
    start, end = filters.date_range
    query = filters.search_query.strip().lower()

    result = []
    for conversation in conversations:
        if filters.status and conversation.status not in filters.status:
            continue

        if conversation.ev_score is not None:
            if conversation.ev_score < min_ev or conversation.ev_score > max_ev:
                continue

        if (start or end) and not _in_date_range(conversation, start, end, log):
            continue

        if filters.show_pending_only and conversation.status != ConversationStatus.PENDING:
            continue

        if query and query not in _searchable_text(conversation):
            continue

        result.append(conversation)
    return result


def _date_sort_key(conversation: ProcessedConversation, log: logging.Logger) -> datetime:
    parsed = try_parse_timestamp(conversation.thread.last_message_at, log=log)
    return parsed if parsed is not None else _OLDEST


_SORT_KEYS = {
    SortField.DATE: _date_sort_key,
    SortField.LAST_MESSAGE: _date_sort_key,
    SortField.NAME: lambda c, log: (c.thread.lead_name or "").lower(),
    SortField.EV_SCORE: lambda c, log: c.ev_score if c.ev_score is not None else 0.0,
    SortField.STATUS: lambda c, log: c.status.value,
}


def sort_conversations(
    conversations: List[ProcessedConversation],
    sort_config: SortConfig,
    log: Optional[logging.Logger] = None,
) -> List[ProcessedConversation]:
    """Stable sort; equal keys keep their incoming order in both directions."""
    log = log or logger
    key = _SORT_KEYS[sort_config.field]
    return sorted(
        conversations,
        key=lambda c: key(c, log),
        reverse=sort_config.direction == SortDirection.DESC,
    )


def calculate_conversation_metrics(conversations: List[ProcessedConversation]) -> ConversationMetrics:
    counts: Dict[ConversationStatus, int] = defaultdict(int)
    for conversation in conversations:
        counts[conversation.status] += 1

    ev_scores = [c.ev_score for c in conversations if c.ev_score is not None]
    average_ev = round_half_up(safe_div(sum(ev_scores), len(ev_scores)), 2)

    return ConversationMetrics(
        total=len(conversations),
        active=counts[ConversationStatus.ACTIVE],
        pending=counts[ConversationStatus.PENDING],
        completed=counts[ConversationStatus.COMPLETED],
        flagged=counts[ConversationStatus.FLAGGED],
        spam=counts[ConversationStatus.SPAM],
        average_ev_score=average_ev,
    )


def _matches_analytics_status(conversation: Conversation, status: str) -> bool:
    thread = conversation.thread
    if status == "active":
        return not thread.completed
    if status == "completed":
        return thread.completed
    if status == "flagged":
        return thread.flag or thread.flag_for_review
    return True


def filter_by_analytics_filters(
    conversations: List[Conversation],
    filters: AnalyticsFilters,
    log: Optional[logging.Logger] = None,
) -> List[Conversation]:
    """Status (all/active/completed/flagged), lead source and last-message date range."""
    log = log or logger
    result = []
    for conversation in conversations:
        if not _matches_analytics_status(conversation, filters.conversation_status):
            continue

        if filters.lead_source and filters.lead_source != "all":
            if conversation.thread.source_name != filters.lead_source:
                continue

        if filters.start_date or filters.end_date:
            last_message = try_parse_timestamp(conversation.thread.last_message_at, log=log)
            if last_message is None:
                continue
            if filters.start_date and last_message < parse_timestamp(filters.start_date):
                continue
            if filters.end_date and last_message > parse_timestamp(filters.end_date):
                continue

        result.append(conversation)
    return result


def calculate_average_ev_by_message(conversations: List[Conversation]) -> List[EVDataPoint]:
    """Average EV score of the 1st, 2nd, 3rd... message across all conversations."""
    totals: Dict[int, float] = defaultdict(float)
    counts: Dict[int, int] = defaultdict(int)

    for conversation in conversations:
        ordered = sort_messages_by_date(conversation.messages, ascending=True)
        for position, msg in enumerate(ordered, start=1):
            if msg.ev_score is None or not math.isfinite(msg.ev_score):
                continue
            totals[position] += msg.ev_score
            counts[position] += 1

    return [
        EVDataPoint(
            message_number=position,
            average_ev=safe_div(totals[position], counts[position]),
            total_messages=counts[position],
            conversation_count=counts[position],
        )
        for position in sorted(counts)
    ]


def calculate_key_metrics(conversations: List[Conversation]) -> KeyMetrics:
    total = len(conversations)
    completed = sum(1 for c in conversations if c.thread.completed)
    return KeyMetrics(
        total_leads=total,
        conversion_rate=safe_div(completed, total) * 100,
        average_response_time=calculate_average_response_latency(conversations),
        active_leads=total - completed,
    )
