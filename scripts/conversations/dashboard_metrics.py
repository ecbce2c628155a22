"""
Lead Conversation Hub — Dashboard Metrics
===========================================

Dashboard-wide numbers and chart series computed from assembled
conversations. Dates are bucketed in UTC; conversations whose ``created_at``
cannot be parsed are skipped (with a warning), never fatal.

Functions:
  calculate_average_response_latency() - Inbound→outbound reply time (minutes)
  calculate_monthly_growth()           - % change, this month vs last month
  daily_conversation_counts()          - N-day created_at histogram
  daily_response_times()               - N-day reply-time series
  build_conversion_funnel()            - Total / Active / Completed
  generate_analytics()                 - All chart series for the dashboard
  calculate_dashboard_metrics()        - Headline metric tiles
  calculate_trends()                   - Period-over-period comparisons
"""
from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from models.conversation_models import (
    ChartData,
    ChartDataset,
    Conversation,
    DashboardAnalytics,
    DashboardMetrics,
    DashboardUsage,
    FunnelStage,
    TrendData,
    UsageStats,
)
from scripts.conversations.config import DEFAULT_CONFIG
from scripts.lib.logger import null_logger, setup_logger
from scripts.lib.timestamps import (
    date_key_day,
    end_of_month,
    now_utc,
    parse_timestamp,
    previous_month_start,
    start_of_month,
    try_parse_timestamp,
)
from scripts.lib.utils import percent, round_half_up, safe_div

logger = setup_logger(__name__)

PRIORITY_ORDER = {"high": 3, "medium": 2, "normal": 1, "low": 0}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _created_at(conversation: Conversation, log: logging.Logger) -> Optional[datetime]:
    created = try_parse_timestamp(conversation.thread.created_at, log=null_logger())
    if created is None:
        log.warning(
            "Skipping conversation %r: unparseable created_at %r",
            conversation.thread.conversation_id, conversation.thread.created_at,
        )
    return created


def _with_created_at(
    conversations: Iterable[Conversation],
    log: logging.Logger,
) -> List[Tuple[Conversation, datetime]]:
    pairs = []
    for conversation in conversations:
        created = _created_at(conversation, log)
        if created is not None:
            pairs.append((conversation, created))
    return pairs


def _day_window(days: int, now: datetime) -> List[datetime]:
    """The last ``days`` calendar days ending today, oldest first."""
    return [now - timedelta(days=days - 1 - i) for i in range(days)]


def _day_label(day: datetime) -> str:
    return f"{day:%b} {day.day}"


def _utc_day_key(dt: datetime) -> str:
    return date_key_day(dt.astimezone(timezone.utc))


# ---------------------------------------------------------------------------
# Response time
# ---------------------------------------------------------------------------

def response_latencies(conversation: Conversation) -> List[timedelta]:
    """Gaps where an inbound message is immediately followed by an outbound reply."""
    ordered = sorted(conversation.messages, key=lambda m: m.local_date)
    return [
        current.local_date - previous.local_date
        for previous, current in zip(ordered, ordered[1:])
        if previous.direction == "inbound" and current.direction == "outbound"
    ]


def calculate_average_response_latency(conversations: Iterable[Conversation]) -> int:
    """
    Mean time, in whole minutes, between a lead's message and our reply.

    Only inbound-then-outbound pairs count. Compare
    conversation_utils.get_average_response_time, which averages every gap.
    """
    latencies: List[timedelta] = []
    for conversation in conversations:
        latencies.extend(response_latencies(conversation))
    if not latencies:
        return 0
    average_seconds = sum(l.total_seconds() for l in latencies) / len(latencies)
    return int(round_half_up(average_seconds / 60))


# ---------------------------------------------------------------------------
# Growth
# ---------------------------------------------------------------------------

def calculate_monthly_growth(
    conversations: Iterable[Conversation],
    now: Optional[datetime] = None,
    log: Optional[logging.Logger] = None,
) -> int:
    """
    Percentage change in new conversations, current vs previous calendar month.

    Growth from an empty previous month is 100 when anything arrived this
    month, else 0.
    """
    log = log or logger
    now = parse_timestamp(now, log=log) if now else now_utc()
    current_start = start_of_month(now)
    last_start = previous_month_start(now)
    last_end = end_of_month(last_start)

    current_count = 0
    last_count = 0
    for _, created in _with_created_at(conversations, log):
        if created >= current_start:
            current_count += 1
        elif last_start <= created <= last_end:
            last_count += 1

    if last_count == 0:
        return 100 if current_count > 0 else 0
    return int(round_half_up((current_count - last_count) / last_count * 100))


# ---------------------------------------------------------------------------
# Trend series
# ---------------------------------------------------------------------------

def daily_conversation_counts(
    conversations: Iterable[Conversation],
    days: int = DEFAULT_CONFIG["trend_window_days"],
    now: Optional[datetime] = None,
    log: Optional[logging.Logger] = None,
) -> Tuple[List[str], List[int]]:
    """
    Count conversations created on each of the last ``days`` days.

    Returns parallel (labels, counts) lists, both exactly ``days`` long.
    """
    log = log or logger
    now = parse_timestamp(now, log=log) if now else now_utc()
    window = _day_window(days, now)
    index_by_key = {_utc_day_key(day): i for i, day in enumerate(window)}

    counts = [0] * days
    for _, created in _with_created_at(conversations, log):
        index = index_by_key.get(_utc_day_key(created))
        if index is not None:
            counts[index] += 1

    return [_day_label(day) for day in window], counts


def daily_response_times(
    conversations: Iterable[Conversation],
    days: int = DEFAULT_CONFIG["response_trend_window_days"],
    now: Optional[datetime] = None,
    log: Optional[logging.Logger] = None,
) -> Tuple[List[str], List[int]]:
    """Average reply latency (minutes) of the conversations created on each day."""
    log = log or logger
    now = parse_timestamp(now, log=log) if now else now_utc()
    window = _day_window(days, now)

    by_day: Dict[str, List[Conversation]] = defaultdict(list)
    for conversation, created in _with_created_at(conversations, log):
        by_day[_utc_day_key(created)].append(conversation)

    data = [
        calculate_average_response_latency(by_day.get(_utc_day_key(day), []))
        for day in window
    ]
    return [_day_label(day) for day in window], data


def lead_source_counts(
    conversations: Iterable[Conversation],
    default_label: str = DEFAULT_CONFIG["default_source_label"],
) -> Dict[str, int]:
    """Conversations per source, in first-seen order."""
    counts: Counter = Counter()
    for conversation in conversations:
        counts[conversation.thread.source_name or default_label] += 1
    return dict(counts)


def build_conversion_funnel(conversations: List[Conversation]) -> List[FunnelStage]:
    total = len(conversations)
    completed = sum(1 for c in conversations if c.thread.completed)
    active = total - completed
    return [
        FunnelStage(stage="Total Leads", count=total, percentage=100 if total else 0),
        FunnelStage(stage="Active", count=active, percentage=percent(active, total)),
        FunnelStage(stage="Completed", count=completed, percentage=percent(completed, total)),
    ]


def generate_analytics(
    conversations: List[Conversation],
    now: Optional[datetime] = None,
    config: Optional[Dict] = None,
    log: Optional[logging.Logger] = None,
) -> DashboardAnalytics:
    """Build every chart series the dashboard renders."""
    config = {**DEFAULT_CONFIG, **(config or {})}
    log = log or logger
    now = parse_timestamp(now, log=log) if now else now_utc()

    trend_labels, trend_data = daily_conversation_counts(
        conversations, config["trend_window_days"], now, log,
    )
    response_labels, response_data = daily_response_times(
        conversations, config["response_trend_window_days"], now, log,
    )
    sources = lead_source_counts(conversations, config["default_source_label"])
    funnel = build_conversion_funnel(conversations)

    return DashboardAnalytics(
        conversation_trend=ChartData(
            labels=trend_labels,
            datasets=[ChartDataset(label="Conversations", data=trend_data)],
        ),
        lead_source_breakdown=ChartData(
            labels=list(sources.keys()),
            datasets=[ChartDataset(label="Lead Sources", data=list(sources.values()))],
        ),
        response_time_trend=ChartData(
            labels=response_labels,
            datasets=[ChartDataset(label="Avg Response Time (min)", data=response_data)],
        ),
        conversion_funnel=ChartData(
            labels=[s.stage for s in funnel],
            datasets=[ChartDataset(label="Conversations", data=[s.count for s in funnel])],
        ),
        funnel_stages=funnel,
    )


# ---------------------------------------------------------------------------
# Metric tiles
# ---------------------------------------------------------------------------

def calculate_dashboard_metrics(
    conversations: List[Conversation],
    now: Optional[datetime] = None,
    log: Optional[logging.Logger] = None,
) -> DashboardMetrics:
    total = len(conversations)
    completed = sum(1 for c in conversations if c.thread.completed)

    return DashboardMetrics(
        total_conversations=total,
        active_conversations=total - completed,
        total_leads=total,
        conversion_rate=percent(completed, total),
        average_response_time=calculate_average_response_latency(conversations),
        monthly_growth=calculate_monthly_growth(conversations, now, log),
    )


def filter_conversations_by_date_range(
    conversations: List[Conversation],
    start: datetime,
    end: datetime,
    log: Optional[logging.Logger] = None,
) -> List[Conversation]:
    """Conversations created within [start, end]."""
    log = log or logger
    start = parse_timestamp(start, log=log)
    end = parse_timestamp(end, log=log)
    return [c for c, created in _with_created_at(conversations, log) if start <= created <= end]


def sort_conversations_by(
    conversations: List[Conversation],
    sort_by: str = "date",
    sort_order: str = "desc",
    log: Optional[logging.Logger] = None,
) -> List[Conversation]:
    """Sort by 'date', 'name', 'status' (completed last/first) or 'priority'."""
    log = log or logger
    keys = {
        "date": lambda c: parse_timestamp(c.thread.last_message_at, log=log),
        "name": lambda c: (c.thread.lead_name or "").lower(),
        "status": lambda c: 1 if c.thread.completed else 0,
        "priority": lambda c: PRIORITY_ORDER.get((c.thread.priority or "").lower(), 1),
    }
    if sort_by not in keys:
        log.warning("Unknown sort field %r; leaving order unchanged", sort_by)
        return list(conversations)
    return sorted(conversations, key=keys[sort_by], reverse=sort_order == "desc")


def group_conversations_by_status(conversations: List[Conversation]) -> Dict[str, List[Conversation]]:
    """Overlapping groups: a flagged conversation is also active or completed."""
    return {
        "active": [c for c in conversations if not c.thread.completed],
        "completed": [c for c in conversations if c.thread.completed],
        "flagged": [c for c in conversations if c.thread.flag or c.thread.flag_for_review],
        "spam": [c for c in conversations if c.thread.spam],
    }


def calculate_usage_stats(usage: DashboardUsage) -> UsageStats:
    return UsageStats(
        emails_sent=usage.emails_sent,
        logins=usage.logins,
        active_days=usage.active_days,
        average_emails_per_day=int(round_half_up(safe_div(usage.emails_sent, usage.active_days))),
        engagement_rate=percent(usage.active_days, usage.logins),
    )


# ---------------------------------------------------------------------------
# Period-over-period trends
# ---------------------------------------------------------------------------

def _metric_trend(current: float, previous: float, stable_threshold: float) -> TrendData:
    change = current - previous
    change_percent = safe_div(change, previous) * 100 if previous > 0 else 0.0

    if abs(change_percent) < stable_threshold:
        direction = "stable"
    else:
        direction = "up" if change_percent > 0 else "down"

    return TrendData(
        current=current,
        previous=previous,
        change=change,
        change_percent=change_percent,
        direction=direction,
    )


def calculate_trends(
    conversations: List[Conversation],
    start: datetime,
    end: datetime,
    stable_threshold: float = DEFAULT_CONFIG["trend_stable_threshold_percent"],
    log: Optional[logging.Logger] = None,
) -> Dict[str, TrendData]:
    """
    Compare [start, end] against the equally long period just before it.

    The previous period is [start - (end - start), start).
    """
    log = log or logger
    start = parse_timestamp(start, log=log)
    end = parse_timestamp(end, log=log)
    span = end - start
    previous_start = start - span

    dated = _with_created_at(conversations, log)
    current = [c for c, created in dated if start <= created <= end]
    previous = [c for c, created in dated if previous_start <= created < start]

    def summary(period: List[Conversation]) -> Dict[str, float]:
        total = len(period)
        completed = sum(1 for c in period if c.thread.completed)
        return {
            "total": total,
            "active": total - completed,
            "conversion_rate": safe_div(completed, total) * 100,
            "response_time": calculate_average_response_latency(period),
        }

    cur, prev = summary(current), summary(previous)
    return {
        "total_conversations": _metric_trend(cur["total"], prev["total"], stable_threshold),
        "active_conversations": _metric_trend(cur["active"], prev["active"], stable_threshold),
        "conversion_rate": _metric_trend(cur["conversion_rate"], prev["conversion_rate"], stable_threshold),
        "average_response_time": _metric_trend(cur["response_time"], prev["response_time"], stable_threshold),
        "new_conversations": _metric_trend(cur["total"], prev["total"], stable_threshold),
    }


def should_show_trend(trend: Optional[TrendData], threshold: float = 1.0) -> bool:
    if trend is None:
        return False
    return abs(trend.change_percent) >= threshold


def format_trend_change(trend: Optional[TrendData]) -> str:
    """'+12%' / '-5%'; empty for no trend."""
    if trend is None:
        return ""
    sign = "+" if trend.change_percent >= 0 else "-"
    return f"{sign}{int(round_half_up(abs(trend.change_percent)))}%"


def format_minutes(minutes: int) -> str:
    """Format a minute count as '45m', '2h' or '2h 5m'."""
    if minutes < 60:
        return f"{minutes}m"
    hours, remaining = divmod(minutes, 60)
    return f"{hours}h {remaining}m" if remaining else f"{hours}h"
