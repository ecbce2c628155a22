"""
Lead Conversation Hub — Conversation Analysis Pipeline
========================================================
Runs a raw threads payload through assembly, processing and every dashboard
calculation, returning one DashboardData.

Usage:
    from scripts.conversations.pipeline import run_conversation_analysis

    data = run_conversation_analysis(api_response)   # list or {"data": [...]}
    data.metrics.monthly_growth
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.conversation_models import DashboardData, DashboardUsage
from scripts.conversations.assembler import assemble_conversations
from scripts.conversations.config import load_config
from scripts.conversations.conversation_analytics import (
    calculate_conversation_metrics,
    process_conversations_data,
)
from scripts.conversations.dashboard_metrics import (
    calculate_dashboard_metrics,
    calculate_usage_stats,
    generate_analytics,
)
from scripts.lib.logger import setup_logger
from scripts.lib.timestamps import now_utc, parse_timestamp

logger = setup_logger(__name__)


def extract_thread_items(payload: Any, log: Optional[logging.Logger] = None) -> List[Any]:
    """Accept a bare list of items or the API envelope ``{"data": [...]}``."""
    log = log or logger
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        data = payload.get("data")
        if isinstance(data, list):
            return data
        log.warning("Payload has no 'data' list; treating it as empty")
        return []
    log.warning("Unsupported payload type %s; treating it as empty", type(payload).__name__)
    return []


def run_conversation_analysis(
    payload: Any,
    usage: Optional[DashboardUsage] = None,
    config: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
    log: Optional[logging.Logger] = None,
) -> DashboardData:
    """Assemble conversations from ``payload`` and compute every dashboard output.

    ``config`` holds overrides on top of load_config(); a bad value raises
    ConfigError before any data is touched.
    """
    log = log or logger
    config = load_config(config)
    now = parse_timestamp(now, log=log) if now else now_utc()

    items = extract_thread_items(payload, log)
    log.info("Starting conversation analysis for %d raw items", len(items))

    conversations = assemble_conversations(items, log=log)
    processed = process_conversations_data(conversations, now, log)

    data = DashboardData(
        conversations=conversations,
        processed=processed,
        metrics=calculate_dashboard_metrics(conversations, now, log),
        analytics=generate_analytics(conversations, now, config, log),
        conversation_metrics=calculate_conversation_metrics(processed),
        usage=calculate_usage_stats(usage or DashboardUsage()),
        generated_at=now,
    )

    log.info(
        "Analysis complete: %d conversations, %d active, growth %d%%",
        data.metrics.total_conversations,
        data.metrics.active_conversations,
        data.metrics.monthly_growth,
    )
    return data
