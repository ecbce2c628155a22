"""
Lead Conversation Hub — Entry Point
=====================================

Summarise a raw threads export (the ``get_all_threads`` response body).

Run: python main.py path/to/threads.json [--usage usage.json]
"""

import argparse
import json
import logging
import os
import sys

from dotenv import load_dotenv
from pydantic import ValidationError

from models.conversation_models import DashboardUsage
from scripts.conversations.pipeline import run_conversation_analysis
from scripts.lib.errors import HubError

load_dotenv()

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger("lead-hub")


def _load_json(path: str):
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Summarise a raw threads export")
    parser.add_argument("threads", help="JSON file: list of threads or {'data': [...]}")
    parser.add_argument("--usage", help="JSON file with emails_sent / logins / active_days")
    args = parser.parse_args(argv)

    try:
        payload = _load_json(args.threads)
        usage = DashboardUsage(**_load_json(args.usage)) if args.usage else None
    except (OSError, json.JSONDecodeError, TypeError, ValidationError) as e:
        logger.error("Could not read input: %s", e)
        return 1

    try:
        data = run_conversation_analysis(payload, usage=usage)
    except HubError as e:
        logger.error("Analysis failed: %s", e)
        return 1

    summary = {
        "metrics": data.metrics.model_dump(),
        "conversation_metrics": data.conversation_metrics.model_dump(),
        "funnel": [stage.model_dump() for stage in data.analytics.funnel_stages],
        "lead_sources": dict(zip(
            data.analytics.lead_source_breakdown.labels,
            data.analytics.lead_source_breakdown.datasets[0].data,
        )),
        "usage": data.usage.model_dump(),
        "generated_at": data.generated_at.isoformat(),
    }
    print(json.dumps(summary, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
