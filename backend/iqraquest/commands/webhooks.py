#!/usr/bin/env python
# backend/iqraquest/commands/webhooks.py
"""
Webhook health monitor for IqraQuest.

Prints ledger statistics and exits non-zero when the webhook pipeline looks
unhealthy, so it can run from cron or a container health probe.

Usage:
    python -m iqraquest.commands.webhooks                  # Default 95% threshold
    python -m iqraquest.commands.webhooks --threshold 90
    python -m iqraquest.commands.webhooks --json           # Machine-readable output
"""

import argparse
from datetime import datetime, timedelta, timezone
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence

from iqraquest.database import get_db_session
from iqraquest.services.webhook_ledger_service import WebhookLedgerService

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

MAX_RECENT_FAILURES = 5
SILENCE_ALERT_HOURS = 2


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def detect_issues(
    stats: Dict[str, Any], *, threshold: float, now: Optional[datetime] = None
) -> List[str]:
    """Return human-readable problems found in ``stats``; empty means healthy."""
    issues: List[str] = []
    rate = stats["success_rate_window"]
    if rate < threshold:
        issues.append(f"Success rate in window ({rate}%) is below threshold ({threshold}%)")

    failures = len(stats["recent_failures"])
    if failures > MAX_RECENT_FAILURES:
        issues.append(f"{failures} failed webhooks in the window")

    last_received = stats.get("last_received_at")
    current = now or datetime.now(timezone.utc)
    # A ledger with no events at all is a fresh install, not an outage.
    if last_received is not None:
        last_received = _as_utc(last_received)
        if last_received < current - timedelta(hours=SILENCE_ALERT_HOURS):
            issues.append(
                f"No webhooks received in the last {SILENCE_ALERT_HOURS} hours "
                f"(last: {last_received.isoformat()})"
            )
    return issues


def _serializable(stats: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(stats)
    data["recent_failures"] = [
        {
            "id": event.id,
            "source": event.source,
            "event_type": event.event_type,
            "error": event.processing_error,
            "received_at": _as_utc(event.received_at).isoformat() if event.received_at else None,
        }
        for event in stats["recent_failures"]
    ]
    last = stats.get("last_received_at")
    data["last_received_at"] = _as_utc(last).isoformat() if last else None
    return data


def _print_table(stats: Dict[str, Any], since_hours: int) -> None:
    rows = [
        ("Total Webhooks", f"{stats['total']:,}"),
        (f"Last {since_hours} Hours", f"{stats['last_window']:,}"),
        ("Last Hour", f"{stats['last_hour']:,}"),
        ("Processed", f"{stats['processed']:,}"),
        ("Ignored", f"{stats['ignored']:,}"),
        ("Failed", f"{stats['failed']:,}"),
        ("Pending", f"{stats['pending']:,}"),
        ("Success Rate (All Time)", f"{stats['success_rate']}%"),
        (f"Success Rate ({since_hours}h)", f"{stats['success_rate_window']}%"),
        ("Last Webhook", stats["last_received_at"] or "Never"),
    ]
    width = max(len(label) for label, _ in rows)
    for label, value in rows:
        print(f"  {label.ljust(width)}  {value}")

    if stats["by_source"]:
        print("\nBy Provider:")
        for source, counts in sorted(stats["by_source"].items()):
            print(
                f"  {source.capitalize()}: {counts['total']} total, "
                f"{counts['processed']} processed, {counts['failed']} failed"
            )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the monitor; returns the process exit code."""
    parser = argparse.ArgumentParser(description="Monitor payment webhook health")
    parser.add_argument(
        "--threshold",
        type=float,
        default=95.0,
        help="Minimum success rate percentage for the window (default: 95)",
    )
    parser.add_argument(
        "--since-hours",
        type=int,
        default=24,
        help="Size of the monitoring window in hours (default: 24)",
    )
    parser.add_argument("--json", action="store_true", help="Print stats as JSON")
    args = parser.parse_args(argv)

    with get_db_session() as db:
        stats = WebhookLedgerService(db).get_stats(since_hours=args.since_hours)
        issues = detect_issues(stats, threshold=args.threshold)
        output = _serializable(stats)

    if args.json:
        print(json.dumps({"stats": output, "issues": issues}, indent=2))
    else:
        print("Monitoring webhook system...\n")
        _print_table(output, args.since_hours)
        print()

    if issues:
        logger.warning("Webhook monitor detected %d issue(s)", len(issues))
        if not args.json:
            print("Issues detected:")
            for issue in issues:
                print(f"  - {issue}")
        return 1

    if not args.json:
        print("All webhook systems operational")
    return 0


if __name__ == "__main__":
    sys.exit(main())
