"""Tests for the webhook monitor command."""

from datetime import datetime, timedelta, timezone
import json

import pytest

from iqraquest.commands import webhooks as monitor
from iqraquest.services.webhook_ledger_service import WebhookLedgerService

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _stats(**overrides):
    stats = {
        "success_rate_window": 100.0,
        "recent_failures": [],
        "last_received_at": NOW - timedelta(minutes=5),
    }
    stats.update(overrides)
    return stats


class TestDetectIssues:
    def test_healthy(self):
        assert monitor.detect_issues(_stats(), threshold=95.0, now=NOW) == []

    def test_low_success_rate(self):
        issues = monitor.detect_issues(_stats(success_rate_window=80.0), threshold=95.0, now=NOW)
        assert len(issues) == 1
        assert "80.0%" in issues[0]

    def test_rate_equal_to_threshold_is_fine(self):
        assert monitor.detect_issues(_stats(success_rate_window=95.0), threshold=95.0, now=NOW) == []

    def test_failures_above_limit(self):
        stats = _stats(recent_failures=[object()] * (monitor.MAX_RECENT_FAILURES + 1))
        assert monitor.detect_issues(stats, threshold=95.0, now=NOW) == ["6 failed webhooks in the window"]

    def test_failures_at_limit_are_tolerated(self):
        stats = _stats(recent_failures=[object()] * monitor.MAX_RECENT_FAILURES)
        assert monitor.detect_issues(stats, threshold=95.0, now=NOW) == []

    def test_silence_is_reported(self):
        stale = NOW - timedelta(hours=monitor.SILENCE_ALERT_HOURS, minutes=1)
        issues = monitor.detect_issues(_stats(last_received_at=stale), threshold=95.0, now=NOW)
        assert len(issues) == 1
        assert "No webhooks received" in issues[0]

    def test_naive_timestamp_treated_as_utc(self):
        naive = (NOW - timedelta(minutes=30)).replace(tzinfo=None)
        assert monitor.detect_issues(_stats(last_received_at=naive), threshold=95.0, now=NOW) == []

    def test_empty_ledger_is_not_an_outage(self):
        assert monitor.detect_issues(_stats(last_received_at=None), threshold=95.0, now=NOW) == []


class TestMain:
    @pytest.fixture(autouse=True)
    def monitor_session(self, monkeypatch, db_session_context):
        monkeypatch.setattr(monitor, "get_db_session", db_session_context)

    def _record(self, db, event_id, *, failed=False):
        service = WebhookLedgerService(db)
        event = service.log_received(
            source="paystack", event_type="transfer.success", event_id=event_id, payload={}
        )
        if failed:
            service.mark_failed(event, error="boom")
        else:
            service.mark_processed(event)
        db.commit()

    def test_healthy_ledger_exits_zero(self, db, capsys):
        self._record(db, "evt-1")
        self._record(db, "evt-2")

        assert monitor.main([]) == 0
        out = capsys.readouterr().out
        assert "All webhook systems operational" in out
        assert "Paystack: 2 total, 2 processed, 0 failed" in out

    def test_empty_ledger_exits_zero(self, db, capsys):
        assert monitor.main([]) == 0
        assert "Never" in capsys.readouterr().out

    def test_failures_exit_one(self, db, capsys):
        self._record(db, "evt-1")
        self._record(db, "evt-2", failed=True)

        assert monitor.main(["--threshold", "90"]) == 1
        out = capsys.readouterr().out
        assert "Issues detected:" in out
        assert "50.0%" in out

    def test_json_output(self, db, capsys):
        self._record(db, "evt-1", failed=True)

        assert monitor.main(["--json", "--threshold", "50"]) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["stats"]["failed"] == 1
        assert data["stats"]["recent_failures"][0]["error"] == "boom"
        assert data["stats"]["last_received_at"] is not None
        assert len(data["issues"]) == 1
