"""Celery task wiring, executed eagerly against the test database."""

from decimal import Decimal

from celery.exceptions import Retry
import pytest

from iqraquest.core.exceptions import RepositoryException
from iqraquest.models.payout_request import PayoutRequest
from iqraquest.models.wallet import TeacherWallet
from iqraquest.repositories.payout_request_repository import PayoutRequestRepository
from iqraquest.tasks import payout_tasks, wallet_sync_tasks
from iqraquest.tasks.beat_schedule import get_beat_schedule
from iqraquest.tasks.celery_app import celery_app


@pytest.fixture(autouse=True)
def task_sessions(monkeypatch, db_session_context):
    monkeypatch.setattr(payout_tasks, "get_db_session", db_session_context)
    monkeypatch.setattr(wallet_sync_tasks, "get_db_session", db_session_context)


def test_process_auto_payouts_returns_report_dict(db, make_teacher):
    make_teacher(balance="60000")
    make_teacher(balance="100")

    result = payout_tasks.process_auto_payouts.run(threshold="50000")

    assert result["eligible"] == 1
    assert result["succeeded"] == 1
    assert result["threshold"] == "50000.00"
    assert db.query(PayoutRequest).count() == 1


def test_process_auto_payouts_retries_when_candidate_query_fails(db, make_teacher, monkeypatch):
    make_teacher(balance="60000")
    retries = []

    def failing_query(self, threshold):
        raise RepositoryException("connection reset during candidate query")

    def fake_retry(*args, **kwargs):
        retries.append(kwargs)
        return Retry(exc=kwargs.get("exc"))

    monkeypatch.setattr(PayoutRequestRepository, "find_auto_payout_candidates", failing_query)
    monkeypatch.setattr(payout_tasks.process_auto_payouts, "retry", fake_retry)

    with pytest.raises(Retry):
        payout_tasks.process_auto_payouts.run(threshold="50000")

    assert len(retries) == 1
    assert isinstance(retries[0]["exc"], RepositoryException)
    assert retries[0]["max_retries"] == 3
    assert db.query(PayoutRequest).count() == 0


def test_sync_wallet_from_earnings_task(db, make_teacher):
    teacher = make_teacher(balance="1234.5")
    earning_id = teacher.earnings.id

    result = wallet_sync_tasks.sync_wallet_from_earnings.run(earning_id)

    assert result["balance"] == "1234.50"
    wallet = db.query(TeacherWallet).filter_by(user_id=teacher.id).one()
    assert wallet.balance == Decimal("1234.50")


def test_sync_task_reraises_so_celery_can_retry(db):
    with pytest.raises(Exception):
        wallet_sync_tasks.sync_wallet_from_earnings.run("01HZZZZZZZZZZZZZZZZZZZZZZZ")


def test_sync_all_wallets_task(db, make_teacher):
    make_teacher(balance="10")
    make_teacher(balance="20")

    assert wallet_sync_tasks.sync_all_wallets.run() == {"total": 2, "synced": 2, "failed": 0}


def test_tasks_are_registered_with_expected_names():
    names = set(celery_app.tasks.keys())
    assert {
        "iqraquest.tasks.payout_tasks.process_auto_payouts",
        "iqraquest.tasks.wallet_sync_tasks.sync_wallet_from_earnings",
        "iqraquest.tasks.wallet_sync_tasks.sync_earnings_from_wallet",
        "iqraquest.tasks.wallet_sync_tasks.sync_all_wallets",
    } <= names


def test_beat_schedule_contains_payout_and_sweep_jobs():
    production = get_beat_schedule("production")
    assert production["process-auto-payouts"]["task"] == payout_tasks.process_auto_payouts.name
    assert production["sync-all-teacher-wallets"]["task"] == wallet_sync_tasks.sync_all_wallets.name
    assert get_beat_schedule("local")["process-auto-payouts"]["schedule"] != (
        production["process-auto-payouts"]["schedule"]
    )


def test_enqueue_task_sends_by_name_with_request_id(monkeypatch):
    from iqraquest.core.request_context import reset_request_id, set_request_id
    from iqraquest.tasks import enqueue as enqueue_module

    sent = {}

    def fake_send_task(name, args=None, kwargs=None, **options):
        sent.update(name=name, args=args, kwargs=kwargs, **options)
        return "async-result"

    monkeypatch.setattr(celery_app, "send_task", fake_send_task)
    token = set_request_id("req-42")
    try:
        result = enqueue_module.enqueue_task(
            "iqraquest.tasks.wallet_sync_tasks.sync_wallet_from_earnings", args=("E1",)
        )
    finally:
        reset_request_id(token)

    assert result == "async-result"
    assert sent["name"] == "iqraquest.tasks.wallet_sync_tasks.sync_wallet_from_earnings"
    assert sent["args"] == ("E1",)
    assert sent["headers"] == {"request_id": "req-42"}
