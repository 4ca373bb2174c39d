"""Downstream processing of verified provider events."""

from decimal import Decimal

import pytest

from iqraquest.models.payout_request import PayoutRequest, PayoutStatus
from iqraquest.models.webhook_event import WebhookEvent, WebhookEventStatus
from iqraquest.services.payment_webhook_service import (
    RESULT_DUPLICATE,
    RESULT_IGNORED,
    RESULT_PROCESSED,
    InvalidWebhookPayload,
    PaymentWebhookService,
    parse_webhook_event,
)
from iqraquest.services.payout_service import PayoutService
from iqraquest.services.webhook_verification import WebhookProvider


@pytest.fixture
def open_request(db, make_teacher) -> PayoutRequest:
    teacher = make_teacher(balance="80000")
    PayoutService(db).process_auto_payouts(threshold=Decimal("50000"))
    return db.query(PayoutRequest).filter_by(user_id=teacher.id).one()


def _stripe_payout(event_id: str, event_type: str, request_uuid: str) -> dict:
    return {
        "id": event_id,
        "type": event_type,
        "data": {
            "object": {
                "id": "po_123",
                "metadata": {"payout_request_uuid": request_uuid},
                "failure_message": "Account closed",
            }
        },
    }


def test_stripe_payout_paid_completes_request(db, open_request):
    payload = _stripe_payout("evt_1", "payout.paid", open_request.request_uuid)

    result = PaymentWebhookService(db).handle_event(WebhookProvider.STRIPE, payload)

    assert result.status == RESULT_PROCESSED
    assert result.payout_request_id == open_request.id
    db.expire_all()
    request = db.get(PayoutRequest, open_request.id)
    assert request.status == PayoutStatus.COMPLETED.value
    event = db.query(WebhookEvent).one()
    assert (event.source, event.event_id) == ("stripe", "evt_1")
    assert event.status == WebhookEventStatus.PROCESSED
    assert event.processed_at is not None


def test_stripe_payout_failed_rejects_with_provider_reason(db, open_request):
    payload = _stripe_payout("evt_2", "payout.failed", open_request.request_uuid)

    PaymentWebhookService(db).handle_event(WebhookProvider.STRIPE, payload)

    db.expire_all()
    request = db.get(PayoutRequest, open_request.id)
    assert request.status == PayoutStatus.REJECTED.value
    assert request.failure_reason == "Account closed"


def test_event_matched_by_external_reference(db, open_request):
    PayoutService(db).mark_processing(open_request.request_uuid, external_reference="TRF_777")
    payload = {"event": "transfer.success", "data": {"id": 1, "reference": "TRF_777"}}

    result = PaymentWebhookService(db).handle_event(WebhookProvider.PAYSTACK, payload)

    assert result.status == RESULT_PROCESSED
    db.expire_all()
    request = db.get(PayoutRequest, open_request.id)
    assert request.status == PayoutStatus.COMPLETED.value
    assert request.external_reference == "TRF_777"


def test_redelivered_event_is_not_applied_twice(db, open_request):
    payload = _stripe_payout("evt_3", "payout.failed", open_request.request_uuid)
    service = PaymentWebhookService(db)

    first = service.handle_event(WebhookProvider.STRIPE, payload)
    second = service.handle_event(WebhookProvider.STRIPE, payload)

    assert (first.status, second.status) == (RESULT_PROCESSED, RESULT_DUPLICATE)
    event = db.query(WebhookEvent).one()
    assert event.retry_count == 1


def test_event_for_closed_request_is_ignored(db, open_request):
    PayoutService(db).reject(open_request.request_uuid, reason="manual")
    payload = _stripe_payout("evt_4", "payout.paid", open_request.request_uuid)

    result = PaymentWebhookService(db).handle_event(WebhookProvider.STRIPE, payload)

    assert result.status == RESULT_IGNORED
    event = db.query(WebhookEvent).one()
    assert event.processing_error == "Payout request already rejected"
    assert event.related_entity_id == open_request.id


def test_event_without_matching_request_is_ignored(db):
    payload = _stripe_payout("evt_5", "payout.paid", "APR-000000-unknown")
    result = PaymentWebhookService(db).handle_event(WebhookProvider.STRIPE, payload)
    assert result.status == RESULT_IGNORED


def test_failed_processing_is_recorded_and_can_be_retried(db, open_request, monkeypatch):
    payload = _stripe_payout("evt_6", "payout.paid", open_request.request_uuid)
    service = PaymentWebhookService(db)

    def boom(*args, **kwargs):
        raise RuntimeError("downstream failure")

    monkeypatch.setattr(service.payout_service, "complete", boom)
    with pytest.raises(RuntimeError):
        service.handle_event(WebhookProvider.STRIPE, payload)

    event = db.query(WebhookEvent).one()
    assert event.status == WebhookEventStatus.FAILED
    assert event.processing_error == "downstream failure"

    monkeypatch.undo()
    retried = PaymentWebhookService(db).handle_event(WebhookProvider.STRIPE, payload)
    assert retried.status == RESULT_PROCESSED


class TestParsing:
    def test_paystack_event_id_combines_type_and_identifier(self):
        parsed = parse_webhook_event(
            WebhookProvider.PAYSTACK,
            {"event": "transfer.reversed", "data": {"id": 55, "reference": "APR-1"}},
        )
        assert parsed.event_id == "transfer.reversed:55"
        assert parsed.outcome is not None
        assert parsed.outcome.succeeded is False
        assert parsed.outcome.reference == "APR-1"

    def test_paypal_success_reads_sender_item_id(self):
        parsed = parse_webhook_event(
            WebhookProvider.PAYPAL,
            {
                "id": "WH-9",
                "event_type": "PAYMENT.PAYOUTS-ITEM.SUCCEEDED",
                "resource": {
                    "payout_item_id": "ITEM-1",
                    "payout_item": {"sender_item_id": "APR-9"},
                },
            },
        )
        assert parsed.outcome is not None
        assert parsed.outcome.reference == "APR-9"
        assert parsed.outcome.succeeded is True

    def test_unrelated_stripe_event_has_no_outcome(self):
        parsed = parse_webhook_event(
            WebhookProvider.STRIPE, {"id": "evt_x", "type": "charge.succeeded", "data": {}}
        )
        assert parsed.outcome is None

    @pytest.mark.parametrize(
        "provider,payload",
        [
            (WebhookProvider.PAYSTACK, {"data": {"id": 1}}),
            (WebhookProvider.PAYSTACK, {"event": "transfer.success", "data": {}}),
            (WebhookProvider.STRIPE, {"type": "payout.paid"}),
            (WebhookProvider.PAYPAL, {"id": "WH-1"}),
        ],
    )
    def test_unidentifiable_payloads_raise(self, provider, payload):
        with pytest.raises(InvalidWebhookPayload):
            parse_webhook_event(provider, payload)
