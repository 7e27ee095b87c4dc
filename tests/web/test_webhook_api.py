"""Tests for the payment webhook HTTP API.

Tests cover:
- 202 on accept, followed by asynchronous application
- Duplicate short-circuit with the configured status (200 or 409)
- 404 for unknown invoices, 400 for invalid payloads
- 500 on unexpected failures
- Health and metrics endpoints
"""

import uuid

import pytest
from fastapi.testclient import TestClient

from payledger import __version__
from payledger.container import build_container
from payledger.exceptions import StorageError
from payledger.web import create_app


@pytest.fixture
def client(container):
    app = create_app(container=container)
    with TestClient(app) as test_client:
        yield test_client


def payload(invoice_id, amount_cents=5000, event_id="evt_web_1", **overrides):
    body = {
        "event_id": event_id,
        "type": "payment_received",
        "invoice_id": str(invoice_id),
        "amount_cents": amount_cents,
    }
    body.update(overrides)
    return body


class TestWebhookAccepted:
    def test_accepts_and_applies_payment(
        self, client, container, make_invoice, ledger, wait_for_queue
    ):
        invoice_id = make_invoice(total_cents=5000)

        response = client.post("/webhooks/payments", json=payload(invoice_id))

        assert response.status_code == 202
        assert response.json() == {"message": "Payment queued for processing"}

        wait_for_queue(container.payment_queue)
        assert ledger.status(invoice_id) == "paid"
        assert ledger.payment_count(invoice_id) == 1

    def test_partial_then_full_payment(
        self, client, container, make_invoice, ledger, wait_for_queue
    ):
        invoice_id = make_invoice(total_cents=5000)

        first = client.post("/webhooks/payments", json=payload(invoice_id, 3000, "evt_p1"))
        wait_for_queue(container.payment_queue)
        assert first.status_code == 202
        assert ledger.status(invoice_id) == "partially_paid"

        second = client.post("/webhooks/payments", json=payload(invoice_id, 2000, "evt_p2"))
        wait_for_queue(container.payment_queue)
        assert second.status_code == 202
        assert ledger.status(invoice_id) == "paid"

    def test_unknown_fields_are_ignored(self, client, make_invoice):
        invoice_id = make_invoice()

        response = client.post(
            "/webhooks/payments", json=payload(invoice_id, currency="EUR", source="stripe")
        )

        assert response.status_code == 202


class TestWebhookDuplicates:
    def test_duplicate_returns_200_by_default(
        self, client, container, make_invoice, ledger, wait_for_queue
    ):
        invoice_id = make_invoice(total_cents=5000)
        body = payload(invoice_id, 3000, "evt_dup")

        assert client.post("/webhooks/payments", json=body).status_code == 202
        wait_for_queue(container.payment_queue)

        response = client.post("/webhooks/payments", json=body)

        assert response.status_code == 200
        assert response.json() == {"message": "Payment already processed"}
        assert ledger.payment_count(invoice_id) == 1
        assert ledger.status(invoice_id) == "partially_paid"

    def test_duplicate_returns_409_when_configured(
        self, test_settings, db_engine, make_invoice, ledger, wait_for_queue
    ):
        settings = test_settings.model_copy(update={"duplicate_status_code": 409})
        container = build_container(settings, engine=db_engine)
        invoice_id = make_invoice()
        body = payload(invoice_id, 100, "evt_conflict")

        with TestClient(create_app(container=container)) as client:
            client.post("/webhooks/payments", json=body)
            wait_for_queue(container.payment_queue)
            response = client.post("/webhooks/payments", json=body)

        assert response.status_code == 409
        assert response.json() == {"message": "Payment already processed"}
        assert ledger.payment_count(invoice_id) == 1

    def test_rapid_redelivery_applies_once(
        self, client, container, make_invoice, ledger, wait_for_queue
    ):
        invoice_id = make_invoice(total_cents=5000)
        body = payload(invoice_id, 5000, "evt_burst")

        codes = [client.post("/webhooks/payments", json=body).status_code for _ in range(3)]
        wait_for_queue(container.payment_queue)

        assert codes[0] == 202
        assert set(codes) <= {200, 202}
        assert ledger.payment_count(invoice_id) == 1
        assert ledger.status(invoice_id) == "paid"


class TestWebhookRejections:
    def test_unknown_invoice_returns_404(self, client, ledger):
        response = client.post("/webhooks/payments", json=payload(uuid.uuid4()))

        assert response.status_code == 404
        assert response.json() == {"error": "Invoice not found"}
        assert ledger.payment_count() == 0

    @pytest.mark.parametrize("missing", ["event_id", "type", "invoice_id", "amount_cents"])
    def test_missing_field_returns_400(self, client, make_invoice, missing):
        body = payload(make_invoice())
        del body[missing]

        response = client.post("/webhooks/payments", json=body)

        assert response.status_code == 400
        assert isinstance(response.json()["error"], list)

    @pytest.mark.parametrize("amount", [0, -100, "5000", 12.5])
    def test_invalid_amount_returns_400(self, client, make_invoice, ledger, amount):
        response = client.post(
            "/webhooks/payments", json=payload(make_invoice(), amount_cents=amount)
        )

        assert response.status_code == 400
        assert ledger.payment_count() == 0

    def test_unsupported_type_returns_400(self, client, make_invoice):
        response = client.post(
            "/webhooks/payments", json=payload(make_invoice(), type="refund_issued")
        )
        assert response.status_code == 400

    def test_malformed_invoice_id_returns_400(self, client):
        response = client.post("/webhooks/payments", json=payload("not-a-uuid"))
        assert response.status_code == 400

    def test_malformed_json_returns_400(self, client):
        response = client.post(
            "/webhooks/payments",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400


class TestWebhookErrors:
    def test_unexpected_error_returns_500(self, client, container, make_invoice, mocker):
        mocker.patch.object(
            container.payment_service, "payment_exists", side_effect=RuntimeError("pool exhausted")
        )

        response = client.post("/webhooks/payments", json=payload(make_invoice()))

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_storage_error_returns_500(self, client, container, make_invoice, mocker):
        mocker.patch.object(
            container.payment_service,
            "invoice_exists",
            side_effect=StorageError("Database transaction failed"),
        )

        response = client.post("/webhooks/payments", json=payload(make_invoice()))

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert container.payment_queue.stats().backlog == 0


class TestOperationalEndpoints:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["version"] == __version__
        assert body["queue"] == {"backlog": 0, "processed": 0, "processing": False}

    def test_health_reports_processed_events(
        self, client, container, make_invoice, wait_for_queue
    ):
        client.post("/webhooks/payments", json=payload(make_invoice()))
        wait_for_queue(container.payment_queue)

        assert client.get("/health").json()["queue"]["processed"] == 1

    def test_metrics_exposed(self, client, make_invoice):
        client.post("/webhooks/payments", json=payload(make_invoice()))

        response = client.get("/metrics/")

        assert response.status_code == 200
        assert "payledger_webhook_requests_total" in response.text

    def test_metrics_can_be_disabled(self, test_settings, db_engine):
        settings = test_settings.model_copy(update={"metrics_enabled": False})
        container = build_container(settings, engine=db_engine)

        with TestClient(create_app(container=container)) as client:
            assert client.get("/metrics/").status_code == 404
