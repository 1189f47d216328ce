"""Tests for the relay's webhook endpoint: handshakes and signed deliveries."""

import hashlib
import hmac
import json
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from connectors.asana import AsanaWebhookVerifier
from connectors.asana.asana_webhook_handler import NO_SPREADSHEET_MESSAGE
from connectors.google_sheets import SecretPersistenceError, SpreadsheetSecretStore
from connectors.google_sheets.sheets_secret_store import SECRETS_HEADER, SECRETS_SHEET_TITLE
from src.relay.routes import create_webhook_router

SPREADSHEET_ID = "SHEET1"
SECRET = "s1"

DELIVERY_BODY = json.dumps(
    {
        "events": [
            {
                "action": "changed",
                "resource": {"gid": "t1", "resource_type": "task"},
                "user": {"gid": "u1", "resource_type": "user"},
            }
        ]
    }
).encode()


def _sign(body: bytes, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


@pytest.fixture
def secret_store(sheets_client, write_queue):
    return SpreadsheetSecretStore(sheets_client, write_queue)


@pytest.fixture
def event_worker():
    return Mock()


@pytest.fixture
def app(secret_store, event_worker):
    app = FastAPI()
    app.include_router(create_webhook_router("/receiveWebhook"))
    app.state.secret_store = secret_store
    app.state.webhook_verifier = AsanaWebhookVerifier(secret_store)
    app.state.event_worker = event_worker
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def stored_secret(sheets_client):
    sheets_client.spreadsheets[SPREADSHEET_ID] = {
        "Sheet1": [],
        SECRETS_SHEET_TITLE: [list(SECRETS_HEADER), ["wh1", SECRET]],
    }


class TestHandshake:
    def test_persists_and_echoes_secret(self, client, sheets_client):
        response = client.post(
            f"/receiveWebhook?sheetId={SPREADSHEET_ID}",
            headers={"X-Hook-Secret": SECRET},
            json={"data": {"id": "wh1"}},
        )

        assert response.status_code == 200
        assert response.headers["X-Hook-Secret"] == SECRET
        body = response.json()
        assert body["success"] is True
        assert body["webhook_id"] == "wh1"
        assert body["secret_persisted"] is True
        assert sheets_client.sheet(SPREADSHEET_ID, SECRETS_SHEET_TITLE) == [
            SECRETS_HEADER,
            ["wh1", SECRET],
        ]

    def test_webhook_id_header_wins(self, client, sheets_client):
        response = client.post(
            f"/receiveWebhook?sheetId={SPREADSHEET_ID}&clientWebhookId=client-1",
            headers={"X-Hook-Secret": SECRET, "X-Webhook-Id": "wh-header"},
            json={"data": {"id": "wh-body"}},
        )

        assert response.json()["webhook_id"] == "wh-header"

    def test_import_path_uses_client_webhook_id(self, client, sheets_client):
        response = client.post(
            f"/api/webhook?sheetId={SPREADSHEET_ID}&clientWebhookId=client-1",
            headers={"X-Hook-Secret": SECRET},
        )

        assert response.status_code == 200
        assert response.json()["webhook_id"] == "client-1"
        assert ["client-1", SECRET] in sheets_client.sheet(SPREADSHEET_ID, SECRETS_SHEET_TITLE)

    def test_without_spreadsheet_still_echoes(self, client, sheets_client):
        response = client.post("/receiveWebhook", headers={"X-Hook-Secret": SECRET})

        assert response.status_code == 200
        assert response.headers["X-Hook-Secret"] == SECRET
        body = response.json()
        assert body["message"] == NO_SPREADSHEET_MESSAGE
        assert body["secret_persisted"] is False
        assert body["webhook_id"].startswith("generated-")
        assert sheets_client.calls == []

    def test_default_spreadsheet_from_environment(self, client, sheets_client, monkeypatch):
        monkeypatch.setenv("SPREADSHEET_ID", "DEFAULT")

        response = client.post(
            "/receiveWebhook", headers={"X-Hook-Secret": SECRET}, json={"data": {"id": "wh1"}}
        )

        assert response.json()["spreadsheet_id"] == "DEFAULT"
        assert sheets_client.sheet("DEFAULT", SECRETS_SHEET_TITLE)[-1] == ["wh1", SECRET]

    def test_persistence_failure_still_echoes(self, app, client):
        app.state.secret_store = Mock(
            upsert=AsyncMock(side_effect=SecretPersistenceError("quota exhausted"))
        )

        response = client.post(
            f"/receiveWebhook?sheetId={SPREADSHEET_ID}",
            headers={"X-Hook-Secret": SECRET},
            json={"data": {"id": "wh1"}},
        )

        assert response.status_code == 200
        assert response.headers["X-Hook-Secret"] == SECRET
        assert response.json()["secret_persisted"] is False


class TestEventDelivery:
    def test_valid_signature_is_accepted(self, client, event_worker, stored_secret):
        response = client.post(
            f"/receiveWebhook?sheetId={SPREADSHEET_ID}",
            headers={"X-Hook-Signature": _sign(DELIVERY_BODY)},
            content=DELIVERY_BODY,
        )

        assert response.status_code == 200
        assert response.json()["event_count"] == 1
        event_worker.enqueue.assert_called_once()
        spreadsheet_id, events = event_worker.enqueue.call_args.args
        assert spreadsheet_id == SPREADSHEET_ID
        assert [(e.action, e.resource.gid) for e in events] == [("changed", "t1")]

    def test_any_stored_secret_verifies(self, client, event_worker, sheets_client, stored_secret):
        sheets_client.sheet(SPREADSHEET_ID, SECRETS_SHEET_TITLE).append(["wh2", "s2"])

        response = client.post(
            f"/receiveWebhook?sheetId={SPREADSHEET_ID}",
            headers={"X-Hook-Signature": _sign(DELIVERY_BODY, "s2")},
            content=DELIVERY_BODY,
        )

        assert response.status_code == 200

    def test_bad_signature_is_rejected(self, client, event_worker, stored_secret):
        response = client.post(
            f"/receiveWebhook?sheetId={SPREADSHEET_ID}",
            headers={"X-Hook-Signature": _sign(DELIVERY_BODY, "wrong")},
            content=DELIVERY_BODY,
        )

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid webhook signature"}
        event_worker.enqueue.assert_not_called()

    def test_no_stored_secrets_is_rejected(self, client, event_worker):
        response = client.post(
            f"/receiveWebhook?sheetId={SPREADSHEET_ID}",
            headers={"X-Hook-Signature": _sign(DELIVERY_BODY)},
            content=DELIVERY_BODY,
        )

        assert response.status_code == 401
        event_worker.enqueue.assert_not_called()

    def test_secret_lookup_failure_is_server_error(self, app, client, event_worker):
        app.state.webhook_verifier = Mock(verify=AsyncMock(side_effect=RuntimeError("sheets down")))

        response = client.post(
            f"/receiveWebhook?sheetId={SPREADSHEET_ID}",
            headers={"X-Hook-Signature": _sign(DELIVERY_BODY)},
            content=DELIVERY_BODY,
        )

        assert response.status_code == 500
        assert "sheets down" not in response.text
        event_worker.enqueue.assert_not_called()

    def test_malformed_payload(self, client, event_worker, stored_secret):
        body = b'{"events": [{"resource": "nope"}]}'

        response = client.post(
            f"/receiveWebhook?sheetId={SPREADSHEET_ID}",
            headers={"X-Hook-Signature": _sign(body)},
            content=body,
        )

        assert response.status_code == 400
        event_worker.enqueue.assert_not_called()

    def test_missing_spreadsheet(self, client, event_worker):
        response = client.post(
            "/receiveWebhook",
            headers={"X-Hook-Signature": _sign(DELIVERY_BODY)},
            content=DELIVERY_BODY,
        )

        assert response.status_code == 400
        event_worker.enqueue.assert_not_called()


def test_request_without_hook_headers(client):
    response = client.post(f"/receiveWebhook?sheetId={SPREADSHEET_ID}", json={"events": []})

    assert response.status_code == 400
