"""
Asana webhook handshake and signature verification.

Handshake: Asana's first request to a new webhook target carries X-Hook-Secret. The target must
answer 200 echoing that header, and remember the secret, since every later delivery is signed with
it (X-Hook-Signature = hex HMAC-SHA256 of the raw body).

One spreadsheet can back many webhooks and secrets rotate on re-registration, so verification
tries every secret stored for the spreadsheet.
"""

import hashlib
import hmac
import json
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from connectors.google_sheets.sheets_secret_store import (
    SecretPersistenceError,
    SpreadsheetSecretStore,
)
from src.relay.verification import VerificationResult
from src.utils.logging import get_logger, redact_secret

logger = get_logger(__name__)

HOOK_SECRET_HEADER = "x-hook-secret"
HOOK_SIGNATURE_HEADER = "x-hook-signature"
WEBHOOK_ID_HEADER = "x-webhook-id"
CLIENT_WEBHOOK_ID_PARAM = "clientWebhookId"

NO_SPREADSHEET_MESSAGE = "Handshake acknowledged; secret not persisted (no spreadsheet id)"


def verify_asana_signature(
    headers: Mapping[str, str], body: bytes, secrets: Iterable[str]
) -> None:
    """Verify an Asana delivery against a set of candidate secrets.

    Args:
        headers: Webhook headers, lowercase keys
        body: Raw request body, exactly as received
        secrets: Every secret that may have signed the payload

    Raises:
        ValueError: If the signature is missing or no secret matches
    """
    signature = headers.get(HOOK_SIGNATURE_HEADER, "")
    if not signature:
        raise ValueError("Missing Asana webhook signature header")

    candidates = [secret for secret in secrets if secret]
    if not candidates:
        raise ValueError("Invalid Asana webhook signature (no secrets stored)")

    for secret in candidates:
        expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
        if hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
            return

    raise ValueError("Invalid Asana webhook signature")


class AsanaWebhookVerifier:
    """Verifier for Asana deliveries using the secrets stored in the target spreadsheet."""

    def __init__(self, secret_store: SpreadsheetSecretStore) -> None:
        self.secret_store = secret_store

    async def verify(
        self,
        headers: dict[str, str],
        body: bytes,
        spreadsheet_id: str,
    ) -> VerificationResult:
        # Storage failures propagate, they are not a verdict on the request
        secrets = await self.secret_store.list_secrets(spreadsheet_id)
        logger.debug("Loaded webhook secrets", secret_count=len(secrets))

        try:
            verify_asana_signature(headers, body, secrets)
            return VerificationResult(success=True)
        except ValueError as e:
            return VerificationResult(success=False, error=str(e))


def _webhook_id_from_body(body: bytes) -> str | None:
    try:
        payload = json.loads(body) if body else None
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None

    if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
        return None

    webhook_id = payload["data"].get("id")
    return str(webhook_id) if webhook_id else None


def resolve_webhook_id(
    headers: Mapping[str, str], query_params: Mapping[str, str], body: bytes
) -> str:
    """Identifier the handshake secret is stored under.

    Order: X-Webhook-Id header, clientWebhookId query parameter, body data.id, then a generated
    `generated-<epoch ms>` id.
    """
    if webhook_id := headers.get(WEBHOOK_ID_HEADER):
        return webhook_id
    if webhook_id := query_params.get(CLIENT_WEBHOOK_ID_PARAM):
        return webhook_id
    if webhook_id := _webhook_id_from_body(body):
        return webhook_id

    generated = f"generated-{int(time.time() * 1000)}"
    logger.warning("Handshake carries no webhook id, generated one", webhook_id=generated)
    return generated


@dataclass
class HandshakeResult:
    secret: str
    webhook_id: str
    spreadsheet_id: str | None
    persisted: bool
    message: str


async def handle_asana_handshake(
    secret_store: SpreadsheetSecretStore,
    hook_secret: str,
    webhook_id: str,
    spreadsheet_id: str | None,
) -> HandshakeResult:
    """Persist a handshake secret before the response is sent.

    Never raises for storage failures: Asana needs the echo regardless, and the error log is the
    only record of a secret that could not be stored.
    """
    if not spreadsheet_id:
        logger.warning(
            "Handshake without spreadsheet id, secret not persisted",
            webhook_id=webhook_id,
            secret_preview=redact_secret(hook_secret),
        )
        return HandshakeResult(
            secret=hook_secret,
            webhook_id=webhook_id,
            spreadsheet_id=None,
            persisted=False,
            message=NO_SPREADSHEET_MESSAGE,
        )

    try:
        await secret_store.upsert(spreadsheet_id, webhook_id, hook_secret)
    except SecretPersistenceError as e:
        logger.error(
            f"Failed to persist webhook secret: {e}",
            webhook_id=webhook_id,
            spreadsheet_id=spreadsheet_id,
        )
        return HandshakeResult(
            secret=hook_secret,
            webhook_id=webhook_id,
            spreadsheet_id=spreadsheet_id,
            persisted=False,
            message="Handshake acknowledged; secret not persisted",
        )

    logger.info(
        "Webhook handshake completed", webhook_id=webhook_id, spreadsheet_id=spreadsheet_id
    )
    return HandshakeResult(
        secret=hook_secret,
        webhook_id=webhook_id,
        spreadsheet_id=spreadsheet_id,
        persisted=True,
        message="Handshake completed",
    )
