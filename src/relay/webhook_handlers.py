"""Webhook handler functions for the relay service."""

from fastapi import HTTPException, Request, Response
from pydantic import ValidationError

from connectors.asana import handle_asana_handshake, resolve_webhook_id
from connectors.asana.asana_webhook_handler import HOOK_SECRET_HEADER
from connectors.asana.client.asana_api_models import AsanaWebhookEventsPayload
from src.relay.models import WebhookResponse
from src.relay.services.event_worker import WebhookEventWorker
from src.relay.verification import WebhookVerifier
from src.utils.config import get_default_spreadsheet_id
from src.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

SPREADSHEET_ID_PARAM = "sheetId"


def resolve_spreadsheet_id(request: Request) -> str | None:
    """Destination spreadsheet: the sheetId query parameter, else the configured default."""
    return request.query_params.get(SPREADSHEET_ID_PARAM) or get_default_spreadsheet_id()


async def _verify_and_raise(
    verifier: WebhookVerifier,
    headers: dict[str, str],
    body: bytes,
    spreadsheet_id: str,
) -> None:
    """Verify webhook and raise HTTPException on failure.

    Raises:
        HTTPException: 500 if the stored secrets could not be loaded, 401 if no secret matches
    """
    try:
        result = await verifier.verify(headers, body, spreadsheet_id)
    except Exception as e:
        logger.error(f"Error loading webhook secrets: {e}")
        raise HTTPException(status_code=500, detail="Failed to verify webhook signature") from e

    if not result.success:
        logger.warning(f"Failed to verify Asana webhook: {result.error}")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")


async def handle_handshake(request: Request, response: Response) -> WebhookResponse:
    """Persist the proposed secret, then echo it back. Always answers 200."""
    headers = dict(request.headers)
    body = await request.body()
    hook_secret = headers[HOOK_SECRET_HEADER]

    webhook_id = resolve_webhook_id(headers, request.query_params, body)
    spreadsheet_id = resolve_spreadsheet_id(request)

    with LogContext(webhook_id=webhook_id, spreadsheet_id=spreadsheet_id):
        result = await handle_asana_handshake(
            request.app.state.secret_store, hook_secret, webhook_id, spreadsheet_id
        )

    response.headers["X-Hook-Secret"] = result.secret
    return WebhookResponse(
        success=True,
        message=result.message,
        spreadsheet_id=result.spreadsheet_id,
        webhook_id=result.webhook_id,
        secret_persisted=result.persisted,
    )


async def handle_event_delivery(request: Request) -> WebhookResponse:
    """Verify a signed delivery and hand its events to the event worker.

    Reconciliation happens after the response is sent.
    """
    spreadsheet_id = resolve_spreadsheet_id(request)
    if not spreadsheet_id:
        raise HTTPException(status_code=400, detail="Missing sheetId")

    headers = dict(request.headers)
    body = await request.body()

    with LogContext(spreadsheet_id=spreadsheet_id):
        await _verify_and_raise(request.app.state.webhook_verifier, headers, body, spreadsheet_id)

        try:
            payload = AsanaWebhookEventsPayload.model_validate_json(body)
        except ValidationError as e:
            logger.warning(f"Malformed Asana webhook payload: {e.error_count()} errors")
            raise HTTPException(status_code=400, detail="Malformed webhook payload") from e

        event_worker: WebhookEventWorker = request.app.state.event_worker
        event_worker.enqueue(spreadsheet_id, payload.events)

    return WebhookResponse(
        success=True,
        message="Webhook accepted",
        spreadsheet_id=spreadsheet_id,
        event_count=len(payload.events),
    )
