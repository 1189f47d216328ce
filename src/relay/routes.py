"""Route definitions for the relay's inbound webhook."""

from fastapi import APIRouter, HTTPException, Request, Response

from connectors.asana.asana_webhook_handler import HOOK_SECRET_HEADER, HOOK_SIGNATURE_HEADER
from src.relay.models import WebhookResponse
from src.relay.services.webhook_registration import IMPORT_WEBHOOK_PATH
from src.relay.webhook_handlers import handle_event_delivery, handle_handshake
from src.utils.config import get_webhook_path
from src.utils.logging import get_logger

logger = get_logger(__name__)


async def asana_webhook(request: Request, response: Response) -> WebhookResponse:
    """Process an Asana webhook request: a handshake or a signed event delivery."""
    if HOOK_SECRET_HEADER in request.headers:
        return await handle_handshake(request, response)

    if HOOK_SIGNATURE_HEADER in request.headers:
        return await handle_event_delivery(request)

    logger.warning("Webhook request carries neither X-Hook-Secret nor X-Hook-Signature")
    raise HTTPException(status_code=400, detail="Missing X-Hook-Secret or X-Hook-Signature")


def create_webhook_router(webhook_path: str | None = None) -> APIRouter:
    router = APIRouter()
    paths = dict.fromkeys([webhook_path or get_webhook_path(), IMPORT_WEBHOOK_PATH])
    for path in paths:
        router.add_api_route(
            path, asana_webhook, methods=["POST"], response_model=WebhookResponse
        )
    return router
