"""Relay FastAPI service: Asana webhooks in, Google Sheets rows out."""

import datetime
from contextlib import asynccontextmanager

import newrelic.agent

from src.utils.config import get_relay_environment

# Configured through NEW_RELIC_* environment variables
newrelic.agent.initialize(environment=get_relay_environment())

from fastapi import FastAPI, Request

from connectors.asana import AsanaTaskReconciler, AsanaWebhookVerifier
from connectors.asana.client.asana_client_factory import get_asana_client
from connectors.google_sheets import GoogleSheetsClient, SpreadsheetSecretStore
from src.jobs.sheet_write_queue import SheetWriteQueue
from src.relay.read_routes import router as read_router
from src.relay.routes import create_webhook_router
from src.relay.services.event_worker import WebhookEventWorker
from src.relay.services.workspace_export import WorkspaceTaskCollector
from src.utils.config import get_config_value
from src.utils.logging import get_logger, get_uvicorn_log_config

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on startup and drain pending work on shutdown."""
    logger.info("Starting relay service...")

    asana_client = get_asana_client()
    sheets_client = GoogleSheetsClient()

    write_queue = SheetWriteQueue()
    write_queue.start()

    secret_store = SpreadsheetSecretStore(sheets_client, write_queue)
    reconciler = AsanaTaskReconciler(asana_client, sheets_client, write_queue)
    event_worker = WebhookEventWorker(reconciler)
    event_worker.start()

    app.state.asana_client = asana_client
    app.state.sheets_client = sheets_client
    app.state.write_queue = write_queue
    app.state.secret_store = secret_store
    app.state.webhook_verifier = AsanaWebhookVerifier(secret_store)
    app.state.event_worker = event_worker
    app.state.task_collector = WorkspaceTaskCollector(asana_client)

    logger.info("Relay service startup complete")

    yield

    logger.info("Shutting down relay service...")

    # Accepted events still need their writes, so the worker drains before the queue
    await event_worker.stop()
    await write_queue.stop()
    await asana_client.aclose()

    logger.info("Relay service shutdown complete")


app = FastAPI(
    title="Asana Sheets Relay",
    description="Relays Asana task changes into Google Sheets and serves read-only task data",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health/live")
async def liveness_check():
    """Liveness endpoint - checks if the application is alive."""
    return {"status": "alive", "timestamp": datetime.datetime.now().isoformat()}


@app.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness endpoint - reports how much work is waiting."""
    write_queue: SheetWriteQueue = request.app.state.write_queue
    event_worker: WebhookEventWorker = request.app.state.event_worker

    return {
        "status": "ready",
        "components": {
            "event_queue_depth": event_worker.depth,
            "sheet_write_queue_depth": write_queue.depth,
        },
    }


app.include_router(create_webhook_router())
app.include_router(read_router)


def main():
    """Run the relay service."""
    import uvicorn

    port = get_config_value("RELAY_PORT", 3000)

    uvicorn.run(app, host="0.0.0.0", port=port, log_config=get_uvicorn_log_config())


if __name__ == "__main__":
    main()
