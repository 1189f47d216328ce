"""Pydantic models for the relay service."""

from pydantic import BaseModel


class WebhookResponse(BaseModel):
    """Webhook response model."""

    success: bool
    message: str
    spreadsheet_id: str | None = None
    webhook_id: str | None = None
    secret_persisted: bool | None = None
    event_count: int | None = None


class ErrorResponse(BaseModel):
    """Error body returned by the read API."""

    error: str
