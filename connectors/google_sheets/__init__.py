from connectors.google_sheets.google_sheets_client import GoogleSheetsClient, SheetsApiError
from connectors.google_sheets.sheets_secret_store import (
    PENDING_SECRET_PLACEHOLDER,
    SecretPersistenceError,
    SpreadsheetSecretStore,
    WebhookSecretRecord,
)
from connectors.google_sheets.task_sheet import TaskSheet

__all__ = [
    "GoogleSheetsClient",
    "SheetsApiError",
    "PENDING_SECRET_PLACEHOLDER",
    "SecretPersistenceError",
    "SpreadsheetSecretStore",
    "WebhookSecretRecord",
    "TaskSheet",
]
