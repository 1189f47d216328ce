"""
Webhook signing secrets, persisted in a hidden `webhook_secrets` sheet of the target spreadsheet.

The sheet is a flat table with a `webhook_id, secret` header. Rows are never removed, only blanked,
so row numbers held by an in-flight operation stay valid. Mutations go through the SheetWriteQueue,
and each one runs its scan and its write as a single queued operation so two handshakes for the
same webhook cannot both append.
"""

from pydantic import BaseModel

from connectors.google_sheets.google_sheets_client import GoogleSheetsClient
from src.jobs.sheet_write_queue import SheetWriteQueue
from src.utils.logging import get_logger, redact_secret
from src.utils.rate_limiter import rate_limited

logger = get_logger(__name__)

SECRETS_SHEET_TITLE = "webhook_secrets"
SECRETS_HEADER = ["webhook_id", "secret"]
# Written by the import tooling for webhooks whose secret has not been captured yet
PENDING_SECRET_PLACEHOLDER = "<pending-secret>"
RATE_LIMIT_RETRY_DELAY_SECONDS = 5

_SECRETS_COLUMNS = f"{SECRETS_SHEET_TITLE}!A:B"

# One retry after a fixed delay on Sheets throttling, then give up
_retry_once = rate_limited(
    max_retries=2, base_delay=RATE_LIMIT_RETRY_DELAY_SECONDS, max_jitter=0
)


class SecretPersistenceError(Exception):
    """A signing secret could not be written. Future deliveries for the webhook will fail verification."""


class WebhookSecretRecord(BaseModel):
    webhook_id: str
    secret: str


class SpreadsheetSecretStore:
    def __init__(self, sheets_client: GoogleSheetsClient, write_queue: SheetWriteQueue):
        self._sheets = sheets_client
        self._write_queue = write_queue
        # Spreadsheets confirmed to have the secrets sheet
        self._ready_spreadsheets: set[str] = set()

    @_retry_once
    async def _read_rows(self, spreadsheet_id: str) -> list[list[str]]:
        return await self._sheets.get_values(spreadsheet_id, _SECRETS_COLUMNS)

    @_retry_once
    async def _write_row(self, spreadsheet_id: str, row_number: int, values: list[str]) -> None:
        await self._sheets.update_values(
            spreadsheet_id,
            f"{SECRETS_SHEET_TITLE}!A{row_number}:B{row_number}",
            [values],
        )

    @_retry_once
    async def _append_row(self, spreadsheet_id: str, values: list[str]) -> None:
        await self._sheets.append_values(spreadsheet_id, _SECRETS_COLUMNS, [values])

    @_retry_once
    async def _has_secrets_sheet(self, spreadsheet_id: str) -> bool:
        if spreadsheet_id in self._ready_spreadsheets:
            return True

        titles = await self._sheets.get_sheet_titles(spreadsheet_id)
        if SECRETS_SHEET_TITLE in titles:
            self._ready_spreadsheets.add(spreadsheet_id)
            return True
        return False

    @_retry_once
    async def _create_secrets_sheet(self, spreadsheet_id: str) -> None:
        await self._sheets.batch_update(
            spreadsheet_id,
            [{"addSheet": {"properties": {"title": SECRETS_SHEET_TITLE, "hidden": True}}}],
        )
        logger.info("Created hidden secrets sheet", spreadsheet_id=spreadsheet_id)

    @_retry_once
    async def _write_header(self, spreadsheet_id: str) -> None:
        await self._sheets.update_values(
            spreadsheet_id, f"{SECRETS_SHEET_TITLE}!A1:B1", [SECRETS_HEADER]
        )

    async def _ensure_schema_now(self, spreadsheet_id: str) -> None:
        if await self._has_secrets_sheet(spreadsheet_id):
            return

        await self._create_secrets_sheet(spreadsheet_id)
        await self._write_header(spreadsheet_id)
        self._ready_spreadsheets.add(spreadsheet_id)

    @staticmethod
    def _find_row_number(rows: list[list[str]], webhook_id: str) -> int | None:
        # rows[0] is the header, data starts at sheet row 2
        for row_number, row in enumerate(rows[1:], start=2):
            if row and row[0] == webhook_id:
                return row_number
        return None

    async def ensure_schema(self, spreadsheet_id: str) -> None:
        """Create the hidden secrets sheet with its header if the spreadsheet lacks one."""
        await self._write_queue.submit(lambda: self._ensure_schema_now(spreadsheet_id))

    async def _upsert_now(self, spreadsheet_id: str, webhook_id: str, secret: str) -> None:
        try:
            await self._ensure_schema_now(spreadsheet_id)
            rows = await self._read_rows(spreadsheet_id)
            row_number = self._find_row_number(rows, webhook_id)

            if row_number is not None:
                await self._write_row(spreadsheet_id, row_number, [webhook_id, secret])
                logger.info("Updated webhook secret", row=row_number)
            else:
                await self._append_row(spreadsheet_id, [webhook_id, secret])
                logger.info("Appended webhook secret")
        except Exception as e:
            # Never surfaces as a rate limit error, the write queue must not requeue it forever
            raise SecretPersistenceError(
                f"Failed to persist secret for webhook {webhook_id}: {e}"
            ) from e

    async def upsert(self, spreadsheet_id: str, webhook_id: str, secret: str) -> None:
        """Store the secret for a webhook, overwriting any previous secret for the same id.

        Raises:
            SecretPersistenceError: If the secret could not be written
        """
        logger.info(
            "Persisting webhook secret",
            spreadsheet_id=spreadsheet_id,
            webhook_id=webhook_id,
            secret_preview=redact_secret(secret),
        )
        await self._write_queue.submit(
            lambda: self._upsert_now(spreadsheet_id, webhook_id, secret)
        )

    async def list_records(self, spreadsheet_id: str) -> list[WebhookSecretRecord]:
        """Every non-blank row of the secrets sheet, placeholders included."""
        if not await self._has_secrets_sheet(spreadsheet_id):
            return []

        rows = await self._read_rows(spreadsheet_id)
        records: list[WebhookSecretRecord] = []
        for row in rows[1:]:
            webhook_id = row[0] if len(row) > 0 else ""
            secret = row[1] if len(row) > 1 else ""
            if webhook_id or secret:
                records.append(WebhookSecretRecord(webhook_id=webhook_id, secret=secret))
        return records

    async def list_secrets(self, spreadsheet_id: str) -> set[str]:
        """Every secret currently usable for signature verification."""
        records = await self.list_records(spreadsheet_id)
        return {
            record.secret
            for record in records
            if record.secret and record.secret != PENDING_SECRET_PLACEHOLDER
        }

    async def find_secret(self, spreadsheet_id: str, webhook_id: str) -> str | None:
        """Usable secret stored for one webhook id, if any."""
        for record in await self.list_records(spreadsheet_id):
            if record.webhook_id == webhook_id and record.secret != PENDING_SECRET_PLACEHOLDER:
                return record.secret or None
        return None

    async def _delete_logical_now(self, spreadsheet_id: str, webhook_id: str) -> bool:
        if not await self._has_secrets_sheet(spreadsheet_id):
            return False

        rows = await self._read_rows(spreadsheet_id)
        row_number = self._find_row_number(rows, webhook_id)
        if row_number is None:
            return False

        await self._write_row(spreadsheet_id, row_number, ["", ""])
        logger.info("Blanked webhook secret", webhook_id=webhook_id, row=row_number)
        return True

    async def delete_logical(self, spreadsheet_id: str, webhook_id: str) -> bool:
        """Blank the row holding a webhook's secret. Returns whether a row was found."""
        return await self._write_queue.submit(
            lambda: self._delete_logical_now(spreadsheet_id, webhook_id)
        )
