import asyncio
from collections.abc import Callable
from typing import Any

import google.auth.exceptions
import httplib2
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from connectors.google_sheets.google_sheets_utils import sanitize_google_api_error
from src.utils.config import get_google_sheets_credentials_info
from src.utils.logging import get_logger
from src.utils.rate_limiter import RateLimitedError, parse_retry_after

logger = get_logger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
HTTP_TIMEOUT_SECONDS = 60

type CellValue = str | int | float | bool


class SheetsApiError(Exception):
    """Non-retryable Google Sheets API failure (4xx other than 429)."""

    def __init__(self, status_code: int | None, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class GoogleSheetsClient:
    """Async facade over the blocking Google Sheets v4 client.

    Each call runs in a worker thread on its own httplib2 transport, httplib2.Http is not
    thread-safe. Quota errors (429), server errors and transport failures are raised as
    RateLimitedError, everything else as SheetsApiError.
    """

    def __init__(self, credentials_info: dict[str, Any] | None = None):
        """Initialize the client with service account authentication.

        Args:
            credentials_info: Service account JSON document. Read from the environment when omitted.
        """
        self._credentials_info = credentials_info
        self._credentials: service_account.Credentials | None = None
        self._service = None

    def _get_credentials(self) -> service_account.Credentials:
        if self._credentials is None:
            info = self._credentials_info or get_google_sheets_credentials_info()
            self._credentials = service_account.Credentials.from_service_account_info(
                info, scopes=SHEETS_SCOPES
            )
        return self._credentials

    def _get_service(self):
        """Get or create the Sheets API service. Only used to build requests."""
        if not self._service:
            credentials = self._get_credentials()
            self._service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
            logger.info(
                "Google Sheets client initialized",
                service_account=credentials.service_account_email,
            )
        return self._service

    def _authorized_http(self) -> AuthorizedHttp:
        return AuthorizedHttp(
            self._get_credentials(), http=httplib2.Http(timeout=HTTP_TIMEOUT_SECONDS)
        )

    async def _execute(self, description: str, make_request: Callable[[Any], Any]) -> Any:
        # Requests are built on the event loop, only execute() runs in the worker thread
        request = make_request(self._get_service())
        http = self._authorized_http()

        try:
            return await asyncio.to_thread(request.execute, http=http)
        except HttpError as e:
            status = e.resp.status if e.resp is not None else None
            sanitized = sanitize_google_api_error(e)

            if status == 429 or (status is not None and status >= 500):
                retry_after = (
                    parse_retry_after(e.resp.get("retry-after")) if e.resp is not None else None
                )
                logger.warning(f"Sheets {description} throttled: {sanitized}")
                raise RateLimitedError(retry_after=retry_after, message=sanitized) from e

            logger.error(f"Sheets {description} failed: {sanitized}", error_raw=str(e))
            raise SheetsApiError(status, sanitized) from e
        except TimeoutError as e:
            msg = f"Sheets {description} timed out"
            logger.warning(msg)
            raise RateLimitedError(message=msg) from e
        except (
            OSError,
            httplib2.HttpLib2Error,
            google.auth.exceptions.TransportError,
        ) as e:
            msg = f"Sheets {description} transport error: {type(e).__name__}"
            logger.warning(msg, error=str(e))
            raise RateLimitedError(message=msg) from e

    async def get_spreadsheet(
        self, spreadsheet_id: str, fields: str = "sheets.properties"
    ) -> dict[str, Any]:
        return await self._execute(
            "get spreadsheet",
            lambda service: service.spreadsheets().get(
                spreadsheetId=spreadsheet_id, fields=fields
            ),
        )

    async def get_sheet_titles(self, spreadsheet_id: str) -> list[str]:
        spreadsheet = await self.get_spreadsheet(spreadsheet_id)
        return [sheet["properties"]["title"] for sheet in spreadsheet.get("sheets", [])]

    async def get_values(self, spreadsheet_id: str, range_: str) -> list[list[Any]]:
        """Read a range. Trailing empty rows and cells are omitted by the API."""
        result = await self._execute(
            "get values",
            lambda service: service.spreadsheets()
            .values()
            .get(spreadsheetId=spreadsheet_id, range=range_),
        )
        return result.get("values", [])

    async def update_values(
        self, spreadsheet_id: str, range_: str, values: list[list[CellValue]]
    ) -> dict[str, Any]:
        return await self._execute(
            "update values",
            lambda service: service.spreadsheets()
            .values()
            .update(
                spreadsheetId=spreadsheet_id,
                range=range_,
                valueInputOption="RAW",
                body={"values": values},
            ),
        )

    async def append_values(
        self, spreadsheet_id: str, range_: str, values: list[list[CellValue]]
    ) -> dict[str, Any]:
        return await self._execute(
            "append values",
            lambda service: service.spreadsheets()
            .values()
            .append(
                spreadsheetId=spreadsheet_id,
                range=range_,
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": values},
            ),
        )

    async def clear_values(self, spreadsheet_id: str, range_: str) -> dict[str, Any]:
        return await self._execute(
            "clear values",
            lambda service: service.spreadsheets()
            .values()
            .clear(spreadsheetId=spreadsheet_id, range=range_, body={}),
        )

    async def batch_update(
        self, spreadsheet_id: str, requests: list[dict[str, Any]]
    ) -> dict[str, Any]:
        return await self._execute(
            "batch update",
            lambda service: service.spreadsheets().batchUpdate(
                spreadsheetId=spreadsheet_id, body={"requests": requests}
            ),
        )
