from collections.abc import Sequence

from connectors.google_sheets.google_sheets_client import CellValue, GoogleSheetsClient
from connectors.google_sheets.google_sheets_utils import (
    columns_range,
    quote_sheet_name,
    row_range,
)
from src.utils.config import get_task_sheet_name
from src.utils.logging import get_logger

logger = get_logger(__name__)


class TaskSheet:
    """Row-level access to the task sheet, addressed by the task id column.

    Callers are expected to run these through the SheetWriteQueue when they write, the scan and
    the write of one upsert must not interleave with another's.
    """

    def __init__(
        self,
        sheets_client: GoogleSheetsClient,
        task_id_column_index: int,
        scan_width: int,
        sheet_name: str | None = None,
    ):
        self._sheets = sheets_client
        self.task_id_column_index = task_id_column_index
        self.scan_width = scan_width
        self.sheet_name = sheet_name or get_task_sheet_name()

    async def find_row(self, spreadsheet_id: str, task_id: str) -> int | None:
        """Linear scan of the task id column. Returns the 1-based sheet row number."""
        rows = await self._sheets.get_values(
            spreadsheet_id, columns_range(self.sheet_name, self.scan_width)
        )

        for row_number, row in enumerate(rows[1:], start=2):
            if len(row) > self.task_id_column_index and row[self.task_id_column_index] == task_id:
                return row_number

        logger.debug("Task not found in sheet", task_id=task_id, rows_scanned=len(rows))
        return None

    async def update_row(
        self, spreadsheet_id: str, row_number: int, values: Sequence[CellValue]
    ) -> None:
        if row_number < 2:
            raise ValueError(f"Row {row_number} is the header or out of range")

        await self._sheets.update_values(
            spreadsheet_id, row_range(self.sheet_name, row_number, len(values)), [list(values)]
        )

    async def append_row(self, spreadsheet_id: str, values: Sequence[CellValue]) -> None:
        await self._sheets.append_values(
            spreadsheet_id, columns_range(self.sheet_name, len(values)), [list(values)]
        )

    async def clear_row(self, spreadsheet_id: str, row_number: int, width: int) -> None:
        """Logical delete: blank the row's cells in place, later rows keep their numbers."""
        if row_number < 2:
            raise ValueError(f"Row {row_number} is the header or out of range")

        await self._sheets.clear_values(
            spreadsheet_id, row_range(self.sheet_name, row_number, width)
        )

    async def replace_contents(
        self, spreadsheet_id: str, rows: list[list[CellValue]]
    ) -> None:
        """Clear the whole sheet, write `rows` from A1 and auto-size the written columns."""
        sheet_range = quote_sheet_name(self.sheet_name)
        await self._sheets.clear_values(spreadsheet_id, sheet_range)
        await self._sheets.update_values(spreadsheet_id, f"{sheet_range}!A1", rows)

        sheet_id = await self._get_sheet_id(spreadsheet_id)
        width = max((len(row) for row in rows), default=0)
        if sheet_id is not None and width:
            await self._sheets.batch_update(
                spreadsheet_id,
                [
                    {
                        "autoResizeDimensions": {
                            "dimensions": {
                                "sheetId": sheet_id,
                                "dimension": "COLUMNS",
                                "startIndex": 0,
                                "endIndex": width,
                            }
                        }
                    }
                ],
            )

    async def _get_sheet_id(self, spreadsheet_id: str) -> int | None:
        spreadsheet = await self._sheets.get_spreadsheet(spreadsheet_id)
        for sheet in spreadsheet.get("sheets", []):
            properties = sheet.get("properties", {})
            if properties.get("title") == self.sheet_name:
                return properties.get("sheetId")
        return None
