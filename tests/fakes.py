"""In-memory stand-ins for the Google Sheets client, for relay tests."""

import re
from typing import Any

_RANGE_RE = re.compile(
    r"^(?:'(?P<quoted>(?:[^']|'')+)'|(?P<plain>[^!]+))"
    r"(?:!(?P<c1>[A-Z]+)(?P<r1>\d*)(?::(?P<c2>[A-Z]+)(?P<r2>\d*))?)?$"
)


def _column_number(letters: str) -> int:
    number = 0
    for letter in letters:
        number = number * 26 + (ord(letter) - ord("A") + 1)
    return number


def _parse_range(range_: str) -> tuple[str, int, int | None, int | None, int | None]:
    """(sheet title, first column, first row, last column, last row), 1-based, None if open."""
    match = _RANGE_RE.match(range_)
    if match is None:
        raise ValueError(f"Unsupported range {range_!r}")

    title = match["plain"] or match["quoted"].replace("''", "'")
    first_col = _column_number(match["c1"]) if match["c1"] else 1
    first_row = int(match["r1"]) if match["r1"] else None
    last_col = _column_number(match["c2"]) if match["c2"] else None
    last_row = int(match["r2"]) if match["r2"] else None

    # A single cell like Sheet1!A1 is the start of a write, not a bounded box
    if match["c1"] and not match["c2"]:
        last_col = None
    return title, first_col, first_row, last_col, last_row


def _trim(row: list[Any]) -> list[Any]:
    row = list(row)
    while row and row[-1] == "":
        row.pop()
    return row


class FakeSheetsClient:
    """Spreadsheets as dicts of sheet title -> rows of cells.

    Unknown spreadsheets start with an empty `Sheet1`. Every call is recorded in `calls`, and
    `failures[method]` holds exceptions raised (one per call) before the method does anything.
    """

    def __init__(self) -> None:
        self.spreadsheets: dict[str, dict[str, list[list[Any]]]] = {}
        self.hidden: set[tuple[str, str]] = set()
        self.calls: list[tuple[str, str]] = []
        self.batch_requests: list[dict[str, Any]] = []
        self.failures: dict[str, list[Exception]] = {}

    def sheet(self, spreadsheet_id: str, title: str = "Sheet1") -> list[list[Any]]:
        return self._spreadsheet(spreadsheet_id).setdefault(title, [])

    def _spreadsheet(self, spreadsheet_id: str) -> dict[str, list[list[Any]]]:
        return self.spreadsheets.setdefault(spreadsheet_id, {"Sheet1": []})

    def _record(self, method: str, range_: str = "") -> None:
        self.calls.append((method, range_))
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    def _rows_for(self, spreadsheet_id: str, title: str) -> list[list[Any]]:
        sheets = self._spreadsheet(spreadsheet_id)
        if title not in sheets:
            raise ValueError(f"Unable to parse range: {title}")
        return sheets[title]

    @staticmethod
    def _set_cell(rows: list[list[Any]], row_number: int, col_number: int, value: Any) -> None:
        while len(rows) < row_number:
            rows.append([])
        row = rows[row_number - 1]
        while len(row) < col_number:
            row.append("")
        row[col_number - 1] = value

    async def get_spreadsheet(
        self, spreadsheet_id: str, fields: str = "sheets.properties"
    ) -> dict[str, Any]:
        self._record("get_spreadsheet")
        return {
            "sheets": [
                {
                    "properties": {
                        "sheetId": index,
                        "title": title,
                        "hidden": (spreadsheet_id, title) in self.hidden,
                    }
                }
                for index, title in enumerate(self._spreadsheet(spreadsheet_id))
            ]
        }

    async def get_sheet_titles(self, spreadsheet_id: str) -> list[str]:
        self._record("get_sheet_titles")
        return list(self._spreadsheet(spreadsheet_id))

    async def get_values(self, spreadsheet_id: str, range_: str) -> list[list[Any]]:
        self._record("get_values", range_)
        title, first_col, first_row, last_col, last_row = _parse_range(range_)
        rows = self._rows_for(spreadsheet_id, title)

        start = (first_row or 1) - 1
        end = last_row if last_row is not None else len(rows)
        values = [
            [cell if isinstance(cell, str) else str(cell) for cell in row[first_col - 1 : last_col]]
            for row in rows[start:end]
        ]
        values = [_trim(row) for row in values]
        while values and not values[-1]:
            values.pop()
        return values

    async def update_values(
        self, spreadsheet_id: str, range_: str, values: list[list[Any]]
    ) -> dict[str, Any]:
        self._record("update_values", range_)
        title, first_col, first_row, _, _ = _parse_range(range_)
        rows = self._rows_for(spreadsheet_id, title)

        for row_offset, row_values in enumerate(values):
            for col_offset, value in enumerate(row_values):
                self._set_cell(
                    rows, (first_row or 1) + row_offset, first_col + col_offset, value
                )
        return {"updatedRows": len(values)}

    async def append_values(
        self, spreadsheet_id: str, range_: str, values: list[list[Any]]
    ) -> dict[str, Any]:
        self._record("append_values", range_)
        title, first_col, _, _, _ = _parse_range(range_)
        rows = self._rows_for(spreadsheet_id, title)

        last_used = max((i + 1 for i, row in enumerate(rows) if _trim(row)), default=0)
        for offset, row_values in enumerate(values):
            for col_offset, value in enumerate(row_values):
                self._set_cell(rows, last_used + 1 + offset, first_col + col_offset, value)
        return {"updates": {"updatedRows": len(values)}}

    async def clear_values(self, spreadsheet_id: str, range_: str) -> dict[str, Any]:
        self._record("clear_values", range_)
        title, first_col, first_row, last_col, last_row = _parse_range(range_)
        rows = self._rows_for(spreadsheet_id, title)

        start = (first_row or 1) - 1
        end = last_row if last_row is not None else len(rows)
        for row in rows[start:end]:
            stop = len(row) if last_col is None else min(last_col, len(row))
            for index in range(first_col - 1, stop):
                row[index] = ""
        return {"clearedRange": range_}

    async def batch_update(
        self, spreadsheet_id: str, requests: list[dict[str, Any]]
    ) -> dict[str, Any]:
        self._record("batch_update")
        for request in requests:
            self.batch_requests.append(request)
            if "addSheet" in request:
                properties = request["addSheet"]["properties"]
                self._spreadsheet(spreadsheet_id)[properties["title"]] = []
                if properties.get("hidden"):
                    self.hidden.add((spreadsheet_id, properties["title"]))
        return {"replies": [{} for _ in requests]}
