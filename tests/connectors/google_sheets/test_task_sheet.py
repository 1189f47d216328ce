"""Tests for row-level access to the task sheet."""

import pytest

from connectors.google_sheets import TaskSheet

SPREADSHEET_ID = "SHEET1"


@pytest.fixture
def task_sheet(sheets_client):
    return TaskSheet(sheets_client, task_id_column_index=2, scan_width=3, sheet_name="Sheet1")


@pytest.fixture
def rows(sheets_client):
    rows = sheets_client.sheet(SPREADSHEET_ID)
    rows.extend(
        [
            ["Name", "Project ID", "Task ID"],
            ["First", "p1", "t1"],
            ["Second", "p1", "t2"],
        ]
    )
    return rows


class TestFindRow:
    @pytest.mark.asyncio
    async def test_returns_sheet_row_number(self, task_sheet, rows):
        assert await task_sheet.find_row(SPREADSHEET_ID, "t1") == 2
        assert await task_sheet.find_row(SPREADSHEET_ID, "t2") == 3

    @pytest.mark.asyncio
    async def test_header_is_never_matched(self, task_sheet, rows):
        assert await task_sheet.find_row(SPREADSHEET_ID, "Task ID") is None

    @pytest.mark.asyncio
    async def test_short_rows_are_skipped(self, task_sheet, rows):
        rows.insert(1, ["Only a name"])
        assert await task_sheet.find_row(SPREADSHEET_ID, "t2") == 4

    @pytest.mark.asyncio
    async def test_scans_task_id_columns(self, task_sheet, rows, sheets_client):
        await task_sheet.find_row(SPREADSHEET_ID, "t1")
        assert ("get_values", "Sheet1!A:C") in sheets_client.calls


class TestWrites:
    @pytest.mark.asyncio
    async def test_update_row(self, task_sheet, rows, sheets_client):
        await task_sheet.update_row(SPREADSHEET_ID, 3, ["Renamed", "p1", "t2"])

        assert rows[2] == ["Renamed", "p1", "t2"]
        assert ("update_values", "Sheet1!A3:C3") in sheets_client.calls

    @pytest.mark.asyncio
    async def test_append_row(self, task_sheet, rows):
        await task_sheet.append_row(SPREADSHEET_ID, ["Third", "p2", "t3"])
        assert rows[3] == ["Third", "p2", "t3"]

    @pytest.mark.asyncio
    async def test_clear_row(self, task_sheet, rows, sheets_client):
        await task_sheet.clear_row(SPREADSHEET_ID, 2, width=4)

        assert rows[1] == ["", "", ""]
        assert rows[2] == ["Second", "p1", "t2"]
        assert ("clear_values", "Sheet1!A2:D2") in sheets_client.calls

    @pytest.mark.asyncio
    @pytest.mark.parametrize("row_number", [0, 1])
    async def test_header_row_is_protected(self, task_sheet, rows, row_number):
        with pytest.raises(ValueError):
            await task_sheet.update_row(SPREADSHEET_ID, row_number, ["x"])
        with pytest.raises(ValueError):
            await task_sheet.clear_row(SPREADSHEET_ID, row_number, width=3)


class TestReplaceContents:
    @pytest.mark.asyncio
    async def test_clears_writes_and_resizes(self, task_sheet, rows, sheets_client):
        await task_sheet.replace_contents(
            SPREADSHEET_ID, [["Name", "Project ID", "Task ID"], ["New", "p9", "t9"]]
        )

        non_empty = [row for row in rows if any(cell != "" for cell in row)]
        assert non_empty == [["Name", "Project ID", "Task ID"], ["New", "p9", "t9"]]
        assert [c[0] for c in sheets_client.calls[:2]] == ["clear_values", "update_values"]
        assert sheets_client.batch_requests == [
            {
                "autoResizeDimensions": {
                    "dimensions": {
                        "sheetId": 0,
                        "dimension": "COLUMNS",
                        "startIndex": 0,
                        "endIndex": 3,
                    }
                }
            }
        ]

    @pytest.mark.asyncio
    async def test_quotes_sheet_names_with_spaces(self, sheets_client):
        sheets_client.spreadsheets[SPREADSHEET_ID] = {"Completed Tasks": []}
        task_sheet = TaskSheet(
            sheets_client, task_id_column_index=0, scan_width=1, sheet_name="Completed Tasks"
        )

        await task_sheet.replace_contents(SPREADSHEET_ID, [["Task ID"], ["t1"]])

        assert ("clear_values", "'Completed Tasks'") in sheets_client.calls
        assert ("update_values", "'Completed Tasks'!A1") in sheets_client.calls
        assert sheets_client.sheet(SPREADSHEET_ID, "Completed Tasks") == [["Task ID"], ["t1"]]
