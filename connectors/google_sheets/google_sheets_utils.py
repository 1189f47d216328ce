"""Google Sheets client utilities."""

import re


def sanitize_google_api_error(error: Exception) -> str:
    """Sanitize Google API HttpError messages for New Relic grouping.

    Google API HttpError exceptions include full URLs with variable spreadsheet IDs,
    which prevents New Relic from grouping similar errors together. This function
    extracts the essential error information (status code, error type, reason)
    while removing variable identifiers.

    Examples:
        Input:  "<HttpError 403 when requesting https://sheets.googleapis.com/v4/spreadsheets/1AbC/values/..."
        Output: "HttpError 403: PERMISSION_DENIED (sheets API)"
    """
    error_str = str(error)

    status_match = re.search(r"HttpError (\d+)", error_str)
    status_code = status_match.group(1) if status_match else "unknown"

    api_match = re.search(r"https://(\w+)\.googleapis\.com/", error_str)
    api_name = api_match.group(1) if api_match else "google-api"

    reason_match = re.search(r"'(?:reason|status)': '(\w+)'", error_str)
    reason = reason_match.group(1) if reason_match else "unknown"

    return f"HttpError {status_code}: {reason} ({api_name} API)"


def column_letter(column_number: int) -> str:
    """1-based column number to A1 column letters (1 -> A, 27 -> AA)."""
    if column_number < 1:
        raise ValueError(f"Column numbers start at 1, got {column_number}")

    letters = ""
    while column_number:
        column_number, remainder = divmod(column_number - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def quote_sheet_name(sheet_name: str) -> str:
    """Sheet names with anything but letters, digits and underscores must be single-quoted in A1."""
    if re.fullmatch(r"\w+", sheet_name):
        return sheet_name
    return "'" + sheet_name.replace("'", "''") + "'"


def columns_range(sheet_name: str, width: int) -> str:
    """Whole columns A..width, e.g. Sheet1!A:S."""
    return f"{quote_sheet_name(sheet_name)}!A:{column_letter(width)}"


def row_range(sheet_name: str, row_number: int, width: int) -> str:
    """One row, e.g. Sheet1!A5:S5. Row numbers are 1-based and include the header row."""
    last_column = column_letter(width)
    return f"{quote_sheet_name(sheet_name)}!A{row_number}:{last_column}{row_number}"
