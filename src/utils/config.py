"""Configuration utility for the Asana → Sheets relay.

This module provides centralized configuration management with:
- Environment variables as the only source
- Type-safe access to configuration values
- Defaults for the task row schema (custom field allow-lists, special assignees)
"""

import json
import os
from typing import Any

# Custom fields projected into every task row, in column order.
DEFAULT_CUSTOM_FIELD_NAMES: tuple[str, ...] = (
    "Worker",
    "Status",
    "Paid with...",
    "Deposit",
    "Bonus",
    "Max bet",
    "WG",
    "Max win",
    "Balance",
    "Groups",
    "Received",
    "RM/BM",
)

# Workspaces that carry additional trailing columns. The lowercase "balance" field is a
# separate custom field in this workspace, not a duplicate of "Balance".
DEFAULT_WORKSPACE_EXTRA_FIELDS: dict[str, tuple[str, ...]] = {
    "1205846480740952": ("balance",),
}

DEFAULT_SPECIAL_ASSIGNEES: tuple[str, ...] = ("Manager", "Withdrawals", "Withdraws")


def parse_config_value(value: str) -> str | bool | int | float:
    if value.lower() == "true":
        return True
    elif value.lower() == "false":
        return False
    else:
        # Try to parse as a number
        try:
            return int(value)
        except ValueError:
            try:
                return float(value)
            except ValueError:
                # Return as string
                return value


def get_config_value(key: str, default: Any = None) -> Any:
    """Get a configuration value from environment variables.

    Args:
        key: Configuration key name (e.g., "ASANA_WORKSPACE_ID")
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    env_value = os.environ.get(key)
    if env_value is not None:
        return parse_config_value(env_value)

    return default


def get_config_value_str(key: str) -> str | None:
    """
    Get a configuration value from environment variables. But sometimes you just want a string.
    Asana gids and spreadsheet ids look like numbers and must not be parsed as such.
    """
    value = os.environ.get(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def require_config_value(key: str) -> str:
    value = os.environ.get(key)
    if value is None:
        raise ValueError(f"Environment variable {key} is required")
    return value


def get_relay_environment() -> str:
    """Get relay environment from env var."""
    return get_config_value("RELAY_ENVIRONMENT", "local")


def get_asana_access_token() -> str:
    return require_config_value("ASANA_ACCESS_TOKEN")


def get_default_workspace_id() -> str | None:
    return get_config_value_str("ASANA_WORKSPACE_ID")


def get_default_spreadsheet_id() -> str | None:
    """Spreadsheet used when a webhook request carries no sheetId query parameter."""
    return get_config_value_str("SPREADSHEET_ID")


def get_task_sheet_name() -> str:
    return get_config_value_str("TASK_SHEET_NAME") or "Sheet1"


def get_google_sheets_credentials_info() -> dict[str, Any]:
    """Load the Google service account used for Sheets access.

    GOOGLE_SHEETS_CREDENTIALS holds the JSON document itself, GOOGLE_SHEETS_CREDENTIALS_FILE
    points at a file containing it.

    Raises:
        ValueError: If no credentials are configured or they are malformed
    """
    raw = get_config_value_str("GOOGLE_SHEETS_CREDENTIALS")
    if raw is None:
        path = get_config_value_str("GOOGLE_SHEETS_CREDENTIALS_FILE")
        if path is None:
            raise ValueError(
                "No Google Sheets credentials found. Set GOOGLE_SHEETS_CREDENTIALS or "
                "GOOGLE_SHEETS_CREDENTIALS_FILE"
            )
        with open(path, encoding="utf-8") as f:
            raw = f.read()

    try:
        info = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid Google Sheets credentials format: {e}") from e

    if not info.get("client_email") or not info.get("private_key"):
        raise ValueError("Missing required credentials (client_email or private_key)")

    return info


def get_special_assignees() -> frozenset[str]:
    """Assignee names whose tasks are written to the sheet even before completion."""
    raw = get_config_value_str("SPECIAL_ASSIGNEES")
    if raw is None:
        return frozenset(DEFAULT_SPECIAL_ASSIGNEES)
    return frozenset(name.strip() for name in raw.split(",") if name.strip())


def get_workspace_extra_fields() -> dict[str, tuple[str, ...]]:
    """Per-workspace extra custom fields, appended after the default columns.

    WORKSPACE_EXTRA_FIELDS is a JSON object mapping workspace gid to a list of field names.
    """
    raw = get_config_value_str("WORKSPACE_EXTRA_FIELDS")
    if raw is None:
        return dict(DEFAULT_WORKSPACE_EXTRA_FIELDS)

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"WORKSPACE_EXTRA_FIELDS must be a JSON object: {e}") from e

    if not isinstance(parsed, dict):
        raise ValueError("WORKSPACE_EXTRA_FIELDS must be a JSON object")

    return {str(workspace_id): tuple(fields) for workspace_id, fields in parsed.items()}


def get_sheet_write_min_delay() -> float:
    return float(get_config_value("SHEET_WRITE_MIN_DELAY_SECONDS", 1.0))


def get_webhook_path() -> str:
    return get_config_value_str("WEBHOOK_PATH") or "/receiveWebhook"
