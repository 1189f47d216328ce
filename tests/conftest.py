import pytest

from src.jobs.sheet_write_queue import SheetWriteQueue
from tests.fakes import FakeSheetsClient


@pytest.fixture(autouse=True)
def relay_env(monkeypatch):
    """Tests never pick up a developer's relay configuration."""
    for key in (
        "SPREADSHEET_ID",
        "ASANA_WORKSPACE_ID",
        "SPECIAL_ASSIGNEES",
        "WORKSPACE_EXTRA_FIELDS",
        "TASK_SHEET_NAME",
        "WEBHOOK_PATH",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def sheets_client() -> FakeSheetsClient:
    return FakeSheetsClient()


@pytest.fixture
def write_queue() -> SheetWriteQueue:
    return SheetWriteQueue(min_delay=0, rate_limit_backoff=(0, 0))
