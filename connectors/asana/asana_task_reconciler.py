"""
Apply Asana task change events to the task sheet.

Policy for `added`/`changed`:
- the task already has a row: update it in place, whatever its state
- no row, and the task is completed or assigned to a special assignee: append a row
- otherwise: nothing is written

`removed`/`deleted` blank the task's row if there is one.
"""

from enum import StrEnum

from connectors.asana.asana_task_row import BASE_HEADER, TASK_ID_COLUMN_INDEX, TaskRowSchema
from connectors.asana.client.asana_api_models import AsanaWebhookEvent
from connectors.asana.client.asana_client import AsanaClient
from connectors.google_sheets.google_sheets_client import GoogleSheetsClient
from connectors.google_sheets.task_sheet import TaskSheet
from src.jobs.sheet_write_queue import SheetWriteQueue
from src.utils.config import get_special_assignees
from src.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

UPSERT_ACTIONS = frozenset({"added", "changed"})
DELETE_ACTIONS = frozenset({"removed", "deleted"})


class ReconcileOutcome(StrEnum):
    UPDATED = "updated"
    APPENDED = "appended"
    SKIPPED = "skipped"
    CLEARED = "cleared"
    NOT_FOUND = "not_found"
    IGNORED = "ignored"


class AsanaTaskReconciler:
    def __init__(
        self,
        asana_client: AsanaClient,
        sheets_client: GoogleSheetsClient,
        write_queue: SheetWriteQueue,
        schema: TaskRowSchema | None = None,
        special_assignees: frozenset[str] | None = None,
        sheet_name: str | None = None,
    ):
        self._asana = asana_client
        self._write_queue = write_queue
        self.schema = schema or TaskRowSchema()
        self.special_assignees = (
            get_special_assignees() if special_assignees is None else special_assignees
        )
        self.task_sheet = TaskSheet(
            sheets_client,
            task_id_column_index=TASK_ID_COLUMN_INDEX,
            scan_width=len(BASE_HEADER),
            sheet_name=sheet_name,
        )

    async def reconcile(self, spreadsheet_id: str, event: AsanaWebhookEvent) -> ReconcileOutcome:
        resource = event.resource
        with LogContext(
            spreadsheet_id=spreadsheet_id, action=event.action, resource_gid=resource.gid
        ):
            if resource.resource_type != "task":
                logger.info("Ignoring non-task event", resource_type=resource.resource_type)
                return ReconcileOutcome.IGNORED

            if event.action in UPSERT_ACTIONS:
                return await self._upsert_task(spreadsheet_id, resource.gid)
            if event.action in DELETE_ACTIONS:
                return await self._delete_task(spreadsheet_id, resource.gid)

            logger.info("Ignoring unsupported task action")
            return ReconcileOutcome.IGNORED

    async def _upsert_task(self, spreadsheet_id: str, task_gid: str) -> ReconcileOutcome:
        task = await self._asana.get_task(task_gid)
        processed, row = self.schema.project_task(task)
        is_special = processed.assignee_name in self.special_assignees

        logger.info(
            "Fetched task",
            task_name=processed.task_name,
            assignee=processed.assignee_name,
            completed=processed.completed,
            special_assignee=is_special,
        )

        async def write() -> ReconcileOutcome:
            row_number = await self.task_sheet.find_row(spreadsheet_id, task.gid)
            if row_number is not None:
                await self.task_sheet.update_row(spreadsheet_id, row_number, row)
                logger.info("Updated task row", row=row_number)
                return ReconcileOutcome.UPDATED

            if processed.completed or is_special:
                await self.task_sheet.append_row(spreadsheet_id, row)
                logger.info("Appended task row")
                return ReconcileOutcome.APPENDED

            logger.info("Task is not completed and not specially assigned, skipping")
            return ReconcileOutcome.SKIPPED

        return await self._write_queue.submit(write)

    async def _delete_task(self, spreadsheet_id: str, task_gid: str) -> ReconcileOutcome:
        async def clear() -> ReconcileOutcome:
            row_number = await self.task_sheet.find_row(spreadsheet_id, task_gid)
            if row_number is None:
                logger.info("Task not in sheet, nothing to delete")
                return ReconcileOutcome.NOT_FOUND

            await self.task_sheet.clear_row(spreadsheet_id, row_number, self.schema.max_width)
            logger.info("Cleared task row", row=row_number)
            return ReconcileOutcome.CLEARED

        return await self._write_queue.submit(clear)
