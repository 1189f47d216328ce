"""Bulk projections of a workspace's tasks, for the read API and the sheet export."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

from connectors.asana.asana_task_row import (
    BASE_HEADER,
    TASK_ID_COLUMN_INDEX,
    ProcessedTaskRow,
    TaskRowSchema,
)
from connectors.asana.client.asana_api_models import AsanaProject, AsanaTask
from connectors.asana.client.asana_client import AsanaClient
from connectors.google_sheets.google_sheets_client import CellValue, GoogleSheetsClient
from connectors.google_sheets.sheets_secret_store import SpreadsheetSecretStore
from connectors.google_sheets.task_sheet import TaskSheet
from src.jobs.sheet_write_queue import SheetWriteQueue
from src.utils.config import get_special_assignees
from src.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ProjectTasks:
    project_name: str
    project_id: str
    raw_task_count: int = 0
    tasks: list[ProcessedTaskRow] = field(default_factory=list)
    rows: list[list[CellValue]] = field(default_factory=list)
    error: str | None = None

    def to_api_dict(self) -> dict:
        data = {
            "project_name": self.project_name,
            "project_id": self.project_id,
            "task_count": len(self.tasks),
            "raw_task_count": self.raw_task_count,
            "tasks": [task.to_api_dict() for task in self.tasks],
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class ExportSummary:
    spreadsheet_id: str
    workspace_id: str
    project_count: int
    task_count: int

    @property
    def spreadsheet_url(self) -> str:
        return f"https://docs.google.com/spreadsheets/d/{self.spreadsheet_id}"


class WorkspaceTaskCollector:
    def __init__(
        self,
        asana_client: AsanaClient,
        schema: TaskRowSchema | None = None,
        special_assignees: frozenset[str] | None = None,
    ):
        self.asana_client = asana_client
        self.schema = schema or TaskRowSchema()
        self.special_assignees = (
            get_special_assignees() if special_assignees is None else special_assignees
        )

    def is_completed(self, task: AsanaTask) -> bool:
        return task.completed

    def is_exportable(self, task: AsanaTask) -> bool:
        """Completed tasks, plus open tasks held by a special assignee."""
        return task.completed or task.assignee_name in self.special_assignees

    async def collect_project(
        self,
        project: AsanaProject,
        workspace_id: str,
        include: Callable[[AsanaTask], bool],
    ) -> ProjectTasks:
        result = ProjectTasks(project_name=project.name or "", project_id=project.gid)
        try:
            tasks = await self.asana_client.list_project_tasks(project.gid)
        except Exception as e:
            logger.error(f"Error fetching tasks for project {project.name}: {e}")
            result.error = str(e)
            return result

        result.raw_task_count = len(tasks)
        for task in tasks:
            if not include(task):
                continue
            processed, _ = self.schema.project_task(task, workspace_id)
            result.tasks.append(processed)
            result.rows.append(
                self.schema.build_row(processed, project.name, project.gid, workspace_id)
            )
        return result

    async def collect_completed(self, workspace_id: str) -> list[ProjectTasks]:
        """Active projects with their completed tasks, most tasks first. Empty projects dropped."""
        projects = await self.asana_client.list_projects(workspace_id)
        results = await asyncio.gather(
            *(self.collect_project(p, workspace_id, self.is_completed) for p in projects)
        )
        with_tasks = [r for r in results if r.tasks]
        return sorted(with_tasks, key=lambda r: len(r.tasks), reverse=True)


class WorkspaceExportService:
    """Rewrite a spreadsheet's task sheet from the current state of a workspace."""

    def __init__(
        self,
        collector: WorkspaceTaskCollector,
        sheets_client: GoogleSheetsClient,
        secret_store: SpreadsheetSecretStore,
        write_queue: SheetWriteQueue,
        sheet_name: str | None = None,
        project_pause: float = 1.0,
        batch_size: int = 5,
        batch_pause: float = 5.0,
    ):
        self.collector = collector
        self.secret_store = secret_store
        self.write_queue = write_queue
        self.task_sheet = TaskSheet(
            sheets_client,
            task_id_column_index=TASK_ID_COLUMN_INDEX,
            scan_width=len(BASE_HEADER),
            sheet_name=sheet_name,
        )
        self.project_pause = project_pause
        self.batch_size = batch_size
        self.batch_pause = batch_pause

    async def collect(self, workspace_id: str) -> list[ProjectTasks]:
        """Exportable tasks of every active project, projects sorted by name.

        Projects are walked one at a time with pauses, a full workspace easily has hundreds.
        """
        projects = await self.collector.asana_client.list_projects(workspace_id)
        logger.info(f"Found {len(projects)} active projects", workspace_id=workspace_id)

        collected: list[ProjectTasks] = []
        for index, project in enumerate(projects, start=1):
            result = await self.collector.collect_project(
                project, workspace_id, self.collector.is_exportable
            )
            if result.rows:
                collected.append(result)

            await asyncio.sleep(self.project_pause)
            if index % self.batch_size == 0 and index < len(projects):
                logger.info(f"Processed {index}/{len(projects)} projects, pausing")
                await asyncio.sleep(self.batch_pause)

        return sorted(collected, key=lambda r: r.project_name)

    def build_rows(
        self, workspace_id: str, collected: list[ProjectTasks]
    ) -> list[list[CellValue]]:
        """Header plus the rows of every collected project, in order."""
        rows: list[list[CellValue]] = [list(self.collector.schema.header(workspace_id))]
        for result in collected:
            rows.extend(result.rows)
        return rows

    async def export(self, workspace_id: str, spreadsheet_id: str) -> ExportSummary:
        collected = await self.collect(workspace_id)
        rows = self.build_rows(workspace_id, collected)

        await self.write_queue.submit(
            lambda: self.task_sheet.replace_contents(spreadsheet_id, rows)
        )
        await self.secret_store.ensure_schema(spreadsheet_id)

        summary = ExportSummary(
            spreadsheet_id=spreadsheet_id,
            workspace_id=workspace_id,
            project_count=len(collected),
            task_count=len(rows) - 1,
        )
        logger.info(
            "Workspace exported",
            workspace_id=workspace_id,
            spreadsheet_id=spreadsheet_id,
            task_count=summary.task_count,
        )
        return summary
