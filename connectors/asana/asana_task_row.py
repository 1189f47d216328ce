"""
Projection of Asana tasks into task sheet rows.

Row layout (row 1 of the sheet is this header):

    Project Name, Task Name, Assignee, Completed At,
    <custom fields, DEFAULT_CUSTOM_FIELD_NAMES order>,
    Project ID, Task ID, Completed,
    <workspace specific extra fields>

Task ID is always column R (index 17), it identifies a task's row.
"""

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel

from connectors.asana.client.asana_api_models import AsanaTask
from src.utils.config import DEFAULT_CUSTOM_FIELD_NAMES, get_workspace_extra_fields

LEADING_COLUMNS = ("Project Name", "Task Name", "Assignee", "Completed At")
TRAILING_COLUMNS = ("Project ID", "Task ID", "Completed")

BASE_HEADER: tuple[str, ...] = LEADING_COLUMNS + DEFAULT_CUSTOM_FIELD_NAMES + TRAILING_COLUMNS
TASK_ID_COLUMN_INDEX = BASE_HEADER.index("Task ID")

type FieldValue = str | int | float | None


class ProcessedTaskRow(BaseModel):
    task_name: str
    task_id: str
    assignee_name: str | None = None
    completed: bool = False
    completed_at: str | None = None
    custom_field_values: dict[str, FieldValue] = {}

    @classmethod
    def from_task(cls, task: AsanaTask, allowed_fields: Iterable[str]) -> "ProcessedTaskRow":
        allowed = set(allowed_fields)
        return cls(
            task_name=task.name or "",
            task_id=task.gid,
            assignee_name=task.assignee_name,
            completed=task.completed,
            completed_at=task.completed_at,
            custom_field_values={
                field.name: field.cell_value()
                for field in task.custom_fields
                if field.name in allowed
            },
        )

    def to_api_dict(self) -> dict[str, Any]:
        """Flat shape served by the read API."""
        return {
            "task_name": self.task_name,
            "task_id": self.task_id,
            "assignee": self.assignee_name,
            "completed_at": self.completed_at,
            "completed": self.completed,
            **self.custom_field_values,
        }


def _cell(value: FieldValue) -> str | int | float:
    return "" if value is None else value


class TaskRowSchema:
    """Column layout of the task sheet, per workspace."""

    def __init__(self, workspace_extra_fields: dict[str, tuple[str, ...]] | None = None):
        self.workspace_extra_fields = (
            get_workspace_extra_fields()
            if workspace_extra_fields is None
            else workspace_extra_fields
        )

    def extra_fields(self, workspace_id: str | None) -> tuple[str, ...]:
        if workspace_id is None:
            return ()
        return self.workspace_extra_fields.get(workspace_id, ())

    def allowed_fields(self, workspace_id: str | None) -> tuple[str, ...]:
        return DEFAULT_CUSTOM_FIELD_NAMES + self.extra_fields(workspace_id)

    def header(self, workspace_id: str | None) -> list[str]:
        return list(BASE_HEADER + self.extra_fields(workspace_id))

    @property
    def max_width(self) -> int:
        """Widest row any workspace can produce."""
        longest_extra = max((len(f) for f in self.workspace_extra_fields.values()), default=0)
        return len(BASE_HEADER) + longest_extra

    def build_row(
        self,
        processed: ProcessedTaskRow,
        project_name: str | None,
        project_id: str | None,
        workspace_id: str | None,
    ) -> list[str | int | float]:
        values = processed.custom_field_values
        return [
            project_name or "",
            processed.task_name,
            processed.assignee_name or "",
            processed.completed_at or "",
            *(_cell(values.get(name)) for name in DEFAULT_CUSTOM_FIELD_NAMES),
            project_id or "",
            processed.task_id,
            "Yes" if processed.completed else "No",
            *(_cell(values.get(name)) for name in self.extra_fields(workspace_id)),
        ]

    def project_task(
        self, task: AsanaTask, workspace_id: str | None = None
    ) -> tuple[ProcessedTaskRow, list[str | int | float]]:
        """Project a task into its processed form and its sheet row.

        Project and workspace come from the task's first membership unless workspace_id is given.
        """
        project = task.primary_project
        if workspace_id is None and project is not None and project.workspace is not None:
            workspace_id = project.workspace.gid

        processed = ProcessedTaskRow.from_task(task, self.allowed_fields(workspace_id))
        row = self.build_row(
            processed,
            project_name=project.name if project else None,
            project_id=project.gid if project else None,
            workspace_id=workspace_id,
        )
        return processed, row
