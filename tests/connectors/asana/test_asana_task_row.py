"""Tests for the task sheet row projection."""

from connectors.asana.asana_task_row import (
    BASE_HEADER,
    TASK_ID_COLUMN_INDEX,
    ProcessedTaskRow,
    TaskRowSchema,
)
from connectors.asana.client.asana_api_models import AsanaCustomField
from tests.connectors.asana.asana_fixtures import custom_field, make_task

EXTRA_WORKSPACE = "1205846480740952"


def _schema() -> TaskRowSchema:
    return TaskRowSchema({EXTRA_WORKSPACE: ("balance",)})


class TestHeader:
    def test_base_header_layout(self):
        assert len(BASE_HEADER) == 19
        assert BASE_HEADER[:4] == ("Project Name", "Task Name", "Assignee", "Completed At")
        assert BASE_HEADER[-3:] == ("Project ID", "Task ID", "Completed")
        assert TASK_ID_COLUMN_INDEX == 17

    def test_workspace_extra_columns(self):
        schema = _schema()
        assert schema.header(EXTRA_WORKSPACE) == list(BASE_HEADER) + ["balance"]
        assert schema.header("other") == list(BASE_HEADER)
        assert schema.max_width == 20


class TestCustomFieldValue:
    def test_enum_wins(self):
        field = AsanaCustomField.model_validate(custom_field("Status", "Paid", enum=True))
        assert field.cell_value() == "Paid"

    def test_number_before_text(self):
        field = AsanaCustomField.model_validate(
            {"gid": "cf", "name": "Deposit", "number_value": 0, "text_value": "zero"}
        )
        assert field.cell_value() == 0

    def test_display_value_fallback(self):
        field = AsanaCustomField.model_validate(
            {"gid": "cf", "name": "Worker", "text_value": "", "display_value": "Bob"}
        )
        assert field.cell_value() == "Bob"

    def test_empty_field(self):
        field = AsanaCustomField.model_validate({"gid": "cf", "name": "Worker"})
        assert field.cell_value() is None


class TestProjectTask:
    def test_row_layout(self):
        task = make_task(
            custom_fields=[
                custom_field("Worker", "Bob"),
                custom_field("Status", "Paid", enum=True),
                custom_field("Deposit", 100),
                custom_field("Not in the sheet", "ignored"),
            ]
        )

        processed, row = _schema().project_task(task)

        assert processed.custom_field_values == {"Worker": "Bob", "Status": "Paid", "Deposit": 100}
        assert len(row) == len(BASE_HEADER)
        assert row[:4] == ["Payments", "Deposit for Alice", "Alice", "2024-05-01T10:00:00.000Z"]
        assert row[4:8] == ["Bob", "Paid", "", 100]
        assert row[-3:] == ["p1", "1209", "Yes"]
        assert row[TASK_ID_COLUMN_INDEX] == "1209"

    def test_open_unassigned_task(self):
        task = make_task(completed=False, assignee=None)

        processed, row = _schema().project_task(task)

        assert processed.completed is False
        assert row[2] == ""
        assert row[3] == ""
        assert row[-1] == "No"

    def test_task_without_project(self):
        _, row = _schema().project_task(make_task(project=None))
        assert row[0] == ""
        assert row[-3] == ""

    def test_workspace_extra_fields_come_from_membership(self):
        task = make_task(
            workspace_gid=EXTRA_WORKSPACE,
            custom_fields=[custom_field("Balance", 10), custom_field("balance", 20)],
        )

        processed, row = _schema().project_task(task)

        assert processed.custom_field_values == {"Balance": 10, "balance": 20}
        assert len(row) == len(BASE_HEADER) + 1
        assert row[12] == 10
        assert row[-1] == 20

    def test_explicit_workspace_overrides_membership(self):
        task = make_task(workspace_gid="ws1", custom_fields=[custom_field("balance", 20)])

        processed, row = _schema().project_task(task, workspace_id=EXTRA_WORKSPACE)

        assert processed.custom_field_values == {"balance": 20}
        assert row[-1] == 20


class TestProcessedTaskRow:
    def test_api_dict_flattens_custom_fields(self):
        processed = ProcessedTaskRow(
            task_name="Withdraw",
            task_id="42",
            assignee_name="Manager",
            completed=False,
            custom_field_values={"Worker": "Bob"},
        )

        assert processed.to_api_dict() == {
            "task_name": "Withdraw",
            "task_id": "42",
            "assignee": "Manager",
            "completed_at": None,
            "completed": False,
            "Worker": "Bob",
        }
