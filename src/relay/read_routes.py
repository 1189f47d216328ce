"""Read-only projections of Asana task and project data."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from connectors.asana.client.asana_api_errors import AsanaApiError
from connectors.asana.client.asana_client import AsanaClient
from src.relay.models import ErrorResponse
from src.relay.services.workspace_export import WorkspaceTaskCollector
from src.utils.config import get_default_workspace_id
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api")


def _error_response(context: str, e: Exception) -> JSONResponse:
    """Upstream errors keep their status when known, everything else is a 500."""
    logger.error(f"{context}: {e}")
    status_code = 500
    if isinstance(e, AsanaApiError) and e.status_code:
        status_code = e.status_code
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=str(e)).model_dump())


def _missing_workspace() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error="No workspace id given and ASANA_WORKSPACE_ID is not set"
        ).model_dump(),
    )


def _asana(request: Request) -> AsanaClient:
    return request.app.state.asana_client


def _collector(request: Request) -> WorkspaceTaskCollector:
    return request.app.state.task_collector


@router.get("/tasks/{task_id}")
async def get_task(task_id: str, request: Request):
    try:
        task = await _asana(request).get_task(task_id)
    except Exception as e:
        return _error_response(f"Error fetching task {task_id}", e)
    return task.model_dump(exclude_none=True)


@router.get("/tasks/project/{project_id}")
async def get_project_tasks(project_id: str, request: Request):
    try:
        tasks = await _asana(request).list_project_tasks(project_id)
    except Exception as e:
        return _error_response(f"Error fetching tasks for project {project_id}", e)
    return [task.model_dump(exclude_none=True) for task in tasks]


@router.get("/tasks/project/{project_id}/completed")
async def get_completed_project_tasks(project_id: str, request: Request):
    """Completed tasks of a project, custom fields limited to the sheet's columns."""
    collector = _collector(request)
    try:
        tasks = await _asana(request).list_project_tasks(project_id)
    except Exception as e:
        return _error_response(f"Error fetching completed tasks for project {project_id}", e)

    completed = [task for task in tasks if collector.is_completed(task)]
    return [collector.schema.project_task(task)[0].to_api_dict() for task in completed]


# Registered ahead of /projects/workspace/{workspace_id} so the literal path wins
@router.get("/projects/workspace/all-with-tasks")
async def get_projects_with_completed_tasks(request: Request, workspaceId: str | None = None):
    """Active projects with their completed tasks, most tasks first."""
    workspace_id = workspaceId or get_default_workspace_id()
    if not workspace_id:
        return _missing_workspace()

    try:
        projects = await _collector(request).collect_completed(workspace_id)
    except Exception as e:
        return _error_response(f"Error fetching projects with tasks for {workspace_id}", e)

    return {
        "workspace_id": workspace_id,
        "project_count": len(projects),
        "task_count": sum(len(project.tasks) for project in projects),
        "projects": [project.to_api_dict() for project in projects],
    }


async def _workspace_projects(request: Request, workspace_id: str | None):
    if not workspace_id:
        return _missing_workspace()

    try:
        projects = await _asana(request).list_projects(workspace_id, include_archived=True)
    except Exception as e:
        return _error_response(f"Error fetching projects for workspace {workspace_id}", e)
    return [project.model_dump(exclude_none=True) for project in projects]


@router.get("/projects/workspace")
async def get_default_workspace_projects(request: Request):
    return await _workspace_projects(request, get_default_workspace_id())


@router.get("/projects/workspace/{workspace_id}")
async def get_workspace_projects(workspace_id: str, request: Request):
    return await _workspace_projects(request, workspace_id)


@router.get("/projects/workspace/{workspace_id}/project/{project_id}")
async def get_workspace_project(workspace_id: str, project_id: str, request: Request):
    try:
        project = await _asana(request).get_project(project_id)
    except Exception as e:
        return _error_response(f"Error fetching project {project_id}", e)

    if project.workspace is not None and project.workspace.gid != workspace_id:
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(
                error=f"Project {project_id} not found in workspace {workspace_id}"
            ).model_dump(),
        )
    return project.model_dump(exclude_none=True)
