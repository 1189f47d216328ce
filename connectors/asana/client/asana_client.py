from typing import Any

import httpx
from aiolimiter import AsyncLimiter

from connectors.asana.client.asana_api_errors import AsanaApiError
from connectors.asana.client.asana_api_models import (
    AsanaProject,
    AsanaProjectListRes,
    AsanaTask,
    AsanaTaskListRes,
    AsanaWebhook,
    AsanaWebhookFilter,
    AsanaWebhookListRes,
)
from src.utils.logging import get_logger
from src.utils.paging import Page, fetch_all_pages
from src.utils.rate_limiter import RateLimitedError, parse_retry_after, rate_limited

logger = get_logger(__name__)

ASANA_BASE_URL = "https://app.asana.com/api/1.0"

# Asana returns incomplete tasks only unless completed_since is set
ALL_TASKS_COMPLETED_SINCE = "2000-01-01T00:00:00.000Z"

# https://developers.asana.com/docs/rate-limits#concurrent-request-limits
# Max concurrent requests is 50, lets undershoot a bit.
_asana_connection_limits = httpx.Limits(
    max_connections=15,
    max_keepalive_connections=15,
)


class AsanaClient:
    def __init__(self, access_token: str, limiter: AsyncLimiter | None = None):
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {access_token}",
        }

        self._client = httpx.AsyncClient(
            base_url=ASANA_BASE_URL,
            headers=headers,
            limits=_asana_connection_limits,
            timeout=httpx.Timeout(5, read=30, pool=30),
        )

        # https://developers.asana.com/docs/rate-limits#standard-rate-limits
        # Standard rate limit is 1500 requests per minute, 600 leaves room for the CLI running alongside.
        self._limiter = limiter or AsyncLimiter(10, 1)

    async def __aenter__(self) -> "AsanaClient":
        return self

    async def __aexit__(self, _exc_type: Any, _exc: Any, _tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @rate_limited()
    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        async with self._limiter:
            try:
                response = await self._client.request(method, path, params=params, json=json)
            except httpx.TransportError as e:
                msg = f"Asana {type(e).__name__}: {method} {path}"
                logger.warning(msg)
                raise RateLimitedError(message=msg) from e

        if response.is_server_error:
            msg = f"Asana server error {response.status_code}: {method} {path}"
            logger.warning(msg)
            raise RateLimitedError(message=msg)

        if response.status_code == httpx.codes.TOO_MANY_REQUESTS.value:
            raise RateLimitedError(
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
                message=f"Asana rate limited: {method} {path}",
            )

        if response.is_error:
            raise AsanaApiError.from_response(response)

        return response

    async def _get_data(self, path: str, params: dict[str, str] | None = None) -> Any:
        response = await self._request("GET", path, params=params)
        try:
            return response.json()["data"]
        except (ValueError, KeyError) as e:
            raise AsanaApiError(response.status_code, f"Malformed Asana response for {path}") from e

    async def get_task(self, task_gid: str) -> AsanaTask:
        params: dict[str, str] = {
            "opt_fields": ",".join(AsanaTask.get_opt_fields()),
        }

        return AsanaTask.model_validate(await self._get_data(f"/tasks/{task_gid}", params))

    async def get_project(self, project_gid: str) -> AsanaProject:
        params: dict[str, str] = {
            "opt_fields": ",".join(AsanaProject.get_opt_fields()),
        }

        return AsanaProject.model_validate(
            await self._get_data(f"/projects/{project_gid}", params)
        )

    async def get_projects_page(
        self, workspace_gid: str, offset: str | None = None
    ) -> AsanaProjectListRes:
        params: dict[str, str] = {
            "limit": "100",
            "opt_fields": ",".join(AsanaProject.get_opt_fields()),
        }
        if offset:
            params["offset"] = offset

        response = await self._request("GET", f"/workspaces/{workspace_gid}/projects", params)
        return AsanaProjectListRes.model_validate(response.json())

    async def get_project_tasks_page(
        self,
        project_gid: str,
        offset: str | None = None,
        completed_since: str | None = ALL_TASKS_COMPLETED_SINCE,
    ) -> AsanaTaskListRes:
        params: dict[str, str] = {
            "limit": "100",
            "opt_fields": ",".join(AsanaTask.get_opt_fields()),
        }
        if completed_since:
            params["completed_since"] = completed_since
        if offset:
            params["offset"] = offset

        response = await self._request("GET", f"/projects/{project_gid}/tasks", params)
        return AsanaTaskListRes.model_validate(response.json())

    async def get_webhooks_page(
        self, workspace_gid: str, offset: str | None = None, resource_gid: str | None = None
    ) -> AsanaWebhookListRes:
        params: dict[str, str] = {
            "workspace": workspace_gid,
            "limit": "100",
            "opt_fields": ",".join(AsanaWebhook.get_opt_fields()),
        }
        if resource_gid:
            params["resource"] = resource_gid
        if offset:
            params["offset"] = offset

        response = await self._request("GET", "/webhooks", params)
        return AsanaWebhookListRes.model_validate(response.json())

    async def list_projects(
        self, workspace_gid: str, include_archived: bool = False
    ) -> list[AsanaProject]:
        async def fetch(offset: str | None) -> Page[AsanaProject]:
            page = await self.get_projects_page(workspace_gid, offset)
            return Page(items=page.data, next_offset=page.next_offset)

        projects = await fetch_all_pages(fetch, description=f"projects of workspace {workspace_gid}")
        if include_archived:
            return projects
        return [project for project in projects if not project.archived]

    async def list_project_tasks(self, project_gid: str) -> list[AsanaTask]:
        async def fetch(offset: str | None) -> Page[AsanaTask]:
            page = await self.get_project_tasks_page(project_gid, offset)
            return Page(items=page.data, next_offset=page.next_offset)

        return await fetch_all_pages(fetch, description=f"tasks of project {project_gid}")

    async def list_webhooks(
        self, workspace_gid: str, resource_gid: str | None = None
    ) -> list[AsanaWebhook]:
        async def fetch(offset: str | None) -> Page[AsanaWebhook]:
            page = await self.get_webhooks_page(workspace_gid, offset, resource_gid)
            return Page(items=page.data, next_offset=page.next_offset)

        return await fetch_all_pages(fetch, description=f"webhooks of workspace {workspace_gid}")

    async def create_webhook(
        self,
        resource_gid: str,
        target: str,
        filters: list[AsanaWebhookFilter] | None = None,
    ) -> AsanaWebhook:
        """Create a webhook. Asana performs the handshake against `target` before this returns."""
        data: dict[str, Any] = {"resource": resource_gid, "target": target}
        if filters:
            data["filters"] = [f.model_dump(exclude_none=True) for f in filters]

        response = await self._request(
            "POST",
            "/webhooks",
            params={"opt_fields": ",".join(AsanaWebhook.get_opt_fields())},
            json={"data": data},
        )
        return AsanaWebhook.model_validate(response.json()["data"])

    async def delete_webhook(self, webhook_gid: str) -> None:
        await self._request("DELETE", f"/webhooks/{webhook_gid}")
