"""Operator-side management of Asana webhooks pointing at the relay.

Asana performs the handshake synchronously while a webhook is being created, so the relay must be
reachable at the target URL when any of these run.
"""

import asyncio
import secrets
import time
from dataclasses import dataclass, field

import httpx

from connectors.asana.client.asana_api_errors import AsanaApiError
from connectors.asana.client.asana_api_models import AsanaWebhook, AsanaWebhookFilter
from connectors.asana.client.asana_client import AsanaClient
from connectors.google_sheets.sheets_secret_store import (
    PENDING_SECRET_PLACEHOLDER,
    SpreadsheetSecretStore,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)

TASK_WEBHOOK_FILTERS = [
    AsanaWebhookFilter(
        action="changed",
        resource_type="task",
        fields=["name", "assignee", "completed", "completed_at", "custom_fields"],
    ),
    AsanaWebhookFilter(action="removed", resource_type="task"),
    AsanaWebhookFilter(action="deleted", resource_type="task"),
]

# Path the import tooling points recreated webhooks at
IMPORT_WEBHOOK_PATH = "/api/webhook"


@dataclass
class SetupSummary:
    project_count: int = 0
    created: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    deleted: int = 0


@dataclass
class ImportResult:
    webhook_gid: str
    target: str
    new_webhook_gid: str | None = None
    secret_captured: bool = False


def build_import_target(
    current_target: str, spreadsheet_id: str, client_webhook_id: str, target_base: str | None
) -> str:
    """Target for a recreated webhook, tagged so its handshake secret can be found again."""
    if target_base:
        url = httpx.URL(target_base.rstrip("/") + IMPORT_WEBHOOK_PATH)
    else:
        url = httpx.URL(current_target)
    return str(
        url.copy_merge_params({"sheetId": spreadsheet_id, "clientWebhookId": client_webhook_id})
    )


class WebhookRegistrationService:
    def __init__(
        self,
        asana_client: AsanaClient,
        secret_store: SpreadsheetSecretStore | None = None,
        creation_pause: float = 1.0,
        batch_size: int = 5,
        batch_pause: float = 10.0,
        poll_interval: float = 2.0,
        poll_timeout: float = 60.0,
    ):
        self.asana_client = asana_client
        self.secret_store = secret_store
        self.creation_pause = creation_pause
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout

    def _require_secret_store(self) -> SpreadsheetSecretStore:
        if self.secret_store is None:
            raise ValueError("A secret store is required for this operation")
        return self.secret_store

    async def register(self, resource_gid: str, target: str) -> AsanaWebhook:
        webhook = await self.asana_client.create_webhook(
            resource_gid, target, filters=TASK_WEBHOOK_FILTERS
        )
        logger.info("Created webhook", webhook_gid=webhook.gid, resource_gid=resource_gid)
        return webhook

    async def delete_all(self, workspace_gid: str) -> int:
        """Delete every webhook of the workspace. Returns how many were deleted."""
        webhooks = await self.asana_client.list_webhooks(workspace_gid)
        logger.info(f"Found {len(webhooks)} webhooks to delete", workspace_gid=workspace_gid)

        deleted = 0
        for webhook in webhooks:
            try:
                await self.asana_client.delete_webhook(webhook.gid)
                deleted += 1
            except AsanaApiError as e:
                logger.error(f"Error deleting webhook {webhook.gid}: {e}")
            await asyncio.sleep(self.creation_pause)
        return deleted

    async def _delete_matching(
        self, existing: list[AsanaWebhook], resource_gid: str, target: str
    ) -> int:
        deleted = 0
        for webhook in existing:
            if webhook.resource.gid == resource_gid and webhook.target == target:
                await self.asana_client.delete_webhook(webhook.gid)
                logger.info("Deleted existing webhook", webhook_gid=webhook.gid)
                deleted += 1
        return deleted

    async def setup_workspace(
        self, workspace_gid: str, target: str, recreate_all: bool = False
    ) -> SetupSummary:
        """Create a task webhook on every active project of the workspace.

        A webhook already pointing the same project at the same target is replaced. With
        recreate_all, every webhook of the workspace is deleted first.
        """
        summary = SetupSummary()

        if recreate_all:
            summary.deleted += await self.delete_all(workspace_gid)
            existing: list[AsanaWebhook] = []
        else:
            existing = await self.asana_client.list_webhooks(workspace_gid)

        projects = await self.asana_client.list_projects(workspace_gid)
        summary.project_count = len(projects)
        logger.info(f"Found {len(projects)} active projects", workspace_gid=workspace_gid)

        for index, project in enumerate(projects, start=1):
            try:
                summary.deleted += await self._delete_matching(existing, project.gid, target)
                await self.register(project.gid, target)
                summary.created.append(project.gid)
            except AsanaApiError as e:
                logger.error(
                    f"Error creating webhook for project {project.name}: {e}",
                    project_gid=project.gid,
                    status_code=e.status_code,
                )
                summary.failed.append(project.gid)

            await asyncio.sleep(self.creation_pause)
            if index % self.batch_size == 0 and index < len(projects):
                logger.info(
                    f"Created {index}/{len(projects)} webhooks, pausing",
                    created=len(summary.created),
                    failed=len(summary.failed),
                )
                await asyncio.sleep(self.batch_pause)

        return summary

    async def _wait_for_secret(
        self, spreadsheet_id: str, client_webhook_id: str, webhook_gid: str
    ) -> str | None:
        store = self._require_secret_store()
        deadline = time.monotonic() + self.poll_timeout

        while True:
            for webhook_id in (client_webhook_id, webhook_gid):
                if secret := await store.find_secret(spreadsheet_id, webhook_id):
                    return secret
            if time.monotonic() >= deadline:
                return None
            await asyncio.sleep(self.poll_interval)

    async def _recreate(
        self,
        webhook: AsanaWebhook,
        spreadsheet_id: str,
        target_base: str | None,
    ) -> ImportResult:
        store = self._require_secret_store()
        result = ImportResult(webhook_gid=webhook.gid, target=webhook.target)

        try:
            await self.asana_client.delete_webhook(webhook.gid)
        except AsanaApiError as e:
            logger.warning(f"Could not delete webhook {webhook.gid} before recreating: {e}")

        client_webhook_id = f"client-{int(time.time() * 1000)}-{secrets.token_hex(3)}"
        target = build_import_target(
            webhook.target, spreadsheet_id, client_webhook_id, target_base
        )
        created = await self.register(webhook.resource.gid, target)
        result.new_webhook_gid = created.gid
        await store.delete_logical(spreadsheet_id, webhook.gid)
        await store.upsert(spreadsheet_id, created.gid, PENDING_SECRET_PLACEHOLDER)

        captured = await self._wait_for_secret(spreadsheet_id, client_webhook_id, created.gid)
        if captured:
            await store.upsert(spreadsheet_id, created.gid, captured)
            await store.delete_logical(spreadsheet_id, client_webhook_id)
            result.secret_captured = True
        else:
            logger.warning(
                "Secret not captured for recreated webhook",
                webhook_gid=created.gid,
                client_webhook_id=client_webhook_id,
            )
        return result

    async def import_webhooks(
        self,
        workspace_gid: str,
        spreadsheet_id: str,
        recreate: bool = False,
        target_base: str | None = None,
    ) -> list[ImportResult]:
        """Record every workspace webhook in the secrets sheet.

        Existing webhooks' secrets cannot be read back from Asana, so each gets a placeholder.
        With recreate, each webhook is deleted and created again pointing at the relay so its
        new secret is captured during the handshake.
        """
        store = self._require_secret_store()
        webhooks = await self.asana_client.list_webhooks(workspace_gid)
        logger.info(f"Found {len(webhooks)} webhooks", workspace_gid=workspace_gid)

        results: list[ImportResult] = []
        for webhook in webhooks:
            await store.upsert(spreadsheet_id, webhook.gid, PENDING_SECRET_PLACEHOLDER)
            if recreate:
                results.append(await self._recreate(webhook, spreadsheet_id, target_base))
            else:
                results.append(ImportResult(webhook_gid=webhook.gid, target=webhook.target))
            await asyncio.sleep(self.creation_pause / 2)
        return results
