#!/usr/bin/env python3
"""
Asana webhook operator CLI

Registers Asana webhooks against the relay, manages the secrets sheet of a spreadsheet and
exports a workspace's tasks into its task sheet.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from typing import Any

import typer
from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.table import Table

from connectors.asana.client.asana_api_errors import AsanaApiError
from connectors.asana.client.asana_client import AsanaClient
from connectors.asana.client.asana_client_factory import get_asana_client
from connectors.google_sheets import GoogleSheetsClient, SpreadsheetSecretStore
from src.jobs.sheet_write_queue import SheetWriteQueue
from src.relay.services.webhook_registration import WebhookRegistrationService
from src.relay.services.workspace_export import WorkspaceExportService, WorkspaceTaskCollector
from src.utils.logging import redact_secret

# Load environment variables
load_dotenv()

app = typer.Typer(
    name="webhooks",
    help="Asana webhook registration and spreadsheet maintenance for the relay",
    add_completion=False,
)
console = Console()


def log_info(message: str) -> None:
    """Log info message with emoji."""
    console.print(f"ℹ️  {message}", style="blue")


def log_success(message: str) -> None:
    """Log success message with emoji."""
    console.print(f"✅ {message}", style="green")


def log_warning(message: str) -> None:
    """Log warning message with emoji."""
    console.print(f"⚠️  {message}", style="yellow")


def log_error(message: str) -> None:
    """Log error message with emoji."""
    console.print(f"❌ {message}", style="red")


def run_command(coro: Coroutine[Any, Any, None]) -> None:
    """Run a command coroutine, turning failures into a message and exit code 1."""
    try:
        asyncio.run(coro)
    except AsanaApiError as e:
        log_error(f"Asana error (status {e.status_code or 'unknown'}): {e.message}")
        raise typer.Exit(1)
    except Exception as e:
        log_error(str(e))
        raise typer.Exit(1)


@asynccontextmanager
async def sheet_services() -> AsyncIterator[
    tuple[GoogleSheetsClient, SheetWriteQueue, SpreadsheetSecretStore]
]:
    """Sheets client, a running write queue and the secret store on top of them.

    Pending writes are flushed before the queue stops.
    """
    sheets_client = GoogleSheetsClient()
    write_queue = SheetWriteQueue()
    write_queue.start()
    try:
        yield sheets_client, write_queue, SpreadsheetSecretStore(sheets_client, write_queue)
    finally:
        await write_queue.stop()


@asynccontextmanager
async def asana_client() -> AsyncIterator[AsanaClient]:
    async with get_asana_client() as client:
        yield client


@app.command()
def register(
    resource: str = typer.Option(..., "--resource", help="Asana resource gid (usually a project)"),
    target: str = typer.Option(..., "--target", help="Relay URL Asana will deliver to"),
) -> None:
    """Create one task webhook. The relay must be reachable at the target for the handshake."""

    async def _register() -> None:
        async with asana_client() as client:
            webhook = await WebhookRegistrationService(client).register(resource, target)
        log_success(f"Created webhook {webhook.gid} for resource {resource}")

    run_command(_register())


@app.command()
def setup_workspace(
    workspace_id: str = typer.Argument(..., help="Asana workspace gid"),
    target_url: str = typer.Argument(..., help="Relay URL Asana will deliver to"),
    recreate_all: bool = typer.Option(
        False, "--recreate-all", help="Delete every webhook of the workspace first"
    ),
) -> None:
    """Create a task webhook on every active project of a workspace."""

    async def _setup() -> None:
        async with asana_client() as client:
            service = WebhookRegistrationService(client)
            summary = await service.setup_workspace(workspace_id, target_url, recreate_all)

        log_info(f"Projects: {summary.project_count}, deleted webhooks: {summary.deleted}")
        log_success(f"Created {len(summary.created)} webhooks")
        if summary.failed:
            log_warning(f"Failed for {len(summary.failed)} projects: {', '.join(summary.failed)}")

    run_command(_setup())


@app.command()
def delete_all(
    workspace_id: str = typer.Argument(..., help="Asana workspace gid"),
) -> None:
    """Delete every webhook of a workspace."""

    async def _delete_all() -> None:
        async with asana_client() as client:
            deleted = await WebhookRegistrationService(client).delete_all(workspace_id)
        log_success(f"Deleted {deleted} webhooks")

    run_command(_delete_all())


@app.command()
def store_secret(
    spreadsheet_id: str = typer.Option(..., "--spreadsheet-id", help="Target spreadsheet id"),
    secret: str = typer.Option(..., "--secret", help="Webhook secret to store"),
    webhook_id: str | None = typer.Option(
        None, "--webhook-id", help="Webhook id, defaults to manual-<epoch ms>"
    ),
) -> None:
    """Store a webhook secret by hand."""
    webhook_id = webhook_id or f"manual-{int(time.time() * 1000)}"

    async def _store() -> None:
        async with sheet_services() as (_, _, secret_store):
            await secret_store.upsert(spreadsheet_id, webhook_id, secret)
        log_success(f"Stored secret {redact_secret(secret)} for webhook {webhook_id}")

    run_command(_store())


@app.command()
def list_secrets(
    spreadsheet_id: str = typer.Option(..., "--spreadsheet-id", help="Target spreadsheet id"),
) -> None:
    """List the webhook secrets stored in a spreadsheet, redacted."""

    async def _list() -> None:
        async with sheet_services() as (_, _, secret_store):
            records = await secret_store.list_records(spreadsheet_id)

        if not records:
            log_warning("No webhook secrets stored")
            return

        table = Table(title="Webhook secrets", box=box.ROUNDED)
        table.add_column("Webhook ID", style="cyan")
        table.add_column("Secret", style="magenta")
        for record in records:
            table.add_row(record.webhook_id, redact_secret(record.secret))
        console.print(table)

    run_command(_list())


@app.command()
def import_webhooks(
    workspace_id: str = typer.Argument(..., help="Asana workspace gid"),
    spreadsheet_id: str = typer.Option(..., "--spreadsheet-id", help="Target spreadsheet id"),
    recreate: bool = typer.Option(
        False, "--recreate", help="Delete and recreate each webhook to capture its secret"
    ),
    target_base: str | None = typer.Option(
        None, "--target-base", help="Relay base URL for recreated webhooks"
    ),
) -> None:
    """Record a workspace's webhooks in the secrets sheet."""

    async def _import() -> None:
        async with asana_client() as client, sheet_services() as (_, _, secret_store):
            service = WebhookRegistrationService(client, secret_store)
            results = await service.import_webhooks(
                workspace_id, spreadsheet_id, recreate=recreate, target_base=target_base
            )

        table = Table(title="Imported webhooks", box=box.ROUNDED)
        table.add_column("Webhook", style="cyan")
        table.add_column("Target")
        if recreate:
            table.add_column("New webhook", style="cyan")
            table.add_column("Secret captured")
        for result in results:
            row = [result.webhook_gid, result.target]
            if recreate:
                row += [result.new_webhook_gid or "-", "yes" if result.secret_captured else "no"]
            table.add_row(*row)
        console.print(table)

        missed = [r for r in results if recreate and not r.secret_captured]
        if missed:
            log_warning(f"{len(missed)} webhooks still have a pending secret")
        log_success(f"Imported {len(results)} webhooks")

    run_command(_import())


@app.command()
def export_workspace(
    workspace_id: str = typer.Argument(..., help="Asana workspace gid"),
    spreadsheet_id: str = typer.Option(..., "--spreadsheet-id", help="Target spreadsheet id"),
) -> None:
    """Rewrite the task sheet with every completed or special-assignee task of a workspace."""

    async def _export() -> None:
        async with (
            asana_client() as client,
            sheet_services() as (sheets_client, write_queue, secret_store),
        ):
            service = WorkspaceExportService(
                WorkspaceTaskCollector(client), sheets_client, secret_store, write_queue
            )
            summary = await service.export(workspace_id, spreadsheet_id)

        log_success(
            f"Exported {summary.task_count} tasks from {summary.project_count} projects"
        )
        log_info(summary.spreadsheet_url)

    run_command(_export())


if __name__ == "__main__":
    app()
