# Reconciliation
from connectors.asana.asana_task_reconciler import AsanaTaskReconciler, ReconcileOutcome

# Task rows
from connectors.asana.asana_task_row import ProcessedTaskRow, TaskRowSchema

# Webhook Handlers
from connectors.asana.asana_webhook_handler import (
    AsanaWebhookVerifier,
    HandshakeResult,
    handle_asana_handshake,
    resolve_webhook_id,
    verify_asana_signature,
)

__all__ = [
    # Reconciliation
    "AsanaTaskReconciler",
    "ReconcileOutcome",
    # Task rows
    "ProcessedTaskRow",
    "TaskRowSchema",
    # Webhook Handlers
    "AsanaWebhookVerifier",
    "HandshakeResult",
    "handle_asana_handshake",
    "resolve_webhook_id",
    "verify_asana_signature",
]
