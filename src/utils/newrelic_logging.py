"""New Relic hook for error-level relay logs."""

from collections.abc import MutableMapping
from typing import Any

import newrelic.agent


def newrelic_error_processor(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Report error-level logs to New Relic and pass every event through unchanged.

    Failed secret persistence and failed event reconciliation are only visible in logs.
    notice_error picks up the exception currently being handled, and is a no-op when the agent
    is not initialized (local runs, tests).
    """
    if method_name in ("error", "critical", "exception"):
        newrelic.agent.notice_error()

    return event_dict
