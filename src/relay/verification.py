"""Webhook verification protocol and result types.

A verifier loads whatever credentials it needs for the target spreadsheet and decides whether
a delivery is authentic. Failing to load credentials is an exception, not a failed verification,
so callers can tell an outage from a forged request.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass
class VerificationResult:
    """Result of webhook verification."""

    success: bool
    error: str | None = None


class WebhookVerifier(Protocol):
    async def verify(
        self,
        headers: dict[str, str],
        body: bytes,
        spreadsheet_id: str,
    ) -> VerificationResult:
        """Verify a webhook delivery targeting a spreadsheet.

        Args:
            headers: HTTP headers from the webhook request, lowercase keys
            body: Raw request body as bytes
            spreadsheet_id: Spreadsheet whose stored secrets apply

        Returns:
            VerificationResult indicating success or failure with error message
        """
        ...
