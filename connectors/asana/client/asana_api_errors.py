import httpx


class AsanaApiError(Exception):
    """
    Exception raised when the Asana API rejects a request with a non-retryable status
    (4xx other than 429), or returns a body we cannot parse.
    """

    def __init__(self, status_code: int | None, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    @classmethod
    def from_response(cls, response: httpx.Response) -> "AsanaApiError":
        # Asana error bodies look like {"errors": [{"message": "...", "help": "..."}]}
        try:
            data = response.json()
            messages = [error.get("message") for error in data.get("errors", [])]
            message = "; ".join(m for m in messages if m)
        except (ValueError, AttributeError):
            message = ""

        return cls(
            response.status_code,
            message or f"Asana request failed with status {response.status_code}",
        )
