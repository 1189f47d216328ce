from connectors.asana.client.asana_client import AsanaClient
from src.utils.config import get_asana_access_token
from src.utils.logging import get_logger, redact_secret

logger = get_logger(__name__)


def get_asana_client(access_token: str | None = None) -> AsanaClient:
    """
    Return an AsanaClient authenticated with a personal access token.
    Falls back to ASANA_ACCESS_TOKEN when no token is passed.
    """
    token = access_token or get_asana_access_token()

    logger.info("Asana access_token loaded", token_preview=redact_secret(token))

    return AsanaClient(access_token=token)
