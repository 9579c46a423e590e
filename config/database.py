"""
Destination connection management.

Builds an explicit ListSession handle for one import run. Nothing here is
cached at module level, so separate imports can hold separate sessions.
"""

from dataclasses import dataclass
from typing import Any, Optional
import structlog

from supabase import create_client, Client

from exceptions import AuthError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Application identity used to reach the destination."""
    api_key: str
    service_key: Optional[str] = None


@dataclass
class ListSession:
    """
    Connected destination handle.

    client is used for item creation and schema reads. admin_client holds
    the privileged connection used for timestamp overwrites, and is None
    when no service key was supplied.
    """
    site: str
    client: Any
    admin_client: Optional[Any] = None

    @property
    def can_overwrite_timestamps(self) -> bool:
        return self.admin_client is not None


def _mask(site: str) -> str:
    """Log partial URL only."""
    return site[:30] + "..." if len(site) > 30 else site


def connect(
    site: str,
    credentials: Credentials,
    probe_table: Optional[str] = None
) -> ListSession:
    """
    Establish a session with the destination.

    When probe_table is given, a one-row select is issued so bad keys or an
    unreachable site fail here rather than on the first batch.

    Args:
        site: Destination project URL
        credentials: API key and optional service key
        probe_table: Table used to test the connection

    Returns:
        ListSession: Connected session

    Raises:
        AuthError: If the client cannot be created or the probe fails
    """
    if not site or not credentials.api_key:
        raise AuthError(site or "", "Site URL and API key are required")

    try:
        logger.info("connecting_to_destination", url=_mask(site))

        client: Client = create_client(site, credentials.api_key)

        if probe_table:
            client.table(probe_table).select("*").limit(1).execute()

        admin_client = None
        if credentials.service_key:
            admin_client = create_client(site, credentials.service_key)
        else:
            logger.debug("admin_client_not_configured")

        logger.info(
            "destination_connected",
            status="success",
            privileged=admin_client is not None
        )

        return ListSession(site=site, client=client, admin_client=admin_client)

    except Exception as e:
        logger.error(
            "destination_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise AuthError(site, f"Failed to connect to destination: {e}") from e
