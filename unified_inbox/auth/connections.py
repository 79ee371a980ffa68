"""
Connected mail account storage.

This module provides functions to manage mail connections: saving the result
of an OAuth callback, listing and retrieving connections, persisting refreshed
tokens and disconnecting. Access and refresh tokens are Fernet-encrypted in the
mail_connections table.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from unified_inbox.auth.oauth import TokenBundle, get_oauth_provider
from unified_inbox.models import MailAccountConnection, Provider
from unified_inbox.storage import repository
from unified_inbox.storage.encryption import decrypt_text, encrypt_text
from unified_inbox.utils.errors import AccountError, AuthenticationError, TokenRefreshError

logger = logging.getLogger(__name__)

TABLE = "mail_connections"


def _encrypt_optional(value: Optional[str]) -> Optional[str]:
    return encrypt_text(value) if value else None


def _decrypt_optional(value: Optional[str]) -> Optional[str]:
    return decrypt_text(value) if value else None


def _row_to_connection(row: Dict[str, Any]) -> MailAccountConnection:
    expires_at = None
    if row.get("expires_at"):
        expires_at = datetime.fromisoformat(row["expires_at"])
    return MailAccountConnection(
        id=row["id"],
        provider=Provider(row["provider"]),
        email_address=row["email_address"],
        display_name=row.get("display_name") or row["email_address"],
        access_token=_decrypt_optional(row.get("encrypted_access_token")) or "",
        refresh_token=_decrypt_optional(row.get("encrypted_refresh_token")),
        expires_at=expires_at,
    )


def save_connection(
    provider: Provider,
    email_address: str,
    tokens: TokenBundle,
    display_name: Optional[str] = None,
) -> MailAccountConnection:
    """
    Insert a connection, or update the tokens of an existing one.

    A provider/address pair identifies a connection, so reconnecting an
    account replaces its tokens instead of creating a duplicate.
    """
    if not email_address:
        raise AccountError("Email address is required")

    existing = repository.select_one(
        TABLE, {"provider": provider.value, "email_address": email_address}
    )
    values = {
        "display_name": display_name or email_address,
        "encrypted_access_token": _encrypt_optional(tokens.access_token),
        "encrypted_refresh_token": _encrypt_optional(tokens.refresh_token),
        "expires_at": tokens.expires_at.isoformat() if tokens.expires_at else None,
        "updated_at": datetime.now().isoformat(),
    }

    if existing:
        # Keep the stored refresh token when the provider did not issue a new one
        if not tokens.refresh_token:
            values.pop("encrypted_refresh_token")
        repository.update(TABLE, values, {"id": existing["id"]})
        connection_id = existing["id"]
        logger.info(f"Updated {provider.value} connection for {email_address}")
    else:
        values.update({"provider": provider.value, "email_address": email_address})
        connection_id = repository.insert(TABLE, values)
        logger.info(f"Saved new {provider.value} connection for {email_address}")

    return get_connection(connection_id)


def list_connections() -> List[MailAccountConnection]:
    """List all connections in creation order."""
    rows = repository.select(TABLE, order_by="id")
    return [_row_to_connection(row) for row in rows]


def get_connection(connection_id: int) -> MailAccountConnection:
    """
    Get a connection by ID.

    Raises:
        AccountError: If no such connection exists.
    """
    row = repository.select_one(TABLE, {"id": connection_id})
    if row is None:
        raise AccountError(f"Connection {connection_id} not found")
    return _row_to_connection(row)


def find_connection(email_address: str) -> Optional[MailAccountConnection]:
    row = repository.select_one(TABLE, {"email_address": email_address})
    return _row_to_connection(row) if row else None


def update_tokens(connection: MailAccountConnection, tokens: TokenBundle) -> MailAccountConnection:
    """Persist a refreshed token pair and apply it to the in-memory connection."""
    connection.access_token = tokens.access_token
    if tokens.refresh_token:
        connection.refresh_token = tokens.refresh_token
    connection.expires_at = tokens.expires_at

    if connection.id is not None:
        repository.update(
            TABLE,
            {
                "encrypted_access_token": _encrypt_optional(connection.access_token),
                "encrypted_refresh_token": _encrypt_optional(connection.refresh_token),
                "expires_at": tokens.expires_at.isoformat() if tokens.expires_at else None,
                "updated_at": datetime.now().isoformat(),
            },
            {"id": connection.id},
        )
    return connection


def delete_connection(connection_id: int) -> None:
    """
    Disconnect an account and drop its stored tokens.

    Raises:
        AccountError: If no such connection exists.
    """
    removed = repository.delete(TABLE, {"id": connection_id})
    if not removed:
        raise AccountError(f"Connection {connection_id} not found")
    logger.info(f"Deleted connection {connection_id}")


def refresh_connection_tokens(connection: MailAccountConnection) -> MailAccountConnection:
    """
    Refresh the connection's access token and persist the new pair.

    Raises:
        AuthenticationError: If there is no refresh token or the provider
            rejects it; the account has to be reconnected.
    """
    if not connection.refresh_token:
        raise AuthenticationError(
            f"No refresh token for {connection.email_address}; reconnect required"
        )
    provider = get_oauth_provider(connection.provider)
    try:
        tokens = provider.refresh_tokens(connection.refresh_token)
    except TokenRefreshError:
        logger.warning(f"Token refresh failed for {connection.email_address}")
        raise
    logger.info(f"Refreshed access token for {connection.email_address}")
    return update_tokens(connection, tokens)


def complete_oauth_callback(provider: Provider, code: str) -> MailAccountConnection:
    """
    Finish an OAuth authorization: exchange the code, look up the account
    address and store the connection.
    """
    oauth = get_oauth_provider(provider)
    tokens = oauth.exchange_code_for_tokens(code)
    email_address = oauth.fetch_profile_email(tokens.access_token)
    return save_connection(provider, email_address, tokens)
