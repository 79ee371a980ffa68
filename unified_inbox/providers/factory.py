"""
Adapter factory.
"""
from typing import Optional

import requests

from unified_inbox.auth.connections import refresh_connection_tokens
from unified_inbox.models import MailAccountConnection, Provider
from unified_inbox.providers.base import MailProvider, TokenRefresher
from unified_inbox.providers.gmail import GmailProvider
from unified_inbox.providers.microsoft import MicrosoftProvider
from unified_inbox.utils.errors import AccountError

_ADAPTERS = {
    Provider.GMAIL: GmailProvider,
    Provider.MICROSOFT: MicrosoftProvider,
}


def create_provider(
    connection: MailAccountConnection,
    token_refresher: Optional[TokenRefresher] = refresh_connection_tokens,
    session: Optional[requests.Session] = None,
) -> MailProvider:
    """
    Build the adapter for a connection.

    By default a rejected token is refreshed through the stored OAuth
    credentials and persisted.
    """
    try:
        adapter_cls = _ADAPTERS[Provider(connection.provider)]
    except (KeyError, ValueError):
        raise AccountError(f"Unsupported provider: {connection.provider}") from None
    return adapter_cls(connection, token_refresher=token_refresher, session=session)
