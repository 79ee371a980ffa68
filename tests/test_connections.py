"""
Unit tests for stored mail connections.
"""
from datetime import datetime, timedelta

import pytest
from unittest.mock import Mock, patch

from unified_inbox.auth import connections
from unified_inbox.auth.oauth import TokenBundle
from unified_inbox.models import Provider
from unified_inbox.storage import repository
from unified_inbox.utils.errors import AccountError, AuthenticationError, TokenRefreshError

from conftest import make_connection


def tokens(access="access-1", refresh="refresh-1"):
    return TokenBundle(access_token=access, refresh_token=refresh, expires_at=datetime(2030, 1, 1))


class TestSaveConnection:

    def test_tokens_are_encrypted_at_rest(self, temp_db):
        saved = connections.save_connection(Provider.GMAIL, "a@example.com", tokens())

        row = repository.select_one("mail_connections", {"id": saved.id})
        assert row["encrypted_access_token"] != "access-1"
        assert saved.access_token == "access-1"
        assert saved.refresh_token == "refresh-1"
        assert saved.expires_at == datetime(2030, 1, 1)

    def test_reconnect_updates_existing_row(self, temp_db):
        first = connections.save_connection(Provider.GMAIL, "a@example.com", tokens())
        second = connections.save_connection(
            Provider.GMAIL, "a@example.com", tokens(access="access-2", refresh=None)
        )

        assert second.id == first.id
        assert second.access_token == "access-2"
        assert second.refresh_token == "refresh-1"
        assert len(connections.list_connections()) == 1

    def test_same_address_on_other_provider_is_separate(self, temp_db):
        connections.save_connection(Provider.GMAIL, "a@example.com", tokens())
        connections.save_connection(Provider.MICROSOFT, "a@example.com", tokens())

        assert len(connections.list_connections()) == 2

    def test_email_required(self, temp_db):
        with pytest.raises(AccountError):
            connections.save_connection(Provider.GMAIL, "", tokens())


class TestLookups:

    def test_list_in_creation_order(self, temp_db):
        connections.save_connection(Provider.GMAIL, "b@example.com", tokens())
        connections.save_connection(Provider.MICROSOFT, "a@outlook.com", tokens())

        assert [c.email_address for c in connections.list_connections()] == [
            "b@example.com",
            "a@outlook.com",
        ]

    def test_get_missing_connection(self, temp_db):
        with pytest.raises(AccountError):
            connections.get_connection(999)

    def test_find_connection(self, temp_db):
        connections.save_connection(Provider.GMAIL, "a@example.com", tokens())

        assert connections.find_connection("a@example.com").provider == Provider.GMAIL
        assert connections.find_connection("nobody@example.com") is None

    def test_delete_connection(self, temp_db):
        saved = connections.save_connection(Provider.GMAIL, "a@example.com", tokens())

        connections.delete_connection(saved.id)

        assert connections.list_connections() == []
        with pytest.raises(AccountError):
            connections.delete_connection(saved.id)


class TestRefresh:

    def test_refresh_persists_new_tokens(self, temp_db):
        saved = connections.save_connection(Provider.GMAIL, "a@example.com", tokens())
        oauth = Mock()
        oauth.refresh_tokens.return_value = TokenBundle(
            "access-2", None, datetime.now() + timedelta(hours=1)
        )

        with patch.object(connections, "get_oauth_provider", return_value=oauth):
            refreshed = connections.refresh_connection_tokens(saved)

        oauth.refresh_tokens.assert_called_once_with("refresh-1")
        assert refreshed.access_token == "access-2"
        stored = connections.get_connection(saved.id)
        assert stored.access_token == "access-2"
        assert stored.refresh_token == "refresh-1"

    def test_missing_refresh_token(self):
        connection = make_connection()
        connection.refresh_token = None

        with pytest.raises(AuthenticationError):
            connections.refresh_connection_tokens(connection)

    def test_rejected_refresh_propagates(self):
        oauth = Mock()
        oauth.refresh_tokens.side_effect = TokenRefreshError("invalid_grant")

        with patch.object(connections, "get_oauth_provider", return_value=oauth):
            with pytest.raises(TokenRefreshError):
                connections.refresh_connection_tokens(make_connection())


class TestOAuthCallback:

    def test_complete_callback_saves_connection(self, temp_db):
        oauth = Mock()
        oauth.exchange_code_for_tokens.return_value = tokens()
        oauth.fetch_profile_email.return_value = "new@outlook.com"

        with patch.object(connections, "get_oauth_provider", return_value=oauth):
            saved = connections.complete_oauth_callback(Provider.MICROSOFT, "code-123")

        oauth.exchange_code_for_tokens.assert_called_once_with("code-123")
        assert saved.email_address == "new@outlook.com"
        assert saved.provider == Provider.MICROSOFT
