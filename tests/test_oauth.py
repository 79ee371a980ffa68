"""
Unit tests for OAuth helpers.
"""
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from unittest.mock import Mock, patch

from unified_inbox import config
from unified_inbox.auth.oauth import (
    GoogleOAuthProvider,
    MicrosoftOAuthProvider,
    extract_authorization_code,
)
from unified_inbox.utils.errors import OAuthError, TokenRefreshError


def token_response(status_code=200, json_data=None):
    resp = Mock()
    resp.status_code = status_code
    resp.json.return_value = json_data or {}
    resp.text = ""
    return resp


@pytest.fixture
def microsoft():
    return MicrosoftOAuthProvider(
        client_id="client-1",
        client_secret="secret-1",
        redirect_uri="http://localhost:8080/callback",
        scopes=["offline_access", "Mail.Read"],
        tenant="common",
    )


class TestExtractAuthorizationCode:

    def test_code_from_redirect(self):
        assert extract_authorization_code("http://localhost:8080/callback?code=abc&state=x") == "abc"

    def test_bare_code(self):
        assert extract_authorization_code("  abc  ") == "abc"

    def test_cancelled(self):
        with pytest.raises(OAuthError, match="cancelled"):
            extract_authorization_code("http://localhost:8080/callback?error=access_denied")

    def test_other_error(self):
        with pytest.raises(OAuthError, match="invalid_scope"):
            extract_authorization_code(
                "http://localhost:8080/callback?error=invalid_scope&error_description=bad"
            )

    def test_missing_code(self):
        with pytest.raises(OAuthError):
            extract_authorization_code("http://localhost:8080/callback?state=x")

    def test_empty(self):
        with pytest.raises(OAuthError):
            extract_authorization_code("")


class TestMicrosoftOAuth:

    def test_authorization_url(self, microsoft):
        url = microsoft.get_authorization_url("state-1")

        parsed = urlparse(url)
        params = parse_qs(parsed.query)
        assert parsed.netloc == "login.microsoftonline.com"
        assert parsed.path == "/common/oauth2/v2.0/authorize"
        assert params["state"] == ["state-1"]
        assert params["scope"] == ["offline_access Mail.Read"]

    def test_exchange_code(self, microsoft):
        with patch("unified_inbox.auth.oauth.requests.post") as post:
            post.return_value = token_response(200, {
                "access_token": "at", "refresh_token": "rt", "expires_in": 3600,
            })
            bundle = microsoft.exchange_code_for_tokens("code-1")

        assert (bundle.access_token, bundle.refresh_token) == ("at", "rt")
        data = post.call_args.kwargs["data"]
        assert data["grant_type"] == "authorization_code"
        assert data["client_secret"] == "secret-1"

    def test_exchange_failure(self, microsoft):
        with patch("unified_inbox.auth.oauth.requests.post", return_value=token_response(400)):
            with pytest.raises(OAuthError):
                microsoft.exchange_code_for_tokens("code-1")

    def test_refresh_keeps_old_refresh_token(self, microsoft):
        with patch("unified_inbox.auth.oauth.requests.post") as post:
            post.return_value = token_response(200, {"access_token": "at-2", "expires_in": 3600})
            bundle = microsoft.refresh_tokens("rt-1")

        assert bundle.access_token == "at-2"
        assert bundle.refresh_token == "rt-1"

    def test_refresh_rejected(self, microsoft):
        with patch("unified_inbox.auth.oauth.requests.post", return_value=token_response(400)):
            with pytest.raises(TokenRefreshError):
                microsoft.refresh_tokens("rt-1")

    def test_refresh_timeout(self, microsoft):
        with patch("unified_inbox.auth.oauth.requests.post", side_effect=requests.exceptions.Timeout()):
            with pytest.raises(TokenRefreshError):
                microsoft.refresh_tokens("rt-1")

    def test_profile_email_falls_back_to_upn(self, microsoft):
        with patch("unified_inbox.auth.oauth.requests.get") as get:
            get.return_value = token_response(200, {"mail": None, "userPrincipalName": "bob@contoso.com"})
            assert microsoft.fetch_profile_email("at") == "bob@contoso.com"


class TestGoogleOAuth:

    def test_requires_client_credentials(self, monkeypatch):
        monkeypatch.setattr(config, "GMAIL_CLIENT_ID", "")

        with pytest.raises(OAuthError):
            GoogleOAuthProvider(client_secret="secret")

    def test_authorization_url_requests_offline_access(self):
        provider = GoogleOAuthProvider(
            client_id="client-1",
            client_secret="secret-1",
            redirect_uri="http://localhost:8080/callback",
            scopes=["https://www.googleapis.com/auth/gmail.modify"],
        )

        params = parse_qs(urlparse(provider.get_authorization_url("state-1")).query)

        assert params["access_type"] == ["offline"]
        assert params["prompt"] == ["consent"]
        assert params["state"] == ["state-1"]
