"""
OAuth2 authentication for the supported mail providers.

This module provides an abstract base class for OAuth providers and concrete
implementations for Google and Microsoft. Google uses google-auth-oauthlib's
Flow for the authorization code flow and google-auth credentials for refresh;
Microsoft talks to the identity platform v2.0 endpoints with requests.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

import requests
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from unified_inbox import config
from unified_inbox.models import Provider
from unified_inbox.utils.errors import OAuthError, TokenRefreshError, TransportError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TokenBundle:
    """Container for OAuth2 tokens."""
    access_token: str
    refresh_token: Optional[str]
    expires_at: Optional[datetime]


def _expiry_from(expires_in) -> datetime:
    try:
        seconds = int(expires_in)
    except (TypeError, ValueError):
        seconds = 3600
    return datetime.now() + timedelta(seconds=seconds)


class OAuthProvider(ABC):
    """Abstract base class for OAuth2 providers."""

    @abstractmethod
    def get_authorization_url(self, state: str) -> str:
        """
        Generate the authorization URL for the OAuth2 flow.

        Args:
            state: A state parameter for CSRF protection.

        Returns:
            The authorization URL that the user should visit.
        """

    @abstractmethod
    def exchange_code_for_tokens(self, code: str) -> TokenBundle:
        """
        Exchange an authorization code for access and refresh tokens.

        Raises:
            OAuthError: If the token exchange fails.
        """

    @abstractmethod
    def refresh_tokens(self, refresh_token: str) -> TokenBundle:
        """
        Refresh an expired access token using a refresh token.

        Raises:
            TokenRefreshError: If the token refresh fails.
        """

    @abstractmethod
    def fetch_profile_email(self, access_token: str) -> str:
        """Return the email address of the account the token belongs to."""


class GoogleOAuthProvider(OAuthProvider):
    """
    OAuth2 provider for Google/Gmail accounts.

    Uses the installed-app OAuth2 flow for desktop applications.
    """

    AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
    TOKEN_URI = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        scopes: Optional[List[str]] = None,
    ):
        self.client_id = client_id or config.GMAIL_CLIENT_ID
        self.client_secret = client_secret or config.GMAIL_CLIENT_SECRET
        self.redirect_uri = redirect_uri or config.OAUTH_REDIRECT_URI
        self.scopes = scopes or config.GMAIL_SCOPES

        if not self.client_id or not self.client_secret:
            raise OAuthError("Gmail OAuth client ID and secret must be configured")

    def _build_flow(self, state: Optional[str] = None) -> Flow:
        return Flow.from_client_config(
            {
                "web": {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "auth_uri": self.AUTH_URI,
                    "token_uri": self.TOKEN_URI,
                    "redirect_uris": [self.redirect_uri],
                }
            },
            scopes=self.scopes,
            redirect_uri=self.redirect_uri,
            state=state,
            # The code is exchanged by a fresh Flow, so no PKCE verifier survives
            autogenerate_code_verifier=False,
        )

    def get_authorization_url(self, state: str) -> str:
        flow = self._build_flow(state)
        auth_url, _ = flow.authorization_url(
            access_type="offline",
            prompt="consent",
            include_granted_scopes="true",
        )
        return auth_url

    def exchange_code_for_tokens(self, code: str) -> TokenBundle:
        flow = self._build_flow()
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            # oauthlib raises a variety of exception types here
            logger.error(f"Google token exchange failed: {e}")
            raise OAuthError(f"Google token exchange failed: {e}") from e

        credentials = flow.credentials
        if not credentials or not credentials.token:
            raise OAuthError("Google token exchange returned no access token")

        return TokenBundle(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expires_at=credentials.expiry,
        )

    def refresh_tokens(self, refresh_token: str) -> TokenBundle:
        if not refresh_token:
            raise TokenRefreshError("No refresh token available")

        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self.TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )
        try:
            creds.refresh(Request())
        except RefreshError as e:
            logger.warning(f"Google token refresh rejected: {e}")
            raise TokenRefreshError(f"Google token refresh failed: {e}") from e

        return TokenBundle(
            access_token=creds.token,
            refresh_token=creds.refresh_token or refresh_token,
            expires_at=creds.expiry,
        )

    def fetch_profile_email(self, access_token: str) -> str:
        return _fetch_profile(self.USERINFO_URL, access_token, ("email",))


class MicrosoftOAuthProvider(OAuthProvider):
    """OAuth2 provider for Microsoft/Outlook accounts (identity platform v2.0)."""

    PROFILE_URL = "https://graph.microsoft.com/v1.0/me"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        scopes: Optional[List[str]] = None,
        tenant: Optional[str] = None,
    ):
        self.client_id = client_id or config.MICROSOFT_CLIENT_ID
        self.client_secret = client_secret or config.MICROSOFT_CLIENT_SECRET
        self.redirect_uri = redirect_uri or config.OAUTH_REDIRECT_URI
        self.scopes = scopes or config.MICROSOFT_SCOPES
        self.tenant = tenant or config.MICROSOFT_TENANT

        if not self.client_id:
            raise OAuthError("Microsoft OAuth client ID must be configured")

    @property
    def authority(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant}/oauth2/v2.0"

    @property
    def token_endpoint(self) -> str:
        return f"{self.authority}/token"

    def get_authorization_url(self, state: str) -> str:
        request = requests.Request(
            "GET",
            f"{self.authority}/authorize",
            params={
                "client_id": self.client_id,
                "response_type": "code",
                "redirect_uri": self.redirect_uri,
                "response_mode": "query",
                "scope": " ".join(self.scopes),
                "state": state,
                "prompt": "select_account",
            },
        )
        return request.prepare().url

    def _post_token(self, data: dict, error_cls) -> dict:
        payload = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
        }
        if self.client_secret:
            payload["client_secret"] = self.client_secret
        payload.update(data)

        try:
            response = requests.post(
                self.token_endpoint, data=payload, timeout=config.HTTP_TIMEOUT_SECONDS
            )
        except requests.exceptions.Timeout as e:
            raise error_cls("Token request timed out") from e
        except requests.exceptions.RequestException as e:
            raise error_cls(f"Token request failed: {e}") from e

        if response.status_code != 200:
            logger.warning(
                f"Microsoft token endpoint returned {response.status_code}: {response.text[:200]}"
            )
            raise error_cls(f"Microsoft token request failed with HTTP {response.status_code}")
        return response.json()

    def exchange_code_for_tokens(self, code: str) -> TokenBundle:
        token_data = self._post_token(
            {"code": code, "grant_type": "authorization_code"}, OAuthError
        )
        return TokenBundle(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            expires_at=_expiry_from(token_data.get("expires_in")),
        )

    def refresh_tokens(self, refresh_token: str) -> TokenBundle:
        if not refresh_token:
            raise TokenRefreshError("No refresh token available")
        token_data = self._post_token(
            {"refresh_token": refresh_token, "grant_type": "refresh_token"},
            TokenRefreshError,
        )
        return TokenBundle(
            access_token=token_data["access_token"],
            # Microsoft may rotate the refresh token
            refresh_token=token_data.get("refresh_token", refresh_token),
            expires_at=_expiry_from(token_data.get("expires_in")),
        )

    def fetch_profile_email(self, access_token: str) -> str:
        return _fetch_profile(self.PROFILE_URL, access_token, ("mail", "userPrincipalName"))


def _fetch_profile(url: str, access_token: str, fields) -> str:
    """Read the account's email address from a provider profile endpoint."""
    try:
        response = requests.get(
            url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )
    except requests.exceptions.RequestException as e:
        raise TransportError(f"Profile lookup failed: {e}") from e

    if response.status_code != 200:
        raise OAuthError(f"Profile lookup failed with HTTP {response.status_code}")

    profile = response.json()
    for field_name in fields:
        if profile.get(field_name):
            return profile[field_name]
    raise OAuthError("Profile response did not contain an email address")


def get_oauth_provider(provider: Provider) -> OAuthProvider:
    """Build the OAuth provider for a mail provider."""
    if provider == Provider.GMAIL:
        return GoogleOAuthProvider()
    if provider == Provider.MICROSOFT:
        return MicrosoftOAuthProvider()
    raise OAuthError(f"Unsupported provider: {provider}")


def extract_authorization_code(redirect_url: str) -> str:
    """
    Pull the authorization code out of the URL the provider redirected to.

    A bare code is returned unchanged.

    Raises:
        OAuthError: If the redirect carries an error or no code.
    """
    redirect_url = (redirect_url or "").strip()
    if "?" not in redirect_url:
        if not redirect_url:
            raise OAuthError("No authorization code provided")
        return redirect_url

    params = parse_qs(urlparse(redirect_url).query)
    if "error" in params:
        if params["error"][0] == "access_denied":
            raise OAuthError("Authentication was cancelled by user.")
        description = params.get("error_description", [""])[0]
        raise OAuthError(f"OAuth error: {params['error'][0]}. {description}".strip())
    codes = params.get("code")
    if not codes:
        raise OAuthError("Redirect URL did not contain an authorization code")
    return codes[0]
