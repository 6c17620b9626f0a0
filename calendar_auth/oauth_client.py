"""
Google OAuth2 client for an installed app: consent URL, code exchange, refresh.
Also holds the current credential slot read by the Calendar API client.
"""
import hashlib
import json
import logging
import secrets
from base64 import urlsafe_b64encode
from dataclasses import dataclass, field
from urllib.parse import urlencode

import httpx

from calendar_auth.config import AUTH_URI, HTTP_TIMEOUT, TOKEN_URI
from calendar_auth.errors import AuthorizationFailedError, ConfigurationError, RefreshFailedError
from calendar_auth.models import CredentialRecord

logger = logging.getLogger(__name__)


@dataclass
class ClientIdentity:
    client_id: str
    client_secret: str
    redirect_uris: list[str] = field(default_factory=list)


def load_client_identity(path: str) -> ClientIdentity:
    """
    Read {"installed": {client_id, client_secret, redirect_uris}}.
    Raises OSError if unreadable, ConfigurationError if malformed.
    """
    with open(path, encoding="utf-8") as f:
        content = f.read()
    try:
        keys = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Client identity file {path} is not valid JSON: {e}") from e
    installed = keys.get("installed") if isinstance(keys, dict) else None
    if not isinstance(installed, dict):
        raise ConfigurationError(f"Client identity file {path} has no 'installed' section")
    client_id = installed.get("client_id")
    client_secret = installed.get("client_secret")
    if not client_id or not client_secret:
        raise ConfigurationError(f"Client identity file {path} is missing client_id or client_secret")
    return ClientIdentity(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uris=list(installed.get("redirect_uris") or []),
    )


def generate_state() -> str:
    """Opaque CSRF value echoed back on the consent redirect."""
    return secrets.token_urlsafe(32)


def generate_pkce() -> tuple[str, str]:
    """(code_verifier, S256 code_challenge)."""
    code_verifier = secrets.token_urlsafe(32)
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return code_verifier, urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def _error_description(r: httpx.Response) -> str:
    """Best-effort error text from a token endpoint response. Never includes tokens."""
    try:
        err = r.json()
    except ValueError:
        return f"HTTP {r.status_code}"
    if not isinstance(err, dict):
        return f"HTTP {r.status_code}"
    return str(err.get("error_description") or err.get("error") or f"HTTP {r.status_code}")


class GoogleOAuthClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        auth_uri: str = AUTH_URI,
        token_uri: str = TOKEN_URI,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.auth_uri = auth_uri
        self.token_uri = token_uri
        self.credentials: CredentialRecord | None = None

    @classmethod
    def from_identity(cls, identity: ClientIdentity, redirect_uri: str | None = None) -> "GoogleOAuthClient":
        if redirect_uri is None:
            if not identity.redirect_uris:
                raise ConfigurationError("No redirect URI configured")
            redirect_uri = identity.redirect_uris[0]
        return cls(identity.client_id, identity.client_secret, redirect_uri)

    def set_credentials(self, record: CredentialRecord | None) -> None:
        self.credentials = record

    def get_access_token(self) -> str:
        """Token for outgoing API calls. Callers validate through the TokenManager first."""
        if self.credentials is None or not self.credentials.access_token:
            raise RefreshFailedError("No access token available")
        return self.credentials.access_token

    def generate_auth_url(
        self,
        scopes: list[str],
        *,
        state: str | None = None,
        code_challenge: str | None = None,
        access_type: str = "offline",
        prompt: str = "consent",
    ) -> str:
        """Consent URL. Offline access so Google issues a refresh token."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(scopes),
            "access_type": access_type,
            "prompt": prompt,
        }
        if state:
            params["state"] = state
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"
        return f"{self.auth_uri}?{urlencode(params)}"

    def _post_token(self, data: dict) -> httpx.Response:
        return httpx.post(
            self.token_uri,
            data=data,
            headers={"Accept": "application/json"},
            timeout=HTTP_TIMEOUT,
        )

    def exchange_code(self, code: str, code_verifier: str | None = None) -> CredentialRecord:
        """Exchange an authorization code for tokens. Raises AuthorizationFailedError."""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        if code_verifier:
            data["code_verifier"] = code_verifier
        try:
            r = self._post_token(data)
        except httpx.HTTPError as e:
            raise AuthorizationFailedError(f"Token exchange request failed: {e}") from e
        if r.status_code != 200:
            raise AuthorizationFailedError(f"Token exchange failed: {_error_description(r)}")
        try:
            return _record_from_response(r)
        except ValueError as e:
            raise AuthorizationFailedError(f"Token exchange returned {e}") from e

    def refresh(self, record: CredentialRecord) -> CredentialRecord:
        """Refresh grant using record.refresh_token. Raises RefreshFailedError."""
        if not record.refresh_token:
            raise RefreshFailedError("No refresh token available")
        try:
            r = self._post_token(
                {
                    "grant_type": "refresh_token",
                    "refresh_token": record.refresh_token,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                }
            )
        except httpx.HTTPError as e:
            raise RefreshFailedError(f"Refresh request failed: {e}") from e
        if r.status_code != 200:
            raise RefreshFailedError(f"Refresh rejected: {_error_description(r)}")
        try:
            return _record_from_response(r, previous=record)
        except ValueError as e:
            raise RefreshFailedError(f"Refresh returned {e}") from e


def _record_from_response(r: httpx.Response, previous: CredentialRecord | None = None) -> CredentialRecord:
    """Parse a 200 token response. Raises ValueError describing what is wrong with it."""
    try:
        data = r.json()
    except ValueError:
        raise ValueError("invalid JSON") from None
    if not isinstance(data, dict):
        raise ValueError("a non-object body")
    if not data.get("access_token") or not isinstance(data["access_token"], str):
        raise ValueError("no access_token")
    try:
        return CredentialRecord.from_token_response(data, previous=previous)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"an invalid expires_in: {data.get('expires_in')!r}") from None
