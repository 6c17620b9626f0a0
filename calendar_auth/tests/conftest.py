"""
Shared fixtures for calendar_auth tests: token store in tmp_path, fake OAuth client, manual timers.
"""
import json
from urllib.parse import urlencode

import pytest

from calendar_auth.credential_store import CredentialStore
from calendar_auth.errors import AuthorizationFailedError, RefreshFailedError
from calendar_auth.models import CredentialRecord
from calendar_auth.token_manager import TokenManager


class FakeTimer:
    """Stands in for threading.Timer; fire() runs the callback synchronously."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function()


class FakeOAuthClient:
    def __init__(self, refreshed: CredentialRecord | None = None, exchanged: CredentialRecord | None = None):
        self.credentials = None
        self.refreshed = refreshed
        self.exchanged = exchanged
        self.refresh_error: Exception | None = None
        self.exchange_error: Exception | None = None
        self.refresh_calls = 0
        self.exchanged_codes: list[str] = []
        self.code_verifiers: list[str | None] = []
        self.auth_url_calls: list[dict] = []

    def set_credentials(self, record):
        self.credentials = record

    def get_access_token(self):
        return self.credentials.access_token

    def refresh(self, record):
        self.refresh_calls += 1
        if self.refresh_error is not None:
            raise self.refresh_error
        if self.refreshed is None:
            raise RefreshFailedError("no refresh configured")
        return self.refreshed

    def exchange_code(self, code, code_verifier=None):
        self.exchanged_codes.append(code)
        self.code_verifiers.append(code_verifier)
        if self.exchange_error is not None:
            raise self.exchange_error
        if self.exchanged is None:
            raise AuthorizationFailedError("no exchange configured")
        return self.exchanged

    def generate_auth_url(self, scopes, *, state=None, code_challenge=None, access_type="offline", prompt="consent"):
        self.auth_url_calls.append(
            {"scopes": scopes, "state": state, "code_challenge": code_challenge, "access_type": access_type}
        )
        return "https://accounts.google.com/o/oauth2/v2/auth?" + urlencode({"mock": "true", "state": state})


@pytest.fixture
def timers():
    created: list[FakeTimer] = []

    def factory(interval, function):
        t = FakeTimer(interval, function)
        created.append(t)
        return t

    factory.created = created
    return factory


@pytest.fixture
def token_path(tmp_path):
    return tmp_path / "tokens" / ".gcp-saved-tokens.json"


@pytest.fixture
def store(token_path):
    return CredentialStore(token_path)


@pytest.fixture
def oauth_client():
    return FakeOAuthClient()


@pytest.fixture
def manager(oauth_client, store, timers):
    return TokenManager(oauth_client, store, delete_on_clear=False, timer_factory=timers)


@pytest.fixture
def keys_path(tmp_path):
    path = tmp_path / "gcp-oauth.keys.json"
    path.write_text(
        json.dumps(
            {
                "installed": {
                    "client_id": "client-123.apps.googleusercontent.com",
                    "client_secret": "shh",
                    "redirect_uris": ["http://localhost:3001/oauth2/callback"],
                }
            }
        )
    )
    return path
