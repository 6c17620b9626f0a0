"""
Non-interactive service-account credentials (JWT bearer grant, RFC 7523).
Signs an RS256 assertion with the key file's private key and trades it for an access token.
"""
import json
import logging
import time

import httpx
import jwt

from calendar_auth.config import CALENDAR_SCOPES, HTTP_TIMEOUT, TOKEN_URI
from calendar_auth.errors import AuthorizationFailedError, ConfigurationError

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME = 3600
# Re-authorize this many seconds before the token actually expires
EXPIRY_BUFFER_SECONDS = 60


class ServiceAccountCredentials:
    def __init__(
        self,
        client_email: str,
        private_key: str,
        scopes: list[str] | None = None,
        *,
        token_uri: str = TOKEN_URI,
        private_key_id: str | None = None,
    ):
        self.client_email = client_email
        # Keys pasted into env vars usually carry literal \n sequences
        self.private_key = private_key.replace("\\n", "\n")
        self.scopes = scopes or list(CALENDAR_SCOPES)
        self.token_uri = token_uri
        self.private_key_id = private_key_id
        self.token: str | None = None
        self.expires_at: float = 0.0

    @classmethod
    def from_key_file(cls, path: str, scopes: list[str] | None = None) -> "ServiceAccountCredentials":
        with open(path, encoding="utf-8") as f:
            try:
                key = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Service account key {path} is not valid JSON: {e}") from e
        if not isinstance(key, dict) or not key.get("client_email") or not key.get("private_key"):
            raise ConfigurationError(f"Service account key {path} is missing client_email or private_key")
        return cls(
            key["client_email"],
            key["private_key"],
            scopes,
            token_uri=key.get("token_uri") or TOKEN_URI,
            private_key_id=key.get("private_key_id"),
        )

    def build_assertion(self, now: int | None = None) -> str:
        if now is None:
            now = int(time.time())
        payload = {
            "iss": self.client_email,
            "scope": " ".join(self.scopes),
            "aud": self.token_uri,
            "iat": now,
            "exp": now + ASSERTION_LIFETIME,
        }
        headers = {"kid": self.private_key_id} if self.private_key_id else None
        try:
            assertion = jwt.encode(payload, self.private_key, algorithm="RS256", headers=headers)
        except (ValueError, TypeError, jwt.PyJWTError) as e:
            raise ConfigurationError(f"Invalid service account private key: {e}") from e
        if isinstance(assertion, bytes):
            assertion = assertion.decode("utf-8")
        return assertion

    def authorize(self) -> str:
        """Fetch a fresh access token. Raises AuthorizationFailedError."""
        logger.info("Initializing Service Account client...")
        try:
            r = httpx.post(
                self.token_uri,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": self.build_assertion()},
                headers={"Accept": "application/json"},
                timeout=HTTP_TIMEOUT,
            )
        except httpx.HTTPError as e:
            raise AuthorizationFailedError(f"Service account token request failed: {e}") from e
        if r.status_code != 200:
            raise AuthorizationFailedError(
                f"Failed to initialize Service Account client: HTTP {r.status_code}"
            )
        try:
            data = r.json()
        except ValueError as e:
            raise AuthorizationFailedError("Service account token response is not valid JSON") from e
        if not isinstance(data, dict) or not data.get("access_token"):
            raise AuthorizationFailedError("Service account token response had no access_token")
        try:
            expires_in = int(data.get("expires_in", ASSERTION_LIFETIME))
        except (TypeError, ValueError, OverflowError) as e:
            raise AuthorizationFailedError("Service account token response had an invalid expires_in") from e
        self.token = data["access_token"]
        self.expires_at = time.time() + expires_in
        return self.token

    def get_access_token(self) -> str:
        if not self.token or time.time() >= self.expires_at - EXPIRY_BUFFER_SECONDS:
            self.authorize()
        return self.token
