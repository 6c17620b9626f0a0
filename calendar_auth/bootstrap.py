"""
Choose between the OAuth2 flow and the service-account flow, provisioning key files from env.
"""
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from calendar_auth import config
from calendar_auth.authorizer import InteractiveAuthorizer
from calendar_auth.credential_store import CredentialStore
from calendar_auth.errors import ConfigurationError
from calendar_auth.oauth_client import GoogleOAuthClient, load_client_identity
from calendar_auth.service_account import ServiceAccountCredentials
from calendar_auth.token_manager import TokenManager

logger = logging.getLogger(__name__)


@dataclass
class GoogleClient:
    """What the tool dispatcher needs. token_manager/authorizer are None for service accounts."""

    credentials: Any  # anything with get_access_token()
    token_manager: TokenManager | None = None
    authorizer: InteractiveAuthorizer | None = None

    def get_access_token(self) -> str:
        # The authorizer may have swapped the OAuth client; read the manager's current one
        if self.token_manager is not None and self.token_manager.oauth_client is not None:
            return self.token_manager.oauth_client.get_access_token()
        return self.credentials.get_access_token()


def _write_private_file(path: str, content: str) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(p, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)


def write_oauth_key_file(
    path: str = config.OAUTH_KEY_PATH,
    client_id: str | None = config.OAUTH_CLIENT_ID,
    client_secret: str | None = config.OAUTH_CLIENT_SECRET,
    redirect_uri: str = config.REDIRECT_URI,
) -> bool:
    """Create the client identity file from env values if it does not exist. Returns True if written."""
    if os.path.exists(path):
        return False
    missing = []
    if not client_id:
        missing.append("GCP_OAUTH_CLIENT_ID is not set")
    if not client_secret:
        missing.append("GCP_OAUTH_CLIENT_SECRET is not set")
    if missing:
        raise ConfigurationError("\n".join(missing))
    content = json.dumps(
        {
            "installed": {
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uris": [redirect_uri],
            }
        },
        indent=2,
    )
    _write_private_file(path, content)
    logger.info("%s created at %s", os.path.basename(path), path)
    return True


def write_service_account_key_file(
    path: str = config.SERVICE_ACCOUNT_KEY_PATH,
    key_json: str | None = config.SERVICE_ACCOUNT_JSON,
) -> bool:
    if os.path.exists(path):
        return False
    if not key_json:
        raise ConfigurationError("GCP_SERVICE_ACCOUNT_JSON is not set and the key file does not exist")
    _write_private_file(path, key_json)
    logger.info("File %s created", os.path.basename(path))
    return True


def initialize_service_account_client(key_path: str = config.SERVICE_ACCOUNT_KEY_PATH) -> GoogleClient:
    write_service_account_key_file(key_path)
    credentials = ServiceAccountCredentials.from_key_file(key_path)
    credentials.authorize()
    return GoogleClient(credentials=credentials)


def initialize_oauth2_client(
    *,
    keys_path: str = config.OAUTH_KEY_PATH,
    store: CredentialStore | None = None,
    authorizer_options: dict | None = None,
    wait: bool = False,
) -> GoogleClient:
    """
    Build the OAuth client, token manager and authorizer. Starts the consent flow when
    no saved tokens exist. With wait=False (server mode) the callback completes it later.
    """
    write_oauth_key_file(keys_path)
    identity = load_client_identity(keys_path)
    oauth_client = GoogleOAuthClient.from_identity(identity)
    token_manager = TokenManager(oauth_client, store)
    authorizer = InteractiveAuthorizer(token_manager, keys_path=keys_path, **(authorizer_options or {}))

    if not token_manager.load_saved():
        logger.info("No valid tokens found, starting auth server...")
        if not authorizer.start(wait=wait):
            raise ConfigurationError("Failed to start auth server")
    return GoogleClient(credentials=oauth_client, token_manager=token_manager, authorizer=authorizer)


def initialize_google_client(method: str = config.AUTH_METHOD, **kwargs) -> GoogleClient:
    if method == "service-account":
        return initialize_service_account_client(**kwargs)
    if method == "oauth2":
        return initialize_oauth2_client(**kwargs)
    raise ConfigurationError("Authentication method supported: 'service-account' or 'oauth2'")


def cleanup(client: GoogleClient | None) -> None:
    logger.info("Cleaning up...")
    if client is None:
        return
    if client.token_manager is not None:
        client.token_manager.clear()
    if client.authorizer is not None:
        client.authorizer.stop()
