"""
Credential subsystem configuration.
No secrets in this file; client identity and tokens live in files outside version control.
"""
import os
from pathlib import Path

# Port shared by the tool server and the OAuth callback listener
PORT = int(os.environ.get("PORT", "3001"))

# Public base URL of this process; the OAuth redirect URI is built from it
MCP_HOST = os.environ.get("MCP_HOST", f"http://localhost:{PORT}").rstrip("/")

# Callback path registered as redirect URI in the Google console
REDIRECT_PATH = "/oauth2/callback"
REDIRECT_URI = f"{MCP_HOST}{REDIRECT_PATH}"

# 'oauth2' (interactive consent, refresh token) or 'service-account'
AUTH_METHOD = os.environ.get("MCP_AUTH_METHOD", "oauth2")

# Saved token record. Default lives in the user's config dir, never in the repo.
TOKEN_PATH = os.environ.get(
    "GCP_SAVED_TOKENS_PATH",
    str(Path.home() / ".config" / "google-calendar-mcp" / ".gcp-saved-tokens.json"),
)

# Client identity file ({"installed": {client_id, client_secret, redirect_uris}})
OAUTH_KEY_PATH = os.environ.get("GCP_OAUTH_KEY_PATH", os.path.join("credentials", "gcp-oauth.keys.json"))
OAUTH_CLIENT_ID = os.environ.get("GCP_OAUTH_CLIENT_ID")
OAUTH_CLIENT_SECRET = os.environ.get("GCP_OAUTH_CLIENT_SECRET")

# Service account key file and optional inline JSON used to provision it
SERVICE_ACCOUNT_KEY_PATH = os.environ.get(
    "GCP_KEY_PATH", os.path.join("credentials", "gcp-service-account.json")
)
SERVICE_ACCOUNT_JSON = os.environ.get("GCP_SERVICE_ACCOUNT_JSON")

# Google endpoints
AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar"]

# Seconds to wait for the browser consent callback; 0 waits until the process exits
AUTH_TIMEOUT_SECONDS = float(os.environ.get("GCP_AUTH_TIMEOUT_SECONDS", "300"))

# Remove the saved token file on logout/cleanup (default: keep it, loading re-checks expiry)
DELETE_TOKENS_ON_CLEAR = os.environ.get("GCP_DELETE_TOKENS_ON_CLEAR", "false").lower() in ("1", "true", "yes")

# Outbound HTTP timeout (seconds)
HTTP_TIMEOUT = 10.0
