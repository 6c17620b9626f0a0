"""
Tool server configuration.
Auth-related settings (port, host, auth method, key paths) live in calendar_auth.config.
"""
import os

from calendar_auth.config import MCP_HOST, PORT

# Google Calendar REST API v3
CALENDAR_API_BASE = os.environ.get("CALENDAR_API_BASE", "https://www.googleapis.com/calendar/v3").rstrip("/")

# Bind address for uvicorn
HOST = os.environ.get("HOST", "127.0.0.1")

# Shown to the user when credentials are missing or could not be refreshed
AUTH_REQUIRED_MESSAGE = (
    f"Authentication required. Please visit {MCP_HOST} to authenticate with Google Calendar."
)

__all__ = ["AUTH_REQUIRED_MESSAGE", "CALENDAR_API_BASE", "HOST", "MCP_HOST", "PORT"]
