"""
Google Calendar tool server.
GET /health, GET /tools, POST /tools/call, GET /oauth2/callback (consent redirect target).
Port 3001 by default (PORT env).
"""
import logging
import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from calendar_auth.authorizer import FAILURE_MESSAGE
from calendar_auth.bootstrap import cleanup, initialize_google_client
from calendar_auth.config import REDIRECT_PATH
from calendar_auth.errors import CredentialError
from calendar_server.calendar_api import CalendarAPIError
from calendar_server.config import HOST, PORT
from calendar_server.schemas import ToolCall
from calendar_server.tools import AuthenticationRequired, ToolDispatcher, UnknownToolError, list_tools

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()


def _initialize(app: FastAPI) -> ToolDispatcher:
    """Create the Google client once; retried on the next tool call if it failed."""
    with _init_lock:
        dispatcher = getattr(app.state, "dispatcher", None)
        if dispatcher is None:
            google_client = initialize_google_client()
            app.state.google_client = google_client
            dispatcher = ToolDispatcher(google_client)
            app.state.dispatcher = dispatcher
        return dispatcher


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start authorization early so the consent page opens at startup; clear tokens on shutdown."""
    try:
        _initialize(app)
    except (CredentialError, OSError) as e:
        logger.error("Error initializing Google client: %s", e)
    yield
    cleanup(getattr(app.state, "google_client", None))


app = FastAPI(title="Google Calendar Tools", version="1.0.0", lifespan=lifespan)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "calendar_server"}


@app.get(REDIRECT_PATH, response_class=PlainTextResponse)
def oauth2_callback(request: Request):
    """Consent redirect. Delegates to the authorizer's session."""
    google_client = getattr(request.app.state, "google_client", None)
    if google_client is None or google_client.authorizer is None:
        logger.error("OAuth callback received but OAuth2 is not initialized")
        return PlainTextResponse(FAILURE_MESSAGE, status_code=500)
    params = request.query_params
    return google_client.authorizer.handle_callback(
        code=params.get("code"), error=params.get("error"), state=params.get("state")
    )


@app.get("/tools")
def tools():
    return {"tools": list_tools()}


@app.post("/tools/call")
def call_tool(call: ToolCall, request: Request):
    """Run one tool. 401 when (re-)authentication is needed."""
    try:
        dispatcher = _initialize(request.app)
    except (CredentialError, OSError) as e:
        logger.error("Google client not initialized: %s", e)
        raise HTTPException(status_code=503, detail={"error": "not_initialized", "error_description": str(e)})
    try:
        return dispatcher.dispatch(call.name, call.arguments)
    except AuthenticationRequired as e:
        raise HTTPException(status_code=401, detail={"error": "authentication_required", "error_description": str(e)})
    except CredentialError as e:
        logger.warning("Credentials unavailable: %s", e)
        raise HTTPException(status_code=401, detail={"error": "authentication_required", "error_description": str(e)})
    except UnknownToolError as e:
        raise HTTPException(status_code=404, detail={"error": "unknown_tool", "error_description": str(e)})
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"error": "invalid_arguments", "error_description": e.errors(include_url=False, include_context=False)},
        )
    except CalendarAPIError as e:
        logger.error("Error processing request: %s", e)
        raise HTTPException(status_code=502, detail={"error": "calendar_api_error", "error_description": e.message})


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    uvicorn.run(
        "calendar_server.main:app",
        host=HOST,
        port=PORT,
    )
