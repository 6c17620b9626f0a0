"""
One-time interactive authorization: open the Google consent page in the browser,
receive the redirect on GET /oauth2/callback, exchange the code, hand tokens to the TokenManager.

The callback route is an APIRouter so the tool server can serve it on its own port.
Without a host app, an embedded uvicorn listener is started in a daemon thread.
"""
import enum
import logging
import secrets
import threading
import webbrowser
from typing import Callable
from urllib.parse import urlparse

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import PlainTextResponse

from calendar_auth.config import (
    AUTH_TIMEOUT_SECONDS,
    CALENDAR_SCOPES,
    OAUTH_KEY_PATH,
    REDIRECT_PATH,
    REDIRECT_URI,
)
from calendar_auth.errors import AuthorizationFailedError, CredentialError
from calendar_auth.oauth_client import GoogleOAuthClient, generate_pkce, generate_state, load_client_identity
from calendar_auth.token_manager import TokenManager

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Authentication successful! You can close this window."
FAILURE_MESSAGE = "Authentication failed. Please try again."


class SessionState(enum.Enum):
    WAITING_FOR_CODE = "waiting_for_code"
    EXCHANGING = "exchanging"
    DONE = "done"
    FAILED = "failed"


class AuthorizationSession:
    """Pending consent flow. Exactly one terminal transition (DONE or FAILED)."""

    def __init__(self, authorize_url: str, oauth_state: str = "", code_verifier: str | None = None):
        self.authorize_url = authorize_url
        self.oauth_state = oauth_state
        self.code_verifier = code_verifier
        self.state = SessionState.WAITING_FOR_CODE
        self.error: str | None = None
        self._lock = threading.Lock()
        self._finished = threading.Event()

    def matches(self, oauth_state: str | None) -> bool:
        """True if the redirect carries the state value sent in the consent URL."""
        if not self.oauth_state:
            return True
        return bool(oauth_state) and secrets.compare_digest(oauth_state, self.oauth_state)

    def begin_exchange(self) -> bool:
        """WAITING_FOR_CODE -> EXCHANGING. False if another callback already claimed the session."""
        with self._lock:
            if self.state is not SessionState.WAITING_FOR_CODE:
                return False
            self.state = SessionState.EXCHANGING
            return True

    def _finish(self, state: SessionState, error: str | None = None) -> None:
        with self._lock:
            if self.state in (SessionState.DONE, SessionState.FAILED):
                return
            self.state = state
            self.error = error
        self._finished.set()

    def succeed(self) -> None:
        self._finish(SessionState.DONE)

    def fail(self, error: str) -> None:
        self._finish(SessionState.FAILED, error)

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until terminal. True only for DONE."""
        if not self._finished.wait(timeout):
            self.fail("Timed out waiting for the authorization callback")
        return self.state is SessionState.DONE


class _EmbeddedListener:
    """uvicorn serving the callback router in a daemon thread."""

    def __init__(self, router: APIRouter, host: str, port: int):
        import uvicorn

        app = FastAPI(title="OAuth callback")
        app.include_router(router)
        self.server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="warning"))
        self.thread = threading.Thread(target=self.server.run, name="oauth-callback", daemon=True)

    def start(self, startup_timeout: float = 5.0) -> None:
        self.thread.start()
        waited = 0.0
        while not self.server.started:
            if not self.thread.is_alive():
                # uvicorn exits the thread when it cannot bind
                raise AuthorizationFailedError("Callback listener failed to start")
            if waited >= startup_timeout:
                raise AuthorizationFailedError("Callback listener did not start in time")
            self.thread.join(0.05)
            waited += 0.05

    def stop(self) -> None:
        self.server.should_exit = True


class InteractiveAuthorizer:
    def __init__(
        self,
        token_manager: TokenManager,
        *,
        keys_path: str = OAUTH_KEY_PATH,
        redirect_uri: str = REDIRECT_URI,
        scopes: list[str] | None = None,
        open_browser: Callable[[str], object] = webbrowser.open,
        client_factory: Callable[..., GoogleOAuthClient] = GoogleOAuthClient.from_identity,
        embedded_listener: bool = False,
        timeout: float | None = AUTH_TIMEOUT_SECONDS,
    ):
        self.token_manager = token_manager
        self.keys_path = keys_path
        self.redirect_uri = redirect_uri
        self.scopes = scopes or list(CALENDAR_SCOPES)
        self.open_browser = open_browser
        self.client_factory = client_factory
        self.embedded_listener = embedded_listener
        self.timeout = timeout or None  # 0 -> wait without limit
        self.session: AuthorizationSession | None = None
        self._oauth_client: GoogleOAuthClient | None = None
        self._listener: _EmbeddedListener | None = None
        self.router = self._build_router()

    def _build_router(self) -> APIRouter:
        router = APIRouter()

        @router.get(REDIRECT_PATH, response_class=PlainTextResponse)
        def oauth2_callback(request: Request):
            """Redirect target from Google consent. ?code=... or ?error=..."""
            params = request.query_params
            return self.handle_callback(
                code=params.get("code"), error=params.get("error"), state=params.get("state")
            )

        return router

    def handle_callback(
        self, code: str | None, error: str | None = None, state: str | None = None
    ) -> PlainTextResponse:
        session = self.session
        if session is not None and not session.matches(state):
            # a forged redirect must not consume the pending session
            logger.error("OAuth callback rejected: missing or mismatched state")
            return PlainTextResponse(FAILURE_MESSAGE, status_code=500)
        if session is None or not session.begin_exchange():
            logger.error("OAuth callback received with no authorization in progress")
            return PlainTextResponse(FAILURE_MESSAGE, status_code=500)
        if error or not code:
            reason = f"Authorization denied: {error}" if error else "No code received"
            logger.error("Error in OAuth callback: %s", reason)
            session.fail(reason)
            return PlainTextResponse(FAILURE_MESSAGE, status_code=500)
        try:
            record = self._oauth_client.exchange_code(code, code_verifier=session.code_verifier)
            self.token_manager.save(record)
        except (CredentialError, OSError) as e:
            logger.error("Error in OAuth callback: %s", e)
            session.fail(str(e))
            return PlainTextResponse(FAILURE_MESSAGE, status_code=500)
        except Exception as e:
            logger.exception("Unexpected error in OAuth callback")
            session.fail(f"Unexpected error: {e}")
            return PlainTextResponse(FAILURE_MESSAGE, status_code=500)
        logger.info("Authorization complete; tokens saved")
        session.succeed()
        return PlainTextResponse(SUCCESS_MESSAGE)

    def _start_listener(self) -> None:
        if self._listener is not None:
            return
        parsed = urlparse(self.redirect_uri)
        listener = _EmbeddedListener(self.router, parsed.hostname or "127.0.0.1", parsed.port or 80)
        listener.start()
        self._listener = listener

    def stop(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None

    def start(self, wait: bool = True) -> bool:
        """
        Ensure credentials exist. Saved tokens short-circuit; otherwise run the consent flow.
        Returns False (never raises) on any failure.
        """
        logger.info("Starting authorization...")
        if self.token_manager.load_saved():
            logger.info("Valid tokens found, no need to start auth server")
            return True

        try:
            identity = load_client_identity(self.keys_path)
            self._oauth_client = self.client_factory(identity, self.redirect_uri)
            self.token_manager.set_oauth_client(self._oauth_client)
            oauth_state = generate_state()
            code_verifier, code_challenge = generate_pkce()
            authorize_url = self._oauth_client.generate_auth_url(
                self.scopes, state=oauth_state, code_challenge=code_challenge, access_type="offline"
            )
            self.session = AuthorizationSession(authorize_url, oauth_state, code_verifier)
            if self.embedded_listener:
                self._start_listener()
        except (CredentialError, OSError) as e:
            logger.error("Authentication failed: %s", e)
            self.session = None
            return False

        logger.info("Using redirect URI: %s", self.redirect_uri)
        logger.info("Url to authorize %s", authorize_url)
        try:
            self.open_browser(authorize_url)
        except webbrowser.Error as e:
            logger.warning("Could not open a browser (%s); open the URL above manually", e)

        if not wait:
            return True
        ok = self.session.wait(self.timeout)
        if not ok:
            logger.error("Authentication failed: %s", self.session.error)
        if self.embedded_listener:
            self.stop()
        return ok
