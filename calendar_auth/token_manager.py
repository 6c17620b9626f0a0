"""
Token lifecycle: load saved record, validate before use, refresh on expiry (timer or inline), clear on logout.

States: Unloaded (no record) -> Loaded-Valid -> Loaded-Expired.
The record and the refresh timer are owned by one TokenManager per process and guarded by one lock.
"""
import logging
import threading
import time
from typing import Callable

from calendar_auth.config import DELETE_TOKENS_ON_CLEAR
from calendar_auth.credential_store import CredentialStore
from calendar_auth.errors import CredentialError, NotFoundError, RefreshFailedError
from calendar_auth.models import CredentialRecord
from calendar_auth.oauth_client import GoogleOAuthClient

logger = logging.getLogger(__name__)


def _daemon_timer(interval: float, function: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


class TokenManager:
    def __init__(
        self,
        oauth_client: GoogleOAuthClient | None = None,
        store: CredentialStore | None = None,
        *,
        delete_on_clear: bool = DELETE_TOKENS_ON_CLEAR,
        clock: Callable[[], float] = time.time,
        timer_factory: Callable[[float, Callable[[], None]], threading.Timer] = _daemon_timer,
    ):
        self.store = store or CredentialStore()
        self.delete_on_clear = delete_on_clear
        self._oauth_client = oauth_client
        self._clock = clock
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self._record: CredentialRecord | None = None
        self._timer = None
        # Bumped on every re-arm/cancel so a superseded timer callback becomes a no-op
        self._timer_generation = 0

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def credentials(self) -> CredentialRecord | None:
        with self._lock:
            return self._record

    @property
    def oauth_client(self) -> GoogleOAuthClient | None:
        return self._oauth_client

    def set_oauth_client(self, client: GoogleOAuthClient) -> None:
        """Swap the downstream client (e.g. after the authorizer rebuilds it) and apply the current record."""
        with self._lock:
            self._oauth_client = client
            client.set_credentials(self._record)

    def _apply(self, record: CredentialRecord | None) -> None:
        if self._oauth_client is not None:
            self._oauth_client.set_credentials(record)

    def _cancel_timer(self) -> None:
        self._timer_generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm_timer(self, record: CredentialRecord) -> None:
        """Schedule a proactive refresh at expiry. No expiry -> no timer."""
        self._cancel_timer()
        if record.expiry_date is None:
            return
        delay = max(0, record.expiry_date - self._now_ms()) / 1000
        generation = self._timer_generation
        self._timer = self._timer_factory(delay, lambda: self._on_timer(generation))
        self._timer.start()
        logger.debug("Token refresh scheduled in %.0f seconds", delay)

    def _adopt(self, record: CredentialRecord) -> None:
        self._record = record
        self._apply(record)
        self._arm_timer(record)

    def load_saved(self) -> bool:
        """
        Load the saved record. Missing or unreadable record -> False (fail open to re-authorization).
        """
        try:
            record = self.store.load()
        except NotFoundError:
            logger.debug("No saved tokens at %s", self.store.path)
            return False
        except (CredentialError, OSError) as e:
            logger.warning("Could not load saved tokens: %s", e)
            return False
        if not record.is_usable():
            logger.warning("Saved tokens have no access token; re-authorization required")
            return False
        with self._lock:
            self._adopt(record)
        logger.info("Loaded saved tokens")
        return True

    def save(self, record: CredentialRecord) -> None:
        """Persist, then adopt. A store failure propagates and leaves memory unchanged."""
        with self._lock:
            self.store.save(record)
            self._adopt(record)

    def validate(self) -> bool:
        """
        True if a usable, unexpired token is available after at most one inline refresh.
        Never raises.
        """
        with self._lock:
            record = self._record
            if record is None or not record.is_usable():
                return False
            if not record.is_expired(self._now_ms()):
                return True
            try:
                self.refresh()
            except (CredentialError, OSError) as e:
                logger.warning("Token refresh failed; re-authentication required: %s", e)
                return False
            return True

    def refresh(self) -> CredentialRecord:
        """Refresh through the OAuth client and save. Raises RefreshFailedError; no partial update."""
        with self._lock:
            record = self._record
            if record is None:
                raise RefreshFailedError("No credentials loaded")
            if self._oauth_client is None:
                raise RefreshFailedError("No OAuth client configured")
            try:
                new_record = self._oauth_client.refresh(record)
            except RefreshFailedError:
                raise
            except Exception as e:
                raise RefreshFailedError(f"Refresh failed: {e}") from e
            self.save(new_record)
            logger.info("Access token refreshed")
            return new_record

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._timer_generation:
                return
            self._timer = None
            try:
                self.refresh()
            except (CredentialError, OSError) as e:
                # validate() retries on next use
                logger.warning("Scheduled token refresh failed: %s", e)

    def clear(self) -> None:
        """Cancel the timer and drop the in-memory record. The saved file is kept unless delete_on_clear."""
        with self._lock:
            self._cancel_timer()
            self._record = None
            self._apply(None)
            if self.delete_on_clear:
                self.store.delete()
        logger.info("Tokens cleared")
