"""
Durable storage for the single token record.
Owner-only file (0600), replaced atomically; no interpretation of token semantics and no retries.
"""
import json
import logging
import os
import tempfile
from pathlib import Path

from calendar_auth.config import TOKEN_PATH
from calendar_auth.errors import CorruptDataError, NotFoundError
from calendar_auth.models import CredentialRecord

logger = logging.getLogger(__name__)

_FILE_MODE = 0o600
_DIR_MODE = 0o700


class CredentialStore:
    def __init__(self, path: str | os.PathLike | None = None):
        self.path = Path(path or TOKEN_PATH)

    def load(self) -> CredentialRecord:
        """Read the saved record. Raises NotFoundError or CorruptDataError."""
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFoundError(f"No saved tokens at {self.path}") from None
        except UnicodeDecodeError as e:
            raise CorruptDataError(f"Saved tokens at {self.path} are not UTF-8 text: {e}") from e
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise CorruptDataError(f"Saved tokens at {self.path} are not valid JSON: {e}") from e
        return CredentialRecord.from_dict(data)

    def save(self, record: CredentialRecord) -> None:
        """Write to a temp file in the same directory, then rename over the target."""
        self.path.parent.mkdir(mode=_DIR_MODE, parents=True, exist_ok=True)
        # mkstemp creates the file 0600 already
        fd, tmp_path = tempfile.mkstemp(prefix=".tokens-", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, _FILE_MODE)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug("Saved tokens to %s", self.path)

    def delete(self) -> None:
        try:
            self.path.unlink()
            logger.info("Removed saved tokens at %s", self.path)
        except FileNotFoundError:
            pass
