"""
Credential record held by the token manager and mirrored to disk.
Single stored set (one identity per process).
"""
import math
import time
from dataclasses import dataclass

from calendar_auth.errors import CorruptDataError

# 9999-12-31T23:59:59.999Z
MAX_EXPIRY_MS = 253_402_300_799_999


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class CredentialRecord:
    access_token: str = ""
    refresh_token: str | None = None
    expiry_date: int | None = None  # epoch millis
    scope: str | None = None
    token_type: str | None = None

    def is_usable(self) -> bool:
        return bool(self.access_token)

    def is_expired(self, now: int | None = None) -> bool:
        """No expiry means the token never expires."""
        if self.expiry_date is None:
            return False
        if now is None:
            now = now_ms()
        return self.expiry_date <= now

    def to_dict(self) -> dict:
        data = {"access_token": self.access_token}
        for key in ("refresh_token", "expiry_date", "scope", "token_type"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data) -> "CredentialRecord":
        """Build from a saved JSON object. Raises CorruptDataError on wrong shape or types."""
        if not isinstance(data, dict):
            raise CorruptDataError("Token record must be a JSON object")
        access_token = data.get("access_token") or ""
        if not isinstance(access_token, str):
            raise CorruptDataError("access_token must be a string")
        for key in ("refresh_token", "scope", "token_type"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise CorruptDataError(f"{key} must be a string")
        expiry = data.get("expiry_date")
        if expiry is not None:
            # bool is an int subclass; reject it explicitly
            if isinstance(expiry, bool) or not isinstance(expiry, (int, float)):
                raise CorruptDataError("expiry_date must be epoch milliseconds")
            if isinstance(expiry, float) and not math.isfinite(expiry):
                raise CorruptDataError("expiry_date must be a finite number")
            expiry = int(expiry)
            if not 0 <= expiry <= MAX_EXPIRY_MS:
                raise CorruptDataError("expiry_date is out of range")
        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            expiry_date=expiry,
            scope=data.get("scope"),
            token_type=data.get("token_type"),
        )

    @classmethod
    def from_token_response(
        cls,
        data: dict,
        previous: "CredentialRecord | None" = None,
        now: int | None = None,
    ) -> "CredentialRecord":
        """
        Build from a token endpoint response (expires_in in seconds).
        Refresh responses usually omit refresh_token; the previous one is kept.
        """
        if now is None:
            now = now_ms()
        expires_in = data.get("expires_in")
        expiry_date = now + int(expires_in) * 1000 if expires_in is not None else None
        if expiry_date is not None and not 0 <= expiry_date <= MAX_EXPIRY_MS:
            raise ValueError(f"expires_in out of range: {expires_in!r}")
        refresh_token = data.get("refresh_token") or (previous.refresh_token if previous else None)
        return cls(
            access_token=data.get("access_token", ""),
            refresh_token=refresh_token,
            expiry_date=expiry_date,
            scope=data.get("scope") or (previous.scope if previous else None),
            token_type=data.get("token_type"),
        )
