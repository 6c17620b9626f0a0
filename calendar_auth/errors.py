"""
Error kinds of the credential subsystem.
All of them are converted to booleans at the TokenManager.validate() / InteractiveAuthorizer.start() boundary.
"""


class CredentialError(Exception):
    pass


class NotFoundError(CredentialError):
    """No saved token record. Expected on first run."""


class CorruptDataError(CredentialError):
    """Saved token record exists but is not a parseable record."""


class RefreshFailedError(CredentialError):
    """Token endpoint rejected the refresh (revoked, expired, or no refresh token)."""


class AuthorizationFailedError(CredentialError):
    """Missing code, failed code exchange, or listener bind failure."""


class ConfigurationError(CredentialError):
    """Missing or malformed client identity / key material."""
