"""
Error taxonomy cho sync engine.
ProviderError subclasses come out of provider clients; the orchestrator turns every
one of them (and LedgerWriteError / DecryptError) into connection state, never re-raises.
"""
from typing import Optional

UPSTREAM_BODY_LIMIT = 300
LAST_ERROR_LIMIT = 400


class SpendLedgerError(Exception):
    """Base class for application errors."""


class DecryptError(SpendLedgerError):
    """Stored ciphertext could not be decrypted (bad format, wrong key, tampered)."""


class ProviderError(SpendLedgerError):
    """Failure talking to an upstream billing API."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message)
        self.provider = provider


class AuthError(ProviderError):
    """Credential rejected upstream (401/403, token exchange refused)."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(provider, message)
        self.status_code = status_code


class UpstreamError(ProviderError):
    """Non-2xx response; carries status and truncated body."""

    def __init__(self, provider: str, status_code: int, body: str, message: Optional[str] = None) -> None:
        self.status_code = status_code
        self.body = (body or "")[:UPSTREAM_BODY_LIMIT]
        super().__init__(provider, message or f"{provider} request failed ({status_code}): {self.body}")


class MalformedResponseError(ProviderError):
    """Response body is not JSON or does not have the expected shape."""


class LedgerWriteError(SpendLedgerError):
    """Ledger transaction failed; nothing from the batch was committed."""


class InvalidMonthError(SpendLedgerError, ValueError):
    """Month string is not YYYY-MM."""


def upstream_error_for_status(provider: str, status_code: int, body: str) -> ProviderError:
    """Map an HTTP status to AuthError (401/403) or UpstreamError; message format is the same."""
    truncated = (body or "")[:UPSTREAM_BODY_LIMIT]
    message = f"{provider} request failed ({status_code}): {truncated}"
    if status_code in (401, 403):
        return AuthError(provider, message, status_code=status_code)
    return UpstreamError(provider, status_code, truncated, message=message)


def truncate_error(error: BaseException, fallback: str) -> str:
    """Message stored in connection.last_error (max 400 ký tự)."""
    message = str(error).strip()
    if not message:
        return fallback
    return message[:LAST_ERROR_LIMIT]


def remediation_for_error(last_error: Optional[str]) -> Optional[str]:
    """Advisory hint for a stored last_error. Not an error classification."""
    if not last_error:
        return None
    if "api.usage.read" in last_error or "insufficient permissions" in last_error:
        return "Use an Organization Admin key with usage/cost scopes in Settings."
    if "Unauthorized" in last_error:
        return "Verify CRON_SECRET and run Sync Now again."
    return "Update connection settings and retry sync."
