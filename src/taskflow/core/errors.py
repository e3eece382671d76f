# src/taskflow/core/errors.py

from __future__ import annotations

NOT_CONFIGURED_MESSAGE = "Backend not configured"
GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


class BackendError(RuntimeError):
    """A collaborator (tables, auth, edge function) reported a failure."""

    def __init__(self, message: str, *, status: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


class NotConfiguredError(BackendError):
    """Raised by every call when backend credentials are missing."""

    def __init__(self) -> None:
        super().__init__(NOT_CONFIGURED_MESSAGE, code="not_configured")


class TransportError(BackendError):
    """The collaborator could not be reached (DNS, connect, timeout, ...)."""


def friendly_error_message(err: BaseException, fallback: str = GENERIC_FAILURE_MESSAGE) -> str:
    """Map an exception to the single human-readable string surfaced to callers."""
    if isinstance(err, TransportError):
        return fallback
    msg = str(err).strip()
    return msg or fallback
