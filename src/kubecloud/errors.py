"""Exception hierarchy for authentication, transport and configuration failures."""

from __future__ import annotations


class KubecloudError(Exception):
    """Base class for every error raised by kubecloud."""


class AuthenticationError(KubecloudError):
    """A credential could not be resolved, exchanged or signed.

    Raised with ``raise ... from cause`` so the original SDK error stays
    attached as ``__cause__``.
    """


class ClientError(KubecloudError):
    """An HTTP call failed in transport or was rejected as 401/403."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(KubecloudError, ValueError):
    """A required setting is missing or invalid at construction time."""
