"""Shared cache-and-refresh contract implemented by every auth provider."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from types import TracebackType

import structlog

from kubecloud.auth.cache import Clock, TokenCache, utc_now
from kubecloud.errors import AuthenticationError
from kubecloud.models import TokenStatus

log = structlog.get_logger()


class AuthProvider(ABC):
    """Produces bearer tokens for Kubernetes API requests.

    Subclasses implement ``_fetch_token`` to mint a fresh token and report
    its expiry; caching, staleness checks and header formatting live here so
    the REST client can treat every provider the same way.

    ``refresh`` and the check-then-refresh inside ``get_token`` run under a
    per-instance lock, so concurrent callers on a stale cache trigger one
    regeneration and then share its result.
    """

    name = "auth"
    auth_type = "Bearer"
    token_skew = timedelta(minutes=1)

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock: Clock = clock or utc_now
        self._cache = TokenCache(skew=self.token_skew, clock=self._clock)
        # RLock: refresh() is public and also called from get_token() while held.
        self._lock = threading.RLock()
        self._closed = False

    @abstractmethod
    def _fetch_token(self) -> tuple[str, datetime | None]:
        """Mint a new token and return it with its expiry (None if unknown).

        Implementations wrap SDK failures in AuthenticationError naming the stage.
        """

    def get_token(self) -> str:
        """Return a valid token, refreshing first if the cache is empty or stale."""
        with self._lock:
            if self._cache.needs_refresh():
                self.refresh()
            token = self._cache.value
        if not token:
            msg = f"{self.name} provider has no token after refresh"
            raise AuthenticationError(msg) from ValueError("cached token value is empty")
        return token

    def needs_refresh(self) -> bool:
        return self._cache.needs_refresh()

    def _ensure_open(self) -> None:
        if self._closed:
            msg = f"{self.name} provider is closed"
            raise AuthenticationError(msg)

    def refresh(self) -> None:
        """Regenerate the token unconditionally, ignoring the cache.

        Raises AuthenticationError once the provider is closed, so released
        SDK clients and credentials are never rebuilt.
        """
        with self._lock:
            self._ensure_open()
            value, expires_at = self._fetch_token()
            if not value:
                msg = f"{self.name} provider returned an empty token"
                raise AuthenticationError(msg) from ValueError(f"{self.name} token endpoint returned no value")
            cached = self._cache.store(value, expires_at)
        log.debug("auth_token_refreshed", provider=self.name, expires_at=cached.expires_at)

    def auth_header(self) -> str:
        return f"{self.auth_type} {self.get_token()}"

    def status(self) -> TokenStatus:
        return self._cache.status()

    def close(self) -> None:
        """Release held network resources. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._release()

    def _release(self) -> None:
        """Hook for subclasses that own clients or credentials."""

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> AuthProvider:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
