"""Expiry-aware storage for one cached bearer token."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from kubecloud.models import CachedToken, TokenStatus

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class TokenCache:
    """Holds the current token and decides when it must be regenerated.

    ``skew`` is the early-refresh margin: a token is stale once
    ``now + skew >= expires_at``, so a token is never presented within that
    margin of its real expiry. A token without an expiry is always stale.
    """

    def __init__(self, skew: timedelta, clock: Clock = utc_now) -> None:
        self._skew = skew
        self._clock = clock
        self._token: CachedToken | None = None

    @property
    def skew(self) -> timedelta:
        return self._skew

    @property
    def value(self) -> str | None:
        return self._token.value if self._token else None

    @property
    def expires_at(self) -> datetime | None:
        return self._token.expires_at if self._token else None

    def needs_refresh(self) -> bool:
        if self._token is None:
            return True
        return self._token.is_stale(self._clock(), self._skew)

    def store(self, value: str, expires_at: datetime | None) -> CachedToken:
        if expires_at is not None and expires_at.tzinfo is None:
            # Vendor SDKs (google-auth) report naive UTC instants.
            expires_at = expires_at.replace(tzinfo=UTC)
        self._token = CachedToken(value=value, expires_at=expires_at)
        return self._token

    def clear(self) -> None:
        self._token = None

    def status(self) -> TokenStatus:
        if self._token is None or not self._token.value:
            return TokenStatus(has_token=False, is_expired=True)

        now = self._clock()
        expires_at = self._token.expires_at
        is_expired = expires_at is None or now >= expires_at
        seconds_remaining = None
        if expires_at is not None and not is_expired:
            seconds_remaining = int((expires_at - now).total_seconds())

        return TokenStatus(
            has_token=True,
            is_expired=is_expired,
            expires_at=expires_at,
            seconds_remaining=seconds_remaining,
        )
