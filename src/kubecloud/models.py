"""Pydantic v2 models for cached tokens, session credentials and token status."""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field


class CachedToken(BaseModel):
    """A bearer token together with the instant it stops being valid.

    A token without ``expires_at`` has an unknown lifetime and is always
    reported as stale.
    """

    model_config = ConfigDict(frozen=True)

    value: str = Field(repr=False)
    expires_at: datetime | None = None

    def is_stale(self, now: datetime, skew: timedelta) -> bool:
        if not self.value or self.expires_at is None:
            return True
        return now + skew >= self.expires_at


class SessionCredentials(BaseModel):
    """Temporary AWS credentials returned by STS AssumeRoleWithWebIdentity."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    access_key_id: str = Field(alias="AccessKeyId")
    secret_access_key: str = Field(alias="SecretAccessKey", repr=False)
    session_token: str = Field(alias="SessionToken", repr=False)
    expires_at: datetime = Field(alias="Expiration")


class TokenStatus(BaseModel):
    """Snapshot of a provider's cached token, safe to log or display."""

    has_token: bool
    is_expired: bool
    expires_at: datetime | None = None
    seconds_remaining: int | None = None
