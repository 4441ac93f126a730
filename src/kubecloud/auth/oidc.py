"""EKS authentication through IRSA web-identity federation.

Two caches with different cadences are kept:

* session credentials from ``AssumeRoleWithWebIdentity`` (about one hour,
  refreshed five minutes before expiry), and
* the minted ``k8s-aws-v1.`` bearer token (fourteen minutes, refreshed one
  minute before expiry), signed with those session credentials.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import boto3
import structlog
from botocore.credentials import ReadOnlyCredentials

from kubecloud.auth.base import AuthProvider
from kubecloud.auth.cache import Clock
from kubecloud.auth.iam import TOKEN_LIFETIME
from kubecloud.auth.signer import DEFAULT_PRESIGN_EXPIRES, RequestSigner
from kubecloud.config import DEFAULT_AWS_REGION, OidcSettings, resolve_oidc_settings
from kubecloud.errors import AuthenticationError
from kubecloud.models import SessionCredentials
from kubecloud.validation import validate_cluster_name, validate_region

log = structlog.get_logger()

ASSUMED_ROLE_DURATION_SECONDS = 3600
# Note 1: assumed-role credentials last an hour. They are renewed five minutes early so a
# token signed just before expiry still verifies for its whole 14-minute life.
CREDENTIALS_SKEW = timedelta(minutes=5)


class OidcAuthProvider(AuthProvider):
    """Exchanges a projected service-account token for EKS bearer tokens.

    The role ARN and token file path are resolved once at construction
    (explicit value, then ``AWS_ROLE_ARN`` / ``AWS_WEB_IDENTITY_TOKEN_FILE``).
    The file itself is only read on refresh because the kubelet may project
    or rotate it after the client is built.
    """

    name = "oidc"
    credentials_skew = CREDENTIALS_SKEW

    def __init__(
        self,
        cluster_name: str,
        region: str = DEFAULT_AWS_REGION,
        *,
        role_arn: str | None = None,
        web_identity_token_file: str | None = None,
        role_session_name: str | None = None,
        sts_client: Any = None,
        environ: Mapping[str, str] | None = None,
        presign_expires: timedelta = DEFAULT_PRESIGN_EXPIRES,
        token_lifetime: timedelta = TOKEN_LIFETIME,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(clock)
        self._cluster_name = validate_cluster_name(cluster_name)
        validate_region(region)
        self._region = region
        self._settings: OidcSettings = resolve_oidc_settings(
            role_arn=role_arn,
            web_identity_token_file=web_identity_token_file,
            role_session_name=role_session_name,
            environ=environ,
        )
        self._sts_client = sts_client
        self._owns_sts_client = sts_client is None
        self._token_lifetime = token_lifetime
        self._signer = RequestSigner(region, expires_in=presign_expires)
        self._session_credentials: SessionCredentials | None = None

    @property
    def settings(self) -> OidcSettings:
        return self._settings

    @property
    def cluster_name(self) -> str:
        return self._cluster_name

    @property
    def session_credentials(self) -> SessionCredentials | None:
        return self._session_credentials

    def _get_sts_client(self) -> Any:
        with self._lock:
            if self._sts_client is None:
                self._sts_client = boto3.client("sts", region_name=self._region)
            return self._sts_client

    def needs_credentials_refresh(self) -> bool:
        """True when no session credentials are held or they expire within five minutes."""
        if self._session_credentials is None:
            return True
        return self._clock() + self.credentials_skew >= self._session_credentials.expires_at

    def _read_web_identity_token(self) -> str:
        path = Path(self._settings.web_identity_token_file)
        try:
            token = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            log.error("failed_to_read_web_identity_token", path=str(path))
            msg = f"Failed to read web identity token file: {path}"
            raise AuthenticationError(msg) from exc
        if not token:
            msg = f"Web identity token file is empty: {path}"
            raise AuthenticationError(msg)
        return token

    def refresh_session_credentials(self) -> SessionCredentials:
        """Run the AssumeRoleWithWebIdentity exchange and cache the result."""
        with self._lock:
            self._ensure_open()
            log.debug("refreshing_session_credentials", role_arn=self._settings.role_arn)
            try:
                web_identity_token = self._read_web_identity_token()
                response = self._get_sts_client().assume_role_with_web_identity(
                    RoleArn=self._settings.role_arn,
                    RoleSessionName=self._settings.role_session_name,
                    WebIdentityToken=web_identity_token,
                    DurationSeconds=ASSUMED_ROLE_DURATION_SECONDS,
                )
                credentials = SessionCredentials.model_validate(response["Credentials"])
            except Exception as exc:
                log.error(
                    "failed_to_assume_role_with_web_identity",
                    role_arn=self._settings.role_arn,
                    error=str(exc),
                )
                msg = "Failed to assume role with web identity"
                raise AuthenticationError(msg) from exc

            if credentials.expires_at.tzinfo is None:
                credentials = credentials.model_copy(update={"expires_at": credentials.expires_at.replace(tzinfo=UTC)})
            self._session_credentials = credentials
        log.debug(
            "role_assumed_with_web_identity",
            role_arn=self._settings.role_arn,
            expires_at=credentials.expires_at,
        )
        return credentials

    def _fetch_token(self) -> tuple[str, datetime | None]:
        log.debug("generating_oidc_token", cluster=self._cluster_name, region=self._region)
        session = self._session_credentials
        if session is None or self.needs_credentials_refresh():
            session = self.refresh_session_credentials()

        try:
            token = self._signer.generate_token(
                self._cluster_name,
                ReadOnlyCredentials(session.access_key_id, session.secret_access_key, session.session_token),
            )
        except Exception as exc:
            log.error("failed_to_generate_oidc_token", cluster=self._cluster_name, error=str(exc))
            msg = "Failed to generate OIDC authentication token"
            raise AuthenticationError(msg) from exc
        return token, self._clock() + self._token_lifetime

    def _release(self) -> None:
        if self._owns_sts_client and self._sts_client is not None:
            self._sts_client.close()
        self._sts_client = None
