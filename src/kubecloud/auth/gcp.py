"""GKE authentication with Google OAuth2 access tokens."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

import google.auth
import google.auth.transport.requests
import structlog
from google.auth.credentials import with_scopes_if_required
from google.oauth2 import service_account

from kubecloud.auth.base import AuthProvider
from kubecloud.auth.cache import Clock
from kubecloud.errors import AuthenticationError

log = structlog.get_logger()

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class GcpAuthProvider(AuthProvider):
    """Wraps google-auth credentials behind the shared token contract.

    The base credential is an explicit ``google.auth.credentials.Credentials``,
    a service-account key file, or Application Default Credentials (which
    also covers GKE Workload Identity). It is resolved and scoped on first
    use; the scoped object is cached so later refreshes reuse it.
    """

    name = "gcp"

    def __init__(
        self,
        *,
        credentials: Any = None,
        service_account_key_path: str | None = None,
        scopes: Sequence[str] = (CLOUD_PLATFORM_SCOPE,),
        request_factory: Callable[[], Any] = google.auth.transport.requests.Request,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(clock)
        self._base_credentials = credentials
        self._service_account_key_path = service_account_key_path
        self._scopes = list(scopes)
        self._request_factory = request_factory
        self._scoped_credentials: Any = None

    def _get_scoped_credentials(self) -> Any:
        with self._lock:
            if self._scoped_credentials is None:
                self._scoped_credentials = self._resolve_scoped_credentials()
            return self._scoped_credentials

    def _resolve_scoped_credentials(self) -> Any:
        if self._base_credentials is not None:
            return with_scopes_if_required(self._base_credentials, self._scopes)
        if self._service_account_key_path:
            log.debug("loading_service_account_credentials", path=self._service_account_key_path)
            return service_account.Credentials.from_service_account_file(
                self._service_account_key_path, scopes=self._scopes
            )
        log.debug("using_application_default_credentials")
        credentials, _project = google.auth.default(scopes=self._scopes)
        return credentials

    def _fetch_token(self) -> tuple[str, datetime | None]:
        log.debug("refreshing_gcp_token")
        try:
            credentials = self._get_scoped_credentials()
            credentials.refresh(self._request_factory())
        except Exception as exc:
            log.error("failed_to_refresh_gcp_token", error=str(exc))
            msg = "Failed to refresh GCP authentication token"
            raise AuthenticationError(msg) from exc
        # google-auth reports expiry as a naive UTC datetime; TokenCache normalizes it.
        return credentials.token, credentials.expiry
