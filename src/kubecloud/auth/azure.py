"""AKS authentication with Azure AD (Entra ID) access tokens."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import structlog
from azure.core.credentials import TokenCredential
from azure.identity import ClientSecretCredential, DefaultAzureCredential, ManagedIdentityCredential

from kubecloud.auth.base import AuthProvider
from kubecloud.auth.cache import Clock
from kubecloud.errors import AuthenticationError, ConfigurationError

log = structlog.get_logger()

# Well-known application ID of the AKS AAD server, shared by every managed AKS cluster.
AKS_SCOPE = "6dae42f8-4368-4678-94ff-3960e28e3630/.default"


class AzureAuthProvider(AuthProvider):
    """Wraps an azure-identity credential behind the shared token contract.

    The credential is chosen, in order, from: an explicit ``TokenCredential``,
    a complete ``tenant_id``/``client_id``/``client_secret`` triple, a managed
    identity client ID, or ``DefaultAzureCredential``. Credentials built
    here are owned by the provider and closed with it; an explicit
    credential belongs to the caller.
    """

    name = "azure"

    def __init__(
        self,
        *,
        credential: TokenCredential | None = None,
        tenant_id: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        managed_identity_client_id: str | None = None,
        scope: str = AKS_SCOPE,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(clock)
        secret_parts = (tenant_id, client_id, client_secret)
        if any(secret_parts) and not all(secret_parts):
            msg = "Client secret authentication requires tenant_id, client_id and client_secret together"
            raise ConfigurationError(msg)
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._managed_identity_client_id = managed_identity_client_id
        self._scope = scope
        self._credential: Any = credential
        self._owns_credential = credential is None

    def _get_credential(self) -> Any:
        with self._lock:
            if self._credential is None:
                self._credential = self._build_credential()
            return self._credential

    def _build_credential(self) -> Any:
        if self._tenant_id and self._client_id and self._client_secret:
            log.debug("using_client_secret_credential", tenant_id=self._tenant_id)
            return ClientSecretCredential(
                tenant_id=self._tenant_id,
                client_id=self._client_id,
                client_secret=self._client_secret,
            )
        if self._managed_identity_client_id:
            log.debug("using_managed_identity_credential", client_id=self._managed_identity_client_id)
            return ManagedIdentityCredential(client_id=self._managed_identity_client_id)
        log.debug("using_default_azure_credential")
        return DefaultAzureCredential()

    def _fetch_token(self) -> tuple[str, datetime | None]:
        log.debug("refreshing_azure_token")
        try:
            access_token = self._get_credential().get_token(self._scope)
        except Exception as exc:
            log.error("failed_to_refresh_azure_token", error=str(exc))
            msg = "Failed to refresh Azure authentication token"
            raise AuthenticationError(msg) from exc

        if access_token is None or not access_token.token:
            msg = "Azure credential returned no token"
            raise AuthenticationError(msg) from ValueError("get_token returned an empty access token")

        expires_at = None
        if access_token.expires_on:
            expires_at = datetime.fromtimestamp(access_token.expires_on, tz=UTC)
        return access_token.token, expires_at

    def _release(self) -> None:
        if self._owns_credential and self._credential is not None:
            self._credential.close()
        self._credential = None
