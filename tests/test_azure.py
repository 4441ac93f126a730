"""Tests for AzureAuthProvider."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
from azure.core.credentials import AccessToken

from kubecloud.auth.azure import AKS_SCOPE, AzureAuthProvider
from kubecloud.errors import AuthenticationError, ConfigurationError

EXPIRES_ON = int(datetime(2024, 6, 1, 13, 0, 0, tzinfo=UTC).timestamp())


@pytest.fixture
def mock_credential() -> MagicMock:
    credential = MagicMock()
    credential.get_token.return_value = AccessToken("aad-token", EXPIRES_ON)
    return credential


class TestTokenRefresh:
    def test_token_requested_for_aks_scope(self, mock_credential, clock) -> None:
        provider = AzureAuthProvider(credential=mock_credential, clock=clock)
        assert provider.get_token() == "aad-token"
        mock_credential.get_token.assert_called_once_with(AKS_SCOPE)

    def test_expiry_taken_from_access_token(self, mock_credential, clock) -> None:
        provider = AzureAuthProvider(credential=mock_credential, clock=clock)
        provider.get_token()
        assert provider.status().expires_at == datetime(2024, 6, 1, 13, 0, 0, tzinfo=UTC)

    def test_cached_until_skew(self, mock_credential, clock) -> None:
        provider = AzureAuthProvider(credential=mock_credential, clock=clock)
        provider.get_token()
        clock.advance(minutes=58)
        provider.get_token()
        assert mock_credential.get_token.call_count == 1
        clock.advance(minutes=1)
        provider.get_token()
        assert mock_credential.get_token.call_count == 2

    def test_custom_scope(self, mock_credential, clock) -> None:
        provider = AzureAuthProvider(credential=mock_credential, scope="api://custom/.default", clock=clock)
        provider.get_token()
        mock_credential.get_token.assert_called_once_with("api://custom/.default")


class TestFailures:
    def test_credential_error_wrapped(self, mock_credential, clock) -> None:
        mock_credential.get_token.side_effect = RuntimeError("CredentialUnavailable")
        provider = AzureAuthProvider(credential=mock_credential, clock=clock)
        with pytest.raises(AuthenticationError, match="Failed to refresh Azure authentication token") as exc_info:
            provider.get_token()
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_empty_token(self, mock_credential, clock) -> None:
        mock_credential.get_token.return_value = AccessToken("", EXPIRES_ON)
        provider = AzureAuthProvider(credential=mock_credential, clock=clock)
        with pytest.raises(AuthenticationError, match="Azure credential returned no token") as exc_info:
            provider.get_token()
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_no_token(self, mock_credential, clock) -> None:
        mock_credential.get_token.return_value = None
        provider = AzureAuthProvider(credential=mock_credential, clock=clock)
        with pytest.raises(AuthenticationError, match="Azure credential returned no token") as exc_info:
            provider.get_token()
        assert isinstance(exc_info.value.__cause__, ValueError)


class TestCredentialSelection:
    def test_partial_secret_triple_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="tenant_id, client_id and client_secret"):
            AzureAuthProvider(tenant_id="t", client_id="c")

    def test_client_secret_credential(self) -> None:
        provider = AzureAuthProvider(tenant_id="t", client_id="c", client_secret="s")
        with patch("kubecloud.auth.azure.ClientSecretCredential") as mock_cls:
            provider._get_credential()
            provider._get_credential()
        mock_cls.assert_called_once_with(tenant_id="t", client_id="c", client_secret="s")

    def test_managed_identity_credential(self) -> None:
        provider = AzureAuthProvider(managed_identity_client_id="mi-client")
        with patch("kubecloud.auth.azure.ManagedIdentityCredential") as mock_cls:
            provider._get_credential()
        mock_cls.assert_called_once_with(client_id="mi-client")

    def test_default_credential(self) -> None:
        provider = AzureAuthProvider()
        with patch("kubecloud.auth.azure.DefaultAzureCredential") as mock_cls:
            provider._get_credential()
        mock_cls.assert_called_once_with()


class TestClose:
    def test_explicit_credential_not_closed(self, mock_credential) -> None:
        provider = AzureAuthProvider(credential=mock_credential)
        provider.close()
        mock_credential.close.assert_not_called()

    def test_owned_credential_closed_once(self) -> None:
        provider = AzureAuthProvider()
        with patch("kubecloud.auth.azure.DefaultAzureCredential") as mock_cls:
            provider._get_credential()
        provider.close()
        provider.close()
        mock_cls.return_value.close.assert_called_once()

    def test_owned_credential_not_rebuilt_after_close(self, clock) -> None:
        provider = AzureAuthProvider(clock=clock)
        with patch("kubecloud.auth.azure.DefaultAzureCredential") as mock_cls:
            mock_cls.return_value.get_token.return_value = AccessToken("aad-token", EXPIRES_ON)
            provider.get_token()
            provider.close()
            with pytest.raises(AuthenticationError, match="provider is closed"):
                provider.refresh()
        mock_cls.assert_called_once_with()
        mock_cls.return_value.close.assert_called_once()
