"""Tests for building providers and clients from cluster map entries."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from kubecloud.auth import AzureAuthProvider, GcpAuthProvider, IamAuthProvider, OidcAuthProvider
from kubecloud.clients import build_auth_provider, create_kubernetes_client, load_kubeconfig_endpoint
from kubecloud.config import ClusterConfig, _load_cluster_map
from kubecloud.errors import ConfigurationError


@pytest.fixture
def clusters(cluster_yaml) -> dict[str, ClusterConfig]:
    return _load_cluster_map(cluster_yaml)


class TestBuildAuthProvider:
    def test_eks_iam(self, clusters) -> None:
        provider = build_auth_provider(clusters["prod-eks"])
        assert isinstance(provider, IamAuthProvider)
        assert provider.cluster_name == "prod-cluster"
        assert provider.region == "us-west-2"

    def test_eks_oidc(self, clusters) -> None:
        provider = build_auth_provider(clusters["irsa-eks"])
        assert isinstance(provider, OidcAuthProvider)
        assert provider.settings.role_arn == "arn:aws:iam::123456789012:role/TestRole"

    def test_aks(self, clusters) -> None:
        assert isinstance(build_auth_provider(clusters["dev-aks"]), AzureAuthProvider)

    def test_gke(self, clusters) -> None:
        assert isinstance(build_auth_provider(clusters["data-gke"]), GcpAuthProvider)

    def test_aks_client_secret_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("AKS_SECRET", "s3cret")
        cluster = ClusterConfig(
            cluster_id="c",
            provider="aks",
            cluster_name="c",
            api_server_url="https://x",
            options={"tenant_id": "t", "client_id": "c", "client_secret_env": "AKS_SECRET"},
        )
        provider = build_auth_provider(cluster)
        assert provider._client_secret == "s3cret"

    def test_aks_missing_secret_variable(self, monkeypatch) -> None:
        monkeypatch.delenv("AKS_SECRET", raising=False)
        cluster = ClusterConfig(
            cluster_id="c",
            provider="aks",
            cluster_name="c",
            api_server_url="https://x",
            options={"tenant_id": "t", "client_id": "c", "client_secret_env": "AKS_SECRET"},
        )
        with pytest.raises(ConfigurationError, match="AKS_SECRET is not set"):
            build_auth_provider(cluster)

    def test_unknown_provider(self) -> None:
        cluster = ClusterConfig(cluster_id="c", provider="eks-iam", cluster_name="c", api_server_url="https://x")
        object.__setattr__(cluster, "provider", "openshift")
        with pytest.raises(ConfigurationError, match="Unknown auth provider"):
            build_auth_provider(cluster)


class TestCreateKubernetesClient:
    def test_explicit_endpoint(self, clusters) -> None:
        client = create_kubernetes_client(clusters["data-gke"], transport=httpx.MockTransport(lambda r: None))
        assert client.config.api_server_url == "https://34.1.2.3"
        assert client.config.skip_tls_verify is True
        assert isinstance(client.config.auth_provider, GcpAuthProvider)

    def test_client_owns_provider(self, clusters) -> None:
        client = create_kubernetes_client(clusters["data-gke"], transport=httpx.MockTransport(lambda r: None))
        client.close()
        assert client.config.auth_provider.closed is True

    def test_kubeconfig_fallback(self, clusters) -> None:
        api_client = MagicMock()
        api_client.configuration.host = "https://aks.example.com:443"
        api_client.configuration.ssl_ca_cert = None
        api_client.configuration.verify_ssl = True
        with patch("kubecloud.clients.new_client_from_config", return_value=api_client) as mock_load:
            client = create_kubernetes_client(clusters["dev-aks"], transport=httpx.MockTransport(lambda r: None))
        mock_load.assert_called_once_with(context="dev-aks-admin")
        assert client.config.api_server_url == "https://aks.example.com:443"
        assert client.config.namespace == "platform"

    def test_load_kubeconfig_endpoint_insecure(self) -> None:
        api_client = MagicMock()
        api_client.configuration.host = "https://k"
        api_client.configuration.ssl_ca_cert = "/tmp/ca.crt"
        api_client.configuration.verify_ssl = False
        with patch("kubecloud.clients.new_client_from_config", return_value=api_client):
            endpoint = load_kubeconfig_endpoint("ctx")
        assert endpoint.certificate_authority == "/tmp/ca.crt"
        assert endpoint.skip_tls_verify is True

    def test_endpoint_required(self) -> None:
        cluster = ClusterConfig(cluster_id="c", provider="gke", cluster_name="c")
        with pytest.raises(ConfigurationError, match="api_server_url or kubeconfig_context"):
            create_kubernetes_client(cluster)
