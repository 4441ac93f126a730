"""Factories that turn a cluster map entry into a ready, authenticated client."""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import NamedTuple

import httpx
import structlog
from kubernetes.config import new_client_from_config

from kubecloud.auth import AuthProvider, AzureAuthProvider, GcpAuthProvider, IamAuthProvider, OidcAuthProvider
from kubecloud.clients.rest import ApiResponse, KubernetesClient
from kubecloud.config import ClientConfig, ClusterConfig
from kubecloud.errors import ConfigurationError

log = structlog.get_logger()

__all__ = [
    "ApiResponse",
    "KubeconfigEndpoint",
    "KubernetesClient",
    "build_auth_provider",
    "create_kubernetes_client",
    "load_kubeconfig_endpoint",
]


class KubeconfigEndpoint(NamedTuple):
    api_server_url: str
    certificate_authority: str | None
    skip_tls_verify: bool


def load_kubeconfig_endpoint(context: str) -> KubeconfigEndpoint:
    """Read the API server URL and CA for a kubeconfig context.

    Uses ``new_client_from_config`` so the global kubernetes SDK configuration
    is left untouched. Only the connection settings are taken; the context's
    own user credentials are ignored in favour of the cluster's auth provider.
    """
    # Note 1: new_client_from_config builds a private Configuration, unlike load_kube_config,
    # which would overwrite the SDK-wide default for every other caller in the process.
    api_client = new_client_from_config(context=context)
    configuration = api_client.configuration
    return KubeconfigEndpoint(
        api_server_url=configuration.host,
        certificate_authority=configuration.ssl_ca_cert,
        skip_tls_verify=not configuration.verify_ssl,
    )


def _build_iam(cluster: ClusterConfig) -> AuthProvider:
    return IamAuthProvider(
        cluster.cluster_name,
        cluster.region,
        profile=cluster.options.get("profile"),
        role_arn=cluster.options.get("role_arn"),
    )


def _build_oidc(cluster: ClusterConfig) -> AuthProvider:
    return OidcAuthProvider(
        cluster.cluster_name,
        cluster.region,
        role_arn=cluster.options.get("role_arn"),
        web_identity_token_file=cluster.options.get("web_identity_token_file"),
        role_session_name=cluster.options.get("role_session_name"),
    )


def _build_azure(cluster: ClusterConfig) -> AuthProvider:
    # Secrets never live in the cluster file; it names the variable holding one.
    secret_env = cluster.options.get("client_secret_env")
    client_secret = os.environ.get(secret_env) if secret_env else None
    if secret_env and not client_secret:
        msg = f"Cluster '{cluster.cluster_id}': environment variable {secret_env} is not set"
        raise ConfigurationError(msg)
    return AzureAuthProvider(
        tenant_id=cluster.options.get("tenant_id"),
        client_id=cluster.options.get("client_id"),
        client_secret=client_secret,
        managed_identity_client_id=cluster.options.get("managed_identity_client_id"),
    )


def _build_gcp(cluster: ClusterConfig) -> AuthProvider:
    return GcpAuthProvider(service_account_key_path=cluster.options.get("service_account_key_path"))


_PROVIDER_BUILDERS: dict[str, Callable[[ClusterConfig], AuthProvider]] = {
    "eks-iam": _build_iam,
    "eks-oidc": _build_oidc,
    "aks": _build_azure,
    "gke": _build_gcp,
}


def build_auth_provider(cluster: ClusterConfig) -> AuthProvider:
    """Create the auth provider matching ``cluster.provider``."""
    builder = _PROVIDER_BUILDERS.get(cluster.provider)
    if builder is None:
        valid = ", ".join(_PROVIDER_BUILDERS)
        msg = f"Unknown auth provider {cluster.provider!r}. Must be one of: {valid}"
        raise ConfigurationError(msg)
    return builder(cluster)


def create_kubernetes_client(
    cluster: ClusterConfig,
    *,
    transport: httpx.BaseTransport | None = None,
) -> KubernetesClient:
    """Assemble a KubernetesClient that owns (and closes) its auth provider."""
    api_server_url = cluster.api_server_url
    certificate_authority = cluster.certificate_authority
    skip_tls_verify = cluster.skip_tls_verify
    if not api_server_url:
        if not cluster.kubeconfig_context:
            msg = f"Cluster '{cluster.cluster_id}' needs either api_server_url or kubeconfig_context."
            raise ConfigurationError(msg)
        endpoint = load_kubeconfig_endpoint(cluster.kubeconfig_context)
        api_server_url = endpoint.api_server_url
        certificate_authority = certificate_authority or endpoint.certificate_authority
        skip_tls_verify = skip_tls_verify or endpoint.skip_tls_verify

    provider = build_auth_provider(cluster)
    config = ClientConfig(
        api_server_url=api_server_url,
        auth_provider=provider,
        certificate_authority=certificate_authority,
        skip_tls_verify=skip_tls_verify,
        namespace=cluster.namespace,
    )
    log.debug("kubernetes_client_created", cluster=cluster.cluster_id, provider=provider.name)
    return KubernetesClient(config, transport=transport, owns_auth_provider=True)
