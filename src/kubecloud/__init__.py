"""Multi-cloud Kubernetes API client with pluggable bearer-token authentication."""

from __future__ import annotations

from kubecloud.auth import (
    AuthProvider,
    AzureAuthProvider,
    GcpAuthProvider,
    IamAuthProvider,
    OidcAuthProvider,
    RequestSigner,
    TokenCache,
)
from kubecloud.clients import ApiResponse, KubernetesClient, build_auth_provider, create_kubernetes_client
from kubecloud.clients.options import ListOptions, LogOptions, PatchOptions, PatchType, WatchOptions
from kubecloud.clients.exec import ExecMultiplexer, ExecOptions, ExecStatus, ExecWatch
from kubecloud.clients.portforward import PortForwardMultiplexer, PortForwardOptions, PortForwardWatch
from kubecloud.clients.stream import ChannelSession
from kubecloud.config import ClientConfig, ClusterConfig, load_cluster_map, resolve_cluster
from kubecloud.errors import AuthenticationError, ClientError, ConfigurationError, KubecloudError
from kubecloud.log import configure_logging
from kubecloud.models import TokenStatus

__all__ = [
    "ApiResponse",
    "AuthProvider",
    "AuthenticationError",
    "AzureAuthProvider",
    "ClientConfig",
    "ChannelSession",
    "ClientError",
    "ClusterConfig",
    "ConfigurationError",
    "GcpAuthProvider",
    "IamAuthProvider",
    "ExecMultiplexer",
    "ExecOptions",
    "ExecStatus",
    "ExecWatch",
    "KubecloudError",
    "KubernetesClient",
    "ListOptions",
    "LogOptions",
    "OidcAuthProvider",
    "PatchOptions",
    "PatchType",
    "PortForwardMultiplexer",
    "PortForwardOptions",
    "PortForwardWatch",
    "RequestSigner",
    "TokenCache",
    "TokenStatus",
    "WatchOptions",
    "build_auth_provider",
    "configure_logging",
    "create_kubernetes_client",
    "load_cluster_map",
    "resolve_cluster",
]
