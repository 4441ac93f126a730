"""Bearer-token providers for EKS (IAM, OIDC), AKS and GKE."""

from __future__ import annotations

from kubecloud.auth.azure import AKS_SCOPE, AzureAuthProvider
from kubecloud.auth.base import AuthProvider
from kubecloud.auth.cache import TokenCache, utc_now
from kubecloud.auth.gcp import CLOUD_PLATFORM_SCOPE, GcpAuthProvider
from kubecloud.auth.iam import IamAuthProvider
from kubecloud.auth.oidc import OidcAuthProvider
from kubecloud.auth.signer import TOKEN_PREFIX, RequestSigner, decode_token

__all__ = [
    "AKS_SCOPE",
    "CLOUD_PLATFORM_SCOPE",
    "TOKEN_PREFIX",
    "AuthProvider",
    "AzureAuthProvider",
    "GcpAuthProvider",
    "IamAuthProvider",
    "OidcAuthProvider",
    "RequestSigner",
    "TokenCache",
    "decode_token",
    "utc_now",
]
