"""Client configuration, environment fallback resolution and the cluster map."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, get_args

import yaml

from kubecloud.errors import ConfigurationError
from kubecloud.validation import validate_region, validate_role_arn

if TYPE_CHECKING:
    from kubecloud.auth.base import AuthProvider

AWS_ROLE_ARN = "AWS_ROLE_ARN"
AWS_WEB_IDENTITY_TOKEN_FILE = "AWS_WEB_IDENTITY_TOKEN_FILE"
AWS_ROLE_SESSION_NAME = "AWS_ROLE_SESSION_NAME"
DEFAULT_ROLE_SESSION_NAME = "kubecloud-oidc-session"
DEFAULT_AWS_REGION = "us-east-1"

ProviderKind = Literal["eks-iam", "eks-oidc", "aks", "gke"]
PROVIDER_KINDS: tuple[str, ...] = get_args(ProviderKind)


def resolve_setting(
    explicit: str | None,
    env_var: str,
    environ: Mapping[str, str] | None = None,
    default: str | None = None,
) -> str | None:
    """Resolve a setting as explicit value, then environment variable, then default.

    Empty strings count as unset at every stage.
    """
    if explicit:
        return explicit
    # Note 1: an injectable mapping keeps tests off the process environment.
    env = os.environ if environ is None else environ
    value = env.get(env_var)
    if value:
        return value
    return default


@dataclass(frozen=True)
class OidcSettings:
    """Resolved IRSA settings for the web-identity exchange."""

    role_arn: str
    web_identity_token_file: str
    role_session_name: str


def resolve_oidc_settings(
    role_arn: str | None = None,
    web_identity_token_file: str | None = None,
    role_session_name: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> OidcSettings:
    """Resolve IRSA settings from explicit values and the standard AWS variables.

    Raises:
        ConfigurationError: If the role ARN or token file path is still missing
            after falling back to the environment.
    """
    resolved_arn = resolve_setting(role_arn, AWS_ROLE_ARN, environ)
    if not resolved_arn:
        msg = f"Role ARN is required. Set it explicitly or via the {AWS_ROLE_ARN} environment variable"
        raise ConfigurationError(msg)
    validate_role_arn(resolved_arn)

    resolved_file = resolve_setting(web_identity_token_file, AWS_WEB_IDENTITY_TOKEN_FILE, environ)
    if not resolved_file:
        msg = (
            "Web identity token file is required. Set it explicitly or via the "
            f"{AWS_WEB_IDENTITY_TOKEN_FILE} environment variable"
        )
        raise ConfigurationError(msg)

    session_name = resolve_setting(role_session_name, AWS_ROLE_SESSION_NAME, environ, DEFAULT_ROLE_SESSION_NAME)
    return OidcSettings(
        role_arn=resolved_arn,
        web_identity_token_file=resolved_file,
        role_session_name=session_name or DEFAULT_ROLE_SESSION_NAME,
    )


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings for a single Kubernetes API server."""

    api_server_url: str
    auth_provider: AuthProvider
    certificate_authority: str | None = None
    skip_tls_verify: bool = False
    connect_timeout: timedelta = timedelta(seconds=30)
    read_timeout: timedelta = timedelta(seconds=30)
    namespace: str = "default"

    def __post_init__(self) -> None:
        if not self.api_server_url:
            msg = "API server URL is required"
            raise ConfigurationError(msg)
        if not self.api_server_url.startswith(("https://", "http://")):
            msg = f"API server URL must use http or https: {self.api_server_url!r}"
            raise ConfigurationError(msg)
        if self.auth_provider is None:
            msg = "Auth provider is required"
            raise ConfigurationError(msg)
        # Paths are joined onto the base URL, so a trailing slash would double up.
        object.__setattr__(self, "api_server_url", self.api_server_url.rstrip("/"))


@dataclass(frozen=True)
class ClusterConfig:
    """One entry of the cluster map: where a cluster lives and how to authenticate."""

    cluster_id: str
    provider: ProviderKind
    cluster_name: str
    api_server_url: str | None = None
    kubeconfig_context: str | None = None
    region: str = DEFAULT_AWS_REGION
    certificate_authority: str | None = None
    skip_tls_verify: bool = False
    namespace: str = "default"
    # Provider-specific settings, e.g. role_arn, profile, tenant_id.
    options: dict[str, Any] = field(default_factory=dict)


_REQUIRED_FIELDS = ("provider", "cluster_name")
_KNOWN_FIELDS = {
    "provider",
    "cluster_name",
    "api_server_url",
    "kubeconfig_context",
    "region",
    "certificate_authority",
    "skip_tls_verify",
    "namespace",
}


def _load_cluster_map(path: Path) -> dict[str, ClusterConfig]:
    """Parse a YAML cluster file and return a mapping of cluster ID to ClusterConfig.

    Keys other than the known connection fields are kept in
    ``ClusterConfig.options`` and handed to the auth provider.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the content is malformed or misses required fields.
    """
    if not path.exists():
        msg = (
            f"Cluster configuration file not found: {path}. "
            "Create clusters.yaml or set KUBECLOUD_CLUSTERS to point to your config file."
        )
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(path.read_text())

    if not isinstance(raw, dict) or "clusters" not in raw:
        msg = f"Cluster config file {path} must contain a top-level 'clusters' key."
        raise ConfigurationError(msg)

    clusters_raw: Any = raw["clusters"]
    if not isinstance(clusters_raw, dict) or len(clusters_raw) == 0:
        msg = f"Cluster config file {path} has an empty or invalid 'clusters' section."
        raise ConfigurationError(msg)

    cluster_map: dict[str, ClusterConfig] = {}
    for cluster_id, entry in clusters_raw.items():
        if not isinstance(entry, dict):
            msg = f"Cluster '{cluster_id}' must be a mapping, got {type(entry).__name__}."
            raise ConfigurationError(msg)

        missing = [f for f in _REQUIRED_FIELDS if f not in entry]
        if missing:
            msg = f"Cluster '{cluster_id}' is missing required fields: {', '.join(missing)}."
            raise ConfigurationError(msg)

        provider = str(entry["provider"])
        if provider not in PROVIDER_KINDS:
            valid = ", ".join(PROVIDER_KINDS)
            msg = f"Cluster '{cluster_id}' has unknown provider {provider!r}. Must be one of: {valid}"
            raise ConfigurationError(msg)

        if not entry.get("api_server_url") and not entry.get("kubeconfig_context"):
            msg = f"Cluster '{cluster_id}' needs either api_server_url or kubeconfig_context."
            raise ConfigurationError(msg)

        region = str(entry.get("region", DEFAULT_AWS_REGION))
        if provider.startswith("eks-"):
            validate_region(region)

        cluster_map[str(cluster_id)] = ClusterConfig(
            cluster_id=str(cluster_id),
            provider=provider,  # type: ignore[arg-type]
            cluster_name=str(entry["cluster_name"]),
            api_server_url=entry.get("api_server_url"),
            kubeconfig_context=entry.get("kubeconfig_context"),
            region=region,
            certificate_authority=entry.get("certificate_authority"),
            skip_tls_verify=bool(entry.get("skip_tls_verify", False)),
            namespace=str(entry.get("namespace", "default")),
            options={k: v for k, v in entry.items() if k not in _KNOWN_FIELDS},
        )

    return cluster_map


CLUSTER_MAP: dict[str, ClusterConfig] = {}


def load_cluster_map() -> dict[str, ClusterConfig]:
    """Load the cluster map from YAML into the module-level ``CLUSTER_MAP``.

    The path comes from ``KUBECLOUD_CLUSTERS``, defaulting to ``clusters.yaml``
    in the current working directory.
    """
    path = Path(os.environ.get("KUBECLOUD_CLUSTERS", "clusters.yaml"))
    loaded = _load_cluster_map(path)
    CLUSTER_MAP.clear()
    CLUSTER_MAP.update(loaded)
    return CLUSTER_MAP


def resolve_cluster(cluster_id: str) -> ClusterConfig:
    """Look up a cluster by ID.

    Raises:
        ConfigurationError: If the cluster ID is not in ``CLUSTER_MAP``.
    """
    if cluster_id not in CLUSTER_MAP:
        valid = ", ".join(sorted(CLUSTER_MAP.keys()))
        msg = f"Unknown cluster '{cluster_id}'. Valid clusters: {valid}"
        raise ConfigurationError(msg)
    return CLUSTER_MAP[cluster_id]
