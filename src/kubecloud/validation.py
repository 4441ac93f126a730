"""Input validation helpers for cluster, AWS and port-forward parameters."""

from __future__ import annotations

import re

from kubecloud.errors import ConfigurationError

# EKS cluster names: 1-100 chars, alphanumeric start, then alphanumerics, hyphens, underscores
_CLUSTER_NAME_RE = re.compile(r"^[0-9A-Za-z][A-Za-z0-9\-_]{0,99}$")

_ROLE_ARN_RE = re.compile(r"^arn:aws[a-zA-Z-]*:iam::\d{12}:role/[\w+=,.@/-]+$")

_AWS_REGION_RE = re.compile(r"^[a-z]{2}(-gov|-iso[a-z]?)?-[a-z]+-\d$")

MIN_PORT = 1
MAX_PORT = 65535
# Note 1: each forwarded port takes two one-byte channel ids (data and error),
# so 256 channels leave room for 128 ports.
MAX_FORWARDED_PORTS = 128


def validate_cluster_name(cluster_name: str | None) -> str:
    """Return the cluster name, or raise if it is missing or malformed."""
    if not cluster_name:
        msg = "Cluster name is required"
        raise ConfigurationError(msg)
    if not _CLUSTER_NAME_RE.match(cluster_name):
        msg = f"Invalid cluster name: {cluster_name!r}."
        raise ConfigurationError(msg)
    return cluster_name


def validate_role_arn(role_arn: str) -> None:
    """Validate an IAM role ARN such as ``arn:aws:iam::123456789012:role/Name``."""
    if not _ROLE_ARN_RE.match(role_arn):
        msg = f"Invalid IAM role ARN: {role_arn!r}."
        raise ConfigurationError(msg)


def validate_region(region: str) -> None:
    if not _AWS_REGION_RE.match(region):
        msg = f"Invalid AWS region: {region!r}."
        raise ConfigurationError(msg)


def validate_port(port: int) -> None:
    """Validate a TCP port number."""
    if isinstance(port, bool) or not isinstance(port, int) or not MIN_PORT <= port <= MAX_PORT:
        msg = f"Port must be between {MIN_PORT} and {MAX_PORT}, got: {port!r}"
        raise ValueError(msg)


def validate_ports(ports: tuple[int, ...] | list[int]) -> None:
    if not ports:
        msg = "At least one port is required for port forwarding"
        raise ValueError(msg)
    if len(ports) > MAX_FORWARDED_PORTS:
        msg = f"At most {MAX_FORWARDED_PORTS} ports can be forwarded at once, got: {len(ports)}"
        raise ValueError(msg)
    for port in ports:
        validate_port(port)
    if len(set(ports)) != len(ports):
        msg = f"Duplicate ports are not allowed: {list(ports)}"
        raise ValueError(msg)
