"""Shared test fixtures for all test modules."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from kubecloud.auth.base import AuthProvider

START = datetime(2024, 6, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class StubProvider(AuthProvider):
    """Provider minting ``token-1``, ``token-2``... with a configurable lifetime."""

    name = "stub"

    def __init__(self, clock: FakeClock, lifetime: timedelta | None = timedelta(minutes=10)) -> None:
        super().__init__(clock)
        self.lifetime = lifetime
        self.fetch_count = 0
        self.release_count = 0
        self.next_value: str | None = None
        self.error: Exception | None = None

    def _fetch_token(self) -> tuple[str, datetime | None]:
        if self.error is not None:
            raise self.error
        self.fetch_count += 1
        value = self.next_value if self.next_value is not None else f"token-{self.fetch_count}"
        expires_at = self._clock() + self.lifetime if self.lifetime is not None else None
        return value, expires_at

    def _release(self) -> None:
        self.release_count += 1


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stub_provider(clock: FakeClock) -> StubProvider:
    return StubProvider(clock)


@pytest.fixture
def mock_sts_client() -> MagicMock:
    """Mock boto3 STS client answering AssumeRoleWithWebIdentity for one hour."""
    client = MagicMock()
    client.assume_role_with_web_identity.return_value = {
        "Credentials": {
            "AccessKeyId": "ASIAEXAMPLEKEY",
            "SecretAccessKey": "secret-example",
            "SessionToken": "session-token-example",
            "Expiration": START + timedelta(seconds=3600),
        }
    }
    return client


@pytest.fixture
def web_identity_token_file(tmp_path) -> str:
    path = tmp_path / "token"
    path.write_text("test-token-content\n")
    return str(path)


@pytest.fixture
def cluster_yaml(tmp_path):
    """Write a cluster map covering every provider kind and return its path."""
    path = tmp_path / "clusters.yaml"
    path.write_text(
        """
clusters:
  prod-eks:
    provider: eks-iam
    cluster_name: prod-cluster
    region: us-west-2
    api_server_url: https://ABC.gr7.us-west-2.eks.amazonaws.com/
    role_arn: arn:aws:iam::123456789012:role/EksAdmin
  irsa-eks:
    provider: eks-oidc
    cluster_name: irsa-cluster
    api_server_url: https://DEF.gr7.us-east-1.eks.amazonaws.com
    role_arn: arn:aws:iam::123456789012:role/TestRole
    web_identity_token_file: /var/run/secrets/eks.amazonaws.com/serviceaccount/token
  dev-aks:
    provider: aks
    cluster_name: dev-aks
    kubeconfig_context: dev-aks-admin
    namespace: platform
  data-gke:
    provider: gke
    cluster_name: data-gke
    api_server_url: https://34.1.2.3
    skip_tls_verify: true
    service_account_key_path: /etc/gcp/key.json
"""
    )
    return path
