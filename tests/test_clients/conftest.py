"""Client-specific test fixtures: a recording mock transport and client factory."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from kubecloud.clients.rest import KubernetesClient
from kubecloud.config import ClientConfig

API_SERVER = "https://k8s.example.com"


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


@pytest.fixture
def make_client(stub_provider):
    """Build a KubernetesClient whose HTTP calls are answered by ``handler``."""

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        **config_kwargs,
    ) -> tuple[KubernetesClient, RecordingTransport]:
        transport = RecordingTransport(handler)
        config = ClientConfig(api_server_url=API_SERVER, auth_provider=stub_provider, **config_kwargs)
        return KubernetesClient(config, transport=transport), transport

    return factory
