"""Authenticated REST pass-through to a Kubernetes API server."""

from __future__ import annotations

import json
import ssl
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any
from urllib.parse import urlencode

import httpx
import structlog

from kubecloud.clients.exec import ExecMultiplexer, ExecOptions, ExecWatch
from kubecloud.clients.options import ListOptions, LogOptions, PatchOptions, WatchOptions
from kubecloud.clients.portforward import PortForwardMultiplexer, PortForwardOptions, PortForwardWatch
from kubecloud.clients.stream import ChannelSession
from kubecloud.config import ClientConfig
from kubecloud.errors import ClientError

log = structlog.get_logger()

JSON_CONTENT_TYPE = "application/json"

Body = Mapping[str, Any] | list[Any] | str | bytes


@dataclass(frozen=True)
class ApiResponse:
    """Status, body and headers of a completed API call."""

    status_code: int
    body: str
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> ApiResponse:
        return cls(status_code=response.status_code, body=response.text, headers=dict(response.headers))

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401

    @property
    def is_forbidden(self) -> bool:
        return self.status_code == 403

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    def json(self) -> Any:
        """Decode the body as JSON; an empty body decodes to None."""
        if not self.body:
            return None
        return json.loads(self.body)


def _encode_body(body: Body) -> bytes:
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


class KubernetesClient:
    """Sends one authenticated request per call; no retries or backoff.

    Before every request the auth provider is asked whether its token is
    stale and refreshed if so; ``AuthenticationError`` from that refresh
    propagates unchanged. Transport failures become ``ClientError``, and so
    do 401/403 responses, which signal that the caller may want to force
    ``auth_provider.refresh()`` and retry. A 404 is returned, not raised.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: httpx.BaseTransport | None = None,
        owns_auth_provider: bool = False,
    ) -> None:
        self._config = config
        self._owns_auth_provider = owns_auth_provider
        self._http = httpx.Client(
            base_url=config.api_server_url,
            verify=self._ssl_verify(),
            timeout=httpx.Timeout(
                config.read_timeout.total_seconds(),
                connect=config.connect_timeout.total_seconds(),
            ),
            transport=transport,
        )
        self._closed = False

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            msg = "Client is closed"
            raise ClientError(msg)

    def _ssl_verify(self) -> ssl.SSLContext | bool:
        if self._config.skip_tls_verify:
            return False
        ca = self._config.certificate_authority
        if not ca:
            return True
        # Accept inline PEM (as in kubeconfig certificate-authority-data) or a file path.
        if ca.lstrip().startswith("-----BEGIN"):
            return ssl.create_default_context(cadata=ca)
        return ssl.create_default_context(cafile=ca)

    def _auth_headers(self) -> dict[str, str]:
        provider = self._config.auth_provider
        if provider.needs_refresh():
            log.debug("refreshing_auth_token", provider=provider.name)
            provider.refresh()
        return {"Authorization": provider.auth_header()}

    @staticmethod
    def _check_auth(response: ApiResponse) -> None:
        if response.is_unauthorized or response.is_forbidden:
            log.warning("kubernetes_auth_rejected", status=response.status_code)
            msg = f"Authentication failed: {response.status_code} - {response.body}"
            raise ClientError(msg, response.status_code)

    def request(
        self,
        method: str,
        path: str,
        body: Body | None = None,
        *,
        params: Mapping[str, str] | None = None,
        content_type: str = JSON_CONTENT_TYPE,
    ) -> ApiResponse:
        """Issue a single authenticated request against ``path``."""
        self._ensure_open()
        headers = self._auth_headers()
        headers["Accept"] = JSON_CONTENT_TYPE
        content = None
        if body is not None:
            headers["Content-Type"] = content_type
            content = _encode_body(body)

        try:
            raw = self._http.request(method, path, params=params, content=content, headers=headers)
        except httpx.HTTPError as exc:
            log.error("http_request_failed", method=method, path=path, error=str(exc))
            msg = "HTTP request failed"
            raise ClientError(msg) from exc

        response = ApiResponse.from_httpx(raw)
        self._check_auth(response)
        return response

    def get(self, path: str, options: ListOptions | None = None) -> ApiResponse:
        params = options.to_params() if options else None
        return self.request("GET", path, params=params)

    def post(self, path: str, body: Body | None = None) -> ApiResponse:
        return self.request("POST", path, body)

    def put(self, path: str, body: Body | None = None) -> ApiResponse:
        return self.request("PUT", path, body)

    def patch(self, path: str, body: Body | None = None, options: PatchOptions | None = None) -> ApiResponse:
        """PATCH ``path``; the content type follows ``options.patch_type`` (strategic merge by default)."""
        options = options or PatchOptions()
        return self.request(
            "PATCH",
            path,
            body,
            params=options.to_params() or None,
            content_type=options.patch_type.content_type,
        )

    def delete(self, path: str, body: Body | None = None) -> ApiResponse:
        return self.request("DELETE", path, body)

    def _stream_lines(self, path: str, params: Mapping[str, str], accept: str) -> Iterator[str]:
        self._ensure_open()
        headers = self._auth_headers()
        headers["Accept"] = accept
        # Streams stay open until the server ends them, so only the connect phase is bounded.
        timeout = httpx.Timeout(None, connect=self._config.connect_timeout.total_seconds())
        try:
            with self._http.stream("GET", path, params=params, headers=headers, timeout=timeout) as raw:
                if raw.status_code in (401, 403):
                    raw.read()
                    self._check_auth(ApiResponse.from_httpx(raw))
                if raw.status_code >= 400:
                    raw.read()
                    msg = f"Stream request failed: {raw.status_code} - {raw.text}"
                    raise ClientError(msg, raw.status_code)
                for line in raw.iter_lines():
                    if line:
                        yield line
        except httpx.HTTPError as exc:
            log.error("stream_request_failed", path=path, error=str(exc))
            msg = "Stream request failed"
            raise ClientError(msg) from exc

    def watch(self, path: str, options: WatchOptions | None = None) -> Iterator[dict[str, Any]]:
        """Yield watch events (``{"type": ..., "object": ...}``) as the server sends them."""
        params = (options or WatchOptions()).to_params()
        for line in self._stream_lines(path, params, JSON_CONTENT_TYPE):
            try:
                yield json.loads(line)
            except json.JSONDecodeError as exc:
                msg = f"Malformed watch event: {line[:200]!r}"
                raise ClientError(msg) from exc

    def logs(self, path: str, options: LogOptions | None = None) -> Iterator[str]:
        """Yield container log lines from a pod ``log`` subresource path."""
        params = (options or LogOptions()).to_params()
        yield from self._stream_lines(path, params, "text/plain")

    def websocket_url(self, path: str, params: list[tuple[str, str]]) -> str:
        url = self._config.api_server_url + path
        if url.startswith("https://"):
            url = "wss://" + url.removeprefix("https://")
        elif url.startswith("http://"):
            url = "ws://" + url.removeprefix("http://")
        return f"{url}?{urlencode(params)}"

    def port_forward_url(self, path: str, options: PortForwardOptions) -> str:
        return self.websocket_url(path, options.to_params())

    def exec_url(self, path: str, options: ExecOptions) -> str:
        return self.websocket_url(path, options.to_params())

    def _websocket_sslopt(self) -> dict[str, Any]:
        if self._config.skip_tls_verify:
            return {"cert_reqs": ssl.CERT_NONE, "check_hostname": False}
        verify = self._ssl_verify()
        if isinstance(verify, ssl.SSLContext):
            return {"context": verify}
        return {}

    def _open_channel_session(self, url: str, handler: PortForwardMultiplexer | ExecMultiplexer) -> ChannelSession:
        self._ensure_open()
        headers = self._auth_headers()
        return ChannelSession(url, headers, handler, sslopt=self._websocket_sslopt())

    def port_forward(
        self,
        path: str,
        options: PortForwardOptions,
        watch: PortForwardWatch,
    ) -> ChannelSession:
        """Prepare a port-forward websocket authenticated with the current bearer token.

        The returned session is not yet connected; call ``run_forever()`` to
        start dispatching frames to ``watch``. Writes go through
        ``session.handler.write_data(port, data)``.
        """
        log.debug("port_forward_connecting", path=path, ports=list(options.ports))
        return self._open_channel_session(self.port_forward_url(path, options), PortForwardMultiplexer(options, watch))

    def exec(self, path: str, options: ExecOptions, watch: ExecWatch) -> ChannelSession:
        """Prepare an exec websocket against a pod ``exec`` subresource path.

        Like ``port_forward``, the session connects on ``run_forever()``.
        Stdin and terminal resizes go through ``session.handler``.
        """
        log.debug("exec_connecting", path=path, container=options.container, tty=options.tty)
        return self._open_channel_session(self.exec_url(path, options), ExecMultiplexer(options, watch))

    def close(self) -> None:
        """Close the HTTP transport (and an owned auth provider). Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._http.close()
        if self._owns_auth_provider:
            self._config.auth_provider.close()

    def __enter__(self) -> KubernetesClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
