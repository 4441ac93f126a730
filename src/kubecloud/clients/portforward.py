"""Port-forward channel multiplexing over the ``v4.channel.k8s.io`` websocket protocol.

Each forwarded port owns a pair of channels in the order the ports were
requested:

    port index k  ->  data channel 2k, error channel 2k + 1

The mapping is derived from the port list on demand, never stored, so
inbound demultiplexing and outbound framing always agree.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from kubecloud.clients.stream import FrameSink, encode_frame
from kubecloud.errors import ClientError
from kubecloud.validation import validate_ports

log = structlog.get_logger()


@dataclass(frozen=True)
class PortForwardOptions:
    """Ports to forward, in channel order, plus an optional container."""

    ports: tuple[int, ...]
    container: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "ports", tuple(self.ports))
        validate_ports(self.ports)
        if self.container is not None and not self.container.strip():
            msg = "Container name cannot be empty"
            raise ValueError(msg)

    @classmethod
    def of(cls, *ports: int) -> PortForwardOptions:
        return cls(ports=ports)

    @classmethod
    def with_container(cls, ports: Iterable[int], container: str) -> PortForwardOptions:
        return cls(ports=tuple(ports), container=container)

    @property
    def port_count(self) -> int:
        return len(self.ports)

    def has_port(self, port: int) -> bool:
        return port in self.ports

    def data_channel(self, port: int) -> int:
        """Return the even channel id carrying data for ``port``."""
        # Note 1: the API server opens both channels of a pair for every port, even
        # when only data flows, so the index doubles rather than counting up by one.
        try:
            return self.ports.index(port) * 2
        except ValueError:
            msg = f"Port {port} is not being forwarded"
            raise ValueError(msg) from None

    def error_channel(self, port: int) -> int:
        return self.data_channel(port) + 1

    def port_for_channel(self, channel: int) -> int | None:
        """Return the port owning ``channel``, or None if the channel is unmapped."""
        index = channel // 2
        if channel < 0 or index >= len(self.ports):
            return None
        return self.ports[index]

    def to_params(self) -> list[tuple[str, str]]:
        params = [("ports", str(port)) for port in self.ports]
        if self.container is not None:
            params.append(("container", self.container))
        return params


class PortForwardWatch:
    """Callbacks for a port-forward session. Override the ones you need."""

    def on_data(self, port: int, data: bytes) -> None:
        pass

    def on_error(self, port: int, message: str) -> None:
        pass

    def on_close(self) -> None:
        pass

    def on_failure(self, exc: BaseException) -> None:
        pass


class PortForwardMultiplexer:
    """Demultiplexes inbound frames to per-port callbacks and frames outbound writes.

    The transport delivers one callback at a time. Problems inside a frame
    are reported through ``watch.on_failure`` instead of being raised, since
    the session is a long-lived stream rather than a single request.
    """

    def __init__(self, options: PortForwardOptions, watch: PortForwardWatch) -> None:
        self._options = options
        self._watch = watch
        self._sink: FrameSink | None = None

    @property
    def options(self) -> PortForwardOptions:
        return self._options

    def attach(self, sink: FrameSink) -> None:
        self._sink = sink

    def on_open(self) -> None:
        log.debug("port_forward_opened", ports=list(self._options.ports))

    def on_message(self, message: bytes | str) -> None:
        if isinstance(message, str):
            log.warning("port_forward_unexpected_text_frame", length=len(message))
            return
        if not message:
            log.warning("port_forward_empty_frame")
            return

        channel = message[0]
        payload = bytes(message[1:])
        port = self._options.port_for_channel(channel)
        if port is None:
            log.warning("port_forward_unknown_channel", channel=channel)
            return

        try:
            if channel % 2 == 0:
                self._watch.on_data(port, payload)
            else:
                self._watch.on_error(port, payload.decode("utf-8", errors="replace"))
        except Exception as exc:
            log.error("port_forward_callback_failed", channel=channel, port=port, error=str(exc))
            self._watch.on_failure(exc)

    def on_close(self, code: int | None = None, reason: str | None = None) -> None:
        log.debug("port_forward_closed", code=code, reason=reason)
        self._watch.on_close()

    def on_transport_error(self, exc: BaseException) -> None:
        log.error("port_forward_transport_error", error=str(exc))
        self._watch.on_failure(exc)

    def frame(self, port: int, data: bytes) -> bytes:
        """Prefix ``data`` with the data channel id of ``port``."""
        try:
            channel = self._options.data_channel(port)
        except ValueError as exc:
            raise ClientError(str(exc)) from None
        return encode_frame(channel, data)

    def write_data(self, port: int, data: bytes) -> None:
        if self._sink is None:
            msg = "Port forward transport is not connected"
            raise ClientError(msg)
        self._sink.send_binary(self.frame(port, data))

    def close(self) -> None:
        if self._sink is not None:
            self._sink.close()

