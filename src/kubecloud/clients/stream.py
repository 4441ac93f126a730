"""Websocket transport shared by the channel-multiplexed subresources (exec, portforward).

Both subresources speak ``v4.channel.k8s.io``: every binary frame starts
with a one-byte channel id followed by the payload. The session below only
moves frames; what a channel means is decided by the handler it is given.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

import websocket

from kubecloud.errors import ClientError

CHANNEL_PROTOCOLS = ("v4.channel.k8s.io",)
NORMAL_CLOSURE = 1000
# Note 1: channel ids travel as a single unsigned byte, so 256 channels is a hard ceiling.
MAX_CHANNEL = 255


class FrameSink(Protocol):
    """Outbound side of the transport a handler writes frames to."""

    def send_binary(self, frame: bytes) -> None: ...

    def close(self) -> None: ...


class ChannelHandler(Protocol):
    """Inbound callbacks a session dispatches websocket events to."""

    def attach(self, sink: FrameSink) -> None: ...

    def on_open(self) -> None: ...

    def on_message(self, message: bytes | str) -> None: ...

    def on_close(self, code: int | None = None, reason: str | None = None) -> None: ...

    def on_transport_error(self, exc: BaseException) -> None: ...


def encode_frame(channel: int, data: bytes) -> bytes:
    if not 0 <= channel <= MAX_CHANNEL:
        msg = f"Channel {channel} does not fit in a frame header"
        raise ClientError(msg)
    return bytes([channel]) + bytes(data)


class ChannelSession:
    """Binds a channel handler to a websocket-client ``WebSocketApp``.

    ``run_forever`` blocks while frames are dispatched; run it on a thread
    of your choosing. Writes may come from any thread once the socket is open.
    """

    def __init__(
        self,
        url: str,
        headers: Mapping[str, str],
        handler: ChannelHandler,
        sslopt: dict[str, Any] | None = None,
        ping_interval: float = 30,
    ) -> None:
        self._handler = handler
        self._sslopt = sslopt or {}
        self._ping_interval = ping_interval
        self._app = websocket.WebSocketApp(
            url,
            header=[f"{name}: {value}" for name, value in headers.items()],
            subprotocols=list(CHANNEL_PROTOCOLS),
            on_open=lambda _ws: handler.on_open(),
            on_message=lambda _ws, message: handler.on_message(message),
            on_error=lambda _ws, exc: handler.on_transport_error(exc),
            on_close=lambda _ws, code, reason: handler.on_close(code, reason),
        )
        handler.attach(self)

    @property
    def handler(self) -> ChannelHandler:
        return self._handler

    def run_forever(self) -> None:
        self._app.run_forever(sslopt=self._sslopt, ping_interval=self._ping_interval)

    def send_binary(self, frame: bytes) -> None:
        try:
            self._app.send(frame, opcode=websocket.ABNF.OPCODE_BINARY)
        except websocket.WebSocketException as exc:
            msg = "Websocket write failed"
            raise ClientError(msg) from exc

    def close(self) -> None:
        self._app.close(status=NORMAL_CLOSURE)
