"""Pod exec over the ``v4.channel.k8s.io`` websocket protocol.

Channels are fixed rather than derived from the request:

    0 stdin, 1 stdout, 2 stderr, 3 error/status, 4 terminal resize

The error channel carries a ``metav1.Status`` document once the command
exits; its ``ExitCode`` cause is the process exit code.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from kubecloud.clients.stream import NORMAL_CLOSURE, FrameSink, encode_frame
from kubecloud.errors import ClientError

log = structlog.get_logger()


class Channel(IntEnum):
    STDIN = 0
    STDOUT = 1
    STDERR = 2
    ERROR = 3
    RESIZE = 4


@dataclass(frozen=True)
class ChannelMessage:
    """One decoded frame: its channel id and raw payload."""

    channel: int
    data: bytes

    @classmethod
    def from_frame(cls, frame: bytes) -> ChannelMessage:
        if not frame:
            msg = "Frame data cannot be empty"
            raise ValueError(msg)
        return cls(channel=frame[0], data=bytes(frame[1:]))

    @classmethod
    def stdin(cls, data: bytes | str) -> ChannelMessage:
        if isinstance(data, str):
            data = data.encode("utf-8")
        return cls(channel=Channel.STDIN, data=data)

    def to_frame(self) -> bytes:
        return encode_frame(self.channel, self.data)

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ExecOptions:
    """Command and stream selection for an exec request."""

    command: tuple[str, ...]
    stdin: bool = False
    stdout: bool = True
    stderr: bool = True
    tty: bool = False
    container: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "command", tuple(self.command))
        if not self.command:
            msg = "Command is required for exec"
            raise ValueError(msg)
        if not (self.stdout or self.stderr):
            msg = "At least one of stdout or stderr must be enabled"
            raise ValueError(msg)

    @classmethod
    def of(cls, *command: str) -> ExecOptions:
        return cls(command=command)

    @classmethod
    def interactive(cls, *command: str) -> ExecOptions:
        """stdin, stdout and a TTY; the server merges stderr into stdout."""
        return cls(command=command, stdin=True, tty=True)

    @classmethod
    def in_container(cls, command: Iterable[str], container: str) -> ExecOptions:
        return cls(command=tuple(command), container=container)

    def to_params(self) -> list[tuple[str, str]]:
        # Repeated ``command`` keys keep argv boundaries intact.
        params = [("command", part) for part in self.command]
        params += [
            ("stdin", _flag(self.stdin)),
            ("stdout", _flag(self.stdout)),
            ("stderr", _flag(self.stderr)),
            ("tty", _flag(self.tty)),
        ]
        if self.container is not None:
            params.append(("container", self.container))
        return params


def _flag(value: bool) -> str:
    return "true" if value else "false"


class StatusCause(BaseModel):
    model_config = ConfigDict(extra="ignore")

    reason: str | None = None
    message: str | None = None


class StatusDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    causes: list[StatusCause] = Field(default_factory=list)


class ExecStatus(BaseModel):
    """The ``metav1.Status`` document sent on the error channel."""

    model_config = ConfigDict(extra="ignore")

    status: str | None = None
    message: str | None = None
    reason: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    details: StatusDetails | None = None

    @classmethod
    def from_json(cls, raw: str) -> ExecStatus:
        return cls.model_validate_json(raw)

    @property
    def is_success(self) -> bool:
        return self.status == "Success"

    def _exit_code_cause(self) -> StatusCause | None:
        if self.details is None:
            return None
        return next((c for c in self.details.causes if c.reason == "ExitCode"), None)

    @property
    def has_exit_code(self) -> bool:
        return self._exit_code_cause() is not None

    @property
    def exit_code(self) -> int:
        """Exit code from the ``ExitCode`` cause; 0 when absent or unparseable."""
        cause = self._exit_code_cause()
        if cause is None or cause.message is None:
            return 0
        try:
            return int(cause.message)
        except ValueError:
            return 0


class ExecWatch:
    """Callbacks for an exec session. Override the ones you need."""

    def on_stdout(self, data: str) -> None:
        pass

    def on_stderr(self, data: str) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass

    def on_close(self, exit_code: int) -> None:
        pass

    def on_failure(self, exc: BaseException) -> None:
        pass


class ExecMultiplexer:
    """Routes exec frames to an ``ExecWatch`` and frames stdin and resize writes.

    ``watch.on_close`` fires exactly once: with the exit code from the status
    document when one arrives, otherwise when the socket closes (0 for a
    normal closure, 1 for anything else).
    """

    def __init__(self, options: ExecOptions, watch: ExecWatch) -> None:
        self._options = options
        self._watch = watch
        self._sink: FrameSink | None = None
        self._closed_reported = False

    @property
    def options(self) -> ExecOptions:
        return self._options

    def attach(self, sink: FrameSink) -> None:
        self._sink = sink

    def on_open(self) -> None:
        log.debug("exec_opened", command=list(self._options.command))

    def on_message(self, message: bytes | str) -> None:
        if isinstance(message, str):
            log.warning("exec_unexpected_text_frame", length=len(message))
            return
        if not message:
            log.warning("exec_empty_frame")
            return

        frame = ChannelMessage.from_frame(message)
        try:
            if frame.channel == Channel.STDOUT:
                self._watch.on_stdout(frame.text)
            elif frame.channel == Channel.STDERR:
                if self._options.tty:
                    log.warning("exec_stderr_in_tty_mode")
                self._watch.on_stderr(frame.text)
            elif frame.channel == Channel.ERROR:
                self._handle_status(frame.text)
            elif frame.channel == Channel.RESIZE:
                log.debug("exec_resize_frame_ignored")
            else:
                log.warning("exec_unknown_channel", channel=frame.channel)
        except Exception as exc:
            log.error("exec_callback_failed", channel=frame.channel, error=str(exc))
            self._watch.on_failure(exc)

    def _handle_status(self, text: str) -> None:
        try:
            status = ExecStatus.from_json(text)
        except ValidationError:
            log.debug("exec_error_channel_not_status")
            self._watch.on_error(text)
            return

        if status.has_exit_code:
            self._report_close(status.exit_code)
        elif status.is_success:
            self._report_close(0)
        else:
            self._watch.on_error(status.message or text)

    def _report_close(self, exit_code: int) -> None:
        if self._closed_reported:
            return
        self._closed_reported = True
        log.debug("exec_finished", exit_code=exit_code)
        self._watch.on_close(exit_code)

    def on_close(self, code: int | None = None, reason: str | None = None) -> None:
        log.debug("exec_closed", code=code, reason=reason)
        self._report_close(0 if code == NORMAL_CLOSURE else 1)

    def on_transport_error(self, exc: BaseException) -> None:
        log.error("exec_transport_error", error=str(exc))
        self._watch.on_failure(exc)

    def _send(self, message: ChannelMessage) -> None:
        if self._sink is None:
            msg = "Exec transport is not connected"
            raise ClientError(msg)
        self._sink.send_binary(message.to_frame())

    def write_stdin(self, data: bytes | str) -> None:
        if not self._options.stdin:
            msg = "STDIN not enabled (set ExecOptions.stdin to True)"
            raise ClientError(msg)
        self._send(ChannelMessage.stdin(data))

    def resize(self, width: int, height: int) -> None:
        """Report a new terminal size; only meaningful with a TTY."""
        if not self._options.tty:
            msg = "Terminal resize requires ExecOptions.tty"
            raise ClientError(msg)
        payload = json.dumps({"Width": width, "Height": height}).encode("utf-8")
        self._send(ChannelMessage(channel=Channel.RESIZE, data=payload))

    def close(self) -> None:
        if self._sink is not None:
            self._sink.close()
