"""Length-prefixed message framing over a connected stream socket.

Each frame is a 4-byte big-endian payload length followed by the UTF-8 JSON
encoding of a :class:`~protocol.messages.Message`. Frames larger than
``MAX_FRAME_BYTES`` are rejected in both directions.
"""

from __future__ import annotations

import socket
import struct
from contextlib import suppress
from typing import Optional

from pydantic import ValidationError

from protocol.messages import Message

MAX_FRAME_BYTES = 64 * 1024
_HEADER = struct.Struct(">I")


class ChannelError(Exception):
    """Base error for a failed channel operation."""


class ChannelClosed(ChannelError):
    """The peer went away, or the socket failed, before a full frame moved."""


class DecodeError(ChannelError):
    """A complete frame arrived but does not hold a valid message."""


def encode_frame(message: Message) -> bytes:
    payload = message.model_dump_json().encode("utf-8")
    if len(payload) > MAX_FRAME_BYTES:
        raise ChannelError(
            f"Message payload of {len(payload)} bytes exceeds {MAX_FRAME_BYTES} bytes."
        )
    return _HEADER.pack(len(payload)) + payload


def decode_payload(payload: bytes) -> Message:
    try:
        document = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError("Frame payload is not valid UTF-8.") from exc
    try:
        return Message.model_validate_json(document)
    except ValidationError as exc:
        raise DecodeError(
            f"Frame payload is not a valid message ({exc.error_count()} error(s))."
        ) from exc


class MessageChannel:
    """Blocking, ordered message transport bound to one connected socket."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._closed = False
        try:
            self.peer: Optional[str] = _format_peer(sock.getpeername())
        except OSError:
            self.peer = None

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, message: Message) -> None:
        frame = encode_frame(message)
        try:
            self._sock.sendall(frame)
        except OSError as exc:
            raise ChannelClosed(f"Failed to send {message.kind.value} message: {exc}") from exc

    def receive(self) -> Message:
        """Block until one whole message arrives.

        Raises :class:`ChannelClosed` if the connection ends first and
        :class:`DecodeError` if the frame cannot be decoded.
        """
        header = self._read_exactly(_HEADER.size, at_boundary=True)
        (length,) = _HEADER.unpack(header)
        if length > MAX_FRAME_BYTES:
            raise DecodeError(f"Frame length {length} exceeds {MAX_FRAME_BYTES} bytes.")
        payload = self._read_exactly(length, at_boundary=False) if length else b""
        return decode_payload(payload)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with suppress(OSError):
            self._sock.shutdown(socket.SHUT_RDWR)
        self._sock.close()

    def _read_exactly(self, size: int, at_boundary: bool) -> bytes:
        buffer = bytearray()
        while len(buffer) < size:
            try:
                chunk = self._sock.recv(size - len(buffer))
            except OSError as exc:
                raise ChannelClosed(f"Connection failed while reading: {exc}") from exc
            if not chunk:
                if at_boundary and not buffer:
                    raise ChannelClosed("Peer closed the connection.")
                raise ChannelClosed(
                    f"Peer disconnected mid-message after {len(buffer)} of {size} bytes."
                )
            buffer.extend(chunk)
        return bytes(buffer)

    def __enter__(self) -> "MessageChannel":
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()


def _format_peer(address: object) -> str:
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address) if address else "local"
