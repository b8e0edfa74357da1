"""Helpers for framed ZeroMQ messaging."""

from __future__ import annotations

import random
import sys
import time
from typing import Any, Protocol, TextIO, TypeVar

import zmq


class _Packable(Protocol):
    def pack(self) -> bytes: ...


T = TypeVar("T")


def _flags(nowait: bool) -> int:
    return zmq.NOBLOCK if nowait else 0


def recv_string(socket: zmq.Socket, nowait: bool = False) -> bytes:
    """Receive one frame as a byte string; raises zmq.Again if nowait finds nothing."""
    return socket.recv(_flags(nowait))


def try_recv_string(socket: zmq.Socket, nowait: bool = False) -> bytes | None:
    """Receive one frame, or return None if none could be received."""
    try:
        return socket.recv(_flags(nowait))
    except zmq.Again:
        return None


def send_string(socket: zmq.Socket, text: str | bytes, more: bool = False) -> None:
    """Send text (encoded as UTF-8) or bytes as one frame."""
    payload = text.encode("utf-8") if isinstance(text, str) else bytes(text)
    socket.send(payload, zmq.SNDMORE if more else 0)


def send_more(socket: zmq.Socket, text: str | bytes) -> None:
    """Send one frame of a multipart message that continues."""
    send_string(socket, text, more=True)


def receive_empty_message(socket: zmq.Socket) -> None:
    """Receive the empty delimiter frame; raise ValueError if it is not empty."""
    frame = socket.recv()
    if frame:
        raise ValueError(f"expected an empty delimiter frame, got {len(frame)} bytes")


def send_packed(socket: zmq.Socket, obj: _Packable) -> None:
    """Send an object's msgpack form as one frame."""
    socket.send(obj.pack())


def recv_packed(socket: zmq.Socket, cls: Any, nowait: bool = False) -> Any:
    """Receive one frame and decode it with cls.unpack."""
    return cls.unpack(socket.recv(_flags(nowait)))


def is_text_data(data: bytes) -> bool:
    """True if every byte lies between 32 and 127 inclusive."""
    return all(32 <= byte <= 127 for byte in data)


def dump_message(body: bytes) -> str:
    """Render a frame as its size and either its text or its hex bytes."""
    content = body.decode("ascii") if is_text_data(body) else body.hex()
    return f"[{len(body):03d}]{content}"


def dump(socket: zmq.Socket, out: TextIO | None = None) -> None:
    """Receive every part of one message and write each one on its own line."""
    out = sys.stdout if out is None else out
    out.write("-" * 40 + "\n")
    while True:
        frame = socket.recv()
        out.write(dump_message(frame) + "\n")
        if not socket.getsockopt(zmq.RCVMORE):
            break


def set_random_identity(socket: zmq.Socket, rng: random.Random | None = None) -> str:
    """Give the socket a random printable routing id such as '1A2B-3C4D'."""
    rng = rng if rng is not None else random.Random()
    identity = f"{rng.randrange(0x10000):04X}-{rng.randrange(0x10000):04X}"
    socket.setsockopt(zmq.ROUTING_ID, identity.encode("ascii"))
    return identity


def clock_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return time.time_ns() // 1_000_000


def sleep_ms(msecs: int) -> None:
    """Sleep for a number of milliseconds."""
    time.sleep(msecs / 1000)


def console(message: str, out: TextIO | None = None) -> None:
    """Write a message prefixed with the local date and time."""
    out = sys.stdout if out is None else out
    out.write(time.strftime("%y-%m-%d %H:%M:%S ") + message + "\n")