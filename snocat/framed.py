"""Length-prefixed frames: a big-endian u32 length followed by that many bytes."""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass
from typing import Any, ClassVar

_LENGTH = struct.Struct(">I")
_U32_SIZE = _LENGTH.size


@dataclass(frozen=True)
class NextExpected:
    """What a reader was waiting for: the length prefix, or content of a given length."""

    content_length: int | None = None

    LENGTH_SPECIFIER: ClassVar[NextExpected]

    @classmethod
    def content(cls, length: int) -> NextExpected:
        return cls(length)

    @property
    def is_length_specifier(self) -> bool:
        return self.content_length is None

    def __repr__(self) -> str:
        if self.content_length is None:
            return "LengthSpecifier"
        return f"Content {{ length: {self.content_length} }}"


NextExpected.LENGTH_SPECIFIER = NextExpected()


class ReadError(Exception):
    """Reading a frame failed."""


class MaxLengthExceeded(ReadError):
    """The frame announced a length above the permitted maximum."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            f"Frame length exceeded expectation of {expected} bytes with {received}"
        )
        self.expected = expected
        self.received = received


class UnexpectedEnd(ReadError):
    """The stream ended or failed before the frame was complete."""

    def __init__(self, expected: NextExpected, error: BaseException) -> None:
        super().__init__(f"Unexpected end of frame; expected {expected!r}")
        self.expected = expected
        self.error = error


class JsonReadError(Exception):
    """Reading or decoding a JSON frame failed; the cause is chained."""


class WriteError(Exception):
    """Writing a frame failed."""


class JsonWriteError(Exception):
    """Encoding or writing a JSON frame failed; the cause is chained."""


class JsonMaxLengthExceeded(JsonWriteError):
    """The encoded frame would exceed the maximum; nothing was written."""

    def __init__(self, expected: int, produced: int) -> None:
        super().__init__(
            f"Frame length exceeded expectation of {expected} bytes with {produced}"
        )
        self.expected = expected
        self.produced = produced


async def read_frame(reader: Any, max_length: int | None = None) -> bytes:
    """Read one frame from ``reader`` (which needs an async ``readexactly``)."""
    try:
        header = await reader.readexactly(_U32_SIZE)
    except (EOFError, OSError) as error:
        raise UnexpectedEnd(NextExpected.LENGTH_SPECIFIER, error) from error
    (length,) = _LENGTH.unpack(header)
    if max_length is not None and length > max_length:
        raise MaxLengthExceeded(max_length, length)
    try:
        return bytes(await reader.readexactly(length))
    except (EOFError, OSError) as error:
        raise UnexpectedEnd(NextExpected.content(length), error) from error


async def write_frame(writer: Any, buffer: bytes) -> None:
    """Write ``buffer`` as one frame to ``writer`` and drain it."""
    if len(buffer) > 0xFFFFFFFF:
        raise WriteError(f"Frame of {len(buffer)} bytes does not fit a u32 length")
    try:
        writer.write(_LENGTH.pack(len(buffer)))
        writer.write(bytes(buffer))
        await writer.drain()
    except OSError as error:
        raise WriteError(f"Frame write failure: {error!r}") from error


async def read_framed_json(reader: Any, max_length: int | None = None) -> Any:
    """Read one frame and decode it as JSON."""
    try:
        buffer = await read_frame(reader, max_length)
    except ReadError as error:
        raise JsonReadError(f"Failure reading JSON from frame: {error}") from error
    try:
        return json.loads(buffer)
    except ValueError as error:
        raise JsonReadError(f"Failure deserializing JSON from frame: {error}") from error


async def write_framed_json(writer: Any, value: Any, max_length: int | None = None) -> None:
    """Encode ``value`` as compact JSON and write it as one frame.

    ``max_length`` bounds the whole frame, length prefix included; if it would
    be exceeded nothing is written.
    """
    try:
        buffer = json.dumps(
            value, separators=(",", ":"), ensure_ascii=False, allow_nan=False
        ).encode("utf-8")
    except (TypeError, ValueError) as error:
        raise JsonWriteError(f"Failure serializing JSON for frame: {error}") from error
    produced = len(buffer) + _U32_SIZE
    if max_length is not None and produced > max_length:
        raise JsonMaxLengthExceeded(max_length, produced)
    try:
        await write_frame(writer, buffer)
    except WriteError as error:
        raise JsonWriteError(f"Failure writing JSON into frame: {error}") from error