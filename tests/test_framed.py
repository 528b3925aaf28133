import asyncio
import struct

import pytest

from snocat.framed import (
    JsonMaxLengthExceeded,
    JsonReadError,
    JsonWriteError,
    MaxLengthExceeded,
    NextExpected,
    UnexpectedEnd,
    WriteError,
    read_frame,
    read_framed_json,
    write_frame,
    write_framed_json,
)


class _BufferWriter:
    def __init__(self):
        self.buffer = bytearray()

    def write(self, data):
        self.buffer += data

    async def drain(self):
        return None


class _FailingWriter:
    def write(self, data):
        pass

    async def drain(self):
        raise ConnectionResetError("gone")


def _reader(data):
    reader = asyncio.StreamReader()
    reader.feed_data(bytes(data))
    reader.feed_eof()
    return reader


@pytest.mark.asyncio
async def test_stream_framed_roundtrip():
    test_data = bytes(x % 255 for x in range(1234))
    writer = _BufferWriter()
    await write_frame(writer, test_data)
    deserialized = await read_frame(_reader(writer.buffer), None)
    assert deserialized == test_data
    assert bytes(writer.buffer[4:]) == test_data
    assert len(writer.buffer) == 1234 + 4


@pytest.mark.asyncio
async def test_zero_length_frame_roundtrip():
    writer = _BufferWriter()
    await write_frame(writer, b"")
    assert await read_frame(_reader(writer.buffer), None) == b""
    assert len(writer.buffer) == 4


@pytest.mark.asyncio
async def test_frame_wire_format():
    writer = _BufferWriter()
    await write_frame(writer, b"abc")
    assert bytes(writer.buffer) == b"\x00\x00\x00\x03abc"


@pytest.mark.asyncio
async def test_exceeding_maximum_length_is_no_op():
    writer = _BufferWriter()
    with pytest.raises(JsonMaxLengthExceeded) as info:
        await write_framed_json(writer, "a", 4 + 2)
    assert info.value.expected == 6
    assert info.value.produced == 7
    assert len(writer.buffer) == 0


@pytest.mark.asyncio
async def test_json_at_exact_maximum_is_written():
    writer = _BufferWriter()
    await write_framed_json(writer, "a", 4 + 3)
    assert bytes(writer.buffer) == b"\x00\x00\x00\x03\"a\""


@pytest.mark.asyncio
async def test_stream_json_serialization_roundtrip():
    original = [6.0, "a", 2, 12.0]
    writer = _BufferWriter()
    await write_framed_json(writer, original, None)
    deserialized = await read_framed_json(_reader(writer.buffer), None)
    assert deserialized == original


@pytest.mark.asyncio
async def test_read_rejects_frames_over_maximum():
    data = struct.pack(">I", 10) + b"0123456789"
    with pytest.raises(MaxLengthExceeded) as info:
        await read_frame(_reader(data), 5)
    assert (info.value.expected, info.value.received) == (5, 10)


@pytest.mark.asyncio
async def test_read_missing_length_prefix():
    with pytest.raises(UnexpectedEnd) as info:
        await read_frame(_reader(b"\x00\x01"), None)
    assert info.value.expected == NextExpected.LENGTH_SPECIFIER
    assert info.value.expected.is_length_specifier


@pytest.mark.asyncio
async def test_read_truncated_content():
    data = struct.pack(">I", 10) + b"abc"
    with pytest.raises(UnexpectedEnd) as info:
        await read_frame(_reader(data), None)
    assert info.value.expected == NextExpected.content(10)
    assert not info.value.expected.is_length_specifier


@pytest.mark.asyncio
async def test_read_json_wraps_frame_errors():
    with pytest.raises(JsonReadError) as info:
        await read_framed_json(_reader(b""), None)
    assert isinstance(info.value.__cause__, UnexpectedEnd)


@pytest.mark.asyncio
async def test_read_json_rejects_invalid_json():
    data = struct.pack(">I", 3) + b"{x}"
    with pytest.raises(JsonReadError) as info:
        await read_framed_json(_reader(data), None)
    assert isinstance(info.value.__cause__, ValueError)


@pytest.mark.asyncio
async def test_write_failure_is_write_error():
    with pytest.raises(WriteError) as info:
        await write_frame(_FailingWriter(), b"abc")
    assert isinstance(info.value.__cause__, ConnectionResetError)


@pytest.mark.asyncio
async def test_write_json_wraps_write_failure():
    with pytest.raises(JsonWriteError) as info:
        await write_framed_json(_FailingWriter(), {"k": 1}, None)
    assert isinstance(info.value.__cause__, WriteError)


@pytest.mark.asyncio
async def test_write_json_unserializable_value():
    writer = _BufferWriter()
    with pytest.raises(JsonWriteError):
        await write_framed_json(writer, {"k": object()}, None)
    assert len(writer.buffer) == 0