# snocat

Asyncio building blocks for streaming network tunnels: length-prefixed
frames, bidirectional stream copying, port-range allocation, merging of
named async streams that can be attached and detached at runtime, and a
few awaitable and async-iterator combinators.

The package uses only the standard library and supports Python 3.10 and
later.

## Modules

| Module | What it provides |
| --- | --- |
| `snocat.framed` | `read_frame`, `write_frame`, `read_framed_json`, `write_framed_json`: a 4-byte big-endian length followed by the payload, with an optional maximum length. Errors: `ReadError` (`MaxLengthExceeded`, `UnexpectedEnd`), `WriteError`, `JsonReadError`, `JsonWriteError` (`JsonMaxLengthExceeded`) |
| `snocat.proxy` | `proxy_generic_streams(a, b)` copies two `(writer, reader)` pairs in both directions and returns `(a_to_b, b_to_a)` byte counts; `proxy_stream(reader, writer)` copies one way; `finally_async(cb, cleanup)` always runs an async cleanup after an async block |
| `snocat.port_allocator` | `PortRangeAllocator(start, end)` hands out the lowest free port of an inclusive range as a `PortRangeAllocationHandle`; raises `NoFreePortsError` when the range is used up |
| `snocat.stream_set` | `DynamicStreamSet` yields `(id, item)` pairs from a set of `NamedStream`s; `handle()` gives a second iterator over the same set |
| `snocat.tunnel_stream` | `duplex(max_buf_size)` returns a connected in-memory pair of `DuplexStream`s; `WrappedStream` joins a separate reader and writer into one stream |
| `snocat.validators` | `parse_socketaddr`, `parse_ipaddr`, `parse_port_range` and their `validate_*` counterparts, plus `validate_existing_file`; all raise `ValueError` on bad input |
| `snocat.dropkick` | `Dropkick` fires a notification for its target when released, unless countered; `SharedSlot` is a lock-guarded holder that can be kicked; `dropkick(target)` fires the notification directly |
| `snocat.future_ext` | `delay`, `try_delay`, `poll_until`, `try_poll_until_or_else` |
| `snocat.tracked` | `track(awaitable, tracker)` wraps an awaitable in a `Tracked` that keeps a `TaskTracker` registered while it runs |
| `snocat.stream_ext` | `try_for_each_concurrent_monitored` runs a function on each item with a concurrency limit and publishes the running count to a `CountWatch` |
| `snocat.try_stream` | `try_fuse` wraps an async iterator in a `TryFuseStream` that stays finished after its end or first error |
| `snocat.ready` | `lift_future(value)` returns an awaitable that yields `value` without suspending |

## Examples

### Framed messages

```python
import asyncio
from snocat.tunnel_stream import duplex
from snocat.framed import read_framed_json, write_framed_json

async def main():
    left, right = duplex(1024)
    await write_framed_json(left, {"hello": "world"}, None)
    print(await read_framed_json(right, None))

asyncio.run(main())
```

`write_framed_json` counts the 4-byte prefix against `max_length` and
writes nothing if the frame would be too long.

### Allocating ports

```python
import asyncio
from snocat.port_allocator import PortRangeAllocator, NoFreePortsError

async def main():
    allocator = PortRangeAllocator(8000, 8002)
    with await allocator.allocate() as handle:
        print("bound", handle.port())
    try:
        handles = [await allocator.allocate() for _ in range(4)]
    except NoFreePortsError as error:
        print(error)

asyncio.run(main())
```

A handle gives its port back on `release()`, on leaving a `with` block, or
when it is garbage-collected.

### Merging named streams

```python
import asyncio
from snocat.stream_set import DynamicStreamSet

async def letters(*items):
    for item in items:
        yield item

async def main():
    streams = DynamicStreamSet()
    streams.attach_stream(1, letters("a"))
    streams.attach_stream(2, letters("b", "c"))
    async for stream_id, item in streams:
        print(stream_id, item)

asyncio.run(main())
```

Streams that end are removed from the set; iteration ends when the set is
empty. `attach` and `attach_stream` return the stream they replaced under
the same id, and `detach` returns the removed stream.

### Release notifications

```python
from snocat.dropkick import Dropkick

with Dropkick.callback(lambda: print("released")):
    pass                      # prints "released" on leaving the block

kick = Dropkick.callback(lambda: print("never printed"))
kick.counter()                # disarmed
```

### Validating command-line input

```python
from snocat.validators import parse_port_range, parse_ipaddr

print(parse_port_range("8000:8010"))   # (8000, 8010)
print(parse_ipaddr("::1"))             # IPv6Address('::1')
```

## What this package does not do

It has no command-line program, and no tunnel client or server of its own:
it does not open QUIC or TLS connections or listen on the network. The
streams it works with are the in-memory `duplex` pair or any reader and
writer you supply that offer `read`, `write`, `drain` and `write_eof`.

## Running the tests

```
pip install -e ".[test]"
pytest
```