import asyncio
from collections import deque
from typing import Callable, Deque, List, Optional, Sequence, Union

import pytest

from meg_relay.catalog import build_catalog
from meg_relay.dispatcher import Dispatcher

Chunk = Union[bytes, Exception]


class FakeSerialDevice:
    """In-memory stand-in for a serial link to the controller.

    Queued chunks are delivered one per poll; an ``Exception`` in the queue is
    raised by the next ``bytes_available`` call. Writing the probe line
    queues ``reply`` as the controller's answer.
    """

    def __init__(
        self,
        *,
        reply: Optional[bytes] = b"PONG\n",
        probe: bytes = b"PING",
        fail_open: bool = False,
        fail_writes_containing: Sequence[bytes] = (),
    ) -> None:
        self.reply = reply
        self.probe = probe
        self.fail_open = fail_open
        self.fail_writes_containing = tuple(fail_writes_containing)
        self.incoming: Deque[Chunk] = deque()
        self.writes: List[bytes] = []
        self.flushes = 0
        self.opened = False
        self.closed = False

    def queue(self, *chunks: Chunk) -> None:
        self.incoming.extend(chunks)

    def open(self) -> None:
        if self.fail_open:
            raise OSError("port busy")
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def bytes_available(self) -> int:
        if not self.incoming:
            return 0
        head = self.incoming[0]
        if isinstance(head, Exception):
            self.incoming.popleft()
            raise head
        return len(head)

    def read(self, size: int) -> bytes:
        head = self.incoming.popleft()
        assert isinstance(head, bytes)
        data, rest = head[:size], head[size:]
        if rest:
            self.incoming.appendleft(rest)
        return data

    def write(self, data: bytes) -> int:
        if any(token in data for token in self.fail_writes_containing):
            raise OSError("write failed")
        self.writes.append(data)
        if data.strip() == self.probe and self.reply is not None:
            self.queue(self.reply)
        return len(data)

    def flush(self) -> None:
        self.flushes += 1

    @property
    def written_lines(self) -> List[str]:
        return [item.decode("utf-8").rstrip("\n") for item in self.writes]


@pytest.fixture
def device_factory() -> Callable[..., FakeSerialDevice]:
    return FakeSerialDevice


@pytest.fixture
def dispatcher() -> Dispatcher:
    return Dispatcher.from_catalog(build_catalog())


@pytest.fixture
def wait_until():
    """Poll ``predicate`` on the running loop until it holds or time runs out."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() >= deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait
