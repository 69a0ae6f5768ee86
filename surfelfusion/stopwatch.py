"""Named timings, with periodic reporting over UDP."""

from __future__ import annotations

import socket
import struct
import sys
import time
from contextlib import contextmanager
from typing import Callable, Iterator

SEND_INTERVAL = 10000
DEFAULT_ADDRESS = ("127.0.0.1", 45454)

_HEADER = struct.Struct("<iQ")
_VALUE = struct.Struct("<f")


class Stopwatch:
    """Collects timings in milliseconds from durations given in microseconds."""

    def __init__(self, address=DEFAULT_ADDRESS, clock: Callable[[], int] | None = None):
        self._clock = clock if clock is not None else Stopwatch.current_time
        self._address = address
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        now = self._clock()
        self.signature = now
        self._last_send = now
        self._timings: dict[str, float] = {}
        self._ticks: dict[str, int] = {}

    @staticmethod
    def current_time() -> int:
        """Microseconds since the Unix epoch."""
        return time.time_ns() // 1000

    def add_timing(self, name, duration) -> None:
        """Record a duration in microseconds; non-positive durations are ignored."""
        if duration > 0:
            self._timings[name] = duration / 1000.0

    def set_signature(self, signature) -> None:
        self.signature = signature

    def timings(self) -> dict[str, float]:
        """All recorded timings in milliseconds, ordered by name."""
        return dict(sorted(self._timings.items()))

    def print_all(self, stream=None) -> None:
        """Write each timing as ``name: valuems``, followed by a blank line."""
        out = stream if stream is not None else sys.stdout
        for name, value in self.timings().items():
            print(f"{name}: {value:g}ms", file=out)
        print(file=out)

    def pulse(self, name) -> None:
        """Mark ``name`` as having happened."""
        self._timings[name] = 1.0

    def tick(self, name, start) -> None:
        """Remember the start time of ``name`` in microseconds."""
        self._ticks[name] = start

    def tock(self, name, end) -> None:
        """Record the time since the matching :meth:`tick`."""
        duration = (end - self._ticks.get(name, 0)) / 1000.0
        if duration > 0:
            self._timings[name] = duration

    @contextmanager
    def measure(self, name) -> Iterator[None]:
        """Time the body of a ``with`` block under ``name``."""
        start = self._clock()
        try:
            yield
        finally:
            self.add_timing(name, self._clock() - start)

    def serialise(self) -> bytes:
        """Encode the signature and timings into one report packet.

        The packet holds its own size (int32), the signature (uint64), then
        each timing as a NUL-terminated name and a float32, little-endian.
        """
        body = b"".join(
            name.encode("utf-8") + b"\0" + _VALUE.pack(value)
            for name, value in self.timings().items()
        )
        size = _HEADER.size + len(body)
        return _HEADER.pack(size, self.signature) + body

    def send_all(self) -> bool:
        """Send a report if enough time has passed since the last one.

        Returns whether a packet was sent.
        """
        now = self._clock()
        if now - self._last_send <= SEND_INTERVAL:
            return False
        self._socket.sendto(self.serialise(), self._address)
        self._last_send = now
        return True

    def close(self) -> None:
        self._socket.close()

    def __enter__(self) -> "Stopwatch":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()