"""
=============================================================================
GROWABLE LINE BUFFER
=============================================================================

TCP delivers a byte stream, not lines. A client typing

    print(1)\n
    print(2)\n

might arrive as ANY split of those bytes:

    recv() → "print(1)\nprin"     (one full line + a partial one)
    recv() → "t(2)\n"             (the rest)

The LineBuffer accumulates bytes, hands out every COMPLETE line, and keeps
the trailing partial line at the front of the buffer for the next read.

=============================================================================
INLINE STORAGE, GROWTH AND SHRINKING
=============================================================================

Most interactive command lines are short. Each buffer starts with a small
"inline" bytearray (256 bytes by default) that is allocated once and kept
for the whole life of the connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       BUFFER LIFECYCLE                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   INLINE (256)        short lines, no allocation ever               │
    │       │                                                              │
    │       │  a read fills it completely (no newline yet)                │
    │       ▼                                                              │
    │   GROWN (512, 1024, ...)   capacity doubles, prefix copied          │
    │       │                                                              │
    │       │  the long line is extracted, little data left               │
    │       ▼                                                              │
    │   INLINE (256)        leftover copied back, big allocation dropped  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Doubling keeps appends amortized O(1) for pathological long lines, and
shrinking back bounds the memory an idle connection holds.

=============================================================================
INVARIANTS
=============================================================================

    0 <= used < capacity

    storage: [ unconsumed bytes | free space ............ | reserved ]
              0              used                      capacity-1

One byte is always kept free, so "full" means used == capacity - 1.

=============================================================================
"""

import logging
from typing import Iterator, Optional

from ..errors import BufferGrowthFailure, BufferReleasedError, CapacityExceeded


logger = logging.getLogger(__name__)


DEFAULT_INLINE_SIZE = 256

NEWLINE = b"\n"


class LineBuffer:
    """
    Per-connection byte accumulator that yields newline-terminated lines.

    Usage:
        buf = LineBuffer()
        buf.append(b"foo\\nba")
        list(buf.extract_lines())   # [b"foo"]
        buf.pending()               # b"ba"

    Attributes:
        inline_size: Capacity of the inline storage.
        max_size: Largest capacity growth may reach (None = unbounded).
    """

    def __init__(self, inline_size: int = DEFAULT_INLINE_SIZE, max_size: Optional[int] = None):
        if inline_size < 2:
            raise ValueError("inline_size must be >= 2")
        if max_size is not None and max_size < inline_size:
            raise ValueError("max_size must be >= inline_size")

        self.inline_size = inline_size
        self.max_size = max_size

        # The inline bytearray is never replaced, only swapped in and out
        self._inline: Optional[bytearray] = bytearray(inline_size)
        self._storage: Optional[bytearray] = self._inline
        self._used = 0
        self._released = False

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def capacity(self) -> int:
        """Current size of the backing storage."""
        self._check_alive()
        return len(self._storage)

    @property
    def used(self) -> int:
        """Number of unconsumed bytes at the front of the buffer."""
        return self._used

    @property
    def spare(self) -> int:
        """How many bytes can be read before the buffer is full."""
        return self.capacity - 1 - self._used

    @property
    def is_inline(self) -> bool:
        """True while the buffer uses its inline storage."""
        return self._storage is self._inline and not self._released

    @property
    def released(self) -> bool:
        return self._released

    def pending(self) -> bytes:
        """Copy of the unconsumed bytes (the partial line, if any)."""
        self._check_alive()
        return bytes(self._storage[:self._used])

    def __len__(self) -> int:
        return self._used

    def __repr__(self) -> str:
        if self._released:
            return "LineBuffer(released)"
        mode = "inline" if self.is_inline else "grown"
        return f"LineBuffer(used={self._used}, capacity={self.capacity}, {mode})"

    # =========================================================================
    # APPENDING
    # =========================================================================

    def append(self, data: bytes) -> None:
        """
        Append bytes after the unconsumed prefix.

        Grows the buffer (doubling) as many times as needed. Data is never
        truncated: if it cannot fit, nothing is appended and the error is
        raised.

        Raises:
            CapacityExceeded: If the data would not fit even after growth
                              (max_size reached or out of memory).
        """
        self._check_alive()
        size = len(data)
        if not size:
            return

        needed = self._used + size + 1  # +1 for the reserved byte
        if needed > self.capacity:
            target = self.capacity
            while target < needed:
                target *= 2
            if self.max_size is not None and target > self.max_size:
                if needed > self.max_size:
                    raise CapacityExceeded(
                        f"{needed} bytes needed, limit is {self.max_size}",
                        requested=needed,
                        limit=self.max_size,
                    )
                target = self.max_size
            try:
                self._reallocate(target)
            except MemoryError as e:
                raise CapacityExceeded(
                    f"Out of memory growing buffer to {target} bytes",
                    requested=target,
                ) from e

        self._storage[self._used:self._used + size] = data
        self._used += size

    # =========================================================================
    # EXTRACTING
    # =========================================================================

    def extract_lines(self) -> Iterator[bytes]:
        """
        Lazily yield every complete line in the buffer, newline stripped.

        Lines come out in arrival order. A carriage return before the
        newline is NOT stripped; that is up to the consumer.

        When the iterator is exhausted (or closed early), the consumed
        lines are dropped and the remaining partial line is moved to the
        front of the buffer. Lines that were yielded are gone for good:
        a second call only sees lines that arrived since.

        Raises:
            BufferReleasedError: If the buffer was already released.
        """
        self._check_alive()
        return self._iter_lines()

    def _iter_lines(self) -> Iterator[bytes]:
        start = 0
        try:
            while not self._released:
                newline_at = self._storage.find(NEWLINE, start, self._used)
                if newline_at < 0:
                    break
                line = bytes(self._storage[start:newline_at])
                # Advance before yielding so a closed iterator still
                # counts this line as consumed
                start = newline_at + 1
                yield line
        finally:
            self._discard(start)

    def _discard(self, count: int) -> None:
        """Drop the first `count` bytes, moving the rest to the front."""
        if count == 0 or self._released:
            return
        remaining = self._used - count
        self._storage[:remaining] = self._storage[count:self._used]
        self._used = remaining

    # =========================================================================
    # GROWING
    # =========================================================================

    def should_grow(self) -> bool:
        """True when the buffer is full (no room for another byte)."""
        return not self._released and self._used == self.capacity - 1

    def grow(self) -> int:
        """
        Double the capacity, keeping the unconsumed prefix.

        The inline storage is kept aside for a later shrink(); any other
        previous storage is dropped.

        Returns:
            The new capacity.

        Raises:
            CapacityExceeded: If max_size is already reached.
            BufferGrowthFailure: If the allocation fails.
        """
        self._check_alive()
        target = self.capacity * 2
        if self.max_size is not None:
            if self.capacity >= self.max_size:
                raise CapacityExceeded(
                    f"Buffer already at its limit of {self.max_size} bytes",
                    requested=target,
                    limit=self.max_size,
                )
            target = min(target, self.max_size)

        try:
            self._reallocate(target)
        except MemoryError as e:
            raise BufferGrowthFailure(f"Out of memory growing buffer to {target} bytes") from e

        logger.debug(f"Line buffer grew to {target} bytes ({self._used} used)")
        return target

    def _reallocate(self, capacity: int) -> None:
        storage = bytearray(capacity)
        storage[:self._used] = self._storage[:self._used]
        self._storage = storage

    # =========================================================================
    # SHRINKING
    # =========================================================================

    def should_shrink(self) -> bool:
        """True when grown storage holds little enough to go back inline."""
        return (
            not self._released
            and not self.is_inline
            and self._used < self.inline_size - 1
        )

    def shrink(self) -> None:
        """
        Move the unconsumed bytes back into inline storage.

        Does nothing when the buffer is already inline or the data does
        not fit the inline storage, so calling it twice is harmless.
        """
        if not self.should_shrink():
            return
        self._inline[:self._used] = self._storage[:self._used]
        self._storage = self._inline
        logger.debug(f"Line buffer shrank back to {self.inline_size} bytes")

    # =========================================================================
    # RELEASE
    # =========================================================================

    def release(self) -> None:
        """Drop all storage. Idempotent."""
        self._storage = None
        self._inline = None
        self._used = 0
        self._released = True

    def _check_alive(self) -> None:
        if self._released:
            raise BufferReleasedError("Line buffer has been released")
