# chunk_aad/core/chunk_log.py
"""
Chunked, append-only record storage.

A ChunkLog keeps its records in a list of fixed-capacity chunks. Each chunk
stores one numpy array per record field (columnar layout), so a chunk of
Jacobian entries is a float64 coefficient array next to an index array.

Logs can be nested: an outer log remembers, for every chunk it opens, the
position of its inner log at that moment. A position of the outer log
therefore carries a snapshot of all inner logs, and resetting the outer log
resets the inner ones with it.

    external functions -> Jacobian entries -> statements -> (terminator)

Growth never copies recorded data; the cost of a new chunk is bounded by
the chunk size.
"""
from __future__ import annotations
import logging
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .position import Position

logger = logging.getLogger("chunk_aad.chunk_log")


class Chunk:
    """One fixed-capacity block of records."""
    __slots__ = ("fields", "used")

    def __init__(self, size: int, dtypes: Sequence[np.dtype]):
        self.fields: Tuple[np.ndarray, ...] = tuple(np.zeros(size, dtype=dt) for dt in dtypes)
        self.used = 0

    @property
    def size(self) -> int:
        return len(self.fields[0])

    def unused(self) -> int:
        return self.size - self.used

    def release(self, begin: int, end: int):
        # drop references held by object fields so that discarded records can be collected
        for arr in self.fields:
            if arr.dtype == object:
                arr[begin:end] = None


class ChunkLog:
    """
    Growable log of fixed-width records.

    Args:
        chunk_size: Number of records per chunk (applies to newly opened chunks)
        dtypes: One numpy dtype per record field
        inner: Nested log whose position is snapshotted per chunk, or None
        name: Label used in log messages and statistics
    """

    def __init__(self, chunk_size: int, dtypes: Sequence, inner: Optional["ChunkLog"] = None,
                 name: str = "log"):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = int(chunk_size)
        self.dtypes = tuple(np.dtype(dt) for dt in dtypes)
        self.inner = inner
        self.name = name

        self.chunks: List[Chunk] = [Chunk(self.chunk_size, self.dtypes)]
        self.positions: List[Optional[Position]] = [self._inner_position()]
        self.cur_chunk = 0

    # ----------------------------- configuration ----------------------------- #
    def set_chunk_size(self, chunk_size: int):
        """Set the capacity of chunks allocated from now on."""
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = int(chunk_size)

    def get_chunk_size(self) -> int:
        return self.chunk_size

    def resize(self, total: int):
        """Preallocate chunks so that `total` records fit without further allocation."""
        capacity = sum(chunk.size for chunk in self.chunks)
        while capacity < total:
            self.chunks.append(Chunk(self.chunk_size, self.dtypes))
            self.positions.append(None)  # filled in when the chunk is opened
            capacity += self.chunk_size
        logger.debug("%s: resized to %d chunks (capacity %d)", self.name, len(self.chunks), capacity)

    # -------------------------------- writing -------------------------------- #
    def reserve(self, items: int):
        """
        Make sure `items` records fit into the current chunk.

        Must be called before `append`. Opens the next chunk if the current one
        is too full; a request larger than a whole chunk is a usage error.
        """
        if self.chunks[self.cur_chunk].unused() < items:
            self._next_chunk()
            assert items <= self.chunks[self.cur_chunk].size, \
                f"{self.name}: cannot reserve {items} items in chunks of size {self.chunks[self.cur_chunk].size}"

    def _next_chunk(self):
        self.cur_chunk += 1
        if self.cur_chunk == len(self.chunks):
            self.chunks.append(Chunk(self.chunk_size, self.dtypes))
            self.positions.append(self._inner_position())
            logger.debug("%s: allocated chunk %d (size %d)", self.name, self.cur_chunk, self.chunk_size)
        else:
            self.chunks[self.cur_chunk].used = 0
            self.positions[self.cur_chunk] = self._inner_position()

    def append(self, *values):
        """Write one record into the reserved space and advance the cursor."""
        chunk = self.chunks[self.cur_chunk]
        pos = chunk.used
        assert pos < chunk.size, f"{self.name}: append without reserve"
        for arr, v in zip(chunk.fields, values):
            arr[pos] = v
        chunk.used = pos + 1

    # ------------------------------- positions ------------------------------- #
    def _inner_position(self) -> Optional[Position]:
        return None if self.inner is None else self.inner.get_position()

    def get_position(self) -> Position:
        return Position(self.cur_chunk, self.chunks[self.cur_chunk].used, self._inner_position())

    def get_zero_position(self) -> Position:
        inner = None if self.inner is None else self.inner.get_zero_position()
        return Position(0, 0, inner)

    def get_inner_position(self, chunk: int) -> Optional[Position]:
        """Position of the inner log when `chunk` was opened."""
        return self.positions[chunk]

    def get_chunk_position(self) -> int:
        """Offset inside the current chunk."""
        return self.chunks[self.cur_chunk].used

    def reset(self, pos: Position):
        """Truncate this log and its inner logs to `pos`; chunks are kept for reuse."""
        assert (pos.chunk, pos.data) <= (self.cur_chunk, self.chunks[self.cur_chunk].used), \
            f"{self.name}: reset to {pos!r} beyond the current position"

        for i in range(self.cur_chunk, pos.chunk, -1):
            chunk = self.chunks[i]
            chunk.release(0, chunk.used)
            chunk.used = 0
        chunk = self.chunks[pos.chunk]
        chunk.release(pos.data, chunk.used)
        chunk.used = pos.data
        self.cur_chunk = pos.chunk

        if self.inner is not None:
            self.inner.reset(pos.inner)

    # ------------------------------- traversal ------------------------------- #
    def iterate_backward(self, start: Position, end: Position) -> Iterator[tuple]:
        """
        Walk the chunks between `start` and `end`, newest first.

        Yields ``(fields, hi, lo, inner_start, inner_end)`` per chunk: the
        chunk's field arrays (no copy), the window ``[lo, hi)`` of records
        that lies inside the range, and the inner log's positions at the
        window's upper and lower end.
        """
        assert (start.chunk, start.data) >= (end.chunk, end.data), \
            f"{self.name}: backward range from {start!r} to {end!r}"

        inner_start = start.inner
        hi = start.data
        for cur in range(start.chunk, end.chunk, -1):
            inner_end = self.positions[cur]
            yield self.chunks[cur].fields, hi, 0, inner_start, inner_end
            inner_start = inner_end
            hi = self.chunks[cur - 1].used

        # the remainder also covers start and end in the same chunk
        yield self.chunks[end.chunk].fields, hi, end.data, inner_start, end.inner

    def for_each_backward(self, start: Position, end: Position, func: Callable):
        """Call ``func(*record)`` for every record between `start` and `end`, newest first."""
        for fields, hi, lo, _, _ in self.iterate_backward(start, end):
            for i in range(hi - 1, lo - 1, -1):
                func(*(arr[i] for arr in fields))

    # --------------------------------- sizes --------------------------------- #
    def get_data_size(self) -> int:
        """Number of records currently stored."""
        return sum(self.chunks[i].used for i in range(self.cur_chunk + 1))

    def get_num_chunks(self) -> int:
        """Number of chunks in use (the current one included)."""
        return self.cur_chunk + 1

    def get_allocated_chunks(self) -> int:
        return len(self.chunks)

    def get_chunk_used_data(self, chunk: int) -> int:
        return self.chunks[chunk].used

    def get_allocated_size(self) -> int:
        return sum(chunk.size for chunk in self.chunks)

    def record_nbytes(self) -> int:
        """Bytes per record (object fields counted as one pointer)."""
        return sum(dt.itemsize for dt in self.dtypes)
