# chunk_aad/core/position.py
from __future__ import annotations
from typing import NamedTuple, Optional, Tuple


class Position(NamedTuple):
    """
    Checkpoint into a stack of nested chunk logs.

    Attributes
    ----------
    chunk : int
        Index of the chunk in this log layer.
    data  : int
        Number of used records in that chunk.
    inner : Position | None
        Position of the nested (inner) log at the same moment; None for the
        innermost layer.

    Being a tuple, positions order lexicographically from the outermost layer
    to the innermost one. They are only comparable within one tape.
    """
    chunk: int
    data: int
    inner: Optional["Position"] = None

    def pairs(self) -> Tuple[Tuple[int, int], ...]:
        """Flat (chunk, data) pair per layer, outermost first."""
        out = []
        pos = self
        while pos is not None:
            out.append((pos.chunk, pos.data))
            pos = pos.inner
        return tuple(out)

    def __repr__(self):
        return "Position(" + ", ".join(f"{c}:{d}" for c, d in self.pairs()) + ")"
