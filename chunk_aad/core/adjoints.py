# chunk_aad/core/adjoints.py
from __future__ import annotations
import logging

import numpy as np

logger = logging.getLogger("chunk_aad.adjoints")


class AdjointVector:
    """
    Dense adjoint storage indexed by derivative slot.

    The backing float64 array grows on demand and new slots start at zero.
    Growth replaces the array: views returned by `get_mutable` and the `data`
    array itself must be fetched again after anything that may grow the
    vector.
    """

    def __init__(self, size: int = 0):
        self.data = np.zeros(size, dtype=np.float64)

    @property
    def size(self) -> int:
        return len(self.data)

    def __len__(self):
        return len(self.data)

    def resize(self, size: int):
        old = len(self.data)
        if size == old:
            return
        grown = np.zeros(size, dtype=np.float64)
        n = min(old, size)
        grown[:n] = self.data[:n]
        self.data = grown
        logger.debug("adjoint vector resized %d -> %d", old, size)

    def get(self, index: int) -> float:
        """Adjoint of `index`; slots beyond the current size read as 0."""
        if index >= len(self.data):
            return 0.0
        return float(self.data[index])

    def get_mutable(self, index: int) -> np.ndarray:
        """
        Writable one-element view on the slot of `index`.

        The vector grows if needed. Write through ``view[0]``; the view is only
        valid until the next growth.
        """
        assert index != 0, "index 0 is the inactive marker and has no adjoint slot"
        if index >= len(self.data):
            self.resize(index + 1)
        return self.data[index:index + 1]

    def set(self, index: int, value: float):
        self.get_mutable(index)[0] = value

    def add(self, index: int, value: float):
        self.get_mutable(index)[0] += value

    def clear(self, max_index: int):
        """Zero every slot up to and including `max_index`."""
        self.data[:max_index + 1] = 0.0
