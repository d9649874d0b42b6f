# chunk_aad/core/index_handler.py
from __future__ import annotations
from typing import List

import numpy as np


class IndexHandler:
    """
    Issues and recycles derivative-slot indices.

    Index 0 is reserved for "not tracked" and is never handed out. Freed
    indices go onto a free list and are reused last-in first-out, which keeps
    the adjoint vector dense; the order has no influence on results.

    Attributes
    ----------
    global_maximum_index : int
        Largest index ever issued since the last reset.
    free_indices : list[int]
        Indices available for reuse.
    generation : int
        Number of resets so far; indices issued before a reset are stale.
    """

    def __init__(self, index_dtype="int32"):
        self.index_dtype = np.dtype(index_dtype)
        self.max_representable = int(np.iinfo(self.index_dtype).max)
        self.global_maximum_index = 0
        self.free_indices: List[int] = []
        self.generation = 0

    def create_index(self) -> int:
        if self.free_indices:
            return self.free_indices.pop()
        assert self.global_maximum_index < self.max_representable, \
            f"index overflow: more than {self.max_representable} live indices for {self.index_dtype}"
        self.global_maximum_index += 1
        return self.global_maximum_index

    new_index = create_index

    def free_index(self, index: int) -> int:
        """Give `index` back; returns 0, the value the owner's slot should take."""
        if index != 0:
            self.free_indices.append(int(index))
        return 0

    def check_index(self, index: int) -> int:
        """Return `index`, or a freshly created one if it is 0."""
        if index == 0:
            return self.create_index()
        return index

    def reset(self):
        self.global_maximum_index = 0
        self.free_indices.clear()
        self.generation += 1

    # queries
    def get_maximum_global_index(self) -> int:
        return self.global_maximum_index

    def get_current_index(self) -> int:
        return self.global_maximum_index

    def get_number_stored_indices(self) -> int:
        return len(self.free_indices)

    def get_number_live_indices(self) -> int:
        return self.global_maximum_index - len(self.free_indices)
