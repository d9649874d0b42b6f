# chunk_aad/core/config.py
from __future__ import annotations
from dataclasses import dataclass
import numpy as np

# Records per chunk for the statement and Jacobian logs.
DEFAULT_CHUNK_SIZE = 65536
DEFAULT_EXTERNAL_FUNCTION_CHUNK_SIZE = 1000

# Argument counts are stored as uint8, so one statement holds at most 255 entries.
STATEMENT_INT = np.uint8
MAX_STATEMENT_ARGS = int(np.iinfo(STATEMENT_INT).max)


@dataclass
class TapeConfig:
    """Configuration for a ChunkTape."""
    # Chunk sizes (records per chunk)
    statement_chunk_size: int = DEFAULT_CHUNK_SIZE
    jacobian_chunk_size: int = DEFAULT_CHUNK_SIZE
    external_function_chunk_size: int = DEFAULT_EXTERNAL_FUNCTION_CHUNK_SIZE

    # Replay / recording optimizations
    skip_zero_adjoint: bool = True         # do not propagate statements whose adjoint is 0
    skip_zero_jacobians: bool = True       # drop coefficient == 0.0 entries
    ignore_invalid_jacobians: bool = True  # drop nan/inf coefficients

    # Width of the derivative-slot identifiers
    index_dtype: str = "int32"

    # Initial recording flag
    active: bool = False

    def __post_init__(self):
        for name in ("statement_chunk_size", "jacobian_chunk_size",
                     "external_function_chunk_size"):
            size = getattr(self, name)
            if not isinstance(size, (int, np.integer)) or size <= 0:
                raise ValueError(f"{name} must be a positive integer, got {size!r}")
        try:
            dtype = np.dtype(self.index_dtype)
        except TypeError as err:
            raise ValueError(f"Unknown index dtype: {self.index_dtype!r}") from err
        if dtype.kind not in "iu":
            raise ValueError(f"index_dtype must be an integer dtype, got {dtype}")

    @property
    def index_type(self) -> np.dtype:
        return np.dtype(self.index_dtype)
