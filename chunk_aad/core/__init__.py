# chunk_aad/core/__init__.py

"""
Core public API for the chunked AD tape.

Exports:
    ChunkTape       : Tape storing statements, Jacobian entries and external
                      functions in chunked logs.
    TapeConfig      : Chunk sizes, replay options and index width of a tape.
    Position        : Checkpoint into a tape, usable with evaluate() and reset().
    ActiveReal      : Scalar active variable recorded on a tape.
    global_tape     : The default tape used by variables created without one.
    current_tape    : Return the current default tape.
    use_tape        : Context manager to temporarily switch the default tape.
    grad, grads, grads_list : Convenience drivers for one reverse sweep.
    value           : Convenience: extract the primal value.
"""

from .config import TapeConfig
from .position import Position
from .tape import ChunkTape, ManualStatement, global_tape, current_tape, use_tape
from .var import ActiveReal
from .seeds import grad, grads, grads_list, value
from .stats import get_tape_stats, print_tape_summary

__all__ = [
    "TapeConfig", "Position",
    "ChunkTape", "ManualStatement",
    "global_tape", "current_tape", "use_tape",
    "ActiveReal",
    "grad", "grads", "grads_list", "value",
    "get_tape_stats", "print_tape_summary",
]
