# chunk_aad/__init__.py
# Chunked reverse-mode automatic differentiation tape

from .core.config import TapeConfig
from .core.position import Position
from .core.tape import ChunkTape, ManualStatement, current_tape, use_tape
from .core.var import ActiveReal
from .core.seeds import grad, grads, grads_list, value
from .core.stats import get_tape_stats, print_tape_summary

# Elementary functions
from . import ops
from .ops import exp, log, sqrt, erf, norm_cdf

__version__ = "0.1.0"

__all__ = [
    # Core
    'TapeConfig',
    'Position',
    'ChunkTape',
    'ManualStatement',
    'current_tape',
    'use_tape',
    'ActiveReal',
    # Drivers
    'grad',
    'grads',
    'grads_list',
    'value',
    # Statistics
    'get_tape_stats',
    'print_tape_summary',
    # Ops
    'ops',
    'exp',
    'log',
    'sqrt',
    'erf',
    'norm_cdf',
]
