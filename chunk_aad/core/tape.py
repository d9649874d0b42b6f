# chunk_aad/core/tape.py
"""
ChunkTape: the recording side and the client side of the AD tape.

Recording
---------
Every assignment ``lhs = rhs`` seen by the front end ends up in `store`:

* rhs is an expression: the expression pushes one Jacobian entry per active
  leaf (`push_jacobi`); if at least one entry was written the lhs gets an
  index and a statement ``(number of entries, lhs index)`` closes the group.
* rhs is a tracked variable: one entry with coefficient 1.0 and a statement.
* rhs is a plain number: the lhs index is released, nothing is written.

Data layout
-----------
Three ChunkLogs are nested, the outer one snapshotting the inner one:

    external_functions (ExternalFunction, Jacobian position)
      -> jacobians     (coefficient, argument index)
        -> statements  (argument count, lhs index)

A `Position` of the tape is the position of the outermost log and therefore
pins down all three.
"""
from __future__ import annotations
import dataclasses
import logging
import math
import warnings
from contextlib import contextmanager
from numbers import Number
from typing import Any, Callable, Optional, Tuple

import numpy as np

from .adjoints import AdjointVector
from .chunk_log import ChunkLog
from .config import MAX_STATEMENT_ARGS, STATEMENT_INT, TapeConfig
from .external import ExternalFunction
from .index_handler import IndexHandler
from .position import Position
from .sweep import ReverseSweep

logger = logging.getLogger("chunk_aad.tape")


class ChunkTape:
    """
    A reverse-mode tape that grows chunk by chunk and recycles indices.

    Args:
        config: TapeConfig; a default one is created if omitted
        **overrides: Individual TapeConfig fields, applied on top of `config`
    """

    def __init__(self, config: Optional[TapeConfig] = None, **overrides):
        if config is None:
            config = TapeConfig(**overrides)
        else:
            # private copy: the chunk-size setters write into it
            config = dataclasses.replace(config, **overrides)
        self.config = config

        index_type = config.index_type
        self.statements = ChunkLog(config.statement_chunk_size, (STATEMENT_INT, index_type),
                                   inner=None, name="statements")
        self.jacobians = ChunkLog(config.jacobian_chunk_size, (np.float64, index_type),
                                  inner=self.statements, name="jacobians")
        self.external_functions = ChunkLog(config.external_function_chunk_size, (object, object),
                                           inner=self.jacobians, name="external functions")

        self.adjoints = AdjointVector()
        self.index_handler = IndexHandler(index_type)
        self.active = bool(config.active)
        self._sweep = ReverseSweep(self)

    def __repr__(self):
        state = "active" if self.active else "passive"
        return (f"ChunkTape({state}, statements={self.get_used_statements_size()}, "
                f"jacobians={self.get_used_jacobians_size()}, "
                f"max_index={self.index_handler.get_maximum_global_index()})")

    # ------------------------------------------------------------------ #
    # configuration
    # ------------------------------------------------------------------ #
    def set_statement_chunk_size(self, size: int):
        self.statements.set_chunk_size(size)
        self.config.statement_chunk_size = int(size)

    def set_jacobian_chunk_size(self, size: int):
        self.jacobians.set_chunk_size(size)
        self.config.jacobian_chunk_size = int(size)

    def set_external_function_chunk_size(self, size: int):
        self.external_functions.set_chunk_size(size)
        self.config.external_function_chunk_size = int(size)

    def resize(self, jacobian_size: int, statement_size: int):
        """Preallocate chunks for the given numbers of Jacobian entries and statements."""
        self.jacobians.resize(jacobian_size)
        self.statements.resize(statement_size)

    def set_adjoints_size(self, size: int):
        self.adjoints.resize(size)

    def get_used_statements_size(self) -> int:
        return self.statements.get_data_size()

    def get_used_jacobians_size(self) -> int:
        return self.jacobians.get_data_size()

    def get_used_external_functions_size(self) -> int:
        return self.external_functions.get_data_size()

    def get_adjoints_size(self) -> int:
        """Number of adjoint slots a full evaluation needs."""
        return self.index_handler.get_maximum_global_index() + 1

    # ------------------------------------------------------------------ #
    # activity
    # ------------------------------------------------------------------ #
    def set_active(self):
        self.active = True

    def set_passive(self):
        self.active = False

    def is_active(self) -> bool:
        return self.active

    @contextmanager
    def recording(self):
        """Record within the block, then restore the previous activity."""
        prev = self.active
        self.active = True
        try:
            yield self
        finally:
            self.active = prev

    # ------------------------------------------------------------------ #
    # recording
    # ------------------------------------------------------------------ #
    def store(self, target, rhs):
        """
        Assign `rhs` to `target` and record the assignment.

        `target` is any object with writable ``value`` and ``index``
        attributes (an ActiveReal). `rhs` is an expression, a tracked
        variable or a plain number.
        """
        target.value, target.index = self.store_value(target.value, target.index, rhs)

    def store_value(self, value: float, index: int, rhs) -> Tuple[float, int]:
        """Low-level `store`: returns the new (primal value, index) of the lhs."""
        if isinstance(rhs, (Number, np.number)):
            return float(rhs), self.index_handler.free_index(index)
        if getattr(rhs, "is_variable", False):
            return self._store_copy(index, rhs)
        return self._store_expression(index, rhs)

    def _store_expression(self, index: int, rhs) -> Tuple[float, int]:
        if self.active:
            # statements are reserved first: a new Jacobian chunk snapshots their position
            self.statements.reserve(1)
            self.jacobians.reserve(rhs.max_active_variables)
            start = self.jacobians.get_chunk_position()
            rhs.emit_gradient(self)
            active_variables = self.jacobians.get_chunk_position() - start
            if active_variables == 0:
                index = self.index_handler.free_index(index)
            else:
                assert active_variables <= MAX_STATEMENT_ARGS, \
                    f"statement with {active_variables} arguments exceeds {MAX_STATEMENT_ARGS}"
                index = self.index_handler.check_index(index)
                self.statements.append(active_variables, index)
        else:
            index = self.index_handler.free_index(index)
        return float(rhs.value), index

    def _store_copy(self, index: int, rhs) -> Tuple[float, int]:
        if self.active and rhs.index != 0:
            index = self.index_handler.check_index(index)
            self.statements.reserve(1)
            self.jacobians.reserve(1)
            self.jacobians.append(1.0, rhs.index)
            self.statements.append(1, index)
        else:
            index = self.index_handler.free_index(index)
        return rhs.value, index

    def store_manual(self, target, size: int, value: Optional[float] = None) -> "ManualStatement":
        """
        Open a statement whose Jacobian entries the caller pushes itself.

        Use as a context manager::

            with tape.store_manual(y, 2) as stmt:
                stmt.push_jacobi(dydx0, x0.index)
                stmt.push_jacobi(dydx1, x1.index)
        """
        return ManualStatement(self, target, size, value)

    def push_jacobi(self, coefficient: float, value: float, index: int):
        """Record one Jacobian entry of the statement being stored."""
        if index != 0:
            if self.config.ignore_invalid_jacobians and not math.isfinite(coefficient):
                return
            if self.config.skip_zero_jacobians and coefficient == 0.0:
                return
            self.jacobians.append(coefficient, index)

    def push_jacobi_unit(self, value: float, index: int):
        """Record a Jacobian entry with coefficient 1.0."""
        if index != 0:
            self.jacobians.append(1.0, index)

    def register_input(self, variable):
        """Give `variable` an index so that derivatives with respect to it are tracked."""
        variable.index = self.index_handler.check_index(variable.index)

    def register_output(self, variable):
        pass

    def init_gradient_data(self, value: float) -> int:
        return 0

    def destroy_gradient_data(self, value: float, index: int) -> int:
        return self.index_handler.free_index(index)

    def push_external_function_handle(self, callback: Callable[[Any, Any], None], data: Any = None,
                                      destructor: Optional[Callable[[Any], None]] = None):
        """
        Insert `callback` into the reverse sweep at the current position.

        The tape takes ownership of `data`; `destructor(data)` is called when
        the record is discarded by a reset.
        """
        self.external_functions.reserve(1)
        self.external_functions.append(ExternalFunction(callback, data, destructor),
                                       self.jacobians.get_position())
        logger.debug("external function %r pushed at %r", callback, self.jacobians.get_position())

    push_external_function = push_external_function_handle

    # ------------------------------------------------------------------ #
    # gradients
    # ------------------------------------------------------------------ #
    def _check_issued(self, index: int):
        if index > self.index_handler.get_maximum_global_index():
            warnings.warn(
                f"index {index} has not been issued by this tape "
                f"(maximum {self.index_handler.get_maximum_global_index()})",
                stacklevel=3,
            )

    def set_gradient(self, index: int, gradient: float):
        if index != 0:
            self._check_issued(index)
            self.adjoints.set(index, gradient)

    def get_gradient(self, index: int) -> float:
        return self.adjoints.get(index)

    def gradient(self, index: int) -> np.ndarray:
        """Writable one-element view on the adjoint of `index` (valid until the vector grows)."""
        self._check_issued(index)
        return self.adjoints.get_mutable(index)

    def clear_adjoints(self):
        self.adjoints.clear(self.index_handler.get_maximum_global_index())

    # ------------------------------------------------------------------ #
    # positions, evaluation, reset
    # ------------------------------------------------------------------ #
    def get_position(self) -> Position:
        return self.external_functions.get_position()

    def get_zero_position(self) -> Position:
        return self.external_functions.get_zero_position()

    def evaluate(self, start: Optional[Position] = None, end: Optional[Position] = None):
        """
        Propagate adjoints from `start` back to `end`.

        Defaults to the whole tape (current position back to the beginning).
        Requires start >= end.
        """
        if start is None:
            start = self.get_position()
        if end is None:
            end = self.get_zero_position()

        max_index = self.index_handler.get_maximum_global_index()
        if self.adjoints.size <= max_index:
            self.adjoints.resize(max_index + 1)

        self._sweep.run(start, end)

    def reset(self, pos: Optional[Position] = None):
        """
        Discard everything recorded after `pos` (everything if omitted).

        Adjoints are cleared and the data of discarded external functions is
        released through their destructors. Only `reset()` without a position
        also resets the index handler; a reset to a position keeps all indices,
        even when that position is the beginning of the tape.
        """
        full = pos is None
        if full:
            pos = self.get_zero_position()
        logger.debug("reset %r -> %r", self.get_position(), pos)

        self.clear_adjoints()
        self.external_functions.for_each_backward(self.get_position(), pos, _pop_external_function)
        self.external_functions.reset(pos)
        if full:
            self.index_handler.reset()


def _pop_external_function(function: ExternalFunction, jacobian_position: Position):
    logger.debug("destroying external function data at %r", jacobian_position)
    function.delete_data()


class ManualStatement:
    """
    A statement whose Jacobian entries are pushed by hand.

    Space for the statement and `size` entries is reserved on creation; the
    statement itself is appended by `close()` once all entries are written,
    with the number of entries that were actually recorded.
    """

    def __init__(self, tape: ChunkTape, target, size: int, value: Optional[float] = None):
        self.tape = tape
        self.target = target
        self.size = int(size)
        self.closed = False
        self._start = None
        self._rollback = None

        if value is not None:
            target.value = float(value)
        if tape.active:
            assert self.size <= MAX_STATEMENT_ARGS, \
                f"manual statement with {self.size} arguments exceeds {MAX_STATEMENT_ARGS}"
            tape.statements.reserve(1)
            tape.jacobians.reserve(self.size)
            self._rollback = tape.jacobians.get_position()
            self._start = tape.jacobians.get_chunk_position()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None and self._rollback is not None:
            # drop the partial entries, otherwise they would be attributed to the next statement
            self.tape.jacobians.reset(self._rollback)
            self.closed = True
            return False
        self.close()
        return False

    def written(self) -> int:
        if self._start is None:
            return 0
        return self.tape.jacobians.get_chunk_position() - self._start

    def push_jacobi(self, coefficient: float, index: int):
        assert not self.closed, "manual statement already closed"
        if self._start is None:
            return
        assert self.written() < self.size, f"more than {self.size} Jacobian entries pushed"
        self.tape.push_jacobi(coefficient, 0.0, index)

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self._start is None:
            # passive tape: the target index is left as it is
            return
        tape = self.tape
        n = self.written()
        if n == 0:
            self.target.index = tape.index_handler.free_index(self.target.index)
        else:
            self.target.index = tape.index_handler.check_index(self.target.index)
            tape.statements.append(n, self.target.index)


# Default tape for variables created without an explicit one
global_tape = ChunkTape()


def current_tape() -> ChunkTape:
    return global_tape


@contextmanager
def use_tape(tape: Optional[ChunkTape] = None, **config):
    """
    Context manager to temporarily make another tape the default:
        with use_tape() as tape, tape.recording():
            ... build computation ...
            tape.evaluate()
    """
    global global_tape
    prev = global_tape
    try:
        global_tape = tape if tape is not None else ChunkTape(**config)
        yield global_tape
    finally:
        global_tape = prev
