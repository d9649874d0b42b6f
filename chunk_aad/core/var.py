# chunk_aad/core/var.py
from __future__ import annotations
from numbers import Number
from typing import Any, Optional

import numpy as np

from . import tape as tape_mod  # module access so use_tape() swaps are seen
from .expression import Expression, LazyLeaf


class ActiveReal(Expression):
    """
    Scalar active variable recorded on a ChunkTape.

    Every arithmetic operation on an ActiveReal is recorded as one statement
    on the tape and returns a new ActiveReal. To record a compound right hand
    side as a single statement, build it from `lazy()` leaves and assign it:

        z = ActiveReal(x.lazy() * y + 3.0 * x)

    Attributes
    ----------
    value : float
        Primal value.
    index : int
        Derivative slot on the tape; 0 while the variable is not tracked.
    tape : ChunkTape
        Tape the variable records on (the current default tape if not given).
    name : Optional[str]
        Optional debug/pretty-print name.
    """

    is_variable = True

    def __init__(self, value: Any = 0.0, tape=None, *, name: Optional[str] = None):
        if isinstance(value, Expression):
            if tape is None:
                tape = value.find_tape()
        elif isinstance(value, bool) or not isinstance(value, (Number, np.number)):
            raise TypeError(
                f"ActiveReal only accepts numbers or expressions, but got {type(value)}"
            )

        self.tape = tape if tape is not None else tape_mod.current_tape()
        self.name = name
        self.value = 0.0
        self.index = self.tape.init_gradient_data(0.0)
        self.max_active_variables = 1

        if isinstance(value, Expression):
            self.tape.store(self, value)
        else:
            self.value = float(value)

    # indices handed out before a full tape reset are no longer owned
    @property
    def index(self) -> int:
        if self._generation != self.tape.index_handler.generation:
            return 0
        return self._index

    @index.setter
    def index(self, index: int):
        self._index = int(index)
        self._generation = self.tape.index_handler.generation

    def __repr__(self):
        return f"ActiveReal({self.value!r}, index={self.index}, name={self.name!r})"

    def __del__(self):
        tape = getattr(self, "tape", None)
        if tape is not None and getattr(self, "_index", 0) != 0:
            self.release()

    # ------------------------------------------------------------------ #
    # expression protocol
    # ------------------------------------------------------------------ #
    def calc_gradient(self, sink, jacobi):
        if jacobi is None:
            sink.push_jacobi_unit(self.value, self.index)
        else:
            sink.push_jacobi(jacobi, self.value, self.index)

    def find_tape(self):
        return self.tape

    def lazy(self) -> LazyLeaf:
        """Leaf for building a multi-operator expression recorded as one statement."""
        return LazyLeaf(self)

    # ------------------------------------------------------------------ #
    # tape interaction
    # ------------------------------------------------------------------ #
    def assign(self, rhs) -> "ActiveReal":
        """``self = rhs``: record the assignment and keep this variable's identity."""
        self.tape.store(self, rhs)
        return self

    def register_input(self) -> "ActiveReal":
        self.tape.register_input(self)
        return self

    def register_output(self) -> "ActiveReal":
        self.tape.register_output(self)
        return self

    def release(self):
        """Hand the index back to the tape; the variable becomes untracked."""
        self.index = self.tape.destroy_gradient_data(self.value, self.index)

    @property
    def gradient(self) -> float:
        return self.tape.get_gradient(self.index)

    @gradient.setter
    def gradient(self, g: float):
        self.tape.set_gradient(self.index, g)

    def get_gradient(self) -> float:
        return self.gradient

    def set_gradient(self, g: float):
        self.gradient = g

    # ------------------------------------------------------------------ #
    # in-place updates
    # ------------------------------------------------------------------ #
    def __iadd__(self, other):
        if isinstance(other, (Number, np.number)):
            # the derivative of x + c is the derivative of x: primal only
            self.value += float(other)
            return self
        return self.assign(self.lazy() + other)

    def __isub__(self, other):
        if isinstance(other, (Number, np.number)):
            self.value -= float(other)
            return self
        return self.assign(self.lazy() - other)

    def __imul__(self, other):
        return self.assign(self.lazy() * other)

    def __itruediv__(self, other):
        return self.assign(self.lazy() / other)
