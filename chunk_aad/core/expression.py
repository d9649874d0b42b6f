# chunk_aad/core/expression.py
from __future__ import annotations
from typing import Optional


class Expression:
    """
    Right hand side of an assignment, evaluated eagerly.

    An expression knows its primal `value` and, for each of its operands, the
    local partial derivative. On assignment the tape calls
    ``emit_gradient(tape)``, which pushes one Jacobian entry per active leaf:
    the product of the local partials along the path from the root to that
    leaf.

    Attributes
    ----------
    value : float
        Primal value of the expression.
    max_active_variables : int
        Upper bound on the number of entries `emit_gradient` pushes; the tape
        reserves that much space before evaluating the expression.
    """

    is_variable = False
    __array_priority__ = 1000
    __array_ufunc__ = None  # let numpy scalars defer to our reflected operators

    value: float = 0.0
    max_active_variables: int = 0

    def emit_gradient(self, sink):
        self.calc_gradient(sink, None)

    def calc_gradient(self, sink, jacobi: Optional[float]):
        raise NotImplementedError

    def find_tape(self):
        return None

    def __float__(self):
        return float(self.value)

    # lazy arithmetic: combining expressions builds a larger expression
    def __add__(self, other):
        from ..ops.arithmetic import add
        return add(self, other)

    def __radd__(self, other):
        from ..ops.arithmetic import add
        return add(other, self)

    def __sub__(self, other):
        from ..ops.arithmetic import sub
        return sub(self, other)

    def __rsub__(self, other):
        from ..ops.arithmetic import sub
        return sub(other, self)

    def __mul__(self, other):
        from ..ops.arithmetic import mul
        return mul(self, other)

    def __rmul__(self, other):
        from ..ops.arithmetic import mul
        return mul(other, self)

    def __truediv__(self, other):
        from ..ops.arithmetic import div
        return div(self, other)

    def __rtruediv__(self, other):
        from ..ops.arithmetic import div
        return div(other, self)

    def __neg__(self):
        from ..ops.arithmetic import neg
        return neg(self)

    def __pos__(self):
        return self

    def __pow__(self, other):
        from ..ops.arithmetic import pow
        return pow(self, other)

    def __rpow__(self, other):
        from ..ops.arithmetic import pow
        return pow(other, self)

    # comparisons act on primal values only
    def __lt__(self, other):
        return self.value < _value_of(other)

    def __le__(self, other):
        return self.value <= _value_of(other)

    def __gt__(self, other):
        return self.value > _value_of(other)

    def __ge__(self, other):
        return self.value >= _value_of(other)


def _value_of(x):
    return x.value if isinstance(x, Expression) else x


class Constant(Expression):
    """A passive number inside an expression; contributes no entries."""

    def __init__(self, value):
        self.value = float(value)

    def calc_gradient(self, sink, jacobi):
        pass

    def __repr__(self):
        return f"Constant({self.value!r})"


class LazyLeaf(Expression):
    """
    Stand-in for a variable inside a lazily built expression.

    Arithmetic on a variable records one statement per operator; arithmetic
    on its LazyLeaf keeps building an expression that is recorded as a single
    statement when assigned.
    """

    def __init__(self, variable):
        self.variable = variable
        self.value = variable.value
        self.max_active_variables = 1

    def calc_gradient(self, sink, jacobi):
        self.variable.calc_gradient(sink, jacobi)

    def find_tape(self):
        return self.variable.find_tape()

    def __repr__(self):
        return f"LazyLeaf({self.variable!r})"


class UnaryExpression(Expression):
    """op_tag(arg) with local partial `derivative`."""

    def __init__(self, op_tag: str, arg: Expression, value: float, derivative: float):
        self.op_tag = op_tag
        self.arg = arg
        self.value = float(value)
        self.derivative = float(derivative)
        self.max_active_variables = arg.max_active_variables

    def calc_gradient(self, sink, jacobi):
        d = self.derivative if jacobi is None else jacobi * self.derivative
        self.arg.calc_gradient(sink, d)

    def find_tape(self):
        return self.arg.find_tape()

    def __repr__(self):
        return f"{self.op_tag}({self.arg!r})"


class BinaryExpression(Expression):
    """op_tag(a, b) with local partials (da, db)."""

    def __init__(self, op_tag: str, a: Expression, b: Expression, value: float, da: float, db: float):
        self.op_tag = op_tag
        self.a = a
        self.b = b
        self.value = float(value)
        self.da = float(da)
        self.db = float(db)
        self.max_active_variables = a.max_active_variables + b.max_active_variables

    def calc_gradient(self, sink, jacobi):
        if jacobi is None:
            self.a.calc_gradient(sink, self.da)
            self.b.calc_gradient(sink, self.db)
        else:
            self.a.calc_gradient(sink, jacobi * self.da)
            self.b.calc_gradient(sink, jacobi * self.db)

    def find_tape(self):
        tape = self.a.find_tape()
        return tape if tape is not None else self.b.find_tape()

    def __repr__(self):
        return f"{self.op_tag}({self.a!r}, {self.b!r})"
