# chunk_aad/ops/arithmetic.py
from numbers import Number

import numpy as np

from ..core.expression import BinaryExpression, Constant, Expression, UnaryExpression
from ..core.var import ActiveReal
from ..core import tape as tape_mod  # Use module access for use_tape() compatibility


def _as_operand(x) -> Expression:
    """Ensure x is an Expression; otherwise wrap it as a Constant."""
    if isinstance(x, Expression):
        return x
    if isinstance(x, bool) or not isinstance(x, (Number, np.number)):
        raise TypeError(f"unsupported operand type {type(x)}")
    return Constant(x)


def _is_lazy(x) -> bool:
    return isinstance(x, Expression) and not x.is_variable and not isinstance(x, Constant)


def _tape_of(operands):
    tape = None
    for x in operands:
        if isinstance(x, Expression):
            t = x.find_tape()
            if t is None:
                continue
            if tape is None:
                tape = t
            elif t is not tape:
                raise ValueError("operands are recorded on different tapes")
    return tape if tape is not None else tape_mod.current_tape()


def _finish(expr: Expression, *operands):
    """
    Lazy operands give a lazy result; otherwise the expression is recorded
    right away as one statement and a new ActiveReal is returned.
    """
    tape = _tape_of(operands)
    if any(_is_lazy(x) for x in operands):
        return expr
    return ActiveReal(expr, tape=tape)


def _unary(x, f, dfdx, tag):
    """
    Generic unary primitive:
      - computes value = f(x.value)
      - records the local partial ∂out/∂x
    """
    xe = _as_operand(x)
    xv = xe.value
    return _finish(UnaryExpression(tag, xe, f(xv), dfdx(xv)), x)


def _binary(x, y, f, dfdx, dfdy, tag):
    """
    Generic binary primitive:
      - computes value = f(x.value, y.value)
      - records local partials (∂out/∂x, ∂out/∂y)
    """
    xe = _as_operand(x)
    ye = _as_operand(y)
    xv, yv = xe.value, ye.value
    expr = BinaryExpression(tag, xe, ye, f(xv, yv), dfdx(xv, yv), dfdy(xv, yv))
    return _finish(expr, x, y)


def add(x, y): return _binary(x, y, lambda a,b:a+b, lambda a,b:1.0,        lambda a,b:1.0,        "add")
def sub(x, y): return _binary(x, y, lambda a,b:a-b, lambda a,b:1.0,        lambda a,b:-1.0,       "sub")
def mul(x, y): return _binary(x, y, lambda a,b:a*b, lambda a,b:b,          lambda a,b:a,          "mul")
def div(x, y): return _binary(x, y, lambda a,b:a/b, lambda a,b:1.0/b,      lambda a,b:-a/np.square(b),   "div")


def neg(x):
    """Unary negation, local partial -1."""
    return _unary(x, lambda a: -a, lambda a: -1.0, "neg")


def pow(x, y):
    """
    Power:
      value = x ** y

    Local partials:
      ∂out/∂x = y * x^(y-1)
      ∂out/∂y = x^y * log(x)        (taken as 0 for x <= 0)
    """
    def dfdx(xv, pv):
        if pv == 0.0:
            return 0.0
        return pv * np.power(xv, pv - 1.0)

    def dfdy(xv, pv):
        return np.power(xv, pv) * np.log(xv) if xv > 0 else 0.0

    return _binary(x, y, np.power, dfdx, dfdy, "pow")
