# chunk_aad/core/seeds.py

#-----------------------------------------------------------------------------
# We "plant" a seed (dy/dy = 1) in the adjoint of the scalar output and let
# the reverse sweep carry it back to the registered inputs.
#-----------------------------------------------------------------------------
from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, List

import numpy as np

from .expression import Expression
from .var import ActiveReal
from .tape import use_tape


def value(x: Any) -> Any:
    """Return the primal value of an expression; pass through plain numbers unchanged."""
    return x.value if isinstance(x, Expression) else x


def _ensure_input(v: Any, tape, *, name: str) -> ActiveReal:
    """Wrap a plain value as a registered input on `tape`."""
    if isinstance(v, ActiveReal):
        raise TypeError(f"input {name!r} must be a number, not an ActiveReal")
    return ActiveReal(v, tape, name=name).register_input()


def _seed_and_sweep(tape, y: Any, fname: str) -> ActiveReal:
    if isinstance(y, np.ndarray) and y.shape != ():
        raise ValueError(f"{fname} expects scalar output.")
    if not isinstance(y, ActiveReal):
        y = ActiveReal(y, tape, name="y")
    y.register_output()
    y.gradient = 1.0
    tape.evaluate()
    return y


# ----------------------------- single-input grad ----------------------------- #
def grad(f: Callable[[ActiveReal], Any], x0: float) -> float:
    """
    Derivative of a scalar function y=f(x) at x0.
    Records and sweeps within a fresh, isolated tape.
    """
    with use_tape() as tape, tape.recording():
        x = _ensure_input(x0, tape, name="x")
        _seed_and_sweep(tape, f(x), "grad(f, x0)")
        return x.gradient


# ----------------------------- multi-input grads ----------------------------- #
def grads(f: Callable[[Dict[str, ActiveReal]], Any],
          inputs: Dict[str, float]) -> Dict[str, float]:
    """
    Gradient of a scalar-output function y=f(vars) w.r.t. ALL inputs (dict form).
    Performs ONE reverse sweep to obtain all ∂y/∂var simultaneously.

    Parameters
    ----------
    f       : function taking a dict {name: ActiveReal} and returning a scalar
    inputs  : dict {name: number}

    Returns
    -------
    dict {name: float}  # gradients in the same key order as `inputs`
    """
    with use_tape() as tape, tape.recording():
        xs = {k: _ensure_input(v, tape, name=k) for k, v in inputs.items()}
        _seed_and_sweep(tape, f(xs), "grads(f, inputs)")
        return {k: xs[k].gradient for k in inputs.keys()}


def grads_list(f: Callable[[List[ActiveReal]], Any], x0_list: Iterable[float]) -> List[float]:
    """
    Same as grads(), but the inputs are provided as a list and the result is a list
    of partials in the same order.

    Example
    -------
    f = lambda xs: xs[0]*xs[0] + 3*xs[1]
    grads_list(f, [2.0, 4.0]) -> [4.0, 3.0]
    """
    with use_tape() as tape, tape.recording():
        xs = [_ensure_input(v, tape, name=f"x{i}") for i, v in enumerate(x0_list)]
        _seed_and_sweep(tape, f(xs), "grads_list(f, x0_list)")
        return [x.gradient for x in xs]
