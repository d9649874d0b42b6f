# chunk_aad/ops/transcendental.py
import numpy as np
from scipy.special import erf as scipy_erf

from .arithmetic import _unary


def exp(x):
    return _unary(x, np.exp, np.exp, "exp")


def log(x):
    return _unary(x, np.log, lambda a: 1.0 / a, "log")


def sqrt(x):
    return _unary(x, np.sqrt, lambda a: 0.5 / np.sqrt(a), "sqrt")


def erf(x):
    """
    Error function: erf(x) = (2/√π) ∫₀ˣ e^(-t²) dt

    Derivative: d/dx erf(x) = (2/√π) * e^(-x²)
    """
    return _unary(x, scipy_erf, lambda a: (2.0 / np.sqrt(np.pi)) * np.exp(-a * a), "erf")
