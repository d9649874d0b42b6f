# chunk_aad/ops/special.py
import numpy as np
from scipy.special import ndtr

from .arithmetic import _unary

SQRT_TWO_PI = np.sqrt(2.0 * np.pi)


def norm_pdf(x):
    """Standard normal density of a plain number (no recording)."""
    return np.exp(-0.5 * x * x) / SQRT_TWO_PI


def norm_cdf(x):
    """Primitive: returns N(x) and records the local partial dN/dx = phi(x)."""
    return _unary(x, ndtr, norm_pdf, "norm_cdf")
