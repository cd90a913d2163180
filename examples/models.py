"""
Likelihoods used by the examples, all returning -2 ln(L).

Gaussian: two independent parameters x ~ N(5, 2) and y ~ N(-4, 3).
Banana: a curved 2-D target, y + x**2 ~ N(0, 1) with x ~ N(0, 1), where the
two parameters are strongly correlated and benefit from a common block.
"""

# Imports
import numpy as np


def gaussian(params: np.ndarray) -> float:
    x, y = params
    return ((x - 5.0) / 2.0) ** 2 + ((y + 4.0) / 3.0) ** 2


def banana(params: np.ndarray, curvature: float = 1.0) -> float:
    x, y = params
    return x ** 2 + (y + curvature * x ** 2) ** 2


class CountingLikelihood:
    """Wraps a likelihood and counts evaluations"""

    def __init__(self, like):
        self.like = like
        self.calls = 0

    def __call__(self, params: np.ndarray) -> float:
        self.calls += 1
        return self.like(params)
