"""
Built-in product prior assembled from per-parameter uniform and Gaussian priors
"""

from typing import Sequence

import numpy as np

from blockmh.core.parameters import ParameterSpec, PriorKind
from blockmh.core.prior import PriorProtocol
from blockmh.utils.tools import normpdf, uniformpdf


class ProductPrior(PriorProtocol):
    """
    Joint prior equal to the product of independent per-parameter priors.

    Uniform parameters contribute 1 / (max - min) inside [min, max] and 0
    outside; Gaussian parameters contribute the normal pdf.
    """

    def __init__(self, specs: Sequence[ParameterSpec]):
        if len(specs) == 0:
            raise ValueError("ProductPrior needs at least one parameter")

        kinds = np.array([s.kind is PriorKind.UNIFORM for s in specs])
        self.specs = list(specs)
        self.uniform_idx = np.flatnonzero(kinds)
        self.gaussian_idx = np.flatnonzero(~kinds)

        param1 = np.array([s.param1 for s in specs])
        param2 = np.array([s.param2 for s in specs])
        self.low = param1[self.uniform_idx]
        self.high = param2[self.uniform_idx]
        self.mean = param1[self.gaussian_idx]
        self.sigma = param2[self.gaussian_idx]

    def evaluate(self, params: np.ndarray) -> float:
        params = np.asarray(params, dtype=float).reshape(-1)
        if params.shape[0] != len(self.specs):
            raise ValueError(f"Expected {len(self.specs)} parameters, got {params.shape[0]}.")

        result = float(np.prod(uniformpdf(params[self.uniform_idx], self.low, self.high)))
        if result == 0.0:
            return 0.0

        if self.gaussian_idx.size:
            result *= float(np.prod(normpdf(params[self.gaussian_idx], self.mean, self.sigma)))
        return result

    def __repr__(self) -> str:
        return f"ProductPrior(uniform={self.uniform_idx.size}, gaussian={self.gaussian_idx.size})"
