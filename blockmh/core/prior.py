"""
Template class file for priors
"""

# Imports
import numpy as np
from typing import Protocol, runtime_checkable


@runtime_checkable
class PriorProtocol(Protocol):
    """
    Protocol for prior densities over the full parameter vector.

    Both the built-in product prior and user-supplied external priors
    implement this; the sampler only ever calls ``evaluate``.
    """

    def evaluate(self, params: np.ndarray) -> float:
        """Return the prior density (not its log) at params of shape (N,)"""
        raise NotImplementedError("Implement evaluate method")
