"""
Template class file for block proposals
"""

# Imports
import numpy as np
from typing import Protocol, runtime_checkable


@runtime_checkable
class ProposalProtocol(Protocol):
    """
    Protocol for proposal distributions acting on one parameter block at a time.

    A block covers the parameter indices [lo, hi) of the full vector.
    """

    def generate(self, current: np.ndarray, block_index: int, lo: int, hi: int) -> np.ndarray:
        """Return the proposed values for block ``block_index``, shape (hi - lo,)"""
        raise NotImplementedError("Implement generate method")

    def evaluate(self, params: np.ndarray, block_index: int, lo: int, hi: int, block: np.ndarray) -> float:
        """Density of proposing ``block`` for block ``block_index`` when the chain is at ``params``"""
        raise NotImplementedError("Implement evaluate method")

    def is_symmetric(self, block_index: int) -> bool:
        """True if q(a -> b) == q(b -> a) for this block, so the density need not be evaluated"""
        raise NotImplementedError("Implement is_symmetric method")
