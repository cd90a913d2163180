"""
Template class file for the kernel
"""

# Imports
import numpy as np
from typing import Protocol, Tuple
from blockmh.core.proposal import ProposalProtocol


class KernelProtocol(Protocol):
    """
    Protocol for blocked MCMC transition kernels.
    """

    def propose(self, proposal: ProposalProtocol, current: np.ndarray, block_index: int, lo: int, hi: int) -> np.ndarray:
        """Return a full candidate vector with block [lo, hi) replaced"""
        raise NotImplementedError("Implement propose method")

    def acceptance_ratio(self, proposal: ProposalProtocol, current: np.ndarray, proposed: np.ndarray,
                         block_index: int, lo: int, hi: int, current_terms: Tuple[float, float],
                         proposed_terms: Tuple[float, float]) -> float:
        """Compute the acceptance probability, clamped into [0, 1]"""
        raise NotImplementedError("Implement acceptance_ratio method")
