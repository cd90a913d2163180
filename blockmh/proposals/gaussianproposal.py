"""
Gaussian-based block proposals for Metropolis-Hastings sampling
"""

from typing import Sequence

import numpy as np

from blockmh.core.proposal import ProposalProtocol
from blockmh.core.random import RandomSource
from blockmh.utils.tools import lognormpdf


class GaussianRandomWalk(ProposalProtocol):
    """
    Independent Gaussian perturbation of each parameter in a block.

    Component j is proposed as ``current[j] + widths[j] * Z`` with Z ~ N(0, 1)
    drawn independently per component. The proposal is symmetric for every
    block.
    """

    def __init__(self, widths: Sequence[float], rng: RandomSource):
        self.widths = np.asarray(widths, dtype=float).reshape(-1)
        if np.any(self.widths <= 0):
            raise ValueError("proposal widths must be positive")
        self.rng = rng

    def generate(self, current: np.ndarray, block_index: int, lo: int, hi: int) -> np.ndarray:
        """Generate candidate block from current state"""
        z = self.rng.standard_normal(hi - lo)
        return current[lo:hi] + self.widths[lo:hi] * z

    def evaluate(self, params: np.ndarray, block_index: int, lo: int, hi: int, block: np.ndarray) -> float:
        """Density of moving block [lo, hi) from params to block"""
        return float(np.exp(lognormpdf(block, params[lo:hi], self.widths[lo:hi])))

    def is_symmetric(self, block_index: int) -> bool:
        return True


class IndependentProposal(ProposalProtocol):
    """
    Independent proposal from a fixed diagonal Gaussian.

    Each block is drawn from N(mu[lo:hi], widths[lo:hi]**2) regardless of the
    current point, so the proposal is not symmetric and the sampler applies
    the Hastings correction.
    """

    def __init__(self, mu: Sequence[float], widths: Sequence[float], rng: RandomSource):
        self.mu = np.asarray(mu, dtype=float).reshape(-1)
        self.widths = np.asarray(widths, dtype=float).reshape(-1)
        if self.mu.shape != self.widths.shape:
            raise ValueError("mu and widths must have the same length")
        if np.any(self.widths <= 0):
            raise ValueError("proposal widths must be positive")
        self.rng = rng

    def generate(self, current: np.ndarray, block_index: int, lo: int, hi: int) -> np.ndarray:
        z = self.rng.standard_normal(hi - lo)
        return self.mu[lo:hi] + self.widths[lo:hi] * z

    def evaluate(self, params: np.ndarray, block_index: int, lo: int, hi: int, block: np.ndarray) -> float:
        return float(np.exp(lognormpdf(block, self.mu[lo:hi], self.widths[lo:hi])))

    def is_symmetric(self, block_index: int) -> bool:
        return False
