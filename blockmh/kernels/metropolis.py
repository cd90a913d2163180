"""
Class file for the blocked Metropolis-Hastings kernel
"""

# Imports
from typing import Tuple

import numpy as np

from blockmh.core.kernel import KernelProtocol
from blockmh.core.likelihood import LikelihoodProtocol
from blockmh.core.prior import PriorProtocol
from blockmh.core.proposal import ProposalProtocol
from blockmh.utils.errors import ConfigurationError


def _metropolis_acceptance_ratio(current_likelihood: float, proposed_likelihood: float,
                                 current_prior: float, proposed_prior: float,
                                 proposal_ratio: float = 1.0) -> float:
    """
    Metropolis-Hastings acceptance probability for -2 ln(L) likelihoods.

    p = (P_new / P_cur) * exp(-(L_new - L_cur) / 2) * proposal_ratio, clamped
    into [0, 1]. An undefined ratio (e.g. 0 * inf) is treated as 0.

    Raises:
        ConfigurationError: If the current prior is zero.
    """
    if current_prior == 0:
        raise ConfigurationError(
            "The prior density at the current point is zero. The starting point must have nonzero prior density."
        )

    with np.errstate(over="ignore", invalid="ignore"):
        p = (proposed_prior / current_prior) * np.exp(-(proposed_likelihood - current_likelihood) / 2.0)
        p = p * proposal_ratio

    if np.isnan(p) or p < 0:
        return 0.0
    if p > 1:
        return 1.0
    return float(p)


class MetropolisHastingsKernel(KernelProtocol):
    """
    Metropolis-Hastings kernel updating one parameter block at a time.
    """

    def __init__(self, likelihood: LikelihoodProtocol, prior: PriorProtocol):
        """
        Initialize the kernel with the likelihood (-2 ln L) and the prior.
        """
        self.likelihood = likelihood
        self.prior = prior

    def evaluate(self, params: np.ndarray) -> Tuple[float, float]:
        """Return (-2 ln L, prior density) at params"""
        return float(self.likelihood(params)), float(self.prior.evaluate(params))

    def propose(self, proposal: ProposalProtocol, current: np.ndarray, block_index: int, lo: int, hi: int) -> np.ndarray:
        """
        Generate a full candidate vector: a copy of current with block [lo, hi) replaced.
        """
        block = np.asarray(proposal.generate(current, block_index, lo, hi), dtype=float).reshape(-1)
        if block.shape[0] != hi - lo:
            raise ValueError(
                f"Proposal for block {block_index} returned {block.shape[0]} values, expected {hi - lo}."
            )

        proposed = current.copy()
        proposed[lo:hi] = block
        return proposed

    def proposal_ratio(self, proposal: ProposalProtocol, current: np.ndarray, proposed: np.ndarray,
                       block_index: int, lo: int, hi: int) -> float:
        """
        Hastings correction q(proposed -> current) / q(current -> proposed).

        Returns 1 for symmetric blocks without evaluating the density.
        """
        if proposal.is_symmetric(block_index):
            return 1.0

        q_reverse = proposal.evaluate(proposed, block_index, lo, hi, current[lo:hi].copy())
        q_forward = proposal.evaluate(current, block_index, lo, hi, proposed[lo:hi].copy())
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(np.float64(q_reverse) / np.float64(q_forward))

    def acceptance_ratio(self, proposal: ProposalProtocol, current: np.ndarray, proposed: np.ndarray,
                         block_index: int, lo: int, hi: int, current_terms: Tuple[float, float],
                         proposed_terms: Tuple[float, float]) -> float:
        """
        Compute the acceptance probability of moving from current to proposed.

        ``current_terms`` and ``proposed_terms`` are (-2 ln L, prior) pairs.
        """
        current_likelihood, current_prior = current_terms
        proposed_likelihood, proposed_prior = proposed_terms
        ratio = self.proposal_ratio(proposal, current, proposed, block_index, lo, hi)

        return _metropolis_acceptance_ratio(current_likelihood, proposed_likelihood,
                                            current_prior, proposed_prior, ratio)
