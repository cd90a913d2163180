"""
Running statistics and the convergence-based stop rule.
"""

from typing import Sequence, Tuple

import numpy as np

from blockmh.core.state import SamplerState


class ConvergenceMonitor:
    """
    Decide when a chain has estimated every parameter mean to its target accuracy.

    The monitor keeps no sums of its own: the running sums live in the
    SamplerState so that they survive a checkpoint/resume cycle unchanged.

    For parameter i after n iterations::

        mean  = S1 / n
        stdev = sqrt(S2 / n - mean**2)
        rho   = (C / n - mean**2) / stdev**2
        sem   = stdev / sqrt(n) * sqrt((1 + rho) / (1 - rho))   # only if |rho| < 1

    The chain stops when every ``sem`` is at most the parameter's accuracy, or
    when the iteration count reaches the state's max chain length. Neither
    condition is checked before ``min_iterations``.
    """

    def __init__(self, accuracies: Sequence[float], min_iterations: int = 100):
        self.accuracies = np.asarray(accuracies, dtype=float).reshape(-1)
        if np.any(self.accuracies < 0):
            raise ValueError("accuracies must be non-negative")
        self.min_iterations = int(min_iterations)

    def update(self, state: SamplerState) -> None:
        """Accumulate ``state.current`` into the running sums and set previous <- current"""
        x = state.current
        state.param_sum += x
        state.param_squared_sum += x * x
        state.cor_sum += x * state.previous
        state.previous = x.copy()

    def statistics(self, state: SamplerState) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Mean, standard deviation and lag-1 autocorrelation of each parameter.

        Returns:
            mean, stdev, rho: arrays of shape (N,). ``rho`` is NaN for a
            parameter with zero variance.
        """
        n = state.iteration
        if n <= 0:
            raise ValueError("statistics need at least one iteration")

        mean = state.param_sum / n
        # Rounding can push a tiny variance below zero
        variance = np.maximum(state.param_squared_sum / n - mean * mean, 0.0)
        stdev = np.sqrt(variance)

        with np.errstate(divide="ignore", invalid="ignore"):
            rho = (state.cor_sum / n - mean * mean) / variance

        return mean, stdev, rho

    def standard_errors(self, state: SamplerState) -> np.ndarray:
        """Standard error of each mean, inflated for serial correlation where |rho| < 1"""
        mean, stdev, rho = self.statistics(state)
        sem = stdev / np.sqrt(float(state.iteration))

        correctable = np.abs(rho) < 1  # False for NaN
        inflation = np.ones_like(sem)
        inflation[correctable] = np.sqrt((1 + rho[correctable]) / (1 - rho[correctable]))
        return sem * inflation

    def reached_max_length(self, state: SamplerState) -> bool:
        return state.iteration >= state.max_chain_length

    def is_converged(self, state: SamplerState) -> bool:
        """True if every parameter's standard error is within its accuracy"""
        return bool(np.all(self.standard_errors(state) <= self.accuracies))

    def should_stop(self, state: SamplerState) -> bool:
        if state.iteration < self.min_iterations:
            return False

        if self.reached_max_length(state):
            return True

        return self.is_converged(state)
