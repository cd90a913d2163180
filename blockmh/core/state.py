"""
Sampler state representation for resumable Metropolis-Hastings runs.

This module provides the SamplerState dataclass, the single bundle of mutable
state that is written to and restored from a checkpoint. Its fields are kept
in the order of the on-disk layout.
"""

from dataclasses import dataclass, field
from typing import Optional
import numpy as np


@dataclass
class SamplerState:
    """
    Mutable state of one Metropolis-Hastings chain.

    The state is created at the start of a run (fresh) or restored from a
    checkpoint, mutated once per block update, and persisted after every
    completed sweep when resume information is requested.

    Attributes:
        max_chain_length (int):
            Hard cap on the number of iterations. A resumed run keeps the cap
            of the run it resumes.

        iteration (int):
            Number of completed sweeps over all blocks.

        current_likelihood (float):
            -2 ln(L) at ``current``.

        current_prior (float):
            Prior density at ``current``.

        current (np.ndarray):
            Last accepted-or-repeated point, shape (N,).

        previous (np.ndarray):
            Point before the most recent full sweep, shape (N,). Used for the
            lag-1 autocorrelation sums.

        param_sum (np.ndarray):
            Running sum of x for each parameter, shape (N,).

        param_squared_sum (np.ndarray):
            Running sum of x**2 for each parameter, shape (N,).

        cor_sum (np.ndarray):
            Running sum of x * x_prev for each parameter, shape (N,).

    Examples:
        >>> state = SamplerState.fresh(np.array([1.0, 2.0]), 1000, 3.5, 0.25)
        >>> state.iteration
        0
        >>> state.n_par
        2
    """

    max_chain_length: int
    iteration: int
    current_likelihood: float
    current_prior: float
    current: np.ndarray
    previous: np.ndarray
    param_sum: Optional[np.ndarray] = field(default=None)
    param_squared_sum: Optional[np.ndarray] = field(default=None)
    cor_sum: Optional[np.ndarray] = field(default=None)

    def __post_init__(self) -> None:
        self.current = np.array(self.current, dtype=float).reshape(-1)
        self.previous = np.array(self.previous, dtype=float).reshape(-1)
        n = self.current.shape[0]

        if self.previous.shape != (n,):
            raise ValueError(
                f"previous must have shape ({n},), got {self.previous.shape}."
            )

        for name in ("param_sum", "param_squared_sum", "cor_sum"):
            value = getattr(self, name)
            if value is None:
                value = np.zeros(n)
            value = np.array(value, dtype=float).reshape(-1)
            if value.shape != (n,):
                raise ValueError(f"{name} must have shape ({n},), got {value.shape}.")
            setattr(self, name, value)

        if self.max_chain_length <= 0:
            raise ValueError(f"max_chain_length must be positive, got {self.max_chain_length}.")
        if self.iteration < 0:
            raise ValueError(f"iteration must be non-negative, got {self.iteration}.")

        self.max_chain_length = int(self.max_chain_length)
        self.iteration = int(self.iteration)
        self.current_likelihood = float(self.current_likelihood)
        self.current_prior = float(self.current_prior)

    @classmethod
    def fresh(cls, starting: np.ndarray, max_chain_length: int, likelihood: float, prior: float) -> "SamplerState":
        """State at the start of a new chain: zero statistics and previous == current"""
        starting = np.array(starting, dtype=float).reshape(-1)
        return cls(
            max_chain_length=max_chain_length,
            iteration=0,
            current_likelihood=likelihood,
            current_prior=prior,
            current=starting.copy(),
            previous=starting.copy(),
        )

    @property
    def n_par(self) -> int:
        return self.current.shape[0]

    def copy(self) -> "SamplerState":
        return SamplerState(
            max_chain_length=self.max_chain_length,
            iteration=self.iteration,
            current_likelihood=self.current_likelihood,
            current_prior=self.current_prior,
            current=self.current.copy(),
            previous=self.previous.copy(),
            param_sum=self.param_sum.copy(),
            param_squared_sum=self.param_squared_sum.copy(),
            cor_sum=self.cor_sum.copy(),
        )

    def __repr__(self) -> str:
        return (
            f"SamplerState(n_par={self.n_par}, iteration={self.iteration}/{self.max_chain_length}, "
            f"likelihood={self.current_likelihood:.4f}, prior={self.current_prior:.4g})"
        )
