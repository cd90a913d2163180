"""
Likelihood interfaces for the sampler.

The likelihood is supplied by the user. It must return -2 ln(L) (lower is
better) for a parameter vector of shape (N,), and be deterministic so that a
resumed run sees the same values for the same point.
"""

from __future__ import annotations

from typing import Any, Protocol, Union, runtime_checkable

import numpy as np


@runtime_checkable
class LikelihoodProtocol(Protocol):
    """
    Protocol defining the likelihood callable.

    Examples:
        Function::

            def chi2(params: np.ndarray) -> float:
                return float(np.sum(params ** 2))

        Class::

            class Chi2:
                def __call__(self, params: np.ndarray) -> float:
                    return float(np.sum(params ** 2))
    """

    def __call__(self, params: np.ndarray) -> float:
        ...


@runtime_checkable
class CalculateLikelihoodProtocol(Protocol):
    """Likelihood object exposing ``calculate(params)`` instead of ``__call__``"""

    def calculate(self, params: np.ndarray) -> float:
        ...


LikelihoodLike = Union[LikelihoodProtocol, CalculateLikelihoodProtocol]


def as_likelihood(like: Any) -> LikelihoodProtocol:
    """
    Return a callable likelihood.

    Objects following CalculateLikelihoodProtocol are accepted and their
    ``calculate`` method is returned.

    Raises:
        TypeError: If ``like`` follows neither protocol.
    """
    if isinstance(like, LikelihoodProtocol):
        return like
    if isinstance(like, CalculateLikelihoodProtocol):
        return like.calculate
    raise TypeError(
        f"Likelihood must be callable or provide a calculate(params) method, got {type(like).__name__}."
    )
