"""
Script housing some helper functions
"""

# Imports
import numpy as np
from typing import Union

ArrayLike = Union[float, np.ndarray]


def normpdf(x: ArrayLike, mean: ArrayLike = 0.0, sigma: ArrayLike = 1.0) -> ArrayLike:
    """Compute the pdf of a univariate Normal distribution, elementwise.

    Inputs
    ------
    x : float or array
        Points at which to evaluate the PDF
    mean : float or array
        Mean(s) of the distribution, broadcast against x
    sigma : float or array
        Standard deviation(s), must be positive

    Returns
    -------
    pdf : float or array
        PDF value(s) - scalar if all inputs are scalars
    """
    sigma = np.asarray(sigma, dtype=float)
    if np.any(sigma <= 0):
        raise ValueError("sigma must be positive")

    norm = 1.0 / (np.sqrt(2.0 * np.pi) * sigma)
    z = (np.asarray(x, dtype=float) - mean) / sigma
    pdf = norm * np.exp(-0.5 * z * z)

    if np.ndim(pdf) == 0:
        return float(pdf)
    return pdf


def uniformpdf(x: ArrayLike, low: ArrayLike, high: ArrayLike) -> ArrayLike:
    """Compute the pdf of a uniform distribution on the closed interval [low, high], elementwise.

    Returns 1 / (high - low) inside the interval (bounds included) and 0 outside.
    """
    low = np.asarray(low, dtype=float)
    high = np.asarray(high, dtype=float)
    if np.any(high <= low):
        raise ValueError("high must be greater than low")

    x = np.asarray(x, dtype=float)
    inside = (x >= low) & (x <= high)
    pdf = np.where(inside, 1.0 / (high - low), 0.0)

    if np.ndim(pdf) == 0:
        return float(pdf)
    return pdf


def lognormpdf(x: np.ndarray, mean: np.ndarray, sigma: np.ndarray) -> float:
    """Log pdf of independent normals, summed over components.

    Inputs
    ------
    x : (d,) array
        Point at which to evaluate the log PDF
    mean : (d,) array
        Mean of each component
    sigma : (d,) array
        Standard deviation of each component

    Returns
    -------
    logpdf : float
    """
    x = np.asarray(x, dtype=float).reshape(-1)
    mean = np.asarray(mean, dtype=float).reshape(-1)
    sigma = np.asarray(sigma, dtype=float).reshape(-1)
    z = (x - mean) / sigma
    return float(np.sum(-0.5 * z * z - np.log(np.sqrt(2.0 * np.pi) * sigma)))
