"""
Parameter configuration for the Metropolis-Hastings sampler.

This module provides the ParameterSpec dataclass, which holds everything the
sampler needs to know about a single parameter (prior, starting value,
proposal width and target accuracy), and the validation of parameter blocks.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from blockmh.utils.errors import ConfigurationError


class PriorKind(Enum):
    """Built-in prior families"""

    UNIFORM = 0
    GAUSSIAN = 1


@dataclass
class ParameterSpec:
    """
    Configuration of a single sampled parameter.

    The meaning of ``param1``/``param2`` depends on the prior kind:
    ``(min, max)`` for a uniform prior and ``(mean, sigma)`` for a Gaussian
    prior. Unspecified values are filled in from the prior:

    - starting: midpoint of the range, or the mean.
    - sampling_width: 1/100 of the range, or sigma / 100.
    - accuracy: 1/10 of the sampling width.

    A sampling width or accuracy of 0 (or None) selects the default.

    Attributes:
        name (str):
            Parameter name, written to the ``.paramnames`` file.

        kind (PriorKind):
            Built-in prior family.

        param1 (float):
            Lower bound (uniform) or mean (Gaussian).

        param2 (float):
            Upper bound (uniform) or sigma (Gaussian).

        starting (Optional[float]):
            Starting value of the chain for this parameter.

        sampling_width (Optional[float]):
            Standard deviation of the built-in Gaussian proposal.

        accuracy (Optional[float]):
            Target standard error of the mean used by the stop rule.

    Examples:
        >>> spec = ParameterSpec("a", PriorKind.UNIFORM, 0.0, 10.0)
        >>> spec.starting, spec.sampling_width, spec.accuracy
        (5.0, 0.1, 0.01)
    """

    name: str
    kind: PriorKind
    param1: float
    param2: float
    starting: Optional[float] = None
    sampling_width: Optional[float] = None
    accuracy: Optional[float] = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, PriorKind):
            raise ConfigurationError(f"Unknown prior kind {self.kind!r}.")

        self.param1 = float(self.param1)
        self.param2 = float(self.param2)

        if self.kind is PriorKind.UNIFORM:
            if not self.param2 > self.param1:
                raise ConfigurationError(
                    f"Parameter '{self.name}': max = {self.param2}, min = {self.param1}. Need max > min."
                )
            default_start = (self.param1 + self.param2) / 2.0
            default_width = (self.param2 - self.param1) / 100.0
        else:
            if not self.param2 > 0:
                raise ConfigurationError(f"Parameter '{self.name}': invalid sigma = {self.param2}.")
            default_start = self.param1
            default_width = self.param2 / 100.0

        if self.starting is None:
            self.starting = default_start
        self.starting = float(self.starting)

        if self.sampling_width is not None and self.sampling_width < 0:
            raise ConfigurationError(f"Parameter '{self.name}': invalid sampling width {self.sampling_width}.")
        if not self.sampling_width:
            self.sampling_width = default_width
        self.sampling_width = float(self.sampling_width)

        if self.accuracy is not None and self.accuracy < 0:
            raise ConfigurationError(f"Parameter '{self.name}': invalid accuracy = {self.accuracy}.")
        if not self.accuracy:
            self.accuracy = self.sampling_width / 10.0
        self.accuracy = float(self.accuracy)

    @classmethod
    def uniform(cls, name: str, min: float, max: float, starting: Optional[float] = None,
                sampling_width: Optional[float] = None, accuracy: Optional[float] = None) -> "ParameterSpec":
        return cls(name, PriorKind.UNIFORM, min, max, starting, sampling_width, accuracy)

    @classmethod
    def gaussian(cls, name: str, mean: float, sigma: float, starting: Optional[float] = None,
                 sampling_width: Optional[float] = None, accuracy: Optional[float] = None) -> "ParameterSpec":
        return cls(name, PriorKind.GAUSSIAN, mean, sigma, starting, sampling_width, accuracy)


def default_blocks(n_par: int) -> List[int]:
    """One parameter per block: [1, 2, ..., n_par]"""
    return list(range(1, n_par + 1))


def validate_blocks(blocks: Sequence[int], n_par: int) -> List[int]:
    """
    Check a block partition and return it as a list of ints.

    Each element is the index one past the end of the corresponding block, so
    ``[n_par]`` puts every parameter in a single block.

    Raises:
        ConfigurationError: If the partition is empty, not strictly
            increasing, out of range, or does not end at ``n_par``.
    """
    blocks = [int(b) for b in blocks]
    if len(blocks) == 0:
        raise ConfigurationError("At least one parameter block must be specified.")
    if blocks[0] < 1:
        raise ConfigurationError(f"Invalid block boundary {blocks[0]}, the first block is empty.")
    if np.any(np.diff(blocks) <= 0):
        raise ConfigurationError(f"Block boundaries must be strictly increasing, got {blocks}.")
    if blocks[-1] != n_par:
        raise ConfigurationError(
            f"The last block boundary must equal the number of parameters ({n_par}), got {blocks[-1]}."
        )
    return blocks


def block_ranges(blocks: Sequence[int]):
    """Yield (block_index, lo, hi) for each block, with the block covering [lo, hi)"""
    lo = 0
    for i, hi in enumerate(blocks):
        yield i, lo, hi
        lo = hi
