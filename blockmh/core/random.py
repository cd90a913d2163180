"""
Engine-owned random number source.

Each sampler owns its own generator so that two samplers in one process do not
share a stream and tests can inject a fixed seed.
"""

import time
from typing import Optional

import numpy as np


class RandomSource:
    """
    Uniform and standard-normal draws from a seeded numpy Generator.

    Attributes:
        seed (int): The seed actually used. Taken from the wall clock when no
            seed (or a seed of 0) is given.
        stream (int): Independent stream index. Chains running side by side
            pass their process id so that a shared seed still gives each chain
            its own draws.
    """

    def __init__(self, seed: Optional[int] = None, stream: int = 0):
        if seed is None or seed == 0:
            seed = int(time.time())
        if seed < 0:
            raise ValueError(f"seed must be non-negative, got {seed}.")
        if stream < 0:
            raise ValueError(f"stream must be non-negative, got {stream}.")
        self.seed = int(seed)
        self.stream = int(stream)
        if self.stream == 0:
            self.generator = np.random.default_rng(self.seed)
        else:
            self.generator = np.random.default_rng([self.seed, self.stream])

    def uniform(self) -> float:
        """Draw u uniformly from [0, 1)"""
        return float(self.generator.random())

    def standard_normal(self, size: Optional[int] = None):
        """Draw from N(0, 1); a float when size is None, otherwise an array of shape (size,)"""
        if size is None:
            return float(self.generator.standard_normal())
        return self.generator.standard_normal(size)

    def __repr__(self) -> str:
        return f"RandomSource(seed={self.seed}, stream={self.stream})"
