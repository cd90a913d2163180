"""
Exception types raised by the sampler.

Configuration and output-file problems are fatal. Checkpoint problems are
recoverable: the checkpoint store catches them and the sampler starts fresh.
"""


class BlockMHError(Exception):
    """Base class for all blockmh errors"""


class ConfigurationError(BlockMHError, ValueError):
    """Invalid sampler configuration (bad index, prior bounds, blocks, starting point)"""


class ChainFileError(BlockMHError, OSError):
    """The chain file or the parameter-names file cannot be written"""


class CorruptCheckpointError(BlockMHError):
    """A checkpoint file exists but is truncated or fails the integrity check"""
