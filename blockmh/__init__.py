"""Blocked Metropolis-Hastings sampling with resumable chains."""

from blockmh.core.parameters import ParameterSpec, PriorKind
from blockmh.core.prior import PriorProtocol
from blockmh.core.proposal import ProposalProtocol
from blockmh.io.chain import load_chain, load_paramnames
from blockmh.parallel.coordinator import SerialCoordinator
from blockmh.samplers.single_chain import EngineStatus, MetropolisHastings, RunResult
from blockmh.utils.errors import BlockMHError, ChainFileError, ConfigurationError, CorruptCheckpointError

__version__ = "0.1.0"

__all__ = [
    "MetropolisHastings",
    "EngineStatus",
    "RunResult",
    "ParameterSpec",
    "PriorKind",
    "PriorProtocol",
    "ProposalProtocol",
    "SerialCoordinator",
    "load_chain",
    "load_paramnames",
    "BlockMHError",
    "ChainFileError",
    "ConfigurationError",
    "CorruptCheckpointError",
]
