"""
Class file for the blocked Metropolis-Hastings sampler.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence
import logging

import numpy as np

from blockmh.core.convergence import ConvergenceMonitor
from blockmh.core.likelihood import LikelihoodLike, LikelihoodProtocol, as_likelihood
from blockmh.core.parameters import ParameterSpec, block_ranges, default_blocks, validate_blocks
from blockmh.core.prior import PriorProtocol
from blockmh.core.proposal import ProposalProtocol
from blockmh.core.random import RandomSource
from blockmh.core.state import SamplerState
from blockmh.io.chain import ChainWriter
from blockmh.io.checkpoint import CheckpointStore
from blockmh.kernels.metropolis import MetropolisHastingsKernel
from blockmh.parallel.coordinator import CoordinatorProtocol, SerialCoordinator
from blockmh.priors.builtin import ProductPrior
from blockmh.proposals.gaussianproposal import GaussianRandomWalk
from blockmh.utils.errors import ConfigurationError
from blockmh.utils.logging import BlockMHLogger


class EngineStatus(Enum):
    UNINITIALIZED = "uninitialized"
    FRESH = "fresh"
    RESUMED = "resumed"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class RunResult:
    """Summary of a finished run"""

    iterations: int
    acceptance_rates: np.ndarray
    converged: bool
    resumed: bool
    n_chains: int = 1


class MetropolisHastings:
    """
    Blocked Metropolis-Hastings sampler with resumable chains.

    Each iteration sweeps over the parameter blocks in order. For every block
    a candidate is drawn from the proposal, the likelihood and prior are
    evaluated at the full candidate vector, and the move is accepted with the
    Metropolis-Hastings probability. After a sweep one row is appended to the
    chain file ``<root>.txt`` and, if requested, the whole sampler state is
    written to ``<root>resume.dat`` so an interrupted run continues from the
    last completed sweep.

    The run stops when the standard error of every parameter mean, corrected
    for lag-1 autocorrelation, is within that parameter's accuracy, or when
    the chain reaches its maximum length.

    Attributes:
        n_par (int): Number of parameters.
        file_root (str): Root of the output files. With several processes each
            chain gets its own root ``<file_root>_<process id>``.
        rng (RandomSource): The sampler's random source.
        blocks (List[int]): Block end indices.
        status (EngineStatus): Where the sampler is in its lifecycle.
        state (Optional[SamplerState]): The chain state once a run has started.

    Example::

        def chi2(p):
            return ((p[0] - 5) / 2) ** 2 + ((p[1] + 4) / 3) ** 2

        mh = MetropolisHastings(2, chi2, "chains/gauss", seed=42)
        mh.set_uniform(0, "x", -20, 30)
        mh.set_uniform(1, "y", -30, 20)
        result = mh.run(100000)
    """

    def __init__(self, n_par: int, likelihood: LikelihoodLike, file_root: str, seed: Optional[int] = None,
                 coordinator: Optional[CoordinatorProtocol] = None, report_interval: int = 1000,
                 min_iterations: int = 100, logger: Optional[logging.Logger] = None):

        if n_par <= 0:
            raise ConfigurationError(f"Number of parameters must be positive, got {n_par}.")
        if report_interval <= 0:
            raise ConfigurationError(f"report_interval must be positive, got {report_interval}.")

        self.n_par = int(n_par)
        self.likelihood: LikelihoodProtocol = as_likelihood(likelihood)
        self.coordinator = coordinator if coordinator is not None else SerialCoordinator()
        self.report_interval = int(report_interval)
        self.min_iterations = int(min_iterations)
        self.logger = logger if logger is not None else BlockMHLogger.get_logger("sampler")

        if self.coordinator.process_count() > 1:
            self.file_root = f"{file_root}_{self.coordinator.process_id()}"
        else:
            self.file_root = str(file_root)

        self.rng = RandomSource(seed, stream=self.coordinator.process_id())
        self.specs: List[Optional[ParameterSpec]] = [None] * self.n_par
        self.blocks = default_blocks(self.n_par)
        self.external_prior: Optional[PriorProtocol] = None
        self.external_proposal: Optional[ProposalProtocol] = None

        self.checkpoint = CheckpointStore(self.file_root, self.n_par)
        self.writer = ChainWriter(self.file_root)

        self.status = EngineStatus.UNINITIALIZED
        self.state: Optional[SamplerState] = None
        self.accepted = np.zeros(len(self.blocks), dtype=np.int64)
        self.session_iterations = 0

    # ==================== Configuration ====================

    def _check_index(self, i: int) -> None:
        if not 0 <= i < self.n_par:
            raise ConfigurationError(f"invalid index = {i}, need 0 <= i < {self.n_par}.")

    def set_uniform(self, i: int, name: str, min: float, max: float, starting: Optional[float] = None,
                    sampling_width: float = 0.0, accuracy: float = 0.0) -> None:
        """
        Give parameter i a uniform prior on [min, max].

        The starting value defaults to the midpoint, the sampling width to
        1/100 of the range and the accuracy to 1/10 of the sampling width.
        """
        self._check_index(i)
        self.specs[i] = ParameterSpec.uniform(name, min, max, starting, sampling_width, accuracy)

    def set_gaussian_prior(self, i: int, name: str, mean: float, sigma: float, starting: Optional[float] = None,
                           sampling_width: float = 0.0, accuracy: float = 0.0) -> None:
        """
        Give parameter i a Gaussian prior N(mean, sigma**2).

        The starting value defaults to the mean, the sampling width to
        sigma / 100 and the accuracy to 1/10 of the sampling width.
        """
        self._check_index(i)
        self.specs[i] = ParameterSpec.gaussian(name, mean, sigma, starting, sampling_width, accuracy)

    def get_param_name(self, i: int) -> str:
        self._check_index(i)
        if self.specs[i] is None:
            raise ConfigurationError(f"Parameter {i} has not been configured.")
        return self.specs[i].name

    def specify_parameter_blocks(self, blocks: Sequence[int]) -> None:
        """
        Group parameters into blocks that are proposed together.

        Each element is the index one past the end of a block, e.g. ``[2, 5]``
        for blocks {0, 1} and {2, 3, 4}. By default every parameter is its own
        block.
        """
        self.blocks = validate_blocks(blocks, self.n_par)
        self.accepted = np.zeros(len(self.blocks), dtype=np.int64)

    def use_external_prior(self, prior: PriorProtocol) -> None:
        """Replace the built-in priors by ``prior.evaluate``; parameters must still be configured"""
        if not isinstance(prior, PriorProtocol):
            raise ConfigurationError(f"External prior must provide evaluate(params), got {type(prior).__name__}.")
        self.external_prior = prior

    def use_external_proposal(self, proposal: ProposalProtocol) -> None:
        """Replace the built-in Gaussian proposal; sampling widths are then ignored"""
        if not isinstance(proposal, ProposalProtocol):
            raise ConfigurationError(
                "External proposal must provide generate, evaluate and is_symmetric, "
                f"got {type(proposal).__name__}."
            )
        self.external_proposal = proposal

    @property
    def param_names(self) -> List[str]:
        return [s.name for s in self._configured_specs()]

    @property
    def acceptance_rates(self) -> np.ndarray:
        """Acceptance rate of each block over the sweeps of the current session"""
        if self.session_iterations == 0:
            return np.zeros(len(self.blocks))
        return self.accepted / float(self.session_iterations)

    def _configured_specs(self) -> List[ParameterSpec]:
        missing = [i for i, s in enumerate(self.specs) if s is None]
        if missing:
            raise ConfigurationError(
                f"Parameters {missing} have no prior. Call set_uniform or set_gaussian_prior for every parameter."
            )
        return list(self.specs)

    def _build_prior(self, specs: List[ParameterSpec]) -> PriorProtocol:
        if self.external_prior is not None:
            return self.external_prior
        return ProductPrior(specs)

    def _build_proposal(self, specs: List[ParameterSpec]) -> ProposalProtocol:
        if self.external_proposal is not None:
            return self.external_proposal
        return GaussianRandomWalk([s.sampling_width for s in specs], self.rng)

    # ==================== Run ====================

    def _initialize(self, kernel: MetropolisHastingsKernel, specs: List[ParameterSpec],
                    max_chain_length: int) -> bool:
        """Resume from the checkpoint if possible, otherwise start fresh. Returns True on resume."""
        restored = self.checkpoint.load()
        if restored is not None:
            self.state = restored
            self.logger.info(
                f"Resuming from previous run, already have {restored.iteration} iterations."
            )
            self.writer.open(append=True)
            self.status = EngineStatus.RESUMED
            return True

        self.logger.info(
            "No resume file found (or the resume file is not complete), starting from scratch."
        )
        starting = np.array([s.starting for s in specs])
        likelihood, prior = kernel.evaluate(starting)
        if not np.isfinite(likelihood):
            raise ConfigurationError(f"The likelihood at the starting point is not finite ({likelihood}).")
        if not prior > 0:
            raise ConfigurationError(
                f"The prior density at the starting point {starting} is {prior}. It must be positive."
            )

        self.state = SamplerState.fresh(starting, max_chain_length, likelihood, prior)
        self.writer.write_paramnames([s.name for s in specs])
        self.writer.open(append=False)
        self.status = EngineStatus.FRESH
        return False

    def _sweep(self, kernel: MetropolisHastingsKernel, proposal: ProposalProtocol) -> None:
        """Update every block once"""
        state = self.state
        for i, lo, hi in block_ranges(self.blocks):
            proposed = kernel.propose(proposal, state.current, i, lo, hi)
            proposed_terms = kernel.evaluate(proposed)

            p = kernel.acceptance_ratio(proposal, state.current, proposed, i, lo, hi,
                                        (state.current_likelihood, state.current_prior), proposed_terms)

            u = self.rng.uniform()
            if p > 0 and u <= p:
                state.current = proposed
                state.current_likelihood, state.current_prior = proposed_terms
                self.accepted[i] += 1

    def _report(self) -> None:
        self.logger.info(f"Total iterations: {self.state.iteration}")
        for i, rate in enumerate(self.acceptance_rates):
            self.logger.info(f"Acceptance rate for parameter block {i} = {rate:.4f}")

    def run(self, max_chain_length: int = 1000000, write_resume_information: bool = True) -> RunResult:
        """
        Run the chain until convergence or until it reaches ``max_chain_length``.

        Parameters:
        ----------
            max_chain_length (int): Hard cap on the number of iterations. A
                resumed run keeps the cap stored in its checkpoint.
            write_resume_information (bool): Write a checkpoint after every
                iteration. Recommended unless the likelihood is so fast that
                writing the checkpoint dominates the run time.

        Returns:
        -------
            RunResult with the number of iterations, the per-block acceptance
            rates, whether the accuracy target was met, and the number of
            chains run side by side.

        Raises:
        ------
            ConfigurationError: For an invalid configuration or starting point.
            ChainFileError: If the output files cannot be written.

        Any exception is logged before it propagates. With several processes
        the coordinator is aborted first, taking down every chain.
        """
        if max_chain_length <= 0:
            raise ConfigurationError(f"invalid max_chain_length = {max_chain_length}")

        specs = self._configured_specs()
        self.blocks = validate_blocks(self.blocks, self.n_par)
        prior = self._build_prior(specs)
        proposal = self._build_proposal(specs)
        kernel = MetropolisHastingsKernel(self.likelihood, prior)
        monitor = ConvergenceMonitor([s.accuracy for s in specs], self.min_iterations)

        self.logger.info(
            f"Chain {self.coordinator.process_id()} of {self.coordinator.process_count()}: "
            f"{self.n_par} parameters in {len(self.blocks)} blocks, seed {self.rng.seed}."
        )

        try:
            resumed = self._initialize(kernel, specs, max_chain_length)
            self.accepted = np.zeros(len(self.blocks), dtype=np.int64)
            self.session_iterations = 0
            self.status = EngineStatus.RUNNING

            while not monitor.should_stop(self.state):
                self._sweep(kernel, proposal)

                self.writer.write_row(self.state.current_likelihood, self.state.current)
                self.state.iteration += 1
                self.session_iterations += 1
                monitor.update(self.state)

                if write_resume_information:
                    # The row has to be on disk before the checkpoint that counts it
                    self.writer.sync()
                    self.checkpoint.save(self.state)

                if self.state.iteration % self.report_interval == 0:
                    self.writer.reopen()
                    self._report()
        except Exception:
            self.logger.exception(f"Chain {self.coordinator.process_id()} failed.")
            # Surviving chains would block in the final barrier
            if self.coordinator.process_count() > 1:
                self.coordinator.abort()
            raise
        finally:
            self.writer.close()

        converged = not monitor.reached_max_length(self.state)
        if converged:
            self.logger.info(
                f"The chain has converged to the requested accuracy after {self.state.iteration} iterations, stopping!"
            )
        else:
            self.logger.info(
                f"Maximum number of iterations ({self.state.max_chain_length}) reached, stopping!"
            )
        for i, rate in enumerate(self.acceptance_rates):
            self.logger.info(f"Acceptance rate for parameter block {i} = {rate:.4f}")

        self.status = EngineStatus.STOPPED
        self.coordinator.barrier()

        return RunResult(
            iterations=self.state.iteration,
            acceptance_rates=self.acceptance_rates,
            converged=converged,
            resumed=resumed,
            n_chains=self.coordinator.process_count(),
        )
