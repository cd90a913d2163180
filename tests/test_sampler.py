import os
import subprocess
import sys
import textwrap
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from blockmh.core.random import RandomSource
from blockmh.io.chain import load_chain, load_paramnames
from blockmh.io.checkpoint import CheckpointStore
from blockmh.kernels.metropolis import MetropolisHastingsKernel
from blockmh.proposals.gaussianproposal import IndependentProposal
from blockmh.samplers.single_chain import EngineStatus, MetropolisHastings
from blockmh.utils.errors import ConfigurationError

REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# --------------------------------------------------
# Helpers and fixtures
# --------------------------------------------------
def constant_likelihood(params):
    return 0.0


def gaussian_2d(params):
    """-2 ln L for x ~ N(5, 2), y ~ N(-4, 3)."""
    x, y = params
    return ((x - 5.0) / 2.0) ** 2 + ((y + 4.0) / 3.0) ** 2


class Interrupted(Exception):
    pass


class FakeCoordinator:
    """Pretends to be process 2 of 3."""

    def __init__(self):
        self.barriers = 0
        self.aborts = []

    def process_id(self):
        return 2

    def process_count(self):
        return 3

    def barrier(self):
        self.barriers += 1

    def next_tag(self):
        return 1030

    def abort(self, errorcode=1):
        self.aborts.append(errorcode)


@pytest.fixture
def root(tmp_path):
    return str(tmp_path / "chain")


def make_2d_sampler(root, seed=42, accuracy=1e-9, likelihood=gaussian_2d):
    mh = MetropolisHastings(2, likelihood, root, seed=seed)
    mh.set_uniform(0, "x", -15.0, 25.0, sampling_width=4.0, accuracy=accuracy)
    mh.set_uniform(1, "y", -25.0, 15.0, sampling_width=6.0, accuracy=accuracy)
    return mh


# --------------------------------------------------
# Configuration
# --------------------------------------------------
def test_initial_configuration(root):
    mh = MetropolisHastings(3, constant_likelihood, root, seed=1)
    assert mh.status is EngineStatus.UNINITIALIZED
    assert mh.blocks == [1, 2, 3]
    assert mh.rng.seed == 1
    assert mh.file_root == root


def test_invalid_parameter_count(root):
    with pytest.raises(ConfigurationError):
        MetropolisHastings(0, constant_likelihood, root)


def test_invalid_index(root):
    mh = MetropolisHastings(2, constant_likelihood, root)
    with pytest.raises(ConfigurationError):
        mh.set_uniform(2, "x", 0, 1)
    with pytest.raises(ConfigurationError):
        mh.set_gaussian_prior(-1, "x", 0, 1)


def test_invalid_prior_parameters(root):
    mh = MetropolisHastings(1, constant_likelihood, root)
    with pytest.raises(ConfigurationError):
        mh.set_uniform(0, "x", 1.0, 0.0)
    with pytest.raises(ConfigurationError):
        mh.set_gaussian_prior(0, "x", 0.0, 0.0)


def test_get_param_name(root):
    mh = make_2d_sampler(root)
    assert mh.get_param_name(1) == "y"
    assert mh.param_names == ["x", "y"]

    unconfigured = MetropolisHastings(1, constant_likelihood, root)
    with pytest.raises(ConfigurationError):
        unconfigured.get_param_name(0)


def test_invalid_blocks(root):
    mh = MetropolisHastings(3, constant_likelihood, root)
    with pytest.raises(ConfigurationError):
        mh.specify_parameter_blocks([])
    with pytest.raises(ConfigurationError):
        mh.specify_parameter_blocks([2, 1, 3])
    mh.specify_parameter_blocks([1, 3])
    assert mh.blocks == [1, 3]


def test_run_requires_every_parameter(root):
    mh = MetropolisHastings(2, constant_likelihood, root)
    mh.set_uniform(0, "x", 0, 1)
    with pytest.raises(ConfigurationError):
        mh.run(100)


def test_run_rejects_invalid_length(root):
    mh = make_2d_sampler(root)
    with pytest.raises(ConfigurationError):
        mh.run(0)


def test_external_plugins_are_type_checked(root):
    mh = MetropolisHastings(1, constant_likelihood, root)
    with pytest.raises(ConfigurationError):
        mh.use_external_prior(object())
    with pytest.raises(ConfigurationError):
        mh.use_external_proposal(object())


def test_likelihood_must_be_callable(root):
    with pytest.raises(TypeError):
        MetropolisHastings(1, 3.0, root)


def test_zero_prior_starting_point(root):
    mh = MetropolisHastings(1, constant_likelihood, root)
    mh.set_uniform(0, "x", 0.0, 1.0, starting=2.0)
    with pytest.raises(ConfigurationError):
        mh.run(100)


def test_non_finite_starting_likelihood(root):
    mh = MetropolisHastings(1, lambda p: np.inf, root)
    mh.set_uniform(0, "x", 0.0, 1.0)
    with pytest.raises(ConfigurationError):
        mh.run(100)


# --------------------------------------------------
# Output files and stopping
# --------------------------------------------------
def test_run_to_max_length(root):
    mh = make_2d_sampler(root)
    result = mh.run(150)

    assert result.iterations == 150
    assert not result.converged
    assert not result.resumed
    assert result.n_chains == 1
    assert mh.status is EngineStatus.STOPPED

    chain = load_chain(root)
    assert chain.shape == (150, 4)
    assert np.all(chain[:, 0] == 1)
    assert load_paramnames(root) == ["x", "y"]
    assert os.path.exists(f"{root}resume.dat")


def test_chain_rows_hold_likelihood_and_point(root):
    mh = make_2d_sampler(root)
    mh.run(120)
    chain = load_chain(root)
    expected = np.array([gaussian_2d(row) for row in chain[:, 2:]])
    assert np.allclose(chain[:, 1], expected)
    assert np.allclose(chain[-1, 2:], mh.state.current)


def test_stops_when_converged(root):
    mh = make_2d_sampler(root, accuracy=100.0)
    result = mh.run(10000)
    assert result.iterations == 100
    assert result.converged
    assert load_chain(root).shape == (100, 4)


def test_never_stops_before_100_iterations(root):
    mh = make_2d_sampler(root)
    result = mh.run(50)
    assert result.iterations == 100


def test_no_checkpoint_without_resume_information(root):
    mh = make_2d_sampler(root)
    mh.run(120, write_resume_information=False)
    assert not os.path.exists(f"{root}resume.dat")


def test_fresh_run_truncates_old_chain(root):
    with open(f"{root}.txt", "w") as f:
        f.write("1 0 0 0\n" * 500)
    mh = make_2d_sampler(root)
    mh.run(110, write_resume_information=False)
    assert load_chain(root).shape == (110, 4)


def test_same_seed_same_chain(tmp_path):
    a = make_2d_sampler(str(tmp_path / "a"), seed=9)
    b = make_2d_sampler(str(tmp_path / "b"), seed=9)
    a.run(200, write_resume_information=False)
    b.run(200, write_resume_information=False)
    assert np.array_equal(load_chain(str(tmp_path / "a")), load_chain(str(tmp_path / "b")))


def test_rejected_moves_repeat_the_point(root):
    """With an infinite likelihood away from the start every move is rejected."""
    def spike(params):
        return 0.0 if np.allclose(params, [0.5]) else np.inf

    mh = MetropolisHastings(1, spike, root, seed=3)
    mh.set_uniform(0, "x", 0.0, 1.0, sampling_width=0.1)
    result = mh.run(100)
    chain = load_chain(root)
    assert np.all(chain[:, 2] == 0.5)
    assert np.all(result.acceptance_rates == 0)


def test_blocks_acceptance_rates(root):
    mh = MetropolisHastings(3, constant_likelihood, root, seed=5)
    for i in range(3):
        mh.set_uniform(i, f"p{i}", 0.0, 1.0, sampling_width=0.2, accuracy=1e-9)
    mh.specify_parameter_blocks([1, 3])
    result = mh.run(200, write_resume_information=False)
    assert result.acceptance_rates.shape == (2,)
    assert np.all((result.acceptance_rates > 0) & (result.acceptance_rates <= 1))


def test_calculate_style_likelihood(root):
    class Likelihood:
        def calculate(self, params):
            return float(params[0] ** 2)

    mh = MetropolisHastings(1, Likelihood(), root, seed=2)
    mh.set_uniform(0, "x", -5.0, 5.0, sampling_width=1.0, accuracy=1e-9)
    assert mh.run(120, write_resume_information=False).iterations == 120


def test_periodic_report(root):
    logger = MagicMock()
    mh = MetropolisHastings(1, constant_likelihood, root, seed=2, report_interval=50, logger=logger)
    mh.set_uniform(0, "x", 0.0, 1.0, accuracy=1e-9)
    mh.run(150, write_resume_information=False)

    messages = [call.args[0] for call in logger.info.call_args_list]
    assert "Total iterations: 50" in messages
    assert "Total iterations: 150" in messages
    assert any("Maximum number of iterations (150) reached" in m for m in messages)


def test_acceptance_probability_is_clamped_during_run(root):
    recorded = []
    original = MetropolisHastingsKernel.acceptance_ratio

    def spy(self, *args):
        p = original(self, *args)
        recorded.append(p)
        return p

    mh = MetropolisHastings(1, lambda p: float(p[0] ** 2), root, seed=4)
    mh.set_uniform(0, "x", -50.0, 50.0, starting=40.0, sampling_width=5.0, accuracy=1e-9)
    with patch.object(MetropolisHastingsKernel, "acceptance_ratio", autospec=True, side_effect=spy):
        mh.run(120, write_resume_information=False)

    assert len(recorded) == 120
    assert all(0.0 <= p <= 1.0 for p in recorded)
    assert any(p == 1.0 for p in recorded)


# --------------------------------------------------
# Resume
# --------------------------------------------------
def test_resume_continues_bookkeeping(root):
    calls = {"n": 0}

    def flaky(params):
        calls["n"] += 1
        # 1 call for the start, 2 per sweep: fail inside sweep 151
        if calls["n"] == 1 + 150 * 2 + 1:
            raise Interrupted()
        return gaussian_2d(params)

    first = make_2d_sampler(root, likelihood=flaky)
    with pytest.raises(Interrupted):
        first.run(300)

    saved = CheckpointStore(root, 2).load()
    assert saved.iteration == 150
    assert saved.max_chain_length == 300
    assert load_chain(root).shape == (150, 4)

    with open(f"{root}.paramnames", "w") as f:
        f.write("untouched\n")

    second = make_2d_sampler(root, seed=7)
    result = second.run(999)
    assert result.resumed
    assert result.iterations == 300
    assert open(f"{root}.paramnames").read() == "untouched\n"

    chain = load_chain(root)
    assert chain.shape == (300, 4)
    points = chain[:, 2:]
    previous = np.vstack([[5.0, -5.0], points[:-1]])

    final = CheckpointStore(root, 2).load()
    assert final.iteration == 300
    assert np.allclose(final.param_sum, points.sum(axis=0))
    assert np.allclose(final.param_squared_sum, (points ** 2).sum(axis=0))
    assert np.allclose(final.cor_sum, (points * previous).sum(axis=0))
    assert np.allclose(final.previous, points[-1])


HARD_CRASH_SCRIPT = textwrap.dedent(
    """
    import os
    import sys

    from blockmh.samplers.single_chain import MetropolisHastings

    calls = 0


    def likelihood(params):
        global calls
        calls += 1
        # 1 call for the start, 2 per sweep: die inside sweep 151
        if calls == 1 + 150 * 2 + 1:
            os._exit(1)
        x, y = params
        return ((x - 5.0) / 2.0) ** 2 + ((y + 4.0) / 3.0) ** 2


    mh = MetropolisHastings(2, likelihood, sys.argv[1], seed=42)
    mh.set_uniform(0, "x", -15.0, 25.0, sampling_width=4.0, accuracy=1e-9)
    mh.set_uniform(1, "y", -25.0, 15.0, sampling_width=6.0, accuracy=1e-9)
    mh.run(300)
    """
)


def test_hard_crash_keeps_chain_and_checkpoint_in_step(root, tmp_path):
    script = tmp_path / "crashing_run.py"
    script.write_text(HARD_CRASH_SCRIPT)
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [REPO_ROOT, env.get("PYTHONPATH")]))

    completed = subprocess.run([sys.executable, str(script), root], env=env, capture_output=True)
    assert completed.returncode == 1

    saved = CheckpointStore(root, 2).load()
    assert saved.iteration == 150
    assert load_chain(root).shape[0] == saved.iteration

    result = make_2d_sampler(root).run(300)
    assert result.resumed
    assert load_chain(root).shape == (result.iterations, 4)


def test_resumed_run_restores_state_exactly(root):
    first = make_2d_sampler(root)
    first.run(130)
    saved = CheckpointStore(root, 2).load()

    # a resumed run that has already reached its cap performs no sweeps
    second = make_2d_sampler(root, seed=11)
    result = second.run(130)
    assert result.resumed
    assert result.iterations == 130
    assert second.state.current_likelihood == saved.current_likelihood
    assert np.array_equal(second.state.current, saved.current)
    assert np.array_equal(second.state.cor_sum, saved.cor_sum)
    assert load_chain(root).shape == (130, 4)


def test_corrupt_checkpoint_starts_fresh(root):
    first = make_2d_sampler(root)
    first.run(120)
    with open(f"{root}resume.dat", "r+b") as f:
        f.seek(-2, os.SEEK_END)
        f.write(b"\x00\x00")

    second = make_2d_sampler(root)
    result = second.run(110)
    assert not result.resumed
    assert result.iterations == 110
    assert load_chain(root).shape == (110, 4)


# --------------------------------------------------
# Statistical behaviour
# --------------------------------------------------
def test_uniform_prior_is_recovered(root):
    mh = MetropolisHastings(1, constant_likelihood, root, seed=123)
    mh.set_uniform(0, "x", 0.0, 1.0, sampling_width=0.3, accuracy=1e-9)
    mh.run(20000, write_resume_information=False)

    x = load_chain(root)[:, 2]
    assert np.all((x >= 0.0) & (x <= 1.0))
    assert np.isclose(x.mean(), 0.5, atol=0.03)
    assert np.isclose(x.std(), 1.0 / np.sqrt(12.0), atol=0.02)
    assert np.allclose(np.percentile(x, [25, 75]), [0.25, 0.75], atol=0.04)


def test_gaussian_prior_is_recovered(root):
    mh = MetropolisHastings(1, constant_likelihood, root, seed=321)
    mh.set_gaussian_prior(0, "x", 1.0, 2.0, sampling_width=4.0, accuracy=1e-9)
    mh.run(20000, write_resume_information=False)

    x = load_chain(root)[:, 2]
    assert np.isclose(x.mean(), 1.0, atol=0.15)
    assert np.isclose(x.std(), 2.0, atol=0.15)


def test_two_gaussian_parameters(root):
    mh = make_2d_sampler(root, accuracy=0.05)
    result = mh.run(200000, write_resume_information=False)
    assert result.converged

    chain = load_chain(root, burnin=0.1)
    x, y = chain[:, 2], chain[:, 3]
    assert abs(np.median(x) - 5.0) < 0.4
    assert abs(np.median(y) + 4.0) < 0.4
    lower, upper = np.percentile(y, [15.87, 84.13])
    assert abs(lower + 7.0) < 0.6
    assert abs(upper + 1.0) < 0.6


def test_coarser_accuracy_stops_no_later(tmp_path):
    def run(accuracy, name):
        mh = MetropolisHastings(1, lambda p: float(p[0] ** 2), str(tmp_path / name), seed=77)
        mh.set_uniform(0, "x", -10.0, 10.0, sampling_width=2.4, accuracy=accuracy)
        return mh.run(10**6, write_resume_information=False).iterations

    fine = run(0.05, "fine")
    coarse = run(0.1, "coarse")
    assert coarse <= fine


def test_external_prior(root):
    class StandardNormalPrior:
        def __init__(self):
            self.calls = 0

        def evaluate(self, params):
            self.calls += 1
            return float(np.exp(-0.5 * params[0] ** 2))

    prior = StandardNormalPrior()
    mh = MetropolisHastings(1, constant_likelihood, root, seed=8)
    mh.set_uniform(0, "x", -50.0, 50.0, starting=0.0, sampling_width=2.4, accuracy=1e-9)
    mh.use_external_prior(prior)
    mh.run(20000, write_resume_information=False)

    assert prior.calls == 20001
    x = load_chain(root)[:, 2]
    assert np.isclose(x.mean(), 0.0, atol=0.1)
    assert np.isclose(x.std(), 1.0, atol=0.1)


def test_external_asymmetric_proposal(root):
    mh = MetropolisHastings(1, lambda p: float(p[0] ** 2), root, seed=10)
    mh.set_uniform(0, "x", -10.0, 10.0, starting=0.0, accuracy=1e-9)
    mh.use_external_proposal(IndependentProposal([0.5], [2.0], RandomSource(seed=11)))
    mh.run(10000, write_resume_information=False)

    x = load_chain(root)[:, 2]
    assert np.isclose(x.mean(), 0.0, atol=0.06)
    assert np.isclose(x.std(), 1.0, atol=0.08)


# --------------------------------------------------
# Several chains
# --------------------------------------------------
def test_chain_files_are_per_process(root):
    coordinator = FakeCoordinator()
    mh = MetropolisHastings(1, constant_likelihood, root, seed=1, coordinator=coordinator)
    mh.set_uniform(0, "x", 0.0, 1.0, accuracy=1e-9)
    result = mh.run(100)

    assert mh.file_root == f"{root}_2"
    assert result.n_chains == 3
    assert coordinator.barriers >= 1
    assert load_chain(f"{root}_2").shape == (100, 3)
    assert os.path.exists(f"{root}_2resume.dat")
    assert not os.path.exists(f"{root}.txt")


def test_failing_chain_aborts_every_process(root):
    calls = {"n": 0}

    def flaky(params):
        calls["n"] += 1
        if calls["n"] == 40:
            raise Interrupted()
        return 0.0

    coordinator = FakeCoordinator()
    mh = MetropolisHastings(1, flaky, root, seed=1, coordinator=coordinator)
    mh.set_uniform(0, "x", 0.0, 1.0, accuracy=1e-9)
    with pytest.raises(Interrupted):
        mh.run(100)

    assert coordinator.aborts == [1]
    assert coordinator.barriers == 0
    assert not mh.writer.is_open


def test_failure_is_logged_and_reraised(root):
    def broken(params):
        raise Interrupted()

    logger = MagicMock()
    mh = MetropolisHastings(1, broken, root, seed=1, logger=logger)
    mh.set_uniform(0, "x", 0.0, 1.0)
    with pytest.raises(Interrupted):
        mh.run(100)

    logger.exception.assert_called_once()
    assert "Chain 0 failed" in logger.exception.call_args.args[0]
