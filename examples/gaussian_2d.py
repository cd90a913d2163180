"""
Sample the two-parameter Gaussian of examples/models.py and print its 1-sigma limits.

Run a single chain::

    python examples/gaussian_2d.py chains/gauss

or one chain per MPI process (needs mpi4py)::

    mpirun -n 4 python examples/gaussian_2d.py chains/gauss --mpi

Interrupting and re-running the same command resumes the chain. Pass
``--plot`` to save a histogram of each parameter (needs matplotlib).
"""

import argparse
import os

import numpy as np

from blockmh import MetropolisHastings, load_chain
from blockmh.parallel.coordinator import SerialCoordinator, is_master
from blockmh.utils.logging import BlockMHLogger

from models import CountingLikelihood, gaussian


def main():
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("root", help="root of the output files")
    parser.add_argument("--max-length", type=int, default=100000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--mpi", action="store_true")
    parser.add_argument("--plot", action="store_true")
    args = parser.parse_args()

    logger = BlockMHLogger.get_logger("example", log_file=f"{args.root}.log")

    if args.mpi:
        from blockmh.parallel.mpi import MPICoordinator
        coordinator = MPICoordinator()
    else:
        coordinator = SerialCoordinator()

    os.makedirs(os.path.dirname(args.root) or ".", exist_ok=True)
    like = CountingLikelihood(gaussian)

    mh = MetropolisHastings(2, like, args.root, seed=args.seed, coordinator=coordinator)
    mh.set_uniform(0, "x", -15.0, 25.0, sampling_width=4.0, accuracy=0.05)
    mh.set_uniform(1, "y", -25.0, 15.0, sampling_width=6.0, accuracy=0.05)

    result = mh.run(args.max_length)
    logger.info(f"{like.calls} likelihood evaluations, {result.iterations} iterations.")

    if not is_master(coordinator):
        return

    if result.n_chains > 1:
        roots = [f"{args.root}_{i}" for i in range(result.n_chains)]
    else:
        roots = [args.root]
    chain = np.vstack([load_chain(r, burnin=0.1) for r in roots])

    for i, name in enumerate(["x", "y"]):
        lower, median, upper = np.percentile(chain[:, i + 2], [15.87, 50.0, 84.13])
        print(f"{name} = {median:.3f} +{upper - median:.3f} -{median - lower:.3f}")

    if args.plot:
        import matplotlib.pyplot as plt

        fig, axes = plt.subplots(1, 2, figsize=(10, 4))
        for i, (ax, name) in enumerate(zip(axes, ["x", "y"])):
            ax.hist(chain[:, i + 2], bins=60, density=True, histtype="step")
            ax.set_xlabel(name)
        fig.tight_layout()
        fig.savefig(f"{args.root}_hist.png")


if __name__ == "__main__":
    main()
