"""
MPI coordination for running one chain per MPI process.
"""

from mpi4py import MPI

from blockmh.parallel.coordinator import CoordinatorProtocol, TAG_START, TAG_STRIDE


class MPICoordinator(CoordinatorProtocol):
    """
    Coordinator backed by an MPI communicator (COMM_WORLD by default).

    Example::

        mpirun -n 4 python run_chains.py

    where ``run_chains.py`` passes ``MPICoordinator()`` to the sampler, gives
    four chains written to ``<root>_0.txt`` ... ``<root>_3.txt``.
    """

    def __init__(self, comm=None):
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()
        self._tag = TAG_START

    def process_id(self) -> int:
        return self.rank

    def process_count(self) -> int:
        return self.size

    def barrier(self) -> None:
        self.comm.Barrier()

    def next_tag(self) -> int:
        """Synchronize all processes and advance the shared tag counter"""
        self.barrier()
        self._tag += TAG_STRIDE * self.size
        return self._tag

    def abort(self, errorcode: int = 1) -> None:
        """Terminate every process in the communicator"""
        self.comm.Abort(errorcode)

    def is_master(self) -> bool:
        return self.rank == 0
