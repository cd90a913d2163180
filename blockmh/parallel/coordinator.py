"""
Coordination of independent chains running as separate processes.

The sampler only needs to know its process id, how many chains run
side by side, how to wait for the others and how to abort them all. Tags
are handed out from a shared, monotonically increasing counter so that
auxiliary messages between chains never cross.
"""

from typing import Protocol, runtime_checkable

TAG_START = 1000
TAG_STRIDE = 10


@runtime_checkable
class CoordinatorProtocol(Protocol):
    """Protocol for chain coordination services"""

    def process_id(self) -> int:
        ...

    def process_count(self) -> int:
        ...

    def barrier(self) -> None:
        ...

    def next_tag(self) -> int:
        ...

    def abort(self, errorcode: int = 1) -> None:
        ...


class SerialCoordinator(CoordinatorProtocol):
    """A single chain in a single process"""

    def __init__(self):
        self._tag = TAG_START

    def process_id(self) -> int:
        return 0

    def process_count(self) -> int:
        return 1

    def barrier(self) -> None:
        pass

    def next_tag(self) -> int:
        self._tag += TAG_STRIDE * self.process_count()
        return self._tag

    def abort(self, errorcode: int = 1) -> None:
        """Nothing else to stop; the caller re-raises"""
        pass

    def is_master(self) -> bool:
        return self.process_id() == 0


def is_master(coordinator: CoordinatorProtocol) -> bool:
    """True for the process that aggregates results (process 0)"""
    return coordinator.process_id() == 0
