"""
Chain file output and read-back.

A chain file ``<root>.txt`` holds one row per completed iteration::

    1   <-2lnL>   <param_0>   ...   <param_{N-1}>

and ``<root>.paramnames`` lists one ``<name>\\t<name>`` line per parameter.
"""

import os
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np

from blockmh.utils.errors import ChainFileError

_ROW_FORMAT = "%.17g"
_SEPARATOR = "   "


class ChainWriter:
    """
    Appends sample rows to ``<root>.txt``.

    The file is opened fresh (truncated) for a new chain and in append mode
    when resuming. Every row is flushed as soon as it is written so that a
    checkpoint saved afterwards never runs ahead of the chain file; ``sync``
    additionally fsyncs, and ``reopen`` closes and reopens in append mode.
    """

    def __init__(self, file_root: Union[str, Path]):
        self.file_root = str(file_root)
        self.path = Path(f"{self.file_root}.txt")
        self.paramnames_path = Path(f"{self.file_root}.paramnames")
        self._file = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self, append: bool) -> None:
        """
        Open the chain file.

        Raises:
            ChainFileError: If the file cannot be opened for writing.
        """
        self.close()
        try:
            self._file = open(self.path, "a" if append else "w")
        except OSError as e:
            raise ChainFileError(f"Cannot write into output file {self.path}.") from e

    def write_row(self, likelihood: float, params: np.ndarray, repeat: int = 1) -> None:
        """Append one row and flush it out of the Python buffer"""
        if self._file is None:
            raise ChainFileError(f"Chain file {self.path} is not open.")
        values = [_ROW_FORMAT % likelihood] + [_ROW_FORMAT % p for p in np.asarray(params).reshape(-1)]
        self._file.write(f"{repeat}{_SEPARATOR}" + _SEPARATOR.join(values) + "\n")
        self._file.flush()

    def sync(self) -> None:
        """Force every row written so far onto disk"""
        if self._file is not None:
            self._file.flush()
            os.fsync(self._file.fileno())

    def reopen(self) -> None:
        """Close and reopen in append mode, forcing rows to disk"""
        self.sync()
        self.open(append=True)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def write_paramnames(self, names: Sequence[str]) -> None:
        """
        Write the ``.paramnames`` sidecar.

        Raises:
            ChainFileError: If the file cannot be written.
        """
        try:
            with open(self.paramnames_path, "w") as f:
                for name in names:
                    f.write(f"{name}\t{name}\n")
        except OSError as e:
            raise ChainFileError(f"Cannot write into paramnames file {self.paramnames_path}.") from e

    def __enter__(self) -> "ChainWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def load_chain(file_root: Union[str, Path], burnin: Optional[float] = 0.0) -> np.ndarray:
    """
    Load a chain file written by ChainWriter.

    Parameters
    ----------
    file_root : str or Path
        Root of the chain; ``<file_root>.txt`` is read.
    burnin : float, optional
        Rows to discard from the start: a fraction of the chain if below 1,
        a number of rows otherwise. Default is 0.

    Returns
    -------
    chain : np.ndarray
        2D array of shape (n_rows, N + 2): repeat count, -2lnL, parameters.
    """
    path = Path(f"{file_root}.txt")
    if not path.exists():
        raise FileNotFoundError(f"The file {path} does not exist.")
    if burnin is None:
        burnin = 0.0
    if burnin < 0:
        raise ValueError("Burn-in must be a positive value.")

    chain = np.loadtxt(path, ndmin=2)
    if chain.size == 0:
        return chain.reshape(0, 0)

    n_burnin = int(len(chain) * burnin) if burnin < 1 else int(burnin)
    return chain[n_burnin:]


def load_paramnames(file_root: Union[str, Path]) -> List[str]:
    """Read parameter names from ``<file_root>.paramnames``"""
    path = Path(f"{file_root}.paramnames")
    with open(path) as f:
        return [line.split("\t")[0].strip() for line in f if line.strip()]
