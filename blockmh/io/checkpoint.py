"""
Checkpoint I/O for resumable Metropolis-Hastings runs.

The checkpoint is a fixed-layout little-endian binary record::

    max_chain_length  uint64
    iteration         uint64
    current_likelihood float64
    current_prior     float64
    current[N]        float64
    previous[N]       float64
    param_sum[N]      float64
    param_squared_sum[N] float64
    cor_sum[N]        float64
    marker            int32   (RESUME_CODE)

A file is usable only if it has exactly this length and ends with the marker.
"""

import os
import struct
import tempfile
from pathlib import Path
from typing import Optional, Union

import numpy as np

from blockmh.core.state import SamplerState
from blockmh.utils.errors import CorruptCheckpointError
from blockmh.utils.logging import BlockMHLogger

logger = BlockMHLogger.get_logger("checkpoint")

RESUME_CODE = 123456

_HEADER = struct.Struct("<QQdd")
_MARKER = struct.Struct("<i")
_ARRAY_DTYPE = np.dtype("<f8")
_N_ARRAYS = 5


def checkpoint_size(n_par: int) -> int:
    """Size in bytes of a checkpoint for n_par parameters"""
    return _HEADER.size + _N_ARRAYS * n_par * _ARRAY_DTYPE.itemsize + _MARKER.size


def encode_state(state: SamplerState) -> bytes:
    """Serialize a SamplerState into the fixed checkpoint layout"""
    header = _HEADER.pack(state.max_chain_length, state.iteration,
                          state.current_likelihood, state.current_prior)
    arrays = np.concatenate([
        state.current, state.previous, state.param_sum, state.param_squared_sum, state.cor_sum
    ]).astype(_ARRAY_DTYPE)
    return header + arrays.tobytes() + _MARKER.pack(RESUME_CODE)


def decode_state(data: bytes, n_par: int) -> SamplerState:
    """
    Deserialize a checkpoint record.

    Raises:
        CorruptCheckpointError: If the record has the wrong length or marker.
    """
    expected = checkpoint_size(n_par)
    if len(data) != expected:
        raise CorruptCheckpointError(
            f"checkpoint has {len(data)} bytes, expected {expected} for {n_par} parameters"
        )

    (marker,) = _MARKER.unpack_from(data, expected - _MARKER.size)
    if marker != RESUME_CODE:
        raise CorruptCheckpointError(f"checkpoint marker {marker} does not match {RESUME_CODE}")

    max_chain_length, iteration, likelihood, prior = _HEADER.unpack_from(data, 0)
    arrays = np.frombuffer(data, dtype=_ARRAY_DTYPE, count=_N_ARRAYS * n_par, offset=_HEADER.size)
    arrays = arrays.astype(float).reshape(_N_ARRAYS, n_par)

    try:
        return SamplerState(
            max_chain_length=max_chain_length,
            iteration=iteration,
            current_likelihood=likelihood,
            current_prior=prior,
            current=arrays[0].copy(),
            previous=arrays[1].copy(),
            param_sum=arrays[2].copy(),
            param_squared_sum=arrays[3].copy(),
            cor_sum=arrays[4].copy(),
        )
    except ValueError as e:
        raise CorruptCheckpointError(str(e)) from e


class CheckpointStore:
    """
    Best-effort persistence of the sampler state in ``<root>resume.dat``.

    Saving never raises: a checkpoint that cannot be written is logged and
    skipped. Loading returns None for a missing or corrupt file so that the
    sampler falls back to a fresh start.
    """

    def __init__(self, file_root: Union[str, Path], n_par: int):
        self.path = Path(f"{file_root}resume.dat")
        self.n_par = int(n_par)

    def save(self, state: SamplerState) -> bool:
        """
        Write the state atomically (temporary file, then rename).

        Returns:
            True if the checkpoint was written.
        """
        if state.n_par != self.n_par:
            raise ValueError(f"State has {state.n_par} parameters, store expects {self.n_par}.")

        data = encode_state(state)
        directory = self.path.parent
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(dir=directory, prefix=self.path.name, suffix=".tmp",
                                             delete=False) as f:
                tmp_name = f.name
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.warning(f"Could not write checkpoint {self.path}: {e}")
            if tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)
            return False
        return True

    def load(self) -> Optional[SamplerState]:
        """Return the saved state, or None if there is no usable checkpoint"""
        if not self.path.exists():
            return None

        try:
            data = self.path.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read checkpoint {self.path}: {e}")
            return None

        try:
            return decode_state(data, self.n_par)
        except CorruptCheckpointError as e:
            logger.warning(f"Resume file {self.path} is corrupt or not complete ({e}).")
            return None

    def exists(self) -> bool:
        return self.path.exists()

    def clear(self) -> None:
        """Remove the checkpoint file if present"""
        if self.path.exists():
            self.path.unlink()
