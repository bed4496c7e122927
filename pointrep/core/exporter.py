from __future__ import annotations
from typing import Dict, List, Optional
import numpy as np
import pathlib

from .utils import get_logger

_log = get_logger()


class VectorNpzWriter:
    """Buffers projected vector batches and writes one compressed NPZ on close.

    Arrays written: ``vectors`` (N, D) float32, ``valid`` (N,) bool and
    ``index`` (N,) int64, the position of each vector's record in the input.
    """

    def __init__(self, path: str, nr_dimensions: int, meta: Optional[Dict[str, str]] = None) -> None:
        self.path = path
        self.nr_dimensions = int(nr_dimensions)
        self.meta = dict(meta or {})
        self._vectors: List[np.ndarray] = []
        self._valid: List[np.ndarray] = []
        self._index: List[np.ndarray] = []

    def write_batch(self, vectors: np.ndarray, valid: np.ndarray, index: np.ndarray) -> None:
        if vectors.ndim != 2 or vectors.shape[1] != self.nr_dimensions:
            raise ValueError(f"Expected (N, {self.nr_dimensions}) vectors, got {vectors.shape}")
        if not (len(vectors) == len(valid) == len(index)):
            raise ValueError("vectors, valid and index must have the same length")
        self._vectors.append(vectors.astype(np.float32, copy=False))
        self._valid.append(valid.astype(bool, copy=False))
        self._index.append(index.astype(np.int64, copy=False))

    def close(self) -> None:
        path = pathlib.Path(self.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if self._vectors:
            vectors = np.vstack(self._vectors)
            valid = np.concatenate(self._valid)
            index = np.concatenate(self._index)
        else:
            vectors = np.zeros((0, self.nr_dimensions), dtype=np.float32)
            valid = np.zeros((0,), dtype=bool)
            index = np.zeros((0,), dtype=np.int64)
        out: Dict[str, np.ndarray] = {"vectors": vectors, "valid": valid, "index": index}
        for k, v in self.meta.items():
            out[k] = np.array(v)
        np.savez_compressed(path, **out)
        _log.info("Wrote %d vectors (%d dims) to %s", len(vectors), self.nr_dimensions, path.name)
        self._vectors.clear()
        self._valid.clear()
        self._index.clear()
