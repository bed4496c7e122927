from __future__ import annotations
import copy
from typing import Any, Callable, Dict, Optional, Sequence, Tuple
import numpy as np

from .fields import (FLOAT32, FLOAT_SIZE, FieldDescriptor, LayoutError,
                     describe_fields, float_slot_count, require_float_slots)
from .point_types import PointType, PointTypeLike, as_point_type
from .utils import as_record_array, as_record_batch, get_logger

_log = get_logger()


class PointRepresentation:
    """Converts records of one point type into fixed-length float vectors.

    Subclasses set ``_nr_dimensions`` in their constructor and implement
    :meth:`copy_to_float_array`. Validity, rescaling and the batch forms are
    all derived from that one method.
    """

    def __init__(self, point_type: PointTypeLike) -> None:
        self.point_type: PointType = as_point_type(point_type)
        self.dtype: np.dtype = self.point_type.dtype
        self._nr_dimensions: int = 0
        self._alpha: Optional[np.ndarray] = None

    # -- contract --
    def copy_to_float_array(self, record: Any, out: Optional[Any] = None) -> Any:  # pragma: no cover - abstract
        raise NotImplementedError

    def get_number_of_dimensions(self) -> int:
        return self._nr_dimensions

    @property
    def nr_dimensions(self) -> int:
        return self._nr_dimensions

    @property
    def point_type_name(self) -> str:
        return self.point_type.name

    def is_valid(self, record: Any) -> bool:
        """True when every projected value of ``record`` is finite."""
        values = self.copy_to_float_array(record)
        return bool(np.all(np.isfinite(values)))

    def vectorize(self, record: Any, out: Optional[Any] = None) -> Any:
        """Project ``record`` and apply the rescale factors, if any.

        ``out`` may be any container supporting ``out[i] = value``; a new
        float32 array is returned when it is omitted.
        """
        values = self.copy_to_float_array(record)
        alpha = self._alpha
        if alpha is not None:
            values = values * alpha
        if out is None:
            return values
        self._check_output(out)
        if isinstance(out, np.ndarray):
            out[: self._nr_dimensions] = values
        else:
            for i in range(self._nr_dimensions):
                out[i] = float(values[i])
        return out

    # -- rescaling --
    def set_rescale_values(self, rescale_array: Sequence[float]) -> None:
        alpha = np.array(rescale_array, dtype=np.float32).reshape(-1)
        if alpha.shape[0] != self._nr_dimensions:
            raise ValueError(
                f"Expected {self._nr_dimensions} rescale values for {self.point_type_name}, "
                f"got {alpha.shape[0]}"
            )
        self._alpha = alpha

    def clear_rescale_values(self) -> None:
        self._alpha = None

    @property
    def rescale_values(self) -> Tuple[float, ...]:
        if self._alpha is None:
            return ()
        return tuple(float(a) for a in self._alpha)

    # -- whole-array forms --
    def copy_to_float_matrix(self, records: Any, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Project a 1-D structured array into an ``(N, nr_dimensions)`` float32 array."""
        batch = as_record_batch(records, self.dtype)
        out = self._matrix_output(len(batch), out)
        for i, rec in enumerate(batch):
            self.copy_to_float_array(rec, out[i])
        return out

    def vectorize_batch(self, records: Any, out: Optional[np.ndarray] = None) -> np.ndarray:
        alpha = self._alpha
        out = self.copy_to_float_matrix(records, out)
        if alpha is not None:
            out *= alpha
        return out

    def valid_mask(self, records: Any) -> np.ndarray:
        return np.isfinite(self.copy_to_float_matrix(records)).all(axis=1)

    def make_shared(self) -> "PointRepresentation":
        """Independent copy, safe to hand to another algorithm."""
        shared = copy.copy(self)
        if self._alpha is not None:
            shared._alpha = self._alpha.copy()
        return shared

    # -- helpers for subclasses --
    def _check_output(self, out: Any) -> None:
        if len(out) < self._nr_dimensions:
            raise ValueError(
                f"Output buffer holds {len(out)} values, {self._nr_dimensions} required"
            )

    def _output(self, out: Optional[Any]) -> Any:
        if out is None:
            return np.empty((self._nr_dimensions,), dtype=np.float32)
        self._check_output(out)
        return out

    def _matrix_output(self, n: int, out: Optional[np.ndarray]) -> np.ndarray:
        shape = (n, self._nr_dimensions)
        if out is None:
            return np.empty(shape, dtype=np.float32)
        if out.shape != shape:
            raise ValueError(f"Output array has shape {out.shape}, expected {shape}")
        return out

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.point_type_name}, nr_dimensions={self._nr_dimensions})"


class _RawWindowRepresentation(PointRepresentation):
    """Reads a window of float32 slots straight from the record's bytes."""
    _start: int = 0

    def _init_window(self, start: int, count: int) -> None:
        require_float_slots(self.dtype, start, count)
        self._start = start
        self._nr_dimensions = count

    def copy_to_float_array(self, record: Any, out: Optional[Any] = None) -> Any:
        rec = as_record_array(record, self.dtype)
        out = self._output(out)
        out[: self._nr_dimensions] = np.frombuffer(
            rec.tobytes(), dtype=FLOAT32, count=self._nr_dimensions, offset=self._start * FLOAT_SIZE
        )
        return out

    def copy_to_float_matrix(self, records: Any, out: Optional[np.ndarray] = None) -> np.ndarray:
        batch = as_record_batch(records, self.dtype)
        out = self._matrix_output(len(batch), out)
        raw = batch.view(np.uint8).reshape(len(batch), self.dtype.itemsize)
        lo = self._start * FLOAT_SIZE
        hi = lo + self._nr_dimensions * FLOAT_SIZE
        out[...] = np.ascontiguousarray(raw[:, lo:hi]).view(FLOAT32)
        return out


class DefaultPointRepresentation(_RawWindowRepresentation):
    """Fallback for record types without a registered default.

    Treats the record as packed float32 values and keeps at most the first
    three, which for spatial types are x, y and z.
    """

    def __init__(self, point_type: PointTypeLike) -> None:
        super().__init__(point_type)
        self._init_window(0, min(float_slot_count(self.dtype), 3))
        _log.debug("%s: raw default representation with %d dimensions",
                   self.point_type_name, self._nr_dimensions)


class CustomPointRepresentation(_RawWindowRepresentation):
    """Float window of the raw layout chosen by the caller.

    ``start_dim`` is the first float slot used, ``max_dim`` caps the number
    of slots. The defaults reproduce :class:`DefaultPointRepresentation`.
    """

    def __init__(self, point_type: PointTypeLike, max_dim: int = 3, start_dim: int = 0) -> None:
        super().__init__(point_type)
        if max_dim < 1:
            raise ValueError(f"max_dim must be positive, got {max_dim}")
        if start_dim < 0:
            raise ValueError(f"start_dim must be non-negative, got {start_dim}")
        self.max_dim = int(max_dim)
        self.start_dim = int(start_dim)
        count = min(self.max_dim, float_slot_count(self.dtype) - self.start_dim)
        self._init_window(self.start_dim, count)
        _log.debug("%s: custom representation, slots [%d, %d)",
                   self.point_type_name, self.start_dim, self.start_dim + count)

    def __repr__(self) -> str:
        return (f"{type(self).__name__}({self.point_type_name}, max_dim={self.max_dim}, "
                f"start_dim={self.start_dim}, nr_dimensions={self._nr_dimensions})")


class XYZPointRepresentation(PointRepresentation):
    """Spatial coordinates only; every other field is left out of the vector."""

    def __init__(self, point_type: PointTypeLike) -> None:
        super().__init__(point_type)
        missing = [k for k in ("x", "y", "z") if k not in self.dtype.names]
        if missing:
            raise LayoutError(f"{self.point_type_name} lacks coordinate fields {missing}")
        self._nr_dimensions = 3

    def copy_to_float_array(self, record: Any, out: Optional[Any] = None) -> Any:
        rec = as_record_array(record, self.dtype)
        out = self._output(out)
        out[0] = rec["x"][()]
        out[1] = rec["y"][()]
        out[2] = rec["z"][()]
        # intensity, normals and curvature are not part of the default vector
        return out

    def copy_to_float_matrix(self, records: Any, out: Optional[np.ndarray] = None) -> np.ndarray:
        batch = as_record_batch(records, self.dtype)
        out = self._matrix_output(len(batch), out)
        out[:, 0] = batch["x"]
        out[:, 1] = batch["y"]
        out[:, 2] = batch["z"]
        return out


class DefaultFeatureRepresentation(PointRepresentation):
    """Every element of every field, in field declaration order.

    Meant for descriptor types (FPFH, PFH, VFH, ...). The dimension count
    and the copy both walk the same cached descriptor tuple.
    """

    def __init__(self, point_type: PointTypeLike) -> None:
        super().__init__(point_type)
        self.fields: Tuple[FieldDescriptor, ...] = describe_fields(self.dtype)
        self._nr_dimensions = sum(fd.count for fd in self.fields)
        _log.debug("%s: feature representation with %d dimensions over %d fields",
                   self.point_type_name, self._nr_dimensions, len(self.fields))

    def copy_to_float_array(self, record: Any, out: Optional[Any] = None) -> Any:
        rec = as_record_array(record, self.dtype)
        out = self._output(out)
        buf = rec.tobytes()
        f_idx = 0
        for fd in self.fields:
            values = np.frombuffer(buf, dtype=fd.dtype, count=fd.count, offset=fd.offset)
            if fd.count == 1:
                out[f_idx] = np.float32(values[0])
            else:
                out[f_idx:f_idx + fd.count] = values.astype(np.float32)
            f_idx += fd.count
        return out

    def copy_to_float_matrix(self, records: Any, out: Optional[np.ndarray] = None) -> np.ndarray:
        batch = as_record_batch(records, self.dtype)
        out = self._matrix_output(len(batch), out)
        f_idx = 0
        for fd in self.fields:
            out[:, f_idx:f_idx + fd.count] = batch[fd.name].reshape(len(batch), fd.count)
            f_idx += fd.count
        return out


RepresentationFactory = Callable[[PointType], PointRepresentation]

_DEFAULT_FACTORY: Dict[str, RepresentationFactory] = {
    "PointXYZ": XYZPointRepresentation,
    "PointXYZI": XYZPointRepresentation,
    "PointNormal": XYZPointRepresentation,
    "PFHSignature125": DefaultFeatureRepresentation,
    "PPFSignature": DefaultFeatureRepresentation,
    "FPFHSignature33": DefaultFeatureRepresentation,
    "VFHSignature308": DefaultFeatureRepresentation,
    "NormalBasedSignature12": DefaultFeatureRepresentation,
}


def register_default_representation(name: str, factory: RepresentationFactory) -> None:
    _DEFAULT_FACTORY[name] = factory


def default_representation(point_type: PointTypeLike) -> PointRepresentation:
    """Build the default representation registered for ``point_type``."""
    pt = as_point_type(point_type)
    factory = _DEFAULT_FACTORY.get(pt.name)
    if factory is None and pt.name.startswith("Histogram<"):
        factory = DefaultFeatureRepresentation
    if factory is None:
        factory = DefaultPointRepresentation
    return factory(pt)
