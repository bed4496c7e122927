from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Union
import re
import numpy as np

from .fields import describe_fields

@dataclass(frozen=True)
class PointType:
    """A named record type: a fixed-layout numpy structured dtype."""
    name: str
    dtype: np.dtype

    def __post_init__(self) -> None:
        object.__setattr__(self, "dtype", np.dtype(self.dtype))
        describe_fields(self.dtype)  # rejects unusable layouts early

    @property
    def itemsize(self) -> int:
        return self.dtype.itemsize

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(self.dtype.names)


PointTypeLike = Union[PointType, str, np.dtype]

_f4 = np.float32

PointXYZ = PointType("PointXYZ", np.dtype([("x", _f4), ("y", _f4), ("z", _f4)]))
PointXYZI = PointType("PointXYZI", np.dtype([("x", _f4), ("y", _f4), ("z", _f4), ("intensity", _f4)]))
PointXYZRGB = PointType("PointXYZRGB", np.dtype([("x", _f4), ("y", _f4), ("z", _f4), ("rgb", np.uint32)]))
Normal = PointType("Normal", np.dtype([
    ("normal_x", _f4), ("normal_y", _f4), ("normal_z", _f4), ("curvature", _f4),
]))
PointNormal = PointType("PointNormal", np.dtype([
    ("x", _f4), ("y", _f4), ("z", _f4),
    ("normal_x", _f4), ("normal_y", _f4), ("normal_z", _f4), ("curvature", _f4),
]))
PFHSignature125 = PointType("PFHSignature125", np.dtype([("histogram", _f4, (125,))]))
FPFHSignature33 = PointType("FPFHSignature33", np.dtype([("histogram", _f4, (33,))]))
VFHSignature308 = PointType("VFHSignature308", np.dtype([("histogram", _f4, (308,))]))
PPFSignature = PointType("PPFSignature", np.dtype([
    ("f1", _f4), ("f2", _f4), ("f3", _f4), ("f4", _f4), ("alpha_m", _f4),
]))
NormalBasedSignature12 = PointType("NormalBasedSignature12", np.dtype([("values", _f4, (12,))]))

_REGISTRY: Dict[str, PointType] = {
    pt.name: pt
    for pt in (
        PointXYZ, PointXYZI, PointXYZRGB, Normal, PointNormal,
        PFHSignature125, FPFHSignature33, VFHSignature308, PPFSignature,
        NormalBasedSignature12,
    )
}

_HISTOGRAM_RE = re.compile(r"^Histogram<(\d+)>$")


def histogram_type(n: int) -> PointType:
    """Fixed-size histogram descriptor with ``n`` bins (``Histogram<n>``)."""
    if n < 1:
        raise ValueError(f"Histogram size must be positive, got {n}")
    name = f"Histogram<{n}>"
    pt = _REGISTRY.get(name)
    if pt is None:
        pt = PointType(name, np.dtype([("histogram", _f4, (n,))]))
        _REGISTRY[name] = pt
    return pt


def register_point_type(point_type: PointType, *, replace: bool = False) -> PointType:
    if point_type.name in _REGISTRY and not replace:
        if _REGISTRY[point_type.name].dtype != point_type.dtype:
            raise ValueError(f"Point type '{point_type.name}' is already registered with a different layout")
        return _REGISTRY[point_type.name]
    _REGISTRY[point_type.name] = point_type
    return point_type


def get_point_type(name: str) -> PointType:
    pt = _REGISTRY.get(name)
    if pt is not None:
        return pt
    m = _HISTOGRAM_RE.match(name)
    if m:
        return histogram_type(int(m.group(1)))
    raise KeyError(f"Unknown point type '{name}'. Known types: {', '.join(sorted(_REGISTRY))}")


def registered_point_types() -> Dict[str, PointType]:
    return dict(_REGISTRY)


def as_point_type(point_type: PointTypeLike) -> PointType:
    """Resolve a name, dtype or PointType to a PointType."""
    if isinstance(point_type, PointType):
        return point_type
    if isinstance(point_type, str):
        return get_point_type(point_type)
    dtype = np.dtype(point_type)
    for pt in _REGISTRY.values():
        if pt.dtype == dtype:
            return pt
    return PointType(str(dtype), dtype)


def make_record(point_type: PointTypeLike, **values: Any) -> np.void:
    """Build a single record, zero-filled except for the given fields."""
    pt = as_point_type(point_type)
    rec = np.zeros((), dtype=pt.dtype)
    for name, value in values.items():
        if name not in pt.dtype.names:
            raise KeyError(f"{pt.name} has no field '{name}'")
        rec[name] = value
    return rec[()]


def make_cloud(point_type: PointTypeLike, n: int, **columns: Any) -> np.ndarray:
    """Build a structured array of ``n`` records, zero-filled except for ``columns``."""
    pt = as_point_type(point_type)
    cloud = np.zeros((n,), dtype=pt.dtype)
    for name, values in columns.items():
        if name not in pt.dtype.names:
            raise KeyError(f"{pt.name} has no field '{name}'")
        cloud[name] = values
    return cloud
