from __future__ import annotations
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple
import numpy as np

FLOAT32 = np.dtype(np.float32)
FLOAT_SIZE = FLOAT32.itemsize


class LayoutError(ValueError):
    """A record type does not have the memory layout a representation needs."""


@dataclass(frozen=True)
class FieldDescriptor:
    """Location and shape of one field inside a record type."""
    name: str
    offset: int          # bytes from the start of the record
    count: int           # 1 for scalars, N for an N-element array field
    width: int           # bytes per element
    dtype: np.dtype      # element dtype

    @property
    def is_array(self) -> bool:
        return self.count > 1

    @property
    def nbytes(self) -> int:
        return self.count * self.width


def _as_dtype(dtype: np.dtype) -> np.dtype:
    dtype = np.dtype(dtype)
    if dtype.names is None:
        raise LayoutError(f"Record type must be a structured dtype, got {dtype}")
    return dtype


@lru_cache(maxsize=None)
def _describe(dtype: np.dtype) -> Tuple[FieldDescriptor, ...]:
    out = []
    for name in dtype.names:
        field_dtype, offset = dtype.fields[name][:2]
        if field_dtype.subdtype is not None:
            base, shape = field_dtype.subdtype
            count = int(np.prod(shape))
        else:
            base, count = field_dtype, 1
        if base.names is not None:
            raise LayoutError(f"Nested structured field '{name}' is not supported")
        if base.kind not in "biuf":
            raise LayoutError(f"Field '{name}' has non-numeric dtype {base}")
        out.append(FieldDescriptor(name=name, offset=int(offset), count=count,
                                   width=base.itemsize, dtype=base))
    return tuple(out)


def describe_fields(dtype: np.dtype) -> Tuple[FieldDescriptor, ...]:
    """Return the field descriptors of a record type in declaration order.

    The tuple is cached per dtype, so repeated calls hand back the very same
    sequence and anything sized from it agrees with anything copied from it.
    """
    return _describe(_as_dtype(dtype))


def float_slot_count(dtype: np.dtype) -> int:
    """Number of float-sized slots in the record's memory image."""
    return _as_dtype(dtype).itemsize // FLOAT_SIZE


def _float_slots(dtype: np.dtype) -> frozenset:
    slots = set()
    for fd in describe_fields(dtype):
        if fd.dtype != FLOAT32 or fd.offset % FLOAT_SIZE:
            continue
        first = fd.offset // FLOAT_SIZE
        slots.update(range(first, first + fd.count))
    return frozenset(slots)


def require_float_slots(dtype: np.dtype, start: int, count: int) -> None:
    """Check that slots ``start .. start+count-1`` each hold a float32 element.

    Raw-layout representations read records as a flat float32 buffer; this
    is the precondition that makes that read meaningful.
    """
    dtype = _as_dtype(dtype)
    if count < 1:
        raise LayoutError(f"Empty float window (start={start}, count={count}) for {dtype}")
    if start < 0 or start + count > float_slot_count(dtype):
        raise LayoutError(
            f"Float window [{start}, {start + count}) exceeds the "
            f"{float_slot_count(dtype)} slots of {dtype}"
        )
    slots = _float_slots(dtype)
    missing = [i for i in range(start, start + count) if i not in slots]
    if missing:
        raise LayoutError(f"Slots {missing} of {dtype} are not float32 fields")
