"""pointrep – projection of fixed-layout point records onto float vectors.

Search, registration and clustering code wants every point type reduced to a
uniform vector. This package provides:
- Field descriptors derived from numpy structured dtypes (core.fields)
- A catalogue of common point and descriptor types (core.point_types)
- PointRepresentation and its raw, feature and custom strategies, plus the
  per-type default registry (core.representation)
- YAML/pydantic configuration, an SDK entry point and a typer CLI

Records are single elements of numpy structured arrays; whole arrays can be
projected at once with the batch forms of each operation.
"""

from .core.fields import FieldDescriptor, LayoutError, describe_fields
from .core.point_types import (
    PointType, PointXYZ, PointXYZI, PointXYZRGB, Normal, PointNormal,
    PFHSignature125, FPFHSignature33, VFHSignature308, PPFSignature,
    NormalBasedSignature12, histogram_type, get_point_type,
    register_point_type, make_record, make_cloud,
)
from .core.representation import (
    PointRepresentation,
    DefaultPointRepresentation, XYZPointRepresentation,
    DefaultFeatureRepresentation, CustomPointRepresentation,
    default_representation, register_default_representation,
)
