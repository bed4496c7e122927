from __future__ import annotations

from ..config import RepresentationConfig
from ..core.point_types import get_point_type
from ..core.representation import (
    CustomPointRepresentation,
    DefaultFeatureRepresentation,
    DefaultPointRepresentation,
    PointRepresentation,
    default_representation,
)


def build_representation(cfg: RepresentationConfig) -> PointRepresentation:
    point_type = get_point_type(cfg.point_type)
    rep_cfg = cfg.representation
    if rep_cfg.kind == "default":
        rep = default_representation(point_type)
    elif rep_cfg.kind == "raw":
        rep = DefaultPointRepresentation(point_type)
    elif rep_cfg.kind == "feature":
        rep = DefaultFeatureRepresentation(point_type)
    elif rep_cfg.kind == "custom":
        rep = CustomPointRepresentation(point_type, max_dim=rep_cfg.max_dim, start_dim=rep_cfg.start_dim)
    else:
        raise ValueError(f"Unsupported representation kind: {rep_cfg.kind}")

    if cfg.rescale is not None:
        rep.set_rescale_values(cfg.rescale)
    return rep
