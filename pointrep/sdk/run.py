from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
from numpy.lib import recfunctions as rfn

from ..config import RepresentationConfig, load_config
from ..config.schema import InputConfig, OutputConfig
from ..core.exporter import VectorNpzWriter
from ..core.point_types import PointType, get_point_type
from ..core.utils import get_logger
from ..runtime.builders import build_representation

_log = get_logger()


@dataclass(frozen=True)
class ConfigRunResult:
    """Summary of a vectorization run driven by a configuration file."""

    stats: Dict[str, int]
    output_path: Path
    config: RepresentationConfig


def load_records(path: Union[str, Path], point_type: PointType) -> np.ndarray:
    """Load a 1-D structured ``.npy`` array and bring it to ``point_type``'s layout.

    Fields are matched by name, so the stored array may order or pad its
    fields differently as long as every field of the point type is present.
    """
    records = np.load(Path(path), allow_pickle=False)
    if records.dtype.names is None:
        raise ValueError(f"{path} does not hold a structured array")
    missing = [n for n in point_type.dtype.names if n not in records.dtype.names]
    if missing:
        raise ValueError(f"{path} lacks fields {missing} required by {point_type.name}")
    records = records.reshape(-1)
    if records.dtype != point_type.dtype:
        records = rfn.require_fields(records, point_type.dtype)
    return records


def vectorize_from_config(
    config: Union[str, Path, RepresentationConfig],
    *,
    input: Optional[Path] = None,
    output: Optional[Path] = None,
    drop_invalid: Optional[bool] = None,
    batch_size: int = 100_000,
) -> ConfigRunResult:
    """Project a stored record array with the representation a config describes.

    Parameters
    ----------
    config:
        Path to a YAML file or a pre-loaded :class:`~pointrep.config.schema.RepresentationConfig`.
    input:
        Optional override for the ``.npy`` record array to read.
    output:
        Optional override for the ``.npz`` file to write.
    drop_invalid:
        Optional override; when true, records with non-finite projected
        values are left out of the output.
    batch_size:
        Number of records projected per batch.

    Returns
    -------
    ConfigRunResult
        Record, vector and invalid counts, the resolved output path, and the
        resolved configuration object used for the run.
    """

    cfg = load_config(config) if not isinstance(config, RepresentationConfig) else config.model_copy(deep=True)

    if input is not None:
        cfg.input = InputConfig(path=Path(input).resolve())
    if cfg.input is None:
        raise ValueError("No input record array given in the config or as an override")
    if output is not None:
        cfg.output = OutputConfig(
            path=Path(output).resolve(),
            drop_invalid=cfg.output.drop_invalid if cfg.output is not None else False,
        )
    if cfg.output is None:
        raise ValueError("No output path given in the config or as an override")
    if drop_invalid is not None:
        cfg.output.drop_invalid = drop_invalid
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    point_type = get_point_type(cfg.point_type)
    rep = build_representation(cfg)
    records = load_records(cfg.input.path, point_type)
    _log.info("Vectorizing %d %s records with %r", len(records), point_type.name, rep)

    writer = VectorNpzWriter(
        str(cfg.output.path),
        rep.get_number_of_dimensions(),
        meta={"point_type": point_type.name, "representation": type(rep).__name__},
    )
    n_written = 0
    n_invalid = 0
    try:
        for start in range(0, len(records), batch_size):
            chunk = records[start:start + batch_size]
            valid = rep.valid_mask(chunk)
            vectors = rep.vectorize_batch(chunk)
            index = np.arange(start, start + len(chunk), dtype=np.int64)
            n_invalid += int((~valid).sum())
            if cfg.output.drop_invalid:
                vectors, index, valid = vectors[valid], index[valid], valid[valid]
            writer.write_batch(vectors, valid, index)
            n_written += len(vectors)
    finally:
        writer.close()

    stats = {
        "records": int(len(records)),
        "vectors": n_written,
        "invalid": n_invalid,
        "dimensions": rep.get_number_of_dimensions(),
    }
    return ConfigRunResult(stats=stats, output_path=Path(cfg.output.path), config=cfg)
