from __future__ import annotations

from pathlib import Path
from typing import Annotated, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, model_validator

from ..core.point_types import get_point_type


class DefaultRepresentationConfig(BaseModel):
    kind: Literal["default"] = "default"


class RawRepresentationConfig(BaseModel):
    kind: Literal["raw"]


class FeatureRepresentationConfig(BaseModel):
    kind: Literal["feature"]


class CustomRepresentationConfig(BaseModel):
    kind: Literal["custom"]
    max_dim: int = Field(3, ge=1)
    start_dim: int = Field(0, ge=0)


RepresentationKindConfig = Annotated[
    Union[DefaultRepresentationConfig, RawRepresentationConfig, FeatureRepresentationConfig, CustomRepresentationConfig],
    Field(discriminator="kind"),
]


class InputConfig(BaseModel):
    path: Path


class OutputConfig(BaseModel):
    path: Path
    drop_invalid: bool = False

    @model_validator(mode="after")
    def _validate_suffix(self) -> "OutputConfig":
        if self.path.suffix.lower() != ".npz":
            raise ValueError(f"Output path must end with .npz, got '{self.path.name}'")
        return self


class RepresentationConfig(BaseModel):
    point_type: str
    representation: RepresentationKindConfig = DefaultRepresentationConfig()
    rescale: Optional[List[float]] = None
    input: Optional[InputConfig] = None
    output: Optional[OutputConfig] = None

    @model_validator(mode="after")
    def _check_point_type(self) -> "RepresentationConfig":
        try:
            get_point_type(self.point_type)
        except KeyError as exc:
            raise ValueError(exc.args[0]) from exc
        if self.rescale is not None and not self.rescale:
            raise ValueError("rescale must list one factor per dimension; omit it to disable rescaling")
        return self


def load_config(path: str | Path) -> RepresentationConfig:
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping.")
    cfg = RepresentationConfig.model_validate(data)
    if cfg.input is not None and not cfg.input.path.is_absolute():
        cfg.input.path = (path.parent / cfg.input.path).resolve()
    if cfg.output is not None and not cfg.output.path.is_absolute():
        cfg.output.path = (path.parent / cfg.output.path).resolve()
    return cfg
