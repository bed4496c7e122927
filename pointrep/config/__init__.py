"""Configuration loading utilities for pointrep."""

from .schema import (
    RepresentationConfig,
    load_config,
)

__all__ = ["RepresentationConfig", "load_config"]
