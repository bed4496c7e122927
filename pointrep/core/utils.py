from __future__ import annotations
import logging
from typing import Any
import numpy as np

def get_logger(name: str = "pointrep") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger

def as_record_array(record: Any, dtype: np.dtype) -> np.ndarray:
    """Return ``record`` as a 0-d structured array of ``dtype``."""
    arr = np.asarray(record)
    if arr.dtype != dtype:
        raise TypeError(f"Record dtype {arr.dtype} does not match representation dtype {dtype}")
    if arr.ndim != 0:
        raise TypeError(f"Expected a single record, got an array of shape {arr.shape}")
    return arr

def as_record_batch(records: Any, dtype: np.dtype) -> np.ndarray:
    """Return ``records`` as a contiguous 1-D structured array of ``dtype``."""
    arr = np.asarray(records)
    if arr.dtype != dtype:
        raise TypeError(f"Records dtype {arr.dtype} does not match representation dtype {dtype}")
    if arr.ndim != 1:
        raise ValueError(f"Expected a 1-D array of records, got shape {arr.shape}")
    return np.ascontiguousarray(arr)
