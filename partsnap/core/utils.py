from __future__ import annotations
import numpy as np
import logging

def get_logger(name: str = "partsnap") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger

def as_vec3(v, dtype=np.float64) -> np.ndarray:
    arr = np.asarray(v, dtype=dtype).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {arr.shape}")
    return arr

def ensure_unit_vector(v: np.ndarray, eps: float = 1e-12) -> np.ndarray:
    v = as_vec3(v)
    norm = float(np.linalg.norm(v))
    if norm < eps:
        raise ValueError("Cannot normalise a zero-length vector.")
    return v / norm
