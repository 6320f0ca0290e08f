from __future__ import annotations
from dataclasses import dataclass, field
import numpy as np

from .utils import as_vec3


@dataclass(frozen=True, eq=False)
class Transform:
    """Rigid world transform: ``world = R @ local + origin``."""
    origin: np.ndarray = field(default_factory=lambda: np.zeros(3))   # (3,)
    R: np.ndarray = field(default_factory=lambda: np.eye(3))          # (3,3)

    def __post_init__(self) -> None:
        object.__setattr__(self, "origin", as_vec3(self.origin))
        object.__setattr__(self, "R", np.asarray(self.R, dtype=np.float64).reshape(3, 3))

    @staticmethod
    def identity(origin=(0.0, 0.0, 0.0)) -> "Transform":
        return Transform(origin=np.asarray(origin, dtype=float), R=np.eye(3))

    @staticmethod
    def from_xyz_rpy(xyz: tuple[float, float, float], rpy_deg: tuple[float, float, float]) -> "Transform":
        rx, ry, rz = np.deg2rad(rpy_deg)
        cx, sx = np.cos(rx), np.sin(rx)
        cy, sy = np.cos(ry), np.sin(ry)
        cz, sz = np.cos(rz), np.sin(rz)
        Rx = np.array([[1,0,0],[0,cx,-sx],[0,sx,cx]])
        Ry = np.array([[cy,0,sy],[0,1,0],[-sy,0,cy]])
        Rz = np.array([[cz,-sz,0],[sz,cz,0],[0,0,1]])
        R = Rz @ Ry @ Rx
        return Transform(origin=np.array(xyz, dtype=float), R=R.astype(float))

    def apply(self, p_local: np.ndarray) -> np.ndarray:
        p = np.asarray(p_local, dtype=np.float64)
        if p.ndim == 1:
            return self.R @ p + self.origin
        return (self.R @ p.T).T + self.origin

    def translated(self, offset: np.ndarray) -> "Transform":
        return Transform(origin=self.origin + as_vec3(offset), R=self.R)
