"""Connector-pair snap resolution.

Only translation is solved: the preview keeps identity orientation and is
moved so that one of its connectors lands exactly on a compatible connector
of a nearby placed part.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np

from .connectors import Connector, compatible
from .parts import PlacedPart
from .transform import Transform
from .utils import as_vec3


@dataclass(frozen=True)
class SnapResult:
    transform: Transform
    target: int                       # ref of the placed part snapped onto
    preview_connector: Connector
    target_connector: Connector
    distance: float                   # gating distance, connector → hit point


class SnapResolver:
    def __init__(self, activation_distance: float = 0.5) -> None:
        if activation_distance <= 0:
            raise ValueError("activation_distance must be positive")
        self.activation_distance = float(activation_distance)

    def resolve(
        self,
        hit_point: np.ndarray,
        preview_connectors: Sequence[Connector],
        candidates: Sequence[PlacedPart],
    ) -> Optional[SnapResult]:
        """Best snap for ``hit_point`` or ``None``.

        Pairs are gated by the squared distance from the candidate connector to
        the hit point, then filtered by axis compatibility. The closest gated
        pair wins; on an exact distance tie the first pair found is kept, so the
        winner depends on candidate and connector order.
        """
        if not preview_connectors:
            return None
        hit = as_vec3(hit_point)
        gate_sq = self.activation_distance ** 2
        best: Optional[SnapResult] = None
        best_sq = np.inf

        for part in candidates:
            for target_conn, world_pos in part.world_connectors():
                d_sq = float(np.sum((world_pos - hit) ** 2))
                if d_sq >= gate_sq or d_sq >= best_sq:
                    continue
                for preview_conn in preview_connectors:
                    if not compatible(preview_conn.axis, target_conn.axis):
                        continue
                    origin = world_pos - np.eye(3) @ preview_conn.local_position
                    best = SnapResult(
                        transform=Transform.identity(origin),
                        target=part.ref,
                        preview_connector=preview_conn,
                        target_connector=target_conn,
                        distance=float(np.sqrt(d_sq)),
                    )
                    best_sq = d_sq
                    break
        return best
