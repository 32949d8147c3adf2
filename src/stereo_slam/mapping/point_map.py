"""Sparse landmark map grown from fixed frames."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from scipy.spatial import cKDTree

if TYPE_CHECKING:
    from ..frontend.frame import Frame


@dataclass
class MapPoint:
    """A world landmark and the frames that contributed it.

    Attributes:
        id: Unique identifier
        position: (3,) position in the odometry frame
        descriptor: (32,) ORB descriptor of the first observation
        frame_ids: Frames whose world points were merged into this point
    """

    id: int
    position: np.ndarray
    descriptor: np.ndarray
    frame_ids: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=np.float64).flatten()
        self.descriptor = np.asarray(self.descriptor, dtype=np.uint8).flatten()

    @property
    def num_observations(self) -> int:
        return len(self.frame_ids)


class PointMap:
    """Accumulates clustered world points from fixed frames.

    A new point within ``merge_radius`` of an existing map point is
    recorded as another observation of that point instead of a new one.
    """

    def __init__(self, merge_radius: float = 0.05) -> None:
        self._merge_radius = merge_radius
        self._points: dict[int, MapPoint] = {}
        self._next_point_id: int = 0
        self._frame_to_points: dict[int, set[int]] = {}

    def add_points(self, frame: Frame) -> int:
        """Insert a frame's world points.

        Args:
            frame: Frame whose ``world_points`` have been computed

        Returns:
            Number of map points created
        """
        positions = frame.world_points
        if len(positions) == 0:
            return 0

        existing_ids = list(self._points)
        tree = None
        if existing_ids and self._merge_radius > 0:
            tree = cKDTree(np.array([self._points[i].position for i in existing_ids]))

        frame_points = self._frame_to_points.setdefault(frame.frame_id, set())
        new_count = 0
        for position, descriptor in zip(positions, frame.world_descriptors):
            if not np.isfinite(position).all():
                continue

            if tree is not None:
                distance, idx = tree.query(position, distance_upper_bound=self._merge_radius)
                if np.isfinite(distance):
                    point = self._points[existing_ids[idx]]
                    point.frame_ids.append(frame.frame_id)
                    frame_points.add(point.id)
                    continue

            point = MapPoint(
                id=self._next_point_id,
                position=position,
                descriptor=descriptor,
                frame_ids=[frame.frame_id],
            )
            self._next_point_id += 1
            self._points[point.id] = point
            frame_points.add(point.id)
            new_count += 1

        return new_count

    def get_point(self, point_id: int) -> MapPoint | None:
        return self._points.get(point_id)

    def get_points_from_frame(self, frame_id: int) -> list[MapPoint]:
        """Return the map points a frame created or re-observed."""
        return [self._points[i] for i in sorted(self._frame_to_points.get(frame_id, ()))]

    def get_all_points(self) -> list[MapPoint]:
        return list(self._points.values())

    def get_all_positions(self) -> np.ndarray:
        """Return Nx3 positions of all map points."""
        if not self._points:
            return np.empty((0, 3), dtype=np.float64)
        return np.array([p.position for p in self._points.values()], dtype=np.float64)

    @property
    def num_points(self) -> int:
        return len(self._points)

    @property
    def merge_radius(self) -> float:
        return self._merge_radius

    def clear(self) -> None:
        self._points.clear()
        self._frame_to_points.clear()
        self._next_point_id = 0

    def __len__(self) -> int:
        return self.num_points
