"""Keyframe graph handed to the pose-graph back-end."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from ..frontend.frame import Frame
    from ..frontend.pose import SE3


@dataclass
class GraphVertex:
    """A fixed frame that grew the map."""

    frame_id: int
    timestamp_ns: int
    pose: SE3  # Tracked T_odom_camera
    odometry_pose: SE3  # Odometry-derived T_odom_camera
    num_world_points: int


@dataclass
class GraphEdge:
    """Odometry constraint between two consecutive vertices."""

    from_id: int
    to_id: int
    relative_pose: SE3  # T_from_to from odometry


class Graph:
    """Stores keyframes, odometry edges and the session calibration.

    The back-end optimizer reads from this structure; the tracker only
    writes to it.
    """

    def __init__(self) -> None:
        self._camera_matrix: np.ndarray | None = None
        self._camera_to_odom: SE3 | None = None
        self._vertices: list[GraphVertex] = []
        self._edges: list[GraphEdge] = []

    def set_camera_matrix(self, camera_matrix: np.ndarray) -> None:
        self._camera_matrix = np.asarray(camera_matrix, dtype=np.float64).copy()

    def set_camera_to_odom(self, camera_to_odom: SE3) -> None:
        """Store the inverse of the odometry-base to camera transform."""
        self._camera_to_odom = camera_to_odom

    def add_keyframe(self, frame: Frame) -> GraphVertex:
        """Add a vertex for the frame and an odometry edge from the last one."""
        vertex = GraphVertex(
            frame_id=frame.frame_id,
            timestamp_ns=frame.timestamp_ns,
            pose=frame.get_pose(),
            odometry_pose=frame.odometry_pose,
            num_world_points=len(frame.world_points),
        )

        if self._vertices:
            previous = self._vertices[-1]
            self._edges.append(
                GraphEdge(
                    from_id=previous.frame_id,
                    to_id=vertex.frame_id,
                    relative_pose=previous.odometry_pose.inverse() @ vertex.odometry_pose,
                )
            )

        self._vertices.append(vertex)
        return vertex

    @property
    def camera_matrix(self) -> np.ndarray | None:
        return self._camera_matrix

    @property
    def camera_to_odom(self) -> SE3 | None:
        return self._camera_to_odom

    @property
    def vertices(self) -> list[GraphVertex]:
        return list(self._vertices)

    @property
    def edges(self) -> list[GraphEdge]:
        return list(self._edges)

    @property
    def num_keyframes(self) -> int:
        return len(self._vertices)
