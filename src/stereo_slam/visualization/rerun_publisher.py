"""Rerun sink for tracking results."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import rerun as rr

if TYPE_CHECKING:
    from ..mapping.point_map import PointMap
    from ..tracking.tracker import TrackingResult


class RerunPublisher:
    """Publishes tracking results to a Rerun viewer.

    Entity hierarchy:
        world/
            camera          - Tracked camera pose
            odometry        - Odometry-derived camera pose
            trajectory      - Tracked positions as a line strip
            map             - Accumulated map points
        tracking/
            matches         - Correspondences per cycle
            inliers         - PnP inliers per cycle
    """

    def __init__(
        self,
        point_map: PointMap | None = None,
        app_name: str = "stereo-slam-tracking",
        spawn: bool = True,
        init: bool = True,
    ) -> None:
        """Initialize publisher.

        Args:
            point_map: Map to draw whenever it grows
            app_name: Rerun application id
            spawn: Spawn the viewer on init
            init: Call ``rr.init``; disable when the caller already did
        """
        if init:
            rr.init(app_name, spawn=spawn)
        rr.log("world", rr.ViewCoordinates.RIGHT_HAND_Z_UP, static=True)

        self._point_map = point_map
        self._positions: list[np.ndarray] = []

    def update(self, result: TrackingResult) -> None:
        """Log one accepted tracking result."""
        rr.set_time("timestamp", duration=result.timestamp_ns / 1e9)

        if result.pose is not None:
            rr.log(
                "world/camera",
                rr.Transform3D(
                    translation=result.pose.translation, mat3x3=result.pose.rotation
                ),
            )
            self._positions.append(result.pose.position)
            self._log_trajectory()

        if result.odometry_pose is not None:
            rr.log(
                "world/odometry",
                rr.Points3D([result.odometry_pose.position], colors=[[255, 128, 0]], radii=0.04),
            )

        rr.log("tracking/matches", rr.Scalars(float(result.num_matches)))
        rr.log("tracking/inliers", rr.Scalars(float(result.num_inliers)))

        if result.map_grown and self._point_map is not None:
            self._log_map(self._point_map.get_all_positions())

    def _log_trajectory(self) -> None:
        if len(self._positions) < 2:
            return
        rr.log(
            "world/trajectory",
            rr.LineStrips3D([np.array(self._positions)], colors=[[255, 255, 0]], radii=0.01),
        )

    def _log_map(self, positions: np.ndarray) -> None:
        """Log map points colored by height (odometry frame, z is up)."""
        positions = positions[np.isfinite(positions).all(axis=1)]
        if len(positions) == 0:
            return

        heights = positions[:, 2]
        h_min, h_max = np.percentile(heights, [5, 95])
        normalized = np.clip((heights - h_min) / max(h_max - h_min, 0.1), 0, 1)

        colors = np.zeros((len(positions), 3), dtype=np.uint8)
        colors[:, 0] = (128 + normalized * 127).astype(np.uint8)
        colors[:, 1] = (normalized * 255).astype(np.uint8)
        colors[:, 2] = (255 - normalized * 127).astype(np.uint8)

        rr.log("world/map", rr.Points3D(positions, colors=colors, radii=0.03))
