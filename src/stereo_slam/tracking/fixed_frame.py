"""Fixed (reference) frame replacement and map growth policy.

The fixed frame is replaced whenever the inlier count of the last motion
estimate drops below ``min_inliers``. Frequent replacement bounds the drift
that builds up as image overlap with an old reference shrinks, at the cost
of losing the warm-start hint for one cycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .states import TrackingState

if TYPE_CHECKING:
    from ..frontend.frame import Frame
    from ..mapping.graph import Graph
    from ..mapping.point_map import PointMap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixedFrameDecision:
    """What the policy did in one cycle."""

    next_state: TrackingState
    replaced: bool
    map_grown: bool
    reset_fixed_frame: bool
    new_map_points: int = 0


class FixedFrameManager:
    """Owns the fixed frame and grows the map when it changes."""

    def __init__(
        self,
        point_map: PointMap,
        graph: Graph,
        min_inliers: int = 30,
        min_depth: float = 0.1,
        max_depth: float = 40.0,
        cluster_radius: float = 0.05,
    ) -> None:
        self._map = point_map
        self._graph = graph
        self._min_inliers = min_inliers
        self._min_depth = min_depth
        self._max_depth = max_depth
        self._cluster_radius = cluster_radius

        self._fixed_frame: Frame | None = None
        self._reset_fixed_frame = False

    def seed(self, frame: Frame) -> None:
        """Install the first fixed frame of the session."""
        self._fixed_frame = frame
        self._reset_fixed_frame = False

    def update(
        self, current: Frame, num_inliers: int, state: TrackingState
    ) -> FixedFrameDecision:
        """Apply the replacement policy of ``state`` after a motion estimate.

        Args:
            current: Frame just tracked against the fixed frame
            num_inliers: Inliers of that estimate
            state: INITIALIZING or WORKING

        Returns:
            FixedFrameDecision with the state for the next cycle
        """
        if state is TrackingState.INITIALIZING:
            return self.update_initializing(current, num_inliers)
        if state is TrackingState.WORKING:
            return self.update_working(current, num_inliers)
        raise ValueError("Fixed frame policy does not run while NOT_INITIALIZED")

    def update_initializing(self, current: Frame, num_inliers: int) -> FixedFrameDecision:
        """Bootstrap policy: swap the reference until an estimate is trusted.

        A trusted estimate grows the map from the retained fixed frame and
        moves tracking to WORKING. Otherwise the current frame becomes the
        fixed frame and no map is built.
        """
        self._require_seed()

        if num_inliers < self._min_inliers:
            self._replace(current)
            return FixedFrameDecision(
                next_state=TrackingState.INITIALIZING,
                replaced=True,
                map_grown=False,
                reset_fixed_frame=True,
            )

        new_points = self.grow_map(self._fixed_frame)
        self._reset_fixed_frame = False
        logger.info(
            "Tracking initialized on frame %d (%d inliers, %d map points)",
            self._fixed_frame.frame_id,
            num_inliers,
            new_points,
        )
        return FixedFrameDecision(
            next_state=TrackingState.WORKING,
            replaced=False,
            map_grown=True,
            reset_fixed_frame=False,
            new_map_points=new_points,
        )

    def update_working(self, current: Frame, num_inliers: int) -> FixedFrameDecision:
        """Steady-state policy: replace the reference and grow the map on weak estimates."""
        self._require_seed()

        if num_inliers < self._min_inliers:
            self._replace(current)
            new_points = self.grow_map(self._fixed_frame)
            return FixedFrameDecision(
                next_state=TrackingState.WORKING,
                replaced=True,
                map_grown=True,
                reset_fixed_frame=True,
                new_map_points=new_points,
            )

        self._reset_fixed_frame = False
        return FixedFrameDecision(
            next_state=TrackingState.WORKING,
            replaced=False,
            map_grown=False,
            reset_fixed_frame=False,
        )

    def _require_seed(self) -> None:
        if self._fixed_frame is None:
            raise RuntimeError("Fixed frame policy applied before seed()")

    def _replace(self, current: Frame) -> None:
        logger.info(
            "Replacing fixed frame %d with frame %d (%d inliers)",
            self._fixed_frame.frame_id,
            current.frame_id,
            current.inliers,
        )
        self._fixed_frame = current.copy()
        self._reset_fixed_frame = True

    def grow_map(self, frame: Frame) -> int:
        """Compute, cluster and insert a frame's world points.

        Returns:
            Number of new map points
        """
        frame.compute_world_points(self._min_depth, self._max_depth)
        frame.cluster_world_points(self._cluster_radius)
        new_points = self._map.add_points(frame)
        self._graph.add_keyframe(frame)
        return new_points

    @property
    def fixed_frame(self) -> Frame | None:
        return self._fixed_frame

    @property
    def reset_fixed_frame(self) -> bool:
        """True if the fixed frame was replaced in the last cycle."""
        return self._reset_fixed_frame

    @property
    def min_inliers(self) -> int:
        return self._min_inliers
