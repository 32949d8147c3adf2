"""Tracking state machine: one synchronized input in, one result out."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol

import numpy as np

from ..config import TrackingConfig
from ..errors import TransformUnavailable
from ..frontend.camera_model import CameraInfo, StereoCameraModel
from ..frontend.frame import Frame, FrameBuilder
from ..frontend.feature_detector import FeatureDetector
from ..frontend.pose import SE3
from ..io.odometry import Odometry
from ..mapping.graph import Graph
from ..mapping.point_map import PointMap
from .correspondence_matcher import Correspondences, CorrespondenceMatcher
from .fixed_frame import FixedFrameDecision, FixedFrameManager
from .motion_estimator import MotionEstimator, PnPResult
from .states import TrackingState
from .transforms import CoordinateFrameResolver, TransformSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackingInput:
    """One time-synchronized input tuple.

    Attributes:
        odometry: Odometry sample of the robot base
        left_image: Rectified left image (grayscale uint8)
        right_image: Rectified right image (grayscale uint8)
        image_frame_id: Optical frame of the images
        timestamp_ns: Image timestamp in nanoseconds
        left_info: Left camera calibration
        right_info: Right camera calibration
    """

    odometry: Odometry
    left_image: np.ndarray
    right_image: np.ndarray
    image_frame_id: str
    timestamp_ns: int
    left_info: CameraInfo
    right_info: CameraInfo


@dataclass
class TrackingTiming:
    """Timing breakdown of one cycle in milliseconds."""

    frame_ms: float = 0.0
    matching_ms: float = 0.0
    pnp_ms: float = 0.0
    fixed_frame_ms: float = 0.0
    total_ms: float = 0.0


@dataclass(frozen=True)
class TrackingResult:
    """Outcome of one tracking cycle.

    Attributes:
        frame_id: Sequence number of the input (-1 if it was discarded)
        timestamp_ns: Input timestamp
        state: Tracking state after the cycle
        accepted: False if the input was discarded during initialization
        pose: Tracked camera pose T_odom_camera, None if discarded
        odometry_pose: Odometry-derived camera pose, None if discarded
        relative_pose: T_fixed_current from PnP, None if the estimate failed
        num_matches: Correspondences between current and fixed frame
        num_inliers: PnP inliers
        fixed_frame_id: Fixed frame after the cycle (-1 if none)
        fixed_frame_replaced: True if the current frame became the fixed frame
        map_grown: True if world points were added to the map
        reset_fixed_frame: Reset flag for the next cycle
        timing: Per-stage timing
    """

    frame_id: int
    timestamp_ns: int
    state: TrackingState
    accepted: bool = True
    pose: SE3 | None = None
    odometry_pose: SE3 | None = None
    relative_pose: SE3 | None = None
    num_matches: int = 0
    num_inliers: int = 0
    fixed_frame_id: int = -1
    fixed_frame_replaced: bool = False
    map_grown: bool = False
    reset_fixed_frame: bool = False
    timing: TrackingTiming = field(default_factory=TrackingTiming)

    @property
    def is_tracking_ok(self) -> bool:
        """Return True if the motion estimate was trusted this cycle."""
        return self.relative_pose is not None and not self.fixed_frame_replaced


class FramePublisher(Protocol):
    """Sink for tracking results (visualization, logging, ROS topics...)."""

    def update(self, result: TrackingResult) -> None: ...


class FrameFactory(Protocol):
    """Builds a Frame from a rectified stereo pair."""

    def build(
        self,
        left: np.ndarray,
        right: np.ndarray,
        camera_model: StereoCameraModel,
        timestamp_ns: int = 0,
    ) -> Frame: ...


class Tracker:
    """Stereo tracking front-end.

    Call :meth:`process` once per synchronized input. Each state has its
    own handler:

    - NOT_INITIALIZED: resolve the odometry-to-camera transform and the
      camera model, then seed the fixed frame.
    - INITIALIZING: track against the fixed frame, swapping it until an
      estimate reaches ``min_inliers``. The map grows on that cycle and
      the state moves to WORKING.
    - WORKING: track against the fixed frame, replacing it (and growing
      the map) whenever inliers drop below ``min_inliers``.

    Cycles are serialized with a lock, because the reset flag and the
    warm-start hint depend on strict cycle order.
    """

    def __init__(
        self,
        transform_source: TransformSource,
        graph: Graph | None = None,
        point_map: PointMap | None = None,
        publisher: FramePublisher | None = None,
        config: TrackingConfig | None = None,
        frame_factory: FrameFactory | None = None,
        matcher: CorrespondenceMatcher | None = None,
        motion_estimator: MotionEstimator | None = None,
    ) -> None:
        """Initialize tracker with its collaborators.

        Args:
            transform_source: Source for the odometry-to-camera transform
            graph: Keyframe graph receiving calibration and keyframes
            point_map: Map receiving world points
            publisher: Optional sink called with every accepted result
            config: Tracking parameters
            frame_factory: Builds frames from images. Uses ORB defaults if None.
            matcher: Correspondence matcher. Built from config if None.
            motion_estimator: PnP estimator. Built from config if None.
        """
        self._config = config or TrackingConfig()
        cfg = self._config

        self._graph = graph if graph is not None else Graph()
        self._map = (
            point_map if point_map is not None else PointMap(merge_radius=cfg.merge_radius)
        )
        self._publisher = publisher
        self._resolver = CoordinateFrameResolver(
            transform_source, timeout=cfg.transform_timeout
        )
        self._frame_factory = frame_factory or FrameBuilder(
            feature_detector=FeatureDetector.from_config(cfg)
        )
        self._matcher = matcher or CorrespondenceMatcher(ratio=cfg.match_ratio)
        self._motion_estimator = motion_estimator or MotionEstimator(
            min_inliers=cfg.min_inliers,
            max_inliers=cfg.max_inliers,
            max_iterations=cfg.ransac_iterations,
            reprojection_threshold=cfg.reprojection_error,
        )
        self._fixed_frames = FixedFrameManager(
            point_map=self._map,
            graph=self._graph,
            min_inliers=cfg.min_inliers,
            min_depth=cfg.min_depth,
            max_depth=cfg.max_depth,
            cluster_radius=cfg.cluster_radius,
        )

        self._handlers: dict[TrackingState, Callable[[TrackingInput, float], TrackingResult]] = {
            TrackingState.NOT_INITIALIZED: self._handle_not_initialized,
            TrackingState.INITIALIZING: self._handle_initializing,
            TrackingState.WORKING: self._handle_working,
        }
        missing = set(TrackingState) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for tracking states: {missing}")

        self._lock = threading.Lock()
        self._state = TrackingState.NOT_INITIALIZED
        self._camera_model: StereoCameraModel | None = None
        self._odom_to_camera: SE3 | None = None
        self._motion_hint: SE3 | None = None
        self._frame_id = 0
        self._trajectory: list[SE3] = []
        self._last_result: TrackingResult | None = None

    def process(self, inp: TrackingInput) -> TrackingResult:
        """Run one tracking cycle on a synchronized input.

        Args:
            inp: Odometry, rectified stereo pair and calibration

        Returns:
            TrackingResult describing the cycle
        """
        with self._lock:
            t_start = time.perf_counter()
            result = self._handlers[self._state](inp, t_start)
            self._last_result = result
            if result.accepted:
                self._trajectory.append(result.pose)
                if self._publisher is not None:
                    self._publisher.update(result)
            return result

    def _camera_pose_from_odometry(self, odometry: Odometry) -> SE3:
        """Return T_odom_camera = T_odom_base @ T_base_camera."""
        return odometry.pose @ self._odom_to_camera

    def _build_frame(self, inp: TrackingInput) -> Frame:
        frame = self._frame_factory.build(
            inp.left_image, inp.right_image, self._camera_model, inp.timestamp_ns
        )
        frame.frame_id = self._frame_id
        self._frame_id += 1
        frame.set_odometry_pose(self._camera_pose_from_odometry(inp.odometry))
        return frame

    def _handle_not_initialized(self, inp: TrackingInput, t_start: float) -> TrackingResult:
        try:
            odom_to_camera = self._resolver.resolve(
                inp.odometry.child_frame_id, inp.image_frame_id
            )
        except TransformUnavailable:
            logger.warning("Impossible to transform odometry to camera frame, input discarded")
            return TrackingResult(
                frame_id=-1,
                timestamp_ns=inp.timestamp_ns,
                state=self._state,
                accepted=False,
            )

        self._odom_to_camera = odom_to_camera
        self._camera_model = StereoCameraModel.from_camera_info(inp.left_info, inp.right_info)

        self._graph.set_camera_to_odom(odom_to_camera.inverse())
        self._graph.set_camera_matrix(self._camera_model.camera_matrix)

        t0 = time.perf_counter()
        fixed = self._build_frame(inp)
        frame_ms = (time.perf_counter() - t0) * 1000
        self._fixed_frames.seed(fixed)

        self._state = TrackingState.INITIALIZING
        logger.info(
            "Initial fixed frame %d with %d points, tracking is initializing",
            fixed.frame_id,
            fixed.num_points,
        )

        return TrackingResult(
            frame_id=fixed.frame_id,
            timestamp_ns=inp.timestamp_ns,
            state=self._state,
            pose=fixed.get_pose(),
            odometry_pose=fixed.odometry_pose,
            fixed_frame_id=fixed.frame_id,
            timing=TrackingTiming(
                frame_ms=frame_ms, total_ms=(time.perf_counter() - t_start) * 1000
            ),
        )

    def _handle_initializing(self, inp: TrackingInput, t_start: float) -> TrackingResult:
        return self._run_cycle(inp, t_start, self._fixed_frames.update_initializing)

    def _handle_working(self, inp: TrackingInput, t_start: float) -> TrackingResult:
        return self._run_cycle(inp, t_start, self._fixed_frames.update_working)

    def _run_cycle(
        self,
        inp: TrackingInput,
        t_start: float,
        policy: Callable[[Frame, int], FixedFrameDecision],
    ) -> TrackingResult:
        """Build, match, estimate, then apply the given fixed frame policy."""
        timing = TrackingTiming()

        t0 = time.perf_counter()
        current = self._build_frame(inp)
        timing.frame_ms = (time.perf_counter() - t0) * 1000

        fixed = self._fixed_frames.fixed_frame
        correspondences, pnp_result = self._track_current_frame(current, fixed, timing)

        if pnp_result.num_inliers >= self._config.min_inliers:
            current.set_pose(fixed.get_pose() @ pnp_result.pose)
        else:
            # vision is not trusted: propagate the fixed pose with odometry
            odometry_delta = fixed.odometry_pose.inverse() @ current.odometry_pose
            current.set_pose(fixed.get_pose() @ odometry_delta)

        t0 = time.perf_counter()
        decision = policy(current, pnp_result.num_inliers)
        timing.fixed_frame_ms = (time.perf_counter() - t0) * 1000
        self._state = decision.next_state

        timing.total_ms = (time.perf_counter() - t_start) * 1000
        return self._make_result(current, correspondences, pnp_result, decision, timing)

    def _track_current_frame(
        self, current: Frame, fixed: Frame, timing: TrackingTiming
    ) -> tuple[Correspondences, PnPResult]:
        """Match current against fixed and estimate T_fixed_current."""
        t0 = time.perf_counter()
        correspondences = self._matcher.match(current.descriptors, fixed.descriptors)
        timing.matching_ms = (time.perf_counter() - t0) * 1000

        # 3D points of the current frame against 2D keypoints of the fixed frame
        points_3d = current.camera_points[correspondences.current_indices]
        points_2d = fixed.keypoints[correspondences.fixed_indices]

        # a fresh fixed frame invalidates the previous relative pose
        hint = None if self._fixed_frames.reset_fixed_frame else self._motion_hint

        t0 = time.perf_counter()
        pnp_result = self._motion_estimator.estimate(
            points_3d=points_3d,
            points_2d=points_2d,
            camera_matrix=self._camera_model.camera_matrix,
            initial_guess=hint,
        )
        timing.pnp_ms = (time.perf_counter() - t0) * 1000

        if pnp_result.success:
            self._motion_hint = pnp_result.pose
        current.set_inliers(pnp_result.num_inliers)

        logger.debug(
            "Frame %d vs fixed %d: %d matches, %d inliers%s",
            current.frame_id,
            fixed.frame_id,
            len(correspondences),
            pnp_result.num_inliers,
            f" ({pnp_result.reason})" if pnp_result.reason else "",
        )
        return correspondences, pnp_result

    def _make_result(
        self,
        current: Frame,
        correspondences: Correspondences,
        pnp_result: PnPResult,
        decision: FixedFrameDecision,
        timing: TrackingTiming,
    ) -> TrackingResult:
        return TrackingResult(
            frame_id=current.frame_id,
            timestamp_ns=current.timestamp_ns,
            state=self._state,
            pose=current.get_pose(),
            odometry_pose=current.odometry_pose,
            relative_pose=pnp_result.pose,
            num_matches=len(correspondences),
            num_inliers=pnp_result.num_inliers,
            fixed_frame_id=self._fixed_frames.fixed_frame.frame_id,
            fixed_frame_replaced=decision.replaced,
            map_grown=decision.map_grown,
            reset_fixed_frame=decision.reset_fixed_frame,
            timing=timing,
        )

    @property
    def state(self) -> TrackingState:
        return self._state

    @property
    def fixed_frame(self) -> Frame | None:
        return self._fixed_frames.fixed_frame

    @property
    def reset_fixed_frame(self) -> bool:
        return self._fixed_frames.reset_fixed_frame

    @property
    def current_pose(self) -> SE3 | None:
        """Return the latest tracked camera pose."""
        return self._trajectory[-1] if self._trajectory else None

    @property
    def num_inliers(self) -> int:
        """Return inliers of the latest cycle."""
        return self._last_result.num_inliers if self._last_result is not None else 0

    @property
    def last_result(self) -> TrackingResult | None:
        return self._last_result

    @property
    def camera_model(self) -> StereoCameraModel | None:
        return self._camera_model

    @property
    def session_transform(self) -> SE3 | None:
        """Return T_base_camera once resolved."""
        return self._odom_to_camera

    @property
    def config(self) -> TrackingConfig:
        return self._config

    @property
    def graph(self) -> Graph:
        return self._graph

    @property
    def point_map(self) -> PointMap:
        return self._map

    def get_trajectory(self) -> list[SE3]:
        return self._trajectory.copy()

    def get_trajectory_positions(self) -> np.ndarray:
        """Return Nx3 camera positions of all accepted inputs."""
        if not self._trajectory:
            return np.empty((0, 3), dtype=np.float64)
        return np.array([p.position for p in self._trajectory], dtype=np.float64)
