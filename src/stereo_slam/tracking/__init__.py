"""Tracking core: state machine, matching, motion estimation, fixed frame policy.

Components:
- Tracker: State machine driven once per synchronized input
- CoordinateFrameResolver: One-shot odometry-to-camera transform lookup
- CorrespondenceMatcher: kNN Hamming matching with a ratio test
- MotionEstimator: PnP + RANSAC between current 3D and fixed 2D points
- FixedFrameManager: Fixed frame replacement and map growth
"""

from .correspondence_matcher import CorrespondenceMatcher, Correspondences
from .fixed_frame import FixedFrameDecision, FixedFrameManager
from .motion_estimator import MotionEstimator, PnPResult
from .states import TrackingState
from .tracker import (
    FrameFactory,
    FramePublisher,
    Tracker,
    TrackingInput,
    TrackingResult,
    TrackingTiming,
)
from .transforms import CoordinateFrameResolver, TransformSource, TransformTree

__all__ = [
    # State machine
    "Tracker",
    "TrackingState",
    "TrackingInput",
    "TrackingResult",
    "TrackingTiming",
    "FramePublisher",
    "FrameFactory",
    # Transforms
    "TransformTree",
    "TransformSource",
    "CoordinateFrameResolver",
    # Matching
    "CorrespondenceMatcher",
    "Correspondences",
    # Motion estimation
    "MotionEstimator",
    "PnPResult",
    # Fixed frame
    "FixedFrameManager",
    "FixedFrameDecision",
]
