"""Stereo SLAM tracking front-end in Python."""

__version__ = "0.1.0"

from .config import TrackingConfig
from .dataset_reader import DatasetReader
from .errors import TrackingError, TransformLookupError, TransformUnavailable
from .frontend import (
    SE3,
    CameraInfo,
    FeatureDetector,
    Frame,
    FrameBuilder,
    StereoCameraModel,
    StereoMatcher,
)
from .io import Odometry, OdometryReader
from .mapping import Graph, MapPoint, PointMap
from .tracking import (
    CoordinateFrameResolver,
    Correspondences,
    CorrespondenceMatcher,
    FixedFrameManager,
    FramePublisher,
    MotionEstimator,
    PnPResult,
    Tracker,
    TrackingInput,
    TrackingResult,
    TrackingState,
    TransformTree,
)
from .visualization import RerunPublisher

__all__ = [
    "__version__",
    # Config / errors
    "TrackingConfig",
    "TrackingError",
    "TransformLookupError",
    "TransformUnavailable",
    # Dataset / I/O
    "DatasetReader",
    "Odometry",
    "OdometryReader",
    # Frontend
    "SE3",
    "CameraInfo",
    "StereoCameraModel",
    "FeatureDetector",
    "StereoMatcher",
    "Frame",
    "FrameBuilder",
    # Tracking
    "Tracker",
    "TrackingInput",
    "TrackingResult",
    "TrackingState",
    "FramePublisher",
    "TransformTree",
    "CoordinateFrameResolver",
    "CorrespondenceMatcher",
    "Correspondences",
    "MotionEstimator",
    "PnPResult",
    "FixedFrameManager",
    # Mapping
    "PointMap",
    "MapPoint",
    "Graph",
    # Visualization
    "RerunPublisher",
]
