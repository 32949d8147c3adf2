"""Per-frame processing: poses, calibration, features and the Frame entity."""

from .camera_model import CameraInfo, StereoCameraModel, stereo_camera_info_from_euroc
from .feature_detector import FeatureDetector, Features
from .frame import Frame, FrameBuilder
from .pose import SE3
from .stereo_matcher import StereoMatcher, StereoMatches

__all__ = [
    # Pose
    "SE3",
    # Camera
    "CameraInfo",
    "StereoCameraModel",
    "stereo_camera_info_from_euroc",
    # Features
    "FeatureDetector",
    "Features",
    # Stereo matching
    "StereoMatcher",
    "StereoMatches",
    # Frame
    "Frame",
    "FrameBuilder",
]
