"""ORB detection for the two images of a rectified stereo pair."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import cv2
import numpy as np

if TYPE_CHECKING:
    from ..config import TrackingConfig

DESCRIPTOR_SIZE = 32


@dataclass
class Features:
    """Keypoint positions and ORB descriptors of one image.

    Rows of ``points`` and ``descriptors`` are index-aligned. An image
    without features yields (0, 2) and (0, 32) arrays, never None.

    Attributes:
        points: Nx2 pixel coordinates (float32)
        descriptors: Nx32 binary descriptors (uint8)
    """

    points: np.ndarray
    descriptors: np.ndarray

    @classmethod
    def empty(cls) -> Features:
        return cls(
            points=np.empty((0, 2), dtype=np.float32),
            descriptors=np.empty((0, DESCRIPTOR_SIZE), dtype=np.uint8),
        )

    def __len__(self) -> int:
        return len(self.points)


class FeatureDetector:
    """ORB detector applied with the same settings to left and right images."""

    def __init__(
        self,
        n_features: int = 1000,
        scale_factor: float = 1.2,
        n_levels: int = 8,
        fast_threshold: int = 20,
    ) -> None:
        """Initialize ORB detector.

        Args:
            n_features: Maximum number of features kept per image
            scale_factor: Pyramid decimation ratio (>1.0)
            n_levels: Number of pyramid levels
            fast_threshold: FAST corner threshold
        """
        if n_features <= 0:
            raise ValueError(f"n_features must be positive, got {n_features}")
        self._n_features = n_features
        self._orb = cv2.ORB_create(
            nfeatures=n_features,
            scaleFactor=scale_factor,
            nlevels=n_levels,
            fastThreshold=fast_threshold,
        )

    @classmethod
    def from_config(cls, config: TrackingConfig) -> FeatureDetector:
        return cls(n_features=config.n_features)

    @property
    def n_features(self) -> int:
        return self._n_features

    def detect(self, image: np.ndarray) -> Features:
        """Detect keypoints and compute descriptors on a grayscale image."""
        if image.ndim == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

        keypoints, descriptors = self._orb.detectAndCompute(image, None)
        if not keypoints or descriptors is None:
            return Features.empty()

        points = np.array([kp.pt for kp in keypoints], dtype=np.float32)
        return Features(points=points, descriptors=descriptors)

    def detect_stereo(
        self, left: np.ndarray, right: np.ndarray
    ) -> tuple[Features, Features]:
        """Detect features in both images of a stereo pair."""
        return self.detect(left), self.detect(right)
