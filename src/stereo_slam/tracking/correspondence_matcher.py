"""Descriptor correspondences between the current and the fixed frame."""

from dataclasses import dataclass

import cv2
import numpy as np


@dataclass
class Correspondences:
    """Ordered (fixed index, current index) pairs from one matching pass.

    Attributes:
        fixed_indices: Indices into the fixed frame's keypoints / points
        current_indices: Indices into the current frame's keypoints / points
        distances: Hamming distance of each accepted pair
    """

    fixed_indices: np.ndarray  # (N,) int
    current_indices: np.ndarray  # (N,) int
    distances: np.ndarray  # (N,) float32

    @classmethod
    def empty(cls) -> "Correspondences":
        return cls(
            fixed_indices=np.empty(0, dtype=np.int32),
            current_indices=np.empty(0, dtype=np.int32),
            distances=np.empty(0, dtype=np.float32),
        )

    def __len__(self) -> int:
        return len(self.current_indices)


class CorrespondenceMatcher:
    """Brute-force Hamming matcher with a permissive ratio test.

    Every current descriptor is matched against its two nearest fixed
    descriptors. The nearest one is kept when

        best_distance <= ratio * second_best_distance

    The default ratio of 0.9 lets through more matches than a classic
    Lowe test. Outliers are left to RANSAC in the motion estimator.
    Several current descriptors may match the same fixed descriptor.
    """

    def __init__(self, ratio: float = 0.9) -> None:
        """Initialize correspondence matcher.

        Args:
            ratio: Distinctiveness ratio in (0, 1]
        """
        if not 0.0 < ratio <= 1.0:
            raise ValueError(f"ratio must be in (0, 1], got {ratio}")
        self._bf_matcher = cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=False)
        self._ratio = ratio

    def match(
        self,
        current_descriptors: np.ndarray | None,
        fixed_descriptors: np.ndarray | None,
    ) -> Correspondences:
        """Find correspondences from the current frame into the fixed frame.

        Args:
            current_descriptors: Nx32 uint8 descriptors of the current frame
            fixed_descriptors: Mx32 uint8 descriptors of the fixed frame

        Returns:
            Correspondences in current-descriptor order
        """
        if (
            current_descriptors is None
            or fixed_descriptors is None
            or len(current_descriptors) == 0
            or len(fixed_descriptors) == 0
        ):
            return Correspondences.empty()

        knn_matches = self._bf_matcher.knnMatch(
            np.ascontiguousarray(current_descriptors, dtype=np.uint8),
            np.ascontiguousarray(fixed_descriptors, dtype=np.uint8),
            k=2,
        )

        fixed_indices = []
        current_indices = []
        distances = []
        for pair in knn_matches:
            if len(pair) < 2:
                continue
            best, second = pair[0], pair[1]
            if best.distance <= self._ratio * second.distance:
                current_indices.append(best.queryIdx)
                fixed_indices.append(best.trainIdx)
                distances.append(best.distance)

        if not current_indices:
            return Correspondences.empty()

        return Correspondences(
            fixed_indices=np.array(fixed_indices, dtype=np.int32),
            current_indices=np.array(current_indices, dtype=np.int32),
            distances=np.array(distances, dtype=np.float32),
        )

    @property
    def ratio(self) -> float:
        return self._ratio
