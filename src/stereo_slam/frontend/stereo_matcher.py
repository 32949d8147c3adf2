"""Left-right matching of ORB features in rectified stereo images."""

from dataclasses import dataclass

import cv2
import numpy as np

from .feature_detector import Features


@dataclass
class StereoMatches:
    """Left-right correspondences of one stereo pair.

    Attributes:
        left_indices: Indices into the left keypoints
        right_indices: Indices into the right keypoints
        pts_left: Nx2 matched left pixel coordinates
        pts_right: Nx2 matched right pixel coordinates
        disparities: N disparities (u_left - u_right)
    """

    left_indices: np.ndarray
    right_indices: np.ndarray
    pts_left: np.ndarray
    pts_right: np.ndarray
    disparities: np.ndarray

    @classmethod
    def empty(cls) -> "StereoMatches":
        return cls(
            left_indices=np.empty(0, dtype=np.int32),
            right_indices=np.empty(0, dtype=np.int32),
            pts_left=np.empty((0, 2), dtype=np.float32),
            pts_right=np.empty((0, 2), dtype=np.float32),
            disparities=np.empty(0, dtype=np.float32),
        )

    def __len__(self) -> int:
        return len(self.left_indices)


class StereoMatcher:
    """Cross-checked Hamming matcher with epipolar and disparity filters.

    In rectified images a true correspondence lies on the same row and has
    positive disparity, so both are checked after descriptor matching.
    """

    def __init__(
        self,
        max_hamming_distance: int = 50,
        epipolar_threshold: float = 2.0,
        min_disparity: float = 1.0,
        max_disparity: float = 200.0,
    ) -> None:
        """Initialize stereo matcher.

        Args:
            max_hamming_distance: Maximum descriptor distance (of 256 bits)
            epipolar_threshold: Maximum row difference in pixels
            min_disparity: Minimum disparity; filters points at infinity
            max_disparity: Maximum disparity; filters points too close
        """
        self._bf_matcher = cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=True)
        self._max_distance = max_hamming_distance
        self._epipolar_threshold = epipolar_threshold
        self._min_disparity = min_disparity
        self._max_disparity = max_disparity

    def match(self, features_left: Features, features_right: Features) -> StereoMatches:
        """Match left features against right features.

        Returns:
            StereoMatches ordered by left keypoint index
        """
        if len(features_left) == 0 or len(features_right) == 0:
            return StereoMatches.empty()

        matches = self._bf_matcher.match(
            features_left.descriptors, features_right.descriptors
        )
        if len(matches) == 0:
            return StereoMatches.empty()

        pts_left = features_left.points
        pts_right = features_right.points

        left_indices = []
        right_indices = []
        for m in sorted(matches, key=lambda m: m.queryIdx):
            if m.distance > self._max_distance:
                continue

            pt_l = pts_left[m.queryIdx]
            pt_r = pts_right[m.trainIdx]
            if abs(pt_l[1] - pt_r[1]) > self._epipolar_threshold:
                continue

            disparity = pt_l[0] - pt_r[0]
            if not self._min_disparity <= disparity <= self._max_disparity:
                continue

            left_indices.append(m.queryIdx)
            right_indices.append(m.trainIdx)

        if not left_indices:
            return StereoMatches.empty()

        left_idx = np.array(left_indices, dtype=np.int32)
        right_idx = np.array(right_indices, dtype=np.int32)
        return StereoMatches(
            left_indices=left_idx,
            right_indices=right_idx,
            pts_left=pts_left[left_idx],
            pts_right=pts_right[right_idx],
            disparities=(pts_left[left_idx, 0] - pts_right[right_idx, 0]).astype(
                np.float32
            ),
        )
