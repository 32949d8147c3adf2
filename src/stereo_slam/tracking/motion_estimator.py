"""Frame-to-frame motion estimation with PnP + RANSAC."""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from ..frontend.pose import SE3

INSUFFICIENT_CORRESPONDENCES = "insufficient_correspondences"
POSE_SOLVE_FAILED = "pose_solve_failed"


@dataclass
class PnPResult:
    """Outcome of one motion estimate.

    Attributes:
        success: True if a pose with at least one inlier was found
        pose: T_fixed_current, maps current-frame camera points into the
            fixed camera. None on failure.
        inliers: Indices (into the correspondence arrays) of the inliers
        num_inliers: ``len(inliers)``
        num_correspondences: Correspondences offered to the solver
        reason: Failure tag, empty on success
    """

    success: bool
    pose: SE3 | None
    inliers: np.ndarray  # (K,) int
    num_inliers: int
    num_correspondences: int
    reason: str = ""

    @classmethod
    def failed(cls, num_correspondences: int, reason: str) -> PnPResult:
        return cls(
            success=False,
            pose=None,
            inliers=np.empty(0, dtype=np.int32),
            num_inliers=0,
            num_correspondences=num_correspondences,
            reason=reason,
        )


class MotionEstimator:
    """Robust perspective pose solve between the fixed and current frame.

    Object points are the current frame's camera-space 3D points and image
    points are the fixed frame's keypoints, so the solved transform maps
    the current camera into the fixed camera (T_fixed_current).
    """

    def __init__(
        self,
        min_inliers: int = 30,
        max_inliers: int = 200,
        max_iterations: int = 100,
        reprojection_threshold: float = 1.3,
    ) -> None:
        """Initialize motion estimator.

        Args:
            min_inliers: Below this many correspondences the solve is skipped
            max_inliers: Cap on the size of the reported inlier set. The solver
                still scores every correspondence; only the returned indices
                are thinned.
            max_iterations: RANSAC iterations
            reprojection_threshold: RANSAC inlier threshold in pixels
        """
        self._min_inliers = min_inliers
        self._max_inliers = max_inliers
        self._max_iterations = max_iterations
        self._reprojection_threshold = reprojection_threshold

    def estimate(
        self,
        points_3d: np.ndarray,
        points_2d: np.ndarray,
        camera_matrix: np.ndarray,
        initial_guess: SE3 | None = None,
    ) -> PnPResult:
        """Estimate T_fixed_current from 3D-2D correspondences.

        Args:
            points_3d: Nx3 current-frame camera points
            points_2d: Nx2 matching fixed-frame keypoints
            camera_matrix: 3x3 rectified intrinsics
            initial_guess: Previous T_fixed_current used as extrinsic guess

        Returns:
            PnPResult; failures carry zero inliers and a reason tag
        """
        n_points = len(points_3d)
        if n_points < self._min_inliers:
            return PnPResult.failed(n_points, INSUFFICIENT_CORRESPONDENCES)

        object_points = np.asarray(points_3d, dtype=np.float64).reshape(-1, 1, 3)
        image_points = np.asarray(points_2d, dtype=np.float64).reshape(-1, 1, 2)
        camera_matrix = np.asarray(camera_matrix, dtype=np.float64)

        rvec_init = None
        tvec_init = None
        use_guess = initial_guess is not None and initial_guess.is_finite()
        if use_guess:
            rvec_init, tvec_init = initial_guess.to_rvec_tvec()

        try:
            success, rvec, tvec, inliers = cv2.solvePnPRansac(
                objectPoints=object_points,
                imagePoints=image_points,
                cameraMatrix=camera_matrix,
                distCoeffs=None,
                rvec=rvec_init,
                tvec=tvec_init,
                useExtrinsicGuess=use_guess,
                iterationsCount=self._max_iterations,
                reprojectionError=self._reprojection_threshold,
                flags=cv2.SOLVEPNP_ITERATIVE,
            )
        except cv2.error:
            return PnPResult.failed(n_points, POSE_SOLVE_FAILED)

        if not success or inliers is None or len(inliers) == 0:
            return PnPResult.failed(n_points, POSE_SOLVE_FAILED)
        if not np.isfinite(rvec).all() or not np.isfinite(tvec).all():
            return PnPResult.failed(n_points, POSE_SOLVE_FAILED)

        inlier_indices = self._cap_inliers(np.sort(inliers.flatten().astype(np.int32)))

        return PnPResult(
            success=True,
            pose=SE3.from_rvec_tvec(rvec, tvec),
            inliers=inlier_indices,
            num_inliers=len(inlier_indices),
            num_correspondences=n_points,
        )

    def _cap_inliers(self, inlier_indices: np.ndarray) -> np.ndarray:
        """Thin a sorted inlier set to at most max_inliers, evenly spread over it."""
        n = len(inlier_indices)
        if n <= self._max_inliers:
            return inlier_indices
        keep = np.round(np.linspace(0, n - 1, self._max_inliers)).astype(np.int64)
        return inlier_indices[keep]

    @property
    def min_inliers(self) -> int:
        return self._min_inliers

    @property
    def max_inliers(self) -> int:
        return self._max_inliers

    @property
    def reprojection_threshold(self) -> float:
        return self._reprojection_threshold
