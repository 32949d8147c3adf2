"""Tests for MotionEstimator."""

import cv2
import numpy as np
import pytest

from stereo_slam.frontend.pose import SE3
from stereo_slam.tracking.motion_estimator import (
    INSUFFICIENT_CORRESPONDENCES,
    POSE_SOLVE_FAILED,
    MotionEstimator,
)

from conftest import project


@pytest.fixture
def T_fixed_current() -> SE3:
    rvec = np.array([0.0, 0.05, 0.0])
    return SE3.from_rvec_tvec(rvec, np.array([0.1, 0.0, 0.05]))


@pytest.fixture
def correspondences(scene_points, T_fixed_current) -> tuple[np.ndarray, np.ndarray]:
    """Current-frame 3D points and their exact fixed-frame projections."""
    points_current = T_fixed_current.inverse().transform_points(scene_points)
    return points_current, project(scene_points)


class TestMotionEstimator:
    """Test suite for MotionEstimator."""

    def test_exact_correspondences(self, correspondences, camera_matrix, T_fixed_current):
        """Test that noiseless data recovers T_fixed_current with all inliers."""
        points_3d, points_2d = correspondences

        result = MotionEstimator().estimate(points_3d, points_2d, camera_matrix)

        assert result.success
        assert result.reason == ""
        assert result.num_inliers == 40
        assert result.num_correspondences == 40
        np.testing.assert_allclose(result.pose.translation, T_fixed_current.translation, atol=1e-3)
        np.testing.assert_allclose(result.pose.rotation, T_fixed_current.rotation, atol=1e-3)

    def test_inlier_cap(self, correspondences, camera_matrix):
        """Test that the reported inlier set is capped at max_inliers."""
        points_3d, points_2d = correspondences

        result = MotionEstimator(min_inliers=10, max_inliers=20).estimate(
            points_3d, points_2d, camera_matrix
        )

        assert result.num_inliers == 20
        assert len(np.unique(result.inliers)) == 20
        assert np.all(np.diff(result.inliers) > 0)
        # spread over all 40 correspondences, not the first 20
        assert result.inliers[0] == 0
        assert result.inliers[-1] == 39

    def test_inlier_cap_above_count(self, correspondences, camera_matrix):
        """Test that a cap above the inlier count keeps every inlier."""
        points_3d, points_2d = correspondences

        result = MotionEstimator(min_inliers=10, max_inliers=200).estimate(
            points_3d, points_2d, camera_matrix
        )

        np.testing.assert_array_equal(result.inliers, np.arange(40))

    def test_too_few_correspondences_skip_solver(
        self, correspondences, camera_matrix, monkeypatch
    ):
        """Test that fewer than min_inliers correspondences never reach OpenCV."""
        points_3d, points_2d = correspondences

        def fail(*args, **kwargs):
            raise AssertionError("solvePnPRansac must not be called")

        monkeypatch.setattr(cv2, "solvePnPRansac", fail)

        result = MotionEstimator(min_inliers=30).estimate(
            points_3d[:29], points_2d[:29], camera_matrix
        )

        assert not result.success
        assert result.pose is None
        assert result.num_inliers == 0
        assert result.num_correspondences == 29
        assert result.reason == INSUFFICIENT_CORRESPONDENCES

    def test_initial_guess_forwarded(self, correspondences, camera_matrix, monkeypatch):
        """Test that a warm start enables useExtrinsicGuess with the guess vectors."""
        points_3d, points_2d = correspondences
        calls = []

        def fake_solve(**kwargs):
            calls.append(kwargs)
            return True, np.zeros((3, 1)), np.zeros((3, 1)), np.arange(40).reshape(-1, 1)

        monkeypatch.setattr(cv2, "solvePnPRansac", fake_solve)
        estimator = MotionEstimator()
        guess = SE3(rotation=np.eye(3), translation=np.array([0.2, 0.0, 0.0]))

        estimator.estimate(points_3d, points_2d, camera_matrix, initial_guess=guess)
        estimator.estimate(points_3d, points_2d, camera_matrix, initial_guess=None)

        assert calls[0]["useExtrinsicGuess"] is True
        np.testing.assert_allclose(calls[0]["tvec"].flatten(), [0.2, 0.0, 0.0])
        assert calls[0]["iterationsCount"] == 100
        assert calls[0]["reprojectionError"] == 1.3
        assert calls[1]["useExtrinsicGuess"] is False
        assert calls[1]["rvec"] is None

    def test_non_finite_guess_ignored(self, correspondences, camera_matrix, monkeypatch):
        """Test that a NaN guess is not used as extrinsic guess."""
        points_3d, points_2d = correspondences
        calls = []

        def fake_solve(**kwargs):
            calls.append(kwargs)
            return True, np.zeros((3, 1)), np.zeros((3, 1)), np.arange(40).reshape(-1, 1)

        monkeypatch.setattr(cv2, "solvePnPRansac", fake_solve)
        guess = SE3(rotation=np.eye(3), translation=np.array([np.nan, 0.0, 0.0]))

        MotionEstimator().estimate(points_3d, points_2d, camera_matrix, initial_guess=guess)

        assert calls[0]["useExtrinsicGuess"] is False

    def test_solver_failure(self, correspondences, camera_matrix, monkeypatch):
        """Test that solver failure gives zero inliers and no pose."""
        points_3d, points_2d = correspondences
        monkeypatch.setattr(
            cv2, "solvePnPRansac", lambda **kwargs: (False, None, None, None)
        )

        result = MotionEstimator().estimate(points_3d, points_2d, camera_matrix)

        assert not result.success
        assert result.num_inliers == 0
        assert result.reason == POSE_SOLVE_FAILED

    def test_solver_exception(self, correspondences, camera_matrix, monkeypatch):
        """Test that an OpenCV error is reported as a failed solve."""
        points_3d, points_2d = correspondences

        def raise_cv_error(**kwargs):
            raise cv2.error("degenerate configuration")

        monkeypatch.setattr(cv2, "solvePnPRansac", raise_cv_error)

        result = MotionEstimator().estimate(points_3d, points_2d, camera_matrix)

        assert not result.success
        assert result.reason == POSE_SOLVE_FAILED
