"""Tests for SE3 transforms."""

import numpy as np
import pytest

from stereo_slam.frontend.pose import SE3


def rotation_z(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


class TestSE3:
    """Test suite for SE3."""

    def test_identity(self):
        """Test that identity leaves points unchanged."""
        points = np.array([[1.0, 2.0, 3.0], [-1.0, 0.5, 4.0]])
        np.testing.assert_allclose(SE3.identity().transform_points(points), points)

    def test_invalid_shapes(self):
        """Test that wrong rotation/translation shapes are rejected."""
        with pytest.raises(ValueError, match="Rotation must be 3x3"):
            SE3(rotation=np.eye(2), translation=np.zeros(3))
        with pytest.raises(ValueError, match="Translation must be"):
            SE3(rotation=np.eye(3), translation=np.zeros(4))
        with pytest.raises(ValueError, match="Transform must be 4x4"):
            SE3.from_matrix(np.eye(3))

    def test_inverse_composes_to_identity(self):
        """Test that T @ T^-1 is the identity."""
        T = SE3(rotation=rotation_z(0.3), translation=np.array([1.0, -2.0, 0.5]))
        result = T @ T.inverse()

        np.testing.assert_allclose(result.rotation, np.eye(3), atol=1e-12)
        np.testing.assert_allclose(result.translation, np.zeros(3), atol=1e-12)

    def test_compose_chains_frames(self):
        """Test that T_a_b @ T_b_c maps c-points into a."""
        T_a_b = SE3(rotation=rotation_z(np.pi / 2), translation=np.array([1.0, 0.0, 0.0]))
        T_b_c = SE3(rotation=np.eye(3), translation=np.array([1.0, 0.0, 0.0]))
        p_c = np.array([0.0, 0.0, 0.0])

        p_a = (T_a_b @ T_b_c).transform_point(p_c)
        np.testing.assert_allclose(p_a, [1.0, 1.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(p_a, T_a_b.transform_point(T_b_c.transform_point(p_c)))

    def test_matrix_roundtrip(self):
        """Test 4x4 matrix conversion."""
        T = SE3(rotation=rotation_z(-0.7), translation=np.array([0.1, 0.2, 0.3]))
        M = T.to_matrix()

        assert M.shape == (4, 4)
        np.testing.assert_allclose(M[3], [0.0, 0.0, 0.0, 1.0])
        np.testing.assert_allclose(SE3.from_matrix(M).rotation, T.rotation)

    def test_rvec_tvec_layout(self):
        """Test that OpenCV vectors come out as (3, 1) and convert back."""
        T = SE3(rotation=rotation_z(0.2), translation=np.array([0.5, 0.0, -0.1]))
        rvec, tvec = T.to_rvec_tvec()

        assert rvec.shape == (3, 1)
        assert tvec.shape == (3, 1)
        back = SE3.from_rvec_tvec(rvec, tvec)
        np.testing.assert_allclose(back.rotation, T.rotation, atol=1e-9)
        np.testing.assert_allclose(back.translation, T.translation)

    def test_from_quaternion(self):
        """Test Hamilton (w, x, y, z) quaternion conversion."""
        half = np.pi / 4
        T = SE3.from_quaternion(np.cos(half), 0.0, 0.0, np.sin(half), np.array([1.0, 2.0, 3.0]))

        np.testing.assert_allclose(T.rotation, rotation_z(np.pi / 2), atol=1e-12)
        np.testing.assert_allclose(T.position, [1.0, 2.0, 3.0])

    def test_from_quaternion_normalizes(self):
        """Test that a scaled quaternion gives the same rotation."""
        T = SE3.from_quaternion(2.0, 0.0, 0.0, 0.0, np.zeros(3))
        np.testing.assert_allclose(T.rotation, np.eye(3))

    def test_from_zero_quaternion(self):
        """Test that a zero quaternion is rejected."""
        with pytest.raises(ValueError, match="non-zero"):
            SE3.from_quaternion(0.0, 0.0, 0.0, 0.0, np.zeros(3))

    def test_is_finite(self):
        """Test finiteness check."""
        assert SE3.identity().is_finite()
        assert not SE3(rotation=np.eye(3), translation=np.array([np.nan, 0.0, 0.0])).is_finite()

    def test_position_is_a_copy(self):
        """Test that mutating the returned position leaves the pose intact."""
        T = SE3.identity()
        position = T.position
        position[0] = 5.0

        assert T.translation[0] == 0.0
