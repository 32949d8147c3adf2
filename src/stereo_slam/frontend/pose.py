"""SE(3) rigid transforms used for odometry, camera and frame poses."""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np


@dataclass
class SE3:
    """Rigid body transformation (rotation + translation).

    An ``SE3`` named ``T_a_b`` maps points expressed in frame ``b`` into
    frame ``a``:

        p_a = R @ p_b + t

    Camera and frame poses are stored as ``T_world_camera``.

    Attributes:
        rotation: 3x3 orthonormal rotation matrix
        translation: (3,) translation vector
    """

    rotation: np.ndarray
    translation: np.ndarray

    def __post_init__(self) -> None:
        """Coerce to float64 and check shapes."""
        self.rotation = np.asarray(self.rotation, dtype=np.float64)
        self.translation = np.asarray(self.translation, dtype=np.float64).flatten()

        if self.rotation.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got {self.rotation.shape}")
        if self.translation.shape != (3,):
            raise ValueError(
                f"Translation must be (3,), got {self.translation.shape}"
            )

    @classmethod
    def identity(cls) -> SE3:
        """Return the identity transform."""
        return cls(rotation=np.eye(3), translation=np.zeros(3))

    @classmethod
    def from_Rt(cls, R: np.ndarray, t: np.ndarray) -> SE3:
        """Create SE3 from a rotation matrix and translation vector."""
        return cls(rotation=R, translation=t)

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> SE3:
        """Create SE3 from a 4x4 homogeneous matrix [[R, t], [0, 1]]."""
        T = np.asarray(T)
        if T.shape != (4, 4):
            raise ValueError(f"Transform must be 4x4, got {T.shape}")
        return cls(rotation=T[:3, :3], translation=T[:3, 3])

    @classmethod
    def from_rvec_tvec(cls, rvec: np.ndarray, tvec: np.ndarray) -> SE3:
        """Create SE3 from an OpenCV Rodrigues vector and translation.

        ``cv2.solvePnP`` returns the transform that maps object points into
        the camera that observed the image points, so the result is
        ``T_camera_object``.
        """
        R, _ = cv2.Rodrigues(np.asarray(rvec, dtype=np.float64).reshape(3, 1))
        return cls(rotation=R, translation=np.asarray(tvec).flatten())

    @classmethod
    def from_quaternion(
        cls,
        qw: float,
        qx: float,
        qy: float,
        qz: float,
        translation: np.ndarray,
    ) -> SE3:
        """Create SE3 from a Hamilton quaternion (w, x, y, z) and translation.

        Odometry messages and EuRoC ground truth both use this convention.
        The quaternion is normalized first.
        """
        norm = np.sqrt(qw * qw + qx * qx + qy * qy + qz * qz)
        if norm == 0.0:
            raise ValueError("Quaternion must be non-zero")
        w, x, y, z = qw / norm, qx / norm, qy / norm, qz / norm

        R = np.array(
            [
                [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
                [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
                [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
            ],
            dtype=np.float64,
        )
        return cls(rotation=R, translation=translation)

    def to_matrix(self) -> np.ndarray:
        """Return the 4x4 homogeneous matrix."""
        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.translation
        return T

    def to_rvec_tvec(self) -> tuple[np.ndarray, np.ndarray]:
        """Return (rvec, tvec) as (3, 1) arrays, the layout OpenCV expects."""
        rvec, _ = cv2.Rodrigues(self.rotation)
        return rvec.reshape(3, 1), self.translation.reshape(3, 1).copy()

    def inverse(self) -> SE3:
        """Return T^-1 = [R^T, -R^T t]."""
        R_inv = self.rotation.T
        return SE3(rotation=R_inv, translation=-R_inv @ self.translation)

    def compose(self, other: SE3) -> SE3:
        """Return ``self @ other``.

        Chains frames left to right: ``T_a_b.compose(T_b_c)`` is ``T_a_c``.
        """
        return SE3(
            rotation=self.rotation @ other.rotation,
            translation=self.rotation @ other.translation + self.translation,
        )

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """Apply the transform to an Nx3 array of points."""
        points = np.asarray(points, dtype=np.float64)
        if points.ndim == 1:
            points = points.reshape(1, 3)
        if points.shape[1] != 3:
            raise ValueError(f"Points must be Nx3, got {points.shape}")
        return points @ self.rotation.T + self.translation

    def transform_point(self, point: np.ndarray) -> np.ndarray:
        """Apply the transform to a single 3D point."""
        return self.rotation @ np.asarray(point, dtype=np.float64).flatten() + self.translation

    def is_finite(self) -> bool:
        """Return True if rotation and translation hold only finite values."""
        return bool(np.isfinite(self.rotation).all() and np.isfinite(self.translation).all())

    @property
    def position(self) -> np.ndarray:
        """Return the translation (frame origin in the parent frame)."""
        return self.translation.copy()

    def __repr__(self) -> str:
        pos = self.translation
        return f"SE3(position=[{pos[0]:.3f}, {pos[1]:.3f}, {pos[2]:.3f}])"

    def __matmul__(self, other: SE3) -> SE3:
        return self.compose(other)
