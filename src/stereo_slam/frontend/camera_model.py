"""Stereo calibration records and the rectified stereo camera model."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import cv2
import numpy as np
import yaml


@dataclass(frozen=True)
class CameraInfo:
    """Calibration record for one camera of a stereo pair.

    Same layout as a ROS ``sensor_msgs/CameraInfo`` message.

    Attributes:
        frame_id: Optical frame name of the camera
        width: Image width in pixels
        height: Image height in pixels
        K: 3x3 raw intrinsic matrix
        D: Distortion coefficients (plumb bob, 4 or 5 values)
        R: 3x3 rectification rotation
        P: 3x4 projection matrix of the rectified camera. For the right
            camera, P[0, 3] = -fx * baseline.
    """

    frame_id: str
    width: int
    height: int
    K: np.ndarray
    D: np.ndarray = field(default_factory=lambda: np.zeros(5))
    R: np.ndarray = field(default_factory=lambda: np.eye(3))
    P: np.ndarray = field(default_factory=lambda: np.zeros((3, 4)))

    def __post_init__(self) -> None:
        # frozen dataclass: normalize arrays through object.__setattr__
        object.__setattr__(self, "K", np.asarray(self.K, dtype=np.float64).reshape(3, 3))
        object.__setattr__(self, "D", np.asarray(self.D, dtype=np.float64).flatten())
        object.__setattr__(self, "R", np.asarray(self.R, dtype=np.float64).reshape(3, 3))
        object.__setattr__(self, "P", np.asarray(self.P, dtype=np.float64).reshape(3, 4))

    @property
    def image_size(self) -> tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)


class StereoCameraModel:
    """Rectified stereo camera built from a left/right calibration pair.

    Holds the intrinsic matrix used for pose solving, the stereo baseline,
    undistort/rectify maps for raw images, and linear triangulation of
    rectified left-right correspondences.
    """

    def __init__(self, left: CameraInfo, right: CameraInfo) -> None:
        """Initialize from calibration records.

        Args:
            left: Left camera calibration
            right: Right camera calibration

        Raises:
            ValueError: If the projection matrices are invalid
        """
        self._left = left
        self._right = right

        fx = left.P[0, 0]
        if fx <= 0 or left.P[1, 1] <= 0:
            raise ValueError(
                f"Invalid left projection matrix for '{left.frame_id}': "
                f"focal length must be positive"
            )
        if right.P[0, 0] <= 0:
            raise ValueError(
                f"Invalid right projection matrix for '{right.frame_id}': "
                f"focal length must be positive"
            )

        self._baseline = float(-right.P[0, 3] / right.P[0, 0])
        if self._baseline <= 0:
            raise ValueError(
                f"Right projection matrix has no positive baseline "
                f"(P[0,3]={right.P[0, 3]})"
            )

        self._camera_matrix = left.P[:, :3].copy()
        self._maps: tuple[np.ndarray, ...] | None = None

    @classmethod
    def from_camera_info(cls, left: CameraInfo, right: CameraInfo) -> StereoCameraModel:
        """Build the camera model from a left/right calibration pair."""
        return cls(left, right)

    def _compute_rectification_maps(self) -> tuple[np.ndarray, ...]:
        """Compute undistort + rectify lookup tables for both cameras."""
        maps = []
        for info in (self._left, self._right):
            map_x, map_y = cv2.initUndistortRectifyMap(
                cameraMatrix=info.K,
                distCoeffs=info.D,
                R=info.R,
                newCameraMatrix=info.P[:, :3],
                size=info.image_size,
                m1type=cv2.CV_32FC1,
            )
            maps.extend([map_x, map_y])
        return tuple(maps)

    def rectify_images(
        self, left: np.ndarray, right: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]:
        """Undistort and rectify a raw stereo pair.

        Maps are computed on first use.

        Returns:
            Tuple of (rectified_left, rectified_right)
        """
        if self._maps is None:
            self._maps = self._compute_rectification_maps()
        map1_x, map1_y, map2_x, map2_y = self._maps

        left_rect = cv2.remap(left, map1_x, map1_y, interpolation=cv2.INTER_LINEAR)
        right_rect = cv2.remap(right, map2_x, map2_y, interpolation=cv2.INTER_LINEAR)
        return left_rect, right_rect

    def triangulate_points(
        self, pts_left: np.ndarray, pts_right: np.ndarray
    ) -> np.ndarray:
        """Triangulate rectified correspondences into the left camera frame.

        Args:
            pts_left: Nx2 points in the rectified left image
            pts_right: Nx2 points in the rectified right image

        Returns:
            Nx3 points in the left camera frame
        """
        if len(pts_left) == 0:
            return np.empty((0, 3), dtype=np.float64)

        points_4d = cv2.triangulatePoints(
            self._left.P,
            self._right.P,
            np.asarray(pts_left, dtype=np.float64).T,
            np.asarray(pts_right, dtype=np.float64).T,
        )
        return (points_4d[:3, :] / points_4d[3:4, :]).T

    @property
    def camera_matrix(self) -> np.ndarray:
        """Return the 3x3 intrinsic matrix of the rectified left camera."""
        return self._camera_matrix.copy()

    @property
    def projection_left(self) -> np.ndarray:
        return self._left.P.copy()

    @property
    def projection_right(self) -> np.ndarray:
        return self._right.P.copy()

    @property
    def baseline(self) -> float:
        """Return stereo baseline in meters."""
        return self._baseline

    @property
    def image_size(self) -> tuple[int, int]:
        return self._left.image_size

    @property
    def frame_id(self) -> str:
        """Return the optical frame of the left camera."""
        return self._left.frame_id


def _load_euroc_sensor(yaml_path: str | Path) -> tuple[np.ndarray, np.ndarray, np.ndarray, tuple[int, int]]:
    """Parse a EuRoC sensor.yaml into (K, D, T_BS, resolution).

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If the file format is invalid
    """
    path = Path(yaml_path)
    if not path.exists():
        raise FileNotFoundError(f"Calibration file not found: {yaml_path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    intrinsics = data.get("intrinsics")
    if intrinsics is None or len(intrinsics) != 4:
        raise ValueError(f"Invalid intrinsics in {yaml_path}")
    fu, fv, cu, cv = intrinsics
    K = np.array([[fu, 0.0, cu], [0.0, fv, cv], [0.0, 0.0, 1.0]], dtype=np.float64)

    distortion = data.get("distortion_coefficients")
    if distortion is None or len(distortion) != 4:
        raise ValueError(f"Invalid distortion coefficients in {yaml_path}")
    D = np.array(distortion, dtype=np.float64)

    T_BS_data = (data.get("T_BS") or {}).get("data")
    if T_BS_data is None or len(T_BS_data) != 16:
        raise ValueError(f"Invalid T_BS transform in {yaml_path}")
    T_BS = np.array(T_BS_data, dtype=np.float64).reshape(4, 4)

    resolution = data.get("resolution")
    if resolution is None or len(resolution) != 2:
        raise ValueError(f"Invalid resolution in {yaml_path}")

    return K, D, T_BS, (int(resolution[0]), int(resolution[1]))


def stereo_camera_info_from_euroc(
    cam0_yaml_path: str | Path,
    cam1_yaml_path: str | Path,
    left_frame_id: str = "cam0",
    right_frame_id: str = "cam1",
) -> tuple[CameraInfo, CameraInfo]:
    """Build a rectified CameraInfo pair from EuRoC calibration files.

    Relative pose between the cameras is ``inv(T_BS_cam1) @ T_BS_cam0``.
    Rectification uses ``cv2.stereoRectify`` with zero disparity and
    cropping to valid pixels.

    Returns:
        Tuple of (left_info, right_info)
    """
    K0, D0, T_BS0, size = _load_euroc_sensor(cam0_yaml_path)
    K1, D1, T_BS1, _ = _load_euroc_sensor(cam1_yaml_path)

    T_cam1_cam0 = np.linalg.inv(T_BS1) @ T_BS0
    R1, R2, P1, P2, _Q, _roi1, _roi2 = cv2.stereoRectify(
        cameraMatrix1=K0,
        distCoeffs1=D0,
        cameraMatrix2=K1,
        distCoeffs2=D1,
        imageSize=size,
        R=T_cam1_cam0[:3, :3],
        T=T_cam1_cam0[:3, 3:4],
        flags=cv2.CALIB_ZERO_DISPARITY,
        alpha=0,
    )

    width, height = size
    left = CameraInfo(left_frame_id, width, height, K=K0, D=D0, R=R1, P=P1)
    right = CameraInfo(right_frame_id, width, height, K=K1, D=D1, R=R2, P=P2)
    return left, right
