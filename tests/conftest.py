"""Shared fixtures: a synthetic rectified stereo rig and scripted frames."""

import numpy as np
import pytest

from stereo_slam.frontend.camera_model import CameraInfo
from stereo_slam.frontend.frame import Frame
from stereo_slam.frontend.pose import SE3
from stereo_slam.io.odometry import Odometry
from stereo_slam.tracking.tracker import TrackingInput

FX = 400.0
CX = 320.0
CY = 240.0
BASELINE = 0.1
WIDTH = 640
HEIGHT = 480

K = np.array([[FX, 0.0, CX], [0.0, FX, CY], [0.0, 0.0, 1.0]])


def project(points: np.ndarray) -> np.ndarray:
    """Project Nx3 camera points with K into Nx2 pixels."""
    uvw = points @ K.T
    return (uvw[:, :2] / uvw[:, 2:3]).astype(np.float32)


class ScriptedFrameFactory:
    """Frame factory returning prebuilt frames keyed by timestamp."""

    def __init__(self, frames: dict[int, Frame]):
        self.frames = frames
        self.calls = 0

    def build(self, left, right, camera_model, timestamp_ns=0):
        self.calls += 1
        return self.frames[timestamp_ns].copy()


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


@pytest.fixture
def camera_matrix() -> np.ndarray:
    return K.copy()


@pytest.fixture
def camera_infos() -> tuple[CameraInfo, CameraInfo]:
    """Rectified, distortion-free stereo pair with a 10cm baseline."""
    P_left = np.hstack([K, np.zeros((3, 1))])
    P_right = P_left.copy()
    P_right[0, 3] = -FX * BASELINE

    left = CameraInfo("cam0", WIDTH, HEIGHT, K=K, P=P_left)
    right = CameraInfo("cam1", WIDTH, HEIGHT, K=K, P=P_right)
    return left, right


@pytest.fixture
def scene_points(rng: np.random.Generator) -> np.ndarray:
    """40 points 4-8m in front of the camera."""
    n = 40
    return np.column_stack(
        [
            rng.uniform(-2.0, 2.0, n),
            rng.uniform(-1.5, 1.5, n),
            rng.uniform(4.0, 8.0, n),
        ]
    )


@pytest.fixture
def scene_descriptors(rng: np.random.Generator) -> np.ndarray:
    return rng.integers(0, 256, size=(40, 32), dtype=np.uint8)


@pytest.fixture
def frame_at():
    """Build a frame observing reference-frame points from a given camera position.

    The returned frame holds the points in its own camera frame together
    with their exact projections.
    """

    def _frame_at(
        points_ref: np.ndarray,
        descriptors: np.ndarray,
        translation=(0.0, 0.0, 0.0),
        timestamp_ns: int = 0,
    ) -> Frame:
        T_ref_camera = SE3(rotation=np.eye(3), translation=np.asarray(translation))
        camera_points = T_ref_camera.inverse().transform_points(points_ref)
        return Frame(
            keypoints=project(camera_points),
            descriptors=descriptors.copy(),
            camera_points=camera_points,
            timestamp_ns=timestamp_ns,
        )

    return _frame_at


@pytest.fixture
def make_input(camera_infos):
    """Build a TrackingInput with blank images and a translated odometry pose."""
    left_info, right_info = camera_infos

    def _make_input(
        timestamp_ns: int,
        odom_translation=(0.0, 0.0, 0.0),
        image_frame_id: str = "cam0",
        child_frame_id: str = "body",
    ) -> TrackingInput:
        odometry = Odometry(
            timestamp_ns=timestamp_ns,
            frame_id="odom",
            child_frame_id=child_frame_id,
            pose=SE3(rotation=np.eye(3), translation=np.asarray(odom_translation)),
        )
        blank = np.zeros((HEIGHT, WIDTH), dtype=np.uint8)
        return TrackingInput(
            odometry=odometry,
            left_image=blank,
            right_image=blank,
            image_frame_id=image_frame_id,
            timestamp_ns=timestamp_ns,
            left_info=left_info,
            right_info=right_info,
        )

    return _make_input


@pytest.fixture
def scripted_factory():
    return ScriptedFrameFactory
