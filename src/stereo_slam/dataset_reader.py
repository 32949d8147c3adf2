"""EuRoC MAV dataset reader producing synchronized tracking inputs."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import cv2
import numpy as np
import yaml

from .frontend.camera_model import StereoCameraModel, stereo_camera_info_from_euroc
from .frontend.pose import SE3
from .io.odometry import OdometryReader
from .tracking.tracker import TrackingInput
from .tracking.transforms import TransformTree


class DatasetReader:
    """Reader for EuRoC MAV stereo sequences.

    Each item is a :class:`TrackingInput` bundling:
    - the rectified cam0/cam1 pair
    - the rectified calibration of both cameras
    - an odometry sample of the body, taken from the ground truth

    Frames outside the ground truth time range are skipped.
    """

    def __init__(
        self,
        dataset_path: str = "data/euroc/MH_01_easy/mav0",
        camera_frame_id: str = "cam0",
        odometry_frame_id: str = "world",
        base_frame_id: str = "body",
    ) -> None:
        """Initialize reader with path to dataset.

        Args:
            dataset_path: Path to mav0 directory
            camera_frame_id: Frame name given to the left camera
            odometry_frame_id: Frame name of the odometry (parent) frame
            base_frame_id: Frame name of the body (odometry child) frame

        Raises:
            FileNotFoundError: If dataset path or required files don't exist
            ValueError: If data.csv or the calibration is invalid
        """
        self.dataset_path = Path(dataset_path)
        self.cam0_path = self.dataset_path / "cam0"
        self.cam1_path = self.dataset_path / "cam1"
        self.cam0_data_path = self.cam0_path / "data"
        self.cam1_data_path = self.cam1_path / "data"
        self.odometry_path = self.dataset_path / "state_groundtruth_estimate0" / "data.csv"

        self._camera_frame_id = camera_frame_id
        self._base_frame_id = base_frame_id

        self._validate_paths()

        self._image_list = self._load_image_list()
        if not self._image_list:
            raise ValueError(f"No images found in {self.cam0_path / 'data.csv'}")

        self._left_info, self._right_info = stereo_camera_info_from_euroc(
            self.cam0_path / "sensor.yaml",
            self.cam1_path / "sensor.yaml",
            left_frame_id=camera_frame_id,
            right_frame_id="cam1",
        )
        self._camera_model = StereoCameraModel.from_camera_info(
            self._left_info, self._right_info
        )
        self._odometry = OdometryReader(
            self.odometry_path, frame_id=odometry_frame_id, child_frame_id=base_frame_id
        )

        self._current_idx = 0

    def _validate_paths(self) -> None:
        """Validate that all required paths exist."""
        if not self.dataset_path.exists():
            raise FileNotFoundError(f"Dataset path does not exist: {self.dataset_path}")

        for name, path in (
            ("cam0", self.cam0_path),
            ("cam1", self.cam1_path),
            ("cam0/data", self.cam0_data_path),
            ("cam1/data", self.cam1_data_path),
        ):
            if not path.exists():
                raise FileNotFoundError(f"{name} directory not found: {path}")

        for name, path in (
            ("cam0/sensor.yaml", self.cam0_path / "sensor.yaml"),
            ("cam1/sensor.yaml", self.cam1_path / "sensor.yaml"),
            ("cam0/data.csv", self.cam0_path / "data.csv"),
        ):
            if not path.exists():
                raise FileNotFoundError(f"{name} not found: {path}")

        if not self.odometry_path.exists():
            raise FileNotFoundError(
                f"state_groundtruth_estimate0/data.csv not found: {self.odometry_path}\n"
                f"It is used as the odometry source."
            )

    def _load_image_list(self) -> list[tuple[int, str]]:
        """Parse cam0/data.csv into (timestamp_ns, filename) tuples."""
        csv_path = self.cam0_path / "data.csv"
        image_list = []

        with open(csv_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                try:
                    timestamp_str, filename = line.split(",")
                    image_list.append((int(timestamp_str.strip()), filename.strip()))
                except ValueError as e:
                    raise ValueError(
                        f"Invalid line in {csv_path}: '{line}'\n"
                        f"Expected format: timestamp,filename"
                    ) from e

        return image_list

    def _load_image_pair(self, filename: str) -> tuple[np.ndarray, np.ndarray]:
        """Load a raw grayscale stereo pair.

        Raises:
            FileNotFoundError: If either image file doesn't exist
            ValueError: If image decoding fails
        """
        left_path = self.cam0_data_path / filename
        right_path = self.cam1_data_path / filename

        if not left_path.exists():
            raise FileNotFoundError(f"Left camera image not found: {left_path}")
        if not right_path.exists():
            raise FileNotFoundError(f"Right camera image not found: {right_path}")

        left_img = cv2.imread(str(left_path), cv2.IMREAD_GRAYSCALE)
        right_img = cv2.imread(str(right_path), cv2.IMREAD_GRAYSCALE)

        if left_img is None:
            raise ValueError(f"Failed to load left image: {left_path}")
        if right_img is None:
            raise ValueError(f"Failed to load right image: {right_path}")

        return left_img, right_img

    def get_next_input(self) -> TrackingInput | None:
        """Return the next synchronized input, or None when exhausted."""
        while self._current_idx < len(self._image_list):
            timestamp_ns, filename = self._image_list[self._current_idx]
            self._current_idx += 1

            odometry = self._odometry.get_odometry_at(timestamp_ns)
            if odometry is None:
                continue

            left, right = self._load_image_pair(filename)
            left_rect, right_rect = self._camera_model.rectify_images(left, right)

            return TrackingInput(
                odometry=odometry,
                left_image=left_rect,
                right_image=right_rect,
                image_frame_id=self._camera_frame_id,
                timestamp_ns=timestamp_ns,
                left_info=self._left_info,
                right_info=self._right_info,
            )
        return None

    def transform_tree(self) -> TransformTree:
        """Return a transform tree holding the body to cam0 extrinsics.

        The rectified camera frame is rotated by the rectification R1
        with respect to the raw cam0 frame.
        """
        with open(self.cam0_path / "sensor.yaml", "r") as f:
            data = yaml.safe_load(f)
        T_body_cam0 = SE3.from_matrix(np.array(data["T_BS"]["data"], dtype=np.float64).reshape(4, 4))
        # p_rect = R1 @ p_raw  =>  T_raw_rect = [R1^T, 0]
        T_cam0_rect = SE3(rotation=self._left_info.R.T, translation=np.zeros(3))

        tree = TransformTree()
        tree.set_transform(self._base_frame_id, self._camera_frame_id, T_body_cam0 @ T_cam0_rect)
        return tree

    @property
    def camera_model(self) -> StereoCameraModel:
        return self._camera_model

    def reset(self) -> None:
        """Reset iterator to beginning of dataset."""
        self._current_idx = 0

    def __len__(self) -> int:
        """Return total number of stereo pairs listed in data.csv."""
        return len(self._image_list)

    def __iter__(self) -> Iterator[TrackingInput]:
        self.reset()
        return self

    def __next__(self) -> TrackingInput:
        item = self.get_next_input()
        if item is None:
            raise StopIteration
        return item
