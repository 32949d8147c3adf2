"""Odometry samples and a EuRoC-backed odometry source.

The tracker only needs a coarse odometry estimate of the robot base. For
EuRoC sequences the body poses in ``state_groundtruth_estimate0`` serve
as that estimate.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from ..frontend.pose import SE3


@dataclass(frozen=True)
class Odometry:
    """One odometry sample.

    Attributes:
        timestamp_ns: Sample time in nanoseconds
        frame_id: Odometry (parent) frame, e.g. "odom" or "world"
        child_frame_id: Robot base frame whose pose is reported
        pose: T_odom_base
    """

    timestamp_ns: int
    frame_id: str
    child_frame_id: str
    pose: SE3


class OdometryReader:
    """Interpolated body poses from a EuRoC ground truth CSV.

    CSV format:
        #timestamp, p_RS_R_x, p_RS_R_y, p_RS_R_z, q_RS_w, q_RS_x, q_RS_y, q_RS_z, ...

    Poses are aligned lazily so that the first queried timestamp becomes
    the identity, matching a fresh odometry source.
    """

    def __init__(
        self,
        csv_path: str | Path,
        frame_id: str = "world",
        child_frame_id: str = "body",
    ) -> None:
        self._csv_path = Path(csv_path)
        if not self._csv_path.exists():
            raise FileNotFoundError(
                f"Odometry file not found: {self._csv_path}\n"
                f"Expected EuRoC format with state_groundtruth_estimate0/data.csv"
            )

        self._frame_id = frame_id
        self._child_frame_id = child_frame_id
        self._timestamps: list[int] = []
        self._poses: list[SE3] = []
        self._load()

        self._first_pose_inv: SE3 | None = None

    def _load(self) -> None:
        with open(self._csv_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                parts = line.split(",")
                if len(parts) < 8:
                    continue

                try:
                    timestamp_ns = int(parts[0])
                    px, py, pz, qw, qx, qy, qz = (float(v) for v in parts[1:8])
                except ValueError:
                    continue

                self._timestamps.append(timestamp_ns)
                self._poses.append(
                    SE3.from_quaternion(qw, qx, qy, qz, np.array([px, py, pz]))
                )

    def _raw_pose_at(self, timestamp_ns: int) -> SE3 | None:
        """Interpolate the unaligned pose; None outside the recorded range."""
        if not self._timestamps:
            return None
        if timestamp_ns < self._timestamps[0] or timestamp_ns > self._timestamps[-1]:
            return None

        idx = bisect.bisect_left(self._timestamps, timestamp_ns)
        if self._timestamps[idx] == timestamp_ns:
            return self._poses[idx]

        t0 = self._timestamps[idx - 1]
        t1 = self._timestamps[idx]
        alpha = (timestamp_ns - t0) / (t1 - t0)

        position = (1 - alpha) * self._poses[idx - 1].translation + alpha * self._poses[
            idx
        ].translation
        # nearest rotation; samples are ~200Hz so the error is negligible
        rotation = self._poses[idx - 1].rotation if alpha < 0.5 else self._poses[idx].rotation
        return SE3(rotation=rotation, translation=position)

    def get_odometry_at(self, timestamp_ns: int) -> Odometry | None:
        """Return the aligned odometry sample at a timestamp.

        Returns:
            Odometry, or None if the timestamp is outside the recorded range
        """
        raw = self._raw_pose_at(timestamp_ns)
        if raw is None:
            return None

        if self._first_pose_inv is None:
            self._first_pose_inv = raw.inverse()

        return Odometry(
            timestamp_ns=timestamp_ns,
            frame_id=self._frame_id,
            child_frame_id=self._child_frame_id,
            pose=self._first_pose_inv @ raw,
        )

    @property
    def start_timestamp(self) -> int | None:
        return self._timestamps[0] if self._timestamps else None

    @property
    def end_timestamp(self) -> int | None:
        return self._timestamps[-1] if self._timestamps else None

    def __len__(self) -> int:
        return len(self._poses)
