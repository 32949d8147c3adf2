"""Tests for OdometryReader."""

from pathlib import Path

import numpy as np
import pytest

from stereo_slam.io.odometry import OdometryReader

HEADER = (
    "#timestamp, p_RS_R_x [m], p_RS_R_y [m], p_RS_R_z [m], "
    "q_RS_w [], q_RS_x [], q_RS_y [], q_RS_z []\n"
)


@pytest.fixture
def groundtruth_csv(tmp_path: Path) -> Path:
    path = tmp_path / "data.csv"
    path.write_text(
        HEADER
        + "1000,1.0,2.0,3.0,1.0,0.0,0.0,0.0\n"
        + "2000,2.0,2.0,3.0,1.0,0.0,0.0,0.0\n"
        + "3000,2.0,4.0,3.0,0.0,0.0,0.0,1.0\n"
    )
    return path


class TestOdometryReader:
    """Test suite for OdometryReader."""

    def test_missing_file(self, tmp_path: Path):
        """Test that a missing CSV is reported."""
        with pytest.raises(FileNotFoundError, match="Odometry file not found"):
            OdometryReader(tmp_path / "missing.csv")

    def test_load(self, groundtruth_csv: Path):
        """Test parsing of the ground truth CSV."""
        reader = OdometryReader(groundtruth_csv)

        assert len(reader) == 3
        assert reader.start_timestamp == 1000
        assert reader.end_timestamp == 3000

    def test_first_query_is_identity(self, groundtruth_csv: Path):
        """Test that odometry starts at the origin."""
        reader = OdometryReader(groundtruth_csv, frame_id="odom", child_frame_id="base")

        odometry = reader.get_odometry_at(1000)

        assert odometry.frame_id == "odom"
        assert odometry.child_frame_id == "base"
        assert odometry.timestamp_ns == 1000
        np.testing.assert_allclose(odometry.pose.translation, np.zeros(3))
        np.testing.assert_allclose(odometry.pose.rotation, np.eye(3))

    def test_interpolation(self, groundtruth_csv: Path):
        """Test linear interpolation of the position between samples."""
        reader = OdometryReader(groundtruth_csv)
        reader.get_odometry_at(1000)

        odometry = reader.get_odometry_at(1500)

        np.testing.assert_allclose(odometry.pose.translation, [0.5, 0.0, 0.0])

    def test_out_of_range(self, groundtruth_csv: Path):
        """Test that timestamps outside the recording yield None."""
        reader = OdometryReader(groundtruth_csv)

        assert reader.get_odometry_at(999) is None
        assert reader.get_odometry_at(3001) is None

    def test_malformed_lines_skipped(self, tmp_path: Path):
        """Test that short or non-numeric lines are ignored."""
        path = tmp_path / "data.csv"
        path.write_text(HEADER + "1000,1.0,2.0\nabc,1,2,3,1,0,0,0\n2000,0,0,0,1,0,0,0\n")

        assert len(OdometryReader(path)) == 1
