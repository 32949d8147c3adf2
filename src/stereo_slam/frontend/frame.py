"""Frame entity: one stereo pair reduced to matchable 2D/3D features."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components
from scipy.spatial import cKDTree

from .camera_model import StereoCameraModel
from .feature_detector import FeatureDetector
from .pose import SE3
from .stereo_matcher import StereoMatcher


@dataclass
class Frame:
    """Stereo frame used as fixed or current frame by the tracker.

    Only left keypoints with a stereo match are kept, so keypoints,
    descriptors and camera points are index-aligned.

    Attributes:
        keypoints: Nx2 left-image pixel coordinates (float32)
        descriptors: Nx32 ORB descriptors (uint8)
        camera_points: Nx3 triangulated points in the left camera frame
        timestamp_ns: Timestamp of the stereo pair
        frame_id: Sequence number assigned by the tracker (-1 if unset)
        odometry_pose: Camera pose T_odom_camera derived from odometry
        pose: Tracked camera pose; equals the odometry pose until set
        inliers: Inlier count of the last motion estimate against this frame
        world_points: Mx3 points in the odometry frame, filled on map growth
        world_descriptors: Mx32 descriptors of the world points
    """

    keypoints: np.ndarray
    descriptors: np.ndarray
    camera_points: np.ndarray
    timestamp_ns: int = 0
    frame_id: int = -1
    odometry_pose: SE3 = field(default_factory=SE3.identity)
    pose: SE3 | None = None
    inliers: int = 0
    world_points: np.ndarray = field(
        default_factory=lambda: np.empty((0, 3), dtype=np.float64)
    )
    world_descriptors: np.ndarray = field(
        default_factory=lambda: np.empty((0, 32), dtype=np.uint8)
    )

    def __post_init__(self) -> None:
        self.keypoints = np.asarray(self.keypoints, dtype=np.float32).reshape(-1, 2)
        self.camera_points = np.asarray(self.camera_points, dtype=np.float64).reshape(-1, 3)
        self.descriptors = np.asarray(self.descriptors, dtype=np.uint8)
        if self.descriptors.size == 0:
            self.descriptors = self.descriptors.reshape(0, 32)

        n = len(self.keypoints)
        if len(self.descriptors) != n or len(self.camera_points) != n:
            raise ValueError(
                f"Frame arrays must be index-aligned: {n} keypoints, "
                f"{len(self.descriptors)} descriptors, "
                f"{len(self.camera_points)} camera points"
            )

    @classmethod
    def empty(cls, timestamp_ns: int = 0) -> Frame:
        """Return a frame with no features."""
        return cls(
            keypoints=np.empty((0, 2), dtype=np.float32),
            descriptors=np.empty((0, 32), dtype=np.uint8),
            camera_points=np.empty((0, 3), dtype=np.float64),
            timestamp_ns=timestamp_ns,
        )

    def set_odometry_pose(self, pose: SE3) -> None:
        """Stamp the frame with its odometry-derived camera pose.

        Also resets the tracked pose to the odometry pose; the tracker
        overwrites it once motion has been estimated.
        """
        self.odometry_pose = pose
        self.pose = pose

    def set_pose(self, pose: SE3) -> None:
        self.pose = pose

    def set_inliers(self, inliers: int) -> None:
        self.inliers = int(inliers)

    def get_pose(self) -> SE3:
        """Return the tracked pose, or the odometry pose if none was set."""
        return self.pose if self.pose is not None else self.odometry_pose

    def copy(self) -> Frame:
        """Return an independent copy (used to promote a frame by value)."""
        return Frame(
            keypoints=self.keypoints.copy(),
            descriptors=self.descriptors.copy(),
            camera_points=self.camera_points.copy(),
            timestamp_ns=self.timestamp_ns,
            frame_id=self.frame_id,
            odometry_pose=self.odometry_pose,
            pose=self.pose,
            inliers=self.inliers,
            world_points=self.world_points.copy(),
            world_descriptors=self.world_descriptors.copy(),
        )

    def compute_world_points(
        self, min_depth: float = 0.1, max_depth: float = 40.0
    ) -> np.ndarray:
        """Transform valid camera points into the odometry frame.

        Points that are non-finite or whose depth lies outside
        [min_depth, max_depth] are dropped.

        Returns:
            Mx3 world points (also stored on the frame)
        """
        points = self.camera_points
        valid = np.isfinite(points).all(axis=1)
        valid &= (points[:, 2] >= min_depth) & (points[:, 2] <= max_depth)

        self.world_points = self.get_pose().transform_points(points[valid])
        self.world_descriptors = self.descriptors[valid].copy()
        return self.world_points

    def cluster_world_points(self, radius: float = 0.05) -> np.ndarray:
        """Merge world points that lie within ``radius`` of each other.

        Points are linked when closer than ``radius``; each connected group
        is replaced by its centroid and keeps the descriptor of its first
        member. Group order follows the first member's original index.

        Returns:
            Kx3 clustered world points (also stored on the frame)
        """
        n = len(self.world_points)
        if n < 2 or radius <= 0:
            return self.world_points

        pairs = cKDTree(self.world_points).query_pairs(r=radius, output_type="ndarray")
        if len(pairs) == 0:
            return self.world_points

        adjacency = coo_matrix(
            (np.ones(len(pairs)), (pairs[:, 0], pairs[:, 1])), shape=(n, n)
        )
        n_clusters, labels = connected_components(adjacency, directed=False)

        # first member of each cluster, in original index order
        _, first_members = np.unique(labels, return_index=True)
        order = np.argsort(first_members)
        first_members = first_members[order]

        centroids = np.zeros((n_clusters, 3), dtype=np.float64)
        np.add.at(centroids, labels, self.world_points)
        counts = np.bincount(labels, minlength=n_clusters).astype(np.float64)
        centroids /= counts[:, None]

        self.world_points = centroids[labels[first_members]]
        self.world_descriptors = self.world_descriptors[first_members].copy()
        return self.world_points

    @property
    def num_points(self) -> int:
        """Return number of matchable keypoints."""
        return len(self.keypoints)

    def __len__(self) -> int:
        return self.num_points


class FrameBuilder:
    """Turns a rectified stereo pair into a :class:`Frame`.

    Pipeline:
    1. Detect ORB features in both images
    2. Match left against right (epipolar + disparity filters)
    3. Triangulate matches into the left camera frame
    """

    def __init__(
        self,
        feature_detector: FeatureDetector | None = None,
        stereo_matcher: StereoMatcher | None = None,
    ) -> None:
        self._detector = feature_detector or FeatureDetector()
        self._matcher = stereo_matcher or StereoMatcher()

    def build(
        self,
        left: np.ndarray,
        right: np.ndarray,
        camera_model: StereoCameraModel,
        timestamp_ns: int = 0,
    ) -> Frame:
        """Build a frame from a rectified stereo pair.

        Args:
            left: Rectified left image (grayscale uint8)
            right: Rectified right image (grayscale uint8)
            camera_model: Stereo model used for triangulation
            timestamp_ns: Timestamp of the pair

        Returns:
            Frame with index-aligned keypoints, descriptors and 3D points
        """
        features_left, features_right = self._detector.detect_stereo(left, right)

        matches = self._matcher.match(features_left, features_right)
        if len(matches) == 0:
            return Frame.empty(timestamp_ns)

        points_3d = camera_model.triangulate_points(matches.pts_left, matches.pts_right)

        return Frame(
            keypoints=matches.pts_left,
            descriptors=features_left.descriptors[matches.left_indices],
            camera_points=points_3d,
            timestamp_ns=timestamp_ns,
        )
