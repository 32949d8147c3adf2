"""Tracking configuration."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path

import yaml


@dataclass
class TrackingConfig:
    """Tunable parameters of the tracking front-end.

    Attributes:
        min_inliers: Inliers needed to trust a motion estimate. Below this
            the fixed frame is replaced.
        max_inliers: Upper bound on the inlier set reported by PnP. It thins
            the reported indices and does not shorten the RANSAC solve.
        match_ratio: Distinctiveness ratio for descriptor matching. A match
            is kept if best <= ratio * second_best.
        ransac_iterations: Maximum RANSAC iterations for PnP.
        reprojection_error: RANSAC inlier threshold in pixels.
        transform_timeout: Seconds to wait for the odometry-to-camera
            transform on the first input.
        n_features: ORB features detected per image.
        min_depth: Closest camera-space depth kept as a world point (m).
        max_depth: Farthest camera-space depth kept as a world point (m).
        cluster_radius: Points of one frame closer than this are merged (m).
        merge_radius: New points closer than this to a map point are
            treated as re-observations of it (m).
    """

    min_inliers: int = 30
    max_inliers: int = 200
    match_ratio: float = 0.9
    ransac_iterations: int = 100
    reprojection_error: float = 1.3
    transform_timeout: float = 1.0
    n_features: int = 1000
    min_depth: float = 0.1
    max_depth: float = 40.0
    cluster_radius: float = 0.05
    merge_radius: float = 0.05

    def __post_init__(self) -> None:
        """Validate parameter ranges."""
        if self.min_inliers < 4:
            raise ValueError(
                f"min_inliers must be >= 4 (PnP needs 4 points), got {self.min_inliers}"
            )
        if self.max_inliers < self.min_inliers:
            raise ValueError(
                f"max_inliers ({self.max_inliers}) must be >= "
                f"min_inliers ({self.min_inliers})"
            )
        if not 0.0 < self.match_ratio <= 1.0:
            raise ValueError(f"match_ratio must be in (0, 1], got {self.match_ratio}")
        if self.ransac_iterations <= 0:
            raise ValueError(
                f"ransac_iterations must be positive, got {self.ransac_iterations}"
            )
        if self.reprojection_error <= 0:
            raise ValueError(
                f"reprojection_error must be positive, got {self.reprojection_error}"
            )
        if self.transform_timeout < 0:
            raise ValueError(
                f"transform_timeout must be >= 0, got {self.transform_timeout}"
            )
        if self.n_features <= 0:
            raise ValueError(f"n_features must be positive, got {self.n_features}")
        if not 0 <= self.min_depth < self.max_depth:
            raise ValueError(
                f"Invalid depth range [{self.min_depth}, {self.max_depth}]"
            )
        if self.cluster_radius < 0 or self.merge_radius < 0:
            raise ValueError("cluster_radius and merge_radius must be >= 0")

    @classmethod
    def from_dict(cls, data: dict) -> TrackingConfig:
        """Create config from a plain dictionary.

        Raises:
            ValueError: If the dictionary has keys that are not config fields
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown tracking config keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> TrackingConfig:
        """Load config from a YAML file.

        The file may hold the fields at top level or under a ``tracking:`` key.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file content is invalid
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f)

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping in {yaml_path}")
        if "tracking" in data:
            data = data["tracking"] or {}
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        """Return config as a plain dictionary."""
        return asdict(self)
