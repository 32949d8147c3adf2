"""Static transform tree and the one-shot odometry-to-camera resolver."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Protocol

from ..errors import TransformLookupError, TransformUnavailable
from ..frontend.pose import SE3

logger = logging.getLogger(__name__)


class TransformSource(Protocol):
    """Anything that can resolve a named transform, e.g. a tf buffer."""

    def lookup_transform(
        self, target_frame: str, source_frame: str, timeout: float = 0.0
    ) -> SE3:
        """Return T_target_source or raise TransformLookupError."""
        ...


class TransformTree:
    """In-process tree of static transforms between named frames.

    Edges are stored as ``T_parent_child`` and can be walked in both
    directions. Lookups block for up to ``timeout`` seconds waiting for a
    missing edge to be published from another thread.
    """

    def __init__(self) -> None:
        self._edges: dict[str, dict[str, SE3]] = {}
        self._condition = threading.Condition()

    def set_transform(self, parent_frame: str, child_frame: str, transform: SE3) -> None:
        """Register (or replace) the static transform T_parent_child."""
        if parent_frame == child_frame:
            raise ValueError(f"Cannot attach frame '{parent_frame}' to itself")

        with self._condition:
            self._edges.setdefault(parent_frame, {})[child_frame] = transform
            self._edges.setdefault(child_frame, {})[parent_frame] = transform.inverse()
            self._condition.notify_all()

    def can_transform(self, target_frame: str, source_frame: str) -> bool:
        with self._condition:
            return self._find_path(target_frame, source_frame) is not None

    def lookup_transform(
        self, target_frame: str, source_frame: str, timeout: float = 0.0
    ) -> SE3:
        """Return T_target_source, waiting up to ``timeout`` seconds.

        Raises:
            TransformLookupError: If no path connects the frames in time
        """
        deadline = time.monotonic() + max(timeout, 0.0)
        with self._condition:
            while True:
                transform = self._find_path(target_frame, source_frame)
                if transform is not None:
                    return transform

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TransformLookupError(
                        f"No path from '{source_frame}' to '{target_frame}' "
                        f"in transform tree"
                    )
                self._condition.wait(remaining)

    def _find_path(self, target_frame: str, source_frame: str) -> SE3 | None:
        """Breadth-first search from target to source, chaining transforms."""
        if target_frame not in self._edges or source_frame not in self._edges:
            return None
        if target_frame == source_frame:
            return SE3.identity()

        # T_target_frame for every reached frame
        reached: dict[str, SE3] = {target_frame: SE3.identity()}
        queue = deque([target_frame])
        while queue:
            frame = queue.popleft()
            for neighbor, T_frame_neighbor in self._edges[frame].items():
                if neighbor in reached:
                    continue
                reached[neighbor] = reached[frame] @ T_frame_neighbor
                if neighbor == source_frame:
                    return reached[neighbor]
                queue.append(neighbor)
        return None

    @property
    def frames(self) -> list[str]:
        with self._condition:
            return sorted(self._edges)


class CoordinateFrameResolver:
    """Resolves and caches the static odometry-base to camera transform.

    The transform is looked up once, on the first input, and reused for
    the rest of the session.
    """

    def __init__(self, transform_source: TransformSource, timeout: float = 1.0) -> None:
        """Initialize resolver.

        Args:
            transform_source: Tree or buffer to query
            timeout: Seconds to wait for the transform on each attempt
        """
        self._source = transform_source
        self._timeout = timeout
        self._cached: SE3 | None = None

    def resolve(
        self, odom_child_frame: str, image_frame: str, timeout: float | None = None
    ) -> SE3:
        """Return T_base_camera: the camera frame expressed in the odometry child frame.

        Args:
            odom_child_frame: Child frame of the odometry messages (robot base)
            image_frame: Optical frame of the images
            timeout: Overrides the default lookup timeout

        Raises:
            TransformUnavailable: If the source cannot connect the frames
        """
        if self._cached is not None:
            return self._cached

        wait = self._timeout if timeout is None else timeout
        try:
            transform = self._source.lookup_transform(odom_child_frame, image_frame, wait)
        except TransformLookupError as e:
            logger.warning("%s", e)
            raise TransformUnavailable(image_frame, odom_child_frame, str(e)) from e

        self._cached = transform
        return transform

    @property
    def is_resolved(self) -> bool:
        return self._cached is not None

    @property
    def transform(self) -> SE3 | None:
        """Return the cached transform, if resolved."""
        return self._cached
