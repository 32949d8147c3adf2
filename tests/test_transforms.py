"""Tests for TransformTree and CoordinateFrameResolver."""

import threading

import numpy as np
import pytest

from stereo_slam.errors import TransformLookupError, TransformUnavailable
from stereo_slam.frontend.pose import SE3
from stereo_slam.tracking.transforms import CoordinateFrameResolver, TransformTree


def translation(x: float, y: float = 0.0, z: float = 0.0) -> SE3:
    return SE3(rotation=np.eye(3), translation=np.array([x, y, z]))


class CountingSource:
    """Transform source that counts lookups."""

    def __init__(self, tree: TransformTree):
        self.tree = tree
        self.calls = 0

    def lookup_transform(self, target_frame, source_frame, timeout=0.0):
        self.calls += 1
        return self.tree.lookup_transform(target_frame, source_frame, timeout)


class TestTransformTree:
    """Test suite for TransformTree."""

    def test_direct_lookup(self):
        """Test lookup of a registered parent-child transform."""
        tree = TransformTree()
        tree.set_transform("body", "cam0", translation(0.1))

        T = tree.lookup_transform("body", "cam0")
        np.testing.assert_allclose(T.translation, [0.1, 0.0, 0.0])

    def test_inverse_lookup(self):
        """Test lookup in the child-to-parent direction."""
        tree = TransformTree()
        tree.set_transform("body", "cam0", translation(0.1))

        T = tree.lookup_transform("cam0", "body")
        np.testing.assert_allclose(T.translation, [-0.1, 0.0, 0.0])

    def test_chained_lookup(self):
        """Test lookup across several edges."""
        tree = TransformTree()
        tree.set_transform("base_link", "body", translation(1.0))
        tree.set_transform("body", "cam0", translation(0.0, 2.0))

        T = tree.lookup_transform("base_link", "cam0")

        np.testing.assert_allclose(T.translation, [1.0, 2.0, 0.0])
        assert tree.can_transform("cam0", "base_link")
        assert tree.frames == ["base_link", "body", "cam0"]

    def test_missing_frame(self):
        """Test that an unknown frame raises after the timeout."""
        tree = TransformTree()
        tree.set_transform("body", "cam0", translation(0.1))

        with pytest.raises(TransformLookupError, match="No path from 'imu' to 'body'"):
            tree.lookup_transform("body", "imu", timeout=0.0)
        assert not tree.can_transform("body", "imu")

    def test_self_attachment(self):
        """Test that a frame cannot be its own parent."""
        with pytest.raises(ValueError, match="to itself"):
            TransformTree().set_transform("body", "body", SE3.identity())

    def test_lookup_waits_for_publication(self):
        """Test that a lookup succeeds when the edge arrives within the timeout."""
        tree = TransformTree()
        timer = threading.Timer(0.05, tree.set_transform, ("body", "cam0", translation(0.3)))
        timer.start()
        try:
            T = tree.lookup_transform("body", "cam0", timeout=5.0)
        finally:
            timer.join()

        np.testing.assert_allclose(T.translation, [0.3, 0.0, 0.0])


class TestCoordinateFrameResolver:
    """Test suite for CoordinateFrameResolver."""

    def test_resolve_caches(self):
        """Test that the transform is looked up once per session."""
        tree = TransformTree()
        tree.set_transform("body", "cam0", translation(0.1))
        source = CountingSource(tree)
        resolver = CoordinateFrameResolver(source, timeout=0.0)

        first = resolver.resolve("body", "cam0")
        second = resolver.resolve("body", "cam0")

        assert first is second
        assert source.calls == 1
        assert resolver.is_resolved
        assert resolver.transform is first

    def test_resolve_unavailable(self):
        """Test that a failed lookup raises TransformUnavailable and is retried."""
        tree = TransformTree()
        source = CountingSource(tree)
        resolver = CoordinateFrameResolver(source, timeout=0.0)

        with pytest.raises(TransformUnavailable, match="No transform from 'cam0' to 'body'") as exc:
            resolver.resolve("body", "cam0")
        assert exc.value.source_frame == "cam0"
        assert exc.value.target_frame == "body"
        assert not resolver.is_resolved

        tree.set_transform("body", "cam0", translation(0.1))
        resolver.resolve("body", "cam0")
        assert source.calls == 2
        assert resolver.is_resolved
