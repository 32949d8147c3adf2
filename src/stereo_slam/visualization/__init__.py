"""Result publishers."""

from .rerun_publisher import RerunPublisher

__all__ = ["RerunPublisher"]
