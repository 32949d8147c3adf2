"""Odometry input."""

from .odometry import Odometry, OdometryReader

__all__ = [
    "Odometry",
    "OdometryReader",
]
