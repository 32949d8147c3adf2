"""Tracking state of the front-end."""

from enum import Enum


class TrackingState(Enum):
    """Lifecycle of a tracking session. There is no terminal state."""

    NOT_INITIALIZED = "NOT_INITIALIZED"
    INITIALIZING = "INITIALIZING"
    WORKING = "WORKING"
