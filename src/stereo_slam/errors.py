"""Exception types raised by the tracking front-end."""


class TrackingError(Exception):
    """Base class for tracking front-end errors."""


class TransformLookupError(TrackingError):
    """A transform source could not connect two named frames."""


class TransformUnavailable(TrackingError):
    """The odometry-to-camera transform could not be resolved.

    Recoverable: the tracker discards the input that triggered it and
    retries the lookup on the next one.
    """

    def __init__(self, source_frame: str, target_frame: str, reason: str = "") -> None:
        self.source_frame = source_frame
        self.target_frame = target_frame
        self.reason = reason
        message = f"No transform from '{source_frame}' to '{target_frame}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)
