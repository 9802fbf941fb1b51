"""Core configuration and data types."""

from posecap.core.config import CaptureConfig
from posecap.core.types import (
    Keypoint,
    Pose,
    SessionResult,
    SessionState,
)

__all__ = [
    "CaptureConfig",
    "Keypoint",
    "Pose",
    "SessionResult",
    "SessionState",
]
