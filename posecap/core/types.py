"""
Core data types for the pose capture system.
"""

import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class Keypoint:
    """A 2D body landmark. A missing score means fully confident."""

    x: float
    y: float
    score: Optional[float] = None
    name: Optional[str] = None

    @property
    def effective_score(self) -> float:
        return 1.0 if self.score is None else float(self.score)

    def is_visible(self, threshold: float) -> bool:
        """Check whether the keypoint meets the confidence threshold."""
        # NaN compares False, so NaN scores are never visible
        return self.effective_score >= threshold

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)


def is_visible(keypoint: Optional[Keypoint], threshold: float) -> bool:
    """Threshold policy shared by the renderer and the recording session."""
    if keypoint is None or not keypoint.is_finite:
        return False
    return math.isfinite(keypoint.effective_score) and keypoint.is_visible(threshold)


@dataclass
class Pose:
    """
    Single-person pose as produced by a pose detector.

    Keypoint order follows the detector's canonical schema; the index of a
    keypoint is its position in the list. Entries may be None when the
    detector dropped a landmark.
    """

    keypoints: Optional[List[Optional[Keypoint]]] = None
    score: Optional[float] = None

    @property
    def has_keypoints(self) -> bool:
        return bool(self.keypoints)

    @classmethod
    def from_array(cls, keypoints: NDArray[np.float32], score: Optional[float] = None) -> "Pose":
        """
        Create a pose from an array of shape (N, 2) or (N, 3).

        The third column, when present, holds the per-keypoint score.
        """
        arr = np.asarray(keypoints, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] not in (2, 3):
            raise ValueError(f"Keypoint array must have shape (N, 2) or (N, 3), got {arr.shape}")

        points = []
        for row in arr:
            kp_score = float(row[2]) if arr.shape[1] == 3 else None
            points.append(Keypoint(x=float(row[0]), y=float(row[1]), score=kp_score))
        return cls(keypoints=points, score=score)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pose":
        """
        Create a pose from a detector dict: {"keypoints": [{"x", "y", "score", "name"}], "score"}.

        Raises:
            ValueError: the pose or one of its keypoints is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Pose must be a mapping, got {data!r}")

        raw = data.get("keypoints")
        keypoints = None
        if raw is not None:
            if not isinstance(raw, (list, tuple)):
                raise ValueError(f"Pose keypoints must be a list, got {raw!r}")
            keypoints = []
            for i, item in enumerate(raw):
                if item is None:
                    keypoints.append(None)
                    continue
                try:
                    score = item.get("score")
                    keypoints.append(
                        Keypoint(
                            x=float(item["x"]),
                            y=float(item["y"]),
                            score=float(score) if score is not None else None,
                            name=item.get("name"),
                        )
                    )
                except (KeyError, TypeError, AttributeError) as e:
                    raise ValueError(f"Malformed keypoint {i}: {item!r}") from e
        score = data.get("score")
        return cls(keypoints=keypoints, score=float(score) if score is not None else None)

    def to_array(self) -> NDArray[np.float64]:
        """Convert to (N, 3) array; missing keypoints become NaN rows."""
        rows = []
        for kp in self.keypoints or []:
            if kp is None:
                rows.append([np.nan, np.nan, np.nan])
            else:
                rows.append([kp.x, kp.y, kp.effective_score])
        return np.array(rows, dtype=np.float64).reshape(-1, 3)


class SessionState(Enum):
    """Recording session lifecycle states."""

    IDLE = "idle"
    ACTIVE = "active"
    FINALIZING = "finalizing"


@dataclass
class SessionResult:
    """Outcome of one finalized recording session."""

    frame_count: int
    duration: float
    media_path: Optional[Path] = None
    export_path: Optional[Path] = None
    media_error: Optional[BaseException] = None
    export_error: Optional[BaseException] = None

    @property
    def exported(self) -> bool:
        return self.export_path is not None

    def to_dict(self) -> Dict:
        """Convert to dictionary for reporting."""
        return {
            "frame_count": int(self.frame_count),
            "duration": float(self.duration),
            "media_path": str(self.media_path) if self.media_path else None,
            "export_path": str(self.export_path) if self.export_path else None,
            "media_error": str(self.media_error) if self.media_error else None,
            "export_error": str(self.export_error) if self.export_error else None,
        }


def poses_from_dicts(items: Sequence[Dict[str, Any]]) -> List[Pose]:
    return [Pose.from_dict(item) for item in items]
