"""
Keypoint overlay renderer.

Draws the current video frame onto a persistent surface, overlays every
detected pose (keypoints colored by body side, skeleton edges thresholded by
confidence) and forwards each pose to the recording session.
"""

import logging
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np
from numpy.typing import NDArray

from posecap.core.config import CaptureConfig
from posecap.core.types import Keypoint, Pose, is_visible
from posecap.recording.session import RecordingSession
from posecap.vision.skeleton import KeypointSchemaError, Topology, check_keypoint_count

logger = logging.getLogger(__name__)


# OpenCV drawing coordinates are int32
_MAX_COORDINATE = 2 ** 31 - 1


def _point(keypoint: Keypoint) -> Tuple[int, int]:
    return (int(round(keypoint.x)), int(round(keypoint.y)))


def check_drawable(keypoints: Sequence[Optional[Keypoint]], threshold: float) -> None:
    """
    Verify every visible keypoint can be drawn.

    Raises:
        KeypointSchemaError: a visible keypoint lies outside the drawable range
    """
    for i, keypoint in enumerate(keypoints):
        if not is_visible(keypoint, threshold):
            continue
        x, y = _point(keypoint)
        if abs(x) > _MAX_COORDINATE or abs(y) > _MAX_COORDINATE:
            raise KeypointSchemaError(
                f"Keypoint {i} at ({keypoint.x:g}, {keypoint.y:g}) is outside the drawable range"
            )


class FrameRenderer:
    """
    Renders pose overlays on a persistent drawing surface.

    The surface is acquired from the first frame (or from the configured
    recording frame size) and keeps its size for the renderer's lifetime so
    every captured frame has the same dimensions.
    """

    def __init__(
        self,
        config: CaptureConfig,
        topology: Topology,
        session: Optional[RecordingSession] = None,
    ):
        """
        Initialize renderer.

        Args:
            config: Shared configuration (threshold and styling are read live)
            topology: Keypoint side partition and skeleton pairs
            session: Recording session receiving every drawn pose
        """
        self.config = config
        self.topology = topology
        self.session = session
        self._surface: Optional[NDArray[np.uint8]] = None

        if config.recording.frame_size is not None:
            width, height = config.recording.frame_size
            self._surface = np.zeros((height, width, 3), dtype=np.uint8)

    @property
    def surface(self) -> Optional[NDArray[np.uint8]]:
        return self._surface

    @property
    def surface_size(self) -> Optional[Tuple[int, int]]:
        """(width, height) of the surface, or None before the first frame."""
        if self._surface is None:
            return None
        height, width = self._surface.shape[:2]
        return (width, height)

    def render(self, frame: NDArray[np.uint8], poses: Sequence[Pose]) -> NDArray[np.uint8]:
        """
        Draw a frame and its poses.

        Args:
            frame: Input frame (BGR format)
            poses: Poses detected in the frame

        Returns:
            The drawing surface
        """
        self.draw_frame(frame)
        self.draw_results(poses)
        return self._surface

    def draw_frame(self, frame: NDArray[np.uint8]) -> None:
        """Copy the raw video frame onto the surface."""
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        elif frame.shape[2] == 4:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)

        if self._surface is None:
            self._surface = np.ascontiguousarray(frame, dtype=np.uint8).copy()
            logger.info(f"Drawing surface acquired: {frame.shape[1]}x{frame.shape[0]}")
            return

        height, width = self._surface.shape[:2]
        if frame.shape[:2] != (height, width):
            frame = cv2.resize(frame, (width, height))
        self._surface[...] = frame

    def draw_results(self, poses: Sequence[Pose]) -> None:
        for pose in poses:
            self.draw_result(pose)

    def draw_result(self, pose: Pose) -> bool:
        """
        Draw one pose and forward it to the recording session.

        A malformed pose is logged and skipped before anything is drawn; it
        never aborts the session.

        Returns:
            True if the pose was drawn
        """
        if self._surface is None:
            raise RuntimeError("draw_frame() must be called before drawing poses")
        if pose is None or not pose.has_keypoints:
            return False

        try:
            check_keypoint_count(pose.keypoints, self.topology.keypoints)
            check_drawable(pose.keypoints, self.config.score_threshold)
            self.draw_keypoints(pose.keypoints)
            self.draw_skeleton(pose.keypoints)
        except (KeypointSchemaError, cv2.error, TypeError, OverflowError) as e:
            logger.warning(f"Skipping malformed pose: {e}")
            return False

        if self.session is not None:
            self.session.record_frame(pose)
        return True

    def draw_keypoints(self, keypoints: Sequence[Optional[Keypoint]]) -> None:
        render = self.config.render
        sides = self.topology.sides

        for indices, color in (
            (sides.middle, render.middle_color),
            (sides.left, render.left_color),
            (sides.right, render.right_color),
        ):
            for i in indices:
                self.draw_keypoint(keypoints[i], color)

    def draw_keypoint(self, keypoint: Optional[Keypoint], color: Tuple[int, int, int]) -> None:
        if not is_visible(keypoint, self.config.score_threshold):
            return

        render = self.config.render
        center = _point(keypoint)
        cv2.circle(self._surface, center, render.keypoint_radius, color, -1, cv2.LINE_AA)
        cv2.circle(
            self._surface, center, render.keypoint_radius, render.stroke_color,
            render.line_width, cv2.LINE_AA,
        )

    def draw_skeleton(self, keypoints: Sequence[Optional[Keypoint]]) -> None:
        render = self.config.render
        threshold = self.config.score_threshold

        for idx_a, idx_b in self.topology.pairs:
            kp_a = keypoints[idx_a]
            kp_b = keypoints[idx_b]
            if is_visible(kp_a, threshold) and is_visible(kp_b, threshold):
                cv2.line(
                    self._surface, _point(kp_a), _point(kp_b),
                    render.stroke_color, render.line_width, cv2.LINE_AA,
                )
