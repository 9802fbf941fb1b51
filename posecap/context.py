"""
Capture context: one instance per application.

Owns the configuration, topology, renderer and recording session, and
builds a capture sink for every session. Created once at startup and closed
at shutdown.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from posecap.core.config import CaptureConfig
from posecap.core.types import Pose, SessionResult, SessionState
from posecap.export.csv_export import CsvFileExporter, ExportSink
from posecap.recording.session import RecordingSession
from posecap.recording.sink import CaptureSink, CaptureSinkError, VideoFileSink
from posecap.utils import next_available_path
from posecap.vision.renderer import FrameRenderer
from posecap.vision.skeleton import get_topology

logger = logging.getLogger(__name__)


class CaptureContext:
    """
    Wires renderer, recording session and sinks around a shared config.

    Example:
        >>> with CaptureContext(config) as ctx:
        ...     ctx.start()
        ...     for frame, poses in source:
        ...         ctx.process(frame, poses)
        ...     ctx.stop()
        ...     result = ctx.wait_until_idle(timeout=10.0)
    """

    def __init__(
        self,
        config: Optional[CaptureConfig] = None,
        export_sink: Optional[ExportSink] = None,
        sink_factory: Optional[Callable[[], CaptureSink]] = None,
        clock: Callable[[], float] = time.perf_counter,
        on_export: Optional[Callable[[SessionResult], None]] = None,
    ):
        """
        Initialize the capture context.

        Args:
            config: Capture configuration (defaults if None)
            export_sink: Destination for CSV exports (files in output_dir if None)
            sink_factory: Builds a capture sink per session (video file if None)
            clock: Monotonic clock in seconds used for row timestamps
            on_export: Optional callback receiving each SessionResult
        """
        self.config = config or CaptureConfig()

        issues = self.config.validate()
        for issue in issues:
            logger.warning(f"Configuration: {issue}")

        self.topology = get_topology(self.config.model.model_name)

        recording = self.config.recording
        if export_sink is None:
            export_sink = CsvFileExporter(
                recording.output_dir,
                filename=recording.export_filename,
                overwrite=recording.overwrite,
            )

        self.session = RecordingSession(
            self.config,
            sink_factory or self._create_video_sink,
            export_sink,
            keypoint_names=self.topology.keypoints,
            clock=clock,
            on_export=on_export,
        )
        self.renderer = FrameRenderer(self.config, self.topology, self.session)
        self._closed = False

    @property
    def state(self) -> SessionState:
        return self.session.state

    def _create_video_sink(self) -> VideoFileSink:
        recording = self.config.recording

        frame_size = self.renderer.surface_size
        if frame_size is None:
            raise CaptureSinkError(
                "Drawing surface not acquired: process a frame or set recording.frame_size first"
            )

        output_path = Path(recording.output_dir) / recording.video_filename
        if not recording.overwrite:
            output_path = next_available_path(output_path)

        return VideoFileSink(
            output_path,
            frame_size,
            fps=recording.fps,
            codec=recording.codec,
            queue_size=recording.queue_size,
        )

    def process(self, frame: NDArray[np.uint8], poses: Sequence[Pose]) -> NDArray[np.uint8]:
        """
        Render one pose-estimation result and capture it.

        Args:
            frame: Input frame (BGR format)
            poses: Poses detected in the frame

        Returns:
            The rendered surface
        """
        surface = self.renderer.render(frame, poses)
        self.session.capture_frame(surface)
        self.session.pump_events()
        return surface

    def start(self) -> None:
        if self._closed:
            raise RuntimeError("Capture context is closed")
        self.session.start()

    def stop(self) -> None:
        self.session.stop()

    def pump_events(self, timeout: float = 0.0) -> Optional[SessionResult]:
        return self.session.pump_events(timeout)

    def wait_until_idle(self, timeout: Optional[float] = None) -> Optional[SessionResult]:
        return self.session.wait_until_idle(timeout)

    def close(self, timeout: Optional[float] = 10.0) -> Optional[SessionResult]:
        """Stop any running session and wait for its export."""
        if self._closed:
            return None
        self._closed = True

        if self.session.is_active:
            logger.info("Closing capture context with an active session")
            self.session.stop()
        return self.session.wait_until_idle(timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
