"""
Capture sinks for rendered frames.

A capture sink consumes the frames drawn on the overlay surface and turns
them into an encoded media stream. Sinks finish asynchronously: stop()
returns immediately and the completion callback fires once the stream has
been flushed.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from queue import Queue
from threading import Thread
from typing import Callable, Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Optional[BaseException]], None]


class CaptureSinkError(RuntimeError):
    """Raised when a capture sink cannot be acquired or fails to encode."""


class CaptureSink(ABC):
    """Minimal interface every capture sink must implement."""

    output_path: Optional[Path] = None

    @abstractmethod
    def open(self) -> None:
        """Acquire the underlying encoder; raise CaptureSinkError on failure."""

    @abstractmethod
    def write(self, frame: np.ndarray) -> None:
        """Queue one rendered frame."""

    @abstractmethod
    def stop(self, on_complete: CompletionCallback) -> None:
        """
        Request termination without blocking.

        on_complete is called exactly once, with the encoding error or None,
        after the stream has been finalized.
        """


def create_video_writer(
    output_path: Path,
    width: int,
    height: int,
    fps: float = 30.0,
    codec: str = "MJPG",
) -> cv2.VideoWriter:
    """
    Create a video writer for the rendered overlay.

    Args:
        output_path: Output file path
        width: Frame width
        height: Frame height
        fps: Frames per second
        codec: Video codec (fourcc string)

    Returns:
        cv2.VideoWriter instance
    """
    fourcc = cv2.VideoWriter_fourcc(*codec)

    writer = cv2.VideoWriter(
        str(output_path),
        fourcc,
        fps,
        (width, height)
    )

    if not writer.isOpened():
        raise CaptureSinkError(f"Could not create video writer: {output_path}")

    return writer


_STOP = object()


class VideoFileSink(CaptureSink):
    """
    Encodes rendered frames into a video file on a background thread.

    Frames are handed over through a bounded queue; write() blocks when the
    encoder falls behind by more than queue_size frames.
    """

    def __init__(
        self,
        output_path: Path,
        frame_size: Tuple[int, int],
        fps: float = 30.0,
        codec: str = "MJPG",
        queue_size: int = 64,
    ):
        """
        Initialize video sink.

        Args:
            output_path: Destination video file
            frame_size: (width, height) of every frame
            fps: Output frame rate
            codec: Video codec (fourcc string)
            queue_size: Maximum number of frames waiting for the encoder
        """
        self.output_path = Path(output_path)
        self.frame_size = (int(frame_size[0]), int(frame_size[1]))
        self.fps = fps
        self.codec = codec

        self._queue: Queue = Queue(maxsize=queue_size)
        self._writer: Optional[cv2.VideoWriter] = None
        self._thread: Optional[Thread] = None
        self._on_complete: Optional[CompletionCallback] = None
        self._error: Optional[BaseException] = None
        self._stopping = False
        self.frames_written = 0

    def open(self) -> None:
        if self._thread is not None:
            raise CaptureSinkError(f"Video sink already opened: {self.output_path}")

        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CaptureSinkError(f"Cannot create output directory: {e}") from e

        width, height = self.frame_size
        self._writer = create_video_writer(self.output_path, width, height, self.fps, self.codec)

        self._thread = Thread(target=self._run, name="VideoFileSink", daemon=True)
        self._thread.start()
        logger.info(f"Recording video: {self.output_path} ({width}x{height} @ {self.fps:g} FPS)")

    def write(self, frame: np.ndarray) -> None:
        if self._thread is None or self._stopping:
            raise CaptureSinkError("Video sink is not accepting frames")
        # Copy: the caller keeps drawing on the same surface
        self._queue.put(frame.copy())

    def stop(self, on_complete: CompletionCallback) -> None:
        if self._thread is None:
            raise CaptureSinkError("Video sink was never opened")
        if self._stopping:
            return
        self._stopping = True
        self._on_complete = on_complete
        self._queue.put(_STOP)

    def _run(self) -> None:
        try:
            self._drain()
            self._writer.release()
        except Exception as e:
            logger.error(f"Video sink failed: {e}")
            if self._error is None:
                self._error = e
        finally:
            self._writer = None
            if self._error is None and self.frames_written and not self.output_path.exists():
                self._error = CaptureSinkError(f"Video file was not written: {self.output_path}")

            logger.info(f"Video finalized: {self.output_path} ({self.frames_written} frames)")
            self._on_complete(self._error)

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            if self._error is not None:
                # Keep draining so write() never blocks on a dead encoder
                continue
            try:
                self._write_frame(item)
            except Exception as e:
                logger.error(f"Video encoding failed: {e}")
                self._error = e

    def _write_frame(self, frame: np.ndarray) -> None:
        height, width = frame.shape[:2]
        if (width, height) != self.frame_size:
            raise CaptureSinkError(
                f"Frame size {width}x{height} does not match video size "
                f"{self.frame_size[0]}x{self.frame_size[1]}"
            )
        self._writer.write(frame)
        self.frames_written += 1
