"""
Recording session state machine.

A session moves IDLE -> ACTIVE on start(), ACTIVE -> FINALIZING on stop(),
and back to IDLE once the capture sink reports completion and the buffered
keypoint rows have been exported. The capture sink reports completion from
its own thread; the report is queued and only acted upon when the driver
thread calls pump_events(), so rows are never touched concurrently.
"""

import logging
import time
from dataclasses import dataclass
from queue import Empty, Queue
from typing import Callable, List, Optional, Sequence, Tuple

from posecap.core.config import CaptureConfig
from posecap.core.types import Keypoint, Pose, SessionResult, SessionState, is_visible
from posecap.export.csv_export import ExportSink, serialize_csv
from posecap.recording.sink import CaptureSink
from posecap.vision.skeleton import COCO_KEYPOINTS, check_keypoint_count

logger = logging.getLogger(__name__)


class SessionBusyError(RuntimeError):
    """Raised by start() while the previous session is still finalizing."""


def format_value(value: float) -> str:
    """Format a coordinate or score: 10.0 -> '10', 0.9 -> '0.9'."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def build_row(
    elapsed: float,
    keypoints: Sequence[Optional[Keypoint]],
    threshold: float,
) -> str:
    """
    Format one export row.

    Args:
        elapsed: Seconds since session start
        keypoints: Keypoints in canonical order
        threshold: Minimum effective score for a keypoint to be exported

    Returns:
        Timestamp with 3 decimals followed by x,y,score per keypoint, with
        three empty fields for every keypoint below the threshold
    """
    fields = [f"{elapsed:.3f}"]
    for kp in keypoints:
        if is_visible(kp, threshold):
            fields.extend([format_value(kp.x), format_value(kp.y), format_value(kp.effective_score)])
        else:
            fields.extend(["", "", ""])
    return ",".join(fields)


@dataclass
class _SinkFinished:
    generation: int
    error: Optional[BaseException]


class RecordingSession:
    """
    Buffers timestamped keypoint rows while a capture is active.

    Example:
        >>> session = RecordingSession(config, sink_factory, CsvFileExporter("out"))
        >>> session.start()
        >>> session.record_frame(pose)
        >>> session.stop()
        >>> result = session.wait_until_idle(timeout=5.0)
    """

    def __init__(
        self,
        config: CaptureConfig,
        sink_factory: Callable[[], CaptureSink],
        export_sink: ExportSink,
        keypoint_names: Sequence[str] = COCO_KEYPOINTS,
        clock: Callable[[], float] = time.perf_counter,
        on_export: Optional[Callable[[SessionResult], None]] = None,
    ):
        """
        Initialize the recording session.

        Args:
            config: Shared configuration (threshold and flush delay are read live)
            sink_factory: Creates a fresh, unopened capture sink per session
            export_sink: Receives the CSV document when a session finalizes
            keypoint_names: Canonical keypoint schema
            clock: Monotonic clock in seconds
            on_export: Optional callback receiving each SessionResult
        """
        self.config = config
        self.keypoint_names = tuple(keypoint_names)
        self._sink_factory = sink_factory
        self._export_sink = export_sink
        self._clock = clock
        self._on_export = on_export

        self._state = SessionState.IDLE
        self._rows: List[str] = []
        self._session_start: Optional[float] = None
        self._stopped_at: Optional[float] = None
        self._sink: Optional[CaptureSink] = None
        self._stopping_sink: Optional[CaptureSink] = None

        # Completion reports arrive from sink threads
        self._events: Queue = Queue()
        self._generation = 0
        self._completion: Optional[_SinkFinished] = None
        self._finalize_due: Optional[float] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def rows(self) -> Tuple[str, ...]:
        return tuple(self._rows)

    @property
    def session_start(self) -> Optional[float]:
        return self._session_start

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    def start(self) -> None:
        """
        Begin a new session.

        Restarting an active session discards its unexported rows. Starting
        while the previous session is finalizing raises SessionBusyError.
        A capture sink that cannot be opened raises CaptureSinkError and
        leaves the session idle.
        """
        if self._state is SessionState.FINALIZING:
            raise SessionBusyError(
                "Previous session is still finalizing; wait for its export before starting"
            )

        if self._state is SessionState.ACTIVE:
            logger.warning(
                f"Restarting active session, discarding {len(self._rows)} unexported rows"
            )
            self._stop_sink()

        self._reset()
        self._generation += 1

        sink = self._sink_factory()
        sink.open()

        self._sink = sink
        self._session_start = self._clock()
        self._state = SessionState.ACTIVE
        logger.info("Recording session started")

    def stop(self) -> None:
        """Request finalization; returns without waiting for the capture sink."""
        if self._state is not SessionState.ACTIVE:
            logger.debug(f"stop() ignored in state {self._state.value}")
            return

        self._state = SessionState.FINALIZING
        self._stopped_at = self._clock()
        self._stop_sink()
        logger.info(f"Recording session stopping ({len(self._rows)} rows buffered)")

    def record_frame(self, pose: Optional[Pose]) -> Optional[str]:
        """
        Append a row for one pose while active.

        Returns:
            The appended row, or None when nothing was recorded (session not
            active, or the pose has no keypoints)

        Raises:
            KeypointSchemaError: keypoint count differs from the schema
        """
        if self._state is not SessionState.ACTIVE:
            return None
        if pose is None or not pose.has_keypoints:
            return None

        check_keypoint_count(pose.keypoints, self.keypoint_names)

        elapsed = self._clock() - self._session_start
        row = build_row(elapsed, pose.keypoints, self.config.score_threshold)
        self._rows.append(row)
        return row

    def capture_frame(self, surface) -> None:
        """Hand a rendered surface to the capture sink while active."""
        if self._state is SessionState.ACTIVE:
            self._sink.write(surface)

    def pump_events(self, timeout: float = 0.0) -> Optional[SessionResult]:
        """
        Process queued capture-sink events on the calling thread.

        Args:
            timeout: Seconds to wait for the first event when none is queued

        Returns:
            The SessionResult when this call finalized a session, else None
        """
        block = timeout > 0
        while True:
            try:
                event = self._events.get(block=block, timeout=timeout if block else None)
            except Empty:
                break
            block = False
            self._handle_event(event)

        if self._completion is None or self._clock() < self._finalize_due:
            return None
        return self._finalize()

    def wait_until_idle(self, timeout: Optional[float] = None) -> Optional[SessionResult]:
        """
        Pump events until the session is idle.

        Returns:
            The SessionResult of the session finalized while waiting, if any
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        result = None
        while self._state is SessionState.FINALIZING:
            wait = 0.05
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError("Recording session did not finalize in time")
                wait = min(wait, remaining)
            result = self.pump_events(timeout=wait) or result
        return result

    def _stop_sink(self) -> None:
        sink, self._sink = self._sink, None
        generation = self._generation
        self._stopping_sink = sink
        sink.stop(lambda error: self._events.put(_SinkFinished(generation, error)))

    def _handle_event(self, event: _SinkFinished) -> None:
        if event.generation != self._generation or self._state is not SessionState.FINALIZING:
            if event.error is not None:
                logger.warning(f"Discarded capture reported an error: {event.error}")
            else:
                logger.debug("Discarded capture finished")
            return

        if event.error is not None:
            logger.error(f"Capture sink failed: {event.error}")
        self._completion = event
        self._finalize_due = self._clock() + self.config.recording.flush_delay

    def _finalize(self) -> SessionResult:
        sink = self._stopping_sink
        result = SessionResult(
            frame_count=len(self._rows),
            duration=self._stopped_at - self._session_start,
            media_path=sink.output_path,
            media_error=self._completion.error,
        )

        if self._rows:
            document = serialize_csv(self.keypoint_names, self._rows)
            try:
                result.export_path = self._export_sink.save(document)
            except OSError as e:
                logger.error(f"Keypoint export failed: {e}")
                result.export_error = e
        else:
            logger.info("No keypoints data to export")

        self._reset()
        logger.info(f"Recording session finished ({result.frame_count} rows)")

        if self._on_export is not None:
            self._on_export(result)
        return result

    def _reset(self) -> None:
        self._state = SessionState.IDLE
        self._rows = []
        self._session_start = None
        self._stopped_at = None
        self._completion = None
        self._finalize_due = None
        self._stopping_sink = None
