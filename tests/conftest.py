from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
import pytest

from posecap.core.config import CaptureConfig
from posecap.core.types import Keypoint, Pose
from posecap.export.csv_export import ExportSink
from posecap.recording.session import RecordingSession
from posecap.recording.sink import CaptureSink, CaptureSinkError
from posecap.vision.skeleton import COCO_KEYPOINTS


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSink(CaptureSink):
    """In-memory capture sink; completes on stop() unless told otherwise."""

    def __init__(self, fail_open: bool = False, error: Optional[BaseException] = None,
                 auto_complete: bool = True):
        self.fail_open = fail_open
        self.error = error
        self.auto_complete = auto_complete
        self.output_path = Path("memory/capture.avi")
        self.frames: List[np.ndarray] = []
        self.opened = False
        self.stopped = False
        self._on_complete = None

    def open(self) -> None:
        if self.fail_open:
            raise CaptureSinkError("encoder unavailable")
        self.opened = True

    def write(self, frame: np.ndarray) -> None:
        self.frames.append(frame.copy())

    def stop(self, on_complete) -> None:
        self.stopped = True
        self._on_complete = on_complete
        if self.auto_complete:
            self.complete()

    def complete(self) -> None:
        self._on_complete(self.error)


class MemoryExportSink(ExportSink):
    def __init__(self):
        self.documents: List[str] = []

    def save(self, document: str) -> Path:
        self.documents.append(document)
        return Path(f"memory/export_{len(self.documents)}.csv")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sinks():
    """Every FakeSink created by sink_factory, in creation order."""
    return []


@pytest.fixture
def sink_options():
    """Keyword arguments for the next FakeSink; tests may mutate it."""
    return {}


@pytest.fixture
def sink_factory(sinks, sink_options):
    def factory():
        sink = FakeSink(**sink_options)
        sinks.append(sink)
        return sink
    return factory


@pytest.fixture
def exports():
    return MemoryExportSink()


@pytest.fixture
def config():
    return CaptureConfig()


@pytest.fixture
def session(config, sink_factory, exports, clock):
    return RecordingSession(config, sink_factory, exports, clock=clock)


@pytest.fixture
def make_pose():
    """
    Build a 17-keypoint pose.

    points maps keypoint index to (x, y, score); every other keypoint is
    placed at the origin with fill_score.
    """
    def _make_pose(points: Optional[Dict[int, Tuple]] = None, fill_score: Optional[float] = 0.0,
                   count: int = len(COCO_KEYPOINTS)) -> Pose:
        points = points or {}
        keypoints = []
        for i in range(count):
            if i in points:
                x, y, score = points[i]
                keypoints.append(Keypoint(x=x, y=y, score=score))
            else:
                keypoints.append(Keypoint(x=0.0, y=0.0, score=fill_score))
        return Pose(keypoints=keypoints)
    return _make_pose
