import json

import cv2
import numpy as np
import pytest

from posecap import cli
from posecap.vision.skeleton import COCO_KEYPOINTS

WIDTH, HEIGHT = 64, 48
FRAMES = 5


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda verbose=False: None)


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "input.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (WIDTH, HEIGHT))
    for i in range(FRAMES):
        writer.write(np.full((HEIGHT, WIDTH, 3), i * 30, dtype=np.uint8))
    writer.release()
    return path


@pytest.fixture
def poses(tmp_path):
    frames = []
    for i in range(FRAMES):
        keypoints = [{"x": 10 + i, "y": 20, "score": 0.9, "name": name} for name in COCO_KEYPOINTS]
        frames.append({"poses": [{"score": 0.8, "keypoints": keypoints}]})

    path = tmp_path / "poses.json"
    path.write_text(json.dumps({"frames": frames}))
    return path


def test_load_pose_frames_accepts_bare_lists(tmp_path):
    path = tmp_path / "poses.json"
    path.write_text(json.dumps([[{"keypoints": [{"x": 1, "y": 2}]}], {"poses": []}]))

    frames = cli.load_pose_frames(path)

    assert len(frames) == 2
    assert frames[0][0].keypoints[0].x == 1.0
    assert frames[1] == []


def test_replay_writes_video_and_csv(tmp_path, video, poses):
    out = tmp_path / "out"

    code = cli.main([
        "--video", str(video),
        "--poses", str(poses),
        "--output-dir", str(out),
        "--threshold", "0.5",
        "--no-realtime",
    ])

    assert code == 0
    assert (out / "capture.avi").stat().st_size > 0
    lines = (out / "keypoints_with_scores.csv").read_text().split("\n")
    assert len(lines) == FRAMES + 1
    assert lines[1].split(",")[1:4] == ["10", "20", "0.9"]


def test_missing_video(tmp_path, poses):
    code = cli.main(["--video", str(tmp_path / "nope.avi"), "--poses", str(poses),
                     "--output-dir", str(tmp_path / "out"), "--no-realtime"])

    assert code == 1


def test_bad_poses_file(tmp_path, video):
    bad = tmp_path / "poses.json"
    bad.write_text("{not json")

    code = cli.main(["--video", str(video), "--poses", str(bad),
                     "--output-dir", str(tmp_path / "out"), "--no-realtime"])

    assert code == 1


@pytest.mark.parametrize(
    "content",
    [
        {"frames": [{"poses": [{"keypoints": [{"y": 1}]}]}]},
        {"frames": [{"poses": ["pose"]}]},
        {"frames": [7]},
    ],
)
def test_malformed_poses_are_reported(tmp_path, video, content):
    bad = tmp_path / "poses.json"
    bad.write_text(json.dumps(content))

    code = cli.main(["--video", str(video), "--poses", str(bad),
                     "--output-dir", str(tmp_path / "out"), "--no-realtime"])

    assert code == 1


def test_interrupted_replay_still_exports(tmp_path, video, poses, monkeypatch):
    def interrupted_track(sequence, **kwargs):
        for i, item in enumerate(sequence):
            if i == 2:
                raise KeyboardInterrupt
            yield item

    monkeypatch.setattr(cli, "track", interrupted_track)
    out = tmp_path / "out"

    code = cli.main(["--video", str(video), "--poses", str(poses),
                     "--output-dir", str(out), "--no-realtime"])

    assert code == 0
    lines = (out / "keypoints_with_scores.csv").read_text().split("\n")
    assert len(lines) == 3


def test_unknown_frame_count_falls_back_to_pose_frames(tmp_path, video, poses, monkeypatch):
    real_capture = cv2.VideoCapture

    class UnknownLengthCapture:
        def __init__(self, path):
            self._cap = real_capture(path)

        def get(self, prop):
            if prop == cv2.CAP_PROP_FRAME_COUNT:
                return -1.0
            return self._cap.get(prop)

        def __getattr__(self, name):
            return getattr(self._cap, name)

    monkeypatch.setattr(cli.cv2, "VideoCapture", UnknownLengthCapture)
    out = tmp_path / "out"

    code = cli.main(["--video", str(video), "--poses", str(poses),
                     "--output-dir", str(out), "--no-realtime"])

    assert code == 0
    lines = (out / "keypoints_with_scores.csv").read_text().split("\n")
    assert len(lines) == FRAMES + 1
