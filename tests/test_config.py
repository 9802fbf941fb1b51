from pathlib import Path

import yaml

from posecap.core.config import CaptureConfig, RecordingConfig


def test_defaults():
    config = CaptureConfig()

    assert config.model.model_name == "movenet"
    assert config.score_threshold == 0.0
    assert config.recording.export_filename == "keypoints_with_scores.csv"
    assert config.recording.frame_size is None
    assert config.validate() == []


def test_yaml_round_trip(tmp_path):
    config = CaptureConfig()
    config.model.score_threshold = 0.35
    config.render.left_color = (1, 2, 3)
    config.recording.output_dir = tmp_path / "out"
    config.recording.frame_size = (640, 480)

    path = tmp_path / "capture.yaml"
    config.to_yaml(path)
    loaded = CaptureConfig.from_yaml(path)

    assert loaded == config
    assert isinstance(loaded.recording.output_dir, Path)
    assert loaded.recording.frame_size == (640, 480)
    assert loaded.render.left_color == (1, 2, 3)


def test_partial_yaml_keeps_other_defaults(tmp_path):
    path = tmp_path / "capture.yaml"
    path.write_text(yaml.dump({"model": {"score_threshold": 0.5}}))

    config = CaptureConfig.from_yaml(path)

    assert config.score_threshold == 0.5
    assert config.model.model_name == "movenet"
    assert config.recording == RecordingConfig()


def test_empty_yaml(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert CaptureConfig.from_yaml(path) == CaptureConfig()


def test_validate_reports_issues():
    config = CaptureConfig()
    config.model.model_name = "unknown"
    config.model.score_threshold = 1.5
    config.recording.fps = 0
    config.recording.codec = "MP4"
    config.recording.flush_delay = -1

    issues = config.validate()

    assert len(issues) == 5
    assert any("Unknown pose model" in issue for issue in issues)
    assert any("score_threshold" in issue for issue in issues)
