"""
Configuration system for the pose capture pipeline.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import yaml

from posecap.vision.skeleton import TOPOLOGIES


@dataclass
class ModelConfig:
    """Pose model configuration."""

    model_name: str = "movenet"  # Options: movenet, posenet

    # Shared by the renderer and the recording session: a keypoint drawn on
    # screen is always present in the export and vice versa.
    score_threshold: float = 0.0


@dataclass
class RenderConfig:
    """Overlay styling (BGR colors)."""

    middle_color: Tuple[int, int, int] = (255, 255, 255)  # White
    left_color: Tuple[int, int, int] = (0, 128, 0)  # Green
    right_color: Tuple[int, int, int] = (0, 165, 255)  # Orange
    stroke_color: Tuple[int, int, int] = (255, 255, 255)

    line_width: int = 2
    keypoint_radius: int = 4

    def __post_init__(self):
        self.middle_color = tuple(self.middle_color)
        self.left_color = tuple(self.left_color)
        self.right_color = tuple(self.right_color)
        self.stroke_color = tuple(self.stroke_color)


@dataclass
class RecordingConfig:
    """Video recording and keypoint export configuration."""

    output_dir: Path = field(default_factory=lambda: Path("data/recordings"))

    # Video output
    video_filename: str = "capture.avi"
    codec: str = "MJPG"
    fps: float = 30.0
    frame_size: Optional[Tuple[int, int]] = None  # (width, height); None = first frame
    queue_size: int = 64

    # Keypoint export
    export_filename: str = "keypoints_with_scores.csv"
    overwrite: bool = False

    # Seconds to wait after the video sink finishes before exporting
    flush_delay: float = 0.0

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)
        if self.frame_size is not None:
            self.frame_size = (int(self.frame_size[0]), int(self.frame_size[1]))


@dataclass
class CaptureConfig:
    """Main pose capture configuration."""

    model: ModelConfig = field(default_factory=ModelConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    recording: RecordingConfig = field(default_factory=RecordingConfig)

    @property
    def score_threshold(self) -> float:
        return self.model.score_threshold

    @classmethod
    def from_yaml(cls, path: Path) -> "CaptureConfig":
        """Load configuration from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        if "model" in data:
            config.model = ModelConfig(**data["model"])
        if "render" in data:
            config.render = RenderConfig(**data["render"])
        if "recording" in data:
            config.recording = RecordingConfig(**data["recording"])

        return config

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""

        def to_dict(obj):
            if hasattr(obj, "__dataclass_fields__"):
                return {k: to_dict(v) for k, v in obj.__dict__.items()}
            elif isinstance(obj, Path):
                return str(obj)
            elif isinstance(obj, tuple):
                return list(obj)
            return obj

        data = to_dict(self)

        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def validate(self) -> List[str]:
        """Validate configuration and return list of warnings/errors."""
        issues = []

        if self.model.model_name.lower() not in TOPOLOGIES:
            issues.append(f"Unknown pose model: {self.model.model_name}")

        if not 0.0 <= self.model.score_threshold <= 1.0:
            issues.append(
                f"score_threshold must be within [0, 1], got {self.model.score_threshold}"
            )

        if self.render.line_width < 1:
            issues.append("line_width must be at least 1")
        if self.render.keypoint_radius < 1:
            issues.append("keypoint_radius must be at least 1")

        if self.recording.fps <= 0:
            issues.append(f"fps must be positive, got {self.recording.fps}")
        if len(self.recording.codec) != 4:
            issues.append(f"codec must be a 4-character fourcc, got '{self.recording.codec}'")
        if self.recording.queue_size < 1:
            issues.append("queue_size must be at least 1")
        if self.recording.flush_delay < 0:
            issues.append("flush_delay cannot be negative")
        if self.recording.frame_size is not None and min(self.recording.frame_size) <= 0:
            issues.append(f"frame_size must be positive, got {self.recording.frame_size}")

        if self.recording.video_filename == self.recording.export_filename:
            issues.append("video_filename and export_filename must differ")

        return issues
