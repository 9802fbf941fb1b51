from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple


class KeypointSchemaError(ValueError):
    """Raised when a pose does not match the canonical keypoint schema."""


@dataclass(frozen=True)
class KeypointSides:
    left: Tuple[int, ...]
    middle: Tuple[int, ...]
    right: Tuple[int, ...]


@dataclass(frozen=True)
class Topology:
    keypoints: Tuple[str, ...]
    sides: KeypointSides
    pairs: Tuple[Tuple[int, int], ...]

    @property
    def num_keypoints(self) -> int:
        return len(self.keypoints)


COCO_KEYPOINTS = (
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
)

COCO_SIDES = KeypointSides(
    left=(1, 3, 5, 7, 9, 11, 13, 15),
    middle=(0,),
    right=(2, 4, 6, 8, 10, 12, 14, 16),
)

COCO_PAIRS = (
    (0, 1),
    (0, 2),
    (1, 3),
    (2, 4),
    (5, 6),
    (5, 7),
    (5, 11),
    (6, 8),
    (6, 12),
    (7, 9),
    (8, 10),
    (11, 12),
    (11, 13),
    (12, 14),
    (13, 15),
    (14, 16),
)

COCO_TOPOLOGY = Topology(COCO_KEYPOINTS, COCO_SIDES, COCO_PAIRS)

TOPOLOGIES: Dict[str, Topology] = {
    "movenet": COCO_TOPOLOGY,
    "posenet": COCO_TOPOLOGY,
}


def get_topology(model_name: str) -> Topology:
    try:
        return TOPOLOGIES[model_name.lower()]
    except KeyError:
        supported = ", ".join(sorted(TOPOLOGIES))
        raise ValueError(f"Unknown pose model '{model_name}' (supported: {supported})") from None


def get_keypoint_index_by_side(model_name: str) -> KeypointSides:
    return get_topology(model_name).sides


def get_adjacent_pairs(model_name: str) -> List[Tuple[int, int]]:
    return list(get_topology(model_name).pairs)


def check_keypoint_count(keypoints: Sequence, names: Sequence[str]) -> None:
    """Raise KeypointSchemaError unless there is one keypoint per schema name."""
    if len(keypoints) != len(names):
        raise KeypointSchemaError(
            f"Pose has {len(keypoints)} keypoints, expected {len(names)}"
        )
