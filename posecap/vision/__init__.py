"""Keypoint topology and overlay rendering."""

from posecap.vision.skeleton import (
    COCO_KEYPOINTS,
    KeypointSchemaError,
    KeypointSides,
    Topology,
    get_adjacent_pairs,
    get_keypoint_index_by_side,
    get_topology,
)

__all__ = [
    "COCO_KEYPOINTS",
    "KeypointSchemaError",
    "KeypointSides",
    "Topology",
    "get_adjacent_pairs",
    "get_keypoint_index_by_side",
    "get_topology",
]
