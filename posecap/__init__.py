"""
Pose Capture

Overlays detected body-pose keypoints on live video, records the rendered
output as a video file and exports a synchronized per-frame keypoint log.

Features:
- 17-keypoint COCO body schema (MoveNet / PoseNet ordering)
- Side-colored keypoint and skeleton overlay
- Session state machine with monotonic timestamps
- Fixed-schema CSV export (keypoints_with_scores.csv)
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
