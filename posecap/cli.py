"""
Command-line driver: replay a video with recorded pose-detector output.
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import cv2
from rich.console import Console
from rich.progress import track

from posecap.context import CaptureContext
from posecap.core.config import CaptureConfig
from posecap.core.types import Pose, poses_from_dicts

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging for the application."""
    formatter = logging.Formatter(
        fmt='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(console_handler)

    logging.getLogger('posecap').setLevel(logging.DEBUG if verbose else logging.INFO)


def load_pose_frames(path: Path) -> List[List[Pose]]:
    """
    Load per-frame pose-detector output.

    Accepts {"frames": [{"poses": [...]}, ...]} or a bare list of frames,
    where each frame is either {"poses": [...]} or a list of poses.
    """
    with open(path, "r") as f:
        data = json.load(f)

    frames = data.get("frames") if isinstance(data, dict) else data
    if not isinstance(frames, list):
        raise ValueError(f"No frame list found in {path}")

    result = []
    for index, frame in enumerate(frames):
        items: List[Dict[str, Any]] = (frame.get("poses") or []) if isinstance(frame, dict) else frame
        if not isinstance(items, list):
            raise ValueError(f"Frame {index} in {path} has no pose list")
        result.append(poses_from_dicts(items))
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Record a keypoint overlay video and CSV from pose-detector output",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Replay a video with its detections
  python -m posecap.cli --video input.mp4 --poses poses.json

  # Hide low-confidence keypoints in both the overlay and the CSV
  python -m posecap.cli --video input.mp4 --poses poses.json --threshold 0.3

  # Use custom configuration, as fast as possible
  python -m posecap.cli --video input.mp4 --poses poses.json --config capture.yaml --no-realtime
        """,
    )

    parser.add_argument("--video", type=Path, required=True, help="Input video file")
    parser.add_argument("--poses", type=Path, required=True, help="Per-frame poses (JSON)")
    parser.add_argument("--config", type=Path, help="Configuration file (YAML)")
    parser.add_argument("--output-dir", type=Path, help="Directory for the video and CSV")
    parser.add_argument(
        "--threshold",
        type=float,
        help="Keypoint score threshold shared by overlay and export",
    )
    parser.add_argument(
        "--no-realtime",
        action="store_true",
        help="Do not pace frames at the source frame rate",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    config = CaptureConfig.from_yaml(args.config) if args.config else CaptureConfig()
    if args.output_dir:
        config.recording.output_dir = args.output_dir
    if args.threshold is not None:
        config.model.score_threshold = args.threshold

    issues = config.validate()
    if issues:
        console.print("[yellow]Configuration warnings:[/yellow]")
        for issue in issues:
            console.print(f"  - {issue}")

    try:
        pose_frames = load_pose_frames(args.poses)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error loading poses:[/red] {e}")
        return 1

    cap = cv2.VideoCapture(str(args.video))
    if not cap.isOpened():
        console.print(f"[red]Error:[/red] Could not open video: {args.video}")
        return 1

    fps = cap.get(cv2.CAP_PROP_FPS)
    if fps <= 0:
        fps = config.recording.fps
    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    # Some backends report -1 when the frame count is unknown
    total_frames = max(0, int(cap.get(cv2.CAP_PROP_FRAME_COUNT))) or len(pose_frames)

    if config.recording.frame_size is None:
        config.recording.frame_size = (width, height)
    config.recording.fps = fps

    console.print(f"[cyan]Replaying:[/cyan] {args.video}")
    console.print(f"  Resolution: {width}x{height}")
    console.print(f"  FPS: {fps:g}")
    console.print(f"  Pose frames: {len(pose_frames)}")

    try:
        with CaptureContext(config) as ctx:
            ctx.start()
            started = time.perf_counter()

            try:
                for frame_idx in track(range(total_frames), description="Recording", total=total_frames):
                    ok, frame = cap.read()
                    if not ok:
                        break

                    poses = pose_frames[frame_idx] if frame_idx < len(pose_frames) else []
                    ctx.process(frame, poses)

                    if not args.no_realtime:
                        delay = started + (frame_idx + 1) / fps - time.perf_counter()
                        if delay > 0:
                            time.sleep(delay)
            except KeyboardInterrupt:
                console.print("\n[yellow]Stopped by user[/yellow]")

            # Stops the session and waits for the video and keypoint export
            result = ctx.close(timeout=60.0)
    finally:
        cap.release()

    if result is None:
        console.print("[red]Recording did not finish[/red]")
        return 1

    console.print("\n[bold green]✓ Recording complete![/bold green]")
    console.print(f"  Rows recorded: {result.frame_count}")
    console.print(f"  Duration: {result.duration:.2f}s")
    if result.media_error:
        console.print(f"  [red]Video failed:[/red] {result.media_error}")
    else:
        console.print(f"  Video: {result.media_path}")
    if result.exported:
        console.print(f"  Keypoints: {result.export_path}")
    elif result.export_error:
        console.print(f"  [red]Export failed:[/red] {result.export_error}")
    else:
        console.print("  Keypoints: nothing to export")

    return 0


if __name__ == "__main__":
    sys.exit(main())
