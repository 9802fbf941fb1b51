"""
File naming helpers for recording outputs.
"""

from pathlib import Path


def next_available_path(path: Path) -> Path:
    """
    Find the first path that does not exist yet.

    Returns `path` itself when free, otherwise appends an increasing
    numeric suffix to the stem: capture.avi, capture_1.avi, capture_2.avi...
    """
    path = Path(path)
    if not path.exists():
        return path

    index = 1
    while True:
        candidate = path.with_name(f"{path.stem}_{index}{path.suffix}")
        if not candidate.exists():
            return candidate
        index += 1
