"""Export recorded keypoints to CSV format."""

import csv
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from posecap.utils import next_available_path

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_FILENAME = "keypoints_with_scores.csv"


def csv_header(keypoint_names: Sequence[str]) -> str:
    """
    Build the header line.

    Format: timestamp, then <name>_x, <name>_y, <name>_score per keypoint
    """
    columns = ["timestamp"]
    for name in keypoint_names:
        columns.extend([f"{name}_x", f"{name}_y", f"{name}_score"])
    return ",".join(columns)


def serialize_csv(keypoint_names: Sequence[str], rows: Sequence[str]) -> str:
    """
    Build the complete export document.

    Args:
        keypoint_names: Canonical keypoint schema, in column order
        rows: Formatted rows, in recording order

    Returns:
        Header line followed by the rows, separated by newlines
    """
    return "\n".join([csv_header(keypoint_names), *rows])


class ExportSink(ABC):
    """Destination for a finished export document."""

    @abstractmethod
    def save(self, document: str) -> Path:
        """Persist the document and return where it was stored."""


class CsvFileExporter(ExportSink):
    """Writes export documents to a directory, one file per session."""

    def __init__(
        self,
        output_dir: Path,
        filename: str = DEFAULT_EXPORT_FILENAME,
        overwrite: bool = False,
    ):
        """
        Initialize CSV exporter.

        Args:
            output_dir: Directory receiving the CSV files
            filename: Base filename
            overwrite: Replace an existing file instead of picking a new name
        """
        self.output_dir = Path(output_dir)
        self.filename = filename
        self.overwrite = overwrite

    def save(self, document: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)

        output_path = self.output_dir / self.filename
        if not self.overwrite:
            output_path = next_available_path(output_path)

        output_path.write_text(document, encoding="utf-8")
        logger.info(f"Exported keypoints: {output_path}")
        return output_path


def load_keypoints_csv(path: Path) -> Tuple[NDArray[np.float64], NDArray[np.float64], List[str]]:
    """
    Read an export back for analysis.

    Args:
        path: CSV file written by CsvFileExporter

    Returns:
        (timestamps, keypoints, names) where timestamps has shape (T,),
        keypoints has shape (T, K, 3) holding (x, y, score) with NaN for
        filtered keypoints, and names lists the K keypoint names
    """
    with open(path, "r", newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None or not header or header[0] != "timestamp":
            raise ValueError(f"Not a keypoint export: {path}")
        if (len(header) - 1) % 3 != 0:
            raise ValueError(f"Malformed header in {path}: {len(header)} columns")

        names = [column[: -len("_x")] for column in header[1::3]]
        values = [
            [float(field) if field != "" else np.nan for field in row]
            for row in reader
            if row
        ]

    for line_no, row in enumerate(values, start=2):
        if len(row) != len(header):
            raise ValueError(
                f"Row {line_no} of {path} has {len(row)} fields, expected {len(header)}"
            )

    data = np.array(values, dtype=np.float64).reshape(-1, len(header))
    timestamps = data[:, 0]
    keypoints = data[:, 1:].reshape(len(data), len(names), 3)
    return timestamps, keypoints, names
