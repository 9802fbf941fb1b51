"""Keypoint export formats and sinks."""

from posecap.export.csv_export import (
    CsvFileExporter,
    ExportSink,
    csv_header,
    load_keypoints_csv,
    serialize_csv,
)

__all__ = [
    "CsvFileExporter",
    "ExportSink",
    "csv_header",
    "load_keypoints_csv",
    "serialize_csv",
]
