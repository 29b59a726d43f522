# ipi_forecaster_src/file_utils.py

import csv
import pandas as pd
from pathlib import Path
from typing import List, Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

METRICS_HEADER = [
    "timestamp", "series", "mode", "model", "order", "train_len", "test_len",
    "n", "ME", "MAE", "RMSE", "MAPE", "RelMAE", "RelRMSE", "MASE", "DM_t", "DM_p",
    "outliers", "search_status",
]


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.
    """
    path.mkdir(parents=True, exist_ok=True)


def append_metrics_csv_row(csv_path: Optional[Path],
                           row: Dict[str, Any],
                           header: List[str] = METRICS_HEADER) -> None:
    """
    Append a single metrics row to CSV, creating header on first write.

    Parameters
    ----------
    csv_path : Optional[Path]
        Path to metrics CSV file (None to skip writing)
    row : Dict[str, Any]
        Metric values; keys outside `header` are ignored
    header : List[str]
        Column names for the CSV

    Notes
    -----
    Write failures are logged at error level and do not abort the run.
    """
    if csv_path is None:
        return

    try:
        ensure_dir(csv_path.parent)
        exists = csv_path.exists()

        with csv_path.open("a", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=header, extrasaction="ignore")
            if not exists:
                writer.writeheader()
            writer.writerow(row)

    except OSError as e:
        logger.error("Failed to append metrics to %s: %s", csv_path, e)


def write_frame_csv(frame: pd.DataFrame, csv_path: Path, index: bool = False) -> Optional[Path]:
    """
    Write a DataFrame to CSV (parents created). Returns the path, or None on failure.
    """
    try:
        ensure_dir(csv_path.parent)
        frame.to_csv(csv_path, index=index)
        logger.debug("Wrote %d rows to %s", len(frame), csv_path)
        return csv_path
    except OSError as e:
        logger.error("Failed to write %s: %s", csv_path, e)
        return None
