# ipi_forecaster_src/data_utils.py

import pandas as pd
from pathlib import Path
from typing import Optional
import logging

from helpers.temporal import MonthlyIndexError, ensure_monthly_index

logger = logging.getLogger(__name__)


def load_series_csv(series_path: Path, date_col: str = "date", value_col: str = "value") -> pd.Series:
    """
    Load a monthly series from a CSV file with a date and a value column.

    Parameters
    ----------
    series_path : Path
        Path to the CSV file
    date_col : str, default="date"
        Column holding the observation dates (any day of the month)
    value_col : str, default="value"
        Column holding the observations

    Returns
    -------
    pd.Series
        Series on a gap-free month-start DatetimeIndex, named after value_col

    Raises
    ------
    SystemExit
        If the file doesn't exist, lacks required columns, contains no valid
        data, or its dates do not form a complete monthly grid.
    """
    if not series_path.exists():
        raise SystemExit(f"Series CSV not found: {series_path}")

    logger.info("Loading series from: %s", series_path)
    df_series = pd.read_csv(series_path)

    if date_col not in df_series.columns or value_col not in df_series.columns:
        raise SystemExit(f"Series CSV must contain '{date_col}' and '{value_col}' columns.")

    df_series[date_col] = pd.to_datetime(df_series[date_col], errors="coerce")
    df_series[value_col] = pd.to_numeric(df_series[value_col], errors="coerce")
    n_raw = len(df_series)
    df_series = df_series.dropna(subset=[date_col, value_col])
    if len(df_series) < n_raw:
        logger.warning("Dropped %d unparseable rows from %s", n_raw - len(df_series), series_path.name)

    if df_series.empty:
        raise SystemExit("No valid rows found in series CSV after parsing.")

    series = pd.Series(df_series[value_col].values, index=df_series[date_col], name=value_col)
    try:
        return ensure_monthly_index(series)
    except MonthlyIndexError as e:
        raise SystemExit(f"Invalid monthly series in {series_path}: {e}") from e


def infer_series_name(series_path: Path, explicit: Optional[str] = None) -> str:
    """
    Series label used in output files: `explicit` if given, else the file stem.

    Examples
    --------
    >>> infer_series_name(Path("data/ipi_IT.csv"))
    'ipi_IT'
    """
    if explicit:
        return explicit
    return series_path.stem
