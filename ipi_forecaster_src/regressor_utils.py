# ipi_forecaster_src/regressor_utils.py

"""
Exogenous regressor construction aligned to a monthly time index.

A regressor matrix is a DataFrame with one named column per requested
effect (calendar, drift, outliers) and one row per index entry. Building
on an index that already includes the forecast horizon yields the future
regressor values as well; outlier columns then behave as follows beyond
the sample:

- AO (additive outlier): zero after its occurrence
- LS (level shift): stays at 1
- TC (transient change): decays geometrically with rate delta
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd
import logging

from .errors import DimensionMismatch

logger = logging.getLogger(__name__)

DEFAULT_DELTA = 0.7


class OutlierType(Enum):
    """Intervention patterns handled by the outlier search."""
    ADDITIVE = "AO"
    LEVEL_SHIFT = "LS"
    TRANSIENT_CHANGE = "TC"

    @classmethod
    def from_code(cls, code: str) -> "OutlierType":
        """Map 'AO'/'LS'/'TC' (case-insensitive) to an OutlierType."""
        key = (code or "").strip().upper()
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"Unknown outlier type '{code}'. Must be one of: {[m.value for m in cls]}")


# Tie-break order for equal statistics at the same position
OUTLIER_TYPE_ORDER = (OutlierType.ADDITIVE, OutlierType.LEVEL_SHIFT, OutlierType.TRANSIENT_CHANGE)


@dataclass(frozen=True)
class OutlierSpec:
    """An accepted outlier: type, 0-based position, estimated magnitude and its statistic."""

    type: OutlierType
    position: int
    magnitude: float = float("nan")
    t_stat: float = float("nan")

    @property
    def name(self) -> str:
        """Regressor column name, e.g. 'LS60'."""
        return f"{self.type.value}{self.position}"


def outlier_column(outlier_type: OutlierType, position: int, n: int, delta: float = DEFAULT_DELTA) -> np.ndarray:
    """
    Indicator/decay pattern of an outlier over `n` periods.

    Parameters
    ----------
    outlier_type : OutlierType
        AO, LS or TC
    position : int
        0-based occurrence position; may exceed n - 1 only if the column
        would be all zeros, which is rejected
    n : int
        Number of rows to produce (sample length, or sample plus horizon)
    delta : float, default=0.7
        Decay rate for transient changes, 0 < delta < 1

    Returns
    -------
    np.ndarray
        Column of length n
    """
    if not 0 <= position < n:
        raise ValueError(f"Outlier position {position} outside [0, {n})")
    if not 0.0 < delta < 1.0:
        raise ValueError("delta must lie strictly between 0 and 1")

    col = np.zeros(n, dtype=float)
    if outlier_type is OutlierType.ADDITIVE:
        col[position] = 1.0
    elif outlier_type is OutlierType.LEVEL_SHIFT:
        col[position:] = 1.0
    elif outlier_type is OutlierType.TRANSIENT_CHANGE:
        col[position:] = delta ** np.arange(n - position, dtype=float)
    else:
        raise ValueError(f"Unsupported outlier type: {outlier_type}")
    return col


def drift_column(n: int) -> np.ndarray:
    """Linear drift regressor 1..n."""
    return np.arange(1, n + 1, dtype=float)


def build_regressors(index: pd.DatetimeIndex,
                     calendar: Union[pd.DataFrame, Callable[[pd.DatetimeIndex], pd.DataFrame], None] = None,
                     drift: bool = False,
                     outliers: Iterable[OutlierSpec] = (),
                     delta: float = DEFAULT_DELTA) -> Optional[pd.DataFrame]:
    """
    Assemble a regressor matrix for `index`.

    Parameters
    ----------
    index : pd.DatetimeIndex
        Time index the rows must align to (past, or past plus horizon)
    calendar : DataFrame or callable, optional
        Calendar regressors. A callable is invoked with `index`. A frame must
        have exactly len(index) rows; its own index is replaced by `index`.
    drift : bool, default=False
        Append a 'drift' column 1..N
    outliers : Iterable[OutlierSpec]
        Outliers to encode as AO/LS/TC columns
    delta : float, default=0.7
        Transient change decay rate

    Returns
    -------
    Optional[pd.DataFrame]
        Regressor matrix, or None when no effect was requested

    Raises
    ------
    DimensionMismatch
        If the calendar block length differs from the index length
    """
    index = pd.DatetimeIndex(index)
    n = len(index)
    blocks = []

    if calendar is not None:
        cal = calendar(index) if callable(calendar) else calendar
        if len(cal) != n:
            raise DimensionMismatch(f"Calendar regressors have {len(cal)} rows, index has {n}")
        cal = pd.DataFrame(np.asarray(cal, dtype=float), index=index, columns=list(cal.columns))
        blocks.append(cal)

    if drift:
        blocks.append(pd.DataFrame({"drift": drift_column(n)}, index=index))

    outlier_cols = {}
    for spec in outliers:
        if spec.name in outlier_cols:
            logger.debug("Skipping duplicated outlier column %s", spec.name)
            continue
        outlier_cols[spec.name] = outlier_column(spec.type, spec.position, n, delta)
    if outlier_cols:
        blocks.append(pd.DataFrame(outlier_cols, index=index))

    if not blocks:
        return None

    matrix = pd.concat(blocks, axis=1)
    if matrix.columns.has_duplicates:
        raise ValueError(f"Duplicated regressor names: {matrix.columns[matrix.columns.duplicated()].tolist()}")
    return matrix


def split_regressors(matrix: Optional[pd.DataFrame], n: int) -> Tuple[Optional[pd.DataFrame], Optional[pd.DataFrame]]:
    """
    Split an extended regressor matrix into the first `n` rows and the rest.

    Returns (None, None) for a missing matrix.
    """
    if matrix is None:
        return None, None
    if n > len(matrix):
        raise DimensionMismatch(f"Cannot take {n} rows from a regressor matrix of {len(matrix)} rows")
    return matrix.iloc[:n], matrix.iloc[n:]


def check_regressor_rows(exog: Optional[pd.DataFrame], n: int, what: str = "series") -> None:
    """Raise DimensionMismatch unless `exog` is None or has exactly `n` rows."""
    if exog is not None and len(exog) != n:
        raise DimensionMismatch(f"Regressors have {len(exog)} rows but the {what} has {n}")
