# ipi_forecaster_src/metrics_utils.py

import math
from typing import Dict, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats
import logging

logger = logging.getLogger(__name__)

ArrayLike = Union[List[float], np.ndarray, pd.Series]

MEASURE_COLUMNS = ["n", "ME", "MAE", "RMSE", "MAPE", "RelMAE", "RelRMSE", "MASE", "DM_t", "DM_p"]


def to_1d_array(x: ArrayLike) -> np.ndarray:
    """
    Convert input to a 1D float array, rejecting missing values.

    Raises
    ------
    ValueError
        If the input contains NaN or infinite values
    """
    arr = np.asarray(x, dtype=float).ravel()
    if not np.all(np.isfinite(arr)):
        raise ValueError("Error measures require finite values")
    return arr


def _pair(y_true: ArrayLike, y_hat: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    yt = to_1d_array(y_true)
    yh = to_1d_array(y_hat)
    if len(yt) != len(yh):
        raise ValueError(f"Length mismatch: {len(yt)} realised vs {len(yh)} forecast values")
    return yt, yh


def mae(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Mean Absolute Error.

    Returns
    -------
    float
        Mean absolute error, or NaN for empty input
    """
    yt, yh = _pair(y_true, y_hat)
    if len(yt) == 0:
        return float("nan")
    return float(np.mean(np.abs(yh - yt)))


def rmse(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Calculate Root Mean Square Error (NaN for empty input)."""
    yt, yh = _pair(y_true, y_hat)
    if len(yt) == 0:
        return float("nan")
    return float(np.sqrt(np.mean((yh - yt) ** 2)))


def mape(y_true: ArrayLike, y_hat: ArrayLike, eps: float = 1e-8) -> float:
    """
    Mean Absolute Percentage Error in percent, with denominators floored at `eps`.
    """
    yt, yh = _pair(y_true, y_hat)
    if len(yt) == 0:
        return float("nan")
    denom = np.maximum(np.abs(yt), eps)
    return float(np.mean(np.abs(yh - yt) / denom) * 100.0)


def relative_mae(y_true: ArrayLike, y_hat: ArrayLike, y_hat_naive: ArrayLike) -> float:
    """
    Ratio of the candidate MAE to the naive benchmark MAE.

    Values below 1 beat the benchmark; a perfect candidate scores 0 whenever
    the benchmark has non-zero error. NaN when the benchmark MAE is zero.
    """
    mae_naive = mae(y_true, y_hat_naive)
    if not np.isfinite(mae_naive) or mae_naive == 0.0:
        return float("nan")
    return float(mae(y_true, y_hat) / mae_naive)


def mase_metric(y_true: ArrayLike, y_hat: ArrayLike, y_train: ArrayLike, m: int = 12) -> float:
    """
    Calculate Mean Absolute Scaled Error.

    The MAE is scaled by the in-sample MAE of the seasonal naive forecast
    with period `m`.

    Notes
    -----
    Values < 1 indicate the forecast is better than the in-sample naive
    seasonal forecast.
    """
    num = mae(y_true, y_hat)
    tr = to_1d_array(y_train)
    if len(tr) <= m or not np.isfinite(num):
        return float("nan")
    denom = np.mean(np.abs(tr[m:] - tr[:-m]))
    if not np.isfinite(denom) or denom <= 0.0:
        return float("nan")
    return float(num / denom)


def theil_u2(y_true: ArrayLike, y_hat: ArrayLike, y_hat_naive: ArrayLike) -> float:
    """
    Calculate Theil's U2 statistic (RMSE relative to the naive forecast).

    Values < 1 indicate the forecast is better than the naive benchmark.
    """
    rmse_n = rmse(y_true, y_hat_naive)
    if not np.isfinite(rmse_n) or rmse_n == 0.0:
        return float("nan")
    return float(rmse(y_true, y_hat) / rmse_n)


def dm_newey_west_var(d: np.ndarray, h: int) -> float:
    """
    Newey-West variance of the mean loss differential, truncated at lag h-1.
    """
    n = len(d)
    if n < 3:
        return float("nan")

    e = d - float(np.mean(d))
    L = max(0, int(h) - 1)

    s_hat = float(np.mean(e * e))
    for k in range(1, L + 1):
        cov = float(np.mean(e[k:] * e[:-k]))
        w = 1.0 - (k / (L + 1.0))
        s_hat += 2.0 * w * cov

    var_dbar = s_hat / n
    return float(var_dbar) if var_dbar > 0.0 else float("nan")


def diebold_mariano(y_true: ArrayLike,
                    y_hat1: ArrayLike,
                    y_hat2: ArrayLike,
                    h: int = 1,
                    power: int = 2) -> Tuple[float, float]:
    """
    Perform the Diebold-Mariano test for equal predictive accuracy.

    Parameters
    ----------
    y_true : ArrayLike
        Realised values
    y_hat1, y_hat2 : ArrayLike
        Competing forecasts
    h : int, default=1
        Forecast horizon for the variance adjustment
    power : int, default=2
        Loss exponent (1 = absolute, 2 = squared)

    Returns
    -------
    Tuple[float, float]
        (statistic, two-sided p-value); both NaN when the test is undefined.
        Negative statistics favour the first forecast.
    """
    yt, y1 = _pair(y_true, y_hat1)
    _, y2 = _pair(y_true, y_hat2)
    if len(yt) < 3:
        return float("nan"), float("nan")

    if power == 1:
        d = np.abs(y1 - yt) - np.abs(y2 - yt)
    else:
        d = (y1 - yt) ** 2 - (y2 - yt) ** 2

    var_dbar = dm_newey_west_var(d, h=h)
    if not np.isfinite(var_dbar) or var_dbar <= 0.0:
        return float("nan"), float("nan")

    dm_t = float(np.mean(d)) / math.sqrt(var_dbar)
    p = 2.0 * stats.norm.sf(abs(dm_t))
    return float(dm_t), float(min(max(p, 0.0), 1.0))


def align_for_evaluation(y_true: pd.Series, y_hat: pd.Series, y_naive: pd.Series) -> pd.DataFrame:
    """
    Align realised values and forecasts on the forecast index.

    Periods without a realised value are dropped, so ex-ante horizons beyond
    the data are skipped. A missing forecast where a realised value exists
    is an error.
    """
    y_hat = pd.Series(y_hat, dtype=float)
    frame = pd.DataFrame({
        "y_true": pd.Series(y_true, dtype=float).reindex(y_hat.index),
        "y_hat": y_hat,
        "y_naive": pd.Series(y_naive, dtype=float).reindex(y_hat.index),
    })
    frame = frame[frame["y_true"].notna()]
    missing = frame[["y_hat", "y_naive"]].isna().any(axis=1)
    if missing.any():
        raise ValueError(f"Forecasts missing for {int(missing.sum())} period(s) with realised values")
    return frame


def compute_error_measures(y_true: pd.Series,
                           y_hat: pd.Series,
                           y_naive: pd.Series,
                           y_train: Optional[ArrayLike] = None,
                           s: int = 12) -> Dict[str, float]:
    """
    Scale-free comparison of a candidate forecast with the naive benchmark.

    Parameters
    ----------
    y_true : pd.Series
        Realised values (may cover only part of the forecast index)
    y_hat : pd.Series
        Candidate forecasts
    y_naive : pd.Series
        Benchmark forecasts on the same index as y_hat
    y_train : ArrayLike, optional
        In-sample data for MASE scaling
    s : int, default=12
        Seasonal period for MASE

    Returns
    -------
    Dict[str, float]
        n, ME, MAE, RMSE, MAPE, RelMAE, RelRMSE, MASE, DM_t, DM_p

    Raises
    ------
    ValueError
        If a forecast is missing where a realised value exists
    """
    frame = align_for_evaluation(y_true, y_hat, y_naive)
    yt = frame["y_true"].to_numpy()
    yh = frame["y_hat"].to_numpy()
    yn = frame["y_naive"].to_numpy()
    n = len(yt)
    if n == 0:
        logger.warning("No realised values overlap the forecast window; measures are NaN")

    dm_t, dm_p = diebold_mariano(yt, yh, yn, h=1, power=2)
    return {
        "n": n,
        "ME": float(np.mean(yh - yt)) if n > 0 else float("nan"),
        "MAE": mae(yt, yh),
        "RMSE": rmse(yt, yh),
        "MAPE": mape(yt, yh),
        "RelMAE": relative_mae(yt, yh, yn),
        "RelRMSE": theil_u2(yt, yh, yn),
        "MASE": mase_metric(yt, yh, y_train, m=s) if y_train is not None else float("nan"),
        "DM_t": dm_t,
        "DM_p": dm_p,
    }


def error_table(measures: Mapping[str, Mapping[str, float]]) -> pd.DataFrame:
    """One row of error measures per model variant, indexed by model name."""
    table = pd.DataFrame.from_dict(dict(measures), orient="index")
    table = table.reindex(columns=MEASURE_COLUMNS)
    table.index.name = "model"
    return table
