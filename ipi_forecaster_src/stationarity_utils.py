# ipi_forecaster_src/stationarity_utils.py

import warnings
from typing import Dict, Tuple, Union

import numpy as np
import pandas as pd
import logging

from statsmodels.tools.sm_exceptions import InterpolationWarning
from statsmodels.tsa.seasonal import STL
from statsmodels.tsa.stattools import adfuller, kpss

logger = logging.getLogger(__name__)

# Seasonal strength above which one seasonal difference is suggested
SEASONAL_STRENGTH_THRESHOLD = 0.64


def _clean(series: Union[pd.Series, np.ndarray]) -> pd.Series:
    s = pd.Series(series, dtype=float)
    if s.isna().any():
        raise ValueError("Unit-root tests require a series without missing values")
    return s


def difference(series: pd.Series, d: int = 0, D: int = 0, s: int = 12) -> pd.Series:
    """Apply d regular and D seasonal differences, dropping the burn-in."""
    out = pd.Series(series, dtype=float)
    for _ in range(D):
        out = out.diff(s)
    for _ in range(d):
        out = out.diff()
    return out.dropna()


def adf_test(series: pd.Series, regression: str = "c", autolag: str = "AIC") -> Dict[str, float]:
    """
    Augmented Dickey-Fuller test (null: unit root).

    Parameters
    ----------
    series : pd.Series
        Series to test
    regression : str, default="c"
        Deterministic terms: 'n', 'c', 'ct' or 'ctt'
    autolag : str, default="AIC"
        Lag selection criterion

    Returns
    -------
    Dict[str, float]
        statistic, p_value, lags, nobs and the 1%/5%/10% critical values
    """
    s = _clean(series)
    with warnings.catch_warnings():
        # Tuple-return deprecation in recent statsmodels; unpacking works either way
        warnings.simplefilter("ignore", FutureWarning)
        stat, pvalue, lags, nobs, crit, _ = adfuller(s, regression=regression, autolag=autolag)
    return {
        "statistic": float(stat),
        "p_value": float(pvalue),
        "lags": int(lags),
        "nobs": int(nobs),
        "crit_1%": float(crit["1%"]),
        "crit_5%": float(crit["5%"]),
        "crit_10%": float(crit["10%"]),
    }


def kpss_test(series: pd.Series, regression: str = "c", nlags: Union[str, int] = "auto") -> Dict[str, float]:
    """
    KPSS test (null: stationarity around a level or trend).

    p-values are interpolated from a table bounded to [0.01, 0.10]; values at
    the bounds mean "at most" / "at least".
    """
    s = _clean(series)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", InterpolationWarning)
        warnings.simplefilter("ignore", FutureWarning)
        stat, pvalue, lags, crit = kpss(s, regression=regression, nlags=nlags)
    return {
        "statistic": float(stat),
        "p_value": float(pvalue),
        "lags": int(lags),
        "nobs": int(len(s)),
        "crit_1%": float(crit["1%"]),
        "crit_5%": float(crit["5%"]),
        "crit_10%": float(crit["10%"]),
    }


def unit_root_table(series: pd.Series, s: int = 12) -> pd.DataFrame:
    """
    ADF and KPSS results on the level and the usual differenced transforms.

    Transforms: level, (1-B), (1-B^s), (1-B)(1-B^s).
    """
    transforms = {
        "level": (0, 0),
        "diff": (1, 0),
        "seasonal_diff": (0, 1),
        "diff_seasonal_diff": (1, 1),
    }
    rows = []
    for name, (d, D) in transforms.items():
        x = difference(series, d=d, D=D, s=s)
        if len(x) < 2 * s:
            logger.warning("Skipping unit-root tests on %s: only %d observations", name, len(x))
            continue
        for test_name, func in (("ADF", adf_test), ("KPSS", kpss_test)):
            res = func(x)
            rows.append({"transform": name, "test": test_name, **res})
    return pd.DataFrame(rows)


def seasonal_strength(series: pd.Series, period: int = 12) -> float:
    """
    Strength of seasonality from an STL decomposition.

    F_s = max(0, 1 - Var(remainder) / Var(seasonal + remainder)); values near
    1 indicate a dominant seasonal pattern.
    """
    s = _clean(series)
    if len(s) < 2 * period + 1:
        raise ValueError(f"Need at least {2 * period + 1} observations for STL, got {len(s)}")
    res = STL(s.to_numpy(), period=period, robust=True).fit()
    resid = np.asarray(res.resid)
    denom = np.var(np.asarray(res.seasonal) + resid)
    if denom <= 0:
        return 0.0
    return float(max(0.0, 1.0 - np.var(resid) / denom))


def suggest_differencing(series: pd.Series,
                         s: int = 12,
                         alpha: float = 0.05,
                         max_d: int = 2,
                         threshold: float = SEASONAL_STRENGTH_THRESHOLD) -> Tuple[int, int]:
    """
    Suggest (d, D) for a monthly series.

    D is 1 when the STL seasonal strength exceeds `threshold`. d is then
    increased while KPSS rejects stationarity of the seasonally differenced
    series at level `alpha`, up to `max_d`.

    Returns
    -------
    Tuple[int, int]
        (d, D)
    """
    x = _clean(series)
    strength = seasonal_strength(x, period=s)
    D = 1 if strength > threshold else 0
    logger.debug("Seasonal strength %.3f -> D=%d", strength, D)

    x = difference(x, D=D, s=s)
    d = 0
    while d < max_d and kpss_test(x)["p_value"] < alpha:
        d += 1
        x = x.diff().dropna()
    logger.info("Suggested differencing: d=%d, D=%d", d, D)
    return d, D
