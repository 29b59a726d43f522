# ipi_forecaster_src/prediction_utils.py

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from scipy import stats
import logging

from helpers.temporal import extend_monthly_index
from .errors import DimensionMismatch
from .forecasting_utils import FittedModel
from .regressor_utils import check_regressor_rows, drift_column

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForecastConfig:
    """Ex-post window, ex-ante horizon and interval level."""

    ex_post_steps: int = 12
    horizon: int = 12
    alpha: float = 0.05

    def __post_init__(self):
        if self.ex_post_steps < 1 or self.horizon < 1:
            raise ValueError("ex_post_steps and horizon must be positive")
        if not 0.0 < self.alpha < 1.0:
            raise ValueError("alpha must lie strictly between 0 and 1")

    @classmethod
    def from_config_manager(cls, args=None) -> "ForecastConfig":
        from .config_utils import get_config_value

        return cls(
            ex_post_steps=int(get_config_value("forecast.ex_post_steps", 12, args, "ex_post_steps")),
            horizon=int(get_config_value("forecast.horizon", 12, args, "horizon")),
            alpha=float(get_config_value("forecast.alpha", 0.05, args, "alpha")),
        )


@dataclass(frozen=True)
class ForecastResult:
    """Point forecasts with normal prediction bands on the forecast index."""

    mean: pd.Series
    se: pd.Series
    lower: pd.Series
    upper: pd.Series
    alpha: float
    horizon: int
    mode: str
    model_name: str = ""

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame({
            "forecast": self.mean,
            "se": self.se,
            "lower": self.lower,
            "upper": self.upper,
        })
        frame.insert(0, "step", np.arange(1, len(frame) + 1))
        frame["model"] = self.model_name
        frame["mode"] = self.mode
        return frame


def _bands(mean: pd.Series, se: pd.Series, alpha: float, horizon: int, mode: str, model_name: str) -> ForecastResult:
    z = stats.norm.ppf(1.0 - alpha / 2.0)
    return ForecastResult(
        mean=mean,
        se=se,
        lower=mean - z * se,
        upper=mean + z * se,
        alpha=alpha,
        horizon=horizon,
        mode=mode,
        model_name=model_name,
    )


def _with_drift(fitted: FittedModel, exog: Optional[pd.DataFrame], start: int, n: int,
                index: Optional[pd.Index] = None) -> Optional[pd.DataFrame]:
    """Regressor block in the fitted model's column order, drift continued from `start`."""
    names = fitted.exog_names
    if not names:
        if exog is not None and exog.shape[1] > 0:
            raise DimensionMismatch("Model was fitted without regressors but regressors were supplied")
        block = None
    else:
        if exog is None:
            raise DimensionMismatch(f"Model needs regressors {names} but none were supplied")
        check_regressor_rows(exog, n, "forecast window")
        if isinstance(exog, pd.DataFrame) and set(names).issubset(exog.columns):
            block = exog[names]
        elif np.shape(exog)[1] == len(names):
            block = pd.DataFrame(np.asarray(exog, dtype=float), columns=names)
        else:
            raise DimensionMismatch(f"Expected {len(names)} regressor columns, got {np.shape(exog)[1]}")
        block = pd.DataFrame(np.asarray(block, dtype=float), columns=names, index=index)

    if fitted.has_drift:
        drift = pd.DataFrame({"drift": drift_column(start + n)[start:]}, index=index)
        block = drift if block is None else pd.concat([block, drift], axis=1)
    return block


def ex_post_forecast(fitted: FittedModel,
                     endog: pd.Series,
                     exog: Optional[pd.DataFrame] = None,
                     steps: int = 12,
                     alpha: float = 0.05,
                     model_name: str = "") -> ForecastResult:
    """
    One-step-ahead forecasts of the last `steps` observations with fixed coefficients.

    The fitted parameters are applied to the whole of `endog` without
    re-estimation; the forecast for period t uses observations up to t-1.

    Parameters
    ----------
    fitted : FittedModel
        Model estimated on (a prefix of) endog
    endog : pd.Series
        Full observed series, at least as long as the fitting sample
    exog : Optional[pd.DataFrame]
        Regressors for the full series (drift is added automatically)
    steps : int, default=12
        Number of trailing observations to forecast
    alpha : float, default=0.05
        Interval significance level

    Returns
    -------
    ForecastResult
        mode 'ex_post', indexed by the forecast periods
    """
    n = len(endog)
    if not 1 <= steps < n:
        raise ValueError(f"steps must lie in [1, {n - 1}], got {steps}")
    if np.isnan(np.asarray(endog, dtype=float)).any():
        raise ValueError("Endogenous series contains NaN values")

    design = _with_drift(fitted, exog, 0, n, index=getattr(endog, "index", None))
    res = fitted.results.apply(endog, exog=design, refit=False)
    pred = res.get_prediction(start=n - steps, end=n - 1)

    index = endog.index[n - steps:] if isinstance(endog, pd.Series) else pd.RangeIndex(n - steps, n)
    mean = pd.Series(np.asarray(pred.predicted_mean, dtype=float), index=index, name="forecast")
    se = pd.Series(np.asarray(pred.se_mean, dtype=float), index=index, name="se")
    logger.debug("Ex-post forecasts for %s over %d periods", fitted.order.label, steps)
    return _bands(mean, se, alpha, steps, "ex_post", model_name)


def ex_ante_forecast(fitted: FittedModel,
                     horizon: int = 12,
                     exog_future: Optional[pd.DataFrame] = None,
                     alpha: float = 0.05,
                     model_name: str = "") -> ForecastResult:
    """
    Multi-step forecasts from the end of the fitting sample.

    Parameters
    ----------
    fitted : FittedModel
        Estimated model
    horizon : int, default=12
        Number of periods ahead
    exog_future : Optional[pd.DataFrame]
        Regressor values over the horizon (exactly `horizon` rows); required
        when the model has regressors other than drift
    alpha : float, default=0.05
        Interval significance level

    Returns
    -------
    ForecastResult
        mode 'ex_ante'; bands widen with the horizon

    Raises
    ------
    DimensionMismatch
        If exog_future is missing or has the wrong size
    """
    if horizon < 1:
        raise ValueError("horizon must be positive")

    design = _with_drift(fitted, exog_future, fitted.nobs, horizon)
    fc = fitted.results.get_forecast(steps=horizon, exog=None if design is None else design.to_numpy())

    index = pd.Index(fc.predicted_mean.index) if isinstance(fc.predicted_mean, pd.Series) else pd.RangeIndex(fitted.nobs, fitted.nobs + horizon)
    mean = pd.Series(np.asarray(fc.predicted_mean, dtype=float), index=index, name="forecast")
    se = pd.Series(np.asarray(fc.se_mean, dtype=float), index=index, name="se")
    logger.debug("Ex-ante forecasts for %s, horizon %d", fitted.order.label, horizon)
    return _bands(mean, se, alpha, horizon, "ex_ante", model_name)


def _seasonal_sigma(values: np.ndarray, s: int) -> float:
    diffs = values[s:] - values[:-s]
    if len(diffs) < 2:
        return float("nan")
    return float(np.std(diffs, ddof=1))


def seasonal_naive_ex_post(endog: pd.Series, steps: int = 12, s: int = 12, alpha: float = 0.05) -> ForecastResult:
    """
    Seasonal naive forecasts of the last `steps` observations: y_hat[t] = y[t - s].

    The band scale is the standard deviation of seasonal differences before
    the forecast window.
    """
    values = np.asarray(endog, dtype=float)
    n = len(values)
    if steps < 1 or n - steps < s:
        raise ValueError(f"Need at least {s} observations before the {steps}-period window, got {n - steps}")

    positions = np.arange(n - steps, n)
    index = endog.index[n - steps:] if isinstance(endog, pd.Series) else pd.RangeIndex(n - steps, n)
    mean = pd.Series(values[positions - s], index=index, name="forecast")
    se = pd.Series(_seasonal_sigma(values[: n - steps], s), index=index, name="se")
    return _bands(mean, se, alpha, steps, "ex_post", "seasonal_naive")


def seasonal_naive_forecast(endog: pd.Series, horizon: int = 12, s: int = 12, alpha: float = 0.05) -> ForecastResult:
    """
    Seasonal random-walk forecasts from the end of `endog`.

    Standard errors grow as sigma * sqrt(floor((h - 1) / s) + 1).
    """
    values = np.asarray(endog, dtype=float)
    n = len(values)
    if n < s:
        raise ValueError(f"Need at least {s} observations, got {n}")
    if horizon < 1:
        raise ValueError("horizon must be positive")

    h = np.arange(1, horizon + 1)
    point = values[n - s + (h - 1) % s]
    scale = _seasonal_sigma(values, s) * np.sqrt((h - 1) // s + 1)

    if isinstance(endog, pd.Series) and isinstance(endog.index, pd.DatetimeIndex):
        index = extend_monthly_index(endog.index, horizon)[n:]
    else:
        index = pd.RangeIndex(n, n + horizon)
    mean = pd.Series(point, index=index, name="forecast")
    se = pd.Series(scale, index=index, name="se")
    return _bands(mean, se, alpha, horizon, "ex_ante", "seasonal_naive")
