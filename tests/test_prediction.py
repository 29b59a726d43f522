import pandas as pd
import numpy as np

import pytest

from ipi_forecaster_src.calendar_utils import calendar_effects
from ipi_forecaster_src.errors import DimensionMismatch
from ipi_forecaster_src.forecasting_utils import SeasonalOrder, fit_sarimax_model
from ipi_forecaster_src.prediction_utils import (
    ForecastConfig, ex_ante_forecast, ex_post_forecast, seasonal_naive_ex_post, seasonal_naive_forecast,
)
from ipi_forecaster_src.regressor_utils import build_regressors, split_regressors
from helpers.temporal import extend_monthly_index


def _airline_like(seed: int = 21, n: int = 144) -> pd.Series:
    # (0,1,1)x(0,1,1)[12] process started from a cosine seasonal pattern
    rng = np.random.default_rng(seed)
    eps = rng.normal(0.0, 0.7, size=n + 13)
    w = eps[13:] - 0.4 * eps[12:-1] - 0.6 * eps[1:-12] + 0.24 * eps[:-13]
    y = np.empty(n)
    y[:13] = 90.0 + 8.0 * np.cos(2 * np.pi * np.arange(13) / 12)
    for t in range(13, n):
        y[t] = y[t - 1] + y[t - 12] - y[t - 13] + w[t]
    return pd.Series(y, index=pd.date_range("2008-01-01", periods=n, freq="MS"))


ORDER = SeasonalOrder(0, 1, 1, 0, 1, 1, 12)


def test_ex_ante_h1_matches_ex_post_at_same_origin():
    y = _airline_like()
    fitted = fit_sarimax_model(y.iloc[:-1], ORDER)

    ante = ex_ante_forecast(fitted, horizon=1)
    post = ex_post_forecast(fitted, y, steps=1)

    assert np.allclose(ante.mean.to_numpy(), post.mean.to_numpy())
    assert np.allclose(ante.se.to_numpy(), post.se.to_numpy())
    assert ante.mean.index[0] == y.index[-1]


def test_ex_ante_h1_matches_ex_post_with_regressors():
    y = _airline_like(seed=22)
    calendar = lambda idx: calendar_effects(idx, "IT")
    exog_full = build_regressors(y.index, calendar=calendar)
    train_exog, future_exog = split_regressors(exog_full, len(y) - 1)
    fitted = fit_sarimax_model(y.iloc[:-1], ORDER, train_exog)

    ante = ex_ante_forecast(fitted, horizon=1, exog_future=future_exog)
    post = ex_post_forecast(fitted, y, exog_full, steps=1)
    assert np.allclose(ante.mean.to_numpy(), post.mean.to_numpy())


def test_ex_post_uses_fixed_coefficients():
    y = _airline_like(seed=23)
    fitted = fit_sarimax_model(y.iloc[:-12], ORDER)
    post = ex_post_forecast(fitted, y, steps=12, alpha=0.05)

    assert len(post.mean) == 12
    assert post.mean.index.equals(y.index[-12:])
    assert post.mode == "ex_post"
    assert np.all(post.lower < post.mean) and np.all(post.mean < post.upper)
    # First ex-post step is the one-step forecast from the end of the training window
    assert post.mean.iloc[0] == pytest.approx(ex_ante_forecast(fitted, horizon=1).mean.iloc[0])


def test_ex_ante_intervals_widen():
    y = _airline_like(seed=24)
    fitted = fit_sarimax_model(y, ORDER)
    fc = ex_ante_forecast(fitted, horizon=12, alpha=0.05)

    widths = (fc.upper - fc.lower).to_numpy()
    assert np.all(np.diff(widths) > 0)
    assert fc.mean.index[0] == pd.Timestamp("2020-01-01")
    frame = fc.to_frame()
    assert frame["step"].tolist() == list(range(1, 13))


def test_missing_future_regressors():
    y = _airline_like(seed=25)
    calendar = lambda idx: calendar_effects(idx, "IT")
    ext = build_regressors(extend_monthly_index(y.index, 12), calendar=calendar)
    past, future = split_regressors(ext, len(y))
    fitted = fit_sarimax_model(y, ORDER, past)

    with pytest.raises(DimensionMismatch):
        ex_ante_forecast(fitted, horizon=12)
    with pytest.raises(DimensionMismatch):
        ex_ante_forecast(fitted, horizon=12, exog_future=future.iloc[:6])
    assert len(ex_ante_forecast(fitted, horizon=12, exog_future=future).mean) == 12


def test_seasonal_naive_ex_post_equals_lagged_values():
    y = _airline_like(seed=26)
    naive = seasonal_naive_ex_post(y, steps=12, s=12)
    n = len(y)
    for k, t in enumerate(range(n - 12, n)):
        assert naive.mean.iloc[k] == y.iloc[t - 12]
    assert naive.model_name == "seasonal_naive"


def test_seasonal_naive_forecast_repeats_last_year():
    y = _airline_like(seed=27)
    fc = seasonal_naive_forecast(y, horizon=24, s=12)
    last_year = y.iloc[-12:].to_numpy()
    assert np.array_equal(fc.mean.to_numpy()[:12], last_year)
    assert np.array_equal(fc.mean.to_numpy()[12:], last_year)
    assert fc.se.iloc[12] == pytest.approx(fc.se.iloc[0] * np.sqrt(2.0))


def test_seasonal_naive_needs_a_full_season():
    y = _airline_like(n=20)
    with pytest.raises(ValueError):
        seasonal_naive_ex_post(y, steps=12, s=12)


def test_forecast_config_validation():
    assert ForecastConfig().horizon == 12
    with pytest.raises(ValueError):
        ForecastConfig(alpha=1.5)
