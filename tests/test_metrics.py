import pandas as pd
import numpy as np

import pytest

from ipi_forecaster_src.metrics_utils import (
    compute_error_measures, diebold_mariano, error_table, mase_metric, relative_mae, theil_u2,
)


def _idx(start: str, n: int) -> pd.DatetimeIndex:
    return pd.date_range(start, periods=n, freq="MS")


def test_perfect_forecast_has_zero_relative_mae():
    idx = _idx("2020-01-01", 12)
    y = pd.Series(np.linspace(100, 111, 12), index=idx)
    naive = y + np.random.default_rng(0).normal(0, 2, size=12)

    m = compute_error_measures(y, y.copy(), naive)
    assert m["RelMAE"] == 0.0
    assert m["RelRMSE"] == 0.0
    assert m["MAE"] == 0.0
    assert m["n"] == 12


def test_relative_mae_undefined_when_naive_is_exact():
    y = np.array([1.0, 2.0, 3.0])
    assert np.isnan(relative_mae(y, y + 1.0, y))
    assert np.isnan(theil_u2(y, y + 1.0, y))


def test_relative_mae_value():
    y = np.array([10.0, 10.0, 10.0, 10.0])
    assert relative_mae(y, y + 1.0, y + 4.0) == pytest.approx(0.25)


def test_ex_ante_periods_without_truth_are_skipped():
    fc_idx = _idx("2021-01-01", 12)
    y_hat = pd.Series(np.arange(12, dtype=float), index=fc_idx)
    naive = y_hat + 2.0
    # Only the first five months have been realised
    truth = pd.Series(np.arange(5, dtype=float) + 1.0, index=fc_idx[:5])

    m = compute_error_measures(truth, y_hat, naive)
    assert m["n"] == 5
    assert m["MAE"] == pytest.approx(1.0)
    assert m["RelMAE"] == pytest.approx(1.0)


def test_missing_forecast_with_truth_raises():
    idx = _idx("2021-01-01", 6)
    truth = pd.Series(np.ones(6), index=idx)
    y_hat = pd.Series([1.0, np.nan, 1.0, 1.0, 1.0, 1.0], index=idx)
    with pytest.raises(ValueError):
        compute_error_measures(truth, y_hat, truth + 1.0)


def test_mase_uses_in_sample_seasonal_scaling():
    y_train = np.r_[np.zeros(12), np.full(12, 2.0)]
    # In-sample seasonal naive MAE = 2 over the second year
    assert mase_metric([5.0, 5.0], [6.0, 4.0], y_train, m=12) == pytest.approx(0.5)


def test_diebold_mariano_sign():
    rng = np.random.default_rng(1)
    y = rng.normal(size=60)
    good = y + rng.normal(0, 0.1, size=60)
    bad = y + rng.normal(0, 2.0, size=60)
    stat, p = diebold_mariano(y, good, bad)
    assert stat < 0
    assert p < 0.05


def test_error_table_layout():
    table = error_table({
        "SARIMA": {"n": 12, "MAE": 1.0, "RelMAE": 0.5},
        "seasonal_naive": {"n": 12, "MAE": 2.0, "RelMAE": 1.0},
    })
    assert table.index.tolist() == ["SARIMA", "seasonal_naive"]
    assert table.index.name == "model"
    assert table.loc["SARIMA", "RelMAE"] == 0.5
    assert "DM_p" in table.columns
