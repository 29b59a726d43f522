import pandas as pd
import numpy as np

import pytest

from ipi_forecaster_src.forecasting_utils import SeasonalOrder, fit_sarimax_model
from ipi_forecaster_src.outlier_utils import (
    OutlierSearchConfig, OutlierSpec, OutlierType, SearchStatus,
    compute_outlier_statistics, pi_weights, robust_scale, search_outliers,
)

ORDER = SeasonalOrder(1, 0, 0, 0, 0, 0, 12)


def _level_shift_series(seed: int = 7, n: int = 120, at: int = 60, size: float = 20.0) -> pd.Series:
    rng = np.random.default_rng(seed)
    values = 100.0 + rng.normal(0.0, 0.5, size=n)
    values[at:] += size
    return pd.Series(values, index=pd.date_range("2005-01-01", periods=n, freq="MS"))


def _spike_series(seed: int = 12, n: int = 120) -> pd.Series:
    rng = np.random.default_rng(seed)
    values = 100.0 + rng.normal(0.0, 0.5, size=n)
    values[30] += 8.0
    values[80] -= 8.0
    return pd.Series(values, index=pd.date_range("2005-01-01", periods=n, freq="MS"))


def test_level_shift_scenario():
    y = _level_shift_series()
    result = search_outliers(y, ORDER, include_constant=True)

    assert result.status is SearchStatus.CONVERGED
    assert len(result.outliers) == 1
    found = result.outliers[0]
    assert found.type is OutlierType.LEVEL_SHIFT
    assert abs(found.position - 60) <= 1
    assert found.magnitude == pytest.approx(20.0, abs=1.0)
    assert found.name in result.fitted.exog_names


def test_rerun_with_found_outliers_is_idempotent():
    y = _level_shift_series(seed=8)
    first = search_outliers(y, ORDER, include_constant=True)
    second = search_outliers(y, ORDER, include_constant=True, initial_outliers=first.outliers)

    assert second.status is SearchStatus.CONVERGED
    assert second.outer_iterations == 1
    assert [o.name for o in second.outliers] == [o.name for o in first.outliers]


def test_no_outliers_in_clean_series():
    rng = np.random.default_rng(9)
    y = pd.Series(50.0 + rng.normal(size=100), index=pd.date_range("2010-01-01", periods=100, freq="MS"))
    result = search_outliers(y, ORDER, include_constant=True)

    assert result.status is SearchStatus.CONVERGED
    assert result.outliers == ()
    assert result.outer_iterations == 1
    base = fit_sarimax_model(y, ORDER, include_constant=True)
    assert result.fitted.params.to_dict() == pytest.approx(base.params.to_dict())


def test_iteration_cap_is_not_an_error():
    y = _level_shift_series(seed=10)
    values = y.to_numpy().copy()
    values[[15, 35, 90]] += [12.0, -12.0, 12.0]
    y = pd.Series(values, index=y.index)
    config = OutlierSearchConfig(max_outer_iter=1, max_inner_iter=1, max_total_iter=10,
                                 prune_insignificant=False, coef_tol=0.0)

    result = search_outliers(y, ORDER, include_constant=True, config=config)
    assert result.status is SearchStatus.ITERATION_LIMITED
    assert len(result.outliers) == 1
    assert result.outer_iterations == 1


def test_additive_outlier_statistic():
    # With pi = 1 (white noise) tau at the spike equals the spike over sigma
    e = np.where(np.arange(50) % 2 == 0, 0.5, -0.5)
    e[20] = 10.0
    pi = np.r_[1.0, np.zeros(49)]
    sigma = robust_scale(e)
    omega, tau = compute_outlier_statistics(e, pi, [OutlierType.ADDITIVE, OutlierType.LEVEL_SHIFT], sigma=sigma)

    assert omega.shape == (50, 2)
    assert omega[20, 0] == pytest.approx(10.0)
    assert tau[20, 0] == pytest.approx(10.0 / sigma)
    assert int(np.argmax(np.abs(tau[:, 0]))) == 20


def test_pi_weights_of_ar1():
    rng = np.random.default_rng(11)
    y = pd.Series(rng.normal(size=120), index=pd.date_range("2000-01-01", periods=120, freq="MS"))
    fitted = fit_sarimax_model(y, ORDER)
    pi = pi_weights(fitted, 5)
    assert pi[0] == pytest.approx(1.0)
    assert pi[1] == pytest.approx(-fitted.params["ar.L1"])
    assert np.allclose(pi[2:], 0.0)


def test_config_validation():
    with pytest.raises(ValueError):
        OutlierSearchConfig(delta=1.5)
    with pytest.raises(ValueError):
        OutlierSearchConfig(types=frozenset())
    with pytest.raises(ValueError):
        OutlierSearchConfig(coef_tol=-1.0)
    cfg = OutlierSearchConfig(types=frozenset({OutlierType.TRANSIENT_CHANGE, OutlierType.ADDITIVE}))
    assert cfg.ordered_types == (OutlierType.ADDITIVE, OutlierType.TRANSIENT_CHANGE)


def test_additive_outliers_survive_pruning():
    result = search_outliers(_spike_series(), ORDER, include_constant=True)

    assert result.status is SearchStatus.CONVERGED
    assert [o.name for o in result.outliers] == ["AO30", "AO80"]
    assert result.outliers[0].magnitude == pytest.approx(8.0, abs=1.5)
    assert result.outliers[1].magnitude == pytest.approx(-8.0, abs=1.5)
    assert all(abs(o.t_stat) > 5.0 for o in result.outliers)
    assert all(not entry["pruned"] for entry in result.history)
    assert {"AO30", "AO80"}.issubset(result.fitted.exog_names)


def test_transient_change_detected():
    rng = np.random.default_rng(21)
    values = 100.0 + rng.normal(0.0, 0.5, size=120)
    values[50:] += 10.0 * 0.7 ** np.arange(70)
    y = pd.Series(values, index=pd.date_range("2005-01-01", periods=120, freq="MS"))

    result = search_outliers(y, ORDER, include_constant=True)
    assert result.status is SearchStatus.CONVERGED
    assert [o.name for o in result.outliers] == ["TC50"]
    assert result.outliers[0].type is OutlierType.TRANSIENT_CHANGE
    assert result.outliers[0].magnitude == pytest.approx(10.0, abs=1.5)


def test_insignificant_outlier_is_pruned():
    rng = np.random.default_rng(9)
    y = pd.Series(50.0 + rng.normal(size=100), index=pd.date_range("2010-01-01", periods=100, freq="MS"))
    seeded = OutlierSpec(OutlierType.ADDITIVE, 50, 0.0, 0.0)

    result = search_outliers(y, ORDER, include_constant=True, initial_outliers=[seeded])
    assert result.outliers == ()
    assert result.history[-1]["pruned"] == ["AO50"]
    assert "AO50" not in result.fitted.exog_names
    base = fit_sarimax_model(y, ORDER, include_constant=True)
    assert result.fitted.params.to_dict() == pytest.approx(base.params.to_dict())


def test_total_iteration_cap_alone():
    y = _level_shift_series(seed=10)
    values = y.to_numpy().copy()
    values[[15, 35, 90]] += [12.0, -12.0, 12.0]
    y = pd.Series(values, index=y.index)
    config = OutlierSearchConfig(max_outer_iter=4, max_inner_iter=4, max_total_iter=2,
                                 prune_insignificant=False, coef_tol=0.0)

    result = search_outliers(y, ORDER, include_constant=True, config=config)
    assert result.status is SearchStatus.ITERATION_LIMITED
    assert result.outer_iterations == 1
    assert result.total_iterations == 2
    assert len(result.outliers) == 1


def test_stable_coefficients_end_search():
    config = OutlierSearchConfig(coef_tol=10.0)
    result = search_outliers(_spike_series(), ORDER, include_constant=True, config=config)

    assert result.status is SearchStatus.CONVERGED
    assert result.outer_iterations == 1
    assert result.history[0]["accepted"]
    assert result.history[0]["max_coef_change"] <= 10.0
