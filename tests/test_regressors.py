import pandas as pd
import numpy as np

import pytest

from ipi_forecaster_src.calendar_utils import calendar_effects
from ipi_forecaster_src.errors import DimensionMismatch
from ipi_forecaster_src.regressor_utils import (
    OutlierSpec, OutlierType, build_regressors, outlier_column, split_regressors,
)
from helpers.temporal import extend_monthly_index


def test_outlier_columns_beyond_sample():
    n, pos = 10, 6
    ao = outlier_column(OutlierType.ADDITIVE, pos, n)
    ls = outlier_column(OutlierType.LEVEL_SHIFT, pos, n)
    tc = outlier_column(OutlierType.TRANSIENT_CHANGE, pos, n, delta=0.5)

    assert ao.tolist() == [0, 0, 0, 0, 0, 0, 1, 0, 0, 0]
    assert ls.tolist() == [0, 0, 0, 0, 0, 0, 1, 1, 1, 1]
    assert np.allclose(tc[pos:], [1.0, 0.5, 0.25, 0.125])
    assert np.all(tc[:pos] == 0)


def test_outlier_column_rejects_bad_arguments():
    with pytest.raises(ValueError):
        outlier_column(OutlierType.ADDITIVE, 10, 10)
    with pytest.raises(ValueError):
        outlier_column(OutlierType.TRANSIENT_CHANGE, 2, 10, delta=1.0)


def test_build_then_slice_round_trip():
    idx = pd.date_range("2010-01-01", periods=48, freq="MS")
    outliers = [OutlierSpec(OutlierType.ADDITIVE, 5), OutlierSpec(OutlierType.LEVEL_SHIFT, 30),
                OutlierSpec(OutlierType.TRANSIENT_CHANGE, 40)]
    calendar = lambda i: calendar_effects(i, "IT")

    past = build_regressors(idx, calendar=calendar, drift=True, outliers=outliers)
    extended = build_regressors(extend_monthly_index(idx, 12), calendar=calendar, drift=True, outliers=outliers)
    head, future = split_regressors(extended, len(idx))

    pd.testing.assert_frame_equal(head, past, check_freq=False)
    assert len(future) == 12
    assert (future["AO5"] == 0).all()
    assert (future["LS30"] == 1).all()
    assert np.all(np.diff(future["TC40"].to_numpy()) < 0)
    assert future["drift"].iloc[0] == 49


def test_build_regressors_columns_and_empty():
    idx = pd.date_range("2020-01-01", periods=24, freq="MS")
    assert build_regressors(idx) is None

    mat = build_regressors(idx, drift=True, outliers=[OutlierSpec(OutlierType.LEVEL_SHIFT, 12)])
    assert mat.columns.tolist() == ["drift", "LS12"]
    assert len(mat) == len(idx)


def test_calendar_length_mismatch():
    idx = pd.date_range("2020-01-01", periods=24, freq="MS")
    short = calendar_effects(idx[:20])
    with pytest.raises(DimensionMismatch):
        build_regressors(idx, calendar=short)


def test_outlier_type_codes():
    assert OutlierType.from_code("ls") is OutlierType.LEVEL_SHIFT
    assert OutlierSpec(OutlierType.TRANSIENT_CHANGE, 7).name == "TC7"
    with pytest.raises(ValueError):
        OutlierType.from_code("XX")
