import pandas as pd
import numpy as np

import pytest

from helpers.temporal import MonthlyIndexError, ensure_monthly_index, extend_monthly_index


def test_ensure_monthly_index_normalises_to_month_start():
    # Month-end dates, unsorted
    idx = pd.to_datetime(["2020-03-31", "2020-01-31", "2020-02-29"])
    s = pd.Series([3.0, 1.0, 2.0], index=idx)
    out = ensure_monthly_index(s)

    assert list(out.index) == list(pd.date_range("2020-01-01", periods=3, freq="MS"))
    assert out.index.freqstr == "MS"
    assert out.tolist() == [1.0, 2.0, 3.0]


def test_ensure_monthly_index_accepts_period_index():
    s = pd.Series([1.0, 2.0], index=pd.period_range("2019-11", periods=2, freq="M"))
    out = ensure_monthly_index(s)
    assert out.index[0] == pd.Timestamp("2019-11-01")
    assert out.index[1] == pd.Timestamp("2019-12-01")


def test_ensure_monthly_index_rejects_gaps():
    idx = pd.to_datetime(["2020-01-01", "2020-02-01", "2020-04-01"])
    with pytest.raises(MonthlyIndexError, match="2020-03"):
        ensure_monthly_index(pd.Series([1.0, 2.0, 3.0], index=idx))


def test_ensure_monthly_index_rejects_duplicated_months():
    idx = pd.to_datetime(["2020-01-01", "2020-01-15", "2020-02-01"])
    with pytest.raises(MonthlyIndexError):
        ensure_monthly_index(pd.Series([1.0, 2.0, 3.0], index=idx))


def test_extend_monthly_index():
    idx = pd.date_range("2020-11-01", periods=2, freq="MS")
    out = extend_monthly_index(idx, 3)
    assert len(out) == 5
    assert out[-1] == pd.Timestamp("2021-03-01")
    assert out[:2].equals(idx)
    assert extend_monthly_index(idx, 0).equals(idx)

    with pytest.raises(ValueError):
        extend_monthly_index(idx, -1)
