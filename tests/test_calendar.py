import pandas as pd
import numpy as np

import pytest

from ipi_forecaster_src.calendar_utils import (
    CALENDAR_COLUMNS, calendar_effects, easter_effect, leap_year_effect, national_holidays,
    working_day_contrast,
)


def test_calendar_effects_shape_and_columns():
    idx = pd.date_range("2015-01-01", periods=36, freq="MS")
    frame = calendar_effects(idx, "IT")
    assert frame.columns.tolist() == CALENDAR_COLUMNS
    assert frame.index.equals(idx)
    assert not frame.isna().any().any()


def test_working_day_contrast_known_month():
    # June 2021 (IT): 30 days, 8 weekend days, 2 June holiday on a Wednesday -> 21 working days
    idx = pd.DatetimeIndex(["2021-06-01"])
    contrast = working_day_contrast(idx, "IT")
    assert contrast[0] == pytest.approx(21 - 2.5 * 9)


def test_holiday_on_weekend_not_double_counted():
    # 25 April 2020 was a Saturday: April 2020 has 22 weekdays, minus Easter Monday (13 April)
    idx = pd.DatetimeIndex(["2020-04-01"])
    contrast = working_day_contrast(idx, "IT")
    assert contrast[0] == pytest.approx(21 - 2.5 * 9)


def test_easter_effect_splits_across_months():
    # Easter 2016 was 27 March, Easter 2019 was 21 April
    idx = pd.DatetimeIndex(["2016-03-01", "2016-04-01", "2019-03-01", "2019-04-01"])
    eff = easter_effect(idx)
    assert eff[0] == pytest.approx(1.0)
    assert eff[1] == pytest.approx(0.0)
    assert eff[2] == pytest.approx(0.0)
    assert eff[3] == pytest.approx(1.0)

    # Easter 2013 on 31 March: 25..30 March all in March
    assert easter_effect(pd.DatetimeIndex(["2013-03-01"]))[0] == pytest.approx(1.0)
    # Easter 2008 on 23 March
    assert easter_effect(pd.DatetimeIndex(["2008-03-01"]))[0] == pytest.approx(1.0)


def test_easter_effect_partial_window():
    # Easter 2021 on 4 April: window 29 March..3 April -> 3 days in March, 3 in April
    idx = pd.DatetimeIndex(["2021-03-01", "2021-04-01"])
    eff = easter_effect(idx)
    assert eff[0] == pytest.approx(0.5)
    assert eff[1] == pytest.approx(0.5)


def test_leap_year_effect():
    idx = pd.DatetimeIndex(["2020-02-01", "2021-02-01", "2020-03-01"])
    assert leap_year_effect(idx).tolist() == [0.75, -0.25, 0.0]


def test_national_holidays_and_unknown_country():
    days = national_holidays(range(2021, 2022), "IT")
    assert pd.Timestamp("2021-04-05").date() in days  # Easter Monday
    assert pd.Timestamp("2021-12-25").date() in days

    with pytest.raises(ValueError):
        calendar_effects(pd.date_range("2020-01-01", periods=3, freq="MS"), "XX")
