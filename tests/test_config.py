from pathlib import Path
import types

import pytest

from ipi_forecaster_src import config_utils
from ipi_forecaster_src.config_utils import ConfigurationManager, get_config_value, initialize_config
from ipi_forecaster_src.outlier_utils import OutlierSearchConfig, OutlierType
from ipi_forecaster_src.prediction_utils import ForecastConfig


@pytest.fixture(autouse=True)
def _reset_config():
    config_utils.reset_config()
    yield
    config_utils.reset_config()


def test_dot_notation_lookup():
    cm = ConfigurationManager.from_dict({"outliers": {"critical_value": 4.0, "types": ["AO"]}})
    assert cm.get("outliers.critical_value") == 4.0
    assert cm.get("outliers.missing", "x") == "x"
    assert cm.get("nope.deeper.key") is None


def test_precedence_cli_over_file_over_default(tmp_path: Path):
    cfg = tmp_path / "forecaster.yaml"
    cfg.write_text("forecast:\n  horizon: 24\n  alpha: 0.1\n", encoding="utf-8")
    initialize_config(cfg)

    args = types.SimpleNamespace(horizon=6, alpha=None, ex_post_steps=None)
    assert get_config_value("forecast.horizon", 12, args, "horizon") == 6
    assert get_config_value("forecast.alpha", 0.05, args, "alpha") == 0.1
    assert get_config_value("forecast.ex_post_steps", 12, args, "ex_post_steps") == 12

    fc = ForecastConfig.from_config_manager(args)
    assert (fc.ex_post_steps, fc.horizon, fc.alpha) == (12, 6, 0.1)


def test_missing_file_falls_back_to_defaults(tmp_path: Path):
    assert initialize_config(tmp_path / "absent.yaml") is None
    assert get_config_value("outliers.critical_value", 5.0) == 5.0


def test_validation_warnings():
    cm = ConfigurationManager.from_dict({"outliers": {"delta": 1.2}, "plots": {}})
    warnings = cm.validate_configuration()
    assert any("delta" in w for w in warnings)
    assert any("plots" in w for w in warnings)


def test_outlier_config_from_file(tmp_path: Path):
    cfg = tmp_path / "forecaster.yaml"
    cfg.write_text("outliers:\n  types: [LS, TC]\n  critical_value: 3.5\n", encoding="utf-8")
    initialize_config(cfg)

    oc = OutlierSearchConfig.from_config_manager()
    assert oc.types == frozenset({OutlierType.LEVEL_SHIFT, OutlierType.TRANSIENT_CHANGE})
    assert oc.critical_value == 3.5
    assert oc.delta == 0.7


def test_shipped_configuration_is_valid():
    path = Path(__file__).resolve().parent.parent / "config" / "forecaster.yaml"
    cm = ConfigurationManager.from_file(path)
    assert cm.validate_configuration() == []
    assert cm.get("model.order") == "(0,1,1)x(0,1,1)[12]"
