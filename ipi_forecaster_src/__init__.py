# ipi_forecaster_src/__init__.py

"""
IPI Forecaster - seasonal ARIMA models for a monthly industrial production index

Key Components
--------------
- calendar_utils: Working-day, Easter and leap-year regressors
- regressor_utils: Regressor matrices (calendar, drift, AO/LS/TC outliers)
- forecasting_utils: Seasonal ARIMA estimation, polynomial roots, order grid search
- stationarity_utils: ADF/KPSS tests and differencing suggestions
- outlier_utils: Iterative AO/LS/TC outlier search
- prediction_utils: Ex-post and ex-ante forecasts, seasonal naive benchmark
- metrics_utils: Scale-free error measures and Diebold-Mariano test
- diagnostics_utils: Residual tests
- config_utils: YAML configuration with CLI overrides
- data_utils, file_utils, parsing_utils: CSV input/output and argument parsing
- main: Workflow orchestration and CLI

Usage
-----
    # Command-line usage
    python -m ipi_forecaster_src.main --series-csv data/ipi_IT.csv

    # Programmatic usage
    from ipi_forecaster_src import SeasonalOrder, fit_sarimax_model, search_outliers
"""

__version__ = "1.0.0"

from .errors import ForecasterError, DimensionMismatch, EstimationFailed, InvalidOrder
from .forecasting_utils import SeasonalOrder, FittedModel, fit_sarimax_model, characteristic_roots
from .outlier_utils import OutlierSearchConfig, OutlierSearchResult, SearchStatus, search_outliers
from .prediction_utils import ForecastConfig, ForecastResult, ex_ante_forecast, ex_post_forecast
from .metrics_utils import compute_error_measures
from .main import main

__all__ = [
    "main",
    "ForecasterError",
    "DimensionMismatch",
    "EstimationFailed",
    "InvalidOrder",
    "SeasonalOrder",
    "FittedModel",
    "fit_sarimax_model",
    "characteristic_roots",
    "OutlierSearchConfig",
    "OutlierSearchResult",
    "SearchStatus",
    "search_outliers",
    "ForecastConfig",
    "ForecastResult",
    "ex_ante_forecast",
    "ex_post_forecast",
    "compute_error_measures",
    "__version__",
]
