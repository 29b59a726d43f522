# ipi_forecaster_src/main.py

"""
Seasonal ARIMA search-and-forecast workflow for a monthly industrial production index.

Purpose
-------
- Load one monthly series from CSV and check it lies on a gap-free monthly grid
- Run ADF/KPSS unit-root tests and, optionally, let them choose (d, D)
- Optionally grid-search (p, q, P, Q) by AICc
- Fit the model variants SARIMA, SARIMA+calendar and SARIMA+calendar+outliers
- Ex-post evaluation: fit on the first N-12 observations, one-step forecasts
  of the last 12 with fixed coefficients, compared with the seasonal naive
  benchmark through scale-free error measures
- Ex-ante 12-month forecasts from full-sample fits
- Export metrics, forecasts, polynomial roots, residual diagnostics, unit-root
  tests and detected outliers as CSV files

Configuration-Driven Workflow
-----------------------------
Settings are read from config/forecaster.yaml (or --config). CLI arguments
override configuration values, which override coded defaults.
"""

import argparse
import logging
import sys
import warnings
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from helpers.temporal import extend_monthly_index
from .calendar_utils import calendar_effects
from .config_utils import initialize_config, get_config_value
from .data_utils import infer_series_name, load_series_csv
from .diagnostics_utils import run_residual_diagnostics
from .errors import ForecasterError
from .file_utils import METRICS_HEADER, append_metrics_csv_row, ensure_dir, write_frame_csv
from .forecasting_utils import (
    FittedModel, SeasonalOrder, characteristic_roots, fit_sarimax_model, optimize_sarimax
)
from .metrics_utils import compute_error_measures, error_table
from .outlier_utils import OutlierSearchConfig, OutlierSpec, search_outliers
from .parsing_utils import build_order_grid, parse_range_arg, parse_seasonal_order, validate_log_level
from .prediction_utils import (
    ForecastConfig, ForecastResult, ex_ante_forecast, ex_post_forecast,
    seasonal_naive_ex_post, seasonal_naive_forecast
)
from .regressor_utils import build_regressors, split_regressors
from .stationarity_utils import suggest_differencing, unit_root_table

logger = logging.getLogger(__name__)

MODEL_VARIANTS = ("SARIMA", "SARIMA+calendar", "SARIMA+calendar+outliers")
NAIVE_NAME = "seasonal_naive"
DEFAULT_ORDER = "(0,1,1)x(0,1,1)[12]"


@dataclass
class VariantOutcome:
    """Fits and forecasts of one model variant."""

    name: str
    train_fit: FittedModel
    full_fit: FittedModel
    ex_post: ForecastResult
    ex_ante: ForecastResult
    outliers: Tuple[OutlierSpec, ...] = ()
    search_status: str = ""
    roots: pd.DataFrame = field(default_factory=pd.DataFrame, repr=False)
    diagnostics: pd.DataFrame = field(default_factory=pd.DataFrame, repr=False)


def _fit_with_regressors(endog: pd.Series,
                         order: SeasonalOrder,
                         calendar,
                         with_outliers: bool,
                         include_constant: bool,
                         outlier_config: OutlierSearchConfig):
    exog = build_regressors(endog.index, calendar=calendar)
    if not with_outliers:
        return fit_sarimax_model(endog, order, exog, include_constant=include_constant), (), ""
    result = search_outliers(endog, order, exog, include_constant=include_constant, config=outlier_config)
    return result.fitted, result.outliers, result.status.value


def run_model_variant(name: str,
                      series: pd.Series,
                      order: SeasonalOrder,
                      forecast_config: Optional[ForecastConfig] = None,
                      outlier_config: Optional[OutlierSearchConfig] = None,
                      include_constant: bool = False,
                      country: str = "IT") -> VariantOutcome:
    """
    Fit one model variant and produce its ex-post and ex-ante forecasts.

    Parameters
    ----------
    name : str
        One of MODEL_VARIANTS; 'calendar' and 'outliers' in the name switch
        on calendar regressors and the outlier search
    series : pd.Series
        Observed series on a monthly index
    order : SeasonalOrder
        Model specification
    forecast_config : ForecastConfig, optional
        Ex-post window, horizon and interval level
    outlier_config : OutlierSearchConfig, optional
        Outlier search settings
    include_constant : bool, default=False
        Intercept or drift, depending on the differencing orders
    country : str, default="IT"
        Calendar used for working days

    Returns
    -------
    VariantOutcome

    Raises
    ------
    ForecasterError
        If any estimation step fails
    """
    forecast_config = forecast_config or ForecastConfig()
    outlier_config = outlier_config or OutlierSearchConfig()
    use_calendar = "calendar" in name
    use_outliers = "outliers" in name
    calendar = (lambda idx: calendar_effects(idx, country)) if use_calendar else None
    steps = forecast_config.ex_post_steps
    n = len(series)

    # Ex-post: estimate on the training window, filter through the full series
    train = series.iloc[: n - steps]
    train_fit, train_outliers, _ = _fit_with_regressors(
        train, order, calendar, use_outliers, include_constant, outlier_config
    )
    exog_full = build_regressors(series.index, calendar=calendar, outliers=train_outliers,
                                 delta=outlier_config.delta)
    ex_post = ex_post_forecast(train_fit, series, exog_full, steps=steps,
                               alpha=forecast_config.alpha, model_name=name)

    # Ex-ante: estimate on the full sample, regressors carried into the horizon
    full_fit, outliers, status = _fit_with_regressors(
        series, order, calendar, use_outliers, include_constant, outlier_config
    )
    extended = extend_monthly_index(series.index, forecast_config.horizon)
    exog_ext = build_regressors(extended, calendar=calendar, outliers=outliers, delta=outlier_config.delta)
    _, exog_future = split_regressors(exog_ext, n)
    ex_ante = ex_ante_forecast(full_fit, forecast_config.horizon, exog_future,
                               alpha=forecast_config.alpha, model_name=name)

    roots = characteristic_roots(full_fit)
    roots.insert(0, "model", name)
    diagnostics = run_residual_diagnostics(
        full_fit.residuals, burn_in=order.n_diff, s=order.s, model_df=len(full_fit.arma_params)
    )
    diagnostics.insert(0, "model", name)

    logger.info("%s %s: AICc=%.2f, outliers=%s", name, order.label, full_fit.aicc,
                [o.name for o in outliers] or "none")
    return VariantOutcome(
        name=name,
        train_fit=train_fit,
        full_fit=full_fit,
        ex_post=ex_post,
        ex_ante=ex_ante,
        outliers=tuple(outliers),
        search_status=status,
        roots=roots,
        diagnostics=diagnostics,
    )


def select_order_by_grid(series: pd.Series, d: int, D: int, s: int, args: Optional[argparse.Namespace],
                         include_constant: bool, output_dir: Optional[Path]) -> Optional[SeasonalOrder]:
    """Grid-search (p, q, P, Q) on the series and return the best order by AICc."""
    grid = build_order_grid(
        parse_range_arg(getattr(args, "p_range", None), "0-2", "grid_search.p_range", args),
        parse_range_arg(getattr(args, "q_range", None), "0-2", "grid_search.q_range", args),
        parse_range_arg(getattr(args, "P_range", None), "0-1", "grid_search.P_range", args),
        parse_range_arg(getattr(args, "Q_range", None), "0-1", "grid_search.Q_range", args),
    )
    logger.info("Grid search over %d candidate orders", len(grid))
    ranking = optimize_sarimax(series, None, grid, d, D, s, include_constant=include_constant)
    if output_dir is not None:
        write_frame_csv(ranking, output_dir / "order_grid.csv")
    if ranking.empty:
        logger.error("Grid search produced no estimable model")
        return None
    p, q, P, Q = ranking.iloc[0]["(p,q,P,Q)"]
    return SeasonalOrder(p, d, q, P, D, Q, s).validate()


def _metrics_row(series_name: str, mode: str, model: str, order_label: str,
                 train_len: int, measures: Dict[str, float], outliers: Sequence[OutlierSpec] = (),
                 status: str = "") -> Dict[str, object]:
    row = {
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "series": series_name,
        "mode": mode,
        "model": model,
        "order": order_label,
        "train_len": train_len,
        "test_len": measures.get("n"),
        "outliers": ";".join(o.name for o in outliers),
        "search_status": status,
    }
    row.update(measures)
    return row


def run_forecast_workflow(series: pd.Series,
                          order: SeasonalOrder,
                          output_dir: Optional[Path] = None,
                          series_name: str = "series",
                          variants: Sequence[str] = MODEL_VARIANTS,
                          forecast_config: Optional[ForecastConfig] = None,
                          outlier_config: Optional[OutlierSearchConfig] = None,
                          include_constant: bool = False,
                          country: str = "IT",
                          actuals: Optional[pd.Series] = None) -> pd.DataFrame:
    """
    Run every model variant and the seasonal naive benchmark on one series.

    A variant whose estimation fails is logged and skipped; the others
    proceed.

    Parameters
    ----------
    series : pd.Series
        Observed series on a monthly index
    order : SeasonalOrder
        Model specification shared by all variants
    output_dir : Path, optional
        Directory for CSV exports (nothing is written when None)
    series_name : str, default="series"
        Label used in the metrics file
    variants : Sequence[str]
        Subset of MODEL_VARIANTS to run
    forecast_config, outlier_config : optional
        Settings; defaults when omitted
    include_constant : bool, default=False
        Intercept or drift, depending on the differencing orders
    country : str, default="IT"
        Calendar used for working days
    actuals : pd.Series, optional
        Realised values beyond the sample for ex-ante evaluation

    Returns
    -------
    pd.DataFrame
        Ex-post error measures, one row per model (benchmark included)
    """
    forecast_config = forecast_config or ForecastConfig()
    outlier_config = outlier_config or OutlierSearchConfig()
    steps = forecast_config.ex_post_steps
    n = len(series)
    train_len = n - steps
    if train_len < 2 * order.s + order.n_diff:
        raise ValueError(f"Series too short ({n}) for a {steps}-period evaluation window with {order.label}")

    metrics_csv = output_dir / "metrics.csv" if output_dir is not None else None
    if output_dir is not None:
        ensure_dir(output_dir)

    naive_post = seasonal_naive_ex_post(series, steps, order.s, forecast_config.alpha)
    naive_ante = seasonal_naive_forecast(series, forecast_config.horizon, order.s, forecast_config.alpha)
    y_true = series.iloc[train_len:]
    y_train = series.iloc[:train_len]

    outcomes: List[VariantOutcome] = []
    for name in variants:
        if name not in MODEL_VARIANTS:
            logger.warning("Unknown model variant '%s' skipped", name)
            continue
        try:
            outcomes.append(run_model_variant(name, series, order, forecast_config, outlier_config,
                                              include_constant, country))
        except ForecasterError as e:
            logger.error("Model variant %s failed: %s", name, e)

    measures: Dict[str, Dict[str, float]] = {}
    for outcome in outcomes:
        m = compute_error_measures(y_true, outcome.ex_post.mean, naive_post.mean, y_train, s=order.s)
        measures[outcome.name] = m
        append_metrics_csv_row(metrics_csv, _metrics_row(
            series_name, "ex_post", outcome.name, order.label, train_len, m, outcome.outliers, outcome.search_status
        ), METRICS_HEADER)
        if actuals is not None:
            m_ante = compute_error_measures(actuals, outcome.ex_ante.mean, naive_ante.mean, series, s=order.s)
            append_metrics_csv_row(metrics_csv, _metrics_row(
                series_name, "ex_ante", outcome.name, order.label, n, m_ante, outcome.outliers, outcome.search_status
            ), METRICS_HEADER)

    naive_measures = compute_error_measures(y_true, naive_post.mean, naive_post.mean, y_train, s=order.s)
    measures[NAIVE_NAME] = naive_measures
    append_metrics_csv_row(metrics_csv, _metrics_row(
        series_name, "ex_post", NAIVE_NAME, f"seasonal_naive[{order.s}]", train_len, naive_measures
    ), METRICS_HEADER)

    table = error_table(measures)
    for name, row in table.iterrows():
        logger.info("%-26s RelMAE=%.3f  RelRMSE=%.3f  MAE=%.3f", name, row["RelMAE"], row["RelRMSE"], row["MAE"])

    if output_dir is not None:
        _export_outcomes(outcomes, naive_post, naive_ante, output_dir)
    return table


def _export_outcomes(outcomes: Sequence[VariantOutcome], naive_post: ForecastResult,
                     naive_ante: ForecastResult, output_dir: Path) -> None:
    """Write forecasts, roots, diagnostics and outliers of all variants."""
    def stack(frames: List[pd.DataFrame]) -> pd.DataFrame:
        frames = [f for f in frames if not f.empty]
        return pd.concat(frames) if frames else pd.DataFrame()

    post = stack([o.ex_post.to_frame() for o in outcomes] + [naive_post.to_frame()])
    ante = stack([o.ex_ante.to_frame() for o in outcomes] + [naive_ante.to_frame()])
    write_frame_csv(post.rename_axis("date"), output_dir / "forecasts_ex_post.csv", index=True)
    write_frame_csv(ante.rename_axis("date"), output_dir / "forecasts_ex_ante.csv", index=True)
    write_frame_csv(stack([o.roots for o in outcomes]), output_dir / "roots.csv")
    write_frame_csv(stack([o.diagnostics for o in outcomes]), output_dir / "diagnostics.csv")

    rows = []
    for o in outcomes:
        for spec in o.outliers:
            rows.append({"model": o.name, "name": spec.name, "type": spec.type.value,
                         "position": spec.position, "magnitude": spec.magnitude,
                         "t_stat": spec.t_stat, "status": o.search_status})
    write_frame_csv(pd.DataFrame(rows, columns=["model", "name", "type", "position", "magnitude", "t_stat", "status"]),
                    output_dir / "outliers.csv")


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Set up the command-line argument parser.

    Options left at None fall back to the configuration file, then to coded
    defaults.
    """
    parser = argparse.ArgumentParser(
        description="Seasonal ARIMA models with calendar effects and outliers for a monthly production index."
    )

    parser.add_argument("--series-csv", type=str, default=None,
                        help="CSV with a date column and a value column.")
    parser.add_argument("--date-col", type=str, default=None, help="Date column name (default 'date').")
    parser.add_argument("--value-col", type=str, default=None, help="Value column name (default 'value').")
    parser.add_argument("--series-name", type=str, default=None,
                        help="Label used in output files (default: CSV file stem).")
    parser.add_argument("--actuals-csv", type=str, default=None,
                        help="Optional CSV of realised values after the sample, for ex-ante evaluation.")
    parser.add_argument("--output-dir", type=str, default=None, help="Directory for CSV outputs.")
    parser.add_argument("--config", type=str, default=None, help="YAML configuration file.")
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity level."
    )

    # Model specification
    parser.add_argument("--order", type=str, default=None,
                        help=f"Seasonal ARIMA order, e.g. '{DEFAULT_ORDER}'.")
    parser.add_argument("--auto-diff", action="store_true", default=False,
                        help="Choose d and D with KPSS and STL seasonal strength.")
    parser.add_argument("--include-constant", action="store_true", default=None,
                        help="Add an intercept (d+D=0) or drift (d+D=1).")
    parser.add_argument("--country", type=str, default=None, help="Holiday calendar (IT, FR, DE, ES).")
    parser.add_argument("--variants", type=str, default=None,
                        help="Comma-separated subset of: " + ", ".join(MODEL_VARIANTS))

    # Outlier search
    parser.add_argument("--critical-value", dest="critical_value", type=float, default=None,
                        help="Outlier detection threshold on |tau| (default 5.0).")
    parser.add_argument("--delta", type=float, default=None, help="Transient change decay rate (default 0.7).")
    parser.add_argument("--outlier-types", dest="outlier_types", type=str, default=None,
                        help="Comma-separated outlier types among AO, LS, TC.")

    # Forecasting
    parser.add_argument("--ex-post-steps", dest="ex_post_steps", type=int, default=None,
                        help="Length of the ex-post evaluation window (default 12).")
    parser.add_argument("--horizon", type=int, default=None, help="Ex-ante forecast horizon (default 12).")
    parser.add_argument("--alpha", type=float, default=None, help="Interval significance level (default 0.05).")

    # Grid search controls
    parser.add_argument("--grid-search", action="store_true", default=False,
                        help="Select (p, q, P, Q) by AICc before fitting the variants.")
    parser.add_argument("--p-range", type=str, default=None, help="Range or list for AR order p (e.g. '0-2').")
    parser.add_argument("--q-range", type=str, default=None, help="Range or list for MA order q.")
    parser.add_argument("--P-range", type=str, default=None, help="Range or list for seasonal AR order P.")
    parser.add_argument("--Q-range", type=str, default=None, help="Range or list for seasonal MA order Q.")

    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        from statsmodels.tools.sm_exceptions import ConvergenceWarning
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main entry point for the forecasting application.

    Loads the series, runs unit-root tests, optionally selects the order,
    then runs the model variants and exports the results.
    """
    parser = setup_cli_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    initialize_config(args.config)

    base_dir = Path.cwd()
    series_csv = get_config_value("data.series_csv", None, args, "series_csv")
    if not series_csv:
        parser.error("--series-csv is required (or set data.series_csv in the configuration)")
    series_path = Path(series_csv) if Path(series_csv).is_absolute() else base_dir / series_csv
    output_dir = Path(get_config_value("output.dir", "outputs", args, "output_dir"))
    if not output_dir.is_absolute():
        output_dir = base_dir / output_dir
    ensure_dir(output_dir)

    date_col = get_config_value("data.date_col", "date", args, "date_col")
    value_col = get_config_value("data.value_col", "value", args, "value_col")
    series = load_series_csv(series_path, date_col, value_col)
    series_name = infer_series_name(series_path, args.series_name)
    logger.info("Loaded %s: %d observations (%s to %s)", series_name, len(series),
                series.index[0].strftime("%Y-%m"), series.index[-1].strftime("%Y-%m"))

    actuals = None
    if args.actuals_csv:
        actuals = load_series_csv(Path(args.actuals_csv), date_col, value_col)

    try:
        order = parse_seasonal_order(get_config_value("model.order", DEFAULT_ORDER, args, "order"))
    except ForecasterError as e:
        parser.error(str(e))

    write_frame_csv(unit_root_table(series, s=order.s), output_dir / "unit_roots.csv")
    if args.auto_diff or get_config_value("model.auto_diff", False):
        d, D = suggest_differencing(series, s=order.s)
        order = SeasonalOrder(order.p, d, order.q, order.P, D, order.Q, order.s).validate()

    include_constant = bool(get_config_value("model.include_constant", False, args, "include_constant"))
    if args.grid_search or get_config_value("grid_search.enabled", False):
        best = select_order_by_grid(series, order.d, order.D, order.s, args, include_constant, output_dir)
        if best is not None:
            order = best
    logger.info("Using order %s", order.label)

    variants_arg = get_config_value("model.variants", list(MODEL_VARIANTS), args, "variants")
    variants = [v.strip() for v in variants_arg.split(",")] if isinstance(variants_arg, str) else list(variants_arg)

    table = run_forecast_workflow(
        series,
        order,
        output_dir=output_dir,
        series_name=series_name,
        variants=variants,
        forecast_config=ForecastConfig.from_config_manager(args),
        outlier_config=OutlierSearchConfig.from_config_manager(args),
        include_constant=include_constant,
        country=get_config_value("calendar.country", "IT", args, "country"),
        actuals=actuals,
    )
    write_frame_csv(table, output_dir / "error_measures.csv", index=True)
    logger.info("Outputs written to %s", output_dir)


if __name__ == "__main__":
    main(sys.argv[1:])
