# ipi_forecaster_src/forecasting_utils.py

import warnings
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from tqdm.auto import tqdm
import logging

from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.statespace.sarimax import SARIMAX

from .errors import EstimationFailed, InvalidOrder, ForecasterError
from .regressor_utils import check_regressor_rows, drift_column

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeasonalOrder:
    """(p, d, q) x (P, D, Q)[s] specification of a seasonal ARIMA model."""

    p: int = 0
    d: int = 0
    q: int = 0
    P: int = 0
    D: int = 0
    Q: int = 0
    s: int = 12

    def validate(self) -> "SeasonalOrder":
        """
        Check the specification before any estimation is attempted.

        Raises
        ------
        InvalidOrder
            For negative orders, d or D outside {0, 1, 2}, a non-positive
            period, or seasonal terms with a period of 1
        """
        values = {"p": self.p, "d": self.d, "q": self.q, "P": self.P, "D": self.D, "Q": self.Q, "s": self.s}
        for name, value in values.items():
            if not isinstance(value, (int, np.integer)) or isinstance(value, bool):
                raise InvalidOrder(f"Order component {name} must be an integer, got {value!r}")
            if value < 0:
                raise InvalidOrder(f"Order component {name} must be non-negative, got {value}")
        if self.d > 2 or self.D > 2:
            raise InvalidOrder(f"Differencing orders must lie in {{0, 1, 2}}, got d={self.d}, D={self.D}")
        if self.s < 1:
            raise InvalidOrder(f"Seasonal period must be positive, got {self.s}")
        if self.s == 1 and (self.P or self.D or self.Q):
            raise InvalidOrder("Seasonal terms require a seasonal period s > 1")
        return self

    @property
    def order(self) -> Tuple[int, int, int]:
        return (self.p, self.d, self.q)

    @property
    def seasonal_order(self) -> Tuple[int, int, int, int]:
        # statsmodels expects s=0 when there is no seasonal component
        if not (self.P or self.D or self.Q):
            return (0, 0, 0, 0)
        return (self.P, self.D, self.Q, self.s)

    @property
    def n_diff(self) -> int:
        """Observations consumed by differencing."""
        return self.d + self.s * self.D

    @property
    def label(self) -> str:
        return f"({self.p},{self.d},{self.q})x({self.P},{self.D},{self.Q})[{self.s}]"


@dataclass(frozen=True)
class FittedModel:
    """
    Immutable result of a seasonal ARIMA fit.

    The statsmodels results object is kept for filtering and forecasting;
    callers should treat it as read-only.
    """

    order: SeasonalOrder
    params: pd.Series
    bse: pd.Series
    sigma2: float
    llf: float
    aic: float
    aicc: float
    bic: float
    hqic: float
    nobs: int
    residuals: pd.Series
    exog: Optional[pd.DataFrame]
    trend: Optional[str]
    has_drift: bool
    converged: bool
    method: str
    results: Any = field(default=None, repr=False, compare=False)

    @property
    def exog_names(self) -> List[str]:
        """Names of the user-supplied regressors (drift excluded)."""
        if self.exog is None:
            return []
        return [c for c in self.exog.columns if not (self.has_drift and c == "drift")]

    def _lag_params(self, prefix: str, step: int, count: int) -> np.ndarray:
        return np.array([float(self.params[f"{prefix}{step * (k + 1)}"]) for k in range(count)], dtype=float)

    @property
    def ar_params(self) -> np.ndarray:
        return self._lag_params("ar.L", 1, self.order.p)

    @property
    def ma_params(self) -> np.ndarray:
        return self._lag_params("ma.L", 1, self.order.q)

    @property
    def seasonal_ar_params(self) -> np.ndarray:
        return self._lag_params("ar.S.L", self.order.s, self.order.P)

    @property
    def seasonal_ma_params(self) -> np.ndarray:
        return self._lag_params("ma.S.L", self.order.s, self.order.Q)

    @property
    def arma_params(self) -> pd.Series:
        """AR/MA coefficients only (regression and variance terms excluded)."""
        names = [n for n in self.params.index if n.startswith(("ar.", "ma."))]
        return self.params[names]

    def ar_polynomial(self) -> np.ndarray:
        """Reduced AR polynomial phi(B)Phi(B^s), coefficients in increasing lag order."""
        s = self.order.s
        ar = np.r_[1.0, -self.ar_params]
        sar = np.zeros(s * self.order.P + 1)
        sar[0] = 1.0
        for k, value in enumerate(self.seasonal_ar_params, start=1):
            sar[s * k] = -value
        return np.polynomial.polynomial.polymul(ar, sar)

    def ma_polynomial(self) -> np.ndarray:
        """Reduced MA polynomial theta(B)Theta(B^s), coefficients in increasing lag order."""
        s = self.order.s
        ma = np.r_[1.0, self.ma_params]
        sma = np.zeros(s * self.order.Q + 1)
        sma[0] = 1.0
        for k, value in enumerate(self.seasonal_ma_params, start=1):
            sma[s * k] = value
        return np.polynomial.polynomial.polymul(ma, sma)

    def coefficient_table(self, alpha: float = 0.05) -> pd.DataFrame:
        """
        Estimates with standard errors, z statistics, p-values and normal bounds.

        Parameters
        ----------
        alpha : float, default=0.05
            Two-sided significance level of the bounds
        """
        z_crit = stats.norm.ppf(1.0 - alpha / 2.0)
        est = self.params.astype(float)
        se = self.bse.reindex(est.index).astype(float)
        z = est / se
        return pd.DataFrame({
            "estimate": est,
            "std_err": se,
            "z": z,
            "p_value": 2.0 * stats.norm.sf(np.abs(z)),
            "lower": est - z_crit * se,
            "upper": est + z_crit * se,
        })


def validate_sarimax_inputs(endog: pd.Series,
                            exog: Optional[pd.DataFrame] = None,
                            min_obs: int = 3) -> None:
    """
    Validate inputs for seasonal ARIMA estimation.

    Parameters
    ----------
    endog : pd.Series
        Endogenous series
    exog : Optional[pd.DataFrame]
        Regressors aligned with endog
    min_obs : int, default=3
        Minimum number of observations required

    Raises
    ------
    ValueError
        If the series is empty, too short, or contains NaN/inf values
    DimensionMismatch
        If exog and endog lengths differ
    """
    if endog is None or len(endog) == 0:
        raise ValueError("Endogenous series cannot be empty")

    values = np.asarray(endog, dtype=float)
    if not np.all(np.isfinite(values)):
        raise ValueError(f"Endogenous series contains {int((~np.isfinite(values)).sum())} non-finite values")

    if len(values) < min_obs:
        raise ValueError(f"Insufficient observations: {len(values)} < {min_obs}")

    check_regressor_rows(exog, len(values))
    if exog is not None:
        ex = np.asarray(exog, dtype=float)
        if not np.all(np.isfinite(ex)):
            raise ValueError("Regressors contain non-finite values")

    if isinstance(endog, pd.Series) and not isinstance(endog.index, pd.DatetimeIndex):
        logger.warning("Endogenous series does not have DatetimeIndex")


def _trend_and_drift(order: SeasonalOrder, include_constant: bool) -> Tuple[Optional[str], bool]:
    """Resolve how a deterministic constant enters the model for this order."""
    if not include_constant:
        return None, False
    n_unit_roots = order.d + order.D
    if n_unit_roots == 0:
        return "c", False
    if n_unit_roots == 1:
        return None, True
    logger.warning("Constant ignored for %s: two or more unit roots", order.label)
    return None, False


def _run_optimizer(model: SARIMAX, method: str, maxiter: int, start_params=None):
    # Observed information: OPG standard errors are unreliable for
    # single-observation dummies such as additive outliers
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        warnings.simplefilter("ignore", UserWarning)
        return model.fit(start_params=start_params, method=method, maxiter=maxiter,
                         cov_type="oim", disp=False)


def _is_usable(res) -> bool:
    converged = bool(res.mle_retvals.get("converged", True)) if isinstance(res.mle_retvals, dict) else True
    return converged and np.isfinite(res.llf) and np.all(np.isfinite(np.asarray(res.params, dtype=float)))


def fit_sarimax_model(endog: pd.Series,
                      order: SeasonalOrder,
                      exog: Optional[pd.DataFrame] = None,
                      include_constant: bool = False,
                      maxiter: int = 200) -> FittedModel:
    """
    Estimate a seasonal ARIMA model with optional regressors by maximum likelihood.

    L-BFGS is tried first; if it does not converge, a derivative-free Powell
    search is started from the L-BFGS point. Powell stands in for the
    conditional-sum-of-squares fallback of classical ARIMA software: it
    maximises the same exact likelihood, so both attempts yield comparable
    information criteria. Only when both fail is EstimationFailed raised.

    Parameters
    ----------
    endog : pd.Series
        Observed series
    order : SeasonalOrder
        (p,d,q)x(P,D,Q)[s] specification
    exog : Optional[pd.DataFrame]
        Regressors with the same number of rows as endog
    include_constant : bool, default=False
        Intercept when d+D == 0, drift regressor when d+D == 1
    maxiter : int, default=200
        Optimiser iteration budget per attempt

    Returns
    -------
    FittedModel
        Immutable fit summary

    Raises
    ------
    InvalidOrder
        If the order specification is inconsistent
    DimensionMismatch
        If exog and endog lengths differ
    EstimationFailed
        If the likelihood could not be maximised
    """
    order.validate()
    validate_sarimax_inputs(endog, exog, min_obs=order.n_diff + 2)

    trend, has_drift = _trend_and_drift(order, include_constant)
    design = exog
    if has_drift:
        index = exog.index if exog is not None else getattr(endog, "index", None)
        drift = pd.DataFrame({"drift": drift_column(len(endog))}, index=index)
        design = drift if exog is None else pd.concat([exog, drift], axis=1)

    try:
        model = SARIMAX(
            endog,
            exog=design,
            order=order.order,
            seasonal_order=order.seasonal_order,
            trend=trend,
            simple_differencing=False,
        )
        res = _run_optimizer(model, "lbfgs", maxiter)
        method = "lbfgs"
        if not _is_usable(res):
            logger.debug("L-BFGS did not converge for %s; retrying with Powell", order.label)
            res = _run_optimizer(model, "powell", maxiter * 10, start_params=res.params)
            method = "powell"
    except (np.linalg.LinAlgError, ValueError) as e:
        raise EstimationFailed(f"Estimation of {order.label} failed: {e}") from e

    if not _is_usable(res):
        raise EstimationFailed(f"Likelihood optimisation did not converge for {order.label}")

    names = list(res.model.param_names)
    params = pd.Series(np.asarray(res.params, dtype=float), index=names)
    bse = pd.Series(np.asarray(res.bse, dtype=float), index=names)
    resid = res.resid if isinstance(res.resid, pd.Series) else pd.Series(np.asarray(res.resid), index=getattr(endog, "index", None))

    fitted = FittedModel(
        order=order,
        params=params,
        bse=bse,
        sigma2=float(params["sigma2"]),
        llf=float(res.llf),
        aic=float(res.aic),
        aicc=float(res.aicc),
        bic=float(res.bic),
        hqic=float(res.hqic),
        nobs=int(res.nobs),
        residuals=resid,
        exog=design,
        trend=trend,
        has_drift=has_drift,
        converged=True,
        method=method,
        results=res,
    )
    logger.debug("Fitted %s via %s: llf=%.3f, AICc=%.3f", order.label, method, fitted.llf, fitted.aicc)
    return fitted


def characteristic_roots(fitted: FittedModel, tolerance: float = 0.02) -> pd.DataFrame:
    """
    Roots of the reduced AR and MA polynomials of a fitted model.

    Stationarity/invertibility require all roots outside the unit circle;
    roots whose modulus is within `tolerance` of 1 are flagged.

    Parameters
    ----------
    fitted : FittedModel
        Fitted model
    tolerance : float, default=0.02
        Distance from the unit circle below which a root is flagged

    Returns
    -------
    pd.DataFrame
        Columns ['polynomial', 'real', 'imag', 'modulus', 'inverse_modulus', 'near_unit']
    """
    rows = []
    for label, poly in (("AR", fitted.ar_polynomial()), ("MA", fitted.ma_polynomial())):
        poly = np.trim_zeros(np.asarray(poly, dtype=float), "b")
        if len(poly) <= 1:
            continue
        for root in np.polynomial.polynomial.polyroots(poly):
            modulus = float(abs(root))
            rows.append({
                "polynomial": label,
                "real": float(root.real),
                "imag": float(root.imag),
                "modulus": modulus,
                "inverse_modulus": 1.0 / modulus if modulus > 0 else float("inf"),
                "near_unit": bool(abs(modulus - 1.0) <= tolerance),
            })
    table = pd.DataFrame(rows, columns=["polynomial", "real", "imag", "modulus", "inverse_modulus", "near_unit"])
    if table["near_unit"].any():
        logger.warning("%s: %d root(s) close to the unit circle", fitted.order.label, int(table["near_unit"].sum()))
    return table


def optimize_sarimax(endog: pd.Series,
                     exog: Optional[pd.DataFrame],
                     order_list: List[Tuple[int, int, int, int]],
                     d: int,
                     D: int,
                     s: int = 12,
                     include_constant: bool = False) -> pd.DataFrame:
    """
    Grid-search seasonal ARIMA orders and rank by AICc.

    Parameters
    ----------
    endog : pd.Series
        Observed series
    exog : Optional[pd.DataFrame]
        Regressors aligned with endog (may be None)
    order_list : List[Tuple]
        (p, q, P, Q) candidates; d, D and s are fixed
    d, D, s : int
        Differencing orders and seasonal period
    include_constant : bool, default=False
        Passed through to fit_sarimax_model

    Returns
    -------
    pd.DataFrame
        Columns ['(p,q,P,Q)', 'AIC', 'AICc', 'BIC', 'HQIC'] sorted by AICc

    Notes
    -----
    Candidates that fail to estimate are skipped and logged at debug level.
    """
    results: List[List[object]] = []

    for cand in tqdm(order_list, desc="Grid search SARIMA"):
        order = SeasonalOrder(cand[0], d, cand[1], cand[2], D, cand[3], s)
        try:
            fitted = fit_sarimax_model(endog, order, exog, include_constant=include_constant)
        except ForecasterError as e:
            logger.debug("Skipping %s: %s", order.label, e)
            continue
        results.append([tuple(cand), fitted.aic, fitted.aicc, fitted.bic, fitted.hqic])

    result_df = pd.DataFrame(results, columns=["(p,q,P,Q)", "AIC", "AICc", "BIC", "HQIC"])
    return result_df.sort_values(by="AICc", ascending=True).reset_index(drop=True)
