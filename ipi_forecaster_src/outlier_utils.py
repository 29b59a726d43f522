# ipi_forecaster_src/outlier_utils.py

"""
Iterative detection of additive outliers (AO), level shifts (LS) and
transient changes (TC) in seasonal ARIMA models, after Chen and Liu (1993).

Search procedure
----------------
Outer loop: fit the model with the current outlier set, then run one inner
pass on its residuals. An inner pass that accepts nothing leaves the outlier
set, and hence the refit coefficients, unchanged: the search has CONVERGED.
The search also converges when refitting with the enlarged set moves no ARMA
coefficient by more than `coef_tol`.

Inner loop: with the ARMA coefficients fixed, every admissible position and
type gets a statistic tau = omega * sqrt(sum x^2) / sigma, where x is the
pi-filtered intervention pattern and sigma the MAD scale of the residuals.
The largest |tau| above the critical value is accepted and its effect
removed from the residuals before looking again.

Hitting any iteration cap ends the search in ITERATION_LIMITED with the last
fit; this is not an error.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np
import pandas as pd
from scipy.signal import lfilter
import logging

from .forecasting_utils import FittedModel, SeasonalOrder, fit_sarimax_model
from .regressor_utils import (
    DEFAULT_DELTA,
    OUTLIER_TYPE_ORDER,
    OutlierSpec,
    OutlierType,
    build_regressors,
)

logger = logging.getLogger(__name__)

__all__ = [
    "OutlierType",
    "OutlierSpec",
    "OutlierSearchConfig",
    "SearchStatus",
    "OutlierSearchResult",
    "pi_weights",
    "robust_scale",
    "compute_outlier_statistics",
    "search_outliers",
]

MAD_SCALE = 1.483


class SearchStatus(Enum):
    """States of the outlier search."""
    SEARCHING = "searching"
    CONVERGED = "converged"
    ITERATION_LIMITED = "iteration_limited"


@dataclass(frozen=True)
class OutlierSearchConfig:
    """
    Outlier search settings.

    Attributes
    ----------
    types : FrozenSet[OutlierType]
        Candidate intervention types
    delta : float
        Decay rate of transient changes
    critical_value : float
        Threshold on |tau| for acceptance and on |z| for pruning
    max_outer_iter, max_inner_iter, max_total_iter : int
        Iteration caps; max_total_iter counts outer iterations plus
        accepted candidates
    prune_insignificant : bool
        Drop outliers whose joint-model |z| falls below critical_value
    coef_tol : float
        Largest ARMA coefficient change between successive fits below which
        the coefficients count as stable; 0 disables the rule
    """

    types: FrozenSet[OutlierType] = frozenset(OUTLIER_TYPE_ORDER)
    delta: float = DEFAULT_DELTA
    critical_value: float = 5.0
    max_outer_iter: int = 4
    max_inner_iter: int = 4
    max_total_iter: int = 10
    prune_insignificant: bool = True
    coef_tol: float = 1e-3

    def __post_init__(self):
        if not self.types:
            raise ValueError("At least one outlier type is required")
        if not 0.0 < self.delta < 1.0:
            raise ValueError("delta must lie strictly between 0 and 1")
        if self.critical_value <= 0:
            raise ValueError("critical_value must be positive")
        if min(self.max_outer_iter, self.max_inner_iter, self.max_total_iter) < 1:
            raise ValueError("Iteration caps must be at least 1")
        if self.coef_tol < 0:
            raise ValueError("coef_tol must be non-negative")

    @property
    def ordered_types(self) -> Tuple[OutlierType, ...]:
        return tuple(t for t in OUTLIER_TYPE_ORDER if t in self.types)

    @classmethod
    def from_config_manager(cls, args=None) -> "OutlierSearchConfig":
        """Build from the YAML configuration (CLI overrides via `args`)."""
        from .config_utils import get_config_value

        codes = get_config_value("outliers.types", ["AO", "LS", "TC"], args, "outlier_types")
        if isinstance(codes, str):
            codes = [c for c in codes.split(",") if c.strip()]
        return cls(
            types=frozenset(OutlierType.from_code(c) for c in codes),
            delta=float(get_config_value("outliers.delta", DEFAULT_DELTA, args, "delta")),
            critical_value=float(get_config_value("outliers.critical_value", 5.0, args, "critical_value")),
            max_outer_iter=int(get_config_value("outliers.max_outer_iter", 4)),
            max_inner_iter=int(get_config_value("outliers.max_inner_iter", 4)),
            max_total_iter=int(get_config_value("outliers.max_total_iter", 10)),
            prune_insignificant=bool(get_config_value("outliers.prune_insignificant", True)),
            coef_tol=float(get_config_value("outliers.coef_tol", 1e-3)),
        )


@dataclass(frozen=True)
class OutlierSearchResult:
    """Final fit, accepted outliers and how the search ended."""

    fitted: FittedModel
    outliers: Tuple[OutlierSpec, ...]
    status: SearchStatus
    outer_iterations: int
    total_iterations: int
    history: Tuple[Dict[str, object], ...] = field(default=(), repr=False)

    def to_frame(self) -> pd.DataFrame:
        rows = [
            {"name": o.name, "type": o.type.value, "position": o.position,
             "magnitude": o.magnitude, "t_stat": o.t_stat}
            for o in self.outliers
        ]
        return pd.DataFrame(rows, columns=["name", "type", "position", "magnitude", "t_stat"])


def pi_weights(fitted: FittedModel, n: int) -> np.ndarray:
    """
    First `n` weights of pi(B) = phi(B)Phi(B^s)(1-B)^d(1-B^s)^D / (theta(B)Theta(B^s)).
    """
    order = fitted.order
    ar = fitted.ar_polynomial()
    for _ in range(order.d):
        ar = np.polynomial.polynomial.polymul(ar, [1.0, -1.0])
    seasonal_diff = np.zeros(order.s + 1)
    seasonal_diff[0], seasonal_diff[-1] = 1.0, -1.0
    for _ in range(order.D):
        ar = np.polynomial.polynomial.polymul(ar, seasonal_diff)
    impulse = np.zeros(n)
    impulse[0] = 1.0
    return lfilter(ar, fitted.ma_polynomial(), impulse)


def robust_scale(residuals: np.ndarray) -> float:
    """MAD estimate of the residual standard deviation."""
    e = np.asarray(residuals, dtype=float)
    return float(MAD_SCALE * np.median(np.abs(e - np.median(e))))


def _response(outlier_type: OutlierType, pi: np.ndarray, delta: float) -> np.ndarray:
    # Effect on the residuals of a unit intervention at lag 0
    if outlier_type is OutlierType.ADDITIVE:
        return pi
    if outlier_type is OutlierType.LEVEL_SHIFT:
        return np.cumsum(pi)
    return lfilter([1.0], [1.0, -delta], pi)


def compute_outlier_statistics(residuals: np.ndarray,
                               pi: np.ndarray,
                               types: Sequence[OutlierType],
                               delta: float = DEFAULT_DELTA,
                               sigma: Optional[float] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Magnitudes and tau statistics for every position and type.

    Parameters
    ----------
    residuals : np.ndarray
        Model residuals (length n)
    pi : np.ndarray
        pi-weights of the fitted model (length >= n)
    types : Sequence[OutlierType]
        Column order of the outputs
    delta : float, default=0.7
        Transient change decay rate
    sigma : float, optional
        Residual scale; MAD of `residuals` when omitted

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        (omega, tau), each of shape (n, len(types))
    """
    e = np.asarray(residuals, dtype=float)
    n = len(e)
    if np.isnan(e).any():
        raise ValueError("Residuals contain NaN values")
    if sigma is None:
        sigma = robust_scale(e)
    if sigma <= 0:
        raise ValueError("Residual scale must be positive")

    omega = np.empty((n, len(types)))
    tau = np.empty((n, len(types)))
    for k, outlier_type in enumerate(types):
        r = _response(outlier_type, np.asarray(pi[:n], dtype=float), delta)
        # num[T] = sum_j e[T+j] r[j]; ssq[T] = sum_j r[j]^2, j = 0..n-1-T
        num = np.convolve(e[::-1], r)[:n][::-1]
        ssq = np.cumsum(r ** 2)[::-1]
        omega[:, k] = num / ssq
        tau[:, k] = omega[:, k] * np.sqrt(ssq) / sigma
    return omega, tau


def _inner_pass(fitted: FittedModel,
                config: OutlierSearchConfig,
                occupied: Set[int],
                budget: int) -> List[OutlierSpec]:
    """Accept outliers one at a time on the residuals of `fitted`."""
    e = np.asarray(fitted.residuals, dtype=float).copy()
    n = len(e)
    burn_in = max(fitted.order.n_diff, 1)
    types = config.ordered_types
    pi = pi_weights(fitted, n)
    responses = {t: _response(t, pi, config.delta) for t in types}

    taken = set(occupied)
    found: List[OutlierSpec] = []
    for _ in range(min(config.max_inner_iter, budget)):
        sigma = robust_scale(e[burn_in:])
        if sigma <= 0:
            break
        omega, tau = compute_outlier_statistics(e, pi, types, config.delta, sigma)
        score = np.abs(tau)
        score[:burn_in, :] = -np.inf
        if taken:
            score[sorted(taken), :] = -np.inf

        # Row-major argmax: earliest position first, then AO < LS < TC
        flat = int(np.argmax(score))
        pos, k = divmod(flat, len(types))
        if not score[pos, k] > config.critical_value:
            break

        spec = OutlierSpec(types[k], pos, float(omega[pos, k]), float(tau[pos, k]))
        logger.debug("Accepted %s (tau=%.2f, omega=%.3f)", spec.name, spec.t_stat, spec.magnitude)
        found.append(spec)
        taken.add(pos)
        e[pos:] -= spec.magnitude * responses[spec.type][: n - pos]
    return found


def _design(endog: pd.Series, exog: Optional[pd.DataFrame], outliers: Iterable[OutlierSpec], delta: float):
    return build_regressors(endog.index, calendar=exog, outliers=list(outliers), delta=delta)


def _refresh_estimates(fitted: FittedModel, outliers: Sequence[OutlierSpec]) -> List[OutlierSpec]:
    table = fitted.coefficient_table()
    return [
        replace(o, magnitude=float(table.at[o.name, "estimate"]), t_stat=float(table.at[o.name, "z"]))
        for o in outliers
    ]


def _max_coef_change(old: FittedModel, new: FittedModel) -> float:
    a, b = old.arma_params, new.arma_params
    if a.empty:
        return float("nan")
    return float(np.max(np.abs(b.reindex(a.index).to_numpy() - a.to_numpy())))


def search_outliers(endog: pd.Series,
                    order: SeasonalOrder,
                    exog: Optional[pd.DataFrame] = None,
                    include_constant: bool = False,
                    config: Optional[OutlierSearchConfig] = None,
                    initial_outliers: Iterable[OutlierSpec] = ()) -> OutlierSearchResult:
    """
    Detect outliers and return the model refitted with them as regressors.

    Parameters
    ----------
    endog : pd.Series
        Observed series with a monthly DatetimeIndex
    order : SeasonalOrder
        Model specification
    exog : Optional[pd.DataFrame]
        Base regressors (e.g. calendar effects) kept in every fit
    include_constant : bool, default=False
        Passed to fit_sarimax_model
    config : OutlierSearchConfig, optional
        Search settings (defaults when omitted)
    initial_outliers : Iterable[OutlierSpec]
        Outliers already known; kept as regressors and excluded as candidates

    Returns
    -------
    OutlierSearchResult
        Final fit and accepted outliers, ordered by position

    Raises
    ------
    EstimationFailed
        If any of the fits fails
    """
    config = config or OutlierSearchConfig()
    outliers: List[OutlierSpec] = []
    for spec in initial_outliers:
        if spec.position not in {o.position for o in outliers}:
            outliers.append(spec)

    def fit(current: Sequence[OutlierSpec]) -> FittedModel:
        design = _design(endog, exog, current, config.delta)
        return fit_sarimax_model(endog, order, design, include_constant=include_constant)

    fitted = fit(outliers)
    history: List[Dict[str, object]] = []
    status = SearchStatus.SEARCHING
    outer = 0
    total = 0

    while status is SearchStatus.SEARCHING:
        if outer >= config.max_outer_iter or total >= config.max_total_iter:
            status = SearchStatus.ITERATION_LIMITED
            break
        outer += 1
        total += 1
        budget = config.max_total_iter - total
        if budget <= 0:
            status = SearchStatus.ITERATION_LIMITED
            break

        found = _inner_pass(fitted, config, {o.position for o in outliers}, budget)
        total += len(found)
        entry: Dict[str, object] = {
            "outer_iteration": outer,
            "accepted": [o.name for o in found],
            "pruned": [],
            "n_outliers": len(outliers) + len(found),
            "max_coef_change": float("nan"),
            "llf": fitted.llf,
        }

        if not found:
            history.append(entry)
            status = SearchStatus.CONVERGED
            break

        outliers.extend(found)
        refit = fit(outliers)
        entry["max_coef_change"] = _max_coef_change(fitted, refit)
        entry["llf"] = refit.llf
        history.append(entry)
        fitted = refit
        logger.debug("Outer iteration %d: accepted %s", outer, entry["accepted"])
        if entry["max_coef_change"] <= config.coef_tol:
            status = SearchStatus.CONVERGED

    if config.prune_insignificant and outliers:
        while True:
            refreshed = _refresh_estimates(fitted, outliers)
            keep = [o for o in refreshed if not abs(o.t_stat) < config.critical_value]
            if len(keep) == len(outliers):
                break
            dropped = sorted({o.name for o in outliers} - {o.name for o in keep})
            logger.debug("Pruning insignificant outliers: %s", dropped)
            outliers = keep
            refit = fit(outliers)
            history.append({
                "outer_iteration": outer,
                "accepted": [],
                "pruned": dropped,
                "n_outliers": len(outliers),
                "max_coef_change": _max_coef_change(fitted, refit),
                "llf": refit.llf,
            })
            fitted = refit

    if outliers:
        outliers = _refresh_estimates(fitted, outliers)
    outliers = sorted(outliers, key=lambda o: o.position)

    logger.info("Outlier search %s after %d outer iteration(s): %s",
                status.value, outer, [o.name for o in outliers] or "none")
    return OutlierSearchResult(
        fitted=fitted,
        outliers=tuple(outliers),
        status=status,
        outer_iterations=outer,
        total_iterations=total,
        history=tuple(history),
    )
