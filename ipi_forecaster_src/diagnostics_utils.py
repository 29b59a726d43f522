# ipi_forecaster_src/diagnostics_utils.py

"""Residual diagnostics for fitted seasonal ARIMA models.

- Ljung-Box portmanteau tests at one and two seasonal cycles
- Jarque-Bera normality test
- ARCH-LM test for conditional heteroskedasticity
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd
import logging

from statsmodels.stats.diagnostic import acorr_ljungbox, het_arch
from statsmodels.stats.stattools import jarque_bera

logger = logging.getLogger(__name__)


class DiagnosticTest(Enum):
    """Types of residual diagnostic tests."""
    LJUNG_BOX = "ljung_box"
    JARQUE_BERA = "jarque_bera"
    ARCH_LM = "arch_lm"


@dataclass
class DiagnosticResult:
    """Results from a single diagnostic test."""

    test_name: str
    test_type: DiagnosticTest
    test_statistic: float
    p_value: float
    significance_level: float = 0.05
    degrees_of_freedom: Optional[int] = None
    additional_stats: Dict[str, float] = field(default_factory=dict)

    @property
    def is_significant(self) -> bool:
        """Check if test rejects null hypothesis."""
        return bool(self.p_value < self.significance_level)

    @property
    def interpretation(self) -> str:
        if self.test_type == DiagnosticTest.LJUNG_BOX:
            return "Serial correlation detected" if self.is_significant else "No significant serial correlation"
        if self.test_type == DiagnosticTest.JARQUE_BERA:
            return "Residuals not normally distributed" if self.is_significant else "Residuals appear normal"
        return "ARCH effects detected" if self.is_significant else "No ARCH effects detected"

    def as_row(self) -> Dict[str, object]:
        row = {
            "test": self.test_name,
            "statistic": self.test_statistic,
            "p_value": self.p_value,
            "df": self.degrees_of_freedom,
            "reject": self.is_significant,
            "interpretation": self.interpretation,
        }
        row.update(self.additional_stats)
        return row


def ljung_box_test(residuals: pd.Series, lags: int, model_df: int = 0,
                   significance_level: float = 0.05) -> DiagnosticResult:
    """Ljung-Box Q at `lags`; degrees of freedom reduced by the ARMA parameter count."""
    model_df = min(model_df, lags - 1)
    lb = acorr_ljungbox(residuals, lags=[lags], model_df=model_df, return_df=True)
    return DiagnosticResult(
        test_name=f"Ljung-Box({lags})",
        test_type=DiagnosticTest.LJUNG_BOX,
        test_statistic=float(lb["lb_stat"].iloc[0]),
        p_value=float(lb["lb_pvalue"].iloc[0]),
        significance_level=significance_level,
        degrees_of_freedom=lags - model_df,
    )


def jarque_bera_test(residuals: pd.Series, significance_level: float = 0.05) -> DiagnosticResult:
    jb_stat, jb_pval, skew, kurtosis = jarque_bera(np.asarray(residuals, dtype=float))
    return DiagnosticResult(
        test_name="Jarque-Bera",
        test_type=DiagnosticTest.JARQUE_BERA,
        test_statistic=float(jb_stat),
        p_value=float(jb_pval),
        significance_level=significance_level,
        degrees_of_freedom=2,
        additional_stats={"skewness": float(skew), "kurtosis": float(kurtosis)},
    )


def arch_lm_test(residuals: pd.Series, lags: int, significance_level: float = 0.05) -> DiagnosticResult:
    lm_stat, lm_pval, _, _ = het_arch(np.asarray(residuals, dtype=float), nlags=lags)
    return DiagnosticResult(
        test_name=f"ARCH-LM({lags})",
        test_type=DiagnosticTest.ARCH_LM,
        test_statistic=float(lm_stat),
        p_value=float(lm_pval),
        significance_level=significance_level,
        degrees_of_freedom=lags,
    )


def run_residual_diagnostics(residuals: Union[pd.Series, np.ndarray],
                             burn_in: int = 0,
                             s: int = 12,
                             model_df: int = 0,
                             arch_lags: int = 12,
                             significance_level: float = 0.05) -> pd.DataFrame:
    """
    Run the residual test battery on a fitted model's residuals.

    Parameters
    ----------
    residuals : Union[pd.Series, np.ndarray]
        Residual vector from a fitted model
    burn_in : int, default=0
        Leading residuals to discard (observations lost to differencing)
    s : int, default=12
        Seasonal period; Ljung-Box is evaluated at s and 2s lags
    model_df : int, default=0
        Number of estimated ARMA coefficients
    arch_lags : int, default=12
        Lags of the ARCH-LM auxiliary regression
    significance_level : float, default=0.05
        Level used for the reject column

    Returns
    -------
    pd.DataFrame
        One row per test: test, statistic, p_value, df, reject, interpretation
    """
    resid = pd.Series(np.asarray(residuals, dtype=float)).iloc[burn_in:].dropna()
    if len(resid) < 2 * s + 2:
        logger.warning("Residual diagnostics skipped: only %d usable residuals", len(resid))
        return pd.DataFrame(columns=["test", "statistic", "p_value", "df", "reject", "interpretation"])

    results: List[DiagnosticResult] = [
        ljung_box_test(resid, s, model_df, significance_level),
        ljung_box_test(resid, 2 * s, model_df, significance_level),
        jarque_bera_test(resid, significance_level),
        arch_lm_test(resid, min(arch_lags, len(resid) // 4), significance_level),
    ]
    for r in results:
        logger.debug("%s: stat=%.3f p=%.4f (%s)", r.test_name, r.test_statistic, r.p_value, r.interpretation)
    return pd.DataFrame([r.as_row() for r in results])
