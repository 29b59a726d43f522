# ipi_forecaster_src/errors.py

"""
Exception hierarchy for the seasonal-ARIMA forecasting pipeline.

All library errors derive from ForecasterError so the workflow layer can
catch a single type per model variant. Outlier searches that find nothing
and searches that stop on an iteration cap are not errors; they are reported
through OutlierSearchResult.status instead.
"""


class ForecasterError(Exception):
    """Base exception for pipeline failures."""
    pass


class DimensionMismatch(ForecasterError):
    """Raised when a regressor block and its series disagree on row count."""
    pass


class EstimationFailed(ForecasterError):
    """Raised when the likelihood optimiser (and its fallback) did not converge."""
    pass


class InvalidOrder(ForecasterError):
    """Raised for negative or inconsistent (p,d,q)x(P,D,Q)[s] specifications."""
    pass
