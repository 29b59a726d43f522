# ipi_forecaster_src/parsing_utils.py

import argparse
import re
from typing import Optional, List, Tuple
import logging

from .errors import InvalidOrder
from .forecasting_utils import SeasonalOrder

logger = logging.getLogger(__name__)

_ORDER_RE = re.compile(
    r"^\(?\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)?\s*x\s*\(?\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)?\s*(?:\[\s*(\d+)\s*\])?$",
    re.IGNORECASE,
)


def parse_seasonal_order(s: str, default_period: int = 12) -> SeasonalOrder:
    """
    Parse a model specification like '1,0,0x0,1,1' or '(0,1,1)x(0,1,1)[12]'.

    Parameters
    ----------
    s : str
        Order string; the seasonal period in brackets is optional
    default_period : int, default=12
        Period used when the string has none

    Returns
    -------
    SeasonalOrder
        Validated specification

    Raises
    ------
    InvalidOrder
        If the string cannot be parsed or describes an invalid model

    Examples
    --------
    >>> parse_seasonal_order("(0,1,1)x(0,1,1)[12]").label
    '(0,1,1)x(0,1,1)[12]'
    """
    match = _ORDER_RE.match((s or "").strip())
    if not match:
        raise InvalidOrder(f"Cannot parse seasonal order '{s}'. Expected e.g. '(p,d,q)x(P,D,Q)[s]'")
    p, d, q, P, D, Q, period = match.groups()
    order = SeasonalOrder(int(p), int(d), int(q), int(P), int(D), int(Q),
                          int(period) if period else default_period)
    return order.validate()


def parse_range_arg(s: Optional[str], default: str = "0-2", config_key: Optional[str] = None,
                    args: Optional[argparse.Namespace] = None) -> List[int]:
    """
    Parse a CLI range argument like '0-2' or '0,1,2' into a list of integers.

    Parameters
    ----------
    s : str, optional
        CLI range argument string to parse
    default : str, default="0-2"
        Default range if no CLI arg or config value provided
    config_key : str, optional
        Configuration key path for fallback value
    args : argparse.Namespace, optional
        CLI arguments for precedence checking

    Returns
    -------
    List[int]
        Parsed range as sorted list of unique integers

    Examples
    --------
    >>> parse_range_arg("0-2")
    [0, 1, 2]
    >>> parse_range_arg("0,2")
    [0, 2]
    """
    from .config_utils import get_config_value

    if s is None and config_key:
        range_value = get_config_value(config_key, default, args, None)
        if isinstance(range_value, list):
            return sorted(set(int(x) for x in range_value))
        txt = str(range_value).strip()
    else:
        txt = (s or default).strip()

    try:
        if "-" in txt and "," not in txt:
            a, b = txt.split("-", 1)
            out = list(range(int(a.strip()), int(b.strip()) + 1))
        else:
            out = [int(x.strip()) for x in txt.split(",") if x.strip() != ""]
    except ValueError as e:
        raise ValueError(f"Invalid range '{txt}': expected 'a-b' or a comma-separated list") from e

    if not out or min(out) < 0:
        raise ValueError(f"Invalid range '{txt}': values must be non-negative")
    return sorted(set(out))


def build_order_grid(p_range: List[int], q_range: List[int],
                     P_range: List[int], Q_range: List[int]) -> List[Tuple[int, int, int, int]]:
    """All (p, q, P, Q) combinations of the given ranges."""
    return [(p, q, P, Q) for p in p_range for q in q_range for P in P_range for Q in Q_range]


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level specification.

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper
