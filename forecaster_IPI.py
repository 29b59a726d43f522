#!/usr/bin/env python3
"""
Seasonal ARIMA modeling of a monthly industrial production index.

Usage
-----
    python forecaster_IPI.py --help
    python forecaster_IPI.py --series-csv data/ipi_IT.csv
    python forecaster_IPI.py --series-csv data/ipi_IT.csv --auto-diff --grid-search

The implementation lives in ipi_forecaster_src/; see ipi_forecaster_src/main.py
for the workflow.
"""

import sys

from ipi_forecaster_src.main import main

if __name__ == "__main__":
    main(sys.argv[1:])
