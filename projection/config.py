"""
Simulation defaults and validation bounds.
"""

from typing import List

# Run count
DEFAULT_RUNS = 10000
MIN_RUNS = 1
MAX_RUNS = 100000

# Retirement horizon in years
DEFAULT_TIME_HORIZON = 30
MIN_TIME_HORIZON = 1
MAX_TIME_HORIZON = 50

# Annual inflation
DEFAULT_INFLATION_RATE = 0.02
MIN_INFLATION_RATE = -0.05
MAX_INFLATION_RATE = 0.15

DEFAULT_WITHDRAWAL_RATE = 0.04
MAX_WITHDRAWAL_RATE = 1.0

# Guyton-Klinger defaults: bounds are multiples of the target rate
DEFAULT_GUARDRAIL_ADJUSTMENT = 0.10
DEFAULT_UPPER_GUARDRAIL_MULTIPLIER = 1.25
DEFAULT_LOWER_GUARDRAIL_MULTIPLIER = 0.80

# Runs are executed (and progress reported) in batches of this size
PROGRESS_BATCH_SIZE = 1000

# None or 1 runs every batch in the calling process
DEFAULT_MAX_WORKERS = None

# Runs per strategy in a strategy comparison
COMPARISON_RUNS = 1000

# Early retirement years scored by the sequence-of-returns cohort split
EARLY_RETIREMENT_YEARS = 5

# Fractions reported for final balances
KEY_PERCENTILES: List[float] = [0.10, 0.25, 0.50, 0.75, 0.90]
