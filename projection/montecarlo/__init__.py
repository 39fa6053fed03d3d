"""
Monte Carlo retirement projection package.

This package runs a portfolio through thousands of randomized market paths,
covering accumulation and retirement, with historical or parametric returns,
scheduled income streams, and interchangeable withdrawal strategies.

All public classes are re-exported here.
"""

# Errors
from projection.montecarlo.errors import (
    SimulationError,
    InvalidParameters,
    EmptyPortfolio,
    MissingHistoricalData,
)

# Models
from projection.montecarlo.models import (
    AssetClass,
    Asset,
    Portfolio,
    ScheduledIncome,
    WithdrawalStrategyType,
    WithdrawalConfiguration,
    InflationStrategy,
    SuccessCriterion,
    EngineOptions,
    SimulationParameters,
    HistoricalData,
    MarketYear,
    WithdrawalResult,
    SimulationRun,
    YearlyProjection,
    SimulationResult,
)

# Returns
from projection.montecarlo.returns import (
    ReturnGenerator,
    to_real_return,
    to_nominal_return,
    to_real_returns,
    to_nominal_returns,
    return_inflation_correlation,
    make_run_rng,
)

# Income
from projection.montecarlo.income import (
    real_income,
    total_scheduled_income,
)

# Strategies
from projection.montecarlo.strategies import (
    WithdrawalStrategy,
    FixedPercentageStrategy,
    DynamicPercentageStrategy,
    GuardrailsStrategy,
    RMDStrategy,
    FixedDollarStrategy,
    CustomStrategy,
    WithdrawalCalculator,
    STRATEGY_DESCRIPTIONS,
    get_strategy_description,
    get_all_strategy_names,
    rmd_distribution_period,
    strategy_for,
)

# Aggregation
from projection.montecarlo.aggregate import (
    aggregate_runs,
    percentile,
    calculate_max_drawdown,
)

# Engine
from projection.montecarlo.engine import (
    MonteCarloEngine,
)

__all__ = [
    # Errors
    "SimulationError",
    "InvalidParameters",
    "EmptyPortfolio",
    "MissingHistoricalData",
    # Models
    "AssetClass",
    "Asset",
    "Portfolio",
    "ScheduledIncome",
    "WithdrawalStrategyType",
    "WithdrawalConfiguration",
    "InflationStrategy",
    "SuccessCriterion",
    "EngineOptions",
    "SimulationParameters",
    "HistoricalData",
    "MarketYear",
    "WithdrawalResult",
    "SimulationRun",
    "YearlyProjection",
    "SimulationResult",
    # Returns
    "ReturnGenerator",
    "to_real_return",
    "to_nominal_return",
    "to_real_returns",
    "to_nominal_returns",
    "return_inflation_correlation",
    "make_run_rng",
    # Income
    "real_income",
    "total_scheduled_income",
    # Strategies
    "WithdrawalStrategy",
    "FixedPercentageStrategy",
    "DynamicPercentageStrategy",
    "GuardrailsStrategy",
    "RMDStrategy",
    "FixedDollarStrategy",
    "CustomStrategy",
    "WithdrawalCalculator",
    "STRATEGY_DESCRIPTIONS",
    "get_strategy_description",
    "get_all_strategy_names",
    "rmd_distribution_period",
    "strategy_for",
    # Aggregation
    "aggregate_runs",
    "percentile",
    "calculate_max_drawdown",
    # Engine
    "MonteCarloEngine",
]
