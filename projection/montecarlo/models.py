import math
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from projection import config
from projection.montecarlo.income import real_income


class AssetClass(str, Enum):
    """Asset classes a portfolio can hold, with default return assumptions."""
    STOCKS = "stocks"
    BONDS = "bonds"
    CORPORATE_BONDS = "corporate_bonds"
    REITS = "reits"
    REAL_ESTATE = "real_estate"
    PRECIOUS_METALS = "precious_metals"
    CRYPTO = "crypto"
    CASH = "cash"
    OTHER = "other"

    @property
    def default_return(self) -> float:
        return _ASSET_CLASS_DEFAULTS[self][0]

    @property
    def default_volatility(self) -> float:
        return _ASSET_CLASS_DEFAULTS[self][1]


# (expected annual return, annual volatility)
_ASSET_CLASS_DEFAULTS: Dict[AssetClass, Tuple[float, float]] = {
    AssetClass.STOCKS: (0.10, 0.18),
    AssetClass.BONDS: (0.045, 0.06),
    AssetClass.CORPORATE_BONDS: (0.055, 0.08),
    AssetClass.REITS: (0.09, 0.20),
    AssetClass.REAL_ESTATE: (0.08, 0.12),
    AssetClass.PRECIOUS_METALS: (0.05, 0.15),
    AssetClass.CRYPTO: (0.15, 0.60),
    AssetClass.CASH: (0.02, 0.01),
    AssetClass.OTHER: (0.05, 0.10),
}


@dataclass(frozen=True)
class Asset:
    """A single holding. Custom return/volatility override the class defaults."""
    name: str
    asset_class: AssetClass
    unit_value: float
    quantity: float = 1.0
    custom_expected_return: Optional[float] = None
    custom_volatility: Optional[float] = None

    @property
    def total_value(self) -> float:
        return self.quantity * self.unit_value

    @property
    def expected_return(self) -> float:
        if self.custom_expected_return is not None:
            return self.custom_expected_return
        return self.asset_class.default_return

    @property
    def volatility(self) -> float:
        if self.custom_volatility is not None:
            return self.custom_volatility
        return self.asset_class.default_volatility


@dataclass(frozen=True)
class Portfolio:
    """The set of holdings being simulated. Weights are by current value."""
    assets: Tuple[Asset, ...] = ()
    name: str = "My Portfolio"

    def __post_init__(self):
        object.__setattr__(self, "assets", tuple(self.assets))

    @property
    def total_value(self) -> float:
        return sum(asset.total_value for asset in self.assets)

    @property
    def asset_classes(self) -> List[AssetClass]:
        """Distinct asset classes held, in first-seen order."""
        seen: List[AssetClass] = []
        for asset in self.assets:
            if asset.asset_class not in seen:
                seen.append(asset.asset_class)
        return seen

    def weights(self) -> List[Tuple[Asset, float]]:
        """Returns (asset, value weight) pairs. Empty when the portfolio is worth nothing."""
        total = self.total_value
        if total <= 0:
            return []
        return [(asset, asset.total_value / total) for asset in self.assets]

    @property
    def weighted_expected_return(self) -> float:
        return sum(weight * asset.expected_return for asset, weight in self.weights())

    @property
    def weighted_volatility(self) -> float:
        # Assets treated as uncorrelated
        variance = sum((weight * asset.volatility) ** 2 for asset, weight in self.weights())
        return math.sqrt(variance)


@dataclass(frozen=True)
class ScheduledIncome:
    """
    A recurring income source (Social Security, pension, annuity, rent).

    Amounts are in today's dollars at the start age. A COLA source
    (inflation_adjusted=True) keeps its real value; a fixed-nominal source
    loses purchasing power every year after it starts paying.
    """
    name: str
    annual_amount: float
    start_age: int
    end_age: Optional[int] = None
    inflation_adjusted: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def is_active(self, age: int) -> bool:
        if age < self.start_age:
            return False
        return self.end_age is None or age <= self.end_age

    def real_income(self, age: int, inflation_rate: float) -> float:
        return real_income(
            age=age,
            inflation_rate=inflation_rate,
            start_age=self.start_age,
            end_age=self.end_age,
            inflation_adjusted=self.inflation_adjusted,
            annual_amount=self.annual_amount,
        )


class WithdrawalStrategyType(str, Enum):
    """The six interchangeable withdrawal policies."""
    FIXED_PERCENTAGE = "fixed_percentage"
    DYNAMIC_PERCENTAGE = "dynamic_percentage"
    GUARDRAILS = "guardrails"
    RMD = "rmd"
    FIXED_DOLLAR = "fixed_dollar"
    CUSTOM = "custom"

    @property
    def label(self) -> str:
        return _STRATEGY_LABELS[self]

    @property
    def default_rate(self) -> float:
        if self is WithdrawalStrategyType.GUARDRAILS:
            return 0.05
        return config.DEFAULT_WITHDRAWAL_RATE


_STRATEGY_LABELS: Dict[WithdrawalStrategyType, str] = {
    WithdrawalStrategyType.FIXED_PERCENTAGE: "4% Rule (Fixed Percentage)",
    WithdrawalStrategyType.DYNAMIC_PERCENTAGE: "Dynamic Percentage",
    WithdrawalStrategyType.GUARDRAILS: "Guardrails (Guyton-Klinger)",
    WithdrawalStrategyType.RMD: "Required Minimum Distribution",
    WithdrawalStrategyType.FIXED_DOLLAR: "Fixed Dollar Amount",
    WithdrawalStrategyType.CUSTOM: "Custom Strategy",
}


@dataclass(frozen=True)
class WithdrawalConfiguration:
    """Parameters for one withdrawal strategy. Unused fields are ignored by the others."""
    strategy: WithdrawalStrategyType = WithdrawalStrategyType.FIXED_PERCENTAGE
    withdrawal_rate: float = config.DEFAULT_WITHDRAWAL_RATE
    annual_amount: Optional[float] = None
    adjust_for_inflation: bool = True
    fixed_income: Optional[float] = None  # Legacy flat offset, superseded by scheduled income
    # Guardrails: absolute withdrawal-rate bounds and the size of each adjustment
    upper_guardrail: Optional[float] = None
    lower_guardrail: Optional[float] = None
    guardrail_adjustment_magnitude: Optional[float] = None
    # Dynamic percentage: fractions of the initial balance
    floor_percentage: Optional[float] = None
    ceiling_percentage: Optional[float] = None
    # RMD
    current_age: Optional[int] = None
    birth_year: Optional[int] = None


class InflationStrategy(str, Enum):
    """How generated returns are paired with inflation."""
    HISTORICAL_CORRELATED = "historical_correlated"  # inflation from the same sampled year
    CONSTANT_REAL = "constant_real"  # returns are already real
    CONSTANT_NOMINAL = "constant_nominal"  # returns are nominal, deflated at the constant rate


class SuccessCriterion(str, Enum):
    """When a retirement year counts as a failure."""
    STRICT = "strict"  # failed as soon as the balance reaches 0
    LENIENT = "lenient"  # failed only when a withdrawal cannot be paid in full


@dataclass(frozen=True)
class EngineOptions:
    """
    Engine behavior switches that do not belong to a simulation request.

    reinvest_surplus_income: income above the year's spending is added back to the balance
    report_real_dollars: also record every path and the final distribution in today's dollars
    success_criterion: see SuccessCriterion
    """
    reinvest_surplus_income: bool = False
    report_real_dollars: bool = False
    success_criterion: SuccessCriterion = SuccessCriterion.STRICT


@dataclass(frozen=True)
class SimulationParameters:
    """Everything a simulation request needs apart from the portfolio and the data table."""
    initial_portfolio_value: float
    number_of_runs: int = config.DEFAULT_RUNS
    time_horizon_years: int = config.DEFAULT_TIME_HORIZON
    inflation_rate: float = config.DEFAULT_INFLATION_RATE
    use_historical_bootstrap: bool = True
    monthly_contribution: float = 0.0
    years_until_retirement: int = 0
    retirement_age: Optional[int] = None
    income_schedule: Optional[Tuple[ScheduledIncome, ...]] = None
    withdrawal_config: WithdrawalConfiguration = field(default_factory=WithdrawalConfiguration)
    inflation_strategy: InflationStrategy = InflationStrategy.HISTORICAL_CORRELATED
    # Legacy flat incomes subtracted from every retirement-year withdrawal
    social_security_income: Optional[float] = None
    pension_income: Optional[float] = None
    other_income: Optional[float] = None
    tax_rate: Optional[float] = None  # Placeholder, not applied
    rng_seed: Optional[int] = None
    bootstrap_block_length: Optional[int] = None
    # Parametric overrides per asset class
    custom_returns: Optional[Dict[AssetClass, float]] = None
    custom_volatility: Optional[Dict[AssetClass, float]] = None

    def __post_init__(self):
        if self.income_schedule is not None:
            object.__setattr__(self, "income_schedule", tuple(self.income_schedule))

    @property
    def total_years(self) -> int:
        return self.years_until_retirement + self.time_horizon_years

    @property
    def legacy_income(self) -> float:
        return (self.social_security_income or 0.0) + (self.pension_income or 0.0) + (self.other_income or 0.0)

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors()

    def validation_errors(self) -> List[str]:
        """Returns a description of every violated rule, empty when the parameters are usable."""
        errors: List[str] = []
        wc = self.withdrawal_config

        if not config.MIN_RUNS <= self.number_of_runs <= config.MAX_RUNS:
            errors.append(f"Number of runs must be between {config.MIN_RUNS:,} and {config.MAX_RUNS:,}")
        if not config.MIN_TIME_HORIZON <= self.time_horizon_years <= config.MAX_TIME_HORIZON:
            errors.append(
                f"Time horizon must be between {config.MIN_TIME_HORIZON} and {config.MAX_TIME_HORIZON} years"
            )
        if not config.MIN_INFLATION_RATE <= self.inflation_rate <= config.MAX_INFLATION_RATE:
            errors.append(
                f"Inflation rate must be between {config.MIN_INFLATION_RATE:.0%} and {config.MAX_INFLATION_RATE:.0%}"
            )
        if self.initial_portfolio_value <= 0:
            errors.append("Initial portfolio value must be positive")
        if self.monthly_contribution < 0:
            errors.append("Monthly contribution cannot be negative")
        if self.years_until_retirement < 0:
            errors.append("Years until retirement cannot be negative")
        if self.retirement_age is not None and self.retirement_age < 0:
            errors.append("Retirement age cannot be negative")

        if not 0 <= wc.withdrawal_rate <= config.MAX_WITHDRAWAL_RATE:
            errors.append(f"Withdrawal rate must be between 0% and {config.MAX_WITHDRAWAL_RATE:.0%}")
        for label, value in (("Floor", wc.floor_percentage), ("Ceiling", wc.ceiling_percentage)):
            if value is not None and not 0 <= value <= 1:
                errors.append(f"{label} percentage must be between 0% and 100%")
        if (wc.floor_percentage is not None and wc.ceiling_percentage is not None
                and wc.floor_percentage > wc.ceiling_percentage):
            errors.append("Floor percentage cannot exceed ceiling percentage")
        if (wc.lower_guardrail is not None and wc.upper_guardrail is not None
                and wc.lower_guardrail > wc.upper_guardrail):
            errors.append("Lower guardrail cannot exceed upper guardrail")
        if wc.guardrail_adjustment_magnitude is not None and not 0 <= wc.guardrail_adjustment_magnitude < 1:
            errors.append("Guardrail adjustment must be at least 0% and below 100%")
        if wc.annual_amount is not None and wc.annual_amount < 0:
            errors.append("Fixed withdrawal amount cannot be negative")
        if wc.fixed_income is not None and wc.fixed_income < 0:
            errors.append("Fixed income cannot be negative")

        for label, value in (
            ("Social Security income", self.social_security_income),
            ("Pension income", self.pension_income),
            ("Other income", self.other_income),
        ):
            if value is not None and value < 0:
                errors.append(f"{label} cannot be negative")
        for income in self.income_schedule or ():
            if income.annual_amount < 0:
                errors.append(f"Income '{income.name}' cannot have a negative amount")

        if self.tax_rate is not None and not 0 <= self.tax_rate < 1:
            errors.append("Tax rate must be at least 0% and below 100%")
        if self.bootstrap_block_length is not None and self.bootstrap_block_length < 1:
            errors.append("Bootstrap block length must be at least 1")

        return errors


@dataclass(frozen=True)
class HistoricalData:
    """
    Annual return series per asset class plus an optional inflation series.

    Index i is the same calendar year in every series (start_year + i when
    start_year is known).
    """
    returns: Dict[AssetClass, Tuple[float, ...]] = field(default_factory=dict)
    inflation: Optional[Tuple[float, ...]] = None
    start_year: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(
            self, "returns", {AssetClass(k): tuple(v) for k, v in self.returns.items()}
        )
        if self.inflation is not None:
            object.__setattr__(self, "inflation", tuple(self.inflation))

    @property
    def has_inflation(self) -> bool:
        return bool(self.inflation)

    def returns_for(self, asset_class: AssetClass) -> Tuple[float, ...]:
        return self.returns.get(asset_class, ())

    def length_for(self, asset_classes: Iterable[AssetClass], include_inflation: bool = False) -> int:
        """Number of indices valid in every listed series (0 when one is missing)."""
        lengths = [len(self.returns_for(ac)) for ac in asset_classes]
        if include_inflation:
            lengths.append(len(self.inflation or ()))
        return min(lengths) if lengths else 0


@dataclass(frozen=True)
class MarketYear:
    """One generated year of market conditions."""
    nominal_return: float
    inflation: float
    real_return: float
    historical_index: Optional[int] = None


@dataclass(frozen=True)
class WithdrawalResult:
    """Gross strategy withdrawal, the income that offset it, and what the portfolio must fund."""
    gross: float
    income_offset: float = 0.0
    net: float = 0.0


@dataclass(frozen=True)
class SimulationRun:
    """
    One completed trajectory. balances has total_years + 1 entries;
    withdrawals and returns have total_years. The real_ paths are only
    recorded when real dollars are reported.
    """
    run_number: int
    balances: Tuple[float, ...]
    withdrawals: Tuple[float, ...]
    final_balance: float
    success: bool
    years_lasted: int
    returns: Tuple[float, ...] = ()
    real_balances: Optional[Tuple[float, ...]] = None
    real_withdrawals: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True)
class YearlyProjection:
    """Cross-run distribution of balances and withdrawals at one year index."""
    year: int
    median_balance: float
    percentile10_balance: float
    percentile25_balance: float
    percentile75_balance: float
    percentile90_balance: float
    median_withdrawal: float
    percentile10_withdrawal: float
    percentile90_withdrawal: float


@dataclass(frozen=True)
class SimulationResult:
    """Terminal snapshot of a simulation request."""
    parameters: SimulationParameters
    seed: int
    runs: Tuple[SimulationRun, ...]
    success_rate: float
    mean_final_balance: float
    median_final_balance: float
    final_balance_percentiles: Dict[float, float]
    yearly_projections: Tuple[YearlyProjection, ...]
    final_balance_distribution: Tuple[float, ...]
    total_withdrawn: float
    average_annual_withdrawal: float
    probability_of_ruin: float
    years_until_ruin: Optional[float]
    max_drawdown: float
    real_yearly_projections: Optional[Tuple[YearlyProjection, ...]] = None
    real_final_balance_distribution: Optional[Tuple[float, ...]] = None

    @property
    def percentile10(self) -> float:
        return self.final_balance_percentiles[0.10]

    @property
    def percentile25(self) -> float:
        return self.final_balance_percentiles[0.25]

    @property
    def percentile50(self) -> float:
        return self.final_balance_percentiles[0.50]

    @property
    def percentile75(self) -> float:
        return self.final_balance_percentiles[0.75]

    @property
    def percentile90(self) -> float:
        return self.final_balance_percentiles[0.90]
