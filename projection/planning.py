"""
Planning helpers that sit in front of the simulation engine.

Turns defined-benefit plans (Social Security, pensions, annuities) into a
scheduled income list, previews which sources pay in which retirement
year, and provides ready-made parameter presets.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from projection.montecarlo.income import age_for_retirement_year, real_income
from projection.montecarlo.models import (
    InflationStrategy,
    ScheduledIncome,
    SimulationParameters,
    WithdrawalConfiguration,
    WithdrawalStrategyType,
)


class PlanType(str, Enum):
    SOCIAL_SECURITY = "Social Security"
    PENSION = "Pension"
    ANNUITY = "Annuity"
    OTHER = "Other"

    @property
    def default_inflation_adjusted(self) -> bool:
        # Only Social Security carries a COLA by default
        return self is PlanType.SOCIAL_SECURITY


@dataclass
class DefinedBenefitPlan:
    name: str
    plan_type: PlanType
    annual_benefit: float
    start_age: int
    inflation_adjusted: Optional[bool] = None  # None: use the plan type's default
    end_age: Optional[int] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        if self.inflation_adjusted is None:
            self.inflation_adjusted = PlanType(self.plan_type).default_inflation_adjusted

    def real_benefit(self, age: int, inflation_rate: float) -> float:
        """Real value of the benefit at an age (0 before it starts)."""
        return real_income(
            age=age,
            inflation_rate=inflation_rate,
            start_age=self.start_age,
            end_age=self.end_age,
            inflation_adjusted=self.inflation_adjusted,
            annual_amount=self.annual_benefit,
        )

    def present_value(self, current_age: int, discount_rate: float = 0.03, life_expectancy: int = 90) -> float:
        """
        Sum of every payment from current_age through life_expectancy,
        discounted back to today. Payments before start_age count as 0.
        """
        pv = 0.0
        for age in range(current_age, life_expectancy + 1):
            if age >= self.start_age:
                years_from_now = age - current_age
                pv += self.annual_benefit / (1 + discount_rate) ** years_from_now
        return pv

    def to_scheduled_income(self) -> ScheduledIncome:
        return ScheduledIncome(
            name=self.name,
            annual_amount=self.annual_benefit,
            start_age=self.start_age,
            end_age=self.end_age,
            inflation_adjusted=self.inflation_adjusted,
            id=self.id,
        )


def build_income_schedule(plans: Iterable[DefinedBenefitPlan]) -> Tuple[ScheduledIncome, ...]:
    """Converts plans into the income schedule the engine consumes."""
    return tuple(plan.to_scheduled_income() for plan in plans)


def total_present_value(plans: Iterable[DefinedBenefitPlan], current_age: int, life_expectancy: int = 90) -> float:
    return sum(plan.present_value(current_age, life_expectancy=life_expectancy) for plan in plans)


@dataclass(frozen=True)
class IncomeSource:
    name: str
    amount: float
    is_real: bool


@dataclass(frozen=True)
class YearlyIncome:
    year: int
    age: int
    sources: Tuple[IncomeSource, ...]
    total_income: float


@dataclass
class IncomeTimeline:
    """Year-by-year view of which scheduled sources pay during retirement."""
    retirement_age: int
    income_schedule: List[ScheduledIncome]
    years: int

    def generate_timeline(self, inflation_rate: float = 0.025) -> List[YearlyIncome]:
        timeline = []
        for year in range(1, self.years + 1):
            age = age_for_retirement_year(self.retirement_age, year)
            sources = []
            total = 0.0
            for income in self.income_schedule:
                amount = income.real_income(age, inflation_rate)
                if amount > 0:
                    sources.append(IncomeSource(name=income.name, amount=amount, is_real=income.inflation_adjusted))
                    total += amount
            timeline.append(YearlyIncome(year=year, age=age, sources=tuple(sources), total_income=total))
        return timeline


# Presets

def conservative_parameters(initial_portfolio_value: float = 1_000_000) -> SimulationParameters:
    return SimulationParameters(
        initial_portfolio_value=initial_portfolio_value,
        number_of_runs=10000,
        time_horizon_years=30,
        inflation_rate=0.03,
        use_historical_bootstrap=True,
        withdrawal_config=WithdrawalConfiguration(
            strategy=WithdrawalStrategyType.FIXED_PERCENTAGE,
            withdrawal_rate=0.035
        ),
        inflation_strategy=InflationStrategy.HISTORICAL_CORRELATED
    )


def moderate_parameters(initial_portfolio_value: float = 1_000_000) -> SimulationParameters:
    return SimulationParameters(
        initial_portfolio_value=initial_portfolio_value,
        number_of_runs=10000,
        time_horizon_years=30,
        inflation_rate=0.025,
        use_historical_bootstrap=True,
        withdrawal_config=WithdrawalConfiguration(
            strategy=WithdrawalStrategyType.FIXED_PERCENTAGE,
            withdrawal_rate=0.04
        ),
        inflation_strategy=InflationStrategy.HISTORICAL_CORRELATED
    )


def aggressive_parameters(initial_portfolio_value: float = 1_000_000) -> SimulationParameters:
    return SimulationParameters(
        initial_portfolio_value=initial_portfolio_value,
        number_of_runs=10000,
        time_horizon_years=30,
        inflation_rate=0.02,
        use_historical_bootstrap=True,
        withdrawal_config=WithdrawalConfiguration(
            strategy=WithdrawalStrategyType.DYNAMIC_PERCENTAGE,
            withdrawal_rate=0.05
        ),
        inflation_strategy=InflationStrategy.HISTORICAL_CORRELATED
    )
