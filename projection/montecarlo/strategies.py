from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type, Union

from projection import config as config_defaults
from projection.montecarlo.models import (
    WithdrawalConfiguration,
    WithdrawalResult,
    WithdrawalStrategyType,
)


# Strategy descriptions for display
STRATEGY_DESCRIPTIONS: Dict[WithdrawalStrategyType, str] = {
    WithdrawalStrategyType.FIXED_PERCENTAGE: (
        "Withdraws a fixed percentage of the initial portfolio in the first year of retirement "
        "and keeps spending that same real amount every year after, regardless of market performance."
    ),
    WithdrawalStrategyType.DYNAMIC_PERCENTAGE: (
        "Withdraws a percentage of the current portfolio value each year. Optional floor and "
        "ceiling percentages of the initial portfolio keep spending within fixed real-dollar limits."
    ),
    WithdrawalStrategyType.GUARDRAILS: (
        "Carries last year's spending forward, but cuts it when the withdrawal rate rises above "
        "the upper guardrail and raises it when the rate falls below the lower guardrail. "
        "Balances stability with portfolio preservation."
    ),
    WithdrawalStrategyType.RMD: (
        "Withdraws the portfolio divided by the IRS Uniform Lifetime Table distribution period "
        "for your age. Older retirees withdraw a larger share of what is left."
    ),
    WithdrawalStrategyType.FIXED_DOLLAR: (
        "Withdraws a fixed dollar amount each year. If it is not inflation adjusted, its "
        "purchasing power erodes every year."
    ),
    WithdrawalStrategyType.CUSTOM: (
        "Define your own withdrawal parameters. Currently behaves like the fixed percentage rule."
    ),
}


def get_strategy_description(strategy: Union[WithdrawalStrategyType, str]) -> str:
    """Get the description for a withdrawal strategy by type, value or label."""
    for strategy_type, description in STRATEGY_DESCRIPTIONS.items():
        if strategy in (strategy_type, strategy_type.value, strategy_type.label):
            return description
    return "No description available."


def get_all_strategy_names() -> list:
    """Get display labels of all available strategies."""
    return [strategy_type.label for strategy_type in STRATEGY_DESCRIPTIONS]


# IRS Uniform Lifetime Table, ages 72 through 115
_RMD_DISTRIBUTION_PERIODS: Dict[int, float] = {
    72: 27.4, 73: 26.5, 74: 25.5, 75: 24.6, 76: 23.7, 77: 22.9, 78: 22.0,
    79: 21.1, 80: 20.2, 81: 19.4, 82: 18.5, 83: 17.7, 84: 16.8, 85: 16.0,
    86: 15.2, 87: 14.4, 88: 13.7, 89: 12.9, 90: 12.2, 91: 11.5, 92: 10.8,
    93: 10.1, 94: 9.5, 95: 8.9, 96: 8.4, 97: 7.8, 98: 7.3, 99: 6.8,
    100: 6.4, 101: 6.0, 102: 5.6, 103: 5.2, 104: 4.9, 105: 4.6, 106: 4.3,
    107: 4.1, 108: 3.9, 109: 3.7, 110: 3.5, 111: 3.4, 112: 3.3, 113: 3.1,
    114: 3.0, 115: 2.9,
}


def rmd_distribution_period(age: int) -> float:
    """Life-expectancy divisor for an age. Younger ages use the age-72 value, older ones the age-115 value."""
    if age <= 72:
        return _RMD_DISTRIBUTION_PERIODS[72]
    if age >= 115:
        return _RMD_DISTRIBUTION_PERIODS[115]
    return _RMD_DISTRIBUTION_PERIODS[age]


class WithdrawalStrategy(ABC):
    """
    Abstract base class for all withdrawal strategies.

    Strategies hold no state. Everything that changes from year to year
    (balance, year, first-year baseline, last year's withdrawal) is passed
    in by the caller, so the same instance can serve every run.
    """

    @abstractmethod
    def calculate_withdrawal(
        self,
        current_balance: float,
        year: int,
        initial_balance: float,
        baseline_withdrawal: float,
        previous_withdrawal: float,
        config: WithdrawalConfiguration,
        inflation_rate: float
    ) -> float:
        """
        Calculates the gross withdrawal for the current year.

        Args:
            current_balance: Portfolio value after this year's return
            year: Year into retirement (1-based)
            initial_balance: Portfolio value the simulation started with
            baseline_withdrawal: Gross withdrawal of retirement year 1 (0 in year 1)
            previous_withdrawal: Gross withdrawal of the previous retirement year (0 in year 1)
            config: Withdrawal configuration
            inflation_rate: Annual inflation rate of the simulation

        Returns:
            Gross withdrawal before any income offset
        """
        ...


class FixedPercentageStrategy(WithdrawalStrategy):
    """
    The 4% rule: a percentage of the initial portfolio in year one, then
    the same real amount every year after.
    """

    def calculate_withdrawal(
        self,
        current_balance: float,
        year: int,
        initial_balance: float,
        baseline_withdrawal: float,
        previous_withdrawal: float,
        config: WithdrawalConfiguration,
        inflation_rate: float
    ) -> float:
        if year == 1:
            return initial_balance * config.withdrawal_rate
        return baseline_withdrawal


class DynamicPercentageStrategy(WithdrawalStrategy):
    """
    Withdraws a percentage of the current portfolio.

    Floor and ceiling are fractions of the *initial* balance so they stay
    fixed real-dollar limits as the portfolio changes.
    """

    def calculate_withdrawal(
        self,
        current_balance: float,
        year: int,
        initial_balance: float,
        baseline_withdrawal: float,
        previous_withdrawal: float,
        config: WithdrawalConfiguration,
        inflation_rate: float
    ) -> float:
        withdrawal = current_balance * config.withdrawal_rate

        if config.floor_percentage is not None:
            withdrawal = max(withdrawal, initial_balance * config.floor_percentage)
        if config.ceiling_percentage is not None:
            withdrawal = min(withdrawal, initial_balance * config.ceiling_percentage)

        return max(0.0, min(withdrawal, current_balance))


class GuardrailsStrategy(WithdrawalStrategy):
    """
    Guyton-Klinger decision rules with guardrails.

    Carries last year's withdrawal forward and adjusts it by the configured
    magnitude (10% by default) when the current withdrawal rate crosses
    the upper or lower guardrail.
    """

    def calculate_withdrawal(
        self,
        current_balance: float,
        year: int,
        initial_balance: float,
        baseline_withdrawal: float,
        previous_withdrawal: float,
        config: WithdrawalConfiguration,
        inflation_rate: float
    ) -> float:
        if current_balance <= 0:
            return 0.0

        if year == 1:
            return current_balance * config.withdrawal_rate

        rate = config.withdrawal_rate
        upper = config.upper_guardrail
        if upper is None:
            upper = rate * config_defaults.DEFAULT_UPPER_GUARDRAIL_MULTIPLIER
        lower = config.lower_guardrail
        if lower is None:
            lower = rate * config_defaults.DEFAULT_LOWER_GUARDRAIL_MULTIPLIER
        magnitude = config.guardrail_adjustment_magnitude
        if magnitude is None:
            magnitude = config_defaults.DEFAULT_GUARDRAIL_ADJUSTMENT

        withdrawal = previous_withdrawal
        current_rate = withdrawal / current_balance

        if current_rate > upper:
            # Capital preservation: spending is too high relative to the portfolio
            withdrawal *= (1 - magnitude)
        elif current_rate < lower:
            # Prosperity: the portfolio can support more
            withdrawal *= (1 + magnitude)

        return min(withdrawal, current_balance)


class RMDStrategy(WithdrawalStrategy):
    """Required Minimum Distribution: balance divided by the IRS distribution period for the age."""

    def calculate_withdrawal(
        self,
        current_balance: float,
        year: int,
        initial_balance: float,
        baseline_withdrawal: float,
        previous_withdrawal: float,
        config: WithdrawalConfiguration,
        inflation_rate: float
    ) -> float:
        if config.current_age is None:
            # Saved configurations without an age fall back to the flat rate
            return current_balance * config.withdrawal_rate

        age = config.current_age + year - 1
        return current_balance / rmd_distribution_period(age)


class FixedDollarStrategy(WithdrawalStrategy):
    """
    Withdraws a fixed amount. Without inflation adjustment the payment is
    fixed in nominal terms, so its real value erodes from year one.
    """

    def calculate_withdrawal(
        self,
        current_balance: float,
        year: int,
        initial_balance: float,
        baseline_withdrawal: float,
        previous_withdrawal: float,
        config: WithdrawalConfiguration,
        inflation_rate: float
    ) -> float:
        if config.annual_amount is None:
            return 0.0
        if config.adjust_for_inflation:
            return config.annual_amount
        return config.annual_amount / (1 + inflation_rate) ** (year - 1)


class CustomStrategy(FixedPercentageStrategy):
    """Extension point for user-defined rules. Behaves like the fixed percentage rule for now."""


_STRATEGY_REGISTRY: Dict[WithdrawalStrategyType, Type[WithdrawalStrategy]] = {
    WithdrawalStrategyType.FIXED_PERCENTAGE: FixedPercentageStrategy,
    WithdrawalStrategyType.DYNAMIC_PERCENTAGE: DynamicPercentageStrategy,
    WithdrawalStrategyType.GUARDRAILS: GuardrailsStrategy,
    WithdrawalStrategyType.RMD: RMDStrategy,
    WithdrawalStrategyType.FIXED_DOLLAR: FixedDollarStrategy,
    WithdrawalStrategyType.CUSTOM: CustomStrategy,
}

_STRATEGY_INSTANCES: Dict[WithdrawalStrategyType, WithdrawalStrategy] = {
    strategy_type: cls() for strategy_type, cls in _STRATEGY_REGISTRY.items()
}


def strategy_for(strategy_type: WithdrawalStrategyType) -> WithdrawalStrategy:
    """Returns the shared strategy instance for a strategy type."""
    return _STRATEGY_INSTANCES[WithdrawalStrategyType(strategy_type)]


class WithdrawalCalculator:
    """
    Computes a year's withdrawal under the configured strategy and nets out
    income. Has no internal state.
    """

    def calculate_withdrawal(
        self,
        current_balance: float,
        year: int,
        initial_balance: float,
        config: WithdrawalConfiguration,
        inflation_rate: float,
        baseline_withdrawal: float = 0.0,
        previous_withdrawal: float = 0.0,
        scheduled_income: Optional[float] = None
    ) -> WithdrawalResult:
        """
        Args:
            current_balance: Portfolio value after this year's return
            year: Year into retirement (1-based)
            initial_balance: Portfolio value the simulation started with
            config: Withdrawal configuration
            inflation_rate: Annual inflation rate
            baseline_withdrawal: Gross withdrawal of retirement year 1
            previous_withdrawal: Gross withdrawal of the previous retirement year
            scheduled_income: Total scheduled income for the year, if a schedule is configured

        Returns:
            WithdrawalResult. Scheduled income, when present and non-zero, offsets
            the gross amount; otherwise the legacy flat fixed_income does.
        """
        gross = strategy_for(config.strategy).calculate_withdrawal(
            current_balance=current_balance,
            year=year,
            initial_balance=initial_balance,
            baseline_withdrawal=baseline_withdrawal,
            previous_withdrawal=previous_withdrawal,
            config=config,
            inflation_rate=inflation_rate
        )

        if scheduled_income:
            offset = scheduled_income
        elif config.fixed_income:
            offset = config.fixed_income
        else:
            offset = 0.0

        return WithdrawalResult(gross=gross, income_offset=offset, net=max(0.0, gross - offset))

    def project_withdrawals(
        self,
        initial_balance: float,
        years: int,
        config: WithdrawalConfiguration,
        inflation_rate: float,
        assumed_return: float
    ) -> List[float]:
        """
        Gross withdrawals along a deterministic path with a constant return.

        Follows the simulator's ordering: the return is applied first, then
        the year's withdrawal is taken. Useful for previewing a configuration.
        """
        balance = initial_balance
        withdrawals: List[float] = []
        baseline = 0.0
        previous = 0.0

        for year in range(1, years + 1):
            balance *= (1 + assumed_return)
            result = self.calculate_withdrawal(
                current_balance=balance,
                year=year,
                initial_balance=initial_balance,
                config=config,
                inflation_rate=inflation_rate,
                baseline_withdrawal=baseline,
                previous_withdrawal=previous
            )
            if year == 1:
                baseline = result.gross
            previous = result.gross
            withdrawals.append(result.gross)

            balance = max(0.0, balance - result.gross)

        return withdrawals
