import logging
from concurrent.futures import ProcessPoolExecutor
from functools import partial
from typing import Callable, List, Optional

import numpy as np

from projection import config
from projection.montecarlo.aggregate import aggregate_runs
from projection.montecarlo.errors import EmptyPortfolio, InvalidParameters, MissingHistoricalData
from projection.montecarlo.income import total_scheduled_income
from projection.montecarlo.models import (
    EngineOptions,
    HistoricalData,
    InflationStrategy,
    Portfolio,
    SimulationParameters,
    SimulationResult,
    SimulationRun,
    SuccessCriterion,
    WithdrawalStrategyType,
)
from projection.montecarlo.returns import ReturnGenerator, make_run_rng
from projection.montecarlo.strategies import WithdrawalCalculator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class MonteCarloEngine:
    """
    Runs Monte Carlo projections of a portfolio through accumulation and
    retirement.

    Each run owns its random stream and its trajectory; the shared
    parameters and historical table are never modified, so runs can be
    spread over worker processes and folded together in any order.
    """

    def __init__(
        self,
        historical_data: Optional[HistoricalData] = None,
        max_workers: Optional[int] = config.DEFAULT_MAX_WORKERS,
        batch_size: int = config.PROGRESS_BATCH_SIZE,
        options: Optional[EngineOptions] = None
    ):
        """
        Args:
            historical_data: Aligned annual return (and inflation) table, required for bootstrap mode
            max_workers: Worker processes; None or 1 runs in the calling process
            batch_size: Runs per batch; progress is reported after each batch
            options: Success criterion, surplus reinvestment and real-dollar reporting
        """
        self.historical_data = historical_data
        self.max_workers = max_workers
        self.batch_size = max(1, batch_size)
        self.options = options or EngineOptions()
        self.withdrawal_calculator = WithdrawalCalculator()

    def validate(self, portfolio: Portfolio, parameters: SimulationParameters) -> None:
        """
        Checks everything a run depends on, before any run starts.

        Raises:
            InvalidParameters: with every violated rule
            EmptyPortfolio: when the portfolio holds no assets
            MissingHistoricalData: when bootstrap sampling has no aligned series to read
        """
        errors = parameters.validation_errors()
        if errors:
            raise InvalidParameters(errors)

        if not portfolio.assets:
            raise EmptyPortfolio()

        if parameters.use_historical_bootstrap:
            self._validate_historical_data(portfolio, parameters)

        wc = parameters.withdrawal_config
        if wc.strategy == WithdrawalStrategyType.RMD and wc.current_age is None:
            logger.warning("RMD strategy has no current age; withdrawing %.2f%% of the balance instead",
                           wc.withdrawal_rate * 100)

        if parameters.income_schedule and parameters.retirement_age is not None:
            earliest = min(income.start_age for income in parameters.income_schedule)
            if earliest < parameters.retirement_age:
                logger.warning("Retirement age %d is after the first income starts (%d)",
                               parameters.retirement_age, earliest)
        elif parameters.income_schedule:
            logger.warning("Income schedule ignored: no retirement age configured")

    def _validate_historical_data(self, portfolio: Portfolio, parameters: SimulationParameters) -> None:
        data = self.historical_data
        if data is None:
            raise MissingHistoricalData("Historical bootstrap selected but no historical data was supplied")

        lengths = {}
        for asset_class in portfolio.asset_classes:
            series = data.returns_for(asset_class)
            if not series:
                raise MissingHistoricalData(
                    f"No historical returns for {asset_class.value}", asset_class=asset_class.value
                )
            lengths[asset_class.value] = len(series)

        if parameters.inflation_strategy == InflationStrategy.HISTORICAL_CORRELATED:
            if data.has_inflation:
                lengths["inflation"] = len(data.inflation)
            else:
                logger.warning("No historical inflation series; using a constant %.2f%% inflation rate",
                               parameters.inflation_rate * 100)

        if len(set(lengths.values())) > 1:
            detail = ", ".join(f"{name}={length}" for name, length in sorted(lengths.items()))
            raise MissingHistoricalData(f"Historical series are misaligned ({detail})")

    def run_single_simulation(
        self,
        portfolio: Portfolio,
        parameters: SimulationParameters,
        run_number: int,
        seed: int
    ) -> SimulationRun:
        """
        Run one lifecycle path, year by year, in nominal dollars.

        Every year first applies the generated return. Accumulation years then
        add a year of contributions. Retirement years compute the withdrawal and
        pay it out of the balance. Once the run fails (see SuccessCriterion)
        every remaining year records a 0 balance, a 0 withdrawal and a 0 return.
        """
        generator = ReturnGenerator(make_run_rng(seed, run_number), parameters)
        options = self.options
        wc = parameters.withdrawal_config
        total_years = parameters.total_years
        annual_contribution = parameters.monthly_contribution * 12
        legacy_income = parameters.legacy_income

        balance = parameters.initial_portfolio_value
        path_balances: List[float] = [balance]
        path_withdrawals: List[float] = []
        path_returns: List[float] = []

        # Cumulative price level, for the real-dollar paths
        price_level = 1.0
        real_balances: Optional[List[float]] = [balance] if options.report_real_dollars else None
        real_withdrawals: Optional[List[float]] = [] if options.report_real_dollars else None

        baseline_withdrawal = 0.0
        previous_withdrawal = 0.0
        years_lasted = parameters.time_horizon_years
        ruined = False

        for year in range(1, total_years + 1):
            market = generator.next_year(portfolio, self.historical_data)
            balance = max(0.0, balance * (1 + market.nominal_return))
            price_level *= 1 + market.inflation
            path_returns.append(market.nominal_return)

            shortfall = False
            retired = year > parameters.years_until_retirement

            # --- Accumulation ---
            if not retired:
                balance += annual_contribution
                paid = 0.0

            # --- Retirement ---
            else:
                years_into_retirement = year - parameters.years_until_retirement
                scheduled_income = None
                if parameters.income_schedule:
                    scheduled_income = total_scheduled_income(parameters, years_into_retirement)

                result = self.withdrawal_calculator.calculate_withdrawal(
                    current_balance=balance,
                    year=years_into_retirement,
                    initial_balance=parameters.initial_portfolio_value,
                    config=wc,
                    inflation_rate=parameters.inflation_rate,
                    baseline_withdrawal=baseline_withdrawal,
                    previous_withdrawal=previous_withdrawal,
                    scheduled_income=scheduled_income
                )
                if years_into_retirement == 1:
                    baseline_withdrawal = result.gross
                previous_withdrawal = result.gross

                spending = result.gross - result.income_offset - legacy_income
                if spending < 0:
                    paid = 0.0
                    if options.reinvest_surplus_income:
                        balance -= spending
                else:
                    shortfall = spending > balance
                    paid = min(spending, balance)
                    balance -= paid

            path_withdrawals.append(paid)
            path_balances.append(balance)
            if real_balances is not None:
                real_withdrawals.append(paid / price_level)
                real_balances.append(balance / price_level)

            if retired and self._has_failed(balance, shortfall):
                years_lasted = years_into_retirement
                ruined = True
                balance = 0.0
                path_balances[-1] = 0.0
                remaining = total_years - year
                path_balances.extend([0.0] * remaining)
                path_withdrawals.extend([0.0] * remaining)
                path_returns.extend([0.0] * remaining)
                if real_balances is not None:
                    real_balances[-1] = 0.0
                    real_balances.extend([0.0] * remaining)
                    real_withdrawals.extend([0.0] * remaining)
                break

        return SimulationRun(
            run_number=run_number,
            balances=tuple(path_balances),
            withdrawals=tuple(path_withdrawals),
            final_balance=balance,
            success=not ruined,
            years_lasted=years_lasted,
            returns=tuple(path_returns),
            real_balances=tuple(real_balances) if real_balances is not None else None,
            real_withdrawals=tuple(real_withdrawals) if real_withdrawals is not None else None
        )

    def _has_failed(self, balance: float, shortfall: bool) -> bool:
        if self.options.success_criterion == SuccessCriterion.LENIENT:
            return shortfall
        return balance <= 0

    def run_simulation(
        self,
        portfolio: Portfolio,
        parameters: SimulationParameters,
        progress_callback: Optional[ProgressCallback] = None
    ) -> SimulationResult:
        """
        Validate, run every path and aggregate.

        Args:
            portfolio: Holdings whose weights drive the generated returns
            parameters: Simulation parameters
            progress_callback: Called as (completed, total) after each batch; does not affect results

        Returns:
            SimulationResult. With the same rng_seed the result is identical
            whatever the worker count or batch size.
        """
        self.validate(portfolio, parameters)

        seed = parameters.rng_seed
        if seed is None:
            seed = int(np.random.SeedSequence().entropy)

        total = parameters.number_of_runs
        logger.info("Starting Monte Carlo simulation with %d runs", total)

        # Bound to picklable arguments so worker processes can receive it
        run = partial(self.run_single_simulation, portfolio, parameters, seed=seed)

        if self.max_workers is not None and self.max_workers > 1:
            chunksize = max(1, self.batch_size // (self.max_workers * 4))
            with ProcessPoolExecutor(max_workers=self.max_workers) as executor:
                runs = self._run_batches(run, total, partial(executor.map, chunksize=chunksize), progress_callback)
        else:
            runs = self._run_batches(run, total, map, progress_callback)

        result = aggregate_runs(runs, parameters, seed)
        logger.info("Simulation complete. Success rate: %.1f%%", result.success_rate * 100)
        return result

    def _run_batches(
        self,
        run: Callable[[int], SimulationRun],
        total: int,
        mapper: Callable,
        progress_callback: Optional[ProgressCallback]
    ) -> List[SimulationRun]:
        runs: List[SimulationRun] = []
        for start in range(0, total, self.batch_size):
            batch = range(start, min(start + self.batch_size, total))
            runs.extend(mapper(run, batch))

            logger.debug("Completed %d/%d runs", len(runs), total)
            if progress_callback is not None:
                progress_callback(len(runs), total)
        return runs

    def calculate_stats(self, result: SimulationResult) -> dict:
        """Flat summary of a simulation result."""
        return {
            "success_rate": result.success_rate,
            "probability_of_ruin": result.probability_of_ruin,
            "median_end_value": result.median_final_balance,
            "mean_end_value": result.mean_final_balance,
            "p10_end_value": result.percentile10,
            "p90_end_value": result.percentile90,
            "min_end_value": result.final_balance_distribution[0] if result.final_balance_distribution else 0.0,
            "max_end_value": result.final_balance_distribution[-1] if result.final_balance_distribution else 0.0,
            "median_total_withdrawn": result.total_withdrawn,
            "average_annual_withdrawal": result.average_annual_withdrawal,
            "years_until_ruin": result.years_until_ruin,
            "max_drawdown": result.max_drawdown,
            "seed": result.seed,
        }
