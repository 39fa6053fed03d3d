import math
from typing import Dict, Iterable, List, Optional, Sequence

from projection import config
from projection.montecarlo.models import (
    SimulationParameters,
    SimulationResult,
    SimulationRun,
    YearlyProjection,
)


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Nearest-rank percentile of an ascending sequence.

    Picks index floor((n - 1) * p) with p clamped to [0, 1]; no
    interpolation, so the result is always one of the samples.
    Returns 0 for an empty sequence.
    """
    if not sorted_values:
        return 0.0
    clamped = min(max(p, 0.0), 1.0)
    index = int(math.floor((len(sorted_values) - 1) * clamped))
    return sorted_values[index]


def percentiles(values: Iterable[float], fractions: Iterable[float]) -> Dict[float, float]:
    """Sorts the values once and returns {fraction: percentile}."""
    ordered = sorted(values)
    return {p: percentile(ordered, p) for p in fractions}


def build_yearly_projections(
    runs: Sequence[SimulationRun],
    total_years: int,
    real_dollars: bool = False
) -> List[YearlyProjection]:
    """
    Cross-run percentiles of balances (years 0..total_years) and withdrawals
    (years 1..total_years). With real_dollars the deflated paths are read.
    """
    projections = []
    for year in range(total_years + 1):
        if real_dollars:
            balances = sorted(run.real_balances[year] for run in runs)
            withdrawals = sorted(run.real_withdrawals[year - 1] for run in runs) if year > 0 else []
        else:
            balances = sorted(run.balances[year] for run in runs)
            withdrawals = sorted(run.withdrawals[year - 1] for run in runs) if year > 0 else []

        projections.append(YearlyProjection(
            year=year,
            median_balance=percentile(balances, 0.50),
            percentile10_balance=percentile(balances, 0.10),
            percentile25_balance=percentile(balances, 0.25),
            percentile75_balance=percentile(balances, 0.75),
            percentile90_balance=percentile(balances, 0.90),
            median_withdrawal=percentile(withdrawals, 0.50),
            percentile10_withdrawal=percentile(withdrawals, 0.10),
            percentile90_withdrawal=percentile(withdrawals, 0.90),
        ))
    return projections


def run_max_drawdown(balances: Sequence[float]) -> float:
    """Largest peak-to-trough decline of one trajectory, as a fraction of the peak."""
    if not balances:
        return 0.0
    peak = balances[0]
    worst = 0.0
    for balance in balances:
        if balance > peak:
            peak = balance
        if peak > 0:
            worst = max(worst, (peak - balance) / peak)
    return worst


def calculate_max_drawdown(runs: Iterable[SimulationRun]) -> float:
    """Worst drawdown of any single run (the maximum, not the average)."""
    return max((run_max_drawdown(run.balances) for run in runs), default=0.0)


def aggregate_runs(
    runs: Iterable[SimulationRun],
    parameters: SimulationParameters,
    seed: int
) -> SimulationResult:
    """
    Folds completed runs into a SimulationResult.

    Runs are ordered by run number before any sum is taken, so the result
    does not depend on the order in which runs finished.
    """
    ordered = tuple(sorted(runs, key=lambda run: run.run_number))
    count = len(ordered)

    final_balances = sorted(run.final_balance for run in ordered)
    final_percentiles = percentiles(final_balances, config.KEY_PERCENTILES)

    success_count = sum(1 for run in ordered if run.success)
    failed = [run for run in ordered if not run.success]

    success_rate = success_count / count if count else 0.0
    probability_of_ruin = len(failed) / count if count else 0.0
    years_until_ruin: Optional[float] = None
    if failed:
        years_until_ruin = sum(run.years_lasted for run in failed) / len(failed)

    total_withdrawals = sorted(sum(run.withdrawals) for run in ordered)
    median_total_withdrawn = percentile(total_withdrawals, 0.50)

    real_projections = None
    real_final_balances = None
    if ordered and all(run.real_balances is not None for run in ordered):
        real_projections = tuple(build_yearly_projections(ordered, parameters.total_years, real_dollars=True))
        real_final_balances = tuple(sorted(run.real_balances[-1] for run in ordered))

    return SimulationResult(
        parameters=parameters,
        seed=seed,
        runs=ordered,
        success_rate=success_rate,
        mean_final_balance=sum(run.final_balance for run in ordered) / count if count else 0.0,
        median_final_balance=percentile(final_balances, 0.50),
        final_balance_percentiles=final_percentiles,
        yearly_projections=tuple(build_yearly_projections(ordered, parameters.total_years)),
        final_balance_distribution=tuple(final_balances),
        total_withdrawn=median_total_withdrawn,
        average_annual_withdrawal=median_total_withdrawn / parameters.time_horizon_years,
        probability_of_ruin=probability_of_ruin,
        years_until_ruin=years_until_ruin,
        max_drawdown=calculate_max_drawdown(ordered),
        real_yearly_projections=real_projections,
        real_final_balance_distribution=real_final_balances,
    )
