from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from projection import config
from projection.montecarlo.aggregate import percentile
from projection.montecarlo.engine import MonteCarloEngine
from projection.montecarlo.models import (
    Portfolio,
    SimulationParameters,
    SimulationResult,
    SimulationRun,
    WithdrawalStrategyType,
)
from projection.planning import YearlyIncome

COHORT_LABELS = (
    "Poor Start (bottom third)",
    "Average Start (middle third)",
    "Good Start (top third)",
)


def yearly_projection_frame(result: SimulationResult, real_dollars: bool = False) -> pd.DataFrame:
    """
    Year-by-year percentile bands, indexed by Year (0 is the starting balance).

    real_dollars reads the deflated bands, empty unless the engine reported them.
    """
    projections = result.real_yearly_projections if real_dollars else result.yearly_projections
    rows = [
        {
            "Year": p.year,
            "P10 Balance": p.percentile10_balance,
            "P25 Balance": p.percentile25_balance,
            "Median Balance": p.median_balance,
            "P75 Balance": p.percentile75_balance,
            "P90 Balance": p.percentile90_balance,
            "P10 Withdrawal": p.percentile10_withdrawal,
            "Median Withdrawal": p.median_withdrawal,
            "P90 Withdrawal": p.percentile90_withdrawal,
        }
        for p in projections or ()
    ]
    if not rows:
        return pd.DataFrame()
    return pd.DataFrame(rows).set_index("Year")


def run_summary_frame(result: SimulationResult) -> pd.DataFrame:
    """
    One row per run, indexed by Run with columns:
    - Success (Bool)
    - End Balance
    - Years Lasted
    - Total Withdrawn
    - Min Annual Withdrawal
    """
    if not result.runs:
        return pd.DataFrame()

    df = pd.DataFrame({
        "Run": [run.run_number for run in result.runs],
        "Success": [run.success for run in result.runs],
        "End Balance": [run.final_balance for run in result.runs],
        "Years Lasted": [run.years_lasted for run in result.runs],
        "Total Withdrawn": [sum(run.withdrawals) for run in result.runs],
        "Min Annual Withdrawal": [min(run.withdrawals) if run.withdrawals else 0.0 for run in result.runs],
    })

    df.set_index("Run", inplace=True)
    return df


def balance_paths_frame(result: SimulationResult) -> pd.DataFrame:
    """Balances with one row per run and one column per year."""
    if not result.runs:
        return pd.DataFrame()
    return pd.DataFrame(
        np.array([run.balances for run in result.runs]),
        index=pd.Index([run.run_number for run in result.runs], name="Run"),
    )


def get_failed_runs(run_summary: pd.DataFrame) -> pd.DataFrame:
    """
    Returns only the runs that depleted, quickest failures first.
    """
    if run_summary.empty:
        return run_summary
    return run_summary[~run_summary["Success"]].sort_values("Years Lasted")


def ruin_year_distribution(result: SimulationResult) -> pd.Series:
    """Number of failed runs per retirement year of ruin. Empty when every run succeeded."""
    years = [run.years_lasted for run in result.runs if not run.success]
    if not years:
        return pd.Series(dtype=int, name="Failed Runs")
    counts = pd.Series(years).value_counts().sort_index()
    counts.index.name = "Ruin Year"
    counts.name = "Failed Runs"
    return counts


def income_timeline_frame(timeline: List[YearlyIncome]) -> pd.DataFrame:
    """
    Income timeline as a table: one row per retirement year, one column per
    source (0 while inactive), plus Age and Total Income.
    """
    if not timeline:
        return pd.DataFrame()

    rows = []
    for entry in timeline:
        row = {"Year": entry.year, "Age": entry.age}
        for source in entry.sources:
            row[source.name] = row.get(source.name, 0.0) + source.amount
        row["Total Income"] = entry.total_income
        rows.append(row)

    df = pd.DataFrame(rows).set_index("Year")
    source_columns = [c for c in df.columns if c not in ("Age", "Total Income")]
    df[source_columns] = df[source_columns].fillna(0.0)
    return df[["Age"] + source_columns + ["Total Income"]]


def compare_strategies(
    engine: MonteCarloEngine,
    portfolio: Portfolio,
    parameters: SimulationParameters,
    strategies: Optional[Iterable[WithdrawalStrategyType]] = None,
    number_of_runs: Optional[int] = config.COMPARISON_RUNS
) -> Dict[WithdrawalStrategyType, SimulationResult]:
    """
    Runs the same request once per withdrawal strategy.

    Every strategy shares the request's rate, seed and income. Fixed dollar
    without an annual amount withdraws initial_portfolio_value * rate.
    number_of_runs=None keeps the request's run count.
    """
    if strategies is None:
        strategies = list(WithdrawalStrategyType)

    base = parameters.withdrawal_config
    results = {}
    for strategy in strategies:
        wc = replace(base, strategy=strategy)
        if strategy == WithdrawalStrategyType.FIXED_DOLLAR and wc.annual_amount is None:
            wc = replace(wc, annual_amount=parameters.initial_portfolio_value * base.withdrawal_rate)

        request = replace(parameters, withdrawal_config=wc)
        if number_of_runs is not None:
            request = replace(request, number_of_runs=number_of_runs)
        results[strategy] = engine.run_simulation(portfolio, request)
    return results


def strategy_comparison_frame(results: Dict[WithdrawalStrategyType, SimulationResult]) -> pd.DataFrame:
    """
    One row per strategy, indexed by Strategy with columns:
    - Success Rate
    - Median Final Balance
    - Average Annual Withdrawal
    - Probability of Ruin
    """
    if not results:
        return pd.DataFrame()

    df = pd.DataFrame({
        "Strategy": [strategy.label for strategy in results],
        "Success Rate": [r.success_rate for r in results.values()],
        "Median Final Balance": [r.median_final_balance for r in results.values()],
        "Average Annual Withdrawal": [r.average_annual_withdrawal for r in results.values()],
        "Probability of Ruin": [r.probability_of_ruin for r in results.values()],
    })

    df.set_index("Strategy", inplace=True)
    return df


def strategy_median_paths(results: Dict[WithdrawalStrategyType, SimulationResult]) -> pd.DataFrame:
    """Median balance per year (rows) for each strategy (columns)."""
    if not results:
        return pd.DataFrame()
    df = pd.DataFrame({
        strategy.label: [p.median_balance for p in result.yearly_projections]
        for strategy, result in results.items()
    })
    df.index.name = "Year"
    return df


def early_retirement_return(run: SimulationRun, parameters: SimulationParameters,
                            early_years: int = config.EARLY_RETIREMENT_YEARS) -> float:
    """
    Median return over a run's first retirement years.

    Only years the run actually drew are scored, so a run that failed early
    is judged on the returns that ruined it. Returns 0 when nothing was drawn.
    """
    start = parameters.years_until_retirement
    window = min(early_years, parameters.time_horizon_years)
    if not run.success:
        window = min(window, run.years_lasted)
    return percentile(sorted(run.returns[start:start + window]), 0.50)


def _split_cohorts(result: SimulationResult, early_years: int) -> List[Tuple[SimulationRun, ...]]:
    """Runs ordered by early-retirement return, cut into bottom, middle and top thirds."""
    ranked = sorted(
        result.runs,
        key=lambda run: (early_retirement_return(run, result.parameters, early_years), run.run_number)
    )
    third = len(ranked) // 3
    return [tuple(ranked[:third]), tuple(ranked[third:2 * third]), tuple(ranked[2 * third:])]


def sequence_of_returns_cohorts(
    result: SimulationResult,
    early_years: int = config.EARLY_RETIREMENT_YEARS
) -> pd.DataFrame:
    """
    Splits the runs into thirds by their early-retirement return, indexed by
    Cohort with columns:
    - Runs
    - Success Rate
    - Median Early Return
    - Median Final Balance
    """
    if not result.runs:
        return pd.DataFrame()

    rows = []
    for label, runs in zip(COHORT_LABELS, _split_cohorts(result, early_years)):
        rows.append({
            "Cohort": label,
            "Runs": len(runs),
            "Success Rate": sum(1 for run in runs if run.success) / len(runs) if runs else 0.0,
            "Median Early Return": percentile(
                sorted(early_retirement_return(run, result.parameters, early_years) for run in runs), 0.50
            ),
            "Median Final Balance": percentile(sorted(run.final_balance for run in runs), 0.50),
        })
    return pd.DataFrame(rows).set_index("Cohort")


def cohort_median_paths(
    result: SimulationResult,
    early_years: int = config.EARLY_RETIREMENT_YEARS
) -> pd.DataFrame:
    """Median balance per year (rows) for each sequence-of-returns cohort (columns)."""
    if not result.runs:
        return pd.DataFrame()

    columns = {}
    for label, runs in zip(COHORT_LABELS, _split_cohorts(result, early_years)):
        columns[label] = [
            percentile(sorted(run.balances[year] for run in runs), 0.50)
            for year in range(len(result.runs[0].balances))
        ]
    df = pd.DataFrame(columns)
    df.index.name = "Year"
    return df
