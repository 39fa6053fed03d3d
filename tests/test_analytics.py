import unittest
from projection.analytics import (
    COHORT_LABELS,
    balance_paths_frame,
    cohort_median_paths,
    compare_strategies,
    early_retirement_return,
    get_failed_runs,
    income_timeline_frame,
    ruin_year_distribution,
    run_summary_frame,
    sequence_of_returns_cohorts,
    strategy_comparison_frame,
    strategy_median_paths,
    yearly_projection_frame,
)
from projection.montecarlo import (
    Asset,
    AssetClass,
    MonteCarloEngine,
    Portfolio,
    ScheduledIncome,
    SimulationParameters,
    SimulationRun,
    WithdrawalConfiguration,
    WithdrawalStrategyType,
    aggregate_runs,
)
from projection.planning import IncomeTimeline


def create_result():
    params = SimulationParameters(initial_portfolio_value=100, number_of_runs=4, time_horizon_years=3)
    runs = [
        SimulationRun(0, (100, 105, 110, 120), (5, 5, 5), 120, True, 3),
        SimulationRun(1, (100, 60, 0.0, 0.0), (10, 10, 0.0), 0.0, False, 2),
        SimulationRun(2, (100, 40, 0.0, 0.0), (10, 10, 0.0), 0.0, False, 2),
        SimulationRun(3, (100, 70, 50, 0.0), (10, 10, 10), 0.0, False, 3),
    ]
    return aggregate_runs(runs, params, seed=1)


class TestResultFrames(unittest.TestCase):

    def test_should_index_projections_by_year_given_result(self):
        # Under test
        df = yearly_projection_frame(create_result())

        # Postconditions
        self.assertEqual(list(df.index), [0, 1, 2, 3])
        self.assertIn("Median Balance", df.columns)
        self.assertTrue((df["P10 Balance"] <= df["P90 Balance"]).all())

    def test_should_summarize_each_run_given_result(self):
        # Under test
        df = run_summary_frame(create_result())

        # Postconditions
        self.assertEqual(len(df), 4)
        self.assertEqual(df.loc[0, "Total Withdrawn"], 15)
        self.assertEqual(df.loc[1, "Min Annual Withdrawal"], 0.0)
        self.assertEqual(int(df["Success"].sum()), 1)

    def test_should_order_failures_given_run_summary(self):
        # Under test
        failed = get_failed_runs(run_summary_frame(create_result()))

        # Postconditions
        self.assertEqual(len(failed), 3)
        self.assertEqual(list(failed["Years Lasted"]), [2, 2, 3])

    def test_should_count_failures_per_year_given_result(self):
        # Under test
        counts = ruin_year_distribution(create_result())

        # Postconditions
        self.assertEqual(counts.to_dict(), {2: 2, 3: 1})

    def test_should_be_empty_given_no_failures(self):
        # Preconditions
        params = SimulationParameters(initial_portfolio_value=100, number_of_runs=1, time_horizon_years=1)
        result = aggregate_runs([SimulationRun(0, (100, 101), (1,), 101, True, 1)], params, seed=1)

        # Under test / Postconditions
        self.assertTrue(ruin_year_distribution(result).empty)

    def test_should_lay_out_paths_given_result(self):
        # Under test
        df = balance_paths_frame(create_result())

        # Postconditions
        self.assertEqual(df.shape, (4, 4))
        self.assertEqual(df.loc[3, 2], 50)

    def test_should_be_empty_given_no_real_dollar_bands(self):
        # Under test / Postconditions
        self.assertTrue(yearly_projection_frame(create_result(), real_dollars=True).empty)


class TestIncomeTimelineFrame(unittest.TestCase):

    def test_should_fill_inactive_sources_given_timeline(self):
        # Preconditions
        timeline = IncomeTimeline(
            retirement_age=65,
            income_schedule=[
                ScheduledIncome(name="Pension", annual_amount=10000, start_age=65),
                ScheduledIncome(name="Social Security", annual_amount=20000, start_age=67),
            ],
            years=4
        ).generate_timeline(inflation_rate=0.02)

        # Under test
        df = income_timeline_frame(timeline)

        # Postconditions
        self.assertEqual(list(df.columns), ["Age", "Pension", "Social Security", "Total Income"])
        self.assertEqual(df.loc[1, "Social Security"], 0.0)
        self.assertEqual(df.loc[3, "Total Income"], 30000)
        self.assertTrue(income_timeline_frame([]).empty)


def create_cohort_result():
    params = SimulationParameters(initial_portfolio_value=100, number_of_runs=6, time_horizon_years=3)
    runs = [
        SimulationRun(0, (100, 70, 0.0, 0.0), (5, 5, 0.0), 0.0, False, 2, returns=(-0.30, -0.20, 0.0)),
        SimulationRun(1, (100, 85, 80, 78), (5, 5, 5), 78, True, 3, returns=(-0.10, -0.05, 0.02)),
        SimulationRun(2, (100, 96, 93, 91), (5, 5, 5), 91, True, 3, returns=(0.01, 0.02, 0.03)),
        SimulationRun(3, (100, 98, 97, 97), (5, 5, 5), 97, True, 3, returns=(0.03, 0.04, 0.05)),
        SimulationRun(4, (100, 105, 106, 110), (5, 5, 5), 110, True, 3, returns=(0.10, 0.06, 0.08)),
        SimulationRun(5, (100, 107, 118, 137), (5, 5, 5), 137, True, 3, returns=(0.12, 0.15, 0.20)),
    ]
    return aggregate_runs(runs, params, seed=1)


class TestSequenceOfReturns(unittest.TestCase):

    def test_should_score_drawn_years_only_given_failed_run(self):
        # Preconditions
        result = create_cohort_result()

        # Under test
        score = early_retirement_return(result.runs[0], result.parameters)

        # Postconditions: the 0.0 recorded after ruin is not scored
        self.assertEqual(score, -0.30)

    def test_should_skip_accumulation_given_years_until_retirement(self):
        # Preconditions
        params = SimulationParameters(initial_portfolio_value=100, years_until_retirement=2, time_horizon_years=3)
        run = SimulationRun(0, (100,) * 6, (0.0,) * 5, 100, True, 3, returns=(0.5, 0.5, -0.1, 0.0, 0.1))

        # Under test / Postconditions
        self.assertEqual(early_retirement_return(run, params), 0.0)

    def test_should_split_runs_into_thirds_given_result(self):
        # Under test
        df = sequence_of_returns_cohorts(create_cohort_result())

        # Postconditions
        self.assertEqual(list(df.index), list(COHORT_LABELS))
        self.assertEqual(list(df["Runs"]), [2, 2, 2])
        self.assertEqual(list(df["Success Rate"]), [0.5, 1.0, 1.0])
        self.assertEqual(df.loc[COHORT_LABELS[0], "Median Early Return"], -0.30)
        self.assertEqual(df.loc[COHORT_LABELS[2], "Median Final Balance"], 110)

    def test_should_trace_median_path_per_cohort_given_result(self):
        # Under test
        df = cohort_median_paths(create_cohort_result())

        # Postconditions
        self.assertEqual(df.shape, (4, 3))
        self.assertEqual(df.loc[1, COHORT_LABELS[0]], 70)
        self.assertEqual(df.loc[3, COHORT_LABELS[1]], 91)
        self.assertEqual(df.loc[3, COHORT_LABELS[2]], 110)

    def test_should_give_remainder_to_top_third_given_uneven_count(self):
        # Preconditions
        base = create_cohort_result()
        extra = SimulationRun(6, (100, 110, 120, 130), (5, 5, 5), 130, True, 3, returns=(0.10, 0.10, 0.10))
        result = aggregate_runs(base.runs + (extra,), base.parameters, seed=1)

        # Under test
        df = sequence_of_returns_cohorts(result)

        # Postconditions
        self.assertEqual(list(df["Runs"]), [2, 2, 3])


class TestStrategyComparison(unittest.TestCase):

    def setUp(self):
        self.portfolio = Portfolio(assets=(
            Asset("Total Market", AssetClass.STOCKS, 600_000),
            Asset("Aggregate Bond", AssetClass.BONDS, 400_000),
        ))
        self.params = SimulationParameters(
            initial_portfolio_value=1_000_000,
            time_horizon_years=20,
            use_historical_bootstrap=False,
            rng_seed=99,
            withdrawal_config=WithdrawalConfiguration(withdrawal_rate=0.04)
        )

    def test_should_run_every_strategy_given_defaults(self):
        # Under test
        results = compare_strategies(MonteCarloEngine(), self.portfolio, self.params, number_of_runs=30)

        # Postconditions
        self.assertEqual(set(results), set(WithdrawalStrategyType))
        for strategy, result in results.items():
            self.assertEqual(len(result.runs), 30)
            self.assertEqual(result.parameters.withdrawal_config.strategy, strategy)
            self.assertEqual(result.seed, 99)
        fixed_dollar = results[WithdrawalStrategyType.FIXED_DOLLAR].parameters.withdrawal_config
        self.assertEqual(fixed_dollar.annual_amount, 40000)

    def test_should_tabulate_comparison_given_results(self):
        # Preconditions
        strategies = [WithdrawalStrategyType.FIXED_PERCENTAGE, WithdrawalStrategyType.GUARDRAILS]
        results = compare_strategies(MonteCarloEngine(), self.portfolio, self.params,
                                     strategies=strategies, number_of_runs=20)

        # Under test
        summary = strategy_comparison_frame(results)
        paths = strategy_median_paths(results)

        # Postconditions
        self.assertEqual(list(summary.index), [s.label for s in strategies])
        self.assertEqual(list(summary.columns), ["Success Rate", "Median Final Balance",
                                                 "Average Annual Withdrawal", "Probability of Ruin"])
        for label in summary.index:
            self.assertAlmostEqual(summary.loc[label, "Success Rate"] + summary.loc[label, "Probability of Ruin"], 1.0)
        self.assertEqual(paths.shape, (21, 2))
        self.assertEqual(paths.loc[0, strategies[0].label], 1_000_000)


if __name__ == '__main__':
    unittest.main()
