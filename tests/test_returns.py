import unittest
import numpy as np
from projection.montecarlo import (
    Asset,
    AssetClass,
    HistoricalData,
    InflationStrategy,
    MissingHistoricalData,
    Portfolio,
    ReturnGenerator,
    SimulationParameters,
    make_run_rng,
    return_inflation_correlation,
    to_nominal_return,
    to_nominal_returns,
    to_real_return,
    to_real_returns,
)


def create_history(years: int = 10) -> HistoricalData:
    """Stocks return i%, bonds return i/2 %, inflation is i/10 % in historical year i."""
    return HistoricalData(
        returns={
            AssetClass.STOCKS: [i * 0.01 for i in range(years)],
            AssetClass.BONDS: [i * 0.005 for i in range(years)],
        },
        inflation=[i * 0.001 for i in range(years)],
        start_year=1990
    )


def create_parameters(**overrides) -> SimulationParameters:
    values = dict(initial_portfolio_value=1_000_000, number_of_runs=10, time_horizon_years=30)
    values.update(overrides)
    return SimulationParameters(**values)


STOCKS_ONLY = Portfolio(assets=(Asset("Index Fund", AssetClass.STOCKS, 600_000),))
BALANCED = Portfolio(assets=(
    Asset("Index Fund", AssetClass.STOCKS, 500_000),
    Asset("Treasuries", AssetClass.BONDS, 500_000),
))


class TestFisherConversion(unittest.TestCase):

    def test_should_round_trip_given_nominal_and_inflation(self):
        # Under test / Postconditions
        for nominal, inflation in ((0.07, 0.03), (-0.2, 0.05), (0.15, -0.01)):
            real = to_real_return(nominal, inflation)
            self.assertAlmostEqual(to_nominal_return(real, inflation), nominal, places=12)

    def test_should_convert_series_given_aligned_inputs(self):
        # Under test
        real = to_real_returns([0.10, 0.05], [0.02, 0.05])
        nominal = to_nominal_returns(real, [0.02, 0.05])

        # Postconditions
        self.assertAlmostEqual(real[0], 1.10 / 1.02 - 1)
        self.assertAlmostEqual(real[1], 0.0)
        self.assertAlmostEqual(nominal[0], 0.10)

    def test_should_raise_given_misaligned_series(self):
        # Under test / Postconditions
        with self.assertRaises(ValueError):
            to_real_returns([0.1, 0.2], [0.02])
        with self.assertRaises(ValueError):
            to_nominal_returns([0.1], [0.02, 0.03])

    def test_should_measure_correlation_given_linear_series(self):
        # Under test / Postconditions
        self.assertAlmostEqual(return_inflation_correlation([0.1, 0.2, 0.3], [0.01, 0.02, 0.03]), 1.0)
        self.assertEqual(return_inflation_correlation([0.1, 0.1, 0.1], [0.01, 0.02, 0.03]), 0.0)
        self.assertEqual(return_inflation_correlation([0.1], [0.01]), 0.0)


class TestRunRandomStreams(unittest.TestCase):

    def test_should_repeat_draws_given_same_seed_and_run(self):
        # Under test
        first = make_run_rng(42, 7).standard_normal(5)
        second = make_run_rng(42, 7).standard_normal(5)
        other = make_run_rng(42, 8).standard_normal(5)

        # Postconditions
        np.testing.assert_array_equal(first, second)
        self.assertFalse(np.array_equal(first, other))


class TestHistoricalBootstrap(unittest.TestCase):

    def test_should_read_same_year_given_multiple_asset_classes(self):
        # Preconditions
        history = create_history()
        params = create_parameters(inflation_strategy=InflationStrategy.HISTORICAL_CORRELATED)
        generator = ReturnGenerator(make_run_rng(1, 0), params)

        # Under test
        years = [generator.next_year(BALANCED, history) for _ in range(50)]

        # Postconditions
        for year in years:
            i = year.historical_index
            self.assertAlmostEqual(year.nominal_return, 0.5 * i * 0.01 + 0.5 * i * 0.005)
            self.assertAlmostEqual(year.inflation, i * 0.001)
            self.assertAlmostEqual(year.real_return, to_real_return(year.nominal_return, year.inflation))
            self.assertTrue(0 <= i < 10)

    def test_should_walk_consecutive_years_given_block_length(self):
        # Preconditions
        history = create_history()
        params = create_parameters(bootstrap_block_length=5)
        generator = ReturnGenerator(make_run_rng(3, 0), params)

        # Under test
        indices = [generator.next_year(STOCKS_ONLY, history).historical_index for _ in range(25)]

        # Postconditions
        for previous, current in zip(indices, indices[1:]):
            self.assertEqual(current, (previous + 1) % 10)

    def test_should_use_constant_inflation_given_constant_nominal(self):
        # Preconditions
        history = create_history()
        params = create_parameters(inflation_strategy=InflationStrategy.CONSTANT_NOMINAL, inflation_rate=0.03)
        generator = ReturnGenerator(make_run_rng(5, 0), params)

        # Under test
        year = generator.next_year(STOCKS_ONLY, history)

        # Postconditions
        self.assertEqual(year.inflation, 0.03)
        self.assertAlmostEqual(year.real_return, (1 + year.nominal_return) / 1.03 - 1)

    def test_should_raise_given_missing_series(self):
        # Preconditions
        history = HistoricalData(returns={AssetClass.STOCKS: [0.1, 0.2]})
        portfolio = Portfolio(assets=(Asset("Gold", AssetClass.PRECIOUS_METALS, 100_000),))
        generator = ReturnGenerator(make_run_rng(5, 0), create_parameters())

        # Under test / Postconditions
        with self.assertRaises(MissingHistoricalData):
            generator.next_return(portfolio, history, use_bootstrap=True)
        with self.assertRaises(MissingHistoricalData):
            generator.next_return(STOCKS_ONLY, None, use_bootstrap=True)


class TestParametricReturns(unittest.TestCase):

    def test_should_return_expected_given_zero_volatility(self):
        # Preconditions
        portfolio = Portfolio(assets=(
            Asset("Cash", AssetClass.CASH, 100_000, custom_expected_return=0.03, custom_volatility=0.0),
        ))
        params = create_parameters(use_historical_bootstrap=False)
        generator = ReturnGenerator(make_run_rng(9, 0), params)

        # Under test
        draws = [generator.next_return(portfolio, None, use_bootstrap=False) for _ in range(10)]

        # Postconditions
        self.assertEqual(set(draws), {0.03})

    def test_should_apply_custom_assumptions_given_overrides(self):
        # Preconditions
        params = create_parameters(
            use_historical_bootstrap=False,
            custom_returns={AssetClass.STOCKS: 0.06},
            custom_volatility={AssetClass.STOCKS: 0.0}
        )
        generator = ReturnGenerator(make_run_rng(9, 0), params)

        # Under test
        draw = generator.next_return(STOCKS_ONLY, None, use_bootstrap=False)

        # Postconditions
        self.assertAlmostEqual(draw, 0.06)

    def test_should_treat_draw_as_real_given_constant_real(self):
        # Preconditions
        portfolio = Portfolio(assets=(
            Asset("Cash", AssetClass.CASH, 100_000, custom_expected_return=0.04, custom_volatility=0.0),
        ))
        params = create_parameters(
            use_historical_bootstrap=False,
            inflation_strategy=InflationStrategy.CONSTANT_REAL,
            inflation_rate=0.02
        )
        generator = ReturnGenerator(make_run_rng(9, 0), params)

        # Under test
        year = generator.next_year(portfolio, None)

        # Postconditions
        self.assertAlmostEqual(year.real_return, 0.04)
        self.assertAlmostEqual(year.nominal_return, 1.04 * 1.02 - 1)
        self.assertIsNone(year.historical_index)

    def test_should_return_zero_given_worthless_portfolio(self):
        # Preconditions
        portfolio = Portfolio(assets=(Asset("Nothing", AssetClass.STOCKS, 0.0),))
        generator = ReturnGenerator(make_run_rng(9, 0), create_parameters(use_historical_bootstrap=False))

        # Under test / Postconditions
        self.assertEqual(generator.next_return(portfolio, None, use_bootstrap=False), 0.0)


if __name__ == '__main__':
    unittest.main()
