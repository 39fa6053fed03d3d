import math
from typing import Optional, Sequence, List, Tuple

import numpy as np

from projection.montecarlo.errors import MissingHistoricalData
from projection.montecarlo.models import (
    HistoricalData,
    InflationStrategy,
    MarketYear,
    Portfolio,
    SimulationParameters,
)


def to_real_return(nominal: float, inflation: float) -> float:
    """Fisher relation: (1 + real) = (1 + nominal) / (1 + inflation)."""
    return (1 + nominal) / (1 + inflation) - 1


def to_nominal_return(real: float, inflation: float) -> float:
    """Inverse Fisher relation: (1 + nominal) = (1 + real) * (1 + inflation)."""
    return (1 + real) * (1 + inflation) - 1


def to_real_returns(nominal: Sequence[float], inflation: Sequence[float]) -> List[float]:
    """Element-wise Fisher conversion. Both series must cover the same years."""
    if len(nominal) != len(inflation):
        raise ValueError("Nominal and inflation series must have the same length")
    return [to_real_return(n, i) for n, i in zip(nominal, inflation)]


def to_nominal_returns(real: Sequence[float], inflation: Sequence[float]) -> List[float]:
    """Element-wise inverse Fisher conversion."""
    if len(real) != len(inflation):
        raise ValueError("Real and inflation series must have the same length")
    return [to_nominal_return(r, i) for r, i in zip(real, inflation)]


def return_inflation_correlation(returns: Sequence[float], inflation: Sequence[float]) -> float:
    """Pearson correlation between two aligned series, 0 when it is undefined."""
    if len(returns) != len(inflation) or len(returns) < 2:
        return 0.0

    r = np.asarray(returns, dtype=float)
    i = np.asarray(inflation, dtype=float)
    r_diff = r - r.mean()
    i_diff = i - i.mean()
    denominator = math.sqrt(float((r_diff ** 2).sum() * (i_diff ** 2).sum()))
    if denominator <= 0:
        return 0.0
    return float((r_diff * i_diff).sum() / denominator)


def make_run_rng(seed: int, run_number: int) -> np.random.Generator:
    """
    Independent random stream for one run.

    The stream depends only on (seed, run_number), so runs can execute in
    any order or in any worker process and still draw the same numbers.
    """
    return np.random.default_rng(np.random.SeedSequence(entropy=seed, spawn_key=(run_number,)))


class ReturnGenerator:
    """
    Produces one year of market returns at a time for a single run.

    Historical bootstrap samples one calendar year per draw and reads every
    asset class (and inflation, when correlated) at that same index. With
    a block length of 2 or more, a run picks one start index and then
    walks the history year by year. Parametric mode draws
    expected + z * volatility with z standard normal.
    """

    def __init__(self, rng: np.random.Generator, parameters: SimulationParameters):
        self.rng = rng
        self.parameters = parameters
        self._draws = 0
        self._block_start: Optional[int] = None

    @property
    def _uses_block_bootstrap(self) -> bool:
        block = self.parameters.bootstrap_block_length
        return block is not None and block >= 2

    def _correlates_inflation(self, historical_data: Optional[HistoricalData]) -> bool:
        return (self.parameters.inflation_strategy == InflationStrategy.HISTORICAL_CORRELATED
                and historical_data is not None
                and historical_data.has_inflation)

    def _sample_index(self, length: int) -> int:
        if self._uses_block_bootstrap:
            if self._block_start is None:
                self._block_start = int(self.rng.integers(0, length))
            return (self._block_start + self._draws - 1) % length
        return int(self.rng.integers(0, length))

    def _bootstrap(self, portfolio: Portfolio, historical_data: Optional[HistoricalData]) -> Tuple[float, int]:
        """Value-weighted return of one sampled historical year, and the year's index."""
        if historical_data is None:
            raise MissingHistoricalData("Historical bootstrap requires historical data")

        length = historical_data.length_for(
            portfolio.asset_classes,
            include_inflation=self._correlates_inflation(historical_data)
        )
        if length <= 0:
            raise MissingHistoricalData("No historical year is available for every asset class in the portfolio")

        index = self._sample_index(length)
        portfolio_return = 0.0
        for asset, weight in portfolio.weights():
            portfolio_return += weight * historical_data.returns_for(asset.asset_class)[index]
        return portfolio_return, index

    def _expected_and_volatility(self, portfolio: Portfolio) -> Tuple[float, float]:
        custom_returns = self.parameters.custom_returns or {}
        custom_volatility = self.parameters.custom_volatility or {}
        if not custom_returns and not custom_volatility:
            return portfolio.weighted_expected_return, portfolio.weighted_volatility

        expected = 0.0
        variance = 0.0
        for asset, weight in portfolio.weights():
            expected += weight * custom_returns.get(asset.asset_class, asset.expected_return)
            variance += (weight * custom_volatility.get(asset.asset_class, asset.volatility)) ** 2
        return expected, math.sqrt(variance)

    def _parametric(self, portfolio: Portfolio) -> float:
        expected, volatility = self._expected_and_volatility(portfolio)
        z = float(self.rng.standard_normal())
        return expected + z * volatility

    def _draw(
        self,
        portfolio: Portfolio,
        historical_data: Optional[HistoricalData],
        use_bootstrap: bool
    ) -> Tuple[float, Optional[int]]:
        self._draws += 1
        if portfolio.total_value <= 0:
            return 0.0, None
        if use_bootstrap:
            return self._bootstrap(portfolio, historical_data)
        return self._parametric(portfolio), None

    def next_return(
        self,
        portfolio: Portfolio,
        historical_data: Optional[HistoricalData],
        use_bootstrap: bool
    ) -> float:
        """
        Portfolio return for the next year, as generated.

        Returns:
            The bootstrap or parametric return, 0 for a portfolio worth nothing
        """
        portfolio_return, _ = self._draw(portfolio, historical_data, use_bootstrap)
        return portfolio_return

    def next_year(self, portfolio: Portfolio, historical_data: Optional[HistoricalData]) -> MarketYear:
        """
        Next year's return paired with inflation under the configured inflation strategy.

        historical_correlated: inflation is read at the same historical index as
            the returns; parametric draws (or a table without inflation) use the
            constant rate. Generated returns are nominal.
        constant_nominal: generated returns are nominal, inflation is the constant rate.
        constant_real: generated returns are already real, inflation is the constant rate.
        """
        generated, index = self._draw(portfolio, historical_data, self.parameters.use_historical_bootstrap)
        strategy = self.parameters.inflation_strategy
        inflation = self.parameters.inflation_rate

        if strategy == InflationStrategy.CONSTANT_REAL:
            return MarketYear(
                nominal_return=to_nominal_return(generated, inflation),
                inflation=inflation,
                real_return=generated,
                historical_index=index
            )

        if (strategy == InflationStrategy.HISTORICAL_CORRELATED
                and index is not None
                and self._correlates_inflation(historical_data)):
            inflation = historical_data.inflation[index]

        return MarketYear(
            nominal_return=generated,
            inflation=inflation,
            real_return=to_real_return(generated, inflation),
            historical_index=index
        )
