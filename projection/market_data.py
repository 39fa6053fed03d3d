import logging
from typing import Optional

import pandas as pd

from projection.montecarlo.models import AssetClass, HistoricalData

logger = logging.getLogger(__name__)


def get_annual_returns(df: pd.DataFrame) -> pd.Series:
    """
    Calculates annual returns from daily (or monthly) price data.
    Expects a DatetimeIndex and a 'Close' column.
    """
    # Resample to annual, take the last Close of the year
    annual_prices = df['Close'].resample('YE').last()
    annual_returns = annual_prices.pct_change().dropna()
    return annual_returns


def get_annual_inflation_rates(cpi: pd.DataFrame) -> pd.Series:
    """
    Calculates year-over-year inflation from CPI levels.
    Expects a DatetimeIndex and a 'CPI' column.
    """
    # December CPI of each year
    cpi_annual = cpi['CPI'].resample('YE').last()
    return cpi_annual.pct_change().dropna()


def historical_data_from_frame(
    frame: pd.DataFrame,
    inflation_column: Optional[str] = "inflation"
) -> HistoricalData:
    """
    Builds an aligned HistoricalData table from a frame of annual returns.

    Args:
        frame: One row per year (index is the year or a year-end date), one column
            per asset class named by its value ('stocks', 'bonds', ...)
        inflation_column: Column holding annual inflation, None when there is none

    Returns:
        HistoricalData where every series covers the same years. Years missing a
        value in any used column are dropped.

    Raises:
        ValueError: if a column is not an asset class, or no complete year remains
    """
    known = {asset_class.value for asset_class in AssetClass}
    asset_columns = [c for c in frame.columns if c != inflation_column]
    for column in asset_columns:
        if column not in known:
            raise ValueError(f"Unknown asset class column: {column}")

    used = list(asset_columns)
    has_inflation = inflation_column is not None and inflation_column in frame.columns
    if has_inflation:
        used.append(inflation_column)

    complete = frame[used].dropna().sort_index()
    dropped = len(frame) - len(complete)
    if dropped:
        logger.info("Dropped %d incomplete year(s) from historical data", dropped)
    if complete.empty:
        raise ValueError("No year has a value for every column")

    start_year = None
    first = complete.index[0]
    if isinstance(first, pd.Timestamp):
        start_year = first.year
    elif pd.api.types.is_integer(first):
        start_year = int(first)

    returns = {AssetClass(column): complete[column].astype(float).tolist() for column in asset_columns}
    inflation = complete[inflation_column].astype(float).tolist() if has_inflation else None

    return HistoricalData(returns=returns, inflation=inflation, start_year=start_year)
