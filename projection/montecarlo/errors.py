from typing import List, Optional


class SimulationError(Exception):
    """Base class for failures raised before a simulation starts."""


class InvalidParameters(SimulationError):
    """
    Raised when the simulation parameters contradict themselves.

    Carries every violation so a caller can report them all at once.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid parameters: " + ", ".join(self.errors))


class EmptyPortfolio(SimulationError):
    """Raised when the portfolio has no assets to generate returns from."""

    def __init__(self, message: str = "Portfolio cannot be empty"):
        super().__init__(message)


class MissingHistoricalData(SimulationError):
    """Raised when bootstrap sampling cannot read an aligned series."""

    def __init__(self, message: str = "Historical data not available", asset_class: Optional[str] = None):
        self.asset_class = asset_class
        super().__init__(message)
