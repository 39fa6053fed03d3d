from typing import Optional


def real_income(
    age: int,
    inflation_rate: float,
    start_age: int,
    end_age: Optional[int],
    inflation_adjusted: bool,
    annual_amount: float
) -> float:
    """
    Real (today's dollars) value of one income source at a given age.

    Args:
        age: Age in the simulation year being evaluated
        inflation_rate: Annual inflation used to erode fixed-nominal payments
        start_age: Age at which the source starts paying
        end_age: Last age the source pays, None for life
        inflation_adjusted: True for COLA sources, False for fixed nominal payments
        annual_amount: Annual payment in the first year the source pays

    Returns:
        0 outside [start_age, end_age]. A COLA source returns annual_amount
        unchanged. A fixed-nominal source is deflated by the years since
        *this* source began, so its first paying year is worth the full amount.
    """
    if age < start_age:
        return 0.0
    if end_age is not None and age > end_age:
        return 0.0

    if inflation_adjusted:
        return annual_amount

    years_since_start = age - start_age
    return annual_amount / (1 + inflation_rate) ** years_since_start


def age_for_retirement_year(retirement_age: int, year: int) -> int:
    """Calendar age in the given 1-based retirement year."""
    return retirement_age + year - 1


def total_scheduled_income(parameters, year: int) -> float:
    """
    Sum of real income from every scheduled source in a retirement year.

    Args:
        parameters: SimulationParameters with retirement_age, income_schedule and inflation_rate
        year: 1-based year into retirement

    Returns:
        Total real income, 0 when no retirement age or schedule is configured
    """
    if parameters.retirement_age is None or not parameters.income_schedule:
        return 0.0

    age = age_for_retirement_year(parameters.retirement_age, year)
    total = 0.0
    for income in parameters.income_schedule:
        total += income.real_income(age, parameters.inflation_rate)
    return total
