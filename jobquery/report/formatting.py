"""Display formatting for hydrated postings."""

from __future__ import annotations

from jobquery.models.job import Salary

NOT_SPECIFIED = "Not specified"


def format_salary(salary: Salary | None, target_currency: str = "MDL", default_currency: str = "MDL") -> str:
    """Render a salary range without inventing a currency conversion.

    Converted bounds are shown only when the dataset carried them, followed by
    the original range when its currency differs. Without a conversion the
    stored bounds keep their own currency label; ``default_currency`` applies
    only when the posting names no currency at all.
    """
    if salary is None:
        return NOT_SPECIFIED

    target = target_currency.upper()
    original_currency = salary.currency.upper() if salary.currency else None

    if salary.min_mdl is not None:
        converted = _format_range(salary.min_mdl, salary.max_mdl, target)
        if original_currency and original_currency != target and salary.min is not None:
            return f"{converted} ({_format_range(salary.min, salary.max, original_currency)})"
        return converted

    if salary.min is None:
        return NOT_SPECIFIED
    return _format_range(salary.min, salary.max, original_currency or default_currency.upper())


def _format_range(low: float, high: float | None, currency: str) -> str:
    if high is None:
        return f"{_format_amount(low)} {currency}"
    return f"{_format_amount(low)} - {_format_amount(high)} {currency}"


def _format_amount(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"
