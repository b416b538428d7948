"""Failures raised by the date resolver."""

from __future__ import annotations

from ..errors import ErrorKind, ToolError
from ..validation import sanitize_input

ACCEPTED_FORMATS_HINT = (
    'Please provide the date in a clear format like "MM/DD/YYYY" '
    '(e.g., 03/18/2025) or a natural description like "March 18, 2025", '
    '"next Tuesday", "two weeks from today", or "in 3 months".'
)


class DateParseError(ToolError):
    """Base class for resolver failures.

    ``input`` keeps the text exactly as the caller supplied it; messages only
    ever echo the sanitized form.
    """

    def __init__(self, message: str, input: str) -> None:
        super().__init__(message, kind=ErrorKind.INVALID_DATE)
        self.input = input


class UnparseableFormat(DateParseError):
    def __init__(self, input: str) -> None:
        shown = sanitize_input(input)
        super().__init__(
            f'I couldn\'t understand the date "{shown}". {ACCEPTED_FORMATS_HINT}',
            input,
        )


class ImpossibleCalendarDate(DateParseError):
    def __init__(self, input: str) -> None:
        shown = sanitize_input(input)
        super().__init__(
            f"Invalid date: {shown} does not exist. {ACCEPTED_FORMATS_HINT}", input
        )


class ImplausibleYear(DateParseError):
    """The resolved year falls outside the range accepted by the context."""

    def __init__(self, input: str, year: int, min_year: int, max_year: int) -> None:
        super().__init__(
            f"The year {year} seems unusual. Please provide a date between "
            f"{min_year} and {max_year}.",
            input,
        )
        self.year = year
        self.min_year = min_year
        self.max_year = max_year
