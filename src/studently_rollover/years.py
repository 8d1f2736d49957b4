"""Resolution of the current and next academic year for a rollover."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .models import AcademicYear


class YearSelectionError(ValueError):
    """Raised when a manual year choice is not allowed."""

    pass


class ResolutionStatus(str, Enum):
    # fewer than two years exist; a year has to be created first
    UNAVAILABLE = "unavailable"
    # years exist but current/next could not be determined
    MANUAL = "manual"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class YearResolution:
    """Outcome of resolving the year pair to roll between."""

    status: ResolutionStatus
    years: list[AcademicYear] = field(default_factory=list)
    current: Optional[AcademicYear] = None
    next: Optional[AcademicYear] = None

    @property
    def message(self) -> str:
        if self.status == ResolutionStatus.RESOLVED:
            return f"Rolling from {self.current.name} to {self.next.name}"  # type: ignore[union-attr]
        if not self.years:
            return "No academic years found for your school."
        if len(self.years) == 1:
            return (
                f"Only one academic year exists ({self.years[0].name}). "
                "Create a next academic year first."
            )
        if self.current is None:
            return (
                "No academic year is marked as current. Select the years to roll over "
                "between, or mark one as current in Academic Years settings."
            )
        return (
            f"No next academic year found after {self.current.name}. "
            "Select the next year or create it first."
        )


def sort_years(years: list[AcademicYear]) -> list[AcademicYear]:
    """Sort years by start date, keeping input order for equal dates."""
    return sorted(years, key=lambda y: y.start_date)


def resolve_years(years: list[AcademicYear]) -> YearResolution:
    """Determine the current and next year from a school's years.

    The current year is the first year flagged ``is_current``. The next year
    is the first year flagged ``is_next``, otherwise the year following the
    current one chronologically.
    """
    ordered = sort_years(years)
    if len(ordered) < 2:
        return YearResolution(ResolutionStatus.UNAVAILABLE, ordered)

    current_index = next((i for i, y in enumerate(ordered) if y.is_current), None)
    current = ordered[current_index] if current_index is not None else None

    explicit_next = next((y for y in ordered if y.is_next), None)
    chrono_next = None
    if current_index is not None and current_index < len(ordered) - 1:
        chrono_next = ordered[current_index + 1]
    next_year = explicit_next or chrono_next

    if current is None or next_year is None:
        return YearResolution(ResolutionStatus.MANUAL, ordered, current, next_year)
    return YearResolution(ResolutionStatus.RESOLVED, ordered, current, next_year)


def find_year(years: list[AcademicYear], year_id: str) -> AcademicYear:
    for year in years:
        if year.id == year_id:
            return year
    raise YearSelectionError(f"Unknown academic year: {year_id}")


def next_year_choices(
    years: list[AcademicYear], current: Optional[AcademicYear]
) -> list[AcademicYear]:
    """Years that may be picked as the rollover target for ``current``."""
    ordered = sort_years(years)
    if current is None:
        return ordered
    return [y for y in ordered if y.start_date > current.start_date]


def validate_pair(current: AcademicYear, next_year: AcademicYear) -> None:
    """Check that ``next_year`` starts strictly after ``current``.

    Raises:
        YearSelectionError: If the pair is not chronologically ordered
    """
    if next_year.start_date <= current.start_date:
        raise YearSelectionError(
            f"{next_year.name} does not start after {current.name}; "
            "the next year must start later than the current year"
        )
