# tests/test_years.py

from datetime import date

import pytest

from studently_rollover.models import AcademicYear
from studently_rollover.years import (
    ResolutionStatus,
    YearSelectionError,
    next_year_choices,
    resolve_years,
    validate_pair,
)


def year(year_id, start_year, is_current=False, is_next=False):
    return AcademicYear(
        id=year_id,
        name=f"{start_year}-{start_year + 1}",
        start_date=date(start_year, 9, 1),
        end_date=date(start_year + 1, 6, 30),
        is_current=is_current,
        is_next=is_next,
    )


def test_current_and_chronological_next():
    years = [year("a", 2023, is_current=True), year("b", 2024)]

    resolution = resolve_years(years)

    assert resolution.status == ResolutionStatus.RESOLVED
    assert resolution.current == years[0]
    assert resolution.next == years[1]


def test_resolution_is_repeatable():
    years = [year("b", 2024), year("a", 2023, is_current=True), year("c", 2025)]

    assert resolve_years(years) == resolve_years(list(years))


def test_unsorted_input_is_sorted_by_start_date():
    years = [year("c", 2025), year("a", 2023, is_current=True), year("b", 2024)]

    resolution = resolve_years(years)

    assert [y.id for y in resolution.years] == ["a", "b", "c"]
    assert resolution.next.id == "b"


def test_explicit_next_flag_wins_over_chronology():
    years = [year("a", 2023, is_current=True), year("b", 2024), year("c", 2025, is_next=True)]

    resolution = resolve_years(years)

    assert resolution.current.id == "a"
    assert resolution.next.id == "c"


def test_first_current_flag_wins():
    years = [year("a", 2023, is_current=True), year("b", 2024, is_current=True), year("c", 2025)]

    resolution = resolve_years(years)

    assert resolution.current.id == "a"
    assert resolution.next.id == "b"


@pytest.mark.parametrize("count", [0, 1])
def test_fewer_than_two_years_is_unavailable(count):
    years = [year("a", 2023, is_current=True)][:count]

    resolution = resolve_years(years)

    assert resolution.status == ResolutionStatus.UNAVAILABLE
    assert resolution.current is None
    assert resolution.next is None


def test_unavailable_messages():
    assert "No academic years" in resolve_years([]).message
    assert "Only one academic year exists (2023-2024)" in resolve_years([year("a", 2023)]).message


def test_no_current_year_needs_manual_choice():
    resolution = resolve_years([year("a", 2023), year("b", 2024)])

    assert resolution.status == ResolutionStatus.MANUAL
    assert resolution.current is None
    assert "marked as current" in resolution.message


def test_current_year_without_successor_needs_manual_choice():
    resolution = resolve_years([year("a", 2023), year("b", 2024, is_current=True)])

    assert resolution.status == ResolutionStatus.MANUAL
    assert resolution.current.id == "b"
    assert resolution.next is None
    assert "No next academic year found after 2024-2025" in resolution.message


def test_next_year_choices_start_strictly_after_current():
    years = [year("a", 2023), year("b", 2024), year("c", 2025)]

    assert [y.id for y in next_year_choices(years, years[1])] == ["c"]
    assert [y.id for y in next_year_choices(years, None)] == ["a", "b", "c"]


def test_validate_pair_rejects_same_or_earlier_year():
    earlier, later = year("a", 2023), year("b", 2024)

    validate_pair(earlier, later)
    with pytest.raises(YearSelectionError):
        validate_pair(later, earlier)
    with pytest.raises(YearSelectionError):
        validate_pair(earlier, earlier)
