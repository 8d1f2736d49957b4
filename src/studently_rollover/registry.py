"""Catalog of data domains that can be rolled into the next year.

``ROLLOVER_ITEMS`` is the display and confirmation order. Items are plain
data; the per-domain conflict counters live in ``EXISTING_COUNTS`` and the
mapping onto the execute request lives in ``BACKEND_OPTION_SOURCES``.
"""

from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from .models import RolloverOptions, RolloverPreview


@dataclass(frozen=True)
class RolloverItemDefinition:
    """One row of the rollover checklist."""

    key: str
    label: str
    default_on: bool = True
    indent: bool = False
    info: Optional[str] = None


ROLLOVER_ITEMS: tuple[RolloverItemDefinition, ...] = (
    RolloverItemDefinition("schools", "Schools", default_on=False),
    RolloverItemDefinition("users", "Users", default_on=False),
    RolloverItemDefinition("school_periods", "School Periods"),
    RolloverItemDefinition("marking_periods", "Marking Periods"),
    RolloverItemDefinition("calendars", "Calendars"),
    RolloverItemDefinition("grading_scales", "Grading Scales"),
    RolloverItemDefinition("attendance_codes", "Attendance Codes"),
    RolloverItemDefinition(
        "courses", "Courses", info="Teacher assignments will be copied along with courses"
    ),
    RolloverItemDefinition("course_periods", "Course Periods", indent=True),
    RolloverItemDefinition("enrollment_codes", "Student Enrollment Codes"),
    RolloverItemDefinition(
        "students",
        "Students",
        info="Promotes, retains, or graduates students based on their status",
    ),
    RolloverItemDefinition(
        "report_card_comments", "Report Card Comments", info="Comment codes for report cards"
    ),
    RolloverItemDefinition("school_configuration", "School Configuration"),
    RolloverItemDefinition("eligibility_activities", "Eligibility Activities"),
    RolloverItemDefinition("food_service", "Food Service Staff Accounts"),
    RolloverItemDefinition("referral_form", "Referral Form"),
)

ITEM_KEYS: tuple[str, ...] = tuple(item.key for item in ROLLOVER_ITEMS)

# Records already present in the target year, per item. Items missing here
# never conflict.
EXISTING_COUNTS: dict[str, Callable[[RolloverPreview], int]] = {
    "marking_periods": lambda preview: preview.marking_periods.next_year_existing,
}

# Execute-request option -> checklist item that drives it. These are the
# only domains the backend rolls over; every other item is intent only.
BACKEND_OPTION_SOURCES: dict[str, str] = {
    "students": "students",
    "marking_periods": "marking_periods",
    "teachers": "courses",
}

FORWARDED_KEYS = frozenset(BACKEND_OPTION_SOURCES.values())


@dataclass(frozen=True)
class ConfirmationRow:
    """A checklist row as shown before the rollover is confirmed."""

    item: RolloverItemDefinition
    enabled: bool
    existing: int
    forwarded: bool

    @property
    def key(self) -> str:
        return self.item.key

    @property
    def greyed(self) -> bool:
        """Selected and already populated in the target year; rolling it overwrites data."""
        return self.enabled and self.existing > 0


def get_item(key: str) -> RolloverItemDefinition:
    for item in ROLLOVER_ITEMS:
        if item.key == key:
            return item
    raise KeyError(f"Unknown rollover item: {key}")


def default_selection() -> dict[str, bool]:
    return {item.key: item.default_on for item in ROLLOVER_ITEMS}


def existing_count(key: str, preview: Optional[RolloverPreview]) -> int:
    """Number of records of ``key`` already in the target year."""
    if preview is None:
        return 0
    counter = EXISTING_COUNTS.get(key)
    return counter(preview) if counter else 0


def confirmation_rows(
    preview: Optional[RolloverPreview], selection: Mapping[str, bool]
) -> list[ConfirmationRow]:
    """The full checklist in registry order."""
    return [
        ConfirmationRow(
            item=item,
            enabled=bool(selection.get(item.key, False)),
            existing=existing_count(item.key, preview),
            forwarded=item.key in FORWARDED_KEYS,
        )
        for item in ROLLOVER_ITEMS
    ]


def build_execute_options(selection: Mapping[str, bool]) -> RolloverOptions:
    """Translate checklist toggles into the options the backend accepts."""
    return RolloverOptions(
        **{option: bool(selection.get(source, False)) for option, source in BACKEND_OPTION_SOURCES.items()}
    )


def intent_only_keys(selection: Mapping[str, bool]) -> list[str]:
    """Selected items that the backend does not roll over yet."""
    return [
        item.key
        for item in ROLLOVER_ITEMS
        if selection.get(item.key) and item.key not in FORWARDED_KEYS
    ]
