# tests/test_formatters.py

from studently_rollover.formatters import format_check, format_checklist, format_preview, format_result
from studently_rollover.models import (
    MarkingPeriodPreview,
    RolloverPrerequisiteCheck,
    RolloverPreview,
    RolloverResult,
    TeacherCounts,
)
from studently_rollover.registry import confirmation_rows, default_selection


def test_checklist_marks_greyed_and_unapplied_items():
    preview = RolloverPreview(marking_periods=MarkingPeriodPreview(6, 5))

    text = format_checklist(confirmation_rows(preview, default_selection()))

    assert "[x] Marking Periods (greyed: 5 existing, will be overwritten)" in text
    assert "[x] Calendars (not yet applied)" in text
    assert "[ ] Schools" in text
    assert "    -> [x] Course Periods" in text


def test_preview_warns_about_existing_periods():
    preview = RolloverPreview(marking_periods=MarkingPeriodPreview(6, 5))

    text = format_preview(preview, "2024-2025")

    assert "5 marking periods already exist in 2024-2025" in text


def test_check_without_message():
    assert format_check(RolloverPrerequisiteCheck(is_valid=True)) == "Ready to Rollover: All checks passed"


def test_result_lists_only_present_blocks():
    text = format_result(RolloverResult(success=True, duration_ms=90, teachers=TeacherCounts(4)))

    assert text.splitlines() == ["Rollover Complete in 90ms", "  Teachers: 4 assignments rolled"]


def test_failed_result():
    assert format_result(RolloverResult(success=False, error="nope")) == "Rollover failed: nope"
