"""Plain-text rendering shared by the CLI and the MCP server."""

from typing import Optional

from .models import (
    AcademicYear,
    EnrollmentStatistics,
    GradeProgressionItem,
    RolloverPrerequisiteCheck,
    RolloverPreview,
    RolloverResult,
    StudentEnrollment,
    StudentRolloverEntry,
)
from .registry import ConfirmationRow
from .years import YearResolution


def format_year(year: AcademicYear) -> str:
    """Format an academic year on one line."""
    flags = []
    if year.is_current:
        flags.append("current")
    if year.is_next:
        flags.append("next")
    flag_info = f" [{', '.join(flags)}]" if flags else ""
    return (
        f"[{year.id}] {year.name} "
        f"({year.start_date.isoformat()} - {year.end_date.isoformat()}){flag_info}"
    )


def format_resolution(resolution: YearResolution) -> str:
    lines = ["Academic Years:", ""]
    if not resolution.years:
        lines.append("  (none)")
    for year in resolution.years:
        lines.append(f"  {format_year(year)}")
    lines.extend(["", resolution.message])
    return "\n".join(lines)


def format_check(check: RolloverPrerequisiteCheck) -> str:
    title = "Ready to Rollover" if check.is_valid else "Prerequisites Not Met"
    lines = [f"{title}: {check.error_message or 'All checks passed'}"]
    for warning in check.warnings:
        lines.append(f"  Warning: {warning}")
    return "\n".join(lines)


def format_preview(preview: RolloverPreview, next_year_name: Optional[str] = None) -> str:
    """Format the preview cards: students, marking periods, teachers."""
    target = next_year_name or preview.next_year or "the next year"
    lines = [
        "Students:",
        f"  {preview.students.total_active} active students to process",
        f"  Graduating: {preview.students.graduating}",
    ]
    for status, count in preview.students.by_status.items():
        lines.append(f"  {status.capitalize()}: {count}")

    lines.extend(
        [
            "",
            "Marking Periods:",
            f"  {preview.marking_periods.current_year_total} to be rolled over",
        ]
    )
    existing = preview.marking_periods.next_year_existing
    if existing > 0:
        lines.append(
            f"  Warning: {existing} marking periods already exist in {target}. "
            "They will be deleted and recreated."
        )

    lines.extend(
        [
            "",
            "Teacher Assignments:",
            f"  {preview.teachers.current_assignments} teacher-subject assignments",
            "  Section assignments will be cleared",
        ]
    )
    return "\n".join(lines)


def format_checklist(rows: list[ConfirmationRow]) -> str:
    """Format the rollover checklist in registry order."""
    lines = []
    for row in rows:
        box = "[x]" if row.enabled else "[ ]"
        indent = "    -> " if row.item.indent else "  "
        parts = [f"{indent}{box} {row.item.label}"]
        if row.greyed:
            parts.append(f"(greyed: {row.existing} existing, will be overwritten)")
        if row.enabled and not row.forwarded:
            parts.append("(not yet applied)")
        if row.item.info:
            parts.append(f"- {row.item.info}")
        lines.append(" ".join(parts))

    lines.extend(
        [
            "",
            "Note:",
            "  Greyed items already have data in the next school year (they might have been rolled).",
            "  Rolling greyed items will delete already existing data in the next school year.",
        ]
    )
    return "\n".join(lines)


def format_result(result: RolloverResult) -> str:
    """Format the outcome of an executed rollover."""
    if not result.success:
        return f"Rollover failed: {result.error or 'unknown error'}"

    duration = f" in {result.duration_ms}ms" if result.duration_ms is not None else ""
    lines = [f"Rollover Complete{duration}"]
    if result.students:
        lines.append(
            f"  Students: promoted {result.students.promoted}, "
            f"retained {result.students.retained}, graduated {result.students.graduated}"
        )
    if result.marking_periods:
        lines.append(f"  Marking Periods: {result.marking_periods.total} periods created")
    if result.teachers:
        lines.append(f"  Teachers: {result.teachers.assignments} assignments rolled")
    return "\n".join(lines)


def format_progression(items: list[GradeProgressionItem]) -> str:
    if not items:
        return "No grade levels found."
    lines = ["Grade Progression:", ""]
    for item in items:
        if item.is_terminal:
            target = "graduates"
        else:
            target = f"-> {item.next_grade_name or item.next_grade_id}"
        lines.append(f"  [{item.id}] {item.name} {target}")
    return "\n".join(lines)


def format_statistics(stats: EnrollmentStatistics) -> str:
    lines = [f"Enrollment for {stats.academic_year_id}: {stats.total_students} students", ""]
    if stats.by_grade:
        lines.append("By grade:")
        for grade in stats.by_grade:
            lines.append(f"  {grade.grade_name}: {grade.count}")
    if stats.by_enrollment_code:
        lines.append("By enrollment code:")
        for code, count in stats.by_enrollment_code.items():
            lines.append(f"  {code}: {count}")
    if stats.by_rollover_status:
        lines.append("By rollover status:")
        for status, count in stats.by_rollover_status.items():
            lines.append(f"  {status}: {count}")
    return "\n".join(lines)


def format_students(entries: list[StudentRolloverEntry]) -> str:
    if not entries:
        return "No students found."
    lines = []
    for entry in entries:
        placement = " / ".join(p for p in (entry.grade_name, entry.section_name) if p)
        placement_info = f" - {placement}" if placement else ""
        lines.append(
            f"  [{entry.student_id}] {entry.student_number}{placement_info} "
            f"({entry.rollover_status.value})"
        )
    return "\n".join(lines)


def format_enrollment(enrollment: StudentEnrollment) -> str:
    parts = [
        f"Enrollment {enrollment.id} for student {enrollment.student_id}",
        f"year {enrollment.year_name or enrollment.academic_year_id}",
        f"status {enrollment.rollover_status.value}",
    ]
    if enrollment.next_grade_id:
        parts.append(f"next grade {enrollment.next_grade_id}")
    return ", ".join(parts)
