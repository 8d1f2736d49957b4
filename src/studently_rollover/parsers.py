"""JSON payload parsers for Studently API responses.

The backend omits blocks it has nothing to report for (for example a
rollover run with teachers disabled has no ``teachers`` block), so every
parser here treats nested objects as optional and fills defaults.
Required identifiers raise ``KeyError``; the client turns that into a
``StudentlyAPIError``.
"""

from datetime import date
from typing import Any, Optional

from .models import (
    AcademicYear,
    EnrollmentCode,
    EnrollmentStatistics,
    GradeCount,
    GradeProgressionItem,
    MarkingPeriodCounts,
    MarkingPeriodPreview,
    RolloverPrerequisiteCheck,
    RolloverPreview,
    RolloverResult,
    RolloverStatus,
    StudentEnrollment,
    StudentPreview,
    StudentRolloverCounts,
    StudentRolloverEntry,
    TeacherCounts,
    TeacherPreview,
)


def parse_date(value: Any) -> Optional[date]:
    """Parse an ISO date or timestamp string, keeping only the date part."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    return int(value)


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


def _counts(raw: Any) -> dict[str, int]:
    if not isinstance(raw, dict):
        return {}
    return {str(key): _int(count) for key, count in raw.items()}


def parse_academic_year(raw: dict) -> AcademicYear:
    start = parse_date(raw.get("start_date"))
    if start is None:
        raise ValueError(f"Academic year {raw.get('id')!r} has no start_date")
    end = parse_date(raw.get("end_date")) or start
    return AcademicYear(
        id=str(raw["id"]),
        name=raw.get("name") or str(raw["id"]),
        start_date=start,
        end_date=end,
        is_current=bool(raw.get("is_current", False)),
        is_next=bool(raw.get("is_next", False)),
        is_active=bool(raw.get("is_active", True)),
        school_id=raw.get("school_id"),
    )


def parse_academic_years(raw: list) -> list[AcademicYear]:
    return [parse_academic_year(item) for item in raw or []]


def parse_preview(raw: dict) -> RolloverPreview:
    """Parse the dry-run preview of a rollover."""
    students = raw.get("students") or {}
    marking_periods = raw.get("marking_periods") or {}
    teachers = raw.get("teachers") or {}
    return RolloverPreview(
        students=StudentPreview(
            total_active=_int(students.get("total_active")),
            graduating=_int(students.get("graduating")),
            by_status=_counts(students.get("by_status")),
        ),
        marking_periods=MarkingPeriodPreview(
            current_year_total=_int(marking_periods.get("current_year_total")),
            next_year_existing=_int(marking_periods.get("next_year_existing")),
        ),
        teachers=TeacherPreview(
            current_assignments=_int(teachers.get("current_assignments")),
        ),
        current_year=raw.get("current_year"),
        next_year=raw.get("next_year"),
    )


def parse_prerequisite_check(raw: dict) -> RolloverPrerequisiteCheck:
    return RolloverPrerequisiteCheck(
        is_valid=raw.get("is_valid") is True,
        error_message=raw.get("error_message") or None,
        warnings=[str(w) for w in raw.get("warnings") or []],
    )


def parse_rollover_result(raw: dict) -> RolloverResult:
    """Parse the outcome of an executed rollover."""
    students = raw.get("students")
    marking_periods = raw.get("marking_periods")
    teachers = raw.get("teachers")

    student_counts = None
    if isinstance(students, dict):
        student_counts = StudentRolloverCounts(
            promoted=_int(students.get("promoted")),
            retained=_int(students.get("retained")),
            graduated=_int(students.get("graduated")),
            transferred=_optional_int(students.get("transferred")),
            dropped=_optional_int(students.get("dropped")),
            total=_optional_int(students.get("total")),
        )

    period_counts = None
    if isinstance(marking_periods, dict):
        period_counts = MarkingPeriodCounts(
            total=_int(marking_periods.get("total")),
            full_year=_optional_int(marking_periods.get("full_year")),
            semesters=_optional_int(marking_periods.get("semesters")),
            quarters=_optional_int(marking_periods.get("quarters")),
            progress=_optional_int(marking_periods.get("progress")),
        )

    teacher_counts = None
    if isinstance(teachers, dict):
        teacher_counts = TeacherCounts(assignments=_int(teachers.get("assignments")))

    return RolloverResult(
        success=raw.get("success") is True,
        error=raw.get("error") or None,
        duration_ms=_optional_int(raw.get("duration_ms")),
        students=student_counts,
        marking_periods=period_counts,
        teachers=teacher_counts,
    )


def parse_enrollment(raw: dict) -> StudentEnrollment:
    """Parse a full enrollment record or the slimmer current-enrollment view."""
    code = raw.get("enrollment_code")
    if isinstance(code, dict):
        code = code.get("code")
    return StudentEnrollment(
        id=str(raw.get("id") or raw["enrollment_id"]),
        student_id=str(raw.get("student_id") or ""),
        academic_year_id=str(raw["academic_year_id"]),
        rollover_status=RolloverStatus(raw.get("rollover_status") or "pending"),
        school_id=raw.get("school_id"),
        grade_level_id=raw.get("grade_level_id"),
        section_id=raw.get("section_id"),
        next_grade_id=raw.get("next_grade_id"),
        start_date=parse_date(raw.get("start_date")),
        end_date=parse_date(raw.get("end_date")),
        rollover_notes=raw.get("rollover_notes"),
        enrollment_code=EnrollmentCode(code) if code else None,
        year_name=raw.get("year_name"),
        grade_name=raw.get("grade_name"),
        section_name=raw.get("section_name"),
    )


def parse_grade_progression(raw: list) -> list[GradeProgressionItem]:
    items = [
        GradeProgressionItem(
            id=str(item["id"]),
            name=item.get("name", ""),
            order_index=_int(item.get("order_index")),
            next_grade_id=item.get("next_grade_id"),
            next_grade_name=item.get("next_grade_name"),
            is_terminal=bool(item.get("is_terminal", item.get("next_grade_id") is None)),
        )
        for item in raw or []
    ]
    items.sort(key=lambda x: x.order_index)
    return items


def parse_enrollment_statistics(raw: dict) -> EnrollmentStatistics:
    by_code: dict[str, int] = {}
    for entry in raw.get("by_enrollment_code") or []:
        by_code[str(entry["code"])] = _int(entry.get("count"))

    return EnrollmentStatistics(
        academic_year_id=str(raw["academic_year_id"]),
        total_students=_int(raw.get("total_students")),
        school_id=raw.get("school_id"),
        by_grade=[
            GradeCount(
                grade_id=str(entry["grade_id"]),
                grade_name=entry.get("grade_name", ""),
                count=_int(entry.get("count")),
            )
            for entry in raw.get("by_grade") or []
        ],
        by_enrollment_code=by_code,
        by_rollover_status=_counts(raw.get("by_rollover_status")),
    )


def parse_students_by_status(raw: list) -> list[StudentRolloverEntry]:
    return [
        StudentRolloverEntry(
            student_id=str(item["student_id"]),
            student_number=str(item.get("student_number") or ""),
            rollover_status=RolloverStatus(item.get("rollover_status") or "pending"),
            grade_name=item.get("grade_name"),
            section_name=item.get("section_name"),
        )
        for item in raw or []
    ]
