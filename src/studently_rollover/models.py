"""Data models for the Studently rollover client."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


class RolloverStatus(str, Enum):
    """Per-student rollover outcome for an academic year."""

    PENDING = "pending"
    PROMOTED = "promoted"
    RETAINED = "retained"
    GRADUATED = "graduated"
    DROPPED = "dropped"
    TRANSFERRED = "transferred"


class EnrollmentCode(str, Enum):
    """Reason a student enrollment record exists."""

    ADMISSION = "ADMISSION"
    PROMOTION = "PROMOTION"
    RETENTION = "RETENTION"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    DROP = "DROP"
    GRADUATE = "GRADUATE"
    RE_ADMISSION = "RE_ADMISSION"


@dataclass(frozen=True)
class AcademicYear:
    """An academic year of a school."""

    id: str
    name: str
    start_date: date
    end_date: date
    is_current: bool = False
    is_next: bool = False
    is_active: bool = True
    school_id: Optional[str] = None


@dataclass(frozen=True)
class StudentPreview:
    """Students block of a rollover preview."""

    total_active: int = 0
    graduating: int = 0
    by_status: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class MarkingPeriodPreview:
    """Marking periods block of a rollover preview."""

    current_year_total: int = 0
    next_year_existing: int = 0


@dataclass(frozen=True)
class TeacherPreview:
    """Teacher assignments block of a rollover preview."""

    current_assignments: int = 0


@dataclass(frozen=True)
class RolloverPreview:
    """Dry-run projection of what a rollover would affect."""

    students: StudentPreview = field(default_factory=StudentPreview)
    marking_periods: MarkingPeriodPreview = field(default_factory=MarkingPeriodPreview)
    teachers: TeacherPreview = field(default_factory=TeacherPreview)
    current_year: Optional[str] = None
    next_year: Optional[str] = None


@dataclass(frozen=True)
class RolloverPrerequisiteCheck:
    """Validity gate for executing a rollover."""

    is_valid: bool
    error_message: Optional[str] = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RolloverOptions:
    """Domains the backend rolls over, as sent in the execute request."""

    students: bool = True
    marking_periods: bool = True
    teachers: bool = True

    def to_dict(self) -> dict[str, bool]:
        return {
            "students": self.students,
            "marking_periods": self.marking_periods,
            "teachers": self.teachers,
        }


@dataclass(frozen=True)
class RolloverRequest:
    """Payload of the execute call."""

    current_year_id: str
    next_year_id: str
    school_id: str
    options: RolloverOptions = field(default_factory=RolloverOptions)

    def to_dict(self) -> dict:
        return {
            "current_year_id": self.current_year_id,
            "next_year_id": self.next_year_id,
            "school_id": self.school_id,
            "options": self.options.to_dict(),
        }


@dataclass(frozen=True)
class StudentRolloverCounts:
    """Student outcomes of an executed rollover."""

    promoted: int = 0
    retained: int = 0
    graduated: int = 0
    transferred: Optional[int] = None
    dropped: Optional[int] = None
    total: Optional[int] = None


@dataclass(frozen=True)
class MarkingPeriodCounts:
    """Marking periods created by an executed rollover."""

    total: int = 0
    full_year: Optional[int] = None
    semesters: Optional[int] = None
    quarters: Optional[int] = None
    progress: Optional[int] = None


@dataclass(frozen=True)
class TeacherCounts:
    """Teacher assignments rolled by an executed rollover."""

    assignments: int = 0


@dataclass(frozen=True)
class RolloverResult:
    """Outcome of one rollover execution."""

    success: bool
    error: Optional[str] = None
    duration_ms: Optional[int] = None
    students: Optional[StudentRolloverCounts] = None
    marking_periods: Optional[MarkingPeriodCounts] = None
    teachers: Optional[TeacherCounts] = None


@dataclass
class StudentEnrollment:
    """A year-specific enrollment record of a student."""

    id: str
    student_id: str
    academic_year_id: str
    rollover_status: RolloverStatus
    school_id: Optional[str] = None
    grade_level_id: Optional[str] = None
    section_id: Optional[str] = None
    next_grade_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rollover_notes: Optional[str] = None
    enrollment_code: Optional[EnrollmentCode] = None
    year_name: Optional[str] = None
    grade_name: Optional[str] = None
    section_name: Optional[str] = None


@dataclass
class GradeProgressionItem:
    """One link of the grade progression chain."""

    id: str
    name: str
    order_index: int
    next_grade_id: Optional[str] = None
    next_grade_name: Optional[str] = None
    is_terminal: bool = False


@dataclass
class GradeCount:
    """Enrollment count for a single grade level."""

    grade_id: str
    grade_name: str
    count: int


@dataclass
class EnrollmentStatistics:
    """Enrollment totals for an academic year."""

    academic_year_id: str
    total_students: int
    school_id: Optional[str] = None
    by_grade: list[GradeCount] = field(default_factory=list)
    by_enrollment_code: dict[str, int] = field(default_factory=dict)
    by_rollover_status: dict[str, int] = field(default_factory=dict)


@dataclass
class StudentRolloverEntry:
    """A student listed by rollover status."""

    student_id: str
    student_number: str
    rollover_status: RolloverStatus
    grade_name: Optional[str] = None
    section_name: Optional[str] = None
