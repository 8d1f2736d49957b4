"""Year-end rollover workflow: preview, prerequisite check, execution.

Execution follows a small state machine driven by ``transition``::

    IDLE -> CONFIRMING -> EXECUTING -> COMPLETED
              |                          |
              +-> IDLE (cancel)          +-> CONFIRMING (run again)

``RolloverCoordinator`` owns the year choice, the selection and the latest
preview/check snapshots, and feeds the state machine from backend calls.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from .client import ApiResult, ErrorKind, StudentlyAPIError, StudentlyClient
from .models import AcademicYear, RolloverPrerequisiteCheck, RolloverPreview, RolloverRequest, RolloverResult
from .registry import ConfirmationRow, build_execute_options, confirmation_rows, intent_only_keys
from .selection import RolloverSelection
from .years import (
    ResolutionStatus,
    YearResolution,
    YearSelectionError,
    find_year,
    next_year_choices,
    resolve_years,
    sort_years,
    validate_pair,
)

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]

_NOTIFY_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def log_notifier(level: str, message: str) -> None:
    """Default notifier: report user-facing messages through logging."""
    logger.log(_NOTIFY_LEVELS.get(level, logging.INFO), message)


class RolloverStateError(Exception):
    """Raised on an event the current execution state does not accept."""

    pass


class Phase(str, Enum):
    IDLE = "idle"
    CONFIRMING = "confirming"
    EXECUTING = "executing"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ExecutionState:
    phase: Phase = Phase.IDLE
    result: Optional[RolloverResult] = None
    error: Optional[str] = None

    @property
    def ready(self) -> bool:
        """Whether a new execution may be requested."""
        return self.phase in (Phase.IDLE, Phase.COMPLETED)

    @property
    def succeeded(self) -> bool:
        return self.phase == Phase.COMPLETED and self.error is None

    @property
    def failed(self) -> bool:
        return self.phase == Phase.COMPLETED and self.error is not None


@dataclass(frozen=True)
class ExecutionRequested:
    prerequisites_valid: bool
    years_selected: bool = True
    fetch_in_flight: bool = False

    @property
    def allowed(self) -> bool:
        return self.prerequisites_valid and self.years_selected and not self.fetch_in_flight


@dataclass(frozen=True)
class ExecutionCancelled:
    pass


@dataclass(frozen=True)
class ExecutionConfirmed:
    pass


@dataclass(frozen=True)
class ExecutionSucceeded:
    result: RolloverResult


@dataclass(frozen=True)
class ExecutionFailed:
    error: str
    result: Optional[RolloverResult] = None


ExecutionEvent = Union[
    ExecutionRequested,
    ExecutionCancelled,
    ExecutionConfirmed,
    ExecutionSucceeded,
    ExecutionFailed,
]


def transition(state: ExecutionState, event: ExecutionEvent) -> ExecutionState:
    """Apply an event to the execution state.

    A request whose gate is closed leaves the state unchanged. Any event
    the current phase does not accept raises ``RolloverStateError``.
    """
    if isinstance(event, ExecutionRequested) and state.ready:
        if not event.allowed:
            return state
        return ExecutionState(Phase.CONFIRMING)
    if isinstance(event, ExecutionCancelled) and state.phase == Phase.CONFIRMING:
        return ExecutionState(Phase.IDLE)
    if isinstance(event, ExecutionConfirmed) and state.phase == Phase.CONFIRMING:
        return ExecutionState(Phase.EXECUTING)
    if isinstance(event, ExecutionSucceeded) and state.phase == Phase.EXECUTING:
        return ExecutionState(Phase.COMPLETED, result=event.result)
    if isinstance(event, ExecutionFailed) and state.phase == Phase.EXECUTING:
        return ExecutionState(Phase.COMPLETED, result=event.result, error=event.error)
    raise RolloverStateError(f"{type(event).__name__} is not allowed while {state.phase.value}")


class RolloverCoordinator:
    """Drives one rollover between a current and a next academic year."""

    def __init__(
        self,
        client: StudentlyClient,
        school_id: str,
        selection: Optional[RolloverSelection] = None,
        notify: Optional[Notifier] = None,
        recheck_before_execute: bool = True,
    ):
        self.client = client
        self.school_id = school_id
        self.selection = selection if selection is not None else RolloverSelection()
        self.notify = notify or log_notifier
        self.recheck_before_execute = recheck_before_execute

        self.years: list[AcademicYear] = []
        self.resolution: Optional[YearResolution] = None
        self.current_year: Optional[AcademicYear] = None
        self.next_year: Optional[AcademicYear] = None
        self.preview: Optional[RolloverPreview] = None
        self.prerequisite_check: Optional[RolloverPrerequisiteCheck] = None
        self.execution = ExecutionState()
        self.result: Optional[RolloverResult] = None
        self._pending_fetches = 0

    # State

    @property
    def year_pair(self) -> Optional[tuple[str, str]]:
        if self.current_year is None or self.next_year is None:
            return None
        return (self.current_year.id, self.next_year.id)

    @property
    def is_fetching(self) -> bool:
        return self._pending_fetches > 0

    @property
    def prerequisites_valid(self) -> bool:
        return self.prerequisite_check is not None and self.prerequisite_check.is_valid is True

    @property
    def can_execute(self) -> bool:
        return self.execution.ready and self._request_event().allowed

    def _request_event(self) -> ExecutionRequested:
        return ExecutionRequested(
            prerequisites_valid=self.prerequisites_valid,
            years_selected=self.year_pair is not None,
            fetch_in_flight=self.is_fetching,
        )

    def confirmation_rows(self) -> list[ConfirmationRow]:
        return confirmation_rows(self.preview, self.selection)

    def next_year_choices(self) -> list[AcademicYear]:
        return next_year_choices(self.years, self.current_year)

    async def _guarded(self, call: Awaitable[ApiResult], action: str) -> ApiResult:
        try:
            return await call
        except StudentlyAPIError as e:
            logger.error("Failed to %s: %s", action, e)
            return ApiResult.fail(f"Failed to {action}: {e}", ErrorKind.UNEXPECTED)

    # Years

    async def load_years(self, auto_preview: bool = True) -> Optional[YearResolution]:
        """Fetch the school's years and resolve the pair to roll between.

        When both years resolve, the preview and prerequisite check are
        loaded right away unless ``auto_preview`` is off.
        """
        result = await self._guarded(self.client.get_academic_years(), "load academic years")
        if not result.success:
            self.notify("error", result.error or "Failed to load academic years")
            return None

        self.years = sort_years(result.data)
        resolution = resolve_years(self.years)
        self.resolution = resolution
        self.current_year = resolution.current
        self.next_year = resolution.next
        logger.info("Academic years resolved: %s", resolution.message)

        if auto_preview and resolution.status == ResolutionStatus.RESOLVED:
            await self.load_preview_and_check()
        return resolution

    def _ensure_idle(self, action: str) -> None:
        if not self.execution.ready:
            raise RolloverStateError(f"Cannot {action} while {self.execution.phase.value}")

    def choose_current_year(self, year_id: str) -> AcademicYear:
        """Pick the year to roll from. Clears the target year and loaded data."""
        self._ensure_idle("change years")
        year = find_year(self.years, year_id)
        self.current_year = year
        self.next_year = None
        self.preview = None
        self.prerequisite_check = None
        return year

    async def choose_next_year(self, year_id: str) -> AcademicYear:
        """Pick the year to roll to and load its preview and check.

        Raises:
            YearSelectionError: If no current year is chosen, or the year
                does not start after the current year
        """
        self._ensure_idle("change years")
        if self.current_year is None:
            raise YearSelectionError("Select the current year first")
        year = find_year(self.years, year_id)
        validate_pair(self.current_year, year)

        self.next_year = year
        self.preview = None
        self.prerequisite_check = None
        await self.load_preview_and_check()
        return year

    async def select_years(self, current_year_id: str, next_year_id: str) -> None:
        self.choose_current_year(current_year_id)
        await self.choose_next_year(next_year_id)

    async def start(
        self,
        current_year_id: Optional[str] = None,
        next_year_id: Optional[str] = None,
    ) -> bool:
        """Load years and settle the pair, overriding either side if given.

        Returns:
            True once both years are chosen
        """
        explicit = bool(current_year_id or next_year_id)
        resolution = await self.load_years(auto_preview=not explicit)
        if resolution is None:
            return False

        if explicit:
            current_id = current_year_id or (resolution.current.id if resolution.current else None)
            next_id = next_year_id or (resolution.next.id if resolution.next else None)
            if current_id is None or next_id is None:
                self.notify("warning", resolution.message)
                return False
            try:
                await self.select_years(current_id, next_id)
            except YearSelectionError as e:
                self.notify("error", str(e))
                return False
        elif resolution.status != ResolutionStatus.RESOLVED:
            self.notify("warning", resolution.message)
            return False

        return self.year_pair is not None

    # Preview and prerequisites

    async def load_preview_and_check(self) -> bool:
        """Fetch the preview and the prerequisite check concurrently.

        Results are tagged with the year pair they were requested for and
        dropped if the selection moved on meanwhile. A failed fetch keeps
        the previous snapshot.

        Returns:
            True if both snapshots were refreshed
        """
        pair = self.year_pair
        if pair is None:
            return False

        current_id, next_id = pair
        self._pending_fetches += 1
        try:
            check, preview = await asyncio.gather(
                self._guarded(
                    self.client.check_rollover_prerequisites(current_id, next_id, self.school_id),
                    "check rollover prerequisites",
                ),
                self._guarded(
                    self.client.preview_rollover(current_id, next_id, self.school_id),
                    "load preview",
                ),
            )
        finally:
            self._pending_fetches -= 1

        if self.year_pair != pair:
            logger.debug("Discarding preview for %s -> %s; selection changed", current_id, next_id)
            return False

        if check.success:
            self.prerequisite_check = check.data
        else:
            self.notify("error", check.error or "Failed to check prerequisites")

        if preview.success:
            self.preview = preview.data
        else:
            self.notify("error", preview.error or "Failed to load preview")

        return check.success and preview.success

    # Selection

    def toggle(self, key: str) -> bool:
        if self.execution.phase == Phase.EXECUTING:
            raise RolloverStateError("Cannot change rollover items while executing")
        return self.selection.toggle(key)

    # Execution

    def request_execution(self) -> bool:
        """Open the confirmation step.

        Returns:
            False when execution is not available (prerequisites not met,
            years missing, or a fetch still running)
        """
        self._ensure_idle("request execution")
        event = self._request_event()
        self.execution = transition(self.execution, event)
        if self.execution.phase != Phase.CONFIRMING:
            if not event.years_selected:
                reason = "Select the current and next academic year first"
            elif event.fetch_in_flight:
                reason = "Preview is still loading"
            else:
                reason = (
                    self.prerequisite_check.error_message
                    if self.prerequisite_check and self.prerequisite_check.error_message
                    else "Prerequisites not met"
                )
            self.notify("warning", f"Rollover unavailable: {reason}")
            return False
        return True

    def cancel_execution(self) -> None:
        self.execution = transition(self.execution, ExecutionCancelled())

    def build_request(self) -> RolloverRequest:
        pair = self.year_pair
        if pair is None:
            raise RolloverStateError("No year pair selected")
        return RolloverRequest(
            current_year_id=pair[0],
            next_year_id=pair[1],
            school_id=self.school_id,
            options=build_execute_options(self.selection),
        )

    def _fail(self, error: str, result: Optional[RolloverResult] = None) -> None:
        self.execution = transition(self.execution, ExecutionFailed(error, result))
        self.notify("error", error)

    async def confirm_execution(self) -> Optional[RolloverResult]:
        """Run the confirmed rollover.

        An exception raised while executing still moves the state machine
        to a failed COMPLETED state before it propagates.

        Returns:
            The result on success, None on failure. Toggles and years are
            kept either way.
        """
        self.execution = transition(self.execution, ExecutionConfirmed())
        try:
            result = await self._run_confirmed()
        except Exception as e:
            if self.execution.phase == Phase.EXECUTING:
                self._fail(f"Rollover failed: {e}")
            raise
        if result is not None:
            await self.load_preview_and_check()
        return result

    async def _run_confirmed(self) -> Optional[RolloverResult]:
        request = self.build_request()

        if self.recheck_before_execute:
            check = await self._guarded(
                self.client.check_rollover_prerequisites(
                    request.current_year_id, request.next_year_id, request.school_id
                ),
                "check rollover prerequisites",
            )
            if not check.success:
                self._fail(check.error or "Failed to check prerequisites")
                return None
            self.prerequisite_check = check.data
            if not check.data.is_valid:
                logger.warning("Prerequisites no longer met at confirmation")
                self._fail(check.data.error_message or "Prerequisites not met")
                return None

        skipped = intent_only_keys(self.selection)
        if skipped:
            logger.info("Selected items not rolled over by the backend: %s", ", ".join(skipped))
        logger.info(
            "Executing rollover %s -> %s with options %s",
            request.current_year_id,
            request.next_year_id,
            request.options.to_dict(),
        )

        response = await self._guarded(self.client.execute_rollover(request), "execute rollover")
        if not response.success:
            self._fail(response.error or "Rollover failed")
            return None

        result: RolloverResult = response.data
        if not result.success:
            self._fail(result.error or "Rollover failed", result)
            return None

        self.result = result
        self.execution = transition(self.execution, ExecutionSucceeded(result))
        logger.info("Rollover completed in %sms", result.duration_ms)
        self.notify("success", "Rollover completed successfully!")
        return result
