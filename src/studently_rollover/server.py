"""Studently Rollover MCP Server - FastMCP server for the year-end rollover."""

from typing import Optional

from fastmcp import FastMCP

from .client import StudentlyAPIError, StudentlyAuthError, StudentlyClient
from .config import ConfigError, load_env, load_settings
from .formatters import (
    format_check,
    format_checklist,
    format_enrollment,
    format_preview,
    format_progression,
    format_resolution,
    format_result,
    format_statistics,
)
from .session import TokenSession
from .workflow import RolloverCoordinator

# Load environment variables
load_env()

# Create FastMCP server
mcp = FastMCP(
    "Studently Rollover",
    instructions=(
        "MCP server for the Studently school information system year-end rollover. "
        "Previews, checks and executes the rollover of students, marking periods and "
        "teacher assignments into the next academic year. execute_rollover only runs "
        "when called with confirm=true after the user has reviewed the checklist."
    ),
)

# Global client instance (initialized on first use)
_client: Optional[StudentlyClient] = None


def _get_client() -> StudentlyClient:
    """Get or create the Studently client."""
    global _client
    if _client is None:
        settings = load_settings()
        if not settings.api_token:
            raise StudentlyAuthError(
                "Missing Studently credentials. Please set STUDENTLY_API_URL and "
                "STUDENTLY_API_TOKEN environment variables."
            )
        _client = StudentlyClient(
            settings.api_url, TokenSession(settings.api_token), timeout=settings.timeout
        )
    return _client


def _school_id() -> str:
    return load_settings().require_school_id()


class _NoticeCollector:
    """Collects coordinator notices so tools can return them."""

    def __init__(self):
        self.messages: list[str] = []

    def __call__(self, level: str, message: str) -> None:
        prefix = {"error": "Error: ", "warning": "Warning: "}.get(level, "")
        self.messages.append(f"{prefix}{message}")


def _coordinator() -> tuple[RolloverCoordinator, _NoticeCollector]:
    notices = _NoticeCollector()
    return RolloverCoordinator(_get_client(), _school_id(), notify=notices), notices


def _with_notices(notices: _NoticeCollector, lines: list[str]) -> str:
    return "\n".join(notices.messages + ([""] if notices.messages and lines else []) + lines)


@mcp.tool()
async def list_academic_years() -> str:
    """List the school's academic years and the current/next pair a rollover would use.

    Returns:
        Academic years sorted by start date, with the resolution outcome.
    """
    try:
        coordinator, notices = _coordinator()
        resolution = await coordinator.load_years(auto_preview=False)
        if resolution is None:
            return _with_notices(notices, [])
        return format_resolution(resolution)
    except StudentlyAuthError as e:
        return f"Authentication error: {e}"
    except ConfigError as e:
        return f"Configuration error: {e}"
    except StudentlyAPIError as e:
        return f"API error: {e}"


@mcp.tool()
async def preview_rollover(
    current_year_id: Optional[str] = None,
    next_year_id: Optional[str] = None,
) -> str:
    """Preview a rollover (dry run) and check whether it may be executed.

    Args:
        current_year_id: Year to roll from. Defaults to the year marked current.
        next_year_id: Year to roll to. Defaults to the year after the current one.

    Returns:
        Prerequisite status and counts of students, marking periods and teacher
        assignments affected.
    """
    try:
        coordinator, notices = _coordinator()
        if not await coordinator.start(current_year_id, next_year_id):
            return _with_notices(notices, [])

        lines = [f"Rollover from {coordinator.current_year.name} to {coordinator.next_year.name}", ""]
        if coordinator.prerequisite_check:
            lines.extend([format_check(coordinator.prerequisite_check), ""])
        if coordinator.preview:
            lines.append(format_preview(coordinator.preview, coordinator.next_year.name))
        return _with_notices(notices, lines)
    except StudentlyAuthError as e:
        return f"Authentication error: {e}"
    except ConfigError as e:
        return f"Configuration error: {e}"
    except StudentlyAPIError as e:
        return f"API error: {e}"


@mcp.tool()
async def list_rollover_items(
    current_year_id: Optional[str] = None,
    next_year_id: Optional[str] = None,
) -> str:
    """Show the rollover checklist with default selections and overwrite warnings.

    Args:
        current_year_id: Year to roll from. Defaults to the year marked current.
        next_year_id: Year to roll to. Defaults to the year after the current one.

    Returns:
        Checklist of data domains in rollover order.
    """
    try:
        coordinator, notices = _coordinator()
        if not await coordinator.start(current_year_id, next_year_id):
            return _with_notices(notices, [])
        return _with_notices(notices, [format_checklist(coordinator.confirmation_rows())])
    except StudentlyAuthError as e:
        return f"Authentication error: {e}"
    except ConfigError as e:
        return f"Configuration error: {e}"
    except StudentlyAPIError as e:
        return f"API error: {e}"


@mcp.tool()
async def execute_rollover(
    current_year_id: Optional[str] = None,
    next_year_id: Optional[str] = None,
    skip: Optional[list[str]] = None,
    include: Optional[list[str]] = None,
    confirm: bool = False,
) -> str:
    """Execute the year-end rollover. Destructive and not reversible.

    Without confirm=true this only returns the confirmation checklist. Show it
    to the user and call again with confirm=true once they agree.

    Args:
        current_year_id: Year to roll from. Defaults to the year marked current.
        next_year_id: Year to roll to. Defaults to the year after the current one.
        skip: Item keys to switch off (e.g. ["students"])
        include: Item keys to switch on (e.g. ["users"])
        confirm: Must be true to actually run the rollover

    Returns:
        The checklist awaiting confirmation, or the rollover result.
    """
    try:
        coordinator, notices = _coordinator()
        try:
            for key in skip or []:
                coordinator.selection.set(key, False)
            for key in include or []:
                coordinator.selection.set(key, True)
        except KeyError as e:
            return f"Error: {e.args[0]}"

        if not await coordinator.start(current_year_id, next_year_id):
            return _with_notices(notices, [])
        if not coordinator.request_execution():
            return _with_notices(notices, [])

        checklist = format_checklist(coordinator.confirmation_rows())
        if not confirm:
            coordinator.cancel_execution()
            return "\n".join(
                [
                    f"Are you sure you want to roll the data for {coordinator.current_year.name} "
                    f"to {coordinator.next_year.name}?",
                    "",
                    checklist,
                    "",
                    "Call execute_rollover again with confirm=true to proceed.",
                ]
            )

        result = await coordinator.confirm_execution()
        lines = ["Submitted items:", checklist]
        if result is not None:
            lines.extend(["", format_result(result)])
            if coordinator.preview:
                lines.extend(["", format_preview(coordinator.preview, coordinator.next_year.name)])
        return _with_notices(notices, lines)
    except StudentlyAuthError as e:
        return f"Authentication error: {e}"
    except ConfigError as e:
        return f"Configuration error: {e}"
    except StudentlyAPIError as e:
        return f"API error: {e}"


@mcp.tool()
async def get_grade_progression() -> str:
    """Get the grade progression chain used to promote students.

    Returns:
        Grades in order with the grade each one promotes into.
    """
    try:
        result = await _get_client().get_grade_progression(_school_id())
        if not result.success:
            return f"Error: {result.error}"
        return format_progression(result.data)
    except StudentlyAuthError as e:
        return f"Authentication error: {e}"
    except ConfigError as e:
        return f"Configuration error: {e}"
    except StudentlyAPIError as e:
        return f"API error: {e}"


@mcp.tool()
async def get_student_enrollment(student_id: str, history: bool = False) -> str:
    """Get a student's current enrollment, or their full enrollment history.

    Args:
        student_id: ID of the student
        history: Return every enrollment record instead of the current one
    """
    try:
        client = _get_client()
        if history:
            result = await client.get_enrollment_history(student_id)
            if not result.success:
                return f"Error: {result.error}"
            if not result.data:
                return "No enrollment history found."
            return "\n".join(format_enrollment(e) for e in result.data)

        result = await client.get_current_enrollment(student_id)
        if not result.success:
            return f"Error: {result.error}"
        if result.data is None:
            return f"Student {student_id} has no current enrollment."
        return format_enrollment(result.data)
    except StudentlyAuthError as e:
        return f"Authentication error: {e}"
    except ConfigError as e:
        return f"Configuration error: {e}"
    except StudentlyAPIError as e:
        return f"API error: {e}"


@mcp.tool()
async def get_enrollment_statistics(academic_year_id: str) -> str:
    """Get enrollment statistics for an academic year.

    Args:
        academic_year_id: ID of the academic year

    Returns:
        Totals by grade, enrollment code and rollover status.
    """
    if not academic_year_id.strip():
        return "Error: academic_year_id is required"
    try:
        result = await _get_client().get_enrollment_statistics(academic_year_id, _school_id())
        if not result.success:
            return f"Error: {result.error}"
        return format_statistics(result.data)
    except StudentlyAuthError as e:
        return f"Authentication error: {e}"
    except ConfigError as e:
        return f"Configuration error: {e}"
    except StudentlyAPIError as e:
        return f"API error: {e}"


def main():
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
