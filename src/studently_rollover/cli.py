"""Studently rollover CLI - Command-line interface for the year-end rollover.

Usage:
    python -m studently_rollover.cli <command> [options]

Commands:
    years                               List academic years and the resolved pair
    preview [--current ID] [--next ID]  Preview the rollover and check prerequisites
    items [--current ID] [--next ID]    Show the rollover checklist
    execute [...] [--yes]               Run the rollover after confirmation
    progression                         Show the grade progression chain
    set-next-grade <grade_id> <next_id> Relink a grade in the progression chain
    enrollment <student_id> [--history] Show a student's enrollment
    statistics <year_id>                Show enrollment statistics
    students <year_id> [--status S]     List students by rollover status
    set-status <student_id> <year_id> <status>   Set a student's rollover status
    bulk-status <year_id> <status>      Set rollover status for many students
"""

import asyncio
import logging
import sys

from .client import StudentlyClient
from .config import ConfigError, Settings, load_env, load_settings
from .formatters import (
    format_check,
    format_checklist,
    format_enrollment,
    format_preview,
    format_progression,
    format_resolution,
    format_result,
    format_statistics,
    format_students,
)
from .models import RolloverStatus
from .session import TokenSession
from .workflow import RolloverCoordinator


def _fail(message: str):
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _settings() -> Settings:
    try:
        return load_settings()
    except ConfigError as e:
        _fail(str(e))


def _school_id(settings: Settings) -> str:
    try:
        return settings.require_school_id()
    except ConfigError as e:
        _fail(str(e))


def _get_client(settings: Settings) -> StudentlyClient:
    if not settings.api_token:
        _fail(
            "Missing credentials. Set STUDENTLY_API_URL and STUDENTLY_API_TOKEN "
            "environment variables or in .env file."
        )
    return StudentlyClient(settings.api_url, TokenSession(settings.api_token), timeout=settings.timeout)


def _print_notice(level: str, message: str) -> None:
    if level == "error":
        print(f"Error: {message}", file=sys.stderr)
    elif level == "warning":
        print(f"Warning: {message}", file=sys.stderr)
    else:
        print(message)


def _parse_args(args, value_flags=(), multi_flags=(), bool_flags=()):
    """Split args into positionals and flag values."""
    positional = []
    options = {flag: None for flag in value_flags}
    options.update({flag: [] for flag in multi_flags})
    options.update({flag: False for flag in bool_flags})
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in bool_flags:
            options[arg] = True
            i += 1
        elif arg in value_flags or arg in multi_flags:
            if i + 1 >= len(args):
                _fail(f"{arg} requires a value")
            if arg in multi_flags:
                options[arg].append(args[i + 1])
            else:
                options[arg] = args[i + 1]
            i += 2
        elif arg.startswith("--"):
            _fail(f"Unknown option '{arg}'")
        else:
            positional.append(arg)
            i += 1
    return positional, options


def _parse_status(value: str) -> RolloverStatus:
    try:
        return RolloverStatus(value.lower())
    except ValueError:
        choices = ", ".join(s.value for s in RolloverStatus)
        _fail(f"Invalid status '{value}'. Use one of: {choices}")


def _confirm(prompt: str) -> bool:
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


async def _start(coordinator: RolloverCoordinator, options) -> bool:
    return await coordinator.start(options["--current"], options["--next"])


async def cmd_years(args):
    settings = _settings()
    client = _get_client(settings)
    try:
        coordinator = RolloverCoordinator(client, _school_id(settings), notify=_print_notice)
        resolution = await coordinator.load_years(auto_preview=False)
        if resolution is None:
            sys.exit(1)
        print(format_resolution(resolution))
    finally:
        await client.close()


async def cmd_preview(args):
    _, options = _parse_args(args, value_flags=("--current", "--next"))
    settings = _settings()
    client = _get_client(settings)
    try:
        coordinator = RolloverCoordinator(client, _school_id(settings), notify=_print_notice)
        if not await _start(coordinator, options):
            sys.exit(1)
        print(f"Rollover from {coordinator.current_year.name} to {coordinator.next_year.name}")
        print()
        if coordinator.prerequisite_check:
            print(format_check(coordinator.prerequisite_check))
            print()
        if coordinator.preview:
            print(format_preview(coordinator.preview, coordinator.next_year.name))
    finally:
        await client.close()


async def cmd_items(args):
    _, options = _parse_args(args, value_flags=("--current", "--next"))
    settings = _settings()
    client = _get_client(settings)
    try:
        coordinator = RolloverCoordinator(client, _school_id(settings), notify=_print_notice)
        if not await _start(coordinator, options):
            sys.exit(1)
        print(
            f"Data to roll over from {coordinator.current_year.name} "
            f"to {coordinator.next_year.name}:"
        )
        print()
        print(format_checklist(coordinator.confirmation_rows()))
    finally:
        await client.close()


async def cmd_execute(args):
    _, options = _parse_args(
        args,
        value_flags=("--current", "--next"),
        multi_flags=("--skip", "--include"),
        bool_flags=("--yes", "-y"),
    )
    settings = _settings()
    client = _get_client(settings)
    try:
        coordinator = RolloverCoordinator(client, _school_id(settings), notify=_print_notice)
        try:
            for key in options["--skip"]:
                coordinator.selection.set(key, False)
            for key in options["--include"]:
                coordinator.selection.set(key, True)
        except KeyError as e:
            _fail(e.args[0])

        if not await _start(coordinator, options):
            sys.exit(1)
        if coordinator.prerequisite_check:
            print(format_check(coordinator.prerequisite_check))
            print()
        if not coordinator.request_execution():
            sys.exit(1)

        print("CONFIRM ROLLOVER")
        print(
            f"Are you sure you want to roll the data for {coordinator.current_year.name} "
            "to the next school year?"
        )
        print()
        print(format_checklist(coordinator.confirmation_rows()))
        print()

        if not (options["--yes"] or options["-y"]) and not _confirm("Proceed? [y/N] "):
            coordinator.cancel_execution()
            print("Rollover cancelled.")
            return

        result = await coordinator.confirm_execution()
        if result is None:
            sys.exit(1)
        print(format_result(result))
        if coordinator.preview:
            print()
            print(format_preview(coordinator.preview, coordinator.next_year.name))
    finally:
        await client.close()


async def cmd_progression(args):
    settings = _settings()
    client = _get_client(settings)
    try:
        result = await client.get_grade_progression(_school_id(settings))
        if not result.success:
            _fail(result.error)
        print(format_progression(result.data))
    finally:
        await client.close()


async def cmd_set_next_grade(args):
    if len(args) < 2:
        _fail("requires <grade_id> <next_grade_id|none>")
    grade_id, next_grade_id = args[0], args[1]
    if next_grade_id.lower() == "none":
        next_grade_id = None
    settings = _settings()
    client = _get_client(settings)
    try:
        result = await client.update_grade_level(grade_id, next_grade_id=next_grade_id)
        if not result.success:
            _fail(result.error)
        if next_grade_id is None:
            print(f"Grade {grade_id} is now terminal (students graduate).")
        else:
            print(f"Grade {grade_id} now progresses to {next_grade_id}.")
    finally:
        await client.close()


async def cmd_enrollment(args):
    positional, options = _parse_args(args, bool_flags=("--history",))
    if not positional:
        _fail("student_id is required")
    student_id = positional[0]
    settings = _settings()
    client = _get_client(settings)
    try:
        if options["--history"]:
            result = await client.get_enrollment_history(student_id)
            if not result.success:
                _fail(result.error)
            if not result.data:
                print("No enrollment history found.")
            for enrollment in result.data:
                print(format_enrollment(enrollment))
            return

        result = await client.get_current_enrollment(student_id)
        if not result.success:
            _fail(result.error)
        if result.data is None:
            print(f"Student {student_id} has no current enrollment.")
        else:
            print(format_enrollment(result.data))
    finally:
        await client.close()


async def cmd_statistics(args):
    if not args:
        _fail("academic_year_id is required")
    settings = _settings()
    client = _get_client(settings)
    try:
        result = await client.get_enrollment_statistics(args[0], _school_id(settings))
        if not result.success:
            _fail(result.error)
        print(format_statistics(result.data))
    finally:
        await client.close()


async def cmd_students(args):
    positional, options = _parse_args(args, value_flags=("--status",))
    if not positional:
        _fail("academic_year_id is required")
    status = _parse_status(options["--status"]) if options["--status"] else None
    settings = _settings()
    client = _get_client(settings)
    try:
        result = await client.get_students_by_rollover_status(
            positional[0], _school_id(settings), status
        )
        if not result.success:
            _fail(result.error)
        print(format_students(result.data))
    finally:
        await client.close()


async def cmd_set_status(args):
    positional, options = _parse_args(args, value_flags=("--next-grade", "--notes"))
    if len(positional) < 3:
        _fail("requires <student_id> <academic_year_id> <status>")
    student_id, year_id, raw_status = positional[:3]
    status = _parse_status(raw_status)
    settings = _settings()
    client = _get_client(settings)
    try:
        result = await client.set_student_rollover_status(
            student_id,
            year_id,
            status,
            next_grade_id=options["--next-grade"],
            notes=options["--notes"],
        )
        if not result.success:
            _fail(result.error)
        print(format_enrollment(result.data))
    finally:
        await client.close()


async def cmd_bulk_status(args):
    positional, options = _parse_args(
        args, value_flags=("--grade", "--section", "--next-grade")
    )
    if len(positional) < 2:
        _fail("requires <academic_year_id> <status>")
    year_id, raw_status = positional[:2]
    status = _parse_status(raw_status)
    settings = _settings()
    client = _get_client(settings)
    try:
        result = await client.bulk_set_rollover_status(
            year_id,
            _school_id(settings),
            status,
            grade_level_id=options["--grade"],
            section_id=options["--section"],
            next_grade_id=options["--next-grade"],
        )
        if not result.success:
            _fail(result.error)
        print(f"Updated {result.data} students to '{status.value}'.")
    finally:
        await client.close()


COMMANDS = {
    "years": cmd_years,
    "preview": cmd_preview,
    "items": cmd_items,
    "execute": cmd_execute,
    "progression": cmd_progression,
    "set-next-grade": cmd_set_next_grade,
    "enrollment": cmd_enrollment,
    "statistics": cmd_statistics,
    "students": cmd_students,
    "set-status": cmd_set_status,
    "bulk-status": cmd_bulk_status,
}

USAGE = """\
Usage: python -m studently_rollover.cli <command> [options]

Commands:
  years                                      List academic years and the resolved rollover pair
  preview [--current ID] [--next ID]         Preview the rollover and check prerequisites
  items [--current ID] [--next ID]           Show the rollover checklist
  execute [--current ID] [--next ID] [--skip KEY]... [--include KEY]... [--yes]
                                             Run the rollover after confirmation
  progression                                Show the grade progression chain
  set-next-grade <grade_id> <next_grade_id|none>
                                             Relink a grade in the progression chain
  enrollment <student_id> [--history]        Show a student's current enrollment or history
  statistics <academic_year_id>              Show enrollment statistics
  students <academic_year_id> [--status S]   List students by rollover status
  set-status <student_id> <academic_year_id> <status> [--next-grade ID] [--notes TEXT]
                                             Set one student's rollover status
  bulk-status <academic_year_id> <status> [--grade ID] [--section ID] [--next-grade ID]
                                             Set rollover status for matching students

Item keys: schools, users, school_periods, marking_periods, calendars, grading_scales,
attendance_codes, courses, course_periods, enrollment_codes, students,
report_card_comments, school_configuration, eligibility_activities, food_service,
referral_form
Statuses: pending, promoted, retained, graduated, dropped, transferred"""


def _log_level() -> str:
    try:
        return load_settings().log_level
    except ConfigError:
        return "WARNING"


def main():
    load_env()
    logging.basicConfig(
        level=getattr(logging, _log_level(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    args = sys.argv[1:]
    if not args or args[0] in ("-h", "--help", "help"):
        print(USAGE)
        sys.exit(0)

    command = args[0]
    if command not in COMMANDS:
        print(f"Error: Unknown command '{command}'", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        sys.exit(1)

    asyncio.run(COMMANDS[command](args[1:]))


if __name__ == "__main__":
    main()
