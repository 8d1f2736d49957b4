# tests/test_cli.py

import pytest

from studently_rollover import cli

from conftest import SCHOOL_ID, make_client


@pytest.fixture
def cli_backend(rollover_backend, monkeypatch):
    monkeypatch.setenv("STUDENTLY_SCHOOL_ID", SCHOOL_ID)
    monkeypatch.setenv("STUDENTLY_API_TOKEN", "test-token")
    monkeypatch.delenv("STUDENTLY_TIMEOUT", raising=False)
    monkeypatch.setattr(cli, "_get_client", lambda settings: make_client(rollover_backend))
    return rollover_backend


def test_parse_args_collects_flags():
    positional, options = cli._parse_args(
        ["y1", "--skip", "students", "--skip", "courses", "--yes", "--next", "y2"],
        value_flags=("--current", "--next"),
        multi_flags=("--skip",),
        bool_flags=("--yes",),
    )

    assert positional == ["y1"]
    assert options == {
        "--current": None,
        "--next": "y2",
        "--skip": ["students", "courses"],
        "--yes": True,
    }


def test_parse_args_rejects_unknown_option():
    with pytest.raises(SystemExit):
        cli._parse_args(["--bogus"], value_flags=("--current",))


@pytest.mark.asyncio
async def test_execute_with_yes(cli_backend, capsys):
    await cli.cmd_execute(["--skip", "courses", "--yes"])

    out = capsys.readouterr().out
    assert "CONFIRM ROLLOVER" in out
    assert "[ ] Courses" in out
    assert "Rollover Complete in 1200ms" in out
    sent = cli_backend.body(cli_backend.calls("POST", "/rollover/execute")[0])
    assert sent["options"] == {"students": True, "marking_periods": True, "teachers": False}


@pytest.mark.asyncio
async def test_execute_declined(cli_backend, capsys, monkeypatch):
    monkeypatch.setattr("builtins.input", lambda prompt: "n")

    await cli.cmd_execute([])

    assert "Rollover cancelled." in capsys.readouterr().out
    assert cli_backend.calls("POST", "/rollover/execute") == []


@pytest.mark.asyncio
async def test_execute_blocked_by_prerequisites(cli_backend, capsys):
    cli_backend.add("POST", "/rollover/check", {"is_valid": False, "error_message": "No grades"})

    with pytest.raises(SystemExit) as exc:
        await cli.cmd_execute(["--yes"])

    assert exc.value.code == 1
    captured = capsys.readouterr()
    assert "Prerequisites Not Met: No grades" in captured.out
    assert "Rollover unavailable: No grades" in captured.err
    assert cli_backend.calls("POST", "/rollover/execute") == []


@pytest.mark.asyncio
async def test_execute_unknown_item(cli_backend, capsys):
    with pytest.raises(SystemExit):
        await cli.cmd_execute(["--skip", "library", "--yes"])

    assert "Unknown rollover item: library" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_preview_command(cli_backend, capsys):
    await cli.cmd_preview([])

    out = capsys.readouterr().out
    assert "Rollover from 2023-2024 to 2024-2025" in out
    assert "Ready to Rollover: All checks passed" in out
    assert "120 active students to process" in out


@pytest.mark.asyncio
async def test_years_command(cli_backend, capsys):
    await cli.cmd_years([])

    out = capsys.readouterr().out
    assert "[y2023] 2023-2024 (2023-09-01 - 2024-06-30) [current]" in out
    assert "Rolling from 2023-2024 to 2024-2025" in out


@pytest.mark.asyncio
async def test_bulk_status_command(cli_backend, capsys):
    cli_backend.add("PATCH", "/enrollment/bulk-rollover-status", {"updated_count": 4})

    await cli.cmd_bulk_status(["y2023", "retained", "--grade", "g5"])

    assert "Updated 4 students to 'retained'." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_invalid_status(cli_backend, capsys):
    with pytest.raises(SystemExit):
        await cli.cmd_bulk_status(["y2023", "expelled"])

    assert "Invalid status 'expelled'" in capsys.readouterr().err


def test_missing_school_id(monkeypatch, capsys):
    monkeypatch.delenv("STUDENTLY_SCHOOL_ID", raising=False)
    monkeypatch.delenv("STUDENTLY_TIMEOUT", raising=False)

    with pytest.raises(SystemExit):
        cli._school_id(cli._settings())

    assert "STUDENTLY_SCHOOL_ID" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_set_next_grade_command(cli_backend, capsys):
    cli_backend.add("PATCH", "/grades/g5", {"success": True})

    await cli.cmd_set_next_grade(["g5", "g6"])

    assert "Grade g5 now progresses to g6." in capsys.readouterr().out
    assert cli_backend.body(cli_backend.calls("PATCH", "/grades/g5")[0]) == {"next_grade_id": "g6"}


@pytest.mark.asyncio
async def test_set_next_grade_none_makes_grade_terminal(cli_backend, capsys):
    cli_backend.add("PATCH", "/grades/g12", {"success": True})

    await cli.cmd_set_next_grade(["g12", "none"])

    assert "Grade g12 is now terminal" in capsys.readouterr().out
    assert cli_backend.body(cli_backend.calls("PATCH", "/grades/g12")[0]) == {"next_grade_id": None}


@pytest.mark.asyncio
async def test_enrollment_command_without_current(cli_backend, capsys):
    await cli.cmd_enrollment(["s1"])

    assert "Student s1 has no current enrollment." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_enrollment_history_command(cli_backend, capsys):
    cli_backend.add(
        "GET",
        "/enrollment/student/s1/history",
        [{"id": "e1", "student_id": "s1", "academic_year_id": "y2023", "rollover_status": "promoted"}],
    )

    await cli.cmd_enrollment(["s1", "--history"])

    out = capsys.readouterr().out
    assert "Enrollment e1 for student s1, year y2023, status promoted" in out
