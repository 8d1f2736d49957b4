# tests/test_server.py

import pytest
import pytest_asyncio

from studently_rollover import server

from conftest import SCHOOL_ID, make_client


def _tool(tool):
    # @mcp.tool() wraps the coroutine function in a tool object
    return getattr(tool, "fn", tool)


@pytest_asyncio.fixture
async def mcp_backend(rollover_backend, monkeypatch):
    monkeypatch.setenv("STUDENTLY_SCHOOL_ID", SCHOOL_ID)
    monkeypatch.setenv("STUDENTLY_API_TOKEN", "test-token")
    monkeypatch.delenv("STUDENTLY_TIMEOUT", raising=False)
    client = make_client(rollover_backend)
    monkeypatch.setattr(server, "_client", client)
    yield rollover_backend
    await client.close()


@pytest.mark.asyncio
async def test_execute_without_confirm_only_returns_checklist(mcp_backend):
    text = await _tool(server.execute_rollover)()

    assert "Are you sure you want to roll the data for 2023-2024 to 2024-2025?" in text
    assert "[x] Students" in text
    assert "confirm=true" in text
    assert mcp_backend.calls("POST", "/rollover/execute") == []


@pytest.mark.asyncio
async def test_execute_with_confirm_runs_once(mcp_backend):
    text = await _tool(server.execute_rollover)(skip=["courses"], confirm=True)

    calls = mcp_backend.calls("POST", "/rollover/execute")
    assert len(calls) == 1
    assert mcp_backend.body(calls[0])["options"] == {
        "students": True,
        "marking_periods": True,
        "teachers": False,
    }
    assert text.index("Submitted items:") < text.index("Rollover Complete in 1200ms")
    assert "[ ] Courses" in text


@pytest.mark.asyncio
async def test_execute_rejects_unknown_item(mcp_backend):
    text = await _tool(server.execute_rollover)(skip=["library"], confirm=True)

    assert text == "Error: Unknown rollover item: library"
    assert mcp_backend.requests == []


@pytest.mark.asyncio
async def test_execute_blocked_by_prerequisites(mcp_backend):
    mcp_backend.add("POST", "/rollover/check", {"is_valid": False, "error_message": "No grades"})

    text = await _tool(server.execute_rollover)(confirm=True)

    assert "Rollover unavailable: No grades" in text
    assert mcp_backend.calls("POST", "/rollover/execute") == []


@pytest.mark.asyncio
async def test_preview_tool(mcp_backend):
    text = await _tool(server.preview_rollover)()

    assert text.startswith("Rollover from 2023-2024 to 2024-2025")
    assert "Ready to Rollover: All checks passed" in text


@pytest.mark.asyncio
async def test_student_enrollment_tool_without_current(mcp_backend):
    text = await _tool(server.get_student_enrollment)("s1")

    assert text == "Student s1 has no current enrollment."


@pytest.mark.asyncio
async def test_missing_token_is_authentication_error(monkeypatch):
    monkeypatch.setattr(server, "_client", None)
    monkeypatch.delenv("STUDENTLY_API_TOKEN", raising=False)
    monkeypatch.delenv("STUDENTLY_TIMEOUT", raising=False)

    text = await _tool(server.list_academic_years)()

    assert text.startswith("Authentication error:")
