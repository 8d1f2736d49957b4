# tests/conftest.py

import copy
import inspect
import json

import httpx
import pytest
import pytest_asyncio

from studently_rollover.client import StudentlyClient
from studently_rollover.session import TokenSession

BASE_URL = "http://studently.test/api"
SCHOOL_ID = "school-1"

YEARS = [
    {
        "id": "y2023",
        "name": "2023-2024",
        "start_date": "2023-09-01",
        "end_date": "2024-06-30",
        "is_current": True,
        "is_next": False,
    },
    {
        "id": "y2024",
        "name": "2024-2025",
        "start_date": "2024-09-01",
        "end_date": "2025-06-30",
        "is_current": False,
        "is_next": False,
    },
]

PREVIEW = {
    "current_year": "2023-2024",
    "next_year": "2024-2025",
    "students": {
        "total_active": 120,
        "graduating": 15,
        "by_status": {"pending": 100, "retained": 5},
    },
    "marking_periods": {"current_year_total": 6, "next_year_existing": 0},
    "teachers": {"current_assignments": 40},
}

EXECUTE_RESULT = {
    "success": True,
    "duration_ms": 1200,
    "students": {"promoted": 10, "retained": 2, "graduated": 1},
}


class FakeBackend:
    """Route table standing in for the Studently REST API."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, json_body=None, status=200, handler=None):
        """Register a canned JSON response, or a (possibly async) handler."""
        if handler is None:

            def handler(request, _body=json_body, _status=status):
                return httpx.Response(_status, json=copy.deepcopy(_body))

        self.routes[(method, path)] = handler

    async def handle(self, request):
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/api"):
            path = path[len("/api"):]
        handler = self.routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404, json={"error": f"No route for {request.method} {path}"})
        response = handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response

    def calls(self, method, path):
        return [
            r
            for r in self.requests
            if r.method == method and r.url.path == f"/api{path}"
        ]

    @staticmethod
    def body(request):
        return json.loads(request.content)


def make_client(backend, token="test-token", timeout=5.0):
    return StudentlyClient(
        BASE_URL,
        TokenSession(token),
        timeout=timeout,
        transport=httpx.MockTransport(backend.handle),
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def rollover_backend(backend):
    backend.add("GET", "/academics/academic-years", {"success": True, "data": YEARS})
    backend.add("POST", "/rollover/preview", PREVIEW)
    backend.add("POST", "/rollover/check", {"is_valid": True})
    backend.add("POST", "/rollover/execute", EXECUTE_RESULT)
    return backend


@pytest_asyncio.fixture
async def client(backend):
    client = make_client(backend)
    yield client
    await client.close()
