"""Studently HTTP client for rollover and enrollment API requests."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, Optional

import httpx

from . import __version__
from .models import EnrollmentCode, RolloverRequest, RolloverStatus
from .parsers import (
    parse_academic_years,
    parse_enrollment,
    parse_enrollment_statistics,
    parse_grade_progression,
    parse_prerequisite_check,
    parse_preview,
    parse_rollover_result,
    parse_students_by_status,
)
from .session import SessionProvider

logger = logging.getLogger(__name__)

AUTH_REQUIRED_MESSAGE = "Authentication required. Please sign in."
SESSION_EXPIRED_MESSAGE = "Session expired"
NETWORK_ERROR_MESSAGE = "Network error. Please check your connection."

ENROLLMENT_UPDATE_FIELDS = frozenset(
    {"grade_level_id", "section_id", "rollover_status", "next_grade_id", "rollover_notes", "end_date"}
)
GRADE_LEVEL_UPDATE_FIELDS = frozenset(
    {"name", "order_index", "base_fee", "next_grade_id", "is_active"}
)


class StudentlyAuthError(Exception):
    """Raised when the client cannot be given credentials at all."""

    pass


class StudentlyAPIError(Exception):
    """Raised when the backend answers with something unexpected."""

    pass


class ErrorKind(str, Enum):
    """Machine-readable category of a failed request."""

    AUTH_REQUIRED = "AUTH_REQUIRED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    NETWORK = "NETWORK"
    HTTP = "HTTP"
    # HTTP succeeded but the envelope says success: false
    REJECTED = "REJECTED"
    UNEXPECTED = "UNEXPECTED"


@dataclass(frozen=True)
class ApiResult:
    """Outcome of a backend call: either ``data`` or an ``error`` message."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    status_code: Optional[int] = None

    @classmethod
    def ok(cls, data: Any = None, status_code: Optional[int] = 200) -> "ApiResult":
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def fail(
        cls,
        error: str,
        error_kind: ErrorKind,
        status_code: Optional[int] = None,
    ) -> "ApiResult":
        return cls(success=False, error=error, error_kind=error_kind, status_code=status_code)


_INVALID_BODY = object()


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return _INVALID_BODY


def _json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


def _update_payload(updates: dict[str, Any], allowed: frozenset, kind: str) -> dict[str, Any]:
    unknown = sorted(set(updates) - allowed)
    if unknown:
        raise ValueError(f"Unknown {kind} field(s): {', '.join(unknown)}")
    if not updates:
        raise ValueError(f"No {kind} fields to update")
    return {name: _json_value(value) for name, value in updates.items()}


def _body_error(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        message = body.get("error") or body.get("message")
        if message:
            return str(message)
    return None


class StudentlyClient:
    """HTTP client for the Studently REST backend."""

    def __init__(
        self,
        base_url: str,
        session: SessionProvider,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Studently client.

        Args:
            base_url: Base URL of the API, including the /api prefix
            session: Provider of bearer tokens and session-expiry handling
            timeout: Seconds before a request is abandoned as a network error
            transport: Optional httpx transport (used to fake the backend in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "User-Agent": f"StudentlyRollover/{__version__}",
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        """Make an authenticated request and unwrap the response envelope.

        Ordinary failures (no token, timeouts, httpx errors, 4xx/5xx,
        ``success: false``) come back as failed results. Only a 2xx answer
        that is not JSON raises.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Request path relative to the API base URL
            json: Optional JSON body
            params: Optional query parameters

        Returns:
            ApiResult with the unwrapped payload or an error message

        Raises:
            StudentlyAPIError: If a successful response has a malformed body
        """
        token = await self.session.get_token()
        if not token:
            return ApiResult.fail(AUTH_REQUIRED_MESSAGE, ErrorKind.AUTH_REQUIRED)

        client = await self._get_client()
        logger.debug("%s %s", method, path)

        try:
            response = await asyncio.wait_for(
                client.request(
                    method,
                    path,
                    json=json,
                    params=params,
                    headers={"Authorization": f"Bearer {token}"},
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("%s %s timed out after %.1fs", method, path, self.timeout)
            return ApiResult.fail(NETWORK_ERROR_MESSAGE, ErrorKind.NETWORK)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            return ApiResult.fail(NETWORK_ERROR_MESSAGE, ErrorKind.NETWORK)
        except httpx.HTTPError as e:
            # e.g. a body that fails its Content-Encoding
            logger.error("%s %s failed: %s", method, path, e)
            return ApiResult.fail(f"Request to {path} failed: {e}", ErrorKind.UNEXPECTED)

        status = response.status_code
        if status == 401:
            await self.session.on_expire()
            return ApiResult.fail(SESSION_EXPIRED_MESSAGE, ErrorKind.SESSION_EXPIRED, status)

        body = _decode_body(response)

        if not response.is_success:
            logger.warning("%s %s returned HTTP %d", method, path, status)
            message = _body_error(body) or f"Request failed ({status})"
            if status == 403:
                kind = ErrorKind.FORBIDDEN
            elif status == 404:
                kind = ErrorKind.NOT_FOUND
            else:
                kind = ErrorKind.HTTP
            return ApiResult.fail(message, kind, status)

        if body is _INVALID_BODY:
            raise StudentlyAPIError(f"Malformed response from {path} (HTTP {status})")

        if isinstance(body, dict) and "success" in body:
            if body["success"] is not True:
                return ApiResult.fail(
                    _body_error(body) or "Request failed", ErrorKind.REJECTED, status
                )
            if "data" in body:
                return ApiResult.ok(body["data"], status)

        return ApiResult.ok(body, status)

    def _parsed(self, result: ApiResult, parser: Callable[[Any], Any]) -> ApiResult:
        if not result.success:
            return result
        try:
            return ApiResult.ok(parser(result.data), result.status_code)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StudentlyAPIError(f"Unexpected response payload: {e!r}") from e

    # Academic years

    async def get_academic_years(self) -> ApiResult:
        """List all academic years of the signed-in user's school."""
        result = await self._request("GET", "/academics/academic-years")
        return self._parsed(result, parse_academic_years)

    # Rollover

    @staticmethod
    def _year_pair(current_year_id: str, next_year_id: str, school_id: str) -> dict[str, str]:
        return {
            "current_year_id": current_year_id,
            "next_year_id": next_year_id,
            "school_id": school_id,
        }

    async def preview_rollover(
        self, current_year_id: str, next_year_id: str, school_id: str
    ) -> ApiResult:
        """Dry-run a rollover between two years.

        Returns:
            ApiResult carrying a RolloverPreview
        """
        result = await self._request(
            "POST",
            "/rollover/preview",
            json=self._year_pair(current_year_id, next_year_id, school_id),
        )
        return self._parsed(result, parse_preview)

    async def check_rollover_prerequisites(
        self, current_year_id: str, next_year_id: str, school_id: str
    ) -> ApiResult:
        """Ask the backend whether a rollover between two years is allowed.

        Returns:
            ApiResult carrying a RolloverPrerequisiteCheck
        """
        result = await self._request(
            "POST",
            "/rollover/check",
            json=self._year_pair(current_year_id, next_year_id, school_id),
        )
        return self._parsed(result, parse_prerequisite_check)

    async def execute_rollover(self, request: RolloverRequest) -> ApiResult:
        """Run the rollover. Not idempotent; never retried.

        Returns:
            ApiResult carrying a RolloverResult
        """
        result = await self._request("POST", "/rollover/execute", json=request.to_dict())
        return self._parsed(result, parse_rollover_result)

    # Enrollment

    async def get_enrollment_history(
        self, student_id: str, include_current: bool = True
    ) -> ApiResult:
        result = await self._request(
            "GET",
            f"/enrollment/student/{student_id}/history",
            params={"include_current": "true" if include_current else "false"},
        )
        return self._parsed(result, lambda data: [parse_enrollment(e) for e in data or []])

    async def get_current_enrollment(self, student_id: str) -> ApiResult:
        """Get a student's current enrollment; data is None when there is none."""
        result = await self._request("GET", f"/enrollment/student/{student_id}/current")
        if result.error_kind == ErrorKind.NOT_FOUND:
            return ApiResult.ok(None, result.status_code)
        return self._parsed(result, lambda data: parse_enrollment(data) if data else None)

    async def create_enrollment(
        self,
        student_id: str,
        academic_year_id: str,
        school_id: str,
        enrollment_code: EnrollmentCode,
        start_date: date,
        grade_level_id: Optional[str] = None,
        section_id: Optional[str] = None,
        next_grade_id: Optional[str] = None,
    ) -> ApiResult:
        """Enroll a student in an academic year.

        Returns:
            ApiResult carrying the new StudentEnrollment (status pending)
        """
        payload: dict[str, Any] = {
            "student_id": student_id,
            "academic_year_id": academic_year_id,
            "school_id": school_id,
            "enrollment_code": enrollment_code.value,
            "start_date": start_date.isoformat(),
        }
        if grade_level_id is not None:
            payload["grade_level_id"] = grade_level_id
        if section_id is not None:
            payload["section_id"] = section_id
        if next_grade_id is not None:
            payload["next_grade_id"] = next_grade_id

        result = await self._request("POST", "/enrollment", json=payload)
        return self._parsed(result, parse_enrollment)

    async def update_enrollment(self, enrollment_id: str, **updates: Any) -> ApiResult:
        """Patch an enrollment record.

        Only the given fields are sent; pass ``None`` to clear one. Accepted
        fields are listed in ``ENROLLMENT_UPDATE_FIELDS``.

        Raises:
            ValueError: On an unknown field or an empty update
        """
        payload = _update_payload(updates, ENROLLMENT_UPDATE_FIELDS, "enrollment")
        result = await self._request("PATCH", f"/enrollment/{enrollment_id}", json=payload)
        return self._parsed(result, parse_enrollment)

    async def set_student_rollover_status(
        self,
        student_id: str,
        academic_year_id: str,
        rollover_status: RolloverStatus,
        next_grade_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ApiResult:
        payload: dict[str, Any] = {
            "student_id": student_id,
            "academic_year_id": academic_year_id,
            "rollover_status": rollover_status.value,
        }
        if next_grade_id is not None:
            payload["next_grade_id"] = next_grade_id
        if notes:
            payload["notes"] = notes

        result = await self._request(
            "PATCH", f"/enrollment/student/{student_id}/rollover-status", json=payload
        )
        return self._parsed(result, parse_enrollment)

    async def bulk_set_rollover_status(
        self,
        academic_year_id: str,
        school_id: str,
        rollover_status: RolloverStatus,
        grade_level_id: Optional[str] = None,
        section_id: Optional[str] = None,
        student_ids: Optional[list[str]] = None,
        next_grade_id: Optional[str] = None,
    ) -> ApiResult:
        """Set the rollover status of every student matching the filters.

        Returns:
            ApiResult carrying the number of updated students
        """
        filters: dict[str, Any] = {}
        if grade_level_id:
            filters["grade_level_id"] = grade_level_id
        if section_id:
            filters["section_id"] = section_id
        if student_ids:
            filters["student_ids"] = list(student_ids)

        payload: dict[str, Any] = {
            "academic_year_id": academic_year_id,
            "school_id": school_id,
            "rollover_status": rollover_status.value,
        }
        if filters:
            payload["filters"] = filters
        if next_grade_id is not None:
            payload["next_grade_id"] = next_grade_id

        result = await self._request("PATCH", "/enrollment/bulk-rollover-status", json=payload)
        return self._parsed(result, lambda data: int(data["updated_count"]))

    async def get_enrollment_statistics(self, academic_year_id: str, school_id: str) -> ApiResult:
        result = await self._request(
            "GET",
            "/enrollment/statistics",
            params={"academic_year_id": academic_year_id, "school_id": school_id},
        )
        return self._parsed(result, parse_enrollment_statistics)

    async def get_students_by_rollover_status(
        self,
        academic_year_id: str,
        school_id: str,
        status: Optional[RolloverStatus] = None,
    ) -> ApiResult:
        params = {"academic_year_id": academic_year_id, "school_id": school_id}
        if status is not None:
            params["status"] = status.value
        result = await self._request("GET", "/enrollment/by-status", params=params)
        return self._parsed(result, parse_students_by_status)

    # Grades

    async def get_grade_progression(self, school_id: str) -> ApiResult:
        """Get the grade progression chain, ordered by grade."""
        result = await self._request("GET", "/grades/progression", params={"school_id": school_id})
        return self._parsed(result, parse_grade_progression)

    async def update_grade_level(self, grade_id: str, **updates: Any) -> ApiResult:
        """Patch a grade level, e.g. ``next_grade_id`` to relink the progression.

        ``next_grade_id=None`` makes the grade terminal.

        Raises:
            ValueError: On an unknown field or an empty update
        """
        payload = _update_payload(updates, GRADE_LEVEL_UPDATE_FIELDS, "grade level")
        return await self._request("PATCH", f"/grades/{grade_id}", json=payload)
