"""Async HTTP client for the courseware API."""
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None,
                 request_id: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        self.request_id = request_id
        self.details = details
        super().__init__(message)

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]
            return cls(
                response.status_code,
                error.get("message") or response.reason_phrase,
                code=error.get("code"),
                request_id=body.get("requestId"),
                details=error.get("details"),
            )
        if isinstance(body, dict) and "detail" in body:
            return cls(response.status_code, str(body["detail"]))
        return cls(response.status_code, response.text or response.reason_phrase)


class CoursewareClient:
    """Thin wrapper over ``httpx.AsyncClient`` with one method per endpoint.

    Use as an async context manager, or call :meth:`aclose` when done.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.token = token
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "CoursewareClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def request(self, method: str, path: str, **kwargs) -> Any:
        response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        if response.is_error:
            error = ApiError.from_response(response)
            logger.warning(f"{method} {path} failed with {error.status_code}: {error.message}")
            raise error
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Auth

    async def login(self, email: str, password: str) -> str:
        """Log in and keep the access token for later requests."""
        data = await self.request("POST", "/auth/login", data={"username": email, "password": password})
        self.token = data["access_token"]
        return self.token

    async def register(self, email: str, password: str, full_name: Optional[str] = None) -> Dict[str, Any]:
        return await self.request("POST", "/auth/register",
                                  json={"email": email, "password": password, "full_name": full_name})

    async def me(self) -> Dict[str, Any]:
        return await self.request("GET", "/auth/me")

    # Courses

    async def create_course(self, name: str, slug: str, settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("POST", "/courses", json={"name": name, "slug": slug, "settings": settings or {}})

    async def list_courses(self) -> List[Dict[str, Any]]:
        return await self.request("GET", "/courses")

    async def update_course_settings(self, course_id: str, **settings) -> Dict[str, Any]:
        return await self.request("PATCH", f"/courses/{course_id}/settings", json=settings)

    async def enroll(self, course_id: str, email: str, role: str) -> Dict[str, Any]:
        return await self.request("POST", f"/courses/{course_id}/enrollments", json={"email": email, "role": role})

    # Assignments

    async def list_assignments(self, course_id: str) -> List[Dict[str, Any]]:
        return await self.request("GET", f"/courses/{course_id}/assignments")

    async def module_tree(self, course_id: str) -> Dict[str, Any]:
        return await self.request("GET", f"/courses/{course_id}/assignments/tree")

    async def create_assignment(self, course_id: str, name: str = "New Assignment",
                                module_path: Optional[List[str]] = None) -> Dict[str, Any]:
        return await self.request("POST", f"/courses/{course_id}/assignments",
                                  json={"name": name, "module_path": module_path or []})

    async def get_assignment(self, assignment_id: str) -> Dict[str, Any]:
        return await self.request("GET", f"/assignments/{assignment_id}")

    async def update_assignment(self, assignment_id: str, **changes) -> Dict[str, Any]:
        return await self.request("PATCH", f"/assignments/{assignment_id}", json=changes)

    async def save_content(self, assignment_id: str, content: Any) -> Dict[str, Any]:
        """Save the editor document; ``content`` may be a dict or its JSON string."""
        if not isinstance(content, str):
            content = json.dumps(content, ensure_ascii=False)
        return await self.request("PUT", f"/assignments/{assignment_id}/content", json={"content": content})

    async def move_assignment(self, assignment_id: str, module_path: List[str], index: int) -> Dict[str, Any]:
        return await self.request("POST", f"/assignments/{assignment_id}/move",
                                  json={"module_path": module_path, "index": index})

    async def delete_assignment(self, assignment_id: str) -> None:
        await self.request("DELETE", f"/assignments/{assignment_id}")

    # Submissions

    async def get_my_submission(self, assignment_id: str) -> Optional[Dict[str, Any]]:
        return await self.request("GET", f"/assignments/{assignment_id}/submission")

    async def save_answers(self, assignment_id: str, values: Dict[str, List[str]]) -> Dict[str, Any]:
        return await self.request("PUT", f"/assignments/{assignment_id}/submission", json={"values": values})

    async def submit(self, assignment_id: str, values: Optional[Dict[str, List[str]]] = None) -> Dict[str, Any]:
        return await self.request("POST", f"/assignments/{assignment_id}/submission/submit", json={"values": values})

    async def check_answer(self, assignment_id: str, block_id: str, selected: List[str]) -> Dict[str, Any]:
        return await self.request("POST", f"/assignments/{assignment_id}/blocks/{block_id}/check",
                                  json={"selected": selected})

    async def list_submissions(self, assignment_id: str) -> List[Dict[str, Any]]:
        return await self.request("GET", f"/assignments/{assignment_id}/submissions")

    # Grading

    async def ensure_grader(self, assignment_id: str, student_id: int) -> Dict[str, Any]:
        return await self.request("POST", f"/assignments/{assignment_id}/graders", json={"student_id": student_id})

    async def update_grader(self, submission_id: str, **changes) -> Dict[str, Any]:
        return await self.request("PATCH", f"/submissions/{submission_id}/grader", json=changes)

    async def save_rubric(self, submission_id: str, values: List[float]) -> Dict[str, Any]:
        return await self.request("PUT", f"/submissions/{submission_id}/rubric", json={"values": values})

    async def gradebook(self, course_id: str) -> Dict[str, Any]:
        return await self.request("GET", f"/courses/{course_id}/gradebook")

    async def my_grades(self, course_id: str) -> Dict[str, Any]:
        return await self.request("GET", f"/courses/{course_id}/grades/me")

    # Assistant

    async def list_chat_sessions(self, assignment_id: str) -> List[Dict[str, Any]]:
        return await self.request("GET", "/ai/chat/sessions", params={"assignmentId": assignment_id})

    async def create_chat_session(self, assignment_id: str, title: Optional[str] = None) -> Dict[str, Any]:
        return await self.request("POST", "/ai/chat/sessions", json={"assignment_id": assignment_id, "title": title})

    async def get_chat_session(self, session_id: str) -> Dict[str, Any]:
        return await self.request("GET", f"/ai/chat/sessions/{session_id}")

    async def delete_chat_session(self, session_id: str) -> None:
        await self.request("DELETE", f"/ai/chat/sessions/{session_id}")
