# gmhs/pwa/api_client.py
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


async def _force_fresh(request: httpx.Request) -> None:
    request.headers.update(NO_CACHE_HEADERS)
    if request.method == "GET":
        request.url = request.url.copy_merge_params({"_t": str(int(time.time() * 1000))})
    logger.info(f"API request (no-cache): {request.method} {request.url}")


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    if response.is_error:
        logger.error(f"API error: {request.method} {request.url} -> {response.status_code}")
    else:
        logger.info(f"API response (fresh): {request.method} {request.url}")


class SchoolApiClient:
    """
    Typed access to the school API. Every request carries no-cache headers
    and GETs get a ``_t`` timestamp so no cache on the way can answer them.
    Methods return the decoded JSON body and raise ``httpx.HTTPStatusError``
    on error statuses.
    """

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            headers=NO_CACHE_HEADERS,
            timeout=timeout,
            event_hooks={"request": [_force_fresh], "response": [_log_response]},
        )
        if token:
            self.set_token(token)

    def set_token(self, token: str) -> None:
        self._client.headers["Authorization"] = f"Bearer {token}"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SchoolApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        if "params" in kwargs:
            kwargs["params"] = {k: v for k, v in kwargs["params"].items() if v is not None}
        response = await self._client.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json()

    # ===== Auth =====

    async def signup(self, name: str, email: str, password: str, role: str) -> Dict:
        return await self._request("POST", "/api/auth/signup", json={
            "name": name, "email": email, "password": password, "role": role,
        })

    async def signin(self, email: str, password: str) -> Dict:
        """Signs in and keeps the returned token for the following requests."""
        body = await self._request("POST", "/api/auth/signin", json={"email": email, "password": password})
        self.set_token(body["accessToken"])
        return body

    async def me(self) -> Dict:
        return await self._request("GET", "/api/auth/me")

    # ===== Students =====

    async def get_students(self, teacher_id: str) -> List[Dict]:
        body = await self._request("GET", "/api/students", params={"teacherId": teacher_id})
        return body["students"]

    async def create_student(self, name: str, class_name: str, parent_id: str, teacher_id: str) -> Dict:
        return await self._request("POST", "/api/students", json={
            "name": name, "className": class_name, "parentId": parent_id, "teacherId": teacher_id,
        })

    async def update_student(self, student_id: str, name: str, class_name: str, parent_id: str) -> Dict:
        return await self._request("PUT", f"/api/students/{student_id}", json={
            "name": name, "className": class_name, "parentId": parent_id,
        })

    async def delete_student(self, student_id: str) -> Dict:
        return await self._request("DELETE", f"/api/students/{student_id}")

    # ===== Actions =====

    async def get_actions(self, teacher_id: Optional[str] = None, student_id: Optional[str] = None) -> List[Dict]:
        body = await self._request("GET", "/api/actions", params={"teacherId": teacher_id, "studentId": student_id})
        return body["actions"]

    async def add_action(self, description: str, teacher_id: str, student_id: str) -> Dict:
        return await self._request("POST", "/api/actions", json={
            "description": description, "teacherId": teacher_id, "studentId": student_id,
        })

    # ===== Complaints =====

    async def get_complaints(self, **filters: Optional[str]) -> List[Dict]:
        """Filters: parentId, teacherId, studentId, status."""
        body = await self._request("GET", "/api/complaints", params=filters)
        return body["complaints"]

    async def submit_complaint(self, title: str, description: str, complaint_type: str,
                               student_id: str, parent_id: str) -> Dict:
        return await self._request("POST", "/api/complaints", json={
            "title": title, "description": description, "type": complaint_type,
            "studentId": student_id, "parentId": parent_id,
        })

    async def update_complaint(self, complaint_id: str, status: str, resolution: Optional[str] = None,
                               teacher_id: Optional[str] = None) -> Dict:
        payload = {"complaintId": complaint_id, "status": status}
        if resolution is not None:
            payload["resolution"] = resolution
        if teacher_id is not None:
            payload["teacherId"] = teacher_id
        return await self._request("PUT", "/api/complaints", json=payload)

    # ===== Parents =====

    async def get_parents(self) -> List[Dict]:
        return await self._request("GET", "/api/parents")

    async def get_children(self, parent_id: str) -> List[Dict]:
        body = await self._request("GET", "/api/child", params={"parentId": parent_id})
        return body["students"]

    # ===== Admin =====

    async def get_dashboard(self) -> Dict:
        return await self._request("GET", "/api/admin/dashboard")

    async def get_teachers(self) -> Dict:
        return await self._request("GET", "/api/admin/teachers")

    async def manage_teacher(self, teacher_id: str, action: str, data: Optional[Dict] = None) -> Dict:
        return await self._request("PUT", f"/api/admin/teachers/{teacher_id}", json={
            "action": action, "data": data or {},
        })

    async def delete_teacher(self, teacher_id: str) -> Dict:
        return await self._request("DELETE", f"/api/admin/teachers/{teacher_id}")

    async def get_admin_complaints(self) -> Dict:
        return await self._request("GET", "/api/admin/complaints")
