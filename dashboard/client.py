"""HTTP client for the user admin API.

Mirrors what the dashboard does with the service: keeps the bearer token
returned by login/registration, sends it with every call, and forgets it as
soon as the API answers 401.
"""

import logging
from typing import Any

import httpx

from .config import settings
from .token_store import TokenStore

logger = logging.getLogger(__name__)

DEFAULT_NEW_USER_PASSWORD = "password123"


class APIError(Exception):
    """A non-2xx answer from the API, carrying its ``error`` message."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class DashboardClient:
    """Synchronous client for the user admin API."""

    def __init__(
        self,
        base_url: str = settings.ADMIN_API_URL,
        token_store: TokenStore | None = None,
        timeout: float = settings.ADMIN_DASHBOARD_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.token_store = token_store or TokenStore(settings.ADMIN_DASHBOARD_TOKEN_FILE)
        self._http = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self) -> None:
        self._http.close()

    @property
    def is_authenticated(self) -> bool:
        return self.token_store.load() is not None

    # ==================== Transport ====================

    def _request(self, method: str, path: str, *, auth: bool = True, **kwargs) -> dict[str, Any]:
        headers = kwargs.pop("headers", {})
        if auth:
            token = self.token_store.load()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        response = self._http.request(method, path, headers=headers, **kwargs)

        if response.status_code == 401 and auth:
            # Expired or revoked: drop the token so the next run asks for a login
            self.token_store.clear()

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            message = body.get("error") if isinstance(body, dict) else None
            logger.debug("%s %s -> %s %s", method, path, response.status_code, message)
            raise APIError(response.status_code, message or response.reason_phrase)
        return body

    # ==================== Authentication ====================

    def login(self, email: str, password: str) -> dict:
        body = self._request("POST", "/auth/login", auth=False, json={"email": email, "password": password})
        self.token_store.save(body["token"])
        return body["user"]

    def register(self, email: str, password: str, first_name: str, last_name: str) -> dict:
        body = self._request(
            "POST",
            "/auth/register",
            auth=False,
            json={"email": email, "password": password, "firstName": first_name, "lastName": last_name},
        )
        self.token_store.save(body["token"])
        return body["user"]

    def logout(self) -> None:
        try:
            if self.is_authenticated:
                self._request("POST", "/auth/logout")
        finally:
            self.token_store.clear()

    def me(self) -> dict:
        return self._request("GET", "/auth/me")["user"]

    # ==================== Users ====================

    def list_users(
        self,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
        status: str = "all",
    ) -> dict:
        """One page of users: ``{"users": [...], "count": n, "pagination": {...}}``."""
        params: dict[str, Any] = {"page": page, "limit": limit, "status": status}
        if search:
            params["search"] = search
        return self._request("GET", "/users", params=params)

    def get_user(self, user_id: int) -> dict:
        return self._request("GET", f"/users/{user_id}")["user"]

    def create_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
        is_active: bool = True,
        password: str | None = None,
    ) -> dict:
        payload = {
            "email": email,
            "firstName": first_name,
            "lastName": last_name,
            "isActive": is_active,
            "password": password or DEFAULT_NEW_USER_PASSWORD,
        }
        return self._request("POST", "/users", json=payload)["user"]

    def update_user(self, user_id: int, **changes) -> dict:
        """Update any of ``first_name``, ``last_name``, ``email``, ``is_active``."""
        payload = {_camel(k): v for k, v in changes.items() if v is not None}
        return self._request("PUT", f"/users/{user_id}", json=payload)["user"]

    def delete_user(self, user_id: int) -> str:
        return self._request("DELETE", f"/users/{user_id}")["message"]

    # ==================== Own account ====================

    def update_profile(self, **changes) -> dict:
        payload = {_camel(k): v for k, v in changes.items() if v is not None}
        return self._request("PUT", "/users/profile", json=payload)["user"]

    def change_password(self, current_password: str, new_password: str) -> str:
        body = self._request(
            "PUT",
            "/users/password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )
        return body["message"]

    def deactivate_account(self) -> str:
        message = self._request("DELETE", "/users/account")["message"]
        self.token_store.clear()
        return message

    def health(self) -> dict:
        return self._request("GET", "/health", auth=False)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)
