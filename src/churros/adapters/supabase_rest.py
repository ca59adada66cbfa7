"""Supabase adapter - PostgREST and admin auth over HTTP."""

import logging
from typing import Any

import requests

from churros.config import Config, load_config
from churros.ports.shop_backend import Filters

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"
ADMIN_USERS_PATH = "/auth/v1/admin/users"
DEFAULT_TIMEOUT = 30


class BackendError(Exception):
    """Raised when the backend rejects a request."""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


def _encode_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _encode_condition(op: str, operand: Any) -> str:
    if op == "in":
        return "in.(" + ",".join(_encode_value(v) for v in operand) + ")"
    return f"{op}.{_encode_value(operand)}"


def encode_filters(filters: Filters | None) -> dict[str, str | list[str]]:
    """
    Turn {column: value} filters into PostgREST query parameters.

    Plain values become `eq.` (or `is.null` for None); tuples are
    (operator, value) pairs such as ("lte", "2024-01-10"), and a list of
    tuples applies several conditions to one column. The "in" operator
    takes a list.
    """
    params: dict[str, str | list[str]] = {}
    for column, value in (filters or {}).items():
        if isinstance(value, list):
            params[column] = [_encode_condition(op, operand) for op, operand in value]
        elif isinstance(value, tuple):
            params[column] = _encode_condition(*value)
        elif value is None:
            params[column] = "is.null"
        else:
            params[column] = f"eq.{_encode_value(value)}"
    return params


class SupabaseAdapter:
    """
    Supabase HTTP adapter.

    Implements ShopBackend protocol. Uses the service-role key, so row-level
    policies are bypassed; only run it server-side. No business logic.
    """

    def __init__(self, config: Config | None = None, timeout: int = DEFAULT_TIMEOUT):
        self.config = config or load_config()
        self.config.require_backend()
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update(
            {
                "apikey": self.config.supabase_key,
                "Authorization": f"Bearer {self.config.supabase_key}",
                "Content-Type": "application/json",
            }
        )

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.config.supabase_url}{path}"
        logger.debug(f"{method} {path} {kwargs.get('params', '')}")
        try:
            resp = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise BackendError(f"{method} {path} failed: {e}")
        if not resp.ok:
            raise BackendError(
                f"{method} {path} returned {resp.status_code}: {resp.text}",
                status=resp.status_code,
                body=resp.text,
            )
        return resp

    def select(
        self,
        table: str,
        filters: Filters | None = None,
        columns: str = "*",
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Fetch rows. `order` is "column" or "column.desc"."""
        params = {"select": columns, **encode_filters(filters)}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        return self._request("GET", f"{REST_PATH}/{table}", params=params).json()

    def insert(self, table: str, rows: list[dict]) -> list[dict]:
        if not rows:
            return []
        resp = self._request(
            "POST",
            f"{REST_PATH}/{table}",
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return resp.json()

    def update(self, table: str, values: dict, filters: Filters) -> list[dict]:
        if not filters:
            raise ValueError("Refusing to update without filters")
        resp = self._request(
            "PATCH",
            f"{REST_PATH}/{table}",
            params=encode_filters(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return resp.json()

    def delete(self, table: str, filters: Filters) -> None:
        if not filters:
            raise ValueError("Refusing to delete without filters")
        self._request("DELETE", f"{REST_PATH}/{table}", params=encode_filters(filters))

    def create_auth_user(self, email: str, password: str, metadata: dict) -> str:
        """Create an email-confirmed user through the admin API."""
        resp = self._request(
            "POST",
            ADMIN_USERS_PATH,
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": metadata,
            },
        )
        data = resp.json()
        # Older GoTrue versions wrap the user object
        user = data.get("user", data)
        if not user.get("id"):
            raise BackendError("Admin API returned no user id", status=resp.status_code, body=resp.text)
        return user["id"]

    def delete_auth_user(self, user_id: str) -> None:
        self._request("DELETE", f"{ADMIN_USERS_PATH}/{user_id}")
