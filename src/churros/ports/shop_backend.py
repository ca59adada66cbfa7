"""Hosted backend interface - tables plus admin auth."""

from typing import Any, Protocol

# Column -> value. Plain values mean equality; tuples are (operator, value) and
# a list of tuples puts several conditions on one column,
# e.g. {"is_active": True, "scheduled_at": ("lte", "2024-01-10T09:00:00+00:00")}
Filters = dict[str, Any]


class ShopBackend(Protocol):
    """Interface for the shop's hosted relational backend."""

    def select(
        self,
        table: str,
        filters: Filters | None = None,
        columns: str = "*",
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Fetch rows matching the filters."""
        ...

    def insert(self, table: str, rows: list[dict]) -> list[dict]:
        """Insert rows and return them as stored."""
        ...

    def update(self, table: str, values: dict, filters: Filters) -> list[dict]:
        """Patch rows matching the filters."""
        ...

    def delete(self, table: str, filters: Filters) -> None:
        """Delete rows matching the filters."""
        ...

    def create_auth_user(self, email: str, password: str, metadata: dict) -> str:
        """Create a confirmed login and return its user id."""
        ...

    def delete_auth_user(self, user_id: str) -> None:
        """Remove a login."""
        ...
