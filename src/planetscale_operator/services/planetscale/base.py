"""PlanetScale service interface consumed by the external clients."""

from __future__ import annotations

from typing import Protocol

from ...utils.context import Context
from .models import Database, Password


class PlanetScaleService(Protocol):
    """Protocol defining the PlanetScale operations the operator uses."""

    def get_database(self, ctx: Context, organization: str, name: str) -> Database:
        """Get a database; raises NotFoundError if it does not exist."""
        ...

    def create_database(
        self,
        ctx: Context,
        organization: str,
        name: str,
        region: str | None = None,
        notes: str | None = None,
    ) -> Database:
        """Create a database."""
        ...

    def delete_database(self, ctx: Context, organization: str, name: str) -> None:
        """Delete a database."""
        ...

    def get_password(
        self, ctx: Context, organization: str, database: str, branch: str, password_id: str
    ) -> Password:
        """Get a branch password; raises NotFoundError if it does not exist."""
        ...

    def list_passwords(self, ctx: Context, organization: str, database: str, branch: str) -> list[Password]:
        """List the passwords of a branch."""
        ...

    def create_password(
        self,
        ctx: Context,
        organization: str,
        database: str,
        branch: str,
        name: str,
        role: str | None = None,
    ) -> Password:
        """Create a branch password; the response carries the plain text."""
        ...

    def delete_password(
        self, ctx: Context, organization: str, database: str, branch: str, password_id: str
    ) -> None:
        """Delete a branch password."""
        ...

    def close(self) -> None:
        ...
