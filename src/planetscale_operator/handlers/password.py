"""External client for branch Password resources."""

from __future__ import annotations

import logging
from typing import Any

from ..constants import (
    ANNOTATION_EXTERNAL_NAME,
    API_VERSION,
    BRANCH_GROUP,
    DEFAULT_PASSWORD_ROLE,
    KIND_PASSWORD,
    PLURAL_PASSWORDS,
)
from ..managed import ConnectionDetails, Creation, ExternalUpdate, ManagedResource, Observation
from ..services.planetscale.base import PlanetScaleService
from ..services.planetscale.client import NotFoundError
from ..services.planetscale.models import Password
from ..utils.context import Context
from ..utils.errors import ExternalResourceLostError

logger = logging.getLogger(__name__)


class PasswordResource(ManagedResource):
    """A password on a PlanetScale database branch.

    The external password's display name is the resource name; its ID,
    assigned by PlanetScale on creation, becomes the external name.
    """

    GROUP = BRANCH_GROUP
    VERSION = API_VERSION
    KIND = KIND_PASSWORD
    PLURAL = PLURAL_PASSWORDS

    @property
    def organization(self) -> str:
        return self.for_provider.get("organization", "")

    @property
    def database(self) -> str:
        return self.for_provider.get("database", "")

    @property
    def branch(self) -> str:
        return self.for_provider.get("branch", "")

    @property
    def role(self) -> str:
        return self.for_provider.get("role") or DEFAULT_PASSWORD_ROLE


def _at_provider(password: Password) -> dict[str, Any]:
    return {
        "id": password.id,
        "name": password.name,
        "role": password.role,
        "username": password.username,
        "accessHostUrl": password.access_host_url,
    }


def connection_details(mg: PasswordResource, password: Password) -> ConnectionDetails:
    """Build the connection secret contents for a freshly created password."""
    details: ConnectionDetails = {
        "username": (password.username or password.id).encode("utf-8"),
        "database": mg.database.encode("utf-8"),
    }
    if password.access_host_url:
        details["host"] = password.access_host_url.encode("utf-8")
    if password.plain_text:
        details["password"] = password.plain_text.encode("utf-8")
    return details


class PasswordClient:
    """Observes, creates and deletes branch passwords.

    The plain text is only returned when a password is created, so it is
    published once and never read back.
    """

    def __init__(self, service: PlanetScaleService) -> None:
        self.service = service

    def _find(self, ctx: Context, mg: PasswordResource) -> Password | None:
        if mg.external_name:
            try:
                return self.service.get_password(ctx, mg.organization, mg.database, mg.branch, mg.external_name)
            except NotFoundError:
                return None

        # No ID bound yet: look for a password created under our display name
        for password in self.service.list_passwords(ctx, mg.organization, mg.database, mg.branch):
            if password.name == mg.name:
                return password
        return None

    def observe(self, ctx: Context, mg: PasswordResource) -> Observation:
        password = self._find(ctx, mg)
        if password is None:
            return Observation(exists=False)

        drift = []
        if password.name != mg.name:
            drift.append("name")
        if password.role and password.role != mg.role:
            drift.append("role")
        return Observation(
            exists=True,
            up_to_date=not drift,
            ready=True,
            external_name=password.id,
            at_provider=_at_provider(password),
            drift=drift,
        )

    def create(self, ctx: Context, mg: PasswordResource) -> Creation:
        if mg.external_name:
            # IDs are assigned by PlanetScale, so a vanished password cannot be recreated under its old ID
            raise ExternalResourceLostError(
                f"password {mg.external_name} no longer exists and cannot be recreated under the same ID; "
                f"remove the {ANNOTATION_EXTERNAL_NAME} annotation to create a new one"
            )
        password = self.service.create_password(
            ctx, mg.organization, mg.database, mg.branch, mg.name, role=mg.role
        )
        return Creation(
            external_name=password.id,
            connection_details=connection_details(mg, password),
            at_provider=_at_provider(password),
        )

    def update(self, ctx: Context, mg: PasswordResource) -> ExternalUpdate:
        return ExternalUpdate()

    def delete(self, ctx: Context, mg: PasswordResource) -> None:
        password_id = mg.external_name
        if not password_id:
            # Created but never bound: find it by display name
            password = self._find(ctx, mg)
            if password is None:
                return
            password_id = password.id
        try:
            self.service.delete_password(ctx, mg.organization, mg.database, mg.branch, password_id)
        except NotFoundError:
            logger.info(f"Password {password_id} already deleted")

    def close(self) -> None:
        self.service.close()
