"""External client for Database resources."""

from __future__ import annotations

import logging
from typing import Any

from ..constants import API_VERSION, DATABASE_GROUP, KIND_DATABASE, PLURAL_DATABASES
from ..managed import Creation, ExternalUpdate, ManagedResource, Observation
from ..services.planetscale.base import PlanetScaleService
from ..services.planetscale.client import AlreadyExistsError, NotFoundError
from ..services.planetscale.models import Database
from ..utils.context import Context

logger = logging.getLogger(__name__)


class DatabaseResource(ManagedResource):
    """A PlanetScale database managed from the cluster."""

    GROUP = DATABASE_GROUP
    VERSION = API_VERSION
    KIND = KIND_DATABASE
    PLURAL = PLURAL_DATABASES

    @property
    def organization(self) -> str:
        return self.for_provider.get("organization", "")

    @property
    def region(self) -> str | None:
        return self.for_provider.get("region") or None

    @property
    def notes(self) -> str | None:
        return self.for_provider.get("notes") or None

    @property
    def database_name(self) -> str:
        """Name of the external database: the external name, else the resource name."""
        return self.external_name or self.name


def _at_provider(db: Database) -> dict[str, Any]:
    return {
        "id": db.id,
        "state": db.state,
        "region": db.region,
        "htmlUrl": db.html_url,
        "createdAt": db.created_at,
    }


def _drift(mg: DatabaseResource, db: Database) -> list[str]:
    drift = []
    if mg.region and db.region and mg.region != db.region:
        drift.append("region")
    if mg.notes is not None and mg.notes != db.notes:
        drift.append("notes")
    return drift


class DatabaseClient:
    """Observes, creates and deletes PlanetScale databases.

    A database has no remotely mutable fields, so Update does nothing and
    differences are reported as drift.
    """

    def __init__(self, service: PlanetScaleService) -> None:
        self.service = service

    def observe(self, ctx: Context, mg: DatabaseResource) -> Observation:
        try:
            db = self.service.get_database(ctx, mg.organization, mg.database_name)
        except NotFoundError:
            return Observation(exists=False)

        drift = _drift(mg, db)
        return Observation(
            exists=True,
            up_to_date=not drift,
            ready=db.ready,
            external_name=db.name,
            at_provider=_at_provider(db),
            drift=drift,
        )

    def create(self, ctx: Context, mg: DatabaseResource) -> Creation:
        name = mg.database_name
        try:
            db = self.service.create_database(ctx, mg.organization, name, region=mg.region, notes=mg.notes)
        except AlreadyExistsError:
            # A previous attempt got through; adopt what is there
            logger.info(f"Database {name} already exists in {mg.organization}")
            db = self.service.get_database(ctx, mg.organization, name)
        return Creation(external_name=db.name, at_provider=_at_provider(db))

    def update(self, ctx: Context, mg: DatabaseResource) -> ExternalUpdate:
        return ExternalUpdate()

    def delete(self, ctx: Context, mg: DatabaseResource) -> None:
        # Create names the database the same way, so an unbound name still finds it
        name = mg.database_name
        try:
            self.service.delete_database(ctx, mg.organization, name)
        except NotFoundError:
            logger.info(f"Database {name} already deleted")

    def close(self) -> None:
        self.service.close()
