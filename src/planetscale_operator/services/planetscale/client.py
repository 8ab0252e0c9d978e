"""PlanetScale HTTP client."""

from __future__ import annotations

import json
import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from ... import metrics
from ...constants import DEFAULT_API_URL
from ...utils.context import Context
from ...utils.rate_limit import rate_limit_planetscale
from .models import Database, Password

logger = logging.getLogger(__name__)


class PlanetScaleError(Exception):
    """Base exception for PlanetScale API failures."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class PlanetScaleConnectionError(PlanetScaleError):
    """The API could not be reached or the request timed out."""


class AuthenticationError(PlanetScaleError):
    """Credentials were rejected (401/403)."""


class NotFoundError(PlanetScaleError):
    """The requested resource does not exist (404)."""


class AlreadyExistsError(PlanetScaleError):
    """A resource with the requested name already exists."""


class RateLimitedError(PlanetScaleError):
    """The API asked the caller to slow down (429)."""


def _segment(value: str) -> str:
    return quote(value, safe="")


class PlanetScaleClient:
    """Synchronous HTTP client for the PlanetScale REST API."""

    def __init__(
        self,
        authorization: str,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            authorization: Value of the Authorization header
            base_url: API base URL
            timeout: Default per-request timeout in seconds
            transport: Optional transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/json",
                "Authorization": authorization,
                "User-Agent": "planetscale-operator",
            },
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> PlanetScaleClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        if response.is_success:
            return response
        status = response.status_code
        code = None
        try:
            payload = response.json()
            detail = payload.get("message", response.text)
            code = payload.get("code")
        except (json.JSONDecodeError, AttributeError):
            detail = response.text
        if status in (401, 403):
            raise AuthenticationError(f"Authentication failed: {detail}", status, code)
        if status == 404 or code == "not_found":
            raise NotFoundError(f"Not found: {detail}", status, code)
        if status == 409 or (status == 422 and "already" in detail.lower()):
            raise AlreadyExistsError(f"Already exists: {detail}", status, code)
        if status == 429:
            metrics.rate_limit_hits_total.labels(api_type="planetscale").inc()
            raise RateLimitedError(f"Rate limited: {detail}", status, code)
        raise PlanetScaleError(f"PlanetScale returned {status}: {detail}", status, code)

    @rate_limit_planetscale
    def request(self, ctx: Context, method: str, path: str, operation: str, **kwargs: Any) -> httpx.Response:
        """Send a request bounded by the context's remaining time.

        Raises:
            ContextCancelledError: If the context is already done
            PlanetScaleError: On any failed request
        """
        ctx.check()
        start_time = time.time()
        result = "error"
        try:
            response = self._client.request(method, path, timeout=ctx.timeout(self.timeout), **kwargs)
            if response.status_code == 404:
                result = "not_found"
            response = self._handle_response(response)
            result = "success"
            return response
        except httpx.TimeoutException as exc:
            raise PlanetScaleConnectionError(f"Request to {self.base_url} timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise PlanetScaleConnectionError(f"Cannot connect to {self.base_url}: {exc}") from exc
        finally:
            metrics.api_call_total.labels(api_type="planetscale", operation=operation, result=result).inc()
            metrics.api_call_duration_seconds.labels(api_type="planetscale", operation=operation).observe(
                time.time() - start_time
            )

    @staticmethod
    def _database_path(organization: str, database: str | None = None) -> str:
        path = f"/organizations/{_segment(organization)}/databases"
        if database is not None:
            path += f"/{_segment(database)}"
        return path

    def _passwords_path(self, organization: str, database: str, branch: str) -> str:
        return f"{self._database_path(organization, database)}/branches/{_segment(branch)}/passwords"

    def get_database(self, ctx: Context, organization: str, name: str) -> Database:
        response = self.request(ctx, "GET", self._database_path(organization, name), "get_database")
        return Database.from_api(response.json())

    def create_database(
        self,
        ctx: Context,
        organization: str,
        name: str,
        region: str | None = None,
        notes: str | None = None,
    ) -> Database:
        body: dict[str, Any] = {"name": name}
        if region:
            body["region"] = region
        if notes:
            body["notes"] = notes
        response = self.request(ctx, "POST", self._database_path(organization), "create_database", json=body)
        logger.info(f"Requested creation of database {name} in organization {organization}")
        return Database.from_api(response.json())

    def delete_database(self, ctx: Context, organization: str, name: str) -> None:
        self.request(ctx, "DELETE", self._database_path(organization, name), "delete_database")
        logger.info(f"Requested deletion of database {name} in organization {organization}")

    def get_password(
        self, ctx: Context, organization: str, database: str, branch: str, password_id: str
    ) -> Password:
        path = f"{self._passwords_path(organization, database, branch)}/{_segment(password_id)}"
        response = self.request(ctx, "GET", path, "get_password")
        return Password.from_api(response.json())

    def list_passwords(self, ctx: Context, organization: str, database: str, branch: str) -> list[Password]:
        """List every password of a branch, following pagination."""
        path = self._passwords_path(organization, database, branch)
        passwords: list[Password] = []
        page: int | None = 1
        while page is not None:
            response = self.request(ctx, "GET", path, "list_passwords", params={"page": page, "per_page": 100})
            data = response.json()
            passwords.extend(Password.from_api(item) for item in data.get("data", []))
            page = data.get("next_page")
        return passwords

    def create_password(
        self,
        ctx: Context,
        organization: str,
        database: str,
        branch: str,
        name: str,
        role: str | None = None,
    ) -> Password:
        body: dict[str, Any] = {"name": name}
        if role:
            body["role"] = role
        path = self._passwords_path(organization, database, branch)
        response = self.request(ctx, "POST", path, "create_password", json=body)
        password = Password.from_api(response.json())
        logger.info(f"Created password {password.id} on {database}/{branch}")
        return password

    def delete_password(
        self, ctx: Context, organization: str, database: str, branch: str, password_id: str
    ) -> None:
        path = f"{self._passwords_path(organization, database, branch)}/{_segment(password_id)}"
        self.request(ctx, "DELETE", path, "delete_password")
        logger.info(f"Requested deletion of password {password_id} on {database}/{branch}")
