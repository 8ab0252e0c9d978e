"""Builder for PlanetScale service instances."""

from __future__ import annotations

import json

import httpx

from ..constants import DEFAULT_API_URL
from ..services.planetscale.client import PlanetScaleClient


def parse_authorization(credentials: bytes) -> str:
    """Derive the Authorization header value from credential bytes.

    Credentials are either a raw OAuth access token or a JSON service token
    document with ``serviceTokenId`` and ``serviceToken``.

    Raises:
        ValueError: If the credentials are empty or malformed
    """
    try:
        text = credentials.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise ValueError("credentials are not valid UTF-8") from e

    if not text:
        raise ValueError("credentials are empty")

    if text.startswith("{"):
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError("credentials are not a valid service token document") from e
        token_id = document.get("serviceTokenId")
        token = document.get("serviceToken")
        if not token_id or not token:
            raise ValueError("service token document requires serviceTokenId and serviceToken")
        return f"{token_id}:{token}"

    if any(ch.isspace() for ch in text):
        raise ValueError("access token must not contain whitespace")
    return f"Bearer {text}"


def create_service_from_credentials(
    credentials: bytes,
    base_url: str = DEFAULT_API_URL,
    timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
) -> PlanetScaleClient:
    """Create a PlanetScale client from resolved credentials.

    Args:
        credentials: Credential bytes resolved from the ProviderConfig
        base_url: PlanetScale API base URL
        timeout: Default per-request timeout in seconds
        transport: Optional HTTP transport

    Returns:
        Configured PlanetScale client

    Raises:
        ValueError: If the credentials are malformed
    """
    return PlanetScaleClient(
        authorization=parse_authorization(credentials),
        base_url=base_url,
        timeout=timeout,
        transport=transport,
    )
