"""PlanetScale REST API client."""

from .client import (
    AlreadyExistsError,
    AuthenticationError,
    NotFoundError,
    PlanetScaleClient,
    PlanetScaleConnectionError,
    PlanetScaleError,
    RateLimitedError,
)
from .models import Database, Password

__all__ = [
    "AlreadyExistsError",
    "AuthenticationError",
    "Database",
    "NotFoundError",
    "Password",
    "PlanetScaleClient",
    "PlanetScaleConnectionError",
    "PlanetScaleError",
    "RateLimitedError",
]
