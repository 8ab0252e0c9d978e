"""Builders for external service handles."""

from .service import create_service_from_credentials

__all__ = ["create_service_from_credentials"]
