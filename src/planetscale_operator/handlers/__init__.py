"""Reconcilers and external clients for the managed resource kinds."""

# Import handlers to register them - ProviderConfig handlers register themselves via @kopf decorators
from . import provider_config  # noqa: F401
