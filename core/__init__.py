"""
Shared Infrastructure for the Service Marketplace Backend

This package provides:
- Settings loaded from the environment
- The service error taxonomy
- An in-memory datastore with per-record unit-of-work transactions
- Response envelopes and pagination metadata
"""

from .config import Settings, get_settings
from .errors import (
    ServiceError,
    ValidationError,
    NotFound,
    Expired,
    QuotaExhausted,
    InvalidTransition,
    DependencyFailure,
)
from .storage import InMemoryStorage, UnitOfWork

__all__ = [
    "Settings",
    "get_settings",
    "ServiceError",
    "ValidationError",
    "NotFound",
    "Expired",
    "QuotaExhausted",
    "InvalidTransition",
    "DependencyFailure",
    "InMemoryStorage",
    "UnitOfWork",
]
