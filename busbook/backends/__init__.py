"""Backend data service implementations."""

from .base import BackendDataService, IdentityProvider, StaticIdentity, day_range
from .sql import SqlDataService
from .supabase import SupabaseDataService

__all__ = [
    "BackendDataService",
    "IdentityProvider",
    "StaticIdentity",
    "day_range",
    "SqlDataService",
    "SupabaseDataService",
]
