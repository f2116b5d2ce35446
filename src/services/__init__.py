"""Services package."""
from src.services import (
    authorization_gate,
    permission_cache,
    permission_resolver,
    rbac_seed_service,
    rbac_service,
)

__all__ = [
    "authorization_gate",
    "permission_cache",
    "permission_resolver",
    "rbac_seed_service",
    "rbac_service",
]
