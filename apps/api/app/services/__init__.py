"""Service layer modules."""

from app.services.org_service import (
    create_org,
    get_org_by_id,
)

# Import service modules (not individual functions) for cleaner access
from app.services import onboarding_log_service
from app.services import verification_session_service

__all__ = [
    # Org service
    "create_org",
    "get_org_by_id",
    # Modules
    "onboarding_log_service",
    "verification_session_service",
]
