"""SQLAlchemy ORM models."""

from app.db.models.auth import User
from app.db.models.onboarding_logs import OnboardingLog
from app.db.models.organizations import Organization
from app.db.models.verification import VerificationSession

__all__ = [
    "OnboardingLog",
    "Organization",
    "User",
    "VerificationSession",
]
