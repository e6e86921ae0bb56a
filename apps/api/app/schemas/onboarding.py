"""Onboarding request/response schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.db.enums import OnboardingKind, Portal


class IndividualIdentity(BaseModel):
    """Identity fields forwarded to the provider for individual onboarding.

    Missing names and email fall back to the caller's user profile.
    """

    email: str | None = None
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    nationality: str | None = Field(default=None, max_length=10)
    country_of_residence: str | None = Field(default=None, max_length=10)
    place_of_birth: str | None = Field(default=None, max_length=10)
    id_issuing_country: str | None = Field(default=None, max_length=10)
    date_of_birth: date | None = None
    gender: str | None = Field(default=None, max_length=20)
    government_id_number: str | None = Field(default=None, max_length=100)
    id_type: str | None = Field(default=None, max_length=50)


class StartOnboardingRequest(BaseModel):
    organization_id: UUID
    portal: Portal
    kind: OnboardingKind
    company_name: str | None = Field(default=None, max_length=255)
    identity: IndividualIdentity | None = None

    @model_validator(mode="after")
    def _check_entity_fields(self) -> "StartOnboardingRequest":
        if self.kind == OnboardingKind.CORPORATE and self.identity is not None:
            raise ValueError("identity is only accepted for INDIVIDUAL onboarding")
        if self.kind == OnboardingKind.INDIVIDUAL and self.company_name is not None:
            raise ValueError("company_name is only accepted for CORPORATE onboarding")
        return self


class OnboardingTarget(BaseModel):
    """Identifies the organization/portal pair for sync and retry."""

    organization_id: UUID
    portal: Portal


class OnboardingLinkRead(BaseModel):
    verify_link: str
    request_id: str
    expires_in: int
    organization_type: str
    status: str
    resumed: bool = False


class OnboardingStatusRead(BaseModel):
    organization_id: UUID
    portal: Portal
    onboarding_status: str
    session_status: str
    substatus: str | None = None
    request_id: str | None = None
    verify_link: str | None = None
    verify_link_expires_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None


class OnboardingSyncRead(BaseModel):
    request_id: str
    provider_status: str
    session_status: str
    substatus: str | None = None
    onboarding_status: str
