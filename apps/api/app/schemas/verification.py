"""Pydantic records for the verification provider API.

Provider payloads are camelCase; fields are exposed in snake_case with aliases.
Unknown fields are ignored except where a record is stored verbatim
(display areas and their fields), which keep everything they were given.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from app.utils.normalization import normalize_text


ProviderText = Annotated[str | None, BeforeValidator(normalize_text)]


class ProviderModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# Outbound requests
# =============================================================================


class IndividualSessionRequest(ProviderModel):
    """Create an individual (person) onboarding session."""

    email: str
    forename: str
    surname: str
    reference_id: str = Field(alias="referenceId")
    country_of_residence: str | None = Field(default=None, alias="countryOfResidence")
    nationality: str | None = None
    place_of_birth: str | None = Field(default=None, alias="placeOfBirth")
    id_issuing_country: str | None = Field(default=None, alias="idIssuingCountry")
    date_of_birth: str | None = Field(default=None, alias="dateOfBirth")
    gender: str | None = None
    government_id_number: str | None = Field(default=None, alias="governmentIdNumber")
    id_type: str | None = Field(default=None, alias="idType")
    language: str = "EN"
    bypass_id_upload: bool = Field(default=False, alias="bypassIdUpload")
    skip_form_page: bool = Field(default=False, alias="skipFormPage")
    form_id: int | None = Field(default=None, alias="formId")


class CorporateSessionRequest(ProviderModel):
    """Create a corporate (business) onboarding session."""

    email: str
    company_name: str = Field(alias="companyName")
    reference_id: str = Field(alias="referenceId")
    form_name: str | None = Field(default=None, alias="formName")
    form_id: int | None = Field(default=None, alias="formId")


class FormSettings(ProviderModel):
    """Per-form provider settings applied before a session is created."""

    form_id: int = Field(alias="formId")
    liveness_confidence: int = Field(alias="livenessConfidence")
    approve_mode: bool = Field(default=True, alias="approveMode")
    redirect_url: str = Field(alias="redirectUrl")
    kyc_approval_target: str = Field(alias="kycApprovalTarget")
    enabled_registration_email: bool = Field(default=False, alias="enabledRegistrationEmail")


# =============================================================================
# Responses
# =============================================================================


class ProviderSessionLink(ProviderModel):
    """Create/restart response: the provider session id and its hosted link."""

    request_id: str = Field(alias="requestId")
    verify_link: str = Field(alias="verifyLink")
    expired_in: int | None = Field(default=None, alias="expiredIn")
    timestamp: str | None = None


class FormField(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    field_name: str | None = Field(default=None, alias="fieldName")
    field_type: str | None = Field(default=None, alias="fieldType")
    field_value: Any = Field(default=None, alias="fieldValue")
    alias: str | None = None


class DisplayArea(BaseModel):
    """A named group of form fields, stored on the organization verbatim."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    display_area: str = Field(alias="displayArea")
    content: list[FormField] = Field(default_factory=list)

    def as_stored(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


class FormContent(ProviderModel):
    display_areas: list[DisplayArea] = Field(default_factory=list, alias="displayAreas")


class UserProfile(ProviderModel):
    first_name: ProviderText = Field(default=None, alias="firstName")
    middle_name: ProviderText = Field(default=None, alias="middleName")
    last_name: ProviderText = Field(default=None, alias="lastName")
    email: ProviderText = None
    nationality: ProviderText = None
    country_of_residence: ProviderText = Field(default=None, alias="countryOfResidence")
    id_issuing_country: ProviderText = Field(default=None, alias="idIssuingCountry")
    gender: ProviderText = None
    address: ProviderText = None
    date_of_birth: ProviderText = Field(default=None, alias="dateOfBirth")
    government_id_number: ProviderText = Field(default=None, alias="governmentIdNumber")
    id_type: ProviderText = Field(default=None, alias="idType")
    phone_number: ProviderText = Field(default=None, alias="phoneNumber")


class KycRequestInfo(ProviderModel):
    kyc_id: ProviderText = Field(default=None, alias="kycId")


class OcrResult(ProviderModel):
    document_type: ProviderText = Field(default=None, alias="documentType")
    document_number: ProviderText = Field(default=None, alias="documentNumber")


class VerificationDetail(ProviderModel):
    request_id: str = Field(alias="requestId")
    status: str
    substatus: ProviderText = None
    form_content: FormContent | None = Field(default=None, alias="formContent")
    kyc_request_info: KycRequestInfo | None = Field(default=None, alias="kycRequestInfo")


class IndividualVerificationDetail(VerificationDetail):
    kind: Literal["INDIVIDUAL"] = "INDIVIDUAL"
    user_profile: UserProfile | None = Field(default=None, alias="userProfile")
    document_info: dict[str, Any] | None = Field(default=None, alias="documentInfo")
    liveness_check_info: dict[str, Any] | None = Field(default=None, alias="livenessCheckInfo")
    ocr_result: OcrResult | None = Field(default=None, alias="ocrResult")


class CorporateVerificationDetail(VerificationDetail):
    kind: Literal["CORPORATE"] = "CORPORATE"
    company_name: ProviderText = Field(default=None, alias="companyName")
    registration_number: ProviderText = Field(default=None, alias="registrationNumber")


# =============================================================================
# Webhooks
# =============================================================================


class VerificationWebhookEvent(BaseModel):
    """A provider status notification plus the raw payload it came from."""

    request_id: str
    status: str
    substatus: str | None = None
    payload: dict[str, Any]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "VerificationWebhookEvent":
        """Build from a decoded webhook body; raises ValueError on missing keys."""
        request_id = normalize_text(payload.get("requestId"))
        status = normalize_text(payload.get("status"))
        if not request_id or not status:
            raise ValueError("Webhook payload requires requestId and status")
        return cls(
            request_id=request_id,
            status=status,
            substatus=normalize_text(payload.get("substatus")),
            payload=payload,
        )
