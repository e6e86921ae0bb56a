"""Turn a provider verification detail into organization fields.

The provider detail is authoritative for profile data. A few fields (KYC id,
OCR document type/number, document and liveness info) are sometimes only
present on earlier webhook notifications; for those the most recent payload
carrying a value wins.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Iterable, Sequence

from app.db.enums import OrganizationType
from app.schemas.verification import (
    CorporateVerificationDetail,
    DisplayArea,
    IndividualVerificationDetail,
)
from app.utils.normalization import (
    normalize_blank,
    normalize_label,
    normalize_name,
    normalize_text,
    parse_date_value,
)

logger = logging.getLogger(__name__)

BANK_ACCOUNT_AREAS = ("bank account details", "bank account detail")
WEALTH_DECLARATION_AREAS = ("wealth declaration", "wealth declarations")
COMPLIANCE_DECLARATION_AREAS = ("compliance declarations", "compliance declaration")

NET_ASSETS_THRESHOLD_MYR = 3_000_000
ANNUAL_INCOME_THRESHOLD_MYR = 300_000
PORTFOLIO_THRESHOLD_MYR = 1_000_000

COMPANY_SOPHISTICATION_REASON = "Company entity"


@dataclass(frozen=True)
class SophisticationCriterion:
    marker: str
    reason: str
    threshold: int | None = None


# Matched against compliance declaration field names (case-insensitive substring).
SOPHISTICATION_CRITERIA: tuple[SophisticationCriterion, ...] = (
    SophisticationCriterion(
        "(net assets)",
        f"Net personal assets exceeding RM{NET_ASSETS_THRESHOLD_MYR:,}",
        NET_ASSETS_THRESHOLD_MYR,
    ),
    SophisticationCriterion(
        "(annual income)",
        f"Annual income exceeding RM{ANNUAL_INCOME_THRESHOLD_MYR:,}",
        ANNUAL_INCOME_THRESHOLD_MYR,
    ),
    SophisticationCriterion(
        "investment portfolio",
        f"Net personal investment portfolio exceeding RM{PORTFOLIO_THRESHOLD_MYR:,}",
        PORTFOLIO_THRESHOLD_MYR,
    ),
    SophisticationCriterion("(experience categories)", "Relevant capital market experience"),
    SophisticationCriterion("(professional qualification)", "Relevant professional qualification"),
)


@dataclass(frozen=True)
class ExtractedVerificationData:
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    nationality: str | None = None
    country: str | None = None
    id_issuing_country: str | None = None
    gender: str | None = None
    address: str | None = None
    date_of_birth: date | None = None
    document_type: str | None = None
    document_number: str | None = None
    phone_number: str | None = None
    kyc_id: str | None = None
    bank_account_details: dict | None = None
    wealth_declaration: dict | None = None
    compliance_declaration: dict | None = None
    document_info: dict | None = None
    liveness_check_info: dict | None = None

    def as_update(self) -> dict[str, Any]:
        """Only the fields that carry a value; absent data never erases stored data."""
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True)
class SophisticationResult:
    is_sophisticated: bool
    reason: str | None


# =============================================================================
# Webhook history
# =============================================================================


def _dig(payload: Any, path: Sequence[str]) -> Any:
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def latest_value_from_history(
    payloads: Iterable[dict[str, Any]] | None, *paths: Sequence[str]
) -> Any:
    """
    Return the value from the most recent payload that carries one.

    Each path is tried in order within a payload before moving to an older one.
    """
    for payload in reversed(list(payloads or [])):
        for path in paths:
            value = normalize_blank(_dig(payload, path))
            if value is not None:
                return value
    return None


def _history_dict(payloads: Iterable[dict[str, Any]] | None, *paths: Sequence[str]) -> dict | None:
    value = latest_value_from_history(payloads, *paths)
    return value if isinstance(value, dict) else None


def _history_text(payloads: Iterable[dict[str, Any]] | None, *paths: Sequence[str]) -> str | None:
    value = latest_value_from_history(payloads, *paths)
    if isinstance(value, (dict, list)):
        return None
    return normalize_text(value)


# =============================================================================
# Display areas
# =============================================================================


def find_display_area(areas: Iterable[DisplayArea], names: Sequence[str]) -> DisplayArea | None:
    wanted = {normalize_label(name) for name in names}
    for area in areas:
        if normalize_label(area.display_area) in wanted:
            return area
    return None


def _stored_area(areas: list[DisplayArea], names: Sequence[str]) -> dict | None:
    area = find_display_area(areas, names)
    return area.as_stored() if area is not None else None


def _display_areas(detail: IndividualVerificationDetail | CorporateVerificationDetail) -> list[DisplayArea]:
    if detail.form_content is None:
        return []
    return detail.form_content.display_areas


# =============================================================================
# Extraction
# =============================================================================


def extract_verification_data(
    detail: IndividualVerificationDetail | CorporateVerificationDetail,
    webhook_payloads: list[dict[str, Any]] | None = None,
) -> ExtractedVerificationData:
    """Normalize a provider detail (plus webhook history) into organization fields."""
    areas = _display_areas(detail)
    kyc_id = detail.kyc_request_info.kyc_id if detail.kyc_request_info else None
    kyc_id = kyc_id or _history_text(webhook_payloads, ("kycId",), ("kycRequestInfo", "kycId"))

    common = dict(
        kyc_id=kyc_id,
        bank_account_details=_stored_area(areas, BANK_ACCOUNT_AREAS),
        wealth_declaration=_stored_area(areas, WEALTH_DECLARATION_AREAS),
        compliance_declaration=_stored_area(areas, COMPLIANCE_DECLARATION_AREAS),
    )

    if isinstance(detail, CorporateVerificationDetail):
        return ExtractedVerificationData(**common)

    profile = detail.user_profile
    ocr = detail.ocr_result
    document_type = (
        (profile.id_type if profile else None)
        or (ocr.document_type if ocr else None)
        or _history_text(webhook_payloads, ("ocrResult", "documentType"), ("documentInfo", "documentType"))
    )
    document_number = (
        (profile.government_id_number if profile else None)
        or (ocr.document_number if ocr else None)
        or _history_text(
            webhook_payloads, ("ocrResult", "documentNumber"), ("documentInfo", "documentNumber")
        )
    )

    return ExtractedVerificationData(
        first_name=normalize_name(profile.first_name) if profile else None,
        middle_name=normalize_name(profile.middle_name) if profile else None,
        last_name=normalize_name(profile.last_name) if profile else None,
        nationality=profile.nationality if profile else None,
        country=profile.country_of_residence if profile else None,
        id_issuing_country=profile.id_issuing_country if profile else None,
        gender=profile.gender if profile else None,
        address=profile.address if profile else None,
        date_of_birth=parse_date_value(profile.date_of_birth) if profile else None,
        document_type=document_type,
        document_number=document_number,
        phone_number=profile.phone_number if profile else None,
        document_info=detail.document_info or _history_dict(webhook_payloads, ("documentInfo",)),
        liveness_check_info=detail.liveness_check_info
        or _history_dict(webhook_payloads, ("livenessCheckInfo",)),
        **common,
    )


# =============================================================================
# Sophisticated investor determination
# =============================================================================


def _parse_amount(value: str) -> float | None:
    cleaned = value.upper().replace("RM", "").replace("MYR", "").replace(",", "").strip()
    try:
        return float(cleaned)
    except ValueError:
        return None


def is_affirmative(value: Any, threshold: int | None = None) -> bool:
    """
    Whether a declaration answer meets its criterion.

    "Yes..." answers and selected descriptive options count; "No", "None of
    the above" and blanks do not. Numeric answers are compared to the threshold.
    """
    value = normalize_blank(value)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return threshold is not None and value > threshold
    if isinstance(value, list):
        return any(is_affirmative(item, threshold) for item in value)
    if not isinstance(value, str):
        return False
    if threshold is not None:
        amount = _parse_amount(value)
        if amount is not None:
            return amount > threshold
    lowered = value.lower()
    if lowered.startswith("yes") or lowered == "true":
        return True
    if lowered.startswith(("no", "n/a", "not ")) or lowered == "false":
        return False
    return True


def determine_sophistication(
    org_type: str, compliance_declaration: dict | None
) -> SophisticationResult:
    """
    Decide the sophisticated-investor flag from declared compliance fields.

    Companies always qualify. Individuals qualify when any criterion is met;
    the reason lists every criterion that matched, joined by "; ".
    """
    if org_type == OrganizationType.COMPANY.value:
        return SophisticationResult(True, COMPANY_SOPHISTICATION_REASON)

    content = (compliance_declaration or {}).get("content") or []
    reasons: list[str] = []
    for criterion in SOPHISTICATION_CRITERIA:
        for field in content:
            if not isinstance(field, dict):
                continue
            name = (field.get("fieldName") or "").lower()
            if criterion.marker not in name:
                continue
            if is_affirmative(field.get("fieldValue"), criterion.threshold):
                reasons.append(criterion.reason)
                break

    if not reasons:
        return SophisticationResult(False, None)
    return SophisticationResult(True, "; ".join(reasons))
