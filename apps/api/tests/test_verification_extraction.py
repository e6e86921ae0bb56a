"""Tests for provider detail extraction and sophisticated investor rules."""

from datetime import date

import pytest
from pydantic import ValidationError

from app.schemas.verification import CorporateVerificationDetail, IndividualVerificationDetail
from app.services.verification_extraction import (
    COMPANY_SOPHISTICATION_REASON,
    determine_sophistication,
    extract_verification_data,
    is_affirmative,
    latest_value_from_history,
)

NET_ASSETS = "Do you meet either of the following criteria: (Net Assets)"
ANNUAL_INCOME = "In the preceding twelve months, have you: (Annual Income)"
PORTFOLIO = "Do you have a net personal investment portfolio exceeding RM1,000,000?"
EXPERIENCE = "Do any of the descriptions below apply to you? (Experience Categories)"
QUALIFICATION = "Do you hold any of the following? (Professional Qualification)"


def _compliance(**answers) -> dict:
    names = {
        "net_assets": NET_ASSETS,
        "annual_income": ANNUAL_INCOME,
        "portfolio": PORTFOLIO,
        "experience": EXPERIENCE,
        "qualification": QUALIFICATION,
    }
    return {
        "displayArea": "Compliance Declarations",
        "content": [
            {"cn": False, "fieldName": names[key], "fieldType": "picklist", "fieldValue": value}
            for key, value in answers.items()
        ],
    }


def _detail(**overrides) -> IndividualVerificationDetail:
    payload = {
        "requestId": "LD00001",
        "status": "APPROVED",
        "userProfile": {
            "firstName": "  Aisyah ",
            "middleName": "null",
            "lastName": "Rahman",
            "nationality": "MY",
            "countryOfResidence": "MY",
            "idIssuingCountry": "MY",
            "gender": "FEMALE",
            "address": "",
            "dateOfBirth": "1990-04-12",
            "governmentIdNumber": "900412-14-5678",
            "idType": "IDENTITY",
            "phoneNumber": 60123456789,
        },
        "formContent": {
            "displayAreas": [
                {
                    "displayArea": "Bank Account Details",
                    "content": [
                        {"cn": False, "fieldName": "Bank", "fieldType": "picklist", "fieldValue": "Maybank"}
                    ],
                },
                {
                    "displayArea": "Wealth Declaration",
                    "content": [
                        {"fieldName": "Source of Wealth", "fieldType": "text", "fieldValue": "Salary"}
                    ],
                },
                _compliance(net_assets="No", annual_income="No"),
            ]
        },
        "kycRequestInfo": {"kycId": "KYC00086"},
    }
    payload.update(overrides)
    return IndividualVerificationDetail.model_validate(payload)


def test_extracts_profile_fields():
    extracted = extract_verification_data(_detail())

    assert extracted.first_name == "Aisyah"
    assert extracted.last_name == "Rahman"
    assert extracted.nationality == "MY"
    assert extracted.country == "MY"
    assert extracted.date_of_birth == date(1990, 4, 12)
    assert extracted.document_type == "IDENTITY"
    assert extracted.document_number == "900412-14-5678"
    assert extracted.phone_number == "60123456789"
    assert extracted.kyc_id == "KYC00086"


def test_blank_markers_become_absent():
    extracted = extract_verification_data(_detail())

    # "null" literal, empty string and a missing key all end up as None
    assert extracted.middle_name is None
    assert extracted.address is None
    assert extracted.document_info is None
    assert "middle_name" not in extracted.as_update()


def test_display_areas_are_stored_verbatim():
    extracted = extract_verification_data(_detail())

    assert extracted.bank_account_details == {
        "displayArea": "Bank Account Details",
        "content": [
            {"cn": False, "fieldName": "Bank", "fieldType": "picklist", "fieldValue": "Maybank"}
        ],
    }
    assert extracted.wealth_declaration["content"][0]["fieldValue"] == "Salary"
    assert extracted.compliance_declaration["displayArea"] == "Compliance Declarations"


def test_history_supplies_fields_missing_from_detail():
    detail = _detail(kycRequestInfo=None)
    detail.user_profile.government_id_number = None
    history = [
        {"requestId": "LD00001", "status": "PROCESSING", "kycId": "KYC00001"},
        {"requestId": "LD00001", "status": "LIVENESS_PASSED", "ocrResult": {"documentNumber": "A1234567"}},
        {"requestId": "LD00001", "status": "WAIT_FOR_APPROVAL", "kycRequestInfo": {"kycId": "KYC00002"}},
    ]

    extracted = extract_verification_data(detail, history)

    assert extracted.kyc_id == "KYC00002"
    assert extracted.document_number == "A1234567"


def test_latest_value_from_history_skips_blank_values():
    history = [{"kycId": "KYC1"}, {"kycId": "null"}, {"kycId": ""}]

    assert latest_value_from_history(history, ("kycId",)) == "KYC1"
    assert latest_value_from_history([], ("kycId",)) is None


def test_corporate_detail_keeps_declarations_only():
    detail = CorporateVerificationDetail.model_validate(
        {
            "requestId": "COD00001",
            "status": "APPROVED",
            "companyName": "Acme Sdn Bhd",
            "formContent": {"displayAreas": [_compliance(net_assets="Yes")]},
        }
    )

    extracted = extract_verification_data(detail)

    assert extracted.first_name is None
    assert extracted.compliance_declaration is not None


def test_nested_object_where_text_expected_is_rejected():
    with pytest.raises(ValidationError):
        _detail(userProfile={"firstName": {"unexpected": "shape"}})


def test_company_is_always_sophisticated():
    result = determine_sophistication("COMPANY", None)
    assert result.is_sophisticated is True
    assert result.reason == COMPANY_SOPHISTICATION_REASON

    result = determine_sophistication("COMPANY", _compliance(net_assets="No"))
    assert result.is_sophisticated is True


def test_personal_without_qualifying_fields_is_not_sophisticated():
    result = determine_sophistication(
        "PERSONAL",
        _compliance(net_assets="No", annual_income="No", portfolio="No", experience="None of the above"),
    )

    assert result.is_sophisticated is False
    assert result.reason is None


def test_personal_with_no_declaration_is_not_sophisticated():
    result = determine_sophistication("PERSONAL", None)
    assert result.is_sophisticated is False
    assert result.reason is None


def test_all_matching_reasons_are_reported():
    result = determine_sophistication(
        "PERSONAL",
        _compliance(net_assets="Yes", annual_income="No", qualification="Yes"),
    )

    assert result.is_sophisticated is True
    assert "Net personal assets exceeding RM3,000,000" in result.reason
    assert "Relevant professional qualification" in result.reason
    assert "; " in result.reason
    assert "Annual income" not in result.reason


@pytest.mark.parametrize(
    "value,threshold,expected",
    [
        ("Yes", None, True),
        ("yes, I do", None, True),
        ("No", None, False),
        ("None of the above", None, False),
        ("null", None, False),
        (None, None, False),
        (True, None, True),
        ("Chartered Financial Analyst", None, True),
        (["No", "Yes"], None, True),
        ("RM3,500,000", 3_000_000, True),
        ("2,000,000", 3_000_000, False),
        (250000, 300_000, False),
    ],
)
def test_is_affirmative(value, threshold, expected):
    assert is_affirmative(value, threshold) is expected
