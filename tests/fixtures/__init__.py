"""
Test Fixtures Package.

Contains reusable X12 271 interchanges and SOAP responses:
- Utah Medicaid Fee-for-Service and managed care responses
- Commercial response with deductible, OOP, copay and coinsurance data
- Rejected (AAA) response
- Office Ally / UHIN envelopes, faults and envelope errors
"""

from .sample_x12 import (
    build_isa,
    build_271,
    MEDICAID_FFS_BODY,
    MEDICAID_MCO_BODY,
    COMMERCIAL_FINANCIAL_BODY,
    REJECTED_BODY,
    office_ally_response,
    uhin_response,
    SOAP_FAULT_RESPONSE,
    CORE_ENVELOPE_ERROR_RESPONSE,
    OFFICE_ALLY_ENVELOPE_ERROR_RESPONSE,
)

__all__ = [
    "build_isa",
    "build_271",
    "MEDICAID_FFS_BODY",
    "MEDICAID_MCO_BODY",
    "COMMERCIAL_FINANCIAL_BODY",
    "REJECTED_BODY",
    "office_ally_response",
    "uhin_response",
    "SOAP_FAULT_RESPONSE",
    "CORE_ENVELOPE_ERROR_RESPONSE",
    "OFFICE_ALLY_ENVELOPE_ERROR_RESPONSE",
]
