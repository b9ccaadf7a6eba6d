"""
X12 EDI Services for Real-Time Eligibility.

Source: ASC X12 005010X279A1 Implementation Guide, CAQH CORE Rule 2.2.0
Verified: 2025-12-19

Provides real-time eligibility verification:
- 270 inquiry encoding per payer dialect (outbound)
- SOAP/CORE clearinghouse transport
- 271 response decoding, managed care detection, financial benefits (inbound)
- Billability against practice contracts
"""

from src.services.edi.x12_base import (
    X12Segment,
    InterchangeHeader,
    X12Tokenizer,
    TransactionType,
    X12ParseError,
    structure_segment,
)
from src.services.edi.payer_dialects import (
    PayerDialect,
    PayerDialectRegistry,
    DynamicFormConfig,
    FormFieldConfig,
)
from src.services.edi.x12_270_generator import (
    X12270Generator,
    PatientInquiry,
    ProviderIdentity,
    InterchangeParties,
)
from src.services.edi.transport import (
    ClearinghouseTransport,
    SoapCdataTransport,
    CoreEnvelopeTransport,
    create_transport,
)
from src.services.edi.x12_271_parser import (
    X12271Parser,
    EligibilityResponse271,
    RejectionAnalysis,
    match_plan_alias,
)
from src.services.edi.managed_care import (
    ManagedCareInfo,
    PlanInfo,
    detect_managed_care,
)
from src.services.edi.x12_271_financial import (
    FinancialBenefits,
    FinancialBenefitsExtractor,
    extract_financial_benefits,
    classify_office_visit,
)
from src.services.edi.billability import (
    BillabilityResolver,
    BillabilityResult,
    normalize_payer_name,
)
from src.services.edi.simulation import SimulatedEligibilityFactory
from src.services.edi.eligibility_service import (
    EligibilityService,
    EligibilityResult,
    EligibilityAuditRecord,
    EligibilityAuditSink,
    LoggingAuditSink,
    UNVERIFIED_COVERAGE_MESSAGE,
    build_eligibility_service,
)

__all__ = [
    # Base
    "X12Segment",
    "InterchangeHeader",
    "X12Tokenizer",
    "TransactionType",
    "X12ParseError",
    "structure_segment",
    # Dialects
    "PayerDialect",
    "PayerDialectRegistry",
    "DynamicFormConfig",
    "FormFieldConfig",
    # 270
    "X12270Generator",
    "PatientInquiry",
    "ProviderIdentity",
    "InterchangeParties",
    # Transport
    "ClearinghouseTransport",
    "SoapCdataTransport",
    "CoreEnvelopeTransport",
    "create_transport",
    # 271
    "X12271Parser",
    "EligibilityResponse271",
    "RejectionAnalysis",
    "match_plan_alias",
    "ManagedCareInfo",
    "PlanInfo",
    "detect_managed_care",
    "FinancialBenefits",
    "FinancialBenefitsExtractor",
    "extract_financial_benefits",
    "classify_office_visit",
    # Billability
    "BillabilityResolver",
    "BillabilityResult",
    "normalize_payer_name",
    # Eligibility
    "SimulatedEligibilityFactory",
    "EligibilityService",
    "EligibilityResult",
    "EligibilityAuditRecord",
    "EligibilityAuditSink",
    "LoggingAuditSink",
    "UNVERIFIED_COVERAGE_MESSAGE",
    "build_eligibility_service",
]
