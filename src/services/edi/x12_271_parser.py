"""
X12 271 Eligibility Response Parser.

Source: ASC X12 005010X279A1 Implementation Guide, Utah Medicaid 271 Companion Guide
Verified: 2025-12-19

Parses HIPAA 5010 X12 271 eligibility responses in a single scan over
structured segments. Extracts coverage status, payer and managed care
organization identity, member demographics, rejection reasons and data
for auto-populating intake forms.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence
import logging
import re

from src.core.enums import SubscriberRelationship
from src.services.edi.managed_care import (
    ManagedCareInfo,
    ManagedCareWarning,
    PlanInfo,
    build_plan_info,
    detect_managed_care,
    format_managed_care_warning,
)
from src.services.edi.x12_base import (
    AddressSegment,
    BenefitSegment,
    ContactSegment,
    DateSegment,
    DemographicSegment,
    GeographicSegment,
    InsuredSegment,
    LoopBoundarySegment,
    MessageSegment,
    NameSegment,
    ReferenceSegment,
    RequestValidationSegment,
    StructuredSegment,
    X12ParseError,
    X12Tokenizer,
    structure_segment,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

FEE_FOR_SERVICE = "Fee-for-Service"

ACTIVE_COVERAGE_CODES = {"1", "Y", "A"}
EFFECTIVE_DATE_QUALIFIERS = {"291", "307"}  # Plan, Eligibility
PLAN_REFERENCE_QUALIFIERS = {"CE", "6P", "1L"}  # Class of contract, group, policy

SUBSCRIBER_RELATIONSHIP_CODES = {"01", "18", "20"}  # Spouse/self/employee
DEPENDENT_RELATIONSHIP_CODES = {"19", "53", "G8"}  # Child/life partner/other

PAYER_ID_CONFIGURATION_ERROR = "INVALID OFFICE ALLY PAYER ID"

REJECTION_MESSAGES = {
    "configuration": (
        "Configuration Error: The Office Ally payer ID for this insurance is not valid. "
        "This is a system configuration issue - please contact support to update the "
        "payer configuration."
    ),
    "71": "Patient not found in payer system. Please verify the member ID and date of birth are correct.",
    "71_dependent": (
        "This patient appears to be listed as a dependent on someone else's insurance. "
        "Try adding the primary subscriber's information (member ID, name, date of birth)."
    ),
    "72": "Invalid or missing patient information. Please verify all required fields are correct.",
    "79": "Invalid member ID number. Please verify the member ID matches what's on the insurance card.",
    "generic": (
        "Eligibility verification was rejected by the payer. "
        "Please verify all patient and insurance information is correct."
    ),
    "dependent": (
        "This patient may be listed as a dependent. Consider providing the primary "
        "subscriber's information for more accurate results."
    ),
}

# Substring aliases checked in order; brands before the generic FFS markers
PLAN_ALIASES = [
    (("SELECTHEALTH", "SELECT HEALTH"), "SelectHealth"),
    (("MOLINA",), "Molina"),
    (("HEALTH CHOICE", "HEALTHCHOICE"), "Health Choice"),
    (("UNIVERSITY", "UUHP"), "University of Utah Health Plans"),
    (("OPTUM",), "Optum"),
    (("FEE", "FFS", "TRADITIONAL"), FEE_FOR_SERVICE),
]


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class MemberInfo:
    """Member identity echoed by the payer in NM1*IL."""
    last_name: Optional[str] = None
    first_name: Optional[str] = None
    member_id: Optional[str] = None


@dataclass
class RejectionAnalysis:
    """AAA/INS/MSG analysis of a 271."""
    is_rejected: bool
    user_friendly_message: Optional[str]
    subscriber_relationship: SubscriberRelationship
    aaa_segments: List[str] = field(default_factory=list)
    ins_segments: List[str] = field(default_factory=list)
    msg_segments: List[str] = field(default_factory=list)

    @property
    def reject_reason_codes(self) -> List[str]:
        codes = []
        for raw in self.aaa_segments:
            parts = raw.split("*")
            if len(parts) > 3 and parts[3]:
                codes.append(parts[3])
        return codes


@dataclass
class ExtractedAddress:
    street: str
    city: str
    state: str
    zip: str


@dataclass
class ExtractedData:
    """Patient data returned by the payer, for auto-populating intake forms."""
    phone: Optional[str] = None
    medicaid_id: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[ExtractedAddress] = None
    subscriber_id: Optional[str] = None


@dataclass
class EligibilityResponse271:
    """Decoded 271 eligibility response."""
    enrolled: bool = False
    current_plan: Optional[str] = None
    effective_date: Optional[date] = None
    member_info: MemberInfo = field(default_factory=MemberInfo)
    payer_name: Optional[str] = None
    payer_id: Optional[str] = None
    managed_care_org_name: Optional[str] = None
    control_number: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    rejection: Optional[RejectionAnalysis] = None
    managed_care: Optional[ManagedCareInfo] = None
    plan_info: Optional[PlanInfo] = None
    managed_care_warning: Optional[ManagedCareWarning] = None
    extracted: ExtractedData = field(default_factory=ExtractedData)


# =============================================================================
# Heuristics
# =============================================================================


def match_plan_alias(text: Optional[str]) -> Optional[str]:
    """
    Map payer or plan text to a known plan name by substring.

    Confidence: medium. Substring checks can match unrelated text that
    happens to contain an alias (e.g. "FEE" inside a longer word).

    Returns:
        Plan name, or None when no alias matches
    """
    if not text:
        return None
    upper = " ".join(text.upper().split())
    for fragments, plan_name in PLAN_ALIASES:
        if any(fragment in upper for fragment in fragments):
            return plan_name
    if upper == "UTAH MEDICAID":
        return FEE_FOR_SERVICE
    return None


def _is_plan_generic(plan: Optional[str]) -> bool:
    return plan is None or plan == FEE_FOR_SERVICE


# =============================================================================
# Rejection Analysis
# =============================================================================


def determine_subscriber_relationship(ins_segments: Sequence[InsuredSegment]) -> SubscriberRelationship:
    """Relationship from the first INS segment (INS02)."""
    if not ins_segments:
        return SubscriberRelationship.UNKNOWN
    code = ins_segments[0].relationship_code
    if code in SUBSCRIBER_RELATIONSHIP_CODES:
        return SubscriberRelationship.SUBSCRIBER
    if code in DEPENDENT_RELATIONSHIP_CODES:
        return SubscriberRelationship.DEPENDENT
    return SubscriberRelationship.UNKNOWN


def _rejection_message(
    aaa_segments: Sequence[RequestValidationSegment],
    msg_segments: Sequence[MessageSegment],
    relationship: SubscriberRelationship,
) -> Optional[str]:
    # Payer text is the most specific explanation available
    if msg_segments:
        first_message = msg_segments[0].text
        if PAYER_ID_CONFIGURATION_ERROR in first_message.upper():
            return REJECTION_MESSAGES["configuration"]
        if first_message:
            return first_message

    if aaa_segments:
        first = aaa_segments[0]
        if first.reject_reason == "71":
            if relationship == SubscriberRelationship.DEPENDENT:
                return REJECTION_MESSAGES["71_dependent"]
            return REJECTION_MESSAGES["71"]
        if first.reject_reason == "72":
            return REJECTION_MESSAGES["72"]
        if first.reject_reason == "79":
            return REJECTION_MESSAGES["79"]
        if first.is_rejection:
            return REJECTION_MESSAGES["generic"]

    if relationship == SubscriberRelationship.DEPENDENT:
        return REJECTION_MESSAGES["dependent"]
    return None


def analyze_rejection(segments: Sequence[StructuredSegment]) -> RejectionAnalysis:
    """
    Collect AAA, INS and MSG segments and explain a rejection.

    The user-friendly message is only produced when some AAA01 is N.
    """
    aaa = [s for s in segments if isinstance(s, RequestValidationSegment)]
    ins = [s for s in segments if isinstance(s, InsuredSegment)]
    msg = [s for s in segments if isinstance(s, MessageSegment)]

    relationship = determine_subscriber_relationship(ins)
    is_rejected = any(s.is_rejection for s in aaa)

    return RejectionAnalysis(
        is_rejected=is_rejected,
        user_friendly_message=_rejection_message(aaa, msg, relationship) if is_rejected else None,
        subscriber_relationship=relationship,
        aaa_segments=[str(s.segment) for s in aaa],
        ins_segments=[str(s.segment) for s in ins],
        msg_segments=[str(s.segment) for s in msg],
    )


# =============================================================================
# Auto-population
# =============================================================================


def extract_patient_data(segments: Sequence[StructuredSegment]) -> ExtractedData:
    """Pull phone, gender, Medicaid ID, address and subscriber ID from a 271."""
    data = ExtractedData()
    medicaid_candidates = {"NM1": None, "1L": None, "SY": None}

    for index, segment in enumerate(segments):
        if isinstance(segment, ContactSegment):
            phone = segment.phone
            if data.phone is None and phone:
                digits = re.sub(r"\D", "", phone)
                data.phone = digits or None

        elif isinstance(segment, DemographicSegment):
            if data.gender is None and segment.gender in ("M", "F", "U"):
                data.gender = segment.gender

        elif isinstance(segment, NameSegment):
            if (
                segment.entity_identifier == "IL"
                and segment.id_qualifier == "MI"
                and segment.identifier
                and medicaid_candidates["NM1"] is None
            ):
                medicaid_candidates["NM1"] = segment.identifier

        elif isinstance(segment, ReferenceSegment):
            if segment.qualifier in ("1L", "SY") and segment.value:
                medicaid_candidates[segment.qualifier] = medicaid_candidates[segment.qualifier] or segment.value
            elif segment.qualifier == "0F" and segment.value and data.subscriber_id is None:
                data.subscriber_id = segment.value

        elif isinstance(segment, AddressSegment) and data.address is None:
            following = segments[index + 1] if index + 1 < len(segments) else None
            if isinstance(following, GeographicSegment):
                data.address = ExtractedAddress(
                    street=segment.line1,
                    city=following.city,
                    state=following.state,
                    zip=following.postal_code,
                )

    data.medicaid_id = (
        medicaid_candidates["NM1"] or medicaid_candidates["1L"] or medicaid_candidates["SY"]
    )
    return data


# =============================================================================
# Parser
# =============================================================================


class X12271Parser:
    """
    X12 271 Eligibility Response Parser.

    Usage:
        parser = X12271Parser()
        response = parser.parse(x12_content)
        if response.enrolled:
            print(f"Member {response.member_info.member_id} is covered by {response.current_plan}")
    """

    def parse(self, content: str) -> EligibilityResponse271:
        """
        Parse X12 271 eligibility response.

        Args:
            content: Raw X12 271 content

        Returns:
            EligibilityResponse271 with decoded eligibility data

        Raises:
            X12ParseError: If content is empty or contains no segments
        """
        if not content or not content.strip():
            raise X12ParseError("Empty 271 content provided")

        tokenizer = X12Tokenizer()
        raw_segments = tokenizer.tokenize(content)
        if not raw_segments:
            raise X12ParseError("Invalid X12 content: no segments parsed")

        segments = [structure_segment(segment, tokenizer.repetition_separator) for segment in raw_segments]
        response = EligibilityResponse271()

        header = tokenizer.interchange_header(raw_segments)
        if header:
            response.control_number = header.control_number

        self._scan(segments, response)

        response.rejection = analyze_rejection(segments)
        response.managed_care = detect_managed_care(segments)
        response.plan_info = build_plan_info(response.managed_care, segments)
        response.managed_care_warning = format_managed_care_warning(response.managed_care)
        response.extracted = extract_patient_data(segments)

        logger.debug(
            f"Parsed 271 enrolled={response.enrolled} plan={response.current_plan} "
            f"payer={response.payer_name} mco={response.managed_care_org_name}"
        )
        return response

    def _scan(self, segments: Sequence[StructuredSegment], response: EligibilityResponse271) -> None:
        """Single sequential pass over the transaction."""
        loop_depth = 0
        saw_benefit = False
        plan_references: List[ReferenceSegment] = []

        for segment in segments:
            if isinstance(segment, LoopBoundarySegment):
                # Any LS/LE pair counts, not only LS*2120: an NM1*PR inside one is never the primary payer
                loop_depth = loop_depth + 1 if segment.is_start else max(loop_depth - 1, 0)

            elif isinstance(segment, BenefitSegment):
                saw_benefit = True
                # Monotonic: later inactive segments never clear coverage
                if segment.eligibility_code in ACTIVE_COVERAGE_CODES:
                    response.enrolled = True

            elif isinstance(segment, NameSegment):
                self._apply_name(segment, loop_depth > 0, response)

            elif isinstance(segment, DateSegment):
                if segment.qualifier in EFFECTIVE_DATE_QUALIFIERS:
                    start = segment.start_date
                    if start:
                        response.effective_date = start

            elif isinstance(segment, ReferenceSegment):
                if segment.qualifier in PLAN_REFERENCE_QUALIFIERS:
                    plan_references.append(segment)

        if _is_plan_generic(response.current_plan):
            for reference in plan_references:
                alias = match_plan_alias(reference.text)
                if alias and alias != FEE_FOR_SERVICE:
                    response.current_plan = alias
                    break
                if alias and response.current_plan is None:
                    response.current_plan = alias

        if not saw_benefit:
            response.warnings.append("No EB segments found in 271 response; coverage could not be confirmed")

        if response.enrolled and response.current_plan is None:
            response.current_plan = FEE_FOR_SERVICE

    def _apply_name(self, segment: NameSegment, in_loop: bool, response: EligibilityResponse271) -> None:
        if segment.entity_identifier == "PR":
            name = segment.last_or_organization_name or None
            if in_loop:
                if response.managed_care_org_name is None:
                    response.managed_care_org_name = name
            elif response.payer_name is None:
                response.payer_name = name
                response.payer_id = segment.identifier or None

            alias = match_plan_alias(name)
            if alias and _is_plan_generic(response.current_plan):
                if alias != FEE_FOR_SERVICE or response.current_plan is None:
                    response.current_plan = alias

        elif segment.entity_identifier == "IL":
            response.member_info = MemberInfo(
                last_name=segment.last_or_organization_name or None,
                first_name=segment.first_name or None,
                member_id=segment.identifier or None,
            )
