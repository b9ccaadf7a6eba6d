"""
Managed Care Detection for X12 271 Responses.

Source: Utah Medicaid 271 Companion Guide (Loop 2120 other-payer reporting)
Verified: 2025-12-19

Utah Medicaid members are either Fee-for-Service (any Medicaid provider)
or enrolled with a managed care organization (in-network providers only).
The MCO is reported as an NM1*PR inside an LS*2120 ... LE*2120 loop.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
import logging

from src.core.enums import ManagedCareType
from src.services.edi.x12_base import (
    BenefitSegment,
    LoopBoundarySegment,
    NameSegment,
    StructuredSegment,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Registry
# =============================================================================


@dataclass(frozen=True)
class ManagedCareOrg:
    """Known managed care organization."""
    name: str
    display_name: str
    phone: str
    type: ManagedCareType
    requires_network_verification: bool = True


UTAH_MANAGED_CARE_ORGS: Dict[str, ManagedCareOrg] = {
    "2000002": ManagedCareOrg(
        name="Health Choice Utah",
        display_name="Health Choice Utah (Integrated Medicaid Managed Care)",
        phone="877-358-8797",
        type=ManagedCareType.ACO,
    ),
    "2000001": ManagedCareOrg(
        name="Molina Healthcare",
        display_name="Molina Healthcare of Utah (Medicaid Managed Care)",
        phone="800-424-5891",
        type=ManagedCareType.MCO,
    ),
    "2000000": ManagedCareOrg(
        name="SelectHealth",
        display_name="SelectHealth Community Care (Medicaid Managed Care)",
        phone="800-538-5038",
        type=ManagedCareType.MCO,
    ),
}

# Name fragments -> registry payer ID, for loops that carry an unregistered ID
MCO_NAME_ALIASES = [
    (("HEALTH CHOICE",), "2000002"),
    (("MOLINA",), "2000001"),
    (("SELECTHEALTH", "SELECT HEALTH"), "2000000"),
]

OTHER_PAYER_LOOP = "2120"
UNKNOWN_PAYER_ID = "UNKNOWN"


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class DetectedMCO:
    """Managed care organization found in a 271."""
    name: str
    display_name: str
    payer_id: str
    phone: str
    type: ManagedCareType
    detected_name: Optional[str] = None
    requires_network_verification: bool = True


@dataclass
class ManagedCareInfo:
    """Managed care enrollment details (absent for Fee-for-Service)."""
    organizations: List[DetectedMCO]
    primary_mco: DetectedMCO
    plan_type: Optional[str] = None
    is_managed_care: bool = True
    requires_network_check: bool = True


@dataclass
class PlanInfo:
    """Display summary of the Medicaid program."""
    plan_type: str
    program: str
    is_managed_care: bool = False
    managed_care_org: Optional[str] = None
    mco_phone: Optional[str] = None
    requires_network_check: bool = False
    warning: Optional[str] = None


@dataclass
class ManagedCareWarning:
    """Warning shown before scheduling a managed care patient."""
    title: str
    message: str
    mco_name: str
    mco_phone: Optional[str] = None
    type: str = "warning"
    action: str = "VERIFY_NETWORK"


# =============================================================================
# Detection
# =============================================================================


def _match_mco(name: str, payer_id: str) -> Optional[DetectedMCO]:
    known = UTAH_MANAGED_CARE_ORGS.get(payer_id)
    if known:
        return DetectedMCO(
            name=known.name,
            display_name=known.display_name,
            payer_id=payer_id,
            phone=known.phone,
            type=known.type,
            detected_name=name,
        )

    upper = name.upper()
    for fragments, registry_id in MCO_NAME_ALIASES:
        if any(fragment in upper for fragment in fragments):
            org = UTAH_MANAGED_CARE_ORGS[registry_id]
            return DetectedMCO(
                name=org.name,
                display_name=name,
                payer_id=payer_id,
                phone=org.phone,
                type=org.type,
                detected_name=name,
            )
    return None


def detect_managed_care(segments: Sequence[StructuredSegment]) -> Optional[ManagedCareInfo]:
    """
    Detect managed care enrollment.

    Returns:
        ManagedCareInfo, or None for Fee-for-Service
    """
    organizations: List[DetectedMCO] = []
    has_managed_care_plan = False
    plan_type: Optional[str] = None
    in_other_payer_loop = False

    for segment in segments:
        if isinstance(segment, LoopBoundarySegment):
            if segment.loop_id == OTHER_PAYER_LOOP:
                in_other_payer_loop = segment.is_start
        elif isinstance(segment, NameSegment):
            if in_other_payer_loop and segment.entity_identifier == "PR":
                detected = _match_mco(segment.last_or_organization_name, segment.identifier)
                if detected:
                    organizations.append(detected)
        elif isinstance(segment, BenefitSegment):
            if segment.insurance_type == "HM":
                has_managed_care_plan = True
                if plan_type is None and segment.plan_description:
                    plan_type = segment.plan_description
            if "MC INTEGRATED" in segment.plan_description.upper():
                has_managed_care_plan = True

    if organizations:
        logger.debug(f"Managed care detected: {organizations[0].name}")
        return ManagedCareInfo(
            organizations=organizations,
            primary_mco=organizations[0],
            plan_type=plan_type,
        )

    if has_managed_care_plan:
        return ManagedCareInfo(
            organizations=[],
            primary_mco=DetectedMCO(
                name="Unknown Managed Care Organization",
                display_name=plan_type or "Managed Care Plan",
                payer_id=UNKNOWN_PAYER_ID,
                phone="",
                type=ManagedCareType.MCO,
            ),
            plan_type=plan_type,
        )

    return None


def build_plan_info(
    managed_care: Optional[ManagedCareInfo],
    segments: Sequence[StructuredSegment],
) -> PlanInfo:
    """Summarize the program for display."""
    if managed_care:
        mco = managed_care.primary_mco
        return PlanInfo(
            plan_type="Integrated Medicaid Managed Care",
            program=mco.display_name or managed_care.plan_type or "Unknown MCO",
            is_managed_care=True,
            managed_care_org=mco.name,
            mco_phone=mco.phone,
            requires_network_check=True,
            warning=f"Patient is enrolled in {mco.name}. Verify network status before scheduling.",
        )

    for segment in segments:
        if isinstance(segment, BenefitSegment):
            description = segment.plan_description.upper()
            if "TRADITIONAL ADULT" in description or "FEE FOR SERVICE" in description:
                return PlanInfo(
                    plan_type="Utah Medicaid Fee-for-Service",
                    program="Utah Medicaid - Mental Health",
                )

    return PlanInfo(plan_type="Utah Medicaid", program="Utah Medicaid - Mental Health")


def format_managed_care_warning(managed_care: Optional[ManagedCareInfo]) -> Optional[ManagedCareWarning]:
    if not managed_care or not managed_care.is_managed_care:
        return None
    mco = managed_care.primary_mco
    return ManagedCareWarning(
        title="IMPORTANT: Managed Care Plan Detected",
        message=f"This patient is enrolled in {mco.name}. Please verify network status before scheduling.",
        mco_name=mco.name,
        mco_phone=mco.phone or None,
    )
