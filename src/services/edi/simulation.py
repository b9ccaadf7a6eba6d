"""
Simulated Eligibility Responses.

Used only when the caller (or settings) explicitly allows it, so intake
flows stay exercisable without live clearinghouse access. Every simulated
response carries a warning, and the orchestrator flags the result with
simulation_mode=True.
"""

import random
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional

from src.core.enums import ManagedCareType
from src.services.edi.managed_care import (
    UNKNOWN_PAYER_ID,
    UTAH_MANAGED_CARE_ORGS,
    DetectedMCO,
    ManagedCareInfo,
    build_plan_info,
    format_managed_care_warning,
)
from src.services.edi.x12_270_generator import PatientInquiry
from src.services.edi.x12_271_parser import FEE_FOR_SERVICE, EligibilityResponse271, MemberInfo
from src.utils.logging import get_logger

logger = get_logger(__name__)

SIMULATED_WARNING = "Simulated eligibility result: the clearinghouse could not be reached, coverage is NOT verified"


@dataclass(frozen=True)
class SimulationScenario:
    """One plausible coverage outcome."""
    key: str
    enrolled: bool
    plan: Optional[str] = None
    mco_name: Optional[str] = None
    mco_payer_id: Optional[str] = None  # Key into UTAH_MANAGED_CARE_ORGS


SIMULATION_SCENARIOS: List[SimulationScenario] = [
    SimulationScenario(key="ffs", enrolled=True, plan=FEE_FOR_SERVICE),
    SimulationScenario(key="selecthealth", enrolled=True, plan="SelectHealth", mco_name="SelectHealth", mco_payer_id="2000000"),
    SimulationScenario(key="molina", enrolled=True, plan="Molina", mco_name="Molina Healthcare", mco_payer_id="2000001"),
    SimulationScenario(key="health_choice", enrolled=True, plan="Health Choice", mco_name="Health Choice Utah", mco_payer_id="2000002"),
    SimulationScenario(
        key="uuhp",
        enrolled=True,
        plan="University of Utah Health Plans",
        mco_name="University of Utah Health Plans",
    ),
    SimulationScenario(key="optum", enrolled=True, plan="Optum", mco_name="Optum"),
    SimulationScenario(key="not_enrolled", enrolled=False),
]


class SimulatedEligibilityFactory:
    """
    Produce randomized, clearly-flagged 271 results.

    Args:
        rng: Random source (seed it for reproducible tests)
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def scenario(self, key: str) -> SimulationScenario:
        for candidate in SIMULATION_SCENARIOS:
            if candidate.key == key:
                return candidate
        raise KeyError(f"Unknown simulation scenario: {key}")

    def create(
        self,
        inquiry: PatientInquiry,
        payer_name: Optional[str] = None,
        reason: Optional[str] = None,
        scenario_key: Optional[str] = None,
        today: Optional[date] = None,
    ) -> EligibilityResponse271:
        """Build a simulated response for an inquiry."""
        scenario = self.scenario(scenario_key) if scenario_key else self.rng.choice(SIMULATION_SCENARIOS)
        today = today or date.today()

        logger.warning(f"Returning simulated eligibility ({scenario.key}) for {inquiry.last_name}: {reason or 'no reason given'}")

        response = EligibilityResponse271(
            enrolled=scenario.enrolled,
            current_plan=scenario.plan,
            member_info=MemberInfo(
                last_name=inquiry.last_name.upper(),
                first_name=inquiry.first_name.upper(),
                member_id=inquiry.identifier,
            ),
            payer_name=payer_name,
            managed_care_org_name=scenario.mco_name,
            warnings=[SIMULATED_WARNING],
        )
        if not scenario.enrolled:
            return response

        response.effective_date = today - timedelta(days=self.rng.randint(30, 730))
        if scenario.mco_name:
            response.managed_care = self._managed_care(scenario)
        response.plan_info = build_plan_info(response.managed_care, [])
        response.managed_care_warning = format_managed_care_warning(response.managed_care)
        return response

    @staticmethod
    def _managed_care(scenario: SimulationScenario) -> ManagedCareInfo:
        known = UTAH_MANAGED_CARE_ORGS.get(scenario.mco_payer_id or "")
        if known:
            mco = DetectedMCO(
                name=known.name,
                display_name=known.display_name,
                payer_id=scenario.mco_payer_id,
                phone=known.phone,
                type=known.type,
                detected_name=scenario.mco_name,
            )
        else:
            mco = DetectedMCO(
                name=scenario.mco_name,
                display_name=scenario.mco_name,
                payer_id=UNKNOWN_PAYER_ID,
                phone="",
                type=ManagedCareType.MCO,
                detected_name=scenario.mco_name,
            )
        return ManagedCareInfo(organizations=[mco], primary_mco=mco, plan_type=scenario.plan)
