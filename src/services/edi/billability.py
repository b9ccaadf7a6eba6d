"""
Billability Resolver.
Source: Practice payer contracts (payers, provider_payer_contracts)
Verified: 2025-12-19

Eligibility answers "does the patient have coverage"; billability answers
"can the practice bill that coverage". The payer name from the 271 (the
MCO name when the member is in managed care) is matched to an internal
payer, then active contracts decide the outcome.

Matching tiers:
1. Exact name, case-insensitive
2. Known name-variation group, resolved by `%canonical%`
3. Fuzzy `%first word%`: first hit wins, logged as a warning since it can
   match the wrong payer (e.g. "UNITED" for a different United plan)
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from src.core.enums import BillabilityStatus, BillabilityTier, MatchConfidence, NetworkStatus
from src.services.adapters.base import PayerDirectory, PayerRecord
from src.utils.logging import get_logger

logger = get_logger(__name__)


PAYER_ALIAS_GROUPS: Dict[str, List[str]] = {
    "regence": [
        "REGENCE",
        "REGENCE BCBS",
        "REGENCE BLUE CROSS",
        "REGENCE BLUE SHIELD",
        "REGENCE BLUE CROSS BLUE SHIELD",
        "REGENCE BLUECROSS BLUESHIELD",
        "REGENCE BC",
        "REGENCE BS",
    ],
    "selecthealth": [
        "SELECTHEALTH",
        "SELECT HEALTH",
        "SELECTHEALTH COMMUNITY CARE",
        "SELECT HEALTH COMMUNITY CARE",
        "SELECTHEALTH ADVANTAGE",
        "SELECT HEALTH ADVANTAGE",
    ],
    "aetna": [
        "AETNA",
        "AETNA BETTER HEALTH",
        "AETNA MEDICAID",
        "AETNA LIFE INSURANCE",
        "AETNA CVS HEALTH",
    ],
    "utah medicaid": [
        "UTAH MEDICAID",
        "UTAH DEPARTMENT OF HEALTH",
        "UTAH DEPARTMENT OF HEALTH AND HUMAN SERVICES",
        "UDOH",
        "UTMCD",
        "STATE OF UTAH MEDICAID",
    ],
    "molina": [
        "MOLINA",
        "MOLINA HEALTHCARE",
        "MOLINA HEALTHCARE OF UTAH",
        "MOLINA MEDICAID",
    ],
    "health choice": [
        "HEALTH CHOICE",
        "HEALTH CHOICE UTAH",
        "HEALTHCHOICE",
        "HEALTHCHOICE UTAH",
    ],
}

FUZZY_CANDIDATE_LIMIT = 5

_NON_ALNUM = re.compile(r"[^A-Z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_payer_name(name: str) -> str:
    """Uppercase, drop punctuation, collapse whitespace."""
    upper = _NON_ALNUM.sub("", name.upper())
    return _WHITESPACE.sub(" ", upper).strip()


def alias_canonical(name: str) -> Optional[str]:
    """Canonical group name for a known payer name variation."""
    normalized = normalize_payer_name(name)
    for canonical, variations in PAYER_ALIAS_GROUPS.items():
        if any(normalize_payer_name(v) == normalized for v in variations):
            return canonical
    return None


@dataclass
class BillabilityResult:
    """Outcome of a billability check."""
    status: BillabilityStatus
    tier: Optional[BillabilityTier]
    has_contract: bool
    message: str
    requires_intake_verification: bool
    contracted_payer: Optional[str] = None
    contracted_payer_id: Optional[str] = None
    plan_verified: bool = False
    plan_name: Optional[str] = None
    plan_accepted: Optional[bool] = None
    network_status: Optional[NetworkStatus] = None
    match_confidence: Optional[MatchConfidence] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "tier": self.tier.value if self.tier else None,
            "has_contract": self.has_contract,
            "contracted_payer": self.contracted_payer,
            "contracted_payer_id": self.contracted_payer_id,
            "plan_verified": self.plan_verified,
            "plan_name": self.plan_name,
            "plan_accepted": self.plan_accepted,
            "message": self.message,
            "requires_intake_verification": self.requires_intake_verification,
            "network_status": self.network_status.value if self.network_status else None,
            "match_confidence": self.match_confidence.value if self.match_confidence else None,
        }


class BillabilityResolver:
    """
    Decide whether the practice can bill a patient's coverage.

    Only payer-level contracts are known here, so a contracted payer yields
    PLAN_VERIFICATION_NEEDED rather than ACCEPTED.
    """

    def __init__(self, directory: PayerDirectory):
        self.directory = directory

    def match_payer(self, payer_name: str) -> Optional[Tuple[PayerRecord, MatchConfidence]]:
        """Resolve a 271 payer name to an internal payer."""
        normalized = normalize_payer_name(payer_name)
        logger.debug(f"Matching payer name: '{payer_name}' (normalized: '{normalized}')")

        exact = self.directory.find_payer_exact(payer_name)
        if exact:
            logger.info(f"Exact payer match: {exact.name}")
            return exact, MatchConfidence.EXACT

        canonical = alias_canonical(payer_name)
        if canonical:
            candidates = self.directory.find_payers_containing(canonical, limit=1)
            if candidates:
                logger.info(f"Payer matched via name variation '{canonical}': {candidates[0].name}")
                return candidates[0], MatchConfidence.ALIAS

        if not normalized:
            return None

        first_word = normalized.split(" ")[0]
        candidates = self.directory.find_payers_containing(first_word, limit=FUZZY_CANDIDATE_LIMIT)
        if candidates:
            logger.warning(
                f"Fuzzy payer matches for '{payer_name}': {', '.join(p.name for p in candidates)}; "
                f"using {candidates[0].name}"
            )
            return candidates[0], MatchConfidence.FUZZY

        logger.info(f"No payer match found for: {payer_name}")
        return None

    def check(self, payer_name: Optional[str], managed_care_org: Optional[str] = None) -> BillabilityResult:
        """
        Check billability for a payer.

        Args:
            payer_name: Primary payer name from the 271
            managed_care_org: MCO name, preferred when present

        Returns:
            BillabilityResult (never raises)
        """
        payer_to_check = managed_care_org or payer_name
        if not payer_to_check:
            return BillabilityResult(
                status=BillabilityStatus.ERROR,
                tier=None,
                has_contract=False,
                message="No payer information available from eligibility check",
                requires_intake_verification=True,
            )

        try:
            match = self.match_payer(payer_to_check)
            if match is None:
                return BillabilityResult(
                    status=BillabilityStatus.NOT_CONTRACTED,
                    tier=BillabilityTier.PAYER_LEVEL,
                    has_contract=False,
                    message=f'Payer "{payer_to_check}" not found in payer database',
                    requires_intake_verification=True,
                )

            payer, confidence = match
            contract_count = self.directory.count_active_contracts(payer.id)
        except Exception as e:
            logger.error(f"Billability check failed for {payer_to_check}: {e}")
            return BillabilityResult(
                status=BillabilityStatus.ERROR,
                tier=None,
                has_contract=False,
                message=f"Error checking billability: {e}",
                requires_intake_verification=True,
            )

        if contract_count == 0:
            return BillabilityResult(
                status=BillabilityStatus.NOT_CONTRACTED,
                tier=BillabilityTier.PAYER_LEVEL,
                has_contract=False,
                contracted_payer=payer.name,
                contracted_payer_id=payer.id,
                message=f"The practice does not have a contract with {payer.name}",
                requires_intake_verification=False,
                network_status=NetworkStatus.OUT_OF_NETWORK,
                match_confidence=confidence,
            )

        logger.info(f"{contract_count} active contract(s) with {payer.name}")
        return BillabilityResult(
            status=BillabilityStatus.PLAN_VERIFICATION_NEEDED,
            tier=BillabilityTier.PAYER_LEVEL,
            has_contract=True,
            contracted_payer=payer.name,
            contracted_payer_id=payer.id,
            message=f"Contract exists with {payer.name} - Verify specific plan at intake",
            requires_intake_verification=True,
            network_status=NetworkStatus.IN_NETWORK,
            match_confidence=confidence,
        )
