"""
Core Enumerations for the Eligibility Verification Engine.
Source: X12 005010X279A1 Implementation Guide, CAQH CORE Rule 2.2.0
Verified: 2025-12-18
"""

from enum import Enum


# =============================================================================
# Configuration Enums
# =============================================================================


class ClearinghouseType(str, Enum):
    """Clearinghouses the transport adapter can talk to."""

    OFFICE_ALLY = "office_ally"  # SOAP 1.2 + WS-Security, CDATA payload
    UHIN = "uhin"  # CORE envelope, raw payload


class EnvelopeVariant(str, Enum):
    """Transport envelope flavors."""

    SOAP_CDATA = "soap_cdata"
    CORE = "core"


class FieldRequirement(str, Enum):
    """How strongly a payer needs a patient field for a 270 match."""

    REQUIRED = "required"
    RECOMMENDED = "recommended"
    OPTIONAL = "optional"
    NOT_NEEDED = "not_needed"

    @property
    def priority(self) -> int:
        """Sort weight for intake forms (required first)."""
        return {
            FieldRequirement.REQUIRED: 3,
            FieldRequirement.RECOMMENDED: 2,
            FieldRequirement.OPTIONAL: 1,
            FieldRequirement.NOT_NEEDED: 0,
        }[self]


class DateQualifierFormat(str, Enum):
    """DTP03 format used for the eligibility date."""

    SINGLE_DATE = "D8"
    DATE_RANGE = "RD8"


# =============================================================================
# Result Enums
# =============================================================================


class CoverageStatus(str, Enum):
    """Top-level coverage status reported to callers."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"


class BillabilityStatus(str, Enum):
    """Whether the practice can bill the patient's coverage."""

    ACCEPTED = "ACCEPTED"
    NOT_CONTRACTED = "NOT_CONTRACTED"
    PLAN_VERIFICATION_NEEDED = "PLAN_VERIFICATION_NEEDED"
    ERROR = "ERROR"


class BillabilityTier(str, Enum):
    """Granularity at which billability was decided."""

    PAYER_LEVEL = "PAYER_LEVEL"
    PLAN_LEVEL = "PLAN_LEVEL"


class NetworkStatus(str, Enum):
    """Network participation."""

    IN_NETWORK = "IN_NETWORK"
    OUT_OF_NETWORK = "OUT_OF_NETWORK"


class MatchConfidence(str, Enum):
    """How a payer name was resolved to an internal payer."""

    EXACT = "exact"  # Case-insensitive name equality
    ALIAS = "alias"  # Known name-variation group
    FUZZY = "fuzzy"  # First-word substring, may be a false positive


class SubscriberRelationship(str, Enum):
    """Patient relationship to the subscriber (from INS02)."""

    SUBSCRIBER = "subscriber"
    DEPENDENT = "dependent"
    UNKNOWN = "unknown"


class ContractType(str, Enum):
    """Provider-payer contract kinds."""

    DIRECT = "direct"
    SUPERVISED = "supervised"


class ManagedCareType(str, Enum):
    """Managed-care organization kinds."""

    ACO = "ACO"
    MCO = "MCO"
