"""
X12 270 Eligibility Inquiry Generator.

Source: ASC X12 005010X279A1 Implementation Guide, Office Ally Companion Guide
Verified: 2025-12-19

Generates HIPAA 5010 X12 270 eligibility inquiry transactions shaped by
per-payer dialect rules. Input is validated against the dialect before any
segment is emitted.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Union
import logging
import random
import re
import time

from src.core.enums import DateQualifierFormat, FieldRequirement
from src.services.edi.payer_dialects import IDENTIFIER_FIELDS, PayerDialect
from src.services.edi.x12_base import format_x12_date, format_x12_time
from src.utils.errors import ValidationError

logger = logging.getLogger(__name__)


# =============================================================================
# Data Models
# =============================================================================


DateInput = Union[date, str, None]


@dataclass(frozen=True)
class PatientInquiry:
    """Patient data supplied by the caller for one eligibility check."""
    first_name: str
    last_name: str
    date_of_birth: DateInput = None  # date or YYYY-MM-DD
    gender: Optional[str] = None  # M, F, U, X
    member_number: Optional[str] = None
    medicaid_id: Optional[str] = None
    group_number: Optional[str] = None
    ssn: Optional[str] = None
    address: Optional[str] = None
    service_date: DateInput = None  # Defaults to today

    @property
    def identifier(self) -> Optional[str]:
        """Member number, falling back to Medicaid ID."""
        return self.member_number or self.medicaid_id or None


@dataclass(frozen=True)
class ProviderIdentity:
    """Billing provider placed in the information receiver loop."""
    name: str
    npi: str
    tax_id: Optional[str] = None


@dataclass(frozen=True)
class InterchangeParties:
    """ISA/GS sender and receiver identification for a clearinghouse."""
    sender_id: str
    receiver_id: str
    sender_qualifier: str = "ZZ"
    receiver_qualifier: str = "01"
    usage_indicator: str = "P"  # P=Production, T=Test


@dataclass(frozen=True)
class ProviderName:
    """Provider display name split for NM1."""
    entity_type: str  # 1=Person, 2=Organization
    last_or_organization_name: str
    first_name: str = ""


# Field name in dialect -> attribute on PatientInquiry
FIELD_ATTRIBUTES = {
    "firstName": "first_name",
    "lastName": "last_name",
    "dateOfBirth": "date_of_birth",
    "gender": "gender",
    "memberNumber": "member_number",
    "medicaidId": "medicaid_id",
    "groupNumber": "group_number",
    "ssn": "ssn",
    "address": "address",
}

ORGANIZATION_PATTERN = re.compile(
    r"\b(PLLC|LLC|PC|INC|CORP|ASSOCIATES|GROUP|CENTER|CLINIC)\b", re.IGNORECASE
)


# =============================================================================
# Validation
# =============================================================================


def coerce_date(value: DateInput, field_name: str) -> Optional[date]:
    """Accept a date or a YYYY-MM-DD / CCYYMMDD string."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in ("%Y-%m-%d", "%Y%m%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValidationError(f"{field_name} must be YYYY-MM-DD, got {value!r}", [field_name])


def validate_inquiry(inquiry: PatientInquiry, dialect: PayerDialect) -> None:
    """
    Check a patient inquiry against a payer dialect.

    Identifier fields are validated as a group: supplying either member
    number or Medicaid ID satisfies a dialect that needs an identifier.

    Raises:
        ValidationError: If required data is missing or malformed
    """
    missing = []
    for field_name, attribute in FIELD_ATTRIBUTES.items():
        if field_name in IDENTIFIER_FIELDS:
            continue
        if dialect.requirement(field_name) != FieldRequirement.REQUIRED:
            continue
        value = getattr(inquiry, attribute)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field_name)

    if dialect.requires_identifier and not inquiry.identifier:
        missing.append("memberNumber|medicaidId")

    if missing:
        raise ValidationError(
            f"Missing required fields for {dialect.label}: {', '.join(missing)}",
            missing,
        )

    coerce_date(inquiry.date_of_birth, "dateOfBirth")
    coerce_date(inquiry.service_date, "serviceDate")

    if inquiry.gender and inquiry.gender.upper() not in ("M", "F", "U", "X"):
        raise ValidationError(f"Unsupported gender {inquiry.gender!r}", ["gender"])


def parse_provider_name(name: str) -> ProviderName:
    """
    Split a provider display name for the receiver NM1.

    Names containing an organizational token (LLC, PLLC, GROUP, ...) are
    organizations. Other names are people: first token is the first name,
    last token the surname; a single token becomes the surname alone.
    """
    cleaned = name.strip()
    if ORGANIZATION_PATTERN.search(cleaned):
        return ProviderName(entity_type="2", last_or_organization_name=cleaned.upper())

    tokens = cleaned.replace("_", " ").split()
    if len(tokens) >= 2:
        return ProviderName(
            entity_type="1",
            last_or_organization_name=tokens[-1].upper(),
            first_name=tokens[0].upper(),
        )
    return ProviderName(entity_type="1", last_or_organization_name=cleaned.upper())


# =============================================================================
# Generator
# =============================================================================


class X12270Generator:
    """
    X12 270 Eligibility Inquiry Generator.

    Generates 270 transactions with three hierarchical levels (payer,
    provider, subscriber) and dialect-specific subscriber segments.

    Usage:
        generator = X12270Generator()
        content = generator.generate(
            inquiry=PatientInquiry(first_name="Jane", last_name="Doe", ...),
            dialect=registry.get("UTMCD"),
            provider=ProviderIdentity(name="MOONLIT PLLC", npi="1275348807"),
            parties=InterchangeParties(sender_id="1161680", receiver_id="OFFALLY"),
        )
    """

    IMPLEMENTATION_REFERENCE = "005010X279A1"

    def __init__(
        self,
        element_separator: str = "*",
        segment_terminator: str = "~",
        sub_element_separator: str = ":",
        repetition_separator: str = "^",
    ):
        self.element_sep = element_separator
        self.segment_term = segment_terminator
        self.sub_element_sep = sub_element_separator
        self.repetition_sep = repetition_separator

    def generate(
        self,
        inquiry: PatientInquiry,
        dialect: PayerDialect,
        provider: ProviderIdentity,
        parties: InterchangeParties,
        control_number: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Generate X12 270 eligibility inquiry.

        Args:
            inquiry: Patient data
            dialect: Payer encoding rules
            provider: Billing provider identity
            parties: Interchange sender/receiver
            control_number: 9-digit control number (generated if omitted)
            now: Timestamp for the envelope (local time if omitted)

        Returns:
            X12 270 content string

        Raises:
            ValidationError: If the inquiry does not satisfy the dialect, or the
                control number does not fit ISA13
        """
        validate_inquiry(inquiry, dialect)

        now = now or datetime.now()
        control = (control_number or self.new_control_number()).zfill(9)
        # ISA13 is fixed width
        if len(control) != 9 or not control.isdigit():
            raise ValidationError(f"Control number must be up to 9 digits, got {control_number!r}", ["controlNumber"])
        service_date = coerce_date(inquiry.service_date, "serviceDate") or now.date()
        date_of_birth = coerce_date(inquiry.date_of_birth, "dateOfBirth")

        # Transaction set body, ST through the last EQ
        body: List[str] = [
            self._build_st(),
            self._build_bht(provider, control, now),
            # HL*1 - Information Source Level (Payer)
            self._segment("HL", "1", "", "20", "1"),
            self._build_payer_nm1(dialect),
            # HL*2 - Information Receiver Level (Provider)
            self._segment("HL", "2", "1", "21", "1"),
        ]
        body.extend(self._build_provider_loop(provider))

        # HL*3 - Subscriber Level
        body.append(self._segment("HL", "3", "2", "22", "0"))
        body.append(self._segment("TRN", "1", control, provider.npi, "ELIGIBILITY"))
        body.extend(self._build_subscriber_loop(inquiry, dialect, date_of_birth, service_date))

        # SE count covers ST through SE inclusive
        body.append(self._segment("SE", str(len(body) + 1), "0001"))

        segments = [self._build_isa(parties, control, now), self._build_gs(parties, control, now)]
        segments.extend(body)
        segments.append(self._segment("GE", "1", control))
        segments.append(self._segment("IEA", "1", control))

        logger.debug(f"Generated 270 control={control} payer={dialect.payer_code} segments={len(segments)}")
        return self.segment_term.join(segments) + self.segment_term

    @staticmethod
    def new_control_number() -> str:
        """Timestamp-derived 9-digit control number with a random suffix."""
        millis = int(time.time() * 1000) % 1_000_000
        return f"{millis:06d}{random.randint(0, 999):03d}"

    def _segment(self, *elements) -> str:
        """Build a segment from elements."""
        return self.element_sep.join(elements)

    def _clean(self, value: Optional[str]) -> str:
        """Uppercase free text and drop delimiter characters."""
        if not value:
            return ""
        for delimiter in (self.element_sep, self.segment_term, self.sub_element_sep, self.repetition_sep):
            value = value.replace(delimiter, " ")
        return " ".join(value.split()).upper()

    def _build_isa(self, parties: InterchangeParties, control_number: str, now: datetime) -> str:
        """Build ISA segment."""
        return self._segment(
            "ISA",
            "00",  # Authorization Info Qualifier
            " " * 10,  # Authorization Info
            "00",  # Security Info Qualifier
            " " * 10,  # Security Info
            parties.sender_qualifier,  # Sender ID Qualifier
            parties.sender_id.ljust(15)[:15],  # Sender ID
            parties.receiver_qualifier,  # Receiver ID Qualifier
            parties.receiver_id.ljust(15)[:15],  # Receiver ID
            now.strftime("%y%m%d"),  # Date
            format_x12_time(now),  # Time
            self.repetition_sep,  # Repetition Separator
            "00501",  # Version
            control_number,  # Control Number
            "0",  # Acknowledgment Requested
            parties.usage_indicator,  # Usage Indicator (P=Production, T=Test)
            self.sub_element_sep,  # Sub-element Separator
        )

    def _build_gs(self, parties: InterchangeParties, control_number: str, now: datetime) -> str:
        """Build GS segment."""
        return self._segment(
            "GS",
            "HS",  # Functional ID Code (HS=270)
            parties.sender_id,  # Sender Code
            parties.receiver_id,  # Receiver Code
            format_x12_date(now),  # Date
            format_x12_time(now),  # Time
            control_number,  # Group Control Number
            "X",  # Responsible Agency Code
            self.IMPLEMENTATION_REFERENCE,  # Version
        )

    def _build_st(self) -> str:
        """Build ST segment."""
        return self._segment(
            "ST",
            "270",  # Transaction Set ID
            "0001",  # Control Number
            self.IMPLEMENTATION_REFERENCE,  # Implementation Convention Reference
        )

    def _build_bht(self, provider: ProviderIdentity, control_number: str, now: datetime) -> str:
        """Build BHT segment."""
        reference = f"{provider.name.replace(' ', '').upper()}-{control_number}"
        return self._segment(
            "BHT",
            "0022",  # Hierarchical Structure Code
            "13",  # Transaction Set Purpose Code (13=Request)
            self._clean(reference)[:50],  # Reference ID
            format_x12_date(now),  # Date
            format_x12_time(now),  # Time
        )

    def _build_payer_nm1(self, dialect: PayerDialect) -> str:
        """Build payer NM1 segment."""
        return self._segment(
            "NM1",
            "PR",  # Entity ID Code (Payer)
            "2",  # Entity Type (Organization)
            self._clean(dialect.payer_name)[:60],  # Name
            "",  # First Name (empty for org)
            "",  # Middle Name
            "",  # Prefix
            "",  # Suffix
            "PI",  # ID Code Qualifier
            dialect.payer_code,  # ID Code
        )

    def _build_provider_loop(self, provider: ProviderIdentity) -> List[str]:
        """Build provider loop segments."""
        segments = []
        name = parse_provider_name(provider.name)

        if name.entity_type == "1" and name.first_name:
            segments.append(self._segment(
                "NM1",
                "1P",  # Provider
                "1",  # Person
                self._clean(name.last_or_organization_name)[:60],
                self._clean(name.first_name)[:35],
                "",  # Middle
                "",  # Prefix
                "",  # Suffix
                "XX",  # NPI
                provider.npi,
            ))
        else:
            # Organization, or a person known by a single token
            segments.append(self._segment(
                "NM1",
                "1P",  # Provider
                name.entity_type,
                self._clean(name.last_or_organization_name)[:60],
                "",  # First Name
                "",  # Middle
                "",  # Prefix
                "",  # Suffix
                "XX",  # NPI
                provider.npi,
            ))

        if provider.tax_id:
            segments.append(self._segment("REF", "TJ", re.sub(r"\D", "", provider.tax_id)))

        return segments

    def _build_subscriber_loop(
        self,
        inquiry: PatientInquiry,
        dialect: PayerDialect,
        date_of_birth: Optional[date],
        service_date: date,
    ) -> List[str]:
        """Build subscriber loop segments (2100C and 2110C)."""
        segments = []

        # NM1 - Subscriber Name
        name_elements = [
            "NM1",
            "IL",  # Insured/Subscriber
            "1",  # Person
            self._clean(inquiry.last_name)[:60],
            self._clean(inquiry.first_name)[:35],
        ]
        if dialect.supports_member_id_in_nm1 and inquiry.identifier:
            name_elements.extend(["", "", "", "MI", self._clean(inquiry.identifier)])
        segments.append(self._segment(*name_elements))

        # REF - Supplemental identifiers
        if inquiry.group_number and dialect.is_needed("groupNumber"):
            segments.append(self._segment("REF", "6P", self._clean(inquiry.group_number)))
        if inquiry.ssn and dialect.is_needed("ssn"):
            segments.append(self._segment("REF", "SY", re.sub(r"\D", "", inquiry.ssn)))

        # DMG and DTP only when a date of birth is known
        if date_of_birth:
            dmg = ["DMG", "D8", format_x12_date(date_of_birth)]
            gender = (inquiry.gender or "").upper()
            if dialect.requires_gender_in_dmg and gender in ("M", "F"):
                dmg.append(gender)
            segments.append(self._segment(*dmg))

            formatted = format_x12_date(service_date)
            if dialect.dtp_format == DateQualifierFormat.DATE_RANGE:
                segments.append(self._segment("DTP", "291", "RD8", f"{formatted}-{formatted}"))
            else:
                segments.append(self._segment("DTP", "291", "D8", formatted))

        # EQ - Eligibility or Benefit Inquiry
        for service_type in dialect.service_type_codes:
            segments.append(self._segment("EQ", service_type))

        return segments
