"""
X12 Tokenizer and Segment Views.

Source: ASC X12 005010X279A1 (270/271) Implementation Guide
Verified: 2025-12-19

Splits raw interchanges into segments using the delimiters declared in the
ISA header, then wraps each segment in a named-field view so 271 processing
reads EB03 as `service_types` rather than a list index.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Type, Union
from enum import Enum
from datetime import datetime, date
import logging
import re

logger = logging.getLogger(__name__)

_LINE_BREAKS = re.compile(r"[\r\n]")


class TransactionType(str, Enum):
    """Transaction sets exchanged by the eligibility engine."""

    ELIG_270 = "270"
    ELIG_271 = "271"


class X12ParseError(Exception):
    """Raised when content cannot be read as an X12 interchange."""

    def __init__(self, message: str, segment_id: Optional[str] = None, position: Optional[int] = None):
        self.message = message
        self.segment_id = segment_id
        self.position = position
        if segment_id and position is not None:
            message = f"{message} ({segment_id} at segment {position})"
        super().__init__(message)


# =============================================================================
# Raw Segments
# =============================================================================


@dataclass
class X12Segment:
    """
    One tokenized segment.

    `EB*1*IND*30` has segment_id "EB" and elements ["1", "IND", "30"];
    element indexes are 0-based after the ID, so EB01 is get_element(0).
    """

    segment_id: str
    elements: List[str]
    position: int = 0

    def get_element(self, index: int, default: str = "") -> str:
        return self.elements[index] if 0 <= index < len(self.elements) else default

    def get_repeated(self, index: int, separator: str = "^") -> List[str]:
        """Values of a repeating element such as EB03."""
        return [value for value in self.get_element(index).split(separator) if value]

    def __str__(self) -> str:
        return "*".join([self.segment_id, *self.elements])


@dataclass(frozen=True)
class InterchangeHeader:
    """ISA fields reported back to callers, IDs with their padding removed."""

    sender_id: str
    receiver_id: str
    control_number: str
    usage_indicator: str

    @classmethod
    def from_isa(cls, isa: X12Segment) -> "InterchangeHeader":
        return cls(
            sender_id=isa.get_element(5).strip(),  # ISA06
            receiver_id=isa.get_element(7).strip(),  # ISA08
            control_number=isa.get_element(12),  # ISA13
            usage_indicator=isa.get_element(14),  # ISA15
        )


# =============================================================================
# Structured Segments
# =============================================================================
# Each view names the elements of one segment type so downstream code never
# indexes raw element lists. Element comments use X12 reference designators.


@dataclass
class NameSegment:
    """NM1 - Individual or Organizational Name."""

    entity_identifier: str  # NM101 (PR=Payer, IL=Insured, 1P=Provider)
    entity_type: str  # NM102 (1=Person, 2=Organization)
    last_or_organization_name: str  # NM103
    first_name: str  # NM104
    middle_name: str  # NM105
    id_qualifier: str  # NM108 (PI, MI, XX, 46)
    identifier: str  # NM109
    segment: X12Segment = field(repr=False)

    @classmethod
    def from_segment(cls, segment: X12Segment) -> "NameSegment":
        return cls(
            entity_identifier=segment.get_element(0),
            entity_type=segment.get_element(1),
            last_or_organization_name=segment.get_element(2).strip(),
            first_name=segment.get_element(3).strip(),
            middle_name=segment.get_element(4).strip(),
            id_qualifier=segment.get_element(7),
            identifier=segment.get_element(8).strip(),
            segment=segment,
        )


@dataclass
class BenefitSegment:
    """
    EB - Eligibility or Benefit Information.

    Amount-bearing elements are kept as raw text because payers place
    amounts at different positions; the financial extractor decides
    which layout is in play.
    """

    eligibility_code: str  # EB01 (1=Active, A=Coinsurance, B=Copay, C=Deductible, G=OOP)
    coverage_level: str  # EB02 (IND, FAM, ...)
    service_type_codes: List[str]  # EB03 (repeated with ^)
    insurance_type: str  # EB04 (HM, MC, or amount qualifier on some payers)
    plan_description: str  # EB05
    time_period: str  # EB06
    monetary_amount: str  # EB07
    percent: str  # EB08
    quantity_qualifier: str  # EB09
    quantity: str  # EB10
    authorization_required: str  # EB11
    in_plan_network: str  # EB12 (Y/N/W/U)
    segment: X12Segment = field(repr=False)

    @classmethod
    def from_segment(cls, segment: X12Segment, repetition_separator: str = "^") -> "BenefitSegment":
        return cls(
            eligibility_code=segment.get_element(0).strip(),
            coverage_level=segment.get_element(1).strip(),
            service_type_codes=segment.get_repeated(2, repetition_separator),
            insurance_type=segment.get_element(3).strip(),
            plan_description=segment.get_element(4).strip(),
            time_period=segment.get_element(5).strip(),
            monetary_amount=segment.get_element(6).strip(),
            percent=segment.get_element(7).strip(),
            quantity_qualifier=segment.get_element(8).strip(),
            quantity=segment.get_element(9).strip(),
            authorization_required=segment.get_element(10).strip(),
            in_plan_network=segment.get_element(11).strip(),
            segment=segment,
        )


@dataclass
class DateSegment:
    """DTP - Date or Time Period."""

    qualifier: str  # DTP01 (291=Plan, 307=Eligibility, 346=Plan Begin)
    format_qualifier: str  # DTP02 (D8 or RD8)
    value: str  # DTP03
    segment: X12Segment = field(repr=False)

    @classmethod
    def from_segment(cls, segment: X12Segment) -> "DateSegment":
        return cls(
            qualifier=segment.get_element(0),
            format_qualifier=segment.get_element(1),
            value=segment.get_element(2).strip(),
            segment=segment,
        )

    @property
    def start_date(self) -> Optional[date]:
        """First date of the period (the only date for D8)."""
        if not self.value:
            return None
        return parse_x12_date(self.value.split("-")[0])

    @property
    def end_date(self) -> Optional[date]:
        """Last date of an RD8 range."""
        if self.format_qualifier != "RD8" or "-" not in self.value:
            return None
        return parse_x12_date(self.value.split("-")[1])


@dataclass
class ReferenceSegment:
    """REF - Reference Information."""

    qualifier: str  # REF01 (CE=Plan, 6P=Group, 1L=Group/Policy, SY=SSN, 0F=Subscriber)
    value: str  # REF02
    description: str  # REF03
    segment: X12Segment = field(repr=False)

    @classmethod
    def from_segment(cls, segment: X12Segment) -> "ReferenceSegment":
        return cls(
            qualifier=segment.get_element(0),
            value=segment.get_element(1).strip(),
            description=segment.get_element(2).strip(),
            segment=segment,
        )

    @property
    def text(self) -> str:
        """Value and description joined for substring matching."""
        return " ".join(part for part in (self.value, self.description) if part)


@dataclass
class MessageSegment:
    """MSG - Message Text."""

    text: str  # MSG01
    segment: X12Segment = field(repr=False)

    @classmethod
    def from_segment(cls, segment: X12Segment) -> "MessageSegment":
        return cls(text=segment.get_element(0).strip(), segment=segment)


@dataclass
class RequestValidationSegment:
    """AAA - Request Validation (rejections)."""

    valid_request: str  # AAA01 (Y/N)
    agency_qualifier: str  # AAA02
    reject_reason: str  # AAA03 (71, 72, 79, ...)
    follow_up_action: str  # AAA04
    segment: X12Segment = field(repr=False)

    @classmethod
    def from_segment(cls, segment: X12Segment) -> "RequestValidationSegment":
        return cls(
            valid_request=segment.get_element(0),
            agency_qualifier=segment.get_element(1),
            reject_reason=segment.get_element(2),
            follow_up_action=segment.get_element(3),
            segment=segment,
        )

    @property
    def is_rejection(self) -> bool:
        return self.valid_request == "N"


@dataclass
class InsuredSegment:
    """INS - Insured Benefit."""

    subscriber_indicator: str  # INS01 (Y/N)
    relationship_code: str  # INS02 (18=Self, 19=Child, ...)
    segment: X12Segment = field(repr=False)

    @classmethod
    def from_segment(cls, segment: X12Segment) -> "InsuredSegment":
        return cls(
            subscriber_indicator=segment.get_element(0),
            relationship_code=segment.get_element(1),
            segment=segment,
        )


@dataclass
class ContactSegment:
    """PER - Administrative Communications Contact."""

    function_code: str  # PER01
    name: str  # PER02
    communications: List[Tuple[str, str]]  # (PER03, PER04), (PER05, PER06), (PER07, PER08)
    segment: X12Segment = field(repr=False)

    @classmethod
    def from_segment(cls, segment: X12Segment) -> "ContactSegment":
        communications = []
        for index in (2, 4, 6):
            qualifier = segment.get_element(index)
            number = segment.get_element(index + 1)
            if qualifier and number:
                communications.append((qualifier, number.strip()))
        return cls(
            function_code=segment.get_element(0),
            name=segment.get_element(1).strip(),
            communications=communications,
            segment=segment,
        )

    @property
    def phone(self) -> Optional[str]:
        """First telephone (TE) number, if any."""
        for qualifier, number in self.communications:
            if qualifier == "TE":
                return number
        return None


@dataclass
class DemographicSegment:
    """DMG - Demographic Information."""

    format_qualifier: str  # DMG01 (D8)
    date_of_birth: str  # DMG02
    gender: str  # DMG03 (M/F/U)
    segment: X12Segment = field(repr=False)

    @classmethod
    def from_segment(cls, segment: X12Segment) -> "DemographicSegment":
        return cls(
            format_qualifier=segment.get_element(0),
            date_of_birth=segment.get_element(1).strip(),
            gender=segment.get_element(2).strip().upper(),
            segment=segment,
        )


@dataclass
class AddressSegment:
    """N3 - Party Location."""

    line1: str  # N301
    line2: str  # N302
    segment: X12Segment = field(repr=False)

    @classmethod
    def from_segment(cls, segment: X12Segment) -> "AddressSegment":
        return cls(
            line1=segment.get_element(0).strip(),
            line2=segment.get_element(1).strip(),
            segment=segment,
        )


@dataclass
class GeographicSegment:
    """N4 - Geographic Location."""

    city: str  # N401
    state: str  # N402
    postal_code: str  # N403
    segment: X12Segment = field(repr=False)

    @classmethod
    def from_segment(cls, segment: X12Segment) -> "GeographicSegment":
        return cls(
            city=segment.get_element(0).strip(),
            state=segment.get_element(1).strip(),
            postal_code=segment.get_element(2).strip(),
            segment=segment,
        )


@dataclass
class LoopBoundarySegment:
    """LS/LE - Loop Header and Trailer around nested 2120 information."""

    loop_id: str  # LS01 / LE01
    is_start: bool
    segment: X12Segment = field(repr=False)

    @classmethod
    def from_segment(cls, segment: X12Segment) -> "LoopBoundarySegment":
        return cls(
            loop_id=segment.get_element(0).strip(),
            is_start=segment.segment_id == "LS",
            segment=segment,
        )


StructuredSegment = Union[
    NameSegment,
    BenefitSegment,
    DateSegment,
    ReferenceSegment,
    MessageSegment,
    RequestValidationSegment,
    InsuredSegment,
    ContactSegment,
    DemographicSegment,
    AddressSegment,
    GeographicSegment,
    LoopBoundarySegment,
    X12Segment,
]

SEGMENT_TYPES: Dict[str, Type] = {
    "NM1": NameSegment,
    "EB": BenefitSegment,
    "DTP": DateSegment,
    "REF": ReferenceSegment,
    "MSG": MessageSegment,
    "AAA": RequestValidationSegment,
    "INS": InsuredSegment,
    "PER": ContactSegment,
    "DMG": DemographicSegment,
    "N3": AddressSegment,
    "N4": GeographicSegment,
    "LS": LoopBoundarySegment,
    "LE": LoopBoundarySegment,
}


def structure_segment(segment: X12Segment, repetition_separator: str = "^") -> StructuredSegment:
    """
    Convert a tokenized segment into its named-field view.

    Segment types without a view are returned unchanged.
    """
    segment_type = SEGMENT_TYPES.get(segment.segment_id)
    if segment_type is None:
        return segment
    if segment_type is BenefitSegment:
        return BenefitSegment.from_segment(segment, repetition_separator)
    return segment_type.from_segment(segment)


# =============================================================================
# Tokenizer
# =============================================================================


class X12Tokenizer:
    """
    Split raw X12 into segments.

    Delimiters are taken from the ISA when it is full width; otherwise the
    005010 defaults below stay in effect. A tokenizer instance keeps the
    delimiters of the last interchange it read.
    """

    ELEMENT_SEPARATOR = "*"
    SEGMENT_TERMINATOR = "~"
    COMPONENT_SEPARATOR = ":"
    REPETITION_SEPARATOR = "^"

    ISA_LENGTH = 106

    def __init__(
        self,
        element_separator: Optional[str] = None,
        segment_terminator: Optional[str] = None,
        component_separator: Optional[str] = None,
        repetition_separator: Optional[str] = None,
    ):
        self.element_separator = element_separator or self.ELEMENT_SEPARATOR
        self.segment_terminator = segment_terminator or self.SEGMENT_TERMINATOR
        self.component_separator = component_separator or self.COMPONENT_SEPARATOR
        self.repetition_separator = repetition_separator or self.REPETITION_SEPARATOR

    def detect_delimiters(self, content: str) -> Tuple[str, str, str, str]:
        """
        Read (element, terminator, component, repetition) from the ISA.

        The ISA is fixed width: the element separator follows "ISA", ISA16
        (component separator) is character 104 and the terminator 105.

        Raises:
            X12ParseError: Content does not open with a full-width ISA
        """
        if not content.startswith("ISA"):
            raise X12ParseError("Interchange does not begin with ISA")
        if len(content) < self.ISA_LENGTH:
            raise X12ParseError(f"ISA is shorter than {self.ISA_LENGTH} characters")

        element = content[3]
        isa = content[: self.ISA_LENGTH - 1].split(element)
        # ISA11 holds the repetition separator in 005010
        repetition = isa[11] if len(isa) > 11 and len(isa[11]) == 1 else self.REPETITION_SEPARATOR
        return element, content[105], content[104], repetition

    def _adopt_isa_delimiters(self, content: str) -> None:
        try:
            element, terminator, component, repetition = self.detect_delimiters(content)
        except X12ParseError as e:
            logger.debug(f"Keeping default delimiters: {e}")
            return

        # Unpadded ISA IDs shift the offsets onto data characters
        if terminator.isalnum() or terminator == " ":
            logger.warning("ISA is not fixed width, keeping default delimiters")
            return

        self.element_separator = element
        self.segment_terminator = terminator
        self.component_separator = component
        self.repetition_separator = repetition

    def tokenize(self, content: str, auto_detect: bool = True) -> List[X12Segment]:
        """
        Split content into segments.

        Line breaks are dropped and empty segments skipped. A segment's
        position is its index among the terminator-delimited chunks.

        Raises:
            X12ParseError: content is None
        """
        if content is None:
            raise X12ParseError("No X12 content to tokenize")

        content = content.strip()
        if auto_detect and content.startswith("ISA"):
            self._adopt_isa_delimiters(content)

        segments = []
        for position, chunk in enumerate(content.split(self.segment_terminator)):
            chunk = _LINE_BREAKS.sub("", chunk).strip()
            if not chunk:
                continue
            segment_id, *elements = chunk.split(self.element_separator)
            segments.append(X12Segment(segment_id.strip(), elements, position))
        return segments

    def tokenize_structured(self, content: str) -> List[StructuredSegment]:
        """Tokenize and convert every segment to its named-field view."""
        return [structure_segment(segment, self.repetition_separator) for segment in self.tokenize(content)]

    def interchange_header(self, segments: List[X12Segment]) -> Optional[InterchangeHeader]:
        """ISA control fields, or None when the content had no ISA."""
        isa = next((s for s in segments if s.segment_id == "ISA"), None)
        return InterchangeHeader.from_isa(isa) if isa else None

    def get_transaction_type(self, segments: List[X12Segment]) -> Tuple[TransactionType, str]:
        """
        Read ST01/ST02.

        Returns:
            (transaction type, transaction set control number)

        Raises:
            X12ParseError: No ST segment, or a set other than 270/271
        """
        st = next((s for s in segments if s.segment_id == "ST"), None)
        if st is None:
            raise X12ParseError("No ST segment found")

        code = st.get_element(0)
        try:
            return TransactionType(code), st.get_element(1)
        except ValueError:
            raise X12ParseError(f"Unsupported transaction set {code}", segment_id="ST", position=st.position)


# =============================================================================
# Utility Functions
# =============================================================================

# Two-digit years follow strptime's pivot: 69-99 are 19xx, 00-68 are 20xx
_X12_DATE_FORMATS = {8: "%Y%m%d", 6: "%y%m%d"}


def parse_x12_date(value: str) -> Optional[date]:
    """CCYYMMDD or YYMMDD to a date; None when empty or invalid."""
    date_format = _X12_DATE_FORMATS.get(len(value or ""))
    if date_format is None:
        return None
    try:
        return datetime.strptime(value, date_format).date()
    except ValueError:
        return None


def format_x12_date(d: date) -> str:
    return d.strftime("%Y%m%d")


def format_x12_time(t: datetime) -> str:
    return t.strftime("%H%M")


def is_numeric(value: str) -> bool:
    """True for unsigned decimal text such as '1250' or '40.00'."""
    if not value:
        return False
    whole, separator, fraction = value.partition(".")
    if not whole.isdigit():
        return False
    return not separator or fraction.isdigit()


def validate_npi(npi: str) -> bool:
    """
    NPI check digit.

    Luhn over the 10 digits prefixed with the 80840 health industry issuer
    code (CMS NPI check digit algorithm).
    """
    if not npi or len(npi) != 10 or not npi.isdigit():
        return False

    total = 0
    for index, char in enumerate(reversed("80840" + npi)):
        digit = int(char)
        if index % 2:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0
