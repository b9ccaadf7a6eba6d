"""
Unit Tests for X12 Base Parsing.

Source: ASC X12 005010X279A1 Implementation Guide
Verified: 2025-12-19

Tests:
- Delimiter detection from the fixed-width ISA
- Tokenizing and structured segment views
- Date and NPI utilities
"""

import pytest
from datetime import date

from src.services.edi.x12_base import (
    BenefitSegment,
    ContactSegment,
    DateSegment,
    LoopBoundarySegment,
    NameSegment,
    TransactionType,
    X12ParseError,
    X12Segment,
    X12Tokenizer,
    is_numeric,
    parse_x12_date,
    format_x12_date,
    structure_segment,
    validate_npi,
)
from tests.fixtures import MEDICAID_FFS_BODY, build_271, build_isa


# =============================================================================
# Tokenizer Tests
# =============================================================================


@pytest.mark.unit
class TestX12Tokenizer:
    """Test X12 tokenizer functionality."""

    def test_isa_fixture_is_fixed_width(self):
        """The test ISA builder produces the 106-character segment."""
        assert len(build_isa()) == 106

    def test_detect_delimiters(self):
        """Delimiters come from ISA positions 3, 104 and 105 and ISA11."""
        element, terminator, component, repetition = X12Tokenizer().detect_delimiters(build_isa())
        assert element == "*"
        assert terminator == "~"
        assert component == ":"
        assert repetition == "^"

    def test_detect_delimiters_requires_isa(self):
        """Content not starting with ISA is rejected."""
        with pytest.raises(X12ParseError):
            X12Tokenizer().detect_delimiters("GS*HB*X~")

    def test_custom_delimiters_detected(self):
        """A pipe-delimited interchange is tokenized with its own delimiters."""
        content = build_271(MEDICAID_FFS_BODY).replace("*", "|").replace("~", "\n")
        segments = X12Tokenizer().tokenize(content)

        assert segments[0].segment_id == "ISA"
        nm1 = next(s for s in segments if s.segment_id == "NM1")
        assert nm1.get_element(2) == "UTAH MEDICAID"

    def test_short_isa_falls_back_to_defaults(self):
        """An unpadded ISA still tokenizes with default delimiters."""
        content = "ISA*00**00**ZZ*A*ZZ*B*251219*1200*^*00501*1*0*P*:~ST*271*0001~SE*2*0001~"
        segments = X12Tokenizer().tokenize(content)

        assert [s.segment_id for s in segments] == ["ISA", "ST", "SE"]

    def test_tokenize_skips_blank_segments_and_newlines(self):
        """Line breaks between segments are ignored."""
        segments = X12Tokenizer().tokenize("ST*271*0001~\r\nBHT*0022*11~\n\nSE*3*0001~")
        assert [s.segment_id for s in segments] == ["ST", "BHT", "SE"]

    def test_tokenize_none_raises(self):
        """None content is a parse error."""
        with pytest.raises(X12ParseError):
            X12Tokenizer().tokenize(None)

    def test_transaction_type(self):
        """ST01 identifies a 271."""
        tokenizer = X12Tokenizer()
        segments = tokenizer.tokenize(build_271(MEDICAID_FFS_BODY))

        transaction_type, control = tokenizer.get_transaction_type(segments)
        assert transaction_type == TransactionType.ELIG_271
        assert control == "0001"

    def test_unsupported_transaction_type(self):
        """Transaction sets other than 270/271 are rejected."""
        tokenizer = X12Tokenizer()
        segments = tokenizer.tokenize("ST*837*0001~SE*2*0001~")
        with pytest.raises(X12ParseError):
            tokenizer.get_transaction_type(segments)

    def test_interchange_header(self):
        """ISA control fields are exposed with padding removed."""
        tokenizer = X12Tokenizer()
        header = tokenizer.interchange_header(tokenizer.tokenize(build_271(MEDICAID_FFS_BODY, control="000000042")))

        assert header.sender_id == "OFFALLY"
        assert header.receiver_id == "1161680"
        assert header.control_number == "000000042"
        assert header.usage_indicator == "P"


# =============================================================================
# Structured Segment Tests
# =============================================================================


@pytest.mark.unit
class TestStructuredSegments:
    """Named-field views of 271 segments."""

    def test_get_element_is_zero_based(self):
        """Element 0 is the first element after the segment ID."""
        segment = X12Segment("NM1", ["IL", "1", "DOE"])
        assert segment.get_element(0) == "IL"
        assert segment.get_element(10, "missing") == "missing"
        assert str(segment) == "NM1*IL*1*DOE"

    def test_name_segment(self):
        """NM1 exposes entity, name and identifier."""
        view = structure_segment(X12Segment("NM1", "IL*1*DOE*JANE****MI*0123456789".split("*")))

        assert isinstance(view, NameSegment)
        assert view.entity_identifier == "IL"
        assert view.last_or_organization_name == "DOE"
        assert view.first_name == "JANE"
        assert view.id_qualifier == "MI"
        assert view.identifier == "0123456789"

    def test_benefit_segment_repeated_service_types(self):
        """EB03 repetitions become a list."""
        view = structure_segment(X12Segment("EB", "B*IND*98^UC***27*25".split("*")))

        assert isinstance(view, BenefitSegment)
        assert view.service_type_codes == ["98", "UC"]
        assert view.time_period == "27"
        assert view.monetary_amount == "25"
        assert view.in_plan_network == ""

    def test_date_segment_range(self):
        """RD8 values expose start and end dates."""
        view = structure_segment(X12Segment("DTP", ["307", "RD8", "20250101-20251231"]))

        assert isinstance(view, DateSegment)
        assert view.start_date == date(2025, 1, 1)
        assert view.end_date == date(2025, 12, 31)

    def test_contact_segment_phone(self):
        """The first TE communication number is the phone."""
        view = structure_segment(X12Segment("PER", ["IC", "", "UR", "www.example.com", "TE", "8005551234"]))

        assert isinstance(view, ContactSegment)
        assert view.phone == "8005551234"

    def test_loop_boundaries(self):
        """LS opens and LE closes a loop."""
        start = structure_segment(X12Segment("LS", ["2120"]))
        end = structure_segment(X12Segment("LE", ["2120"]))

        assert isinstance(start, LoopBoundarySegment)
        assert start.is_start and start.loop_id == "2120"
        assert not end.is_start

    def test_unknown_segment_unchanged(self):
        """Segments without a view are returned as-is."""
        segment = X12Segment("HL", ["1", "", "20", "1"])
        assert structure_segment(segment) is segment


# =============================================================================
# Utility Tests
# =============================================================================


@pytest.mark.unit
class TestX12Utilities:
    """Date, number and NPI helpers."""

    def test_parse_x12_date(self):
        """CCYYMMDD and YYMMDD both parse."""
        assert parse_x12_date("20251219") == date(2025, 12, 19)
        assert parse_x12_date("251219") == date(2025, 12, 19)
        assert parse_x12_date("991231") == date(1999, 12, 31)

    def test_parse_x12_date_invalid(self):
        """Invalid or empty dates return None."""
        assert parse_x12_date("") is None
        assert parse_x12_date("20251340") is None
        assert parse_x12_date("2025") is None

    def test_format_x12_date(self):
        """Dates are formatted CCYYMMDD."""
        assert format_x12_date(date(2025, 1, 5)) == "20250105"

    @pytest.mark.parametrize(
        "value,expected",
        [("1250", True), ("40.00", True), ("", False), ("C1", False), (".20", False), ("1.", False)],
    )
    def test_is_numeric(self, value, expected):
        """Only unsigned decimal text with a leading digit counts as numeric."""
        assert is_numeric(value) is expected

    def test_validate_npi(self):
        """Luhn check with the 80840 prefix."""
        assert validate_npi("1234567893") is True
        assert validate_npi("1234567890") is False
        assert validate_npi("12345") is False
        assert validate_npi("12345abcde") is False
