"""
Unit Tests for X12 270 Generation.

Source: ASC X12 005010X279A1 Implementation Guide
Verified: 2025-12-19

Tests:
- Dialect validation before encoding
- Envelope and hierarchy structure
- Dialect-specific subscriber segments
"""

import pytest
from datetime import date, datetime

from src.services.edi.x12_270_generator import (
    InterchangeParties,
    PatientInquiry,
    ProviderIdentity,
    X12270Generator,
    parse_provider_name,
    validate_inquiry,
)
from src.services.edi.payer_dialects import PayerDialect
from src.services.edi.x12_base import X12Tokenizer
from src.utils.errors import ValidationError


NOW = datetime(2025, 12, 19, 14, 30)
PARTIES = InterchangeParties(sender_id="1161680", receiver_id="OFFALLY")
MOONLIT = ProviderIdentity(name="MOONLIT PLLC", npi="1275348807", tax_id="33-2185708")
NORSETH = ProviderIdentity(name="Travis Norseth", npi="1902336593")


def _segments(content):
    return X12Tokenizer().tokenize(content)


def _find(segments, segment_id, first_element=None):
    return [
        s for s in segments
        if s.segment_id == segment_id and (first_element is None or s.get_element(0) == first_element)
    ]


@pytest.fixture
def generator():
    return X12270Generator()


# =============================================================================
# Validation Tests
# =============================================================================


@pytest.mark.unit
class TestInquiryValidation:
    """Inquiry validation against payer dialects."""

    def test_missing_identifier(self, registry):
        """Either member number or Medicaid ID satisfies the identifier requirement."""
        inquiry = PatientInquiry(first_name="Jane", last_name="Doe", date_of_birth="1990-01-01")

        with pytest.raises(ValidationError) as exc_info:
            validate_inquiry(inquiry, registry.get("UTMCD"))
        assert exc_info.value.missing_fields == ["memberNumber|medicaidId"]

    def test_member_number_satisfies_medicaid(self, registry):
        """A member number stands in for the Medicaid ID."""
        inquiry = PatientInquiry(
            first_name="Jane", last_name="Doe", date_of_birth="1990-01-01", member_number="0123456789"
        )
        validate_inquiry(inquiry, registry.get("UTMCD"))

    def test_missing_required_fields_listed(self, registry):
        """All missing required fields are reported together."""
        inquiry = PatientInquiry(first_name=" ", last_name="Doe")

        with pytest.raises(ValidationError) as exc_info:
            validate_inquiry(inquiry, registry.get("60054"))
        assert exc_info.value.missing_fields == ["firstName", "dateOfBirth", "memberNumber|medicaidId"]
        assert "Aetna" in str(exc_info.value)

    def test_bad_date_of_birth(self, registry):
        """Dates must be YYYY-MM-DD."""
        inquiry = PatientInquiry(
            first_name="Jane", last_name="Doe", date_of_birth="01/01/1990", medicaid_id="0123456789"
        )
        with pytest.raises(ValidationError) as exc_info:
            validate_inquiry(inquiry, registry.get("UTMCD"))
        assert exc_info.value.missing_fields == ["dateOfBirth"]

    def test_bad_gender(self, registry):
        """Only M, F, U and X are accepted."""
        inquiry = PatientInquiry(
            first_name="John", last_name="Doe", date_of_birth="1985-06-15", member_number="W1", gender="Q"
        )
        with pytest.raises(ValidationError):
            validate_inquiry(inquiry, registry.get("60054"))

    def test_generate_validates_first(self, generator, registry):
        """No 270 is produced for an invalid inquiry."""
        with pytest.raises(ValidationError):
            generator.generate(
                PatientInquiry(first_name="Jane", last_name="Doe"),
                registry.get("UTMCD"),
                MOONLIT,
                PARTIES,
            )


# =============================================================================
# Structure Tests
# =============================================================================


@pytest.mark.unit
class TestX12270Structure:
    """Envelope and hierarchy."""

    def test_isa_is_fixed_width(self, generator, registry, medicaid_inquiry):
        """ISA is 106 characters with padded sender and receiver."""
        content = generator.generate(
            medicaid_inquiry, registry.get("UTMCD"), MOONLIT, PARTIES, control_number="42", now=NOW
        )
        isa = content.split("~")[0] + "~"

        assert len(isa) == 106
        assert "*ZZ*1161680        *01*OFFALLY        *251219*1430*^*00501*000000042*0*P*:~" in isa

    def test_control_number_padded_everywhere(self, generator, registry, medicaid_inquiry):
        """ISA13, GS06, GE02 and IEA02 share the 9-digit control number."""
        segments = _segments(generator.generate(
            medicaid_inquiry, registry.get("UTMCD"), MOONLIT, PARTIES, control_number="42", now=NOW
        ))

        assert _find(segments, "ISA")[0].get_element(12) == "000000042"
        assert _find(segments, "GS")[0].get_element(5) == "000000042"
        assert _find(segments, "GE")[0].elements == ["1", "000000042"]
        assert _find(segments, "IEA")[0].elements == ["1", "000000042"]

    @pytest.mark.parametrize("control_number", ["1234567890", "12AB"])
    def test_control_number_must_fit_isa(self, generator, registry, medicaid_inquiry, control_number):
        """Control numbers longer than 9 digits or non-numeric are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            generator.generate(
                medicaid_inquiry, registry.get("UTMCD"), MOONLIT, PARTIES, control_number=control_number, now=NOW
            )
        assert exc_info.value.missing_fields == ["controlNumber"]

    def test_se_count_covers_st_through_se(self, generator, registry, medicaid_inquiry):
        """SE01 counts ST through SE inclusive."""
        segments = _segments(generator.generate(
            medicaid_inquiry, registry.get("UTMCD"), MOONLIT, PARTIES, now=NOW
        ))
        ids = [s.segment_id for s in segments]
        st_index, se_index = ids.index("ST"), ids.index("SE")

        assert int(segments[se_index].get_element(0)) == se_index - st_index + 1

    def test_hierarchy_and_headers(self, generator, registry, medicaid_inquiry):
        """ST, BHT and three HL levels in order."""
        segments = _segments(generator.generate(
            medicaid_inquiry, registry.get("UTMCD"), MOONLIT, PARTIES, control_number="123456789", now=NOW
        ))

        assert _find(segments, "ST")[0].elements == ["270", "0001", "005010X279A1"]
        assert _find(segments, "GS")[0].get_element(0) == "HS"
        bht = _find(segments, "BHT")[0]
        assert bht.elements == ["0022", "13", "MOONLITPLLC-123456789", "20251219", "1430"]
        assert [hl.elements for hl in _find(segments, "HL")] == [
            ["1", "", "20", "1"],
            ["2", "1", "21", "1"],
            ["3", "2", "22", "0"],
        ]

    def test_payer_nm1(self, generator, registry, medicaid_inquiry):
        """Payer NM1 carries the dialect's name and code."""
        segments = _segments(generator.generate(
            medicaid_inquiry, registry.get("UTMCD"), MOONLIT, PARTIES, now=NOW
        ))
        assert str(_find(segments, "NM1", "PR")[0]) == "NM1*PR*2*UTAH MEDICAID*****PI*UTMCD"

    def test_new_control_number(self):
        """Generated control numbers are 9 digits."""
        number = X12270Generator.new_control_number()
        assert len(number) == 9 and number.isdigit()


# =============================================================================
# Provider Loop Tests
# =============================================================================


@pytest.mark.unit
class TestProviderLoop:
    """Information receiver NM1 and tax ID."""

    def test_organization_provider(self, generator, registry, medicaid_inquiry):
        """Organizations use entity type 2 and a REF*TJ with digits only."""
        segments = _segments(generator.generate(
            medicaid_inquiry, registry.get("UTMCD"), MOONLIT, PARTIES, now=NOW
        ))

        assert str(_find(segments, "NM1", "1P")[0]) == "NM1*1P*2*MOONLIT PLLC*****XX*1275348807"
        assert str(_find(segments, "REF", "TJ")[0]) == "REF*TJ*332185708"

    def test_person_provider(self, generator, registry, aetna_inquiry):
        """People are split into last and first name; no tax ID, no REF*TJ."""
        segments = _segments(generator.generate(
            aetna_inquiry, registry.get("60054"), NORSETH, PARTIES, now=NOW
        ))

        assert str(_find(segments, "NM1", "1P")[0]) == "NM1*1P*1*NORSETH*TRAVIS****XX*1902336593"
        assert _find(segments, "REF", "TJ") == []

    @pytest.mark.parametrize(
        "name,entity_type,last,first",
        [
            ("Moonlit PLLC", "2", "MOONLIT PLLC", ""),
            ("Wasatch Behavioral Health Group", "2", "WASATCH BEHAVIORAL HEALTH GROUP", ""),
            ("Travis Norseth", "1", "NORSETH", "TRAVIS"),
            ("Anthony_Privratsky", "1", "PRIVRATSKY", "ANTHONY"),
            ("Cher", "1", "CHER", ""),
        ],
    )
    def test_parse_provider_name(self, name, entity_type, last, first):
        """Organization tokens decide the entity type."""
        parsed = parse_provider_name(name)
        assert parsed.entity_type == entity_type
        assert parsed.last_or_organization_name == last
        assert parsed.first_name == first


# =============================================================================
# Subscriber Loop Tests
# =============================================================================


@pytest.mark.unit
class TestSubscriberLoop:
    """Dialect-specific subscriber segments."""

    def test_medicaid_subscriber(self, generator, registry, medicaid_inquiry):
        """Utah Medicaid: member ID in NM1, DMG without gender, RD8 service date."""
        inquiry = PatientInquiry(
            first_name="Jane",
            last_name="Doe",
            date_of_birth="1990-01-01",
            gender="F",
            medicaid_id="0123456789",
            service_date=date(2025, 12, 1),
        )
        segments = _segments(generator.generate(inquiry, registry.get("UTMCD"), MOONLIT, PARTIES, now=NOW))

        assert str(_find(segments, "NM1", "IL")[0]) == "NM1*IL*1*DOE*JANE****MI*0123456789"
        assert str(_find(segments, "DMG")[0]) == "DMG*D8*19900101"
        assert str(_find(segments, "DTP")[0]) == "DTP*291*RD8*20251201-20251201"
        assert [s.get_element(0) for s in _find(segments, "EQ")] == ["30", "98", "A8"]

    def test_aetna_subscriber(self, generator, registry, aetna_inquiry):
        """Aetna: gender in DMG, group number REF, D8 service date defaulting to today."""
        segments = _segments(generator.generate(aetna_inquiry, registry.get("60054"), NORSETH, PARTIES, now=NOW))

        assert str(_find(segments, "NM1", "IL")[0]) == "NM1*IL*1*DOE*JOHN****MI*W123456789"
        assert str(_find(segments, "REF", "6P")[0]) == "REF*6P*GRP-001"
        assert str(_find(segments, "DMG")[0]) == "DMG*D8*19850615*M"
        assert str(_find(segments, "DTP")[0]) == "DTP*291*D8*20251219"

    def test_member_id_omitted_when_unsupported(self, generator):
        """Dialects without NM1 member ID support send the name only."""
        dialect = PayerDialect(
            payer_code="NAMEONLY",
            payer_name="Name Only Payer",
            required_fields=["firstName", "lastName"],
            supports_member_id_in_nm1=False,
            allows_name_only=True,
        )
        inquiry = PatientInquiry(first_name="Jane", last_name="Doe", member_number="123")
        segments = _segments(generator.generate(inquiry, dialect, MOONLIT, PARTIES, now=NOW))

        assert str(_find(segments, "NM1", "IL")[0]) == "NM1*IL*1*DOE*JANE"
        assert _find(segments, "DMG") == []
        assert _find(segments, "DTP") == []

    def test_unneeded_supplemental_ids_skipped(self, generator, registry):
        """SSN is only sent to payers that use it; group number likewise."""
        inquiry = PatientInquiry(
            first_name="Jane",
            last_name="Doe",
            date_of_birth="1990-01-01",
            medicaid_id="0123456789",
            ssn="123-45-6789",
            group_number="G1",
        )
        segments = _segments(generator.generate(inquiry, registry.get("UTMCD"), MOONLIT, PARTIES, now=NOW))

        assert str(_find(segments, "REF", "SY")[0]) == "REF*SY*123456789"
        assert _find(segments, "REF", "6P") == []

    def test_delimiters_stripped_from_free_text(self, generator, registry):
        """Names cannot break the segment structure."""
        inquiry = PatientInquiry(
            first_name="Jo*Ann", last_name="O~Brien", date_of_birth="1990-01-01", medicaid_id="0123456789"
        )
        segments = _segments(generator.generate(inquiry, registry.get("UTMCD"), MOONLIT, PARTIES, now=NOW))

        subscriber = _find(segments, "NM1", "IL")[0]
        assert subscriber.get_element(2) == "O BRIEN"
        assert subscriber.get_element(3) == "JO ANN"
