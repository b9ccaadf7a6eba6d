"""
Unit Tests for 271 Financial Benefits Extraction.

Source: ASC X12 005010X279A1 Implementation Guide (EB segment)
Verified: 2025-12-19

Tests:
- EB amount layout detection
- Deductible and out-of-pocket routing with backfill
- Copay and coinsurance routing
- Network status handling
"""

import pytest
from decimal import Decimal

from src.core.enums import NetworkStatus
from src.services.edi.x12_271_financial import (
    FinancialBenefitsExtractor,
    classify_office_visit,
    detect_layout,
    extract_financial_benefits,
)
from src.services.edi.x12_base import BenefitSegment, X12Segment
from tests.fixtures import build_271


def _benefit(raw):
    parts = raw.split("*")
    return BenefitSegment.from_segment(X12Segment(parts[0], parts[1:]))


def _extract(*eb_segments):
    return extract_financial_benefits(build_271(["HL*1**20*1", "HL*3*2*22*0", *eb_segments]))


# =============================================================================
# Layout Tests
# =============================================================================


@pytest.mark.unit
class TestLayoutDetection:
    """Where payers put the amount."""

    def test_amount_in_eb07(self):
        """Standard layout: period EB06, amount EB07."""
        layout = detect_layout(_benefit("EB*C*IND*30***25*1250*****Y"))

        assert layout.monetary_amount == Decimal("1250")
        assert layout.time_period == "25"
        assert layout.percentage is None

    def test_amount_in_eb06_with_qualifier_in_eb05(self):
        """Shifted layout: qualifier EB05, amount EB06."""
        layout = detect_layout(_benefit("EB*C*IND*30**C1*1250"))

        assert layout.monetary_amount == Decimal("1250")
        assert layout.amount_qualifier == "C1"
        assert layout.time_period == ""

    def test_amount_in_eb06_with_period_in_eb05(self):
        """Shifted layout with a time code in EB05."""
        layout = detect_layout(_benefit("EB*C*IND*30**29*800"))

        assert layout.monetary_amount == Decimal("800")
        assert layout.time_period == "29"

    def test_percent_only(self):
        """Coinsurance with neither amount position filled."""
        layout = detect_layout(_benefit("EB*A*IND*98*****.20"))

        assert layout.monetary_amount is None
        assert layout.percentage == Decimal("0.20")

    def test_eb07_amount_period_falls_back_to_eb05(self):
        """Non-numeric EB06 means the period, if any, is in EB05."""
        layout = detect_layout(_benefit("EB*B*IND*98****40"))

        assert layout.monetary_amount == Decimal("40")
        assert layout.time_period == ""


# =============================================================================
# Extraction Tests
# =============================================================================


@pytest.mark.unit
class TestFinancialExtraction:
    """Full 271 extraction."""

    def test_commercial_response(self, commercial_271):
        """Deductibles, OOP, copays and coinsurance from one response."""
        benefits = FinancialBenefitsExtractor().extract(commercial_271)

        assert benefits.is_in_network is True
        assert benefits.network_status == NetworkStatus.IN_NETWORK

        assert benefits.deductible_total == Decimal("1000")
        assert benefits.deductible_remaining == Decimal("400")
        assert benefits.deductible_met == Decimal("600")
        assert benefits.family_deductible_total == Decimal("3000")
        assert benefits.family_deductible_met == Decimal("500")
        assert benefits.family_deductible_remaining == Decimal("2500")

        assert benefits.oop_max_total == Decimal("5000")
        assert benefits.oop_max_remaining == Decimal("4200")
        assert benefits.oop_max_met == Decimal("800")
        assert benefits.family_oop_max_total is None

        assert benefits.specialist_copay == Decimal("60")
        assert benefits.primary_care_copay == Decimal("25")
        assert benefits.urgent_care_copay == Decimal("75")
        assert benefits.mental_health_outpatient == Decimal("30")
        assert benefits.emergency_copay is None

        assert benefits.primary_care_coinsurance == Decimal("0.20")

    def test_out_of_network_amounts_discarded(self, commercial_271):
        """EB12=N amounts stay in raw_benefits only."""
        benefits = FinancialBenefitsExtractor().extract(commercial_271)

        assert benefits.deductible_total == Decimal("1000")
        out_of_network = [b for b in benefits.raw_benefits if b.network_flag == "N"]
        assert len(out_of_network) == 1
        assert out_of_network[0].monetary_amount == Decimal("9999")

    def test_raw_benefits_skip_bare_coverage(self, commercial_271):
        """EB01=1 without an amount is not a financial benefit."""
        benefits = FinancialBenefitsExtractor().extract(commercial_271)

        assert len(benefits.raw_benefits) == 12
        assert all(b.eligibility_code != "1" for b in benefits.raw_benefits)
        assert benefits.raw_benefits[0].service_types == ["Health Benefit Plan Coverage"]

    def test_medicaid_without_amounts(self, medicaid_ffs_271):
        """A response without financial data yields None."""
        assert extract_financial_benefits(medicaid_ffs_271) is None

    def test_first_network_flag_wins(self):
        """Network status is set by the first Y/N flag."""
        benefits = _extract("EB*C*IND*30***25*500*****N", "EB*C*IND*30***25*900*****Y")

        assert benefits.is_in_network is False
        assert benefits.network_status == NetworkStatus.OUT_OF_NETWORK
        assert benefits.deductible_total == Decimal("900")

    def test_unflagged_amounts_accumulate(self):
        """Amounts without EB12 are treated as applicable."""
        benefits = _extract("EB*C*IND*30***25*750")

        assert benefits.deductible_total == Decimal("750")
        assert benefits.network_status is None

    def test_qualifier_routes_amount(self):
        """An EB05 C1 qualifier marks a deductible regardless of EB01."""
        benefits = _extract("EB*1*IND*30**C1*1500")
        assert benefits.deductible_total == Decimal("1500")

    def test_raw_benefit_amount_type(self):
        """Raw benefits name the amount qualifier; unknown codes stay unlabeled."""
        benefits = _extract("EB*1*IND*30**C1*1500", "EB*B*IND*UC****25")

        assert benefits.raw_benefits[0].amount_type == "Deductible"
        assert benefits.raw_benefits[1].amount_type is None

    def test_zero_amounts_are_data(self):
        """A zero copay is still reported."""
        benefits = _extract("EB*B*IND*UC****0")
        assert benefits.urgent_care_copay == Decimal("0")

    def test_backfill_keeps_reported_values(self):
        """Backfill never overwrites a value the payer sent."""
        benefits = _extract(
            "EB*C*IND*30***25*1000",
            "EB*C*IND*30***29*300",
            "EB*C*IND*30***32*650",
        )

        assert benefits.deductible_met == Decimal("650")
        assert benefits.deductible_remaining == Decimal("300")

    def test_unclassified_office_visit_is_primary_care(self):
        """Office visits without descriptive text default to primary care."""
        benefits = _extract("EB*B*IND*98****35", "EB*B*IND*98****50")

        assert benefits.primary_care_copay == Decimal("35")
        assert benefits.specialist_copay is None

    def test_specialist_coinsurance(self):
        """Coinsurance on specialist service types."""
        benefits = _extract("EB*A*IND*A0*****.30")
        assert benefits.specialist_coinsurance == Decimal("0.30")

    def test_coverage_level_outside_ind_fam_ignored(self):
        """Deductibles for other coverage levels are not routed."""
        assert _extract("EB*C*EMP*30***25*200") is None


@pytest.mark.unit
class TestOfficeVisitClassification:
    """Primary care vs specialist heuristic."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("SPECIALIST OFFICE VISIT", "specialist"),
            ("primary care physician", "primary_care"),
            ("PRIMARY CARE~SPECIALIST", "specialist"),
            ("OFFICE VISIT", None),
        ],
    )
    def test_classify(self, text, expected):
        """Specialist wording wins over primary care wording."""
        assert classify_office_visit(text) == expected
