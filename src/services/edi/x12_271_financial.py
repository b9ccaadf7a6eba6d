"""
X12 271 Financial Benefits Extractor.

Source: ASC X12 005010X279A1 Implementation Guide (EB segment),
        https://www.stedi.com/edi/x12/segment/EB
Verified: 2025-12-19

Independent second pass over a 271 that rebuilds deductible, out-of-pocket
maximum, copay and coinsurance amounts so patients can see their financial
responsibility before an appointment.

Payers place the same information at different EB positions:
- EB*C*IND*30**C1*1250             amount in EB06, qualifier in EB05
- EB*C*IND*30***25*1250*****Y      amount in EB07, time period in EB06
- EB*B*FAM*98****40*****Y          amount in EB07, EB04-EB06 empty
"""

from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from src.core.enums import NetworkStatus
from src.services.edi.x12_base import (
    BenefitSegment,
    MessageSegment,
    StructuredSegment,
    X12Tokenizer,
    is_numeric,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Code Tables
# =============================================================================

# EB03 service type codes
SERVICE_TYPE_CODES: Dict[str, str] = {
    "1": "Medical Care",
    "2": "Surgical",
    "3": "Consultation",
    "4": "Diagnostic X-Ray",
    "5": "Diagnostic Lab",
    "6": "Radiation Therapy",
    "7": "Anesthesia",
    "8": "Surgical Assistance",
    "12": "Durable Medical Equipment",
    "13": "Ambulatory Service Center Facility",
    "14": "Renal Supplies",
    "17": "Pre-Admission Testing",
    "18": "Durable Medical Equipment Purchase",
    "19": "Durable Medical Equipment Rental",
    "20": "Pneumonia Vaccine",
    "21": "Second Surgical Opinion",
    "22": "Third Surgical Opinion",
    "23": "Social Work",
    "24": "Diagnostic Dental",
    "25": "Periodontics",
    "26": "Restorative",
    "27": "Endodontics",
    "28": "Maxillofacial Prosthetics",
    "30": "Health Benefit Plan Coverage",
    "33": "Chiropractic",
    "35": "Dental Care",
    "36": "Dental Crowns",
    "37": "Dental Accident",
    "38": "Orthodontics",
    "39": "Prosthodontics",
    "40": "Oral Surgery",
    "41": "Routine Preventive Dental",
    "42": "Home Health Care",
    "43": "Home Health Prescriptions",
    "44": "Home Health Visits",
    "45": "Hospice",
    "46": "Respite Care",
    "47": "Hospital",
    "48": "Hospital - Inpatient",
    "49": "Hospital - Room and Board",
    "50": "Hospital - Outpatient",
    "51": "Hospital - Emergency Accident",
    "52": "Hospital - Emergency Medical",
    "53": "Hospital - Ambulatory Surgical",
    "54": "Long Term Care",
    "55": "Major Medical",
    "56": "Medically Related Transportation",
    "57": "Air Transportation",
    "58": "Cabulance",
    "59": "Licensed Ambulance",
    "60": "General Benefits",
    "61": "In-vitro Fertilization",
    "62": "MRI/CAT Scan",
    "63": "Donor Procedures",
    "64": "Acupuncture",
    "65": "Newborn Care",
    "66": "Pathology",
    "67": "Smoking Cessation",
    "68": "Well Baby Care",
    "69": "Maternity",
    "70": "Transplants",
    "71": "Audiology Exam",
    "72": "Inhalation Therapy",
    "73": "Diagnostic Medical",
    "74": "Private Duty Nursing",
    "75": "Prosthetic Device",
    "76": "Dialysis",
    "77": "Otological Exam",
    "78": "Chemotherapy",
    "79": "Allergy Testing",
    "80": "Immunizations",
    "81": "Routine Physical",
    "82": "Family Planning",
    "83": "Infertility",
    "84": "Abortion",
    "85": "AIDS",
    "86": "Emergency Services",
    "87": "Cancer",
    "88": "Pharmacy",
    "89": "Free Standing Prescription Drug",
    "90": "Mail Order Prescription Drug",
    "91": "Brand Name Prescription Drug",
    "92": "Generic Prescription Drug",
    "93": "Podiatry",
    "94": "Podiatry - Office Visits",
    "95": "Podiatry - Nursing Home Visits",
    "96": "Professional (Physician)",
    "97": "Anesthetist",
    "98": "Professional (Physician) Visit - Office",
    "99": "Professional (Physician) Visit - Inpatient",
    "A0": "Professional (Physician) Visit - Outpatient",
    "A1": "Professional (Physician) Visit - Nursing Home",
    "A2": "Professional (Physician) Visit - Skilled Nursing Facility",
    "A3": "Professional (Physician) Visit - Home",
    "A4": "Psychiatric",
    "A5": "Psychiatric - Room and Board",
    "A6": "Psychotherapy",
    "A7": "Psychiatric - Inpatient",
    "A8": "Psychiatric - Outpatient",
    "A9": "Rehabilitation",
    "AA": "Rehabilitation - Room and Board",
    "AB": "Rehabilitation - Inpatient",
    "AC": "Rehabilitation - Outpatient",
    "AD": "Occupational Therapy",
    "AE": "Physical Medicine",
    "AF": "Speech Therapy",
    "AG": "Skilled Nursing Care",
    "AH": "Skilled Nursing Care - Room and Board",
    "AI": "Substance Abuse",
    "AJ": "Alcoholism",
    "AK": "Drug Addiction",
    "AL": "Vision (Optometry)",
    "AM": "Frames",
    "AN": "Routine Exam",
    "AO": "Lenses",
    "AQ": "Nonmedically Necessary Physical",
    "AR": "Experimental Drug Therapy",
    "B1": "Burn Care",
    "B2": "Brand Name Prescription Drug - Formulary",
    "B3": "Brand Name Prescription Drug - Non-Formulary",
    "BA": "Independent Medical Evaluation",
    "BB": "Partial Hospitalization (Psychiatric)",
    "BC": "Day Care (Psychiatric)",
    "BD": "Cognitive Therapy",
    "BE": "Massage Therapy",
    "BF": "Pulmonary Rehabilitation",
    "BG": "Cardiac Rehabilitation",
    "BH": "Pediatric",
    "BI": "Nursery",
    "BJ": "Skin",
    "BK": "Orthopedic",
    "BL": "Cardiac",
    "BM": "Lymphatic",
    "BN": "Gastrointestinal",
    "BP": "Endocrine",
    "BQ": "Neurology",
    "BR": "Eye",
    "BS": "Invasive Procedures",
    "BT": "Gynecological",
    "BU": "Obstetrical",
    "BV": "Obstetrical/Gynecological",
    "BW": "Mail Order Prescription Drug: Brand Name",
    "BX": "Mail Order Prescription Drug: Generic",
    "BY": "Physician Visit - Office: Sick",
    "BZ": "Physician Visit - Office: Well",
    "C1": "Coronary Care",
    "CA": "Private Duty Nursing - Inpatient",
    "CB": "Private Duty Nursing - Home",
    "CC": "Surgical Benefits - Professional (Physician)",
    "CD": "Surgical Benefits - Facility",
    "CE": "Mental Health Provider - Inpatient",
    "CF": "Mental Health Provider - Outpatient",
    "CG": "Mental Health Facility - Inpatient",
    "CH": "Mental Health Facility - Outpatient",
    "CI": "Substance Abuse Facility - Inpatient",
    "CJ": "Substance Abuse Facility - Outpatient",
    "CK": "Screening X-ray",
    "CL": "Screening laboratory",
    "CM": "Mammogram, High Risk Patient",
    "CN": "Mammogram, Low Risk Patient",
    "CO": "Flu Vaccination",
    "CP": "Eyewear and Eyewear Accessories",
    "CQ": "Case Management",
    "DG": "Dermatology",
    "DM": "Durable Medical Equipment",
    "DS": "Diabetic Supplies",
    "GF": "Generic Prescription Drug - Formulary",
    "GN": "Generic Prescription Drug - Non-Formulary",
    "GY": "Allergy",
    "IC": "Intensive Care",
    "MH": "Mental Health",
    "NI": "Neonatal Intensive Care",
    "ON": "Oncology",
    "PT": "Physical Therapy",
    "PU": "Pulmonary",
    "RN": "Renal",
    "RT": "Residential Psychiatric Treatment",
    "SMH": "Serious Mental Health",
    "SUD": "Substance Use Disorder",
    "TC": "Transitional Care",
    "TN": "Transitional Nursery Care",
    "UC": "Urgent Care",
}

# Amount qualifiers carried in EB04 (or EB05 on some payers)
AMOUNT_QUALIFIERS: Dict[str, str] = {
    "C1": "Deductible",
    "R": "Co-Insurance",
    "B": "Co-Payment",
    "G8": "Out of Pocket (Stop Loss)",
    "F5": "Lifetime Reserve Days",
}

TIME_PERIOD_QUALIFIERS: Dict[str, str] = {
    "23": "Individual",
    "24": "Family",
    "25": "Year to Date",
    "26": "Contract",
    "27": "Episode",
    "28": "Month",
    "29": "Visit",
    "30": "Outlier",
    "31": "Remaining",
    "32": "Used",
    "33": "Day",
}

REMAINING_PERIODS = {"29", "31"}
MET_PERIODS = {"32"}
TOTAL_PERIODS = {"25", ""}

# Copay categories in precedence order; office visits (98/BY) are handled first
COPAY_CATEGORIES: List[Tuple[Tuple[str, ...], str]] = [
    (("A0", "3"), "specialist_copay"),
    (("UC", "86"), "urgent_care_copay"),
    (("51", "52"), "emergency_copay"),
    (("A7", "CG"), "mental_health_inpatient"),
    (("A8", "CH"), "mental_health_outpatient"),
    (("AI", "CJ"), "substance_use"),
]

OFFICE_VISIT_CODES = ("98", "BY")
SPECIALIST_CODES = ("A0", "3")

OFFICE_VISIT_LOOKAHEAD = 3


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class RawBenefit:
    """Decoded EB segment kept for diagnostics."""
    service_types: List[str]
    insurance_plan: Optional[str]
    monetary_amount: Optional[Decimal]
    percentage: Optional[Decimal]
    coverage_level: Optional[str]
    eligibility_code: str = ""
    time_period: Optional[str] = None
    network_flag: Optional[str] = None
    amount_type: Optional[str] = None  # Label of a C1/R/B/G8/F5 amount qualifier


@dataclass
class FinancialBenefits:
    """Patient financial responsibility reported in a 271."""
    # Network status
    is_in_network: Optional[bool] = None
    network_status: Optional[NetworkStatus] = None

    # Deductibles
    deductible_total: Optional[Decimal] = None
    deductible_met: Optional[Decimal] = None
    deductible_remaining: Optional[Decimal] = None
    family_deductible_total: Optional[Decimal] = None
    family_deductible_met: Optional[Decimal] = None
    family_deductible_remaining: Optional[Decimal] = None

    # Out-of-pocket maximum
    oop_max_total: Optional[Decimal] = None
    oop_max_met: Optional[Decimal] = None
    oop_max_remaining: Optional[Decimal] = None
    family_oop_max_total: Optional[Decimal] = None
    family_oop_max_met: Optional[Decimal] = None
    family_oop_max_remaining: Optional[Decimal] = None

    # Copays by service type
    primary_care_copay: Optional[Decimal] = None
    specialist_copay: Optional[Decimal] = None
    urgent_care_copay: Optional[Decimal] = None
    emergency_copay: Optional[Decimal] = None
    mental_health_inpatient: Optional[Decimal] = None
    mental_health_outpatient: Optional[Decimal] = None
    substance_use: Optional[Decimal] = None

    # Coinsurance percentages
    primary_care_coinsurance: Optional[Decimal] = None
    specialist_coinsurance: Optional[Decimal] = None

    raw_benefits: List[RawBenefit] = field(default_factory=list)

    def has_financial_data(self) -> bool:
        """True when any field other than raw_benefits is set."""
        return any(
            getattr(self, f.name) is not None
            for f in fields(self)
            if f.name != "raw_benefits"
        )


@dataclass
class BenefitLayout:
    """EB amount, percent, period and qualifier after layout detection."""
    monetary_amount: Optional[Decimal]
    percentage: Optional[Decimal]
    time_period: str
    amount_qualifier: str


# =============================================================================
# Heuristics and Helpers
# =============================================================================


def _to_decimal(value: Optional[str]) -> Optional[Decimal]:
    if not value:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        return None


def _coalesce(*values: Optional[Decimal]) -> Optional[Decimal]:
    for value in values:
        if value is not None:
            return value
    return None


def service_type_description(code: str) -> str:
    return SERVICE_TYPE_CODES.get(code, code)


def detect_layout(benefit: BenefitSegment) -> BenefitLayout:
    """
    Work out where a payer placed the amount in an EB segment.

    EB07 numeric: amount EB07, period EB06 when numeric (else EB05), percent EB08.
    EB06 numeric: amount EB06, percent EB07 (else EB08); EB05 is the period
    when it is a known time code, otherwise the amount qualifier.
    Neither: no amount, percent from EB08.
    """
    if is_numeric(benefit.monetary_amount):
        time_period = benefit.time_period if is_numeric(benefit.time_period) else benefit.plan_description
        return BenefitLayout(
            monetary_amount=_to_decimal(benefit.monetary_amount),
            percentage=_to_decimal(benefit.percent),
            time_period=time_period,
            amount_qualifier=benefit.insurance_type,
        )

    if is_numeric(benefit.time_period):
        description = benefit.plan_description
        time_period = ""
        qualifier = benefit.insurance_type
        if description in TIME_PERIOD_QUALIFIERS:
            time_period = description
        elif description and not is_numeric(description):
            qualifier = description
        return BenefitLayout(
            monetary_amount=_to_decimal(benefit.time_period),
            percentage=_coalesce(_to_decimal(benefit.monetary_amount), _to_decimal(benefit.percent)),
            time_period=time_period,
            amount_qualifier=qualifier,
        )

    return BenefitLayout(
        monetary_amount=None,
        percentage=_to_decimal(benefit.percent),
        time_period=benefit.time_period or benefit.plan_description,
        amount_qualifier=benefit.insurance_type,
    )


def classify_office_visit(following_text: str) -> Optional[str]:
    """
    Decide whether an office-visit (98/BY) copay is primary care or specialist.

    Confidence: low. Relies on payers describing the benefit in a nearby
    MSG segment with the literal words SPECIALIST or PRIMARY CARE.

    Returns:
        "specialist", "primary_care", or None when the text says neither
    """
    upper = following_text.upper()
    if "SPECIALIST" in upper:
        return "specialist"
    if "PRIMARY CARE" in upper:
        return "primary_care"
    return None


def _following_text(segments: Sequence[StructuredSegment], index: int) -> str:
    parts = []
    for segment in segments[index + 1:index + 1 + OFFICE_VISIT_LOOKAHEAD]:
        if isinstance(segment, MessageSegment):
            parts.append(segment.text)
        else:
            parts.append(str(getattr(segment, "segment", segment)))
    return "~".join(parts)


# =============================================================================
# Extractor
# =============================================================================


class FinancialBenefitsExtractor:
    """
    Extracts financial benefits from a raw 271.

    Usage:
        benefits = FinancialBenefitsExtractor().extract(x12_271)
        if benefits and benefits.deductible_remaining is not None:
            print(f"Deductible remaining: ${benefits.deductible_remaining}")
    """

    def extract(self, content: str) -> Optional[FinancialBenefits]:
        """
        Extract financial benefits.

        Returns:
            FinancialBenefits, or None when the 271 carries no financial data
        """
        tokenizer = X12Tokenizer()
        segments = tokenizer.tokenize_structured(content)
        benefits = FinancialBenefits()

        for index, segment in enumerate(segments):
            if isinstance(segment, BenefitSegment):
                self._process_benefit(segment, segments, index, benefits)

        self._backfill(benefits)

        if not benefits.has_financial_data():
            logger.debug("No financial benefits found in 271")
            return None
        return benefits

    def _process_benefit(
        self,
        benefit: BenefitSegment,
        segments: Sequence[StructuredSegment],
        index: int,
        benefits: FinancialBenefits,
    ) -> None:
        layout = detect_layout(benefit)
        network_flag = benefit.in_plan_network or None

        if network_flag == "Y" and benefits.network_status is None:
            benefits.is_in_network = True
            benefits.network_status = NetworkStatus.IN_NETWORK
        elif network_flag == "N" and benefits.network_status is None:
            benefits.is_in_network = False
            benefits.network_status = NetworkStatus.OUT_OF_NETWORK

        code = benefit.eligibility_code
        amount = layout.monetary_amount

        # Active coverage markers without an amount carry no financial data
        if code == "1" and amount is None:
            return

        benefits.raw_benefits.append(
            RawBenefit(
                service_types=[service_type_description(c) for c in benefit.service_type_codes],
                insurance_plan=layout.amount_qualifier or None,
                monetary_amount=amount,
                percentage=layout.percentage,
                coverage_level=benefit.coverage_level or None,
                eligibility_code=code,
                time_period=layout.time_period or None,
                network_flag=network_flag,
                amount_type=AMOUNT_QUALIFIERS.get(layout.amount_qualifier),
            )
        )

        # Out-of-network amounts are not shown to patients
        if network_flag not in (None, "Y"):
            return

        qualifier = layout.amount_qualifier
        service_types = benefit.service_type_codes
        level = benefit.coverage_level

        if (code == "C" or qualifier == "C1") and amount is not None:
            self._route_accumulator(benefits, "deductible", level, layout.time_period, amount)

        if (code == "G" or qualifier == "G8") and amount is not None:
            self._route_accumulator(benefits, "oop_max", level, layout.time_period, amount)

        if (code == "B" or qualifier == "B") and amount is not None:
            self._route_copay(benefits, service_types, segments, index, amount)

        if (code == "A" or qualifier == "R") and layout.percentage is not None:
            if any(c in service_types for c in OFFICE_VISIT_CODES):
                benefits.primary_care_coinsurance = layout.percentage
            elif any(c in service_types for c in SPECIALIST_CODES):
                benefits.specialist_coinsurance = layout.percentage

    @staticmethod
    def _route_accumulator(
        benefits: FinancialBenefits,
        kind: str,
        coverage_level: str,
        time_period: str,
        amount: Decimal,
    ) -> None:
        """Route a deductible or OOP amount to its total/met/remaining field."""
        if coverage_level == "IND":
            prefix = kind
        elif coverage_level == "FAM":
            prefix = f"family_{kind}"
        else:
            return

        if time_period in REMAINING_PERIODS:
            setattr(benefits, f"{prefix}_remaining", amount)
        elif time_period in MET_PERIODS:
            setattr(benefits, f"{prefix}_met", amount)
        elif time_period in TOTAL_PERIODS:
            setattr(benefits, f"{prefix}_total", amount)

    @staticmethod
    def _route_copay(
        benefits: FinancialBenefits,
        service_types: List[str],
        segments: Sequence[StructuredSegment],
        index: int,
        amount: Decimal,
    ) -> None:
        if any(c in service_types for c in OFFICE_VISIT_CODES):
            visit_type = classify_office_visit(_following_text(segments, index))
            if visit_type == "specialist":
                benefits.specialist_copay = amount
            elif visit_type == "primary_care":
                benefits.primary_care_copay = amount
            elif benefits.primary_care_copay is None:
                benefits.primary_care_copay = amount
            return

        for codes, attribute in COPAY_CATEGORIES:
            if any(c in service_types for c in codes):
                setattr(benefits, attribute, amount)
                return

    @staticmethod
    def _backfill(benefits: FinancialBenefits) -> None:
        """Derive met or remaining from the other two; known values are kept."""
        for prefix in ("deductible", "family_deductible", "oop_max", "family_oop_max"):
            total = getattr(benefits, f"{prefix}_total")
            met = getattr(benefits, f"{prefix}_met")
            remaining = getattr(benefits, f"{prefix}_remaining")
            if total is None:
                continue
            if remaining is not None and met is None:
                setattr(benefits, f"{prefix}_met", total - remaining)
            elif met is not None and remaining is None:
                setattr(benefits, f"{prefix}_remaining", total - met)


def extract_financial_benefits(content: str) -> Optional[FinancialBenefits]:
    """Convenience wrapper around FinancialBenefitsExtractor."""
    return FinancialBenefitsExtractor().extract(content)
