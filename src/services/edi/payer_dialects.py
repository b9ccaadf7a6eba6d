"""
Payer Dialect Registry.

Source: Office Ally Real-Time Eligibility Companion Guide, payer test notes
Verified: 2025-12-19

Per-payer encoding rules for X12 270 inquiries:
- Which patient fields a payer needs to find a member
- X12 toggles (gender in DMG, member ID in NM1, D8 vs RD8, name-only matching)
- Intake form configuration derived from those rules
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
import logging

from pydantic import BaseModel, Field, field_validator, model_validator

from src.core.enums import DateQualifierFormat, FieldRequirement
from src.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

PATIENT_FIELDS: List[str] = [
    "firstName",
    "lastName",
    "dateOfBirth",
    "gender",
    "memberNumber",
    "medicaidId",
    "groupNumber",
    "ssn",
    "address",
]

IDENTIFIER_FIELDS = ("memberNumber", "medicaidId")

DEFAULT_SERVICE_TYPE_CODES = ["30", "98", "A8"]  # Plan coverage, office visit, outpatient psychiatric


# =============================================================================
# Models
# =============================================================================


class PayerDialect(BaseModel):
    """
    Encoding rules for one clearinghouse payer code.

    Field requirements accept either a ``fields`` mapping or the
    ``required_fields`` / ``recommended_fields`` / ``optional_fields`` lists
    used by database rows. Every patient field ends up with an entry.
    """

    payer_code: str
    payer_name: str
    display_name: Optional[str] = None
    category: str = "Other"
    field_requirements: Dict[str, FieldRequirement] = Field(default_factory=dict)
    requires_gender_in_dmg: bool = False
    supports_member_id_in_nm1: bool = True
    dtp_format: DateQualifierFormat = DateQualifierFormat.SINGLE_DATE
    allows_name_only: bool = False
    service_type_codes: List[str] = Field(default_factory=lambda: list(DEFAULT_SERVICE_TYPE_CODES))
    notes: Optional[str] = None
    tested: bool = False

    @model_validator(mode="before")
    @classmethod
    def _collect_requirement_lists(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        fields = dict(data.pop("fields", None) or data.get("field_requirements") or {})
        for key, requirement in (
            ("optional_fields", FieldRequirement.OPTIONAL),
            ("recommended_fields", FieldRequirement.RECOMMENDED),
            ("required_fields", FieldRequirement.REQUIRED),
        ):
            for name in data.pop(key, None) or []:
                fields[name] = requirement
        data["field_requirements"] = fields
        return data

    @field_validator("field_requirements")
    @classmethod
    def _fill_missing_fields(cls, value: Dict[str, FieldRequirement]) -> Dict[str, FieldRequirement]:
        unknown = set(value) - set(PATIENT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown patient fields: {sorted(unknown)}")
        return {name: value.get(name, FieldRequirement.NOT_NEEDED) for name in PATIENT_FIELDS}

    @field_validator("payer_name")
    @classmethod
    def _upper_payer_name(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def label(self) -> str:
        return self.display_name or self.payer_name

    def requirement(self, field_name: str) -> FieldRequirement:
        return self.field_requirements.get(field_name, FieldRequirement.NOT_NEEDED)

    def is_needed(self, field_name: str) -> bool:
        return self.requirement(field_name) != FieldRequirement.NOT_NEEDED

    @property
    def required_fields(self) -> List[str]:
        return [name for name in PATIENT_FIELDS if self.requirement(name) == FieldRequirement.REQUIRED]

    @property
    def requires_identifier(self) -> bool:
        """Whether at least one of member number / Medicaid ID must be supplied."""
        if not self.allows_name_only:
            return True
        return any(self.requirement(name) == FieldRequirement.REQUIRED for name in IDENTIFIER_FIELDS)


@dataclass
class PayerOption:
    """One payer entry in an intake dropdown."""

    value: str
    label: str
    description: Optional[str]
    tested: bool


@dataclass
class PayerCategory:
    """Dropdown payers grouped under a category heading."""

    category: str
    payers: List[PayerOption] = field(default_factory=list)


@dataclass
class FormFieldConfig:
    """Intake form field derived from a dialect requirement."""

    name: str
    label: str
    placeholder: str
    help_text: str
    type: str
    requirement: FieldRequirement
    options: Optional[List[Dict[str, str]]] = None

    @property
    def is_required(self) -> bool:
        return self.requirement == FieldRequirement.REQUIRED

    @property
    def is_recommended(self) -> bool:
        return self.requirement == FieldRequirement.RECOMMENDED

    @property
    def is_optional(self) -> bool:
        return self.requirement == FieldRequirement.OPTIONAL


@dataclass
class DynamicFormConfig:
    """Intake form for one payer."""

    payer_code: str
    payer_name: str
    category: str
    notes: Optional[str]
    fields: List[FormFieldConfig] = field(default_factory=list)
    submit_requirements: Dict[str, List[str]] = field(
        default_factory=lambda: {"required": [], "recommended": [], "optional": []}
    )


FORM_FIELD_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "firstName": {
        "label": "First Name",
        "placeholder": "Enter first name",
        "help_text": "Patient's legal first name",
        "type": "text",
    },
    "lastName": {
        "label": "Last Name",
        "placeholder": "Enter last name",
        "help_text": "Patient's legal last name",
        "type": "text",
    },
    "dateOfBirth": {
        "label": "Date of Birth",
        "placeholder": "YYYY-MM-DD",
        "help_text": "Patient's date of birth",
        "type": "date",
    },
    "gender": {
        "label": "Gender",
        "placeholder": "Select gender",
        "help_text": "M = Male, F = Female (required for most commercial payers)",
        "type": "select",
        "options": [
            {"value": "M", "label": "Male"},
            {"value": "F", "label": "Female"},
            {"value": "U", "label": "Unknown"},
        ],
    },
    "medicaidId": {
        "label": "Medicaid ID",
        "placeholder": "Enter Medicaid ID",
        "help_text": "State Medicaid identification number",
        "type": "text",
    },
    "memberNumber": {
        "label": "Member ID",
        "placeholder": "Enter member number",
        "help_text": "Insurance member/subscriber ID from insurance card",
        "type": "text",
    },
    "groupNumber": {
        "label": "Group Number",
        "placeholder": "Enter group number",
        "help_text": "Group/employer ID from insurance card",
        "type": "text",
    },
    "ssn": {
        "label": "Social Security Number",
        "placeholder": "XXX-XX-XXXX",
        "help_text": "Patient's SSN (rarely needed for eligibility)",
        "type": "text",
    },
    "address": {
        "label": "Address",
        "placeholder": "Enter address",
        "help_text": "Patient's current address",
        "type": "textarea",
    },
}


DEFAULT_PAYER_DIALECTS: List[Dict[str, Any]] = [
    {
        "payer_code": "UTMCD",
        "payer_name": "UTAH MEDICAID",
        "display_name": "Utah Medicaid",
        "category": "Medicaid",
        "required_fields": ["firstName", "lastName", "dateOfBirth", "medicaidId"],
        "optional_fields": ["ssn"],
        "supports_member_id_in_nm1": True,
        "dtp_format": "RD8",
        "tested": True,
    },
    {
        "payer_code": "60054",
        "payer_name": "AETNA",
        "display_name": "Aetna",
        "category": "Commercial",
        "required_fields": ["firstName", "lastName", "dateOfBirth", "memberNumber"],
        "recommended_fields": ["gender"],
        "optional_fields": ["groupNumber"],
        "requires_gender_in_dmg": True,
        "supports_member_id_in_nm1": True,
        "dtp_format": "D8",
        "tested": True,
    },
    {
        "payer_code": "SX107",
        "payer_name": "SELECTHEALTH",
        "display_name": "SelectHealth",
        "category": "Commercial",
        "required_fields": ["firstName", "lastName", "dateOfBirth", "memberNumber"],
        "optional_fields": ["groupNumber"],
        "supports_member_id_in_nm1": True,
        "dtp_format": "RD8",
        "notes": "Same payer code for SelectHealth Medicaid and Commercial",
        "tested": True,
    },
]


# =============================================================================
# Registry
# =============================================================================


class PayerDialectRegistry:
    """
    Lookup of payer dialects by clearinghouse payer code.

    Constructed once at startup and injected into the orchestrator.

    Usage:
        registry = PayerDialectRegistry.from_yaml("config/payer_dialects.yaml")
        dialect = registry.get("60054")
    """

    def __init__(self, dialects: Iterable[PayerDialect]):
        self._dialects: Dict[str, PayerDialect] = {}
        for dialect in dialects:
            if dialect.payer_code in self._dialects:
                logger.warning(f"Duplicate payer dialect {dialect.payer_code}, keeping the last one")
            self._dialects[dialect.payer_code] = dialect

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "PayerDialectRegistry":
        """Build from plain dicts (config rows, parsed YAML)."""
        return cls(PayerDialect.model_validate(record) for record in records)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PayerDialectRegistry":
        """
        Load dialects from a YAML file.

        The file holds either a list of dialects or a mapping with a
        ``payers`` list.
        """
        import yaml

        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Payer dialect file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or []

        if isinstance(data, dict):
            data = data.get("payers", [])

        registry = cls.from_records(data)
        logger.info(f"Loaded {len(registry)} payer dialects from {path}")
        return registry

    @classmethod
    def with_defaults(cls) -> "PayerDialectRegistry":
        return cls.from_records(DEFAULT_PAYER_DIALECTS)

    def __len__(self) -> int:
        return len(self._dialects)

    def __contains__(self, payer_code: str) -> bool:
        return payer_code in self._dialects

    @property
    def payer_codes(self) -> List[str]:
        return sorted(self._dialects)

    def get(self, payer_code: str) -> PayerDialect:
        """
        Resolve a payer dialect.

        Raises:
            ConfigurationError: If the payer code is unknown
        """
        dialect = self._dialects.get(payer_code)
        if dialect is None:
            raise ConfigurationError(f"No payer dialect configured for payer code {payer_code!r}")
        return dialect

    def dropdown_options(self) -> List[PayerCategory]:
        """Payers grouped by category, sorted by category then label."""
        categories: Dict[str, PayerCategory] = {}
        for dialect in sorted(self._dialects.values(), key=lambda d: (d.category, d.label)):
            category = categories.setdefault(dialect.category, PayerCategory(category=dialect.category))
            category.payers.append(
                PayerOption(
                    value=dialect.payer_code,
                    label=dialect.label,
                    description=dialect.notes,
                    tested=dialect.tested,
                )
            )
        return list(categories.values())

    def form_config(self, payer_code: str) -> DynamicFormConfig:
        """Build the intake form for a payer, required fields first."""
        dialect = self.get(payer_code)
        config = DynamicFormConfig(
            payer_code=payer_code,
            payer_name=dialect.label,
            category=dialect.category,
            notes=dialect.notes,
        )

        for name in PATIENT_FIELDS:
            requirement = dialect.requirement(name)
            if requirement == FieldRequirement.NOT_NEEDED:
                continue
            config.fields.append(
                FormFieldConfig(name=name, requirement=requirement, **FORM_FIELD_TEMPLATES[name])
            )
            config.submit_requirements[requirement.value].append(name)

        # sorted() is stable, so fields keep PATIENT_FIELDS order within a priority
        config.fields.sort(key=lambda f: f.requirement.priority, reverse=True)
        return config
