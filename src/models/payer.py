"""
Payer, Contract and Eligibility Provider Models.
Source: https://docs.sqlalchemy.org/en/20/orm/declarative_tables.html
Verified: 2025-12-19

Tables read by the payer and provider directories:
- payers: insurance companies and government programs
- provider_payer_contracts: which providers can bill which payers
- eligibility_providers: billing providers used in 270 inquiries
- payer_dialects: per-payer X12 270 encoding rules
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import JSON, Boolean, Enum, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.enums import ContractType, DateQualifierFormat
from src.models.base import Base, TimeStampedModel, UUIDModel


class Payer(Base, UUIDModel, TimeStampedModel):
    """Insurance payer known to the practice."""

    __tablename__ = "payers"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Payer name as stored by the practice",
    )
    payer_type: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Medicaid, Commercial, Medicare, ...",
    )
    state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    contracts: Mapped[List["ProviderPayerContract"]] = relationship(
        back_populates="payer",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Payer(name={self.name}, type={self.payer_type})>"


class EligibilityProvider(Base, UUIDModel, TimeStampedModel):
    """Billing provider that can appear in the 270 information receiver loop."""

    __tablename__ = "eligibility_providers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    npi: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        index=True,
        comment="National Provider Identifier (10 digits)",
    )
    tax_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    preferred_payer_codes: Mapped[List[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        comment="Payer codes this provider should be used for first",
    )
    supported_payer_codes: Mapped[List[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        comment="Payer codes this provider is enrolled with",
    )

    contracts: Mapped[List["ProviderPayerContract"]] = relationship(back_populates="provider")

    def __repr__(self) -> str:
        return f"<EligibilityProvider(name={self.name}, npi={self.npi})>"


class ProviderPayerContract(Base, UUIDModel, TimeStampedModel):
    """Contract allowing a provider to bill a payer, directly or under supervision."""

    __tablename__ = "provider_payer_contracts"

    payer_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    provider_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("eligibility_providers.id", ondelete="SET NULL"),
        nullable=True,
    )
    contract_type: Mapped[ContractType] = mapped_column(
        Enum(ContractType, native_enum=False, length=20),
        default=ContractType.DIRECT,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    payer: Mapped["Payer"] = relationship(back_populates="contracts")
    provider: Mapped[Optional["EligibilityProvider"]] = relationship(back_populates="contracts")

    __table_args__ = (
        Index("ix_provider_payer_contracts_payer_active", "payer_id", "is_active"),
    )


class PayerDialectRecord(Base, UUIDModel, TimeStampedModel):
    """Stored X12 270 encoding rules for one clearinghouse payer code."""

    __tablename__ = "payer_dialects"

    payer_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    payer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    category: Mapped[str] = mapped_column(String(50), default="Other", nullable=False)
    required_fields: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    recommended_fields: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    optional_fields: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    requires_gender_in_dmg: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    supports_member_id_in_nm1: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    dtp_format: Mapped[DateQualifierFormat] = mapped_column(
        Enum(DateQualifierFormat, native_enum=False, values_callable=lambda e: [m.value for m in e], length=3),
        default=DateQualifierFormat.SINGLE_DATE,
        nullable=False,
    )
    allows_name_only: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def to_record(self) -> dict:
        """Plain dict accepted by PayerDialect.model_validate."""
        return {
            "payer_code": self.payer_code,
            "payer_name": self.payer_name,
            "display_name": self.display_name,
            "category": self.category,
            "required_fields": list(self.required_fields or []),
            "recommended_fields": list(self.recommended_fields or []),
            "optional_fields": list(self.optional_fields or []),
            "requires_gender_in_dmg": self.requires_gender_in_dmg,
            "supports_member_id_in_nm1": self.supports_member_id_in_nm1,
            "dtp_format": self.dtp_format.value if self.dtp_format else DateQualifierFormat.SINGLE_DATE.value,
            "allows_name_only": self.allows_name_only,
            "notes": self.notes,
            "tested": self.tested,
        }
