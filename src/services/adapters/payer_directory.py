"""
Payer Directory Adapters.
Source: Design Document Section 4.4 - Demo Mode
Verified: 2025-12-18

Payer and contract lookups used by the billability resolver, backed by
seeded demo data or the payers/provider_payer_contracts tables.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from src.core.enums import ContractType
from src.db.session import session_scope
from src.models.payer import Payer, PayerDialectRecord, ProviderPayerContract
from src.services.adapters.base import AdapterMode, ContractRecord, PayerDirectory, PayerRecord
from src.utils.logging import get_logger

logger = get_logger(__name__)

BILLABLE_CONTRACT_TYPES = (ContractType.DIRECT, ContractType.SUPERVISED)


class InMemoryPayerDirectory(PayerDirectory):
    """Payer directory over in-memory records."""

    def __init__(
        self,
        payers: Optional[list[PayerRecord]] = None,
        contracts: Optional[list[ContractRecord]] = None,
        seed_demo: bool = True,
    ):
        """
        Initialize directory.

        Args:
            payers: Payers to load instead of the demo seed
            contracts: Contracts to load instead of the demo seed
            seed_demo: Seed demo payers when none are given
        """
        super().__init__(AdapterMode.DEMO)
        self._payers: dict[str, PayerRecord] = {}
        self._contracts: list[ContractRecord] = []

        if payers is None and contracts is None and seed_demo:
            self._seed_default_payers()
        else:
            for payer in payers or []:
                self.add_payer(payer)
            for contract in contracts or []:
                self.add_contract(contract)

    def _seed_default_payers(self) -> None:
        """Seed default demo payers and contracts."""
        payers = [
            PayerRecord(id="PAY-001", name="Utah Medicaid Fee-for-Service", payer_type="Medicaid", state="UT"),
            PayerRecord(id="PAY-002", name="SelectHealth Integrated", payer_type="Medicaid", state="UT"),
            PayerRecord(id="PAY-003", name="Molina Healthcare of Utah", payer_type="Medicaid", state="UT"),
            PayerRecord(id="PAY-004", name="Health Choice Utah", payer_type="Medicaid", state="UT"),
            PayerRecord(id="PAY-005", name="Regence BlueCross BlueShield of Utah", payer_type="Commercial", state="UT"),
            PayerRecord(id="PAY-006", name="Aetna", payer_type="Commercial"),
            PayerRecord(id="PAY-007", name="University of Utah Health Plans", payer_type="Commercial", state="UT"),
            PayerRecord(id="PAY-008", name="Cigna", payer_type="Commercial"),
        ]
        contracts = [
            ContractRecord(payer_id="PAY-001", provider_id="PRV-001"),
            ContractRecord(payer_id="PAY-002", provider_id="PRV-001"),
            ContractRecord(payer_id="PAY-003", provider_id="PRV-001"),
            ContractRecord(payer_id="PAY-004", provider_id="PRV-001", contract_type=ContractType.SUPERVISED),
            ContractRecord(payer_id="PAY-005", provider_id="PRV-001"),
            ContractRecord(payer_id="PAY-006", provider_id="PRV-002"),
            ContractRecord(payer_id="PAY-007", provider_id="PRV-001", contract_type=ContractType.SUPERVISED),
            ContractRecord(payer_id="PAY-008", provider_id="PRV-001", is_active=False),
        ]

        for payer in payers:
            self.add_payer(payer)
        self._contracts.extend(contracts)

    def add_payer(self, payer: PayerRecord) -> None:
        self._payers[payer.id] = payer

    def add_contract(self, contract: ContractRecord) -> None:
        self._contracts.append(contract)

    def find_payer_exact(self, name: str) -> Optional[PayerRecord]:
        target = name.strip().upper()
        for payer in self._payers.values():
            if payer.name.upper() == target:
                return payer
        return None

    def find_payers_containing(self, fragment: str, limit: int = 5) -> list[PayerRecord]:
        target = fragment.upper()
        matches = [p for p in self._payers.values() if target in p.name.upper()]
        return sorted(matches, key=lambda p: p.name)[:limit]

    def count_active_contracts(self, payer_id: str) -> int:
        return sum(
            1
            for c in self._contracts
            if c.payer_id == payer_id and c.is_active and c.contract_type in BILLABLE_CONTRACT_TYPES
        )


class SqlAlchemyPayerDirectory(PayerDirectory):
    """Payer directory over the payers and provider_payer_contracts tables."""

    def __init__(self, session_factory: sessionmaker[Session]):
        super().__init__(AdapterMode.LIVE)
        self._session_factory = session_factory

    @staticmethod
    def _to_record(payer: Payer) -> PayerRecord:
        return PayerRecord(
            id=str(payer.id),
            name=payer.name,
            payer_type=payer.payer_type,
            state=payer.state,
            is_active=payer.is_active,
        )

    def find_payer_exact(self, name: str) -> Optional[PayerRecord]:
        stmt = select(Payer).where(func.upper(Payer.name) == name.strip().upper()).limit(1)
        with session_scope(self._session_factory) as session:
            payer = session.scalars(stmt).first()
            return self._to_record(payer) if payer else None

    def find_payers_containing(self, fragment: str, limit: int = 5) -> list[PayerRecord]:
        stmt = (
            select(Payer)
            .where(Payer.name.icontains(fragment, autoescape=True))
            .order_by(Payer.name)
            .limit(limit)
        )
        with session_scope(self._session_factory) as session:
            return [self._to_record(p) for p in session.scalars(stmt)]

    def count_active_contracts(self, payer_id: str) -> int:
        try:
            payer_uuid = uuid.UUID(payer_id)
        except ValueError:
            logger.warning(f"Invalid payer id for contract lookup: {payer_id}")
            return 0

        stmt = (
            select(func.count())
            .select_from(ProviderPayerContract)
            .where(
                ProviderPayerContract.payer_id == payer_uuid,
                ProviderPayerContract.is_active.is_(True),
                ProviderPayerContract.contract_type.in_(BILLABLE_CONTRACT_TYPES),
            )
        )
        with session_scope(self._session_factory) as session:
            return session.scalar(stmt) or 0


def load_dialect_records(session_factory: sessionmaker[Session]) -> list[dict[str, Any]]:
    """Payer dialect rows as plain records for PayerDialectRegistry.from_records."""
    stmt = select(PayerDialectRecord).order_by(PayerDialectRecord.payer_code)
    with session_scope(session_factory) as session:
        records = [row.to_record() for row in session.scalars(stmt)]

    logger.info(f"Loaded {len(records)} payer dialects from database")
    return records
