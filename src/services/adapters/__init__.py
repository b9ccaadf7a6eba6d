"""
Directory Adapters for Demo/Live Mode.
Source: Design Document Section 4.4 - Demo Mode
Verified: 2025-12-18

Payer, contract and provider lookups backed by in-memory demo data or
the SQLAlchemy tables.
"""

from src.services.adapters.base import (
    AdapterMode,
    ContractRecord,
    PayerDirectory,
    PayerRecord,
    ProviderDirectory,
    ProviderRecord,
)
from src.services.adapters.payer_directory import (
    InMemoryPayerDirectory,
    SqlAlchemyPayerDirectory,
    load_dialect_records,
)
from src.services.adapters.provider_directory import (
    InMemoryProviderDirectory,
    SqlAlchemyProviderDirectory,
)


__all__ = [
    # Base
    "AdapterMode",
    "PayerRecord",
    "ContractRecord",
    "ProviderRecord",
    "PayerDirectory",
    "ProviderDirectory",
    # Payers
    "InMemoryPayerDirectory",
    "SqlAlchemyPayerDirectory",
    "load_dialect_records",
    # Providers
    "InMemoryProviderDirectory",
    "SqlAlchemyProviderDirectory",
]
