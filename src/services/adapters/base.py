"""
Base Directory Adapters.
Source: Design Document Section 4.4 - Demo Mode
Verified: 2025-12-18

Abstract payer and provider directories supporting demo/live modes.
Demo directories hold seeded records in memory; live directories read
the payers, provider_payer_contracts and eligibility_providers tables.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.core.enums import ContractType
from src.utils.logging import get_logger

logger = get_logger(__name__)


class AdapterMode(str, Enum):
    """Adapter operating mode."""

    DEMO = "demo"
    LIVE = "live"


class PayerRecord(BaseModel):
    """Payer as seen by the billability resolver."""

    id: str
    name: str
    payer_type: Optional[str] = None
    state: Optional[str] = None
    is_active: bool = True


class ContractRecord(BaseModel):
    """Provider-payer contract."""

    payer_id: str
    provider_id: Optional[str] = None
    contract_type: ContractType = ContractType.DIRECT
    is_active: bool = True


class ProviderRecord(BaseModel):
    """Billing provider usable in a 270 information receiver loop."""

    id: str
    name: str
    npi: str
    tax_id: Optional[str] = None
    is_active: bool = True
    preferred_payer_codes: list[str] = Field(default_factory=list)
    supported_payer_codes: list[str] = Field(default_factory=list)


class DirectoryAdapter(ABC):
    """Mode handling shared by directory adapters."""

    def __init__(self, mode: AdapterMode = AdapterMode.DEMO):
        self._mode = mode

    @property
    def mode(self) -> AdapterMode:
        """Get current operating mode."""
        return self._mode

    def is_demo_mode(self) -> bool:
        """Check if running in demo mode."""
        return self._mode == AdapterMode.DEMO


class PayerDirectory(DirectoryAdapter):
    """
    Lookup of payers and active contracts.

    Name comparisons are case-insensitive.
    """

    @abstractmethod
    def find_payer_exact(self, name: str) -> Optional[PayerRecord]:
        """Payer whose name equals `name`, ignoring case."""
        pass

    @abstractmethod
    def find_payers_containing(self, fragment: str, limit: int = 5) -> list[PayerRecord]:
        """Payers whose name contains `fragment`, ignoring case, ordered by name."""
        pass

    @abstractmethod
    def count_active_contracts(self, payer_id: str) -> int:
        """Number of active direct or supervised contracts for a payer."""
        pass


class ProviderDirectory(DirectoryAdapter):
    """Lookup of billing providers for the 270 information receiver loop."""

    @abstractmethod
    def list_active_providers(self) -> list[ProviderRecord]:
        """Active providers in a stable order."""
        pass

    def select_provider(self, payer_code: str) -> Optional[ProviderRecord]:
        """
        Pick the billing provider for a payer.

        Order: a provider preferring the payer, then one enrolled with it,
        then any active provider. Returns None when the directory is empty
        so the caller can apply its configured fallback.
        """
        providers = self.list_active_providers()
        if not providers:
            return None

        for provider in providers:
            if payer_code in provider.preferred_payer_codes:
                return provider

        for provider in providers:
            if payer_code in provider.supported_payer_codes:
                return provider

        fallback = providers[0]
        logger.warning(f"No specific provider found for {payer_code}, using fallback: {fallback.name}")
        return fallback
