"""
Provider Directory Adapters.
Source: Design Document Section 4.4 - Demo Mode
Verified: 2025-12-18

Billing providers for the 270 information receiver loop.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from src.db.session import session_scope
from src.models.payer import EligibilityProvider
from src.services.adapters.base import AdapterMode, ProviderDirectory, ProviderRecord


class InMemoryProviderDirectory(ProviderDirectory):
    """Provider directory over in-memory records."""

    def __init__(self, providers: Optional[list[ProviderRecord]] = None, seed_demo: bool = True):
        super().__init__(AdapterMode.DEMO)
        self._providers: dict[str, ProviderRecord] = {}

        if providers is None and seed_demo:
            self._seed_default_providers()
        else:
            for provider in providers or []:
                self._providers[provider.id] = provider

    def _seed_default_providers(self) -> None:
        """Seed default demo providers."""
        providers = [
            ProviderRecord(
                id="PRV-001",
                name="MOONLIT PLLC",
                npi="1275348807",
                tax_id="332185708",
                preferred_payer_codes=["UTMCD"],
                supported_payer_codes=["UTMCD", "SX107"],
            ),
            ProviderRecord(
                id="PRV-002",
                name="TRAVIS NORSETH",
                npi="1902336593",
                tax_id="332185708",
                preferred_payer_codes=["60054"],
                supported_payer_codes=["60054"],
            ),
        ]

        for provider in providers:
            self._providers[provider.id] = provider

    def list_active_providers(self) -> list[ProviderRecord]:
        return [p for p in self._providers.values() if p.is_active]


class SqlAlchemyProviderDirectory(ProviderDirectory):
    """Provider directory over the eligibility_providers table."""

    def __init__(self, session_factory: sessionmaker[Session]):
        super().__init__(AdapterMode.LIVE)
        self._session_factory = session_factory

    def list_active_providers(self) -> list[ProviderRecord]:
        stmt = (
            select(EligibilityProvider)
            .where(EligibilityProvider.is_active.is_(True))
            .order_by(EligibilityProvider.created_at, EligibilityProvider.name)
        )
        with session_scope(self._session_factory) as session:
            return [
                ProviderRecord(
                    id=str(p.id),
                    name=p.name,
                    npi=p.npi,
                    tax_id=p.tax_id,
                    is_active=p.is_active,
                    preferred_payer_codes=list(p.preferred_payer_codes or []),
                    supported_payer_codes=list(p.supported_payer_codes or []),
                )
                for p in session.scalars(stmt)
            ]
