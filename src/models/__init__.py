"""
SQLAlchemy Models for the Eligibility Engine.

This module exports all database models for the application.
"""

from src.models.base import Base, TimeStampedModel, UUIDModel

# Payer directory models
from src.models.payer import (
    EligibilityProvider,
    Payer,
    PayerDialectRecord,
    ProviderPayerContract,
)

__all__ = [
    "Base",
    "TimeStampedModel",
    "UUIDModel",
    "Payer",
    "ProviderPayerContract",
    "EligibilityProvider",
    "PayerDialectRecord",
]
