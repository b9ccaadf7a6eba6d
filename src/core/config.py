"""
Eligibility Engine Configuration
Clearinghouse endpoints, credentials and engine behavior.
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
Verified: 2025-12-18
"""

from functools import lru_cache
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.enums import ClearinghouseType, EnvelopeVariant
from src.utils.logging import mask_secret


class ClearinghouseConfig(BaseModel):
    """Resolved connection details for one clearinghouse."""

    name: ClearinghouseType
    envelope: EnvelopeVariant
    endpoint: str
    username: Optional[str] = None
    password: Optional[str] = None
    sender_id: str
    receiver_id: str
    sender_qualifier: str = "ZZ"
    receiver_qualifier: str = "01"
    usage_indicator: str = "P"

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    @property
    def masked_username(self) -> str:
        return mask_secret(self.username)


class ProviderFallbackConfig(BaseModel):
    """Last-resort billing provider when the directory has none."""

    name: str = "MOONLIT PLLC"
    npi: str = "1275348807"
    tax_id: Optional[str] = "332185708"


class EligibilitySettings(BaseSettings):
    """
    Eligibility engine configuration settings.

    Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
    Verified: 2025-12-18
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="ELIGIBILITY_",  # All eligibility settings prefixed with ELIGIBILITY_
    )

    # =========================================================================
    # Clearinghouse Selection
    # =========================================================================
    CLEARINGHOUSE: ClearinghouseType = Field(
        default=ClearinghouseType.OFFICE_ALLY,
        description="Clearinghouse used for real-time 270/271 exchange",
    )
    USAGE_INDICATOR: str = Field(
        default="P",
        description="ISA15 usage indicator: P=Production, T=Test",
    )

    # =========================================================================
    # Office Ally (SOAP 1.2 + WS-Security, CDATA payload)
    # =========================================================================
    OFFICE_ALLY_ENDPOINT: str = Field(
        default="https://wsd.officeally.com/TransactionService/rtx.svc",
        description="Office Ally real-time transaction endpoint",
    )
    OFFICE_ALLY_USERNAME: Optional[str] = Field(default=None, description="Office Ally username")
    OFFICE_ALLY_PASSWORD: Optional[str] = Field(default=None, description="Office Ally password")
    OFFICE_ALLY_SENDER_ID: str = Field(default="1161680", description="Office Ally submitter ID")
    OFFICE_ALLY_RECEIVER_ID: str = Field(default="OFFALLY", description="Office Ally receiver ID")
    OFFICE_ALLY_RECEIVER_QUALIFIER: str = Field(default="01", description="ISA07 for Office Ally")

    # =========================================================================
    # UHIN (CAQH CORE envelope)
    # =========================================================================
    UHIN_ENDPOINT: str = Field(
        default="https://ws.uhin.org/webservices/core/soaptype4.asmx",
        description="UHIN CORE SOAP endpoint",
    )
    UHIN_USERNAME: Optional[str] = Field(default=None, description="UHIN username")
    UHIN_PASSWORD: Optional[str] = Field(default=None, description="UHIN password")
    UHIN_TRADING_PARTNER_ID: str = Field(default="HT009582-001", description="UHIN sender ID")
    UHIN_RECEIVER_ID: str = Field(default="HT000004-001", description="UHIN receiver ID")
    UHIN_RECEIVER_QUALIFIER: str = Field(default="ZZ", description="ISA07 for UHIN")

    # =========================================================================
    # Engine Behavior
    # =========================================================================
    REQUEST_TIMEOUT_SECONDS: Optional[float] = Field(
        default=None,
        gt=0,
        description="Default caller timeout for the clearinghouse call (None = no timeout)",
    )
    SIMULATION_FALLBACK_ENABLED: bool = Field(
        default=False,
        description="Allow flagged simulated results when the clearinghouse call fails",
    )
    PAYER_DIALECTS_FILE: Optional[str] = Field(
        default=None,
        description="YAML file with payer dialects (built-in defaults when unset)",
    )
    DATABASE_URL: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL for payer/provider directories (in-memory when unset)",
    )

    # =========================================================================
    # Provider Fallback
    # =========================================================================
    FALLBACK_PROVIDER: ProviderFallbackConfig = Field(default_factory=ProviderFallbackConfig)
    PAYER_PROVIDER_OVERRIDES: Dict[str, ProviderFallbackConfig] = Field(
        default_factory=lambda: {
            "60054": ProviderFallbackConfig(name="TRAVIS NORSETH", npi="1902336593", tax_id="332185708"),
        },
        description="Hard fallback provider per payer code",
    )

    # =========================================================================
    # Logging
    # =========================================================================
    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_JSON: bool = Field(default=False, description="Serialize logs as JSON")
    LOG_FILE: Optional[str] = Field(default=None, description="Optional log file path")

    @field_validator("USAGE_INDICATOR")
    @classmethod
    def validate_usage_indicator(cls, v: str) -> str:
        """ISA15 only allows P or T."""
        v = v.upper()
        if v not in ("P", "T"):
            raise ValueError("USAGE_INDICATOR must be P or T")
        return v

    def clearinghouse_config(self, clearinghouse: Optional[ClearinghouseType] = None) -> ClearinghouseConfig:
        """Build the connection config for the selected clearinghouse."""
        clearinghouse = clearinghouse or self.CLEARINGHOUSE
        if clearinghouse == ClearinghouseType.UHIN:
            return ClearinghouseConfig(
                name=clearinghouse,
                envelope=EnvelopeVariant.CORE,
                endpoint=self.UHIN_ENDPOINT,
                username=self.UHIN_USERNAME,
                password=self.UHIN_PASSWORD,
                sender_id=self.UHIN_TRADING_PARTNER_ID,
                receiver_id=self.UHIN_RECEIVER_ID,
                receiver_qualifier=self.UHIN_RECEIVER_QUALIFIER,
                usage_indicator=self.USAGE_INDICATOR,
            )
        return ClearinghouseConfig(
            name=clearinghouse,
            envelope=EnvelopeVariant.SOAP_CDATA,
            endpoint=self.OFFICE_ALLY_ENDPOINT,
            username=self.OFFICE_ALLY_USERNAME,
            password=self.OFFICE_ALLY_PASSWORD,
            sender_id=self.OFFICE_ALLY_SENDER_ID,
            receiver_id=self.OFFICE_ALLY_RECEIVER_ID,
            receiver_qualifier=self.OFFICE_ALLY_RECEIVER_QUALIFIER,
            usage_indicator=self.USAGE_INDICATOR,
        )

    def fallback_provider_for(self, payer_code: str) -> ProviderFallbackConfig:
        return self.PAYER_PROVIDER_OVERRIDES.get(payer_code, self.FALLBACK_PROVIDER)


@lru_cache
def get_eligibility_settings() -> EligibilitySettings:
    """
    Get cached eligibility settings instance.

    Returns:
        EligibilitySettings instance
    """
    return EligibilitySettings()
