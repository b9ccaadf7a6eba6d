"""
Unit Tests for Configuration Management
Tests settings validation and clearinghouse resolution
"""

import pytest
from pydantic import ValidationError

from src.core.config import EligibilitySettings
from src.core.enums import ClearinghouseType, EnvelopeVariant


@pytest.mark.unit
class TestSettingsValidation:
    """Test configuration validation"""

    def test_usage_indicator_uppercased(self):
        """Lowercase usage indicators are accepted"""
        assert EligibilitySettings(_env_file=None, USAGE_INDICATOR="t").USAGE_INDICATOR == "T"

    def test_usage_indicator_rejects_other_values(self):
        """ISA15 only allows P or T"""
        with pytest.raises(ValidationError) as exc_info:
            EligibilitySettings(_env_file=None, USAGE_INDICATOR="X")

        errors = exc_info.value.errors()
        assert any("USAGE_INDICATOR" in str(error) for error in errors)

    def test_timeout_must_be_positive(self):
        """A zero timeout is rejected; None means wait indefinitely"""
        with pytest.raises(ValidationError):
            EligibilitySettings(_env_file=None, REQUEST_TIMEOUT_SECONDS=0)

        assert EligibilitySettings(_env_file=None).REQUEST_TIMEOUT_SECONDS is None

    def test_environment_prefix(self, monkeypatch):
        """Settings are read from ELIGIBILITY_ variables"""
        monkeypatch.setenv("ELIGIBILITY_CLEARINGHOUSE", "uhin")
        monkeypatch.setenv("ELIGIBILITY_SIMULATION_FALLBACK_ENABLED", "true")

        settings = EligibilitySettings(_env_file=None)

        assert settings.CLEARINGHOUSE == ClearinghouseType.UHIN
        assert settings.SIMULATION_FALLBACK_ENABLED is True

    def test_defaults(self):
        """Simulation is off and Office Ally is selected by default"""
        settings = EligibilitySettings(_env_file=None)

        assert settings.CLEARINGHOUSE == ClearinghouseType.OFFICE_ALLY
        assert settings.SIMULATION_FALLBACK_ENABLED is False
        assert settings.USAGE_INDICATOR == "P"


@pytest.mark.unit
class TestClearinghouseConfig:
    """Test clearinghouse connection resolution"""

    def test_office_ally(self, settings):
        """Office Ally uses the SOAP/CDATA envelope"""
        config = settings.clearinghouse_config()

        assert config.envelope == EnvelopeVariant.SOAP_CDATA
        assert config.sender_id == "1161680"
        assert config.receiver_id == "OFFALLY"
        assert config.receiver_qualifier == "01"
        assert config.has_credentials is True

    def test_uhin(self, settings):
        """UHIN uses the CORE envelope and ZZ receiver qualifier"""
        config = settings.clearinghouse_config(ClearinghouseType.UHIN)

        assert config.envelope == EnvelopeVariant.CORE
        assert config.sender_id == "HT009582-001"
        assert config.receiver_id == "HT000004-001"
        assert config.receiver_qualifier == "ZZ"

    def test_usage_indicator_propagates(self):
        """ISA15 follows the settings"""
        settings = EligibilitySettings(_env_file=None, USAGE_INDICATOR="T")
        assert settings.clearinghouse_config().usage_indicator == "T"

    def test_missing_credentials(self):
        """Credentials are optional until a call is made"""
        config = EligibilitySettings(_env_file=None).clearinghouse_config()

        assert config.has_credentials is False
        assert config.masked_username == "NOT SET"

    def test_masked_username(self, settings):
        """Only the first characters of the username are shown"""
        assert settings.clearinghouse_config().masked_username == "moo***"


@pytest.mark.unit
class TestProviderFallback:
    """Test configured fallback providers"""

    def test_payer_override(self, settings):
        """60054 has its own fallback provider"""
        provider = settings.fallback_provider_for("60054")

        assert provider.name == "TRAVIS NORSETH"
        assert provider.npi == "1902336593"

    def test_default_provider(self, settings):
        """Other payers use the practice"""
        provider = settings.fallback_provider_for("UTMCD")

        assert provider.name == "MOONLIT PLLC"
        assert provider.npi == "1275348807"
