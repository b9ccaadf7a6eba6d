"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for `src.` imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.core.config import EligibilitySettings  # noqa: E402
from src.services.edi.payer_dialects import PayerDialectRegistry  # noqa: E402
from src.services.edi.x12_270_generator import PatientInquiry  # noqa: E402
from tests.fixtures import (  # noqa: E402
    COMMERCIAL_FINANCIAL_BODY,
    MEDICAID_FFS_BODY,
    MEDICAID_MCO_BODY,
    REJECTED_BODY,
    build_271,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    """Engine settings isolated from the environment and .env files."""
    return EligibilitySettings(
        _env_file=None,
        OFFICE_ALLY_USERNAME="moonlit",
        OFFICE_ALLY_PASSWORD="secret",
        UHIN_USERNAME="uhinuser",
        UHIN_PASSWORD="uhinpass",
    )


@pytest.fixture
def registry():
    """Built-in payer dialects (UTMCD, 60054, SX107)."""
    return PayerDialectRegistry.with_defaults()


@pytest.fixture
def medicaid_inquiry():
    """Patient with everything Utah Medicaid needs."""
    return PatientInquiry(
        first_name="Jane",
        last_name="Doe",
        date_of_birth="1990-01-01",
        gender="F",
        medicaid_id="0123456789",
    )


@pytest.fixture
def aetna_inquiry():
    """Patient with everything Aetna needs."""
    return PatientInquiry(
        first_name="John",
        last_name="Doe",
        date_of_birth="1985-06-15",
        gender="M",
        member_number="W123456789",
        group_number="GRP-001",
    )


@pytest.fixture
def medicaid_ffs_271():
    return build_271(MEDICAID_FFS_BODY)


@pytest.fixture
def medicaid_mco_271():
    return build_271(MEDICAID_MCO_BODY)


@pytest.fixture
def commercial_271():
    return build_271(COMMERCIAL_FINANCIAL_BODY)


@pytest.fixture
def rejected_271():
    return build_271(REJECTED_BODY)


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
