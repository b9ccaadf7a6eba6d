"""
Eligibility Verification Service.

Source: ASC X12 005010X279A1 (270/271), CAQH CORE Rule 2.2.0
Verified: 2025-12-19

Orchestrates one real-time eligibility check:
- Resolve the payer dialect and billing provider
- Validate and encode the 270 (local failures, no network call)
- Exchange with the clearinghouse
- Decode the 271 and extract financial benefits
- Resolve billability against practice contracts
- Hand the outcome to the audit sink
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
import time

import httpx
from sqlalchemy.orm import Session, sessionmaker

from src.core.config import EligibilitySettings, get_eligibility_settings
from src.core.enums import CoverageStatus
from src.db.session import check_db_connection, create_db_engine, create_session_factory
from src.services.adapters.base import ProviderDirectory
from src.services.adapters.payer_directory import (
    InMemoryPayerDirectory,
    SqlAlchemyPayerDirectory,
    load_dialect_records,
)
from src.services.adapters.provider_directory import (
    InMemoryProviderDirectory,
    SqlAlchemyProviderDirectory,
)
from src.services.edi.billability import BillabilityResolver, BillabilityResult
from src.services.edi.managed_care import ManagedCareInfo, ManagedCareWarning, PlanInfo
from src.services.edi.payer_dialects import PayerDialect, PayerDialectRegistry
from src.services.edi.simulation import SimulatedEligibilityFactory
from src.services.edi.transport import ClearinghouseTransport, create_transport
from src.services.edi.x12_270_generator import (
    InterchangeParties,
    PatientInquiry,
    ProviderIdentity,
    X12270Generator,
    coerce_date,
)
from src.services.edi.x12_271_financial import FinancialBenefits, FinancialBenefitsExtractor
from src.services.edi.x12_271_parser import (
    EligibilityResponse271,
    ExtractedData,
    MemberInfo,
    RejectionAnalysis,
    X12271Parser,
)
from src.services.edi.x12_base import X12ParseError, validate_npi
from src.utils.errors import ConfigurationError, EnvelopeParseError, TransportError, TransportTimeoutError
from src.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


# Shown to end users on any unrecovered failure; diagnostics stay in the logs
UNVERIFIED_COVERAGE_MESSAGE = (
    "We were unable to verify your coverage right now. "
    "Please bring your insurance card to your appointment."
)

EXCHANGE_ERRORS = (TransportError, TransportTimeoutError, EnvelopeParseError, X12ParseError)


# =============================================================================
# Result Models
# =============================================================================


def _to_jsonable(value: Any) -> Any:
    """Convert dataclasses, enums, decimals and dates to JSON-friendly values."""
    if is_dataclass(value) and not isinstance(value, type):
        return {k: _to_jsonable(v) for k, v in asdict(value).items()}
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


@dataclass
class EligibilityResult:
    """Outcome of one eligibility check."""
    # Coverage
    is_eligible: bool
    coverage_status: CoverageStatus
    payer_code: str
    payer_display_name: str

    # Payer and plan from the 271
    payer_name: Optional[str] = None
    managed_care_org_name: Optional[str] = None
    current_plan: Optional[str] = None
    effective_date: Optional[date] = None
    member_info: MemberInfo = field(default_factory=MemberInfo)

    # Detail
    financial_benefits: Optional[FinancialBenefits] = None
    billability: Optional[BillabilityResult] = None
    rejection: Optional[RejectionAnalysis] = None
    managed_care: Optional[ManagedCareInfo] = None
    plan_info: Optional[PlanInfo] = None
    managed_care_warning: Optional[ManagedCareWarning] = None
    extracted: ExtractedData = field(default_factory=ExtractedData)
    warnings: List[str] = field(default_factory=list)

    # Exchange
    provider: Optional[ProviderIdentity] = None
    control_number: Optional[str] = None
    simulation_mode: bool = False
    simulation_reason: Optional[str] = None
    response_time_ms: int = 0
    raw_270: Optional[str] = None
    raw_271: Optional[str] = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self, include_raw: bool = False) -> Dict[str, Any]:
        """
        Plain dict for API consumers.

        Raw X12 is left out unless asked for; it is meant for audit logs,
        not end users.
        """
        data = {
            "is_eligible": self.is_eligible,
            "coverage_status": self.coverage_status.value,
            "payer_code": self.payer_code,
            "payer_display_name": self.payer_display_name,
            "payer_name": self.payer_name,
            "managed_care_org_name": self.managed_care_org_name,
            "current_plan": self.current_plan,
            "effective_date": _to_jsonable(self.effective_date),
            "member_info": _to_jsonable(self.member_info),
            "financial_benefits": _to_jsonable(self.financial_benefits),
            "billability": self.billability.to_dict() if self.billability else None,
            "rejection": _to_jsonable(self.rejection),
            "managed_care": _to_jsonable(self.managed_care),
            "plan_info": _to_jsonable(self.plan_info),
            "managed_care_warning": _to_jsonable(self.managed_care_warning),
            "extracted": _to_jsonable(self.extracted),
            "warnings": list(self.warnings),
            "provider": _to_jsonable(self.provider),
            "control_number": self.control_number,
            "simulation_mode": self.simulation_mode,
            "response_time_ms": self.response_time_ms,
            "checked_at": self.checked_at.isoformat(),
        }
        if include_raw:
            data["raw_270"] = self.raw_270
            data["raw_271"] = self.raw_271
        return data


# =============================================================================
# Audit
# =============================================================================


@dataclass
class EligibilityAuditRecord:
    """Audit trail entry for one eligibility check."""
    payer_code: str
    payer_display_name: str
    patient_first_name: str
    patient_last_name: str
    patient_dob: Optional[date]
    patient_gender: Optional[str]
    patient_member_id: Optional[str]
    patient_group_number: Optional[str]
    is_eligible: bool
    coverage_status: CoverageStatus
    raw_x12_270: Optional[str]
    raw_x12_271: Optional[str]
    response_time_ms: int
    simulation_mode: bool = False
    requested_by: Optional[str] = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EligibilityAuditSink(ABC):
    """Destination for eligibility audit records."""

    @abstractmethod
    def record(self, entry: EligibilityAuditRecord) -> None:
        pass


class LoggingAuditSink(EligibilityAuditSink):
    """Writes audit records to the application log; raw X12 only at DEBUG."""

    def record(self, entry: EligibilityAuditRecord) -> None:
        logger.info(
            f"Eligibility audit: payer={entry.payer_code} ({entry.payer_display_name}) "
            f"patient={entry.patient_last_name}, {entry.patient_first_name} "
            f"eligible={entry.is_eligible} status={entry.coverage_status.value} "
            f"simulated={entry.simulation_mode} time={entry.response_time_ms}ms"
        )
        logger.debug(f"Eligibility audit raw 270: {entry.raw_x12_270}")
        logger.debug(f"Eligibility audit raw 271: {entry.raw_x12_271}")


# =============================================================================
# Eligibility Service
# =============================================================================


class EligibilityService:
    """
    Eligibility Verification Service.

    All collaborators are injected; build_eligibility_service() wires the
    production set from settings.

    Usage:
        service = build_eligibility_service()
        result = service.check_eligibility(
            "UTMCD",
            PatientInquiry(first_name="Jane", last_name="Doe", date_of_birth="1990-01-01", medicaid_id="0123456789"),
        )
        if result.is_eligible:
            print(result.current_plan)
    """

    def __init__(
        self,
        registry: PayerDialectRegistry,
        transport: ClearinghouseTransport,
        resolver: BillabilityResolver,
        provider_directory: Optional[ProviderDirectory] = None,
        settings: Optional[EligibilitySettings] = None,
        generator: Optional[X12270Generator] = None,
        parser: Optional[X12271Parser] = None,
        extractor: Optional[FinancialBenefitsExtractor] = None,
        audit_sink: Optional[EligibilityAuditSink] = None,
        simulation_factory: Optional[SimulatedEligibilityFactory] = None,
    ):
        """
        Initialize eligibility service.

        Args:
            registry: Payer dialects keyed by clearinghouse payer code
            transport: Clearinghouse transport adapter
            resolver: Billability resolver over practice contracts
            provider_directory: Billing provider lookup
            settings: Engine settings (timeouts, simulation, fallback provider)
            generator: 270 encoder
            parser: 271 decoder
            extractor: Financial benefits extractor
            audit_sink: Audit destination (logging by default)
            simulation_factory: Source of simulated results
        """
        self.registry = registry
        self.transport = transport
        self.resolver = resolver
        self.provider_directory = provider_directory
        self.settings = settings or get_eligibility_settings()
        self.generator = generator or X12270Generator()
        self.parser = parser or X12271Parser()
        self.extractor = extractor or FinancialBenefitsExtractor()
        self.audit_sink = audit_sink or LoggingAuditSink()
        self.simulation_factory = simulation_factory or SimulatedEligibilityFactory()

    def check_eligibility(
        self,
        payer_code: str,
        inquiry: PatientInquiry,
        timeout: Optional[float] = None,
        allow_simulation: Optional[bool] = None,
        requested_by: Optional[str] = None,
    ) -> EligibilityResult:
        """
        Check patient eligibility with a payer.

        Args:
            payer_code: Clearinghouse payer code
            inquiry: Patient data
            timeout: Seconds to wait for the clearinghouse (settings default)
            allow_simulation: Return a flagged simulated result on exchange
                failure (settings default)
            requested_by: Staff user, recorded in the audit trail

        Returns:
            EligibilityResult

        Raises:
            ConfigurationError: Unknown payer code or missing credentials
            ValidationError: Inquiry does not satisfy the payer dialect
            TransportError, TransportTimeoutError, EnvelopeParseError,
            X12ParseError: Exchange failed and simulation is not allowed
        """
        start = time.perf_counter()

        dialect = self.registry.get(payer_code)
        provider = self._resolve_provider(payer_code)
        control_number = self.generator.new_control_number()
        x12_270 = self.generator.generate(
            inquiry,
            dialect,
            provider,
            self._interchange_parties(),
            control_number=control_number,
        )

        if timeout is None:
            timeout = self.settings.REQUEST_TIMEOUT_SECONDS
        if allow_simulation is None:
            allow_simulation = self.settings.SIMULATION_FALLBACK_ENABLED

        logger.info(
            f"Eligibility check {control_number}: payer={payer_code} via {self.transport.transport_name}"
        )

        try:
            x12_271 = self.transport.exchange(x12_270, timeout=timeout)
            response = self.parser.parse(x12_271)
        except EXCHANGE_ERRORS as e:
            logger.error(f"Eligibility check {control_number} failed: {type(e).__name__}: {e}")
            if not allow_simulation:
                raise
            response = self.simulation_factory.create(
                inquiry,
                payer_name=dialect.payer_name,
                reason=str(e),
            )
            result = self._build_result(
                dialect, provider, control_number, response, x12_270, None, None, start, simulated=True
            )
            result.simulation_reason = str(e)
            self._audit(dialect, inquiry, result, requested_by)
            return result

        financial = self.extractor.extract(x12_271)
        result = self._build_result(
            dialect, provider, control_number, response, x12_270, x12_271, financial, start
        )

        logger.info(
            f"Eligibility check {control_number}: eligible={result.is_eligible} "
            f"plan={result.current_plan} billability={result.billability.status.value if result.billability else None} "
            f"({result.response_time_ms}ms)"
        )
        self._audit(dialect, inquiry, result, requested_by)
        return result

    def _interchange_parties(self) -> InterchangeParties:
        config = self.transport.config
        return InterchangeParties(
            sender_id=config.sender_id,
            receiver_id=config.receiver_id,
            sender_qualifier=config.sender_qualifier,
            receiver_qualifier=config.receiver_qualifier,
            usage_indicator=config.usage_indicator,
        )

    def _resolve_provider(self, payer_code: str) -> ProviderIdentity:
        """Directory provider for the payer, else the configured fallback."""
        record = None
        if self.provider_directory is not None:
            try:
                record = self.provider_directory.select_provider(payer_code)
            except Exception as e:
                logger.error(f"Error finding provider for {payer_code}: {e}")

        if record is not None:
            provider = ProviderIdentity(name=record.name, npi=record.npi, tax_id=record.tax_id)
        else:
            fallback = self.settings.fallback_provider_for(payer_code)
            logger.warning(f"Using configured fallback provider for {payer_code}: {fallback.name}")
            provider = ProviderIdentity(name=fallback.name, npi=fallback.npi, tax_id=fallback.tax_id)

        if not validate_npi(provider.npi):
            logger.warning(f"Provider NPI {provider.npi} for {provider.name} fails the NPI check digit")
        return provider

    def _build_result(
        self,
        dialect: PayerDialect,
        provider: ProviderIdentity,
        control_number: str,
        response: EligibilityResponse271,
        x12_270: str,
        x12_271: Optional[str],
        financial: Optional[FinancialBenefits],
        start: float,
        simulated: bool = False,
    ) -> EligibilityResult:
        # Simulated payer and MCO names say nothing about practice contracts
        billability = None if simulated else self.resolver.check(response.payer_name, response.managed_care_org_name)
        is_eligible = response.enrolled

        return EligibilityResult(
            is_eligible=is_eligible,
            coverage_status=CoverageStatus.ACTIVE if is_eligible else CoverageStatus.INACTIVE,
            payer_code=dialect.payer_code,
            payer_display_name=dialect.label,
            payer_name=response.payer_name,
            managed_care_org_name=response.managed_care_org_name,
            current_plan=response.current_plan,
            effective_date=response.effective_date,
            member_info=response.member_info,
            financial_benefits=financial,
            billability=billability,
            rejection=response.rejection,
            managed_care=response.managed_care,
            plan_info=response.plan_info,
            managed_care_warning=response.managed_care_warning,
            extracted=response.extracted,
            warnings=list(response.warnings),
            provider=provider,
            control_number=control_number,
            simulation_mode=simulated,
            response_time_ms=int((time.perf_counter() - start) * 1000),
            raw_270=x12_270,
            raw_271=x12_271,
        )

    def _audit(
        self,
        dialect: PayerDialect,
        inquiry: PatientInquiry,
        result: EligibilityResult,
        requested_by: Optional[str],
    ) -> None:
        """Hand the outcome to the audit sink; sink failures never fail the check."""
        try:
            self.audit_sink.record(
                EligibilityAuditRecord(
                    payer_code=dialect.payer_code,
                    payer_display_name=dialect.label,
                    patient_first_name=inquiry.first_name.strip(),
                    patient_last_name=inquiry.last_name.strip(),
                    patient_dob=coerce_date(inquiry.date_of_birth, "dateOfBirth"),
                    patient_gender=inquiry.gender,
                    patient_member_id=inquiry.identifier,
                    patient_group_number=inquiry.group_number,
                    is_eligible=result.is_eligible,
                    coverage_status=result.coverage_status,
                    raw_x12_270=result.raw_270,
                    raw_x12_271=result.raw_271,
                    response_time_ms=result.response_time_ms,
                    simulation_mode=result.simulation_mode,
                    requested_by=requested_by,
                )
            )
        except Exception as e:
            logger.error(f"Eligibility audit logging failed: {e}")


# =============================================================================
# Factory Function
# =============================================================================


def load_payer_registry(
    settings: EligibilitySettings,
    session_factory: Optional[sessionmaker[Session]] = None,
) -> PayerDialectRegistry:
    """Dialects from the YAML file, else database rows, else built-in defaults."""
    if settings.PAYER_DIALECTS_FILE:
        return PayerDialectRegistry.from_yaml(settings.PAYER_DIALECTS_FILE)

    if session_factory is not None:
        records = load_dialect_records(session_factory)
        if records:
            return PayerDialectRegistry.from_records(records)

    return PayerDialectRegistry.with_defaults()


def build_eligibility_service(
    settings: Optional[EligibilitySettings] = None,
    client: Optional[httpx.Client] = None,
    session_factory: Optional[sessionmaker[Session]] = None,
    audit_sink: Optional[EligibilityAuditSink] = None,
    configure_logging: bool = False,
) -> EligibilityService:
    """
    Construct the production eligibility service once at startup.

    Args:
        settings: Engine settings (cached settings if omitted)
        client: Shared HTTP client (one without a default timeout if omitted)
        session_factory: Database sessions for the directories and dialects
            (created from DATABASE_URL when set, in-memory demo data otherwise)
        audit_sink: Audit destination
        configure_logging: Apply LOG_LEVEL/LOG_JSON/LOG_FILE to the log sinks

    Returns:
        EligibilityService instance

    Raises:
        ConfigurationError: The database does not answer a connection check
    """
    settings = settings or get_eligibility_settings()
    if configure_logging:
        setup_logging(level=settings.LOG_LEVEL, log_file=settings.LOG_FILE, json_logs=settings.LOG_JSON)

    if session_factory is None and settings.DATABASE_URL:
        session_factory = create_session_factory(create_db_engine(settings.DATABASE_URL))

    if session_factory is not None:
        engine = session_factory.kw.get("bind")
        if engine is not None and not check_db_connection(engine):
            raise ConfigurationError(f"Database is unreachable: {engine.url.render_as_string(hide_password=True)}")
        payer_directory = SqlAlchemyPayerDirectory(session_factory)
        provider_directory = SqlAlchemyProviderDirectory(session_factory)
    else:
        payer_directory = InMemoryPayerDirectory()
        provider_directory = InMemoryProviderDirectory()

    clearinghouse = settings.clearinghouse_config()
    transport = create_transport(clearinghouse, client or httpx.Client(timeout=None))

    logger.info(
        f"Eligibility service ready: clearinghouse={clearinghouse.name.value} "
        f"user={clearinghouse.masked_username} directories={payer_directory.mode.value}"
    )

    return EligibilityService(
        registry=load_payer_registry(settings, session_factory),
        transport=transport,
        resolver=BillabilityResolver(payer_directory),
        provider_directory=provider_directory,
        settings=settings,
        audit_sink=audit_sink,
    )
