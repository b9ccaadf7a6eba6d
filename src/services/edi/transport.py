"""
Clearinghouse Transport Adapters.

Source: CAQH CORE Connectivity Rule vC2.2.0, Office Ally Real-Time SOAP Guide,
        UHIN CORE Web Services Guide
Verified: 2025-12-19

Wraps an X12 270 in the clearinghouse's SOAP envelope, POSTs it over HTTPS
and unwraps the 271 payload from the response.

Two envelope variants:
- SOAP 1.2 + WS-Security with a CDATA payload (Office Ally)
- CAQH CORE envelope with an XML-escaped payload (UHIN)

Negative responses (SOAP fault, envelope error code, non-2xx status) all
raise TransportError carrying the raw response body.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from xml.sax.saxutils import escape, unescape
import html
import re
import time
import uuid

import httpx

from src.core.config import ClearinghouseConfig
from src.core.enums import EnvelopeVariant
from src.utils.errors import (
    ConfigurationError,
    EnvelopeParseError,
    TransportError,
    TransportTimeoutError,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

SOAP12_NAMESPACE = "http://www.w3.org/2003/05/soap-envelope"
CORE_NAMESPACE = "http://www.caqh.org/SOAP/WSDL/CORERule2.2.0.xsd"
WSSE_NAMESPACE = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-secext-1.0.xsd"
WSU_NAMESPACE = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-utility-1.0.xsd"
PASSWORD_TEXT_TYPE = (
    "http://docs.oasis-open.org/wss/2004/01/"
    "oasis-200401-wss-username-token-profile-1.0#PasswordText"
)

PAYLOAD_TYPE_270 = "X12_270_Request_005010X279A1"
CORE_RULE_VERSION = "2.2.0"

# Matches <Payload> or <ns:Payload attr="..."> but not <PayloadType> / <PayloadID>
_PAYLOAD_CDATA = re.compile(
    r"<(?:\w+:)?Payload(?:\s[^>]*)?>\s*<!\[CDATA\[(.*?)\]\]>\s*</(?:\w+:)?Payload>",
    re.DOTALL,
)
_PAYLOAD_PLAIN = re.compile(
    r"<(?:\w+:)?Payload(?:\s[^>]*)?>(.*?)</(?:\w+:)?Payload>",
    re.DOTALL,
)
_SOAP_FAULT = re.compile(r"<(?:\w+:)?Fault\b", re.IGNORECASE)


def _element_text(body: str, name: str) -> Optional[str]:
    """Text of the first <name> or <ns:name> element, unescaped."""
    match = re.search(
        rf"<(?:\w+:)?{name}(?:\s[^>]*)?>(.*?)</(?:\w+:)?{name}>",
        body,
        re.DOTALL,
    )
    if not match:
        return None
    text = re.sub(r"<[^>]+>", " ", match.group(1))
    text = " ".join(html.unescape(text).split())
    return text or None


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# =============================================================================
# Base Transport
# =============================================================================


class ClearinghouseTransport(ABC):
    """
    Base class for clearinghouse SOAP exchanges.

    The HTTP client is injected and reused across calls; every call builds
    a fresh envelope with a new PayloadID and timestamp. No retries.

    Usage:
        with httpx.Client(timeout=None) as client:
            transport = create_transport(settings.clearinghouse_config(), client)
            x12_271 = transport.exchange(x12_270, timeout=30)
    """

    def __init__(self, config: ClearinghouseConfig, client: httpx.Client):
        self.config = config
        self.client = client

    @property
    @abstractmethod
    def transport_name(self) -> str:
        """Human-readable clearinghouse name."""
        pass

    @abstractmethod
    def build_envelope(self, x12_270: str) -> str:
        """Wrap a 270 in the clearinghouse's SOAP envelope."""
        pass

    @abstractmethod
    def request_headers(self) -> Dict[str, str]:
        """HTTP headers for the SOAP POST."""
        pass

    def envelope_error(self, body: str) -> Optional[str]:
        """Return an error message when the CORE envelope reports one."""
        error_code = _element_text(body, "ErrorCode")
        if error_code and error_code.lower() != "success":
            message = _element_text(body, "ErrorMessage") or "Unknown envelope error"
            return f"{error_code}: {message}"
        return None

    def exchange(self, x12_270: str, timeout: Optional[float] = None) -> str:
        """
        Send a 270 and return the raw 271.

        Args:
            x12_270: Complete X12 270 interchange
            timeout: Seconds before giving up (None = wait indefinitely)

        Returns:
            Raw X12 271 content

        Raises:
            ConfigurationError: Credentials are not configured
            TransportTimeoutError: The timeout elapsed
            TransportError: Connection failure, SOAP fault, envelope error or non-2xx
            EnvelopeParseError: 2xx response without a payload
        """
        if not self.config.has_credentials:
            raise ConfigurationError(f"{self.transport_name} credentials are not configured")

        envelope = self.build_envelope(x12_270)
        logger.info(
            f"Sending 270 to {self.transport_name} endpoint={self.config.endpoint} "
            f"user={self.config.masked_username}"
        )
        logger.debug(f"270 payload: {x12_270}")

        kwargs: Dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        started = time.perf_counter()
        try:
            response = self.client.post(
                self.config.endpoint,
                content=envelope.encode("utf-8"),
                headers=self.request_headers(),
                **kwargs,
            )
        except httpx.TimeoutException as e:
            logger.error(f"{self.transport_name} timed out after {timeout}s")
            raise TransportTimeoutError(
                f"{self.transport_name} did not respond within {timeout} seconds",
                timeout_seconds=timeout,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"{self.transport_name} connection failed: {e}")
            raise TransportError(f"Could not reach {self.transport_name}: {e}") from e

        elapsed_ms = (time.perf_counter() - started) * 1000
        body = response.text
        logger.info(f"{self.transport_name} responded status={response.status_code} in {elapsed_ms:.0f}ms")

        self._raise_for_fault(response.status_code, body)
        return self.extract_payload(body)

    def _raise_for_fault(self, status_code: int, body: str) -> None:
        if _SOAP_FAULT.search(body):
            reason = (
                _element_text(body, "Text")
                or _element_text(body, "Reason")
                or _element_text(body, "faultstring")
                or "Unknown SOAP fault"
            )
            logger.warning(f"{self.transport_name} SOAP fault: {reason}")
            raise TransportError(
                f"SOAP fault from {self.transport_name}: {reason}",
                status_code=status_code,
                response_body=body,
            )

        error = self.envelope_error(body)
        if error:
            logger.warning(f"{self.transport_name} envelope error: {error}")
            raise TransportError(
                f"{self.transport_name} envelope error: {error}",
                status_code=status_code,
                response_body=body,
                error_code=_element_text(body, "ErrorCode"),
            )

        if not 200 <= status_code < 300:
            logger.warning(f"{self.transport_name} returned HTTP {status_code}")
            raise TransportError(
                f"{self.transport_name} returned HTTP {status_code}",
                status_code=status_code,
                response_body=body,
            )

    def extract_payload(self, body: str) -> str:
        """
        Pull the 271 out of the response Payload element.

        CDATA content is returned verbatim; plain content is XML-unescaped.

        Raises:
            EnvelopeParseError: No Payload element, or an empty one
        """
        match = _PAYLOAD_CDATA.search(body)
        if match:
            payload = match.group(1)
        else:
            match = _PAYLOAD_PLAIN.search(body)
            payload = unescape(match.group(1)) if match else None

        if not payload or not payload.strip():
            raise EnvelopeParseError(
                f"No X12 271 payload in {self.transport_name} response",
                response_body=body,
            )
        return payload.strip()

    def _core_fields(self, prefix: str) -> str:
        """CORE real-time request fields shared by both envelopes."""
        return (
            f"<{prefix}:PayloadType>{PAYLOAD_TYPE_270}</{prefix}:PayloadType>"
            f"<{prefix}:ProcessingMode>RealTime</{prefix}:ProcessingMode>"
            f"<{prefix}:PayloadID>{uuid.uuid4()}</{prefix}:PayloadID>"
            f"<{prefix}:TimeStamp>{_utc_timestamp()}</{prefix}:TimeStamp>"
            f"<{prefix}:SenderID>{escape(self.config.sender_id)}</{prefix}:SenderID>"
            f"<{prefix}:ReceiverID>{escape(self.config.receiver_id)}</{prefix}:ReceiverID>"
            f"<{prefix}:CORERuleVersion>{CORE_RULE_VERSION}</{prefix}:CORERuleVersion>"
        )


# =============================================================================
# Office Ally: SOAP 1.2 + WS-Security, CDATA payload
# =============================================================================


class SoapCdataTransport(ClearinghouseTransport):
    """Office Ally real-time transaction service."""

    @property
    def transport_name(self) -> str:
        return "Office Ally"

    def build_envelope(self, x12_270: str) -> str:
        # ]]> cannot appear inside a CDATA section
        payload = x12_270.replace("]]>", "]]]]><![CDATA[>")
        return (
            f'<soapenv:Envelope xmlns:soapenv="{SOAP12_NAMESPACE}">'
            "<soapenv:Header>"
            f'<wsse:Security xmlns:wsse="{WSSE_NAMESPACE}">'
            "<wsse:UsernameToken>"
            f"<wsse:Username>{escape(self.config.username or '')}</wsse:Username>"
            f"<wsse:Password>{escape(self.config.password or '')}</wsse:Password>"
            "</wsse:UsernameToken>"
            "</wsse:Security>"
            "</soapenv:Header>"
            "<soapenv:Body>"
            f'<ns1:COREEnvelopeRealTimeRequest xmlns:ns1="{CORE_NAMESPACE}">'
            f"{self._core_fields('ns1')}"
            f"<ns1:Payload><![CDATA[{payload}]]></ns1:Payload>"
            "</ns1:COREEnvelopeRealTimeRequest>"
            "</soapenv:Body>"
            "</soapenv:Envelope>"
        )

    def request_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/soap+xml; charset=utf-8;action=RealTimeTransaction;",
            "Action": "RealTimeTransaction",
        }

    def envelope_error(self, body: str) -> Optional[str]:
        if "COREEnvelopeError" in body:
            message = _element_text(body, "ErrorMessage") or "Unknown error"
            description = _element_text(body, "ErrorDescription")
            return f"{message} - {description}" if description else message
        return super().envelope_error(body)


# =============================================================================
# UHIN: CAQH CORE envelope, escaped payload
# =============================================================================


class CoreEnvelopeTransport(ClearinghouseTransport):
    """UHIN CORE SOAP service."""

    SOAP_ACTION = f"{CORE_NAMESPACE}/COREEnvelopeRealTimeRequest"

    @property
    def transport_name(self) -> str:
        return "UHIN"

    def build_envelope(self, x12_270: str) -> str:
        token_id = f"UsernameToken-{uuid.uuid4().hex}"
        return (
            '<?xml version="1.0" encoding="utf-8"?>'
            f'<soap:Envelope xmlns:soap="{SOAP12_NAMESPACE}" xmlns:cor="{CORE_NAMESPACE}">'
            "<soap:Header>"
            f'<wsse:Security soap:mustUnderstand="true" xmlns:wsse="{WSSE_NAMESPACE}" '
            f'xmlns:wsu="{WSU_NAMESPACE}">'
            f'<wsse:UsernameToken wsu:Id="{token_id}">'
            f"<wsse:Username>{escape(self.config.username or '')}</wsse:Username>"
            f'<wsse:Password Type="{PASSWORD_TEXT_TYPE}">{escape(self.config.password or "")}</wsse:Password>'
            "</wsse:UsernameToken>"
            "</wsse:Security>"
            "</soap:Header>"
            "<soap:Body>"
            "<cor:COREEnvelopeRealTimeRequest>"
            f"{self._core_fields('cor')}"
            f"<cor:Payload>{escape(x12_270)}</cor:Payload>"
            "</cor:COREEnvelopeRealTimeRequest>"
            "</soap:Body>"
            "</soap:Envelope>"
        )

    def request_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/soap+xml; charset=utf-8",
            "SOAPAction": self.SOAP_ACTION,
        }


TRANSPORTS = {
    EnvelopeVariant.SOAP_CDATA: SoapCdataTransport,
    EnvelopeVariant.CORE: CoreEnvelopeTransport,
}


def create_transport(config: ClearinghouseConfig, client: httpx.Client) -> ClearinghouseTransport:
    """Instantiate the transport matching the clearinghouse envelope variant."""
    transport_class = TRANSPORTS.get(config.envelope)
    if transport_class is None:
        raise ConfigurationError(f"Unsupported envelope variant: {config.envelope}")
    return transport_class(config, client)
