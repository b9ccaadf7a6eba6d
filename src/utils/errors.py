"""
Custom Exceptions
Eligibility engine error taxonomy
Source: https://docs.python.org/3/tutorial/errors.html#user-defined-exceptions
Verified: 2025-11-14
"""

from typing import List, Optional


class EligibilityError(Exception):
    """Base class for all eligibility engine errors"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(EligibilityError):
    """Raised when patient input is insufficient for the payer, before any network call"""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None):
        self.missing_fields = list(missing_fields or [])
        super().__init__(message)


class ConfigurationError(EligibilityError):
    """Raised when a payer dialect or clearinghouse setting is missing"""


class TransportError(EligibilityError):
    """Raised on SOAP faults, envelope error codes and non-2xx responses"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        error_code: Optional[str] = None,
    ):
        self.status_code = status_code
        self.response_body = response_body
        self.error_code = error_code
        super().__init__(message)


class TransportTimeoutError(EligibilityError, TimeoutError):
    """Raised when the caller-supplied deadline is exceeded"""

    def __init__(self, message: str, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds
        self.response_body: Optional[str] = None
        super().__init__(message)


class EnvelopeParseError(EligibilityError):
    """Raised when no 271 payload can be located inside a successful response"""

    def __init__(self, message: str, response_body: Optional[str] = None):
        self.response_body = response_body
        super().__init__(message)
