"""Error handling utilities for crash report generation and chat."""

from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum


class ErrorType(Enum):
    """Enumeration of error types in the crash analysis system."""

    # Provider Errors
    PROVIDER_NOT_CONFIGURED = "PROVIDER_NOT_CONFIGURED"
    PROVIDER_AUTH_ERROR = "PROVIDER_AUTH_ERROR"
    PROVIDER_QUOTA_ERROR = "PROVIDER_QUOTA_ERROR"
    PROVIDER_FORMAT_ERROR = "PROVIDER_FORMAT_ERROR"
    PROVIDER_PROTOCOL_ERROR = "PROVIDER_PROTOCOL_ERROR"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"

    # Evidence Errors
    EVIDENCE_READ_FAILED = "EVIDENCE_READ_FAILED"

    # Streaming Errors
    STREAM_FRAME_ERROR = "STREAM_FRAME_ERROR"

    # Configuration Errors
    CONFIG_MISSING = "CONFIG_MISSING"
    CONFIG_INVALID = "CONFIG_INVALID"

    # General Errors
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass
class ErrorContext:
    """
    Context information for errors in the crash analysis system.

    Attributes:
        error_type: Type of error from ErrorType enum
        message: Human-readable error message
        recoverable: Whether the error can be recovered from
        fallback_action: Optional description of fallback action taken
        details: Optional additional error details
        original_exception: Optional original exception that caused this error
    """

    error_type: ErrorType
    message: str
    recoverable: bool
    fallback_action: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    original_exception: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error context to dictionary for logging/serialization.

        Returns:
            Dictionary representation of error context
        """
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "fallback_action": self.fallback_action,
            "details": self.details or {},
            "original_exception": str(self.original_exception) if self.original_exception else None
        }


class CrashAnalysisError(Exception):
    """
    Base exception for all crash analysis errors.

    Attributes:
        context: ErrorContext with detailed error information
    """

    def __init__(self, context: ErrorContext):
        self.context = context
        super().__init__(context.message)

    @property
    def error_type(self) -> ErrorType:
        return self.context.error_type

    def __str__(self) -> str:
        """String representation of the error."""
        base = f"{self.context.error_type.value}: {self.context.message}"
        if self.context.fallback_action:
            base += f" (Fallback: {self.context.fallback_action})"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return self.context.to_dict()


class ConfigurationError(CrashAnalysisError):
    """Exception for missing or invalid configuration values."""

    @classmethod
    def invalid(cls, key: str, value: Any, reason: str) -> "ConfigurationError":
        context = ErrorContext(
            error_type=ErrorType.CONFIG_INVALID,
            message=f"Invalid configuration value for '{key}': {value!r} ({reason})",
            recoverable=False,
            details={"key": key}
        )
        return cls(context)


class EvidenceReadError(CrashAnalysisError, IOError):
    """Exception raised when an uploaded evidence file cannot be read."""

    @classmethod
    def read_failed(cls, name: str, error: Exception) -> "EvidenceReadError":
        context = ErrorContext(
            error_type=ErrorType.EVIDENCE_READ_FAILED,
            message=f"Failed to read evidence '{name}': {str(error)}",
            recoverable=False,
            details={"name": name},
            original_exception=error
        )
        return cls(context)


class StreamFrameError(CrashAnalysisError):
    """
    A single malformed server-sent-event frame.

    Raised and handled inside the streaming loop only; the frame is logged
    and skipped so that the rest of the stream keeps flowing.
    """

    @classmethod
    def malformed(cls, provider: str, line: str, error: Exception) -> "StreamFrameError":
        context = ErrorContext(
            error_type=ErrorType.STREAM_FRAME_ERROR,
            message=f"Malformed {provider} stream frame: {line[:120]}",
            recoverable=True,
            fallback_action="Skip frame and continue streaming",
            details={"provider": provider},
            original_exception=error
        )
        return cls(context)


class ProviderError(CrashAnalysisError):
    """
    Base exception for errors raised while talking to an LLM provider.

    Attributes:
        provider: Provider identifier ("google", "mistral")
        status_code: HTTP status code when the backend answered with one
    """

    error_type_default = ErrorType.UNKNOWN_ERROR

    def __init__(
        self,
        context: ErrorContext,
        provider: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(context)
        self.provider = provider
        self.status_code = status_code

    @classmethod
    def build(
        cls,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
        original_exception: Optional[Exception] = None
    ) -> "ProviderError":
        """Create an error of this class with a populated ErrorContext."""
        context = ErrorContext(
            error_type=cls.error_type_default,
            message=message,
            recoverable=False,
            details={
                "provider": provider,
                "status_code": status_code,
                "operation": operation
            },
            original_exception=original_exception
        )
        return cls(context, provider=provider, status_code=status_code)

    @classmethod
    def from_response(
        cls,
        provider: str,
        status_code: int,
        body: Any,
        operation: str
    ) -> "ProviderError":
        """
        Map a non-success HTTP response onto the provider error taxonomy.

        Args:
            provider: Provider identifier
            status_code: HTTP status code returned by the backend
            body: Decoded JSON body, or raw text when the body was not JSON
            operation: Description of operation that failed

        Returns:
            ProviderError subclass instance matching the failure category
        """
        error_message = _extract_error_message(body) or f"HTTP {status_code}"
        lowered = error_message.lower()

        if status_code in (401, 403) or "api key not valid" in lowered or "api_key_invalid" in lowered:
            error_cls = ProviderAuthError
        elif status_code == 429 or "quota" in lowered or "resource_exhausted" in lowered or "rate limit" in lowered:
            error_cls = ProviderQuotaError
        elif status_code in (400, 415, 422) and any(
            marker in lowered for marker in ("mime", "unsupported", "not supported", "format", "image")
        ):
            error_cls = ProviderFormatError
        elif status_code >= 500:
            error_cls = ProviderUnavailableError
        else:
            error_cls = ProviderProtocolError

        return error_cls.build(
            provider=provider,
            message=f"{provider} API error during {operation}: {error_message}",
            status_code=status_code,
            operation=operation
        )


class ProviderNotConfigured(ProviderError):
    """Credential for the selected provider is missing; detected before any I/O."""

    error_type_default = ErrorType.PROVIDER_NOT_CONFIGURED

    @classmethod
    def missing_key(cls, provider: str, hint: str) -> "ProviderNotConfigured":
        context = ErrorContext(
            error_type=ErrorType.PROVIDER_NOT_CONFIGURED,
            message=f"{provider.upper()}_NOT_CONFIGURED: {hint}",
            recoverable=False,
            fallback_action="Supply an API key and retry",
            details={"provider": provider}
        )
        return cls(context, provider=provider)

    @classmethod
    def missing_environment(cls, provider: str, env_var: str) -> "ProviderNotConfigured":
        """Process-wide credential absent from the environment; a deployment problem."""
        context = ErrorContext(
            error_type=ErrorType.CONFIG_MISSING,
            message=f"{provider.upper()}_NOT_CONFIGURED: environment variable {env_var} is not set",
            recoverable=False,
            fallback_action=f"Set {env_var} and restart",
            details={"provider": provider, "env_var": env_var}
        )
        return cls(context, provider=provider)


class ProviderAuthError(ProviderError):
    """Backend rejected the credential."""

    error_type_default = ErrorType.PROVIDER_AUTH_ERROR


class ProviderQuotaError(ProviderError):
    """Backend signaled a rate or usage limit."""

    error_type_default = ErrorType.PROVIDER_QUOTA_ERROR


class ProviderFormatError(ProviderError):
    """Evidence type or shape rejected by the backend."""

    error_type_default = ErrorType.PROVIDER_FORMAT_ERROR


class ProviderProtocolError(ProviderError):
    """Empty, non-JSON, or otherwise unusable response."""

    error_type_default = ErrorType.PROVIDER_PROTOCOL_ERROR


class ProviderUnavailableError(ProviderError):
    """Network failure or server-side error; never retried unless configured."""

    error_type_default = ErrorType.PROVIDER_UNAVAILABLE


def _extract_error_message(body: Any) -> str:
    """Pull a readable message out of Google/Mistral error payloads."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message") or ""
            status = error.get("status")
            if status and status not in message:
                message = f"{status}: {message}" if message else str(status)
            return str(message)
        if isinstance(error, str):
            return error
        for key in ("message", "detail"):
            value = body.get(key)
            if isinstance(value, str):
                return value
            if value:
                return str(value)
        return str(body)[:200]
    if isinstance(body, str):
        return body.strip()[:200]
    return ""


_USER_MESSAGE_KEYS = {
    ErrorType.PROVIDER_NOT_CONFIGURED: "api_key_required",
    ErrorType.CONFIG_MISSING: "api_key_required",
    ErrorType.PROVIDER_AUTH_ERROR: "api_key_invalid",
    ErrorType.PROVIDER_QUOTA_ERROR: "quota_exceeded",
    ErrorType.PROVIDER_FORMAT_ERROR: "unsupported_format",
    ErrorType.PROVIDER_UNAVAILABLE: "service_unavailable",
}


def user_message_key(error: Exception) -> str:
    """
    Map an error to a stable message key the caller can localize.

    Args:
        error: Any exception raised by the core

    Returns:
        Message key such as "api_key_required" or "generic_failure"
    """
    if isinstance(error, CrashAnalysisError):
        return _USER_MESSAGE_KEYS.get(error.error_type, "generic_failure")
    return "generic_failure"
