"""
Structured error types for credbridge.

Every error raised by the core carries a machine-readable code, the
collaborator it originated from and the HTTP status a controller should
map it to, so verification and revocation endpoints can tell "not found"
apart from "bad request" and "upstream unavailable".
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Dict, Any, Optional


class ErrorCode(Enum):
    """Structured error codes."""

    # Configuration
    CONFIGURATION_MISSING = "configuration_missing"

    # Upstream authorities
    UPSTREAM_ERROR = "upstream_error"
    UPSTREAM_UNAUTHORIZED = "upstream_unauthorized"
    UPSTREAM_TIMEOUT = "upstream_timeout"

    # Authorization-code flow
    INVALID_STATE = "invalid_state"
    OAUTH_CALLBACK_ERROR = "oauth_callback_error"
    SESSION_NOT_FOUND = "session_not_found"
    OAUTH_TOKEN_MISSING = "oauth_token_missing"
    OAUTH_TOKEN_EXPIRED = "oauth_token_expired"

    # Credentials
    CREDENTIAL_DATA_INVALID = "credential_data_invalid"
    CREDENTIAL_NOT_FOUND = "credential_not_found"
    AMBIGUOUS_CREDENTIAL = "ambiguous_credential"


class ErrorSource(Enum):
    """Where an error originated."""

    CONFIGURATION = "configuration"
    SIGNING_PLATFORM = "signing_platform"
    BUSINESS_REGISTRY = "business_registry"
    STATE_STORE = "state_store"
    SESSION_STORE = "session_store"
    CREDENTIAL_STORE = "credential_store"
    VERIFICATION = "verification"
    REVOCATION = "revocation"
    UPSTREAM = "upstream"


class CredBridgeError(Exception):
    """
    Base exception class for all credbridge errors.

    Provides structured error information with error codes, sources,
    an HTTP-equivalent status and additional details.
    """

    status_code = 500

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        source: ErrorSource = ErrorSource.UPSTREAM,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.source = source
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)
        if status_code is not None:
            self.status_code = status_code

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            "statusCode": self.status_code,
            "error": self.code.value,
            "message": self.message,
            "source": self.source.value,
            "timestamp": self.timestamp.isoformat(),
        }

        if self.details:
            result["details"] = self.details

        if self.cause:
            result["caused_by"] = str(self.cause)

        return result

    def is_retryable(self) -> bool:
        """Check if this error might be resolved by retrying."""
        return self.code in (
            ErrorCode.UPSTREAM_ERROR,
            ErrorCode.UPSTREAM_TIMEOUT,
        )


class ConfigurationError(CredBridgeError):
    """Required configuration (client id/secret, URL, issuers) is missing."""

    status_code = 500

    def __init__(self, message: str, setting: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if setting:
            details["setting"] = setting
        super().__init__(
            code=ErrorCode.CONFIGURATION_MISSING,
            message=message,
            source=ErrorSource.CONFIGURATION,
            details=details,
            **kwargs
        )


class UpstreamError(CredBridgeError):
    """An upstream authority failed (network error or non-2xx response)."""

    status_code = 502

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_body: Any = None,
        code: ErrorCode = ErrorCode.UPSTREAM_ERROR,
        **kwargs
    ):
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
        details = kwargs.pop("details", {})
        if upstream_status is not None:
            details["upstream_status"] = upstream_status
        if upstream_body is not None:
            details["upstream_body"] = upstream_body
        kwargs.setdefault("source", ErrorSource.UPSTREAM)
        super().__init__(code=code, message=message, details=details, **kwargs)


class UpstreamAuthError(UpstreamError):
    """An upstream authority rejected our credentials (401/403)."""

    def __init__(self, message: str, upstream_status: Optional[int] = None,
                 upstream_body: Any = None, **kwargs):
        super().__init__(
            message,
            upstream_status=upstream_status,
            upstream_body=upstream_body,
            code=ErrorCode.UPSTREAM_UNAUTHORIZED,
            **kwargs
        )


class UpstreamTimeoutError(UpstreamError):
    """An upstream call exceeded its timeout."""

    status_code = 504

    def __init__(self, message: str, timeout: Optional[float] = None, **kwargs):
        details = kwargs.pop("details", {})
        if timeout is not None:
            details["timeout_seconds"] = timeout
        super().__init__(message, code=ErrorCode.UPSTREAM_TIMEOUT, details=details, **kwargs)


class InvalidStateError(CredBridgeError):
    """OAuth state is unknown, expired or already consumed."""

    status_code = 400

    def __init__(self, message: str = "Invalid or expired state parameter", **kwargs):
        super().__init__(
            code=ErrorCode.INVALID_STATE,
            message=message,
            source=ErrorSource.STATE_STORE,
            **kwargs
        )


class OAuthCallbackError(CredBridgeError):
    """The authorization server redirected back with an error instead of a code."""

    status_code = 400

    def __init__(self, error: str, error_description: Optional[str] = None, **kwargs):
        self.error = error
        self.error_description = error_description
        message = f"OAuth error: {error}"
        if error_description:
            message = f"{message} - {error_description}"
        super().__init__(
            code=ErrorCode.OAUTH_CALLBACK_ERROR,
            message=message,
            source=ErrorSource.BUSINESS_REGISTRY,
            details={"error": error, "error_description": error_description or ""},
            **kwargs
        )


class SessionNotFoundError(CredBridgeError):
    """The application session bound to an authorization attempt no longer exists."""

    status_code = 401

    def __init__(self, session_id: str, **kwargs):
        super().__init__(
            code=ErrorCode.SESSION_NOT_FOUND,
            message=f"Session not found: {session_id}",
            source=ErrorSource.SESSION_STORE,
            **kwargs
        )


class RegistryAuthorizationRequired(CredBridgeError):
    """The session holds no usable business-registry token; the user must reconnect."""

    status_code = 401

    def __init__(self, message: str, code: ErrorCode = ErrorCode.OAUTH_TOKEN_MISSING, **kwargs):
        super().__init__(
            code=code,
            message=message,
            source=ErrorSource.BUSINESS_REGISTRY,
            **kwargs
        )


class CredentialDataError(CredBridgeError):
    """A credential decoded, but is missing data the operation requires."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        kwargs.setdefault("source", ErrorSource.VERIFICATION)
        super().__init__(
            code=ErrorCode.CREDENTIAL_DATA_INVALID,
            message=message,
            details=details,
            **kwargs
        )


class CredentialNotFoundError(CredBridgeError):
    """The claimed domain identifier is not registered locally."""

    status_code = 404

    def __init__(self, credential_type: str, identifier: str, **kwargs):
        self.credential_type = credential_type
        self.identifier = identifier
        super().__init__(
            code=ErrorCode.CREDENTIAL_NOT_FOUND,
            message=f"{credential_type.capitalize()} credential not found for identifier: {identifier}",
            source=ErrorSource.CREDENTIAL_STORE,
            details={"credential_type": credential_type, "identifier": identifier},
            **kwargs
        )


class AmbiguousCredentialError(CredBridgeError):
    """Cannot resolve which external credential a request refers to."""

    status_code = 400

    def __init__(self, message: str = "Could not determine credential type or credential ID", **kwargs):
        super().__init__(
            code=ErrorCode.AMBIGUOUS_CREDENTIAL,
            message=message,
            source=ErrorSource.REVOCATION,
            **kwargs
        )


__all__ = [
    "ErrorCode",
    "ErrorSource",
    "CredBridgeError",
    "ConfigurationError",
    "UpstreamError",
    "UpstreamAuthError",
    "UpstreamTimeoutError",
    "InvalidStateError",
    "OAuthCallbackError",
    "SessionNotFoundError",
    "RegistryAuthorizationRequired",
    "CredentialDataError",
    "CredentialNotFoundError",
    "AmbiguousCredentialError",
]
