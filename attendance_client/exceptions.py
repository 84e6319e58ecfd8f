"""
Exception hierarchy for the Attendance Client.

Every failure the client surfaces carries an error code, a severity, the
suggested way to recover and a message fit to show the user, so that the
CLI and the logs report session and request failures the same way.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorCode(Enum):
    """Standardized error codes for the Attendance Client."""

    # Authentication and session errors (1000-1099)
    AUTH_INVALID_CREDENTIALS = "AUTH_1001"
    AUTH_UNAUTHORIZED = "AUTH_1002"
    AUTH_RENEWAL_FAILED = "AUTH_1003"
    AUTH_REGISTRATION_FAILED = "AUTH_1004"

    # Network and communication errors (2000-2099)
    NETWORK_CONNECTION_FAILED = "NETWORK_2001"
    NETWORK_TIMEOUT = "NETWORK_2002"

    # API errors (3000-3099)
    API_BAD_REQUEST = "API_3001"
    API_FORBIDDEN = "API_3002"
    API_NOT_FOUND = "API_3003"
    API_CONFLICT = "API_3004"
    API_SERVER_ERROR = "API_3005"
    API_UNEXPECTED_RESPONSE = "API_3006"

    # Local storage errors (4000-4099)
    STORAGE_WRITE_FAILED = "STORAGE_4001"

    # Configuration errors (8000-8099)
    CONFIG_INVALID_FORMAT = "CONFIG_8001"
    CONFIG_INVALID_VALUE = "CONFIG_8002"


class ErrorSeverity(Enum):
    """Error severity levels for logging and handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecoveryAction(Enum):
    """Suggested recovery actions for errors."""
    RETRY = "retry"
    RETRY_WITH_BACKOFF = "retry_with_backoff"
    RECONNECT = "reconnect"
    LOGIN_AGAIN = "login_again"
    USER_INTERVENTION = "user_intervention"
    CONTACT_ADMIN = "contact_admin"


class AttendanceClientError(Exception):
    """
    Base exception class for all Attendance Client errors.

    Provides structured error information including error codes, context,
    and recovery suggestions.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        recovery_actions: Optional[List[RecoveryAction]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.context = context or {}
        self.recovery_actions = recovery_actions or []
        self.cause = cause
        self.user_message = user_message or message
        self.timestamp = datetime.now()

        if cause:
            self.context['cause_type'] = type(cause).__name__
            self.context['cause_message'] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format for serialization."""
        return {
            'error': {
                'code': self.error_code.value,
                'message': self.message,
                'user_message': self.user_message,
                'severity': self.severity.value,
                'timestamp': self.timestamp.isoformat(),
                'context': self.context,
                'recovery_actions': [action.value for action in self.recovery_actions],
                'cause': {
                    'type': self.context.get('cause_type'),
                    'message': self.context.get('cause_message')
                } if self.cause else None
            }
        }


class AuthFailed(AttendanceClientError):
    """Login rejected by the backend (bad identifier or password)."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_code=kwargs.pop('error_code', ErrorCode.AUTH_INVALID_CREDENTIALS),
            severity=ErrorSeverity.MEDIUM,
            recovery_actions=[RecoveryAction.USER_INTERVENTION],
            **kwargs
        )


class RegistrationFailed(AttendanceClientError):
    """Account creation rejected (validation error or conflict)."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None, **kwargs):
        context = kwargs.pop('context', {})
        self.field_errors = field_errors or {}
        if self.field_errors:
            context['field_errors'] = self.field_errors

        super().__init__(
            message=message,
            error_code=ErrorCode.AUTH_REGISTRATION_FAILED,
            severity=ErrorSeverity.LOW,
            recovery_actions=[RecoveryAction.USER_INTERVENTION],
            context=context,
            **kwargs
        )


class RenewalFailed(AttendanceClientError):
    """The refresh endpoint rejected the credential or could not be reached."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.AUTH_RENEWAL_FAILED,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.LOGIN_AGAIN],
            **kwargs
        )


class Unauthorized(AttendanceClientError):
    """Request rejected with 401 and not recoverable by renewal."""

    def __init__(self, message: str = "Unauthorized", **kwargs):
        super().__init__(
            message=message,
            error_code=ErrorCode.AUTH_UNAUTHORIZED,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.LOGIN_AGAIN],
            user_message=kwargs.pop('user_message', "Your session has expired, please log in again"),
            **kwargs
        )


class TransportError(AttendanceClientError):
    """Network-level failure; no response was received."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.NETWORK_CONNECTION_FAILED, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.MEDIUM,
            recovery_actions=[RecoveryAction.RETRY_WITH_BACKOFF, RecoveryAction.RECONNECT],
            **kwargs
        )


class APIError(AttendanceClientError):
    """Non-2xx response other than 401."""

    def __init__(self, message: str, status: int, **kwargs):
        context = kwargs.pop('context', {})
        context['status'] = status
        self.status = status

        super().__init__(
            message=message,
            error_code=kwargs.pop('error_code', error_code_for_status(status)),
            severity=ErrorSeverity.HIGH if status >= 500 else ErrorSeverity.MEDIUM,
            recovery_actions=[RecoveryAction.RETRY] if status >= 500 else [RecoveryAction.USER_INTERVENTION],
            context=context,
            **kwargs
        )


class StorageError(AttendanceClientError):
    """Local session storage could not be written."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_code=kwargs.pop('error_code', ErrorCode.STORAGE_WRITE_FAILED),
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.USER_INTERVENTION],
            **kwargs
        )


class ConfigurationError(AttendanceClientError):
    """Configuration related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if config_key:
            context['config_key'] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.pop('error_code', ErrorCode.CONFIG_INVALID_VALUE),
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.USER_INTERVENTION, RecoveryAction.CONTACT_ADMIN],
            context=context,
            **kwargs
        )


def error_code_for_status(status: int) -> ErrorCode:
    """Map an HTTP status code to the closest API error code."""
    code_mapping = {
        400: ErrorCode.API_BAD_REQUEST,
        403: ErrorCode.API_FORBIDDEN,
        404: ErrorCode.API_NOT_FOUND,
        409: ErrorCode.API_CONFLICT,
        422: ErrorCode.API_BAD_REQUEST,
    }

    if status >= 500:
        return ErrorCode.API_SERVER_ERROR
    return code_mapping.get(status, ErrorCode.API_UNEXPECTED_RESPONSE)
