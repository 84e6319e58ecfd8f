"""
Logging setup for the Attendance Client.

Console and rotating file output in standard, JSON or detailed form, plus an
``audit`` logger that records logins, logouts and credential renewals.
Bearer credentials are masked before any record reaches a handler.
"""

import json
import logging
import logging.handlers
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional
from enum import Enum

from attendance_client.exceptions import AttendanceClientError


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(Enum):
    STANDARD = "standard"
    JSON = "json"
    DETAILED = "detailed"


class AuditEventType(Enum):
    """Session events written to the audit trail."""
    AUTHENTICATION = "authentication"
    SESSION = "session"
    TOKEN_RENEWAL = "token_renewal"
    ERROR_EVENT = "error_event"


STANDARD_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_BEARER = re.compile(r'(Bearer\s+)[\w\-.~+/=]+', re.IGNORECASE)

# LogRecord attributes that are not user supplied extras
_RECORD_FIELDS = set(vars(logging.makeLogRecord({}))) | {'message', 'error_info', 'audit_info'}


def redact(text: str) -> str:
    """Mask bearer credentials in free text."""
    return _BEARER.sub(r'\1***', text)


class CredentialFilter(logging.Filter):
    """Rewrites records so that no bearer credential is ever emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = redact(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def _error_details(error: AttendanceClientError) -> Dict[str, Any]:
    return {
        'code': error.error_code.value,
        'severity': error.severity.value,
        'context': error.context,
        'recovery_actions': [action.value for action in error.recovery_actions],
        'user_message': error.user_message,
    }


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, include_extra_fields: bool = True):
        super().__init__()
        self.include_extra_fields = include_extra_fields

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'source': f"{record.module}:{record.funcName}:{record.lineno}",
        }

        if record.exc_info and record.exc_info[0]:
            entry['exception'] = {
                'type': record.exc_info[0].__name__,
                'traceback': redact(self.formatException(record.exc_info)),
            }

        error = getattr(record, 'error_info', None)
        if isinstance(error, AttendanceClientError):
            entry['error'] = _error_details(error)

        audit = getattr(record, 'audit_info', None)
        if audit:
            entry['audit'] = audit

        if self.include_extra_fields:
            extra = {k: v for k, v in vars(record).items() if k not in _RECORD_FIELDS}
            if extra:
                entry['extra'] = extra

        return json.dumps(entry, default=str, ensure_ascii=False)


class DetailedFormatter(logging.Formatter):
    """Readable lines with call site, followed by error or audit details."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s',
            datefmt=DATE_FORMAT
        )

    def format(self, record: logging.LogRecord) -> str:
        lines = [super().format(record)]

        error = getattr(record, 'error_info', None)
        if isinstance(error, AttendanceClientError):
            details = _error_details(error)
            lines.append(f"  [{details['code']}/{details['severity']}] {details['user_message']}")
            if details['context']:
                lines.append(f"  context: {json.dumps(details['context'], default=str)}")

        audit = getattr(record, 'audit_info', None)
        if audit:
            lines.append(f"  audit: {json.dumps(audit, default=str)}")

        return "\n".join(lines)


class AuditLogger:
    """
    Audit trail for session events.

    Callers pass user names and outcomes only; credentials never reach
    this logger.
    """

    def __init__(self, logger_name: str = "audit"):
        self.logger = logging.getLogger(logger_name)

    def log_event(
        self,
        event_type: AuditEventType,
        message: str,
        username: Optional[str] = None,
        user_id: Optional[int] = None,
        result: Optional[str] = None,
        additional_context: Optional[Dict[str, Any]] = None
    ):
        audit_info = {
            'event_type': event_type.value,
            'timestamp': datetime.now().isoformat(),
            'username': username,
            'user_id': user_id,
            'result': result,
            'context': additional_context,
        }
        self.logger.info(message, extra={'audit_info': {k: v for k, v in audit_info.items() if v}})

    def log_authentication(
        self,
        username: str,
        user_id: Optional[int] = None,
        success: bool = True,
        failure_reason: Optional[str] = None
    ):
        outcome = "success" if success else "failure"
        self.log_event(
            AuditEventType.AUTHENTICATION,
            f"Login {outcome} for {username}",
            username=username,
            user_id=user_id,
            result=outcome,
            additional_context={'failure_reason': failure_reason} if failure_reason else None
        )

    def log_logout(self, username: Optional[str] = None, reason: str = "user"):
        self.log_event(
            AuditEventType.SESSION,
            f"Session closed ({reason})",
            username=username,
            result="logged_out",
            additional_context={'reason': reason}
        )

    def log_renewal(self, success: bool = True, failure_reason: Optional[str] = None):
        outcome = "success" if success else "failure"
        self.log_event(
            AuditEventType.TOKEN_RENEWAL,
            f"Credential renewal {outcome}",
            result=outcome,
            additional_context={'failure_reason': redact(failure_reason)} if failure_reason else None
        )

    def log_error(self, error: AttendanceClientError, username: Optional[str] = None):
        self.log_event(
            AuditEventType.ERROR_EVENT,
            f"Error: {error.message}",
            username=username,
            result="error",
            additional_context={'error_code': error.error_code.value}
        )


def _rotating_handler(path: str, max_bytes: int, backups: int) -> logging.Handler:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding='utf-8')


def _make_formatter(log_format: LogFormat) -> logging.Formatter:
    if log_format == LogFormat.JSON:
        return StructuredFormatter()
    if log_format == LogFormat.DETAILED:
        return DetailedFormatter()
    return logging.Formatter(fmt=STANDARD_FORMAT, datefmt=DATE_FORMAT)


def _reset(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    log_level: LogLevel = LogLevel.INFO,
    log_format: LogFormat = LogFormat.STANDARD,
    log_file: Optional[str] = None,
    max_file_size: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    enable_console: bool = True,
    audit_file: Optional[str] = None
) -> Dict[str, logging.Logger]:
    """
    Configure the root and audit loggers.

    Console output goes to stderr so that command output on stdout stays
    parseable. Every handler carries a ``CredentialFilter``.

    Returns:
        The configured loggers by role
    """
    root = logging.getLogger()
    _reset(root)
    root.setLevel(getattr(logging, log_level.value))

    formatter = _make_formatter(log_format)
    credential_filter = CredentialFilter()

    handlers = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        handlers.append(_rotating_handler(log_file, max_file_size, backup_count))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(credential_filter)
        root.addHandler(handler)

    audit = logging.getLogger('audit')
    _reset(audit)
    if audit_file:
        audit_handler = _rotating_handler(audit_file, max_file_size, backup_count)
        audit_handler.setFormatter(StructuredFormatter(include_extra_fields=False))
        audit_handler.addFilter(credential_filter)
        audit.addHandler(audit_handler)

    return {
        'root': root,
        'audit': audit,
        'http': logging.getLogger('attendance_client.http'),
        'auth': logging.getLogger('attendance_client.auth'),
    }


def log_structured_error(logger: logging.Logger, error: AttendanceClientError):
    """Log an ``AttendanceClientError`` with its code, severity and context attached."""
    logger.error(error.message, extra={'error_info': error})
