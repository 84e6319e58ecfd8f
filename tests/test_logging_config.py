"""
Tests for logging setup and credential masking.
"""

import json
import logging

import pytest

from attendance_client.exceptions import RenewalFailed
from attendance_client.logging_config import (
    AuditLogger, CredentialFilter, DetailedFormatter, LogFormat, LogLevel,
    StructuredFormatter, log_structured_error, redact, setup_logging
)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    for handler in list(logging.getLogger('audit').handlers):
        logging.getLogger('audit').removeHandler(handler)


def make_record(msg, args=None, **extra):
    record = logging.makeLogRecord({'name': 'attendance_client.test', 'msg': msg, 'args': args,
                                    'levelname': 'INFO', 'levelno': logging.INFO})
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_redact_masks_bearer_values():
    assert redact("Authorization: Bearer abc.def-ghi") == "Authorization: Bearer ***"
    assert redact("nothing secret") == "nothing secret"


def test_credential_filter_rewrites_formatted_message():
    record = make_record("sending %s", ("Bearer tok1",))

    assert CredentialFilter().filter(record) is True
    assert record.getMessage() == "sending Bearer ***"


def test_structured_formatter_includes_error_and_audit():
    error = RenewalFailed("Renewal rejected", context={'status': 401})
    record = make_record("failed", error_info=error, audit_info={'event_type': 'token_renewal'})

    entry = json.loads(StructuredFormatter().format(record))

    assert entry['message'] == "failed"
    assert entry['error']['code'] == error.error_code.value
    assert entry['error']['context'] == {'status': 401}
    assert entry['audit'] == {'event_type': 'token_renewal'}


def test_detailed_formatter_appends_error_line():
    error = RenewalFailed("Renewal rejected")
    output = DetailedFormatter().format(make_record("failed", error_info=error))

    assert error.error_code.value in output.splitlines()[1]


def test_audit_logger_records_renewal(caplog):
    with caplog.at_level(logging.INFO, logger='audit'):
        AuditLogger().log_renewal(success=False, failure_reason="Bearer tok9 rejected")

    record = caplog.records[-1]
    assert record.audit_info['event_type'] == 'token_renewal'
    assert record.audit_info['result'] == 'failure'
    assert 'tok9' not in json.dumps(record.audit_info)


def test_setup_logging_writes_masked_json_file(tmp_path, restore_logging):
    log_file = tmp_path / "logs" / "client.log"
    loggers = setup_logging(LogLevel.DEBUG, LogFormat.JSON, log_file=str(log_file), enable_console=False)

    loggers['http'].info("retrying with Bearer secret-token")
    log_structured_error(loggers['auth'], RenewalFailed("Renewal rejected"))
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert lines[0]['message'] == "retrying with Bearer ***"
    assert lines[1]['level'] == 'ERROR'
    assert 'secret-token' not in log_file.read_text()
