"""Unit tests for log formatting, redaction and correlation ids."""

import json
import logging

from phytoreq import logging_config


def _record(msg: str, level=logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("phytoreq.registry.workflow", level, __file__, 1, msg, None, None)


def test_get_logger_nests_under_root():
    assert logging_config.get_logger("middleware").name == "phytoreq.middleware"
    assert logging_config.get_logger("phytoreq.s3").name == "phytoreq.s3"


def test_secret_values_are_redacted(monkeypatch):
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "super-secret-value")

    redacted = logging_config._redact_secrets(
        "key super-secret-value and url?X-Amz-Signature=abcdef0123 password=hunter22"
    )

    assert "super-secret-value" not in redacted
    assert "abcdef0123" not in redacted
    assert "hunter22" not in redacted


def test_json_formatter_includes_correlation_id():
    logging_config.set_correlation_id("cid-42")
    formatter = logging_config.StructuredJsonFormatter(service="phytoreq-test")

    entry = json.loads(formatter.format(_record("Requirement 3 registered", logging.WARNING)))

    assert entry["level"] == "warn"
    assert entry["service"] == "phytoreq-test"
    assert entry["correlationId"] == "cid-42"
    assert entry["message"] == "Requirement 3 registered"


def test_generated_correlation_ids_are_unique():
    assert logging_config.generate_correlation_id() != logging_config.generate_correlation_id()


def test_json_formatter_includes_acting_user():
    logging_config.set_acting_user("editor-user")
    try:
        entry = json.loads(logging_config.StructuredJsonFormatter().format(_record("updated")))
    finally:
        logging_config.set_acting_user(None)

    assert entry["userId"] == "editor-user"


def test_development_formatter_redacts(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIAEXAMPLEKEY")

    line = logging_config.DevelopmentFormatter().format(_record("using AKIAEXAMPLEKEY"))

    assert "AKIAEXAMPLEKEY" not in line
    assert "[REDACTED]" in line
