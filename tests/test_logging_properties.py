"""Property-based tests for logging functionality.

Every log line the daemon emits is a JSON object carrying a timestamp, a
severity level, the event name and any context passed by the caller.
"""

import json
import logging
from datetime import datetime
from pathlib import Path

import pytest
import structlog
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from crm_sync.models.config import LoggingConfig
from crm_sync.utils.logging_config import configure_from_config, configure_logging


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()
    logging.basicConfig(force=True)


def read_entries(capsys: pytest.CaptureFixture[str]) -> list[dict]:
    output = capsys.readouterr().out.strip()
    return [json.loads(line) for line in output.splitlines() if line]


@given(
    log_level=st.sampled_from(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    error_message=st.text(min_size=1, max_size=200),
)
@settings(max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
def test_log_entries_contain_required_fields(
    capsys: pytest.CaptureFixture[str], log_level: str, error_message: str
) -> None:
    """
    For any logged event, the entry contains timestamp, severity level,
    event name and the caller's message.
    """
    capsys.readouterr()
    configure_logging(log_level="DEBUG", json_logs=True)

    log = structlog.stdlib.get_logger("crm_sync.tests")
    getattr(log, log_level.lower())("mapping_sync_failed", error=error_message)

    entries = read_entries(capsys)
    assert len(entries) == 1
    entry = entries[0]

    datetime.fromisoformat(entry["timestamp"].replace("Z", "+00:00"))
    assert entry["level"].upper() == log_level
    assert entry["event"] == "mapping_sync_failed"
    assert entry["error"] == error_message


@given(
    context_key=st.from_regex(r"[a-z][a-z_]{0,15}", fullmatch=True).filter(
        lambda key: key not in {"event", "level", "timestamp", "logger", "module", "func_name"}
    ),
    context_value=st.one_of(
        st.text(max_size=100),
        st.integers(min_value=-(2**53), max_value=2**53),
        st.booleans(),
    ),
)
@settings(max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
def test_log_entries_preserve_context(
    capsys: pytest.CaptureFixture[str], context_key: str, context_value: str | int | bool
) -> None:
    capsys.readouterr()
    configure_logging(log_level="INFO", json_logs=True)

    structlog.stdlib.get_logger("crm_sync.tests").error("cycle_completed", **{context_key: context_value})

    entry = read_entries(capsys)[0]
    assert entry[context_key] == context_value


def test_callsite_parameters_are_added(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(log_level="INFO", json_logs=True)

    structlog.stdlib.get_logger("crm_sync.tests").info("worker_started", mappings=["contacts:Contact"])

    entry = read_entries(capsys)[0]
    assert entry["module"] == "test_logging_properties"
    assert entry["func_name"] == "test_callsite_parameters_are_added"
    assert entry["mappings"] == ["contacts:Contact"]


def test_datetimes_are_serialized(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(log_level="INFO", json_logs=True)
    window_end = datetime(2024, 1, 15, 14, 30)

    structlog.stdlib.get_logger("crm_sync.tests").info("cycle_started", window_end=window_end)

    assert read_entries(capsys)[0]["window_end"] == str(window_end)


def test_level_below_threshold_is_filtered(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging(log_level="WARNING", json_logs=True)
    log = structlog.stdlib.get_logger("crm_sync.tests")

    log.info("cycle_started")
    log.debug("self_echo_suppressed")
    log.warning("remote_record_missing", remote_id="a00000000000000404")

    assert [entry["event"] for entry in read_entries(capsys)] == ["remote_record_missing"]


def test_log_file_receives_entries(tmp_path: Path) -> None:
    log_file = tmp_path / "crm_sync.log"
    configure_logging(log_level="INFO", json_logs=True, log_file=str(log_file))

    structlog.stdlib.get_logger("crm_sync.tests").critical("worker_aborted", error="boom")
    for handler in logging.root.handlers:
        handler.flush()

    lines = log_file.read_text().strip().splitlines()
    assert json.loads(lines[-1])["event"] == "worker_aborted"


def test_configure_from_config_prefers_explicit_log_file(tmp_path: Path) -> None:
    configured = tmp_path / "configured.log"
    explicit = tmp_path / "explicit.log"

    configure_from_config(
        LoggingConfig(log_level="INFO", json_logs=False, log_file=str(configured)),
        log_file=str(explicit),
    )
    structlog.stdlib.get_logger("crm_sync.tests").info("checkpoint_saved", mapping="contacts:Contact")
    for handler in logging.root.handlers:
        handler.flush()

    assert "checkpoint_saved" in explicit.read_text()
    assert not configured.exists()
