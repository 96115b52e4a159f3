"""Tests for the command line entry point."""

import json
import signal
from pathlib import Path

import pytest
import structlog

from crm_sync.cli import build_parser, cli_overrides, load_store_factory, main
from crm_sync.exceptions import ConfigurationError, StoreQueryError
from crm_sync.stores.memory import InMemoryLocalStore, InMemoryRemoteStore, build_stores

CONFIG = """
worker:
  interval: 0.01
stores:
  factory: {factory}
logging:
  log_level: WARNING
mappings:
  - local_type: contacts
    remote_type: Contact
    fields:
      email: Email
"""


class UnavailableRemoteStore(InMemoryRemoteStore):
    def query(self, record_type, modified_since, modified_before=None):
        raise StoreQueryError("CRM unavailable", record_type=record_type)


def unavailable_stores(**options):
    return UnavailableRemoteStore(), InMemoryLocalStore()


not_callable = 42


@pytest.fixture(autouse=True)
def restore_process_state():
    handlers = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in handlers.items():
        signal.signal(sig, handler)
    structlog.reset_defaults()


@pytest.fixture
def config_path(tmp_path: Path):
    def write(factory: str = "crm_sync.stores.memory:build_stores") -> str:
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG.format(factory=factory))
        return str(path)

    return write


class TestParser:
    def test_all_options_are_recognized(self) -> None:
        args = build_parser().parse_args(
            ["-c", "sync.yaml", "-d", "2", "-i", "30", "-l", "sync.log", "-t", "t.json", "--once"]
        )

        assert args.config == "sync.yaml"
        assert args.delay == 2.0
        assert args.interval == 30.0
        assert args.logfile == "sync.log"
        assert args.tracker == "t.json"
        assert args.once is True

    def test_overrides_only_include_given_options(self) -> None:
        assert cli_overrides(build_parser().parse_args([])) == {}

        args = build_parser().parse_args(["--delay", "1", "--tracker", "t.json", "--logfile", "x.log"])

        assert cli_overrides(args) == {
            "worker": {"delay": 1.0, "tracker_path": "t.json"},
            "logging": {"log_file": "x.log"},
        }


class TestStoreFactory:
    def test_default_factory_resolves(self) -> None:
        assert load_store_factory("crm_sync.stores.memory:build_stores") is build_stores

    @pytest.mark.parametrize(
        "path",
        [
            "crm_sync.stores.memory",
            ":build_stores",
            "crm_sync.no_such_module:build",
            "crm_sync.stores.memory:no_such_factory",
            "test_cli:not_callable",
        ],
    )
    def test_bad_factory_path_is_a_configuration_error(self, path: str) -> None:
        with pytest.raises(ConfigurationError):
            load_store_factory(path)


class TestMain:
    def test_single_cycle_succeeds_and_writes_checkpoint(
        self, config_path, tmp_path: Path
    ) -> None:
        tracker = tmp_path / "tracker.json"

        exit_code = main(["--config", config_path(), "--tracker", str(tracker), "--once"])

        assert exit_code == 0
        assert list(json.loads(tracker.read_text())) == ["contacts:Contact"]

    def test_missing_config_exits_non_zero(self, tmp_path: Path, capsys) -> None:
        exit_code = main(["--config", str(tmp_path / "absent.yaml"), "--once"])

        assert exit_code == 1
        assert "not found" in capsys.readouterr().err

    def test_failing_mapping_exits_non_zero(self, config_path, tmp_path: Path) -> None:
        tracker = tmp_path / "tracker.json"

        exit_code = main(
            ["-c", config_path("test_cli:unavailable_stores"), "-t", str(tracker), "--once"]
        )

        assert exit_code == 1
        assert not tracker.exists()

    def test_corrupt_tracker_aborts(self, config_path, tmp_path: Path, capsys) -> None:
        tracker = tmp_path / "tracker.json"
        tracker.write_text("not json")

        exit_code = main(["-c", config_path(), "-t", str(tracker), "--once"])

        assert exit_code == 1
        assert "checkpoints" in capsys.readouterr().err
