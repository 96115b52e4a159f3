"""
Command line entry point for the synchronization daemon.

Runs the worker loop in the foreground until SIGINT/SIGTERM, finishing the
in-flight cycle before exiting. Process supervision (pid files, restarts) is
left to the service manager.

Usage:
    crm-sync [--config FILE] [--delay N] [--interval N] [--logfile FILE]
             [--tracker FILE] [--once]
"""

import argparse
import importlib
import signal
import sys
from collections.abc import Callable
from typing import Any

import structlog

from crm_sync.exceptions import ConfigurationError
from crm_sync.models.config import AppConfig, StoresConfig
from crm_sync.stores.base import LocalStore, RemoteStore
from crm_sync.sync.mapping import Mapping
from crm_sync.sync.worker import Worker
from crm_sync.utils.config_loader import ConfigLoader
from crm_sync.utils.logging_config import configure_from_config

log = structlog.stdlib.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crm-sync",
        description="Keep CRM objects and local database records in sync",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        default=None,
        help="Path to configuration file (store credentials and mappings)",
    )
    parser.add_argument(
        "-d",
        "--delay",
        type=float,
        default=None,
        help="Seconds by which to delay synchronization queries",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=None,
        help="Seconds to wait between synchronizations",
    )
    parser.add_argument(
        "-l",
        "--logfile",
        type=str,
        default=None,
        help="File where logging output should be captured",
    )
    parser.add_argument(
        "-t",
        "--tracker",
        type=str,
        default=None,
        help="File where synchronization checkpoints are stored",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single synchronization cycle and exit",
    )
    return parser


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Translate command line options into nested configuration overrides."""
    worker: dict[str, Any] = {}
    if args.delay is not None:
        worker["delay"] = args.delay
    if args.interval is not None:
        worker["interval"] = args.interval
    if args.tracker is not None:
        worker["tracker_path"] = args.tracker

    overrides: dict[str, Any] = {}
    if worker:
        overrides["worker"] = worker
    if args.logfile is not None:
        overrides["logging"] = {"log_file": args.logfile}
    return overrides


def load_store_factory(path: str) -> Callable[..., tuple[RemoteStore, LocalStore]]:
    """
    Resolve a `module:callable` store factory.

    Raises:
        ConfigurationError: If the path is malformed or cannot be imported
    """
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(f"Store factory must look like 'module:callable', got {path!r}")

    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot load store factory {path!r}: {e}") from e

    if not callable(factory):
        raise ConfigurationError(f"Store factory {path!r} is not callable")
    return factory


def build_worker(config: AppConfig) -> Worker:
    """Build a worker with its stores and mappings from validated configuration."""
    remote_store, local_store = build_stores(config.stores)

    try:
        mappings = [Mapping.from_config(mapping) for mapping in config.mappings]
        return Worker(config.worker, remote_store, local_store, mappings=mappings)
    except ValueError as e:
        raise ConfigurationError(f"Invalid mapping configuration: {e}") from e


def build_stores(config: StoresConfig) -> tuple[RemoteStore, LocalStore]:
    factory = load_store_factory(config.factory)
    remote_store, local_store = factory(**config.options)
    log.info(
        "stores_built",
        factory=config.factory,
        remote_store=type(remote_store).__name__,
        local_store=type(local_store).__name__,
    )
    return remote_store, local_store


def install_signal_handlers(worker: Worker) -> None:
    def handle(signum: int, _frame: Any) -> None:
        log.info("signal_received", signal=signal.Signals(signum).name)
        worker.stop()

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the synchronization daemon."""
    args = build_parser().parse_args(argv)

    try:
        loader = ConfigLoader()
        config = loader.load_config(args.config, overrides=cli_overrides(args))
        configure_from_config(config.logging)
        loader.validate_config(config)
        worker = build_worker(config)
    except ConfigurationError as e:
        log.critical("startup_failed", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    install_signal_handlers(worker)

    try:
        worker.start(max_cycles=1 if args.once else None)
    except Exception as e:
        # Already logged at critical severity by the worker.
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.once and worker.last_report is not None and not worker.last_report.success:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
