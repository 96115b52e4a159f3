"""Loading of the YAML configuration file into validated settings."""

import os
import re
from collections import Counter
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from crm_sync.exceptions import ConfigurationError
from crm_sync.models.config import AppConfig

log = structlog.stdlib.get_logger()

__all__ = ["ConfigLoader", "ConfigurationError"]

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


class ConfigLoader:
    """Reads `config/<APP_ENV>.yaml`, expands `${VAR}` references and validates the result."""

    ENV_REFERENCE = re.compile(r"\$\{([^}]+)\}")

    def load_config(
        self, config_path: str | None = None, overrides: dict[str, Any] | None = None
    ) -> AppConfig:
        """
        Build the application settings from a YAML file.

        Args:
            config_path: File to read; defaults to the file for APP_ENV
            overrides: Nested values (typically command line options) layered
                over the file before validation

        Returns:
            Validated AppConfig

        Raises:
            ConfigurationError: If the file is missing, unreadable, references an
                unset environment variable or fails validation
        """
        path = config_path or self._get_default_config_path()
        log.info("loading_configuration", config_path=path)

        raw = self._expand(self._read_yaml(path))
        if overrides:
            raw = self._merge(raw, overrides)

        try:
            config = AppConfig(**raw)
        except ValidationError as e:
            log.error("configuration_validation_failed", config_path=path, error=str(e))
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

        log.info(
            "configuration_loaded_successfully",
            mappings=[mapping.local_type for mapping in config.mappings],
            interval=config.worker.interval,
            delay=config.worker.delay,
            tracker_path=config.worker.tracker_path,
        )
        return config

    def _get_default_config_path(self) -> str:
        env = os.getenv("APP_ENV", "default")
        candidates = [CONFIG_DIR / f"{env}.yaml", CONFIG_DIR / "default.yaml"]

        for candidate in candidates:
            if candidate.exists():
                return str(candidate)

        raise ConfigurationError(
            f"Configuration file not found: {candidates[-1]}. "
            f"Create config/default.yaml or pass --config."
        )

    def _read_yaml(self, path: str) -> dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                document = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Configuration file not found: {path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML file {path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file {path}: {e}") from e

        if document is None:
            raise ConfigurationError(f"Configuration file is empty: {path}")
        if not isinstance(document, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {path}")

        return document

    def _expand(self, value: Any) -> Any:
        """Replace `${VAR}` references in every string of a parsed document."""
        if isinstance(value, dict):
            return {key: self._expand(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._expand(item) for item in value]
        if isinstance(value, str):
            return self.ENV_REFERENCE.sub(self._lookup, value)
        return value

    def _lookup(self, match: re.Match[str]) -> str:
        name = match.group(1)
        resolved = os.getenv(name)
        if resolved is None:
            raise ConfigurationError(
                f"Required environment variable not set: {name}. "
                f"Export {name} before starting crm-sync."
            )
        return resolved

    def _merge(self, base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
        merged = dict(base)
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = self._merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def validate_config(self, config: AppConfig) -> list[str]:
        """
        Report settings that validate but are probably mistakes.

        Returns:
            Warning messages, empty when nothing looks off
        """
        warnings = []

        if not config.mappings:
            warnings.append("no mappings configured; the worker will only advance time")

        if config.worker.delay >= config.worker.interval:
            warnings.append(
                f"worker.delay ({config.worker.delay}) is not less than "
                f"worker.interval ({config.worker.interval})"
            )

        ids = Counter(m.name or f"{m.local_type}:{m.remote_type}" for m in config.mappings)
        duplicates = sorted(mapping_id for mapping_id, count in ids.items() if count > 1)
        if duplicates:
            warnings.append(f"duplicate mapping ids: {duplicates}")

        if warnings:
            log.warning("configuration_validation_warnings", warnings=warnings)

        return warnings
