"""Shared utilities for configuration and logging"""

from crm_sync.utils.config_loader import ConfigLoader
from crm_sync.utils.logging_config import configure_from_config, configure_logging

__all__ = ["ConfigLoader", "configure_from_config", "configure_logging"]
