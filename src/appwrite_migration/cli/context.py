"""
CLI context for Appwrite Bridge.

This module provides the context object that is passed to all CLI commands,
holding the configuration path, logging settings and the loaded configuration.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from appwrite_migration.config import MigrationConfig, load_config_from_yaml
from appwrite_migration.migration.coordinator import MigrationCoordinator
from appwrite_migration.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MigrationContext:
    """
    Context object for CLI commands.

    Attributes:
        config_path: Path to configuration file
        log_level: Console logging level
        log_file: Optional log file path
    """

    config_path: Path | None = None
    log_level: str = "WARNING"
    log_file: Path | None = None

    _config: MigrationConfig | None = field(default=None, init=False, repr=False)

    @property
    def config(self) -> MigrationConfig:
        """Get or load migration configuration."""
        if self._config is None:
            if self.config_path is None:
                raise ValueError(
                    "Configuration file path not provided. "
                    "Use --config option or set APPWRITE_BRIDGE_CONFIG environment variable."
                )

            logger.debug("Loading configuration", config_path=str(self.config_path))
            self._config = load_config_from_yaml(self.config_path)

        return self._config

    def create_coordinator(
        self, log_callback: Callable[[str], None] | None = None
    ) -> MigrationCoordinator:
        """Build a coordinator; call inside the event loop that will close it."""
        return MigrationCoordinator.from_config(self.config, log_callback=log_callback)
