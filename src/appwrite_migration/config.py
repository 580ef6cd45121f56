"""Configuration management for Appwrite Bridge using Pydantic.

This module provides type-safe configuration models for the source and
destination projects, migration options, performance tuning, the cloud
worker, checkpoint state and logging.
"""

import os
from pathlib import Path

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProjectConfig(BaseModel):
    """Connection settings for one Appwrite project (source or destination)."""

    endpoint: str = Field(..., description="Appwrite API endpoint, e.g. https://cloud.appwrite.io/v1")
    project_id: str = Field(..., description="Project ID")
    api_key: str = Field(..., description="Server API key with the scopes the migration needs")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    timeout: int = Field(default=60, ge=1, le=1200, description="API request timeout in seconds")

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Validate and normalize the endpoint URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Endpoint must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("project_id", "api_key")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Validate identifiers and keys are not blank."""
        if not v or v.strip() == "":
            raise ValueError("Value cannot be empty")
        return v.strip()


class MigrationOptions(BaseModel):
    """Which resource categories to migrate and how.

    ``migrate_documents`` and ``migrate_files`` control nested content and are
    independent of the container flags: a run may create collections without
    copying their documents.
    """

    model_config = ConfigDict(populate_by_name=True)

    migrate_databases: bool = Field(
        default=True, validation_alias=AliasChoices("migrate_databases", "migrateDatabases")
    )
    migrate_storage: bool = Field(
        default=True, validation_alias=AliasChoices("migrate_storage", "migrateStorage")
    )
    migrate_functions: bool = Field(
        default=True, validation_alias=AliasChoices("migrate_functions", "migrateFunctions")
    )
    migrate_users: bool = Field(
        default=True, validation_alias=AliasChoices("migrate_users", "migrateUsers")
    )
    migrate_teams: bool = Field(
        default=True, validation_alias=AliasChoices("migrate_teams", "migrateTeams")
    )
    migrate_documents: bool = Field(
        default=True, validation_alias=AliasChoices("migrate_documents", "migrateDocuments")
    )
    migrate_files: bool = Field(
        default=True, validation_alias=AliasChoices("migrate_files", "migrateFiles")
    )
    use_cloud_proxy: bool = Field(
        default=False,
        validation_alias=AliasChoices("use_cloud_proxy", "useCloudProxy"),
        description="Transfer files through a worker function deployed to the destination",
    )

    @property
    def needs_cloud_worker(self) -> bool:
        """Whether a run with these options would deploy the cloud worker."""
        return self.use_cloud_proxy and self.migrate_storage and self.migrate_files


class PerformanceConfig(BaseModel):
    """Performance tuning configuration."""

    rate_limit: int = Field(default=20, ge=1, le=100, description="Requests per second limit")
    max_concurrent: int = Field(
        default=25,
        ge=1,
        le=100,
        description="Maximum items of one page processed concurrently",
    )
    scan_page_size: int = Field(
        default=100, ge=1, le=100, description="Resources listed per category during scan"
    )
    document_page_size: int = Field(
        default=100, ge=1, le=100, description="Documents fetched per source page"
    )
    file_page_size: int = Field(default=50, ge=1, le=100, description="Files fetched per source page")
    attribute_create_delay: float = Field(
        default=0.2,
        ge=0.0,
        le=10.0,
        description="Pause after each attribute creation to stay under rate limits",
    )
    http_max_connections: int = Field(default=50, ge=10, le=200)
    http_max_keepalive_connections: int = Field(default=20, ge=5, le=100)


class WorkerConfig(BaseModel):
    """Cloud proxy worker settings."""

    name: str = Field(default="_dv_migration_worker", description="Worker function name")
    runtime: str = Field(default="python-3.11", description="Appwrite runtime for the worker")
    timeout: int = Field(default=15, ge=1, le=15, description="Worker execution timeout (s)")
    poll_interval: float = Field(
        default=2.0, ge=0.0, le=30.0, description="Seconds between build status checks"
    )
    poll_attempts: int = Field(
        default=30, ge=1, le=300, description="Build status checks before giving up"
    )

    @property
    def request_timeout(self) -> int:
        """Timeout for each HTTP call the worker makes.

        One execution makes three calls (metadata, download, upload), all of
        which must fit in the function timeout.
        """
        return max(1, self.timeout // 3)


class TeamsConfig(BaseModel):
    """Team migration settings."""

    membership_redirect_url: str = Field(
        default="http://localhost",
        description="Redirect URL Appwrite embeds in membership invitation emails",
    )


class StateConfig(BaseModel):
    """Checkpoint state configuration."""

    db_path: str = Field(
        default="./migration_state.db", description="Path to the checkpoint database file"
    )

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the checkpoint database."""
        if "://" in self.db_path:
            return self.db_path
        return f"sqlite:///{self.db_path}"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="WARNING", description="Console log level")
    file_level: str = Field(default="DEBUG", description="File log level")
    format: str = Field(default="json", description="Log file format (json or console)")
    file: str | None = Field(default="logs/migration.log", description="Log file path")

    @field_validator("level", "file_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v_lower


class MigrationConfig(BaseSettings):
    """Main migration configuration."""

    model_config = SettingsConfigDict(
        env_prefix="APPWRITE_BRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    source: ProjectConfig = Field(..., description="Source project")
    destination: ProjectConfig = Field(..., description="Destination project")
    options: MigrationOptions = Field(default_factory=MigrationOptions)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    teams: TeamsConfig = Field(default_factory=TeamsConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config_from_yaml(config_path: str | Path) -> MigrationConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        MigrationConfig: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is empty or references a missing env var
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        raise ValueError(f"Empty configuration file: {config_path}")

    config_data = _expand_env_vars(config_data)

    return MigrationConfig(**config_data)


def _expand_env_vars(data):
    """Recursively expand ``${VAR_NAME}`` references in config values.

    Args:
        data: Configuration value (dict, list or scalar)

    Returns:
        The value with environment variables substituted
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_name = data[2:-1]
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '{var_name}' not found. "
                    f"Please set it in your environment or .env file."
                )
            return env_value
        return data
    else:
        return data


def save_config_to_yaml(config: MigrationConfig, output_path: str | Path) -> None:
    """Save configuration to YAML file with API keys replaced by env references.

    Args:
        config: Configuration to save
        output_path: Path to output YAML file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump()
    config_dict["source"]["api_key"] = "${APPWRITE_SOURCE_API_KEY}"
    config_dict["destination"]["api_key"] = "${APPWRITE_DEST_API_KEY}"

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
