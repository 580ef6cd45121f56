"""
Migration plan data model.

A plan is a tree of MigrationResource nodes produced by a scan of the
source project. Each node carries a typed snapshot of the source resource
(permissions, schema, runtime, hash scheme) so execution can rebuild it in
the destination. Password hashes are the exception: they are never written
to a plan file. Plans are saved to YAML or JSON so an operator can disable
nodes or rename targets before executing them.
"""

import json
from collections.abc import Iterable, Iterator
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Union

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from appwrite_migration.config import MigrationOptions


class ResourceKind(str, Enum):
    """Kinds of plan node."""

    DATABASE = "database"
    COLLECTION = "collection"
    BUCKET = "bucket"
    FUNCTION = "function"
    TEAM = "team"
    USER = "user"


def _api_field(
    *names: str, default: Any = None, default_factory: Any = None, exclude: bool = False
) -> Any:
    """Field accepting both the snake_case name and the Appwrite API spelling."""
    if default_factory is not None:
        return Field(
            default_factory=default_factory, validation_alias=AliasChoices(*names), exclude=exclude
        )
    return Field(default=default, validation_alias=AliasChoices(*names), exclude=exclude)


class _Snapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_api(cls, payload: dict[str, Any]):
        """Build the snapshot from an Appwrite API resource payload."""
        return cls.model_validate(payload)


class DatabaseSnapshot(_Snapshot):
    kind: Literal["database"] = "database"
    enabled: bool = True


class CollectionSnapshot(_Snapshot):
    kind: Literal["collection"] = "collection"
    permissions: list[str] = _api_field("permissions", "$permissions", default_factory=list)
    document_security: bool = _api_field("document_security", "documentSecurity", default=False)
    enabled: bool = True


class BucketSnapshot(_Snapshot):
    kind: Literal["bucket"] = "bucket"
    permissions: list[str] = _api_field("permissions", "$permissions", default_factory=list)
    file_security: bool = _api_field("file_security", "fileSecurity", default=False)
    enabled: bool = True
    maximum_file_size: int | None = _api_field("maximum_file_size", "maximumFileSize")
    allowed_file_extensions: list[str] = _api_field(
        "allowed_file_extensions", "allowedFileExtensions", default_factory=list
    )
    compression: str | None = None
    encryption: bool | None = None
    antivirus: bool | None = None


class FunctionSnapshot(_Snapshot):
    kind: Literal["function"] = "function"
    runtime: str
    execute: list[str] = Field(default_factory=list)
    events: list[str] = Field(default_factory=list)
    schedule: str | None = None
    timeout: int | None = None
    enabled: bool = True
    logging: bool = True
    entrypoint: str | None = None
    commands: str | None = None
    scopes: list[str] = Field(default_factory=list)
    # ID of the active deployment (renamed deploymentId in newer servers)
    deployment: str | None = _api_field("deployment", "deploymentId")
    installation_id: str | None = _api_field("installation_id", "installationId")
    provider_repository_id: str | None = _api_field(
        "provider_repository_id", "providerRepositoryId"
    )
    provider_branch: str | None = _api_field("provider_branch", "providerBranch")
    provider_silent_mode: bool | None = _api_field("provider_silent_mode", "providerSilentMode")
    provider_root_directory: str | None = _api_field(
        "provider_root_directory", "providerRootDirectory"
    )

    def create_settings(self) -> dict[str, Any]:
        """Appwrite create-function fields for this snapshot (empty VCS fields dropped)."""
        return {
            "runtime": self.runtime,
            "execute": self.execute,
            "events": self.events,
            "schedule": self.schedule,
            "timeout": self.timeout,
            "enabled": self.enabled,
            "logging": self.logging,
            "entrypoint": self.entrypoint,
            "commands": self.commands,
            "scopes": self.scopes,
            "installationId": self.installation_id or None,
            "providerRepositoryId": self.provider_repository_id or None,
            "providerBranch": self.provider_branch or None,
            "providerSilentMode": self.provider_silent_mode if self.installation_id else None,
            "providerRootDirectory": self.provider_root_directory or None,
        }


class UserSnapshot(_Snapshot):
    """Source user record. Every field is optional: exports differ by server version.

    The password hash and its options stay in memory only; saved plans omit
    them and execution reads them back from the source project.
    """

    kind: Literal["user"] = "user"
    email: str | None = None
    phone: str | None = None
    name: str | None = None
    password_hash: str | None = _api_field("password_hash", "password", exclude=True)
    hash_type: str | None = _api_field("hash_type", "hash")
    hash_options: dict[str, Any] | None = _api_field("hash_options", "hashOptions", exclude=True)
    status: bool | None = None
    email_verification: bool | None = _api_field("email_verification", "emailVerification")
    phone_verification: bool | None = _api_field("phone_verification", "phoneVerification")
    labels: list[str] | None = None
    prefs: dict[str, Any] | None = None


class TeamSnapshot(_Snapshot):
    kind: Literal["team"] = "team"
    total: int | None = None


Snapshot = Annotated[
    Union[
        DatabaseSnapshot,
        CollectionSnapshot,
        BucketSnapshot,
        FunctionSnapshot,
        UserSnapshot,
        TeamSnapshot,
    ],
    Field(discriminator="kind"),
]


class MigrationResource(BaseModel):
    """A node of the plan tree.

    ``target_id`` and ``target_name`` may be edited before execution;
    uniqueness of target IDs is not checked.
    """

    type: ResourceKind
    source_id: str
    target_id: str
    source_name: str
    target_name: str
    enabled: bool = True
    children: list["MigrationResource"] = Field(default_factory=list)
    original_data: Snapshot | None = None

    @classmethod
    def from_api(
        cls,
        kind: ResourceKind,
        payload: dict[str, Any],
        snapshot: Any = None,
        name: str | None = None,
    ) -> "MigrationResource":
        """Build a node whose target mirrors the source."""
        resource_name = name if name is not None else payload.get("name", "")
        return cls(
            type=kind,
            source_id=payload["$id"],
            target_id=payload["$id"],
            source_name=resource_name,
            target_name=resource_name,
            original_data=snapshot,
        )

    def iter_enabled_children(self) -> Iterator["MigrationResource"]:
        return iter_enabled(self.children)


def iter_enabled(resources: Iterable[MigrationResource]) -> Iterator[MigrationResource]:
    """Yield enabled nodes; a disabled node hides its whole subtree."""
    return (resource for resource in resources if resource.enabled)


class MigrationPlan(BaseModel):
    """Root of the plan tree plus the options it was scanned with."""

    databases: list[MigrationResource] = Field(default_factory=list)
    buckets: list[MigrationResource] = Field(default_factory=list)
    functions: list[MigrationResource] = Field(default_factory=list)
    teams: list[MigrationResource] = Field(default_factory=list)
    users: list[MigrationResource] = Field(default_factory=list)
    options: MigrationOptions = Field(default_factory=MigrationOptions)

    def counts(self) -> dict[str, tuple[int, int]]:
        """Return (enabled, total) per top-level category, plus collections."""
        collections = [c for db in self.databases for c in db.children]
        return {
            "databases": (sum(1 for _ in iter_enabled(self.databases)), len(self.databases)),
            "collections": (
                sum(1 for db in iter_enabled(self.databases) for _ in db.iter_enabled_children()),
                len(collections),
            ),
            "buckets": (sum(1 for _ in iter_enabled(self.buckets)), len(self.buckets)),
            "functions": (sum(1 for _ in iter_enabled(self.functions)), len(self.functions)),
            "teams": (sum(1 for _ in iter_enabled(self.teams)), len(self.teams)),
            "users": (sum(1 for _ in iter_enabled(self.users)), len(self.users)),
        }

    def save(self, path: str | Path) -> None:
        """Write the plan as YAML (or JSON for a ``.json`` suffix)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(mode="json")

        with open(path, "w") as f:
            if path.suffix == ".json":
                json.dump(data, f, indent=2)
            else:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    @classmethod
    def load(cls, path: str | Path) -> "MigrationPlan":
        """Read a plan written by save().

        Raises:
            FileNotFoundError: If the plan file doesn't exist
            ValueError: If the plan file is empty
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Plan file not found: {path}")

        with open(path) as f:
            data = json.load(f) if path.suffix == ".json" else yaml.safe_load(f)

        if not data:
            raise ValueError(f"Empty plan file: {path}")

        return cls.model_validate(data)
