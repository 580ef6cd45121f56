"""Transfer executor: the dependency-ordered walk over a migration plan.

Phases run strictly in this order, each gated by its option flag:

    databases -> collections -> attributes (scalar) -> attributes (relationship)
    -> indexes -> documents -> buckets -> files -> functions -> users -> teams

Every resource is created idempotently ("get by ID; create on 404"), so a
second run over the same plan creates nothing. A 409 on create, which a
retried request whose first attempt landed can produce, counts as
"exists". Documents and files are paged with a cursor that is
checkpointed after every item; within a page items run concurrently, and
the cursor only advances over the contiguous run of completed items so an
interrupted page never skips an item.

Per-item failures are reported through MigrationLog and skipped. Listing
and setup failures propagate and leave checkpoints in place. stop() is
cooperative: it is checked before every phase, container and checkpointed
item, and surfaces as MigrationCancelledError.
"""

import asyncio
import math
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from appwrite_migration.client import query
from appwrite_migration.client.appwrite_client import AppwriteClient
from appwrite_migration.client.exceptions import (
    APIError,
    ConflictError,
    MigrationCancelledError,
    NotFoundError,
)
from appwrite_migration.config import PerformanceConfig
from appwrite_migration.migration.checkpoint import (
    DOCUMENTS,
    FILES,
    CheckpointManager,
    collection_container,
)
from appwrite_migration.migration.plan import (
    BucketSnapshot,
    CollectionSnapshot,
    FunctionSnapshot,
    MigrationPlan,
    MigrationResource,
    UserSnapshot,
    iter_enabled,
)
from appwrite_migration.migration.transfer import FileTransfer, LocalBufferTransfer
from appwrite_migration.utils.logging import MigrationLog

# Fields Appwrite manages itself; they are never sent back on create
DOCUMENT_SYSTEM_FIELDS = frozenset(
    {
        "$id",
        "$databaseId",
        "$collectionId",
        "$createdAt",
        "$updatedAt",
        "$permissions",
        "$sequence",
        "$tenant",
    }
)

# Hash names accepted by the hashed user import endpoints
SUPPORTED_HASHES = frozenset({"argon2", "bcrypt", "md5", "phpass", "scrypt", "scryptMod", "sha"})

# String attributes whose format selects a dedicated create endpoint
STRING_FORMATS = frozenset({"email", "url", "ip", "enum"})

SCALAR_WITH_DEFAULT = frozenset({"boolean", "email", "url", "ip", "datetime"})


def sanitize_int(value: Any) -> int | None:
    """Coerce an integer attribute constraint, or return None if unusable.

    None, blank strings, "null"/"undefined", booleans and non-finite numbers
    are treated as absent. Finite values are truncated toward zero.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text or text.lower() in ("null", "undefined"):
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            value = float(text)
        except ValueError:
            return None
    if not isinstance(value, float):
        try:
            value = float(value)
        except (TypeError, ValueError):
            return None
    if not math.isfinite(value):
        return None
    return math.trunc(value)


def attribute_type(attribute: dict[str, Any]) -> str:
    """Create-endpoint type for an attribute descriptor (email/url/ip/enum are string formats)."""
    kind = attribute.get("type", "")
    if kind == "string" and attribute.get("format") in STRING_FORMATS:
        return attribute["format"]
    return kind


def attribute_payload(attribute: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """Build the create request for a non-integer, non-relationship attribute.

    Returns:
        Tuple of (create endpoint type, request body)

    Raises:
        ValueError: For attribute types that cannot be recreated
    """
    kind = attribute_type(attribute)
    base = {
        "key": attribute["key"],
        "required": attribute.get("required", False),
        "array": attribute.get("array", False),
    }

    if kind == "string":
        return kind, {
            **base,
            "size": attribute.get("size"),
            "default": attribute.get("default"),
            "encrypt": attribute.get("encrypt"),
        }
    if kind == "float":
        return kind, {
            **base,
            "min": attribute.get("min"),
            "max": attribute.get("max"),
            "default": attribute.get("default"),
        }
    if kind == "enum":
        return kind, {
            **base,
            "elements": attribute.get("elements", []),
            "default": attribute.get("default"),
        }
    if kind in SCALAR_WITH_DEFAULT:
        return kind, {**base, "default": attribute.get("default")}

    raise ValueError(f"Unsupported attribute type: {kind}")


class MigrationStats:
    """Per-kind created/skipped/failed counters for one run."""

    OUTCOMES = ("created", "skipped", "failed")

    def __init__(self):
        self.counts: dict[str, dict[str, int]] = {}

    def record(self, kind: str, outcome: str) -> None:
        bucket = self.counts.setdefault(kind, dict.fromkeys(self.OUTCOMES, 0))
        bucket[outcome] += 1

    def get(self, kind: str, outcome: str) -> int:
        return self.counts.get(kind, {}).get(outcome, 0)

    def total(self, outcome: str) -> int:
        return sum(bucket[outcome] for bucket in self.counts.values())

    def as_dict(self) -> dict[str, dict[str, int]]:
        return {kind: dict(bucket) for kind, bucket in self.counts.items()}


class TransferExecutor:
    """Executes a MigrationPlan against the destination project."""

    def __init__(
        self,
        source: AppwriteClient,
        destination: AppwriteClient,
        checkpoints: CheckpointManager,
        log: MigrationLog | None = None,
        performance: PerformanceConfig | None = None,
        membership_url: str = "http://localhost",
    ):
        """Initialize executor.

        Args:
            source: Source project client
            destination: Destination project client
            checkpoints: Cursor storage for this project pair
            log: User-visible progress/failure stream
            performance: Page sizes, fan-out bound and attribute pacing
            membership_url: Redirect URL for team invitations
        """
        self.source = source
        self.destination = destination
        self.checkpoints = checkpoints
        self.log = log or MigrationLog()
        self.performance = performance or PerformanceConfig()
        self.membership_url = membership_url
        self.stats = MigrationStats()
        self._stopped = False

    def stop(self) -> None:
        """Request a cooperative stop after the in-flight operations."""
        self._stopped = True
        self.log.info("Force stop requested. Stopping after current operation...")

    def reset(self) -> None:
        """Clear a previous stop request so the executor can run again."""
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    def _check_stop(self) -> None:
        if self._stopped:
            raise MigrationCancelledError()

    async def execute(
        self,
        plan: MigrationPlan,
        resume: bool = False,
        file_transfer: FileTransfer | None = None,
    ) -> MigrationStats:
        """Run every enabled phase of the plan.

        Args:
            plan: Plan to execute; disabled nodes are skipped with their subtrees
            resume: Continue document/file paging from saved cursors
            file_transfer: Strategy for file bytes (default: local buffer)

        Returns:
            Counters for this run

        Raises:
            MigrationCancelledError: If stop() was called
        """
        self.stats = MigrationStats()
        options = plan.options
        file_transfer = file_transfer or LocalBufferTransfer(self.source, self.destination)

        self.log.info(
            "Resuming execution phase from last checkpoint..."
            if resume
            else "Starting execution phase..."
        )

        self._check_stop()
        if options.migrate_databases:
            await self.migrate_databases(plan.databases, options.migrate_documents, resume)
        self._check_stop()
        if options.migrate_storage:
            await self.migrate_storage(plan.buckets, options.migrate_files, resume, file_transfer)
        self._check_stop()
        if options.migrate_functions:
            await self.migrate_functions(plan.functions)
        self._check_stop()
        if options.migrate_users:
            await self.migrate_users(plan.users)
        self._check_stop()
        if options.migrate_teams:
            await self.migrate_teams(plan.teams)

        return self.stats

    # Helpers
    async def _lookup(self, call: Awaitable[dict[str, Any]]) -> dict[str, Any] | None:
        """Await a get call; only a 404 means "absent", anything else propagates."""
        try:
            return await call
        except NotFoundError:
            return None

    async def _ensure(
        self,
        kind: str,
        label: str,
        lookup: Callable[[], Awaitable[dict[str, Any]]],
        create: Callable[[], Awaitable[dict[str, Any]]],
    ) -> dict[str, Any]:
        existing = await self._lookup(lookup())
        if existing is not None:
            self.log.info(f"- {label} exists in destination.")
            self.stats.record(kind, "skipped")
            return existing

        try:
            created = await create()
        except ConflictError:
            # A retried create whose first attempt already landed
            existing = await lookup()
            self.log.info(f"- {label} exists in destination.")
            self.stats.record(kind, "skipped")
            return existing
        self.log.info(f"- Created {label}.")
        self.stats.record(kind, "created")
        return created

    async def _fan_out(
        self, items: Iterable[Any], handler: Callable[[Any], Awaitable[None]]
    ) -> None:
        """Run handler over items concurrently, bounded by max_concurrent.

        Items that have not started when stop() is called are not started.
        The first exception is raised once every started item has finished.
        """
        semaphore = asyncio.Semaphore(self.performance.max_concurrent)

        async def run(item: Any) -> None:
            async with semaphore:
                self._check_stop()
                await handler(item)

        results = await asyncio.gather(*(run(item) for item in items), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _paginate(
        self,
        kind: str,
        container_id: str,
        label: str,
        page_size: int,
        resume: bool,
        list_page: Callable[..., Awaitable[list[dict[str, Any]]]],
        handle_item: Callable[[dict[str, Any]], Awaitable[None]],
    ) -> None:
        """Cursor-after paging with a checkpoint after every item."""
        cursor = self.checkpoints.get_cursor(kind, container_id) if resume else None
        if cursor:
            self.log.info(f"    > Resuming {label} from ID: {cursor}")

        while True:
            self._check_stop()
            queries = [query.limit(page_size)]
            if cursor:
                queries.append(query.cursor_after(cursor))

            items = await list_page(*queries)
            if not items:
                break

            completed = [False] * len(items)
            next_index = 0

            async def run(entry: tuple[int, dict[str, Any]]) -> None:
                nonlocal next_index
                index, item = entry
                await handle_item(item)
                completed[index] = True
                while next_index < len(items) and completed[next_index]:
                    self.checkpoints.save_cursor(kind, container_id, items[next_index]["$id"])
                    next_index += 1

            await self._fan_out(list(enumerate(items)), run)
            cursor = items[-1]["$id"]

            if len(items) < page_size:
                break

    # Databases
    async def migrate_databases(
        self, databases: list[MigrationResource], migrate_documents: bool, resume: bool
    ) -> None:
        self.log.info("Migrating Databases...")
        for db in iter_enabled(databases):
            self._check_stop()
            self.log.info(
                f"Processing Database: {db.source_name} -> {db.target_name} ({db.target_id})"
            )
            await self._ensure(
                "databases",
                "database",
                lambda: self.destination.get_database(db.target_id),
                lambda: self.destination.create_database(db.target_id, db.target_name),
            )
            if db.children:
                await self.migrate_collections(db, migrate_documents, resume)

    async def migrate_collections(
        self, db: MigrationResource, migrate_documents: bool, resume: bool
    ) -> None:
        collections = list(db.iter_enabled_children())
        target_ids = {c.source_id: c.target_id for c in db.children}

        for col in collections:
            self._check_stop()
            self.log.info(f"  Processing Collection: {col.source_name} -> {col.target_name}")
            snapshot = col.original_data
            if not isinstance(snapshot, CollectionSnapshot):
                snapshot = CollectionSnapshot()
            await self._ensure(
                "collections",
                "collection",
                lambda: self.destination.get_collection(db.target_id, col.target_id),
                lambda: self.destination.create_collection(
                    db.target_id,
                    col.target_id,
                    col.target_name,
                    permissions=snapshot.permissions,
                    document_security=snapshot.document_security,
                    enabled=snapshot.enabled,
                ),
            )

        for col in collections:
            self._check_stop()
            await self.migrate_attributes(db, col, relationships=False)

        for col in collections:
            self._check_stop()
            await self.migrate_attributes(db, col, relationships=True, target_ids=target_ids)

        for col in collections:
            self._check_stop()
            await self.migrate_indexes(db, col)

        if migrate_documents:
            for col in collections:
                self._check_stop()
                await self.migrate_documents(db, col, resume)

    async def migrate_attributes(
        self,
        db: MigrationResource,
        col: MigrationResource,
        relationships: bool,
        target_ids: dict[str, str] | None = None,
    ) -> None:
        """Create missing attributes of one collection.

        Args:
            db: Parent database node
            col: Collection node
            relationships: Create only relationship attributes (else only the others)
            target_ids: Source -> target collection IDs for relationship targets
        """
        source_attrs = await self.source.list_attributes(db.source_id, col.source_id)
        wanted = [
            attr
            for attr in source_attrs.get("attributes", [])
            if (attr.get("type") == "relationship") == relationships
        ]
        if not wanted:
            return

        dest_attrs = await self.destination.list_attributes(db.target_id, col.target_id)
        existing = {attr["key"] for attr in dest_attrs.get("attributes", [])}

        for attr in wanted:
            self._check_stop()
            key = attr["key"]
            if key in existing:
                self.stats.record("attributes", "skipped")
                continue

            try:
                if relationships:
                    await self._create_relationship(db, col, attr, target_ids or {})
                elif attr.get("type") == "integer":
                    await self._create_integer(db, col, attr)
                else:
                    kind, payload = attribute_payload(attr)
                    await self.destination.create_attribute(
                        db.target_id, col.target_id, kind, payload
                    )
            except Exception as e:
                self.log.error(
                    f"creating attribute {key}", e, collection_id=col.target_id, key=key
                )
                self.stats.record("attributes", "failed")
                continue

            existing.add(key)
            self.stats.record("attributes", "created")
            self.log.info(f"    - Created attribute: {key}")
            if self.performance.attribute_create_delay:
                await asyncio.sleep(self.performance.attribute_create_delay)

    async def _create_integer(
        self, db: MigrationResource, col: MigrationResource, attr: dict[str, Any]
    ) -> None:
        payload = {
            "key": attr["key"],
            "required": attr.get("required", False),
            "min": sanitize_int(attr.get("min")),
            "max": sanitize_int(attr.get("max")),
            "default": sanitize_int(attr.get("default")),
            "array": attr.get("array", False),
        }
        try:
            await self.destination.create_attribute(db.target_id, col.target_id, "integer", payload)
        except APIError as e:
            self.log.warning(
                f"    Strict creation failed for integer attribute '{attr['key']}'. "
                "Retrying without limits/default.",
                key=attr["key"],
                min=payload["min"],
                max=payload["max"],
                default=payload["default"],
                error=str(e),
            )
            relaxed = {
                "key": attr["key"],
                "required": payload["required"],
                "array": payload["array"],
            }
            await self.destination.create_attribute(db.target_id, col.target_id, "integer", relaxed)

    async def _create_relationship(
        self,
        db: MigrationResource,
        col: MigrationResource,
        attr: dict[str, Any],
        target_ids: dict[str, str],
    ) -> None:
        related = attr.get("relatedCollection")
        payload = {
            "relatedCollectionId": target_ids.get(related, related),
            "type": attr.get("relationType"),
            "twoWay": attr.get("twoWay", False),
            "key": attr["key"],
            "twoWayKey": attr.get("twoWayKey"),
            "onDelete": attr.get("onDelete"),
        }
        await self.destination.create_attribute(
            db.target_id, col.target_id, "relationship", payload
        )

    async def migrate_indexes(self, db: MigrationResource, col: MigrationResource) -> None:
        source_indexes = await self.source.list_indexes(db.source_id, col.source_id)
        dest_indexes = await self.destination.list_indexes(db.target_id, col.target_id)
        existing = {idx["key"] for idx in dest_indexes.get("indexes", [])}

        for idx in source_indexes.get("indexes", []):
            self._check_stop()
            if idx["key"] in existing:
                self.stats.record("indexes", "skipped")
                continue
            try:
                await self.destination.create_index(
                    db.target_id,
                    col.target_id,
                    idx["key"],
                    idx["type"],
                    idx.get("attributes", []),
                    idx.get("orders") or None,
                )
            except Exception as e:
                self.log.error(f"creating index {idx['key']}", e, collection_id=col.target_id)
                self.stats.record("indexes", "failed")
                continue
            self.stats.record("indexes", "created")
            self.log.info(f"    - Created index: {idx['key']}")

    async def migrate_documents(
        self, db: MigrationResource, col: MigrationResource, resume: bool
    ) -> None:
        self.log.info("    Migrating Documents...")
        before = self.stats.get("documents", "created")

        async def list_page(*queries: str) -> list[dict[str, Any]]:
            response = await self.source.list_documents(db.source_id, col.source_id, *queries)
            return response.get("documents", [])

        async def handle(doc: dict[str, Any]) -> None:
            doc_id = doc["$id"]
            try:
                existing = await self._lookup(
                    self.destination.get_document(db.target_id, col.target_id, doc_id)
                )
                if existing is not None:
                    self.stats.record("documents", "skipped")
                    return
                data = {k: v for k, v in doc.items() if k not in DOCUMENT_SYSTEM_FIELDS}
                try:
                    await self.destination.create_document(
                        db.target_id, col.target_id, doc_id, data, doc.get("$permissions")
                    )
                except ConflictError:
                    self.stats.record("documents", "skipped")
                    return
                self.stats.record("documents", "created")
            except Exception as e:
                self.log.error(f"creating document {doc_id}", e, collection_id=col.target_id)
                self.stats.record("documents", "failed")

        await self._paginate(
            DOCUMENTS,
            collection_container(db.source_id, col.source_id),
            "documents",
            self.performance.document_page_size,
            resume,
            list_page,
            handle,
        )

        count = self.stats.get("documents", "created") - before
        if count > 0:
            self.log.info(f"    - Migrated {count} documents.")

    # Storage
    async def migrate_storage(
        self,
        buckets: list[MigrationResource],
        migrate_files: bool,
        resume: bool,
        file_transfer: FileTransfer,
    ) -> None:
        self.log.info("Migrating Storage...")
        for res in iter_enabled(buckets):
            self._check_stop()
            self.log.info(f"Processing Bucket: {res.source_name} -> {res.target_name}")
            snapshot = res.original_data
            if not isinstance(snapshot, BucketSnapshot):
                snapshot = BucketSnapshot()
            await self._ensure(
                "buckets",
                "bucket",
                lambda: self.destination.get_bucket(res.target_id),
                lambda: self.destination.create_bucket(
                    res.target_id,
                    res.target_name,
                    permissions=snapshot.permissions,
                    fileSecurity=snapshot.file_security,
                    enabled=snapshot.enabled,
                    maximumFileSize=snapshot.maximum_file_size,
                    allowedFileExtensions=snapshot.allowed_file_extensions,
                    compression=snapshot.compression,
                    encryption=snapshot.encryption,
                    antivirus=snapshot.antivirus,
                ),
            )
            if migrate_files:
                await self.migrate_files(res, resume, file_transfer)

    async def migrate_files(
        self, bucket: MigrationResource, resume: bool, file_transfer: FileTransfer
    ) -> None:
        before = self.stats.get("files", "created")

        async def list_page(*queries: str) -> list[dict[str, Any]]:
            response = await self.source.list_files(bucket.source_id, *queries)
            return response.get("files", [])

        async def handle(file: dict[str, Any]) -> None:
            file_id = file["$id"]
            try:
                existing = await self._lookup(self.destination.get_file(bucket.target_id, file_id))
                if existing is not None:
                    self.stats.record("files", "skipped")
                    return
                await file_transfer.transfer(bucket.source_id, bucket.target_id, file)
                self.stats.record("files", "created")
            except Exception as e:
                self.log.error(f"migrating file {file_id}", e, bucket_id=bucket.target_id)
                self.stats.record("files", "failed")

        await self._paginate(
            FILES,
            bucket.source_id,
            "files",
            self.performance.file_page_size,
            resume,
            list_page,
            handle,
        )

        count = self.stats.get("files", "created") - before
        if count > 0:
            self.log.info(f"  - Migrated {count} files.")

    # Functions
    async def migrate_functions(self, functions: list[MigrationResource]) -> None:
        self.log.info("Migrating Functions...")
        await self._fan_out(list(iter_enabled(functions)), self._migrate_function)

    async def _migrate_function(self, res: MigrationResource) -> None:
        self.log.info(f"Processing Function: {res.source_name} -> {res.target_name}")
        snapshot = res.original_data
        if not isinstance(snapshot, FunctionSnapshot):
            self.log.error(
                f"migrating function {res.source_name}", "plan node has no function configuration"
            )
            self.stats.record("functions", "failed")
            return

        dest_function = await self._ensure(
            "functions",
            "function",
            lambda: self.destination.get_function(res.target_id),
            lambda: self.destination.create_function(
                res.target_id, res.target_name, **snapshot.create_settings()
            ),
        )

        await self.migrate_variables(res.source_id, res.target_id)

        active = dest_function.get("deployment") or dest_function.get("deploymentId")
        if snapshot.deployment and not active:
            try:
                archive = await self.source.download_deployment(res.source_id, snapshot.deployment)
                await self.destination.upload_deployment(
                    res.target_id,
                    archive,
                    activate=True,
                    entrypoint=snapshot.entrypoint,
                    commands=snapshot.commands,
                )
            except Exception as e:
                self.log.error(f"migrating deployment for {res.source_name}", e)
                self.stats.record("deployments", "failed")
                return
            self.stats.record("deployments", "created")
            self.log.info("- Migrated active deployment.")
        elif snapshot.deployment:
            self.stats.record("deployments", "skipped")

    async def migrate_variables(self, source_function_id: str, target_function_id: str) -> None:
        source_vars = await self.source.list_variables(source_function_id)
        dest_vars = await self.destination.list_variables(target_function_id)
        existing_ids = {v["$id"] for v in dest_vars.get("variables", [])}
        existing_keys = {v["key"] for v in dest_vars.get("variables", [])}

        for var in source_vars.get("variables", []):
            self._check_stop()
            if var["$id"] in existing_ids or var["key"] in existing_keys:
                self.stats.record("variables", "skipped")
                continue
            try:
                await self.destination.create_variable(
                    target_function_id, var["key"], var.get("value", "")
                )
            except ConflictError:
                self.stats.record("variables", "skipped")
                continue
            except Exception as e:
                self.log.error(f"creating variable {var['key']}", e, function_id=target_function_id)
                self.stats.record("variables", "failed")
                continue
            existing_keys.add(var["key"])
            self.stats.record("variables", "created")

    # Users
    async def migrate_users(self, users: list[MigrationResource]) -> None:
        self.log.info("Migrating Users...")
        await self._fan_out(list(iter_enabled(users)), self._migrate_user)

    async def _migrate_user(self, res: MigrationResource) -> None:
        user = res.original_data
        if not isinstance(user, UserSnapshot):
            user = UserSnapshot()
        label = user.email or res.source_name

        try:
            if await self._lookup(self.destination.get_user(res.target_id)) is not None:
                self.stats.record("users", "skipped")
                return

            hashed = user.hash_type in SUPPORTED_HASHES and bool(user.email)
            password_hash, hash_options = user.password_hash, user.hash_options
            if hashed and not password_hash:
                # Plans loaded from a file carry no hashes
                current = UserSnapshot.from_api(await self.source.get_user(res.source_id))
                password_hash, hash_options = current.password_hash, current.hash_options

            if hashed and password_hash:
                await self.destination.create_hashed_user(
                    res.target_id,
                    user.hash_type,
                    user.email,
                    password_hash,
                    name=user.name,
                    hash_options=hash_options,
                )
            else:
                await self.destination.create_user(
                    res.target_id, email=user.email, phone=user.phone, name=user.name
                )
                self.log.warning(
                    f"  - Created user {label} (Password reset required)",
                    user_id=res.target_id,
                    hash_type=user.hash_type,
                )

            # Only fields that differ from a new account's defaults are reapplied
            if user.status is False:
                await self.destination.update_user_status(res.target_id, False)
            if user.email_verification:
                await self.destination.update_email_verification(res.target_id, True)
            if user.phone_verification:
                await self.destination.update_phone_verification(res.target_id, True)
            if user.labels:
                await self.destination.update_labels(res.target_id, user.labels)
            if user.prefs:
                await self.destination.update_prefs(res.target_id, user.prefs)

        except ConflictError:
            self.stats.record("users", "skipped")
            return
        except Exception as e:
            self.log.error(f"creating user {label}", e, user_id=res.target_id)
            self.stats.record("users", "failed")
            return

        self.stats.record("users", "created")

    # Teams
    async def migrate_teams(self, teams: list[MigrationResource]) -> None:
        self.log.info("Migrating Teams...")
        await self._fan_out(list(iter_enabled(teams)), self._migrate_team)

    async def _list_memberships(self, client: AppwriteClient, team_id: str) -> list[dict[str, Any]]:
        page_size = 100
        memberships: list[dict[str, Any]] = []
        cursor = None
        while True:
            queries = [query.limit(page_size)]
            if cursor:
                queries.append(query.cursor_after(cursor))
            page = (await client.list_memberships(team_id, *queries)).get("memberships", [])
            memberships.extend(page)
            if len(page) < page_size:
                return memberships
            cursor = page[-1]["$id"]

    async def _migrate_team(self, res: MigrationResource) -> None:
        await self._ensure(
            "teams",
            f"team: {res.target_name}",
            lambda: self.destination.get_team(res.target_id),
            lambda: self.destination.create_team(res.target_id, res.target_name),
        )

        members = await self._list_memberships(self.source, res.source_id)
        current = await self._list_memberships(self.destination, res.target_id)
        present = {m.get("userEmail") for m in current} | {m.get("userId") for m in current}
        present.discard(None)

        for member in members:
            self._check_stop()
            email = member.get("userEmail")
            if email in present or member.get("userId") in present:
                self.stats.record("memberships", "skipped")
                continue
            try:
                await self.destination.create_membership(
                    res.target_id,
                    member.get("roles", []),
                    self.membership_url,
                    email=email,
                    name=member.get("userName") or None,
                )
            except Exception as e:
                self.log.error(f"adding member {email} to team {res.target_name}", e)
                self.stats.record("memberships", "failed")
                continue
            self.stats.record("memberships", "created")
            self.log.info(f"  - Added member {email}")
