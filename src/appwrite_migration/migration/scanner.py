"""
Source project scanner.

Builds a MigrationPlan by listing the first page of every enabled resource
category. The scan is read-only and all-or-nothing: a listing error
propagates and no partial plan is returned.

Known limitation: only the first page (100 resources) of each top-level
category, and of each database's collections, is scanned. A warning is
logged when a page comes back full.
"""

from typing import Any

from appwrite_migration.client import query
from appwrite_migration.client.appwrite_client import AppwriteClient
from appwrite_migration.config import MigrationOptions
from appwrite_migration.migration.plan import (
    BucketSnapshot,
    CollectionSnapshot,
    DatabaseSnapshot,
    FunctionSnapshot,
    MigrationPlan,
    MigrationResource,
    ResourceKind,
    TeamSnapshot,
    UserSnapshot,
)
from appwrite_migration.utils.logging import MigrationLog

SCAN_PAGE_SIZE = 100


class ResourceScanner:
    """Enumerates a source project into an editable plan."""

    def __init__(
        self,
        source: AppwriteClient,
        log: MigrationLog | None = None,
        page_size: int = SCAN_PAGE_SIZE,
    ):
        self.source = source
        self.log = log or MigrationLog()
        self.page_size = page_size

    def _items(self, response: dict[str, Any], key: str, category: str) -> list[dict[str, Any]]:
        items = response.get(key, [])
        if len(items) >= self.page_size:
            self.log.warning(
                f"Only the first {self.page_size} {category} were scanned; "
                "the rest are not part of this plan.",
                category=category,
                page_size=self.page_size,
            )
        return items

    async def scan(self, options: MigrationOptions) -> MigrationPlan:
        """Scan the source project.

        Args:
            options: Category flags; disabled categories are not listed

        Returns:
            Plan with every node enabled and targets mirroring sources
        """
        self.log.info("Scanning source project to build migration plan...")
        plan = MigrationPlan(options=options)
        first_page = query.limit(self.page_size)

        if options.migrate_databases:
            response = await self.source.list_databases(first_page)
            for db in self._items(response, "databases", "databases"):
                resource = MigrationResource.from_api(
                    ResourceKind.DATABASE, db, DatabaseSnapshot.from_api(db)
                )
                collections = await self.source.list_collections(db["$id"], first_page)
                for col in self._items(collections, "collections", f"collections of {db['$id']}"):
                    resource.children.append(
                        MigrationResource.from_api(
                            ResourceKind.COLLECTION, col, CollectionSnapshot.from_api(col)
                        )
                    )
                plan.databases.append(resource)

        if options.migrate_storage:
            response = await self.source.list_buckets(first_page)
            for bucket in self._items(response, "buckets", "buckets"):
                plan.buckets.append(
                    MigrationResource.from_api(
                        ResourceKind.BUCKET, bucket, BucketSnapshot.from_api(bucket)
                    )
                )

        if options.migrate_functions:
            response = await self.source.list_functions(first_page)
            for func in self._items(response, "functions", "functions"):
                plan.functions.append(
                    MigrationResource.from_api(
                        ResourceKind.FUNCTION, func, FunctionSnapshot.from_api(func)
                    )
                )

        if options.migrate_teams:
            response = await self.source.list_teams(first_page)
            for team in self._items(response, "teams", "teams"):
                plan.teams.append(
                    MigrationResource.from_api(ResourceKind.TEAM, team, TeamSnapshot.from_api(team))
                )

        if options.migrate_users:
            response = await self.source.list_users(first_page)
            for user in self._items(response, "users", "users"):
                display_name = user.get("name") or user.get("email") or user["$id"]
                plan.users.append(
                    MigrationResource.from_api(
                        ResourceKind.USER, user, UserSnapshot.from_api(user), name=display_name
                    )
                )

        self.log.info("Scan complete. Please review the plan.")
        return plan
