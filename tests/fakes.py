"""In-memory Appwrite project used by engine tests.

FakeProject implements the subset of AppwriteClient the engine calls,
keeps resources in dictionaries, and records every call in ``calls`` as
``(method_name, args)`` so tests can assert ordering and call counts.
"""

import json
from typing import Any

from appwrite_migration.client.exceptions import APIError, ConflictError, NotFoundError


def _not_found(kind: str, resource_id: str) -> NotFoundError:
    return NotFoundError(f"{kind} {resource_id} not found", status_code=404)


def _page(items: list[dict[str, Any]], queries: tuple[str, ...]) -> list[dict[str, Any]]:
    limit = 25
    cursor = None
    descending = False
    for raw in queries:
        q = json.loads(raw)
        if q["method"] == "limit":
            limit = q["values"][0]
        elif q["method"] == "cursorAfter":
            cursor = q["values"][0]
        elif q["method"] == "orderDesc":
            descending = True

    ordered = list(reversed(items)) if descending else list(items)
    if cursor is not None:
        ids = [item["$id"] for item in ordered]
        ordered = ordered[ids.index(cursor) + 1 :]
    return ordered[:limit]


class FakeProject:
    """A single fake Appwrite project."""

    def __init__(self, project_id: str = "project"):
        self.project_id = project_id
        self.calls: list[tuple[str, tuple]] = []

        self.databases: dict[str, dict] = {}
        self.collections: dict[str, dict[str, dict]] = {}
        self.attributes: dict[tuple[str, str], list[dict]] = {}
        self.indexes: dict[tuple[str, str], list[dict]] = {}
        self.documents: dict[tuple[str, str], dict[str, dict]] = {}
        self.buckets: dict[str, dict] = {}
        self.files: dict[str, dict[str, dict]] = {}
        self.file_content: dict[tuple[str, str], bytes] = {}
        self.functions: dict[str, dict] = {}
        self.variables: dict[str, list[dict]] = {}
        self.deployments: dict[str, list[dict]] = {}
        self.deployment_archives: dict[tuple[str, str], bytes] = {}
        self.executions: list[tuple[str, str]] = []
        self.users: dict[str, dict] = {}
        self.teams: dict[str, dict] = {}
        self.memberships: dict[str, list[dict]] = {}

        # Hooks
        self.attribute_validator = None  # (type, payload) -> None or raises
        self.on_document_created = None  # (document_id) -> None
        self.deployment_status = "ready"
        self.execution_handler = None  # (function_id, body) -> execution dict
        self.fail_create_function = None  # exception raised by create_function

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    # Seeding helpers
    def add_database(self, database_id: str, name: str | None = None) -> None:
        self.databases[database_id] = {"$id": database_id, "name": name or database_id}
        self.collections.setdefault(database_id, {})

    def add_collection(
        self,
        database_id: str,
        collection_id: str,
        name: str | None = None,
        attributes: list[dict] | None = None,
        indexes: list[dict] | None = None,
        permissions: list[str] | None = None,
    ) -> None:
        self.collections.setdefault(database_id, {})[collection_id] = {
            "$id": collection_id,
            "name": name or collection_id,
            "$permissions": permissions or [],
            "documentSecurity": False,
            "enabled": True,
        }
        self.attributes[(database_id, collection_id)] = list(attributes or [])
        self.indexes[(database_id, collection_id)] = list(indexes or [])
        self.documents[(database_id, collection_id)] = {}

    def add_documents(self, database_id: str, collection_id: str, count: int) -> None:
        docs = self.documents[(database_id, collection_id)]
        for i in range(count):
            doc_id = f"doc_{i:04d}"
            docs[doc_id] = {
                "$id": doc_id,
                "$databaseId": database_id,
                "$collectionId": collection_id,
                "$createdAt": "2024-01-01T00:00:00.000+00:00",
                "$updatedAt": "2024-01-01T00:00:00.000+00:00",
                "$permissions": [f'read("user:{i}")'],
                "$sequence": i + 1,
                "title": f"Post {i}",
                "authorId": f"user_{i % 7}",
            }

    def add_bucket(self, bucket_id: str, name: str | None = None, **settings: Any) -> None:
        self.buckets[bucket_id] = {
            "$id": bucket_id,
            "name": name or bucket_id,
            "$permissions": settings.pop("permissions", []),
            "fileSecurity": False,
            "enabled": True,
            "maximumFileSize": 30000000,
            "allowedFileExtensions": [],
            "compression": "none",
            "encryption": True,
            "antivirus": True,
            **settings,
        }
        self.files.setdefault(bucket_id, {})

    def add_file(
        self,
        bucket_id: str,
        file_id: str,
        content: bytes,
        permissions: list[str] | None = None,
    ) -> None:
        self.files[bucket_id][file_id] = {
            "$id": file_id,
            "bucketId": bucket_id,
            "name": f"{file_id}.bin",
            "mimeType": "application/octet-stream",
            "sizeOriginal": len(content),
            "$permissions": permissions or [],
        }
        self.file_content[(bucket_id, file_id)] = content

    # Databases
    async def list_databases(self, *queries: str) -> dict:
        self._record("list_databases", *queries)
        items = _page(list(self.databases.values()), queries)
        return {"total": len(self.databases), "databases": items}

    async def get_database(self, database_id: str) -> dict:
        self._record("get_database", database_id)
        if database_id not in self.databases:
            raise _not_found("database", database_id)
        return self.databases[database_id]

    async def create_database(self, database_id: str, name: str) -> dict:
        self._record("create_database", database_id, name)
        self.add_database(database_id, name)
        return self.databases[database_id]

    async def list_collections(self, database_id: str, *queries: str) -> dict:
        self._record("list_collections", database_id, *queries)
        items = list(self.collections.get(database_id, {}).values())
        return {"total": len(items), "collections": _page(items, queries)}

    async def get_collection(self, database_id: str, collection_id: str) -> dict:
        self._record("get_collection", database_id, collection_id)
        try:
            return self.collections[database_id][collection_id]
        except KeyError:
            raise _not_found("collection", collection_id) from None

    async def create_collection(
        self,
        database_id: str,
        collection_id: str,
        name: str,
        permissions: list[str] | None = None,
        document_security: bool | None = None,
        enabled: bool | None = None,
    ) -> dict:
        self._record("create_collection", database_id, collection_id, name, permissions)
        if database_id not in self.databases:
            raise _not_found("database", database_id)
        self.add_collection(database_id, collection_id, name, permissions=permissions)
        return self.collections[database_id][collection_id]

    async def list_attributes(self, database_id: str, collection_id: str) -> dict:
        self._record("list_attributes", database_id, collection_id)
        if (database_id, collection_id) not in self.attributes:
            raise _not_found("collection", collection_id)
        items = self.attributes[(database_id, collection_id)]
        return {"total": len(items), "attributes": list(items)}

    async def create_attribute(
        self, database_id: str, collection_id: str, attribute_type: str, payload: dict
    ) -> dict:
        self._record("create_attribute", database_id, collection_id, attribute_type, dict(payload))
        if self.attribute_validator is not None:
            self.attribute_validator(attribute_type, payload)
        if attribute_type == "relationship":
            related = payload["relatedCollectionId"]
            if related not in self.collections.get(database_id, {}):
                raise APIError("Related collection not found", status_code=404)
        attribute = {"type": attribute_type, "status": "available", **payload}
        self.attributes[(database_id, collection_id)].append(attribute)
        return attribute

    async def list_indexes(self, database_id: str, collection_id: str) -> dict:
        self._record("list_indexes", database_id, collection_id)
        items = self.indexes[(database_id, collection_id)]
        return {"total": len(items), "indexes": list(items)}

    async def create_index(
        self,
        database_id: str,
        collection_id: str,
        key: str,
        index_type: str,
        attributes: list[str],
        orders: list[str] | None = None,
    ) -> dict:
        self._record("create_index", database_id, collection_id, key)
        index = {"key": key, "type": index_type, "attributes": attributes, "orders": orders}
        self.indexes[(database_id, collection_id)].append(index)
        return index

    # Documents
    async def list_documents(self, database_id: str, collection_id: str, *queries: str) -> dict:
        self._record("list_documents", database_id, collection_id, *queries)
        items = list(self.documents[(database_id, collection_id)].values())
        return {"total": len(items), "documents": _page(items, queries)}

    async def get_document(self, database_id: str, collection_id: str, document_id: str) -> dict:
        self._record("get_document", database_id, collection_id, document_id)
        try:
            return self.documents[(database_id, collection_id)][document_id]
        except KeyError:
            raise _not_found("document", document_id) from None

    async def create_document(
        self,
        database_id: str,
        collection_id: str,
        document_id: str,
        data: dict,
        permissions: list[str] | None = None,
    ) -> dict:
        self._record("create_document", database_id, collection_id, document_id, dict(data))
        docs = self.documents[(database_id, collection_id)]
        if document_id in docs:
            raise ConflictError("Document already exists", status_code=409)
        docs[document_id] = {"$id": document_id, "$permissions": permissions or [], **data}
        if self.on_document_created is not None:
            self.on_document_created(document_id)
        return docs[document_id]

    # Storage
    async def list_buckets(self, *queries: str) -> dict:
        self._record("list_buckets", *queries)
        items = list(self.buckets.values())
        return {"total": len(items), "buckets": _page(items, queries)}

    async def get_bucket(self, bucket_id: str) -> dict:
        self._record("get_bucket", bucket_id)
        if bucket_id not in self.buckets:
            raise _not_found("bucket", bucket_id)
        return self.buckets[bucket_id]

    async def create_bucket(self, bucket_id: str, name: str, **settings: Any) -> dict:
        self._record("create_bucket", bucket_id, name, settings)
        self.add_bucket(bucket_id, name, **settings)
        return self.buckets[bucket_id]

    async def list_files(self, bucket_id: str, *queries: str) -> dict:
        self._record("list_files", bucket_id, *queries)
        items = list(self.files[bucket_id].values())
        return {"total": len(items), "files": _page(items, queries)}

    async def get_file(self, bucket_id: str, file_id: str) -> dict:
        self._record("get_file", bucket_id, file_id)
        try:
            return self.files[bucket_id][file_id]
        except KeyError:
            raise _not_found("file", file_id) from None

    async def download_file(self, bucket_id: str, file_id: str) -> tuple[bytes, str | None]:
        self._record("download_file", bucket_id, file_id)
        if (bucket_id, file_id) not in self.file_content:
            raise _not_found("file", file_id)
        return self.file_content[(bucket_id, file_id)], "application/octet-stream"

    async def upload_file(
        self,
        bucket_id: str,
        file_id: str,
        filename: str,
        content: bytes,
        mime_type: str | None = None,
        permissions: list[str] | None = None,
    ) -> dict:
        self._record("upload_file", bucket_id, file_id)
        if bucket_id not in self.buckets:
            raise _not_found("bucket", bucket_id)
        self.add_file(bucket_id, file_id, content, permissions)
        return self.files[bucket_id][file_id]

    # Functions
    async def list_functions(self, *queries: str) -> dict:
        self._record("list_functions", *queries)
        items = list(self.functions.values())
        return {"total": len(items), "functions": _page(items, queries)}

    async def get_function(self, function_id: str) -> dict:
        self._record("get_function", function_id)
        if function_id not in self.functions:
            raise _not_found("function", function_id)
        return self.functions[function_id]

    async def create_function(self, function_id: str, name: str, **settings: Any) -> dict:
        self._record("create_function", function_id, name, settings)
        if self.fail_create_function is not None:
            raise self.fail_create_function
        self.functions[function_id] = {
            "$id": function_id,
            "name": name,
            "deployment": "",
            **settings,
        }
        self.variables.setdefault(function_id, [])
        self.deployments.setdefault(function_id, [])
        return self.functions[function_id]

    async def delete_function(self, function_id: str) -> dict:
        self._record("delete_function", function_id)
        if function_id not in self.functions:
            raise _not_found("function", function_id)
        del self.functions[function_id]
        return {}

    async def list_variables(self, function_id: str) -> dict:
        self._record("list_variables", function_id)
        items = self.variables.get(function_id, [])
        return {"total": len(items), "variables": list(items)}

    async def create_variable(self, function_id: str, key: str, value: str) -> dict:
        self._record("create_variable", function_id, key)
        variable = {"$id": f"var_{key}", "key": key, "value": value}
        self.variables.setdefault(function_id, []).append(variable)
        return variable

    async def list_deployments(self, function_id: str, *queries: str) -> dict:
        self._record("list_deployments", function_id, *queries)
        items = self.deployments.get(function_id, [])
        return {"total": len(items), "deployments": _page(items, queries)}

    async def download_deployment(self, function_id: str, deployment_id: str) -> bytes:
        self._record("download_deployment", function_id, deployment_id)
        try:
            return self.deployment_archives[(function_id, deployment_id)]
        except KeyError:
            raise _not_found("deployment", deployment_id) from None

    async def upload_deployment(
        self,
        function_id: str,
        archive: bytes,
        activate: bool = True,
        entrypoint: str | None = None,
        commands: str | None = None,
    ) -> dict:
        self._record("upload_deployment", function_id, activate, entrypoint, commands)
        deployment_id = f"dep_{len(self.deployments.get(function_id, [])) + 1}"
        deployment = {"$id": deployment_id, "status": self.deployment_status}
        self.deployments.setdefault(function_id, []).append(deployment)
        self.deployment_archives[(function_id, deployment_id)] = archive
        if activate and function_id in self.functions:
            self.functions[function_id]["deployment"] = deployment_id
        return deployment

    async def create_execution(self, function_id: str, body: str) -> dict:
        self._record("create_execution", function_id)
        self.executions.append((function_id, body))
        if self.execution_handler is not None:
            return self.execution_handler(function_id, body)
        return {"status": "completed", "responseBody": json.dumps({"success": True})}

    # Users
    async def list_users(self, *queries: str) -> dict:
        self._record("list_users", *queries)
        items = list(self.users.values())
        return {"total": len(items), "users": _page(items, queries)}

    async def get_user(self, user_id: str) -> dict:
        self._record("get_user", user_id)
        if user_id not in self.users:
            raise _not_found("user", user_id)
        return self.users[user_id]

    async def create_user(
        self,
        user_id: str,
        email: str | None = None,
        phone: str | None = None,
        name: str | None = None,
    ) -> dict:
        self._record("create_user", user_id, email)
        self.users[user_id] = {"$id": user_id, "email": email, "phone": phone, "name": name}
        return self.users[user_id]

    async def create_hashed_user(
        self,
        user_id: str,
        hash_type: str,
        email: str,
        password_hash: str,
        name: str | None = None,
        hash_options: dict | None = None,
    ) -> dict:
        self._record("create_hashed_user", user_id, hash_type)
        self.users[user_id] = {
            "$id": user_id,
            "email": email,
            "name": name,
            "password": password_hash,
            "hash": hash_type,
        }
        return self.users[user_id]

    async def update_user_status(self, user_id: str, status: bool) -> dict:
        self._record("update_user_status", user_id, status)
        self.users[user_id]["status"] = status
        return self.users[user_id]

    async def update_email_verification(self, user_id: str, verified: bool) -> dict:
        self._record("update_email_verification", user_id, verified)
        self.users[user_id]["emailVerification"] = verified
        return self.users[user_id]

    async def update_phone_verification(self, user_id: str, verified: bool) -> dict:
        self._record("update_phone_verification", user_id, verified)
        self.users[user_id]["phoneVerification"] = verified
        return self.users[user_id]

    async def update_labels(self, user_id: str, labels: list[str]) -> dict:
        self._record("update_labels", user_id, labels)
        self.users[user_id]["labels"] = labels
        return self.users[user_id]

    async def update_prefs(self, user_id: str, prefs: dict) -> dict:
        self._record("update_prefs", user_id, prefs)
        self.users[user_id]["prefs"] = prefs
        return self.users[user_id]

    # Teams
    async def list_teams(self, *queries: str) -> dict:
        self._record("list_teams", *queries)
        items = list(self.teams.values())
        return {"total": len(items), "teams": _page(items, queries)}

    async def get_team(self, team_id: str) -> dict:
        self._record("get_team", team_id)
        if team_id not in self.teams:
            raise _not_found("team", team_id)
        return self.teams[team_id]

    async def create_team(self, team_id: str, name: str, roles: list[str] | None = None) -> dict:
        self._record("create_team", team_id, name)
        self.teams[team_id] = {"$id": team_id, "name": name, "total": 0}
        self.memberships.setdefault(team_id, [])
        return self.teams[team_id]

    async def list_memberships(self, team_id: str, *queries: str) -> dict:
        self._record("list_memberships", team_id, *queries)
        items = self.memberships.get(team_id, [])
        return {"total": len(items), "memberships": _page(items, queries)}

    async def create_membership(
        self,
        team_id: str,
        roles: list[str],
        url: str,
        email: str | None = None,
        name: str | None = None,
    ) -> dict:
        self._record("create_membership", team_id, email, tuple(roles))
        if not email:
            raise APIError("Email is required", status_code=400)
        membership = {
            "$id": f"m_{email}",
            "userEmail": email,
            "userName": name,
            "roles": roles,
        }
        self.memberships.setdefault(team_id, []).append(membership)
        return membership

    async def close(self) -> None:
        self._record("close")
