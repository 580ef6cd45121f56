"""Appwrite project client.

This client wraps the Appwrite REST API for one project with the calls the
migration engine needs: list/get/create for every resource kind, binary
downloads, and raw multipart uploads for files and deployments.

The SDK's chunked upload helper is deliberately not mirrored here: uploads
are a single ``multipart/form-data`` POST carrying ``fileId`` (or ``code``)
and indexed ``permissions[i]`` fields.
"""

from typing import Any

import httpx

from appwrite_migration.client import query
from appwrite_migration.client.base_client import BaseAPIClient
from appwrite_migration.config import PerformanceConfig, ProjectConfig
from appwrite_migration.utils.logging import get_logger
from appwrite_migration.utils.retry import retry_api_call

logger = get_logger(__name__)

# Attribute types Appwrite creates through /attributes/<type>
ATTRIBUTE_TYPES = (
    "string",
    "integer",
    "float",
    "boolean",
    "email",
    "url",
    "ip",
    "datetime",
    "enum",
    "relationship",
)

# User hash schemes with a dedicated import endpoint
HASHED_USER_ENDPOINTS = {
    "argon2": "users/argon2",
    "bcrypt": "users/bcrypt",
    "md5": "users/md5",
    "phpass": "users/phpass",
    "sha": "users/sha",
    "scrypt": "users/scrypt",
    "scryptMod": "users/scrypt-modified",
}


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None so Appwrite applies its own defaults."""
    return {key: value for key, value in data.items() if value is not None}


def permission_fields(permissions: list[str] | None) -> dict[str, str]:
    """Encode a permission list as indexed multipart fields."""
    return {f"permissions[{i}]": p for i, p in enumerate(permissions or [])}


class AppwriteClient(BaseAPIClient):
    """Client for one Appwrite project (source or destination)."""

    def __init__(
        self,
        config: ProjectConfig,
        performance: PerformanceConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the project client.

        Args:
            config: Project connection settings
            performance: Rate limit and pool settings
            transport: Optional custom httpx transport
        """
        performance = performance or PerformanceConfig()
        super().__init__(
            endpoint=config.endpoint,
            project_id=config.project_id,
            api_key=config.api_key,
            verify_ssl=config.verify_ssl,
            timeout=config.timeout,
            rate_limit=performance.rate_limit,
            max_connections=performance.http_max_connections,
            max_keepalive_connections=performance.http_max_keepalive_connections,
            transport=transport,
        )
        self.config = config

    # Databases
    @retry_api_call
    async def list_databases(self, *queries: str) -> dict[str, Any]:
        return await self.get("databases", params=query.as_params(*queries))

    @retry_api_call
    async def get_database(self, database_id: str) -> dict[str, Any]:
        return await self.get(f"databases/{database_id}")

    @retry_api_call
    async def create_database(self, database_id: str, name: str) -> dict[str, Any]:
        result = await self.post("databases", {"databaseId": database_id, "name": name})
        logger.info("resource_created", resource_type="database", resource_id=database_id)
        return result

    # Collections
    @retry_api_call
    async def list_collections(self, database_id: str, *queries: str) -> dict[str, Any]:
        return await self.get(
            f"databases/{database_id}/collections", params=query.as_params(*queries)
        )

    @retry_api_call
    async def get_collection(self, database_id: str, collection_id: str) -> dict[str, Any]:
        return await self.get(f"databases/{database_id}/collections/{collection_id}")

    @retry_api_call
    async def create_collection(
        self,
        database_id: str,
        collection_id: str,
        name: str,
        permissions: list[str] | None = None,
        document_security: bool | None = None,
        enabled: bool | None = None,
    ) -> dict[str, Any]:
        result = await self.post(
            f"databases/{database_id}/collections",
            _compact(
                {
                    "collectionId": collection_id,
                    "name": name,
                    "permissions": permissions,
                    "documentSecurity": document_security,
                    "enabled": enabled,
                }
            ),
        )
        logger.info(
            "resource_created",
            resource_type="collection",
            database_id=database_id,
            resource_id=collection_id,
        )
        return result

    # Attributes & indexes
    @retry_api_call
    async def list_attributes(self, database_id: str, collection_id: str) -> dict[str, Any]:
        return await self.get(
            f"databases/{database_id}/collections/{collection_id}/attributes",
            params=query.as_params(query.limit(5000)),
        )

    async def create_attribute(
        self,
        database_id: str,
        collection_id: str,
        attribute_type: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        """Create an attribute of ``attribute_type`` (not retried: failures are data errors).

        Args:
            database_id: Database ID
            collection_id: Collection ID
            attribute_type: One of ATTRIBUTE_TYPES
            payload: Request body; None values are dropped

        Returns:
            Created attribute descriptor
        """
        if attribute_type not in ATTRIBUTE_TYPES:
            raise ValueError(f"Unsupported attribute type: {attribute_type}")
        return await self.post(
            f"databases/{database_id}/collections/{collection_id}/attributes/{attribute_type}",
            _compact(payload),
        )

    @retry_api_call
    async def list_indexes(self, database_id: str, collection_id: str) -> dict[str, Any]:
        return await self.get(
            f"databases/{database_id}/collections/{collection_id}/indexes",
            params=query.as_params(query.limit(5000)),
        )

    async def create_index(
        self,
        database_id: str,
        collection_id: str,
        key: str,
        index_type: str,
        attributes: list[str],
        orders: list[str] | None = None,
    ) -> dict[str, Any]:
        return await self.post(
            f"databases/{database_id}/collections/{collection_id}/indexes",
            _compact({"key": key, "type": index_type, "attributes": attributes, "orders": orders}),
        )

    # Documents
    @retry_api_call
    async def list_documents(
        self, database_id: str, collection_id: str, *queries: str
    ) -> dict[str, Any]:
        return await self.get(
            f"databases/{database_id}/collections/{collection_id}/documents",
            params=query.as_params(*queries),
        )

    @retry_api_call
    async def get_document(
        self, database_id: str, collection_id: str, document_id: str
    ) -> dict[str, Any]:
        return await self.get(
            f"databases/{database_id}/collections/{collection_id}/documents/{document_id}"
        )

    @retry_api_call
    async def create_document(
        self,
        database_id: str,
        collection_id: str,
        document_id: str,
        data: dict[str, Any],
        permissions: list[str] | None = None,
    ) -> dict[str, Any]:
        return await self.post(
            f"databases/{database_id}/collections/{collection_id}/documents",
            _compact({"documentId": document_id, "data": data, "permissions": permissions}),
        )

    # Storage
    @retry_api_call
    async def list_buckets(self, *queries: str) -> dict[str, Any]:
        return await self.get("storage/buckets", params=query.as_params(*queries))

    @retry_api_call
    async def get_bucket(self, bucket_id: str) -> dict[str, Any]:
        return await self.get(f"storage/buckets/{bucket_id}")

    @retry_api_call
    async def create_bucket(self, bucket_id: str, name: str, **settings: Any) -> dict[str, Any]:
        """Create a bucket.

        Args:
            bucket_id: Bucket ID
            name: Bucket name
            **settings: Appwrite bucket fields (permissions, fileSecurity, enabled,
                maximumFileSize, allowedFileExtensions, compression, encryption, antivirus)
        """
        result = await self.post(
            "storage/buckets", _compact({"bucketId": bucket_id, "name": name, **settings})
        )
        logger.info("resource_created", resource_type="bucket", resource_id=bucket_id)
        return result

    @retry_api_call
    async def list_files(self, bucket_id: str, *queries: str) -> dict[str, Any]:
        return await self.get(f"storage/buckets/{bucket_id}/files", params=query.as_params(*queries))

    @retry_api_call
    async def get_file(self, bucket_id: str, file_id: str) -> dict[str, Any]:
        return await self.get(f"storage/buckets/{bucket_id}/files/{file_id}")

    @retry_api_call
    async def download_file(self, bucket_id: str, file_id: str) -> tuple[bytes, str | None]:
        return await self.request_bytes(f"storage/buckets/{bucket_id}/files/{file_id}/download")

    async def upload_file(
        self,
        bucket_id: str,
        file_id: str,
        filename: str,
        content: bytes,
        mime_type: str | None = None,
        permissions: list[str] | None = None,
    ) -> dict[str, Any]:
        """Upload a file in one raw multipart request, keeping its ID and permissions.

        Args:
            bucket_id: Destination bucket ID
            file_id: File ID to create
            filename: Original file name
            content: File bytes
            mime_type: Original MIME type
            permissions: Permission strings to apply

        Returns:
            Created file descriptor
        """
        return await self.post_multipart(
            f"storage/buckets/{bucket_id}/files",
            data={"fileId": file_id, **permission_fields(permissions)},
            files={"file": (filename, content, mime_type or "application/octet-stream")},
        )

    # Functions
    @retry_api_call
    async def list_functions(self, *queries: str) -> dict[str, Any]:
        return await self.get("functions", params=query.as_params(*queries))

    @retry_api_call
    async def get_function(self, function_id: str) -> dict[str, Any]:
        return await self.get(f"functions/{function_id}")

    @retry_api_call
    async def create_function(self, function_id: str, name: str, **settings: Any) -> dict[str, Any]:
        """Create a function.

        Args:
            function_id: Function ID
            name: Function name
            **settings: Appwrite function fields (runtime, execute, events, schedule,
                timeout, enabled, logging, entrypoint, commands, scopes and VCS fields)
        """
        result = await self.post(
            "functions", _compact({"functionId": function_id, "name": name, **settings})
        )
        logger.info("resource_created", resource_type="function", resource_id=function_id)
        return result

    async def delete_function(self, function_id: str) -> dict[str, Any]:
        result = await self.delete(f"functions/{function_id}")
        logger.info("resource_deleted", resource_type="function", resource_id=function_id)
        return result

    @retry_api_call
    async def list_variables(self, function_id: str) -> dict[str, Any]:
        return await self.get(f"functions/{function_id}/variables")

    @retry_api_call
    async def get_variable(self, function_id: str, variable_id: str) -> dict[str, Any]:
        return await self.get(f"functions/{function_id}/variables/{variable_id}")

    @retry_api_call
    async def create_variable(self, function_id: str, key: str, value: str) -> dict[str, Any]:
        return await self.post(f"functions/{function_id}/variables", {"key": key, "value": value})

    @retry_api_call
    async def list_deployments(self, function_id: str, *queries: str) -> dict[str, Any]:
        return await self.get(
            f"functions/{function_id}/deployments", params=query.as_params(*queries)
        )

    @retry_api_call
    async def download_deployment(self, function_id: str, deployment_id: str) -> bytes:
        content, _ = await self.request_bytes(
            f"functions/{function_id}/deployments/{deployment_id}/download"
        )
        return content

    async def upload_deployment(
        self,
        function_id: str,
        archive: bytes,
        activate: bool = True,
        entrypoint: str | None = None,
        commands: str | None = None,
    ) -> dict[str, Any]:
        """Upload a ``tar.gz`` code archive as a new deployment.

        Args:
            function_id: Function ID
            archive: Gzipped tarball of the function source
            activate: Make the deployment active once built
            entrypoint: Entrypoint file relative to the archive root
            commands: Build commands

        Returns:
            Created deployment descriptor
        """
        data = {"activate": "true" if activate else "false"}
        if entrypoint:
            data["entrypoint"] = entrypoint
        if commands:
            data["commands"] = commands
        return await self.post_multipart(
            f"functions/{function_id}/deployments",
            data=data,
            files={"code": ("code.tar.gz", archive, "application/gzip")},
        )

    async def create_execution(self, function_id: str, body: str) -> dict[str, Any]:
        """Run a function synchronously; the call blocks until it completes."""
        return await self.post(
            f"functions/{function_id}/executions", {"body": body, "async": False}
        )

    # Users
    @retry_api_call
    async def list_users(self, *queries: str) -> dict[str, Any]:
        return await self.get("users", params=query.as_params(*queries))

    @retry_api_call
    async def get_user(self, user_id: str) -> dict[str, Any]:
        return await self.get(f"users/{user_id}")

    @retry_api_call
    async def create_user(
        self,
        user_id: str,
        email: str | None = None,
        phone: str | None = None,
        name: str | None = None,
    ) -> dict[str, Any]:
        """Create a user without a password."""
        return await self.post(
            "users", _compact({"userId": user_id, "email": email, "phone": phone, "name": name})
        )

    @retry_api_call
    async def create_hashed_user(
        self,
        user_id: str,
        hash_type: str,
        email: str,
        password_hash: str,
        name: str | None = None,
        hash_options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a user from an exported password hash.

        Args:
            user_id: User ID
            hash_type: Appwrite hash name (argon2, bcrypt, md5, phpass, sha, scrypt, scryptMod)
            email: User email
            password_hash: The stored hash, passed through unchanged
            name: Display name
            hash_options: Scheme parameters from the source user record

        Returns:
            Created user descriptor
        """
        if hash_type not in HASHED_USER_ENDPOINTS:
            raise ValueError(f"Unsupported password hash: {hash_type}")

        options = hash_options or {}
        payload: dict[str, Any] = {
            "userId": user_id,
            "email": email,
            "password": password_hash,
            "name": name,
        }
        if hash_type == "sha":
            payload["passwordVersion"] = options.get("version")
        elif hash_type == "scrypt":
            payload.update(
                {
                    "passwordSalt": options.get("salt"),
                    "passwordCpu": options.get("costCpu"),
                    "passwordMemory": options.get("costMemory"),
                    "passwordParallel": options.get("costParallel"),
                    "passwordLength": options.get("length"),
                }
            )
        elif hash_type == "scryptMod":
            payload.update(
                {
                    "passwordSalt": options.get("salt"),
                    "passwordSaltSeparator": options.get("saltSeparator"),
                    "passwordSignerKey": options.get("signerKey"),
                }
            )

        return await self.post(HASHED_USER_ENDPOINTS[hash_type], _compact(payload))

    async def update_user_status(self, user_id: str, status: bool) -> dict[str, Any]:
        return await self.patch(f"users/{user_id}/status", {"status": status})

    async def update_email_verification(self, user_id: str, verified: bool) -> dict[str, Any]:
        return await self.patch(f"users/{user_id}/verification", {"emailVerification": verified})

    async def update_phone_verification(self, user_id: str, verified: bool) -> dict[str, Any]:
        return await self.patch(
            f"users/{user_id}/verification/phone", {"phoneVerification": verified}
        )

    async def update_labels(self, user_id: str, labels: list[str]) -> dict[str, Any]:
        return await self.put(f"users/{user_id}/labels", {"labels": labels})

    async def update_prefs(self, user_id: str, prefs: dict[str, Any]) -> dict[str, Any]:
        return await self.patch(f"users/{user_id}/prefs", {"prefs": prefs})

    # Teams
    @retry_api_call
    async def list_teams(self, *queries: str) -> dict[str, Any]:
        return await self.get("teams", params=query.as_params(*queries))

    @retry_api_call
    async def get_team(self, team_id: str) -> dict[str, Any]:
        return await self.get(f"teams/{team_id}")

    @retry_api_call
    async def create_team(
        self, team_id: str, name: str, roles: list[str] | None = None
    ) -> dict[str, Any]:
        return await self.post("teams", _compact({"teamId": team_id, "name": name, "roles": roles}))

    @retry_api_call
    async def list_memberships(self, team_id: str, *queries: str) -> dict[str, Any]:
        return await self.get(f"teams/{team_id}/memberships", params=query.as_params(*queries))

    async def create_membership(
        self,
        team_id: str,
        roles: list[str],
        url: str,
        email: str | None = None,
        name: str | None = None,
    ) -> dict[str, Any]:
        return await self.post(
            f"teams/{team_id}/memberships",
            _compact({"email": email, "roles": roles, "url": url, "name": name}),
        )
