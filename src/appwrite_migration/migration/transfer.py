"""
Binary file transfer strategies.

Both strategies keep the file ID and permissions of the source file. The
cloud proxy strategy delegates the copy to a worker function running in
the destination project; the local buffer strategy downloads into memory
and re-uploads from this process.
"""

import json
from typing import Any, Protocol

from appwrite_migration.client.appwrite_client import AppwriteClient
from appwrite_migration.client.exceptions import APIError, TransferError, WorkerExecutionError
from appwrite_migration.config import ProjectConfig
from appwrite_migration.utils.logging import get_logger

logger = get_logger(__name__)


class FileTransfer(Protocol):
    """Copies one storage file from the source bucket to the destination bucket."""

    async def transfer(
        self, source_bucket_id: str, target_bucket_id: str, file: dict[str, Any]
    ) -> None: ...


class LocalBufferTransfer:
    """Download into memory, then upload through the raw multipart endpoint."""

    def __init__(self, source: AppwriteClient, destination: AppwriteClient):
        self.source = source
        self.destination = destination

    async def transfer(
        self, source_bucket_id: str, target_bucket_id: str, file: dict[str, Any]
    ) -> None:
        file_id = file["$id"]
        content, content_type = await self.source.download_file(source_bucket_id, file_id)

        try:
            await self.destination.upload_file(
                target_bucket_id,
                file_id,
                filename=file.get("name") or file_id,
                content=content,
                mime_type=file.get("mimeType") or content_type,
                permissions=file.get("$permissions"),
            )
        except APIError as e:
            raise TransferError(f"Destination upload failed: {e}") from e

        logger.debug(
            "file_transferred",
            strategy="local",
            bucket_id=target_bucket_id,
            file_id=file_id,
            size=len(content),
        )


class CloudProxyTransfer:
    """Run the deployed worker synchronously, once per file."""

    def __init__(
        self,
        destination: AppwriteClient,
        worker_id: str,
        source_project: ProjectConfig,
        dest_project: ProjectConfig,
    ):
        self.destination = destination
        self.worker_id = worker_id
        self.source_project = source_project
        self.dest_project = dest_project

    def build_job(self, source_bucket_id: str, target_bucket_id: str, file_id: str) -> str:
        """JSON body of one worker execution (carries both projects' credentials)."""
        return json.dumps(
            {
                "sourceEndpoint": self.source_project.endpoint,
                "sourceProject": self.source_project.project_id,
                "sourceKey": self.source_project.api_key,
                "destEndpoint": self.dest_project.endpoint,
                "destProject": self.dest_project.project_id,
                "destKey": self.dest_project.api_key,
                "sourceBucketId": source_bucket_id,
                "bucketId": target_bucket_id,
                "fileId": file_id,
            }
        )

    async def transfer(
        self, source_bucket_id: str, target_bucket_id: str, file: dict[str, Any]
    ) -> None:
        file_id = file["$id"]
        execution = await self.destination.create_execution(
            self.worker_id, self.build_job(source_bucket_id, target_bucket_id, file_id)
        )

        body = execution.get("responseBody") or ""
        if execution.get("status") == "failed":
            raise WorkerExecutionError(
                f"Worker execution failed: {body or execution.get('errors')}"
            )

        try:
            response = json.loads(body)
        except ValueError as e:
            raise WorkerExecutionError(f"Worker returned an invalid response: {body!r}") from e

        if not isinstance(response, dict) or not response.get("success"):
            error = response.get("error") if isinstance(response, dict) else None
            raise WorkerExecutionError(error or "Worker reported failure")

        logger.debug(
            "file_transferred",
            strategy="cloud_proxy",
            bucket_id=target_bucket_id,
            file_id=file_id,
        )
