"""
Cloud proxy worker deployment.

The worker is a short-lived Appwrite function deployed into the
destination project. Each execution copies one storage file from the
source project straight into the destination, so file bytes never pass
through the machine running the migration.

Lifecycle: deploy() creates the function, uploads the generated source
archive and waits for the build; the caller runs transfers and then calls
remove() exactly once.
"""

import asyncio
import io
import tarfile
import time
import uuid
from string import Template

from appwrite_migration import __version__
from appwrite_migration.client import query
from appwrite_migration.client.appwrite_client import AppwriteClient
from appwrite_migration.client.exceptions import AppwriteMigrationError, WorkerDeploymentError
from appwrite_migration.config import WorkerConfig
from appwrite_migration.utils.logging import MigrationLog

WORKER_ENTRYPOINT = "src/main.py"
WORKER_COMMANDS = "pip install -r requirements.txt"
WORKER_DEPENDENCIES = ("httpx",)

# Appwrite resource fields start with "$", escaped as "$$" for Template
WORKER_TEMPLATE = Template('''\
import json

import httpx

REQUEST_TIMEOUT = $request_timeout
USER_AGENT = "$user_agent"


def _client(endpoint, project, key):
    return httpx.Client(
        base_url=endpoint.rstrip("/") + "/",
        headers={
            "X-Appwrite-Project": project,
            "X-Appwrite-Key": key,
            "User-Agent": USER_AGENT,
        },
        timeout=REQUEST_TIMEOUT,
        follow_redirects=True,
    )


def main(context):
    try:
        payload = context.req.body
        if isinstance(payload, (str, bytes)):
            payload = json.loads(payload or "{}")
        if not payload or not payload.get("sourceEndpoint"):
            raise ValueError("Invalid payload: " + json.dumps(payload))

        source_bucket = payload.get("sourceBucketId") or payload["bucketId"]
        dest_bucket = payload["bucketId"]
        file_id = payload["fileId"]
        context.log(f"Cloud Proxy: Migrating file {file_id} into bucket {dest_bucket}")

        with _client(payload["sourceEndpoint"], payload["sourceProject"], payload["sourceKey"]) as source:
            meta = source.get(f"storage/buckets/{source_bucket}/files/{file_id}")
            meta.raise_for_status()
            meta = meta.json()
            download = source.get(f"storage/buckets/{source_bucket}/files/{file_id}/download")
            download.raise_for_status()

        data = {"fileId": file_id}
        for i, permission in enumerate(meta.get("$$permissions") or []):
            data[f"permissions[{i}]"] = permission
        files = {
            "file": (
                meta.get("name") or file_id,
                download.content,
                meta.get("mimeType") or "application/octet-stream",
            )
        }

        with _client(payload["destEndpoint"], payload["destProject"], payload["destKey"]) as dest:
            upload = dest.post(f"storage/buckets/{dest_bucket}/files", data=data, files=files)

        if upload.status_code >= 400:
            raise RuntimeError(f"Destination upload failed: {upload.status_code} - {upload.text}")

        return context.res.json({"success": True, "fileId": upload.json().get("$$id")})

    except Exception as e:
        context.error(str(e))
        return context.res.json({"success": False, "error": str(e)}, 500)
''')


def render_worker_source(request_timeout: int = 5, user_agent: str | None = None) -> str:
    """Render the worker entrypoint.

    Args:
        request_timeout: Timeout for the worker's own HTTP calls (seconds)
        user_agent: User-Agent the worker sends to both projects

    Returns:
        Python source of the worker entrypoint
    """
    return WORKER_TEMPLATE.substitute(
        request_timeout=int(request_timeout),
        user_agent=user_agent or f"appwrite-bridge-worker/{__version__}",
    )


def render_manifest() -> str:
    """Render requirements.txt for the worker runtime."""
    return "\n".join(WORKER_DEPENDENCIES) + "\n"


def build_archive(files: dict[str, str]) -> bytes:
    """Pack text files into an in-memory ``tar.gz``.

    Args:
        files: Mapping of archive path to file contents

    Returns:
        Gzipped tarball bytes
    """
    buffer = io.BytesIO()
    mtime = int(time.time())

    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            info.mtime = mtime
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))

    return buffer.getvalue()


class CloudWorkerDeployer:
    """Deploys and tears down the file-transfer worker in the destination project."""

    def __init__(
        self,
        destination: AppwriteClient,
        config: WorkerConfig | None = None,
        log: MigrationLog | None = None,
    ):
        self.destination = destination
        self.config = config or WorkerConfig()
        self.log = log or MigrationLog()

    def build_worker_archive(self) -> bytes:
        return build_archive(
            {
                WORKER_ENTRYPOINT: render_worker_source(self.config.request_timeout),
                "requirements.txt": render_manifest(),
            }
        )

    async def deploy(self) -> str:
        """Create, upload and build the worker.

        Returns:
            ID of the ready worker function

        Raises:
            WorkerDeploymentError: If creation, upload or build fails, or the
                build does not finish within the configured poll attempts. A function
                that was created is removed before raising.
        """
        self.log.info("Deploying Cloud Proxy Worker to Destination Project...")
        function_id = uuid.uuid4().hex
        created = False

        try:
            await self.destination.create_function(
                function_id,
                self.config.name,
                runtime=self.config.runtime,
                timeout=self.config.timeout,
                enabled=True,
                logging=True,
                entrypoint=WORKER_ENTRYPOINT,
                commands=WORKER_COMMANDS,
            )
            created = True

            await self.destination.upload_deployment(
                function_id,
                self.build_worker_archive(),
                activate=True,
                entrypoint=WORKER_ENTRYPOINT,
                commands=WORKER_COMMANDS,
            )
            self.log.info(
                f"Worker deployed ({function_id}). Waiting for build...", function_id=function_id
            )

            await self._wait_until_ready(function_id)

        except AppwriteMigrationError as e:
            if created:
                await self.remove(function_id)
            if isinstance(e, WorkerDeploymentError):
                raise
            raise WorkerDeploymentError(f"Failed to deploy cloud worker: {e}") from e

        self.log.info("Worker is ready.", function_id=function_id)
        return function_id

    async def _wait_until_ready(self, function_id: str) -> None:
        for _ in range(self.config.poll_attempts):
            await asyncio.sleep(self.config.poll_interval)
            response = await self.destination.list_deployments(
                function_id, query.order_desc("$createdAt"), query.limit(1)
            )
            deployments = response.get("deployments", [])
            if not deployments:
                continue
            status = deployments[0].get("status")
            if status == "ready":
                return
            if status == "failed":
                raise WorkerDeploymentError("Worker build failed.")

        raise WorkerDeploymentError("Worker build timed out.")

    async def remove(self, function_id: str) -> None:
        """Delete the worker function. Failures are logged, not raised."""
        try:
            await self.destination.delete_function(function_id)
        except AppwriteMigrationError as e:
            self.log.warning(
                f"Failed to delete worker {function_id}: {e}", function_id=function_id
            )
