"""Tests for the cloud worker template and deployment lifecycle."""

import ast
import io
import json
import tarfile

import httpx
import pytest
import respx

from appwrite_migration.client.exceptions import APIError, WorkerDeploymentError
from appwrite_migration.config import WorkerConfig
from appwrite_migration.migration.worker import (
    WORKER_COMMANDS,
    WORKER_ENTRYPOINT,
    CloudWorkerDeployer,
    build_archive,
    render_manifest,
    render_worker_source,
)


@pytest.fixture
def deployer(destination, migration_log):
    return CloudWorkerDeployer(destination, WorkerConfig(poll_interval=0, poll_attempts=4), migration_log)


class TestTemplate:
    def test_rendered_source_is_valid_python(self):
        source = render_worker_source(request_timeout=30, user_agent="bridge-test")

        ast.parse(source)
        assert "REQUEST_TIMEOUT = 30" in source
        assert 'USER_AGENT = "bridge-test"' in source
        assert 'meta.get("$permissions")' in source
        assert '.get("$id")' in source
        assert "$$" not in source

    def test_manifest_declares_http_dependency(self):
        assert render_manifest() == "httpx\n"

    def test_archive_contains_entrypoint_and_manifest(self):
        archive = build_archive({"src/main.py": "print('hi')\n", "requirements.txt": "httpx\n"})

        with tarfile.open(fileobj=io.BytesIO(archive), mode="r:gz") as tar:
            names = tar.getnames()
            main = tar.extractfile("src/main.py").read()

        assert names == ["src/main.py", "requirements.txt"]
        assert main == b"print('hi')\n"

    def test_worker_archive_layout(self, deployer):
        with tarfile.open(fileobj=io.BytesIO(deployer.build_worker_archive()), mode="r:gz") as tar:
            assert set(tar.getnames()) == {WORKER_ENTRYPOINT, "requirements.txt"}
            source = tar.extractfile(WORKER_ENTRYPOINT).read().decode()

        ast.parse(source)
        # three calls per execution within the 15 second function timeout
        assert "REQUEST_TIMEOUT = 5" in source


class FakeContext:
    """Minimal Appwrite function runtime context."""

    def __init__(self, body):
        self.req = type("Request", (), {"body": body})()
        self.res = self
        self.logs: list[str] = []
        self.errors: list[str] = []

    def json(self, payload, status=200):
        return status, payload

    def log(self, message):
        self.logs.append(message)

    def error(self, message):
        self.errors.append(message)


SOURCE = "https://source.example.com/v1"
DEST = "https://dest.example.com/v1"

JOB = {
    "sourceEndpoint": SOURCE,
    "sourceProject": "src-project",
    "sourceKey": "source-secret",
    "destEndpoint": DEST,
    "destProject": "dst-project",
    "destKey": "dest-secret",
    "sourceBucketId": "media",
    "bucketId": "archive",
    "fileId": "logo",
}


@pytest.fixture
def worker_main():
    namespace: dict = {}
    exec(compile(render_worker_source(), WORKER_ENTRYPOINT, "exec"), namespace)
    return namespace["main"]


@pytest.fixture
def projects():
    """Mocked source and destination APIs; the source serves one file."""
    with respx.mock() as router:
        router.get(f"{SOURCE}/storage/buckets/media/files/logo").mock(
            return_value=httpx.Response(
                200,
                json={
                    "$id": "logo",
                    "name": "logo.png",
                    "mimeType": "image/png",
                    "$permissions": ['read("any")', 'update("user:u1")'],
                },
            )
        )
        router.get(f"{SOURCE}/storage/buckets/media/files/logo/download").mock(
            return_value=httpx.Response(200, content=b"\x89PNG")
        )
        yield router


class TestWorkerEntrypoint:
    def test_rejects_payload_without_endpoints(self, worker_main):
        context = FakeContext(json.dumps({"fileId": "f1"}))

        status, payload = worker_main(context)

        assert status == 500
        assert payload["success"] is False
        assert "Invalid payload" in payload["error"]
        assert context.errors

    def test_copies_file_between_projects(self, worker_main, projects):
        upload = projects.post(f"{DEST}/storage/buckets/archive/files").mock(
            return_value=httpx.Response(201, json={"$id": "logo"})
        )
        context = FakeContext(json.dumps(JOB))

        status, payload = worker_main(context)

        assert status == 200
        assert payload == {"success": True, "fileId": "logo"}
        request = upload.calls.last.request
        assert request.headers["X-Appwrite-Project"] == "dst-project"
        assert request.headers["X-Appwrite-Key"] == "dest-secret"
        body = request.read()
        assert b'name="fileId"\r\n\r\nlogo\r\n' in body
        assert b'name="permissions[0]"\r\n\r\nread("any")\r\n' in body
        assert b'name="permissions[1]"\r\n\r\nupdate("user:u1")\r\n' in body
        assert b'filename="logo.png"' in body
        assert b"\x89PNG" in body
        assert context.errors == []

    def test_destination_rejection_reported_as_failure(self, worker_main, projects):
        projects.post(f"{DEST}/storage/buckets/archive/files").mock(
            return_value=httpx.Response(403, json={"message": "Missing scope"})
        )
        context = FakeContext(json.dumps(JOB))

        status, payload = worker_main(context)

        assert status == 500
        assert payload["success"] is False
        assert "Destination upload failed: 403" in payload["error"]
        assert context.errors == [payload["error"]]


class TestDeploy:
    @pytest.mark.asyncio
    async def test_ready_build_returns_function_id(self, deployer, destination, log_lines):
        function_id = await deployer.deploy()

        assert function_id in destination.functions
        created = destination.functions[function_id]
        assert created["name"] == "_dv_migration_worker"
        assert created["runtime"] == "python-3.11"
        assert created["entrypoint"] == WORKER_ENTRYPOINT
        upload = next(args for name, args in destination.calls if name == "upload_deployment")
        assert upload == (function_id, True, WORKER_ENTRYPOINT, WORKER_COMMANDS)
        assert "Worker is ready." in log_lines

    @pytest.mark.asyncio
    async def test_polls_latest_deployment(self, deployer, destination):
        await deployer.deploy()

        _, args = next(call for call in destination.calls if call[0] == "list_deployments")
        queries = [json.loads(q) for q in args[1:]]
        assert {"method": "orderDesc", "attribute": "$createdAt"} in queries
        assert {"method": "limit", "values": [1]} in queries

    @pytest.mark.asyncio
    async def test_failed_build_removes_function(self, deployer, destination):
        destination.deployment_status = "failed"

        with pytest.raises(WorkerDeploymentError, match="Worker build failed."):
            await deployer.deploy()

        assert destination.functions == {}
        assert destination.count("delete_function") == 1

    @pytest.mark.asyncio
    async def test_build_timeout(self, deployer, destination):
        destination.deployment_status = "building"

        with pytest.raises(WorkerDeploymentError, match="timed out"):
            await deployer.deploy()

        assert destination.count("list_deployments") == 4
        assert destination.count("delete_function") == 1

    @pytest.mark.asyncio
    async def test_create_failure_needs_no_cleanup(self, deployer, destination):
        destination.fail_create_function = APIError("Function limit reached", status_code=400)

        with pytest.raises(WorkerDeploymentError, match="Function limit reached"):
            await deployer.deploy()

        assert destination.count("upload_deployment") == 0
        assert destination.count("delete_function") == 0

    @pytest.mark.asyncio
    async def test_remove_failure_is_logged(self, deployer, destination, log_lines):
        await deployer.remove("missing")

        assert destination.count("delete_function") == 1
        assert any(line.startswith("WARNING Failed to delete worker missing") for line in log_lines)
