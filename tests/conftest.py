from __future__ import annotations

import io
import zipfile
from collections.abc import Callable

import httpx
import orjson
import pytest
from fastapi.testclient import TestClient

from novel_api.main import create_app
from novel_api.server.middleware import get_http_client, get_uploader
from novel_api.services import Uploader, UploadResult

PROVIDER_HOST = "image.novelai.net"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def make_zip(entries: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return buf.getvalue()


class FakeUploader(Uploader):
    name = "fake"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[bytes, str, str]] = []

    async def upload(self, data: bytes, file_name: str, folder: str) -> UploadResult:
        self.calls.append((data, file_name, folder))
        if self.fail:
            return UploadResult.failed(file_name, "bucket unreachable")
        key = f"{folder}/20240101000000_{file_name}"
        return UploadResult(
            success=True,
            url=f"https://cdn.test/{key}",
            key=key,
            size=len(data),
            file_name=file_name,
            message="Upload succeeded",
        )


class UpstreamStub:
    """Answers every outbound request of the app, by host."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.provider_status = 200
        self.provider_body = make_zip({"image_0.png": PNG_BYTES})
        self.hosts: dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == PROVIDER_HOST:
            return httpx.Response(self.provider_status, content=self.provider_body)
        handler = self.hosts.get(request.url.host)
        if handler is None:
            return httpx.Response(404)
        return handler(request)

    @property
    def provider_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == PROVIDER_HOST]

    @property
    def payloads(self) -> list[dict]:
        return [orjson.loads(r.content) for r in self.provider_requests]


@pytest.fixture
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def http_client(upstream: UpstreamStub) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream))


@pytest.fixture
def app(http_client: httpx.AsyncClient, uploader: FakeUploader):
    app = create_app()
    app.dependency_overrides[get_http_client] = lambda: http_client
    app.dependency_overrides[get_uploader] = lambda: uploader
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
