import asyncio
import re

import httpx
import orjson
import pytest
from botocore.exceptions import ClientError

from novel_api.services.uploader import (
    AlistUploader,
    LskyUploader,
    MinioUploader,
    TencentCOSUploader,
    UploaderConfigError,
    create_uploader,
)
from novel_api.services.uploader.base import build_object_key, guess_content_type
from novel_api.utils.config import (
    AlistConfig,
    Config,
    LskyConfig,
    MinioConfig,
    StorageConfig,
    TencentCOSConfig,
)

TENCENT = TencentCOSConfig(
    secret_id="id",
    secret_key="key",
    region="ap-shanghai",
    bucket="images-125",
    base_url="https://cdn.example.com/",
)
MINIO = MinioConfig(
    endpoint="http://minio.local:9000",
    access_key_id="ak",
    secret_access_key="sk",
    bucket_name="nai",
)
ALIST = AlistConfig(base_url="http://alist.test/", token="static-token", path="/uploads")
LSKY = LskyConfig(base_url="https://lsky.test", token="lsky-token", strategy_id=2)

KEY_RE = r"\d{14}_"


class FakeS3:
    def __init__(self, fail: bool = False, bucket_exists: bool = True) -> None:
        self.fail = fail
        self.bucket_exists = bucket_exists
        self.puts: list[dict] = []
        self.created: list[str] = []

    def put_object(self, **kwargs):
        if self.fail:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        self.puts.append(kwargs)
        return {}

    def head_bucket(self, Bucket):
        if not self.bucket_exists:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadBucket")
        return {}

    def create_bucket(self, Bucket):
        self.created.append(Bucket)
        self.bucket_exists = True


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_object_key_is_timestamped_and_foldered():
    assert build_object_key("1.png", "/nai-images/", "20240102030405") == (
        "nai-images/20240102030405_1.png"
    )
    assert build_object_key("1.png", "", "20240102030405") == "uploads/20240102030405_1.png"
    assert build_object_key("  ", "f", "20240102030405") == "f/20240102030405_file_20240102030405"


def test_content_type_from_extension():
    assert guess_content_type("a.png") == "image/png"
    assert guess_content_type("a.unknownext") == "application/octet-stream"


@pytest.mark.parametrize(
    "backend, cls",
    [
        ("tencent", TencentCOSUploader),
        ("Tengxun", TencentCOSUploader),
        (" minio ", MinioUploader),
        ("ALIST", AlistUploader),
        ("lsky", LskyUploader),
    ],
)
def test_factory_selects_backend(backend, cls):
    config = Config(
        storage=StorageConfig(backend=backend),
        tencent_cos=TENCENT,
        minio=MINIO,
        alist=ALIST,
        lsky=LSKY,
    )
    assert isinstance(create_uploader(config, httpx.AsyncClient()), cls)


@pytest.mark.parametrize("backend", ["", "s3", "qiniu"])
def test_factory_rejects_unknown_backend(backend):
    config = Config(storage=StorageConfig(backend=backend))
    with pytest.raises(UploaderConfigError, match="Unsupported storage backend"):
        create_uploader(config, httpx.AsyncClient())


def test_factory_rejects_incomplete_backend_config():
    config = Config(storage=StorageConfig(backend="minio"))
    with pytest.raises(UploaderConfigError, match="MinIO config incomplete"):
        create_uploader(config, httpx.AsyncClient())


def test_tencent_upload_builds_url_from_key():
    s3 = FakeS3()
    uploader = TencentCOSUploader(TENCENT, client=s3)
    result = asyncio.run(uploader.upload(b"img", "1.png", "nai-images"))

    assert result.success
    assert re.fullmatch(r"nai-images/" + KEY_RE + r"1\.png", result.key)
    assert result.url == f"https://cdn.example.com/{result.key}"
    assert result.size == 3
    assert result.file_name == "1.png"
    assert s3.puts[0]["Bucket"] == "images-125"
    assert s3.puts[0]["Key"] == result.key
    assert s3.puts[0]["ContentType"] == "image/png"


def test_tencent_failure_is_reported_not_raised():
    uploader = TencentCOSUploader(TENCENT, client=FakeS3(fail=True))
    result = asyncio.run(uploader.upload(b"img", "1.png", "nai-images"))

    assert not result.success
    assert result.url == ""
    assert "denied" in result.message


def test_minio_creates_missing_bucket_and_builds_url():
    s3 = FakeS3(bucket_exists=False)
    uploader = MinioUploader(MINIO, client=s3)
    result = asyncio.run(uploader.upload(b"img", "1.png", "nai-images"))

    assert result.success
    assert s3.created == ["nai"]
    assert result.url == f"http://minio.local:9000/nai/{result.key}"


def test_minio_prefers_base_url():
    config = MINIO.model_copy(update={"base_url": "https://img.example.com/"})
    uploader = MinioUploader(config, client=FakeS3())
    result = asyncio.run(uploader.upload(b"img", "1.png", "nai-images"))
    assert result.url == f"https://img.example.com/nai/{result.key}"


def test_minio_failure_is_reported():
    uploader = MinioUploader(MINIO, client=FakeS3(fail=True))
    result = asyncio.run(uploader.upload(b"img", "1.png", "nai-images"))
    assert not result.success
    assert result.url == ""


def test_alist_requires_credentials():
    with pytest.raises(UploaderConfigError):
        AlistUploader(AlistConfig(base_url="http://alist.test"), httpx.AsyncClient())


def test_alist_resolves_raw_url():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/api/fs/form":
            return httpx.Response(200, json={"code": 200, "message": "success"})
        if request.url.path == "/api/fs/get":
            return httpx.Response(
                200, json={"code": 200, "data": {"raw_url": "https://raw.test/1.png"}}
            )
        return httpx.Response(404)

    uploader = AlistUploader(ALIST, _client(handler))
    result = asyncio.run(uploader.upload(b"img", "1.png", "nai-images"))

    assert result.success
    assert result.url == "https://raw.test/1.png"
    assert re.fullmatch(r"/uploads/nai-images/" + KEY_RE + r"1\.png", result.key)
    upload_request = seen[0]
    assert upload_request.method == "PUT"
    assert upload_request.headers["Authorization"] == "static-token"
    assert upload_request.headers["File-Path"] == result.key
    assert orjson.loads(seen[1].content) == {"path": result.key, "password": ""}


def test_alist_falls_back_to_download_route():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/fs/form":
            return httpx.Response(200, json={"code": 200})
        return httpx.Response(200, json={"code": 500, "message": "object not found"})

    uploader = AlistUploader(ALIST, _client(handler))
    result = asyncio.run(uploader.upload(b"img", "1.png", "nai-images"))

    assert result.success
    assert result.url == f"http://alist.test/d{result.key}"


def test_alist_logs_in_once_when_no_token():
    logins = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/auth/login":
            logins.append(orjson.loads(request.content))
            return httpx.Response(200, json={"code": 200, "data": {"token": "session"}})
        assert request.headers["Authorization"] == "session"
        if request.url.path == "/api/fs/form":
            return httpx.Response(200, json={"code": 200})
        return httpx.Response(200, json={"code": 200, "data": {"raw_url": "https://raw.test/x"}})

    config = AlistConfig(base_url="http://alist.test", username="admin", password="pw")
    uploader = AlistUploader(config, _client(handler))

    async def upload_twice():
        await uploader.upload(b"a", "1.png", "f")
        return await uploader.upload(b"b", "2.png", "f")

    result = asyncio.run(upload_twice())
    assert result.success
    assert logins == [{"username": "admin", "password": "pw"}]


def test_alist_lookup_with_non_object_data_falls_back():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/fs/form":
            return httpx.Response(200, json={"code": 200})
        return httpx.Response(200, json={"code": 200, "data": ["raw_url"]})

    uploader = AlistUploader(ALIST, _client(handler))
    result = asyncio.run(uploader.upload(b"img", "1.png", "nai-images"))

    assert result.success
    assert result.url == f"http://alist.test/d{result.key}"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json=["x"]),
        httpx.Response(200, json={"code": 200, "data": "session"}),
        httpx.Response(200, json={"code": 200, "data": {"token": 42}}),
    ],
)
def test_alist_bad_login_response_is_reported(response):
    config = AlistConfig(base_url="http://alist.test", username="admin", password="pw")
    uploader = AlistUploader(config, _client(lambda request: response))
    result = asyncio.run(uploader.upload(b"img", "1.png", "nai-images"))

    assert not result.success
    assert result.url == ""


def test_alist_upload_failure_is_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": 403, "message": "permission denied"})

    uploader = AlistUploader(ALIST, _client(handler))
    result = asyncio.run(uploader.upload(b"img", "1.png", "nai-images"))
    assert not result.success
    assert "permission denied" in result.message


def test_lsky_upload_reads_links():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "status": True,
                "message": "ok",
                "data": {
                    "key": "abc123",
                    "size": 2.5,
                    "links": {"url": "https://lsky.test/i/abc123.png"},
                },
            },
        )

    uploader = LskyUploader(LSKY, _client(handler))
    result = asyncio.run(uploader.upload(b"img", "1.png", "nai-images"))

    assert result.success
    assert result.url == "https://lsky.test/i/abc123.png"
    assert result.key == "abc123"
    assert result.size == 2560
    request = seen[0]
    assert str(request.url) == "https://lsky.test/api/v1/upload"
    assert request.headers["Authorization"] == "Bearer lsky-token"
    body = request.content
    assert b'name="strategy_id"' in body
    assert re.search(rb'filename="\d{14}_1\.png"', body)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="server error"),
        httpx.Response(200, json={"status": False, "message": "quota exceeded"}),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json=["x"]),
        httpx.Response(200, json={"status": True, "data": "oops"}),
        httpx.Response(200, json={"status": True, "data": {"links": ["https://lsky.test/x"]}}),
    ],
)
def test_lsky_failures_are_reported(response):
    uploader = LskyUploader(LSKY, _client(lambda request: response))
    result = asyncio.run(uploader.upload(b"img", "1.png", "nai-images"))
    assert not result.success
    assert result.url == ""
    assert result.message
