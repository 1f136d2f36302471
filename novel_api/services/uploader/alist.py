import asyncio
import posixpath
from urllib.parse import quote

import httpx
import orjson
from loguru import logger

from novel_api.utils.config import AlistConfig

from .base import (
    Uploader,
    UploaderConfigError,
    UploadResult,
    clean_file_name,
    guess_content_type,
    key_timestamp,
)

UPLOAD_TIMEOUT = 30.0
LOOKUP_TIMEOUT = 10.0


class AlistError(Exception):
    """Alist answered with a non-200 code or an unreadable body."""


def _parse(response: httpx.Response) -> dict:
    try:
        body = orjson.loads(response.content)
    except orjson.JSONDecodeError as e:
        raise AlistError(f"Failed to parse response ({response.status_code}): {e}") from e
    if not isinstance(body, dict) or body.get("code") != 200:
        message = body.get("message") if isinstance(body, dict) else body
        raise AlistError(str(message))
    return body


def _data(body: dict) -> dict:
    data = body.get("data")
    return data if isinstance(data, dict) else {}


class AlistUploader(Uploader):
    """
    Alist self-hosted file manager.

    Authenticates with the configured token, or logs in with username and password
    on first use. After uploading, the direct link is looked up through ``/api/fs/get``;
    when the lookup fails the ``/d`` download route is used instead.
    """

    name = "alist"

    def __init__(self, config: AlistConfig, http_client: httpx.AsyncClient) -> None:
        if not config.base_url:
            raise UploaderConfigError("Alist config incomplete, base_url is required")
        if not config.token and not (config.username and config.password):
            raise UploaderConfigError(
                "Alist config incomplete, a token or username and password are required"
            )

        self._config = config
        self._base_url = config.base_url.rstrip("/")
        self._http = http_client
        self._token = config.token or None
        self._login_lock = asyncio.Lock()
        if self._token:
            logger.info("Using the Alist token from config")

    async def _login(self) -> str:
        response = await self._http.post(
            f"{self._base_url}/api/auth/login",
            json={"username": self._config.username, "password": self._config.password},
            timeout=LOOKUP_TIMEOUT,
        )
        body = _parse(response)
        token = _data(body).get("token")
        if not token or not isinstance(token, str):
            raise AlistError("Login succeeded but no token was returned")
        logger.info("Alist login succeeded")
        return token

    async def _get_token(self) -> str:
        if self._token:
            return self._token
        async with self._login_lock:
            if not self._token:
                self._token = await self._login()
        return self._token

    def build_file_key(self, file_name: str, folder: str) -> str:
        timestamp = key_timestamp()
        file_name = clean_file_name(file_name, timestamp, ".png")
        base_path = self._config.path.rstrip("/") or "/uploads"
        folder = folder.strip("/")
        if folder:
            return f"{base_path}/{folder}/{timestamp}_{file_name}"
        return f"{base_path}/{timestamp}_{file_name}"

    def build_file_url(self, key: str) -> str:
        return f"{self._base_url}/d{key}"

    async def get_raw_url(self, key: str, token: str) -> str:
        response = await self._http.post(
            f"{self._base_url}/api/fs/get",
            json={"path": key, "password": ""},
            headers={"Authorization": token},
            timeout=LOOKUP_TIMEOUT,
        )
        body = _parse(response)
        raw_url = _data(body).get("raw_url")
        if not raw_url or not isinstance(raw_url, str):
            raise AlistError("File not found or no direct link available")
        return raw_url

    async def upload(self, data: bytes, file_name: str, folder: str) -> UploadResult:
        key = self.build_file_key(file_name, folder)
        final_name = posixpath.basename(key)

        try:
            token = await self._get_token()
            response = await self._http.put(
                f"{self._base_url}/api/fs/form",
                files={"file": (final_name, data, guess_content_type(final_name))},
                headers={"Authorization": token, "File-Path": quote(key, safe="/")},
                timeout=UPLOAD_TIMEOUT,
            )
            _parse(response)
        except (httpx.HTTPError, AlistError) as e:
            logger.error(f"Alist upload of {key} failed: {e}")
            return UploadResult.failed(file_name, f"Upload failed: {e}")

        logger.info("Upload succeeded, resolving direct link")
        try:
            url = await self.get_raw_url(key, token)
            logger.info(f"Resolved direct link: {url}")
        except (httpx.HTTPError, AlistError) as e:
            url = self.build_file_url(key)
            logger.warning(f"Failed to resolve direct link, falling back to {url}: {e}")

        return UploadResult(
            success=True,
            url=url,
            key=key,
            size=len(data),
            file_name=file_name,
            message="Upload succeeded",
        )
