import httpx
import orjson
from loguru import logger

from novel_api.utils.config import LskyConfig

from .base import (
    Uploader,
    UploaderConfigError,
    UploadResult,
    clean_file_name,
    guess_content_type,
    key_timestamp,
)

UPLOAD_TIMEOUT = 30.0
USER_AGENT = "novel-api/1.0"


def _as_dict(value: object) -> dict:
    return value if isinstance(value, dict) else {}


def _size_bytes(kilobytes: object) -> int:
    try:
        return int(float(kilobytes or 0) * 1024)
    except (TypeError, ValueError):
        return 0


class LskyUploader(Uploader):
    """Lsky Pro image host. Folders are not supported, the host picks the path."""

    name = "lsky"

    def __init__(self, config: LskyConfig, http_client: httpx.AsyncClient) -> None:
        if not config.base_url:
            raise UploaderConfigError("Lsky config incomplete, base_url is required")
        if not config.token:
            raise UploaderConfigError("Lsky config incomplete, token is required")

        self._config = config
        self._upload_url = f"{config.base_url.rstrip('/')}/api/v1/upload"
        self._http = http_client
        logger.info("Lsky uploader ready")

    async def upload(self, data: bytes, file_name: str, folder: str) -> UploadResult:
        timestamp = key_timestamp()
        file_name = clean_file_name(file_name, timestamp, ".png")
        final_name = f"{timestamp}_{file_name}"

        form = {}
        if self._config.strategy_id > 0:
            form["strategy_id"] = str(self._config.strategy_id)

        try:
            response = await self._http.post(
                self._upload_url,
                files={"file": (final_name, data, guess_content_type(final_name))},
                data=form,
                headers={
                    "Authorization": f"Bearer {self._config.token}",
                    "Accept": "application/json",
                    "User-Agent": USER_AGENT,
                },
                timeout=UPLOAD_TIMEOUT,
            )
        except httpx.HTTPError as e:
            logger.error(f"Lsky upload of {final_name} failed: {e}")
            return UploadResult.failed(file_name, f"Upload request failed: {e}")

        if response.status_code != 200:
            message = f"Upload failed, HTTP {response.status_code}: {response.text}"
            logger.error(message)
            return UploadResult.failed(file_name, message)

        try:
            body = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            logger.error(f"Failed to parse Lsky response: {e}")
            return UploadResult.failed(file_name, f"Failed to parse upload response: {e}")

        if not isinstance(body, dict):
            message = f"Unexpected upload response: {response.text}"
            logger.error(message)
            return UploadResult.failed(file_name, message)

        if not body.get("status"):
            message = f"Upload failed: {body.get('message')}"
            logger.error(message)
            return UploadResult.failed(file_name, message)

        payload = _as_dict(body.get("data"))
        url = _as_dict(payload.get("links")).get("url") or ""
        if not isinstance(url, str) or not url:
            message = f"Upload response carries no link: {response.text}"
            logger.error(message)
            return UploadResult.failed(file_name, message)
        logger.info(f"Upload succeeded: {url}")

        # Lsky reports sizes in KB
        return UploadResult(
            success=True,
            url=url,
            key=str(payload.get("key") or ""),
            size=_size_bytes(payload.get("size")),
            file_name=file_name,
            message="Upload succeeded",
        )
