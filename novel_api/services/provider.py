from typing import Any

import httpx
import orjson
from loguru import logger

from novel_api.utils.config import NovelAIConfig

# The upstream service only accepts requests that look like they come from its web client.
BROWSER_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "*/*",
    "Accept-Language": "zh-CN,zh;q=0.9",
    "Cache-Control": "no-cache",
    "Origin": "https://novelai.net",
    "Pragma": "no-cache",
    "Referer": "https://novelai.net/",
}


class ProviderError(Exception):
    """The provider answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"API request failed with status {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class NovelAIClient:
    """Sends generation payloads to the NovelAI image endpoint."""

    def __init__(self, http_client: httpx.AsyncClient, config: NovelAIConfig) -> None:
        self._http = http_client
        self._url = config.api_url
        self._timeout = config.timeout

    async def send(self, payload: dict[str, Any], token: str) -> bytes:
        """POST ``payload`` and return the raw response body.

        Raises:
            ProviderError: the provider answered with a non-2xx status.
            httpx.HTTPError: the request could not be completed.
        """
        headers = {"Authorization": f"Bearer {token}", **BROWSER_HEADERS}
        logger.debug(f"Sending {payload.get('model')} request to {self._url}")

        response = await self._http.post(
            self._url,
            content=orjson.dumps(payload),
            headers=headers,
            timeout=self._timeout,
        )
        logger.info(f"Provider response status: {response.status_code}")

        if not response.is_success:
            body = response.text
            logger.error(f"Provider error response: {body}")
            raise ProviderError(response.status_code, body)

        data = response.content
        logger.debug(
            f"Provider body read. Content-Type: {response.headers.get('content-type')}, "
            f"length: {len(data)} bytes"
        )
        return data
