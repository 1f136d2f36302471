import httpx
import orjson
from loguru import logger

from novel_api.utils.config import TranslationConfig


class Translator:
    """Translates prompts through an OpenAI-compatible chat endpoint."""

    def __init__(self, config: TranslationConfig, http_client: httpx.AsyncClient) -> None:
        self._config = config
        self._http = http_client

    async def translate(self, text: str) -> str:
        """Return the translated text, or ``text`` unchanged if anything goes wrong."""
        if not self._config.enable:
            return text

        payload = {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": self._config.role},
                {"role": "user", "content": text},
            ],
        }
        try:
            response = await self._http.post(
                f"{self._config.url.rstrip('/')}/v1/chat/completions",
                content=orjson.dumps(payload),
                headers={
                    "Accept": "application/json",
                    "Authorization": f"Bearer {self._config.key}",
                    "Content-Type": "application/json",
                },
            )
            if response.status_code != 200:
                logger.warning(
                    f"Translation failed with status {response.status_code}: {response.text}"
                )
                return text
            translated = orjson.loads(response.content)["choices"][0]["message"]["content"]
        except (httpx.HTTPError, orjson.JSONDecodeError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"Translation failed, using original text: {e!r}")
            return text

        if not isinstance(translated, str) or not translated.strip():
            logger.warning("Translation returned no content, using original text")
            return text

        logger.info(f"Translated prompt: {text} -> {translated}")
        return translated
