import base64
import re
from dataclasses import dataclass

import httpx
from loguru import logger

from novel_api.models import Message

from .translator import Translator

LINK_RE = re.compile(r"https?://[^\s]+")
REFERENCE_FETCH_TIMEOUT = 30.0


@dataclass(frozen=True)
class NormalizedPrompt:
    text: str
    reference_image_base64: str | None = None


def text_from_message(message: Message) -> str:
    """Return the text content of a message, joining text parts of multi-part content."""
    if isinstance(message.content, str):
        return message.content
    if not message.content:
        return ""
    return "\n".join(item.text for item in message.content if item.type == "text" and item.text)


def last_user_text(messages: list[Message]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return text_from_message(message)
    return ""


def extract_links(text: str) -> list[str]:
    return LINK_RE.findall(text)


async def fetch_image_base64(http_client: httpx.AsyncClient, url: str) -> str | None:
    """Download ``url`` and return it base64-encoded, or None if it cannot be fetched."""
    try:
        response = await http_client.get(
            url, follow_redirects=True, timeout=REFERENCE_FETCH_TIMEOUT
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch reference image {url}: {e}")
        return None
    logger.debug(f"Fetched reference image {url}, {len(response.content)} bytes")
    return base64.b64encode(response.content).decode("ascii")


class PromptNormalizer:
    """Turns the raw user text into the prompt sent to the payload builders."""

    def __init__(self, translator: Translator, http_client: httpx.AsyncClient) -> None:
        self._translator = translator
        self._http = http_client

    async def normalize(self, text: str) -> NormalizedPrompt:
        text = await self._translator.translate(text)

        reference = None
        links = extract_links(text)
        if links:
            reference = await fetch_image_base64(self._http, links[0])

        return NormalizedPrompt(text=text, reference_image_base64=reference)
