import random
import time
from datetime import UTC, datetime

from loguru import logger
from starlette.responses import Response

from novel_api.models import CharacterPrompt
from novel_api.utils.config import GenerationParameters

from .archive import extract_image
from .emitter import FailedImage, ImageReference, ResponseEmitter, UploadedImage
from .normalizer import NormalizedPrompt
from .payload import SchemaVersion, build_payload, resolve_model
from .provider import NovelAIClient
from .uploader import Uploader

SEED_RANGE = 1_000_000

# Shared by all requests and reseeded from the clock each time, seeds are not unique.
_seed_rng = random.Random()


def random_seed() -> int:
    _seed_rng.seed(time.time_ns())
    return _seed_rng.randrange(SEED_RANGE)


def image_file_name(schema: SchemaVersion, timestamp: int | None = None) -> str:
    timestamp = timestamp or int(datetime.now(tz=UTC).timestamp())
    if schema is SchemaVersion.V4:
        return f"nai4_{timestamp}.png"
    return f"{timestamp}.png"


class GenerationPipeline:
    """Payload -> provider -> archive -> storage -> emitter, run once per request."""

    def __init__(
        self,
        provider: NovelAIClient,
        uploader: Uploader,
        params: GenerationParameters,
        folder: str,
    ) -> None:
        self._provider = provider
        self._uploader = uploader
        self._params = params
        self._folder = folder

    async def upload(self, image: bytes, file_name: str) -> ImageReference:
        logger.info(f"Uploading image {file_name}")
        result = await self._uploader.upload(image, file_name, self._folder)
        if not result.success:
            logger.error(f"Image upload failed: {result.message}")
            return FailedImage(file_name=file_name, message=result.message)
        logger.info(f"Image uploaded: {result.url}")
        return UploadedImage(file_name=file_name, url=result.url)

    async def generate(
        self,
        model: str,
        prompt: NormalizedPrompt,
        token: str,
        emitter: ResponseEmitter,
        character_prompts: list[CharacterPrompt] | None = None,
        seed: int | None = None,
    ) -> Response:
        """
        Generate one image for ``prompt`` and render it through ``emitter``.

        Raises:
            ProviderError: the provider answered with a non-2xx status.
            ArchiveError: the provider body is not a readable archive or holds no image.
            httpx.HTTPError: the provider could not be reached.
        """
        route = resolve_model(model)
        if seed is None:
            seed = random_seed()

        payload = build_payload(
            route,
            prompt.text,
            seed,
            self._params,
            reference_image=prompt.reference_image_base64,
            character_prompts=character_prompts,
        )
        logger.debug(
            f"Built {route.schema.value} payload for {route.model}, seed {seed}, "
            f"reference image: {prompt.reference_image_base64 is not None}"
        )

        body = await self._provider.send(payload, token)
        image = extract_image(body)

        file_name = image_file_name(route.schema)
        emitter.begin_upload()
        ref = await self.upload(image, file_name)
        return emitter.emit(ref)
