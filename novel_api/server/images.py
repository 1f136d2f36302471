from fastapi import APIRouter, Depends
from loguru import logger

from novel_api.models import ImageGenerationRequest
from novel_api.server.middleware import (
    get_bearer_token,
    get_normalizer,
    get_pipeline,
    run_generation,
)
from novel_api.services import GenerationPipeline, PromptNormalizer, ResponseEmitter, Surface

router = APIRouter()


@router.post("/v1/images/generations", tags=["Images"])
async def create_image(
    request: ImageGenerationRequest,
    token: str = Depends(get_bearer_token),
    normalizer: PromptNormalizer = Depends(get_normalizer),
    pipeline: GenerationPipeline = Depends(get_pipeline),
):
    # n, size and quality are accepted for compatibility, one image at the configured size is made.
    # response_format and user are ignored too, the body always carries a URL.
    logger.info(f"Image generation request: model={request.model}, prompt={request.prompt}")

    prompt = await normalizer.normalize(request.prompt)
    emitter = ResponseEmitter(Surface.IMAGES, request.model)
    return await run_generation(
        pipeline.generate(
            request.model,
            prompt,
            token,
            emitter,
            character_prompts=request.character_prompts,
        )
    )
