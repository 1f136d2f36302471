from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from novel_api.models import ChatCompletionRequest, ModelData, ModelListResponse
from novel_api.server.middleware import (
    get_bearer_token,
    get_normalizer,
    get_pipeline,
    run_generation,
)
from novel_api.services import GenerationPipeline, PromptNormalizer, ResponseEmitter, Surface
from novel_api.services.normalizer import last_user_text
from novel_api.services.payload import MODEL_SCHEMAS

router = APIRouter()


def _get_available_models() -> list[ModelData]:
    now = int(datetime.now(tz=UTC).timestamp())
    return [ModelData(id=name, created=now) for name in MODEL_SCHEMAS]


@router.get("/v1/models", response_model=ModelListResponse)
async def list_models():
    return ModelListResponse(data=_get_available_models())


@router.post("/v1/chat/completions")
async def create_chat_completion(
    request: ChatCompletionRequest,
    token: str = Depends(get_bearer_token),
    normalizer: PromptNormalizer = Depends(get_normalizer),
    pipeline: GenerationPipeline = Depends(get_pipeline),
):
    if not request.messages:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Messages required.")

    # stream and user are ignored, the reply is always a single SSE chunk.
    user_text = last_user_text(request.messages)
    logger.info(f"Chat generation request: model={request.model}, prompt={user_text}")

    prompt = await normalizer.normalize(user_text)
    emitter = ResponseEmitter(Surface.CHAT, request.model)
    return await run_generation(
        pipeline.generate(
            request.model,
            prompt,
            token,
            emitter,
            character_prompts=request.character_prompts,
        )
    )
