from .models import (
    Center,
    CharCaption,
    CharacterPrompt,
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChunkChoice,
    ChunkDelta,
    ContentItem,
    HealthCheckResponse,
    ImageData,
    ImageGenerationRequest,
    ImageGenerationResponse,
    ImageUsage,
    Message,
    ModelData,
    ModelListResponse,
    V4Caption,
    V4NegativePrompt,
    V4Prompt,
)

__all__ = [
    "Center",
    "CharCaption",
    "CharacterPrompt",
    "ChatCompletionChunk",
    "ChatCompletionRequest",
    "ChunkChoice",
    "ChunkDelta",
    "ContentItem",
    "HealthCheckResponse",
    "ImageData",
    "ImageGenerationRequest",
    "ImageGenerationResponse",
    "ImageUsage",
    "Message",
    "ModelData",
    "ModelListResponse",
    "V4Caption",
    "V4NegativePrompt",
    "V4Prompt",
]
