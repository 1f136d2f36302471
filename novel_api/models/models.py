from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class ContentItem(BaseModel):
    """
    Individual content item within a message.

    Image parts are accepted but only text reaches the prompt, reference images
    come from links in the text.
    """

    type: Literal["text", "image_url"]
    text: str | None = Field(default=None)


class Message(BaseModel):
    """Message model"""

    role: str
    content: str | list[ContentItem] | None = Field(default=None)
    name: str | None = Field(default=None)


class Center(BaseModel):
    """Normalized region center of a character on the canvas."""

    x: float = Field(default=0)
    y: float = Field(default=0)


class CharacterPrompt(BaseModel):
    """Per-character prompt used by the v4 structured captions."""

    prompt: str
    uc: str = Field(default="", description="Negative prompt for this character")
    center: Center = Field(default_factory=Center)
    enabled: bool = Field(default=True)


class ChatCompletionRequest(BaseModel):
    """Chat completion request model"""

    model: str
    messages: list[Message]
    stream: bool | None = Field(default=True)
    user: str | None = Field(default=None)
    character_prompts: list[CharacterPrompt] | None = Field(default=None)


class ImageGenerationRequest(BaseModel):
    """OpenAI images/generations request model"""

    model: str
    prompt: str
    n: int | None = Field(default=1)
    size: str | None = Field(default=None)
    quality: str | None = Field(default=None)
    response_format: str | None = Field(default=None)
    user: str | None = Field(default=None)
    character_prompts: list[CharacterPrompt] | None = Field(default=None)


class ChunkDelta(BaseModel):
    content: str | None = Field(default=None)


class ChunkChoice(BaseModel):
    index: int = 0
    delta: ChunkDelta
    logprobs: dict[str, Any] | None = Field(default=None)
    finish_reason: str | None = Field(default=None)


class ChatCompletionChunk(BaseModel):
    """Streaming chat completion chunk"""

    id: str
    object: str = "chat.completion.chunk"
    created: int
    model: str
    choices: list[ChunkChoice]


class ImageData(BaseModel):
    url: str


class ImageUsage(BaseModel):
    """Usage block of an image generation response, always zeroed."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    prompt_tokens_details: dict[str, Any] = Field(
        default_factory=lambda: {"cached_tokens_details": {}}
    )
    completion_tokens_details: dict[str, Any] = Field(default_factory=dict)


class ImageGenerationResponse(BaseModel):
    """OpenAI images/generations response model"""

    data: list[ImageData]
    created: int
    usage: ImageUsage = Field(default_factory=ImageUsage)


class ModelData(BaseModel):
    """Model data model"""

    id: str
    object: str = "model"
    created: int
    owned_by: str = "novelai"


class ModelListResponse(BaseModel):
    """Model list model"""

    object: str = "list"
    data: list[ModelData]


class HealthCheckResponse(BaseModel):
    """Health check response model"""

    ok: bool
    storage_backend: str | None = Field(default=None)
    error: str | None = Field(default=None)


# --- NovelAI v4 payload structures ---


class CharCaption(BaseModel):
    char_caption: str
    centers: list[Center]


class V4Caption(BaseModel):
    base_caption: str
    char_captions: list[CharCaption]


class V4Prompt(BaseModel):
    caption: V4Caption
    use_coords: bool
    use_order: bool = True


class V4NegativePrompt(BaseModel):
    caption: V4Caption
    legacy_uc: bool
