from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

import orjson
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger
from starlette.responses import Response

from novel_api.models import (
    ChatCompletionChunk,
    ChunkChoice,
    ChunkDelta,
    ImageData,
    ImageGenerationResponse,
)

UPLOAD_FAILED_SENTINEL = "error: upload failed - {file_name}"
STREAM_END = "event: end\n\n"


class Surface(str, Enum):
    """Public endpoint a request came in through. Fixes the response shape."""

    CHAT = "chat"
    IMAGES = "images"


class EmitterState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    EMITTING = "emitting"
    DONE = "done"


@dataclass(frozen=True)
class UploadedImage:
    file_name: str
    url: str


@dataclass(frozen=True)
class FailedImage:
    file_name: str
    message: str


ImageReference = UploadedImage | FailedImage


def image_target(ref: ImageReference) -> str:
    """URL of an uploaded image, or the sentinel string of a failed upload."""
    if isinstance(ref, UploadedImage):
        return ref.url
    return UPLOAD_FAILED_SENTINEL.format(file_name=ref.file_name)


def image_markdown(ref: ImageReference) -> str:
    return f"![{ref.file_name}]({image_target(ref)})"


class ResponseEmitter:
    """
    Renders the image reference of one request.

    The surface is fixed at construction: chat requests get a single SSE delta chunk
    followed by ``event: end``, image requests get one JSON body. State only moves
    forward, Idle -> Uploading -> Emitting -> Done.
    """

    def __init__(self, surface: Surface, model: str) -> None:
        self.surface = surface
        self.model = model
        self._state = EmitterState.IDLE

    @property
    def state(self) -> EmitterState:
        return self._state

    def _advance(self, expected: EmitterState, target: EmitterState) -> None:
        if self._state is not expected:
            raise RuntimeError(f"Cannot move to {target.value} from {self._state.value}")
        self._state = target

    def begin_upload(self) -> None:
        self._advance(EmitterState.IDLE, EmitterState.UPLOADING)

    def emit(self, ref: ImageReference) -> Response:
        self._advance(EmitterState.UPLOADING, EmitterState.EMITTING)
        created = int(datetime.now(tz=UTC).timestamp())
        if isinstance(ref, FailedImage):
            logger.warning(f"Emitting failed upload for {ref.file_name}: {ref.message}")

        if self.surface is Surface.CHAT:
            return StreamingResponse(
                self._stream(ref, created), media_type="text/event-stream"
            )

        body = ImageGenerationResponse(data=[ImageData(url=image_target(ref))], created=created)
        self._state = EmitterState.DONE
        return JSONResponse(content=body.model_dump(mode="json"))

    def chat_chunk(self, ref: ImageReference, created: int) -> ChatCompletionChunk:
        return ChatCompletionChunk(
            id=f"chatcmpl-{created}",
            created=created,
            model=self.model,
            choices=[ChunkChoice(index=0, delta=ChunkDelta(content=image_markdown(ref)))],
        )

    async def _stream(self, ref: ImageReference, created: int) -> AsyncGenerator[str, None]:
        chunk = self.chat_chunk(ref, created)
        # Each yield is flushed separately, the client waits for the end marker.
        yield f"data: {orjson.dumps(chunk.model_dump(mode='json')).decode('utf-8')}\n\n"
        yield STREAM_END
        self._state = EmitterState.DONE
