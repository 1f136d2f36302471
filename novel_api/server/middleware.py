from collections.abc import Awaitable

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from novel_api.services import (
    ArchiveError,
    GenerationPipeline,
    ImageNotFoundError,
    NovelAIClient,
    PromptNormalizer,
    ProviderError,
    Translator,
    Uploader,
)
from novel_api.utils import g_config


def global_exception_handler(request: Request, exc: Exception):
    if isinstance(exc, StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"message": exc.detail}},
        )

    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"message": str(exc)}},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Failed to decode request body on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": {"message": "Invalid request body", "details": jsonable_errors(exc)}},
    )


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_uploader(request: Request) -> Uploader:
    return request.app.state.uploader


def get_translator(http_client: httpx.AsyncClient = Depends(get_http_client)) -> Translator:
    return Translator(g_config.translation, http_client)


def get_normalizer(
    translator: Translator = Depends(get_translator),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> PromptNormalizer:
    return PromptNormalizer(translator, http_client)


def get_pipeline(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    uploader: Uploader = Depends(get_uploader),
) -> GenerationPipeline:
    return GenerationPipeline(
        NovelAIClient(http_client, g_config.novelai),
        uploader,
        g_config.parameters,
        g_config.storage.folder,
    )


def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    """Token forwarded to the provider as-is, it is never checked here."""
    if not authorization:
        return ""
    return authorization.removeprefix("Bearer ").strip()


async def run_generation(generation: Awaitable[Response]) -> Response:
    """Await a pipeline run, turning upstream failures into HTTP errors."""
    try:
        return await generation
    except ProviderError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e
    except ImageNotFoundError as e:
        logger.error(str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Upstream returned no image"
        ) from e
    except ArchiveError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
        ) from e
    except httpx.HTTPError as e:
        logger.exception("NovelAI request failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to send request: {e}"
        ) from e


def add_exception_handler(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, global_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)


def add_cors_middleware(app: FastAPI):
    if g_config.cors.enabled:
        cors = g_config.cors
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors.allow_origins,
            allow_credentials=cors.allow_credentials,
            allow_methods=cors.allow_methods,
            allow_headers=cors.allow_headers,
        )
