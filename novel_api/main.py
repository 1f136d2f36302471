from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI, Request
from loguru import logger

from novel_api.models import HealthCheckResponse
from novel_api.server.chat import router as chat_router
from novel_api.server.images import router as images_router
from novel_api.server.middleware import add_cors_middleware, add_exception_handler
from novel_api.services import create_uploader
from novel_api.utils import g_config
from novel_api.utils.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    http_client = httpx.AsyncClient()
    try:
        # Fails startup when the storage backend is unknown or misconfigured
        uploader = create_uploader(g_config, http_client)
    except Exception:
        await http_client.aclose()
        raise

    app.state.http_client = http_client
    app.state.uploader = uploader
    logger.info(f"Storage backend: {uploader.name}, translation enabled: {g_config.translation.enable}")
    try:
        yield
    finally:
        await uploader.aclose()
        await http_client.aclose()
        logger.info("HTTP client closed.")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Novel API",
        description="OpenAI-compatible gateway for NovelAI image generation",
        version="1.0.0",
        lifespan=lifespan,
    )

    add_cors_middleware(app)
    add_exception_handler(app)

    app.include_router(chat_router)
    app.include_router(images_router)

    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check(request: Request):
        uploader = getattr(request.app.state, "uploader", None)
        if uploader is None:
            return HealthCheckResponse(ok=False, error="Storage backend not initialized")
        return HealthCheckResponse(ok=True, storage_backend=uploader.name)

    return app


def run() -> None:
    setup_logging(g_config.logging)
    uvicorn.run(
        create_app(),
        host=g_config.server.host,
        port=g_config.server.port,
        log_level=g_config.logging.level.lower(),
    )


if __name__ == "__main__":
    run()
