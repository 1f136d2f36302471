import httpx
from loguru import logger

from novel_api.utils.config import Config

from .alist import AlistUploader
from .base import Uploader, UploaderConfigError, UploadResult
from .lsky import LskyUploader
from .minio import MinioUploader
from .tencent import TencentCOSUploader

SUPPORTED_BACKENDS = ("tencent", "tengxun", "minio", "alist", "lsky")


def create_uploader(config: Config, http_client: httpx.AsyncClient) -> Uploader:
    """Create the uploader selected by ``storage.backend``.

    Raises:
        UploaderConfigError: the backend is unknown or its settings are incomplete.
    """
    backend = config.storage.backend.strip().lower()

    if backend in ("tencent", "tengxun"):
        logger.info("Using the Tencent COS uploader")
        return TencentCOSUploader(config.tencent_cos)
    if backend == "minio":
        logger.info("Using the MinIO uploader")
        return MinioUploader(config.minio)
    if backend == "alist":
        logger.info("Using the Alist uploader")
        return AlistUploader(config.alist, http_client)
    if backend == "lsky":
        logger.info("Using the Lsky uploader")
        return LskyUploader(config.lsky, http_client)

    raise UploaderConfigError(
        f"Unsupported storage backend: {config.storage.backend!r}, "
        f"supported: {', '.join(SUPPORTED_BACKENDS)}"
    )


__all__ = [
    "SUPPORTED_BACKENDS",
    "AlistUploader",
    "LskyUploader",
    "MinioUploader",
    "TencentCOSUploader",
    "UploadResult",
    "Uploader",
    "UploaderConfigError",
    "create_uploader",
]
