import asyncio
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from novel_api.utils.config import MinioConfig

from .base import Uploader, UploaderConfigError, UploadResult, build_object_key, guess_content_type

MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}


def _strip_scheme(endpoint: str) -> str:
    return endpoint.removeprefix("http://").removeprefix("https://").rstrip("/")


class MinioUploader(Uploader):
    """MinIO or any other S3-compatible server."""

    name = "minio"

    def __init__(self, config: MinioConfig, client: Any = None) -> None:
        missing = [
            field
            for field in ("endpoint", "access_key_id", "secret_access_key", "bucket_name")
            if not getattr(config, field)
        ]
        if missing:
            raise UploaderConfigError(f"MinIO config incomplete, missing {', '.join(missing)}")

        self._config = config
        self._endpoint = _strip_scheme(config.endpoint)
        self._scheme = "https" if config.use_ssl else "http"
        self._client = client or boto3.client(
            "s3",
            endpoint_url=f"{self._scheme}://{self._endpoint}",
            region_name="us-east-1",
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            config=BotoConfig(s3={"addressing_style": "path"}, signature_version="s3v4"),
        )
        logger.info(f"MinIO client created, endpoint: {self._endpoint}, use_ssl: {config.use_ssl}")

    def build_file_url(self, key: str) -> str:
        bucket = self._config.bucket_name
        if self._config.base_url:
            return f"{self._config.base_url.rstrip('/')}/{bucket}/{key}"
        return f"{self._scheme}://{self._endpoint}/{bucket}/{key}"

    def _ensure_bucket(self) -> None:
        bucket = self._config.bucket_name
        try:
            self._client.head_bucket(Bucket=bucket)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") not in MISSING_BUCKET_CODES:
                raise
            self._client.create_bucket(Bucket=bucket)
            logger.info(f"Bucket {bucket} created")

    def _put(self, key: str, data: bytes, content_type: str) -> None:
        self._ensure_bucket()
        self._client.put_object(
            Bucket=self._config.bucket_name,
            Key=key,
            Body=data,
            ContentLength=len(data),
            ContentType=content_type,
        )

    async def upload(self, data: bytes, file_name: str, folder: str) -> UploadResult:
        key = build_object_key(file_name, folder)
        try:
            await asyncio.to_thread(self._put, key, data, guess_content_type(file_name))
        except (BotoCoreError, ClientError) as e:
            logger.error(f"MinIO upload of {key} failed: {e}")
            return UploadResult.failed(file_name, f"Upload failed: {e}")

        return UploadResult(
            success=True,
            url=self.build_file_url(key),
            key=key,
            size=len(data),
            file_name=file_name,
            message="Upload succeeded",
        )
