import asyncio
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from novel_api.utils.config import TencentCOSConfig

from .base import Uploader, UploaderConfigError, UploadResult, build_object_key, guess_content_type


class TencentCOSUploader(Uploader):
    """Tencent Cloud COS through its S3-compatible endpoint."""

    name = "tencent"

    def __init__(self, config: TencentCOSConfig, client: Any = None) -> None:
        missing = [
            field
            for field in ("secret_id", "secret_key", "region", "bucket", "base_url")
            if not getattr(config, field)
        ]
        if missing:
            raise UploaderConfigError(f"Tencent COS config incomplete, missing {', '.join(missing)}")

        self._config = config
        self._client = client or boto3.client(
            "s3",
            endpoint_url=f"https://cos.{config.region}.myqcloud.com",
            region_name=config.region,
            aws_access_key_id=config.secret_id,
            aws_secret_access_key=config.secret_key,
            config=BotoConfig(s3={"addressing_style": "virtual"}),
        )
        logger.info(f"Tencent COS uploader ready, bucket: {config.bucket}")

    def build_file_url(self, key: str) -> str:
        return f"{self._config.base_url.rstrip('/')}/{key}"

    async def upload(self, data: bytes, file_name: str, folder: str) -> UploadResult:
        key = build_object_key(file_name, folder)
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self._config.bucket,
                Key=key,
                Body=data,
                ContentType=guess_content_type(file_name),
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Tencent COS upload of {key} failed: {e}")
            return UploadResult.failed(file_name, f"Upload failed: {e}")

        return UploadResult(
            success=True,
            url=self.build_file_url(key),
            key=key,
            size=len(data),
            file_name=file_name,
            message="Upload succeeded",
        )
