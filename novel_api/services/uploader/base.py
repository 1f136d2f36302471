import mimetypes
from abc import ABC, abstractmethod
from datetime import datetime

from pydantic import BaseModel, Field

KEY_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


class UploaderConfigError(ValueError):
    """The storage backend is unknown or its configuration is incomplete."""


class UploadResult(BaseModel):
    """Outcome of a single upload, either fully populated or carrying an error message."""

    success: bool
    url: str = Field(default="")
    key: str = Field(default="")
    size: int = Field(default=0, description="Stored size in bytes")
    file_name: str = Field(default="")
    message: str = Field(default="")

    @classmethod
    def failed(cls, file_name: str, message: str) -> "UploadResult":
        return cls(success=False, file_name=file_name, message=message)


class Uploader(ABC):
    """Stores an image and returns a publicly resolvable URL for it."""

    name: str = ""

    @abstractmethod
    async def upload(self, data: bytes, file_name: str, folder: str) -> UploadResult:
        """Upload ``data``. Failures are reported through the result, never raised."""

    async def aclose(self) -> None:
        """Release resources held by the backend."""


def key_timestamp() -> str:
    return datetime.now().strftime(KEY_TIMESTAMP_FORMAT)


def clean_file_name(file_name: str, timestamp: str, default_ext: str = "") -> str:
    file_name = file_name.strip()
    return file_name or f"file_{timestamp}{default_ext}"


def build_object_key(file_name: str, folder: str, timestamp: str | None = None) -> str:
    """Prefix the file name with a timestamp and place it under ``folder`` (or ``uploads``)."""
    timestamp = timestamp or key_timestamp()
    file_name = clean_file_name(file_name, timestamp)
    folder = folder.strip("/")
    if folder:
        return f"{folder}/{timestamp}_{file_name}"
    return f"uploads/{timestamp}_{file_name}"


def guess_content_type(file_name: str) -> str:
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or "application/octet-stream"
