import io
import zipfile

from loguru import logger

ZIP_MAGIC = b"PK"
MIN_ARCHIVE_LENGTH = 4
IMAGE_ENTRY_NAME = "image_0.png"


class ArchiveError(Exception):
    """The provider response could not be read as an archive."""


class ImageNotFoundError(ArchiveError):
    """The archive was valid but held no generated image."""


def extract_image(data: bytes, entry_name: str = IMAGE_ENTRY_NAME) -> bytes:
    """Return the bytes of ``entry_name`` from a zip archive returned by the provider."""
    if len(data) < MIN_ARCHIVE_LENGTH:
        logger.warning(f"Response too short to be a ZIP file: {len(data)} bytes")
        raise ArchiveError(f"Response too short to be an archive: {len(data)} bytes")

    if data[:2] != ZIP_MAGIC:
        logger.warning(f"Response is not a ZIP file. First 100 bytes: {data[:100]!r}")
        raise ArchiveError("Response is not an archive")

    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            for info in archive.infolist():
                if info.filename == entry_name:
                    image = archive.read(info)
                    logger.debug(f"Extracted {entry_name} from archive, {len(image)} bytes")
                    return image
    except zipfile.BadZipFile as e:
        logger.warning(f"Failed to read ZIP archive: {e}. First 200 bytes: {data[:200]!r}")
        raise ArchiveError(f"Failed to read archive: {e}") from e

    raise ImageNotFoundError(f"Upstream returned no image: {entry_name} missing from archive")
