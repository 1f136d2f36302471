import sys

from loguru import logger

from .config import LoggingConfig

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(config: LoggingConfig) -> None:
    """Replace loguru's default sink with the configured stderr and file sinks."""
    logger.remove()
    logger.add(sys.stderr, level=config.level, format=LOG_FORMAT)
    if config.file:
        logger.add(
            config.file,
            level=config.level,
            rotation=config.rotation,
            retention=config.retention,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}",
        )
