from .archive import ArchiveError, ImageNotFoundError, extract_image
from .emitter import FailedImage, ImageReference, ResponseEmitter, Surface, UploadedImage
from .generation import GenerationPipeline
from .normalizer import NormalizedPrompt, PromptNormalizer
from .payload import ModelRoute, SchemaVersion, resolve_model
from .provider import NovelAIClient, ProviderError
from .translator import Translator
from .uploader import Uploader, UploaderConfigError, UploadResult, create_uploader

__all__ = [
    "ArchiveError",
    "FailedImage",
    "GenerationPipeline",
    "ImageNotFoundError",
    "ImageReference",
    "ModelRoute",
    "NormalizedPrompt",
    "NovelAIClient",
    "PromptNormalizer",
    "ProviderError",
    "ResponseEmitter",
    "SchemaVersion",
    "Surface",
    "Translator",
    "UploadResult",
    "UploadedImage",
    "Uploader",
    "UploaderConfigError",
    "create_uploader",
    "extract_image",
    "resolve_model",
]
