import os
import sys
from typing import Any, Literal

import orjson
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

CONFIG_PATH = "config/config.yaml"
NOVELAI_API_URL = "https://image.novelai.net/ai/generate-image"


class ServerConfig(BaseModel):
    """Server configuration"""

    host: str = Field(default="0.0.0.0", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port number")


class CORSConfig(BaseModel):
    """CORS configuration"""

    enabled: bool = Field(default=True, description="Enable CORS support")
    allow_origins: list[str] = Field(
        default=["*"], description="List of allowed origins for CORS requests"
    )
    allow_credentials: bool = Field(default=True, description="Allow credentials in CORS requests")
    allow_methods: list[str] = Field(
        default=["*"], description="List of allowed HTTP methods for CORS requests"
    )
    allow_headers: list[str] = Field(
        default=["*"], description="List of allowed headers for CORS requests"
    )


class LoggingConfig(BaseModel):
    """Logging configuration"""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG",
        description="Logging level",
    )
    file: str | None = Field(
        default=None, description="Optional log file path, disabled when empty"
    )
    rotation: str = Field(default="10 MB", description="Rotation policy for the log file")
    retention: str = Field(default="7 days", description="Retention policy for rotated files")

    @field_validator("file", mode="before")
    @classmethod
    def _blank_file_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None


class NovelAIConfig(BaseModel):
    """Upstream image generation endpoint"""

    api_url: str = Field(default=NOVELAI_API_URL, description="Image generation endpoint")
    timeout: float | None = Field(
        default=None,
        gt=0,
        description="Transport timeout in seconds for the generation call, unset waits forever",
    )


class TranslationConfig(BaseModel):
    """Prompt translation service (OpenAI-compatible chat endpoint)"""

    enable: bool = Field(default=False, description="Translate prompts before generation")
    url: str = Field(default="", description="Base URL of the translation service")
    key: str = Field(default="", description="Bearer key for the translation service")
    model: str = Field(default="", description="Model used for translation")
    role: str = Field(default="", description="System prompt sent with every translation")


class StorageConfig(BaseModel):
    """Storage backend selection"""

    backend: str = Field(
        default="",
        description="One of tencent (tengxun), minio, alist or lsky",
    )
    folder: str = Field(default="nai-images", description="Folder generated images are stored in")


class TencentCOSConfig(BaseModel):
    """Tencent Cloud COS credentials"""

    secret_id: str = Field(default="")
    secret_key: str = Field(default="")
    region: str = Field(default="")
    bucket: str = Field(default="", description="Bucket name including the APPID suffix")
    base_url: str = Field(default="", description="Public base URL of the bucket")


class MinioConfig(BaseModel):
    """MinIO / S3-compatible server credentials"""

    endpoint: str = Field(default="")
    access_key_id: str = Field(default="")
    secret_access_key: str = Field(default="")
    bucket_name: str = Field(default="")
    use_ssl: bool = Field(default=False)
    base_url: str = Field(default="", description="Public base URL, endpoint is used when empty")


class AlistConfig(BaseModel):
    """Alist file manager credentials"""

    base_url: str = Field(default="")
    token: str = Field(default="", description="Static token, takes priority over login")
    path: str = Field(default="/uploads", description="Root path uploads are placed under")
    username: str = Field(default="")
    password: str = Field(default="")


class LskyConfig(BaseModel):
    """Lsky Pro image host credentials"""

    base_url: str = Field(default="")
    token: str = Field(default="")
    strategy_id: int = Field(default=0, ge=0, description="Storage strategy id, 0 uses the default")


class GenerationParameters(BaseModel):
    """Sampler, size and quality parameters forwarded to the provider.

    Values are passed through as-is, the provider is the one validating them.
    """

    params_version: int = 3
    width: int = 832
    height: int = 1216
    scale: float = 5.0
    sampler: str = "k_euler_ancestral"
    steps: int = 28
    n_samples: int = 1
    ucPreset: int = 0
    qualityToggle: bool = True
    sm: bool = False
    sm_dyn: bool = False
    dynamic_thresholding: bool = False
    controlnet_strength: float = 1
    legacy: bool = False
    add_original_image: bool = True
    cfg_rescale: float = 0
    noise_schedule: str = "karras"
    legacy_v3_extend: bool = False
    skip_cfg_above_sigma: float | None = None
    deliberate_euler_ancestral_bug: bool = False
    prefer_brownian: bool = True
    custom_anti_words: str = Field(
        default="lowres, bad anatomy, bad hands, text, error, missing fingers, worst quality",
        description="Global negative prompt",
    )
    autoSmea: bool = False
    use_coords: bool = False
    legacy_uc: bool = False
    normalize_reference_strength_multiple: bool = True
    inpaintImg2ImgStrength: float = 1
    use_new_shared_trial: bool = True


class Config(BaseSettings):
    """Application configuration"""

    # Server configuration
    server: ServerConfig = Field(default=ServerConfig(), description="Server host and port")

    # CORS configuration
    cors: CORSConfig = Field(
        default=CORSConfig(),
        description="CORS configuration, allows cross-origin requests",
    )

    novelai: NovelAIConfig = Field(default=NovelAIConfig(), description="Upstream provider")

    translation: TranslationConfig = Field(
        default=TranslationConfig(), description="Prompt translation service"
    )

    storage: StorageConfig = Field(
        default=StorageConfig(),
        description="Storage configuration, selects where generated images are uploaded",
    )
    tencent_cos: TencentCOSConfig = Field(default=TencentCOSConfig())
    minio: MinioConfig = Field(default=MinioConfig())
    alist: AlistConfig = Field(default=AlistConfig())
    lsky: LskyConfig = Field(default=LskyConfig())

    # Generation parameters shared by every request
    parameters: GenerationParameters = Field(
        default=GenerationParameters(), description="Generation parameters"
    )

    # Logging configuration
    logging: LoggingConfig = Field(
        default=LoggingConfig(),
        description="Logging configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="CONFIG_",
        env_nested_delimiter="__",
        nested_model_default_partial_update=True,
        yaml_file=os.getenv("CONFIG_PATH", CONFIG_PATH),
    )

    @field_validator("parameters", mode="before")
    @classmethod
    def _parse_parameters_json(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().startswith("{"):
            try:
                return orjson.loads(v)
            except orjson.JSONDecodeError as e:
                logger.warning(f"Failed to parse parameters JSON string: {e}")
                return v
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Read settings: init -> env -> yaml -> default"""
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls),
        )


def initialize_config() -> Config:
    """
    Initialize the configuration.

    Returns:
        Config: Configuration object
    """
    try:
        return Config()  # type: ignore
    except ValidationError as e:
        logger.error(f"Configuration validation failed: {e!s}")
        sys.exit(1)
