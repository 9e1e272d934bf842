from datetime import timedelta
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docgate.features.convert.domain.entities import normalize_image_format
from docgate.shared.exceptions import BadRequestError


DEFAULT_VLM_PROMPT = (
    "Extract all text from this image accurately. "
    "Return only the extracted text without any additional explanation."
)
DEFAULT_EMBEDDED_IMAGE_PROMPT = (
    "This is an embedded image from a document. "
    "Extract and describe all text, diagrams, charts, or visual content. "
    "Format the output as markdown."
)

MIB = 1024 * 1024


class ConverterSettings(BaseModel):
    """Office daemon (unoserver) connection."""

    host: str = "127.0.0.1"
    port: int = 2003
    timeout: timedelta = timedelta(minutes=2)
    max_buffer_size: int = 64 * MIB


class RasterizerSettings(BaseModel):
    """Poppler command line tools used for page rendering."""

    pdfinfo_path: str = "pdfinfo"
    pdftoppm_path: str = "pdftoppm"
    page_count_timeout: timedelta = timedelta(seconds=30)
    page_timeout: timedelta = timedelta(seconds=60)


class ExtractorSettings(BaseModel):
    """Generic text extraction, only used when no parser back-end is configured."""

    tika_server_endpoint: Optional[str] = None
    timeout: timedelta = timedelta(minutes=2)


class DoclingSettings(BaseModel):
    base_urls: List[str] = Field(default_factory=list)
    timeout: timedelta = timedelta(minutes=5)
    max_buffer_size: int = 16 * MIB

    @field_validator("base_urls")
    @classmethod
    def drop_blank_urls(cls, value: List[str]) -> List[str]:
        return [url.strip() for url in value if url and url.strip()]

    @property
    def configured(self) -> bool:
        return bool(self.base_urls)


class VLMServer(BaseModel):
    base_url: str
    model: str
    api_key: Optional[str] = None


class VLMSettings(BaseModel):
    servers: List[VLMServer] = Field(default_factory=list)
    timeout: timedelta = timedelta(minutes=2)
    max_buffer_size: int = 16 * MIB
    max_tokens: int = 4096
    temperature: float = 0.01
    default_prompt: str = DEFAULT_VLM_PROMPT
    embedded_image_prompt: str = DEFAULT_EMBEDDED_IMAGE_PROMPT
    image_format: str = "png"

    @field_validator("image_format")
    @classmethod
    def check_image_format(cls, value: str) -> str:
        try:
            normalize_image_format(value)
        except BadRequestError as e:
            raise ValueError(e.message) from e
        return value.strip().lower()

    @field_validator("servers")
    @classmethod
    def drop_blank_servers(cls, value: List[VLMServer]) -> List[VLMServer]:
        return [server for server in value if server.base_url and server.base_url.strip()]

    @property
    def configured(self) -> bool:
        return bool(self.servers)


class ParserSettings(BaseModel):
    docling: DoclingSettings = Field(default_factory=DoclingSettings)
    vlm: VLMSettings = Field(default_factory=VLMSettings)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    api_prefix: str = "/api"

    # Uploads
    max_upload_size_mb: int = 100

    # Back-ends
    converter: ConverterSettings = Field(default_factory=ConverterSettings)
    rasterizer: RasterizerSettings = Field(default_factory=RasterizerSettings)
    extractor: ExtractorSettings = Field(default_factory=ExtractorSettings)
    parser: ParserSettings = Field(default_factory=ParserSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()


# Global settings instance
settings = get_settings()
