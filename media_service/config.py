from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from media_service.schemas.media import ImageConstraints

MEGABYTE = 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_name: str = "media-service"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"
    cors_origins: list[str] = ["*"]

    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_api_base: str = "https://api.cloudinary.com"
    upload_timeout: float = 120.0

    upload_max_retries: int = 3
    upload_retry_delay: float = 5.0
    large_image_threshold: int = 5 * MEGABYTE
    optimization_threshold: int = 1 * MEGABYTE
    oversize_warning_threshold: int = 100 * MEGABYTE

    image_max_width: int = 1920
    image_max_height: int = 1080
    image_quality: int = 85
    image_format: str = "jpeg"


class UploadConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=5.0, ge=0)
    large_image_threshold: int = 5 * MEGABYTE
    optimization_threshold: int = 1 * MEGABYTE
    oversize_warning_threshold: int = 100 * MEGABYTE
    default_quality: str = "auto:good"
    constraints: ImageConstraints = ImageConstraints()

    @classmethod
    def from_settings(cls, s: Settings) -> "UploadConfig":
        return cls(
            max_retries=s.upload_max_retries,
            retry_delay=s.upload_retry_delay,
            large_image_threshold=s.large_image_threshold,
            optimization_threshold=s.optimization_threshold,
            oversize_warning_threshold=s.oversize_warning_threshold,
            constraints=ImageConstraints(
                max_width=s.image_max_width,
                max_height=s.image_max_height,
                quality=s.image_quality,
                output_format=s.image_format,
            ),
        )


settings = Settings()
