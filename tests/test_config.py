from media_service.config import MEGABYTE, Settings, UploadConfig, settings


class TestConfigDefaults:
    def test_app_name(self) -> None:
        assert settings.app_name == "media-service"

    def test_debug_default(self) -> None:
        s = Settings()
        assert s.debug is False

    def test_port_default(self) -> None:
        assert Settings().port == 8000

    def test_log_level_default(self) -> None:
        assert Settings().log_level == "info"

    def test_cors_origins_default(self) -> None:
        assert Settings().cors_origins == ["*"]

    def test_cloudinary_api_base(self) -> None:
        assert Settings().cloudinary_api_base == "https://api.cloudinary.com"

    def test_retry_defaults(self) -> None:
        s = Settings()
        assert s.upload_max_retries == 3
        assert s.upload_retry_delay == 5.0

    def test_thresholds(self) -> None:
        s = Settings()
        assert s.large_image_threshold == 5 * MEGABYTE
        assert s.optimization_threshold == 1 * MEGABYTE

    def test_image_defaults(self) -> None:
        s = Settings()
        assert (s.image_max_width, s.image_max_height, s.image_quality, s.image_format) == (1920, 1080, 85, "jpeg")

    def test_env_override(self, monkeypatch) -> None:  # type: ignore[no-untyped-def]
        monkeypatch.setenv("UPLOAD_MAX_RETRIES", "5")
        monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "edu")
        s = Settings()
        assert s.upload_max_retries == 5
        assert s.cloudinary_cloud_name == "edu"


class TestUploadConfig:
    def test_defaults(self) -> None:
        config = UploadConfig()
        assert config.max_retries == 3
        assert config.retry_delay == 5.0
        assert config.default_quality == "auto:good"
        assert config.constraints.max_width == 1920

    def test_from_settings(self) -> None:
        s = Settings(upload_retry_delay=0.0, image_max_height=720, image_quality=70)
        config = UploadConfig.from_settings(s)
        assert config.retry_delay == 0.0
        assert config.constraints.max_height == 720
        assert config.constraints.quality == 70
