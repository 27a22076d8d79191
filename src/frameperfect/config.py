from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # AI provider: gateway (OpenAI-compatible chat completions) | gemini (generateContent)
    ai_provider: str = "gateway"

    # Gateway configuration
    gateway_api_key: str = ""
    gateway_base_url: str = "https://ai.gateway.lovable.dev/v1"
    gateway_analysis_model: str = "google/gemini-2.5-flash"
    gateway_image_model: str = "google/gemini-2.5-flash-image-preview"

    # Gemini configuration
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_analysis_model: str = "gemini-2.5-flash"
    gemini_image_model: str = "gemini-2.5-flash-image"

    # Shared AI call settings
    ai_timeout: float = 120.0
    ai_max_attempts: int = 3  # total attempts, only rate-limited calls are retried
    ai_retry_delay: float = 1.0  # first retry delay (seconds), doubles afterwards
    analysis_temperature: float = 0.4
    enhancement_temperature: float = 0.7
    category_temperature: float = 0.3

    # Scan defaults
    default_scan_range: str = "full"
    default_scan_interval: float = 2.0
    sampler_epsilon: float = 0.1  # keep seeks off the exact end of media
    clustering_delay_s: float = 1.0
    scan_timeout_seconds: int = 3600

    # Frame grabbing (ffmpeg)
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    frame_quality: int = 3  # mjpeg -q:v, 2 (best) .. 31

    # Curation
    max_batch_size: int = 10
    category_sample_size: int = 5
    max_notifications: int = 50

    # Storage
    data_dir: Path = Path("./data")
    upload_dir: Path = Path("./uploads")
    max_upload_size_mb: int = 2048
    video_extensions: str = ".mp4,.avi,.mov,.mkv,.webm,.m4v"

    # CORS
    cors_origins: list[str] = ["http://localhost:5173"]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


settings = Settings()
