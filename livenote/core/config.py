"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """LiveNote application settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        capture_source: Where live audio comes from ("microphone" or "push").
        segment_duration_seconds: Length of each transcription segment.
        stt_provider: Transcription backend ("openai" for the HTTP API, "local"
            for faster-whisper).
        llm_provider: Summarization backend ("claude" or "ollama").
        database_url: Async SQLAlchemy connection string for SQLite.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Audio capture ---
    # "microphone" records through sounddevice, "push" expects PCM over /ws/audio
    capture_source: str = "microphone"
    input_device: str = ""  # Substring of the preferred input device name
    sample_rate: int = 16000
    channels: int = 1
    segment_duration_seconds: float = 3.0

    # --- Transcription ---
    stt_provider: str = "openai"
    stt_api_key: str = ""  # Required when stt_provider="openai"
    stt_base_url: str = "https://api.openai.com/v1"
    stt_model: str = "gpt-4o-transcribe"
    stt_timeout_seconds: float = 30.0
    whisper_model: str = "base"  # Model size for stt_provider="local"
    transcription_language: str = ""  # Empty = auto-detect; ISO 639-1 code e.g. "zh", "en"

    # --- Summarization ---
    llm_provider: str = "claude"
    claude_api_key: str = ""  # Required when llm_provider="claude"
    claude_model: str = "claude-sonnet-4-20250514"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"

    # --- Application ---
    app_host: str = "127.0.0.1"
    app_port: int = 8000
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8081"]

    # --- Storage ---
    # Paths are relative to the project root; absolute paths also supported
    database_url: str = "sqlite+aiosqlite:///data/livenote.db"
    recordings_dir: str = "data/recordings"  # Master recordings and segment WAVs


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
