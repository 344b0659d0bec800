from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_STORAGE_ROOT = PROJECT_ROOT / "storage"
DEFAULT_DB_PATH = DEFAULT_STORAGE_ROOT / "slidegen.db"


class Settings(BaseSettings):
    app_name: str = "Slide Generation API"
    api_prefix: str = "/v1"

    storage_root: Path = DEFAULT_STORAGE_ROOT
    database_url: str = f"sqlite:///{DEFAULT_DB_PATH.as_posix()}"
    redis_url: str = "redis://localhost:6379/0"
    renderer_url: str = "http://localhost:3001"
    frontend_origin: str = "http://localhost:3000"

    dispatch_mode: Literal["local", "celery"] = "local"
    worker_count: int = 4
    max_in_flight_jobs: int = 8
    stale_job_seconds: int = 900
    job_expiry_seconds: int = 300
    result_expiry_seconds: int = 3600
    cleanup_interval_seconds: int = 600
    max_upload_bytes: int = 10 * 1024 * 1024

    stream_heartbeat_seconds: float = 30.0
    stream_poll_seconds: float = 0.5
    subscriber_buffer_size: int = 10

    default_llm_provider: str = "mock"
    max_input_tokens: int = 16384
    max_output_tokens: int = 4096
    openai_api_key: str | None = None
    openai_model: str = "gpt-5-mini"
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-sonnet-4-20250514"

    marp_command: str = "npx @marp-team/marp-cli"
    renderer_theme_dir: Path = PROJECT_ROOT / "slidegen" / "renderer" / "themes"
    renderer_timeout_seconds: int = 180

    log_level: str = "INFO"
    suppress_job_poll_access_logs: bool = True
    suppress_httpx_info_logs: bool = True
    log_preview_chars: int = 180

    model_config = SettingsConfigDict(env_prefix="SLIDEGEN_", env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()

for folder in [
    settings.storage_root,
    settings.storage_root / "staging",
]:
    folder.mkdir(parents=True, exist_ok=True)
