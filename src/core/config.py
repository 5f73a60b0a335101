"""Configuration Management."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings from environment."""

    model_config = SettingsConfigDict(
        env_prefix="ARTIFACT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    # Server
    host: str = Field(default="0.0.0.0", description="HTTP bind address")
    port: int = Field(default=8000, gt=0, description="HTTP port")

    # Sandbox
    sandbox_timeout_ms: int = Field(default=5000, gt=0, description="Render deadline (ms)")
    sandbox_command: list[str] = Field(
        default_factory=list,
        description="Worker command; empty means the bundled Python worker",
    )
    sandbox_start_timeout: float = Field(default=10.0, gt=0, description="Worker ready deadline (s)")
    sandbox_max_code_size: int = Field(default=256 * 1024, gt=0, description="Max code bytes")

    # Rendering
    enable_render_cache: bool = Field(default=True, description="Cache render results by code hash")
    render_cache_size: int = Field(default=64, gt=0, description="Render cache max size")
    render_cache_ttl: int = Field(default=900, gt=0, description="Render cache TTL (seconds)")
    snapshot_on_render: bool = Field(default=False, description="Save a version after each render")

    # Canvas
    snap_to_grid: bool = Field(default=False, description="Snap moved nodes to grid")
    grid_size: int = Field(default=20, gt=0, description="Grid size in canvas units")
    handle_margin: float = Field(default=4.0, ge=0.0, description="Resize handle outward offset")
    rotation_handle_offset: float = Field(default=10.0, ge=0.0, description="Rotation handle offset")

    # Persistence
    storage_dir: Path = Field(default=Path(".artifact-data"), description="Key-value store directory")
    storage_quota_bytes: int = Field(default=5 * 1024 * 1024, gt=0, description="Per-key size quota")
    autosave_delay: float = Field(default=2.0, ge=0.0, description="Auto-save debounce (seconds)")

    # Collaborators
    generation_url: str = Field(default="http://localhost:3000/api/generate", description="Generation provider URL")
    generation_timeout: float = Field(default=60.0, gt=0, description="Generation request timeout")
    deployment_url: str = Field(default="http://localhost:3000/api/deploy", description="Deployment service URL")
    deployment_timeout: float = Field(default=30.0, gt=0, description="Deployment request timeout")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    json_logs: bool = Field(default=False, description="Use JSON log format")

    # Validation
    max_prompt_length: int = Field(default=2000, gt=0, description="Max prompt length")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
