"""Core utilities and infrastructure."""

from .config import Settings, get_settings
from .validate import (
    ValidationError,
    ValidationResult,
    Framework,
    Styling,
    Interactivity,
    Theme,
    GenerationRequest,
    RenderRequest,
    validate_generation_payload,
)
from .logging_config import configure_logging, get_logger, LogContext
from .json import (
    extract_json,
    dumps,
    loads,
    JSONParseError,
    validate_json_depth,
)
from .hash import hash_string, hash_fields


def create_container(settings: Settings | None = None, storage=None):
    """Create dependency injection container (lazy import to avoid circular deps)."""
    from .container import create_container as _create_container

    return _create_container(settings, storage)


__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Validation
    "ValidationError",
    "ValidationResult",
    "Framework",
    "Styling",
    "Interactivity",
    "Theme",
    "GenerationRequest",
    "RenderRequest",
    "validate_generation_payload",
    # Logging
    "configure_logging",
    "get_logger",
    "LogContext",
    # JSON
    "extract_json",
    "dumps",
    "loads",
    "JSONParseError",
    "validate_json_depth",
    # DI
    "create_container",
    # Hashing
    "hash_string",
    "hash_fields",
]
