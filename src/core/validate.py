"""Input validation with strong typing."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from returns.result import Failure, Result, Success

from .json import JSONParseError, dumps, validate_json_depth


# Validation limits
MAX_PROMPT_LENGTH = 2000
MAX_CODE_SIZE = 256 * 1024  # 256KB
MAX_PAYLOAD_SIZE = 512 * 1024  # 512KB
MAX_JSON_DEPTH = 32

_UNSAFE_PROMPT = re.compile(r"[<>]|javascript:", re.IGNORECASE)


class ValidationError(Exception):
    """Validation failed."""

    pass


@dataclass(frozen=True)
class ValidationResult:
    """Validation error with details (for Result pattern)."""

    message: str
    field: str | None = None


class Framework(str, Enum):
    REACT = "react"
    VUE = "vue"
    SVELTE = "svelte"


class Styling(str, Enum):
    TAILWIND = "tailwindcss"
    CSS = "css"
    STYLED_COMPONENTS = "styled-components"


class Interactivity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Theme(str, Enum):
    DEFAULT = "default"
    MODERN = "modern"
    MINIMALIST = "minimalist"


class RequestValidator(BaseModel):
    """Base validator with strict configuration."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid", frozen=True)


class GenerationRequest(RequestValidator):
    """Validated text-to-UI generation request."""

    prompt: str = Field(min_length=1, max_length=MAX_PROMPT_LENGTH)
    framework: Framework = Framework.REACT
    styling: Styling = Styling.TAILWIND
    interactivity: Interactivity = Interactivity.MEDIUM
    theme: Theme = Theme.DEFAULT

    @field_validator("prompt")
    @classmethod
    def sanitize_prompt(cls, v: str) -> str:
        """Strip markup and script URLs; reject empty prompts."""
        cleaned = _UNSAFE_PROMPT.sub("", v).strip()
        if not cleaned:
            raise ValueError("Prompt cannot be empty")
        return cleaned


class RenderRequest(RequestValidator):
    """Validated sandbox render request."""

    code: str = Field(min_length=1, max_length=MAX_CODE_SIZE)
    framework: Framework = Framework.REACT

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Code cannot be empty")
        return v


def validate_generation_payload(payload: Any) -> Result[dict[str, Any], ValidationResult]:
    """
    Validate a generation provider reply before it is ingested.

    Expects ``{"components": [...], "layout": {...}, "componentDetails": {...}}``;
    ``components`` is optional, the other two are required mappings.
    """
    if not isinstance(payload, dict):
        return Failure(ValidationResult("Generation payload must be an object"))

    for key in ("layout", "componentDetails"):
        if key not in payload:
            return Failure(ValidationResult(f"Generation payload missing '{key}'", field=key))
        if not isinstance(payload[key], dict):
            return Failure(ValidationResult(f"Generation payload '{key}' must be an object", field=key))

    if "components" in payload and not isinstance(payload["components"], list):
        return Failure(ValidationResult("Generation payload 'components' must be a list", field="components"))

    try:
        if len(dumps(payload)) > MAX_PAYLOAD_SIZE:
            return Failure(ValidationResult(f"Generation payload exceeds {MAX_PAYLOAD_SIZE} bytes"))
        validate_json_depth(payload, MAX_JSON_DEPTH)
    except (JSONParseError, TypeError) as e:
        return Failure(ValidationResult(str(e)))

    return Success(payload)
