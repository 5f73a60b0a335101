"""Handlers for render and generation requests."""

from .render import RenderHandler, RenderOutcome, GenerateOutcome

__all__ = ["RenderHandler", "RenderOutcome", "GenerateOutcome"]
