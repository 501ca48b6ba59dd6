"""Prompt templates and the template registry."""

from storyscript.prompts.registry import TemplateRegistry
from storyscript.prompts.templates import (
    BUILTIN_TEMPLATES,
    DEFAULT_CAPTION_STYLES,
    SYSTEM_MESSAGE,
    TEMPLATE_VARIABLES,
    WRITER_PERSONAS,
    TemplateVariable,
)

__all__ = [
    "TemplateRegistry",
    "TemplateVariable",
    "TEMPLATE_VARIABLES",
    "BUILTIN_TEMPLATES",
    "DEFAULT_CAPTION_STYLES",
    "SYSTEM_MESSAGE",
    "WRITER_PERSONAS",
]
