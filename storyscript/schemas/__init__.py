"""Pydantic schemas for data contracts between agents."""

from storyscript.schemas.generation import (
    FallbackResult,
    GenerationMetadata,
    GenerationOptions,
    GenerationResult,
    PerformanceLogEntry,
    Story,
)
from storyscript.schemas.mulmoscript import (
    AudioParams,
    Beat,
    BgmSource,
    CanvasSize,
    CaptionParams,
    GeneratedScript,
    ImageAsset,
    ImageParams,
    MulmocastHeader,
    SpeakerData,
    SpeechParams,
    TextSlideAsset,
)
from storyscript.schemas.prompt import (
    FixedScene,
    PromptContext,
    PromptGenerationResult,
    PromptTemplate,
    TemplateMetadata,
)

__all__ = [
    # Mulmoscript
    "MulmocastHeader",
    "SpeakerData",
    "SpeechParams",
    "ImageParams",
    "CanvasSize",
    "BgmSource",
    "AudioParams",
    "CaptionParams",
    "TextSlideAsset",
    "ImageAsset",
    "Beat",
    "GeneratedScript",
    # Prompt
    "TemplateMetadata",
    "PromptTemplate",
    "FixedScene",
    "PromptContext",
    "PromptGenerationResult",
    # Generation
    "Story",
    "GenerationOptions",
    "GenerationMetadata",
    "GenerationResult",
    "FallbackResult",
    "PerformanceLogEntry",
]
