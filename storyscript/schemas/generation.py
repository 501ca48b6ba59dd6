"""Request, result and telemetry schemas for script generation."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storyscript.schemas.mulmoscript import GeneratedScript
from storyscript.schemas.prompt import FixedScene, StylePreference, utc_now_iso


class Story(BaseModel):
    """User-supplied story to convert into a script."""

    id: str = Field(..., description="Story identifier")
    title: str = Field("", description="Story title")
    text: str = Field("", description="Raw story text")


class GenerationOptions(BaseModel):
    """Per-call generation options. Unset values fall back to configuration."""

    template_id: Optional[str] = None
    target_duration_sec: float = Field(20, gt=0)
    style_preference: StylePreference = "dramatic"
    language: str = "ja"
    beat_count: int = Field(5, ge=1, le=20)
    max_retries: Optional[int] = Field(None, ge=0)
    enable_captions: bool = False
    caption_styles: Optional[List[str]] = None
    fixed_scenes: Optional[List[FixedScene]] = None

    @field_validator("fixed_scenes")
    @classmethod
    def validate_fixed_scenes(cls, v: Optional[List[FixedScene]]) -> Optional[List[FixedScene]]:
        """Ensure fixed scenes fit the beat bounds."""
        if v is not None and len(v) > 20:
            raise ValueError(f"at most 20 fixed scenes are allowed, got {len(v)}")
        return v or None

    @property
    def effective_beat_count(self) -> int:
        """Beat count, constrained by fixed scenes when present."""
        if self.fixed_scenes:
            return len(self.fixed_scenes)
        return self.beat_count


class GenerationMetadata(BaseModel):
    """Attempt telemetry returned alongside a generation result."""

    template_id: str
    input_tokens: int = 0
    output_tokens: int = 0
    response_time_ms: float = 0.0
    prompt_hash: str = ""
    model_used: str
    retry_count: int = 0


class GenerationResult(BaseModel):
    """Outcome of one call to the completion service path."""

    success: bool
    script: Optional[GeneratedScript] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: GenerationMetadata


class FallbackResult(BaseModel):
    """Script returned by ``generate_with_fallback``."""

    script: GeneratedScript
    generated_by_service: bool


class PerformanceLogEntry(BaseModel):
    """Immutable record of one generation outcome."""

    model_config = ConfigDict(frozen=True)

    template_id: str
    prompt_hash: str
    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)
    response_time_ms: float = Field(0.0, ge=0.0)
    success: bool
    generated_script_valid: bool
    error_message: Optional[str] = None
    timestamp: str = Field(default_factory=utc_now_iso)

    @property
    def succeeded(self) -> bool:
        """True when the call succeeded and produced a valid script."""
        return self.success and self.generated_script_valid
