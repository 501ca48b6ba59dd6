"""Prompt template and prompt context schemas."""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")

StylePreference = Literal["dramatic", "comedic", "adventure", "romantic", "mystery"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TemplateMetadata(BaseModel):
    """Mutable bookkeeping for a prompt template."""

    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)
    usage_count: int = Field(0, ge=0)
    success_rate: float = Field(0.0, ge=0.0, le=1.0)


class PromptTemplate(BaseModel):
    """Versioned prompt text with ``{{variable}}`` placeholders."""

    id: str = Field(..., description="Stable template identifier")
    name: str = Field(..., description="Human-readable template name")
    description: str = Field("", description="What the template produces")
    version: str = Field(..., description="Template version tag")
    content: str = Field(..., description="Template body with {{variable}} placeholders")
    variables: List[str] = Field(
        default_factory=list,
        description="Ordered variable names the template references"
    )
    metadata: TemplateMetadata = Field(default_factory=TemplateMetadata)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Ensure id is not empty."""
        if not v or not v.strip():
            raise ValueError("template id cannot be empty")
        return v

    @model_validator(mode="after")
    def derive_variables(self) -> "PromptTemplate":
        """Fill ``variables`` from the placeholders in ``content`` when not declared."""
        if not self.variables:
            self.variables = self.placeholders()
        return self

    def placeholders(self) -> List[str]:
        """Return the distinct placeholder names in ``content``, in order."""
        names: List[str] = []
        for name in PLACEHOLDER_PATTERN.findall(self.content):
            if name not in names:
                names.append(name)
        return names


class FixedScene(BaseModel):
    """Externally fixed scene heading that constrains beat order."""

    number: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)


class PromptContext(BaseModel):
    """Values substituted into a template for one generation call.

    ``story_title`` and ``story_text`` are required by the compiler; every
    other field has a default.
    """

    story_title: Optional[str] = None
    story_text: Optional[str] = None
    target_duration: float = Field(20, gt=0)
    style_preference: StylePreference = "dramatic"
    language: str = "ja"
    beats: int = Field(5, ge=1, le=20)
    voice_count: int = Field(3, ge=1)
    enable_captions: bool = False
    caption_styles: Optional[List[str]] = None
    fixed_scenes: Optional[List[FixedScene]] = None


class PromptGenerationResult(BaseModel):
    """Compiled prompt plus derived metadata."""

    prompt: str
    template_id: str
    context: PromptContext
    timestamp: str = Field(default_factory=utc_now_iso)
    estimated_tokens: int = Field(..., ge=0)
    prompt_hash: str
    unresolved_variables: List[str] = Field(default_factory=list)

    def to_messages(self, system_message: str) -> List[Dict[str, Any]]:
        """Build the two-message chat request for this prompt."""
        return [
            {"role": "system", "content": system_message},
            {"role": "user", "content": self.prompt},
        ]
