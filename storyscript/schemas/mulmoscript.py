"""Mulmoscript schema: the generated multi-speaker video script.

The wire format uses camelCase keys and a ``$mulmocast`` version marker.
Fields are snake_case in Python and aliased to their wire names.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model that reads and writes camelCase wire keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MulmocastHeader(WireModel):
    """Format marker carried under the ``$mulmocast`` key."""

    version: Literal["1.0"] = Field(..., description="Mulmocast format version")
    credit: Optional[Literal["closing"]] = Field(
        None,
        description="Optional credit placement"
    )


class SpeakerData(WireModel):
    """Voice selection and localized display names for one speaker."""

    voice_id: str = Field(..., description="TTS voice identifier")
    display_name: Optional[Dict[str, str]] = Field(
        None,
        description="Display name keyed by language tag"
    )


class SpeechParams(WireModel):
    """Speech provider and the speaker roster."""

    provider: Literal["openai", "nijivoice", "google", "elevenlabs"] = Field(
        "openai",
        description="TTS provider"
    )
    speakers: Dict[str, SpeakerData] = Field(
        ...,
        description="Speaker roster keyed by speaker id"
    )


class ImageParams(WireModel):
    """Image generation directives shared by every beat."""

    provider: Optional[Literal["openai", "google"]] = None
    model: Optional[str] = None
    style: Optional[str] = None
    quality: Optional[str] = None


class CanvasSize(WireModel):
    """Output canvas dimensions in pixels."""

    width: float = 1280
    height: float = 720


class BgmSource(WireModel):
    """Background music reference."""

    kind: Literal["url"]
    url: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        parsed = urlparse(v)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"bgm url must be an absolute http(s) URL, got '{v}'")
        return v


class AudioParams(WireModel):
    """Audio mixing parameters."""

    padding: float = 0.3
    intro_padding: float = 1.0
    closing_padding: float = 0.8
    outro_padding: float = 1.0
    bgm_volume: float = 0.2
    audio_volume: float = 1.0
    bgm: Optional[BgmSource] = None


class CaptionParams(WireModel):
    """Caption language and CSS-like style declarations."""

    lang: str = "ja"
    styles: List[str] = Field(default_factory=list)


class TextSlide(WireModel):
    title: str
    subtitle: Optional[str] = None
    bullets: Optional[List[str]] = None


class TextSlideAsset(WireModel):
    """Beat visual rendered as a text slide."""

    type: Literal["textSlide"]
    slide: TextSlide


class ImageSource(WireModel):
    kind: Literal["url", "path", "base64", "text"]
    url: Optional[str] = None
    path: Optional[str] = None
    data: Optional[str] = None
    text: Optional[str] = None


class ImageAsset(WireModel):
    """Beat visual taken from an existing image."""

    type: Literal["image"]
    source: ImageSource


class Beat(WireModel):
    """One spoken line attributed to one speaker."""

    speaker: str = Field("Presenter", description="Speaker id from the roster")
    text: str = Field("", description="Spoken text")
    id: Optional[str] = None
    description: Optional[str] = None
    image: Optional[
        Annotated[Union[TextSlideAsset, ImageAsset], Field(discriminator="type")]
    ] = None
    image_prompt: Optional[str] = Field(None, description="Image direction for this beat")
    duration: Optional[float] = Field(None, description="Explicit duration in seconds")
    caption_params: Optional[CaptionParams] = None


class GeneratedScript(WireModel):
    """
    Complete mulmoscript consumed by the rendering pipeline.

    Beats are kept in narrative order. Every beat speaker must be declared
    in ``speech_params.speakers``.
    """

    mulmocast: MulmocastHeader = Field(..., alias="$mulmocast")
    title: Optional[str] = None
    description: Optional[str] = None
    lang: str = "en"
    canvas_size: Optional[CanvasSize] = None
    speech_params: SpeechParams
    image_params: Optional[ImageParams] = None
    audio_params: Optional[AudioParams] = None
    caption_params: Optional[CaptionParams] = None
    beats: List[Beat] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_beat_speakers(self) -> "GeneratedScript":
        """Ensure every beat speaker is a key of the speaker roster."""
        roster = self.speech_params.speakers
        undeclared = [
            f"beats[{index}].speaker '{beat.speaker}'"
            for index, beat in enumerate(self.beats)
            if beat.speaker not in roster
        ]
        if undeclared:
            raise ValueError(
                f"Beat speakers not declared in speechParams.speakers: {', '.join(undeclared)}"
            )
        return self

    def to_wire(self) -> Dict[str, Any]:
        """Return the camelCase wire representation with unset optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "GeneratedScript":
        return cls.model_validate(data)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "$mulmocast": {"version": "1.0"},
                "title": "Cafe Dream",
                "lang": "ja",
                "speechParams": {
                    "provider": "openai",
                    "speakers": {
                        "Narrator": {
                            "voiceId": "shimmer",
                            "displayName": {"ja": "語り手", "en": "Narrator"}
                        }
                    }
                },
                "imageParams": {"style": "Ghibli style anime, soft pastel colors"},
                "beats": [
                    {
                        "speaker": "Narrator",
                        "text": "A small cafe opens its doors at dawn...",
                        "imagePrompt": "Warm cafe interior at sunrise"
                    }
                ]
            }
        }
    )
