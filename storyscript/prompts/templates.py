"""Built-in prompt templates and the typed template variable map.

Every placeholder a template may use is declared once in
``TEMPLATE_VARIABLES`` as either required or defaulted. Templates that
declare a variable missing from this map are rejected at registration.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from storyscript.schemas.prompt import PromptTemplate, TemplateMetadata


@dataclass(frozen=True)
class TemplateVariable:
    """Declaration of one template placeholder.

    Attributes:
        name: Placeholder name as written between ``{{`` and ``}}``
        required: Whether compilation fails when the value is absent
        default: Value substituted when the context leaves it unset
        description: What the variable carries
    """
    name: str
    required: bool = False
    default: Any = None
    description: str = ""


TEMPLATE_VARIABLES: Dict[str, TemplateVariable] = {
    variable.name: variable
    for variable in (
        TemplateVariable("story_title", required=True, description="Story title"),
        TemplateVariable("story_text", required=True, description="Raw story text"),
        TemplateVariable("target_duration", default=20, description="Target video length in seconds"),
        TemplateVariable("style_preference", default="dramatic", description="Narrative style"),
        TemplateVariable("language", default="ja", description="Script language tag"),
        TemplateVariable("beats", default=5, description="Number of beats to write"),
        TemplateVariable("voice_count", default=3, description="Maximum distinct speakers"),
        TemplateVariable("caption_instructions", default="", description="Caption fragment, empty when captions are off"),
        TemplateVariable("scene_titles", default="", description="Fixed scene headings fragment, empty when none"),
    )
}

REQUIRED_VARIABLES: List[str] = [
    name for name, variable in TEMPLATE_VARIABLES.items() if variable.required
]

# Used when captions are requested without explicit styles.
DEFAULT_CAPTION_STYLES: List[str] = [
    "font-size: 48px",
    "color: white",
    "text-shadow: 2px 2px 4px rgba(0,0,0,0.8)",
    "font-family: 'Noto Sans JP', sans-serif",
    "font-weight: bold",
]

SYSTEM_MESSAGE = (
    "You are an expert storyteller and video script writer. You convert user "
    "stories into structured mulmoscript documents for video generation. "
    "Always respond with a single valid JSON object and nothing else."
)

_BUILTIN_CREATED_AT = "2024-01-01T00:00:00+00:00"

_OUTPUT_SKELETON = """```json
{
  "$mulmocast": {
    "version": "1.0"
  },
  "title": "{{story_title}}",
  "lang": "{{language}}",
  "speechParams": {
    "provider": "openai",
    "speakers": {
      "Narrator": {
        "voiceId": "shimmer",
        "displayName": {"en": "Narrator", "ja": "語り手"}
      },
      "Character": {
        "voiceId": "alloy",
        "displayName": {"en": "Main Character", "ja": "主人公"}
      }
    }
  },
  "imageParams": {
    "style": "{{style_preference}} style, cinematic, high quality, detailed"
  },
  "beats": [
    {
      "speaker": "Narrator",
      "text": "Opening narration that sets the scene...",
      "imagePrompt": "Visual description for this beat"
    },
    {
      "speaker": "Character",
      "text": "Dialogue that reveals what the character wants...",
      "imagePrompt": "Visual description for this beat"
    }
  ]
}
```"""

BASE_TEMPLATE = PromptTemplate(
    id="base_mulmoscript_v1",
    name="Base Mulmoscript Generator",
    description="Converts a story into a mulmoscript with a fixed beat count",
    version="v2.0",
    content=f"""You are an expert storyteller and video script writer. Convert the user story below into a mulmoscript for video generation.

## Input Story
Title: "{{{{story_title}}}}"
Content: {{{{story_text}}}}

## Requirements
- Write exactly {{{{beats}}}} beats that tell a complete story
- Target total duration: approximately {{{{target_duration}}}} seconds
- Language: {{{{language}}}}
- Style: {{{{style_preference}}}}
- Every beat speaker must be declared in speechParams.speakers
{{{{scene_titles}}}}{{{{caption_instructions}}}}
## Output Format
Respond with a single JSON object in this format:

{_OUTPUT_SKELETON}

Convert the story now:""",
    variables=[
        "story_title", "story_text", "beats", "target_duration",
        "language", "style_preference", "scene_titles", "caption_instructions",
    ],
    metadata=TemplateMetadata(created_at=_BUILTIN_CREATED_AT, updated_at=_BUILTIN_CREATED_AT),
)

ENHANCED_TEMPLATE = PromptTemplate(
    id="enhanced_mulmoscript_v1",
    name="Enhanced Mulmoscript Generator",
    description="Cinematic converter with a speaker guide and detailed image directions",
    version="v2.0",
    content=f"""You are a master storyteller who writes compelling short-form video scripts. Transform the story below into a cinematic mulmoscript.

## Story Analysis
Title: "{{{{story_title}}}}"
Content: {{{{story_text}}}}
Preferred Style: {{{{style_preference}}}}
Target Language: {{{{language}}}}

## Creative Direction
Create a {{{{target_duration}}}}-second video that:
- Captures the essence and emotion of the original story
- Varies pacing and speakers for visual interest
- Follows a clear arc of setup, development and resolution

## Technical Specifications
- Exactly {{{{beats}}}} beats, in narrative order
- Total duration: ~{{{{target_duration}}}} seconds
- At most {{{{voice_count}}}} different speakers
- Every beat speaker must be a key of speechParams.speakers
- Every beat needs meaningful text and a detailed imagePrompt
{{{{scene_titles}}}}{{{{caption_instructions}}}}
## Speaker Guide
- **Narrator**: authoritative, clear storytelling voice
- **Character**: the protagonist, wide emotional range
- **WiseCharacter**: mentor figure, thoughtful delivery
- **Child**: innocent, curious, high energy
- **Elder**: experienced, measured, contemplative

## Response Format
Respond with ONLY the JSON mulmoscript:

{_OUTPUT_SKELETON}

Generate the mulmoscript:""",
    variables=[
        "story_title", "story_text", "style_preference", "language",
        "target_duration", "beats", "voice_count", "scene_titles", "caption_instructions",
    ],
    metadata=TemplateMetadata(created_at=_BUILTIN_CREATED_AT, updated_at=_BUILTIN_CREATED_AT),
)

SHAKESPEARE_TEMPLATE = PromptTemplate(
    id="shakespeare_mulmoscript_v1",
    name="Theatrical Mulmoscript Generator",
    description="Stages the story as a short Shakespearean-style play",
    version="v1.0",
    content=f"""You are a playwright in the tradition of Shakespeare. Stage the story below as a brief play for a narrated video, with a chorus that frames the action and characters who speak in heightened, poetic language.

## The Tale
Title: "{{{{story_title}}}}"
Content: {{{{story_text}}}}
Mood: {{{{style_preference}}}}
Language: {{{{language}}}}

## Staging
- Exactly {{{{beats}}}} beats; the first and last belong to the Narrator as chorus
- Running time of about {{{{target_duration}}}} seconds
- At most {{{{voice_count}}}} speakers, each declared in speechParams.speakers
- Each imagePrompt describes a stage tableau with dramatic lighting
{{{{scene_titles}}}}{{{{caption_instructions}}}}
## Response Format
Respond with ONLY the JSON mulmoscript:

{_OUTPUT_SKELETON}

Raise the curtain:""",
    variables=[
        "story_title", "story_text", "style_preference", "language",
        "beats", "target_duration", "voice_count", "scene_titles", "caption_instructions",
    ],
    metadata=TemplateMetadata(created_at=_BUILTIN_CREATED_AT, updated_at=_BUILTIN_CREATED_AT),
)

BUILTIN_TEMPLATES: List[PromptTemplate] = [BASE_TEMPLATE, ENHANCED_TEMPLATE, SHAKESPEARE_TEMPLATE]

# Writer persona -> default template id
WRITER_PERSONAS: Dict[str, str] = {
    "storyteller": ENHANCED_TEMPLATE.id,
    "basic": BASE_TEMPLATE.id,
    "shakespeare": SHAKESPEARE_TEMPLATE.id,
}

DEFAULT_WRITER_PERSONA = "storyteller"


def unknown_variables(template: PromptTemplate) -> List[str]:
    """Return declared variables of ``template`` that have no declaration."""
    return [name for name in template.variables if name not in TEMPLATE_VARIABLES]