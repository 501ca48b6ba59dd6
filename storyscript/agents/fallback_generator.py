"""Offline fallback script generator.

``generate_fallback_script`` builds a valid mulmoscript from the story and
options alone. It performs no I/O and returns identical output for
identical input, so it can stand in whenever the completion service
cannot produce a valid script.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from storyscript.prompts.templates import DEFAULT_CAPTION_STYLES
from storyscript.schemas.generation import GenerationOptions, Story
from storyscript.schemas.mulmoscript import GeneratedScript
from storyscript.schemas.prompt import FixedScene


NARRATOR = "Narrator"
CHARACTER = "Character"
WISE_CHARACTER = "WiseCharacter"

# Interior beat i takes INTERIOR_ROTATION[i % 3].
INTERIOR_ROTATION = [CHARACTER, NARRATOR, WISE_CHARACTER]

# Roster order; voices are assigned by position among the speakers used.
ROLE_ORDER = [NARRATOR, CHARACTER, WISE_CHARACTER]

VOICE_POOL = ["shimmer", "alloy", "echo", "nova", "fable", "onyx"]

DISPLAY_NAMES: Dict[str, Dict[str, str]] = {
    NARRATOR: {"ja": "語り手", "en": "Narrator"},
    CHARACTER: {"ja": "主人公", "en": "Main Character"},
    WISE_CHARACTER: {"ja": "賢者", "en": "Wise Character"},
}

EXCERPT_LENGTH = 150


@dataclass(frozen=True)
class StyleVariation:
    """Boilerplate phrases for one style preference."""
    opening: str
    image_style: str
    closing: str


STYLE_VARIATIONS: Dict[str, StyleVariation] = {
    "dramatic": StyleVariation(
        opening='In a world where dreams meet reality, "{title}" begins its tale...',
        image_style="dramatic, cinematic, moody lighting",
        closing="Thus ends our dramatic journey, leaving echoes of profound meaning.",
    ),
    "comedic": StyleVariation(
        opening='Once upon a laugh, in the delightfully chaotic story of "{title}"...',
        image_style="comedic, bright colors, playful",
        closing="And they all lived hilariously ever after!",
    ),
    "adventure": StyleVariation(
        opening='Adventure calls! The epic tale of "{title}" awaits...',
        image_style="adventure, epic landscape, dynamic action",
        closing="The adventure may end, but the legend lives on forever.",
    ),
    "romantic": StyleVariation(
        opening='In matters of the heart, "{title}" unfolds its tender story...',
        image_style="romantic, soft lighting, beautiful scenery",
        closing="Love conquers all, as our romantic tale reaches its sweet conclusion.",
    ),
    "mystery": StyleVariation(
        opening='Shadows whisper secrets in the mysterious tale of "{title}"...',
        image_style="mysterious, dark atmosphere, shadows",
        closing="The mystery is solved, but its intrigue lingers in the mind.",
    ),
}

NARRATOR_INTERIOR_TEXT = "The story unfolds with unexpected twists and meaningful moments..."
WISE_CHARACTER_TEXT = "The heart of the story reveals its deeper meaning and purpose..."
BLANK_STORY_TEXT = "The story continues, its details still waiting to be told..."


def story_excerpt(text: str) -> str:
    """First 150 characters of ``text``, with an ellipsis when truncated.

    A blank story yields a stock line so every beat has something to say.
    """
    if not text.strip():
        return BLANK_STORY_TEXT
    if len(text) > EXCERPT_LENGTH:
        return text[:EXCERPT_LENGTH] + "..."
    return text


def _interior_beat(index: int, story: Story, variation: StyleVariation) -> Dict[str, str]:
    speaker = INTERIOR_ROTATION[index % len(INTERIOR_ROTATION)]
    if speaker == CHARACTER:
        text = story_excerpt(story.text)
        image_prompt = f"Character scene {index}: {variation.image_style}, character portrait or action scene"
    elif speaker == NARRATOR:
        text = NARRATOR_INTERIOR_TEXT
        image_prompt = f"Story development {index}: {variation.image_style}, visual representation of the main plot"
    else:
        text = WISE_CHARACTER_TEXT
        image_prompt = f"Emotional moment {index}: {variation.image_style}, dramatic moment of realization"
    return {"speaker": speaker, "text": text, "imagePrompt": image_prompt}


def build_beats(story: Story, variation: StyleVariation, beat_count: int) -> List[Dict[str, str]]:
    """Opening narration, rotating interior beats, closing narration."""
    beats = [{
        "speaker": NARRATOR,
        "text": variation.opening.format(title=story.title),
        "imagePrompt": f"Opening scene: {variation.image_style}, establishing shot of the story world",
    }]
    if beat_count == 1:
        return beats

    for index in range(1, beat_count - 1):
        beats.append(_interior_beat(index, story, variation))

    beats.append({
        "speaker": NARRATOR,
        "text": variation.closing,
        "imagePrompt": f"Conclusion scene: {variation.image_style}, peaceful resolution showing the outcome",
    })
    return beats


def apply_fixed_scenes(beats: List[Dict[str, str]], fixed_scenes: Optional[List[FixedScene]]) -> None:
    """Prefix each beat's image direction with its fixed scene heading."""
    if not fixed_scenes:
        return
    for beat, scene in zip(beats, fixed_scenes):
        beat["imagePrompt"] = f"Scene {scene.number} ({scene.title}). {beat['imagePrompt']}"


def build_roster(beats: List[Dict[str, str]], lang: str) -> Dict[str, Dict[str, Any]]:
    """Declare exactly the speakers used by ``beats``."""
    used = {beat["speaker"] for beat in beats}
    roster: Dict[str, Dict[str, Any]] = {}
    for index, speaker in enumerate(role for role in ROLE_ORDER if role in used):
        names = DISPLAY_NAMES[speaker]
        secondary = "en" if lang == "ja" else "ja"
        roster[speaker] = {
            "voiceId": VOICE_POOL[index % len(VOICE_POOL)],
            "displayName": {lang: names[lang], secondary: names[secondary]},
        }
    return roster


def generate_fallback_script(story: Story, options: Optional[GenerationOptions] = None) -> GeneratedScript:
    """Synthesize a valid script without calling the completion service.

    Args:
        story: Story to convert
        options: Generation options; beat count, style, language, captions
            and fixed scenes are honored

    Returns:
        GeneratedScript with ``options.effective_beat_count`` beats whose
        speakers are all declared in the roster
    """
    options = options or GenerationOptions()
    variation = STYLE_VARIATIONS[options.style_preference]
    lang = "ja" if options.language == "ja" else "en"

    beats = build_beats(story, variation, options.effective_beat_count)
    apply_fixed_scenes(beats, options.fixed_scenes)

    payload: Dict[str, Any] = {
        "$mulmocast": {"version": "1.0"},
        "title": story.title,
        "lang": lang,
        "speechParams": {
            "provider": "openai",
            "speakers": build_roster(beats, lang),
        },
        "imageParams": {
            "style": f"Ghibli style anime, {variation.image_style}, soft pastel colors, high quality",
        },
        "beats": beats,
    }
    if options.enable_captions:
        payload["captionParams"] = {
            "lang": lang,
            "styles": list(options.caption_styles or DEFAULT_CAPTION_STYLES),
        }

    return GeneratedScript.from_wire(payload)
