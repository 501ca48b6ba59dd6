"""Prompt Compiler Agent

Fills a prompt template's ``{{variable}}`` placeholders from a
``PromptContext`` and derives the prompt hash and a token estimate.

Variable resolution follows the declarations in
``storyscript.prompts.templates.TEMPLATE_VARIABLES``: required variables
must be present in the context, every other variable falls back to its
declared default. Placeholders with no declaration are left in place and
reported in ``unresolved_variables``.
"""

import hashlib
import logging
import math
from typing import Any, Dict, List, Optional

from storyscript.agents.base import (
    Agent,
    AgentExecutionError,
    AgentInput,
    AgentOutput,
    RetryPolicy,
)
from storyscript.prompts.templates import DEFAULT_CAPTION_STYLES, REQUIRED_VARIABLES, TEMPLATE_VARIABLES
from storyscript.schemas.prompt import (
    PLACEHOLDER_PATTERN,
    PromptContext,
    PromptGenerationResult,
    PromptTemplate,
)

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


class PromptCompilerInput(AgentInput):
    """Input for Prompt Compiler Agent"""

    def __init__(self, template: PromptTemplate, context: PromptContext):
        """Initialize input

        Args:
            template: Template to fill
            context: Values for the template's placeholders
        """
        self.template = template
        self.context = context


class PromptCompilerOutput(AgentOutput):
    """Output from Prompt Compiler Agent

    Attributes:
        result: Compiled prompt with hash, token estimate and metadata
    """

    def __init__(self, result: PromptGenerationResult):
        self.result = result


def create_prompt_hash(prompt: str) -> str:
    """Return a stable short hash of the prompt text."""
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:16]


def estimate_tokens(prompt: str) -> int:
    """Coarse token estimate: one token per four characters."""
    return math.ceil(len(prompt) / CHARS_PER_TOKEN)


def build_caption_instructions(context: PromptContext) -> str:
    """Build the caption fragment, or an empty string when captions are off."""
    if not context.enable_captions:
        return ""
    styles = context.caption_styles or DEFAULT_CAPTION_STYLES
    style_lines = "\n".join(f'    "{style}"' for style in styles)
    return (
        "- Include a top-level captionParams object so every beat is captioned:\n"
        f'  "captionParams": {{"lang": "{context.language}", "styles": [\n'
        f"{style_lines}\n"
        "  ]}\n"
    )


def build_scene_titles(context: PromptContext) -> str:
    """Build the fixed-scene fragment, or an empty string when none are fixed."""
    if not context.fixed_scenes:
        return ""
    lines = "\n".join(
        f"  scene {scene.number}: {scene.title}" for scene in context.fixed_scenes
    )
    return (
        f"- The scene headings are fixed. Write exactly one beat per scene, "
        f"in this order ({len(context.fixed_scenes)} beats):\n"
        f"{lines}\n"
    )


class PromptCompilerAgent(Agent):
    """Agent responsible for turning a template and context into a prompt

    The PromptCompilerAgent performs the following operations:
    1. Verify the required variables (story_title, story_text) are present
    2. Derive the caption and fixed-scene fragments
    3. Substitute every declared placeholder, falling back to defaults
    4. Hash the prompt and estimate its token count

    Compilation is deterministic, so failures are never retried.
    """

    def execute(self, input_data: AgentInput) -> AgentOutput:
        """Compile the prompt

        Args:
            input_data: PromptCompilerInput with template and context

        Returns:
            PromptCompilerOutput with the compiled prompt

        Raises:
            AgentExecutionError: MISSING_REQUIRED_CONTEXT if story title or
                text is absent
        """
        self.ensure_valid_input(input_data, "a PromptCompilerInput with template and context")

        template = input_data.template
        context = input_data.context

        missing = self.find_missing_variables(context)
        if missing:
            raise AgentExecutionError(
                error_code="MISSING_REQUIRED_CONTEXT",
                message=f"Missing required context variables: {', '.join(missing)}",
                context={"template_id": template.id, "missing": missing}
            )

        values = self._resolve_values(context)
        prompt, unresolved = self.substitute(template.content, values)
        if unresolved:
            logger.warning(
                f"Template {template.id} left placeholders unresolved: {', '.join(unresolved)}"
            )

        result = PromptGenerationResult(
            prompt=prompt,
            template_id=template.id,
            context=context,
            estimated_tokens=estimate_tokens(prompt),
            prompt_hash=create_prompt_hash(prompt),
            unresolved_variables=unresolved,
        )
        logger.info(
            f"Compiled template {template.id}: ~{result.estimated_tokens} tokens, hash {result.prompt_hash}"
        )
        return PromptCompilerOutput(result)

    def find_missing_variables(self, context: PromptContext) -> List[str]:
        """Return the required variables that are absent or blank in ``context``."""
        missing: List[str] = []
        for name in REQUIRED_VARIABLES:
            value = getattr(context, name, None)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    def substitute(self, content: str, values: Dict[str, Any]):
        """Replace ``{{name}}`` placeholders with stringified values.

        Returns:
            Tuple of (text, names of placeholders left untouched)
        """
        unresolved: List[str] = []

        def replace(match) -> str:
            name = match.group(1)
            if name in values:
                return str(values[name])
            if name not in unresolved:
                unresolved.append(name)
            return match.group(0)

        return PLACEHOLDER_PATTERN.sub(replace, content), unresolved

    def _resolve_values(self, context: PromptContext) -> Dict[str, Any]:
        """Map every declared variable to its context value or default."""
        derived: Dict[str, Any] = {
            "caption_instructions": build_caption_instructions(context),
            "scene_titles": build_scene_titles(context),
        }
        values: Dict[str, Any] = {}
        for name, variable in TEMPLATE_VARIABLES.items():
            value: Optional[Any] = derived[name] if name in derived else getattr(context, name, None)
            if value is None:
                value = variable.default
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            values[name] = value
        return values

    def validate_input(self, input_data: AgentInput) -> bool:
        """Validate input is a PromptCompilerInput with template and context"""
        if not isinstance(input_data, PromptCompilerInput):
            return False
        return isinstance(input_data.template, PromptTemplate) and isinstance(input_data.context, PromptContext)

    def get_retry_policy(self) -> RetryPolicy:
        """Compilation is deterministic: no retry."""
        return RetryPolicy(max_attempts=1)
