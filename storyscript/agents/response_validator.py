"""Response Validator Agent for completion service replies.

Turns the raw text returned by the completion service into a typed
``GeneratedScript`` in three steps:

1. Extraction: strip markdown code fences and parse the JSON object
2. Structural check: required containers, per-beat fields and the
   beat speaker -> roster cross-reference, collecting every violation
3. Schema validation: strict pydantic validation with default coercion

The structural check runs first and short-circuits: a payload with
structural violations is never handed to the schema.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from storyscript.agents.base import Agent, AgentExecutionError, AgentInput, AgentOutput, RetryPolicy
from storyscript.schemas.mulmoscript import GeneratedScript


_LEADING_FENCE = re.compile(r"^\s*```[A-Za-z]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?[ \t]*```\s*$")


@dataclass
class ValidationErrorDetail:
    """Detailed information about a schema validation error."""

    field_path: str
    violation_type: str
    expected: str
    actual: str
    message: str

    def __str__(self) -> str:
        return f"{self.field_path}: {self.message}" if self.field_path else self.message


class ResponseValidatorInput(AgentInput):
    """Input for Response Validator Agent.

    Attributes:
        raw_text: Raw reply text from the completion service
    """

    def __init__(self, raw_text: str):
        self.raw_text = raw_text


class ResponseValidatorOutput(AgentOutput):
    """Output from Response Validator Agent.

    Attributes:
        script: Validated script with defaults applied
        payload: Parsed JSON object the script was built from
    """

    def __init__(self, script: GeneratedScript, payload: Dict[str, Any]):
        self.script = script
        self.payload = payload


def strip_code_fence(raw_text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    text = _LEADING_FENCE.sub("", raw_text, count=1)
    return _TRAILING_FENCE.sub("", text, count=1).strip()


def extract_json(raw_text: str) -> Any:
    """Parse the JSON payload out of a completion reply.

    Tries the fence-stripped text first, then the first ``{...}`` span.

    Raises:
        AgentExecutionError: NO_VALID_JSON if neither parses
    """
    cleaned = strip_code_fence(raw_text or "")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    start = cleaned.find("{")
    if start != -1:
        try:
            payload, _ = json.JSONDecoder().raw_decode(cleaned, start)
            return payload
        except json.JSONDecodeError:
            pass

    raise AgentExecutionError(
        "NO_VALID_JSON",
        "No valid JSON found in response",
        {"response_preview": cleaned[:200]}
    )


def check_structure(payload: Any) -> List[str]:
    """Return every structural violation in ``payload``, in document order.

    An empty list means the payload has the minimal shape the schema needs.
    """
    if not isinstance(payload, dict):
        return ["Response is not a valid object"]

    violations: List[str] = []

    header = payload.get("$mulmocast")
    if not header:
        violations.append("Missing $mulmocast field")
    elif not isinstance(header, dict) or not header.get("version"):
        violations.append("Missing $mulmocast.version field")

    # Beat speakers are cross-checked only against a non-empty roster.
    roster_keys: Optional[set] = None
    speech_params = payload.get("speechParams")
    if not speech_params:
        violations.append("Missing speechParams field")
    elif not isinstance(speech_params, dict):
        violations.append("Invalid speechParams field type")
    else:
        speakers = speech_params.get("speakers")
        if speakers is None:
            violations.append("Missing speechParams.speakers field")
        elif not isinstance(speakers, dict):
            violations.append("Invalid speechParams.speakers field type")
        elif not speakers:
            violations.append("speechParams.speakers must declare at least one speaker")
        else:
            roster_keys = set(speakers)
        if not speech_params.get("provider"):
            violations.append("Missing speechParams.provider field")

    beats = payload.get("beats")
    if not isinstance(beats, list):
        violations.append("Beats must be an array")
    elif not beats:
        violations.append("At least one beat is required")
    else:
        for index, beat in enumerate(beats, start=1):
            violations.extend(_check_beat(index, beat, roster_keys))

    if "lang" in payload and not isinstance(payload["lang"], str):
        violations.append("Invalid lang field type")

    if payload.get("imageParams") is not None and not isinstance(payload["imageParams"], dict):
        violations.append("Invalid imageParams field type")

    return violations


def _check_beat(index: int, beat: Any, roster_keys: Optional[set]) -> List[str]:
    if not isinstance(beat, dict):
        return [f"Beat {index}: Beat must be an object"]

    violations: List[str] = []
    speaker = beat.get("speaker")
    if not isinstance(speaker, str) or not speaker:
        violations.append(f"Beat {index}: Missing speaker")
    elif roster_keys is not None and speaker not in roster_keys:
        violations.append(
            f"Beat {index}: Speaker '{speaker}' is not declared in speechParams.speakers"
        )

    if not isinstance(beat.get("text"), str):
        violations.append(f"Beat {index}: Missing or invalid text")

    if beat.get("imagePrompt") is not None and not isinstance(beat["imagePrompt"], str):
        violations.append(f"Beat {index}: Invalid imagePrompt type")

    return violations


def extract_validation_errors(validation_error: ValidationError) -> List[ValidationErrorDetail]:
    """Flatten a pydantic ValidationError into ValidationErrorDetail records."""
    errors: List[ValidationErrorDetail] = []

    for error in validation_error.errors():
        field_path = ".".join(str(loc) for loc in error["loc"])
        ctx = error.get("ctx", {})
        errors.append(ValidationErrorDetail(
            field_path=field_path,
            violation_type=error["type"],
            expected=str(ctx.get("expected", "unknown")),
            actual=str(error.get("input", "unknown"))[:80],
            message=error["msg"]
        ))

    return errors


def validate_schema(payload: Dict[str, Any]) -> GeneratedScript:
    """Validate ``payload`` against the strict mulmoscript schema.

    Raises:
        AgentExecutionError: SCHEMA_VALIDATION_FAILED with every violation
    """
    try:
        return GeneratedScript.from_wire(payload)
    except ValidationError as e:
        details = extract_validation_errors(e)
        violations = [str(detail) for detail in details]
        raise AgentExecutionError(
            "SCHEMA_VALIDATION_FAILED",
            f"Schema validation failed: {'; '.join(violations)}",
            {"violations": violations, "details": details}
        )


class ResponseValidatorAgent(Agent):
    """Agent responsible for the two-phase validation of a completion reply.

    Every failure is raised as an ``AgentExecutionError`` whose code the
    retry loop treats as retryable: NO_VALID_JSON,
    STRUCTURAL_VALIDATION_FAILED or SCHEMA_VALIDATION_FAILED. The latter
    two carry the full ``violations`` list in their context.
    """

    def execute(self, input_data: AgentInput) -> AgentOutput:
        """Extract, check and validate the reply.

        Args:
            input_data: ResponseValidatorInput with the raw reply text

        Returns:
            ResponseValidatorOutput with the typed script

        Raises:
            AgentExecutionError: If any phase fails
        """
        self.ensure_valid_input(input_data, "a ResponseValidatorInput with raw_text")

        payload = extract_json(input_data.raw_text)

        violations = check_structure(payload)
        if violations:
            raise AgentExecutionError(
                "STRUCTURAL_VALIDATION_FAILED",
                f"Invalid script structure: {'; '.join(violations)}",
                {"violations": violations}
            )

        script = validate_schema(payload)
        return ResponseValidatorOutput(script=script, payload=payload)

    def validate_input(self, input_data: AgentInput) -> bool:
        if not isinstance(input_data, ResponseValidatorInput):
            return False
        return isinstance(input_data.raw_text, str)

    def get_retry_policy(self) -> RetryPolicy:
        """Validation is deterministic for a given reply: no retry.

        The failure codes are still retryable at the generation level,
        where a retry requests a fresh reply.
        """
        return RetryPolicy(max_attempts=1)
