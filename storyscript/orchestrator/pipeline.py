"""Script generation orchestrator.

This module sequences the engine's agents for one generation call:
Prompt Compiler → {Completion Invoker → Response Validator} retry loop,
recording one performance entry per call.

Error Handling Strategy:
- **Fail fast**: unknown templates and missing story title/text fail before
  any completion attempt and without a performance entry
- **Retry**: transport failures, empty replies and invalid replies are
  retried with exponential backoff (2s, 4s, ...) up to ``max_retries`` times
- **Fallback**: ``generate_with_fallback`` replaces any failure with the
  offline generator's script and never raises

Collaborators (registry, performance store, invoker, structured logger,
sleep function) are injected so callers and tests can share or isolate them.
"""

import dataclasses
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from storyscript.agents.base import AgentExecutionError
from storyscript.agents.completion_invoker import (
    CompletionInput,
    CompletionInvokerAgent,
    CompletionOutput,
    ModelConfig,
)
from storyscript.agents.fallback_generator import generate_fallback_script
from storyscript.agents.prompt_compiler import PromptCompilerAgent, PromptCompilerInput
from storyscript.agents.response_validator import (
    ResponseValidatorAgent,
    ResponseValidatorInput,
    ResponseValidatorOutput,
)
from storyscript.orchestrator.logger import StructuredJSONLogger
from storyscript.orchestrator.performance import PerformanceStore
from storyscript.orchestrator.retry_policy import execute_with_retry
from storyscript.prompts.registry import TemplateRegistry
from storyscript.prompts.templates import DEFAULT_WRITER_PERSONA, SYSTEM_MESSAGE, WRITER_PERSONAS
from storyscript.schemas.generation import (
    FallbackResult,
    GenerationMetadata,
    GenerationOptions,
    GenerationResult,
    PerformanceLogEntry,
    Story,
)
from storyscript.schemas.prompt import PromptContext, PromptGenerationResult, PromptTemplate


logger = logging.getLogger(__name__)


ENV_PREFIX = "STORYSCRIPT_"


@dataclass
class GeneratorConfig:
    """Configuration for script generation.

    Attributes:
        model: Completion model identifier
        max_tokens: Maximum output tokens per completion
        temperature: Sampling temperature
        timeout_seconds: Completion request timeout
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        writer_persona: Persona selecting the default template
        performance_log_size: Recent performance entries kept in memory
        log_directory: Directory for generation.log (console only if None)
        api_key: OpenAI API key (falls back to OPENAI_API_KEY)
    """
    model: str = "gpt-4.1"
    max_tokens: int = 2000
    temperature: float = 0.7
    timeout_seconds: float = 30.0
    max_retries: int = 2
    writer_persona: str = DEFAULT_WRITER_PERSONA
    performance_log_size: int = 1000
    log_directory: Optional[str] = None
    api_key: Optional[str] = None

    def __post_init__(self):
        problems = []
        if self.max_tokens < 1:
            problems.append(f"max_tokens must be positive, got {self.max_tokens}")
        if not 0.0 <= self.temperature <= 2.0:
            problems.append(f"temperature must be between 0 and 2, got {self.temperature}")
        if self.timeout_seconds <= 0:
            problems.append(f"timeout_seconds must be positive, got {self.timeout_seconds}")
        if self.max_retries < 0:
            problems.append(f"max_retries cannot be negative, got {self.max_retries}")
        if self.performance_log_size < 1:
            problems.append(f"performance_log_size must be positive, got {self.performance_log_size}")
        if problems:
            raise AgentExecutionError(
                "INVALID_CONFIGURATION",
                "; ".join(problems),
                {"problems": problems}
            )

    def to_model_config(self) -> ModelConfig:
        """Convert to the completion request parameters."""
        return ModelConfig(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            timeout_seconds=self.timeout_seconds
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GeneratorConfig":
        """Build a configuration from ``STORYSCRIPT_*`` environment variables.

        Raises:
            AgentExecutionError: INVALID_CONFIGURATION for malformed values
        """
        environ = os.environ if environ is None else environ
        converters: Dict[str, Tuple[str, Callable[[str], Any]]] = {
            "model": ("MODEL", str),
            "max_tokens": ("MAX_TOKENS", int),
            "temperature": ("TEMPERATURE", float),
            "timeout_seconds": ("TIMEOUT_SECONDS", float),
            "max_retries": ("MAX_RETRIES", int),
            "writer_persona": ("WRITER_PERSONA", str),
            "performance_log_size": ("PERFORMANCE_LOG_SIZE", int),
            "log_directory": ("LOG_DIR", str),
        }

        values: Dict[str, Any] = {}
        for field_name, (suffix, convert) in converters.items():
            raw = environ.get(ENV_PREFIX + suffix)
            if raw is None or raw == "":
                continue
            try:
                values[field_name] = convert(raw)
            except ValueError:
                raise AgentExecutionError(
                    "INVALID_CONFIGURATION",
                    f"{ENV_PREFIX + suffix} must be a valid {convert.__name__}, got '{raw}'",
                    {"variable": ENV_PREFIX + suffix}
                )

        api_key = environ.get("OPENAI_API_KEY")
        if api_key:
            values["api_key"] = api_key

        return cls(**values)


class ScriptGenerator:
    """Main entry point for story-to-script generation.

    A generation call:
    1. Resolves the template (explicit id or the persona default)
    2. Compiles the prompt from the story and options
    3. Invokes the completion service and validates the reply, retrying
       failed attempts with exponential backoff
    4. Records one performance entry and returns a GenerationResult
    """

    def __init__(
        self,
        config: Optional[GeneratorConfig] = None,
        registry: Optional[TemplateRegistry] = None,
        performance_store: Optional[PerformanceStore] = None,
        invoker: Optional[CompletionInvokerAgent] = None,
        validator: Optional[ResponseValidatorAgent] = None,
        structured_logger: Optional[StructuredJSONLogger] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize the generator.

        Args:
            config: Generator configuration (uses defaults if not provided)
            registry: Template registry (built from the writer persona if not provided)
            performance_store: Performance log (created per generator if not provided)
            invoker: Completion invoker (an OpenAI-backed one if not provided)
            validator: Response validator
            structured_logger: Event logger (writes to config.log_directory if set)
            sleep: Function used for backoff waits
        """
        self.config = config or GeneratorConfig()
        self.registry = registry or TemplateRegistry(writer_persona=self.config.writer_persona)
        self.structured_logger = structured_logger or StructuredJSONLogger(self.config.log_directory)
        self.performance_store = performance_store or PerformanceStore(
            registry=self.registry,
            max_entries=self.config.performance_log_size,
            sink=self.structured_logger if self.structured_logger.json_file_handle else None
        )
        self.invoker = invoker or CompletionInvokerAgent(api_key=self.config.api_key)
        self.validator = validator or ResponseValidatorAgent()
        self.compiler = PromptCompilerAgent()
        self.sleep = sleep

    def generate_script(self, story: Story, options: Optional[GenerationOptions] = None) -> GenerationResult:
        """Generate a validated script through the completion service.

        Args:
            story: Story to convert
            options: Per-call options (defaults if not provided)

        Returns:
            GenerationResult; failures are reported through ``success``,
            ``error`` and ``error_code`` rather than raised
        """
        options = options or GenerationOptions()
        start_time = time.time()
        max_retries = self.config.max_retries if options.max_retries is None else options.max_retries
        template_id = options.template_id or WRITER_PERSONAS[self.registry.writer_persona]

        try:
            template = self.registry.require_template(template_id)
            compiled = self._compile_prompt(template, story, options)
        except AgentExecutionError as e:
            duration_ms = (time.time() - start_time) * 1000
            self.structured_logger.log_generation_failure(story.id, e.error_code, e.message, duration_ms)
            return GenerationResult(
                success=False,
                error=e.message,
                error_code=e.error_code,
                metadata=GenerationMetadata(
                    template_id=template_id,
                    response_time_ms=duration_ms,
                    model_used=self.config.model
                )
            )

        self.structured_logger.log_generation_start(story.id, template.id, self.config.model, max_retries + 1)

        model_config = self.config.to_model_config()
        last_completion: Dict[str, Optional[CompletionOutput]] = {"output": None}
        failures = {"count": 0}

        def attempt() -> Tuple[CompletionOutput, ResponseValidatorOutput]:
            completion = self.invoker.execute(CompletionInput(SYSTEM_MESSAGE, compiled.prompt, model_config))
            last_completion["output"] = completion
            validated = self.validator.execute(ResponseValidatorInput(completion.content))
            return completion, validated

        def on_failure(attempt_index: int, error: Exception, will_retry: bool) -> None:
            failures["count"] += 1
            self.structured_logger.log_attempt_failure(
                story.id,
                getattr(error, "error_code", "UNEXPECTED_ERROR"),
                getattr(error, "message", str(error)),
                attempt_index,
                will_retry
            )

        retry_policy = dataclasses.replace(self.invoker.get_retry_policy(), max_attempts=max_retries + 1)

        try:
            completion, validated = execute_with_retry(
                attempt,
                retry_policy,
                context_name=f"Script generation for story {story.id}",
                on_failure=on_failure,
                sleep=self.sleep
            )
        except AgentExecutionError as e:
            return self._failed_result(
                story, compiled, last_completion["output"], e.error_code, e.message,
                failures["count"], start_time
            )
        except Exception as e:
            self._failed_result(
                story, compiled, last_completion["output"], "UNEXPECTED_ERROR", str(e),
                failures["count"], start_time
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        script = validated.script
        self.performance_store.record(PerformanceLogEntry(
            template_id=compiled.template_id,
            prompt_hash=compiled.prompt_hash,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            response_time_ms=duration_ms,
            success=True,
            generated_script_valid=True
        ))
        self.structured_logger.log_generation_complete(
            story.id, compiled.template_id, duration_ms, len(script.beats), failures["count"]
        )

        return GenerationResult(
            success=True,
            script=script,
            metadata=GenerationMetadata(
                template_id=compiled.template_id,
                input_tokens=completion.input_tokens,
                output_tokens=completion.output_tokens,
                response_time_ms=duration_ms,
                prompt_hash=compiled.prompt_hash,
                model_used=completion.model,
                retry_count=failures["count"]
            )
        )

    def generate_with_fallback(self, story: Story, options: Optional[GenerationOptions] = None) -> FallbackResult:
        """Generate a script, substituting the offline generator on any failure.

        Never raises: when the completion path fails, the returned script
        comes from ``generate_fallback_script`` and ``generated_by_service``
        is False.
        """
        options = options or GenerationOptions()
        try:
            result = self.generate_script(story, options)
        except Exception as e:
            logger.exception(f"Unexpected error generating script for story {story.id}")
            reason = f"{type(e).__name__}: {e}"
        else:
            if result.success and result.script is not None:
                return FallbackResult(script=result.script, generated_by_service=True)
            reason = f"[{result.error_code}] {result.error}"

        self.structured_logger.log_fallback_used(story.id, reason)
        return FallbackResult(
            script=generate_fallback_script(story, options),
            generated_by_service=False
        )

    def check_connection(self) -> Dict[str, Any]:
        """Report whether the completion service is reachable."""
        return self.invoker.check_connection()

    def build_context(self, story: Story, options: GenerationOptions) -> PromptContext:
        """Map a story and generation options onto the template context."""
        return PromptContext(
            story_title=story.title,
            story_text=story.text,
            target_duration=options.target_duration_sec,
            style_preference=options.style_preference,
            language=options.language,
            beats=options.effective_beat_count,
            enable_captions=options.enable_captions,
            caption_styles=options.caption_styles,
            fixed_scenes=options.fixed_scenes
        )

    def _compile_prompt(
        self,
        template: PromptTemplate,
        story: Story,
        options: GenerationOptions
    ) -> PromptGenerationResult:
        context = self.build_context(story, options)
        return self.compiler.execute(PromptCompilerInput(template, context)).result

    def _failed_result(
        self,
        story: Story,
        compiled: PromptGenerationResult,
        last_completion: Optional[CompletionOutput],
        error_code: str,
        error_message: str,
        retry_count: int,
        start_time: float
    ) -> GenerationResult:
        """Record the failed call and build its result."""
        duration_ms = (time.time() - start_time) * 1000
        input_tokens = last_completion.input_tokens if last_completion else 0
        output_tokens = last_completion.output_tokens if last_completion else 0

        self.performance_store.record(PerformanceLogEntry(
            template_id=compiled.template_id,
            prompt_hash=compiled.prompt_hash,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            response_time_ms=duration_ms,
            success=False,
            generated_script_valid=False,
            error_message=error_message
        ))
        self.structured_logger.log_generation_failure(story.id, error_code, error_message, duration_ms)

        return GenerationResult(
            success=False,
            error=error_message,
            error_code=error_code,
            metadata=GenerationMetadata(
                template_id=compiled.template_id,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                response_time_ms=duration_ms,
                prompt_hash=compiled.prompt_hash,
                model_used=last_completion.model if last_completion else self.config.model,
                retry_count=retry_count
            )
        )

    def close(self) -> None:
        """Close the structured log file."""
        self.structured_logger.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
