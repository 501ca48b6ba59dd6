"""Completion Invoker Agent for the OpenAI chat completions API

Sends a system message and the compiled prompt, constrains the service to
reply with a single JSON object, and surfaces transport failures and empty
replies as tagged ``AgentExecutionError``s the retry loop can classify.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import openai

from storyscript.agents.base import (
    Agent,
    AgentExecutionError,
    AgentInput,
    AgentOutput,
    RetryPolicy,
)

logger = logging.getLogger(__name__)


@dataclass
class ModelConfig:
    """Completion request parameters

    Attributes:
        model: Model identifier
        max_tokens: Maximum output tokens
        temperature: Sampling temperature
        timeout_seconds: Request timeout
    """
    model: str = "gpt-4.1"
    max_tokens: int = 2000
    temperature: float = 0.7
    timeout_seconds: float = 30.0


class CompletionInput(AgentInput):
    """Input for Completion Invoker Agent"""

    def __init__(self, system_message: str, prompt: str, model_config: Optional[ModelConfig] = None):
        self.system_message = system_message
        self.prompt = prompt
        self.model_config = model_config or ModelConfig()


class CompletionOutput(AgentOutput):
    """Raw reply from the completion service

    Attributes:
        content: Raw response text
        input_tokens: Prompt tokens reported by the service
        output_tokens: Completion tokens reported by the service
        model: Model that served the request
    """

    def __init__(self, content: str, input_tokens: int, output_tokens: int, model: str):
        self.content = content
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.model = model


class CompletionInvokerAgent(Agent):
    """Agent responsible for calling the completion service

    The client is created lazily from ``OPENAI_API_KEY`` unless one is
    injected. Errors are mapped to codes:

    - API_TIMEOUT, NETWORK_ERROR, API_RATE_LIMIT, API_UNAVAILABLE for
      transport failures
    - EMPTY_RESPONSE when the reply carries no content
    - API_KEY_MISSING when no credentials are configured
    """

    def __init__(self, client: Optional[Any] = None, api_key: Optional[str] = None):
        """Initialize the invoker

        Args:
            client: Pre-built OpenAI-compatible client (used as is)
            api_key: API key; falls back to the OPENAI_API_KEY environment variable
        """
        self.client = client
        self.api_key = api_key

    def _get_client(self, timeout_seconds: float) -> Any:
        if self.client is not None:
            return self.client

        api_key = self.api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise AgentExecutionError(
                error_code="API_KEY_MISSING",
                message="OpenAI API key not configured. Set OPENAI_API_KEY environment variable.",
            )
        # Retries belong to the generation loop only
        self.client = openai.OpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)
        return self.client

    def execute(self, input_data: AgentInput) -> AgentOutput:
        """Send the two-message request and return the raw reply

        Args:
            input_data: CompletionInput with system message, prompt and model config

        Returns:
            CompletionOutput with raw content and token usage

        Raises:
            AgentExecutionError: For transport failures and empty replies
        """
        self.ensure_valid_input(input_data, "a CompletionInput with a non-empty prompt")

        config = input_data.model_config
        client = self._get_client(config.timeout_seconds)

        try:
            response = client.chat.completions.create(
                model=config.model,
                messages=[
                    {"role": "system", "content": input_data.system_message},
                    {"role": "user", "content": input_data.prompt}
                ],
                max_tokens=config.max_tokens,
                temperature=config.temperature,
                response_format={"type": "json_object"},
                timeout=config.timeout_seconds,
            )
        except openai.APITimeoutError as e:
            raise AgentExecutionError("API_TIMEOUT", f"Completion request timed out: {e}", {"model": config.model})
        except openai.APIConnectionError as e:
            raise AgentExecutionError("NETWORK_ERROR", f"Could not reach completion service: {e}", {"model": config.model})
        except openai.RateLimitError as e:
            raise AgentExecutionError("API_RATE_LIMIT", f"Completion service rate limit: {e}", {"model": config.model})
        except openai.APIStatusError as e:
            raise AgentExecutionError(
                "API_UNAVAILABLE",
                f"Completion service returned status {e.status_code}: {e.message}",
                {"model": config.model, "status_code": e.status_code}
            )
        except openai.APIError as e:
            raise AgentExecutionError(
                "API_UNAVAILABLE",
                f"Completion service error ({type(e).__name__}): {e}",
                {"model": config.model}
            )

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices and choices[0].message else None
        if not content:
            raise AgentExecutionError(
                "EMPTY_RESPONSE",
                "Empty response from completion service",
                {"model": config.model}
            )

        usage = getattr(response, "usage", None)
        return CompletionOutput(
            content=content,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            model=getattr(response, "model", None) or config.model,
        )

    def check_connection(self, model: str = "gpt-4o-mini") -> Dict[str, Any]:
        """Send a minimal JSON-mode request and report whether it round-trips

        Returns:
            Dict with ``success`` and either ``model_info`` or ``error``
        """
        try:
            output = self.execute(CompletionInput(
                system_message="Reply in JSON.",
                prompt='Test connection. Respond with valid JSON: {"status": "ok"}',
                model_config=ModelConfig(model=model, max_tokens=50, temperature=0.0),
            ))
        except AgentExecutionError as e:
            return {"success": False, "error": e.message, "error_code": e.error_code}

        if '"ok"' not in output.content:
            return {"success": False, "error": "Unexpected response format"}
        return {
            "success": True,
            "model_info": {
                "model": output.model,
                "input_tokens": output.input_tokens,
                "output_tokens": output.output_tokens,
            },
        }

    def validate_input(self, input_data: AgentInput) -> bool:
        """Validate input is a CompletionInput with a non-empty prompt"""
        if not isinstance(input_data, CompletionInput):
            return False
        return bool(input_data.prompt) and isinstance(input_data.model_config, ModelConfig)

    def get_retry_policy(self) -> RetryPolicy:
        """Return retry policy for the completion service

        Transport failures and malformed replies are transient; retries back
        off exponentially, 2s then 4s.

        Returns:
            RetryPolicy with two retries
        """
        return RetryPolicy(
            max_attempts=3,
            base_delay_seconds=2.0,
            max_delay_seconds=60.0,
            retryable_errors=[
                "API_TIMEOUT",
                "API_RATE_LIMIT",
                "API_UNAVAILABLE",
                "NETWORK_ERROR",
                "EMPTY_RESPONSE",
                "NO_VALID_JSON",
                "STRUCTURAL_VALIDATION_FAILED",
                "SCHEMA_VALIDATION_FAILED",
            ]
        )
