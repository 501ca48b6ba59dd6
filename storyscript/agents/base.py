"""Agent contract for the story-to-script engine

Script generation is split into three agents, each with one job and typed
input/output objects:

- PromptCompilerAgent: template + story context -> prompt text
- CompletionInvokerAgent: prompt -> raw reply from the completion service
- ResponseValidatorAgent: raw reply -> validated GeneratedScript

Failures surface as ``AgentExecutionError`` tagged with an error code. The
orchestrator decides from the code whether a fresh attempt can help.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class RetryPolicy:
    """How often an agent's work may be attempted, and how long to wait between tries

    Waits grow exponentially: the wait after failed attempt ``n`` (0-indexed)
    is ``base_delay_seconds * 2**n``, capped at ``max_delay_seconds``.

    Attributes:
        max_attempts: Total attempts, including the first one
        base_delay_seconds: Wait after the first failed attempt
        max_delay_seconds: Upper bound for any single wait
        retryable_errors: Error codes worth another attempt (empty means
            the engine-wide retryable set applies)
    """
    max_attempts: int = 1
    base_delay_seconds: float = 2.0
    max_delay_seconds: float = 60.0
    retryable_errors: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("retry delays cannot be negative")

    @property
    def max_retries(self) -> int:
        """Attempts allowed after the first one."""
        return self.max_attempts - 1

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after failed attempt ``attempt`` (0-indexed)."""
        return min(self.base_delay_seconds * (2 ** attempt), self.max_delay_seconds)


class AgentInput(ABC):
    """Marker base class for agent inputs"""


class AgentOutput(ABC):
    """Marker base class for agent outputs"""


class AgentExecutionError(Exception):
    """Failure of one agent step

    Attributes:
        error_code: Machine-readable error code (e.g. API_TIMEOUT, NO_VALID_JSON)
        message: Human-readable error message
        context: Details for logs and callers, such as ``violations``
    """

    def __init__(self, error_code: str, message: str, context: Optional[Dict[str, Any]] = None):
        self.error_code = error_code
        self.message = message
        self.context = context or {}
        super().__init__(f"[{error_code}] {message}")


class Agent(ABC):
    """Base interface for engine agents

    Subclasses implement ``execute`` and ``validate_input``. Agents whose
    failures are deterministic keep the single-attempt default retry policy.
    """

    @abstractmethod
    def execute(self, input_data: AgentInput) -> AgentOutput:
        """Run the agent's step

        Raises:
            AgentExecutionError: For failures, tagged with an error code
        """

    def validate_input(self, input_data: AgentInput) -> bool:
        """Return True when ``input_data`` is something this agent can process"""
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement validate_input()"
        )

    def ensure_valid_input(self, input_data: AgentInput, expected: str) -> None:
        """Raise INVALID_INPUT unless ``validate_input`` accepts ``input_data``

        Args:
            input_data: Object passed to ``execute``
            expected: Description of the accepted input, used in the message
        """
        if not self.validate_input(input_data):
            raise AgentExecutionError(
                "INVALID_INPUT",
                f"{self.__class__.__name__} expects {expected}",
                {"input_type": type(input_data).__name__}
            )

    def get_retry_policy(self) -> RetryPolicy:
        """Single attempt unless the agent overrides it"""
        return RetryPolicy(max_attempts=1)
