"""Unit tests for the base Agent interface"""

import pytest

from storyscript.agents.base import (
    Agent,
    AgentExecutionError,
    AgentInput,
    AgentOutput,
    RetryPolicy,
)


class EchoInput(AgentInput):
    def __init__(self, story_title: str):
        self.story_title = story_title


class EchoOutput(AgentOutput):
    def __init__(self, prompt: str):
        self.prompt = prompt


class EchoAgent(Agent):
    """Agent that turns a title into a one-line prompt"""

    def __init__(self, should_fail: bool = False):
        self.should_fail = should_fail
        self.execution_count = 0

    def execute(self, input_data: AgentInput) -> AgentOutput:
        self.execution_count += 1

        self.ensure_valid_input(input_data, "an EchoInput with a title")

        if self.should_fail:
            raise AgentExecutionError(
                error_code="API_TIMEOUT",
                message="Completion request timed out"
            )

        return EchoOutput(prompt=f"Write a script for {input_data.story_title}")

    def validate_input(self, input_data: AgentInput) -> bool:
        return isinstance(input_data, EchoInput) and bool(input_data.story_title)

    def get_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=3,
            base_delay_seconds=2.0,
            retryable_errors=["API_TIMEOUT"]
        )


class IncompleteAgent(Agent):
    def execute(self, input_data: AgentInput) -> AgentOutput:
        return EchoOutput(prompt="")


@pytest.mark.unit
class TestAgentInterface:
    """Test suite for Agent interface"""

    def test_agent_execute_success(self):
        agent = EchoAgent()

        output = agent.execute(EchoInput("Cafe Dream"))

        assert isinstance(output, EchoOutput)
        assert output.prompt == "Write a script for Cafe Dream"
        assert agent.execution_count == 1

    def test_agent_rejects_invalid_input(self):
        """Test wrong input type is reported as INVALID_INPUT"""
        agent = EchoAgent()

        class WrongInput(AgentInput):
            pass

        with pytest.raises(AgentExecutionError) as exc_info:
            agent.execute(WrongInput())

        assert exc_info.value.error_code == "INVALID_INPUT"
        assert exc_info.value.context["input_type"] == "WrongInput"
        assert "EchoAgent expects an EchoInput" in exc_info.value.message

    def test_agent_execution_error(self):
        agent = EchoAgent(should_fail=True)

        with pytest.raises(AgentExecutionError) as exc_info:
            agent.execute(EchoInput("Cafe Dream"))

        assert exc_info.value.error_code == "API_TIMEOUT"
        assert "timed out" in exc_info.value.message

    def test_agent_get_retry_policy(self):
        policy = EchoAgent().get_retry_policy()

        assert policy.max_attempts == 3
        assert policy.base_delay_seconds == 2.0
        assert "API_TIMEOUT" in policy.retryable_errors

    def test_default_retry_policy_is_single_attempt(self):
        """Test agents that do not override get_retry_policy are never retried"""
        assert IncompleteAgent().get_retry_policy().max_attempts == 1

    def test_validate_input_must_be_implemented(self):
        with pytest.raises(NotImplementedError):
            IncompleteAgent().validate_input(EchoInput("x"))

    def test_abstract_agent_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            Agent()


@pytest.mark.unit
class TestRetryPolicy:
    """Test suite for RetryPolicy"""

    def test_retry_policy_defaults(self):
        policy = RetryPolicy()

        assert policy.max_attempts == 1
        assert policy.base_delay_seconds == 2.0
        assert policy.max_delay_seconds == 60.0
        assert policy.retryable_errors == []

    def test_retry_policy_custom_values(self):
        policy = RetryPolicy(
            max_attempts=5,
            base_delay_seconds=2.0,
            max_delay_seconds=120.0,
            retryable_errors=["API_TIMEOUT", "EMPTY_RESPONSE"]
        )

        assert policy.max_attempts == 5
        assert policy.max_delay_seconds == 120.0
        assert policy.retryable_errors == ["API_TIMEOUT", "EMPTY_RESPONSE"]

    def test_retry_policy_requires_one_attempt(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_retry_policy_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            RetryPolicy(base_delay_seconds=-1.0)

    def test_max_retries(self):
        assert RetryPolicy(max_attempts=3).max_retries == 2

    def test_delay_doubles_after_each_attempt(self):
        policy = RetryPolicy(max_attempts=4)

        assert [policy.delay_after(n) for n in range(3)] == [2.0, 4.0, 8.0]

    def test_delay_is_capped(self):
        policy = RetryPolicy(max_attempts=10, base_delay_seconds=2.0, max_delay_seconds=60.0)

        assert policy.delay_after(10) == 60.0


@pytest.mark.unit
class TestAgentExecutionError:
    """Test suite for AgentExecutionError"""

    def test_error_with_context(self):
        error = AgentExecutionError(
            error_code="STRUCTURAL_VALIDATION_FAILED",
            message="Invalid script structure",
            context={"violations": ["Missing speechParams field"]}
        )

        assert error.error_code == "STRUCTURAL_VALIDATION_FAILED"
        assert error.context == {"violations": ["Missing speechParams field"]}
        assert "[STRUCTURAL_VALIDATION_FAILED]" in str(error)

    def test_error_without_context(self):
        error = AgentExecutionError(error_code="EMPTY_RESPONSE", message="Empty response")

        assert error.context == {}
