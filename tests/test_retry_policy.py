"""Unit tests for retry policy implementation.

Tests cover:
- Error classification (retryable vs non-retryable)
- Retry execution logic, failure callbacks and exhaustion wrapping
"""

from unittest.mock import Mock, call

import pytest

from storyscript.agents.base import AgentExecutionError, RetryPolicy
from storyscript.orchestrator.retry_policy import (
    NON_RETRYABLE_ERROR_CODES,
    RETRYABLE_ERROR_CODES,
    execute_with_retry,
    is_retryable_error,
)


def completion_policy(max_attempts=3):
    return RetryPolicy(
        max_attempts=max_attempts,
        base_delay_seconds=2.0,
        max_delay_seconds=60.0,
    )


class TestErrorClassification:
    """Test error classification as retryable or non-retryable."""

    @pytest.mark.parametrize("code", sorted(RETRYABLE_ERROR_CODES))
    def test_default_retryable_codes(self, code):
        assert is_retryable_error(AgentExecutionError(code, "x"), RetryPolicy(max_attempts=3)) is True

    @pytest.mark.parametrize("code", sorted(NON_RETRYABLE_ERROR_CODES))
    def test_non_retryable_codes(self, code):
        assert is_retryable_error(AgentExecutionError(code, "x"), RetryPolicy(max_attempts=3)) is False

    def test_non_retryable_overrides_policy(self):
        policy = RetryPolicy(max_attempts=3, retryable_errors=["MISSING_REQUIRED_CONTEXT"])

        assert is_retryable_error(AgentExecutionError("MISSING_REQUIRED_CONTEXT", "x"), policy) is False

    def test_policy_list_restricts_retries(self):
        policy = RetryPolicy(max_attempts=3, retryable_errors=["API_TIMEOUT"])

        assert is_retryable_error(AgentExecutionError("API_TIMEOUT", "x"), policy) is True
        assert is_retryable_error(AgentExecutionError("EMPTY_RESPONSE", "x"), policy) is False

    def test_error_without_code(self):
        assert is_retryable_error(ValueError("boom"), RetryPolicy(max_attempts=3)) is False

    def test_code_sets_are_disjoint(self):
        assert not RETRYABLE_ERROR_CODES & NON_RETRYABLE_ERROR_CODES


class TestExecuteWithRetry:
    """Test retry execution logic."""

    def test_success_on_first_attempt(self):
        func = Mock(return_value="script")
        sleep = Mock()

        assert execute_with_retry(func, completion_policy(), sleep=sleep) == "script"
        assert func.call_count == 1
        sleep.assert_not_called()

    def test_success_after_retries(self):
        func = Mock(side_effect=[
            AgentExecutionError("API_TIMEOUT", "timed out"),
            AgentExecutionError("NO_VALID_JSON", "No valid JSON found in response"),
            "script",
        ])
        sleep = Mock()

        assert execute_with_retry(func, completion_policy(), sleep=sleep) == "script"
        assert sleep.call_args_list == [call(2.0), call(4.0)]

    def test_waits_are_capped(self):
        func = Mock(side_effect=[AgentExecutionError("API_TIMEOUT", "timed out")] * 3 + ["script"])
        sleep = Mock()
        policy = RetryPolicy(max_attempts=4, base_delay_seconds=2.0, max_delay_seconds=5.0)

        assert execute_with_retry(func, policy, sleep=sleep) == "script"
        assert sleep.call_args_list == [call(2.0), call(4.0), call(5.0)]

    def test_exhaustion_wraps_last_error(self):
        errors = [
            AgentExecutionError("API_TIMEOUT", "timed out"),
            AgentExecutionError("EMPTY_RESPONSE", "empty"),
            AgentExecutionError("SCHEMA_VALIDATION_FAILED", "bad schema"),
        ]
        func = Mock(side_effect=errors)
        sleep = Mock()

        with pytest.raises(AgentExecutionError) as exc_info:
            execute_with_retry(func, completion_policy(), sleep=sleep)

        error = exc_info.value
        assert error.error_code == "RETRIES_EXHAUSTED"
        assert error.message == "bad schema"
        assert error.context == {"last_error_code": "SCHEMA_VALIDATION_FAILED", "attempts": 3}
        assert error.__cause__ is errors[-1]
        assert func.call_count == 3
        assert sleep.call_count == 2

    def test_single_attempt_policy_exhausts_immediately(self):
        func = Mock(side_effect=AgentExecutionError("API_TIMEOUT", "timed out"))
        sleep = Mock()

        with pytest.raises(AgentExecutionError) as exc_info:
            execute_with_retry(func, completion_policy(max_attempts=1), sleep=sleep)

        assert exc_info.value.error_code == "RETRIES_EXHAUSTED"
        assert exc_info.value.context["attempts"] == 1
        sleep.assert_not_called()

    def test_non_retryable_error_is_reraised(self):
        original = AgentExecutionError("API_KEY_MISSING", "no key")
        func = Mock(side_effect=original)
        sleep = Mock()

        with pytest.raises(AgentExecutionError) as exc_info:
            execute_with_retry(func, completion_policy(), sleep=sleep)

        assert exc_info.value is original
        assert func.call_count == 1
        sleep.assert_not_called()

    def test_unexpected_exception_is_reraised(self):
        func = Mock(side_effect=RuntimeError("bug"))

        with pytest.raises(RuntimeError):
            execute_with_retry(func, completion_policy(), sleep=Mock())

        assert func.call_count == 1

    def test_on_failure_called_for_every_failed_attempt(self):
        error = AgentExecutionError("API_TIMEOUT", "timed out")
        on_failure = Mock()

        with pytest.raises(AgentExecutionError):
            execute_with_retry(Mock(side_effect=error), completion_policy(), on_failure=on_failure, sleep=Mock())

        assert on_failure.call_args_list == [
            call(0, error, True),
            call(1, error, True),
            call(2, error, False),
        ]

    def test_on_failure_for_non_retryable(self):
        error = AgentExecutionError("INVALID_INPUT", "bad")
        on_failure = Mock()

        with pytest.raises(AgentExecutionError):
            execute_with_retry(Mock(side_effect=error), completion_policy(), on_failure=on_failure, sleep=Mock())

        on_failure.assert_called_once_with(0, error, False)
