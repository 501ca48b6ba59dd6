"""Retry policy implementation for script generation.

This module provides the bounded retry loop that wraps completion
invocation and response validation. It distinguishes between retryable
errors (transport failures, empty or malformed replies) and non-retryable
errors (missing templates or context, missing credentials).

The retry system supports:
- Exponential backoff (2s, 4s, ...) with a delay cap
- Configurable max attempts
- Error code-based retry decisions
- A per-failure callback so callers can record each failed attempt
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from storyscript.agents.base import AgentExecutionError, RetryPolicy


logger = logging.getLogger(__name__)


T = TypeVar('T')


RETRYABLE_ERROR_CODES = {
    # Transport errors
    'API_TIMEOUT',
    'API_RATE_LIMIT',
    'API_UNAVAILABLE',
    'NETWORK_ERROR',

    # Reply errors: a fresh request may produce a valid reply
    'EMPTY_RESPONSE',
    'NO_VALID_JSON',
    'STRUCTURAL_VALIDATION_FAILED',
    'SCHEMA_VALIDATION_FAILED',
}


NON_RETRYABLE_ERROR_CODES = {
    # Caller errors
    'TEMPLATE_NOT_FOUND',
    'MISSING_REQUIRED_CONTEXT',
    'INVALID_INPUT',

    # Configuration errors
    'API_KEY_MISSING',
    'INVALID_TEMPLATE',
    'INVALID_CONFIGURATION',

    'RETRIES_EXHAUSTED',
}


# (attempt index, error, whether another attempt follows)
FailureCallback = Callable[[int, Exception, bool], None]


def is_retryable_error(error: Exception, retry_policy: RetryPolicy) -> bool:
    """Determine if an error is retryable based on retry policy.

    Logic:
        1. Errors without an error_code are never retried
        2. Codes in NON_RETRYABLE_ERROR_CODES are never retried
        3. A policy with retryable_errors retries exactly those codes
        4. Otherwise RETRYABLE_ERROR_CODES applies
    """
    error_code = getattr(error, 'error_code', None)

    if error_code is None:
        return False

    if error_code in NON_RETRYABLE_ERROR_CODES:
        return False

    if retry_policy.retryable_errors:
        return error_code in retry_policy.retryable_errors

    return error_code in RETRYABLE_ERROR_CODES


def execute_with_retry(
    func: Callable[[], T],
    retry_policy: RetryPolicy,
    context_name: str = "operation",
    on_failure: Optional[FailureCallback] = None,
    sleep: Callable[[float], None] = time.sleep
) -> T:
    """Execute a function with retry logic.

    Args:
        func: Function to execute (should take no arguments)
        retry_policy: Retry policy to apply
        context_name: Name for logging context
        on_failure: Called after every failed attempt
        sleep: Function used to wait between attempts

    Returns:
        Result of successful function execution

    Raises:
        AgentExecutionError: RETRIES_EXHAUSTED, chained from the last error,
            when every attempt failed with a retryable error
        Exception: A non-retryable error, re-raised unchanged
    """
    total_delay = 0.0

    for attempt in range(retry_policy.max_attempts):
        try:
            result = func()

            if attempt > 0:
                logger.info(
                    f"{context_name} succeeded on attempt {attempt + 1} "
                    f"after {total_delay:.2f}s total delay"
                )

            return result

        except Exception as e:
            error_code = getattr(e, 'error_code', 'UNKNOWN')
            retryable = is_retryable_error(e, retry_policy)
            is_last_attempt = (attempt == retry_policy.max_attempts - 1)
            will_retry = retryable and not is_last_attempt

            if on_failure is not None:
                on_failure(attempt, e, will_retry)

            if not retryable:
                logger.error(f"{context_name} failed with non-retryable error: {error_code}")
                raise

            if is_last_attempt:
                logger.error(
                    f"{context_name} failed after {retry_policy.max_attempts} attempts, "
                    f"last error: {error_code}"
                )
                message = getattr(e, 'message', str(e))
                raise AgentExecutionError(
                    "RETRIES_EXHAUSTED",
                    message,
                    {"last_error_code": error_code, "attempts": retry_policy.max_attempts}
                ) from e

            delay = retry_policy.delay_after(attempt)
            total_delay += delay

            logger.warning(
                f"{context_name} failed with {error_code}, "
                f"retrying in {delay:.2f}s (attempt {attempt + 2}/{retry_policy.max_attempts})"
            )

            sleep(delay)

    raise AssertionError("retry loop exited without result")  # pragma: no cover
