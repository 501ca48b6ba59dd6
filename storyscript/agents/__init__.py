"""Agent implementations for the story-to-script engine"""

from .base import Agent, AgentExecutionError, AgentInput, AgentOutput, RetryPolicy
from .prompt_compiler import PromptCompilerAgent, PromptCompilerInput, PromptCompilerOutput
from .completion_invoker import CompletionInput, CompletionInvokerAgent, CompletionOutput, ModelConfig
from .response_validator import ResponseValidatorAgent, ResponseValidatorInput, ResponseValidatorOutput
from .fallback_generator import generate_fallback_script

__all__ = [
    "Agent",
    "AgentExecutionError",
    "AgentInput",
    "AgentOutput",
    "RetryPolicy",
    "PromptCompilerAgent",
    "PromptCompilerInput",
    "PromptCompilerOutput",
    "CompletionInput",
    "CompletionInvokerAgent",
    "CompletionOutput",
    "ModelConfig",
    "ResponseValidatorAgent",
    "ResponseValidatorInput",
    "ResponseValidatorOutput",
    "generate_fallback_script",
]
