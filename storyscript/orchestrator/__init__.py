"""Generation orchestration components.

The pipeline module is loaded on first attribute access so that importing
``storyscript.orchestrator.retry_policy`` or ``.logger`` stays cheap and
does not pull in the OpenAI client.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from storyscript.orchestrator.pipeline import GeneratorConfig, ScriptGenerator

__all__ = ["GeneratorConfig", "ScriptGenerator"]


def __getattr__(name: str):
    """Lazily expose orchestrator symbols without eager pipeline imports."""
    if name in __all__:
        from storyscript.orchestrator.pipeline import GeneratorConfig, ScriptGenerator

        mapping = {
            "GeneratorConfig": GeneratorConfig,
            "ScriptGenerator": ScriptGenerator,
        }
        return mapping[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
