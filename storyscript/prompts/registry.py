"""Process-wide store of prompt templates.

A ``TemplateRegistry`` is constructed explicitly and injected into the
script generator, so tests and tenants each get their own instance.
Templates are replaced rather than mutated, so readers always see a
consistent snapshot.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional

from storyscript.agents.base import AgentExecutionError
from storyscript.prompts.templates import (
    BUILTIN_TEMPLATES,
    DEFAULT_WRITER_PERSONA,
    WRITER_PERSONAS,
    unknown_variables,
)
from storyscript.schemas.prompt import PromptTemplate, utc_now_iso

logger = logging.getLogger(__name__)


class TemplateRegistry:
    """Named prompt templates with a persona-selected default.

    Templates are never deleted during the registry's lifetime.
    """

    def __init__(
        self,
        writer_persona: str = DEFAULT_WRITER_PERSONA,
        templates: Optional[Iterable[PromptTemplate]] = None
    ):
        """Initialize the registry.

        Args:
            writer_persona: Persona selecting the default template
            templates: Initial templates (defaults to the built-in set)

        Raises:
            AgentExecutionError: If the persona is unknown
        """
        if writer_persona not in WRITER_PERSONAS:
            raise AgentExecutionError(
                "INVALID_CONFIGURATION",
                f"Unknown writer persona: {writer_persona}",
                {"known_personas": sorted(WRITER_PERSONAS)}
            )
        self.writer_persona = writer_persona
        self._lock = threading.RLock()
        self._templates: Dict[str, PromptTemplate] = {}
        self._success_counts: Dict[str, int] = {}

        initial = BUILTIN_TEMPLATES if templates is None else templates
        for template in initial:
            self._templates[template.id] = template.model_copy(deep=True)

    def get_template(self, template_id: str) -> Optional[PromptTemplate]:
        """Return the template with ``template_id``, or None."""
        with self._lock:
            return self._templates.get(template_id)

    def require_template(self, template_id: str) -> PromptTemplate:
        """Return the template with ``template_id``.

        Raises:
            AgentExecutionError: TEMPLATE_NOT_FOUND if no such template exists
        """
        template = self.get_template(template_id)
        if template is None:
            raise AgentExecutionError(
                "TEMPLATE_NOT_FOUND",
                f"Template not found: {template_id}",
                {"template_id": template_id, "available": self.template_ids()}
            )
        return template

    def get_default_template(self) -> PromptTemplate:
        """Return the default template selected by the writer persona."""
        return self.require_template(WRITER_PERSONAS[self.writer_persona])

    def register_template(self, template: PromptTemplate) -> PromptTemplate:
        """Insert or overwrite a template by id, stamping ``updated_at``.

        Raises:
            AgentExecutionError: INVALID_TEMPLATE if the template declares
                variables that have no declaration
        """
        unknown = unknown_variables(template)
        if unknown:
            raise AgentExecutionError(
                "INVALID_TEMPLATE",
                f"Template {template.id} declares unknown variables: {', '.join(unknown)}",
                {"template_id": template.id, "unknown_variables": unknown}
            )

        stored = template.model_copy(deep=True)
        stored.metadata.updated_at = utc_now_iso()
        with self._lock:
            replaced = template.id in self._templates
            self._templates[template.id] = stored
            self._success_counts.pop(template.id, None)

        logger.info(f"{'Replaced' if replaced else 'Registered'} template {template.id} ({template.version})")
        return stored

    def record_usage(self, template_id: str, succeeded: bool) -> None:
        """Add one generation outcome to a template's aggregate counters.

        Counts accumulate in the registry itself, so every performance store
        sharing this registry contributes to the same totals.
        """
        with self._lock:
            template = self._templates.get(template_id)
            if template is None:
                return
            usage_count = template.metadata.usage_count + 1
            successes = self._success_counts.get(
                template_id,
                round(template.metadata.success_rate * template.metadata.usage_count)
            ) + (1 if succeeded else 0)
            self._success_counts[template_id] = successes
            metadata = template.metadata.model_copy(update={
                "usage_count": usage_count,
                "success_rate": successes / usage_count,
                "updated_at": utc_now_iso(),
            })
            self._templates[template_id] = template.model_copy(update={"metadata": metadata})

    def list_templates(self) -> List[PromptTemplate]:
        with self._lock:
            return list(self._templates.values())

    def template_ids(self) -> List[str]:
        with self._lock:
            return list(self._templates)
