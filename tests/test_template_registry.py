"""Unit tests for the template registry."""

import threading

import pytest

from storyscript.agents.base import AgentExecutionError
from storyscript.prompts import BUILTIN_TEMPLATES, WRITER_PERSONAS, TemplateRegistry
from storyscript.prompts.templates import TEMPLATE_VARIABLES, unknown_variables
from storyscript.schemas.prompt import PromptTemplate, TemplateMetadata


def make_template(template_id="custom_v1", content="Tell {{story_title}}: {{story_text}}"):
    return PromptTemplate(
        id=template_id,
        name="Custom",
        version="v1.0",
        content=content,
        metadata=TemplateMetadata(created_at="2024-01-01T00:00:00+00:00", updated_at="2024-01-01T00:00:00+00:00"),
    )


class TestBuiltinTemplates:
    """Test the built-in template set."""

    def test_builtin_ids(self):
        assert [t.id for t in BUILTIN_TEMPLATES] == [
            "base_mulmoscript_v1",
            "enhanced_mulmoscript_v1",
            "shakespeare_mulmoscript_v1",
        ]

    @pytest.mark.parametrize("template", BUILTIN_TEMPLATES, ids=lambda t: t.id)
    def test_builtin_templates_use_only_declared_variables(self, template):
        assert unknown_variables(template) == []
        assert set(template.placeholders()) <= set(TEMPLATE_VARIABLES)

    @pytest.mark.parametrize("template", BUILTIN_TEMPLATES, ids=lambda t: t.id)
    def test_builtin_templates_reference_required_variables(self, template):
        assert "story_title" in template.placeholders()
        assert "story_text" in template.placeholders()


class TestTemplateRegistry:
    """Test suite for TemplateRegistry."""

    @pytest.fixture
    def registry(self):
        return TemplateRegistry()

    def test_default_persona_selects_enhanced_template(self, registry):
        assert registry.get_default_template().id == "enhanced_mulmoscript_v1"

    @pytest.mark.parametrize("persona,template_id", sorted(WRITER_PERSONAS.items()))
    def test_persona_selects_default(self, persona, template_id):
        assert TemplateRegistry(writer_persona=persona).get_default_template().id == template_id

    def test_unknown_persona_rejected(self):
        with pytest.raises(AgentExecutionError) as exc_info:
            TemplateRegistry(writer_persona="poet")

        assert exc_info.value.error_code == "INVALID_CONFIGURATION"

    def test_get_template_missing_returns_none(self, registry):
        assert registry.get_template("nope") is None

    def test_require_template_missing_raises(self, registry):
        with pytest.raises(AgentExecutionError) as exc_info:
            registry.require_template("nope")

        assert exc_info.value.error_code == "TEMPLATE_NOT_FOUND"
        assert "base_mulmoscript_v1" in exc_info.value.context["available"]

    def test_register_new_template(self, registry):
        stored = registry.register_template(make_template())

        assert registry.get_template("custom_v1") == stored
        assert stored.metadata.updated_at != "2024-01-01T00:00:00+00:00"
        assert stored.metadata.created_at == "2024-01-01T00:00:00+00:00"
        assert len(registry.list_templates()) == 4

    def test_register_overwrites_by_id(self, registry):
        registry.register_template(make_template())
        registry.register_template(make_template(content="Retold {{story_title}} / {{story_text}}"))

        assert registry.get_template("custom_v1").content.startswith("Retold")
        assert registry.template_ids().count("custom_v1") == 1

    def test_register_rejects_unknown_variables(self, registry):
        with pytest.raises(AgentExecutionError) as exc_info:
            registry.register_template(make_template(content="{{story_title}} {{villain_name}}"))

        assert exc_info.value.error_code == "INVALID_TEMPLATE"
        assert exc_info.value.context["unknown_variables"] == ["villain_name"]
        assert registry.get_template("custom_v1") is None

    def test_registered_copy_is_isolated(self, registry):
        template = make_template()
        registry.register_template(template)

        template.content = "mutated"

        assert registry.get_template("custom_v1").content != "mutated"

    def test_record_usage_updates_metadata(self, registry):
        for succeeded in [True, True, False, True]:
            registry.record_usage("base_mulmoscript_v1", succeeded)

        metadata = registry.get_template("base_mulmoscript_v1").metadata
        assert metadata.usage_count == 4
        assert metadata.success_rate == 0.75

    def test_record_usage_continues_from_existing_metadata(self, registry):
        restored = make_template()
        restored.metadata.usage_count = 4
        restored.metadata.success_rate = 0.5
        registry.register_template(restored)

        registry.record_usage("custom_v1", True)

        metadata = registry.get_template("custom_v1").metadata
        assert metadata.usage_count == 5
        assert metadata.success_rate == 0.6

    def test_record_usage_unknown_template_ignored(self, registry):
        registry.record_usage("nope", True)

        assert registry.get_template("nope") is None

    def test_registries_are_independent(self):
        first = TemplateRegistry()
        second = TemplateRegistry()

        first.register_template(make_template())

        assert second.get_template("custom_v1") is None

    def test_concurrent_registration(self, registry):
        """Test concurrent registrations do not lose templates."""
        def register(index):
            registry.register_template(make_template(template_id=f"custom_{index}"))

        threads = [threading.Thread(target=register, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry.list_templates()) == 23
