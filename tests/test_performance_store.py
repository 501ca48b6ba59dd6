"""Unit tests for the performance store."""

import threading
from unittest.mock import Mock

import pytest

from storyscript.orchestrator.performance import PerformanceStore
from storyscript.prompts.registry import TemplateRegistry
from storyscript.schemas.generation import PerformanceLogEntry


def make_entry(template_id="base_mulmoscript_v1", success=True, valid=True,
               response_time_ms=100.0, input_tokens=100, output_tokens=400):
    return PerformanceLogEntry(
        template_id=template_id,
        prompt_hash="0123456789abcdef",
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        response_time_ms=response_time_ms,
        success=success,
        generated_script_valid=valid,
        error_message=None if success else "timed out",
    )


class TestPerformanceStore:
    """Test suite for PerformanceStore."""

    @pytest.fixture
    def registry(self):
        return TemplateRegistry()

    @pytest.fixture
    def store(self, registry):
        return PerformanceStore(registry=registry)

    def test_record_appends_entry(self, store):
        entry = make_entry()

        store.record(entry)

        assert store.entries() == [entry]
        assert len(store) == 1

    def test_record_updates_template_metadata(self, store, registry):
        store.record(make_entry(success=True))
        store.record(make_entry(success=False, valid=False))
        store.record(make_entry(success=True))
        store.record(make_entry(success=True, valid=False))

        metadata = registry.get_template("base_mulmoscript_v1").metadata
        assert metadata.usage_count == 4
        assert metadata.success_rate == 0.5

    def test_entries_filtered_by_template(self, store):
        store.record(make_entry("base_mulmoscript_v1"))
        store.record(make_entry("enhanced_mulmoscript_v1"))

        assert [e.template_id for e in store.entries("enhanced_mulmoscript_v1")] == ["enhanced_mulmoscript_v1"]

    def test_template_performance(self, store):
        store.record(make_entry(response_time_ms=100.0, input_tokens=100, output_tokens=300))
        store.record(make_entry(response_time_ms=300.0, input_tokens=200, output_tokens=500, success=False, valid=False))

        stats = store.get_template_performance("base_mulmoscript_v1")

        assert stats["usage_count"] == 2
        assert stats["success_rate"] == 0.5
        assert stats["avg_response_time_ms"] == 200.0
        assert stats["avg_input_tokens"] == 150.0
        assert stats["avg_output_tokens"] == 400.0
        assert len(stats["recent_entries"]) == 2

    def test_template_performance_recent_limited_to_ten(self, store):
        for i in range(15):
            store.record(make_entry(response_time_ms=float(i)))

        recent = store.get_template_performance("base_mulmoscript_v1")["recent_entries"]

        assert len(recent) == 10
        assert [e.response_time_ms for e in recent] == [float(i) for i in range(5, 15)]

    def test_unused_template_performance(self, store):
        stats = store.get_template_performance("shakespeare_mulmoscript_v1")

        assert stats["usage_count"] == 0
        assert stats["success_rate"] == 0.0
        assert stats["recent_entries"] == []

    def test_overall_performance(self, store):
        store.record(make_entry("base_mulmoscript_v1"))
        store.record(make_entry("enhanced_mulmoscript_v1", success=False, valid=False))
        store.record(make_entry("enhanced_mulmoscript_v1"))
        store.record(make_entry("enhanced_mulmoscript_v1"))

        overall = store.get_overall_performance()

        assert overall["total_requests"] == 4
        assert overall["overall_success_rate"] == 0.75
        assert set(overall["templates"]) == {
            "base_mulmoscript_v1", "enhanced_mulmoscript_v1", "shakespeare_mulmoscript_v1"
        }
        assert overall["templates"]["shakespeare_mulmoscript_v1"]["usage_count"] == 0

    def test_overall_performance_empty(self):
        overall = PerformanceStore().get_overall_performance()

        assert overall == {"total_requests": 0, "overall_success_rate": 0.0, "templates": {}}

    def test_log_is_bounded_but_counters_are_not(self, registry):
        store = PerformanceStore(registry=registry, max_entries=3)

        for i in range(5):
            store.record(make_entry(response_time_ms=float(i)))

        assert [e.response_time_ms for e in store.entries()] == [2.0, 3.0, 4.0]
        assert store.get_template_performance("base_mulmoscript_v1")["usage_count"] == 5
        assert registry.get_template("base_mulmoscript_v1").metadata.usage_count == 5

    def test_stores_sharing_a_registry_accumulate(self, registry):
        first = PerformanceStore(registry=registry)
        second = PerformanceStore(registry=registry)

        first.record(make_entry(success=True))
        second.record(make_entry(success=False, valid=False))
        second.record(make_entry(success=True))

        metadata = registry.get_template("base_mulmoscript_v1").metadata
        assert metadata.usage_count == 3
        assert metadata.success_rate == 2 / 3
        assert first.get_template_performance("base_mulmoscript_v1")["usage_count"] == 1

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            PerformanceStore(max_entries=0)

    def test_sink_receives_every_entry(self):
        sink = Mock()
        store = PerformanceStore(sink=sink)

        store.record(make_entry())
        store.record(make_entry(success=False, valid=False))

        assert sink.log_performance_entry.call_count == 2
        assert sink.log_performance_entry.call_args.args[0]["success"] is False

    def test_concurrent_records_for_same_template(self, store, registry):
        """Test concurrent appends never lose counter updates."""
        def worker(worker_index):
            for i in range(50):
                store.record(make_entry(success=(i % 2 == 0)))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stats = store.get_template_performance("base_mulmoscript_v1")
        assert stats["usage_count"] == 400
        assert stats["success_rate"] == 0.5
        assert len(store) == 400
        metadata = registry.get_template("base_mulmoscript_v1").metadata
        assert metadata.usage_count == 400
        assert metadata.success_rate == 0.5
