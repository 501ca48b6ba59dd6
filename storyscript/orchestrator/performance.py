"""In-memory performance log for generation attempts.

Keeps a bounded window of recent ``PerformanceLogEntry`` records and
full-history counters per template. Every recorded entry also updates the
owning template's ``usage_count`` and ``success_rate`` in the registry.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional

from storyscript.orchestrator.logger import StructuredJSONLogger
from storyscript.prompts.registry import TemplateRegistry
from storyscript.schemas.generation import PerformanceLogEntry

logger = logging.getLogger(__name__)

RECENT_ENTRY_COUNT = 10


@dataclass
class TemplateCounters:
    """Running totals for one template across the full history."""
    usage_count: int = 0
    success_count: int = 0
    total_response_time_ms: float = 0.0
    total_input_tokens: int = 0
    total_output_tokens: int = 0

    @property
    def success_rate(self) -> float:
        return self.success_count / self.usage_count if self.usage_count else 0.0

    def add(self, entry: PerformanceLogEntry) -> None:
        self.usage_count += 1
        if entry.succeeded:
            self.success_count += 1
        self.total_response_time_ms += entry.response_time_ms
        self.total_input_tokens += entry.input_tokens
        self.total_output_tokens += entry.output_tokens


class PerformanceStore:
    """Append-only performance log shared by concurrent generation calls.

    Appending an entry and updating the template counters happen under one
    lock, so concurrent writers for the same template never lose updates.
    """

    def __init__(
        self,
        registry: Optional[TemplateRegistry] = None,
        max_entries: int = 1000,
        sink: Optional[StructuredJSONLogger] = None
    ):
        """Initialize the store.

        Args:
            registry: Registry whose template metadata is kept in sync
            max_entries: Number of recent entries kept in memory
            sink: Optional structured logger receiving every entry
        """
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")
        self.registry = registry
        self.sink = sink
        self._lock = threading.Lock()
        self._entries: Deque[PerformanceLogEntry] = deque(maxlen=max_entries)
        self._counters: Dict[str, TemplateCounters] = {}

    def record(self, entry: PerformanceLogEntry) -> None:
        """Append ``entry`` and update the owning template's statistics."""
        with self._lock:
            self._entries.append(entry)
            counters = self._counters.setdefault(entry.template_id, TemplateCounters())
            counters.add(entry)
            if self.registry is not None:
                self.registry.record_usage(entry.template_id, entry.succeeded)
            if self.sink is not None:
                self.sink.log_performance_entry(entry.model_dump())

        logger.debug(
            f"Recorded {'successful' if entry.succeeded else 'failed'} attempt for {entry.template_id}"
        )

    def entries(self, template_id: Optional[str] = None) -> List[PerformanceLogEntry]:
        """Return retained entries, oldest first, optionally for one template."""
        with self._lock:
            if template_id is None:
                return list(self._entries)
            return [entry for entry in self._entries if entry.template_id == template_id]

    def get_template_performance(self, template_id: str) -> Dict[str, Any]:
        """Return aggregate statistics and the most recent entries for a template."""
        with self._lock:
            counters = self._counters.get(template_id, TemplateCounters())
            recent = [entry for entry in self._entries if entry.template_id == template_id]
            return self._summarize(template_id, counters, recent[-RECENT_ENTRY_COUNT:])

    def get_overall_performance(self) -> Dict[str, Any]:
        """Return totals across all templates plus per-template statistics."""
        with self._lock:
            total = sum(c.usage_count for c in self._counters.values())
            successes = sum(c.success_count for c in self._counters.values())
            template_ids = list(self._counters)
            if self.registry is not None:
                template_ids = self.registry.template_ids() + [
                    template_id for template_id in template_ids
                    if self.registry.get_template(template_id) is None
                ]
            templates = {}
            for template_id in template_ids:
                counters = self._counters.get(template_id, TemplateCounters())
                recent = [entry for entry in self._entries if entry.template_id == template_id]
                templates[template_id] = self._summarize(template_id, counters, recent[-RECENT_ENTRY_COUNT:])

        return {
            "total_requests": total,
            "overall_success_rate": successes / total if total else 0.0,
            "templates": templates,
        }

    @staticmethod
    def _summarize(
        template_id: str,
        counters: TemplateCounters,
        recent: List[PerformanceLogEntry]
    ) -> Dict[str, Any]:
        usage = counters.usage_count
        return {
            "template_id": template_id,
            "usage_count": usage,
            "success_rate": counters.success_rate,
            "avg_response_time_ms": counters.total_response_time_ms / usage if usage else 0.0,
            "avg_input_tokens": counters.total_input_tokens / usage if usage else 0.0,
            "avg_output_tokens": counters.total_output_tokens / usage if usage else 0.0,
            "recent_entries": recent,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
