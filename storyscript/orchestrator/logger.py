"""Structured JSON logger for script generation observability.

This module provides structured logging that writes JSON-formatted entries
to generation.log in an output directory. Each entry is a single JSON
object on one line.

Log Event Types:
- generation_start: A generation call begins
- attempt_failure: One completion attempt failed
- generation_complete: A validated script was produced
- generation_failure: The call ended without a valid script
- fallback_used: The offline generator replaced the service result
- performance_entry: A performance log entry was recorded
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


LOG_FILE_NAME = "generation.log"


class StructuredJSONLogger:
    """Structured JSON logger that writes to generation.log.

    Every entry has the form::

        {"event": "<event type>", "timestamp": "ISO8601", ...event fields...}

    A human-readable line is mirrored to the console logger. Without an
    output directory only console logging is enabled.
    """

    def __init__(self, output_directory: Optional[str] = None):
        """Initialize the structured JSON logger.

        Args:
            output_directory: Directory where generation.log will be written.
                            If None, only console logging is enabled.
        """
        self.output_directory = output_directory
        self.log_file_path: Optional[Path] = None
        self.json_file_handle = None

        if output_directory:
            self._setup_log_file(output_directory)

        self.logger = logging.getLogger(__name__)

    def _setup_log_file(self, output_directory: str) -> None:
        output_path = Path(output_directory)
        output_path.mkdir(parents=True, exist_ok=True)

        self.log_file_path = output_path / LOG_FILE_NAME
        self.json_file_handle = open(self.log_file_path, 'a', encoding='utf-8')

    def _write_json_log(self, event: str, **fields: Any) -> Dict[str, Any]:
        """Write one event line and return the entry."""
        log_entry: Dict[str, Any] = {
            "event": event,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        log_entry.update(fields)

        if self.json_file_handle:
            self.json_file_handle.write(json.dumps(log_entry, ensure_ascii=False) + '\n')
            self.json_file_handle.flush()
        return log_entry

    def log_generation_start(
        self,
        story_id: str,
        template_id: str,
        model: str,
        max_attempts: int
    ) -> None:
        """Log the start of a generation call."""
        self._write_json_log(
            "generation_start",
            story_id=story_id,
            template_id=template_id,
            model=model,
            max_attempts=max_attempts
        )
        self.logger.info(
            f"Generating script for story {story_id} with {template_id} ({model}, up to {max_attempts} attempts)"
        )

    def log_attempt_failure(
        self,
        story_id: str,
        error_code: str,
        error_message: str,
        attempt: int,
        will_retry: bool
    ) -> None:
        """Log one failed completion attempt.

        Args:
            story_id: Story being converted
            error_code: Machine-readable error code
            error_message: Human-readable error message
            attempt: Attempt index (0 for the first attempt)
            will_retry: Whether another attempt follows
        """
        self._write_json_log(
            "attempt_failure",
            story_id=story_id,
            error_code=error_code,
            error_message=error_message,
            retry_attempt=attempt,
            will_retry=will_retry
        )
        self.logger.warning(
            f"Attempt {attempt + 1} for story {story_id} failed [{error_code}]: {error_message}"
        )

    def log_generation_complete(
        self,
        story_id: str,
        template_id: str,
        duration_ms: float,
        beat_count: int,
        retry_count: int
    ) -> None:
        self._write_json_log(
            "generation_complete",
            story_id=story_id,
            template_id=template_id,
            duration_ms=round(duration_ms, 2),
            beat_count=beat_count,
            retry_count=retry_count
        )
        self.logger.info(
            f"Generated {beat_count}-beat script for story {story_id} in {duration_ms:.2f}ms"
        )

    def log_generation_failure(
        self,
        story_id: str,
        error_code: str,
        error_message: str,
        duration_ms: float
    ) -> None:
        self._write_json_log(
            "generation_failure",
            story_id=story_id,
            error_code=error_code,
            error_message=error_message,
            duration_ms=round(duration_ms, 2)
        )
        self.logger.error(f"Script generation failed for story {story_id} [{error_code}]: {error_message}")

    def log_fallback_used(self, story_id: str, reason: str) -> None:
        """Log that the offline generator produced the returned script."""
        self._write_json_log("fallback_used", story_id=story_id, reason=reason)
        self.logger.warning(f"Falling back to offline generation for story {story_id}: {reason}")

    def log_performance_entry(self, entry: Dict[str, Any]) -> None:
        """Log a recorded performance entry (file only)."""
        self._write_json_log("performance_entry", **entry)

    def close(self) -> None:
        """Close the log file handle."""
        if self.json_file_handle:
            self.json_file_handle.close()
            self.json_file_handle = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
