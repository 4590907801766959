"""
Debug logging for the intake pipeline.

This module records LLM requests, responses, and categorization validation
failures as JSON files so a bad extraction can be inspected after the fact.
Logs are stored in a dedicated subfolder of the project's .jobtalk directory.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


class DebugLogger:
    """
    Writes one JSON file per logged event.

    Logs are stored in {project_root}/.jobtalk/debug/session_<timestamp>/ so
    that files from separate runs never mix.
    """

    def __init__(self, project_root: str = ".", enabled: Optional[bool] = None):
        """
        Initialize debug logger.

        Args:
            project_root: Project root directory for log storage
            enabled: Override debug enable flag, uses JT_DEBUG env var if None
        """
        self.project_root = project_root
        self.enabled = enabled if enabled is not None else is_debug_enabled()
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

        if self.enabled:
            self._setup_log_directory()

    def _setup_log_directory(self) -> None:
        self.log_dir = Path(self.project_root) / ".jobtalk" / "debug"
        self.session_dir = self.log_dir / f"session_{self.session_id}"
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def _write(self, step: str, payload: Dict[str, Any]) -> Optional[Path]:
        if not self.enabled:
            return None

        timestamp = datetime.now().isoformat()
        log_data = {"timestamp": timestamp, "session_id": self.session_id, "step": step}
        log_data.update(payload)

        filename = f"{step}_{timestamp.replace(':', '-').replace('.', '_')}.json"
        log_file = self.session_dir / filename

        with open(log_file, "w", encoding="utf-8") as f:
            json.dump(log_data, f, indent=2, ensure_ascii=False, default=str)
        return log_file

    def log_llm_request(self, prompt: str, request_type: str) -> Optional[Path]:
        """
        Log LLM request details.

        Args:
            prompt: Full prompt sent to LLM
            request_type: Kind of request, e.g. "categorization"
        """
        return self._write("llm_request", {"type": "request", "request_type": request_type, "prompt": prompt})

    def log_llm_response(self, response_content: str, original_text: str) -> Optional[Path]:
        """
        Log LLM response details.

        Args:
            response_content: Raw response from LLM
            original_text: Original input text for comparison
        """
        return self._write(
            "llm_response",
            {
                "type": "response",
                "response_content": response_content,
                "original_text": original_text,
                "response_length": len(response_content),
                "original_length": len(original_text),
            },
        )

    def log_validation_error(self, error: Exception, raw_data: Any, context: str = "validation") -> Optional[Path]:
        """
        Log detailed information about validation errors (e.g. malformed categorization output).

        Args:
            error: The exception that occurred
            raw_data: The raw data that failed validation
            context: Context description for the error
        """
        errors_method = getattr(error, "errors", None)
        return self._write(
            f"{context}_validation_error",
            {
                "type": "validation_error",
                "error": str(error),
                "error_type": type(error).__name__,
                "raw_data": raw_data,
                "validation_errors": errors_method() if callable(errors_method) else [],
            },
        )


# Global debug logger instance
_debug_logger: Optional[DebugLogger] = None


def get_debug_logger(project_root: str = ".") -> DebugLogger:
    """
    Get or create global debug logger instance.

    Args:
        project_root: Project root directory

    Returns:
        DebugLogger instance
    """
    global _debug_logger
    if _debug_logger is None or _debug_logger.project_root != project_root:
        _debug_logger = DebugLogger(project_root)
    return _debug_logger


def is_debug_enabled() -> bool:
    """Check if debug logging is enabled via the JT_DEBUG environment variable."""
    return os.getenv("JT_DEBUG", "0") == "1"
