import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from shared.config import Settings
from shared.constants import AUDIT_LOGGER_NAME


class AuditLogger:
    """Audit trail for signal intake, aggregation decisions and source updates"""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()
        self.enabled = self.settings.audit_enabled
        self.logger = logging.getLogger(AUDIT_LOGGER_NAME)
        self.events_logged = 0

    def _emit(self, event: str, level: int, payload: Dict[str, Any]) -> None:
        record = {
            "event": event,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": self.settings.environment,
            **payload,
        }
        self.logger.log(level, json.dumps(record, default=str))
        self.events_logged += 1

    def log_signal(self, signal_data: Dict[str, Any], status: str) -> None:
        """Log an input signal and what happened to it"""
        if not self.enabled:
            return

        try:
            self._emit("signal", logging.INFO, {"status": status, "signal": signal_data})
        except Exception as e:
            self.logger.error(f"Failed to log signal: {e}")

    def log_aggregation(self, aggregated_data: Dict[str, Any]) -> None:
        """Log an accepted composite"""
        if not self.enabled:
            return

        try:
            self._emit("aggregation", logging.INFO, {"aggregated": aggregated_data})
        except Exception as e:
            self.logger.error(f"Failed to log aggregation: {e}")

    def log_rejection(self, instrument: str, failures: List[str]) -> None:
        """Log a composite discarded by the validation gate"""
        if not self.enabled:
            return

        try:
            self._emit(
                "rejection",
                logging.INFO,
                {"instrument": instrument, "failures": failures},
            )
        except Exception as e:
            self.logger.error(f"Failed to log rejection: {e}")

    def log_source(self, source_data: Dict[str, Any], action: str) -> None:
        """Log a source registration, status change or weight update"""
        if not self.enabled:
            return

        try:
            self._emit("source", logging.INFO, {"action": action, "source": source_data})
        except Exception as e:
            self.logger.error(f"Failed to log source: {e}")

    def log_error(self, error: str, context: Optional[Dict[str, Any]] = None) -> None:
        """Log error for audit purposes"""
        if not self.enabled:
            return

        try:
            self._emit("error", logging.ERROR, {"error": error, "context": context or {}})
        except Exception as e:
            self.logger.error(f"Failed to log error: {e}")
