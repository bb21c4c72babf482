"""Exceptions raised by the signal aggregation engine."""

from typing import List, Optional


class InputValidationError(ValueError):
    """A submitted signal or performance report is malformed"""

    def __init__(self, reason: str, signal_id: Optional[str] = None) -> None:
        self.reason = reason
        self.signal_id = signal_id
        super().__init__(f"invalid signal: {reason}")


class ConfigurationError(ValueError):
    """Invalid weight or threshold configuration"""

    def __init__(self, errors: List[str]) -> None:
        self.errors = list(errors)
        super().__init__("invalid configuration: " + "; ".join(self.errors))
