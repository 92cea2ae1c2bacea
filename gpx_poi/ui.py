"""Status channel used to report progress and errors to the user."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Tuple


class StatusReporter(Protocol):
    def show_status(self, message: str, duration_ms: Optional[int] = None) -> None: ...

    def update_gpx_button_states(self, loaded: bool) -> None: ...


class LoggingStatusReporter:
    """Report status messages through :mod:`logging` and keep a history."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._log = logger or logging.getLogger(self.__class__.__name__)
        self.messages: List[Tuple[str, Optional[int]]] = []
        self.gpx_loaded = False

    def show_status(self, message: str, duration_ms: Optional[int] = None) -> None:
        self.messages.append((message, duration_ms))
        if message.startswith("Error"):
            self._log.error("%s", message)
        else:
            self._log.info("%s", message)

    def update_gpx_button_states(self, loaded: bool) -> None:
        self.gpx_loaded = loaded

    @property
    def last_message(self) -> Optional[str]:
        return self.messages[-1][0] if self.messages else None


__all__ = ["LoggingStatusReporter", "StatusReporter"]
