"""Console watcher that turns an ``exit`` line on stdin into a stop request."""

from __future__ import annotations

import logging
import sys
import threading
from typing import Callable, Optional, TextIO

from .constants import CONSOLE_EXIT_COMMAND

LOGGER = logging.getLogger(__name__)


class ConsoleWatcher:
    """Read stdin on a daemon thread and call ``on_exit`` when told to stop.

    A blocking ``readline`` cannot be interrupted, so the thread is a daemon
    and is left behind at shutdown.
    """

    def __init__(
        self,
        on_exit: Callable[[], None],
        *,
        stream: Optional[TextIO] = None,
        command: str = CONSOLE_EXIT_COMMAND,
    ) -> None:
        self._on_exit = on_exit
        self._stream = stream
        self._command = command.lower()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(
            target=self._watch, name="meg-relay-console", daemon=True
        )
        self._thread.start()
        LOGGER.info("Type '%s' + Enter to shut down", self._command)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _watch(self) -> None:
        stream = self._stream or sys.stdin
        for line in stream:
            if line.strip().lower() == self._command:
                LOGGER.info("'%s' received: initiating shutdown", self._command)
                self._on_exit()
                return
        LOGGER.debug("Console input closed; watcher exiting")
