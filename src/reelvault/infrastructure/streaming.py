"""Streaming (DLNA) service boundary.

The protocol implementation is a separate component. The lifecycle only needs
to start it at boot when enabled in config, and stop it at shutdown.
"""

import logging
import threading

from reelvault.config import ConfigStore

logger = logging.getLogger(__name__)


class StreamingService:
    """Start/stop handle for the DLNA media server."""

    def __init__(self, config: ConfigStore) -> None:
        self._config = config
        self._running = False
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start serving. Starting a running service is a no-op.

        Raises:
            RuntimeError: If the server is not configured yet
        """
        with self._lock:
            if self._running:
                return
            if self._config.is_new_system():
                raise RuntimeError("cannot start DLNA before setup is complete")
            self._running = True
        logger.info("DLNA service started")

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
        logger.info("DLNA service stopped")
