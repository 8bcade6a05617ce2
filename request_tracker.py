"""Generation tokens for requests that supersede each other.

Each new request for a channel (e.g. "schedule") bumps that channel's
generation. A response is applied only if it still carries the current
generation; anything older belongs to a superseded selection and is dropped.
"""

import logging
import threading

logger = logging.getLogger(__name__)


class RequestGenerations:

    def __init__(self):
        self._lock = threading.Lock()
        self._current = {}

    def begin(self, channel):
        """Start a request on ``channel`` and return its generation token."""
        with self._lock:
            token = self._current.get(channel, 0) + 1
            self._current[channel] = token
            return token

    def is_current(self, channel, token):
        with self._lock:
            return self._current.get(channel) == token

    def accept(self, channel, token):
        """True if a response with ``token`` may be applied. Logs discards."""
        if self.is_current(channel, token):
            return True
        logger.debug(f"Discarding stale {channel} response (generation {token})")
        return False
