"""Transport interface.

This is the (small) contract that transport implementations should follow.
It lives outside :mod:`mqttrpc.protocol` so the protocol remains
transport-agnostic: a transport moves opaque payloads between named topics
and reports inbound messages, nothing more.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Callable, List

from .. import errors

logger = logging.getLogger(__name__)

Listener = Callable[[str, bytes], None]


# Transport agnostic exceptions

class TransportError(errors.Error):
    """Base class for all transport-layer errors."""


class TransportTimeout(TransportError):
    """A transport operation was not acknowledged in time."""


class TransportConnectionError(TransportError):
    """The transport could not establish or maintain a connection."""


class Transport(ABC):
    """Minimal contract for a topic-addressed publish/subscribe transport.

    Every operation returns a :class:`concurrent.futures.Future` resolved
    when the transport acknowledges it, or failed with a
    :class:`TransportError`. Inbound messages are handed to every callback
    registered via :func:`add_listener` as ``callback(topic, payload)``.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._listeners_lock = threading.Lock()

    @abstractmethod
    def publish(self, topic: str, payload: bytes, qos: int = 0, retain: bool = False) -> Future:
        """Publish *payload* to *topic*."""

    @abstractmethod
    def subscribe(self, topic: str, qos: int = 0) -> Future:
        """Start receiving messages published to *topic*."""

    @abstractmethod
    def unsubscribe(self, topic: str) -> Future:
        """Stop receiving messages published to *topic*."""

    def close(self) -> None:
        """Tear down the underlying connection/socket."""

    def add_listener(self, callback: Listener) -> None:
        if not callable(callback):
            raise TypeError('listener must be callable')

        with self._listeners_lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        with self._listeners_lock:
            try:
                self._listeners.remove(callback)
            except ValueError:
                pass

    def _deliver(self, topic: str, payload: bytes) -> None:
        """Hand an inbound message to every listener. A failing listener
        does not prevent delivery to the others."""

        with self._listeners_lock:
            listeners = tuple(self._listeners)

        for listener in listeners:
            try:
                listener(topic, payload)
            except Exception:
                logger.exception("listener failed for message on %s", topic)
