"""ZeroMQ publish/subscribe transport.

ZeroMQ has no broker of its own; :class:`Broker` provides one, as an
XSUB/XPUB forwarder. Every :class:`Transport` connects a PUB socket to the
broker's XSUB side and a SUB socket to its XPUB side, so any transport can
reach any other through a single well-known pair of ports.
"""

from __future__ import annotations

import atexit
import os
import logging
import queue
import threading
from concurrent.futures import Future
from typing import Optional, Set

import zmq

from .. import base
from ..base import TransportConnectionError, TransportError
from .framing import from_frames, to_frames, topic_frame


_BROKER_HOST = os.environ.get("MQTTRPC_ZMQ_HOST", "localhost")
_XSUB_PORT = int(os.environ.get("MQTTRPC_ZMQ_XSUB_PORT", "10139"))
_XPUB_PORT = int(os.environ.get("MQTTRPC_ZMQ_XPUB_PORT", "10140"))

logger = logging.getLogger(__name__)

zmq_context = zmq.Context()


class Broker:
    """XSUB/XPUB forwarder. Publishers connect to *xsub_port*, subscribers
    to *xpub_port*; subscriptions are forwarded upstream automatically."""

    def __init__(self, xsub_port: Optional[int] = None, xpub_port: Optional[int] = None, address: str = "*"):
        self.xsub_port = int(xsub_port or _XSUB_PORT)
        self.xpub_port = int(xpub_port or _XPUB_PORT)

        self.xsub = zmq_context.socket(zmq.XSUB)
        self.xpub = zmq_context.socket(zmq.XPUB)
        self.xsub.setsockopt(zmq.LINGER, 0)
        self.xpub.setsockopt(zmq.LINGER, 0)

        try:
            self.xsub.bind(f"tcp://{address}:{self.xsub_port}")
            self.xpub.bind(f"tcp://{address}:{self.xpub_port}")
        except zmq.ZMQError as exc:
            self.xsub.close()
            self.xpub.close()
            raise base.TransportError(
                f"port already in use: {self.xsub_port} or {self.xpub_port}"
            ) from exc

        self.thread = threading.Thread(target=self.run, daemon=True)
        self.thread.start()

    def run(self) -> None:
        try:
            zmq.proxy(self.xsub, self.xpub)
        except zmq.ContextTerminated:
            pass


class Transport(base.Transport):
    """PUB + SUB socket pair attached to a :class:`Broker`.

    ZeroMQ sockets are not thread-safe; all socket activity happens on one
    background thread, which is fed through an outbox queue and woken via
    an inproc PAIR socket. ZeroMQ does not acknowledge subscriptions, so
    the returned futures resolve once the socket option has been applied.
    """

    def __init__(self, address: Optional[str] = None, xsub_port: Optional[int] = None, xpub_port: Optional[int] = None):
        super().__init__()

        self.address = address or _BROKER_HOST
        self.xsub_port = int(xsub_port or _XSUB_PORT)
        self.xpub_port = int(xpub_port or _XPUB_PORT)

        self.pub = zmq_context.socket(zmq.PUB)
        self.pub.setsockopt(zmq.LINGER, 0)
        self.pub.connect(f"tcp://{self.address}:{self.xsub_port}")

        self.sub = zmq_context.socket(zmq.SUB)
        self.sub.setsockopt(zmq.LINGER, 0)
        self.sub.connect(f"tcp://{self.address}:{self.xpub_port}")

        self.topics: Set[str] = set()

        self._outbox: queue.SimpleQueue = queue.SimpleQueue()

        internal = f"inproc://pubsub.Transport:signal:{id(self)}"
        self._signal_rx = zmq_context.socket(zmq.PAIR)
        self._signal_rx.bind(internal)
        self._signal_tx = zmq_context.socket(zmq.PAIR)
        self._signal_tx.connect(internal)
        self._signal_lock = threading.Lock()

        self.shutdown = False
        self.thread = threading.Thread(target=self.run, daemon=True)
        self.thread.start()

    # --- public operations (any thread) ---

    def publish(self, topic: str, payload: bytes, qos: int = 0, retain: bool = False) -> Future:
        # ZeroMQ has neither QoS levels nor retained messages.
        return self._enqueue("publish", topic, payload)

    def subscribe(self, topic: str, qos: int = 0) -> Future:
        return self._enqueue("subscribe", topic)

    def unsubscribe(self, topic: str) -> Future:
        return self._enqueue("unsubscribe", topic)

    def close(self) -> None:
        """Stop the I/O thread. Operations still queued, and any requested
        afterwards, fail with :class:`TransportConnectionError`."""

        # The PAIR socket is shared by every calling thread, and is closed
        # by the I/O thread once shutdown is set.
        with self._signal_lock:
            if self.shutdown:
                return
            self.shutdown = True
            self._signal_tx.send(b"")

        self.thread.join(timeout=2)

    def _enqueue(self, operation: str, topic: str, payload: bytes = b"") -> Future:
        future: Future = Future()

        with self._signal_lock:
            closed = self.shutdown
            if not closed:
                self._outbox.put((operation, topic, payload, future))
                self._signal_tx.send(b"")

        if closed:
            future.set_exception(TransportConnectionError("transport is closed"))
        return future

    # --- I/O thread ---

    def _handle_outgoing(self) -> None:
        self._signal_rx.recv(flags=zmq.NOBLOCK)

        if self.shutdown:
            return

        while True:
            try:
                operation, topic, payload, future = self._outbox.get(block=False)
            except queue.Empty:
                return

            try:
                if operation == "publish":
                    self.pub.send_multipart(to_frames(topic, payload))
                elif operation == "subscribe":
                    self.sub.setsockopt(zmq.SUBSCRIBE, topic_frame(topic))
                    self.topics.add(topic)
                else:
                    self.sub.setsockopt(zmq.UNSUBSCRIBE, topic_frame(topic))
                    self.topics.discard(topic)
            except zmq.ZMQError as exc:
                future.set_exception(TransportError(f"{operation} {topic}: {exc}"))
            else:
                future.set_result(None)

    def _handle_incoming(self) -> None:
        parts = self.sub.recv_multipart()

        try:
            topic, payload = from_frames(parts)
        except ValueError as exc:
            logger.warning("dropping malformed ZeroMQ message: %s", exc)
            return

        # Subscriptions are shared prefixes at the socket level; only
        # deliver exact matches.
        if topic in self.topics:
            self._deliver(topic, payload)

    def run(self) -> None:
        poller = zmq.Poller()
        poller.register(self.sub, zmq.POLLIN)
        poller.register(self._signal_rx, zmq.POLLIN)

        while not self.shutdown:
            for active, _flag in poller.poll(1000):
                if active == self._signal_rx:
                    self._handle_outgoing()
                elif active == self.sub:
                    self._handle_incoming()

        self._fail_outstanding()

        for socket in (self.pub, self.sub, self._signal_rx, self._signal_tx):
            socket.close()

    def _fail_outstanding(self) -> None:
        while True:
            try:
                _operation, _topic, _payload, future = self._outbox.get(block=False)
            except queue.Empty:
                return
            future.set_exception(TransportConnectionError("transport is closed"))


def connect(address: Optional[str] = None, xsub_port: Optional[int] = None, xpub_port: Optional[int] = None) -> Transport:
    return Transport(address, xsub_port, xpub_port)


def _cleanup() -> None:
    try:
        zmq_context.destroy(linger=0)
    except Exception:
        pass


atexit.register(_cleanup)
