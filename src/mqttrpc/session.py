"""Per-endpoint session state.

Two tables live here, both owned by a single :class:`mqttrpc.Endpoint`:

    - :class:`SubscriptionCounter`, which shares one transport subscription
      between any number of concurrent users of the same topic;
    - :class:`PendingTable`, which tracks outbound calls awaiting their one
      and only resolution.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Callable, Dict, Optional

from . import errors
from .transport.base import Transport, TransportError

logger = logging.getLogger(__name__)


def completed(result=None, exception=None) -> concurrent.futures.Future:
    """ Return an already-resolved Future. """

    future = concurrent.futures.Future()
    if exception is None:
        future.set_result(result)
    else:
        future.set_exception(exception)
    return future


def gather(futures) -> concurrent.futures.Future:
    """ Return a Future that resolves once every Future in *futures* is
        done. It fails with the first exception found, in the order given.
    """

    futures = tuple(futures)
    gathered: concurrent.futures.Future = concurrent.futures.Future()

    if len(futures) == 0:
        gathered.set_result(None)
        return gathered

    remaining = [len(futures)]
    lock = threading.Lock()

    def _done(_future):
        with lock:
            remaining[0] -= 1
            if remaining[0] > 0:
                return

        for future in futures:
            exception = future.exception()
            if exception is not None:
                gathered.set_exception(exception)
                return

        gathered.set_result(None)

    for future in futures:
        future.add_done_callback(_done)

    return gathered


def transport_error(exception: BaseException) -> TransportError:
    """ Express any transport failure as a TransportError. """

    if isinstance(exception, TransportError):
        return exception
    error = TransportError(str(exception) or type(exception).__name__)
    error.__cause__ = exception
    return error


class _Subscribed:
    """ One reference-counted transport subscription. The *future* resolves
        when the transport acknowledges the subscribe request; every user
        that acquired the topic while the request was in flight shares it.
    """

    def __init__(self):
        self.count = 1
        self.future: concurrent.futures.Future = concurrent.futures.Future()


class SubscriptionCounter:
    """ Reference-counted transport subscriptions. The first
        :func:`acquire` for a topic issues the transport subscribe; later
        acquisitions only increment the count. The transport unsubscribe is
        issued when :func:`release` brings the count back to zero, at which
        point the entry is forgotten.

        A topic acquired again while its unsubscribe is still in flight is
        not subscribed until the unsubscribe is acknowledged, so the
        transport always sees the two requests in that order.
    """

    def __init__(self, transport: Transport):
        self.transport = transport
        self._entries: Dict[str, _Subscribed] = {}
        self._closing: Dict[str, concurrent.futures.Future] = {}
        self._lock = threading.Lock()

    def __contains__(self, topic: str) -> bool:
        return topic in self._entries

    def count(self, topic: str) -> int:
        entry = self._entries.get(topic)
        if entry is None:
            return 0
        return entry.count

    def topics(self):
        with self._lock:
            return tuple(self._entries.keys())

    def acquire(self, topic: str, qos: int = 0) -> concurrent.futures.Future:
        """ Return a Future that resolves once *topic* is subscribed. If the
            transport rejects the subscription the entry is discarded, and
            the Future (shared by everyone who acquired the topic in the
            meantime) raises :class:`mqttrpc.transport.TransportError`.
        """

        with self._lock:
            entry = self._entries.get(topic)
            if entry is not None:
                entry.count += 1
                return entry.future

            entry = _Subscribed()
            self._entries[topic] = entry
            closing = self._closing.get(topic)

        if closing is None:
            self._subscribe(topic, qos, entry)
        else:
            logger.debug("subscribe to %s waits for its unsubscribe", topic)
            closing.add_done_callback(lambda _future: self._resume(topic, qos, entry))

        return entry.future

    def _resume(self, topic: str, qos: int, entry: _Subscribed) -> None:
        with self._lock:
            current = self._entries.get(topic) is entry

        if current:
            self._subscribe(topic, qos, entry)
        else:
            # Released again before the subscribe went out.
            entry.future.set_result(topic)

    def _subscribe(self, topic: str, qos: int, entry: _Subscribed) -> None:
        try:
            acknowledged = self.transport.subscribe(topic, qos)
        except Exception as e:
            acknowledged = completed(exception=e)

        acknowledged.add_done_callback(lambda future: self._subscribed(topic, entry, future))

    def _subscribed(self, topic: str, entry: _Subscribed, acknowledged: concurrent.futures.Future) -> None:
        exception = acknowledged.exception()

        if exception is None:
            entry.future.set_result(topic)
            return

        with self._lock:
            if self._entries.get(topic) is entry:
                del self._entries[topic]

        logger.debug("subscribe to %s failed: %s", topic, exception)
        entry.future.set_exception(transport_error(exception))

    def release(self, topic: str) -> concurrent.futures.Future:
        """ Drop one reference to *topic*. The returned Future resolves when
            the transport acknowledges the unsubscribe, or immediately if
            other references remain.
        """

        released: concurrent.futures.Future = concurrent.futures.Future()

        with self._lock:
            entry = self._entries.get(topic)

            if entry is None:
                # Every release is paired with a successful acquire; getting
                # here means the pairing is broken.
                raise RuntimeError('subscription count underflow for topic ' + repr(topic))

            entry.count -= 1
            if entry.count > 0:
                return completed(topic)

            del self._entries[topic]
            self._closing[topic] = released

        try:
            acknowledged = self.transport.unsubscribe(topic)
        except Exception as e:
            acknowledged = completed(exception=e)

        acknowledged.add_done_callback(lambda future: self._unsubscribed(topic, released, future))
        return released

    def _unsubscribed(self, topic: str, released: concurrent.futures.Future, acknowledged: concurrent.futures.Future) -> None:
        with self._lock:
            if self._closing.get(topic) is released:
                del self._closing[topic]

        exception = acknowledged.exception()
        if exception is None:
            released.set_result(topic)
        else:
            released.set_exception(transport_error(exception))


class PendingCall:
    """ Bookkeeping for one outbound call. The *future* is what the caller
        holds; it is resolved exactly once, by whichever of response,
        transport failure, or timeout happens first.

        :ivar id: The request id, ``<client id>:<token>``.
        :ivar name: The service being called.
        :ivar topic: The response topic this call holds a reference to.
        :ivar subscribed: True once the response subscription is active and
            owned by this call.
    """

    def __init__(self, id: str, name: str, topic: str):
        self.id = id
        self.name = name
        self.topic = topic
        self.future: concurrent.futures.Future = concurrent.futures.Future()
        self.subscribed = False
        self.timer: Optional[threading.Timer] = None

    def __repr__(self):
        return f"PendingCall({self.id!r}, {self.name!r})"

    def start_timer(self, timeout: float, expired: Callable[[str], None]) -> None:
        timer = threading.Timer(timeout, expired, args=(self.id,))
        timer.daemon = True
        self.timer = timer
        timer.start()

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def resolve(self, result=None, exception: Optional[BaseException] = None) -> None:
        self.cancel_timer()

        if self.future.done():
            return

        if exception is None:
            self.future.set_result(result)
        else:
            self.future.set_exception(exception)


class PendingTable:
    """ rid -> :class:`PendingCall`. Removal is the linearization point for
        resolution: whoever pops an entry owns its completion, and everyone
        else finds nothing to do.
    """

    def __init__(self):
        self._pending: Dict[str, PendingCall] = {}
        self._lock = threading.Lock()

    def __contains__(self, rid: str) -> bool:
        return rid in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def ids(self):
        with self._lock:
            return tuple(self._pending.keys())

    def add(self, pending: PendingCall) -> None:
        with self._lock:
            if pending.id in self._pending:
                raise errors.Error('duplicate request id: ' + pending.id)
            self._pending[pending.id] = pending

    def get(self, rid: str) -> Optional[PendingCall]:
        return self._pending.get(rid)

    def pop(self, rid: str) -> Optional[PendingCall]:
        with self._lock:
            return self._pending.pop(rid, None)

    def mark_subscribed(self, rid: str) -> Optional[PendingCall]:
        """ Record that the response subscription for *rid* is active.
            Returns None if the call already completed, in which case the
            caller still owns the subscription reference and must release it.
        """

        with self._lock:
            pending = self._pending.get(rid)
            if pending is not None:
                pending.subscribed = True
            return pending
