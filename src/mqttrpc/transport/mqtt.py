"""MQTT transport, built on a paho-mqtt client.

The transport does not own the session: connecting, reconnecting and
delivery guarantees remain the client's business. It only correlates the
broker's SUBACK/UNSUBACK/PUBACK packets with the operations that caused
them, and forwards inbound messages to the registered listeners.
"""

from __future__ import annotations

import os
import threading
import time
from concurrent.futures import Future
from typing import Dict, Optional, Set

from paho.mqtt import client as MQTT

from . import base
from .base import TransportConnectionError, TransportError


_BROKER_HOST = os.environ.get("MQTTRPC_MQTT_HOST", "localhost")
_BROKER_PORT = int(os.environ.get("MQTTRPC_MQTT_PORT", "1883"))


class Transport(base.Transport):
    """Adapt a paho-mqtt ``Client`` (callback API version 2) to the
    :class:`mqttrpc.transport.base.Transport` contract.

    The client's ``on_message``, ``on_subscribe``, ``on_unsubscribe`` and
    ``on_publish`` callbacks are claimed by this transport.
    """

    def __init__(self, client: MQTT.Client):
        super().__init__()
        self.client = client

        self._acks: Dict[int, Future] = {}
        self._early: Dict[int, Optional[TransportError]] = {}
        self._discarded: Set[int] = set()
        self._lock = threading.Lock()

        client.on_message = self._on_message
        client.on_subscribe = self._on_subscribe
        client.on_unsubscribe = self._on_unsubscribe
        client.on_publish = self._on_publish

    def publish(self, topic: str, payload: bytes, qos: int = 0, retain: bool = False) -> Future:
        info = self.client.publish(topic, payload, qos=qos, retain=retain)
        return self._track(info.rc, info.mid, f"publish to {topic}")

    def subscribe(self, topic: str, qos: int = 0) -> Future:
        rc, mid = self.client.subscribe(topic, qos=qos)
        return self._track(rc, mid, f"subscribe to {topic}")

    def unsubscribe(self, topic: str) -> Future:
        rc, mid = self.client.unsubscribe(topic)
        return self._track(rc, mid, f"unsubscribe from {topic}")

    def close(self) -> None:
        self.client.loop_stop()
        self.client.disconnect()

        with self._lock:
            outstanding = tuple(self._acks.values())
            self._acks.clear()
            self._early.clear()
            self._discarded.clear()

        for future in outstanding:
            future.set_exception(TransportConnectionError("transport closed"))

    # --- acknowledgment correlation ---

    def _track(self, rc: int, mid: Optional[int], what: str) -> Future:
        future: Future = Future()

        if rc != MQTT.MQTT_ERR_SUCCESS or mid is None:
            # paho may still hold the message and acknowledge it later;
            # nobody is waiting for that acknowledgment.
            if mid is not None:
                with self._lock:
                    if mid in self._early:
                        del self._early[mid]
                    else:
                        self._discarded.add(mid)
            future.set_exception(TransportError(f"{what} failed: {MQTT.error_string(rc)}"))
            return future

        # The network thread can process the acknowledgment before the
        # issuing thread gets here.

        with self._lock:
            self._discarded.discard(mid)
            if mid in self._early:
                error = self._early.pop(mid)
            else:
                self._acks[mid] = future
                return future

        _settle(future, error)
        return future

    def _acknowledge(self, mid: int, error: Optional[TransportError]) -> None:
        with self._lock:
            future = self._acks.pop(mid, None)
            if future is None:
                if mid in self._discarded:
                    self._discarded.remove(mid)
                    return
                self._early[mid] = error
                return

        _settle(future, error)

    # --- paho callbacks (network thread) ---

    def _on_message(self, client, userdata, message) -> None:
        self._deliver(message.topic, message.payload)

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties) -> None:
        self._acknowledge(mid, _failure("subscribe", reason_code_list))

    def _on_unsubscribe(self, client, userdata, mid, reason_code_list, properties) -> None:
        self._acknowledge(mid, _failure("unsubscribe", reason_code_list))

    def _on_publish(self, client, userdata, mid, reason_code, properties) -> None:
        self._acknowledge(mid, _failure("publish", (reason_code,)))


def _failure(what: str, reason_codes) -> Optional[TransportError]:
    for reason_code in reason_codes:
        if reason_code.is_failure:
            return TransportError(f"{what} rejected by broker: {reason_code}")
    return None


def _settle(future: Future, error: Optional[TransportError]) -> None:
    if error is None:
        future.set_result(None)
    else:
        future.set_exception(error)


def connect(host: Optional[str] = None, port: Optional[int] = None, client_id: str = "", timeout: float = 10, **kwargs) -> Transport:
    """Create a paho-mqtt client, connect it to the broker at *host*:*port*,
    start its network thread, and return a :class:`Transport` wrapping it.
    Additional keyword arguments are passed to the ``Client`` constructor.
    """

    host = host or _BROKER_HOST
    port = int(port or _BROKER_PORT)

    client = MQTT.Client(MQTT.CallbackAPIVersion.VERSION2, client_id=client_id, **kwargs)
    transport = Transport(client)

    try:
        client.connect(host, port)
    except OSError as exc:
        raise TransportConnectionError(f"cannot connect to MQTT broker at {host}:{port}: {exc}") from exc

    client.loop_start()

    deadline = time.time() + timeout
    while not client.is_connected():
        if time.time() > deadline:
            client.loop_stop()
            raise TransportConnectionError(f"no connection to MQTT broker at {host}:{port} after {timeout:.1f} sec")
        time.sleep(0.05)

    return transport
