"""Transport layer implementations."""

import os

from .base import (
    Transport,
    TransportError,
    TransportTimeout,
    TransportConnectionError,
)
from . import loopback

_BACKEND = os.environ.get("MQTTRPC_TRANSPORT", "mqtt")


def connect(backend=None, **kwargs):
    """Connect a transport of the requested *backend* ("mqtt", "zmq", or
    "loopback"), defaulting to the MQTTRPC_TRANSPORT environment variable.
    Keyword arguments are passed to the backend's ``connect()``; the
    loopback backend requires a *broker*."""

    if backend is None:
        backend = _BACKEND

    if backend == "mqtt":
        from . import mqtt
        return mqtt.connect(**kwargs)
    elif backend == "zmq":
        from . import zmq
        return zmq.connect(**kwargs)
    elif backend == "loopback":
        broker = kwargs.pop("broker")
        return broker.connect(**kwargs)
    else:
        raise ValueError(f"unknown MQTTRPC_TRANSPORT backend: {backend!r}")
