"""ZeroMQ publish/subscribe transport."""

from .pubsub import Broker, Transport, connect
