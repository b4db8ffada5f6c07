"""
mqttrpc Protocol Layer
======================

Transport-agnostic pieces of the RPC protocol: the JSON-RPC envelope
model, the topic naming scheme, and failure normalization.

The protocol layer MUST NOT depend on any transport implementation
(e.g. MQTT, ZeroMQ, etc).

---------------------------------------------------------------------

Layer Architecture Overview
---------------------------

User Code
    │
    ▼
Endpoint (endpoint.py)
    High-level semantic API
    - register() / subscribe()
    - call()
    - notify() / emit() / control()

    │
    ▼
Sessions (session.py) and Registry (registry.py)
    Pending calls, timeouts, reference-counted subscriptions

    │
    ▼
Message Model (protocol/message.py)
    - Notification / Request / Success / Failure
    - parse()

Topic Scheme (protocol/topic.py)
    Name <-> topic mapping, one family per message role

Field Vocabulary (protocol/fields.py)
    Canonical envelope member names and error codes

---------------------------------------------------------------------

Below the Protocol Layer
------------------------

Codec (codec.py)
    Maps envelopes <-> wire bytes (JSON, MessagePack)

Transport Layer (transport/)
    Moves bytes between topics
    - MQTT (paho-mqtt)
    - ZeroMQ
    - in-process loopback

---------------------------------------------------------------------
"""

from . import fields
from . import topic
from . import message
from . import failure

from .topic import Match, TopicScheme
from .message import Notification, Request, Success, Failure


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
