""" JSON-RPC 2.0 request/response and events over a topic-addressed
    publish/subscribe transport. An :class:`Endpoint` can register services,
    subscribe to events, call services offered by other endpoints, and
    emit events, all through a single transport connection.
"""

# Submodules used by multiple other components.

from . import errors
from . import protocol
from . import codec
from . import config
from . import transport

# Primary public-facing interfaces.

from .codec import Codec
from .endpoint import Endpoint, Registration, Subscription
from .errors import (
    Error,
    AlreadyRegistered,
    NotRegistered,
    CodecError,
    EncodeError,
    DecodeError,
    InvalidMessage,
    Timeout,
    RpcError,
    MethodNotFound,
    ApplicationError,
)
from .protocol.topic import TopicScheme
from .transport import TransportError, TransportTimeout, TransportConnectionError

connect = transport.connect

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
