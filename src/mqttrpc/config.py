""" Configuration for an :class:`mqttrpc.Endpoint`. Defaults are drawn from
    the environment, so that a deployment can adjust behavior without code
    changes; explicit keyword arguments always take precedence.
"""

import os
import uuid

from . import codec as _codec
from .protocol import topic


def environment(name, default=None):
    """ Return the value of the MQTTRPC_*name* environment variable, or
        *default* if it is not set or is empty.
    """

    value = os.environ.get('MQTTRPC_' + name.upper())

    if value is None or value == '':
        return default

    return value


def default_codec():
    return environment('codec', 'msgpack')


def default_timeout():
    return float(environment('timeout', 10))


def default_workers():
    return int(environment('workers', 8))


def new_client_id():
    """ Client ids default to a version 1 UUID, which is unique across
        hosts as well as across instances on the same host.
    """

    return str(uuid.uuid1())


class Options:
    """ The complete set of settings for an endpoint:

        :ivar client_id: Globally unique, immutable identity of the endpoint.
        :ivar codec: A :class:`mqttrpc.codec.Codec` instance.
        :ivar timeout: Seconds to wait for a response to a call.
        :ivar topics: A :class:`mqttrpc.protocol.topic.TopicScheme` instance.
        :ivar workers: Number of threads available to service handlers.
    """

    def __init__(self, client_id=None, codec=None, timeout=None, topics=None, workers=None):

        if client_id is None:
            client_id = new_client_id()
        else:
            client_id = topic.validate(client_id)

            if '/' in client_id:
                raise ValueError('client id must be a single topic level: ' + repr(client_id))

        if codec is None:
            codec = default_codec()

        if timeout is None:
            timeout = default_timeout()

        timeout = float(timeout)
        if timeout <= 0:
            raise ValueError('timeout must be positive, not ' + repr(timeout))

        if topics is None:
            topics = topic.default

        if workers is None:
            workers = default_workers()

        workers = int(workers)
        if workers < 1:
            raise ValueError('at least one worker thread is required')

        self.client_id = client_id
        self.codec = _codec.get(codec)
        self.timeout = timeout
        self.topics = topics
        self.workers = workers


    def __repr__(self):
        return 'Options(client_id=%r, codec=%r, timeout=%r, workers=%r)' % (self.client_id, self.codec.format, self.timeout, self.workers)


# end of class Options


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
