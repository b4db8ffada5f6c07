""" Class representations of the four JSON-RPC 2.0 envelopes exchanged by
    :mod:`mqttrpc`, plus :func:`parse`, which classifies an arbitrary
    decoded value as one of them.

    The envelopes are plain containers; encoding to and from the wire is
    handled by :mod:`mqttrpc.codec`, and the topic a message travels on is
    determined by :mod:`mqttrpc.protocol.topic`.
"""

from .. import errors
from . import fields


class Envelope:
    """ Common base for all envelopes. The *kind* attribute is a short
        string naming the variant, and is the basis for dispatch.
    """

    kind = None

    def to_dict(self):
        envelope = dict()
        envelope[fields.VERSION] = fields.JSONRPC
        return envelope


    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self.to_dict() == other.to_dict()


    def __repr__(self):
        return '%s(%r)' % (type(self).__name__, self.to_dict())



class Notification(Envelope):
    """ A one-way event; no response is ever sent for a notification.
    """

    kind = 'notification'

    def __init__(self, method, params=()):
        self.method = method
        self.params = list(params)


    def to_dict(self):
        envelope = Envelope.to_dict(self)
        envelope[fields.METHOD] = self.method
        envelope[fields.PARAMS] = self.params
        return envelope



class Request(Envelope):
    """ A service invocation. The *id* has the form ``<client id>:<token>``;
        the client id portion determines where the response is sent.
    """

    kind = 'request'

    def __init__(self, id, method, params=()):
        self.id = id
        self.method = method
        self.params = list(params)


    @property
    def client_id(self):
        """ The client id recovered from the request id: everything before
            the final separator. Raises :class:`mqttrpc.errors.InvalidMessage`
            if the id is not in the expected format.
        """

        return client_id(self.id)


    def to_dict(self):
        envelope = Envelope.to_dict(self)
        envelope[fields.ID] = self.id
        envelope[fields.METHOD] = self.method
        envelope[fields.PARAMS] = self.params
        return envelope



class Success(Envelope):

    kind = 'success'

    def __init__(self, id, result=None):
        self.id = id
        self.result = result


    def to_dict(self):
        envelope = Envelope.to_dict(self)
        envelope[fields.ID] = self.id
        envelope[fields.RESULT] = self.result
        return envelope



class Failure(Envelope):
    """ The JSON-RPC error response. The *error* attribute is an
        :class:`mqttrpc.errors.RpcError` instance.
    """

    kind = 'error'

    def __init__(self, id, error):
        self.id = id
        self.error = error


    def to_dict(self):
        envelope = Envelope.to_dict(self)
        envelope[fields.ID] = self.id
        envelope[fields.ERROR] = self.error.to_dict()
        return envelope



def client_id(rid):
    """ Return the client id embedded in the request id *rid*.
    """

    if isinstance(rid, str):
        prefix, separator, token = rid.rpartition(fields.RID_SEPARATOR)
    else:
        prefix = token = ''

    if prefix == '' or token == '':
        raise errors.InvalidMessage('invalid request id format: ' + repr(rid))

    return prefix


def parse(value):
    """ Classify a decoded *value* as one of the envelope classes defined
        here. Raises :class:`mqttrpc.errors.InvalidMessage` if the value is
        not a well-formed JSON-RPC 2.0 object.
    """

    if isinstance(value, dict):
        pass
    else:
        raise errors.InvalidMessage('JSON-RPC message must be an object, not ' + type(value).__name__)

    if value.get(fields.VERSION) != fields.JSONRPC:
        raise errors.InvalidMessage('missing or unsupported JSON-RPC version')

    has_id = fields.ID in value
    method = value.get(fields.METHOD)

    if method is not None:
        if isinstance(method, str) and method != '':
            pass
        else:
            raise errors.InvalidMessage('JSON-RPC method must be a non-empty string')

        params = _params(value.get(fields.PARAMS))

        if has_id:
            return Request(_id(value[fields.ID]), method, params)
        else:
            return Notification(method, params)

    if has_id == False:
        raise errors.InvalidMessage('JSON-RPC message has neither method nor id')

    rid = _id(value[fields.ID])

    if fields.RESULT in value and fields.ERROR not in value:
        return Success(rid, value[fields.RESULT])

    if fields.ERROR in value and fields.RESULT not in value:
        error = value[fields.ERROR]

        try:
            code = error['code']
            message = error['message']
        except (KeyError, TypeError):
            raise errors.InvalidMessage('malformed JSON-RPC error object')

        if isinstance(code, bool) or not isinstance(code, int) or not isinstance(message, str):
            raise errors.InvalidMessage('malformed JSON-RPC error object')

        return Failure(rid, errors.RpcError.from_dict(error))

    raise errors.InvalidMessage('JSON-RPC response must carry exactly one of result or error')


def _id(value):
    """ Request ids are always handled as strings locally; integer ids from
        foreign peers are converted.
    """

    if isinstance(value, bool) or value is None:
        raise errors.InvalidMessage('invalid JSON-RPC id: ' + repr(value))

    if isinstance(value, str):
        return value

    if isinstance(value, int):
        return str(value)

    raise errors.InvalidMessage('invalid JSON-RPC id: ' + repr(value))


def _params(value):
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
