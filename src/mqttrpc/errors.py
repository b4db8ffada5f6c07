""" Exception classes raised by :mod:`mqttrpc`. Everything raised by the
    package descends from :class:`Error`, with the exception of
    :class:`ApplicationError`, which is raised by service handlers rather
    than by the package itself.
"""

from .protocol import fields


class Error(Exception):
    """ Base class for all :mod:`mqttrpc` errors.
    """


class AlreadyRegistered(Error, KeyError):
    """ A service or event name is already in use on this endpoint.
    """

    def __str__(self):
        return Exception.__str__(self)


class NotRegistered(Error, KeyError):
    """ A service or event name is not (or is no longer) in use on this
        endpoint.
    """

    def __str__(self):
        return Exception.__str__(self)


class CodecError(Error):
    pass


class EncodeError(CodecError):
    """ A value could not be represented in the configured wire format.
    """


class DecodeError(CodecError):
    """ A payload did not match the expected representation for the
        configured wire format.
    """


class InvalidMessage(DecodeError):
    """ A payload decoded cleanly but is not a JSON-RPC envelope.
    """


class Timeout(Error):
    """ No response arrived within the configured window.
    """


class RpcError(Error):
    """ A structured JSON-RPC error record: an integer *code*, a
        human-readable *message*, and optional auxiliary *data*. Remote
        failures are raised locally as instances of this class.
    """

    def __init__(self, message, code=fields.INTERNAL_ERROR, data=None):

        Error.__init__(self, message)
        self.code = int(code)
        self.message = str(message)
        self.data = data


    def __repr__(self):
        return "%s(%r, code=%d)" % (type(self).__name__, self.message, self.code)


    def to_dict(self):
        error = dict()
        error['code'] = self.code
        error['message'] = self.message

        if self.data is not None:
            error['data'] = self.data

        return error


    @classmethod
    def from_dict(cls, error):
        """ Build an :class:`RpcError` from the *error* member of a JSON-RPC
            error response. Well-known codes map to their dedicated
            subclasses.
        """

        code = error['code']
        message = error['message']
        data = error.get('data')

        if code == fields.METHOD_NOT_FOUND:
            return MethodNotFound(message, code, data)

        return cls(message, code, data)


# end of class RpcError



class MethodNotFound(RpcError):
    """ No handler was registered for the requested service.
    """

    def __init__(self, message=fields.METHOD_NOT_FOUND_MESSAGE, code=fields.METHOD_NOT_FOUND, data=None):
        RpcError.__init__(self, message, code, data)


class ApplicationError(Exception):
    """ Raise this from a service handler to fail with an arbitrary *value*:
        a string becomes the error message, an integer becomes the error
        code, a dictionary shaped like a JSON-RPC error is passed through,
        and anything else is attached as auxiliary data. See
        :func:`mqttrpc.protocol.failure.normalize`.
    """

    def __init__(self, value=None):
        Exception.__init__(self, value)
        self.value = value


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
