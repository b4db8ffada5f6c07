""" Translate whatever a service handler raised into a structured
    :class:`mqttrpc.errors.RpcError` suitable for a JSON-RPC error response.
"""

import numbers
import traceback

from .. import errors
from . import fields


def normalize(exception):
    """ Classify *exception* and return the equivalent RpcError:

        * an :class:`mqttrpc.errors.RpcError` is passed through untouched;
        * an :class:`mqttrpc.errors.ApplicationError` is classified by the
          value it carries, see :func:`classify`;
        * any other exception is wrapped with the fixed application error
          code, its text as the message, and the exception type and
          traceback preserved as auxiliary data.
    """

    if isinstance(exception, errors.RpcError):
        return exception

    if isinstance(exception, errors.ApplicationError):
        return classify(exception.value)

    text = str(exception)
    if text == '':
        text = type(exception).__name__

    data = dict()
    data['type'] = type(exception).__name__
    data['text'] = str(exception)
    data['debug'] = ''.join(traceback.format_exception(type(exception), exception, exception.__traceback__))

    return errors.RpcError(text, fields.APPLICATION_ERROR, data)


def classify(value):
    """ Return an RpcError describing a bare failure *value*.
    """

    if value is None:
        return errors.RpcError('undefined error', fields.UNDEFINED_ERROR)

    if isinstance(value, str):
        return errors.RpcError(value, fields.STRING_ERROR)

    # bool is an int subclass, but True is not an error code.

    if isinstance(value, bool):
        return errors.RpcError('unspecified error', fields.UNDEFINED_ERROR, {'data': value})

    if isinstance(value, numbers.Real):
        try:
            code = int(value)
        except (ValueError, OverflowError):
            # NaN and infinity have no integer form.
            return errors.RpcError('unspecified error', fields.UNDEFINED_ERROR, {'data': repr(value)})

        return errors.RpcError('application error', code)

    if isinstance(value, errors.RpcError):
        return value

    if isinstance(value, dict):
        code = value.get('code')
        message = value.get('message')

        if isinstance(code, int) and not isinstance(code, bool) and isinstance(message, str):
            return errors.RpcError.from_dict(value)

        return errors.RpcError('application error', fields.APPLICATION_ERROR, value)

    if isinstance(value, (list, tuple)):
        return errors.RpcError('application error', fields.APPLICATION_ERROR, list(value))

    if isinstance(value, BaseException):
        return normalize(value)

    return errors.RpcError('unspecified error', fields.UNDEFINED_ERROR, {'data': repr(value)})


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
