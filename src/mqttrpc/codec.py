''' Wire encoding for JSON-RPC envelopes. Two formats are available: "json",
    a text format, and "msgpack", a binary format; both are handled by
    msgspec. The in-memory representation is always the dictionary form
    of an envelope, see :mod:`mqttrpc.protocol.message`.
'''

import msgspec

from . import errors


formats = ('json', 'msgpack')


class Codec:
    """ Encode and decode values for a single wire *format*. Encoding always
        returns bytes, as that is what every supported transport carries;
        JSON output is UTF-8 text. Decoding enforces the representation of
        the configured format: a JSON codec accepts text, or bytes holding
        UTF-8 text, while a MessagePack codec only accepts bytes.
    """

    def __init__(self, format='msgpack'):

        format = str(format).lower()

        if format == 'json':
            self.encoder = msgspec.json.Encoder()
            self.decoder = msgspec.json.Decoder()
        elif format == 'msgpack':
            self.encoder = msgspec.msgpack.Encoder()
            self.decoder = msgspec.msgpack.Decoder()
        else:
            raise ValueError('invalid codec format: ' + repr(format))

        self.format = format


    def __repr__(self):
        return 'Codec(%r)' % (self.format)


    def encode(self, value):

        try:
            return self.encoder.encode(value)
        except (TypeError, ValueError, OverflowError, msgspec.EncodeError) as e:
            raise errors.EncodeError('failed to encode %s format: %s' % (self.format, e)) from e


    def decode(self, data):

        if self.format == 'json':
            if isinstance(data, str):
                data = data.encode()
            elif isinstance(data, (bytes, bytearray, memoryview)):
                data = bytes(data)
                try:
                    data.decode('utf-8')
                except UnicodeDecodeError:
                    raise errors.DecodeError('failed to decode json format: payload is not text')
            else:
                raise errors.DecodeError('invalid format or wrong data type: ' + type(data).__name__)

        elif isinstance(data, (bytes, bytearray, memoryview)):
            pass
        else:
            raise errors.DecodeError('invalid format or wrong data type: ' + type(data).__name__)

        try:
            return self.decoder.decode(data)
        except (msgspec.DecodeError, ValueError) as e:
            raise errors.DecodeError('failed to decode %s format: %s' % (self.format, e)) from e


# end of class Codec



def get(format):
    """ Return a :class:`Codec` for *format*; a :class:`Codec` instance is
        passed through unchanged.
    """

    if isinstance(format, Codec):
        return format

    return Codec(format)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
