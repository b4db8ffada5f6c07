import json
import mqttrpc
import pytest


def test_json_encode_and_decode():
    encode_and_decode(mqttrpc.Codec('json'))


def test_msgpack_encode_and_decode():
    encode_and_decode(mqttrpc.Codec('msgpack'))


def encode_and_decode(codec):

    input_dictionary = dict()
    input_dictionary['list'] = [1, 2, 3, 'a', 'b', None, 'c', 'z']
    input_dictionary['dict'] = {'one': 1, 'two': 2.5}
    input_dictionary['none'] = None
    input_dictionary['true'] = True
    input_dictionary['false'] = False
    input_dictionary['text'] = 'ünïcödé'

    encoded = codec.encode(input_dictionary)
    assert isinstance(encoded, bytes)

    decoded = codec.decode(encoded)
    assert isinstance(decoded, dict)
    assert decoded == input_dictionary


def test_json_is_json():

    codec = mqttrpc.Codec('json')
    envelope = mqttrpc.protocol.Request('abc:123', 'sum', (2, 3)).to_dict()

    encoded = codec.encode(envelope)

    # The JSON codec output must be readable by anything else that speaks
    # JSON, not just by msgspec.

    assert json.loads(encoded.decode()) == envelope


def test_json_accepts_text():

    codec = mqttrpc.Codec('json')
    assert codec.decode('{"a": [1, 2]}') == {'a': [1, 2]}
    assert codec.decode(bytearray(b'[true]')) == [True]


def test_json_rejects_binary():

    codec = mqttrpc.Codec('json')
    binary = mqttrpc.Codec('msgpack').encode({'jsonrpc': '2.0', 'method': 'x'})

    with pytest.raises(mqttrpc.DecodeError):
        codec.decode(binary)

    with pytest.raises(mqttrpc.DecodeError):
        codec.decode(b'\xff\xfe\x00')

    with pytest.raises(mqttrpc.DecodeError):
        codec.decode('{not json')


def test_msgpack_rejects_text():

    codec = mqttrpc.Codec('msgpack')

    with pytest.raises(mqttrpc.DecodeError):
        codec.decode('{"a": 1}')

    with pytest.raises(mqttrpc.DecodeError):
        codec.decode(None)

    # A truncated map header.
    with pytest.raises(mqttrpc.DecodeError):
        codec.decode(b'\x82\xa1a')


def test_unencodable():

    for format in mqttrpc.codec.formats:
        codec = mqttrpc.Codec(format)

        with pytest.raises(mqttrpc.EncodeError):
            codec.encode({'value': object()})

    # MessagePack integers are at most 64 bits wide.

    with pytest.raises(mqttrpc.EncodeError):
        mqttrpc.Codec('msgpack').encode({'value': 2 ** 80})


def test_decode_error_is_codec_error():

    assert issubclass(mqttrpc.DecodeError, mqttrpc.CodecError)
    assert issubclass(mqttrpc.EncodeError, mqttrpc.CodecError)
    assert issubclass(mqttrpc.CodecError, mqttrpc.Error)


def test_get():

    codec = mqttrpc.Codec('json')
    assert mqttrpc.codec.get(codec) is codec
    assert mqttrpc.codec.get('MSGPACK').format == 'msgpack'

    with pytest.raises(ValueError):
        mqttrpc.codec.get('cbor')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
