import mqttrpc
import pytest
import threading

from mqttrpc.transport import loopback


def test_matches():

    assert loopback.matches('a/b', 'a/b')
    assert loopback.matches('a/+', 'a/b')
    assert loopback.matches('a/#', 'a/b/c')
    assert loopback.matches('#', 'a')
    assert loopback.matches('+/service-request/+', 'sum/service-request/me')

    assert not loopback.matches('a/b', 'a/bc')
    assert not loopback.matches('a/+', 'a/b/c')
    assert not loopback.matches('a/b/c', 'a/b')
    assert not loopback.matches('+', 'a/b')


def test_delivery(broker):

    first = broker.connect()
    second = broker.connect()

    received = list()
    done = threading.Event()

    def listener(topic, payload):
        received.append((topic, payload))
        if payload == b'last':
            done.set()

    second.add_listener(listener)

    # Overlapping filters still deliver a single copy.

    second.subscribe('tick/+').result(0)
    second.subscribe('tick/#').result(0)

    first.publish('tick/event-notice', b'one').result(0)
    first.publish('tock/event-notice', b'two').result(0)
    first.publish('tick/event-notice', b'last').result(0)

    assert done.wait(2) == True
    assert received == [('tick/event-notice', b'one'), ('tick/event-notice', b'last')]


def test_retained(broker):

    publisher = broker.connect()
    subscriber = broker.connect()

    received = list()
    done = threading.Event()

    def listener(topic, payload):
        received.append(payload)
        done.set()

    subscriber.add_listener(listener)

    publisher.publish('state/event-notice', b'retained', retain=True).result(0)
    subscriber.subscribe('state/#').result(0)

    assert done.wait(2) == True
    assert received == [b'retained']


def test_closed(broker):

    transport = broker.connect()
    transport.subscribe('a').result(0)
    transport.close()

    assert broker.recipients('a') == set()

    for future in (transport.publish('a', b''), transport.subscribe('a'), transport.unsubscribe('a')):
        with pytest.raises(mqttrpc.TransportConnectionError):
            future.result(0)


def test_listener_failure(broker):

    transport = broker.connect()
    received = threading.Event()

    def broken(topic, payload):
        raise RuntimeError('listener failure')

    transport.add_listener(broken)
    transport.add_listener(lambda topic, payload: received.set())

    transport.subscribe('a').result(0)
    transport.publish('a', b'x')

    # A failing listener does not prevent delivery to the others.
    assert received.wait(2) == True

    with pytest.raises(TypeError):
        transport.add_listener('not callable')


def test_connect(broker):

    transport = mqttrpc.transport.connect('loopback', broker=broker)
    assert isinstance(transport, loopback.Transport)

    with pytest.raises(ValueError):
        mqttrpc.transport.connect('carrier-pigeon')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
