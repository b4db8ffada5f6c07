import concurrent.futures
import pytest
import socket
import time

from mqttrpc.transport import TransportConnectionError
from mqttrpc.transport.zmq import pubsub


def free_ports(count):

    sockets = list()
    for _ in range(count):
        sock = socket.socket()
        sock.bind(('127.0.0.1', 0))
        sockets.append(sock)

    ports = [sock.getsockname()[1] for sock in sockets]

    for sock in sockets:
        sock.close()

    return ports


def keep_publishing(publish, condition, deadline=5):
    """ ZeroMQ subscriptions reach the publisher some time after they are
        set; repeat *publish* until *condition* holds.
    """

    expiration = time.time() + deadline

    while time.time() < expiration:
        publish()
        if condition():
            return True
        time.sleep(0.05)

    return False


@pytest.fixture(scope='module')
def ports():

    xsub, xpub = free_ports(2)
    pubsub.Broker(xsub, xpub, address='127.0.0.1')
    return xsub, xpub


@pytest.fixture
def transports(ports):

    publisher = pubsub.Transport('127.0.0.1', *ports)
    subscriber = pubsub.Transport('127.0.0.1', *ports)

    yield publisher, subscriber

    publisher.close()
    subscriber.close()


def test_exact_topic(transports):

    publisher, subscriber = transports

    received = list()
    subscriber.add_listener(lambda topic, payload: received.append((topic, payload)))
    subscriber.subscribe('a/b').result(2)

    def publish():
        publisher.publish('a/bc', b'longer').result(2)
        publisher.publish('a/b/c', b'deeper').result(2)
        publisher.publish('a/b', b'exact').result(2)

    assert keep_publishing(publish, lambda: len(received) > 0)

    for topic, payload in list(received):
        assert topic == 'a/b'
        assert payload == b'exact'


def test_unsubscribe(transports):

    publisher, subscriber = transports

    received = list()
    subscriber.add_listener(lambda topic, payload: received.append(topic))
    subscriber.subscribe('a/b').result(2)
    subscriber.subscribe('marker').result(2)

    def publish():
        publisher.publish('a/b', b'').result(2)

    assert keep_publishing(publish, lambda: 'a/b' in received)

    subscriber.unsubscribe('a/b').result(2)
    assert subscriber.topics == set(('marker',))

    # Deliveries happen on the same thread that applied the unsubscribe,
    # so nothing for a/b can follow it.

    del received[:]

    def publish_both():
        publisher.publish('a/b', b'').result(2)
        publisher.publish('marker', b'').result(2)

    assert keep_publishing(publish_both, lambda: 'marker' in received)
    assert 'a/b' not in received


def test_close(ports):

    transport = pubsub.Transport('127.0.0.1', *ports)

    # Queued without waking the I/O thread, so it is still outstanding
    # when the transport shuts down.

    queued = concurrent.futures.Future()
    transport._outbox.put(('publish', 't', b'', queued))

    transport.close()
    assert transport.thread.is_alive() == False

    with pytest.raises(TransportConnectionError):
        queued.result(2)

    with pytest.raises(TransportConnectionError):
        transport.publish('t', b'').result(0)

    with pytest.raises(TransportConnectionError):
        transport.subscribe('t').result(0)

    # Closing twice is harmless.

    transport.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
