import concurrent.futures
import pytest

import mqttrpc
from mqttrpc.transport import base


class RecordingTransport(base.Transport):
    """ A transport that never delivers anything, and records every
        operation requested of it. Acknowledgments are immediate unless
        *hold* is set, in which case the test resolves them by hand via
        the futures recorded in :attr:`held`.
    """

    def __init__(self, hold=False):
        base.Transport.__init__(self)

        self.hold = hold
        self.held = list()
        self.published = list()
        self.subscribed = list()
        self.unsubscribed = list()
        self.fail = set()


    def _ack(self, operation):
        future = concurrent.futures.Future()

        if operation in self.fail:
            future.set_exception(base.TransportError(operation + ' failed'))
        elif self.hold:
            self.held.append((operation, future))
        else:
            future.set_result(None)

        return future


    def publish(self, topic, payload, qos=0, retain=False):
        self.published.append((topic, payload, qos, retain))
        return self._ack('publish')


    def subscribe(self, topic, qos=0):
        self.subscribed.append(topic)
        return self._ack('subscribe')


    def unsubscribe(self, topic):
        self.unsubscribed.append(topic)
        return self._ack('unsubscribe')


@pytest.fixture
def recording():
    return RecordingTransport()


@pytest.fixture
def holding():
    return RecordingTransport(hold=True)


@pytest.fixture
def broker():

    broker = mqttrpc.transport.loopback.Broker()
    yield broker
    broker.stop()


@pytest.fixture
def make_endpoint(broker):
    """ Return a factory for endpoints attached to a shared loopback
        broker. Every endpoint created is closed at teardown.
    """

    endpoints = list()

    def make(**kwargs):
        kwargs.setdefault('timeout', 2)
        transport = broker.connect()
        endpoint = mqttrpc.Endpoint(transport, **kwargs)
        endpoints.append(endpoint)
        return endpoint

    yield make

    for endpoint in endpoints:
        endpoint.close()
        endpoint.transport.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
