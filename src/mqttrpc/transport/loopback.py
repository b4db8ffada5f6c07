""" In-process publish/subscribe. A :class:`Broker` routes messages between
    any number of :class:`Transport` instances living in the same process,
    using MQTT topic filter semantics. This is useful for wiring components
    together without a network broker, and is what the test suite runs on.
"""

import concurrent.futures
import queue
import threading

from . import base


def matches(pattern, topic):
    """ Return True if the MQTT topic filter *pattern* matches *topic*. The
        single-level wildcard is '+', the multi-level wildcard is '#'.
    """

    if pattern == topic:
        return True

    pattern_levels = pattern.split('/')
    topic_levels = topic.split('/')

    for index, level in enumerate(pattern_levels):
        if level == '#':
            return True

        if index >= len(topic_levels):
            return False

        if level == '+':
            continue

        if level != topic_levels[index]:
            return False

    return len(pattern_levels) == len(topic_levels)



class Broker:
    """ Route published messages to subscribed transports. Delivery happens
        on a single background thread, in publish order, mirroring the
        network thread of a real client library; publishers never see their
        own messages delivered synchronously.
    """

    def __init__(self):

        self.subscriptions = dict()
        self.retained = dict()
        self.lock = threading.Lock()

        self.queue = queue.SimpleQueue()
        self.shutdown = False
        self.thread = threading.Thread(target=self.run)
        self.thread.daemon = True
        self.thread.start()


    def connect(self):
        """ Return a new :class:`Transport` attached to this broker.
        """

        return Transport(self)


    def publish(self, topic, payload, retain=False):

        if retain == True:
            with self.lock:
                if payload:
                    self.retained[topic] = payload
                else:
                    self.retained.pop(topic, None)

        self.queue.put((topic, payload, None))


    def subscribe(self, transport, pattern):

        with self.lock:
            try:
                subscribers = self.subscriptions[pattern]
            except KeyError:
                subscribers = set()
                self.subscriptions[pattern] = subscribers

            new = transport not in subscribers
            subscribers.add(transport)

            retained = list()
            if new == True:
                for topic, payload in self.retained.items():
                    if matches(pattern, topic):
                        retained.append((topic, payload))

        for topic, payload in retained:
            self.queue.put((topic, payload, transport))


    def unsubscribe(self, transport, pattern):

        with self.lock:
            try:
                subscribers = self.subscriptions[pattern]
            except KeyError:
                return

            subscribers.discard(transport)

            if len(subscribers) == 0:
                del self.subscriptions[pattern]


    def detach(self, transport):
        """ Remove every subscription held by *transport*.
        """

        with self.lock:
            for pattern in tuple(self.subscriptions.keys()):
                subscribers = self.subscriptions[pattern]
                subscribers.discard(transport)
                if len(subscribers) == 0:
                    del self.subscriptions[pattern]


    def recipients(self, topic):
        """ Return the set of transports with at least one subscription
            matching *topic*. A transport subscribed through several
            overlapping filters still receives a single copy.
        """

        recipients = set()

        with self.lock:
            for pattern, subscribers in self.subscriptions.items():
                if matches(pattern, topic):
                    recipients.update(subscribers)

        return recipients


    def run(self):

        while self.shutdown == False:
            dequeued = self.queue.get()

            if dequeued is None:
                continue

            topic, payload, target = dequeued

            if target is None:
                recipients = self.recipients(topic)
            else:
                recipients = (target,)

            for transport in recipients:
                transport._deliver(topic, payload)


    def stop(self):
        self.shutdown = True
        self.queue.put(None)


# end of class Broker



class Transport(base.Transport):
    """ A client of a loopback :class:`Broker`. Every operation is
        acknowledged immediately.
    """

    def __init__(self, broker):

        base.Transport.__init__(self)
        self.broker = broker
        self.closed = False


    def _check(self):
        if self.closed == True:
            raise base.TransportConnectionError('transport is closed')


    def publish(self, topic, payload, qos=0, retain=False):

        try:
            self._check()
            self.broker.publish(topic, payload, retain)
        except base.TransportError as e:
            return _failed(e)

        return _acknowledged()


    def subscribe(self, topic, qos=0):

        try:
            self._check()
        except base.TransportError as e:
            return _failed(e)

        self.broker.subscribe(self, topic)
        return _acknowledged()


    def unsubscribe(self, topic):

        try:
            self._check()
        except base.TransportError as e:
            return _failed(e)

        self.broker.unsubscribe(self, topic)
        return _acknowledged()


    def close(self):
        self.closed = True
        self.broker.detach(self)


# end of class Transport



def _acknowledged():
    future = concurrent.futures.Future()
    future.set_result(None)
    return future


def _failed(exception):
    future = concurrent.futures.Future()
    future.set_exception(exception)
    return future


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
