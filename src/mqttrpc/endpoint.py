""" The :class:`Endpoint` is the public face of :mod:`mqttrpc`: it provides
    request/response calls and addressed or broadcast events on top of a
    topic-addressed publish/subscribe transport.

    Each endpoint owns three tables: the :class:`mqttrpc.registry.Registry`
    of local service and event handlers, the
    :class:`mqttrpc.session.PendingTable` of outbound calls awaiting a
    response, and the :class:`mqttrpc.session.SubscriptionCounter` that
    shares transport subscriptions between concurrent operations. All
    inbound traffic arrives through :func:`Endpoint._on_message`.
"""

import concurrent.futures
import logging
import threading
import uuid

from . import config
from . import errors
from . import session
from .protocol import failure
from .protocol import fields
from .protocol import message
from .protocol import topic as _topic
from .registry import Registry
from .transport.base import TransportConnectionError, TransportTimeout

logger = logging.getLogger(__name__)


class _Handle:
    """ Common machinery for :class:`Registration` and :class:`Subscription`.
        A handle owns the registry entry for its name and one subscription
        reference for each of its topics; releasing the handle gives all of
        them back, exactly once.
    """

    kind = None

    def __init__(self, endpoint, name, handler, topics):

        self.endpoint = endpoint
        self.name = name
        self.handler = handler
        self.topics = tuple(topics)
        self.active = True

        self.acquisitions = ()
        self.acquired = None
        self._lock = threading.Lock()


    def __repr__(self):
        return '%s(%r, active=%r)' % (type(self).__name__, self.name, self.active)


    def wait(self, timeout=None):
        """ Block until the transport has acknowledged every subscription
            for this handle. Raises
            :class:`mqttrpc.transport.TransportError` if any of them failed.
        """

        try:
            self.acquired.result(timeout)
        except concurrent.futures.TimeoutError:
            raise TransportTimeout("%s %r: no subscribe acknowledgment in %s sec" % (self.kind, self.name, timeout))


    def _deactivate(self):
        """ Return True if this call is the one that deactivated the handle.
        """

        with self._lock:
            active = self.active
            self.active = False

        return active


    def _release(self, wait):

        if self._deactivate() == False:
            raise errors.NotRegistered('%s %r is not registered' % (self.kind, self.name))

        released = self.endpoint._detach(self)

        if wait == False:
            released.add_done_callback(self.endpoint._report_failure)
            return released

        timeout = self.endpoint.timeout

        try:
            released.result(timeout)
        except concurrent.futures.TimeoutError:
            raise TransportTimeout("%s %r: no unsubscribe acknowledgment in %s sec" % (self.kind, self.name, timeout))


# end of class _Handle



class Registration(_Handle):
    """ Returned by :func:`Endpoint.register`.
    """

    kind = 'service'

    def unregister(self, wait=True):
        """ Remove the service handler and drop its request subscriptions.
            A second call raises :class:`mqttrpc.errors.NotRegistered`. With
            *wait* set to False a Future is returned instead of blocking for
            the transport acknowledgment.
        """

        return self._release(wait)


# end of class Registration



class Subscription(_Handle):
    """ Returned by :func:`Endpoint.subscribe`.
    """

    kind = 'event'

    def unsubscribe(self, wait=True):
        """ Remove the event handler and drop its event subscriptions. A
            second call raises :class:`mqttrpc.errors.NotRegistered`.
        """

        return self._release(wait)


# end of class Subscription



class Endpoint:
    """ Remote procedure calls and events over a publish/subscribe
        *transport*, which is an instance of a
        :class:`mqttrpc.transport.Transport` subclass. All other arguments
        are optional, and are described by :class:`mqttrpc.config.Options`.

        Service handlers are invoked on a pool of worker threads, so they
        may issue calls of their own; event handlers are invoked directly
        on the thread delivering inbound messages, in arrival order, and
        should not block.

        :ivar client_id: The unique identity of this endpoint.
        :ivar on_error: Optional callable invoked with any error that has
            no caller to be reported to, such as an undecodable message.
            If it is not set, such errors are logged.
    """

    def __init__(self, transport, client_id=None, codec=None, timeout=None, topics=None, workers=None):

        self.options = config.Options(client_id, codec, timeout, topics, workers)

        self.transport = transport
        self.client_id = self.options.client_id
        self.codec = self.options.codec
        self.timeout = self.options.timeout
        self.topics = self.options.topics

        self.registry = Registry()
        self.calls = session.PendingTable()
        self.subscriptions = session.SubscriptionCounter(transport)

        self.handles = dict()
        self.on_error = None
        self.closed = False
        self._lock = threading.Lock()

        self.workers = concurrent.futures.ThreadPoolExecutor(max_workers=self.options.workers, thread_name_prefix='mqttrpc')

        transport.add_listener(self._on_message)


    def __repr__(self):
        return 'Endpoint(client_id=%r)' % (self.client_id)


    def __enter__(self):
        return self


    def __exit__(self, *exc_info):
        self.close()


    ### Services and events handled locally.


    def register(self, name, handler, qos=fields.QOS_SERVICE, directed=True, wait=True):
        """ Register *handler* as the implementation of the service *name*.
            The handler is invoked with the positional parameters of each
            request; its return value becomes the result, and any exception
            it raises becomes an error response (see
            :func:`mqttrpc.protocol.failure.normalize`).

            Requests broadcast to the service are always accepted; if
            *directed* is True, requests addressed specifically to this
            endpoint are accepted as well. Raises
            :class:`mqttrpc.errors.AlreadyRegistered` if *name* is in use.
            With *wait* set to False this method returns without waiting
            for the transport to confirm the subscriptions; use
            :func:`Registration.wait` if needed.
        """

        return self._attach(Registration, name, handler, self.topics.request, qos, directed, wait)


    def registered(self, name):
        """ Return True if *name* is in use by a local service or event
            handler.
        """

        return name in self.registry


    def subscribe(self, name, handler, qos=fields.QOS_SERVICE, directed=True, wait=True):
        """ Invoke *handler* with the positional parameters of every event
            *name* delivered to this endpoint, broadcast or (if *directed* is
            True) addressed to this endpoint. The handler return value is
            ignored. Raises :class:`mqttrpc.errors.AlreadyRegistered` if
            *name* is in use.

            The handler runs on the transport delivery thread, which is
            also the thread that delivers responses. A handler that makes
            a blocking :func:`call` (*wait* left True) therefore waits for
            a response that cannot arrive until it returns, and always
            raises :class:`mqttrpc.errors.Timeout`. Call with *wait* set to
            False and use the returned Future, or hand the work to another
            thread.
        """

        return self._attach(Subscription, name, handler, self.topics.event, qos, directed, wait)


    def _attach(self, cls, name, handler, make_topic, qos, directed, wait):

        _topic.validate(name)
        self._check_open()

        self.registry.add(name, handler)

        topics = [make_topic(name)]
        if directed == True:
            topics.append(make_topic(name, self.client_id))

        handle = cls(self, name, handler, topics)

        with self._lock:
            self.handles[name] = handle

        acquisitions = list()
        for topic in topics:
            acquisitions.append((topic, self.subscriptions.acquire(topic, qos)))

        handle.acquisitions = tuple(acquisitions)
        handle.acquired = session.gather(acquired for topic, acquired in acquisitions)

        report = not wait
        handle.acquired.add_done_callback(lambda future: self._attached(handle, future, report))

        if wait == True:
            try:
                handle.wait(self.timeout)
            except errors.Error:
                if handle._deactivate():
                    self._detach(handle)
                raise

        return handle


    def _attached(self, handle, acquired, report):
        """ Undo a registration or subscription whose transport
            subscriptions could not be established.
        """

        exception = acquired.exception()
        if exception is None:
            return

        if handle._deactivate():
            self._detach(handle)

            if report == True:
                self._report(exception)


    def _detach(self, handle):
        """ Give back everything owned by *handle*. Returns a Future that
            resolves once every transport unsubscribe is acknowledged.
        """

        try:
            self.registry.remove(handle.name, handle.handler)
        except errors.NotRegistered:
            pass

        with self._lock:
            if self.handles.get(handle.name) is handle:
                del self.handles[handle.name]

        releases = list()
        for topic, acquired in handle.acquisitions:
            releases.append(self._release_after(topic, acquired))

        return session.gather(releases)


    def _release_after(self, topic, acquired):
        """ Drop a subscription reference once its acquisition completes. A
            failed acquisition holds no reference, so there is nothing to
            drop.
        """

        released = concurrent.futures.Future()

        def _acquired(future):
            if future.exception() is not None:
                released.set_result(topic)
                return

            try:
                unsubscribed = self.subscriptions.release(topic)
            except Exception as e:
                released.set_exception(e)
                return

            unsubscribed.add_done_callback(lambda done: _chain(done, released))

        acquired.add_done_callback(_acquired)
        return released


    ### Outbound events.


    def notify(self, name, *params, qos=fields.QOS_NOTIFY, retain=False):
        """ Broadcast the event *name* with the given positional *params* to
            every subscriber ("fire and forget").
        """

        return self.emit(name, *params, qos=qos, retain=retain)


    def emit(self, name, *params, addressee=None, qos=None, retain=False):
        """ Publish the event *name* with the given positional *params*. If
            *addressee* is a client id the event is delivered only to that
            endpoint; otherwise it is broadcast. No response is expected. The
            default *qos* is 0 for broadcasts and 2 for directed events.

            The returned Future resolves when the transport accepts the
            message; it can safely be ignored, as transport failures are
            also reported via :attr:`on_error`.
        """

        _topic.validate(name)
        self._check_open()

        if qos is None:
            if addressee:
                qos = fields.QOS_DIRECTED
            else:
                qos = fields.QOS_NOTIFY

        notification = message.Notification(name, params)
        payload = self.codec.encode(notification.to_dict())
        topic = self.topics.event(name, addressee)

        published = self._publish(topic, payload, qos, retain)
        published.add_done_callback(self._report_failure)
        return published


    def control(self, addressee, name, *params, qos=fields.QOS_DIRECTED, retain=False):
        """ Deliver the event *name* to the single endpoint identified by
            *addressee*. This is :func:`emit` with a mandatory addressee.
        """

        if not addressee:
            raise ValueError('control() requires an addressee')

        return self.emit(name, *params, addressee=addressee, qos=qos, retain=retain)


    ### Outbound calls.


    def call(self, name, *params, addressee=None, timeout=None, qos=fields.QOS_SERVICE, wait=True):
        """ Invoke the remote service *name* with the given positional
            *params*. If *addressee* is a client id the request is sent only
            to that endpoint, otherwise to whichever endpoints registered
            the service.

            With *wait* set to True (the default) this method blocks and
            returns the result, or raises: an :class:`mqttrpc.errors.RpcError`
            for an error response, :class:`mqttrpc.errors.Timeout` if no
            response arrives within *timeout* seconds, or
            :class:`mqttrpc.transport.TransportError` if the request could
            not be sent. With *wait* set to False a
            :class:`concurrent.futures.Future` is returned instead, which
            will be resolved the same way.
        """

        _topic.validate(name)
        self._check_open()

        if timeout is None:
            timeout = self.timeout

        rid = self.client_id + fields.RID_SEPARATOR + str(uuid.uuid1())
        request = message.Request(rid, name, params)
        payload = self.codec.encode(request.to_dict())

        request_topic = self.topics.request(name, addressee)
        response_topic = self.topics.response(name, self.client_id)

        pending = session.PendingCall(rid, name, response_topic)
        self.calls.add(pending)
        pending.start_timer(timeout, self._expired)

        # The response subscription must be active before the request goes
        # out; the request is published from the acquisition callback.

        acquired = self.subscriptions.acquire(response_topic, qos)
        acquired.add_done_callback(lambda future: self._call_subscribed(pending, future, request_topic, payload, qos))

        if wait == False:
            return pending.future

        return pending.future.result()


    def pending(self):
        """ Return the number of calls still awaiting a response.
        """

        return len(self.calls)


    def _call_subscribed(self, pending, acquired, request_topic, payload, qos):

        exception = acquired.exception()

        if exception is not None:
            # No subscription reference is held; nothing to release.
            failed = self.calls.pop(pending.id)
            if failed is not None:
                failed.resolve(exception=exception)
            return

        if self.calls.mark_subscribed(pending.id) is None:
            # Already resolved, most likely by the timeout; the reference
            # acquired here is still ours to give back.
            self._release(pending.topic)
            return

        published = self._publish(request_topic, payload, qos)
        published.add_done_callback(lambda future: self._call_published(pending.id, future))


    def _call_published(self, rid, published):

        exception = published.exception()
        if exception is None:
            return

        pending = self.calls.pop(rid)
        if pending is None:
            return

        logger.debug("request %s could not be published: %s", rid, exception)
        self._finish(pending, exception=exception)


    def _expired(self, rid):

        pending = self.calls.pop(rid)
        if pending is None:
            return

        error = errors.Timeout("communication timeout: no response to %r call %s" % (pending.name, rid))
        self._finish(pending, exception=error)


    def _finish(self, pending, result=None, exception=None):
        """ Drop the response subscription reference of a call that has
            already been removed from the pending table, then resolve it.
        """

        if pending.subscribed == True:
            self._release(pending.topic)

        pending.resolve(result, exception)


    def _release(self, topic):
        try:
            released = self.subscriptions.release(topic)
        except Exception as e:
            self._report(e)
            return

        released.add_done_callback(self._report_failure)


    ### Inbound message handling.


    def _on_message(self, topic, payload):
        """ Entry point for every message delivered by the transport. The
            topic determines the message family; messages outside the three
            RPC families, or addressed to another endpoint, are ignored.
        """

        topics = self.topics

        family = 'event'
        matched = topics.match_event(topic)

        if matched is None:
            family = 'request'
            matched = topics.match_request(topic)

        if matched is None:
            family = 'response'
            matched = topics.match_response(topic)

        if matched is None:
            return

        if matched.addressee is not None and matched.addressee != self.client_id:
            logger.debug("ignoring %s addressed to %s", topic, matched.addressee)
            return

        try:
            decoded = self.codec.decode(payload)
            envelope = message.parse(decoded)
        except errors.DecodeError as e:
            self._report(errors.DecodeError("failed to parse JSON-RPC message on %s: %s" % (topic, e)))
            return

        kind = envelope.kind

        if family == 'event':
            if kind == 'notification' and envelope.method == matched.name:
                self._on_event(envelope)
                return

        elif family == 'request':
            if kind == 'request' and envelope.method == matched.name:
                self._on_request(envelope)
                return

        elif kind == 'success' or kind == 'error':
            self._on_response(envelope)
            return

        logger.debug("ignoring %s envelope on %s topic %s", kind, family, topic)


    def _on_event(self, notification):

        handler = self.registry.get(notification.method)
        if handler is None:
            return

        try:
            handler(*notification.params)
        except Exception as e:
            logger.debug("event handler for %r failed", notification.method, exc_info=True)
            self._report(e)


    def _on_request(self, request):

        try:
            self.workers.submit(self._serve, request)
        except RuntimeError:
            # The worker pool is shut down; the endpoint is closed.
            logger.debug("dropping request %s, endpoint is closed", request.id)


    def _serve(self, request):
        """ Invoke the handler for *request* and publish the response to
            the calling endpoint, whose client id is embedded in the request
            id. This runs on a worker thread.
        """

        try:
            caller = request.client_id
        except errors.InvalidMessage as e:
            self._report(e)
            return

        handler = self.registry.get(request.method)

        if handler is None:
            data = dict()
            data['method'] = request.method
            response = message.Failure(request.id, errors.MethodNotFound(data=data))
        else:
            try:
                result = handler(*request.params)
            except Exception as e:
                logger.debug("service handler for %r failed", request.method, exc_info=True)
                response = message.Failure(request.id, failure.normalize(e))
            else:
                response = message.Success(request.id, result)

        try:
            payload = self.codec.encode(response.to_dict())
        except errors.EncodeError as e:
            self._report(e)

            data = dict()
            data['text'] = str(e)
            error = errors.RpcError(fields.INTERNAL_ERROR_MESSAGE, fields.INTERNAL_ERROR, data)
            response = message.Failure(request.id, error)
            payload = self.codec.encode(response.to_dict())

        topic = self.topics.response(request.method, caller)
        published = self._publish(topic, payload, fields.QOS_SERVICE)
        published.add_done_callback(self._report_failure)


    def _on_response(self, response):

        pending = self.calls.pop(response.id)

        if pending is None:
            # Late, duplicate, or someone else's.
            logger.debug("no pending call for response %s", response.id)
            return

        if response.kind == 'success':
            self._finish(pending, result=response.result)
        else:
            self._finish(pending, exception=response.error)


    ### Transport helpers.


    def _publish(self, topic, payload, qos, retain=False):
        """ Publish via the transport, always returning a Future; failures
            are expressed as a :class:`mqttrpc.transport.TransportError`.
        """

        try:
            published = self.transport.publish(topic, payload, qos, retain)
        except Exception as e:
            return session.completed(exception=session.transport_error(e))

        result = concurrent.futures.Future()
        published.add_done_callback(lambda done: _chain(done, result))
        return result


    def _check_open(self):
        if self.closed == True:
            raise TransportConnectionError('endpoint is closed')


    def _report(self, exception):
        """ Route an error with no waiting caller to :attr:`on_error`, or to
            the log if no callback is set.
        """

        callback = self.on_error

        if callback is None:
            logger.error("%s: %s", type(exception).__name__, exception)
            return

        try:
            callback(exception)
        except Exception:
            logger.exception("on_error callback failed")


    def _report_failure(self, future):
        exception = future.exception()
        if exception is not None:
            self._report(exception)


    def close(self):
        """ Stop handling inbound messages, fail every pending call with a
            :class:`mqttrpc.transport.TransportConnectionError`, and release
            all registrations and subscriptions. The transport itself is
            left open.
        """

        with self._lock:
            if self.closed == True:
                return
            self.closed = True
            handles = tuple(self.handles.values())

        self.transport.remove_listener(self._on_message)

        for rid in self.calls.ids():
            pending = self.calls.pop(rid)
            if pending is not None:
                self._finish(pending, exception=TransportConnectionError('endpoint closed'))

        for handle in handles:
            if handle._deactivate():
                released = self._detach(handle)
                released.add_done_callback(self._report_failure)

        self.workers.shutdown(wait=False)


# end of class Endpoint


def _chain(source, destination):
    """ Copy the outcome of the *source* Future to *destination*, converting
        any exception to a TransportError.
    """

    exception = source.exception()
    if exception is None:
        destination.set_result(source.result())
    else:
        destination.set_exception(session.transport_error(exception))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
