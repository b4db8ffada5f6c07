import concurrent.futures
import mqttrpc
import pytest
import threading

from mqttrpc import session


def test_reference_count(recording):

    counter = session.SubscriptionCounter(recording)

    first = counter.acquire('a/service-response/me', 2)
    second = counter.acquire('a/service-response/me', 2)

    assert first.result(0) == 'a/service-response/me'
    assert second.result(0) == 'a/service-response/me'
    assert recording.subscribed == ['a/service-response/me']
    assert counter.count('a/service-response/me') == 2

    counter.release('a/service-response/me').result(0)
    assert recording.unsubscribed == []
    assert counter.count('a/service-response/me') == 1

    counter.release('a/service-response/me').result(0)
    assert recording.unsubscribed == ['a/service-response/me']
    assert 'a/service-response/me' not in counter
    assert counter.topics() == ()

    # Releasing an entry that no longer exists is a programming error.

    with pytest.raises(RuntimeError):
        counter.release('a/service-response/me')


def test_shared_in_flight(holding):

    counter = session.SubscriptionCounter(holding)

    first = counter.acquire('topic')
    second = counter.acquire('topic')

    assert first is second
    assert first.done() == False
    assert holding.subscribed == ['topic']

    operation, acknowledgment = holding.held.pop()
    assert operation == 'subscribe'
    acknowledgment.set_result(None)

    assert first.result(0) == 'topic'


def test_subscribe_failure(recording):

    recording.fail.add('subscribe')
    counter = session.SubscriptionCounter(recording)

    acquired = counter.acquire('topic')

    with pytest.raises(mqttrpc.TransportError):
        acquired.result(0)

    # No entry survives a failed subscribe; the next acquire tries again.

    assert 'topic' not in counter

    recording.fail.clear()
    counter.acquire('topic').result(0)
    assert recording.subscribed == ['topic', 'topic']
    assert counter.count('topic') == 1


def test_unsubscribe_failure(recording):

    counter = session.SubscriptionCounter(recording)
    counter.acquire('topic').result(0)

    recording.fail.add('unsubscribe')
    released = counter.release('topic')

    with pytest.raises(mqttrpc.TransportError):
        released.result(0)

    assert 'topic' not in counter


def test_acquire_during_unsubscribe(holding):

    counter = session.SubscriptionCounter(holding)

    acquired = counter.acquire('topic')
    holding.held.pop()[1].set_result(None)
    acquired.result(0)

    released = counter.release('topic')
    operation, unsubscribed = holding.held.pop()
    assert operation == 'unsubscribe'

    # The topic is wanted again before the unsubscribe is acknowledged;
    # the new subscribe must not overtake it.

    reacquired = counter.acquire('topic')
    assert holding.subscribed == ['topic']
    assert holding.held == []
    assert counter.count('topic') == 1

    unsubscribed.set_result(None)
    assert released.result(0) == 'topic'
    assert holding.subscribed == ['topic', 'topic']

    operation, subscribed = holding.held.pop()
    assert operation == 'subscribe'
    assert reacquired.done() == False

    subscribed.set_result(None)
    assert reacquired.result(0) == 'topic'
    assert counter.count('topic') == 1


def test_acquire_inside_unsubscribe(recording):

    operations = list()
    reacquired = list()
    recording_transport = type(recording)

    class Reentrant(recording_transport):

        def subscribe(self, topic, qos=0):
            operations.append('subscribe ' + topic)
            return recording_transport.subscribe(self, topic, qos)

        def unsubscribe(self, topic):
            # Another thread takes the topic between the count reaching
            # zero and the unsubscribe request going out.
            reacquired.append(counter.acquire(topic))
            operations.append('unsubscribe ' + topic)
            return recording_transport.unsubscribe(self, topic)

    counter = session.SubscriptionCounter(Reentrant())

    counter.acquire('t').result(0)
    counter.release('t').result(0)

    assert operations == ['subscribe t', 'unsubscribe t', 'subscribe t']
    assert reacquired[0].result(0) == 't'
    assert counter.count('t') == 1


def test_released_before_resubscribe(holding):

    counter = session.SubscriptionCounter(holding)

    counter.acquire('topic')
    holding.held.pop()[1].set_result(None)

    counter.release('topic')
    first_unsubscribe = holding.held.pop()[1]

    # Acquired and released again while the first unsubscribe is pending:
    # the deferred subscribe is dropped instead of leaking.

    waiting = counter.acquire('topic')
    counter.release('topic')
    second_unsubscribe = holding.held.pop()[1]

    first_unsubscribe.set_result(None)
    assert waiting.result(0) == 'topic'
    assert holding.subscribed == ['topic']
    assert 'topic' not in counter

    second_unsubscribe.set_result(None)
    assert holding.held == []


def test_pending_table():

    table = session.PendingTable()
    pending = session.PendingCall('me:1', 'sum', 'sum/service-response/me')

    table.add(pending)
    assert 'me:1' in table
    assert len(table) == 1

    with pytest.raises(mqttrpc.Error):
        table.add(session.PendingCall('me:1', 'sum', 'sum/service-response/me'))

    assert table.mark_subscribed('me:1') is pending
    assert pending.subscribed == True

    # Only the first pop owns the entry.

    assert table.pop('me:1') is pending
    assert table.pop('me:1') is None
    assert table.mark_subscribed('me:1') is None


def test_resolve_once():

    pending = session.PendingCall('me:1', 'sum', 'sum/service-response/me')

    pending.resolve(5)
    pending.resolve(exception=mqttrpc.Timeout('late'))
    pending.resolve(6)

    assert pending.future.result(0) == 5


def test_timer():

    expired = list()
    event = threading.Event()

    def _expired(rid):
        expired.append(rid)
        event.set()

    pending = session.PendingCall('me:1', 'sum', 'sum/service-response/me')
    pending.start_timer(0.01, _expired)

    assert event.wait(1) == True
    assert expired == ['me:1']

    cancelled = session.PendingCall('me:2', 'sum', 'sum/service-response/me')
    cancelled.start_timer(0.05, _expired)
    cancelled.resolve('done')
    assert cancelled.timer is None

    event.clear()
    assert event.wait(0.1) == False
    assert expired == ['me:1']


def test_gather():

    assert session.gather(()).result(0) is None

    first = concurrent.futures.Future()
    second = concurrent.futures.Future()
    gathered = session.gather((first, second))

    second.set_exception(ValueError('second'))
    assert gathered.done() == False

    first.set_result(1)

    with pytest.raises(ValueError):
        gathered.result(0)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
