""" Mapping between logical service/event names and transport topics.

    The default scheme uses three topic families::

        <name>/event-notice[/<client id>]
        <name>/service-request[/<client id>]
        <name>/service-response/<client id>

    A topic built for one family is never accepted by the matcher of
    another; any replacement functions supplied to :class:`TopicScheme`
    are expected to honor the same constraint.
"""

import collections
import re

from . import fields


Match = collections.namedtuple('Match', ('name', 'addressee'))

_event_pattern = re.compile(r'^(.+?)/' + re.escape(fields.EVENT_NOTICE) + r'(?:/(.+))?$')
_request_pattern = re.compile(r'^(.+?)/' + re.escape(fields.SERVICE_REQUEST) + r'(?:/(.+))?$')
_response_pattern = re.compile(r'^(.+?)/' + re.escape(fields.SERVICE_RESPONSE) + r'/(.+)$')

_forbidden = set(('+', '#', '\0'))
_reserved = set((fields.EVENT_NOTICE, fields.SERVICE_REQUEST, fields.SERVICE_RESPONSE))


def validate(name):
    """ Raise ValueError if *name* cannot be safely embedded in a topic.
        Names are used verbatim as topic segments, so MQTT wildcards and
        NUL characters are not permitted, and no level of a name may be one
        of the topic family suffixes; otherwise a topic of one family could
        be claimed by the matcher of another.
    """

    if isinstance(name, str):
        pass
    else:
        raise TypeError('name must be a string, not ' + type(name).__name__)

    if name == '':
        raise ValueError('name must not be empty')

    for character in _forbidden:
        if character in name:
            raise ValueError('name contains a forbidden character: ' + repr(name))

    for level in name.split('/'):
        if level in _reserved:
            raise ValueError('name contains a reserved topic level: ' + repr(name))

    return name


def make_event(name, addressee=None):
    if addressee:
        return '%s/%s/%s' % (name, fields.EVENT_NOTICE, addressee)
    return '%s/%s' % (name, fields.EVENT_NOTICE)


def make_request(name, addressee=None):
    if addressee:
        return '%s/%s/%s' % (name, fields.SERVICE_REQUEST, addressee)
    return '%s/%s' % (name, fields.SERVICE_REQUEST)


def make_response(name, addressee):
    if not addressee:
        raise ValueError('service responses must be addressed')
    return '%s/%s/%s' % (name, fields.SERVICE_RESPONSE, addressee)


def _match(pattern, topic):
    matched = pattern.match(topic)
    if matched is None:
        return None
    return Match(matched.group(1), matched.group(2))


def match_event(topic):
    return _match(_event_pattern, topic)


def match_request(topic):
    return _match(_request_pattern, topic)


def match_response(topic):
    return _match(_response_pattern, topic)


_defaults = dict(
    event=make_event,
    request=make_request,
    response=make_response,
    match_event=match_event,
    match_request=match_request,
    match_response=match_response,
)



class TopicScheme:
    """ Bundle of the make/match functions used by an
        :class:`mqttrpc.Endpoint`. Any of the six functions can be replaced
        by passing a keyword argument of the same name; a replacement
        matcher may return a :class:`Match`, any (name, addressee) pair, or
        None if the topic is not part of its family.
    """

    def __init__(self, event=None, request=None, response=None,
                 match_event=None, match_request=None, match_response=None):

        self._event = event or _defaults['event']
        self._request = request or _defaults['request']
        self._response = response or _defaults['response']
        self._match_event = match_event or _defaults['match_event']
        self._match_request = match_request or _defaults['match_request']
        self._match_response = match_response or _defaults['match_response']


    def event(self, name, addressee=None):
        return self._event(name, addressee)


    def request(self, name, addressee=None):
        return self._request(name, addressee)


    def response(self, name, addressee):
        return self._response(name, addressee)


    def match_event(self, topic):
        return _normalize(self._match_event(topic))


    def match_request(self, topic):
        return _normalize(self._match_request(topic))


    def match_response(self, topic):
        return _normalize(self._match_response(topic))


# end of class TopicScheme



def _normalize(matched):
    """ Accept whatever a custom matcher returned and hand back a
        :class:`Match` or None. An empty addressee means broadcast.
    """

    if matched is None:
        return None

    if isinstance(matched, Match):
        name, addressee = matched
    else:
        name, addressee = tuple(matched)[:2]

    if addressee == '':
        addressee = None

    return Match(name, addressee)


default = TopicScheme()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
