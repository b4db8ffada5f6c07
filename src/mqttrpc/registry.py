""" The name to handler mapping for one endpoint. Registered services and
    subscribed events share a single namespace: a name in use as a service
    cannot simultaneously be used as an event subscription, and vice versa.
"""

import threading

from . import errors


class Registry:

    def __init__(self):
        self._handlers = dict()
        self._lock = threading.Lock()


    def __contains__(self, name):
        return name in self._handlers


    def __len__(self):
        return len(self._handlers)


    def names(self):
        with self._lock:
            return tuple(self._handlers.keys())


    def get(self, name):
        """ Return the handler for *name*, or None if nothing is registered.
        """

        return self._handlers.get(name)


    def add(self, name, handler):
        """ Associate *handler* with *name*. Raises
            :class:`mqttrpc.errors.AlreadyRegistered` if the name is in use.
        """

        if callable(handler):
            pass
        else:
            raise TypeError('handler must be callable')

        with self._lock:
            if name in self._handlers:
                raise errors.AlreadyRegistered('name already registered: ' + repr(name))
            self._handlers[name] = handler


    def remove(self, name, handler=None):
        """ Remove the entry for *name*. If *handler* is specified the entry
            is only removed if it still refers to that handler. Raises
            :class:`mqttrpc.errors.NotRegistered` if there is no such entry.
        """

        with self._lock:
            try:
                current = self._handlers[name]
            except KeyError:
                raise errors.NotRegistered('name not registered: ' + repr(name))

            if handler is not None and current is not handler:
                raise errors.NotRegistered('name registered to a different handler: ' + repr(name))

            del self._handlers[name]


# end of class Registry


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
