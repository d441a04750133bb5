import logging

logger = logging.getLogger(__name__)


class EventSource(object):
    """
    A list of handlers that are each called with the arguments passed to fire().
    """

    def __init__(self):
        self._handlers = []

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler):
        self._handlers.append(handler)
        return self

    def remove(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def handlers(self):
        return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        self._fire(*args, **kwargs)

    def fire_all(self, events):
        for e in events:
            self.fire(e)

    def _fire(self, *args, **kwargs):
        for handler in tuple(self._handlers):
            handler(*args, **kwargs)


class LoopEventSource(EventSource):
    """
    An event source that may be fired from any thread. The handlers are always
    invoked on the thread running the given asyncio loop, in the order the events were fired.

    The zeroconf browser delivers its notifications on its own thread. Routing them
    through this source keeps all device bookkeeping on the loop thread.
    """
    def __init__(self, loop):
        super().__init__()
        self.loop = loop

    def fire(self, *args, **kwargs):
        if self.loop.is_closed():
            logger.debug("event loop closed, dropping event %s" % (args,))
            return
        self.loop.call_soon_threadsafe(lambda: self._fire(*args, **kwargs))
