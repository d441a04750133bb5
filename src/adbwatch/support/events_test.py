import asyncio
import threading
import unittest
from unittest.mock import Mock, call

from hamcrest import assert_that, is_, empty, equal_to

from adbwatch.support.events import EventSource, LoopEventSource


class EventsTest(unittest.TestCase):

    def test_handlers_empty(self):
        sut = EventSource()
        assert_that(sut.handlers(), is_(empty()))

    def test_handlers_not_empty(self):
        sut = EventSource()
        handler = Mock()
        sut.add(handler)
        assert_that(list(sut.handlers()), is_([handler]))

    def test_no_listeners(self):
        sut = EventSource()
        sut.fire(1)

    def test_manage_handlers(self):
        sut = EventSource()
        m1 = Mock()
        sut.add(m1)
        assert_that(sut._handlers, is_([m1]))

        sut.remove(m1)
        assert_that(sut._handlers, is_([]))

        sut.remove(m1)
        assert_that(sut._handlers, is_([]))

        sut += m1
        assert_that(sut._handlers, is_([m1]))

        sut -= m1
        assert_that(sut._handlers, is_([]))

    def test_listeners(self):
        sut = EventSource()
        l1 = Mock()
        l2 = Mock()
        sut += l1
        sut += l2
        sut.fire(1, v="hey")
        l1.assert_called_once_with(1, v="hey")
        l2.assert_called_once_with(1, v="hey")

        l1.reset_mock()
        sut.fire_all([1, 2, 3])
        l1.assert_has_calls([call(1), call(2), call(3)])

    def test_handler_may_remove_itself(self):
        sut = EventSource()
        later = Mock()

        def once(event):
            sut.remove(once)
        sut += once
        sut += later
        sut.fire(1)
        sut.fire(2)
        assert_that(later.call_count, is_(2))
        assert_that(sut.handlers(), is_((later,)))


class LoopEventSourceTest(unittest.IsolatedAsyncioTestCase):

    async def test_fire_from_other_thread_runs_on_loop(self):
        loop = asyncio.get_running_loop()
        sut = LoopEventSource(loop)
        received = []
        done = asyncio.Event()

        def handler(event):
            received.append((event, threading.current_thread()))
            if len(received) == 2:
                done.set()
        sut += handler

        thread = threading.Thread(target=lambda: sut.fire_all(["a", "b"]))
        thread.start()
        thread.join()
        await asyncio.wait_for(done.wait(), 5)

        assert_that([e for e, _ in received], is_(equal_to(["a", "b"])))
        assert_that(all(t is threading.current_thread() for _, t in received), is_(True))

    async def test_fire_is_deferred(self):
        sut = LoopEventSource(asyncio.get_running_loop())
        handler = Mock()
        sut += handler
        sut.fire(1)
        handler.assert_not_called()
        await asyncio.sleep(0)
        handler.assert_called_once_with(1)


if __name__ == '__main__':  # pragma no cover
    unittest.main()
