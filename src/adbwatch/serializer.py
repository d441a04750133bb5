import asyncio
import logging

logger = logging.getLogger(__name__)


class InteractionSerializer:
    """
    Runs device interactions one at a time, in the order they were enqueued.

    A task is a callable taking no arguments and returning an awaitable. Tasks are run by a single
    worker. A task that waits for user input or an external command holds up all the tasks queued
    behind it, so prompts are never interleaved and no two connection attempts run together.
    An exception from a task is logged and the worker carries on with the next task.
    """
    def __init__(self):
        self._queue = asyncio.Queue()
        self._worker = None
        self.running = None       # the task currently executing, if any

    def start(self):
        if self._worker is None:
            self._worker = asyncio.ensure_future(self._work())
        return self

    def enqueue(self, task):
        self._queue.put_nowait(task)

    async def _work(self):
        queue = self._queue
        while True:
            task = await queue.get()
            self.running = task
            try:
                await task()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Interaction error: %s" % e)
            finally:
                self.running = None
                queue.task_done()

    async def join(self):
        """ waits until every task enqueued so far has completed. """
        await self._queue.join()

    @property
    def pending(self):
        return self._queue.qsize()

    async def stop(self):
        """ stops the worker. Tasks still queued are dropped. """
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
