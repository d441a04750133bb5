"""
Desktop notifications. Notifications are fire-and-forget: a notifier never raises and
never delays the caller.
"""
import asyncio
import logging

logger = logging.getLogger(__name__)


class Notifier:
    def notify(self, title, body):
        raise NotImplementedError


class NullNotifier(Notifier):
    """ Discards notifications. """

    def notify(self, title, body):
        pass


class DesktopNotifier(Notifier):
    """
    Sends notifications with notify-send on the running event loop.
    """
    def __init__(self, command='notify-send'):
        self.command = command
        self._pending = set()

    def notify(self, title, body):
        try:
            task = asyncio.ensure_future(self._send(title, body))
        except RuntimeError as e:
            logger.error("Unable to send desktop notification: %s" % e)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, title, body):
        try:
            process = await asyncio.create_subprocess_exec(self.command, title, body,
                                                           stdin=asyncio.subprocess.DEVNULL,
                                                           stdout=asyncio.subprocess.DEVNULL,
                                                           stderr=asyncio.subprocess.DEVNULL,
                                                           start_new_session=True)
        except FileNotFoundError:
            logger.error("%s not available; disable --notify or install libnotify-bin." % self.command)
            return
        except OSError as e:
            logger.error("Unable to send desktop notification: %s" % e)
            return
        await process.wait()
