"""
Supervises the scrcpy screen mirroring session launched once a device is connected.
"""
import asyncio
import logging

from adbwatch.support.retry_strategy import FixedRetryStrategy, GiveUp, RetryStrategy, Success

logger = logging.getLogger(__name__)


class MirrorLaunchError(Exception):
    """ scrcpy could not be started, or exited abnormally. """


def mirror_args(endpoint, max_size=1024):
    """
    >>> mirror_args('10.0.0.5:5555')
    ['--tcpip=10.0.0.5:5555', '-m', '1024', '--no-audio', '--stay-awake']
    """
    return [
        "--tcpip=%s" % endpoint,
        "-m", str(max_size),    # cap the resolution for a faster stream
        "--no-audio",
        "--stay-awake",
    ]


class MirrorSupervisor:
    """
    Launches scrcpy for an endpoint and relaunches it when it fails.

    scrcpy shares the terminal with this process. A launch is retried when scrcpy cannot be started or
    exits with a non-zero code other than abort_exit_code, which scrcpy uses when the user closes it
    or the device goes away. A process killed by a signal is not retried. Once the retry strategy gives up,
    the session is abandoned.

    :param scrcpy: the scrcpy executable
    :param retry_strategy: decides whether and when to relaunch, given the number of relaunches so far
    :param sleep: the coroutine used to wait between launches
    """
    def __init__(self, scrcpy='scrcpy', max_size=1024, retry_strategy: RetryStrategy=None, abort_exit_code=1,
                 sleep=asyncio.sleep):
        self.scrcpy = scrcpy
        self.max_size = max_size
        self.retry_strategy = retry_strategy or FixedRetryStrategy(2.0, 2)
        self.abort_exit_code = abort_exit_code
        self.sleep = sleep
        self.sessions = set()

    def launch(self, endpoint):
        """
        Starts supervising a scrcpy session for the endpoint and returns without waiting for it.
        :return: the asyncio task supervising the session.
        """
        task = asyncio.ensure_future(self.supervise(endpoint))
        self.sessions.add(task)
        task.add_done_callback(self.sessions.discard)
        return task

    async def _spawn(self, args):
        return await asyncio.create_subprocess_exec(self.scrcpy, *args)

    async def _run_once(self, endpoint):
        """
        Runs scrcpy until it exits.
        :return: the exit code. A negative code means the process was killed by that signal.
        """
        try:
            process = await self._spawn(mirror_args(endpoint, self.max_size))
        except OSError as e:
            raise MirrorLaunchError("Failed to start %s: %s" % (self.scrcpy, e)) from e
        return await process.wait()

    def _is_abnormal(self, code):
        return code is not None and code > 0 and code != self.abort_exit_code

    async def supervise(self, endpoint):
        """
        Runs scrcpy for the endpoint, relaunching it while the retry strategy allows.
        :return: Success with the final exit code, or GiveUp with the last error.
        """
        retries = self.retry_strategy.max_retries
        retry_count = 0
        while True:
            logger.info("Launching scrcpy for %s...%s" % (
                endpoint, " (attempt %d/%d)" % (retry_count + 1, retries + 1) if retry_count else ""))
            try:
                code = await self._run_once(endpoint)
            except MirrorLaunchError as e:
                logger.error(str(e))
                reason = e
            else:
                if code:
                    logger.error("scrcpy exited with code %s" % code)
                if not self._is_abnormal(code):
                    return Success(code)
                reason = MirrorLaunchError("scrcpy exited with code %s" % code)

            decision = self.retry_strategy(retry_count, reason)
            if isinstance(decision, GiveUp):
                logger.info("Giving up on scrcpy for %s after %d attempts" % (endpoint, retry_count + 1))
                return decision
            logger.info("Retrying scrcpy in %g seconds..." % decision.delay)
            await self.sleep(decision.delay)
            retry_count += 1

    async def shutdown(self):
        """ Stops supervising. Running scrcpy processes are left alone. """
        sessions = list(self.sessions)
        for task in sessions:
            task.cancel()
        if sessions:
            await asyncio.gather(*sessions, return_exceptions=True)
