import asyncio
import logging
import os
import shutil
import sys

from adbwatch.connector.base import CommandError

logger = logging.getLogger(__name__)


class ProcessRunner:
    """ Runs an executable with a list of arguments and waits for it to exit. """

    def __init__(self, image, timeout=None, stdout=None, stderr=None):
        """
        :param image: the executable, either a path or a name resolved on the PATH
        :param timeout: seconds to wait for the process before it is killed. None waits indefinitely.
        :param stdout: where uncaptured output is echoed. Defaults to sys.stdout at the time of the call.
        :param stderr: where error output is echoed. Defaults to sys.stderr at the time of the call.
        """
        self.image = image
        self.timeout = timeout
        self._stdout = stdout
        self._stderr = stderr

    @property
    def available(self):
        return self._is_executable(self.image) or shutil.which(self.image) is not None

    @staticmethod
    def _is_executable(file):
        """
        Determines if the given file is executable.
        :param file: the filename to check.
        :return: True if the file is executable.
        """
        return os.path.isfile(file) and os.access(file, os.X_OK)

    def _describe(self, args):
        return " ".join((self.image,) + tuple(args))

    async def _spawn(self, args):
        return await asyncio.create_subprocess_exec(self.image, *args,
                                                    stdin=asyncio.subprocess.DEVNULL,
                                                    stdout=asyncio.subprocess.PIPE,
                                                    stderr=asyncio.subprocess.PIPE)

    async def run(self, args, capture_output=False, silent=False):
        """
        Runs the executable to completion.
        :param args: the arguments passed to the executable
        :param capture_output: when True, standard output is returned rather than echoed.
        :param silent: when True, nothing is echoed.
        :return: the standard output when captured, otherwise None.
        :raises CommandError: when the process cannot be started, times out or exits with a non-zero code.
        """
        command = self._describe(args)
        logger.debug("running %s" % command)
        try:
            process = await self._spawn(args)
        except OSError as e:
            raise CommandError("unable to run %s: %s" % (command, e), args) from e

        try:
            out, err = await asyncio.wait_for(process.communicate(), self.timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise CommandError("%s timed out after %ss" % (command, self.timeout), args) from e

        out = out.decode(errors='replace') if out else ''
        err = err.decode(errors='replace') if err else ''
        if err and not silent:
            (self._stderr or sys.stderr).write(err)
        if out and not silent and not capture_output:
            (self._stdout or sys.stdout).write(out)
        if process.returncode != 0:
            raise CommandError("%s exited with code %s" % (command, process.returncode),
                               args, process.returncode, err)
        return out if capture_output else None
