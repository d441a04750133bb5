import logging

from adbwatch.connector.base import ConnectorError
from adbwatch.connector.process import ProcessRunner

logger = logging.getLogger(__name__)


def is_device_connected(output, endpoint):
    """
    Determines from the output of `adb devices` whether the endpoint is connected and online.

    >>> is_device_connected("List of devices attached\\n10.0.0.5:5555\\tdevice\\n", "10.0.0.5:5555")
    True
    >>> is_device_connected("10.0.0.5:5555\\toffline device\\n", "10.0.0.5:5555")
    False
    >>> is_device_connected("10.0.0.6:5555\\tdevice\\n", "10.0.0.5:5555")
    False
    """
    for line in (line.strip() for line in output.split('\n')):
        if line.startswith(endpoint):
            return 'device' in line and 'offline' not in line
    return False


class AdbClient:
    """
    The adb sub-commands used to manage wireless connections.
    Each command raises CommandError when adb fails.
    """

    def __init__(self, runner: ProcessRunner):
        self.runner = runner

    @classmethod
    def create(cls, adb='adb', timeout=10.0):
        return cls(ProcessRunner(adb, timeout))

    async def disconnect(self, endpoint):
        await self.runner.run(["disconnect", endpoint])

    async def connect(self, endpoint):
        await self.runner.run(["connect", endpoint])

    async def devices(self):
        return await self.runner.run(["devices"], capture_output=True, silent=True)

    async def pair(self, endpoint, code):
        await self.runner.run(["pair", endpoint, code])

    async def is_connected(self, endpoint):
        """
        Determines if the endpoint is listed as a connected device.
        A failure to list the devices counts as not connected.
        """
        try:
            output = await self.devices()
        except ConnectorError as e:
            logger.error("Device verification failed: %s" % e)
            return False
        return is_device_connected(output, endpoint)
