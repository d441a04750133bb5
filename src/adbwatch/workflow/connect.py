import asyncio
import enum
import logging
import time

from adbwatch.connector.adb import AdbClient
from adbwatch.connector.base import ConnectorError, VerificationError
from adbwatch.notify import NullNotifier
from adbwatch.state import DeviceStateTracker
from adbwatch.support.events import EventSource
from adbwatch.support.retry_strategy import BackoffRetryStrategy, GiveUp

logger = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    IDLE = 'idle'
    DISCONNECTING = 'disconnecting'
    CONNECTING = 'connecting'
    VERIFYING = 'verifying'
    BACKOFF = 'backoff'
    CONNECTED = 'connected'
    FAILED = 'failed'


class ConnectionWorkflow:
    """
    Connects a device over wireless adb and starts mirroring it.

    Each attempt drops any stale connection, connects, and then checks that adb lists the device as
    online. A failed attempt is retried as the retry strategy directs. When the retries are exhausted
    the failure is recorded against the device, which may put it into cooldown. A connection that is
    established resets the device's failure count and launches the mirror session.

    Every state change is fired on `transitions` as (device, ConnectionState).
    Connection errors never escape run().
    """
    def __init__(self, adb: AdbClient, tracker: DeviceStateTracker, mirror, notifier=None, retry_strategy=None,
                 settle_delay=0.5, stabilize_delay=1.0, clock=time.monotonic, sleep=asyncio.sleep):
        """
        :param mirror: launches the mirror session, with launch(endpoint)
        :param settle_delay: seconds to wait after disconnecting before connecting
        :param stabilize_delay: seconds to wait after connecting before launching the mirror
        """
        self.adb = adb
        self.tracker = tracker
        self.mirror = mirror
        self.notifier = notifier or NullNotifier()
        self.retry_strategy = retry_strategy or BackoffRetryStrategy(1.0, 8.0, 3)
        self.settle_delay = settle_delay
        self.stabilize_delay = stabilize_delay
        self.clock = clock
        self.sleep = sleep
        self.transitions = EventSource()

    def _transition(self, device, state):
        logger.debug("%s: %s" % (device.key, state.value))
        self.transitions.fire(device, state)

    async def _disconnect(self, device):
        try:
            await self.adb.disconnect(device.endpoint)
        except ConnectorError as e:
            logger.debug("disconnect of %s failed: %s" % (device.endpoint, e))

    async def _attempt(self, device):
        """ One pass through disconnect, connect and verify. Raises ConnectorError on failure. """
        endpoint = device.endpoint
        self._transition(device, ConnectionState.DISCONNECTING)
        await self._disconnect(device)
        await self.sleep(self.settle_delay)

        self._transition(device, ConnectionState.CONNECTING)
        await self.adb.connect(endpoint)

        self._transition(device, ConnectionState.VERIFYING)
        if not await self.adb.is_connected(endpoint):
            raise VerificationError("Device connection verification failed")

    async def run(self, device) -> ConnectionState:
        """
        Connects the device, retrying as needed.
        :return: ConnectionState.CONNECTED or ConnectionState.FAILED
        """
        retries = self.retry_strategy.max_retries
        retry_count = 0
        self._transition(device, ConnectionState.IDLE)
        while True:
            logger.info("Connecting to %s...%s" % (
                device, " (retry %d/%d)" % (retry_count, retries) if retry_count else ""))
            try:
                await self._attempt(device)
            except ConnectorError as e:
                logger.error("Failed to connect: %s" % e)
                decision = self.retry_strategy(retry_count, e)
                if isinstance(decision, GiveUp):
                    return self._failed(device, e)
                self._transition(device, ConnectionState.BACKOFF)
                logger.info("Retrying in %gs..." % decision.delay)
                await self.sleep(decision.delay)
                retry_count += 1
            else:
                return await self._connected(device)

    async def _connected(self, device):
        logger.info("Connected to %s!" % device.name)
        self.notifier.notify("ADB connected", "%s @ %s" % (device.name, device.endpoint))
        self.tracker.record_success(device.key)
        self._transition(device, ConnectionState.CONNECTED)
        await self.sleep(self.stabilize_delay)
        self.mirror.launch(device.endpoint)
        return ConnectionState.CONNECTED

    def _failed(self, device, error):
        failures = self.tracker.record_failure(device.key, self.clock())
        logger.error("Max retries reached for %s (total failures: %d)" % (device.name, failures))
        self.notifier.notify("ADB connect failed", "%s: %s" % (device.name, error))
        self._transition(device, ConnectionState.FAILED)
        return ConnectionState.FAILED
