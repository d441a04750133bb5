import asyncio
import logging
import re

from adbwatch.connector.adb import AdbClient
from adbwatch.connector.base import ConnectorError
from adbwatch.discovery.base import ServiceUpEvent, TransportFatalError
from adbwatch.notify import NullNotifier
from adbwatch.registry import service_endpoint

logger = logging.getLogger(__name__)

_pairing_code = re.compile(r'^[0-9]{6}$')


class PairingError(Exception):
    """ Pairing did not complete. The user has to start pairing again. """


def service_matches(device, service):
    """
    Determines if a pairing service belongs to the device: the service name or fully qualified name
    starts with the device name, ignoring case.
    """
    target = device.name.lower()
    candidates = [value.lower() for value in (service.name, service.fqdn) if value]
    return any(value.startswith(target) for value in candidates)


class PairingWorkflow:
    """
    Pairs a device using the code shown on its "Pair device with pairing code" screen.

    A separate discovery session watches for the pairing service the device advertises while that
    screen is open. The first announcement that matches the device and has an address is used: the
    user is asked for the 6 digit code and adb pair is run. The discovery session is always torn down
    afterwards, and pairing is not retried.

    :param discovery_factory: creates the discovery transport used for the pairing session. The
        transport is closed when pairing ends.
    :param prompter: asks the user for the code. Pairing is unavailable when there is no prompter.
    :param timeout: seconds to wait for the pairing announcement, or None to wait indefinitely.
    """
    def __init__(self, adb: AdbClient, discovery_factory, prompter=None, notifier=None,
                 pairing_service='adb-tls-pairing', timeout=300.0):
        self.adb = adb
        self.discovery_factory = discovery_factory
        self.prompter = prompter
        self.notifier = notifier or NullNotifier()
        self.pairing_service = pairing_service
        self.timeout = timeout or None

    async def run(self, device):
        """
        :return: True when the device was paired.
        """
        if self.prompter is None:
            logger.info("Cannot pair in non-interactive mode. Re-run in a terminal to pair.")
            return False

        logger.info('Enable wireless debugging pairing on the device, then choose "Pair device with pairing code".')
        try:
            await self._pair(device)
        except PairingError as e:
            logger.error("Pairing failed: %s" % e)
            self.notifier.notify("ADB pairing failed", "%s: %s" % (device.name, e))
            return False
        logger.info("Pairing with %s succeeded." % device.name)
        return True

    async def _pair(self, device):
        try:
            discovery = self.discovery_factory()
        except TransportFatalError as e:
            raise PairingError(str(e)) from e

        events = asyncio.Queue()
        session = None
        try:
            session = discovery.find(self.pairing_service)
            session.listeners.add(events.put_nowait)
            try:
                endpoint = await asyncio.wait_for(self._matching_endpoint(device, events), self.timeout)
            except asyncio.TimeoutError as e:
                raise PairingError("%s did not advertise pairing within %gs" % (device.name, self.timeout)) from e
            code = await self._ask_code()
            try:
                await self.adb.pair(endpoint, code)
            except ConnectorError as e:
                raise PairingError(str(e)) from e
        except TransportFatalError as e:
            raise PairingError(str(e)) from e
        finally:
            if session is not None:
                session.listeners.remove(events.put_nowait)
            # stopping a browser joins its thread
            await asyncio.get_running_loop().run_in_executor(None, discovery.close)

    async def _matching_endpoint(self, device, events):
        while True:
            event = await events.get()
            if not isinstance(event, ServiceUpEvent) or not service_matches(device, event.service):
                continue
            endpoint = service_endpoint(event.service)
            if endpoint:
                return endpoint
            logger.info("Seen pairing service without an IPv4 address. Retry pairing.")

    async def _ask_code(self):
        prompter = self.prompter
        while True:
            code = (await prompter.ask("Pairing code (6 digits): ")).strip()
            if _pairing_code.match(code):
                return code
            if prompter.closed:
                raise PairingError("input closed before a pairing code was entered")
            prompter.output.write("Invalid code, try again.\n")
