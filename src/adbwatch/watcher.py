"""
The device watcher ties discovery to the device workflows.

- Discovery posts ServiceUpEvent and ServiceDownEvent for the wireless debugging service.
  Events arrive on the event loop in the order they were announced.
- The DeviceRegistry turns each event into a Device and tracks which devices are online.
- The DeviceStateTracker decides whether an announcement is acted on: repeated announcements of an
  unchanged endpoint are debounced, and devices that keep failing to connect are held in cooldown.
- Announcements that pass are queued on the InteractionSerializer, which runs one interaction at a time:
  the device is reported, and then connected (ConnectionWorkflow), paired (PairingWorkflow) or skipped,
  depending on the mode and the user's choice.
- A successful connection launches scrcpy under the MirrorSupervisor.

The registry and tracker are only touched from the event loop, so they need no locking.
"""
import asyncio
import logging
import math
import time

from adbwatch.discovery.base import ServiceDiscovery, ServiceDownEvent, ServiceUpEvent, TransportFatalError
from adbwatch.notify import NullNotifier
from adbwatch.registry import DeviceRegistry
from adbwatch.serializer import InteractionSerializer
from adbwatch.state import DeviceStateTracker, StaleEntrySweeper

logger = logging.getLogger(__name__)

CONNECT, PAIR, SKIP = 'connect', 'pair', 'skip'

CHOICES = {'y': CONNECT, 'p': PAIR, 's': SKIP}


class DeviceWatcher:
    """
    Watches for devices and runs the interaction for each one that is announced.

    :param discovery: the discovery transport for the connect service
    :param connect_workflow: connects a device, run(device)
    :param pairing_workflow: pairs a device, run(device)
    :param mirror: the MirrorSupervisor, stopped on shutdown
    :param prompter: asks the user what to do. When None, the watcher runs non-interactively.
    :param auto_connect: connect without asking
    """
    def __init__(self, discovery: ServiceDiscovery, connect_workflow, pairing_workflow, mirror=None,
                 registry: DeviceRegistry=None, tracker: DeviceStateTracker=None,
                 serializer: InteractionSerializer=None, sweeper: StaleEntrySweeper=None,
                 prompter=None, notifier=None, auto_connect=False, connect_service='adb-tls-connect',
                 clock=time.monotonic):
        self.discovery = discovery
        self.connect_workflow = connect_workflow
        self.pairing_workflow = pairing_workflow
        self.mirror = mirror
        self.registry = registry if registry is not None else DeviceRegistry()
        self.tracker = tracker if tracker is not None else DeviceStateTracker()
        self.serializer = serializer if serializer is not None else InteractionSerializer()
        self.sweeper = sweeper if sweeper is not None else StaleEntrySweeper(self.tracker, clock=clock)
        self.prompter = prompter
        self.notifier = notifier or NullNotifier()
        self.auto_connect = auto_connect
        self.connect_service = connect_service
        self.clock = clock
        self.session = None
        self.exit_code = 0
        self.fatal_error = None
        self._stopping = asyncio.Event()

    @property
    def interactive(self):
        return self.prompter is not None

    def start(self):
        self.serializer.start()
        self.sweeper.start()
        self.discovery.errors.add(self.transport_error)
        self.session = self.discovery.find(self.connect_service)
        self.session.listeners.add(self.service_event)
        return self

    def service_event(self, event):
        if isinstance(event, ServiceUpEvent):
            self.device_up(event.service)
        elif isinstance(event, ServiceDownEvent):
            self.device_down(event.service)

    def device_up(self, service):
        """
        Handles an announcement.
        :return: True if an interaction was queued for the device.
        """
        result = self.registry.on_up(service)
        if result is None:
            return False
        device, unchanged = result
        now = self.clock()
        if self.tracker.should_debounce(device.key, unchanged, now):
            return False
        self.tracker.record_seen(device.key, now)

        remaining = self.tracker.cooldown_remaining(device.key, now)
        if remaining > 0:
            logger.info("[!] Ignoring %s due to repeated failures (will retry in %d min)" % (
                device.name, math.ceil(remaining / 60)))
            return False

        self.serializer.enqueue(lambda: self.interact(device))
        return True

    def device_down(self, service):
        device = self.registry.on_down(service)
        if device is not None:
            self.serializer.enqueue(lambda: self._offline(device))
        return device

    async def _offline(self, device):
        logger.info("[-] Device offline: %s" % device.name)

    async def choose_action(self):
        if self.auto_connect:
            return CONNECT
        return await self.prompter.ask_choice("Connect now? [Y]es / [p]air / [s]kip: ", CHOICES, default='y')

    async def interact(self, device):
        logger.info("[+] Device detected: %s" % device)
        self.notifier.notify("ADB device detected", "%s @ %s" % (device.name, device.endpoint))

        if not self.interactive:
            if self.auto_connect:
                await self.connect_workflow.run(device)
            else:
                logger.info("Running non-interactive; leaving device idle. Use `adb connect` manually.")
            return

        action = await self.choose_action()
        if action == CONNECT:
            await self.connect_workflow.run(device)
        elif action == PAIR:
            await self.pairing_workflow.run(device)
        elif action is None:
            logger.info("Input closed; leaving device idle.")
        else:
            logger.info("Skipping. I'll keep listening...")

    def transport_error(self, error: TransportFatalError):
        """ A fatal discovery error stops the watcher with exit code 1. Only the first error is reported. """
        if self.fatal_error is not None:
            return
        self.fatal_error = error
        self.exit_code = 1
        logger.error(str(error))
        self._stopping.set()

    def request_stop(self):
        self._stopping.set()

    async def wait(self):
        """
        Waits until the watcher is asked to stop.
        :return: the exit code for the process
        """
        await self._stopping.wait()
        return self.exit_code

    def _close_discovery(self, session):
        if session is not None:
            session.stop()
        self.discovery.close()

    async def shutdown(self):
        logger.info("Stopping listener...")
        session, self.session = self.session, None
        if session is not None:
            session.listeners.remove(self.service_event)
        # stopping a browser joins its thread, which may be waiting on a service lookup
        await asyncio.get_running_loop().run_in_executor(None, self._close_discovery, session)
        self.registry.clear()
        await self.sweeper.stop()
        await self.serializer.stop()
        if self.mirror is not None:
            await self.mirror.shutdown()
        if self.prompter is not None:
            self.prompter.close()
