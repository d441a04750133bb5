"""
Command line entry point. Listens for Android devices advertising wireless debugging and offers
to connect, pair and mirror them.
"""
import argparse
import asyncio
import logging
import signal
import sys

from configobj import ConfigObjError

from adbwatch.config.config import apply_conf, load_settings
from adbwatch.connector.adb import AdbClient
from adbwatch.connector.process import ProcessRunner
from adbwatch.discovery.base import TransportFatalError
from adbwatch.discovery.zeroconf_discovery import ZeroconfDiscovery
from adbwatch.mirror import MirrorSupervisor
from adbwatch.notify import DesktopNotifier, NullNotifier
from adbwatch.prompt import Prompter
from adbwatch.state import DeviceStateTracker, StaleEntrySweeper
from adbwatch.support.retry_strategy import BackoffRetryStrategy, FixedRetryStrategy
from adbwatch.watcher import DeviceWatcher
from adbwatch.workflow.connect import ConnectionWorkflow
from adbwatch.workflow.pairing import PairingWorkflow

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_TRANSPORT_ERROR = 1
EXIT_CONFIG_ERROR = 2


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='adbwatch', description=__doc__)
    parser.add_argument('--notify', action='store_true', help='send desktop notifications with notify-send')
    parser.add_argument('--auto-connect', action='store_true', help='connect to devices without asking')
    parser.add_argument('--no-interactive', action='store_true', help='never prompt, even on a terminal')
    parser.add_argument('--config', metavar='FILE', help='a configuration file overriding the defaults')
    parser.add_argument('-v', '--verbose', action='store_true', help='log debugging detail')
    return parser.parse_args(argv)


def configure_logging(verbose=False, stream=None):
    handler = logging.StreamHandler(stream or sys.stdout)
    if verbose:
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
    else:
        handler.setFormatter(logging.Formatter('%(message)s'))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    # zeroconf is chatty at debug level
    logging.getLogger('zeroconf').setLevel(logging.INFO if verbose else logging.WARNING)


def banner(interactive):
    if interactive:
        return ("Listening for Android devices advertising wireless ADB...\n"
                "As soon as one shows up you'll be asked whether to connect or pair.\n"
                "Press Ctrl+C to exit.\n")
    return ("Listening for Android devices advertising wireless ADB in non-interactive mode...\n"
            "Devices will be logged and, if --auto-connect is set, connected automatically.\n"
            "Press Ctrl+C to exit.\n")


def build_watcher(settings, loop, discovery, prompter=None, notifier=None, auto_connect=False):
    """
    Assembles the watcher and its workflows from the settings.
    """
    timing, connect, mirror_conf = settings['timing'], settings['connect'], settings['mirror']
    notifier = notifier or NullNotifier()

    tracker = DeviceStateTracker()
    apply_conf(timing, tracker)
    adb = AdbClient.create(connect['adb'], connect['command_timeout'])
    mirror = MirrorSupervisor(mirror_conf['scrcpy'], mirror_conf['max_size'],
                              FixedRetryStrategy(mirror_conf['retry_delay'], mirror_conf['max_retries']),
                              mirror_conf['abort_exit_code'])
    connect_workflow = ConnectionWorkflow(adb, tracker, mirror, notifier,
                                          BackoffRetryStrategy(connect['backoff_base'], connect['backoff_cap'],
                                                               connect['max_retries']),
                                          settle_delay=connect['settle_delay'],
                                          stabilize_delay=connect['stabilize_delay'])
    watcher = None

    def pairing_discovery():
        try:
            pairing = ZeroconfDiscovery(loop)
        except TransportFatalError as e:
            watcher.transport_error(e)
            raise
        pairing.errors.add(watcher.transport_error)
        return pairing

    pairing_workflow = PairingWorkflow(adb, pairing_discovery, prompter, notifier,
                                       settings['discovery']['pairing_service'], timing['pairing_timeout'])
    watcher = DeviceWatcher(discovery, connect_workflow, pairing_workflow, mirror,
                            tracker=tracker,
                            sweeper=StaleEntrySweeper(tracker, timing['sweep_interval']),
                            prompter=prompter, notifier=notifier, auto_connect=auto_connect,
                            connect_service=settings['discovery']['connect_service'])
    return watcher


def _check_tools(settings):
    for tool in (settings['connect']['adb'], settings['mirror']['scrcpy']):
        if not ProcessRunner(tool).available:
            logger.warning("%s was not found on the PATH." % tool)


async def run(args, settings):
    loop = asyncio.get_running_loop()
    interactive = not args.no_interactive and sys.stdin.isatty()
    try:
        discovery = ZeroconfDiscovery(loop)
    except TransportFatalError as e:
        logger.error(str(e))
        return EXIT_TRANSPORT_ERROR

    prompter = await Prompter.open_stdin() if interactive else None
    notifier = DesktopNotifier() if args.notify else NullNotifier()
    watcher = build_watcher(settings, loop, discovery, prompter, notifier, args.auto_connect)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, watcher.request_stop)
        except NotImplementedError:     # windows
            pass

    logger.info(banner(interactive))
    _check_tools(settings)
    try:
        watcher.start()
        return await watcher.wait()
    except TransportFatalError as e:
        watcher.transport_error(e)
        return watcher.exit_code
    finally:
        await watcher.shutdown()


def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.verbose)
    try:
        settings = load_settings(args.config)
    except ConfigObjError as e:
        logger.error("Invalid configuration: %s" % e)
        return EXIT_CONFIG_ERROR
    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        return EXIT_OK


if __name__ == '__main__':  # pragma no cover
    sys.exit(main())
