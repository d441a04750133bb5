import logging

from zeroconf import ServiceBrowser, Zeroconf

from adbwatch.discovery.base import DiscoverySession, RawService, ServiceDiscovery, ServiceDownEvent, \
    ServiceUpEvent, transport_error
from adbwatch.support.events import LoopEventSource

logger = logging.getLogger(__name__)


def qualify_service_type(service_subtype):
    """
    >>> qualify_service_type("adb-tls-connect")
    '_adb-tls-connect._tcp.local.'
    """
    return "_" + service_subtype + "._tcp.local."


def instance_name(svc_type, svc_name):
    """
    Strips the service type from a fully qualified service name.
    >>> instance_name('_adb-tls-connect._tcp.local.', 'adb-R5CT-x1y2._adb-tls-connect._tcp.local.')
    'adb-R5CT-x1y2'
    """
    suffix = '.' + svc_type
    return svc_name[:-len(suffix)] if svc_name.endswith(suffix) else svc_name


def raw_service(svc_type, svc_name, info=None) -> RawService:
    """
    constructs the RawService from the zeroconf info. Without info, only the names are known.
    """
    if info is None:
        return RawService(instance_name(svc_type, svc_name), svc_name)
    return RawService(instance_name(svc_type, svc_name), svc_name, info.parsed_addresses(),
                      info.server, info.port)


class ZeroconfSession(DiscoverySession):
    """
    Browses for one zeroconf service type.
    The service browser calls back on its own thread; the listeners are expected to hand the
    events over to the thread that consumes them (see LoopEventSource.)
    """
    def __init__(self, zeroconf, service_type, listeners, errors):
        super().__init__(service_type, listeners)
        self.errors = errors
        self.fqn = qualify_service_type(service_type)
        logger.debug("listening for zeroconf services of type %s" % self.fqn)
        self.browser = ServiceBrowser(zeroconf, self.fqn, self)

    def _publish_service(self, event, zeroconf, svc_type, svc_name, info_required=True):
        """
        publishes an event corresponding to the given service. When info is required, the event is published
        only if zeroconf resolves the service.
        """
        info = None
        if info_required:
            try:
                info = zeroconf.get_service_info(svc_type, svc_name)
            except OSError as e:
                self.errors.fire(transport_error(e))
                return
            if not info:
                logger.warning("no info for service %s type %s" % (svc_name, svc_type))
                return
        self.listeners.fire(event(self, raw_service(svc_type, svc_name, info)))

    def add_service(self, zeroconf, type, name):
        """ notification from the service browser that a service has been added """
        logger.debug("service available: %s" % name)
        self._publish_service(ServiceUpEvent, zeroconf, type, name)

    def update_service(self, zeroconf, type, name):
        """ a re-announcement is reported as the service being up again """
        logger.debug("service updated: %s" % name)
        self._publish_service(ServiceUpEvent, zeroconf, type, name)

    def remove_service(self, zeroconf, type, name):
        """ notification from the service browser that a service has been removed """
        logger.debug("service unavailable: %s" % name)
        self._publish_service(ServiceDownEvent, zeroconf, type, name, False)

    def stop(self):
        if not self.stopped:
            self.browser.cancel()
        super().stop()


class ZeroconfDiscovery(ServiceDiscovery):
    """
    Discovers services over mDNS using zeroconf. All events, including errors, are delivered
    on the given asyncio loop.

    :param loop the asyncio loop that receives the events
    :param zeroconf_factory creates the Zeroconf instance. Raises TransportFatalError when the
        mDNS port cannot be bound.
    """
    def __init__(self, loop, zeroconf_factory=Zeroconf):
        super().__init__()
        self.loop = loop
        self.errors = LoopEventSource(loop)
        try:
            self.zeroconf = zeroconf_factory()
        except OSError as e:
            raise transport_error(e) from e

    def _new_session(self, service_type):
        try:
            return ZeroconfSession(self.zeroconf, service_type, LoopEventSource(self.loop), self.errors)
        except OSError as e:
            raise transport_error(e) from e

    def close(self):
        super().close()
        if self.zeroconf is not None:
            self.zeroconf.close()
            self.zeroconf = None
