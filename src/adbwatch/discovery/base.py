"""
Service discovery interfaces. A discovery transport is asked to find() a type of service and
returns a session that posts events as services of that type appear and disappear.
"""
import errno
import logging

from adbwatch.support.events import EventSource
from adbwatch.support.mixins import ValueObjectMixin

logger = logging.getLogger(__name__)

PERMISSION_ERRNOS = (errno.EACCES, errno.EPERM)


class TransportFatalError(Exception):
    """
    The discovery transport cannot run, typically because it could not bind its control port.
    This is not recoverable.
    """
    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause

    @property
    def permission_denied(self):
        return getattr(self.cause, 'errno', None) in PERMISSION_ERRNOS


def transport_error(e: Exception) -> TransportFatalError:
    """ Describes a low-level transport error, with remediation advice when it is a permissions problem. """
    if getattr(e, 'errno', None) in PERMISSION_ERRNOS:
        return TransportFatalError(
            "Failed to access mDNS (UDP 5353). Run with elevated permissions or grant the Python interpreter\n"
            "cap_net_bind_service (e.g. sudo setcap 'cap_net_bind_service=+ep' \"$(readlink -f \"$(which python3)\")\")",
            e)
    return TransportFatalError("mDNS error: %s" % e, e)


class RawService(ValueObjectMixin):
    """ A service as advertised, before any interpretation. """

    def __init__(self, name=None, fqdn=None, addresses=(), host=None, port=None):
        """
        :param name:    the service instance name
        :param fqdn:    the fully qualified service name, including the service type and domain
        :param addresses:   the advertised addresses, as strings
        :param host:    the advertised host name
        :param port:    the advertised port
        """
        self.name = name
        self.fqdn = fqdn
        self.addresses = tuple(addresses or ())
        self.host = host
        self.port = port


class ServiceEvent(ValueObjectMixin):
    """ Notification about an advertised service. """
    def __init__(self, source, service: RawService):
        self.source = source
        self.service = service


class ServiceUpEvent(ServiceEvent):
    """ A service was announced or re-announced. """


class ServiceDownEvent(ServiceEvent):
    """ A service is no longer advertised. """


class DiscoverySession:
    """
    Browses for one type of service. Events are posted to the listeners.
    """
    def __init__(self, service_type, listeners=None):
        self.service_type = service_type
        self.listeners = listeners if listeners is not None else EventSource()
        self.stopped = False

    def stop(self):
        self.stopped = True


class ServiceDiscovery:
    """
    A discovery transport. Lower-level errors that occur while browsing are posted to the errors
    event source as TransportFatalError instances.
    """
    def __init__(self):
        self.errors = EventSource()
        self.sessions = []

    def find(self, service_type) -> DiscoverySession:
        session = self._new_session(service_type)
        self.sessions.append(session)
        return session

    def _new_session(self, service_type) -> DiscoverySession:
        return DiscoverySession(service_type)

    def close(self):
        """ Stops all sessions and releases the transport. """
        for session in self.sessions:
            if not session.stopped:
                session.stop()
        self.sessions = []
