"""
The device registry turns raw service announcements into Device records and keeps the set
of devices currently believed to be online.
"""
import logging
import re

from adbwatch.discovery.base import RawService
from adbwatch.support.mixins import ValueObjectMixin

logger = logging.getLogger(__name__)

_dotted_quad = re.compile(r'^[0-9.]+$')


class Device(ValueObjectMixin):
    """ An announced device. Devices are not modified, a newer announcement supersedes them. """

    def __init__(self, key, name, endpoint, addresses=(), port=None):
        self.key = key
        self.name = name
        self.endpoint = endpoint
        self.addresses = tuple(addresses)
        self.port = port

    def __str__(self):
        return "%s (%s)" % (self.name, self.endpoint)


def pick_inet_address(service: RawService):
    """
    Chooses the address to connect to. IPv4 addresses are preferred, then the first address advertised,
    then the host name if it is written as an IPv4 address.

    >>> pick_inet_address(RawService(addresses=['fe80::1', '192.168.1.20']))
    '192.168.1.20'
    >>> pick_inet_address(RawService(addresses=['fe80::1']))
    'fe80::1'
    >>> pick_inet_address(RawService(host='10.0.0.5'))
    '10.0.0.5'
    >>> pick_inet_address(RawService(host='pixel.local.')) is None
    True
    """
    addresses = service.addresses
    for address in addresses:
        if _dotted_quad.match(address):
            return address
    if addresses:
        return addresses[0]
    if service.host and _dotted_quad.match(service.host):
        return service.host
    return None


def service_endpoint(service: RawService):
    ip = pick_inet_address(service)
    return "%s:%s" % (ip, service.port) if ip else None


def normalize(service: RawService) -> Device:
    """
    Builds the Device for a service. The endpoint is None when the service has no usable address.
    """
    endpoint = service_endpoint(service)
    return Device(key=service.fqdn or "%s:%s" % (service.name, endpoint),
                  name=service.name or "Unnamed device",
                  endpoint=endpoint,
                  addresses=service.addresses,
                  port=service.port)


class DeviceRegistry:
    """
    Owns the map of online devices, keyed by Device.key.
    """
    def __init__(self):
        self._devices = {}

    def on_up(self, service: RawService):
        """
        Records an announced device.
        :return: a tuple of the Device and whether its endpoint is unchanged from the previously known record,
            or None when the device has no usable endpoint.
        """
        device = normalize(service)
        if not device.endpoint:
            logger.debug("ignoring service without a usable address: %s" % service.name)
            return None
        previous = self._devices.get(device.key)
        self._devices[device.key] = device
        unchanged = previous is not None and previous.endpoint == device.endpoint
        return device, unchanged

    def on_down(self, service: RawService):
        """
        Removes a device that is no longer advertised.
        :return: the Device removed, or None if it was not online.
        """
        device = normalize(service)
        removed = self._devices.pop(device.key, None)
        if removed is not None:
            logger.debug("device removed: %s" % removed.key)
        return removed

    def get(self, key):
        return self._devices.get(key)

    def devices(self):
        return dict(self._devices)

    def clear(self):
        self._devices.clear()

    def __len__(self):
        return len(self._devices)

    def __contains__(self, key):
        return key in self._devices
