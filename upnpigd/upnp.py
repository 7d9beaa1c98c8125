import asyncio
from collections import namedtuple
from functools import partial

import aiohttp
import requests
from lxml import etree
from requests.compat import urljoin

from .const import HTTP_TIMEOUT, WAN_SERVICE_TYPES
from .errors import InvalidResponseBody, TransportError, UnexpectedResponse
from .util import _getLogger, _strip_namespaces, _XMLGetNodeText

_log = _getLogger("Device")


class Service(namedtuple("Service", ["service_type", "control_url"])):
    __slots__ = ()

    def __repr__(self):
        return "<Service service_type='%s'>" % (self.service_type)


class Device(namedtuple("Device", ["device_type", "friendly_name", "services", "devices"])):
    """
    A device from a description document. `services` and `devices` (the
    embedded devices) are tuples in document order.
    """

    __slots__ = ()

    def __repr__(self):
        return "<Device '%s'>" % (self.friendly_name)


class RootDevice(namedtuple("RootDevice", ["url_base", "device", "location"])):
    """
    A parsed description document. `location` is where it was fetched from,
    `url_base` is what relative control URLs resolve against.
    """

    __slots__ = ()


class ControlEndpoint(namedtuple("ControlEndpoint", ["location", "url_base", "service"])):
    __slots__ = ()

    @property
    def service_type(self):
        return self.service.service_type

    @property
    def control_url(self):
        return urljoin(self.url_base, self.service.control_url)


def _parse_device(node):
    findtext = partial(_XMLGetNodeText, node)
    services = tuple(
        Service(_XMLGetNodeText(svc, "serviceType"), _XMLGetNodeText(svc, "controlURL"))
        for svc in node.findall("serviceList/service")
    )
    devices = tuple(_parse_device(child) for child in node.findall("deviceList/device"))
    return Device(findtext("deviceType"), findtext("friendlyName"), services, devices)


def parse_device_description(data, location):
    """
    Parse a device description document fetched from `location`. Namespaces
    are ignored, so documents that omit the device namespace parse the same
    as conformant ones.
    """
    try:
        root = etree.fromstring(data)
    except (etree.XMLSyntaxError, ValueError) as exc:
        raise InvalidResponseBody("invalid response body: %s" % exc)
    _strip_namespaces(root)
    if root.tag != "root":
        raise InvalidResponseBody(
            "invalid response body: expected <root>, got <%s>" % root.tag)
    device_node = root.find("device")
    if device_node is None:
        raise InvalidResponseBody("invalid response body: no <device> element")

    url_base = _XMLGetNodeText(root, "URLBase")
    if url_base == "":
        # If no URL Base is given, the UPnP specification says: "the base
        # URL is the URL from which the device description was retrieved"
        url_base = location
    return RootDevice(url_base, _parse_device(device_node), location)


def get_device_description(location, timeout=HTTP_TIMEOUT, session=None):
    """
    Synchronously retrieve and parse the description document at `location`.
    """
    _log.debug("Reading %s", location)
    get = requests.get if session is None else session.get
    try:
        resp = get(location, timeout=timeout)
    except requests.exceptions.RequestException as exc:
        raise TransportError("GET %s failed: %s" % (location, exc)) from exc
    if resp.status_code != 200:
        raise UnexpectedResponse(resp.text, status=resp.status_code)
    return parse_device_description(resp.content, location)


async def async_get_device_description(location, session=None, timeout=HTTP_TIMEOUT):
    """
    Asynchronously retrieve and parse the description document at `location`.
    """
    if session is None:
        async with aiohttp.ClientSession() as session:
            return await async_get_device_description(location, session, timeout)

    _log.debug("Reading %s", location)
    try:
        async with session.get(location, timeout=aiohttp.ClientTimeout(total=timeout)) as resp:
            status = resp.status
            content = await resp.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        raise TransportError("GET %s failed: %s" % (location, exc)) from exc
    if status != 200:
        raise UnexpectedResponse(content.decode("utf-8", "replace"), status=status)
    return parse_device_description(content, location)


def iter_devices(device):
    """
    Walk a device tree, each device before its embedded devices.
    """
    yield device
    for child in device.devices:
        yield from iter_devices(child)


def find_wan_services(root, service_types=WAN_SERVICE_TYPES):
    """
    Return a ControlEndpoint for every service in the tree whose type is
    exactly one of `service_types`, in tree order.
    """
    endpoints = []
    for device in iter_devices(root.device):
        for svc in device.services:
            if svc.service_type in service_types:
                _log.debug(
                    "%s: Service %r at %r", device.friendly_name, svc.service_type,
                    svc.control_url)
                endpoints.append(ControlEndpoint(root.location, root.url_base, svc))
    return endpoints


def _preference(endpoint):
    return ("WANIP" not in endpoint.service_type, endpoint.service_type)


def sort_endpoints(endpoints):
    """
    Order endpoints so that WANIPConnection services come before
    WANPPPConnection ones. The sort is stable.
    """
    return sorted(endpoints, key=_preference)
