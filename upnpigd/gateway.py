import asyncio
from concurrent.futures import ThreadPoolExecutor
from functools import partial

from .const import DISCOVER_TIMEOUT, HTTP_TIMEOUT
from .errors import (
    GatewayNotFound, MultipleGatewaysFound, NO_SUCH_ENTRY_IN_ARRAY, NoLocalAddress,
    UPNPError, ValidationError)
from .igd import IGDClient
from .ssdp import async_discover_locations, async_scan, discover_locations, drain_in_background, scan
from .upnp import (
    async_get_device_description, find_wan_services, get_device_description, sort_endpoints)
from .util import _getLogger, get_internal_ip

_log = _getLogger("Gateway")


def _is_no_such_entry(exc):
    return (
        getattr(exc, "code", None) == NO_SUCH_ENTRY_IN_ARRAY
        or "NoSuchEntryInArray" in str(exc)
        or "NoSuchEntryInArray" in getattr(exc, "fault_string", "")
    )


class Gateway(object):
    """
    A router that can forward ports to this host and report its external IP.
    `internal_ip` is this host's address on the router's network.
    """

    def __init__(self, internal_ip, client):
        self.internal_ip = internal_ip
        self.client = client
        self._log = _getLogger("Gateway")

    def __repr__(self):
        return "<%s '%s' for %s>" % (
            self.__class__.__name__, self.client.control_url, self.internal_ip)

    def forward(self, port, proto, description=""):
        """
        Forward `port` for `proto` ("TCP" or "UDP") to the same port on this
        host, without a lease time limit.
        """
        self.client.add_port_mapping(
            port, proto, port, self.internal_ip, description=description)

    def is_forwarded(self, port, proto):
        try:
            entry = self.client.get_specific_port_mapping_entry(port, proto)
        except ValidationError:
            raise
        except UPNPError as exc:
            self._log.debug("No mapping for %s/%s: %s", port, proto, exc)
            return False
        return self._forwarded_here(entry)

    def _forwarded_here(self, entry):
        return bool(entry["NewEnabled"]) and entry["NewInternalClient"] == self.internal_ip

    def clear(self, port, proto):
        """
        Remove the mapping for `port`/`proto`. Clearing a port that isn't
        forwarded is not an error.
        """
        try:
            self.client.delete_port_mapping(port, proto)
        except UPNPError as exc:
            if not _is_no_such_entry(exc):
                raise

    def external_ip(self):
        return self.client.get_external_ip_address()["NewExternalIPAddress"]

    def location(self):
        return self.client.location()


class AsyncGateway(Gateway):
    """
    Gateway whose methods are coroutines. Its client must be created with
    `use_async=True`.
    """

    async def forward(self, port, proto, description=""):
        await self.client.add_port_mapping(
            port, proto, port, self.internal_ip, description=description)

    async def is_forwarded(self, port, proto):
        try:
            entry = await self.client.get_specific_port_mapping_entry(port, proto)
        except ValidationError:
            raise
        except UPNPError as exc:
            self._log.debug("No mapping for %s/%s: %s", port, proto, exc)
            return False
        return self._forwarded_here(entry)

    async def clear(self, port, proto):
        try:
            await self.client.delete_port_mapping(port, proto)
        except UPNPError as exc:
            if not _is_no_such_entry(exc):
                raise

    async def external_ip(self):
        entry = await self.client.get_external_ip_address()
        return entry["NewExternalIPAddress"]


def _make_gateway(endpoint, internal_ip, use_async=False, session=None, timeout=HTTP_TIMEOUT):
    client = IGDClient(endpoint, use_async=use_async, session=session, timeout=timeout)
    gateway_class = AsyncGateway if use_async else Gateway
    return gateway_class(internal_ip, client)


def _log_unreachable(endpoint, exc):
    _log.info("Skipping %s at %s: %s", endpoint.service_type, endpoint.control_url, exc)


def _reachable_gateways(endpoints, timeout=HTTP_TIMEOUT):
    """
    Build a gateway for every endpoint this host shares a network with.
    Endpoints on a network we have no interface on are logged and skipped.
    """
    gateways = []
    for endpoint in sort_endpoints(endpoints):
        try:
            internal_ip = get_internal_ip(endpoint.control_url)
        except NoLocalAddress as exc:
            _log_unreachable(endpoint, exc)
            continue
        gateways.append(_make_gateway(endpoint, internal_ip, timeout=timeout))
    return gateways


async def _async_internal_ip(endpoint):
    # Host name resolution blocks, keep it off the event loop.
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, get_internal_ip, endpoint.control_url)


async def _async_reachable_gateways(endpoints, session=None, timeout=HTTP_TIMEOUT):
    gateways = []
    for endpoint in sort_endpoints(endpoints):
        try:
            internal_ip = await _async_internal_ip(endpoint)
        except NoLocalAddress as exc:
            _log_unreachable(endpoint, exc)
            continue
        gateways.append(
            _make_gateway(endpoint, internal_ip, use_async=True, session=session, timeout=timeout))
    return gateways


def _endpoints_or_empty(location, timeout=HTTP_TIMEOUT):
    try:
        return find_wan_services(get_device_description(location, timeout=timeout))
    except UPNPError as exc:
        _log.warning("Error '%s' for %s", exc, location)
        return []


async def _async_endpoints_or_empty(location, session=None, timeout=HTTP_TIMEOUT):
    try:
        root = await async_get_device_description(location, session, timeout)
    except UPNPError as exc:
        _log.warning("Error '%s' for %s", exc, location)
        return []
    return find_wan_services(root)


def discover_all(timeout=DISCOVER_TIMEOUT, http_timeout=HTTP_TIMEOUT):
    """
    Wait out the SSDP window, then read every responder's description
    concurrently. Returns gateways ordered by preference, possibly empty.
    """
    locations = discover_locations(timeout)
    endpoints = []
    if locations:
        with ThreadPoolExecutor(max_workers=len(locations)) as executor:
            fetch = partial(_endpoints_or_empty, timeout=http_timeout)
            for found in executor.map(fetch, locations):
                endpoints.extend(found)
    return _reachable_gateways(endpoints, timeout=http_timeout)


def discover(timeout=DISCOVER_TIMEOUT, http_timeout=HTTP_TIMEOUT):
    """
    Return the first usable gateway to answer, without waiting out the rest
    of the SSDP window. Raises GatewayNotFound if nothing usable answers.
    """
    entries = scan(timeout)
    try:
        for entry in entries:
            gateways = _reachable_gateways(
                _endpoints_or_empty(entry.location, http_timeout), timeout=http_timeout)
            if gateways:
                return gateways[0]
    finally:
        entries.close()
    raise GatewayNotFound("no UPnP-enabled gateway found")


def _single_endpoint(root, location):
    endpoints = find_wan_services(root)
    if not endpoints:
        raise GatewayNotFound("no UPnP-enabled gateway found at %s" % location)
    if len(endpoints) > 1:
        raise MultipleGatewaysFound("multiple UPnP-enabled gateways found at %s" % location)
    return endpoints[0]


def connect(location, http_timeout=HTTP_TIMEOUT):
    """
    Connect to the gateway described at `location`, usually a URL saved from
    `Gateway.location()`. Skips SSDP entirely.
    """
    endpoint = _single_endpoint(get_device_description(location, timeout=http_timeout), location)
    return _make_gateway(endpoint, get_internal_ip(endpoint.control_url), timeout=http_timeout)


async def async_discover_all(timeout=DISCOVER_TIMEOUT, session=None, http_timeout=HTTP_TIMEOUT):
    locations = await async_discover_locations(timeout)
    results = await asyncio.gather(
        *[_async_endpoints_or_empty(location, session, http_timeout) for location in locations])
    endpoints = [endpoint for found in results for endpoint in found]
    return await _async_reachable_gateways(endpoints, session=session, timeout=http_timeout)


async def async_discover(timeout=DISCOVER_TIMEOUT, session=None, http_timeout=HTTP_TIMEOUT):
    entries = async_scan(timeout)
    try:
        async for entry in entries:
            endpoints = await _async_endpoints_or_empty(entry.location, session, http_timeout)
            gateways = await _async_reachable_gateways(
                endpoints, session=session, timeout=http_timeout)
            if gateways:
                return gateways[0]
    finally:
        # The rest of the responses are abandoned, but the scan still runs to
        # the end of its window so the socket is closed.
        drain_in_background(entries)
    raise GatewayNotFound("no UPnP-enabled gateway found")


async def async_connect(location, session=None, http_timeout=HTTP_TIMEOUT):
    root = await async_get_device_description(location, session, http_timeout)
    endpoint = _single_endpoint(root, location)
    internal_ip = await _async_internal_ip(endpoint)
    return _make_gateway(
        endpoint, internal_ip, use_async=True, session=session, timeout=http_timeout)
