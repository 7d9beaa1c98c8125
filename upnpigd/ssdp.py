import asyncio
import re
import socket
import time
from collections import namedtuple
from datetime import datetime, timedelta

from requests.structures import CaseInsensitiveDict

from .const import (
    DISCOVER_TIMEOUT, SSDP_BUFSIZE, SSDP_GRACE, SSDP_RETRY_INTERVAL, SSDP_SEND_INTERVAL,
    SSDP_SENDS, SSDP_TARGET, ST_ROOTDEVICE)
from .errors import SSDPError
from .util import _getLogger

STATUS_LINE = re.compile(r"^HTTP/1\.[01]\s+(\d{3})(?:\s|$)")

_log = _getLogger("SSDP")
_background_tasks = set()


class Entry(namedtuple("Entry", ["location", "usn"])):
    """
    A device that answered the M-SEARCH. `usn` falls back to `location` when
    the response has no USN header; it is only used to deduplicate.
    """

    __slots__ = ()

    def __new__(cls, location, usn=None):
        return super(Entry, cls).__new__(cls, location, usn or location)


def ssdp_request(ssdp_st, ssdp_mx=DISCOVER_TIMEOUT):
    """Return request bytes for given st and mx."""
    return "\r\n".join(
        [
            "M-SEARCH * HTTP/1.1",
            "HOST: {}:{}".format(*SSDP_TARGET),
            'MAN: "ssdp:discover"',
            "MX: {:d}".format(max(1, int(ssdp_mx))),
            "ST: {}".format(ssdp_st),
            "",
            "",
        ]
    ).encode("utf-8")


def parse_response(data):
    """
    Parse an HTTP-over-UDP response datagram. Returns an Entry, or None if the
    datagram isn't a 200 response with a LOCATION header.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return None
    lines = text.split("\r\n") if "\r\n" in text else text.split("\n")
    match = STATUS_LINE.match(lines[0])
    if match is None or match.group(1) != "200":
        return None

    headers = CaseInsensitiveDict()
    for line in lines[1:]:
        if not line.strip():
            break
        name, sep, value = line.partition(":")
        if not sep:
            return None
        headers[name.strip()] = value.strip()

    location = headers.get("LOCATION")
    if not location:
        return None
    return Entry(location, headers.get("USN"))


def _open_socket():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
    sock.bind(("", 0))
    return sock


def scan(timeout=DISCOVER_TIMEOUT, st=ST_ROOTDEVICE):
    """
    Send the M-SEARCH probe and yield an Entry for each distinct device as
    soon as it answers. Stops once `timeout` (plus a short grace period) has
    elapsed. The socket is closed when the generator finishes or is closed.
    """
    request = ssdp_request(st, timeout)
    try:
        sock = _open_socket()
    except socket.error as exc:
        raise SSDPError("Couldn't open SSDP socket: %s" % exc) from exc

    try:
        # UDP multicast is lossy, send the probe a few times.
        for _ in range(SSDP_SENDS):
            try:
                sock.sendto(request, SSDP_TARGET)
            except socket.error as exc:
                raise SSDPError("Couldn't write SSDP packet: %s" % exc) from exc
            time.sleep(SSDP_SEND_INTERVAL)

        stop_wait = datetime.now() + timedelta(seconds=timeout + SSDP_GRACE)
        seen = set()
        while True:
            seconds_left = (stop_wait - datetime.now()).total_seconds()
            if seconds_left <= 0:
                break
            sock.settimeout(seconds_left)
            try:
                data, address = sock.recvfrom(SSDP_BUFSIZE)
            except socket.timeout:
                break
            except (BlockingIOError, InterruptedError):
                time.sleep(SSDP_RETRY_INTERVAL)
                continue
            except socket.error:
                _log.exception("Socket error while discovering SSDP devices")
                break

            entry = parse_response(data)
            if entry is None:
                _log.debug("Ignoring invalid SSDP response from %s", address)
                continue
            if entry.usn in seen:
                continue
            seen.add(entry.usn)
            _log.debug("Found %s at %s", entry.usn, entry.location)
            yield entry
    finally:
        sock.close()


def discover_locations(timeout=DISCOVER_TIMEOUT, st=ST_ROOTDEVICE):
    """
    Block for the whole wait window and return the location of every distinct
    device that answered, in the order they answered.
    """
    return [entry.location for entry in scan(timeout, st)]


class SSDPProtocol(asyncio.DatagramProtocol):
    def __init__(self, queue):
        self.queue = queue
        self.transport = None
        self.lost_exc = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.queue.put_nowait((data, addr))

    def error_received(self, exc):
        # ICMP errors and the like, the next read may well succeed.
        _log.debug("Transient error on SSDP socket: %s", exc)

    def connection_lost(self, exc):
        # Fatal socket errors end up here, a None item stops the scan.
        self.lost_exc = exc
        self.queue.put_nowait(None)


async def _async_open_socket(protocol_factory):
    loop = asyncio.get_running_loop()
    return await loop.create_datagram_endpoint(
        protocol_factory, family=socket.AF_INET, local_addr=("0.0.0.0", 0))


async def async_scan(timeout=DISCOVER_TIMEOUT, st=ST_ROOTDEVICE):
    """
    Asynchronous version of `scan`. Cancelling the consuming task closes the
    socket straight away.
    """
    request = ssdp_request(st, timeout)
    queue = asyncio.Queue()
    try:
        transport, protocol = await _async_open_socket(lambda: SSDPProtocol(queue))
    except OSError as exc:
        raise SSDPError("Couldn't open SSDP socket: %s" % exc) from exc

    try:
        for _ in range(SSDP_SENDS):
            try:
                transport.sendto(request, SSDP_TARGET)
            except OSError as exc:
                raise SSDPError("Couldn't write SSDP packet: %s" % exc) from exc
            await asyncio.sleep(SSDP_SEND_INTERVAL)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout + SSDP_GRACE
        seen = set()
        while True:
            seconds_left = deadline - loop.time()
            if seconds_left <= 0:
                break
            try:
                item = await asyncio.wait_for(queue.get(), seconds_left)
            except asyncio.TimeoutError:
                break
            if item is None:
                if protocol.lost_exc is not None:
                    _log.error(
                        "Socket error while discovering SSDP devices: %s", protocol.lost_exc)
                break
            data, address = item

            entry = parse_response(data)
            if entry is None:
                _log.debug("Ignoring invalid SSDP response from %s", address)
                continue
            if entry.usn in seen:
                continue
            seen.add(entry.usn)
            _log.debug("Found %s at %s", entry.usn, entry.location)
            yield entry
    finally:
        transport.close()


async def async_discover_locations(timeout=DISCOVER_TIMEOUT, st=ST_ROOTDEVICE):
    return [entry.location async for entry in async_scan(timeout, st)]


async def _drain(entries):
    async for _ in entries:
        pass


def drain_in_background(entries):
    """
    Keep consuming an abandoned `async_scan` until its wait window ends so the
    socket gets closed. Returns the draining task.
    """
    task = asyncio.ensure_future(_drain(entries))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task
