import logging
import socket
import ipaddress

import ifaddr
from lxml import etree
from requests.compat import urlparse

from .errors import NoLocalAddress


def _getLogger(name):
    """
    Retrieve a logger instance. Checks if a handler is defined so we avoid the
    'No handlers could be found' message.
    """
    logger = logging.getLogger(name)
    # if not logging.root.handlers:
    #     logger.disabled = 1
    return logger


def _strip_namespaces(root):
    """
    Drop the namespace part of every element tag in the tree so that lookups
    work the same whether the document declares the expected namespace, some
    other one, or none at all. Many routers get this wrong.
    """
    for node in root.iter():
        if isinstance(node.tag, str):
            node.tag = etree.QName(node).localname
    return root


def _XMLGetNodeText(node, path, default=""):
    text = node.findtext(path, default=default)
    return default if text is None else text.strip()


def get_addresses_ipv4():
    """
    Return (ip, network_prefix) for every IPv4 address on this machine.
    """
    # Re-read on every call, interfaces come and go.
    return [
        (addr.ip, addr.network_prefix)
        for iface in ifaddr.get_adapters()
        for addr in iface.ips
        if addr.is_IPv4
    ]


def get_internal_ip(location):
    """
    Return the address of the local interface that shares a subnet with the
    host in `location`. Raises NoLocalAddress when there is none, which means
    the device is not directly reachable from this machine.
    """
    host = urlparse(location).hostname
    if not host:
        raise NoLocalAddress("No host in location %r" % location)
    try:
        device_ip = ipaddress.IPv4Address(host)
    except ipaddress.AddressValueError:
        # Not an address literal, ask the resolver.
        try:
            device_ip = ipaddress.IPv4Address(socket.gethostbyname(host))
        except (socket.error, ipaddress.AddressValueError):
            raise NoLocalAddress("Could not resolve location host %r" % host)

    for ip, prefix in get_addresses_ipv4():
        network = ipaddress.IPv4Network("%s/%d" % (ip, prefix), strict=False)
        if device_ip in network:
            return ip
    raise NoLocalAddress("Could not find local address in same net as %s" % device_ip)
