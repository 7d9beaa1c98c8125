import asyncio
import os.path as path
import socket
import threading
import time
from functools import wraps
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import mock
from lxml import etree

from tests.const import LOCALHOST

XML_DIR = path.join(path.dirname(path.realpath(__file__)), "xml")
NS_SOAP_ENV = "http://schemas.xmlsoap.org/soap/envelope/"


def async_test(f):
    """
    Decorator to run a coroutine test method in a fresh event loop.
    """
    @wraps(f)
    def g(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))
    return g


def read_xml(name):
    with open(path.join(XML_DIR, name), "rb") as f:
        return f.read()


class FakeSocket(object):
    """
    Stand-in for the SSDP UDP socket. `packets` holds the datagrams (bytes)
    or exceptions that successive `recvfrom` calls return or raise. Once it is
    empty, reads time out.
    """
    def __init__(self, packets=(), send_error=None):
        self.packets = list(packets)
        self.send_error = send_error
        self.sent = []
        self.closed = False

    def sendto(self, data, addr):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((data, addr))

    def settimeout(self, timeout):
        pass

    def recvfrom(self, bufsize):
        if not self.packets:
            raise socket.timeout("timed out")
        item = self.packets.pop(0)
        if isinstance(item, Exception):
            raise item
        return item, ("192.168.1.1", 1900)

    def close(self):
        self.closed = True


def fake_datagram_endpoint(packets=()):
    """
    Return (transport, open_socket) where `open_socket` replaces
    `upnpigd.ssdp._async_open_socket` and delivers `packets` straight away.
    """
    transport = mock.Mock()

    async def open_socket(protocol_factory):
        protocol = protocol_factory()
        protocol.connection_made(transport)
        for packet in packets:
            protocol.datagram_received(packet, ("192.168.1.1", 1900))
        return transport, protocol

    return transport, open_socket


SOAP_RESPONSE = """<?xml version="1.0"?>
<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/" s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">
<s:Body><u:{action}Response xmlns:u="{service_type}">{args}</u:{action}Response></s:Body>
</s:Envelope>"""

SOAP_FAULT = """<?xml version="1.0"?>
<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/" s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">
<s:Body><s:Fault><faultcode>s:Client</faultcode><faultstring>UPnPError</faultstring>
<detail><UPnPError xmlns="urn:schemas-upnp-org:control-1-0">
<errorCode>{code}</errorCode><errorDescription>{description}</errorDescription>
</UPnPError></detail></s:Fault></s:Body>
</s:Envelope>"""


class FakeIGD(object):
    """
    Minimal in-memory WAN connection service answering the four IGD actions.
    """
    def __init__(self, external_ip="203.0.113.7"):
        self.external_ip = external_ip
        self.mappings = {}

    def _response(self, action, service_type, **args):
        body = "".join("<%s>%s</%s>" % (k, v, k) for k, v in args.items())
        return 200, SOAP_RESPONSE.format(
            action=action, service_type=service_type, args=body).encode("utf-8")

    def _fault(self, code, description):
        return 500, SOAP_FAULT.format(code=code, description=description).encode("utf-8")

    def handle(self, body):
        envelope = etree.fromstring(body)
        action = envelope.find("{%s}Body" % NS_SOAP_ENV)[0]
        qname = etree.QName(action)
        name, service_type = qname.localname, qname.namespace
        args = dict((child.tag, child.text or "") for child in action)
        key = (args.get("NewExternalPort"), args.get("NewProtocol"))

        if name == "AddPortMapping":
            self.mappings[key] = args
            return self._response(name, service_type)
        if name == "GetSpecificPortMappingEntry":
            if key not in self.mappings:
                return self._fault(714, "NoSuchEntryInArray")
            mapping = self.mappings[key]
            return self._response(
                name,
                service_type,
                NewInternalPort=mapping["NewInternalPort"],
                NewInternalClient=mapping["NewInternalClient"],
                NewEnabled=mapping["NewEnabled"],
                NewPortMappingDescription=mapping["NewPortMappingDescription"],
                NewLeaseDuration=mapping["NewLeaseDuration"],
            )
        if name == "DeletePortMapping":
            if self.mappings.pop(key, None) is None:
                return self._fault(714, "NoSuchEntryInArray")
            return self._response(name, service_type)
        if name == "GetExternalIPAddress":
            return self._response(name, service_type, NewExternalIPAddress=self.external_ip)
        return self._fault(401, "Invalid Action")


class FakeGatewayHandler(BaseHTTPRequestHandler):
    def log_message(self, format, *args):
        pass

    def _send(self, status, body, content_type="text/xml"):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self):
        try:
            status, body = self.server.documents[self.path]
        except KeyError:
            status, body = 404, b"Not Found"
        self._send(status, body)

    def do_POST(self):
        body = self.rfile.read(int(self.headers.get("Content-Length", 0)))
        self.server.requests.append((self.path, dict(self.headers), body))
        if self.server.delay:
            time.sleep(self.server.delay)
        if self.path in self.server.canned:
            status, response = self.server.canned[self.path]
        else:
            status, response = self.server.igd.handle(body)
        self._send(status, response)


class FakeGateway(object):
    """
    Threaded HTTP server serving description documents from tests/xml (with
    @BASE@ replaced by the server's URL) and answering SOAP control requests
    with a FakeIGD.
    """
    def __init__(self):
        self.httpd = ThreadingHTTPServer((LOCALHOST, 0), FakeGatewayHandler)
        self.httpd.daemon_threads = True
        self.httpd.documents = {}
        self.httpd.canned = {}
        self.httpd.requests = []
        self.httpd.delay = 0
        self.httpd.igd = FakeIGD()
        self.base = "http://%s:%d" % (LOCALHOST, self.httpd.server_address[1])
        self.thread = threading.Thread(target=self.httpd.serve_forever)
        self.thread.daemon = True

    def start(self):
        self.thread.start()
        return self

    def stop(self):
        self.httpd.shutdown()
        self.httpd.server_close()

    @property
    def igd(self):
        return self.httpd.igd

    @property
    def requests(self):
        return self.httpd.requests

    def serve(self, url_path, name=None, status=200, body=None):
        """
        Serve tests/xml/`name` (or `body`) at `url_path`, returns its URL.
        """
        if body is None:
            body = read_xml(name).replace(b"@BASE@", self.base.encode("ascii"))
        self.httpd.documents[url_path] = (status, body)
        return self.base + url_path

    def can(self, url_path, status, body):
        """
        Answer POSTs to `url_path` with a fixed response.
        """
        self.httpd.canned[url_path] = (status, body)

    def delay(self, seconds):
        self.httpd.delay = seconds
