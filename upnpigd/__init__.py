# Copyright (c) 2012-2016, Ferry Boender <ferry.boender@gmail.com>
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
This module provides a minimal UPnP Internet Gateway Device control point. It
finds the home router on the local network and asks it to forward ports to
this host, and to report its external IP address. It implements SSDP (Simple
Service Discovery Protocol), device description parsing and a minimal SOAP
(Simple Object Access Protocol) implementation.

The usual flow for working with a gateway is:

- Discover UPnP root devices using SSDP.

  SSDP is a simple HTTP-over-UDP protocol. An M-SEARCH HTTP request is
  multicast over the network and any UPnP device should respond with an HTTP
  response. This response includes an URL to an XML file describing the
  device. If you already know the URL of the XML file, you can skip this step
  and use connect() directly.

- Find the WAN connection services.

  The XML file is read and its tree of embedded devices is searched for
  WANIPConnection and WANPPPConnection services. Each one found becomes a
  control endpoint: the URL its SOAP actions are posted to and the service
  type they are addressed to.

- Call actions using SOAP.

  AddPortMapping, DeletePortMapping, GetSpecificPortMappingEntry and
  GetExternalIPAddress are sent to the control endpoint. Faults carrying a
  UPnP error code are raised as UPnPActionError.

Every step is repeated from scratch on each call, nothing is cached.

The following example forwards a port on the first gateway to answer:

------------------------------------------------------------------------------
import upnpigd

gateway = upnpigd.discover()
gateway.forward(15000, "TCP", "my service")
print(gateway.external_ip(), gateway.is_forwarded(15000, "TCP"))
gateway.clear(15000, "TCP")
------------------------------------------------------------------------------

Each blocking call has an asyncio counterpart prefixed with async_
(async_discover, async_connect, ...) that returns AsyncGateway instances.

Useful Links:

* http://upnp.org/specs/arch/UPnP-arch-DeviceArchitecture-v1.1.pdf
* http://upnp.org/specs/gw/UPnP-gw-WANIPConnection-v2-Service.pdf
"""
from upnpigd import const, errors, gateway, igd, marshal, soap, ssdp, upnp, util  # noqa: F401
from .errors import (
    UPNPError, TransportError, UnexpectedResponse, InvalidResponseBody, SOAPError,
    UPnPActionError, InvalidActionException, ValidationError, SSDPError, GatewayNotFound,
    MultipleGatewaysFound, NoLocalAddress)
from .upnp import Service, Device, RootDevice, ControlEndpoint
from .igd import IGDClient
from .gateway import (
    Gateway, AsyncGateway, discover, discover_all, connect, async_discover,
    async_discover_all, async_connect)

__all__ = [
    "UPNPError", "TransportError", "UnexpectedResponse", "InvalidResponseBody", "SOAPError",
    "UPnPActionError", "InvalidActionException", "ValidationError", "SSDPError",
    "GatewayNotFound", "MultipleGatewaysFound", "NoLocalAddress",
    "Service", "Device", "RootDevice", "ControlEndpoint", "IGDClient",
    "Gateway", "AsyncGateway", "discover", "discover_all", "connect",
    "async_discover", "async_discover_all", "async_connect",
]
