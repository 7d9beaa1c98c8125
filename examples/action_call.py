#!/usr/bin/env python
#
# Show how to forward a port, then talk to the IGD service directly.
#

import upnpigd

# Find the first gateway to answer. Save `gateway.location()` and pass it to
# `upnpigd.connect()` next time to skip SSDP.
gateway = upnpigd.discover()
print(gateway.location())

gateway.forward(6881, "TCP", "Transmission at 6881")
print(gateway.is_forwarded(6881, "TCP"))
# Output: True

# The underlying IGDClient can be called by action name too.
response = gateway.client("GetSpecificPortMappingEntry",
                          NewRemoteHost="", NewExternalPort=6881, NewProtocol="TCP")
print(response)
# Output: {'NewInternalPort': 6881, 'NewInternalClient': '192.168.1.10',
#          'NewEnabled': True, 'NewPortMappingDescription': 'Transmission at 6881',
#          'NewLeaseDuration': 0}

# If we don't pass a required parameter, a UPNPError will be thrown
try:
    response = gateway.client("DeletePortMapping", NewExternalPort=6881)
except upnpigd.UPNPError as e:
    print(str(e))

gateway.clear(6881, "TCP")
