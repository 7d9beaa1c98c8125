#!/usr/bin/env python
#
# Demonstrate gateway discovery on the local network.
#

import logging

import upnpigd

logging.basicConfig(level=logging.INFO)

gateways = upnpigd.discover_all(timeout=3)

for gateway in gateways:
    print(gateway.client.service_type, "@", gateway.location())
    print("   control URL:", gateway.client.control_url)
    print("   this host:  ", gateway.internal_ip)
    print("   external IP:", gateway.external_ip())
