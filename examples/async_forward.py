#!/usr/bin/env python
#
# The same port forwarding with asyncio.
#

import asyncio

import upnpigd


async def main():
    gateway = await upnpigd.async_discover(timeout=3)
    print(gateway.location(), await gateway.external_ip())
    await gateway.forward(6881, "UDP", "Transmission at 6881")
    print(await gateway.is_forwarded(6881, "UDP"))
    await gateway.clear(6881, "UDP")


asyncio.run(main())
