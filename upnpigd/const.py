HTTP_TIMEOUT = 10

DISCOVER_TIMEOUT = 2
SSDP_TARGET = ("239.255.255.250", 1900)
SSDP_MX = DISCOVER_TIMEOUT
SSDP_SENDS = 3
SSDP_SEND_INTERVAL = 0.005
SSDP_RETRY_INTERVAL = 0.005
# Extra time allowed for late responses once the MX window has elapsed.
SSDP_GRACE = 0.1
SSDP_BUFSIZE = 2048
ST_ROOTDEVICE = "upnp:rootdevice"

NS_DEVICE = "urn:schemas-upnp-org:device-1-0"
NS_CONTROL = "urn:schemas-upnp-org:control-1-0"
NS_SOAP_ENV = "http://schemas.xmlsoap.org/soap/envelope/"
NS_SOAP_ENC = "http://schemas.xmlsoap.org/soap/encoding/"

SERVICE_WANPPP_1 = "urn:schemas-upnp-org:service:WANPPPConnection:1"
SERVICE_WANIP_1 = "urn:schemas-upnp-org:service:WANIPConnection:1"
SERVICE_WANIP_2 = "urn:schemas-upnp-org:service:WANIPConnection:2"
WAN_SERVICE_TYPES = (SERVICE_WANPPP_1, SERVICE_WANIP_1, SERVICE_WANIP_2)
