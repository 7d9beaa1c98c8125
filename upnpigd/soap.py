import asyncio

import aiohttp
import requests
from lxml import etree

from .const import HTTP_TIMEOUT, NS_SOAP_ENV, NS_SOAP_ENC
from .errors import (
    ERR_CODE_DESCRIPTIONS, InvalidResponseBody, SOAPError, TransportError,
    UnexpectedResponse, UPnPActionError)
from .marshal import marshal_value, zero_value
from .util import _getLogger, _strip_namespaces, _XMLGetNodeText

XML_DECLARATION = b'<?xml version="1.0"?>\n'
CONTENT_TYPE = 'text/xml; charset="utf-8"'


def build_envelope(service_type, action_name, arg_in=None):
    """
    Return the SOAP 1.1 request envelope for `action_name` as bytes. `arg_in`
    is an ordered mapping of argument name to its string value; every entry is
    emitted, in order, as a child of the action element.
    """
    envelope = etree.Element("{%s}Envelope" % NS_SOAP_ENV, nsmap={"s": NS_SOAP_ENV})
    envelope.set("{%s}encodingStyle" % NS_SOAP_ENV, NS_SOAP_ENC)
    body = etree.SubElement(envelope, "{%s}Body" % NS_SOAP_ENV)
    action = etree.SubElement(
        body, "{%s}%s" % (service_type, action_name), nsmap={"u": service_type})
    for name, value in (arg_in or {}).items():
        etree.SubElement(action, name).text = value
    return XML_DECLARATION + etree.tostring(envelope)


def _parse_envelope(content):
    """
    Parse a response envelope and return its Body element. The envelope
    namespace is not checked, lax servers get it wrong.
    """
    try:
        root = etree.fromstring(content)
    except (etree.XMLSyntaxError, ValueError) as exc:
        raise InvalidResponseBody("invalid response body: %s" % exc)
    _strip_namespaces(root)
    body = root.find("Body") if root.tag == "Envelope" else None
    if body is None:
        raise InvalidResponseBody("invalid response body: no SOAP Envelope/Body")
    return body


def _fault_error(fault):
    fault_code = _XMLGetNodeText(fault, "faultcode")
    fault_string = _XMLGetNodeText(fault, "faultstring")
    upnp_error = fault.find("detail/UPnPError")
    if upnp_error is not None:
        try:
            code = int(_XMLGetNodeText(upnp_error, "errorCode"))
        except ValueError:
            code = None
        if code is not None:
            description = _XMLGetNodeText(upnp_error, "errorDescription")
            if not description:
                description = ERR_CODE_DESCRIPTIONS.get(code, "")
            return UPnPActionError(code, description, fault_string, fault_code)
    return SOAPError(fault_string, fault_code)


def _decode_action_response(body, argsdef_out):
    response = next(body.iterchildren(tag=etree.Element), None)
    if response is None:
        raise InvalidResponseBody("invalid response body: empty SOAP Body")
    params_out = {}
    for name, datatype in argsdef_out:
        text = _XMLGetNodeText(response, name)
        if not text:
            # Absent and empty fields both read as the datatype's zero value.
            params_out[name] = zero_value(datatype)
            continue
        try:
            _, params_out[name] = marshal_value(datatype, text)
        except ValueError as exc:
            raise InvalidResponseBody("invalid response body: %s: %s" % (name, exc))
    return params_out


class SOAP(object):
    """SOAP (Simple Object Access Protocol) implementation
    This class defines a simple SOAP client bound to one control URL and
    service type.
    """
    def __init__(self, url, service_type):
        self.url = url
        self.service_type = service_type
        self._log = _getLogger('SOAP')

    def _prepare_request(self, action_name, arg_in):
        body = build_envelope(self.service_type, action_name, arg_in)
        headers = {
            'SOAPAction': '"%s#%s"' % (self.service_type, action_name),
            'Content-Type': CONTENT_TYPE,
        }
        self._log.debug(">> %s %s", action_name, self.url)
        return body, headers

    def _handle_response(self, action_name, status, content, argsdef_out):
        """
        Turn the raw HTTP status and body into the decoded output arguments,
        or raise the matching error. Returns None when `argsdef_out` is None.
        """
        self._log.debug("<< %s %s: %r", action_name, status, content)
        if status != 200:
            # Routers send UPnP faults with a 500 status, keep their detail.
            try:
                body = _parse_envelope(content)
            except InvalidResponseBody:
                raise UnexpectedResponse(
                    content.decode("utf-8", "replace"), status=status)
            fault = body.find("Fault")
            if fault is None:
                raise UnexpectedResponse(
                    content.decode("utf-8", "replace"), status=status)
            raise _fault_error(fault)

        body = _parse_envelope(content)
        fault = body.find("Fault")
        if fault is not None:
            raise _fault_error(fault)
        if argsdef_out is None:
            return None
        return _decode_action_response(body, argsdef_out)

    def call(self, action_name, arg_in=None, argsdef_out=None, timeout=HTTP_TIMEOUT,
             session=None):
        body, headers = self._prepare_request(action_name, arg_in)
        post = requests.post if session is None else session.post
        try:
            resp = post(self.url, data=body, headers=headers, timeout=timeout)
        except requests.exceptions.RequestException as exc:
            raise TransportError("%s to %s failed: %s" % (action_name, self.url, exc)) from exc
        return self._handle_response(action_name, resp.status_code, resp.content, argsdef_out)

    async def async_call(self, action_name, arg_in=None, argsdef_out=None,
                         timeout=HTTP_TIMEOUT, session=None):
        if session is None:
            async with aiohttp.ClientSession() as session:
                return await self.async_call(
                    action_name, arg_in, argsdef_out, timeout=timeout, session=session)

        body, headers = self._prepare_request(action_name, arg_in)
        try:
            async with session.post(
                self.url,
                data=body,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                status = resp.status
                content = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError("%s to %s failed: %s" % (action_name, self.url, exc)) from exc
        return self._handle_response(action_name, status, content, argsdef_out)
