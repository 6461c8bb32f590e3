# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Implements a DAVError class that is used to signal WebDAV and HTTP errors.

Handlers raise DAVError (usually through ``util.fail()``), the
:class:`~dmsdav.error_printer.ErrorPrinter` middleware turns it into the
response.
"""

import datetime
from html import escape

from dmsdav import __version__, xml_tools
from dmsdav.xml_tools import etree

__docformat__ = "reStructuredText"

# ========================================================================
# HTTP status codes used by dmsdav
# ========================================================================
HTTP_OK = 200
HTTP_CREATED = 201
HTTP_NO_CONTENT = 204
HTTP_NOT_MODIFIED = 304

HTTP_BAD_REQUEST = 400
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_METHOD_NOT_ALLOWED = 405
HTTP_CONFLICT = 409
HTTP_LENGTH_REQUIRED = 411
HTTP_PRECONDITION_FAILED = 412
HTTP_MEDIATYPE_NOT_SUPPORTED = 415
HTTP_LOCKED = 423
HTTP_FAILED_DEPENDENCY = 424

HTTP_INTERNAL_ERROR = 500
HTTP_BAD_GATEWAY = 502

#: Status lines always carry the reason phrase (Apache mod_dav expects it)
ERROR_DESCRIPTIONS = {
    HTTP_OK: "200 OK",
    HTTP_CREATED: "201 Created",
    HTTP_NO_CONTENT: "204 No Content",
    HTTP_NOT_MODIFIED: "304 Not Modified",
    HTTP_BAD_REQUEST: "400 Bad Request",
    HTTP_FORBIDDEN: "403 Forbidden",
    HTTP_NOT_FOUND: "404 Not Found",
    HTTP_METHOD_NOT_ALLOWED: "405 Method Not Allowed",
    HTTP_CONFLICT: "409 Conflict",
    HTTP_LENGTH_REQUIRED: "411 Length Required",
    HTTP_PRECONDITION_FAILED: "412 Precondition Failed",
    HTTP_MEDIATYPE_NOT_SUPPORTED: "415 Media Type Not Supported",
    HTTP_LOCKED: "423 Locked",
    HTTP_FAILED_DEPENDENCY: "424 Failed Dependency",
    HTTP_INTERNAL_ERROR: "500 Internal Server Error",
    HTTP_BAD_GATEWAY: "502 Bad Gateway",
}

#: Default explanation on error pages, if no context info was passed
ERROR_RESPONSES = {
    HTTP_BAD_REQUEST: "An invalid request was specified",
    HTTP_FORBIDDEN: "Access denied to the specified folder or document",
    HTTP_NOT_FOUND: "The specified folder or document was not found",
    HTTP_CONFLICT: "The repository refused the request",
    HTTP_LENGTH_REQUIRED: "Chunked uploads are not supported by this server",
    HTTP_PRECONDITION_FAILED: "The destination already exists or has no parent folder",
    HTTP_LOCKED: "The document is locked by another user",
    HTTP_BAD_GATEWAY: "The destination is located on another server",
    HTTP_INTERNAL_ERROR: "An internal server error occurred",
}

_ERROR_PAGE = """\
<!DOCTYPE html>
<html><head>
  <meta http-equiv='Content-Type' content='text/html; charset=UTF-8'>
  <title>{status}</title>
</head><body>
  <h1>{status}</h1>
  <p>{info}</p>
<hr/>
{server} - {now}
</body></html>"""


# ========================================================================
# Condition codes
# http://www.webdav.org/specs/rfc4918.html#precondition.postcondition.xml.elements
# ========================================================================

PRECONDITION_CODE_ProtectedProperty = "{DAV:}cannot-modify-protected-property"
PRECONDITION_CODE_LockConflict = "{DAV:}no-conflicting-lock"


class DAVErrorCondition:
    """Pre- or postcondition code that is reported as XML error body.

    Args:
        condition_code (str): one of the PRECONDITION_CODE_... constants
    """

    def __init__(self, condition_code):
        self.condition_code = condition_code
        self.hrefs = []

    def __repr__(self):
        return f"{self.condition_code}({self.hrefs})"

    def add_href(self, href):
        """Add the URL of a resource that caused the condition."""
        if href not in self.hrefs:
            self.hrefs.append(href)

    def as_xml(self):
        error_el = etree.Element("{DAV:}error")
        cond_el = etree.SubElement(error_el, self.condition_code)
        for href in self.hrefs:
            etree.SubElement(cond_el, "{DAV:}href").text = href
        return error_el

    def as_string(self):
        return xml_tools.xml_to_bytes(self.as_xml(), pretty_print=True).decode("utf8")


# ========================================================================
# DAVError
# ========================================================================


class DAVError(Exception):
    """Exception that carries an HTTP status out of a request handler.

    Args:
        status_code (int): HTTP status, e.g. HTTP_CONFLICT
        context_info (str): explanation shown on the error page, e.g. the
            message of a refused repository mutation
        src_exception (Exception): the exception that caused this error
        err_condition (str|DAVErrorCondition): reported as XML body instead
            of the HTML page
        add_headers (list): additional (name, value) response headers
    """

    def __init__(
        self,
        status_code,
        context_info=None,
        *,
        src_exception=None,
        err_condition=None,
        add_headers=None,
    ):
        self.value = int(status_code)
        self.context_info = context_info
        self.src_exception = src_exception
        if isinstance(err_condition, str):
            err_condition = DAVErrorCondition(err_condition)
        self.err_condition = err_condition
        self.add_headers = add_headers

    def __repr__(self):
        return f"DAVError({self.get_user_info()})"

    __str__ = __repr__

    def get_user_info(self):
        """Return a readable description, e.g. for logging."""
        s = get_http_status_string(self)
        info = self.context_info or ERROR_RESPONSES.get(self.value)
        if info:
            s += f": {info}"
        if self.src_exception:
            s += f"\n    Source exception: {self.src_exception!r}"
        if self.err_condition:
            s += f"\n    Error condition: {self.err_condition!r}"
        return s

    def get_response_page(self):
        """Return a tuple (content-type, body bytes)."""
        if self.err_condition:
            return ("application/xml", self.err_condition.as_string().encode("utf8"))

        html = _ERROR_PAGE.format(
            status=get_http_status_string(self),
            info=escape(self.get_user_info()),
            server=f"dmsdav/{__version__}",
            now=escape(str(datetime.datetime.now())),
        )
        return ("text/html", html.encode("utf8"))


def get_http_status_string(v):
    """Return the status line for a status code or DAVError, e.g. '204 No Content'."""
    code = int(getattr(v, "value", v))
    return ERROR_DESCRIPTIONS.get(code, f"{code} Status")


def as_DAVError(e):
    """Convert any non-DAVError exception to HTTP_INTERNAL_ERROR."""
    if isinstance(e, DAVError):
        return e
    return DAVError(HTTP_INTERNAL_ERROR, src_exception=e)
