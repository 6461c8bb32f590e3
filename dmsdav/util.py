# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Miscellaneous support functions for dmsdav.
"""

import calendar
import collections.abc
import datetime
import importlib
import logging
import os
import sys
import time
import warnings
from email.utils import formatdate, parsedate
from typing import Optional, Tuple
from urllib.parse import quote

from dmsdav import __version__
from dmsdav.dav_error import (
    HTTP_BAD_REQUEST,
    HTTP_NO_CONTENT,
    HTTP_NOT_MODIFIED,
    DAVError,
    as_DAVError,
    get_http_status_string,
)
from dmsdav.xml_tools import etree, is_etree_element, make_sub_element, xml_to_bytes

__docformat__ = "reStructuredText"

#: The base logger (silent by default)
BASE_LOGGER_NAME = "dmsdav"
_logger = logging.getLogger(BASE_LOGGER_NAME)

#: Currently used Python version as string
PYTHON_VERSION = ".".join([str(s) for s in sys.version_info[:3]])

#: Server name reported in error pages and the directory listing footer.
#: ``suppress_version_info`` shortens these to ``"dmsdav"`` and ``"Python/3"``.
public_dmsdav_info = f"dmsdav/{__version__}"
public_python_info = f"Python/{PYTHON_VERSION}"

#: Time formats accepted by parse_time_string(), tried in this order
_HTTP_TIME_FORMATS = (
    "%a, %d %b %Y %H:%M:%S GMT",  # RFC 1123
    "%A, %d-%b-%y %H:%M:%S GMT",  # RFC 850
    "%a %b %d %H:%M:%S %Y",  # asctime()
)


class NO_DEFAULT:
    """Marker for 'no default value passed'."""


def check_python_version(min_version: Tuple[int]) -> bool:
    """Warn, if the interpreter is older than `min_version`."""
    if sys.version_info >= min_version:
        return True
    min_ver = ".".join([str(s) for s in min_version[:3]])
    warnings.warn(
        f"dmsdav requires Python {min_ver} or later (using {PYTHON_VERSION})",
        DeprecationWarning,
        stacklevel=2,
    )
    return False


# ========================================================================
# String tools
# ========================================================================


def to_bytes(s, encoding="utf8"):
    """Convert a text string to bytes (bytes are passed through)."""
    if isinstance(s, bytes):
        return s
    return s.encode(encoding)


def to_str(s, encoding="utf8"):
    """Convert bytes (or any other object) to str."""
    if isinstance(s, bytes):
        return s.decode(encoding)
    return s if isinstance(s, str) else str(s)


def re_encode_wsgi(s: str, *, encoding="utf-8", fallback=False) -> str:
    """Convert a WSGI string to `str`, assuming the client used UTF-8.

    PEP 3333 passes PATH_INFO and friends as iso-8859-1 decoded strings.
    """
    try:
        if isinstance(s, bytes):
            return s.decode(encoding)
        return s.encode("iso-8859-1").decode(encoding)
    except (UnicodeDecodeError, UnicodeEncodeError):
        if fallback:
            return s
        raise


def safe_re_encode(s, encoding_to, *, errors="backslashreplace"):
    """Return `s` with all characters not supported by `encoding_to` escaped."""
    encoding_to = encoding_to or "ASCII"
    if isinstance(s, bytes):
        return s.decode(encoding_to, errors=errors).encode(encoding_to)
    return s.encode(encoding_to, errors=errors).decode(encoding_to)


def split_namespace(clark_name):
    """Split a Clark notation name into (namespace, local name).

    '{DAV:}getetag' -> ('DAV:', 'getetag'), 'foo' -> ('', 'foo')
    """
    if clark_name.startswith("{") and "}" in clark_name:
        ns, local_name = clark_name[1:].split("}", 1)
        return ns, local_name
    return "", clark_name


# ========================================================================
# Config tools
# ========================================================================


def get_dict_value(d, key_path, default=NO_DEFAULT, *, as_dict=False):
    """Return a value from nested dicts, addressed by a dotted `key_path`.

    Example: ``get_dict_value(config, "dms.naming_strategy", "name")``.

    If `default` is passed, it is returned for missing keys, otherwise
    KeyError is raised.
    With `as_dict`, ``{}`` is returned for missing keys *and* for ``None``
    values (YAML sections that are present but empty).
    """
    if as_dict:
        res = get_dict_value(d, key_path, None)
        return {} if res is None else res

    value = d
    try:
        for seg in key_path.split("."):
            if isinstance(value, collections.abc.Mapping):
                value = value[seg]
            else:
                value = getattr(value, seg)
    except (KeyError, AttributeError):
        if default is NO_DEFAULT:
            raise
        return default
    return value


def deep_update(d, u):
    """Merge dict `u` into `d` recursively and return `d`."""
    for k, v in u.items():
        prev = d.get(k)
        if isinstance(v, collections.abc.Mapping) and isinstance(
            prev, collections.abc.Mapping
        ):
            d[k] = deep_update(dict(prev), v)
        elif isinstance(v, collections.abc.Mapping):
            d[k] = dict(v)
        else:
            d[k] = v
    return d


def purge_passwords(d):
    """Return a copy of nested dicts and lists with all 'password' values masked.

    Other objects (e.g. a repository instance) are shared, not copied.
    """
    if isinstance(d, dict):
        return {
            k: "<REMOVED>" if k == "password" else purge_passwords(v)
            for k, v in d.items()
        }
    if isinstance(d, (list, tuple)):
        return type(d)(purge_passwords(v) for v in d)
    return d


def fix_path(path, root, *, expand_vars=True, must_exist=True, allow_none=True):
    """Return `path` as absolute path, with '~' and environment variables expanded.

    Relative paths are evaluated against `root`, which is either a folder or
    a configuration dict (the folder of its ``_config_file``, if any).
    Raise ValueError for an empty or (with `must_exist`) missing path.
    """
    if not path:
        if allow_none:
            return None
        raise ValueError(f"Invalid path {path!r}")

    if expand_vars:
        path = os.path.expandvars(os.path.expanduser(path))

    if not os.path.isabs(path):
        if isinstance(root, dict):
            config_file = root.get("_config_file")
            root = os.path.dirname(config_file) if config_file else None
        path = os.path.abspath(os.path.join(root or os.getcwd(), path))

    if must_exist and not os.path.exists(path):
        raise ValueError(f"Invalid path: {path!r}")
    return path


# ========================================================================
# Time tools
# ========================================================================


def get_rfc1123_time(secs=None):
    """Return `secs` (default: now) as HTTP date, e.g. for Last-Modified."""
    # Locale independent
    return formatdate(timeval=secs, localtime=False, usegmt=True)


def get_rfc3339_time(secs=None):
    """Return `secs` (default: now) as RFC 3339 date, e.g. for creationdate."""
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(secs))


def get_iso8601_time(secs):
    """Return `secs` as ISO 8601 timestamp with UTC offset, e.g. for expiry dates."""
    dt = datetime.datetime.fromtimestamp(secs, tz=datetime.timezone.utc)
    return dt.isoformat(timespec="seconds")


def get_log_time(secs=None):
    """Return `secs` (default: now) formatted for log output."""
    return time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime(secs))


def parse_time_string(timestring):
    """Return seconds since the epoch for a date string, or None if invalid.

    Accepted are the three HTTP date formats (RFC 1123, RFC 850, asctime)
    and ISO 8601 date or date-time values (naive values are taken as UTC),
    e.g. ``1994-11-06T08:49:37Z`` or ``1994-11-06``.
    """
    if not isinstance(timestring, str):
        return None
    for fmt in _HTTP_TIME_FORMATS:
        try:
            return calendar.timegm(time.strptime(timestring, fmt))
        except ValueError:
            pass
    parsed = parsedate(timestring)
    if parsed:
        return calendar.timegm(parsed)

    try:
        dt = datetime.datetime.fromisoformat(timestring.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return int(dt.timestamp())


# ========================================================================
# Logging
# ========================================================================


def init_logging(config):
    """Initialize the base logger named 'dmsdav'.

    Called by DmsDAVApp unless the configuration contains
    ``"logging": {"enable": false}``.

    The `verbose` option selects the level of the base logger:
    0: CRITICAL, 1: ERROR, 2: WARNING, 3: INFO (default), 4 and 5: DEBUG.

    Module loggers (see get_module_logger()) inherit this level, except the
    ones listed in ``logging.enable_loggers``, which print DEBUG messages
    already at verbose 3::

        logging:
            enable_loggers: ["lock_manager", "request_server"]
    """
    from dmsdav.default_conf import DEFAULT_LOGGER_DATE_FORMAT, DEFAULT_LOGGER_FORMAT

    verbose = config.get("verbose", 3)
    log_opts = config.get("logging") or {}
    enable_loggers = log_opts.get("enable_loggers") or []

    formatter = logging.Formatter(
        log_opts.get("logger_format", DEFAULT_LOGGER_FORMAT),
        log_opts.get("logger_date_format", DEFAULT_LOGGER_DATE_FORMAT),
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    logger = logging.getLogger(BASE_LOGGER_NAME)
    levels = {0: logging.CRITICAL, 1: logging.ERROR, 2: logging.WARN, 3: logging.INFO}
    default_level = logging.DEBUG if verbose > 3 else logging.CRITICAL
    logger.setLevel(levels.get(verbose, default_level))
    # Don't call the root's handlers after our custom handlers
    logger.propagate = False

    for hdlr in list(logger.handlers):
        hdlr.flush()
        hdlr.close()
        logger.removeHandler(hdlr)
    logger.addHandler(handler)

    if verbose >= 3:
        for name in enable_loggers:
            get_module_logger(name.strip()).setLevel(logging.DEBUG)


def get_module_logger(moduleName):
    """Return a child logger of 'dmsdav', e.g. for `__name__`."""
    if not moduleName.startswith(BASE_LOGGER_NAME + "."):
        moduleName = BASE_LOGGER_NAME + "." + moduleName
    return logging.getLogger(moduleName)


# ========================================================================
# Module Import
# ========================================================================


def dynamic_import_class(name):
    """Import a class from a module string, e.g. ``my.module.ClassName``."""
    if "." not in name:
        raise ValueError(f"Expected `path.to.ClassName` string: {name!r}")
    module_name, class_name = name.rsplit(".", 1)
    try:
        module = importlib.import_module(module_name)
    except Exception as e:
        _logger.error(f"Dynamic import of {name!r} failed: {e}")
        raise
    return getattr(module, class_name)


def dynamic_instantiate_class_from_opts(options, *, expand=None):
    """Import a class and instantiate it.

    `options` is a class path, or a dict with a required 'class' and optional
    'args' (list) and 'kwargs' (dict) entries::

        {
            "class": "dmsdav.repo.memory_repository.MemoryRepository",
            "kwargs": {"storage_path": "~/dmsdav_storage"},
        }

    String arguments that match a key of `expand` (e.g. ``"${application}"``)
    are replaced by the mapped value.
    """
    if isinstance(options, str):
        options = {"class": options}

    unknown = set(options) - {"class", "args", "kwargs"}
    if unknown or "class" not in options:
        raise ValueError(f"Invalid class instantiation options: {options}")
    class_name = options["class"]
    pos_args = options.get("args") or []
    kwargs = options.get("kwargs") or {}
    if not isinstance(pos_args, (tuple, list)) or not isinstance(kwargs, dict):
        raise ValueError(f"Expected list `args` and dict `kwargs`: {options}")

    def _expand(v):
        if expand and isinstance(v, str) and v.lower() in expand:
            return expand[v.lower()]
        return v

    pos_args = [_expand(v) for v in pos_args]
    kwargs = {k: _expand(v) for k, v in kwargs.items()}
    try:
        inst = dynamic_import_class(class_name)(*pos_args, **kwargs)
    except Exception:
        _logger.error(f"Instantiate {class_name}({options}) failed")
        raise
    _logger.debug(f"Instantiate {class_name} => {inst}")
    return inst


# ========================================================================
# WSGI
# ========================================================================
def get_content_length(environ):
    """Return CONTENT_LENGTH as int, 0 if missing or invalid."""
    try:
        return max(0, int(environ.get("CONTENT_LENGTH") or 0))
    except ValueError:
        return 0


def read_and_discard_input(environ):
    """Consume an unread request body.

    Clients may miss the response if the body of a failed request (e.g.
    401 or 500) was never read.
    """
    if environ.get("dmsdav.some_input_read") or environ.get("dmsdav.all_input_read"):
        return
    cl = get_content_length(environ)
    if cl == 0:
        return

    environ["dmsdav.some_input_read"] = 1
    environ["dmsdav.all_input_read"] = 1
    body = environ["wsgi.input"].read(cl)
    _logger.debug(f"Discarded {cl} bytes of unread request body: {body[:50]!r}...")


def fail(
    value,
    context_info=None,
    *,
    src_exception=None,
    err_condition=None,
    add_headers=None,
):
    """Wrapper to raise (and log) DAVError."""
    if isinstance(value, Exception):
        e = as_DAVError(value)
    else:
        e = DAVError(
            value,
            context_info,
            src_exception=src_exception,
            err_condition=err_condition,
            add_headers=add_headers,
        )
    _logger.debug(f"Raising DAVError {e.get_user_info()}")
    raise e


class SubAppStartResponse:
    """A start_response callable that only records its arguments."""

    def __init__(self):
        self.status = ""
        self.response_headers = []
        self.exc_info = None

    def __call__(self, status, response_headers, exc_info=None):
        self.status = status
        self.response_headers = response_headers
        self.exc_info = exc_info


# ========================================================================
# URLs
# ========================================================================


def get_uri_name(uri: str) -> str:
    """Return the last segment of `uri`, e.g. 'b' for '/a/b/'."""
    return uri.strip("/").split("/")[-1]


def get_uri_parent(uri: str) -> Optional[str]:
    """Return the parent path of `uri` with trailing '/', or None for the root."""
    if not uri or uri.strip() == "/":
        return None
    return uri.rstrip("/").rsplit("/", 1)[0] + "/"


def quote_path(path: str) -> str:
    """Percent-encode a local path for use in an href."""
    return quote(path, safe="/!*'(),$-_|.~")


# ========================================================================
# XML
# ========================================================================


def parse_xml_body(environ, *, allow_empty=False):
    """Read the request body and return it as etree.Element.

    An empty (or missing) body returns None if `allow_empty` is set.
    Raise HTTP_BAD_REQUEST for an invalid Content-Length, an unexpected
    empty body, or malformed XML.
    """
    cl_header = environ.get("CONTENT_LENGTH", "").strip()
    content_length = 0
    if cl_header:
        try:
            content_length = int(cl_header)
        except ValueError:
            raise DAVError(HTTP_BAD_REQUEST, "content-length is not numeric.") from None
        if content_length < 0:
            raise DAVError(HTTP_BAD_REQUEST, "Negative content-length.")

    body = b""
    if content_length > 0:
        body = environ["wsgi.input"].read(content_length)
        environ["dmsdav.all_input_read"] = 1

    if not body:
        if allow_empty:
            return None
        raise DAVError(HTTP_BAD_REQUEST, "Body must not be empty.")

    try:
        root_el = etree.fromstring(body)
    except Exception as e:
        raise DAVError(
            HTTP_BAD_REQUEST, "Invalid XML format.", src_exception=e
        ) from None

    if environ.get("dmsdav.dump_request_body"):
        _logger.info(
            f"{environ['REQUEST_METHOD']} XML request body:\n"
            f"{to_str(xml_to_bytes(root_el, pretty_print=True))}"
        )
        environ["dmsdav.dump_request_body"] = False
    return root_el


def send_redirect_response(environ, start_response, *, location):
    """Start a WSGI response for a permanent redirect."""
    start_response(
        "301 Moved Permanently",
        [
            ("Content-Length", "0"),
            ("Date", get_rfc1123_time()),
            ("Location", location),
        ],
    )
    return [b""]


def send_status_response(
    environ, start_response, e, *, add_headers=None, is_head=False
):
    """Start a WSGI response for a DAVError or status code."""
    status = get_http_status_string(e)
    headers = list(add_headers or [])
    if isinstance(e, DAVError) and e.add_headers:
        headers.extend(e.add_headers)

    code = int(getattr(e, "value", e))
    if code in (HTTP_NOT_MODIFIED, HTTP_NO_CONTENT):
        # No body and no Content-Type allowed here
        start_response(
            status, [("Content-Length", "0"), ("Date", get_rfc1123_time())] + headers
        )
        return [b""]

    if not isinstance(e, DAVError):
        e = DAVError(e)
    content_type, body = e.get_response_page()
    if is_head:
        body = b""

    start_response(
        status,
        [
            ("Content-Type", content_type),
            ("Date", get_rfc1123_time()),
            ("Content-Length", str(len(body))),
        ]
        + headers,
    )
    return [body]


def send_multi_status_response(environ, start_response, multistatus_elem):
    """Send a 207 response with the serialized `multistatus_elem`."""
    if environ.get("dmsdav.dump_response_body"):
        environ["dmsdav.dump_response_body"] = to_str(
            xml_to_bytes(multistatus_elem, pretty_print=True)
        )

    # Windows XP does not recognize pretty printed PROPFIND responses
    xml_data = xml_to_bytes(multistatus_elem, pretty_print=False)
    start_response(
        "207 Multi-Status",
        [
            ("Content-Type", "application/xml; charset=utf-8"),
            ("Date", get_rfc1123_time()),
            ("Content-Length", str(len(xml_data))),
        ],
    )
    return [xml_data]


def add_property_response(multistatus_elem, href, prop_list):
    """Append a <response> element for `href` to `multistatus_elem`.

    `prop_list` holds (clark_name, value) tuples. A value is rendered as

    - str: element text
    - None: empty element
    - etree.Element: appended as is
    - DAVError: empty element in a separate <propstat> with that status
    """
    by_status = {}
    ns_map = {}
    for name, value in prop_list:
        status = "200 OK"
        if isinstance(value, DAVError):
            status = get_http_status_string(value)
            value = None
        # Declare the namespaces once per <response>
        ns, _ = split_namespace(name)
        if ns not in ("", "DAV:") and ns not in ns_map.values():
            ns_map[f"NS{len(ns_map) + 1}"] = ns
        by_status.setdefault(status, []).append((name, value))

    response_el = make_sub_element(multistatus_elem, "{DAV:}response", nsmap=ns_map)
    etree.SubElement(response_el, "{DAV:}href").text = href

    for status, props in by_status.items():
        propstat_el = etree.SubElement(response_el, "{DAV:}propstat")
        prop_el = etree.SubElement(propstat_el, "{DAV:}prop")
        for name, value in props:
            if value is None:
                etree.SubElement(prop_el, name)
            elif is_etree_element(value):
                prop_el.append(value)
            else:
                etree.SubElement(prop_el, name).text = to_str(value)
        etree.SubElement(propstat_el, "{DAV:}status").text = f"HTTP/1.1 {status}"
