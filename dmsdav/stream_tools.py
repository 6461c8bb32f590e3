# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Helpers that buffer uploaded request bodies and classify their content.

Uploads are always written to a complete, seekable scratch file before the
repository is touched::

    path = buffer_request_body(environ, block_size)
    try:
        mime_type = sniff_mime_type(path)
        ...
    finally:
        os.remove(path)

"""

import os
import tempfile

import filetype

from dmsdav import util
from dmsdav.dav_error import HTTP_LENGTH_REQUIRED, DAVError

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

#: Number of leading bytes that are inspected by :func:`sniff_mime_type`
SNIFF_SIZE = 8192

MIME_EMPTY = "application/x-empty"
MIME_BINARY = "application/octet-stream"
MIME_TEXT = "text/plain"


def stream_request_body(environ, block_size):
    """Yield the request body in chunks of `block_size` bytes.

    A chunked body is read up to EOF. This requires a server that removes the
    chunk framing and flags this with ``wsgi.input_terminated`` (e.g. cheroot).
    Otherwise (e.g. wsgiref) DAVError(HTTP_LENGTH_REQUIRED) is raised.
    """
    remaining = util.get_content_length(environ)
    chunked = "chunked" in environ.get("HTTP_TRANSFER_ENCODING", "").lower()
    if chunked and not environ.get("wsgi.input_terminated"):
        raise DAVError(HTTP_LENGTH_REQUIRED)
    stream = environ["wsgi.input"]
    while chunked or remaining > 0:
        n = block_size if chunked else min(block_size, remaining)
        buf = stream.read(n)
        if not buf:
            break
        environ["dmsdav.some_input_read"] = 1
        remaining -= len(buf)
        yield buf
    environ["dmsdav.all_input_read"] = 1


def buffer_request_body(environ, block_size, *, prefix="dmsdav-"):
    """Copy the request body into a new scratch file and return its path.

    The caller owns the file and must remove it.
    """
    fd, path = tempfile.mkstemp(prefix=prefix)
    try:
        with os.fdopen(fd, "wb") as fp:
            for data in stream_request_body(environ, block_size):
                fp.write(data)
    except Exception:
        os.remove(path)
        raise
    _logger.debug(f"Buffered request body to {path} ({os.path.getsize(path)} bytes)")
    return path


def sniff_mime_type(path):
    """Return the MIME type of a file by inspecting its content."""
    with open(path, "rb") as fp:
        head = fp.read(SNIFF_SIZE)

    if not head:
        return MIME_EMPTY

    kind = filetype.guess(head)
    if kind is not None:
        return kind.mime

    if b"\x00" in head:
        return MIME_BINARY
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multi-byte sequence may be cut at the end of the sample
        if e.start < len(head) - 3:
            return MIME_BINARY
    return MIME_TEXT


def get_file_type(name):
    """Return the extension of `name` including the dot, or '.' if it has none."""
    idx = name.rfind(".")
    if idx < 0:
        return "."
    return name[idx:]


def classify_upload(path, name):
    """Return a tuple (mime_type, file_type) for an uploaded file named `name`.

    Detected PDF content always gets a '.pdf' file type, and plain text stored
    under a '.md' name is reported as 'text/markdown'.
    """
    mime_type = sniff_mime_type(path)
    file_type = get_file_type(name)
    if mime_type == "application/pdf":
        file_type = ".pdf"
    elif mime_type == MIME_TEXT and file_type == ".md":
        mime_type = "text/markdown"
    return mime_type, file_type
