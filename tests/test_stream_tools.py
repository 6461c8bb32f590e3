# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""Unit tests for dmsdav.stream_tools"""

import io
import os
import unittest

from dmsdav import stream_tools
from dmsdav.dav_error import HTTP_LENGTH_REQUIRED, DAVError
from tests.util import write_test_file


def _make_environ(body, *, chunked=False, terminated=True):
    environ = {"wsgi.input": io.BytesIO(body)}
    if chunked:
        environ["HTTP_TRANSFER_ENCODING"] = "chunked"
        environ["wsgi.input_terminated"] = terminated
    else:
        environ["CONTENT_LENGTH"] = str(len(body))
    return environ


class StreamTest(unittest.TestCase):
    def testStreamRequestBody(self):
        environ = _make_environ(b"0123456789")
        chunks = list(stream_tools.stream_request_body(environ, 4))
        assert chunks == [b"0123", b"4567", b"89"]
        assert environ["dmsdav.all_input_read"] == 1

        environ = _make_environ(b"0123456789", chunked=True)
        assert b"".join(stream_tools.stream_request_body(environ, 3)) == b"0123456789"

        environ = _make_environ(b"")
        assert list(stream_tools.stream_request_body(environ, 4)) == []
        assert environ["dmsdav.all_input_read"] == 1

    def testStreamChunkedFraming(self):
        # Chunk framing that the server did not remove must not be stored
        framed = b"3\r\nabc\r\n0\r\n\r\n"
        environ = _make_environ(framed, chunked=True, terminated=False)
        with self.assertRaises(DAVError) as cm:
            list(stream_tools.stream_request_body(environ, 4))
        assert cm.exception.value == HTTP_LENGTH_REQUIRED
        assert "dmsdav.some_input_read" not in environ

    def testBufferRequestBody(self):
        data = b"x" * 20000
        path = stream_tools.buffer_request_body(_make_environ(data), 8192)
        try:
            with open(path, "rb") as f:
                assert f.read() == data
        finally:
            os.remove(path)


class SniffTest(unittest.TestCase):
    def setUp(self):
        self.paths = []

    def tearDown(self):
        for path in self.paths:
            os.remove(path)

    def _file(self, data):
        path = write_test_file(data)
        self.paths.append(path)
        return path

    def testSniffMimeType(self):
        sniff = stream_tools.sniff_mime_type
        assert sniff(self._file(b"")) == "application/x-empty"
        assert sniff(self._file(b"hello\nworld")) == "text/plain"
        assert sniff(self._file("Grüße".encode())) == "text/plain"
        assert sniff(self._file(b"abc\x00def")) == "application/octet-stream"
        assert sniff(self._file(b"\xff\xfe\xfa" * 100)) == "application/octet-stream"
        png = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
        assert sniff(self._file(png)) == "image/png"

    def testFileType(self):
        assert stream_tools.get_file_type("report.txt") == ".txt"
        assert stream_tools.get_file_type("archive.tar.gz") == ".gz"
        assert stream_tools.get_file_type("README") == "."

    def testClassifyUpload(self):
        classify = stream_tools.classify_upload
        pdf = self._file(b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n")
        # Detected PDF content always gets a '.pdf' file type
        assert classify(pdf, "scan.bin") == ("application/pdf", ".pdf")
        md = self._file(b"# Title\n\nSome text")
        assert classify(md, "notes.md") == ("text/markdown", ".md")
        assert classify(md, "notes.txt") == ("text/plain", ".txt")
