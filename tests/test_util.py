# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""Unit tests for dmsdav.util"""

import io
import logging
import sys
import unittest
from io import StringIO

import pytest

from dmsdav.dav_error import HTTP_BAD_REQUEST, DAVError
from dmsdav.util import (
    BASE_LOGGER_NAME,
    deep_update,
    dynamic_instantiate_class_from_opts,
    fix_path,
    get_dict_value,
    get_iso8601_time,
    get_module_logger,
    get_uri_name,
    get_uri_parent,
    init_logging,
    parse_time_string,
    parse_xml_body,
    purge_passwords,
    quote_path,
    re_encode_wsgi,
    safe_re_encode,
    split_namespace,
)
from tests.util import remove_test_repository


class BasicTest(unittest.TestCase):
    """Test util functions."""

    def testPreconditions(self):
        """Environment must be set."""
        self.assertTrue(
            __debug__, "__debug__ must be True, otherwise asserts are ignored"
        )

    def testBasics(self):
        """Test basic tool functions."""
        assert get_uri_name("/a/b/c") == "c"
        assert get_uri_name("/a/b/c/") == "c"
        assert get_uri_name("/") == ""

        assert get_uri_parent("/a/b/c") == "/a/b/"
        assert get_uri_parent("/a/b/c/") == "/a/b/"
        assert get_uri_parent("/a") == "/"
        assert get_uri_parent("/") is None
        assert get_uri_parent("") is None

        assert quote_path("/a b/ä.txt") == "/a%20b/%C3%A4.txt"
        assert re_encode_wsgi("/Ã¤.txt") == "/ä.txt"
        assert safe_re_encode("ä.txt", "ascii") == "\\xe4.txt"

        assert split_namespace("{DAV:}getetag") == ("DAV:", "getetag")
        assert split_namespace("{urn:dmsdav:}attr_x") == ("urn:dmsdav:", "attr_x")
        assert split_namespace("foo") == ("", "foo")

        self.assertRaises(ValueError, fix_path, "a/b", "/root/x")
        if sys.platform != "win32":
            assert fix_path("a/b", "/root/x", must_exist=False) == "/root/x/a/b"
            assert fix_path("/a/b", "/root/x", must_exist=False) == "/a/b"

        d_org = {"b": True, "d": {"i": 1, "t": (1, 2)}}
        d_new = {}
        assert deep_update(d_org.copy(), d_new) == d_org
        assert deep_update(d_org.copy(), {"b": False}) == {
            "b": False,
            "d": {"i": 1, "t": (1, 2)},
        }
        assert deep_update(d_org.copy(), {"b": {"class": "c"}}) == {
            "b": {"class": "c"},
            "d": {"i": 1, "t": (1, 2)},
        }
        assert deep_update({"dms": {"naming_strategy": "name"}}, {"dms": {}}) == {
            "dms": {"naming_strategy": "name"}
        }

        d = {"b": True, "d": {"i": 1, "t": (1, 2)}}
        assert get_dict_value(d, "b") is True
        assert get_dict_value(d, "d.i") == 1
        assert get_dict_value(d, "d.i", default="def") == 1
        assert get_dict_value(d, "d.q", default="def") == "def"
        assert get_dict_value(d, "d.q.v", default="def") == "def"
        assert get_dict_value(d, "q.q.q", default="def") == "def"
        assert get_dict_value(d, "d.t") == (1, 2)
        self.assertRaises(KeyError, get_dict_value, d, "d.q")

        d = {"a": None, "b": {}, "c": False}
        assert get_dict_value(d, "a", as_dict=True) == {}
        assert get_dict_value(d, "b", as_dict=True) == {}
        assert get_dict_value(d, "c", as_dict=True) is False
        assert get_dict_value(d, "x", as_dict=True) == {}
        self.assertRaises(KeyError, get_dict_value, d, "x", as_dict=False)

        d = {"repository": {"kwargs": {"users": [{"login": "a", "password": "x"}]}}}
        res = purge_passwords(d)
        assert res["repository"]["kwargs"]["users"][0]["password"] == "<REMOVED>"
        assert d["repository"]["kwargs"]["users"][0]["password"] == "x"

    def testDynamicInstantiation(self):
        inst = dynamic_instantiate_class_from_opts("dmsdav.notifier.LoggingNotifier")
        assert type(inst).__name__ == "LoggingNotifier"

        inst = dynamic_instantiate_class_from_opts(
            {
                "class": "dmsdav.repo.memory_repository.MemoryRepository",
                "kwargs": {"root_name": "${root}"},
            },
            expand={"${root}": "Archive"},
        )
        assert inst.get_root_folder().name == "Archive"
        remove_test_repository(inst)

        with pytest.raises(ValueError):
            dynamic_instantiate_class_from_opts({"kwargs": {}})
        with pytest.raises(ValueError):
            dynamic_instantiate_class_from_opts({"class": "x.Y", "foo": 1})
        with pytest.raises(ValueError):
            dynamic_instantiate_class_from_opts("NoModule")

    def testTimeStrings(self):
        assert parse_time_string("Sun, 06 Nov 1994 08:49:37 GMT") == 784111777
        assert parse_time_string("Sunday, 06-Nov-94 08:49:37 GMT") == 784111777
        assert parse_time_string("Sun Nov  6 08:49:37 1994") == 784111777
        assert parse_time_string("1994-11-06T08:49:37+00:00") == 784111777
        assert parse_time_string("1994-11-06T08:49:37Z") == 784111777
        assert parse_time_string("1994-11-06T09:49:37+01:00") == 784111777
        assert parse_time_string("1994-11-06") == 784080000
        assert parse_time_string("next tuesday") is None
        assert get_iso8601_time(784111777) == "1994-11-06T08:49:37+00:00"

    def testParseXmlBody(self):
        def _environ(body, content_length=None):
            if content_length is None:
                content_length = str(len(body))
            return {
                "REQUEST_METHOD": "PROPFIND",
                "CONTENT_LENGTH": content_length,
                "wsgi.input": io.BytesIO(body),
            }

        assert parse_xml_body(_environ(b""), allow_empty=True) is None
        with pytest.raises(DAVError) as exc:
            parse_xml_body(_environ(b""))
        assert exc.value.value == HTTP_BAD_REQUEST

        environ = _environ(b"<D:propfind xmlns:D='DAV:'><D:allprop/></D:propfind>")
        el = parse_xml_body(environ)
        assert el.tag == "{DAV:}propfind"
        assert environ["dmsdav.all_input_read"] == 1

        with pytest.raises(DAVError):
            parse_xml_body(_environ(b"<not xml"))
        with pytest.raises(DAVError):
            parse_xml_body(_environ(b"<a/>", content_length="-1"))
        with pytest.raises(DAVError):
            parse_xml_body(_environ(b"<a/>", content_length="abc"))


class LoggerTest(unittest.TestCase):
    """Test configurable logging."""

    def setUp(self):
        # Capture the output of the root logger and the base logger
        self.root_buffer = StringIO()
        self.root_handler = logging.StreamHandler(self.root_buffer)
        root_logger = logging.getLogger()
        self.prev_root_level = root_logger.getEffectiveLevel()
        root_logger.addHandler(self.root_handler)

        self.base_buffer = StringIO()
        self.base_handler = logging.StreamHandler(self.base_buffer)
        base_logger = logging.getLogger(BASE_LOGGER_NAME)
        self.prev_base_level = base_logger.getEffectiveLevel()
        self.prev_propagate = base_logger.propagate
        base_logger.addHandler(self.base_handler)

    def tearDown(self):
        root_logger = logging.getLogger()
        root_logger.setLevel(self.prev_root_level)
        root_logger.removeHandler(self.root_handler)
        self.root_handler.close()

        base_logger = logging.getLogger(BASE_LOGGER_NAME)
        base_logger.setLevel(self.prev_base_level)
        base_logger.propagate = self.prev_propagate
        base_logger.removeHandler(self.base_handler)
        self.base_handler.close()

    def _log_all(self, logger, prefix):
        logger.debug(f"{prefix}.debug")
        logger.info(f"{prefix}.info")
        logger.warning(f"{prefix}.warning")
        logger.error(f"{prefix}.error")

    def _get_output(self):
        self.root_handler.flush()
        self.base_handler.flush()
        root_output = self.root_buffer.getvalue()
        base_output = self.base_buffer.getvalue()
        # Printed for debugging, when test fails:
        print(f"ROOT OUTPUT:\n{root_output!r}\nBASE OUTPUT:\n{base_output!r}")
        return root_output, base_output

    def testDefault(self):
        """The base logger defaults to INFO and does not propagate."""
        self._log_all(logging.getLogger(BASE_LOGGER_NAME), "base")
        root_output, base_output = self._get_output()

        assert root_output == ""
        assert "base.debug" not in base_output
        assert "base.info" in base_output
        assert "base.error" in base_output

    def testEnablePropagation(self):
        """Applications may route dmsdav output through the root logger."""
        base_logger = logging.getLogger(BASE_LOGGER_NAME)
        base_logger.propagate = True
        self._log_all(get_module_logger("request_server"), "module")
        root_output, base_output = self._get_output()

        assert root_output == base_output
        assert "module.debug" not in base_output
        assert "module.info" in base_output

    def testInitLogging(self):
        """init_logging() replaces all handlers and enables module loggers."""
        init_logging({"verbose": 3, "logging": {"enable_loggers": ["test"]}})
        enabled_logger = get_module_logger("test")
        try:
            assert logging.getLogger(BASE_LOGGER_NAME).level == logging.INFO
            assert enabled_logger.level == logging.DEBUG
            assert get_module_logger("test2").getEffectiveLevel() == logging.INFO

            self._log_all(enabled_logger, "enabled")
            root_output, base_output = self._get_output()
            # Our capturing handlers were removed
            assert root_output == ""
            assert base_output == ""
        finally:
            enabled_logger.setLevel(logging.NOTSET)

        init_logging({"verbose": 1})
        assert logging.getLogger(BASE_LOGGER_NAME).level == logging.ERROR
        init_logging({"verbose": 5})
        assert logging.getLogger(BASE_LOGGER_NAME).level == logging.DEBUG


if __name__ == "__main__":
    unittest.main()
