# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""Unit tests for dmsdav.node_presenter"""

import os
import unittest

from dmsdav.naming import DocumentNameStrategy
from dmsdav.node_presenter import (
    FOLDER_CONTENT_TYPE,
    NodePresenter,
    attribute_property_name,
    format_attribute_value,
)
from dmsdav.repo.base_repository import (
    AT_BOOLEAN,
    AT_INT,
    AT_STRING,
    AT_USER,
    AttributeDefinition,
    S_DRAFT_REV,
)
from dmsdav.request_context import RequestContext
from tests.util import add_test_document, make_test_repository, remove_test_repository

NS = "urn:dmsdav:"


class AttributeFormatTest(unittest.TestCase):
    def testPropertyName(self):
        a = AttributeDefinition(1, "Due date (UTC)", AT_STRING)
        assert attribute_property_name(a) == "attr_DuedateUTC"
        a = AttributeDefinition(2, "Größe_x-1", AT_STRING)
        assert attribute_property_name(a) == "attr_Größe_x-1"

    def testScalarValues(self):
        a = AttributeDefinition(1, "count", AT_INT)
        assert format_attribute_value(a, 42) == "42"
        assert format_attribute_value(a, 0) is None
        a = AttributeDefinition(2, "flag", AT_BOOLEAN)
        assert format_attribute_value(a, True) == "1"
        assert format_attribute_value(a, False) is None
        a = AttributeDefinition(3, "text", AT_STRING)
        assert format_attribute_value(a, "") is None

    def testUserReference(self):
        repo = make_test_repository()
        try:
            a = AttributeDefinition(1, "editor", AT_USER)
            joe = repo.get_user_by_login("joe")
            assert format_attribute_value(a, joe) == "Joe Tester"
        finally:
            remove_test_repository(repo)

    def testMultipleValues(self):
        a = AttributeDefinition(
            1, "colors", AT_STRING, multiple=True, value_set=";red;blue"
        )
        assert format_attribute_value(a, ["red", "blue"]) == ";red;blue"
        assert format_attribute_value(a, []) is None
        # No value set: fall back to ','
        a = AttributeDefinition(2, "tags", AT_STRING, multiple=True)
        assert format_attribute_value(a, ["a", "b"]) == ",a,b"


class NodePresenterTest(unittest.TestCase):
    def setUp(self):
        self.repo = repo = make_test_repository()
        self.admin = repo.get_user_by_login("admin")
        self.joe = repo.get_user_by_login("joe")
        root = repo.get_root_folder()
        self.archive = repo.add_subfolder(root, "archive", self.admin)
        self.released = add_test_document(repo, self.archive, "released.txt", b"abc")
        self.draft = add_test_document(
            repo, self.archive, "draft.txt", b"draft", status=S_DRAFT_REV
        )
        self.presenter = NodePresenter(repo, DocumentNameStrategy())

    def tearDown(self):
        remove_test_repository(self.repo)

    def testPaths(self):
        p = self.presenter
        assert p.get_path(self.repo.get_root_folder()) == "/"
        assert p.get_path(self.archive) == "/archive/"
        assert p.get_path(self.released) == "/archive/released.txt"
        environ = {"SCRIPT_NAME": "/dav"}
        assert p.get_href(environ, self.released) == "/dav/archive/released.txt"

    def testRootFolderProperties(self):
        ctx = RequestContext(self.joe, used_bytes=10)
        props = dict(self.presenter.get_properties(self.repo.get_root_folder(), ctx))
        assert props["{DAV:}isroot"] == "true"
        assert props["{DAV:}getcontenttype"] == FOLDER_CONTENT_TYPE
        assert props["{DAV:}quota-used-bytes"] == "10"
        # Joe has no quota
        assert "{DAV:}quota-available-bytes" not in props
        assert props["{DAV:}resourcetype"][0].tag == "{DAV:}collection"

    def testFolderQuota(self):
        self.joe.quota = 100
        ctx = RequestContext(self.joe, used_bytes=30, quota=self.joe.quota)
        props = dict(self.presenter.get_properties(self.archive, ctx))
        assert "{DAV:}isroot" not in props
        assert props["{DAV:}quota-available-bytes"] == "70"
        assert props[f"{{{NS}}}owner"] == "admin"

    def testDocumentProperties(self):
        repo = self.repo
        repo.set_comment(self.released, "Quarterly")
        repo.set_expires(self.released, 86400)
        ctx = RequestContext(self.joe)
        props = dict(self.presenter.get_properties(self.released, ctx))
        assert props["{DAV:}displayname"] == "released.txt"
        assert props["{DAV:}resourcetype"] is None
        assert props["{DAV:}getcontentlength"] == "3"
        assert props["{DAV:}getcontenttype"] == "text/plain"
        assert props[f"{{{NS}}}id"] == str(self.released.id)
        assert props[f"{{{NS}}}version"] == "1"
        assert props[f"{{{NS}}}status"] == "2"
        assert props[f"{{{NS}}}comment"] == "Quarterly"
        assert props[f"{{{NS}}}expires"] == "1970-01-02T00:00:00+00:00"
        assert f"{{{NS}}}keywords" not in props

    def testMissingFileHasSizeZero(self):
        content = self.repo.get_latest_content(self.released)
        os.remove(content.path)
        ctx = RequestContext(self.joe)
        props = dict(self.presenter.get_properties(self.released, ctx))
        assert props["{DAV:}getcontentlength"] == "0"

    def testAttributeProperties(self):
        repo = self.repo
        a = repo.add_attribute_definition("Page count", AT_INT)
        repo.set_attribute_value(self.released, a, 12)
        ctx = RequestContext(self.joe)
        props = dict(self.presenter.get_properties(self.released, ctx))
        assert props[f"{{{NS}}}attr_Pagecount"] == "12"

    def testVisibleChildren(self):
        p = self.presenter
        _folders, docs = p.get_visible_children(self.archive, RequestContext(self.joe))
        assert docs == [self.released]
        ctx = RequestContext(self.admin)
        _folders, docs = p.get_visible_children(self.archive, ctx)
        assert set(docs) == {self.released, self.draft}
