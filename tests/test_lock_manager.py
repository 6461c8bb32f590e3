# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""Unit test for lock_manager.py"""

import unittest

import pytest

from dmsdav.dav_error import HTTP_CONFLICT, HTTP_FORBIDDEN, HTTP_LOCKED, DAVError
from dmsdav.lock_manager import (
    DocumentLockManager,
    lock_string,
    make_lock_token,
    make_lockdiscovery_el,
)
from dmsdav.naming import DocumentNameStrategy
from dmsdav.node_presenter import NodePresenter
from dmsdav.repo.base_repository import M_READ
from dmsdav.request_context import RequestContext
from tests.util import add_test_document, make_test_repository, remove_test_repository

# ========================================================================
# BasicTest
# ========================================================================


class BasicTest(unittest.TestCase):
    """Test lock_manager.DocumentLockManager()."""

    def setUp(self):
        self.repo = repo = make_test_repository()
        self.joe = RequestContext(repo.get_user_by_login("joe"))
        self.ann = RequestContext(repo.get_user_by_login("ann"))
        self.folder = repo.add_subfolder(
            repo.get_root_folder(), "archive", repo.get_user_by_login("admin")
        )
        self.doc = add_test_document(repo, self.folder, "report.txt", b"abc")
        presenter = NodePresenter(repo, DocumentNameStrategy())
        self.lm = DocumentLockManager(repo, presenter)

    def tearDown(self):
        remove_test_repository(self.repo)

    def testPreconditions(self):
        """Environment must be set."""
        self.assertTrue(
            __debug__, "__debug__ must be True, otherwise asserts are ignored"
        )

    def testLockUnlock(self):
        lm = self.lm
        assert lm.check_lock(self.joe, self.doc) is None

        lock = lm.lock(self.joe, self.doc, "0")
        assert lock["root"] == "/archive/report.txt"
        assert lock["principal"] == "joe"
        assert lock["token"] == make_lock_token(self.doc)
        assert self.repo.get_locking_user(self.doc).login == "joe"
        assert "report.txt" in lock_string(lock)

        # The holder does not see its own lock
        assert lm.check_lock(self.joe, self.doc) is None
        lm.check_write_permission(self.joe, self.doc)

        # Others do
        assert lm.check_lock(self.ann, self.doc)["principal"] == "joe"
        with pytest.raises(DAVError) as exc:
            lm.check_write_permission(self.ann, self.doc, href="/archive/report.txt")
        assert exc.value.value == HTTP_LOCKED

        lm.unlock(self.joe, self.doc, "0")
        assert self.repo.get_locking_user(self.doc) is None
        assert lm.check_lock(self.ann, self.doc) is None

    def testRelock(self):
        lm = self.lm
        lock1 = lm.lock(self.joe, self.doc, "0")
        lock2 = lm.lock(self.joe, self.doc, "infinity")
        assert lock1["token"] == lock2["token"]

    def testConflict(self):
        lm = self.lm
        lm.lock(self.joe, self.doc, "0")
        with pytest.raises(DAVError) as exc:
            lm.lock(self.ann, self.doc, "0")
        assert exc.value.value == HTTP_CONFLICT
        assert self.repo.get_locking_user(self.doc).login == "joe"

    def testFolders(self):
        lm = self.lm
        # Depth 0 is a no-op
        assert lm.lock(self.joe, self.folder, "0") is None
        lm.unlock(self.joe, self.folder, "0")
        assert lm.check_lock(self.ann, self.folder) is None
        # Recursive folder locks are not supported
        with pytest.raises(DAVError) as exc:
            lm.lock(self.joe, self.folder, "infinity")
        assert exc.value.value == HTTP_CONFLICT
        with pytest.raises(DAVError) as exc:
            lm.unlock(self.joe, self.folder, "infinity")
        assert exc.value.value == HTTP_CONFLICT

    def testAccess(self):
        self.repo.set_access(self.doc, self.joe.user, M_READ)
        with pytest.raises(DAVError) as exc:
            self.lm.lock(self.joe, self.doc, "0")
        assert exc.value.value == HTTP_FORBIDDEN
        with pytest.raises(DAVError) as exc:
            self.lm.unlock(self.joe, self.doc, "0")
        assert exc.value.value == HTTP_FORBIDDEN

    def testUnresolved(self):
        lm = self.lm
        assert lm.lock(self.joe, None, "0") is None
        lm.unlock(self.joe, None, "0")
        null_lock = lm.make_null_lock(self.joe, "/archive/new.txt")
        assert null_lock["token"].startswith("opaquelocktoken:")
        assert null_lock["token"] != lm.make_null_lock(self.joe, "/x")["token"]

    def testLockDiscovery(self):
        lock = self.lm.lock(self.joe, self.doc, "0")
        el = make_lockdiscovery_el([lock], "/archive/report.txt")
        assert el.tag == "{DAV:}lockdiscovery"
        activelock = el[0]
        assert activelock.find("{DAV:}timeout").text == "Infinite"
        assert activelock.find("{DAV:}locktoken/{DAV:}href").text == lock["token"]
        assert activelock.find("{DAV:}lockscope/{DAV:}exclusive") is not None


if __name__ == "__main__":
    unittest.main()
