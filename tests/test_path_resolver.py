# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""Unit tests for dmsdav.path_resolver and dmsdav.naming"""

import unittest

import pytest

from dmsdav.naming import (
    NAMING_STRATEGIES,
    DocumentNameStrategy,
    OriginalFilenameStrategy,
    PrefixedFilenameStrategy,
    make_naming_strategy,
)
from dmsdav.node_presenter import NodePresenter
from dmsdav.path_resolver import PathResolver
from tests.util import (
    add_test_document,
    add_test_version,
    make_test_repository,
    remove_test_repository,
)


class PathResolverTest(unittest.TestCase):
    def setUp(self):
        self.repo = repo = make_test_repository()
        admin = repo.get_user_by_login("admin")
        root = repo.get_root_folder()
        self.archive = repo.add_subfolder(root, "archive", admin)
        self.sub = repo.add_subfolder(self.archive, "2024", admin)
        self.doc = add_test_document(
            repo, self.archive, "Report", b"abc", original_filename="report.txt"
        )
        self.resolver = PathResolver(repo, DocumentNameStrategy())

    def tearDown(self):
        remove_test_repository(self.repo)

    def testRoot(self):
        root = self.repo.get_root_folder()
        assert self.resolver.resolve("/") is root
        assert self.resolver.resolve("") is root

    def testFolders(self):
        r = self.resolver
        assert r.resolve("/archive/") is self.archive
        assert r.resolve("archive/") is self.archive
        assert r.resolve("/archive/2024/") is self.sub
        # No document named 'archive'
        assert r.resolve("/archive") is None
        assert r.resolve_with_retry("/archive") is self.archive
        assert r.resolve_with_retry("/archive/2024") is self.sub

    def testDocuments(self):
        r = self.resolver
        assert r.resolve("/archive/Report") is self.doc
        assert r.resolve_with_retry("/archive/Report") is self.doc
        # Exact match only
        assert r.resolve("/archive/report") is None
        assert r.resolve("/ARCHIVE/Report") is None
        # Document names are never folder segments
        assert r.resolve("/archive/Report/") is None
        assert r.resolve("/Report") is None

    def testFailedIntermediateSegment(self):
        r = self.resolver
        assert r.resolve("/missing/Report") is None
        assert r.resolve("/archive/missing/") is None
        assert r.resolve_with_retry("/missing/2024") is None

    def testNoPercentDecoding(self):
        repo = self.repo
        admin = repo.get_user_by_login("admin")
        folder = repo.add_subfolder(repo.get_root_folder(), "a b", admin)
        assert self.resolver.resolve("/a b/") is folder
        assert self.resolver.resolve("/a%20b/") is None

    def testResolveParent(self):
        r = self.resolver
        assert r.resolve_parent("/archive/new.txt") == (self.archive, "new.txt")
        assert r.resolve_parent("/archive/new/") == (self.archive, "new")
        assert r.resolve_parent("/new") == (self.repo.get_root_folder(), "new")
        assert r.resolve_parent("/missing/new") == (None, "new")
        assert r.resolve_parent("/") == (None, "")


class NamingStrategyTest(unittest.TestCase):
    def setUp(self):
        self.repo = repo = make_test_repository()
        admin = repo.get_user_by_login("admin")
        root = repo.get_root_folder()
        self.archive = repo.add_subfolder(root, "archive", admin)
        self.other = repo.add_subfolder(root, "other", admin)
        self.doc = add_test_document(
            repo, self.archive, "Report", b"abc", original_filename="report.txt"
        )
        add_test_version(repo, self.doc, b"abcd")

    def tearDown(self):
        remove_test_repository(self.repo)

    def testMakeNamingStrategy(self):
        assert isinstance(make_naming_strategy({}), DocumentNameStrategy)
        s = make_naming_strategy({"dms": {"naming_strategy": "prefixed"}})
        assert isinstance(s, PrefixedFilenameStrategy)
        s = make_naming_strategy({"dms": {"naming_strategy": "original_filename"}})
        assert isinstance(s, OriginalFilenameStrategy)
        with pytest.raises(ValueError):
            make_naming_strategy({"dms": {"naming_strategy": "guess"}})

    def testPresent(self):
        repo = self.repo
        doc = self.doc
        assert DocumentNameStrategy().present(repo, doc) == "Report"
        assert OriginalFilenameStrategy().present(repo, doc) == "report.txt"
        assert PrefixedFilenameStrategy().present(repo, doc) == f"{doc.id}-2-report.txt"

    def testPrefixed(self):
        repo = self.repo
        s = PrefixedFilenameStrategy()
        doc = self.doc
        # Only the numeric prefix is evaluated
        assert s.resolve(repo, f"{doc.id}-1-old-name.txt", self.archive) is doc
        assert s.resolve(repo, f"{doc.id}", self.archive) is doc
        assert s.resolve(repo, "x-1-report.txt", self.archive) is None
        assert s.resolve(repo, "99999-1-report.txt", self.archive) is None
        # Must be a child of the addressed folder
        assert s.resolve(repo, f"{doc.id}-2-report.txt", self.other) is None

    def testRoundTrip(self):
        """Every presented path resolves to the same document again."""
        repo = self.repo
        add_test_document(
            repo, self.archive, "Notes", b"xyz", original_filename="notes v2.md"
        )
        for name, cls in NAMING_STRATEGIES.items():
            strategy = cls()
            resolver = PathResolver(repo, strategy)
            presenter = NodePresenter(repo, strategy)
            for doc in repo.get_documents(self.archive):
                path = presenter.get_path(doc)
                assert path.startswith("/archive/"), name
                assert resolver.resolve(path) is doc, (name, path)

    def testOriginalFilename(self):
        assert DocumentNameStrategy().original_filename("5-1-a.txt") == "5-1-a.txt"
        s = PrefixedFilenameStrategy()
        assert s.original_filename("5-1-report.txt") == "report.txt"
        assert s.original_filename("5-1-my-report.txt") == "my-report.txt"
        assert s.original_filename("report.txt") == "report.txt"
        assert s.original_filename("5-x-report.txt") == "5-x-report.txt"
