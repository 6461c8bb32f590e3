# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
    Test helpers.

Example:
    repo = make_test_repository()
    doc = add_test_document(repo, repo.get_root_folder(), "report.txt", b"abc")
"""

import os
import shutil
import tempfile

from dmsdav.notifier import BaseNotifier
from dmsdav.repo.base_repository import S_RELEASED
from dmsdav.repo.memory_repository import MemoryRepository

#: Password of all users created by make_test_repository()
PASSWORD = "secret"


# ==============================================================================
# write_test_file
# ==============================================================================


def write_test_file(data, *, prefix="dmsdav-test-"):
    """Write `data` into a new temporary file and return its path."""
    fd, path = tempfile.mkstemp(prefix=prefix)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return path


# ==============================================================================
# Repository fixtures
# ==============================================================================


def make_test_repository(storage_path=None):
    """Return a MemoryRepository with users 'admin', 'joe', and 'ann'.

    'admin' is an administrator, the others are plain users.
    """
    repo = MemoryRepository(storage_path)
    repo.add_user("admin", PASSWORD, full_name="Administrator", is_admin=True)
    repo.add_user("joe", PASSWORD, full_name="Joe Tester")
    repo.add_user("ann", PASSWORD, full_name="Ann Other")
    return repo


def remove_test_repository(repo):
    shutil.rmtree(repo.storage_path, ignore_errors=True)


def add_test_document(
    repo,
    folder,
    name,
    data,
    user=None,
    *,
    original_filename=None,
    mime_type="text/plain",
    status=S_RELEASED,
):
    """Add a document with one version and return it."""
    if user is None:
        user = repo.get_user_by_login("admin")
    path = write_test_file(data)
    try:
        doc = repo.add_document(
            folder,
            name,
            user,
            path,
            original_filename=original_filename or name,
            file_type=os.path.splitext(original_filename or name)[1] or ".",
            mime_type=mime_type,
            initial_status=status,
        )
    finally:
        os.remove(path)
    return doc


def add_test_version(repo, document, data, user=None, *, status=S_RELEASED):
    """Append a new version to `document` and return the new content."""
    if user is None:
        user = repo.get_user_by_login("admin")
    latest = repo.get_latest_content(document)
    path = write_test_file(data)
    try:
        content = repo.add_content(
            document,
            user,
            path,
            original_filename=latest.original_filename,
            file_type=latest.file_type,
            mime_type=latest.mime_type,
            initial_status=status,
        )
    finally:
        os.remove(path)
    return content


# ==============================================================================
# RecordingNotifier
# ==============================================================================


class RecordingNotifier(BaseNotifier):
    """Collect all events as (event, node name, user login) tuples."""

    def __init__(self):
        self.events = []

    def _add(self, event, node, user):
        self.events.append((event, node.name, user.login if user else None))

    def event_names(self):
        return [e[0] for e in self.events]

    def new_document(self, document, user):
        self._add("new_document", document, user)

    def new_version(self, document, user):
        self._add("new_version", document, user)

    def new_folder(self, folder, user):
        self._add("new_folder", folder, user)

    def moved_document(self, document, old_folder, user):
        self._add("moved_document", document, user)

    def moved_folder(self, folder, old_parent, user):
        self._add("moved_folder", folder, user)

    def deleted_document(self, document, user):
        self._add("deleted_document", document, user)

    def deleted_folder(self, folder, user):
        self._add("deleted_folder", folder, user)
