# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Implementation of a document repository that keeps its catalog in memory.

Folder and document records live in Python dicts, version content is
stored as files below `storage_path` (a new temp folder if omitted).
Contents are lost when the process ends, so this repository is meant for
tests, demos, and the ``--memory`` command line option.

Usage::

    repo = MemoryRepository(users=[
        {"login": "tester", "password": "secret", "quota": 1000000},
        {"login": "admin", "password": "admin", "is_admin": True},
        ])
    config = {"repository": repo}

Access grades are resolved like this:

- anonymous callers get ``M_NONE``
- administrators and node owners get ``M_ALL``
- otherwise the closest node (walking up to the root) that carries an
  access list entry for the user or one of its groups decides
- if no entry is found, `default_access` applies
"""

import itertools
import os
import shutil
import tempfile
import threading
import time

from dmsdav import util
from dmsdav.repo.base_repository import (
    AT_BOOLEAN,
    AT_FLOAT,
    AT_INT,
    M_ALL,
    M_NONE,
    M_READWRITE,
    S_DRAFT_APP,
    S_DRAFT_REV,
    S_RELEASED,
    AttributeDefinition,
    BaseRepository,
    Document,
    DocumentContent,
    Folder,
    Group,
    RepositoryError,
    User,
)

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)


def _node_key(node):
    return ("F" if node.is_collection else "D", node.id)


class MemoryRepository(BaseRepository):
    def __init__(
        self,
        storage_path=None,
        *,
        users=None,
        default_access=M_READWRITE,
        root_name="DMS",
    ):
        super().__init__()
        if storage_path:
            storage_path = os.path.abspath(os.path.expanduser(storage_path))
            os.makedirs(storage_path, exist_ok=True)
        else:
            storage_path = tempfile.mkdtemp(prefix="dmsdav-repo-")
        self.storage_path = storage_path
        self.default_access = default_access

        self._lock = threading.RLock()

        self.users = {}
        self.groups = {}
        self.folders = {}
        self.documents = {}
        self.attribute_definitions = []
        #: node key -> {("u"|"g", id): access mode}
        self.acls = {}
        #: user id -> {"i": [...], "g": [...]}
        self.mandatory_reviewers = {}
        self.mandatory_approvers = {}
        #: user id -> [workflow, ...]
        self.mandatory_workflows = {}

        self.system_user = User(0, "system", full_name="System", is_admin=True)
        self.root = Folder(1, root_name, self.system_user, date=time.time())
        self._ids = itertools.count(2)
        self.folders[self.root.id] = self.root

        for opts in users or []:
            if isinstance(opts, User):
                self.users[opts.id] = opts
            else:
                self.add_user(**opts)

    def __repr__(self):
        return f"{self.__class__.__name__}({self.storage_path!r})"

    # --- Setup helpers ------------------------------------------------------

    def add_user(
        self,
        login,
        password,
        *,
        full_name=None,
        email="",
        is_admin=False,
        quota=0,
        groups=None,
    ):
        if self.get_user_by_login(login):
            raise RepositoryError(f"User {login!r} already exists")
        user = User(
            next(self._ids),
            login,
            full_name=full_name,
            email=email,
            password=password,
            is_admin=is_admin,
            quota=quota,
            groups=groups,
        )
        self.users[user.id] = user
        return user

    def add_group(self, name, members=None):
        group = Group(next(self._ids), name)
        self.groups[group.id] = group
        for user in members or []:
            user.groups.append(group)
        return group

    def add_attribute_definition(
        self, name, attr_type, *, multiple=False, value_set=""
    ):
        attrdef = AttributeDefinition(
            next(self._ids), name, attr_type, multiple=multiple, value_set=value_set
        )
        self.attribute_definitions.append(attrdef)
        return attrdef

    def set_access(self, node, user_or_group, mode):
        """Grant `mode` on `node` (and inherited by its descendants)."""
        kind = "g" if isinstance(user_or_group, Group) else "u"
        self.acls.setdefault(_node_key(node), {})[(kind, user_or_group.id)] = mode

    def set_status(self, content, status, comment=""):
        content.status = status
        content.status_comment = comment
        content.status_date = util.get_log_time()

    # --- Identity -----------------------------------------------------------

    def authenticate(self, login, password):
        user = self.get_user_by_login(login)
        if user is None or user.password is None or user.password != password:
            return None
        return user

    def get_user_by_login(self, login):
        for user in self.users.values():
            if user.login == login:
                return user
        return None

    def get_used_disk_space(self, user):
        used = 0
        for doc in self.documents.values():
            if doc.owner is user:
                used += sum(self.get_content_size(c) for c in doc.versions)
        return used

    def get_access_mode(self, node, user):
        if user is None:
            return M_NONE
        if user.is_admin or node.owner is user:
            return M_ALL

        principals = {("u", user.id)} | {("g", g.id) for g in user.groups}
        cur = node
        while cur is not None:
            acl = self.acls.get(_node_key(cur))
            if acl:
                modes = [m for p, m in acl.items() if p in principals]
                if modes:
                    return max(modes)
            cur = cur.folder if not cur.is_collection else cur.parent
        return self.default_access

    # --- Read ---------------------------------------------------------------

    def get_root_folder(self):
        return self.root

    def get_document(self, doc_id):
        return self.documents.get(doc_id)

    def get_subfolders(self, folder):
        res = [f for f in self.folders.values() if f.parent is folder]
        res.sort(key=lambda f: (f.sequence, f.name))
        return res

    def get_documents(self, folder):
        res = [d for d in self.documents.values() if d.folder is folder]
        res.sort(key=lambda d: (d.sequence, d.name))
        return res

    def get_attribute_definitions(self):
        return list(self.attribute_definitions)

    def get_mandatory_reviewers(self, folder, document, user):
        return self.mandatory_reviewers.get(user.id, {"i": [], "g": []})

    def get_mandatory_approvers(self, folder, document, user):
        return self.mandatory_approvers.get(user.id, {"i": [], "g": []})

    def get_mandatory_workflows(self, user):
        return list(self.mandatory_workflows.get(user.id, []))

    # --- Mutations ----------------------------------------------------------

    def _touch_folder(self, folder):
        folder.date = time.time()

    def _check_quota(self, user, path):
        if not user.quota:
            return
        size = os.path.getsize(path)
        if self.get_used_disk_space(user) + size > user.quota:
            raise RepositoryError("Quota exceeded")

    def _store_file(self, doc_id, version, file_type, src_path):
        doc_dir = os.path.join(self.storage_path, str(doc_id))
        os.makedirs(doc_dir, exist_ok=True)
        ext = file_type if file_type and file_type != "." else ""
        target = os.path.join(doc_dir, f"{version}{ext}")
        try:
            shutil.copyfile(src_path, target)
        except OSError as e:
            raise RepositoryError(f"Could not store file: {e}") from e
        return target

    def _initial_status(self, reviewers, approvers, workflow, initial_status):
        if reviewers and (reviewers.get("i") or reviewers.get("g")):
            return S_DRAFT_REV
        if approvers and (approvers.get("i") or approvers.get("g")):
            return S_DRAFT_APP
        if workflow:
            return S_DRAFT_REV
        return initial_status

    def add_subfolder(self, parent, name, user, *, comment="", sequence=0):
        if not parent.is_collection:
            raise RepositoryError("Parent is not a folder")
        if not name:
            raise RepositoryError("Folder name must not be empty")
        with self._lock:
            folder = Folder(
                next(self._ids),
                name,
                user,
                parent=parent,
                date=time.time(),
                comment=comment,
            )
            folder.sequence = sequence
            self.folders[folder.id] = folder
            self._touch_folder(parent)
        _logger.debug(f"add_subfolder({parent!r}, {name!r}) -> {folder!r}")
        return folder

    def add_document(
        self,
        folder,
        name,
        user,
        path,
        *,
        original_filename,
        file_type,
        mime_type,
        sequence=0,
        comment="",
        keywords="",
        expires=0,
        version_comment="",
        reviewers=None,
        approvers=None,
        workflow=None,
        initial_status=S_RELEASED,
    ):
        if not folder.is_collection:
            raise RepositoryError("Target is not a folder")
        if not name:
            raise RepositoryError("Document name must not be empty")
        self._check_quota(user, path)
        with self._lock:
            now = time.time()
            doc = Document(
                next(self._ids),
                name,
                user,
                folder=folder,
                date=now,
                comment=comment,
                keywords=keywords,
                sequence=sequence,
            )
            doc.expires = expires
            stored = self._store_file(doc.id, 1, file_type, path)
            content = DocumentContent(
                doc,
                1,
                stored,
                checksum=self.compute_checksum(stored),
                mime_type=mime_type,
                file_type=file_type,
                original_filename=original_filename,
                user=user,
                date=now,
                comment=version_comment,
                status=self._initial_status(
                    reviewers, approvers, workflow, initial_status
                ),
                reviewers=reviewers,
                approvers=approvers,
                workflow=workflow,
            )
            doc.versions.append(content)
            self.documents[doc.id] = doc
            self._touch_folder(folder)
        _logger.debug(f"add_document({folder!r}, {name!r}) -> {doc!r}")
        return doc

    def add_content(
        self,
        document,
        user,
        path,
        *,
        original_filename,
        file_type,
        mime_type,
        comment="",
        reviewers=None,
        approvers=None,
        workflow=None,
        initial_status=S_RELEASED,
    ):
        if document.locked_by is not None and document.locked_by is not user:
            raise RepositoryError("Document is locked by another user")
        self._check_quota(user, path)
        with self._lock:
            version = document.versions[-1].version + 1 if document.versions else 1
            stored = self._store_file(document.id, version, file_type, path)
            content = DocumentContent(
                document,
                version,
                stored,
                checksum=self.compute_checksum(stored),
                mime_type=mime_type,
                file_type=file_type,
                original_filename=original_filename,
                user=user,
                date=time.time(),
                comment=comment,
                status=self._initial_status(
                    reviewers, approvers, workflow, initial_status
                ),
                reviewers=reviewers,
                approvers=approvers,
                workflow=workflow,
            )
            document.versions.append(content)
        _logger.debug(f"add_content({document!r}) -> {content!r}")
        return content

    def replace_content(
        self, document, version, user, path, *, original_filename, file_type, mime_type
    ):
        with self._lock:
            content = None
            for c in document.versions:
                if c.version == version:
                    content = c
            if content is None:
                raise RepositoryError(f"Version {version} does not exist")
            if content.user is not user:
                raise RepositoryError("Only the uploader may replace a version")
            try:
                shutil.copyfile(path, content.path)
            except OSError as e:
                raise RepositoryError(f"Could not store file: {e}") from e
            content.checksum = self.compute_checksum(content.path)
            content.original_filename = original_filename
            content.file_type = file_type
            content.mime_type = mime_type
            content.date = time.time()
        return content

    def touch_content(self, content):
        content.date = time.time()

    def remove_folder(self, folder):
        if folder.is_root:
            raise RepositoryError("Cannot remove the root folder")
        with self._lock:
            for doc in self.get_documents(folder):
                self.remove_document(doc)
            for sub in self.get_subfolders(folder):
                self.remove_folder(sub)
            self.folders.pop(folder.id, None)
            self.acls.pop(_node_key(folder), None)
            self._touch_folder(folder.parent)

    def remove_document(self, document):
        with self._lock:
            if self.documents.pop(document.id, None) is None:
                raise RepositoryError("Document does not exist")
            self.acls.pop(_node_key(document), None)
            shutil.rmtree(
                os.path.join(self.storage_path, str(document.id)), ignore_errors=True
            )
            self._touch_folder(document.folder)

    def set_parent(self, folder, new_parent):
        if folder.is_root:
            raise RepositoryError("Cannot move the root folder")
        with self._lock:
            cur = new_parent
            while cur is not None:
                if cur is folder:
                    raise RepositoryError("Cannot move a folder below itself")
                cur = cur.parent
            old_parent = folder.parent
            folder.parent = new_parent
            self._touch_folder(old_parent)
            self._touch_folder(new_parent)

    def set_folder(self, document, new_folder):
        if not new_folder.is_collection:
            raise RepositoryError("Target is not a folder")
        with self._lock:
            old_folder = document.folder
            document.folder = new_folder
            self._touch_folder(old_folder)
            self._touch_folder(new_folder)

    def set_name(self, node, name):
        if not name:
            raise RepositoryError("Name must not be empty")
        node.name = name

    def set_comment(self, node, comment):
        node.comment = comment

    def set_expires(self, document, expires):
        document.expires = int(expires or 0)

    def set_attribute_value(self, node, attrdef, value):
        if attrdef.multiple and not isinstance(value, list):
            delim = attrdef.get_delimiter()
            if isinstance(value, str) and delim and value.startswith(delim):
                value = value[1:].split(delim)
            else:
                value = [value]
        allowed = attrdef.get_value_set()
        if allowed:
            for v in value if isinstance(value, list) else [value]:
                if str(v) not in allowed:
                    raise RepositoryError(
                        f"Value {v!r} is not allowed for attribute {attrdef.name!r}"
                    )
        if attrdef.type == AT_INT and not isinstance(value, list):
            value = int(value)
        elif attrdef.type == AT_FLOAT and not isinstance(value, list):
            value = float(value)
        elif attrdef.type == AT_BOOLEAN and not isinstance(value, list):
            value = bool(value)
        node.attributes[attrdef.id] = value

    def set_locked(self, document, user):
        with self._lock:
            holder = document.locked_by
            if user is not None and holder is not None and holder is not user:
                raise RepositoryError(f"Document is locked by {holder.login!r}")
            document.locked_by = user

