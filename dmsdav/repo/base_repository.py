# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Abstract base class and record types of a document repository.

A repository stores a tree of folders and versioned documents. dmsdav only
translates WebDAV requests into calls of this interface; storage, checksums,
access rules, and the attribute catalog are the repository's business.

**Nodes**

A repository node is either a :class:`Folder` or a :class:`Document`.
Both share the :class:`RepositoryNode` base and can be told apart with the
``is_collection`` flag::

    node = resolver.resolve(path)
    if node is None:
        ...
    elif node.is_collection:
        # Folder
    else:
        # Document

**Mutations**

Mutating methods either succeed or raise :class:`RepositoryError`. The
message of the error is passed on to the client where a status line can
carry it.

**Access grades**

``get_access_mode(node, user)`` returns one of ``M_NONE < M_READ <
M_READWRITE < M_ALL``.
"""

import os
from abc import ABC, abstractmethod
from hashlib import md5

from dmsdav import util

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

# ========================================================================
# Access grades
# ========================================================================
M_NONE = 1
M_READ = 2
M_READWRITE = 3
M_ALL = 4

ACCESS_MODE_NAMES = {
    M_NONE: "none",
    M_READ: "read",
    M_READWRITE: "read-write",
    M_ALL: "all",
}

# ========================================================================
# Document status codes
# ========================================================================
S_DRAFT_REV = 0
S_DRAFT_APP = 1
S_RELEASED = 2
S_REJECTED = -1
S_OBSOLETE = -2
S_EXPIRED = -3

STATUS_NAMES = {
    S_DRAFT_REV: "draft (review pending)",
    S_DRAFT_APP: "draft (approval pending)",
    S_RELEASED: "released",
    S_REJECTED: "rejected",
    S_OBSOLETE: "obsolete",
    S_EXPIRED: "expired",
}

# ========================================================================
# Attribute types
# ========================================================================
AT_STRING = "string"
AT_INT = "int"
AT_FLOAT = "float"
AT_BOOLEAN = "boolean"
AT_DATE = "date"
AT_EMAIL = "email"
AT_URL = "url"
AT_DOCUMENT = "document"
AT_FOLDER = "folder"
AT_USER = "user"
AT_GROUP = "group"

ATTRIBUTE_TYPES = (
    AT_STRING,
    AT_INT,
    AT_FLOAT,
    AT_BOOLEAN,
    AT_DATE,
    AT_EMAIL,
    AT_URL,
    AT_DOCUMENT,
    AT_FOLDER,
    AT_USER,
    AT_GROUP,
)


class RepositoryError(Exception):
    """Raised when the repository refuses a mutation."""


# ========================================================================
# Records
# ========================================================================


class User:
    def __init__(
        self,
        user_id,
        login,
        *,
        full_name=None,
        email="",
        password=None,
        is_admin=False,
        quota=0,
        groups=None,
    ):
        self.id = user_id
        self.login = login
        self.full_name = full_name or login
        self.email = email
        self.password = password
        self.is_admin = is_admin
        #: Disk quota in bytes, 0 means 'no quota'
        self.quota = quota
        self.groups = list(groups or [])

    def __repr__(self):
        return f"User({self.id}, {self.login!r})"


class Group:
    def __init__(self, group_id, name):
        self.id = group_id
        self.name = name

    def __repr__(self):
        return f"Group({self.id}, {self.name!r})"


class AttributeDefinition:
    """Describes a custom attribute that may be attached to folders and documents.

    `value_set` is a string whose first character is the delimiter of the
    remaining list of allowed values, e.g. ``",red,green,blue"``. The same
    delimiter separates the values of a multi-valued attribute.
    """

    def __init__(self, attrdef_id, name, attr_type, *, multiple=False, value_set=""):
        if attr_type not in ATTRIBUTE_TYPES:
            raise ValueError(f"Invalid attribute type {attr_type!r}")
        self.id = attrdef_id
        self.name = name
        self.type = attr_type
        self.multiple = multiple
        self.value_set = value_set or ""

    def __repr__(self):
        return f"AttributeDefinition({self.id}, {self.name!r}, {self.type!r})"

    def get_delimiter(self):
        return self.value_set[:1]

    def get_value_set(self):
        """Return the list of allowed values (empty if unrestricted)."""
        if len(self.value_set) < 2:
            return []
        return self.value_set[1:].split(self.value_set[0])


class RepositoryNode:
    """Common base of folders and documents."""

    #: True for folders
    is_collection = None

    def __init__(self, node_id, name, owner, *, date, comment=""):
        self.id = node_id
        self.name = name
        self.owner = owner
        #: Creation time (seconds since epoch)
        self.date = date
        self.comment = comment
        #: attribute definition id -> value (list for multi-valued attributes)
        self.attributes = {}

    def __repr__(self):
        return f"{self.__class__.__name__}({self.id}, {self.name!r})"


class Folder(RepositoryNode):
    is_collection = True

    def __init__(self, node_id, name, owner, *, parent=None, date, comment=""):
        super().__init__(node_id, name, owner, date=date, comment=comment)
        self.parent = parent
        self.sequence = 0

    @property
    def is_root(self):
        return self.parent is None


class Document(RepositoryNode):
    is_collection = False

    def __init__(
        self,
        node_id,
        name,
        owner,
        *,
        folder,
        date,
        comment="",
        keywords="",
        sequence=0,
    ):
        super().__init__(node_id, name, owner, date=date, comment=comment)
        self.folder = folder
        self.keywords = keywords
        self.sequence = sequence
        #: Expiry time (seconds since epoch), 0 means 'never'
        self.expires = 0
        #: User that holds the exclusive lock (None if unlocked)
        self.locked_by = None
        #: Ordered list of DocumentContent, the last one is the latest version
        self.versions = []


class DocumentContent:
    """One version of a document's content."""

    def __init__(
        self,
        document,
        version,
        path,
        *,
        checksum,
        mime_type,
        file_type,
        original_filename,
        user,
        date,
        comment="",
        status=S_RELEASED,
        status_comment="",
        status_date=None,
        reviewers=None,
        approvers=None,
        workflow=None,
    ):
        self.document = document
        self.version = version
        #: Absolute path of the stored file
        self.path = path
        self.checksum = checksum
        self.mime_type = mime_type
        self.file_type = file_type
        self.original_filename = original_filename
        self.user = user
        self.date = date
        self.comment = comment
        self.status = status
        self.status_comment = status_comment
        self.status_date = status_date or util.get_log_time(date)
        self.reviewers = reviewers or {"i": [], "g": []}
        self.approvers = approvers or {"i": [], "g": []}
        self.workflow = workflow

    def __repr__(self):
        return f"DocumentContent({self.document.id}, v{self.version})"


# ========================================================================
# BaseRepository
# ========================================================================


class BaseRepository(ABC):
    """Abstract base class of a document repository."""

    def __init__(self):
        self.verbose = 3

    def __repr__(self):
        return self.__class__.__name__

    # --- Identity -----------------------------------------------------------

    @abstractmethod
    def authenticate(self, login, password):
        """Return the User for the given credentials, or None."""
        raise NotImplementedError

    @abstractmethod
    def get_user_by_login(self, login):
        raise NotImplementedError

    @abstractmethod
    def get_used_disk_space(self, user):
        """Return the number of bytes stored by documents owned by `user`."""
        raise NotImplementedError

    @abstractmethod
    def get_access_mode(self, node, user):
        """Return the access grade (M_NONE .. M_ALL) of `user` on `node`.

        `user` is None for anonymous requests.
        """
        raise NotImplementedError

    # --- Read ---------------------------------------------------------------

    @abstractmethod
    def get_root_folder(self):
        raise NotImplementedError

    @abstractmethod
    def get_document(self, doc_id):
        """Return the Document with the given id, or None."""
        raise NotImplementedError

    @abstractmethod
    def get_subfolders(self, folder):
        """Return the list of child folders (ordered by sequence, then name)."""
        raise NotImplementedError

    @abstractmethod
    def get_documents(self, folder):
        """Return the list of child documents (ordered by sequence, then name)."""
        raise NotImplementedError

    def get_subfolder_by_name(self, folder, name):
        """Return the child folder named `name` (exact match), or None."""
        for sub in self.get_subfolders(folder):
            if sub.name == name:
                return sub
        return None

    def get_document_by_name(self, folder, name):
        """Return the child document named `name` (exact match), or None."""
        for doc in self.get_documents(folder):
            if doc.name == name:
                return doc
        return None

    def get_document_by_original_filename(self, folder, filename):
        """Return the child document whose latest version was uploaded as `filename`."""
        for doc in self.get_documents(folder):
            lc = self.get_latest_content(doc)
            if lc and lc.original_filename == filename:
                return doc
        return None

    def has_subfolder_by_name(self, folder, name):
        return self.get_subfolder_by_name(folder, name) is not None

    def has_document_by_name(self, folder, name):
        return self.get_document_by_name(folder, name) is not None

    def get_latest_content(self, document):
        if not document.versions:
            return None
        return document.versions[-1]

    def get_documents_min_max(self, folder):
        """Return a tuple (min, max) of the sequence numbers of child documents."""
        seqs = [doc.sequence for doc in self.get_documents(folder)]
        if not seqs:
            return (0, 0)
        return (min(seqs), max(seqs))

    def get_content_size(self, content):
        """Return the size of the stored file (0 if the file is missing)."""
        try:
            return os.path.getsize(content.path)
        except OSError:
            return 0

    def content_exists(self, content):
        return content is not None and os.path.isfile(content.path)

    def compute_checksum(self, path):
        """Return the MD5 hex digest of a file."""
        h = md5()
        with open(path, "rb") as fp:
            while True:
                buf = fp.read(8192)
                if not buf:
                    break
                h.update(buf)
        return h.hexdigest()

    # --- Attributes ---------------------------------------------------------

    @abstractmethod
    def get_attribute_definitions(self):
        raise NotImplementedError

    def get_attribute_definition(self, attrdef_id):
        for attrdef in self.get_attribute_definitions():
            if attrdef.id == attrdef_id:
                return attrdef
        return None

    def get_attribute_definition_by_name(self, name):
        for attrdef in self.get_attribute_definitions():
            if attrdef.name == name:
                return attrdef
        return None

    def get_attribute_values(self, node):
        """Return a list of (AttributeDefinition, value) tuples set on `node`."""
        res = []
        for attrdef_id, value in node.attributes.items():
            attrdef = self.get_attribute_definition(attrdef_id)
            if attrdef is not None:
                res.append((attrdef, value))
        return res

    @abstractmethod
    def set_attribute_value(self, node, attrdef, value):
        raise NotImplementedError

    # --- Workflow -----------------------------------------------------------

    def get_mandatory_reviewers(self, folder, document, user):
        """Return {'i': [User, ...], 'g': [Group, ...]} of required reviewers."""
        return {"i": [], "g": []}

    def get_mandatory_approvers(self, folder, document, user):
        """Return {'i': [User, ...], 'g': [Group, ...]} of required approvers."""
        return {"i": [], "g": []}

    def get_mandatory_workflows(self, user):
        """Return the list of workflow templates that `user` must use."""
        return []

    # --- Mutations ----------------------------------------------------------

    @abstractmethod
    def add_subfolder(self, parent, name, user, *, comment="", sequence=0):
        raise NotImplementedError

    @abstractmethod
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
        """Create a document with version 1 copied from the file at `path`."""
        raise NotImplementedError

    @abstractmethod
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
        """Append a new version copied from the file at `path`."""
        raise NotImplementedError

    @abstractmethod
    def replace_content(
        self, document, version, user, path, *, original_filename, file_type, mime_type
    ):
        """Overwrite the content of an existing version without a new number."""
        raise NotImplementedError

    @abstractmethod
    def touch_content(self, content):
        """Set the date of a version to the current time."""
        raise NotImplementedError

    @abstractmethod
    def remove_folder(self, folder):
        raise NotImplementedError

    @abstractmethod
    def remove_document(self, document):
        raise NotImplementedError

    @abstractmethod
    def set_parent(self, folder, new_parent):
        """Move a folder below `new_parent`."""
        raise NotImplementedError

    @abstractmethod
    def set_folder(self, document, new_folder):
        """Move a document into `new_folder`."""
        raise NotImplementedError

    @abstractmethod
    def set_name(self, node, name):
        raise NotImplementedError

    @abstractmethod
    def set_comment(self, node, comment):
        raise NotImplementedError

    @abstractmethod
    def set_expires(self, document, expires):
        """Set the expiry time (seconds since epoch, 0 to clear)."""
        raise NotImplementedError

    @abstractmethod
    def set_locked(self, document, user):
        """Lock `document` for `user`, or unlock it if `user` is None.

        Raises RepositoryError if the document is locked by another user.
        """
        raise NotImplementedError

    def get_locking_user(self, document):
        return document.locked_by
