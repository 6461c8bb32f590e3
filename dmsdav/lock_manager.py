# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Implements the `DocumentLockManager` that maps WebDAV locks onto the
exclusive lock field of repository documents.

There is no lock storage of its own: a document is either unlocked or locked
by exactly one user, and that state is kept by the repository. Folders can
not be locked.

The lock data model is a dictionary with these fields:

    root:
        Path of the locked document.
    principal:
        Login of the lock holder.
    type:
        Always 'write'.
    scope:
        Always 'exclusive'.
    depth:
        Always '0'.
    owner:
        Login of the lock holder.
    timeout:
        Always -1 (infinite).
    created, modified, expires:
        Always ''.
    token:
        Derived from the document id, so the same lock always reports
        the same token.

"""

import random

from dmsdav import util
from dmsdav.dav_error import (
    HTTP_CONFLICT,
    HTTP_FORBIDDEN,
    HTTP_LOCKED,
    PRECONDITION_CODE_LockConflict,
    DAVError,
    DAVErrorCondition,
)
from dmsdav.repo.base_repository import M_READWRITE, RepositoryError
from dmsdav.xml_tools import etree

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

LOCK_TOKEN_PREFIX = "opaquelocktoken:dmsdav-document-"


def make_lock_token(document):
    return f"{LOCK_TOKEN_PREFIX}{document.id}"


def generate_lock_token():
    return "opaquelocktoken:" + hex(random.getrandbits(256))


def lock_string(lock_dict):
    """Return readable rep."""
    if not lock_dict:
        return "Lock: None"
    return "Lock({!r}, {!r}, {}, depth-{}, Infinite)".format(
        lock_dict.get("root"),
        lock_dict.get("principal"),
        lock_dict.get("scope"),
        lock_dict.get("depth"),
    )


def make_lockdiscovery_el(lock_list, href=None):
    """Return a {DAV:}lockdiscovery element for a list of lock dicts."""
    lockdiscovery_el = etree.Element("{DAV:}lockdiscovery")
    for lock in lock_list:
        activelock_el = etree.SubElement(lockdiscovery_el, "{DAV:}activelock")

        locktype_el = etree.SubElement(activelock_el, "{DAV:}locktype")
        # Note: make sure `{DAV:}` is not handled as format tag:
        etree.SubElement(locktype_el, "{}{}".format("{DAV:}", lock["type"]))

        lockscope_el = etree.SubElement(activelock_el, "{DAV:}lockscope")
        etree.SubElement(lockscope_el, "{}{}".format("{DAV:}", lock["scope"]))

        etree.SubElement(activelock_el, "{DAV:}depth").text = lock["depth"]
        if lock["owner"]:
            etree.SubElement(activelock_el, "{DAV:}owner").text = lock["owner"]

        etree.SubElement(activelock_el, "{DAV:}timeout").text = "Infinite"

        locktoken_el = etree.SubElement(activelock_el, "{DAV:}locktoken")
        etree.SubElement(locktoken_el, "{DAV:}href").text = lock["token"]

        if href:
            lockroot_el = etree.SubElement(activelock_el, "{DAV:}lockroot")
            etree.SubElement(lockroot_el, "{DAV:}href").text = href
    return lockdiscovery_el


# ========================================================================
# DocumentLockManager
# ========================================================================
class DocumentLockManager:
    """Lock state machine on top of the repository's per-document lock.

    ============  =========================  ================================
    Event         Precondition               Result
    ============  =========================  ================================
    LOCK          unresolved path            no lock (null lock token)
    LOCK/UNLOCK   folder, depth != 0         409
    LOCK/UNLOCK   access below read-write    403
    LOCK          other holder               409
    LOCK          otherwise                  holder := caller
    UNLOCK        unresolved path            nothing to do
    UNLOCK        otherwise                  holder cleared
    ============  =========================  ================================
    """

    def __init__(self, repository, presenter):
        self.repository = repository
        self.presenter = presenter

    def __repr__(self):
        return f"{self.__class__.__name__}()"

    def _make_lock(self, document, holder):
        return {
            "root": self.presenter.get_path(document),
            "principal": holder.login,
            "type": "write",
            "scope": "exclusive",
            "depth": "0",
            "owner": holder.login,
            "timeout": -1,
            "created": "",
            "modified": "",
            "expires": "",
            "token": make_lock_token(document),
        }

    def _check_lockable(self, ctx, node, depth, event):
        if node.is_collection and depth != "0":
            raise DAVError(
                HTTP_CONFLICT, f"{event}: recursive folder locks are not supported."
            )
        if self.repository.get_access_mode(node, ctx.user) < M_READWRITE:
            _logger.error(f"{event}: access forbidden")
            raise DAVError(HTTP_FORBIDDEN)

    def lock(self, ctx, node, depth):
        """Lock `node` for the caller and return the lock dict.

        Return None if there is nothing to lock (unresolved path, or a
        folder with depth 0).
        """
        if node is None:
            return None
        self._check_lockable(ctx, node, depth, "LOCK")
        if node.is_collection:
            return None
        try:
            self.repository.set_locked(node, ctx.user)
        except RepositoryError as e:
            raise DAVError(HTTP_CONFLICT, f"{e}") from e
        lock = self._make_lock(node, ctx.user)
        _logger.debug(f"lock({node!r}): {lock_string(lock)}")
        return lock

    def make_null_lock(self, ctx, path):
        """Return a lock dict for a path that has nothing to lock.

        Clients that lock a new URL before uploading it expect a token, which
        is never checked afterwards.
        """
        return {
            "root": path,
            "principal": ctx.login,
            "type": "write",
            "scope": "exclusive",
            "depth": "0",
            "owner": ctx.login,
            "timeout": -1,
            "created": "",
            "modified": "",
            "expires": "",
            "token": generate_lock_token(),
        }

    def unlock(self, ctx, node, depth):
        if node is None:
            return
        self._check_lockable(ctx, node, depth, "UNLOCK")
        if node.is_collection:
            return
        try:
            self.repository.set_locked(node, None)
        except RepositoryError as e:
            raise DAVError(HTTP_CONFLICT, f"{e}") from e
        _logger.debug(f"unlock({node!r})")

    def check_lock(self, ctx, node):
        """Return the lock dict, if `node` is locked by another user, else None."""
        if node is None or node.is_collection:
            return None
        holder = self.repository.get_locking_user(node)
        if holder is None:
            return None
        if ctx.user is not None and holder.login == ctx.user.login:
            return None
        return self._make_lock(node, holder)

    def check_write_permission(self, ctx, node, href=None):
        """Raise DAVError(HTTP_LOCKED), if `node` is locked by another user."""
        lock = self.check_lock(ctx, node)
        if lock is None:
            return
        _logger.info(f"{node!r} is locked: {lock_string(lock)}")
        errcond = DAVErrorCondition(PRECONDITION_CODE_LockConflict)
        if href:
            errcond.add_href(href)
        raise DAVError(HTTP_LOCKED, err_condition=errcond)
