# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Map request paths onto repository nodes.

A path is split at '/'. All segments but the last must be folder names that
match exactly, starting at the root folder. The last segment names a
document (using the active naming strategy) or is empty, in which case the
path denotes the parent folder itself::

    resolver = PathResolver(repository, naming_strategy)
    resolver.resolve("/")                  # root folder
    resolver.resolve("/archive/")          # folder 'archive'
    resolver.resolve("/archive/report")    # document 'report' in 'archive'
    resolver.resolve("/archive")           # None: no *document* 'archive'
    resolver.resolve_with_retry("/archive")  # folder 'archive'

Segments are neither case-folded nor percent-decoded here.
"""

from dmsdav import util

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)


class PathResolver:
    def __init__(self, repository, naming_strategy):
        self.repository = repository
        self.naming_strategy = naming_strategy

    def __repr__(self):
        return f"{self.__class__.__name__}({self.naming_strategy!r})"

    def resolve_folder(self, segments):
        """Return the folder addressed by a list of folder names, or None."""
        folder = self.repository.get_root_folder()
        for seg in segments:
            folder = self.repository.get_subfolder_by_name(folder, seg)
            if folder is None:
                return None
        return folder

    def resolve(self, path):
        """Return the Folder or Document addressed by `path`, or None."""
        if path.startswith("/"):
            path = path[1:]
        if path == "":
            return self.repository.get_root_folder()

        segments = path.split("/")
        name = segments.pop()

        folder = self.resolve_folder(segments)
        if folder is None:
            _logger.debug(f"resolve({path!r}): parent folder not found")
            return None
        if name == "":
            return folder

        document = self.naming_strategy.resolve(self.repository, name, folder)
        if document is None:
            _logger.debug(f"resolve({path!r}): no document {name!r}")
        return document

    def resolve_with_retry(self, path):
        """Like resolve(), but try again as a folder path if the first lookup fails."""
        node = self.resolve(path)
        if node is None and not path.endswith("/"):
            node = self.resolve(path + "/")
        return node

    def resolve_parent(self, path):
        """Return a tuple (parent folder or None, last segment) for `path`."""
        parent_path = util.get_uri_parent(path.rstrip("/") or "/")
        name = util.get_uri_name(path)
        if parent_path is None:
            return None, name
        return self.resolve(parent_path), name
