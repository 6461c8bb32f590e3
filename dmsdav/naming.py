# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Naming strategies map path segments to documents and back.

Exactly one strategy is active per application (``dms.naming_strategy``).
The path resolver uses ``resolve()``, the node presenter uses ``present()``,
so every presented name resolves to the same document again.

==================  ==============================================
name                document name, e.g. ``Report``
original_filename   file name of the latest upload, ``report.txt``
prefixed            ``{id}-{version}-{original filename}``, e.g.
                    ``42-3-report.txt``
==================  ==============================================
"""

from dmsdav import util

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)


class DocumentNameStrategy:
    """Address documents by their display name."""

    name = "name"

    def __repr__(self):
        return f"{self.__class__.__name__}()"

    def resolve(self, repository, name, folder):
        """Return the child document of `folder` addressed by `name`, or None."""
        return repository.get_document_by_name(folder, name)

    def present(self, repository, document, content=None):
        """Return the path segment that addresses `document`."""
        return document.name

    def original_filename(self, name):
        """Return the file name to store for an upload addressed by `name`."""
        return name


class OriginalFilenameStrategy(DocumentNameStrategy):
    """Address documents by the original file name of their latest version."""

    name = "original_filename"

    def resolve(self, repository, name, folder):
        return repository.get_document_by_original_filename(folder, name)

    def present(self, repository, document, content=None):
        if content is None:
            content = repository.get_latest_content(document)
        return content.original_filename


class PrefixedFilenameStrategy(DocumentNameStrategy):
    """Address documents by ``{id}-{version}-{original filename}``.

    Only the numeric id before the first hyphen is evaluated when resolving,
    the remainder of the segment is ignored.
    """

    name = "prefixed"

    def resolve(self, repository, name, folder):
        prefix = name.split("-", 1)[0]
        if not prefix.isdigit():
            return None
        document = repository.get_document(int(prefix))
        if document is None:
            return None
        if folder is not None and document.folder is not folder:
            _logger.debug(f"{name!r}: document {document.id} lives in another folder")
            return None
        return document

    def present(self, repository, document, content=None):
        if content is None:
            content = repository.get_latest_content(document)
        return f"{document.id}-{content.version}-{content.original_filename}"

    def original_filename(self, name):
        parts = name.split("-", 2)
        if len(parts) == 3 and parts[0].isdigit() and parts[1].isdigit():
            return parts[2]
        return name


NAMING_STRATEGIES = {
    cls.name: cls
    for cls in (
        DocumentNameStrategy,
        OriginalFilenameStrategy,
        PrefixedFilenameStrategy,
    )
}


def make_naming_strategy(config):
    """Return the strategy instance configured by ``dms.naming_strategy``."""
    name = util.get_dict_value(config, "dms.naming_strategy", "name") or "name"
    try:
        return NAMING_STRATEGIES[name]()
    except KeyError:
        raise ValueError(
            f"Invalid dms.naming_strategy {name!r} "
            f"(expected one of {', '.join(NAMING_STRATEGIES)})"
        ) from None
