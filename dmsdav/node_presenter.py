# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Render repository nodes as WebDAV property sets.

Property values are returned in the format expected by
``util.add_property_response()``: a string, None for an empty element, or an
etree element.

Folders
    ``{DAV:}getlastmodified``, ``{DAV:}creationdate`` (both the folder's
    date), ``{DAV:}isroot`` (root only), ``{DAV:}displayname``,
    ``{DAV:}resourcetype`` (collection), ``{DAV:}getcontenttype``
    (``httpd/unix-directory``), ``{DAV:}quota-used-bytes`` and
    ``{DAV:}quota-available-bytes`` (only if the caller has a quota).

Documents
    ``{DAV:}getlastmodified`` (latest version), ``{DAV:}creationdate``,
    ``{DAV:}displayname``, empty ``{DAV:}resourcetype``,
    ``{DAV:}getcontenttype``, ``{DAV:}getcontentlength`` and the vendor
    properties keywords, id, version, version-comment, status,
    status-comment, status-date, and expires.

All nodes
    vendor properties comment, owner, and one ``attr_<name>`` property per
    attribute value.
"""

import re

from dmsdav import util
from dmsdav.repo.base_repository import (
    AT_BOOLEAN,
    AT_DATE,
    AT_DOCUMENT,
    AT_FOLDER,
    AT_GROUP,
    AT_INT,
    AT_USER,
    M_READ,
    S_RELEASED,
)
from dmsdav.xml_tools import etree

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

DEFAULT_NAMESPACE = "urn:dmsdav:"

FOLDER_CONTENT_TYPE = "httpd/unix-directory"

#: Characters that are stripped from attribute names to build property names
_attr_name_re = re.compile(r"[^a-zA-ZÄäÜüÖöß0-9_-]")

#: Vendor properties that are computed from the repository and cannot be set
READONLY_VENDOR_PROPS = ("id", "version", "status", "status-comment", "status-date")


def attribute_property_name(attrdef):
    """Return the local property name for an attribute definition."""
    return "attr_" + _attr_name_re.sub("", attrdef.name)


def _format_scalar(attr_type, value):
    if attr_type == AT_INT:
        return int(value)
    if attr_type == AT_DATE:
        return util.parse_time_string(str(value))
    if attr_type in (AT_DOCUMENT, AT_FOLDER, AT_GROUP):
        return value.name
    if attr_type == AT_USER:
        return value.full_name
    if attr_type == AT_BOOLEAN:
        return "1" if value else ""
    return value


def format_attribute_value(attrdef, value):
    """Return the property text of an attribute value, or None to omit it.

    Multi-valued attributes are joined by the first character of the
    definition's value set, which is also prepended, e.g. ``",red,blue"``.
    """
    if attrdef.multiple:
        values = value if isinstance(value, (list, tuple)) else [value]
        values = [_format_scalar(attrdef.type, v) for v in values]
        values = [v for v in values if v is not None]
        if not values:
            return None
        delim = attrdef.get_delimiter() or ","
        return delim + delim.join(str(v) for v in values)

    res = _format_scalar(attrdef.type, value)
    if not res:
        return None
    return str(res)


class NodePresenter:
    def __init__(self, repository, naming_strategy, *, namespace=DEFAULT_NAMESPACE):
        self.repository = repository
        self.naming_strategy = naming_strategy
        self.namespace = namespace

    def __repr__(self):
        return f"{self.__class__.__name__}({self.naming_strategy!r})"

    def vendor_name(self, local_name):
        return f"{{{self.namespace}}}{local_name}"

    def get_display_name(self, node, content=None):
        if node.is_collection:
            return node.name
        return self.naming_strategy.present(self.repository, node, content)

    def get_folder_path(self, folder):
        """Return '/' for the root, else '/a/b/'."""
        names = []
        cur = folder
        while cur is not None and cur.parent is not None:
            names.append(cur.name)
            cur = cur.parent
        if not names:
            return "/"
        return "/" + "/".join(reversed(names)) + "/"

    def get_path(self, node, content=None):
        """Return the canonical (unquoted) path of a node.

        Folder paths end with '/', document paths end with the name produced
        by the naming strategy.
        """
        if node.is_collection:
            return self.get_folder_path(node)
        return self.get_folder_path(node.folder) + self.get_display_name(node, content)

    def get_href(self, environ, node, content=None):
        path = environ.get("SCRIPT_NAME", "") + self.get_path(node, content)
        return util.quote_path(path)

    def is_visible(self, node, ctx):
        """Return True if `node` may be listed as child for the caller."""
        if self.repository.get_access_mode(node, ctx.user) < M_READ:
            return False
        if node.is_collection or ctx.is_admin:
            return True
        lc = self.repository.get_latest_content(node)
        return lc is not None and lc.status == S_RELEASED

    def get_visible_children(self, folder, ctx):
        """Return a tuple (subfolders, documents) of listable children."""
        repo = self.repository
        folders = [f for f in repo.get_subfolders(folder) if self.is_visible(f, ctx)]
        docs = [d for d in repo.get_documents(folder) if self.is_visible(d, ctx)]
        return folders, docs

    def get_properties(self, node, ctx):
        """Return a list of (clark_name, value) tuples for all properties."""
        props = []
        if node.is_collection:
            self._add_folder_properties(node, ctx, props)
        else:
            self._add_document_properties(node, props)

        if node.comment:
            props.append((self.vendor_name("comment"), node.comment))
        if node.owner is not None:
            props.append((self.vendor_name("owner"), node.owner.login))

        for attrdef, value in self.repository.get_attribute_values(node):
            text = format_attribute_value(attrdef, value)
            if text is None:
                continue
            props.append((self.vendor_name(attribute_property_name(attrdef)), text))
        return props

    def get_property_names(self, node, ctx):
        return [name for name, _value in self.get_properties(node, ctx)]

    def _add_folder_properties(self, folder, ctx, props):
        path = self.get_folder_path(folder)
        props.append(("{DAV:}getlastmodified", util.get_rfc1123_time(folder.date)))
        props.append(("{DAV:}creationdate", util.get_rfc3339_time(folder.date)))
        if path == "/":
            props.append(("{DAV:}isroot", "true"))
        props.append(("{DAV:}displayname", folder.name))
        resourcetype = etree.Element("{DAV:}resourcetype")
        etree.SubElement(resourcetype, "{DAV:}collection")
        props.append(("{DAV:}resourcetype", resourcetype))
        props.append(("{DAV:}getcontenttype", FOLDER_CONTENT_TYPE))
        props.append(("{DAV:}quota-used-bytes", str(ctx.used_bytes)))
        available = ctx.available_bytes
        if available is not None:
            props.append(("{DAV:}quota-available-bytes", str(available)))

    def _add_document_properties(self, doc, props):
        content = self.repository.get_latest_content(doc)
        props.append(("{DAV:}getlastmodified", util.get_rfc1123_time(content.date)))
        props.append(("{DAV:}creationdate", util.get_rfc3339_time(doc.date)))
        props.append(("{DAV:}displayname", self.get_display_name(doc, content)))
        props.append(("{DAV:}resourcetype", None))
        props.append(("{DAV:}getcontenttype", content.mime_type))
        props.append(
            ("{DAV:}getcontentlength", str(self.repository.get_content_size(content)))
        )

        vn = self.vendor_name
        if doc.keywords:
            props.append((vn("keywords"), doc.keywords))
        props.append((vn("id"), str(doc.id)))
        props.append((vn("version"), str(content.version)))
        if content.comment:
            props.append((vn("version-comment"), content.comment))
        props.append((vn("status"), str(content.status)))
        props.append((vn("status-comment"), content.status_comment or ""))
        props.append((vn("status-date"), content.status_date or ""))
        if doc.expires:
            props.append((vn("expires"), util.get_iso8601_time(doc.expires)))
