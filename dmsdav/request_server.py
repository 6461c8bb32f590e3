# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
WSGI application that handles one single WebDAV request against the
document repository.

Every ``do_<METHOD>`` handler follows the same pattern: resolve the
addressed node(s), check the caller's access grade, run at most one
repository mutation, send a notification and answer with a status.
Repository refusals (``RepositoryError``) are mapped to the nearest HTTP
status with the repository message appended.
"""

import os
from urllib.parse import unquote, urlparse

from dmsdav import stream_tools, util, xml_tools
from dmsdav.dav_error import (
    HTTP_BAD_GATEWAY,
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_CREATED,
    HTTP_FAILED_DEPENDENCY,
    HTTP_FORBIDDEN,
    HTTP_INTERNAL_ERROR,
    HTTP_MEDIATYPE_NOT_SUPPORTED,
    HTTP_METHOD_NOT_ALLOWED,
    HTTP_NO_CONTENT,
    HTTP_NOT_FOUND,
    HTTP_OK,
    HTTP_PRECONDITION_FAILED,
    PRECONDITION_CODE_ProtectedProperty,
    DAVError,
    DAVErrorCondition,
    as_DAVError,
)
from dmsdav.lock_manager import make_lockdiscovery_el
from dmsdav.node_presenter import READONLY_VENDOR_PROPS, attribute_property_name
from dmsdav.notifier import notify
from dmsdav.repo.base_repository import (
    AT_BOOLEAN,
    AT_FLOAT,
    AT_INT,
    AT_STRING,
    M_ALL,
    M_READ,
    M_READWRITE,
    S_DRAFT_REV,
    S_RELEASED,
    RepositoryError,
)
from dmsdav.request_context import RequestContext
from dmsdav.workflow import derive_review_plan
from dmsdav.xml_tools import etree

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

DEFAULT_BLOCK_SIZE = 8192

INITIAL_STATUS = {"released": S_RELEASED, "draft": S_DRAFT_REV}

#: Attribute types that can be written by PROPPATCH
_PATCHABLE_ATTR_TYPES = (AT_STRING, AT_INT, AT_FLOAT, AT_BOOLEAN)


def _coerce_attribute_value(attr_type, text):
    if attr_type == AT_INT:
        try:
            return int(float(text))
        except ValueError:
            return 0
    if attr_type == AT_FLOAT:
        try:
            return float(text)
        except ValueError:
            return 0.0
    if attr_type == AT_BOOLEAN:
        return text == "1"
    return text


# ========================================================================
# DmsRequestServer
# ========================================================================
class DmsRequestServer:
    def __init__(self, dav_app):
        self.repository = dav_app.repository
        self.resolver = dav_app.resolver
        self.presenter = dav_app.presenter
        self.naming_strategy = dav_app.naming_strategy
        self.lock_manager = dav_app.lock_manager
        self.notifier = dav_app.notifier
        self.dir_renderer = dav_app.dir_renderer
        self.dms_opts = dav_app.dms_opts
        self.block_size = dav_app.config.get("block_size", DEFAULT_BLOCK_SIZE)

    def __call__(self, environ, start_response):
        ctx = environ.get("dmsdav.context")
        if ctx is None:
            ctx = RequestContext.from_environ(environ)

        # Convert 'infinity' and 'T'/'F' to a common case
        if environ.get("HTTP_DEPTH") is not None:
            environ["HTTP_DEPTH"] = environ["HTTP_DEPTH"].lower()
        if environ.get("HTTP_OVERWRITE") is not None:
            environ["HTTP_OVERWRITE"] = environ["HTTP_OVERWRITE"].upper()

        requestmethod = environ["REQUEST_METHOD"]
        method = getattr(self, f"do_{requestmethod}", None)
        if not method:
            _logger.error(f"Invalid HTTP method {requestmethod!r}")
            self._fail(HTTP_METHOD_NOT_ALLOWED)

        self._log_request(environ, ctx)

        app_iter = method(environ, start_response, ctx)
        try:
            yield from app_iter
        finally:
            if hasattr(app_iter, "close"):
                app_iter.close()
        return

    def _fail(self, value, context_info=None, src_exception=None, err_condition=None):
        """Wrapper to raise (and log) DAVError."""
        util.fail(
            value,
            context_info,
            src_exception=src_exception,
            err_condition=err_condition,
        )

    def _log_request(self, environ, ctx):
        method = environ["REQUEST_METHOD"]
        path = environ["PATH_INFO"]
        if method in ("MOVE", "COPY"):
            _logger.info(f"{method}: {path} -> {environ.get('HTTP_DESTINATION')}")
        else:
            _logger.info(f"{method}: {path}")
        _logger.debug(f"  user: {ctx.login}")
        for key in ("HTTP_DEPTH", "HTTP_OVERWRITE", "CONTENT_LENGTH", "CONTENT_TYPE"):
            if environ.get(key):
                _logger.debug(f"  {key}: {environ[key]}")

    # --- Helpers ------------------------------------------------------------

    def _access(self, ctx, node):
        return self.repository.get_access_mode(node, ctx.user)

    def _check_lock(self, environ, ctx, node):
        self.lock_manager.check_write_permission(
            ctx, node, href=self.presenter.get_href(environ, node)
        )

    def _get_initial_status(self):
        return INITIAL_STATUS[self.dms_opts.get("initial_document_status", "released")]

    def _get_sequence(self, folder):
        """Return the sequence number of a new document in `folder`."""
        min_seq, max_seq = self.repository.get_documents_min_max(folder)
        if self.dms_opts.get("default_doc_position") == "start":
            return min_seq - 1
        return max_seq + 1

    def _review_plan(self, folder, document, ctx):
        return derive_review_plan(
            self.repository,
            folder,
            document,
            ctx.user,
            self.dms_opts.get("workflow_mode"),
        )

    # --- OPTIONS ------------------------------------------------------------

    def do_OPTIONS(self, environ, start_response, ctx):
        """
        @see http://www.webdav.org/specs/rfc4918.html#HEADER_DAV
        """
        path = environ["PATH_INFO"]
        headers = [
            ("Content-Type", "text/html; charset=utf-8"),
            ("Content-Length", "0"),
            ("DAV", "1,2"),
            ("Date", util.get_rfc1123_time()),
        ]
        if environ["dmsdav.config"].get("add_header_MS_Author_Via", False):
            headers.append(("MS-Author-Via", "DAV"))

        if path == "*":
            start_response("200 OK", headers)
            return [b""]

        node = self.resolver.resolve_with_retry(path)
        allow = ["OPTIONS"]
        if node is not None:
            allow.extend(["HEAD", "GET", "PROPFIND", "PROPPATCH", "DELETE"])
            allow.extend(["COPY", "MOVE", "LOCK", "UNLOCK"])
            if not node.is_collection:
                allow.append("PUT")
        else:
            parent, _name = self.resolver.resolve_parent(path)
            if parent is None or not parent.is_collection:
                self._fail(HTTP_NOT_FOUND, path)
            allow.extend(["PUT", "MKCOL", "LOCK"])

        headers.append(("Allow", ", ".join(allow)))
        start_response("200 OK", headers)
        return [b""]

    # --- GET / HEAD ---------------------------------------------------------

    def do_GET(self, environ, start_response, ctx):
        return self._send_resource(environ, start_response, ctx, is_head_method=False)

    def do_HEAD(self, environ, start_response, ctx):
        return self._send_resource(environ, start_response, ctx, is_head_method=True)

    def _send_resource(self, environ, start_response, ctx, is_head_method):
        path = environ["PATH_INFO"]

        if util.get_content_length(environ) != 0:
            self._fail(
                HTTP_MEDIATYPE_NOT_SUPPORTED,
                "The server does not handle any body content.",
            )

        node = self.resolver.resolve(path)
        if node is None:
            folder = self.resolver.resolve(path.rstrip("/") + "/")
            if folder is None:
                self._fail(HTTP_NOT_FOUND, path)
            # Browsers need the trailing slash to resolve relative links
            location = util.quote_path(environ.get("SCRIPT_NAME", "") + path + "/")
            yield from util.send_redirect_response(
                environ, start_response, location=location
            )
            return

        if node.is_collection:
            if is_head_method:
                yield from util.send_status_response(
                    environ, start_response, HTTP_OK, is_head=True
                )
            elif self.dir_renderer is None:
                self._fail(HTTP_FORBIDDEN, "Directory browsing is not enabled.")
            else:
                yield from self.dir_renderer.render(environ, start_response, ctx, node)
            return

        if self._access(ctx, node) < M_READ:
            self._fail(HTTP_FORBIDDEN, path)

        content = self.repository.get_latest_content(node)
        if content is None or not self.repository.content_exists(content):
            self._fail(HTTP_NOT_FOUND, f"{path}: no content")

        response_headers = [
            ("Content-Length", str(self.repository.get_content_size(content))),
            ("Last-Modified", util.get_rfc1123_time(content.date)),
            ("Content-Type", content.mime_type),
            ("Date", util.get_rfc1123_time()),
        ]
        if content.checksum:
            response_headers.append(("ETag", f'"{content.checksum}"'))

        start_response("200 OK", response_headers)

        # Return empty body for HEAD requests
        if is_head_method:
            yield b""
            return

        fileobj = open(content.path, "rb")
        try:
            while True:
                readbuffer = fileobj.read(self.block_size)
                yield readbuffer
                if len(readbuffer) == 0:
                    break
        finally:
            # yield readbuffer MAY fail with a GeneratorExit error
            # we still need to close the file
            fileobj.close()
        return

    # --- PROPFIND -----------------------------------------------------------

    def _parse_propfind(self, environ):
        """Return (mode, names) for a PROPFIND body.

        `mode` is 'allprop', 'propname', or 'prop' (`names` lists the
        requested property names).
        """
        request_el = util.parse_xml_body(environ, allow_empty=True)
        if request_el is None:
            # An empty body requests all properties
            return "allprop", []
        if request_el.tag != "{DAV:}propfind":
            self._fail(HTTP_BAD_REQUEST, "Expected a 'propfind' element.")

        mode = None
        names = []
        for child in request_el:
            ns, kind = util.split_namespace(child.tag)
            if ns != "DAV:" or kind not in ("allprop", "propname", "prop"):
                continue
            # allprop, propname, and prop are mutually exclusive
            if mode is not None and not (mode == kind == "prop"):
                self._fail(HTTP_BAD_REQUEST, "Conflicting PROPFIND elements.")
            mode = kind
            if kind == "prop":
                names.extend(el.tag for el in child)
        return mode or "allprop", names

    def do_PROPFIND(self, environ, start_response, ctx):
        """
        Only one level of children is reported, even for 'Depth: infinity'.

        @see http://www.webdav.org/specs/rfc4918.html#METHOD_PROPFIND
        """
        path = environ["PATH_INFO"]

        # A missing Depth header means 'infinity'
        depth = environ.setdefault("HTTP_DEPTH", "infinity")
        if depth not in ("0", "1", "infinity"):
            self._fail(HTTP_BAD_REQUEST, f"Invalid Depth header: {depth!r}.")

        node = self.resolver.resolve_with_retry(path)
        if node is None:
            self._fail(HTTP_NOT_FOUND, path)

        mode, names = self._parse_propfind(environ)

        nodes = [node]
        if node.is_collection and depth != "0":
            folders, docs = self.presenter.get_visible_children(node, ctx)
            nodes.extend(folders)
            nodes.extend(docs)

        multistatus_el = xml_tools.make_multistatus_el()
        for child in nodes:
            if mode == "propname":
                props = [
                    (name, None)
                    for name in self.presenter.get_property_names(child, ctx)
                ]
            elif mode == "prop":
                available = dict(self.presenter.get_properties(child, ctx))
                props = [
                    (name, available.get(name, DAVError(HTTP_NOT_FOUND)))
                    for name in names
                ]
            else:
                props = self.presenter.get_properties(child, ctx)
            util.add_property_response(
                multistatus_el, self.presenter.get_href(environ, child), props
            )

        return util.send_multi_status_response(environ, start_response, multistatus_el)

    # --- PROPPATCH ----------------------------------------------------------

    def _parse_propertyupdate(self, environ):
        """Return a list of (name, value) tuples for a PROPPATCH body.

        Removed properties are reported with an empty value.
        """
        request_el = util.parse_xml_body(environ)
        if request_el.tag != "{DAV:}propertyupdate":
            self._fail(HTTP_BAD_REQUEST, "Expected a 'propertyupdate' element.")

        updates = []
        for action_el in request_el:
            if action_el.tag not in ("{DAV:}set", "{DAV:}remove"):
                self._fail(
                    HTTP_BAD_REQUEST, "Unknown tag (expected 'set' or 'remove')."
                )
            is_set = action_el.tag == "{DAV:}set"
            for prop_el in action_el:
                if prop_el.tag != "{DAV:}prop":
                    self._fail(HTTP_BAD_REQUEST, "Unknown tag (expected 'prop').")
                for el in prop_el:
                    value = ""
                    if is_set:
                        value = xml_tools.element_content_as_string(el).strip()
                    updates.append((el.tag, value))
        return updates

    def do_PROPPATCH(self, environ, start_response, ctx):
        """Handle PROPPATCH request to set or remove a property.

        Writable are the vendor properties 'comment', 'expires' (documents
        only) and one property per attribute definition. Updates are checked
        first; if one of them would fail, nothing is changed.

        @see http://www.webdav.org/specs/rfc4918.html#METHOD_PROPPATCH
        """
        path = environ["PATH_INFO"]
        node = self.resolver.resolve_with_retry(path)
        if node is None:
            self._fail(HTTP_NOT_FOUND, path)
        if self._access(ctx, node) < M_READWRITE:
            self._fail(HTTP_FORBIDDEN, path)
        self._check_lock(environ, ctx, node)

        updates = self._parse_propertyupdate(environ)

        errors = {}
        for name, value in updates:
            try:
                self._patch_property(node, name, value, dry_run=True)
            except Exception as e:
                errors[name] = as_DAVError(e)

        results = []
        if errors:
            for name, _value in updates:
                result = errors.get(name) or DAVError(HTTP_FAILED_DEPENDENCY)
                results.append((name, result))
        else:
            for name, value in updates:
                try:
                    self._patch_property(node, name, value, dry_run=False)
                except Exception as e:
                    errors[name] = as_DAVError(e)
                    results.append((name, errors[name]))
                else:
                    # None renders as an empty property element with '200 OK'
                    results.append((name, None))

        multistatus_el = xml_tools.make_multistatus_el()
        util.add_property_response(
            multistatus_el, self.presenter.get_href(environ, node), results
        )
        if errors:
            etree.SubElement(multistatus_el, "{DAV:}responsedescription").text = (
                "\n".join(e.get_user_info() for e in errors.values())
            )
        return util.send_multi_status_response(environ, start_response, multistatus_el)

    def _find_attribute_definition(self, local_name):
        attrdef = self.repository.get_attribute_definition_by_name(local_name)
        if attrdef is not None:
            return attrdef
        for attrdef in self.repository.get_attribute_definitions():
            if attribute_property_name(attrdef) == local_name:
                return attrdef
        return None

    def _patch_property(self, node, name, value, *, dry_run):
        """Set a single property (or only check it, if `dry_run` is True).

        Raise DAVError if the property is protected, unknown, or the value is
        invalid.
        """
        ns, local_name = util.split_namespace(name)
        if ns == "DAV:":
            raise DAVError(
                HTTP_FORBIDDEN,
                err_condition=DAVErrorCondition(PRECONDITION_CODE_ProtectedProperty),
            )
        if ns != self.presenter.namespace:
            raise DAVError(HTTP_FORBIDDEN, f"Dead properties are not supported: {name}")
        if local_name in READONLY_VENDOR_PROPS:
            raise DAVError(HTTP_FORBIDDEN, f"Read-only property: {local_name}")

        repo = self.repository
        try:
            if local_name == "comment":
                if not dry_run:
                    repo.set_comment(node, value)
            elif local_name == "expires":
                if node.is_collection:
                    raise DAVError(
                        HTTP_METHOD_NOT_ALLOWED,
                        "Expiration date cannot be set on folders",
                    )
                expires = 0
                if value:
                    expires = util.parse_time_string(value)
                    if expires is None:
                        raise DAVError(HTTP_BAD_REQUEST, "Could not parse date")
                if not dry_run:
                    repo.set_expires(node, expires)
            else:
                attrdef = self._find_attribute_definition(local_name)
                if attrdef is None:
                    raise DAVError(HTTP_FORBIDDEN, f"Unknown property: {local_name}")
                if attrdef.type not in _PATCHABLE_ATTR_TYPES:
                    raise DAVError(
                        HTTP_FORBIDDEN,
                        f"Attributes of type {attrdef.type!r} cannot be set",
                    )
                if not dry_run:
                    repo.set_attribute_value(
                        node, attrdef, _coerce_attribute_value(attrdef.type, value)
                    )
        except RepositoryError as e:
            raise DAVError(HTTP_CONFLICT, f"{e}", src_exception=e) from e

    # --- MKCOL --------------------------------------------------------------

    def do_MKCOL(self, environ, start_response, ctx):
        """Handle MKCOL request to create a new folder.

        @see http://www.webdav.org/specs/rfc4918.html#METHOD_MKCOL
        """
        path = environ["PATH_INFO"]
        parent, name = self.resolver.resolve_parent(path)

        if name == "":
            self._fail(HTTP_METHOD_NOT_ALLOWED, "The root folder already exists.")
        if parent is None:
            self._fail(HTTP_CONFLICT, "Parent must be an existing folder.")
        if not parent.is_collection:
            self._fail(HTTP_FORBIDDEN, "Parent is not a folder.")
        if self.repository.has_subfolder_by_name(parent, name):
            self._fail(HTTP_METHOD_NOT_ALLOWED, f"Folder {name!r} already exists.")
        # Do not understand ANY request body entities
        if util.get_content_length(environ) != 0:
            self._fail(
                HTTP_MEDIATYPE_NOT_SUPPORTED,
                "The server does not handle any body content.",
            )
        if not ctx.is_authenticated:
            self._fail(HTTP_FORBIDDEN, "Authentication required.")
        if self._access(ctx, parent) < M_READWRITE:
            self._fail(HTTP_FORBIDDEN, "No permission to add a folder.")

        try:
            folder = self.repository.add_subfolder(parent, name, ctx.user)
        except RepositoryError as e:
            self._fail(HTTP_CONFLICT, f"{e}", src_exception=e)

        notify(self.notifier, "new_folder", folder, ctx.user)
        return util.send_status_response(environ, start_response, HTTP_CREATED)

    # --- DELETE -------------------------------------------------------------

    def do_DELETE(self, environ, start_response, ctx):
        """
        @see: http://www.webdav.org/specs/rfc4918.html#METHOD_DELETE
        """
        path = environ["PATH_INFO"]
        node = self.resolver.resolve_with_retry(path)
        if node is None:
            self._fail(HTTP_NOT_FOUND, path)
        if self._access(ctx, node) < M_ALL:
            self._fail(HTTP_FORBIDDEN, path)

        repo = self.repository
        try:
            if node.is_collection:
                if repo.get_subfolders(node) or repo.get_documents(node):
                    self._fail(HTTP_CONFLICT, "Folder is not empty.")
                repo.remove_folder(node)
                event = "deleted_folder"
            else:
                self._check_lock(environ, ctx, node)
                repo.remove_document(node)
                event = "deleted_document"
        except RepositoryError as e:
            self._fail(HTTP_CONFLICT, f"{e}", src_exception=e)

        notify(self.notifier, event, node, ctx.user)
        return util.send_status_response(environ, start_response, HTTP_NO_CONTENT)

    # --- PUT ----------------------------------------------------------------

    def do_PUT(self, environ, start_response, ctx):
        """
        @see: http://www.webdav.org/specs/rfc4918.html#METHOD_PUT
        """
        path = environ["PATH_INFO"]
        if path.endswith("/"):
            self._fail(HTTP_METHOD_NOT_ALLOWED, "Cannot PUT to a folder.")

        folder, name = self.resolver.resolve_parent(path)
        if folder is None or not folder.is_collection:
            self._fail(HTTP_CONFLICT, "Parent must be an existing folder.")
        if not ctx.is_authenticated:
            self._fail(HTTP_FORBIDDEN, "Authentication required.")
        if "HTTP_CONTENT_RANGE" in environ:
            self._fail(HTTP_BAD_REQUEST, "Content-Range header is not supported.")

        tmp_path = stream_tools.buffer_request_body(environ, self.block_size)
        try:
            mime_type, file_type = stream_tools.classify_upload(tmp_path, name)
            document = self.naming_strategy.resolve(self.repository, name, folder)
            if document is None:
                status = self._put_new_document(
                    environ, ctx, folder, name, tmp_path, mime_type, file_type
                )
            else:
                status = self._put_existing_document(
                    environ, ctx, document, name, tmp_path, mime_type, file_type
                )
        finally:
            os.remove(tmp_path)

        return util.send_status_response(environ, start_response, status)

    def _put_new_document(self, environ, ctx, folder, name, path, mime_type, file_type):
        repo = self.repository
        if self._access(ctx, folder) < M_READWRITE:
            self._fail(HTTP_FORBIDDEN, "No permission to add a document.")
        if not self.dms_opts.get(
            "allow_duplicate_document_names", True
        ) and repo.has_document_by_name(folder, name):
            self._fail(HTTP_CONFLICT, f"Document {name!r} already exists.")

        plan = self._review_plan(folder, None, ctx)
        try:
            document = repo.add_document(
                folder,
                name,
                ctx.user,
                path,
                original_filename=self.naming_strategy.original_filename(name),
                file_type=file_type,
                mime_type=mime_type,
                sequence=self._get_sequence(folder),
                initial_status=self._get_initial_status(),
                **plan.as_kwargs(),
            )
        except RepositoryError as e:
            self._fail(HTTP_CONFLICT, f"{e}", src_exception=e)

        notify(self.notifier, "new_document", document, ctx.user)
        return HTTP_CREATED

    def _put_existing_document(
        self, environ, ctx, document, name, path, mime_type, file_type
    ):
        repo = self.repository
        if self._access(ctx, document) < M_READWRITE:
            self._fail(HTTP_FORBIDDEN, "No permission to update the document.")
        self._check_lock(environ, ctx, document)

        latest = repo.get_latest_content(document)
        filename = self.naming_strategy.original_filename(name)
        if latest is not None and repo.compute_checksum(path) == latest.checksum:
            _logger.info(f"{document!r}: identical content, no new version")
            repo.touch_content(latest)
            return HTTP_NO_CONTENT

        if (
            latest is not None
            and self.dms_opts.get("enable_replace_doc")
            and latest.user is not None
            and latest.user.login == ctx.login
            and latest.original_filename == filename
            and latest.file_type == file_type
            and latest.mime_type == mime_type
        ):
            try:
                repo.replace_content(
                    document,
                    latest.version,
                    ctx.user,
                    path,
                    original_filename=filename,
                    file_type=file_type,
                    mime_type=mime_type,
                )
            except RepositoryError as e:
                self._fail(HTTP_FORBIDDEN, f"{e}", src_exception=e)
        else:
            plan = self._review_plan(document.folder, document, ctx)
            try:
                repo.add_content(
                    document,
                    ctx.user,
                    path,
                    original_filename=filename,
                    file_type=file_type,
                    mime_type=mime_type,
                    initial_status=self._get_initial_status(),
                    **plan.as_kwargs(),
                )
            except RepositoryError as e:
                self._fail(HTTP_CONFLICT, f"{e}", src_exception=e)

        notify(self.notifier, "new_version", document, ctx.user)
        return HTTP_NO_CONTENT

    # --- COPY / MOVE --------------------------------------------------------

    def do_COPY(self, environ, start_response, ctx):
        return self._copy_or_move(environ, start_response, ctx, is_move=False)

    def do_MOVE(self, environ, start_response, ctx):
        return self._copy_or_move(environ, start_response, ctx, is_move=True)

    def _get_destination_path(self, environ):
        """Return the local path of the Destination header.

        Raise HTTP_BAD_GATEWAY if it points to another server or outside the
        mount path.
        """
        if "HTTP_DESTINATION" not in environ:
            self._fail(HTTP_BAD_REQUEST, "Missing required Destination header.")

        # Destination header may be quoted (e.g. DAV Explorer sends unquoted,
        # Windows quoted)
        http_destination = unquote(environ["HTTP_DESTINATION"])
        (
            dest_scheme,
            dest_netloc,
            dest_path,
            _dest_params,
            _dest_query,
            _dest_frag,
        ) = urlparse(http_destination, allow_fragments=False)

        dest_scheme = dest_scheme.lower() if dest_scheme else ""
        url_scheme = environ["wsgi.url_scheme"].lower()
        fwd_scheme = environ.get("HTTP_X_FORWARDED_PROTO", "").lower()

        # hostnames are case-insensitive
        dest_netloc = dest_netloc.lower() if dest_netloc else ""
        url_host = environ.get("HTTP_HOST", "").lower()
        fwd_host = environ.get("HTTP_X_FORWARDED_HOST", "").lower()

        if dest_scheme and dest_scheme not in (url_scheme, fwd_scheme):
            self._fail(
                HTTP_BAD_GATEWAY, "Source and destination must have the same scheme."
            )
        elif dest_netloc and dest_netloc not in (url_host, fwd_host):
            self._fail(
                HTTP_BAD_GATEWAY, "Source and destination must have the same host name."
            )

        mount_path = environ.get("SCRIPT_NAME", "")
        if mount_path:
            if not dest_path.startswith(mount_path + "/"):
                self._fail(HTTP_BAD_GATEWAY, "Destination is outside this server.")
            dest_path = dest_path[len(mount_path) :]
        return dest_path

    def _copy_or_move(self, environ, start_response, ctx, is_move):
        """
        @see: http://www.webdav.org/specs/rfc4918.html#METHOD_COPY
        @see: http://www.webdav.org/specs/rfc4918.html#METHOD_MOVE
        """
        src_path = environ["PATH_INFO"]
        method = "MOVE" if is_move else "COPY"

        if not is_move and util.get_content_length(environ) != 0:
            self._fail(
                HTTP_MEDIATYPE_NOT_SUPPORTED,
                "The server does not handle any body content.",
            )
        dest_path = self._get_destination_path(environ)

        # --- Check source ----------------------------------------------------

        src = self.resolver.resolve_with_retry(src_path)
        if src is None:
            self._fail(HTTP_NOT_FOUND, src_path)
        if (
            not is_move
            and src.is_collection
            and environ.setdefault("HTTP_DEPTH", "infinity") != "infinity"
        ):
            self._fail(
                HTTP_BAD_REQUEST, "Folders can only be copied with Depth: infinity."
            )

        # --- Resolve destination ---------------------------------------------

        new_name = None
        dest = self.resolver.resolve(dest_path)
        if dest is None:
            dest, new_name = self.resolver.resolve_parent(dest_path)
            if dest is None or not dest.is_collection:
                self._fail(HTTP_PRECONDITION_FAILED, "Destination parent not found.")
        if is_move and dest is src:
            self._fail(HTTP_FORBIDDEN, "Source and destination are the same.")
        _logger.debug(f"{method}: {src!r} -> {dest!r} (new name: {new_name!r})")

        src_grade = M_READWRITE if is_move else M_READ
        if self._access(ctx, src) < src_grade:
            self._fail(HTTP_FORBIDDEN, f"No permission to {method} the source.")
        if self._access(ctx, dest) < M_READWRITE:
            self._fail(HTTP_FORBIDDEN, "No write permission on the destination.")

        if dest.is_collection:
            if is_move:
                status = self._move_to_folder(environ, ctx, src, dest, new_name)
            else:
                status = self._copy_to_folder(ctx, src, dest, new_name)
        else:
            status = self._transfer_to_document(environ, ctx, src, dest, is_move)

        return util.send_status_response(environ, start_response, status)

    def _transfer_to_document(self, environ, ctx, src, dest, is_move):
        """Append the latest content of `src` as new version of `dest`."""
        repo = self.repository
        if environ.get("HTTP_OVERWRITE") != "T":
            self._fail(HTTP_PRECONDITION_FAILED, "Destination exists (Overwrite: F).")
        if src.is_collection:
            self._fail(HTTP_BAD_REQUEST, "Cannot replace a document with a folder.")
        self._check_lock(environ, ctx, dest)
        if is_move:
            self._check_lock(environ, ctx, src)

        content = repo.get_latest_content(src)
        if not is_move:
            dest_content = repo.get_latest_content(dest)
            if dest_content is not None and dest_content.checksum == content.checksum:
                _logger.info(f"COPY: {dest!r} has identical content")
                return HTTP_NO_CONTENT

        plan = self._review_plan(dest.folder, dest, ctx)
        try:
            repo.add_content(
                dest,
                ctx.user,
                content.path,
                original_filename=content.original_filename,
                file_type=content.file_type,
                mime_type=content.mime_type,
                initial_status=self._get_initial_status(),
                **plan.as_kwargs(),
            )
            notify(self.notifier, "new_version", dest, ctx.user)
            if is_move:
                repo.remove_document(src)
                notify(self.notifier, "deleted_document", src, ctx.user)
        except RepositoryError as e:
            self._fail(HTTP_CONFLICT, f"{e}", src_exception=e)
        return HTTP_NO_CONTENT

    def _move_to_folder(self, environ, ctx, src, dest, new_name):
        """Re-parent `src` below `dest` and apply a new name, if one was given.

        Renaming sets the document name only. With `original_filename` naming
        the document is still addressed by the original filename of its
        latest version.
        """
        repo = self.repository
        target_name = new_name or src.name
        if src.is_collection:
            is_dup = not self.dms_opts.get(
                "allow_duplicate_folder_names", True
            ) and repo.has_subfolder_by_name(dest, target_name)
        else:
            is_dup = not self.dms_opts.get(
                "allow_duplicate_document_names", True
            ) and repo.has_document_by_name(dest, target_name)
        if is_dup:
            self._fail(HTTP_FORBIDDEN, f"{target_name!r} already exists.")
        self._check_lock(environ, ctx, src)

        try:
            if src.is_collection:
                old_parent = src.parent
                if dest is not old_parent:
                    repo.set_parent(src, dest)
                    notify(self.notifier, "moved_folder", src, old_parent, ctx.user)
            else:
                old_folder = src.folder
                if dest is not old_folder:
                    repo.set_folder(src, dest)
                    notify(self.notifier, "moved_document", src, old_folder, ctx.user)
        except RepositoryError as e:
            self._fail(HTTP_INTERNAL_ERROR, f"{e}", src_exception=e)

        if new_name and new_name != self.presenter.get_display_name(src):
            try:
                repo.set_name(src, new_name)
            except RepositoryError as e:
                self._fail(HTTP_INTERNAL_ERROR, f"{e}", src_exception=e)
        return HTTP_NO_CONTENT

    def _copy_to_folder(self, ctx, src, dest, new_name):
        """Create a new document in `dest` from the latest content of `src`."""
        repo = self.repository
        if src.is_collection:
            self._fail(HTTP_BAD_REQUEST, "Folders cannot be copied.")

        content = repo.get_latest_content(src)
        original_filename = content.original_filename
        if new_name and self.naming_strategy.name != "name":
            original_filename = self.naming_strategy.original_filename(new_name)

        plan = self._review_plan(dest, None, ctx)
        try:
            document = repo.add_document(
                dest,
                new_name or src.name,
                ctx.user,
                content.path,
                original_filename=original_filename,
                file_type=content.file_type,
                mime_type=content.mime_type,
                sequence=self._get_sequence(dest),
                initial_status=self._get_initial_status(),
                **plan.as_kwargs(),
            )
        except RepositoryError as e:
            self._fail(HTTP_CONFLICT, f"{e}", src_exception=e)

        notify(self.notifier, "new_document", document, ctx.user)
        return HTTP_CREATED

    # --- LOCK / UNLOCK ------------------------------------------------------

    def do_LOCK(self, environ, start_response, ctx):
        """
        @see: http://www.webdav.org/specs/rfc4918.html#METHOD_LOCK
        """
        path = environ["PATH_INFO"]
        depth = environ.setdefault("HTTP_DEPTH", "infinity")
        if depth not in ("0", "infinity"):
            self._fail(HTTP_BAD_REQUEST, "Expected Depth: 'infinity' or '0'.")

        # The lockinfo body is accepted but not evaluated: locks are always
        # exclusive write locks
        util.parse_xml_body(environ, allow_empty=True)

        node = self.resolver.resolve(path)
        lock = self.lock_manager.lock(ctx, node, depth)
        href = util.quote_path(environ.get("SCRIPT_NAME", "") + path)
        if lock is None:
            lock = self.lock_manager.make_null_lock(ctx, path)

        prop_el = xml_tools.make_prop_el()
        prop_el.append(make_lockdiscovery_el([lock], href))

        xml = xml_tools.xml_to_bytes(prop_el)
        start_response(
            "200 OK",
            [
                ("Content-Type", "application/xml; charset=utf-8"),
                ("Content-Length", str(len(xml))),
                ("Lock-Token", f"<{lock['token']}>"),
                ("Date", util.get_rfc1123_time()),
            ],
        )
        return [xml]

    def do_UNLOCK(self, environ, start_response, ctx):
        """
        @see: http://www.webdav.org/specs/rfc4918.html#METHOD_UNLOCK
        """
        path = environ["PATH_INFO"]
        node = self.resolver.resolve(path)
        self.lock_manager.unlock(ctx, node, environ.get("HTTP_DEPTH", "0"))
        return util.send_status_response(environ, start_response, HTTP_NO_CONTENT)
