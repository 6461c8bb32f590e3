# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
WSGI container, that handles the HTTP requests. This object is passed to the
WSGI server and represents our dmsdav application to the outside.

On init:

    Merge the configuration with the defaults and instantiate the shared
    components: repository, naming strategy, path resolver, node presenter,
    lock manager, notifier, and directory renderer.

    Initialize middleware objects and setup the WSGI application stack.

For every request:

    Strip the mount path and add info to the WSGI ``environ``:

        environ["SCRIPT_NAME"]
            Mount path of the application.
        environ["PATH_INFO"]
            Repository path, relative to the mount path.
        environ["dmsdav.config"]
            Configuration dictionary.
        environ["dmsdav.verbose"]
            Debug level [0-5].

    Log the HTTP request, then pass the request to the first middleware.
"""

import copy
import inspect
import platform
import sys
import time

from dmsdav import __version__, util
from dmsdav.default_conf import DEFAULT_CONFIG
from dmsdav.dir_browser import make_directory_renderer
from dmsdav.http_authenticator import HTTPAuthenticator
from dmsdav.lock_manager import DocumentLockManager
from dmsdav.mw.base_mw import BaseMiddleware
from dmsdav.naming import NAMING_STRATEGIES, make_naming_strategy
from dmsdav.node_presenter import DEFAULT_NAMESPACE, NodePresenter
from dmsdav.notifier import make_notifier
from dmsdav.path_resolver import PathResolver
from dmsdav.repo.base_repository import BaseRepository
from dmsdav.request_server import INITIAL_STATUS
from dmsdav.util import (
    check_python_version,
    dynamic_import_class,
    dynamic_instantiate_class_from_opts,
    safe_re_encode,
)
from dmsdav.workflow import WORKFLOW_MODES

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)


def _check_config(config):
    errors = []

    if not config.get("repository"):
        errors.append("Missing required option 'repository'.")

    dms = config.get("dms") or {}
    choices = {
        "naming_strategy": tuple(NAMING_STRATEGIES),
        "workflow_mode": WORKFLOW_MODES,
        "default_doc_position": ("start", "end"),
        "initial_document_status": tuple(INITIAL_STATUS),
    }
    for key, allowed in choices.items():
        if key in dms and dms[key] not in allowed:
            errors.append(
                f"Invalid option 'dms.{key}': {dms[key]!r} (expected one of {allowed})."
            )

    unknown = set(dms) - set(DEFAULT_CONFIG["dms"])
    for key in sorted(unknown):
        errors.append(f"Unknown option 'dms.{key}'.")

    if errors:
        raise ValueError("Invalid configuration:\n  - " + "\n  - ".join(errors))

    return True


def make_repository(opts):
    """Return a repository instance for the ``repository`` option."""
    if isinstance(opts, (str, dict)):
        opts = dynamic_instantiate_class_from_opts(opts)
    if not isinstance(opts, BaseRepository):
        raise ValueError(
            f"Invalid repository {opts!r} (not instance of BaseRepository)"
        )
    return opts


#: Minimal Python version that is supported by dmsdav
MIN_PYTHON_VERSION_INFO = (3, 9)

check_python_version(MIN_PYTHON_VERSION_INFO)


def _make_middleware(dav_app, next_app, config, mw):
    """Return a middleware instance for one ``middleware_stack`` entry.

    Entries may be a dotted class path, a class, a ``{class: ..., kwargs: ...}``
    dict (``${application}`` expands to the wrapped app), or an instance.
    """
    if isinstance(mw, str):
        return dynamic_import_class(mw)(dav_app, next_app, config)
    if isinstance(mw, dict):
        return dynamic_instantiate_class_from_opts(
            mw, expand={"${application}": next_app}
        )
    if inspect.isclass(mw):
        if not issubclass(mw, BaseMiddleware):
            raise ValueError(f"Middleware class must derive from BaseMiddleware: {mw}")
        return mw(dav_app, next_app, config)
    return mw


# ========================================================================
# DmsDAVApp
# ========================================================================
class DmsDAVApp:
    def __init__(self, config):
        self.config = copy.deepcopy(DEFAULT_CONFIG)
        util.deep_update(self.config, config)
        config = self.config

        if config["logging"].get("enable") is not False:
            util.init_logging(config)
        self.logger = util._logger

        _check_config(config)

        self.verbose = config.get("verbose", 3)

        if config.get("suppress_version_info"):
            util.public_dmsdav_info = "dmsdav"
            util.public_python_info = f"Python/{sys.version_info[0]}"

        mount_path = config.get("mount_path") or ""
        if mount_path and (not mount_path.startswith("/") or mount_path.endswith("/")):
            raise ValueError(
                f"mount_path must start (but not end) with '/': {mount_path!r}."
            )
        self.mount_path = mount_path

        # Shared by all requests
        self.dms_opts = util.get_dict_value(config, "dms", as_dict=True)
        self.repository = make_repository(config["repository"])
        self.naming_strategy = make_naming_strategy(config)
        self.resolver = PathResolver(self.repository, self.naming_strategy)
        self.presenter = NodePresenter(
            self.repository,
            self.naming_strategy,
            namespace=self.dms_opts.get("property_namespace") or DEFAULT_NAMESPACE,
        )
        self.lock_manager = DocumentLockManager(self.repository, self.presenter)
        self.notifier = make_notifier(config)
        self.dir_renderer = make_directory_renderer(
            self.repository, self.presenter, config
        )

        self.http_authenticator = None
        self.application = self._build_stack(config.get("middleware_stack") or [])

        _logger.info(
            f"dmsdav/{__version__} Python/{util.PYTHON_VERSION} {platform.platform(aliased=True)}"
        )
        if self.verbose >= 3:
            dc = None
            if self.http_authenticator:
                dc = self.http_authenticator.get_domain_controller()
            for label, value in (
                ("Repository", self.repository),
                ("Naming strategy", self.naming_strategy),
                ("Workflow mode", self.dms_opts.get("workflow_mode")),
                ("Notifier", self.notifier),
                ("Domain controller", dc),
            ):
                _logger.info(f"{label + ':':<19}{value}")
            if dc and not dc.require_authentication(None, None):
                _logger.warning("Anonymous requests are allowed.")
        if self.mount_path:
            _logger.info(f"Configured mount path: {self.mount_path!r}.")

    def _build_stack(self, middleware_stack):
        """Wrap this app into the configured middleware and return the outermost app.

        The first entry of `middleware_stack` receives the request first.
        """
        app = self
        active = []
        for mw in reversed(middleware_stack):
            wrapper = _make_middleware(self, app, self.config, mw)
            if not wrapper:
                _logger.error(f"Could not add middleware {mw}.")
                continue
            is_disabled = getattr(wrapper, "is_disabled", None)
            if callable(is_disabled) and is_disabled():
                _logger.warning(f"Middleware {wrapper} is disabled: skipping.")
                continue
            if isinstance(wrapper, HTTPAuthenticator):
                self.http_authenticator = wrapper
            active.insert(0, wrapper)
            app = wrapper

        if self.verbose >= 4:
            _logger.info("Middleware stack:")
            for wrapper in active:
                _logger.info(f"  - {wrapper}")
        return app

    def _strip_mount_path(self, environ):
        path = environ["PATH_INFO"]
        script_name = environ.get("SCRIPT_NAME", "")
        if not self.mount_path or script_name == self.mount_path:
            return path
        if path == self.mount_path or path.startswith(self.mount_path + "/"):
            environ["SCRIPT_NAME"] = script_name + self.mount_path
            path = environ["PATH_INFO"] = path[len(self.mount_path) :] or "/"
        return path

    def _must_close_connection(self, environ, status_code, headers):
        """Return True if the client connection cannot be reused after this response."""
        close = False
        needs_length = (
            environ["REQUEST_METHOD"] != "HEAD"
            and status_code >= 200
            and status_code not in (204, 304)
        )
        if needs_length and headers.get("content-length") in (None, ""):
            _logger.error(
                f"{status_code}-response without Content-Length: closing connection"
            )
            close = True

        # Clients may miss the response, unless the whole body was read
        util.read_and_discard_input(environ)
        if util.get_content_length(environ) != 0 and not environ.get(
            "dmsdav.all_input_read"
        ):
            _logger.warning("Request body not completely consumed: closing connection.")
            close = True
        return close

    def _log_request(self, environ, status, start_time):
        extra = []
        for key, label in (
            ("HTTP_DESTINATION", "dest"),
            ("CONTENT_LENGTH", "length"),
            ("HTTP_DEPTH", "depth"),
            ("HTTP_OVERWRITE", "overwrite"),
        ):
            if environ.get(key, "") != "":
                extra.append(f"{label}={environ[key]!r}")
        if self.verbose >= 4 and "HTTP_USER_AGENT" in environ:
            extra.append(f"agent={environ['HTTP_USER_AGENT']!r}")
        extra.append(f"elap={time.time() - start_time:.3f}sec")

        path = safe_re_encode(
            environ.get("PATH_INFO", ""), sys.stdout.encoding or "utf-8"
        )
        _logger.info(
            '{} - {} - [{}] "{} {}" {} -> {}'.format(
                environ.get("REMOTE_ADDR", ""),
                environ.get("dmsdav.auth.user_name") or "(anonymous)",
                util.get_log_time(),
                environ.get("REQUEST_METHOD"),
                path,
                ", ".join(extra),
                status,
            )
        )

    def __call__(self, environ, start_response):
        # WSGI passes iso-8859-1, but clients send UTF-8 paths
        environ["PATH_INFO"] = util.re_encode_wsgi(environ["PATH_INFO"])
        environ["dmsdav.config"] = self.config
        environ["dmsdav.verbose"] = self.verbose

        path = self._strip_mount_path(environ)
        script_name = environ.get("SCRIPT_NAME", "")
        assert script_name == "" or script_name.startswith("/")
        assert path == "" or path.startswith("/")

        start_time = time.time()

        def _start_response_wrapper(status, response_headers, exc_info=None):
            headers = {}
            for name, value in response_headers:
                if name.lower() in headers:
                    _logger.error(f"Duplicate header in response: {name}")
                headers[name.lower()] = value

            # Echo litmus test names, so they show up in the client log
            for key, value in environ.items():
                if key.startswith("HTTP_") and "litmus" in key.lower():
                    response_headers.append(("X-Litmus-reply", value))

            status_code = int(status.split(" ", 1)[0])
            if self._must_close_connection(environ, status_code, headers):
                if headers.get("connection") != "close":
                    response_headers.append(("Connection", "close"))

            if self.verbose >= 3:
                self._log_request(environ, status, start_time)
            return start_response(status, response_headers, exc_info)

        app_iter = self.application(environ, _start_response_wrapper)
        try:
            yield from app_iter
        finally:
            if hasattr(app_iter, "close"):
                app_iter.close()
