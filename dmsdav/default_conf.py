# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Default configuration.
"""

from dmsdav.error_printer import ErrorPrinter
from dmsdav.http_authenticator import HTTPAuthenticator
from dmsdav.request_resolver import RequestResolver

__docformat__ = "reStructuredText"

# Use these settings, if config file does not define them (or is totally missing)
DEFAULT_VERBOSE = 3
DEFAULT_LOGGER_DATE_FORMAT = "%H:%M:%S"
DEFAULT_LOGGER_FORMAT = "%(asctime)s.%(msecs)03d - %(levelname)-8s: %(message)s"

DEFAULT_CONFIG = {
    "server": "cheroot",
    "server_args": {},
    "host": "localhost",
    "port": 8080,
    "mount_path": None,  # Application root, e.g. <mount_path>/<folder>/<document>
    #: Instance of BaseRepository, class path, or {"class": ..., "kwargs": ...}
    "repository": None,
    #: Instance, class path, or {"class": ..., "kwargs": ...} (None: log events)
    "notifier": None,
    "block_size": 8192,
    "add_header_MS_Author_Via": True,
    "middleware_stack": [
        ErrorPrinter,
        HTTPAuthenticator,
        RequestResolver,  # this must be the last middleware item
    ],
    # HTTP Authentication Options
    "http_authenticator": {
        # None: dc.repository_dc.RepositoryDomainController
        "domain_controller": None,
        "accept_basic": True,
    },
    #: Used by RepositoryDomainController only
    "repository_dc": {
        "realm": "dmsdav",
        "require_authentication": True,
    },
    #: Verbose Output
    #: 0 - no output
    #: 1 - no output (excepting application exceptions)
    #: 2 - show warnings
    #: 3 - show single line request summaries (for HTTP logging)
    #: 4 - show additional events
    #: 5 - show full request/response header info (HTTP Logging)
    "verbose": DEFAULT_VERBOSE,
    #: Suppress version info in HTTP response headers and error responses
    "suppress_version_info": False,
    #: Log options
    "logging": {
        "enable": None,  # True: activate 'dmsdav' logger (in library mode)
        "logger_date_format": DEFAULT_LOGGER_DATE_FORMAT,
        "logger_format": DEFAULT_LOGGER_FORMAT,
        "enable_loggers": [],
    },
    #: Options for the HTML listing of folders
    "dir_browser": {
        "enable": True,  # Render HTML listing for GET requests on folders
        "response_trailer": True,  # Raw text, appended as footer (True: use a default)
        "show_user": True,  # Show the authenticated user in the footer
        # The path to the directory that contains template.html.
        # The default is the htdocs directory within the dir_browser directory.
        "htdocs_path": None,
    },
    #: Document management options
    "dms": {
        # How documents are addressed in paths: 'name', 'original_filename',
        # or 'prefixed' ('{id}-{version}-{original_filename}')
        "naming_strategy": "name",
        # 'traditional', 'traditional_only_approval', 'advanced', or None
        "workflow_mode": "traditional",
        # Position of new documents inside their folder: 'start' or 'end'
        "default_doc_position": "end",
        # Overwrite the latest version in place, if uploader, name and type
        # did not change
        "enable_replace_doc": False,
        "allow_duplicate_document_names": True,
        "allow_duplicate_folder_names": True,
        # Status of new versions without reviewers or approvers:
        # 'released' or 'draft'
        "initial_document_status": "released",
        # XML namespace of the vendor properties
        "property_namespace": "urn:dmsdav:",
    },
}
