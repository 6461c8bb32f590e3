# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Abstract base class of the entries in the ``middleware_stack`` option.
"""

from abc import ABC, abstractmethod

from dmsdav.util import NO_DEFAULT, get_dict_value

__docformat__ = "reStructuredText"


class BaseMiddleware(ABC):
    """Abstract base middleware class.

    Middlewares are instantiated once by :class:`~dmsdav.dmsdav_app.DmsDAVApp`
    with the application, the next WSGI application in the chain, and the
    merged configuration::

        dmsdav.error_printer.ErrorPrinter
        dmsdav.http_authenticator.HTTPAuthenticator
        dmsdav.request_resolver.RequestResolver
    """

    def __init__(self, dav_app, next_app, config):
        self.dav_app = dav_app
        self.next_app = next_app
        self.config = config
        self.verbose = config.get("verbose", 3)

    @abstractmethod
    def __call__(self, environ, start_response):
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__module__}.{self.__class__.__name__}"

    def is_disabled(self):
        """Return True to skip this middleware on startup."""
        return False

    def get_config(self, key_path: str, default=NO_DEFAULT):
        """Return a config value by dotted key path (e.g. 'dms.naming_strategy')."""
        return get_dict_value(self.config, key_path, default)
