# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Abstract base class of a domain controller (used by HTTPAuthenticator).

Domain controllers are called by `HTTPAuthenticator` to

- return the realm that is presented in the basic authentication challenge,
- decide if a request may proceed without credentials,
- check user name and password of a basic authentication request and store
  the caller's identity in the WSGI environ.

Note that there is no checking for `isinstance(BaseDomainController)` in the
code, so duck-typed domain controllers are accepted as well.
"""

from abc import ABC, abstractmethod

from dmsdav import util

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)


class BaseDomainController(ABC):
    #: A DC may list these values as `environ["dmsdav.auth.roles"] = (<role>, ...)`
    known_roles = ("admin", "user")

    def __init__(self, dav_app, config):
        self.dav_app = dav_app
        self.config = config

    def __str__(self):
        return f"{self.__class__.__name__}()"

    @abstractmethod
    def get_domain_realm(self, path_info, environ):
        """Return the realm name for a given URL.

        `environ` is None when called on start-up.
        """
        raise NotImplementedError

    @abstractmethod
    def require_authentication(self, realm, environ):
        """Return False to let this request pass without credentials."""
        raise NotImplementedError

    @abstractmethod
    def basic_auth_user(self, realm, user_name, password, environ):
        """Check user_name/password for a basic authentication request.

        On success, the following environ values should be set::

            environ["dmsdav.auth.user"] = <User>
            environ["dmsdav.auth.roles"] = (<role>, ...)

        Returns:
            True if the user is authorized, False otherwise.
        """
        raise NotImplementedError
