# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
WSGI middleware for HTTP basic authentication.

The credentials are checked by a domain controller, configured by the
``http_authenticator.domain_controller`` option (class or dotted class path,
default: :class:`~dmsdav.dc.repository_dc.RepositoryDomainController`).

The HTTPAuthenticator puts the following information into the environ::

   environ["dmsdav.auth.realm"] = realm name
   environ["dmsdav.auth.user_name"] = user_name ('' for anonymous requests)
   environ["dmsdav.auth.roles"] = <tuple> (set by the domain controller)

Digest authentication is not supported, since the repository only verifies
plain passwords.
"""

import base64
import binascii
import inspect
from textwrap import dedent

from dmsdav import util
from dmsdav.dc.repository_dc import RepositoryDomainController
from dmsdav.mw.base_mw import BaseMiddleware
from dmsdav.util import dynamic_import_class

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)


def make_domain_controller(dav_app, config):
    """Return the configured ``http_authenticator.domain_controller`` instance."""
    dc = util.get_dict_value(config, "http_authenticator.domain_controller", None)
    if not dc or dc is True:
        dc_class = RepositoryDomainController
    elif isinstance(dc, str):
        dc_class = dynamic_import_class(dc)
    else:
        dc_class = dc
    if not inspect.isclass(dc_class):
        raise RuntimeError(f"Could not resolve domain controller class (got {dc!r})")
    return dc_class(dav_app, config)


def parse_basic_credentials(auth_header):
    """Return (user_name, password) from a 'Basic ...' Authorization header.

    Raises:
        ValueError: if the header is not well-formed
    """
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "basic":
        raise ValueError(f"Unsupported authentication method {scheme!r}")
    try:
        decoded = util.to_str(base64.b64decode(util.to_bytes(token.strip())))
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError("Malformed basic authentication token") from e
    user_name, sep, password = decoded.partition(":")
    if not sep:
        raise ValueError("Missing ':' in basic authentication token")
    return user_name, password


# ========================================================================
# HTTPAuthenticator
# ========================================================================
class HTTPAuthenticator(BaseMiddleware):
    """WSGI Middleware for basic authentication."""

    error_message_401 = dedent(
        """\
        <html>
            <head><title>401 Login required</title></head>
            <body>
                <h1>401 Login required</h1>
                <p>Please log in with your repository account.</p>
            </body>
        </html>
    """
    )

    def __init__(self, dav_app, next_app, config):
        super().__init__(dav_app, next_app, config)
        self.domain_controller = make_domain_controller(dav_app, config)
        if not self.get_config("http_authenticator.accept_basic", True):
            raise RuntimeError("http_authenticator.accept_basic must be enabled.")

    def get_domain_controller(self):
        return self.domain_controller

    def __call__(self, environ, start_response):
        dc = self.domain_controller
        realm = dc.get_domain_realm(environ["PATH_INFO"], environ)
        environ.update(
            {
                "dmsdav.auth.realm": realm,
                "dmsdav.auth.user_name": "",
                "dmsdav.auth.user": None,
                "dmsdav.auth.roles": None,
            }
        )

        auth_header = environ.get("HTTP_AUTHORIZATION", "")
        if not auth_header:
            if dc.require_authentication(realm, environ):
                return self.send_basic_auth_response(environ, start_response)
            return self.next_app(environ, start_response)

        try:
            user_name, password = parse_basic_credentials(auth_header)
        except ValueError as e:
            _logger.warning(f"Rejected Authorization header: {e}")
            return self.send_basic_auth_response(environ, start_response)

        if not dc.basic_auth_user(realm, user_name, password, environ):
            _logger.warning(f"Login failed for user {user_name!r}, realm {realm!r}.")
            return self.send_basic_auth_response(environ, start_response)

        environ["dmsdav.auth.user_name"] = user_name
        return self.next_app(environ, start_response)

    def send_basic_auth_response(self, environ, start_response):
        realm = environ["dmsdav.auth.realm"]
        _logger.debug(f"401 Not Authorized for realm {realm!r}")
        util.read_and_discard_input(environ)

        body = util.to_bytes(self.error_message_401)
        start_response(
            "401 Not Authorized",
            [
                ("WWW-Authenticate", f'Basic realm="{realm}"'),
                ("Content-Type", "text/html"),
                ("Content-Length", str(len(body))),
                ("Date", util.get_rfc1123_time()),
            ],
        )
        return [body]
