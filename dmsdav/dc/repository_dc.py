# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Domain controller that authenticates against the user accounts of the
document repository.

Configuration::

    repository_dc:
        realm: "dmsdav"
        require_authentication: true

On success, the user object and a snapshot of the user's disk usage are
stored in the environ (``dmsdav.auth.user``, ``dmsdav.auth.used_bytes``).
The disk usage is not refreshed during the request.
"""

from dmsdav import util
from dmsdav.dc.base_dc import BaseDomainController

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

DEFAULT_REALM = "dmsdav"


class RepositoryDomainController(BaseDomainController):
    def __init__(self, dav_app, config):
        super().__init__(dav_app, config)
        dc_conf = util.get_dict_value(config, "repository_dc", as_dict=True)
        self.realm = dc_conf.get("realm") or DEFAULT_REALM
        self.require_auth = dc_conf.get("require_authentication", True)

    def __str__(self):
        return f"{self.__class__.__name__}({self.realm!r})"

    @property
    def repository(self):
        return self.dav_app.repository

    def get_domain_realm(self, path_info, environ):
        return self.realm

    def require_authentication(self, realm, environ):
        return self.require_auth

    def basic_auth_user(self, realm, user_name, password, environ):
        user = self.repository.authenticate(user_name, password)
        if user is None:
            return False
        environ["dmsdav.auth.user"] = user
        environ["dmsdav.auth.roles"] = ("admin",) if user.is_admin else ("user",)
        environ["dmsdav.auth.used_bytes"] = self.repository.get_used_disk_space(user)
        _logger.debug(
            f"Authenticated {user_name!r} "
            f"(used {environ['dmsdav.auth.used_bytes']} of {user.quota or '-'} bytes)"
        )
        return True
