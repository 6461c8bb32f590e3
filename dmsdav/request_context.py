# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Per-request caller identity and quota snapshot.
"""

__docformat__ = "reStructuredText"


class RequestContext:
    """Caller identity and disk usage, captured once when the request is
    authenticated and passed to every handler.

    Attributes:
        user (User | None): authenticated caller (None for anonymous requests)
        used_bytes (int): caller's total disk usage
        quota (int): caller's quota in bytes (0: no quota)
    """

    def __init__(self, user=None, *, used_bytes=0, quota=0):
        self.user = user
        self.used_bytes = used_bytes
        self.quota = quota

    def __repr__(self):
        return f"RequestContext({self.login!r}, used={self.used_bytes})"

    @classmethod
    def from_environ(cls, environ):
        user = environ.get("dmsdav.auth.user")
        return cls(
            user,
            used_bytes=environ.get("dmsdav.auth.used_bytes", 0),
            quota=user.quota if user is not None else 0,
        )

    @property
    def is_authenticated(self):
        return self.user is not None

    @property
    def is_admin(self):
        return self.user is not None and self.user.is_admin

    @property
    def login(self):
        return self.user.login if self.user is not None else "anonymous"

    @property
    def available_bytes(self):
        """Return remaining quota, or None if the caller has no quota."""
        if not self.quota:
            return None
        return self.quota - self.used_bytes
