# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Last entry of the middleware stack: creates the request-scoped
:class:`~dmsdav.request_context.RequestContext` and dispatches the request
to a new :class:`~dmsdav.request_server.DmsRequestServer` instance.

It *must* be configured as the last item of the ``middleware_stack`` option.
"""

from dmsdav import util
from dmsdav.mw.base_mw import BaseMiddleware
from dmsdav.request_context import RequestContext
from dmsdav.request_server import DmsRequestServer

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)


# ========================================================================
# RequestResolver
# ========================================================================
class RequestResolver(BaseMiddleware):
    def __call__(self, environ, start_response):
        ctx = RequestContext.from_environ(environ)
        environ["dmsdav.context"] = ctx

        app = DmsRequestServer(self.dav_app)
        app_iter = app(environ, start_response)
        try:
            yield from app_iter
        finally:
            if hasattr(app_iter, "close"):
                app_iter.close()
        return
