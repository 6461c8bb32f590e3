# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
WSGI middleware that catches the DAVErrors raised by request handlers and
turns them into proper HTTP responses.

Any other exception is logged and answered as '500 Internal Server Error'.
"""

import traceback

from dmsdav import util
from dmsdav.dav_error import HTTP_INTERNAL_ERROR, DAVError, as_DAVError
from dmsdav.mw.base_mw import BaseMiddleware

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)


# ========================================================================
# ErrorPrinter
# ========================================================================
class ErrorPrinter(BaseMiddleware):
    def __call__(self, environ, start_response):
        # Handlers are generators, so exceptions may be raised while the body
        # is produced. The response is started with the first chunk.
        sub_start_response = util.SubAppStartResponse()

        def _start():
            start_response(
                sub_start_response.status,
                sub_start_response.response_headers,
                sub_start_response.exc_info,
            )

        try:
            started = False
            app_iter = self.next_app(environ, sub_start_response)
            try:
                for chunk in app_iter:
                    if not started:
                        _start()
                        started = True
                    yield chunk
            finally:
                if hasattr(app_iter, "close"):
                    app_iter.close()
            if not started:
                _start()
            return
        except DAVError as e:
            if started:
                raise
            err = e
        except Exception as e:
            if started:
                raise
            _logger.error(f"{traceback.format_exc(10)}")
            err = as_DAVError(e)

        # The client may still be sending a body we never looked at
        util.read_and_discard_input(environ)

        request = f"{environ['REQUEST_METHOD']} {environ['PATH_INFO']}"
        if err.value == HTTP_INTERNAL_ERROR:
            _logger.error(f"{request}: {err.get_user_info()}")
        else:
            _logger.info(f"{request}: {err.get_user_info()}")

        yield from util.send_status_response(environ, start_response, err)
