# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Notification sinks that are informed about repository changes.

A notifier is configured with the ``notifier`` option, either as instance,
class path, or ``{"class": ..., "kwargs": {...}}`` dict. Delivery is fire
and forget: :func:`notify` logs and swallows errors raised by a sink, so
a broken mail server never fails a WebDAV request.
"""

from dmsdav import util

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

NOTIFICATION_EVENTS = (
    "new_document",
    "new_version",
    "new_folder",
    "moved_document",
    "moved_folder",
    "deleted_document",
    "deleted_folder",
)


class BaseNotifier:
    """Notifier that ignores all events.

    Derived classes override the events they are interested in.
    """

    def __repr__(self):
        return f"{self.__class__.__name__}()"

    def new_document(self, document, user):
        pass

    def new_version(self, document, user):
        pass

    def new_folder(self, folder, user):
        pass

    def moved_document(self, document, old_folder, user):
        pass

    def moved_folder(self, folder, old_parent, user):
        pass

    def deleted_document(self, document, user):
        pass

    def deleted_folder(self, folder, user):
        pass


class LoggingNotifier(BaseNotifier):
    """Write one INFO line per event to the 'dmsdav.notifier' logger."""

    def _log(self, event, node, user, extra=""):
        login = user.login if user is not None else "anonymous"
        _logger.info(f"{event}: {node!r} by {login}{extra}")

    def new_document(self, document, user):
        self._log("new_document", document, user)

    def new_version(self, document, user):
        self._log("new_version", document, user)

    def new_folder(self, folder, user):
        self._log("new_folder", folder, user)

    def moved_document(self, document, old_folder, user):
        self._log("moved_document", document, user, f" (from {old_folder!r})")

    def moved_folder(self, folder, old_parent, user):
        self._log("moved_folder", folder, user, f" (from {old_parent!r})")

    def deleted_document(self, document, user):
        self._log("deleted_document", document, user)

    def deleted_folder(self, folder, user):
        self._log("deleted_folder", folder, user)


def make_notifier(config):
    """Return the notifier instance configured by the ``notifier`` option."""
    opts = config.get("notifier")
    if opts is None:
        return LoggingNotifier()
    if isinstance(opts, (str, dict)):
        return util.dynamic_instantiate_class_from_opts(opts)
    return opts


def notify(notifier, event, *args):
    """Call `notifier.<event>(*args)`; errors are logged, never raised."""
    if notifier is None:
        return
    assert event in NOTIFICATION_EVENTS, event
    try:
        getattr(notifier, event)(*args)
    except Exception:
        _logger.exception(f"Notification {event!r} failed")
