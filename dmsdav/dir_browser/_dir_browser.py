# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Render the HTML index page of a folder.

The page is a plain ``<pre>`` table with size, modification time and name of
the parent folder link, the visible subfolders, and the visible documents::

               Size  Last modified        Filename
    -------------------------------------------------------
                  0  2024-05-01 10:12:00  ../
                  0  2024-05-01 10:12:00  archive/
             12,345  2024-05-02 08:00:13  report.txt
"""

import os
import time

from jinja2 import Environment, FileSystemLoader, select_autoescape

from dmsdav import util

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

ROW_FORMAT = "%15s  %-19s  %-s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_date(secs):
    return time.strftime(DATE_FORMAT, time.localtime(secs))


class DirectoryRenderer:
    """Render folder listings with a Jinja2 template."""

    def __init__(self, repository, presenter, dir_config):
        self.repository = repository
        self.presenter = presenter
        self.dir_config = dir_config

        self.htdocs_path = dir_config.get("htdocs_path") or os.path.join(
            os.path.dirname(__file__), "htdocs"
        )

        if not os.path.isdir(self.htdocs_path):
            raise ValueError(f"Invalid dir_browser htdocs_path {self.htdocs_path!r}")

        # Prepare a Jinja2 template
        templateLoader = FileSystemLoader(searchpath=self.htdocs_path)
        templateEnv = Environment(loader=templateLoader, autoescape=select_autoescape())
        self.template = templateEnv.get_template("template.html")

    def __repr__(self):
        return f"{self.__class__.__name__}({self.htdocs_path!r})"

    def _make_row(self, environ, name, size, date, path, mime_type=None):
        return {
            "size": f"{size:,}".rjust(15),
            "date": format_date(date).ljust(19),
            "name": name,
            "href": util.quote_path(environ.get("SCRIPT_NAME", "") + path),
            "mime_type": mime_type,
        }

    def get_context(self, environ, ctx, folder):
        presenter = self.presenter
        repo = self.repository
        path = presenter.get_folder_path(folder)

        rows = []
        if folder.parent is not None:
            parent = folder.parent
            rows.append(
                self._make_row(
                    environ, "..", 0, parent.date, presenter.get_folder_path(parent)
                )
            )

        folders, docs = presenter.get_visible_children(folder, ctx)
        for sub in folders:
            rows.append(
                self._make_row(
                    environ, sub.name + "/", 0, sub.date, presenter.get_folder_path(sub)
                )
            )
        for doc in docs:
            content = repo.get_latest_content(doc)
            rows.append(
                self._make_row(
                    environ,
                    presenter.get_display_name(doc, content),
                    repo.get_content_size(content),
                    content.date,
                    presenter.get_path(doc, content),
                    content.mime_type,
                )
            )

        trailer = self.dir_config.get("response_trailer")
        if trailer is True:
            trailer = f"{util.public_dmsdav_info} - {util.get_rfc1123_time()}"
        if self.dir_config.get("show_user") and ctx.is_authenticated:
            trailer = f"{trailer or ''} ({ctx.login})".strip()

        return {
            "display_path": path,
            "header": ROW_FORMAT % ("Size", "Last modified", "Filename"),
            "rows": rows,
            "trailer": trailer,
        }

    def render(self, environ, start_response, ctx, folder):
        """Send the HTML index of `folder` as complete WSGI response."""
        context = self.get_context(environ, ctx, folder)
        res = util.to_bytes(self.template.render(**context))
        start_response(
            "200 OK",
            [
                ("Content-Type", "text/html; charset=utf-8"),
                ("Content-Length", str(len(res))),
                ("Cache-Control", "private"),
                ("Date", util.get_rfc1123_time()),
            ],
        )
        return [res]


def make_directory_renderer(repository, presenter, config):
    """Return a DirectoryRenderer, or None if ``dir_browser.enable`` is False."""
    dir_config = util.get_dict_value(config, "dir_browser", as_dict=True)
    if dir_config.get("enable") is False:
        return None
    dir_config = dict(dir_config)
    # Relative paths are evaluated relative to the config file
    dir_config["htdocs_path"] = util.fix_path(
        dir_config.get("htdocs_path"), config, must_exist=False
    )
    return DirectoryRenderer(repository, presenter, dir_config)
