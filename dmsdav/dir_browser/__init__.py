# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
HTML directory listing for browsers that GET a folder.
"""

from ._dir_browser import DirectoryRenderer, make_directory_renderer

__all__ = ["DirectoryRenderer", "make_directory_renderer"]
