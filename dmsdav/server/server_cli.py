"""
server_cli
==========

:Author: Martin Wendt
:Copyright: Licensed under the MIT license, see LICENSE file in this package.

Command line entry point that publishes a document repository over WebDAV.

The effective configuration is assembled in three layers, later layers win:

    1. ``DEFAULT_CONFIG`` from :mod:`dmsdav.default_conf`.
    2. A configuration file, passed as ``--config FILE`` or found as
       ``dmsdav.yaml`` / ``dmsdav.json`` in the current directory.
    3. Command line options (``--host``, ``--port``, ``--server``,
       ``--naming``, ``--workflow``, ``-v`` / ``-q``).

``--memory FOLDER`` publishes a fresh in-memory repository that keeps its
version files below FOLDER. It is meant for trying things out and cannot be
combined with a configured ``repository``.
"""

import argparse
import copy
import json
import logging
import os
import platform
import sys
from pprint import pformat

import yaml
from jsmin import jsmin

from dmsdav import __version__, util
from dmsdav.default_conf import DEFAULT_CONFIG, DEFAULT_VERBOSE
from dmsdav.dmsdav_app import DmsDAVApp
from dmsdav.naming import NAMING_STRATEGIES
from dmsdav.repo.memory_repository import MemoryRepository
from dmsdav.workflow import WORKFLOW_MODES

__docformat__ = "reStructuredText"

#: Looked up in the current directory, unless --config or --no-config is passed
DEFAULT_CONFIG_FILES = ("dmsdav.yaml", "dmsdav.json")

_logger = logging.getLogger("dmsdav")


class _AbsPathAction(argparse.Action):
    def __call__(self, parser, namespace, values, option_string=None):
        setattr(namespace, self.dest, os.path.abspath(os.path.expanduser(values)))


def _build_parser():
    parser = argparse.ArgumentParser(
        prog="dmsdav",
        description="""\
Publish a document management repository as a WebDAV share.

Examples:

  Try an in-memory repository (login 'admin' / 'admin'):
    dmsdav --memory=/tmp/dmsdav_storage

  Serve the repository that is defined in a configuration file:
    dmsdav --host=0.0.0.0 --port=80 --config=~/dmsdav.yaml
""",
        epilog="Licensed under the MIT license.",
        allow_abbrev=False,
        formatter_class=argparse.RawTextHelpFormatter,
    )

    net = parser.add_argument_group("network")
    net.add_argument("-p", "--port", type=int, help="port to serve on (default: 8080)")
    net.add_argument(
        "-H",  # '-h' is --help
        "--host",
        help="interface to bind (default: localhost, use 0.0.0.0 for all)",
    )
    net.add_argument(
        "--server",
        choices=tuple(SERVER_RUNNERS),
        help="WSGI server to run (default: cheroot)",
    )

    dms = parser.add_argument_group("repository")
    dms.add_argument(
        "-m",
        "--memory",
        dest="memory_path",
        action=_AbsPathAction,
        help="publish an in-memory repository, storing version files in this folder",
    )
    dms.add_argument(
        "--naming",
        choices=tuple(NAMING_STRATEGIES),
        help="how documents are named in paths (dms.naming_strategy)",
    )
    dms.add_argument(
        "--workflow",
        choices=[m for m in WORKFLOW_MODES if m],
        help="review mode for new versions (dms.workflow_mode)",
    )

    cfg = parser.add_mutually_exclusive_group()
    cfg.add_argument(
        "-c",
        "--config",
        dest="config_file",
        action=_AbsPathAction,
        help="YAML or JSON configuration file "
        f"(default: {', '.join(DEFAULT_CONFIG_FILES)})",
    )
    cfg.add_argument(
        "--no-config",
        action="store_true",
        help="ignore configuration files in the current directory",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=DEFAULT_VERBOSE,
        help="increment verbosity by one (default: %(default)s, range: 0..5)",
    )
    verbosity.add_argument(
        "-q", "--quiet", default=0, action="count", help="decrement verbosity by one"
    )

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="print version info and exit (add -v for platform details)",
    )
    return parser


def _version_info(verbose):
    if verbose < 4:
        return __version__
    return "dmsdav/{} {}/{}({} bit) {}\nPython from: {}".format(
        __version__,
        platform.python_implementation(),
        util.PYTHON_VERSION,
        "64" if sys.maxsize > 2**32 else "32",
        platform.platform(aliased=True),
        sys.executable,
    )


def _parse_args(argv=None):
    parser = _build_parser()
    args = parser.parse_args(argv)
    args.verbose -= args.quiet
    del args.quiet

    if args.version:
        print(_version_info(args.verbose))
        sys.exit()

    if args.config_file:
        if not os.path.isfile(args.config_file):
            parser.error(f"Configuration file not found: {args.config_file}")
    elif not args.no_config:
        found = [f for f in DEFAULT_CONFIG_FILES if os.path.isfile(f)]
        if found:
            args.config_file = os.path.abspath(found[0])
            if args.verbose >= 3:
                print(f"Using configuration file {args.config_file}")
    return args, parser


def load_config_file(path):
    """Return the options dict stored in a ``.yaml`` or ``.json`` file.

    JSON files may contain JavaScript style comments.
    """
    with open(path, encoding="utf-8-sig") as fp:
        if path.endswith(".yaml"):
            conf = yaml.safe_load(fp)
        elif path.endswith(".json"):
            conf = json.loads(jsmin(fp.read()))
        else:
            raise RuntimeError(f"Expected a .yaml or .json configuration file: {path}")

    if not isinstance(conf, dict):
        raise RuntimeError(f"Configuration file must define a mapping: {path}")
    conf["_config_file"] = path
    conf["_config_root"] = os.path.dirname(path)
    return conf


def make_demo_repository(storage_path):
    """Return a MemoryRepository with an 'admin' account and one sample folder."""
    repo = MemoryRepository(storage_path)
    admin = repo.add_user("admin", "admin", full_name="Administrator", is_admin=True)
    repo.add_subfolder(repo.get_root_folder(), "Documents", admin)
    return repo


def build_config(args, parser):
    """Merge defaults, configuration file and command line into one dict."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["_config_file"] = None
    config["_config_root"] = os.getcwd()

    if args.config_file:
        file_opts = load_config_file(args.config_file)
        util.deep_update(config, file_opts)
        if "verbose" in file_opts and args.verbose != DEFAULT_VERBOSE:
            if args.verbose >= 2:
                print(
                    f"Command line verbosity {args.verbose} overrides "
                    f"'verbose: {file_opts['verbose']}' of the configuration file."
                )
    elif args.verbose >= 2:
        print("Running without configuration file.")

    for opt, key_path in (
        ("host", ("host",)),
        ("port", ("port",)),
        ("server", ("server",)),
        ("naming", ("dms", "naming_strategy")),
        ("workflow", ("dms", "workflow_mode")),
    ):
        value = getattr(args, opt)
        if value:
            target = config
            for key in key_path[:-1]:
                target = target.setdefault(key, {})
            target[key_path[-1]] = value

    # -v / -q only win over the file, if they were actually passed
    if args.verbose != DEFAULT_VERBOSE:
        config["verbose"] = args.verbose

    if args.memory_path:
        if config.get("repository"):
            parser.error("--memory cannot be combined with a configured repository")
        config["repository"] = make_demo_repository(args.memory_path)
    elif not config.get("repository"):
        parser.error("No repository defined (pass --memory or a configuration file)")

    if config["verbose"] >= 5:
        print(f"Configuration ({args.config_file}):")
        print(pformat(util.purge_passwords(config)))
    return config


def _serve_cheroot(app, config):
    """Run on cheroot.wsgi (https://cheroot.cherrypy.dev/)."""
    from cheroot import wsgi

    server_name = (
        f"{util.public_dmsdav_info} {wsgi.Server.version} {util.public_python_info}"
    )
    server_args = {
        "bind_addr": (config["host"], config["port"]),
        "wsgi_app": app,
        "server_name": server_name,
        # Windows Explorer opens many parallel connections
        "numthreads": 50,
    }
    server_args.update(util.get_dict_value(config, "server_args", as_dict=True))

    _logger.info(f"Running {server_name}")
    _logger.info(f"Serving on http://{config['host']}:{config['port']} ...")
    server = wsgi.Server(**server_args)
    try:
        server.start()
    except KeyboardInterrupt:
        _logger.warning("Caught Ctrl-C, shutting down...")
    finally:
        server.stop()


def _serve_wsgiref(app, config):
    """Run on the single threaded wsgiref.simple_server (testing only)."""
    from wsgiref.simple_server import WSGIRequestHandler, make_server

    WSGIRequestHandler.server_version = (
        f"{util.public_dmsdav_info} {WSGIRequestHandler.server_version}"
    )
    _logger.warning("wsgiref is single threaded and not meant for production.")
    _logger.info(f"Serving on http://{config['host']}:{config['port']} ...")
    httpd = make_server(config["host"], config["port"], app)
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        _logger.warning("Caught Ctrl-C, shutting down...")


SERVER_RUNNERS = {
    "cheroot": _serve_cheroot,
    "wsgiref": _serve_wsgiref,
}


def run(argv=None):
    args, parser = _parse_args(argv)
    config = build_config(args, parser)

    runner = SERVER_RUNNERS.get(config["server"])
    if runner is None:
        raise RuntimeError(
            f"Unsupported server {config['server']!r} "
            f"(expected one of {', '.join(SERVER_RUNNERS)})"
        )

    config["logging"]["enable"] = True
    app = DmsDAVApp(config)
    runner(app, config)


if __name__ == "__main__":
    run()
