# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""Unit tests for the command line configuration of dmsdav.server.server_cli"""

import os
import shutil
import tempfile
import unittest

from dmsdav.repo.memory_repository import MemoryRepository
from dmsdav.server.server_cli import _parse_args, build_config, load_config_file


class ServerCliTest(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp(prefix="dmsdav-cli-")
        self.org_cwd = os.getcwd()
        os.chdir(self.tmp_dir)

    def tearDown(self):
        os.chdir(self.org_cwd)
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def _write(self, name, text):
        path = os.path.join(self.tmp_dir, name)
        with open(path, "w", encoding="utf-8") as fp:
            fp.write(text)
        return path

    def _config(self, *argv):
        args, parser = _parse_args(list(argv))
        return build_config(args, parser)

    def testLoadConfigFile(self):
        path = self._write(
            "a.json",
            """{
                // comments are allowed
                "port": 8081,
                "dms": {"naming_strategy": "prefixed"}
            }""",
        )
        conf = load_config_file(path)
        assert conf["port"] == 8081
        assert conf["dms"] == {"naming_strategy": "prefixed"}
        assert conf["_config_root"] == self.tmp_dir

        path = self._write("b.yaml", "host: 0.0.0.0\nverbose: 1\n")
        conf = load_config_file(path)
        assert conf["host"] == "0.0.0.0"
        assert conf["verbose"] == 1

        path = self._write("c.yaml", "- not a mapping\n")
        self.assertRaises(RuntimeError, load_config_file, path)
        path = self._write("d.ini", "[x]\n")
        self.assertRaises(RuntimeError, load_config_file, path)

    def testMemoryRepository(self):
        storage = os.path.join(self.tmp_dir, "storage")
        config = self._config("--no-config", "--memory", storage, "-p", "9000")
        repo = config["repository"]
        assert isinstance(repo, MemoryRepository)
        assert repo.get_user_by_login("admin").is_admin
        assert config["port"] == 9000
        assert config["host"] == "localhost"
        assert config["dms"]["naming_strategy"] == "name"

    def testCommandLineOverridesFile(self):
        self._write(
            "dmsdav.yaml",
            "port: 8081\n"
            "verbose: 1\n"
            "repository: dmsdav.repo.memory_repository.MemoryRepository\n"
            "dms:\n"
            "  workflow_mode: advanced\n",
        )
        config = self._config("--naming", "original_filename")
        assert config["_config_file"] == os.path.join(self.tmp_dir, "dmsdav.yaml")
        assert config["port"] == 8081
        assert config["verbose"] == 1
        assert config["dms"]["workflow_mode"] == "advanced"
        assert config["dms"]["naming_strategy"] == "original_filename"
        # Untouched defaults of the same section survive the merge
        assert config["dms"]["default_doc_position"] == "end"

        config = self._config("--workflow", "traditional", "-vv", "--port", "80")
        assert config["dms"]["workflow_mode"] == "traditional"
        assert config["verbose"] == 5
        assert config["port"] == 80

    def testErrors(self):
        with self.assertRaises(SystemExit):
            self._config("--no-config")
        with self.assertRaises(SystemExit):
            self._config("--config", os.path.join(self.tmp_dir, "missing.yaml"))
        with self.assertRaises(SystemExit):
            self._config("--naming", "foo")

        self._write(
            "dmsdav.yaml",
            "repository: dmsdav.repo.memory_repository.MemoryRepository\n",
        )
        with self.assertRaises(SystemExit):
            self._config("--memory", os.path.join(self.tmp_dir, "storage"))
