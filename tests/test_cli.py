"""
CLI tests: exit codes, run passthrough, config get/set
"""

import io
import json
import os
import shutil
import tempfile
import unittest
from unittest import mock

from rootstrap import cli
from rootstrap.modules import config
from rootstrap.modules.bootstrap import BootstrapInstaller
from rootstrap.modules.ipc import ResultFileChannel, RpcRequest, RpcResult


class TestCli(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp(prefix="rootstrap_cli_")
        self.root = os.path.join(self.test_dir, "files")
        self.config_path = os.path.join(self.test_dir, "config.yml")
        with open(self.config_path, "w") as f:
            f.write("cache_dir: %s\n" % os.path.join(self.test_dir, "cache"))
        self.env = mock.patch.dict(os.environ, {"ROOTSTRAP_CONFIG": self.config_path})
        self.env.start()
        config.load_config()

    def tearDown(self):
        self.env.stop()
        config.load_config()
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _main(self, *argv):
        out = io.StringIO()
        with mock.patch("sys.stdout", out):
            with self.assertRaises(SystemExit) as ctx:
                cli.main(list(argv))
        return ctx.exception.code, out.getvalue()

    def test_status_not_installed(self):
        code, out = self._main("--json", "--root", self.root, "status")
        self.assertEqual(code, 1)
        data = json.loads(out)
        self.assertFalse(data["installed"])
        self.assertEqual(data["root"], self.root)

    def test_run_requires_install(self):
        with mock.patch("sys.stderr", io.StringIO()):
            code, _ = self._main("--root", self.root, "run", "--", "echo", "hi")
        self.assertEqual(code, 2)

    def test_run_passes_command(self):
        with mock.patch.object(BootstrapInstaller, "is_installed", return_value=True), \
                mock.patch("rootstrap.modules.shell.run_command", return_value=True) as run:
            code, _ = self._main("--root", self.root, "run", "--", "echo", "hi there")
        self.assertEqual(code, 0)
        self.assertEqual(run.call_args[0][1], "echo 'hi there'")

    def test_run_without_command(self):
        code, out = self._main("run")
        self.assertEqual(code, 1)
        self.assertIn("Uso:", out)

    def test_config_set_and_get(self):
        code, _ = self._main("config", "set", "chunk_size", "4096")
        self.assertEqual(code, 0)
        self.assertEqual(config.get("chunk_size"), 4096)

        code, out = self._main("config", "get", "chunk_size")
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "4096")

    def test_verify_lists_invalid_scripts(self):
        with mock.patch.object(BootstrapInstaller, "is_installed", return_value=True):
            code, out = self._main("--root", self.root, "verify")
        self.assertEqual(code, 1)
        self.assertIn("  termux-battery-status\n", out)

    def test_null_log_level_falls_back_to_info(self):
        with open(self.config_path, "w") as f:
            f.write("log_level: null\n")
        config.load_config()
        with mock.patch("rootstrap.modules.log.set_level") as set_level:
            code, out = self._main("config", "get", "log_level")
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "None")
        set_level.assert_called_once_with("info")

    def test_api_prints_result(self):
        with mock.patch("rootstrap.modules.ipc.ResultFileChannel") as channel_cls:
            channel_cls.return_value.call.return_value = RpcResult(True, '{"percentage": 80}\n')
            code, out = self._main("--root", self.root, "api", "battery-status")

        self.assertEqual(code, 0)
        self.assertEqual(out, '{"percentage": 80}\n')
        self.assertEqual(channel_cls.call_args[0][0], os.path.join(self.root, "usr", "tmp"))
        self.assertEqual(channel_cls.call_args[1]["receiver"], config.DEFAULTS["api_receiver"])
        channel_cls.return_value.call.assert_called_once_with("battery-status", "", timeout=3.0)

    def test_api_joins_args_and_reports_timeout(self):
        with mock.patch("rootstrap.modules.ipc.ResultFileChannel") as channel_cls, \
                mock.patch("sys.stderr", io.StringIO()):
            channel_cls.return_value.call.return_value = RpcResult(False, "", timed_out=True)
            code, _ = self._main("--root", self.root, "api", "toast", "hello", "world", "--timeout", "0.5")

        self.assertEqual(code, 1)
        channel_cls.return_value.call.assert_called_once_with("toast", "hello world", timeout=0.5)

    def test_api_round_trip_through_result_file(self):
        def receiver(argv, **kwargs):
            result_file = argv[argv.index("result_file") + 1]
            ResultFileChannel.complete(RpcRequest("clipboard-get", "", result_file), "copied text")
            return 0, "", ""

        with mock.patch("rootstrap.modules.ipc.utils.run", side_effect=receiver) as run:
            code, out = self._main("--root", self.root, "api", "clipboard-get")

        self.assertEqual(code, 0)
        self.assertEqual(out, "copied text")
        argv = run.call_args[0][0]
        self.assertIn(config.DEFAULTS["api_action"], argv)

    def test_scripts_listing(self):
        code, out = self._main("--json", "--root", self.root, "scripts")
        self.assertEqual(code, 0)
        data = json.loads(out)
        self.assertIn("termux-battery-status", data)
        self.assertFalse(data["termux-battery-status"])

    def test_format_progress(self):
        self.assertEqual(cli._format_progress(5, "Baixando"), "[  5%] Baixando")
        self.assertEqual(cli._format_progress(None, "x"), "[ ... ] x")
        self.assertIn("[ERRO] Error: boom", cli._format_progress(-1, "Error: boom"))


if __name__ == "__main__":
    unittest.main()
