"""
Generated command catalog and self-healing tests
"""

import os
import re
import shutil
import stat
import tempfile
import unittest

from rootstrap.modules import commands, healing
from rootstrap.modules.layout import SandboxLayout
from rootstrap.modules.state import VersionMarker


class TestCatalog(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp(prefix="rootstrap_cmds_")
        self.layout = SandboxLayout.from_root(self.test_dir)
        self.layout.prepare()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_catalog_size_and_unique_names(self):
        catalog = commands.build_catalog(self.layout)
        names = [s.name for s in catalog]
        self.assertGreaterEqual(len(catalog), 70)
        self.assertEqual(len(names), len(set(names)))
        self.assertEqual(names, commands.script_names())

    def test_deterministic(self):
        first = commands.build_catalog(self.layout)
        second = commands.build_catalog(self.layout)
        self.assertEqual(first, second)

    def test_no_unrendered_tokens(self):
        for script in commands.build_catalog(self.layout):
            self.assertIsNone(re.search(r"@[A-Z_]+@", script.content), script.name)
            self.assertTrue(script.content.startswith(f"#!{self.layout.prefix}/bin/"), script.name)

    def test_sentinel_carries_api_marker(self):
        by_name = {s.name: s for s in commands.build_catalog(self.layout)}
        sentinel = by_name[commands.SENTINEL_SCRIPT]
        self.assertIn(commands.API_MARKER, sentinel.content)
        self.assertIn('--es api_method "battery-status"', sentinel.content)
        self.assertIn(f"RESULT_FILE=\"{self.layout.tmp_dir}/api_result_$$\"", sentinel.content)
        self.assertIn(commands.DEFAULT_RECEIVER, sentinel.content)

    def test_custom_receiver(self):
        by_name = {s.name: s for s in commands.build_catalog(self.layout, "org.example/.Receiver", "org.example.CALL")}
        content = by_name["termux-toast"].content
        self.assertIn("-n org.example/.Receiver -a org.example.CALL", content)
        self.assertIn('--es api_args "$*"', content)

    def test_option_wrapper(self):
        by_name = {s.name: s for s in commands.build_catalog(self.layout)}
        sms = by_name["termux-sms-send"].content
        self.assertIn('while getopts "n:" opt; do', sms)
        self.assertIn('MESSAGE="$*"', sms)
        self.assertIn('if [ -z "$NUMBER" ] || [ -z "$MESSAGE" ]; then', sms)
        self.assertIn('--es api_args "$NUMBER|$MESSAGE"', sms)

        sensor = by_name["termux-sensor"].content
        self.assertIn('l) LIST_SENSORS="list" ;;', sensor)
        self.assertIn('while getopts "s:ln:d:c:" opt; do', sensor)

        mkdir = by_name["termux-saf-mkdir"].content
        self.assertIn('PARENT="${1:-}"', mkdir)
        self.assertIn('NAME="${2:-}"', mkdir)

    def test_wake_lock_fallback_message(self):
        by_name = {s.name: s for s in commands.build_catalog(self.layout)}
        self.assertIn('echo "Wake lock acquired"', by_name["termux-wake-lock"].content)
        self.assertIn('--es api_args "release"', by_name["termux-wake-unlock"].content)

    def test_install_writes_executables(self):
        written = commands.install_api_scripts(self.layout)
        self.assertGreaterEqual(len(written), 70)
        for script in written:
            path = self.layout.bin(script.name)
            self.assertEqual(stat.S_IMODE(os.stat(path).st_mode), 0o755, script.name)
        self.assertEqual(commands.find_invalid(self.layout), [])

    def test_pkg_config_only_if_absent(self):
        pkg_config = self.layout.bin("pkg-config")
        with open(pkg_config, "w") as f:
            f.write("#!/bin/sh\nexec pkgconf \"$@\"\n")

        written = commands.install_api_scripts(self.layout)

        self.assertNotIn("pkg-config", [s.name for s in written])
        with open(pkg_config) as f:
            self.assertIn("exec pkgconf", f.read())

    def test_symlinked_script_is_replaced(self):
        os.symlink("/bin/true", self.layout.bin("termux-toast"))
        commands.install_api_scripts(self.layout)
        self.assertFalse(os.path.islink(self.layout.bin("termux-toast")))

    def test_activity_manager(self):
        path = commands.install_activity_manager(self.layout, ticks=30)
        with open(path) as f:
            content = f.read()
        self.assertTrue(content.startswith(f"#!{self.layout.prefix}/bin/sh"))
        self.assertIn('[ "$WAIT" -lt 30 ]', content)
        self.assertIn('RESULT_FILE="$STATE_DIR/am_result"', content)
        self.assertEqual(stat.S_IMODE(os.stat(path).st_mode), 0o755)


class TestSelfHealing(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp(prefix="rootstrap_heal_")
        self.layout = SandboxLayout.from_root(self.test_dir)
        self.layout.prepare()
        self.marker = VersionMarker.for_layout(self.layout, "rootstrap-test")
        commands.install_api_scripts(self.layout)
        self.marker.write()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_valid_catalog_is_left_alone(self):
        self.assertTrue(healing.are_api_scripts_valid(self.layout))
        self.assertFalse(healing.regenerate_if_needed(self.layout, self.marker))

    def test_deleted_sentinel_is_regenerated(self):
        os.remove(commands.sentinel_path(self.layout))
        os.remove(self.layout.bin("termux-clipboard-get"))
        self.assertFalse(healing.are_api_scripts_valid(self.layout))

        self.assertTrue(healing.regenerate_if_needed(self.layout, self.marker))

        self.assertTrue(healing.are_api_scripts_valid(self.layout))
        self.assertTrue(os.path.exists(self.layout.bin("termux-clipboard-get")))

    def test_overwritten_sentinel_is_regenerated(self):
        with open(commands.sentinel_path(self.layout), "w") as f:
            f.write("#!/bin/sh\nset -e -u\nexec termux-api BatteryStatus\n")

        self.assertTrue(healing.regenerate_if_needed(self.layout, self.marker))

        with open(commands.sentinel_path(self.layout)) as f:
            self.assertIn(commands.API_MARKER, f.read())

    def test_missing_marker_is_restored(self):
        os.remove(commands.sentinel_path(self.layout))
        self.marker.clear()

        healing.regenerate_if_needed(self.layout, self.marker)

        self.assertEqual(self.marker.current(), "rootstrap-test")

    def test_failures_are_logged_not_raised(self):
        os.remove(commands.sentinel_path(self.layout))
        shutil.rmtree(self.layout.bin_dir)
        with open(self.layout.bin_dir, "w") as f:
            f.write("not a directory")

        with self.assertLogs("rootstrap.healing", "ERROR"):
            self.assertFalse(healing.regenerate_if_needed(self.layout, self.marker))


if __name__ == "__main__":
    unittest.main()
