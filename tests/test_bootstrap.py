"""
Installer pipeline tests: end to end with a local bundle, crash safety,
version gating and background install
"""

import os
import shutil
import tempfile
import unittest
import zipfile
from unittest import mock

from rootstrap.modules import bootstrap, commands
from rootstrap.modules.bootstrap import BootstrapInstaller
from rootstrap.modules.progress import NullWakeLock, ProgressChannel


def make_bundle(path):
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("SYMLINKS.txt", "dash←./bin/sh\n")
        zf.writestr("bin/bash", "#!/bin/sh\necho bash\n")
        zf.writestr("bin/apt", "#!/bin/sh\necho apt\n")
        zf.writestr("bin/dash", "#!/bin/sh\necho dash\n")
        zf.writestr("lib/libfoo.so", "\x7fELF")
        zf.writestr("etc/motd", "welcome\n")


class TestBootstrapInstaller(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp(prefix="rootstrap_install_")
        self.bundle = os.path.join(self.test_dir, "bundle.zip")
        make_bundle(self.bundle)
        self.root = os.path.join(self.test_dir, "files")
        self.cache = os.path.join(self.test_dir, "cache")
        self.events = []
        self.installers = []

        patcher = mock.patch("rootstrap.modules.transfer.download", side_effect=self._fake_download)
        self.download = patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        for installer in self.installers:
            if installer._worker is not None:
                installer._worker.shutdown()
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _fake_download(self, url, dest, **kwargs):
        os.makedirs(os.path.dirname(dest), exist_ok=True)
        shutil.copyfile(self.bundle, dest)
        progress = kwargs.get("progress")
        if progress:
            progress(100, "Download concluído")
        return dest

    def _installer(self, version="rootstrap-test-1", **kwargs):
        cfg = {
            "sandbox_root": self.root,
            "cache_dir": self.cache,
            "bundle_url": "https://example.invalid/bootstrap-aarch64.zip",
            "bundle_version": version,
            "extra_env": {"EDITOR": "nano"},
        }
        kwargs.setdefault("wake_lock", NullWakeLock())
        installer = BootstrapInstaller(cfg, **kwargs)
        installer.add_progress_cb(lambda p, m: self.events.append((p, m)))
        self.installers.append(installer)
        return installer

    def test_install_end_to_end(self):
        installer = self._installer()

        self.assertTrue(installer.install())

        layout = installer.layout
        self.assertTrue(installer.is_installed())
        self.assertEqual(os.readlink(layout.bin("sh")), "dash")
        self.assertTrue(os.access(layout.bin("bash"), os.X_OK))
        self.assertTrue(os.path.exists(commands.sentinel_path(layout)))
        self.assertTrue(os.path.exists(layout.bin("am")))
        self.assertTrue(os.path.exists(os.path.join(layout.etc_dir, "passwd")))
        self.assertTrue(os.path.exists(os.path.join(layout.home, ".bashrc")))
        self.assertFalse(os.path.exists(installer.archive_path))
        self.assertEqual(self.events[-1], (100, "Concluído!"))

    def test_progress_is_monotonic(self):
        self._installer().install()
        percents = [p for p, _ in self.events if p is not None]
        self.assertEqual(percents, sorted(percents))
        self.assertEqual(percents[0], 0)

    def _snapshot(self, *tops):
        nodes = {}
        for top in tops:
            for dirpath, dirnames, filenames in os.walk(top):
                for name in [""] + dirnames + filenames:
                    path = os.path.join(dirpath, name)
                    st = os.lstat(path)
                    nodes[path] = (st.st_mtime_ns, st.st_size)
        return nodes

    def test_second_install_writes_nothing(self):
        self.assertTrue(self._installer().install())
        before = self._snapshot(self.root, self.cache)

        self.assertTrue(self._installer().install())

        self.assertEqual(self._snapshot(self.root, self.cache), before)
        self.assertEqual(self.download.call_count, 1)
        self.assertEqual(self.events[-1], (100, "Já instalado"))

    def test_failed_upgrade_drops_old_marker(self):
        self.assertTrue(self._installer("rootstrap-test-1").install())
        upgraded = self._installer("rootstrap-test-2")

        with mock.patch.object(BootstrapInstaller, "install_api_scripts", side_effect=OSError("disk full")):
            self.assertFalse(upgraded.install())

        self.assertFalse(upgraded.marker.exists())
        self.assertFalse(self._installer("rootstrap-test-1").is_installed())

    def test_version_change_reinstalls(self):
        self.assertTrue(self._installer("rootstrap-test-1").install())
        upgraded = self._installer("rootstrap-test-2")
        self.assertFalse(upgraded.is_installed())
        self.assertTrue(upgraded.install())
        self.assertEqual(self.download.call_count, 2)
        self.assertEqual(upgraded.marker.current(), "rootstrap-test-2")

    def test_failure_leaves_no_marker_and_rerun_recovers(self):
        wake_lock = mock.Mock()
        installer = self._installer(wake_lock=wake_lock)

        with mock.patch.object(BootstrapInstaller, "install_api_scripts", side_effect=OSError("disk full")):
            self.assertFalse(installer.install())

        self.assertFalse(installer.marker.exists())
        self.assertFalse(installer.is_installed())
        self.assertEqual(self.events[-1], (-1, "Error: disk full"))
        wake_lock.acquire.assert_called_once_with()
        wake_lock.release.assert_called_once_with()

        self.assertTrue(self._installer().install())
        self.assertTrue(os.path.exists(commands.sentinel_path(installer.layout)))

    def test_cancelled_before_start(self):
        channel = ProgressChannel()
        installer = self._installer(channel=channel)
        channel.cancel()

        self.assertFalse(installer.install())
        self.assertFalse(installer.marker.exists())
        self.download.assert_not_called()

    def test_install_async(self):
        channel = ProgressChannel()
        installer = self._installer(channel=channel)

        future = installer.install_async()
        events = list(channel)

        self.assertTrue(future.result(timeout=30))
        self.assertTrue(channel.closed)
        self.assertEqual(events[-1], (100, "Concluído!"))

    def test_verify_and_fix(self):
        installer = self._installer()
        self.assertFalse(installer.verify_and_fix())

        installer.install()
        os.chmod(installer.layout.bash_path, 0o644)
        os.remove(os.path.join(installer.layout.home, ".npmrc"))

        self.assertTrue(installer.verify_and_fix())
        self.assertTrue(os.access(installer.layout.bash_path, os.X_OK))
        self.assertTrue(os.path.exists(os.path.join(installer.layout.home, ".npmrc")))

    def test_regenerate_after_install(self):
        installer = self._installer()
        installer.install()
        self.assertFalse(installer.regenerate_api_scripts_if_needed())

        os.remove(commands.sentinel_path(installer.layout))
        self.assertTrue(installer.regenerate_api_scripts_if_needed())
        self.assertTrue(os.path.exists(commands.sentinel_path(installer.layout)))

    def test_status_and_environment(self):
        installer = self._installer()
        status = installer.status()
        self.assertFalse(status["installed"])
        self.assertIsNone(status["installed_version"])

        installer.install()
        status = installer.status()
        self.assertTrue(status["installed"])
        self.assertTrue(status["api_scripts_valid"])

        env = installer.get_environment()
        self.assertIn("EDITOR=nano", env)
        self.assertIn(f"PREFIX={installer.layout.prefix}", env)

    def test_scale(self):
        self.assertEqual(bootstrap._scale(0, bootstrap.DOWNLOAD_RANGE), 5)
        self.assertEqual(bootstrap._scale(100, bootstrap.DOWNLOAD_RANGE), 50)
        self.assertEqual(bootstrap._scale(100, bootstrap.EXTRACT_RANGE), 85)
        self.assertIsNone(bootstrap._scale(None, bootstrap.EXTRACT_RANGE))


if __name__ == "__main__":
    unittest.main()
