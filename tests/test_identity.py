"""
Identity/environment materializer tests
"""

import os
import shutil
import tempfile
import unittest

from rootstrap.modules import identity
from rootstrap.modules.layout import SandboxLayout


class TestEnvironment(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp(prefix="rootstrap_env_")
        self.layout = SandboxLayout.from_root(self.test_dir)
        self.layout.prepare()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _keys(self, env):
        return [item.split("=", 1)[0] for item in env]

    def test_leading_order(self):
        env = identity.get_environment(self.layout, uid=10123, pid=42)
        self.assertEqual(self._keys(env)[:12], [
            "HOME", "PREFIX", "PATH", "LD_LIBRARY_PATH", "TMPDIR", "PWD",
            "TERM", "COLORTERM", "LANG", "SHELL", "USER", "LOGNAME",
        ])

    def test_no_duplicate_keys(self):
        env = identity.get_environment(self.layout, extra={"HOME": "/elsewhere", "EDITOR": "vi"})
        keys = self._keys(env)
        self.assertEqual(len(keys), len(set(keys)))
        values = identity.environment_dict(env)
        self.assertEqual(values["HOME"], self.layout.home)
        self.assertEqual(values["EDITOR"], "vi")
        self.assertEqual(keys[-1], "EDITOR")

    def test_values(self):
        values = identity.environment_dict(identity.get_environment(self.layout, uid=10123, pid=42))
        self.assertEqual(values["PATH"], f"{self.layout.bin_dir}:/system/bin:/system/xbin")
        self.assertEqual(values["USER"], "u0_a10123")
        self.assertEqual(values["TERM"], "xterm-256color")
        self.assertEqual(values["COLORTERM"], "truecolor")
        self.assertEqual(values["LANG"], "en_US.UTF-8")
        self.assertEqual(values["SHELL"], self.layout.bash_path)
        self.assertEqual(values["TERMUX__PREFIX"], self.layout.prefix)
        self.assertEqual(values["TERMUX_APP__PID"], "42")
        self.assertEqual(values["TMUX_TMPDIR"], os.path.join(self.layout.var_dir, "run"))
        self.assertEqual(values["COREPACK_ENABLE_AUTO_PIN"], "0")
        self.assertEqual(values["BROWSER"], "termux-open-url")

    def test_conditional_variables(self):
        values = identity.environment_dict(identity.get_environment(self.layout))
        for key in ("SSL_CERT_FILE", "NODE_EXTRA_CA_CERTS", "CURL_CA_BUNDLE", "LD_PRELOAD"):
            self.assertNotIn(key, values)

        cert = os.path.join(self.layout.etc_dir, "tls", "cert.pem")
        os.makedirs(os.path.dirname(cert))
        open(cert, "w").close()
        preload = os.path.join(self.layout.lib_dir, identity.EXEC_PRELOAD_LIB)
        open(preload, "w").close()

        values = identity.environment_dict(identity.get_environment(self.layout))
        self.assertEqual(values["SSL_CERT_FILE"], cert)
        self.assertEqual(values["CURL_CA_BUNDLE"], cert)
        self.assertEqual(values["LD_PRELOAD"], preload)

    def test_creates_tmp_and_var_run(self):
        shutil.rmtree(self.layout.tmp_dir)
        identity.get_environment(self.layout)
        self.assertTrue(os.path.isdir(self.layout.tmp_dir))
        self.assertTrue(os.path.isdir(os.path.join(self.layout.var_dir, "run")))


class TestIdentityFiles(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp(prefix="rootstrap_identity_")
        self.layout = SandboxLayout.from_root(self.test_dir)
        self.layout.prepare()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _read(self, *parts):
        with open(os.path.join(*parts)) as f:
            return f.read()

    def test_passwd_and_group(self):
        identity.write_identity_files(self.layout, uid=210045, gid=210045)
        passwd = self._read(self.layout.etc_dir, "passwd")
        self.assertIn(f"u0_a10045:x:210045:210045::{self.layout.home}:{self.layout.bash_path}", passwd)
        self.assertIn("u0_a10045:x:210045:", self._read(self.layout.etc_dir, "group"))

    def test_passwd_rewritten_hosts_preserved(self):
        hosts = os.path.join(self.layout.etc_dir, "hosts")
        with open(hosts, "w") as f:
            f.write("10.0.0.1 custom\n")
        with open(os.path.join(self.layout.etc_dir, "passwd"), "w") as f:
            f.write("stale\n")

        identity.write_identity_files(self.layout, uid=1000, gid=1000)

        self.assertEqual(self._read(hosts), "10.0.0.1 custom\n")
        self.assertNotIn("stale", self._read(self.layout.etc_dir, "passwd"))
        self.assertIn("nameserver 8.8.8.8", self._read(self.layout.etc_dir, "resolv.conf"))

    def test_home_files(self):
        bashrc = os.path.join(self.layout.home, ".bashrc")
        with open(bashrc, "w") as f:
            f.write("# mine\n")
        with open(os.path.join(self.layout.home, ".npmrc"), "w") as f:
            f.write("old=1\n")

        identity.write_home_files(self.layout)

        self.assertEqual(self._read(bashrc), "# mine\n")
        self.assertEqual(self._read(self.layout.home, ".npmrc"), "foreground-scripts=true\n")
        self.assertIn("'android_ndk_path': ''", self._read(self.layout.home, ".gyp", "include.gypi"))
        self.assertTrue(os.path.exists(os.path.join(self.layout.home, ".profile")))
        self.assertTrue(os.path.exists(os.path.join(self.layout.home, ".gitconfig")))

    def test_fresh_bashrc_points_at_prefix(self):
        identity.write_home_files(self.layout)
        self.assertIn(f'export PREFIX="{self.layout.prefix}"', self._read(self.layout.home, ".bashrc"))


if __name__ == "__main__":
    unittest.main()
