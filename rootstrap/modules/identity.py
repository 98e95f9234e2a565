#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/identity.py — Identidade POSIX, arquivos de home e ambiente do shell

- etc/passwd e etc/group sintéticos (sempre reescritos)
- etc/hosts e etc/resolv.conf (só se ausentes)
- ~/.bashrc, ~/.profile, ~/.gitconfig, ~/.gyp/include.gypi (só se ausentes), ~/.npmrc
- get_environment(): lista ordenada KEY=valor, sem chaves repetidas
"""

from __future__ import annotations

import os
from typing import Dict, List, Optional, Tuple

from rootstrap.modules import log, utils
from rootstrap.modules.layout import SandboxLayout

logger = log.get_logger("identity")

EXEC_PRELOAD_LIB = "libtermux-exec-ld-preload.so"
APP_PACKAGE = "com.termux"
APP_VERSION = "0.118.0"
APK_RELEASE = "ROOTSTRAP"

HOSTS = """\
127.0.0.1       localhost
::1             localhost
"""

RESOLV_CONF = """\
nameserver 8.8.8.8
nameserver 8.8.4.4
"""

GYP_INCLUDE = """\
{
  'variables': {
    'android_ndk_path': ''
  }
}
"""

NPMRC = "foreground-scripts=true\n"

GITCONFIG = """\
[user]
    name = rootstrap
    email = rootstrap@localhost
[credential]
    helper = store
"""

PROFILE = """\
# rootstrap profile
if [ -f ~/.bashrc ]; then
    . ~/.bashrc
fi
"""

BASHRC = """\
# rootstrap bashrc
export PREFIX="@PREFIX@"
export HOME="@HOME@"
export PATH="$PREFIX/bin:/system/bin"
export LD_LIBRARY_PATH="$PREFIX/lib"
export LANG=en_US.UTF-8
export TERM=xterm-256color

# Alguns CLIs só abrem o navegador se DISPLAY existir
export DISPLAY=:0

alias ll='ls -la'
alias la='ls -A'
alias l='ls -CF'

PS1='\\[\\e[32m\\]\\u@rootstrap\\[\\e[0m\\]:\\[\\e[34m\\]\\w\\[\\e[0m\\]$ '
"""


def user_name(uid: Optional[int] = None) -> str:
    uid = os.getuid() if uid is None else uid
    return f"u0_a{uid % 100000}"


def _fill(template: str, layout: SandboxLayout) -> str:
    return template.replace("@PREFIX@", layout.prefix).replace("@HOME@", layout.home)


# ---------------------------
# /etc
# ---------------------------
def write_identity_files(layout: SandboxLayout, uid: Optional[int] = None, gid: Optional[int] = None) -> None:
    uid = os.getuid() if uid is None else uid
    gid = os.getgid() if gid is None else gid
    user = user_name(uid)

    utils.write_text(
        os.path.join(layout.etc_dir, "passwd"),
        f"root:x:0:0:root:{layout.home}:{layout.bash_path}\n"
        f"{user}:x:{uid}:{gid}::{layout.home}:{layout.bash_path}\n",
    )
    logger.info("etc/passwd criado com uid=%s", uid)

    utils.write_text(
        os.path.join(layout.etc_dir, "group"),
        f"root:x:0:root\n{user}:x:{gid}:\n",
    )
    logger.info("etc/group criado com gid=%s", gid)

    utils.write_if_missing(os.path.join(layout.etc_dir, "hosts"), HOSTS)
    utils.write_if_missing(os.path.join(layout.etc_dir, "resolv.conf"), RESOLV_CONF)


# ---------------------------
# home
# ---------------------------
def ensure_gyp_config(layout: SandboxLayout) -> bool:
    """~/.gyp/include.gypi para builds de módulos nativos (node-gyp)."""
    created = utils.write_if_missing(os.path.join(layout.home, ".gyp", "include.gypi"), GYP_INCLUDE)
    if created:
        logger.info("~/.gyp/include.gypi criado")
    return created


def write_npm_config(layout: SandboxLayout) -> None:
    utils.write_text(os.path.join(layout.home, ".npmrc"), NPMRC)


def write_home_files(layout: SandboxLayout) -> None:
    utils.ensure_dir(layout.home)
    utils.write_if_missing(os.path.join(layout.home, ".bashrc"), _fill(BASHRC, layout))
    utils.write_if_missing(os.path.join(layout.home, ".profile"), PROFILE)
    utils.write_if_missing(os.path.join(layout.home, ".gitconfig"), GITCONFIG)
    write_npm_config(layout)
    ensure_gyp_config(layout)


def materialize(layout: SandboxLayout) -> None:
    """passwd/group/hosts/resolv.conf e arquivos do home, na ordem da instalação."""
    write_identity_files(layout)
    write_home_files(layout)


# ---------------------------
# Ambiente
# ---------------------------
def _pairs(layout: SandboxLayout, uid: int, pid: int) -> List[Tuple[str, str]]:
    user = user_name(uid)
    tmp_dir = layout.tmp_dir
    var_run = os.path.join(layout.var_dir, "run")
    return [
        # Unix
        ("HOME", layout.home),
        ("PREFIX", layout.prefix),
        ("PATH", f"{layout.bin_dir}:/system/bin:/system/xbin"),
        ("LD_LIBRARY_PATH", layout.lib_dir),
        ("TMPDIR", tmp_dir),
        ("PWD", layout.home),
        ("TERM", "xterm-256color"),
        ("COLORTERM", "truecolor"),
        ("LANG", "en_US.UTF-8"),
        ("SHELL", layout.bash_path),
        ("USER", user),
        ("LOGNAME", user),
        # Termux
        ("TERMUX_VERSION", APP_VERSION),
        ("TERMUX_APK_RELEASE", APK_RELEASE),
        ("TERMUX_IS_DEBUGGABLE_BUILD", "0"),
        ("TERMUX_MAIN_PACKAGE_FORMAT", "debian"),
        ("TERMUX__PREFIX", layout.prefix),
        ("TERMUX__HOME", layout.home),
        ("TERMUX__ROOTFS_DIR", layout.root),
        ("TERMUX_APP_PID", str(pid)),
        ("TERMUX_APP__PID", str(pid)),
        ("TERMUX_APP__UID", str(uid)),
        ("TERMUX_APP__PACKAGE_NAME", APP_PACKAGE),
        ("TERMUX_APP__VERSION_NAME", "1.0.0"),
        ("TERMUX_APP__VERSION_CODE", "1"),
        ("TERMUX_APP__TARGET_SDK", "28"),
        ("TERMUX_APP__USER_ID", "0"),
        ("TERMUX_APP__IS_DEBUGGABLE_BUILD", "false"),
        ("TERMUX_APP__APK_RELEASE", APK_RELEASE),
        ("TERMUX_APP__PACKAGE_MANAGER", "apt"),
        ("TERMUX_APP__PACKAGE_VARIANT", "apt-android-7"),
        ("TERMUX_APP__FILES_DIR", layout.root),
        ("TERMUX_APP__DATA_DIR", os.path.dirname(layout.root)),
        ("TERMUX_APP__LEGACY_DATA_DIR", os.path.dirname(layout.root)),
        # Android
        ("ANDROID_DATA", "/data"),
        ("ANDROID_ROOT", "/system"),
        ("EXTERNAL_STORAGE", "/sdcard"),
        ("ANDROID_STORAGE", "/storage"),
        # Suporte
        ("TMUX_TMPDIR", var_run),
        ("BROWSER", "termux-open-url"),
        ("COREPACK_ENABLE_AUTO_PIN", "0"),
    ]


def get_environment(layout: SandboxLayout, extra: Optional[Dict[str, str]] = None,
                    uid: Optional[int] = None, pid: Optional[int] = None) -> List[str]:
    """Lista KEY=valor para um spawn de processo; construída a cada chamada."""
    uid = os.getuid() if uid is None else uid
    pid = os.getpid() if pid is None else pid
    utils.ensure_dir(layout.tmp_dir)
    utils.ensure_dir(os.path.join(layout.var_dir, "run"))

    pairs = _pairs(layout, uid, pid)

    cert = os.path.join(layout.etc_dir, "tls", "cert.pem")
    if os.path.exists(cert):
        pairs += [("SSL_CERT_FILE", cert), ("NODE_EXTRA_CA_CERTS", cert), ("CURL_CA_BUNDLE", cert)]

    preload = os.path.join(layout.lib_dir, EXEC_PRELOAD_LIB)
    if os.path.exists(preload):
        pairs.append(("LD_PRELOAD", preload))

    for key, value in (extra or {}).items():
        pairs.append((str(key), str(value)))

    env: Dict[str, str] = {}
    for key, value in pairs:
        if key in env:
            logger.debug("variável %s repetida ignorada", key)
            continue
        env[key] = value
    return [f"{k}={v}" for k, v in env.items()]


def environment_dict(env_list: List[str]) -> Dict[str, str]:
    return dict(item.split("=", 1) for item in env_list)
