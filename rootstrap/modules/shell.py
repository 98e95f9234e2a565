#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/shell.py — Execução de processos dentro do sandbox

Todo processo recebe o ambiente de identity.get_environment() e roda,
por padrão, a partir do home do sandbox.
"""

from __future__ import annotations

import os
import subprocess
from typing import Dict, List, Optional

from rootstrap.modules import identity, log
from rootstrap.modules.layout import SandboxLayout

logger = log.get_logger("shell")


def environment(layout: SandboxLayout, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    return identity.environment_dict(identity.get_environment(layout, extra))


def spawn(layout: SandboxLayout, argv: List[str], cwd: Optional[str] = None,
          env: Optional[Dict[str, str]] = None, **popen_kwargs) -> subprocess.Popen:
    env = env if env is not None else environment(layout)
    cwd = cwd or layout.home
    logger.debug("spawn: %s (cwd=%s)", " ".join(argv), cwd)
    return subprocess.Popen(argv, cwd=cwd, env=env, **popen_kwargs)


def run_command(layout: SandboxLayout, command: str, extra: Optional[Dict[str, str]] = None) -> bool:
    """bash -c <command> no sandbox; True se saiu com 0."""
    argv = [layout.bash_path, "-c", command]
    try:
        rc, out, _ = log.run_cmd(argv, cwd=layout.home, env=environment(layout, extra))
    except OSError as e:
        logger.error("Não foi possível executar %s: %s", layout.bash_path, e)
        return False
    if out:
        print(out, end="")
    return rc == 0


def run_login_shell(layout: SandboxLayout) -> bool:
    """`login -c exit` uma vez, para disparar os scripts de pós-instalação do bundle."""
    if not os.path.exists(layout.login_path):
        logger.warning("login não encontrado em %s, pós-instalação ignorada", layout.login_path)
        return False
    try:
        rc, _, _ = log.run_cmd([layout.login_path, "-c", "exit"], cwd=layout.home, env=environment(layout))
    except OSError as e:
        logger.warning("login -c exit falhou: %s", e)
        return False
    if rc != 0:
        logger.warning("login -c exit retornou %s", rc)
    return rc == 0
