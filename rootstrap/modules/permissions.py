#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/permissions.py — Normalização de permissões do prefix

Alguns sistemas de arquivos de sandbox ignoram chmod de forma intermitente,
então cada caminho passa por uma cadeia de estratégias (a primeira que
funcionar vence). Binários críticos recebem uma passada extra com todas
as estratégias. Falhas são registradas, nunca propagadas.
"""

from __future__ import annotations

import os
import shutil
import stat
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from rootstrap.modules import log, utils

logger = log.get_logger("permissions")

EXEC_MODE = 0o755
READ_MODE = 0o644
READ_BITS = stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH
EXEC_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH

CRITICAL_BINARIES = (
    "bash", "sh", "login", "apt", "dpkg", "cat", "ls",
    "chmod", "chown", "ln", "cp", "mv", "rm", "mkdir",
)


class PermissionFailed(Exception):
    pass


class PermissionApplier:
    """Estratégia para aplicar um modo a um caminho."""
    name = "base"

    def apply(self, path: str, mode: int) -> None:
        raise NotImplementedError


class SyscallApplier(PermissionApplier):
    name = "chmod(2)"

    def apply(self, path: str, mode: int) -> None:
        try:
            os.chmod(path, mode)
        except OSError as e:
            raise PermissionFailed(f"os.chmod {oct(mode)} {path}: {e}") from e


class AttributeApplier(PermissionApplier):
    """Lê o modo atual e acrescenta os bits de leitura/execução pedidos."""
    name = "attributes"

    def apply(self, path: str, mode: int) -> None:
        p = Path(path)
        try:
            current = stat.S_IMODE(p.stat().st_mode)
            wanted = current | (mode & (READ_BITS | EXEC_BITS))
            if wanted != current:
                p.chmod(wanted)
        except OSError as e:
            raise PermissionFailed(f"atributos {path}: {e}") from e


class CommandApplier(PermissionApplier):
    """Usa o binário chmod externo."""
    name = "chmod(1)"

    def __init__(self, chmod_bin: Optional[str] = None):
        self.chmod_bin = chmod_bin or shutil.which("chmod") or "/bin/chmod"

    def apply(self, path: str, mode: int) -> None:
        try:
            utils.run([self.chmod_bin, format(mode, "o"), path])
        except (OSError, subprocess.CalledProcessError) as e:
            raise PermissionFailed(f"{self.chmod_bin} {oct(mode)} {path}: {e}") from e


def default_appliers() -> List[PermissionApplier]:
    return [SyscallApplier(), AttributeApplier(), CommandApplier()]


@dataclass
class PermissionReport:
    applied: int = 0
    failed: List[str] = field(default_factory=list)
    critical: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def apply_mode(path: str, mode: int, appliers: Sequence[PermissionApplier]) -> bool:
    """Tenta cada estratégia em ordem; True na primeira que funcionar."""
    for applier in appliers:
        try:
            applier.apply(path, mode)
            return True
        except PermissionFailed as e:
            logger.debug("estratégia %s falhou: %s", applier.name, e)
    logger.warning("Não foi possível aplicar %s em %s", oct(mode), path)
    return False


def _walk(top: str) -> Iterable[str]:
    """Diretório raiz, subdiretórios e arquivos; symlinks ficam de fora."""
    if not os.path.isdir(top):
        return
    yield top
    for dirpath, dirnames, filenames in os.walk(top):
        for name in dirnames + filenames:
            full = os.path.join(dirpath, name)
            if not os.path.islink(full):
                yield full


def _lib_mode(path: str) -> int:
    if os.path.isdir(path):
        return EXEC_MODE
    try:
        current = stat.S_IMODE(os.stat(path).st_mode)
    except OSError:
        return READ_MODE
    return current | READ_MODE


def normalize(bin_dir: str, lib_dir: str,
              appliers: Optional[Sequence[PermissionApplier]] = None,
              critical: Sequence[str] = CRITICAL_BINARIES) -> PermissionReport:
    """
    bin_dir: tudo 0755.
    lib_dir: diretórios 0755; arquivos legíveis por todos, bits de execução preservados.
    Binários críticos: passada extra com todas as estratégias.
    """
    appliers = list(appliers) if appliers is not None else default_appliers()
    report = PermissionReport()

    for path in _walk(bin_dir):
        if apply_mode(path, EXEC_MODE, appliers):
            report.applied += 1
        else:
            report.failed.append(path)

    for path in _walk(lib_dir):
        if apply_mode(path, _lib_mode(path), appliers):
            report.applied += 1
        else:
            report.failed.append(path)

    for name in critical:
        path = os.path.join(bin_dir, name)
        if not os.path.exists(path):
            continue
        done = False
        for applier in appliers:
            try:
                applier.apply(path, EXEC_MODE)
                done = True
            except PermissionFailed as e:
                logger.warning("passada crítica %s em %s falhou: %s", applier.name, name, e)
        if done:
            report.critical.append(name)

    logger.info("Permissões aplicadas em %d caminhos (%d falhas)", report.applied, len(report.failed))
    return report
