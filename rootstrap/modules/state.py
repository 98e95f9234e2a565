#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/state.py — Estado de instalação (marcador de versão)

O marcador é o único registro durável de sucesso. Sem log transacional:
uma instalação interrompida deixa a árvore sem marcador e a próxima
checagem responde "não instalado".
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from rootstrap.modules import log, utils
from rootstrap.modules.layout import SandboxLayout

logger = log.get_logger("state")

MARKER_NAME = "rootstrap-version"
SENTINEL_BINARIES = ("bash", "apt")


@dataclass(frozen=True)
class VersionMarker:
    path: str
    expected: str

    @classmethod
    def for_layout(cls, layout: SandboxLayout, expected: str) -> "VersionMarker":
        return cls(os.path.join(layout.etc_dir, MARKER_NAME), expected)

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def current(self) -> Optional[str]:
        """Versão gravada (sem espaços nas pontas) ou None."""
        content = utils.read_text(self.path)
        return content.strip() if content is not None else None

    def matches(self) -> bool:
        return self.current() == self.expected

    def write(self) -> None:
        utils.write_text(self.path, self.expected + "\n")
        logger.debug("Marcador %s gravado em %s", self.expected, self.path)

    def clear(self) -> None:
        if os.path.lexists(self.path):
            os.remove(self.path)


def is_installed(layout: SandboxLayout, marker: VersionMarker) -> bool:
    for name in SENTINEL_BINARIES:
        if not os.path.exists(layout.bin(name)):
            return False
    if not marker.exists():
        return False
    return marker.matches()
