#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/healing.py — Auto-reparo dos comandos gerados

Checagem barata: o script sentinela existe e carrega o marcador de API.
Se não, regenera o catálogo inteiro e restaura o marcador de versão caso
tenha sumido. Falhas são registradas, nunca propagadas.
"""

from __future__ import annotations

import os

from rootstrap.modules import commands, log
from rootstrap.modules.layout import SandboxLayout
from rootstrap.modules.state import VersionMarker

logger = log.get_logger("healing")


def are_api_scripts_valid(layout: SandboxLayout) -> bool:
    sentinel = commands.sentinel_path(layout)
    if not os.path.exists(sentinel):
        return False
    return commands.has_marker(sentinel, commands.API_MARKER)


def regenerate_if_needed(layout: SandboxLayout, marker: VersionMarker,
                         receiver: str = commands.DEFAULT_RECEIVER,
                         action: str = commands.DEFAULT_ACTION) -> bool:
    """True se o catálogo foi regenerado."""
    try:
        if are_api_scripts_valid(layout):
            return False
        logger.info("Comandos gerados ausentes ou desatualizados, regenerando...")
        commands.install_activity_manager(layout)
        commands.install_api_scripts(layout, receiver, action)
        if not marker.exists():
            marker.write()
            logger.info("Marcador de versão restaurado")
        return True
    except Exception as e:
        logger.error("Falha regenerando comandos: %s", e)
        return False
