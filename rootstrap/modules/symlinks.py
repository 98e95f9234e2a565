#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/symlinks.py — Reconstrução de symlinks a partir do manifesto SYMLINKS.txt

Formato (uma entrada por linha):  alvo←caminho_do_link
  ex.: "dash←./bin/sh"  =>  <root>/bin/sh -> dash

- Linhas com mais/menos de um separador são ignoradas com WARNING
- Caminho de link vazio ou que aponta para a própria raiz também é malformado
- Alvos não são validados (links quebrados são aceitos)
- Arquivo, link ou diretório vazio no caminho do link é removido antes;
  diretório com conteúdo nunca é apagado (o link falha com WARNING)
"""

from __future__ import annotations

import os
from typing import List, NamedTuple, Tuple

from rootstrap.modules import log, utils

logger = log.get_logger("symlinks")

MANIFEST_NAME = "SYMLINKS.txt"
SEPARATOR = "\u2190"  # ←


class ManifestEntry(NamedTuple):
    target: str
    link_path: str


def parse_manifest(text: str) -> Tuple[List[ManifestEntry], int]:
    """Retorna (entradas válidas, número de linhas malformadas)."""
    entries: List[ManifestEntry] = []
    malformed = 0
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.rstrip("\r")
        if not line.strip():
            continue
        parts = line.split(SEPARATOR)
        link = os.path.normpath(parts[1]) if len(parts) == 2 and parts[1] else ""
        if len(parts) != 2 or not parts[0] or link in ("", "."):
            malformed += 1
            logger.warning("SYMLINKS.txt linha %d malformada, ignorada: %r", lineno, line)
            continue
        entries.append(ManifestEntry(parts[0], link))
    return entries, malformed


def _remove_node(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        os.rmdir(path)
    else:
        os.remove(path)


def create_link(target: str, link_file: str) -> None:
    """Cria (ou substitui) um symlink link_file -> target."""
    utils.ensure_dir(os.path.dirname(link_file))
    if os.path.lexists(link_file):
        _remove_node(link_file)
    os.symlink(target, link_file)


def reconstruct(entries: List[ManifestEntry], dest_root: str) -> int:
    """Cria os links sob dest_root. Retorna quantos foram criados."""
    created = 0
    root = os.path.abspath(dest_root)
    for entry in entries:
        link_file = os.path.abspath(os.path.join(root, entry.link_path))
        if os.path.isabs(entry.link_path) or link_file == root or not utils.is_within(root, link_file):
            logger.warning("Symlink fora do prefix ignorado: %s -> %s", entry.link_path, entry.target)
            continue
        try:
            create_link(entry.target, link_file)
            created += 1
        except OSError as e:
            logger.warning("Symlink falhou: %s -> %s: %s", entry.link_path, entry.target, e)
    logger.info("%d symlinks criados", created)
    return created


def apply_manifest(text: str, dest_root: str) -> Tuple[int, int]:
    """parse + reconstruct. Retorna (criados, malformados)."""
    entries, malformed = parse_manifest(text)
    return reconstruct(entries, dest_root), malformed
