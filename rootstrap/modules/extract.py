#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/extract.py — Extração do bundle em duas passadas

1ª passada: percorre as entradas na ordem do arquivo
  - diretório   -> mkdir (idempotente)
  - SYMLINKS.txt -> texto guardado em memória (é pequeno)
  - demais      -> bytes gravados como estão, sobrescrevendo
2ª passada: symlinks recriados a partir do manifesto, depois do loop,
  então links para arquivos que vêm mais tarde no arquivo funcionam igual.
"""

from __future__ import annotations

import os
import shutil
import zipfile
from typing import Callable, NamedTuple, Optional

from rootstrap.modules import log, symlinks, utils

logger = log.get_logger("extract")

COPY_BUFFER = 64 * 1024


class ExtractionFailed(Exception):
    pass


class ExtractResult(NamedTuple):
    extracted: int
    symlinks: int
    malformed: int


def _target_path(dest_root: str, name: str) -> str:
    if name.startswith("/") or "\\" in name:
        raise ExtractionFailed(f"entrada com caminho inválido: {name}")
    target = os.path.join(dest_root, name)
    if not utils.is_within(dest_root, target):
        raise ExtractionFailed(f"entrada fora do diretório de destino: {name}")
    return target


def _write_entry(zf: zipfile.ZipFile, info: zipfile.ZipInfo, target: str) -> None:
    utils.ensure_dir(os.path.dirname(target))
    if os.path.islink(target):
        os.remove(target)
    with zf.open(info) as src, open(target, "wb") as dst:
        shutil.copyfileobj(src, dst, COPY_BUFFER)


def extract(archive_path: str, dest_root: str,
            progress: Optional[Callable[[Optional[int], str], None]] = None,
            progress_every: int = 100) -> ExtractResult:
    """
    Extrai archive_path em dest_root e reconstrói os symlinks do manifesto.
    Lança ExtractionFailed para arquivo corrompido ou erro de I/O.
    """
    dest_root = os.path.abspath(dest_root)
    utils.ensure_dir(dest_root)
    manifest_text: Optional[str] = None
    count = 0
    every = max(1, progress_every)

    logger.info("Extraindo %s → %s", archive_path, dest_root)
    try:
        with zipfile.ZipFile(archive_path) as zf:
            entries = zf.infolist()
            total = len(entries)
            for info in entries:
                name = info.filename
                if info.is_dir():
                    utils.ensure_dir(_target_path(dest_root, name.rstrip("/")))
                elif name == symlinks.MANIFEST_NAME:
                    manifest_text = zf.read(info).decode("utf-8")
                    logger.info("%s encontrado com %d linhas", name, len(manifest_text.splitlines()))
                else:
                    _write_entry(zf, info, _target_path(dest_root, name))

                count += 1
                if progress is not None and count % every == 0:
                    progress(count * 100 // total, f"Extraindo: {count} arquivos...")
    except ExtractionFailed:
        raise
    except (zipfile.BadZipFile, zipfile.LargeZipFile, UnicodeDecodeError) as e:
        raise ExtractionFailed(f"arquivo corrompido {archive_path}: {e}") from e
    except OSError as e:
        raise ExtractionFailed(f"erro de I/O extraindo {archive_path}: {e}") from e

    logger.info("%d entradas extraídas", count)

    created = malformed = 0
    if manifest_text is not None:
        created, malformed = symlinks.apply_manifest(manifest_text, dest_root)
        if progress is not None:
            progress(100, f"{created} symlinks criados")
    return ExtractResult(count, created, malformed)
