#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/transfer.py — Cliente de transferência do bundle

- GET com redirects seguidos manualmente (301/302/303/307/308), limite de saltos
- Corpo gravado em blocos direto no disco (.part + rename atômico)
- Progresso (percent, mensagem); percent=None quando não há Content-Length
- Qualquer falha de rede/timeout vira DownloadFailed; sem retry automático
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import unquote, urljoin, urlparse

import requests

from rootstrap.modules import log, utils

logger = log.get_logger("transfer")

REDIRECT_CODES = (301, 302, 303, 307, 308)
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_CHUNK_SIZE = 8192
DEFAULT_TIMEOUT = 30

ProgressCallback = Callable[[Optional[int], str], None]


class DownloadFailed(Exception):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TooManyRedirects(DownloadFailed):
    pass


@dataclass(frozen=True)
class Bundle:
    """Arquivo remoto com o ambiente; a versão acompanha a URL."""
    url: str
    version: str

    @property
    def filename(self) -> str:
        name = os.path.basename(unquote(urlparse(self.url).path))
        return name or "bootstrap.zip"


def _open(session: requests.Session, url: str, timeout: float, max_redirects: int) -> requests.Response:
    """Segue a cadeia de redirects e devolve a resposta final (stream aberto)."""
    current = url
    hops = 0
    while True:
        try:
            resp = session.get(current, stream=True, allow_redirects=False, timeout=timeout)
        except requests.RequestException as e:
            raise DownloadFailed(f"falha de rede em {current}: {e}") from e

        if resp.status_code in REDIRECT_CODES:
            location = resp.headers.get("Location")
            resp.close()
            if not location:
                raise DownloadFailed(f"redirect {resp.status_code} sem Location em {current}", status=resp.status_code)
            hops += 1
            if hops > max_redirects:
                raise TooManyRedirects(f"too many redirects (mais de {max_redirects}) a partir de {url}")
            current = urljoin(current, location)
            logger.debug("redirect %d (%s) -> %s", hops, resp.status_code, current)
            continue

        if not 200 <= resp.status_code < 300:
            resp.close()
            raise DownloadFailed(f"HTTP {resp.status_code} ao baixar {current}", status=resp.status_code)
        return resp


def _content_length(resp: requests.Response) -> Optional[int]:
    try:
        total = int(resp.headers.get("Content-Length", ""))
    except ValueError:
        return None
    return total if total > 0 else None


def download(url: str, dest: str,
             progress: Optional[ProgressCallback] = None,
             max_redirects: int = DEFAULT_MAX_REDIRECTS,
             chunk_size: int = DEFAULT_CHUNK_SIZE,
             timeout: float = DEFAULT_TIMEOUT,
             session: Optional[requests.Session] = None,
             cancel: Optional[threading.Event] = None) -> str:
    """
    Baixa url para dest. Retorna dest.
    Lança TooManyRedirects / DownloadFailed.
    """
    utils.ensure_dir(os.path.dirname(os.path.abspath(dest)))
    part = dest + ".part"
    own_session = session is None
    session = session or requests.Session()

    logger.info("Baixando %s → %s", url, dest)
    try:
        resp = _open(session, url, timeout, max_redirects)
        total = _content_length(resp)
        received = 0
        last_percent = -1
        last_mb = -1
        try:
            with open(part, "wb") as f:
                for chunk in resp.iter_content(chunk_size=chunk_size):
                    if cancel is not None and cancel.is_set():
                        raise DownloadFailed("cancelled")
                    if not chunk:
                        continue
                    f.write(chunk)
                    received += len(chunk)
                    if progress is None:
                        continue
                    mb = received // (1024 * 1024)
                    if total:
                        percent = min(100, received * 100 // total)
                        if percent != last_percent:
                            last_percent = percent
                            progress(percent, f"Baixando: {mb}MB de {total // (1024 * 1024)}MB")
                    elif mb != last_mb:
                        last_mb = mb
                        progress(None, f"Baixando: {received} bytes")
        except requests.RequestException as e:
            raise DownloadFailed(f"transferência interrompida: {e}") from e
        finally:
            resp.close()

        if total is not None and received < total:
            raise DownloadFailed(f"transferência incompleta: {received}/{total} bytes")
        os.replace(part, dest)
    except OSError as e:
        _discard(part)
        raise DownloadFailed(f"erro de I/O ao gravar {dest}: {e}") from e
    except DownloadFailed:
        _discard(part)
        raise
    finally:
        if own_session:
            session.close()

    logger.info("Download concluído: %s (%d bytes)", dest, received)
    return dest


def _discard(path: str) -> None:
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError:
        logger.warning("não foi possível remover download parcial %s", path)
