#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/bootstrap.py  —  Instalador do ambiente (fachada)

Pipeline, sempre sequencial:
    preparar diretórios → download → extração (+symlinks) → permissões
    → am + comandos gerados → identidade/home → marcador → limpeza do arquivo

Cada etapa sobrescreve o que encontrar, então rodar de novo depois de uma
falha é seguro. O marcador de versão só é gravado no fim; sem ele a árvore
é tratada como "não instalada" e a instalação recomeça do início.

Uso rápido:
    from rootstrap.modules.bootstrap import BootstrapInstaller
    bi = BootstrapInstaller({"sandbox_root": "/tmp/sandbox"})
    bi.add_progress_cb(lambda pct, msg: print(pct, msg))
    bi.install()
"""

from __future__ import annotations

import os
from concurrent.futures import Future
from typing import Dict, List, Optional

import requests

from rootstrap.modules import commands, config, extract, healing, identity, log, permissions, shell, symlinks, transfer
from rootstrap.modules.layout import SandboxLayout
from rootstrap.modules.progress import InstallWorker, ProgressCallback, ProgressChannel, WakeLock, wake_lock_from_config
from rootstrap.modules.state import VersionMarker, is_installed

logger = log.get_logger("bootstrap")

DOWNLOAD_RANGE = (5, 50)
EXTRACT_RANGE = (50, 85)


class InstallAborted(Exception):
    pass


def _scale(percent: Optional[int], bounds) -> Optional[int]:
    if percent is None:
        return None
    lo, hi = bounds
    return lo + percent * (hi - lo) // 100


class BootstrapInstaller:
    def __init__(self, cfg: Optional[Dict] = None,
                 channel: Optional[ProgressChannel] = None,
                 wake_lock: Optional[WakeLock] = None,
                 session: Optional[requests.Session] = None):
        self.cfg = config.merged(cfg)
        self.layout = SandboxLayout.from_config(self.cfg)
        self.bundle = transfer.Bundle(self.cfg["bundle_url"], str(self.cfg["bundle_version"]))
        self.marker = VersionMarker.for_layout(self.layout, self.bundle.version)
        self.cache_dir = self.cfg["cache_dir"]
        self.receiver = self.cfg.get("api_receiver") or commands.DEFAULT_RECEIVER
        self.action = self.cfg.get("api_action") or commands.DEFAULT_ACTION
        self.channel = channel or ProgressChannel()
        self.wake_lock = wake_lock or wake_lock_from_config(self.cfg)
        self.session = session
        self._worker: Optional[InstallWorker] = None

        logger.debug("BootstrapInstaller: root=%s bundle=%s versão=%s",
                     self.layout.root, self.bundle.url, self.bundle.version)

    # ---------------------------
    # Progresso
    # ---------------------------
    def add_progress_cb(self, cb: ProgressCallback) -> None:
        self.channel.subscribe(cb)

    def _emit(self, percent: Optional[int], message: str) -> None:
        self.channel.publish(percent, message)

    def _check_cancel(self) -> None:
        if self.channel.cancelled:
            raise InstallAborted("cancelled")

    def _stage(self, percent: int, message: str) -> None:
        self._check_cancel()
        logger.info(message)
        self._emit(percent, message)

    def cancel(self) -> None:
        self.channel.cancel()

    # ---------------------------
    # Estado
    # ---------------------------
    @property
    def archive_path(self) -> str:
        return os.path.join(self.cache_dir, self.bundle.filename)

    def is_installed(self) -> bool:
        return is_installed(self.layout, self.marker)

    def status(self) -> Dict:
        return {
            "root": self.layout.root,
            "prefix": self.layout.prefix,
            "home": self.layout.home,
            "installed": self.is_installed(),
            "expected_version": self.bundle.version,
            "installed_version": self.marker.current(),
            "api_scripts_valid": healing.are_api_scripts_valid(self.layout),
            "bundle_url": self.bundle.url,
        }

    # ---------------------------
    # Etapas
    # ---------------------------
    def prepare_directories(self) -> None:
        self.layout.prepare()
        os.makedirs(self.cache_dir, exist_ok=True)

    def download_bundle(self) -> str:
        def on_progress(percent, message):
            self._emit(_scale(percent, DOWNLOAD_RANGE), message)

        return transfer.download(
            self.bundle.url, self.archive_path,
            progress=on_progress,
            max_redirects=int(self.cfg.get("max_redirects", transfer.DEFAULT_MAX_REDIRECTS)),
            chunk_size=int(self.cfg.get("chunk_size", transfer.DEFAULT_CHUNK_SIZE)),
            timeout=float(self.cfg.get("download_timeout", transfer.DEFAULT_TIMEOUT)),
            session=self.session,
            cancel=self.channel.cancel_event,
        )

    def extract_bundle(self, archive: str) -> extract.ExtractResult:
        def on_progress(percent, message):
            self._emit(_scale(percent, EXTRACT_RANGE), message)

        result = extract.extract(
            archive, self.layout.prefix,
            progress=on_progress,
            progress_every=int(self.cfg.get("progress_every", 100)),
        )
        if result.malformed:
            logger.warning("%d linhas malformadas em %s", result.malformed, symlinks.MANIFEST_NAME)
        return result

    def set_permissions(self) -> permissions.PermissionReport:
        return permissions.normalize(self.layout.bin_dir, self.layout.lib_dir)

    def install_activity_manager(self) -> None:
        try:
            commands.install_activity_manager(self.layout)
        except OSError as e:
            logger.error("Falha instalando am: %s", e)

    def install_api_scripts(self) -> List[commands.GeneratedScript]:
        return commands.install_api_scripts(self.layout, self.receiver, self.action)

    def _discard_archive(self, archive: str) -> None:
        try:
            if os.path.exists(archive):
                os.remove(archive)
        except OSError as e:
            logger.warning("Não foi possível remover %s: %s", archive, e)

    # ---------------------------
    # Instalação
    # ---------------------------
    def _run_pipeline(self) -> None:
        self._stage(0, "Preparando diretórios...")
        self.marker.clear()
        self.prepare_directories()

        self._stage(DOWNLOAD_RANGE[0], "Baixando bootstrap...")
        archive = self.download_bundle()

        self._stage(EXTRACT_RANGE[0], "Extraindo arquivos...")
        self.extract_bundle(archive)

        self._stage(88, "Aplicando permissões...")
        self.set_permissions()

        self._stage(90, "Instalando am...")
        self.install_activity_manager()

        self._stage(92, "Instalando comandos de API...")
        self.install_api_scripts()

        self._stage(94, "Criando identidade do usuário e arquivos do home...")
        identity.materialize(self.layout)

        self._stage(97, "Finalizando...")
        self.marker.write()
        self._discard_archive(archive)

    def install(self) -> bool:
        """True se instalado (ou já estava). Em falha: False e progresso (-1, "Error: ...")."""
        if self.is_installed():
            logger.info("Bootstrap já instalado (%s)", self.bundle.version)
            self._emit(100, "Já instalado")
            return True

        self.wake_lock.acquire()
        try:
            self._run_pipeline()
        except Exception as e:
            logger.exception("Instalação falhou")
            self._emit(-1, f"Error: {e}")
            return False
        finally:
            self.wake_lock.release()

        self._emit(100, "Concluído!")
        logger.info("Bootstrap instalado em %s", self.layout.root)
        return True

    def install_async(self, close_channel: bool = True) -> Future:
        """Roda install() na thread do worker. O Future resolve com o bool de install()."""
        if self._worker is None:
            self._worker = InstallWorker()

        def job() -> bool:
            try:
                return self.install()
            finally:
                if close_channel:
                    self.channel.close()

        return self._worker.submit(job)

    def run_post_install(self) -> bool:
        """Dispara os scripts de segunda etapa do bundle (login -c exit). Não fatal."""
        return shell.run_login_shell(self.layout)

    # ---------------------------
    # Manutenção
    # ---------------------------
    def verify_and_fix(self) -> bool:
        if not self.is_installed():
            return False
        try:
            self.set_permissions()
            permissions.apply_mode(self.layout.bash_path, permissions.EXEC_MODE,
                                   permissions.default_appliers())
            identity.write_npm_config(self.layout)
            identity.ensure_gyp_config(self.layout)
            return True
        except Exception:
            logger.exception("Erro verificando bootstrap")
            return False

    def regenerate_api_scripts_if_needed(self) -> bool:
        return healing.regenerate_if_needed(self.layout, self.marker, self.receiver, self.action)

    def get_environment(self) -> List[str]:
        return identity.get_environment(self.layout, self.cfg.get("extra_env") or {})


# Convenience singleton
_default_installer: Optional[BootstrapInstaller] = None


def default_installer() -> BootstrapInstaller:
    global _default_installer
    if _default_installer is None:
        _default_installer = BootstrapInstaller()
    return _default_installer
