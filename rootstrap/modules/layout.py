#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/layout.py — Árvore instalada do sandbox

    <root>/
      usr/   (prefix: bin, lib, etc, tmp, var, share)
      home/  (HOME do usuário; irmão do prefix, nunca dentro dele)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from rootstrap.modules import config, log, utils

logger = log.get_logger("layout")

PREFIX_SUBDIRS = ("bin", "lib", "etc", "tmp", "var", "share")


class LayoutError(ValueError):
    pass


@dataclass(frozen=True)
class SandboxLayout:
    root: str
    prefix: str
    home: str

    def __post_init__(self):
        prefix = os.path.abspath(self.prefix)
        home = os.path.abspath(self.home)
        if home == prefix or utils.is_within(prefix, home):
            raise LayoutError(f"home ({home}) não pode ficar dentro do prefix ({prefix})")
        if utils.is_within(home, prefix):
            raise LayoutError(f"prefix ({prefix}) não pode ficar dentro do home ({home})")

    @classmethod
    def from_root(cls, root: str, prefix_name: str = "usr", home_name: str = "home") -> "SandboxLayout":
        root = os.path.abspath(root)
        return cls(root=root, prefix=os.path.join(root, prefix_name), home=os.path.join(root, home_name))

    @classmethod
    def from_config(cls, cfg: dict | None = None) -> "SandboxLayout":
        cfg = cfg or config.all()
        return cls.from_root(
            cfg.get("sandbox_root") or config.get("sandbox_root"),
            prefix_name=cfg.get("prefix_name") or "usr",
            home_name=cfg.get("home_name") or "home",
        )

    @property
    def bin_dir(self) -> str:
        return os.path.join(self.prefix, "bin")

    @property
    def lib_dir(self) -> str:
        return os.path.join(self.prefix, "lib")

    @property
    def etc_dir(self) -> str:
        return os.path.join(self.prefix, "etc")

    @property
    def tmp_dir(self) -> str:
        return os.path.join(self.prefix, "tmp")

    @property
    def var_dir(self) -> str:
        return os.path.join(self.prefix, "var")

    @property
    def share_dir(self) -> str:
        return os.path.join(self.prefix, "share")

    @property
    def bash_path(self) -> str:
        return os.path.join(self.bin_dir, "bash")

    @property
    def login_path(self) -> str:
        return os.path.join(self.bin_dir, "login")

    def bin(self, name: str) -> str:
        return os.path.join(self.bin_dir, name)

    def prepare(self) -> None:
        """Cria root, prefix/{bin,lib,etc,tmp,var,share} e home (idempotente)."""
        for d in (self.root, self.prefix, self.home):
            utils.ensure_dir(d)
        for sub in PREFIX_SUBDIRS:
            utils.ensure_dir(os.path.join(self.prefix, sub))
        logger.debug("Layout preparado em %s", self.root)
