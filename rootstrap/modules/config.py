#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
config.py — Módulo de configuração do rootstrap

- Suporta $ROOTSTRAP_CONFIG > ~/.config/rootstrap/config.yml > /etc/rootstrap/config.yml > defaults
- Configuração em YAML
- Permite leitura, escrita, reset e listagem completa da config
- Inclui campos do bundle, do download e do sandbox
"""

import os
import yaml

# Caminhos padrão
USER_CONFIG = os.path.expanduser("~/.config/rootstrap/config.yml")
SYSTEM_CONFIG = "/etc/rootstrap/config.yml"

_STATE_HOME = os.environ.get("XDG_STATE_HOME") or os.path.expanduser("~/.local/state")
_DATA_HOME = os.environ.get("XDG_DATA_HOME") or os.path.expanduser("~/.local/share")
_CACHE_HOME = os.environ.get("XDG_CACHE_HOME") or os.path.expanduser("~/.cache")

# Valores padrão (completo)
DEFAULTS = {
    # Diretórios principais
    "sandbox_root": os.path.join(_DATA_HOME, "rootstrap", "files"),
    "prefix_name": "usr",
    "home_name": "home",
    "cache_dir": os.path.join(_CACHE_HOME, "rootstrap"),
    "log_dir": os.path.join(_STATE_HOME, "rootstrap", "log"),
    "log_level": "info",

    # Bundle
    "bundle_url": (
        "https://github.com/termux/termux-packages/releases/download/"
        "bootstrap-2026.01.04-r1%2Bapt.android-7/bootstrap-aarch64.zip"
    ),
    "bundle_version": "rootstrap-v1.8.1",

    # Download
    "max_redirects": 5,
    "chunk_size": 8192,
    "download_timeout": 30,

    # Extração
    "progress_every": 100,

    # Receptor da API (fire-and-collect)
    "api_receiver": "com.termux/com.termux.TermuxApiReceiver",
    "api_action": "com.termux.api.API_CALL",

    # Wake lock durante a instalação (comandos opcionais)
    "wake_lock_acquire": None,
    "wake_lock_release": None,

    # Variáveis extras para o ambiente do shell
    "extra_env": {},
}

_config = DEFAULTS.copy()

def _load_from(path: str) -> dict:
    """Carrega configuração de um arquivo YAML se existir."""
    try:
        if os.path.isfile(path):
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
                if not isinstance(data, dict):
                    return {}
                return data
    except (OSError, yaml.YAMLError):
        pass
    return {}

def load_config() -> dict:
    """Carrega config seguindo a hierarquia: env > user > system > defaults"""
    global _config

    # 1. Variável de ambiente
    env_path = os.getenv("ROOTSTRAP_CONFIG")
    if env_path and os.path.exists(env_path):
        _config = {**DEFAULTS, **_load_from(env_path)}
        return _config

    # 2. Configuração do usuário
    if os.path.exists(USER_CONFIG):
        _config = {**DEFAULTS, **_load_from(USER_CONFIG)}
        return _config

    # 3. Configuração global
    if os.path.exists(SYSTEM_CONFIG):
        _config = {**DEFAULTS, **_load_from(SYSTEM_CONFIG)}
        return _config

    # 4. Defaults
    _config = DEFAULTS.copy()
    return _config

def _config_path(system: bool = False) -> str:
    if system:
        return SYSTEM_CONFIG
    return os.getenv("ROOTSTRAP_CONFIG") or USER_CONFIG

def _save(cfg: dict, system: bool = False) -> None:
    """Salva configuração em YAML (usuário ou sistema)."""
    path = _config_path(system)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f, default_flow_style=False, allow_unicode=True)

def get(key: str, default=None):
    """Obtém valor de uma chave da configuração (com fallback)."""
    if not _config:
        load_config()
    return _config.get(key, DEFAULTS.get(key, default))

def set(key: str, value, system: bool = False):
    """Define valor para uma chave e salva em config.yml."""
    cfg = load_config()
    cfg[key] = value
    _save(cfg, system=system)
    _config.update(cfg)

def all() -> dict:
    """Retorna configuração completa (merge de defaults + arquivo carregado)."""
    return load_config()

def reset(system: bool = False):
    """Restaura configuração para os valores padrão."""
    _save(DEFAULTS.copy(), system=system)
    load_config()

def merged(overrides: dict = None) -> dict:
    """Config carregada com overrides por chave (None não sobrescreve)."""
    cfg = dict(load_config())
    for k, v in (overrides or {}).items():
        if v is not None:
            cfg[k] = v
    return cfg

def ensure_dirs():
    """Garante que diretórios essenciais existem."""
    cfg = load_config()
    for key in ["sandbox_root", "cache_dir", "log_dir"]:
        os.makedirs(cfg[key], exist_ok=True)

# Carrega config logo no import
load_config()

# Execução direta para debug
if __name__ == "__main__":
    import json
    print("Config atual:")
    print(json.dumps(all(), indent=2, ensure_ascii=False))
