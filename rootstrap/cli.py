#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cli.py — CLI do rootstrap

    rootstrap install | status | verify [--fix] | heal | env | scripts
    rootstrap run -- <comando...>
    rootstrap api <método> [args...]
    rootstrap config get|set|list|reset
"""

from __future__ import annotations
import argparse
import json
import shlex
import sys
from typing import Any

import yaml

from rootstrap.modules import (
    bootstrap as bootstrap_mod,
    commands as commands_mod,
    config as config_mod,
    ipc as ipc_mod,
    log as log_mod,
    shell as shell_mod,
)

# ANSI colors simples
C = {
    "reset": "\033[0m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "bold": "\033[1m",
}

def color(text: str, col: str) -> str:
    return f"{C.get(col, '')}{text}{C['reset']}"

logger = log_mod.get_logger("cli")

def _print_json_or_plain(data: Any, as_json: bool) -> None:
    if as_json:
        print(json.dumps(data, ensure_ascii=False, indent=2))
    else:
        if isinstance(data, dict):
            for k, v in data.items():
                print(f"{color(str(k), 'cyan')}: {v}")
        elif isinstance(data, list):
            for item in data:
                print(item)
        else:
            print(data)

def _setup_logging(verbose: bool) -> None:
    log_mod.set_level("debug" if verbose else (config_mod.get("log_level") or "info"))

def _installer(args) -> bootstrap_mod.BootstrapInstaller:
    return bootstrap_mod.BootstrapInstaller({"sandbox_root": getattr(args, "root", None)})

def _format_progress(percent, message) -> str:
    if percent is None:
        return f"[ ... ] {message}"
    if percent < 0:
        return color(f"[ERRO] {message}", "red")
    return f"[{percent:3d}%] {message}"

# ---------------------------
# Command handlers
# ---------------------------

def cmd_install(args):
    """
    rootstrap install [--no-post-install]
    """
    inst = _installer(args)
    if inst.is_installed():
        print(color(f"[OK] Já instalado ({inst.bundle.version})", "green"))
        return 0

    future = inst.install_async()
    try:
        for percent, message in inst.channel:
            if not getattr(args, "json", False):
                print(_format_progress(percent, message))
    except KeyboardInterrupt:
        print(color("[WARN] Cancelando...", "yellow"))
        inst.cancel()

    try:
        ok = future.result()
    except Exception as e:
        logger.exception("Instalação falhou")
        print(color(f"[ERRO] Instalação falhou: {e}", "red"), file=sys.stderr)
        return 2

    if not ok:
        last = inst.channel.last
        print(color(f"[ERRO] Instalação falhou: {last[1] if last else '?'}", "red"), file=sys.stderr)
        return 2

    if not getattr(args, "no_post_install", False):
        inst.run_post_install()
    print(color("[OK] Instalação concluída", "green"))
    _print_json_or_plain(inst.status(), getattr(args, "json", False))
    return 0

def cmd_status(args):
    """
    rootstrap status
    """
    try:
        st = _installer(args).status()
    except Exception as e:
        logger.exception("Status falhou")
        print(color(f"[ERRO] Status falhou: {e}", "red"), file=sys.stderr)
        return 2
    _print_json_or_plain(st, getattr(args, "json", False))
    return 0 if st["installed"] else 1

def cmd_verify(args):
    """
    rootstrap verify [--fix]
    """
    inst = _installer(args)
    if not inst.is_installed():
        print(color("❌ Ambiente não instalado (ou versão diferente)", "red"))
        return 1

    invalid = commands_mod.find_invalid(inst.layout)
    if getattr(args, "fix", False):
        if not inst.verify_and_fix():
            print(color("[ERRO] Correção falhou (veja o log)", "red"), file=sys.stderr)
            return 2
        if inst.regenerate_api_scripts_if_needed():
            print(color("🔧 Comandos gerados regenerados", "blue"))
        print(color("🔧 Permissões e configs reaplicadas", "blue"))
        invalid = commands_mod.find_invalid(inst.layout)

    if not invalid:
        print(color(f"✅ Ambiente íntegro ({inst.bundle.version})", "green"))
        return 0
    print(color(f"❌ {len(invalid)} comandos ausentes ou alterados", "red"))
    for name in invalid:
        print(f"  {name}")
    return 1

def cmd_heal(args):
    """
    rootstrap heal
    """
    inst = _installer(args)
    if inst.regenerate_api_scripts_if_needed():
        print(color("🔧 Comandos gerados regenerados", "blue"))
    else:
        print(color("[OK] Nada a regenerar", "green"))
    return 0

def cmd_env(args):
    """
    rootstrap env
    """
    env = _installer(args).get_environment()
    if getattr(args, "json", False):
        _print_json_or_plain(dict(item.split("=", 1) for item in env), True)
    else:
        _print_json_or_plain(env, False)
    return 0

def cmd_scripts(args):
    """
    rootstrap scripts [--write]
    """
    inst = _installer(args)
    if getattr(args, "write", False):
        written = inst.install_api_scripts()
        print(color(f"[OK] {len(written)} comandos gravados em {inst.layout.bin_dir}", "green"))
        return 0
    invalid = set(commands_mod.find_invalid(inst.layout))
    names = commands_mod.script_names()
    if getattr(args, "json", False):
        _print_json_or_plain({n: n not in invalid for n in names}, True)
        return 0
    for name in names:
        mark = color("ok", "green") if name not in invalid else color("ausente", "yellow")
        print(f"{color(name, 'cyan')} {mark}")
    return 0

def cmd_run(args):
    """
    rootstrap run -- <comando...>
    """
    argv = list(args.cmd or [])
    if argv and argv[0] == "--":
        argv = argv[1:]
    if not argv:
        print("Uso: rootstrap run -- <comando...>")
        return 1
    inst = _installer(args)
    if not inst.is_installed():
        print(color("[ERRO] Ambiente não instalado; rode 'rootstrap install'", "red"), file=sys.stderr)
        return 2
    ok = shell_mod.run_command(inst.layout, " ".join(shlex.quote(a) for a in argv))
    return 0 if ok else 1

def cmd_api(args):
    """
    rootstrap api <método> [args...] [--timeout N]
    """
    inst = _installer(args)
    channel = ipc_mod.ResultFileChannel(inst.layout.tmp_dir, receiver=inst.receiver, action=inst.action)
    result = channel.call(args.method, " ".join(args.args or []), timeout=args.timeout)
    if result.ok:
        print(result.output, end="")
        return 0
    if result.timed_out:
        print(color(f"[WARN] {args.method}: sem resposta em {args.timeout}s", "yellow"), file=sys.stderr)
        return 1
    print(color(f"[ERRO] {args.method}: {result.output}", "red"), file=sys.stderr)
    return 2

def cmd_config(args):
    """
    rootstrap config get <key>
    rootstrap config set <key> <value> [--system]
    rootstrap config list
    rootstrap config reset [--system]
    """
    act = args.action
    if act == "get":
        if not args.key:
            print("Uso: rootstrap config get <chave>")
            return 1
        print(config_mod.get(args.key))
        return 0
    elif act == "set":
        if not args.key or args.value is None:
            print("Uso: rootstrap config set <chave> <valor> [--system]")
            return 1
        # "5" vira int, "null" vira None, texto continua texto
        value = yaml.safe_load(args.value)
        config_mod.set(args.key, value, system=args.system)
        print(f"[OK] Configuração '{args.key}' definida para '{value}' ({'global' if args.system else 'usuário'})")
        return 0
    elif act == "list":
        _print_json_or_plain(config_mod.all(), getattr(args, "json", False))
        return 0
    elif act == "reset":
        config_mod.reset(system=args.system)
        print(f"[OK] Configuração restaurada para padrões {'globais' if args.system else 'de usuário'}")
        return 0
    else:
        print("Ação desconhecida:", act)
        return 1

# ---------------------------
# Parser
# ---------------------------

def build_parser():
    p = argparse.ArgumentParser(prog="rootstrap", description="rootstrap - provisionamento e auto-reparo do ambiente")
    p.add_argument("--verbose", "-v", action="store_true", help="Modo verboso")
    p.add_argument("--json", action="store_true", help="Imprime JSON quando aplicável")
    p.add_argument("--root", default=None, help="Raiz do sandbox (padrão: sandbox_root da config)")
    sub = p.add_subparsers(dest="command")

    si = sub.add_parser("install", aliases=["i"], help="Baixar e instalar o ambiente")
    si.add_argument("--no-post-install", action="store_true", help="Não rodar 'login -c exit' depois")
    si.set_defaults(func=cmd_install)

    ss = sub.add_parser("status", help="Estado da instalação")
    ss.set_defaults(func=cmd_status)

    sv = sub.add_parser("verify", aliases=["check"], help="Verificar instalação")
    sv.add_argument("--fix", "-f", action="store_true", help="Reaplicar permissões/configs e regenerar comandos")
    sv.set_defaults(func=cmd_verify)

    sh = sub.add_parser("heal", help="Regenerar comandos gerados se necessário")
    sh.set_defaults(func=cmd_heal)

    se = sub.add_parser("env", help="Mostrar ambiente do shell")
    se.set_defaults(func=cmd_env)

    sc2 = sub.add_parser("scripts", help="Listar (ou regravar) comandos gerados")
    sc2.add_argument("--write", action="store_true", help="Regravar o catálogo em prefix/bin")
    sc2.set_defaults(func=cmd_scripts)

    sr = sub.add_parser("run", help="Executar comando no ambiente")
    sr.add_argument("cmd", nargs=argparse.REMAINDER, help="Comando (depois de --)")
    sr.set_defaults(func=cmd_run)

    sa = sub.add_parser("api", help="Chamar um método da API e imprimir o resultado")
    sa.add_argument("method", help="Método (ex.: battery-status)")
    sa.add_argument("args", nargs="*", help="Argumentos do método")
    sa.add_argument("--timeout", "-t", type=float, default=ipc_mod.DEFAULT_TIMEOUT, help="Prazo em segundos")
    sa.set_defaults(func=cmd_api)

    sc = sub.add_parser("config", help="Gerenciar configuração do rootstrap")
    sc.add_argument("action", choices=["get", "set", "list", "reset"], help="Ação sobre a configuração")
    sc.add_argument("key", nargs="?", help="Chave da configuração")
    sc.add_argument("value", nargs="?", help="Valor (para set)")
    sc.add_argument("--system", action="store_true", help="Salvar/operar no config global (/etc)")
    sc.set_defaults(func=cmd_config)

    return p

def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    _setup_logging(getattr(args, "verbose", False))

    try:
        rc = args.func(args)
        if isinstance(rc, int):
            sys.exit(rc)
        sys.exit(0)
    except Exception as e:
        logger.exception("Erro ao executar comando")
        print(color(f"[ERRO] {e}", "red"), file=sys.stderr)
        sys.exit(1)

if __name__ == "__main__":
    main()
