import logging
import os
import subprocess
import traceback
from logging.handlers import RotatingFileHandler
from datetime import datetime

from rootstrap.modules import config

# -------------------------
# Configuração inicial
# -------------------------
LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_root_logger = logging.getLogger("rootstrap")
_root_logger.setLevel(logging.DEBUG)  # captura tudo


class ColorFormatter(logging.Formatter):
    """Formata mensagens com cores para o console"""
    COLORS = {
        logging.DEBUG: "\033[36m",   # ciano
        logging.INFO: "\033[32m",    # verde
        logging.WARNING: "\033[33m", # amarelo
        logging.ERROR: "\033[31m",   # vermelho
        logging.CRITICAL: "\033[41m" # fundo vermelho
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelno, self.RESET)
        ts = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        module = f"[{record.name}]" if record.name != "rootstrap" else ""
        msg = super().format(record)
        return f"{color}[{ts}] {record.levelname.lower():<8}{module}{self.RESET} {msg}"


def _setup_handlers():
    """Configura handlers globais"""
    if _root_logger.handlers:
        return  # já configurado

    # Console
    ch = logging.StreamHandler()
    ch.setLevel(LEVELS.get(str(config.get("log_level")).lower(), logging.INFO))
    ch.setFormatter(ColorFormatter("%(message)s"))
    _root_logger.addHandler(ch)

    # Arquivo
    log_dir = config.get("log_dir")
    try:
        os.makedirs(log_dir, exist_ok=True)
        logfile = os.path.join(log_dir, "rootstrap.log")
        fh = RotatingFileHandler(logfile, maxBytes=10 * 1024 * 1024, backupCount=5)
    except OSError as e:
        _root_logger.warning("Log em arquivo desativado (%s): %s", log_dir, e)
        return

    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
        "%Y-%m-%d %H:%M:%S"
    ))
    _root_logger.addHandler(fh)


_setup_handlers()


# -------------------------
# API pública
# -------------------------
def get_logger(name: str = "rootstrap"):
    """Obtém sub-logger (ex.: log.get_logger("transfer"))"""
    return _root_logger.getChild(name)


def set_level(level: str):
    """Altera nível do console (o arquivo continua em DEBUG)"""
    lvl = LEVELS.get(level.lower())
    if lvl is None:
        raise ValueError(f"Nível inválido: {level}")
    for handler in _root_logger.handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(lvl)


def exception(msg: str):
    """Loga erro com traceback completo"""
    tb = traceback.format_exc()
    _root_logger.error("%s\n%s", msg, tb)


def run_cmd(cmd: list[str], cwd: str | None = None, env: dict | None = None):
    """
    Executa comando externo registrando stdout/stderr.
    Retorna (returncode, stdout, stderr).
    """
    logger = get_logger("cmd")
    logger.debug("Executando: %s", " ".join(cmd))

    process = subprocess.run(
        cmd,
        cwd=cwd,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )

    for line in process.stdout.splitlines():
        logger.debug("[stdout] %s", line)
    for line in process.stderr.splitlines():
        logger.warning("[stderr] %s", line)

    rc = process.returncode
    if rc != 0:
        logger.error("Comando falhou com código %s", rc)

    return rc, process.stdout, process.stderr


# Atalhos simples (sem precisar chamar get_logger)
def debug(msg, *args, **kwargs): _root_logger.debug(msg, *args, **kwargs)
def info(msg, *args, **kwargs): _root_logger.info(msg, *args, **kwargs)
def warn(msg, *args, **kwargs): _root_logger.warning(msg, *args, **kwargs)
def error(msg, *args, **kwargs): _root_logger.error(msg, *args, **kwargs)
def critical(msg, *args, **kwargs): _root_logger.critical(msg, *args, **kwargs)
