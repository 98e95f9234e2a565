import os
import shutil
import subprocess

from rootstrap.modules import log


# -------------------------
# Sistema de arquivos
# -------------------------
def ensure_dir(path: str):
    """Cria diretório se não existir"""
    os.makedirs(path, exist_ok=True)


def rm(path: str):
    """Remove arquivo, link ou diretório (sem seguir links)"""
    if os.path.islink(path) or os.path.isfile(path):
        os.remove(path)
    elif os.path.isdir(path):
        shutil.rmtree(path)


def write_text(path: str, content: str, mode: int | None = None):
    """Escreve arquivo texto (sobrescreve) e aplica modo opcional"""
    ensure_dir(os.path.dirname(path))
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    if mode is not None:
        os.chmod(path, mode)


def write_if_missing(path: str, content: str) -> bool:
    """Escreve arquivo apenas se ainda não existir. Retorna True se escreveu."""
    if os.path.exists(path):
        return False
    write_text(path, content)
    return True


def read_text(path: str) -> str | None:
    """Lê arquivo texto; None se não existir ou não for legível"""
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError:
        return None


def is_within(directory: str, target: str) -> bool:
    """True se target (normalizado) fica dentro de directory"""
    directory = os.path.abspath(directory)
    target = os.path.abspath(target)
    return os.path.commonpath([directory, target]) == directory


# -------------------------
# Execução de comandos
# -------------------------
def run(cmd: list[str], cwd: str | None = None, env: dict | None = None, check=True):
    """Wrapper para rodar comandos com log"""
    rc, out, err = log.run_cmd(cmd, cwd=cwd, env=env)
    if check and rc != 0:
        raise subprocess.CalledProcessError(rc, cmd, out, err)
    return rc, out, err
