#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/ipc.py — Canal fire-and-collect por arquivo de resultado

Lado chamador: cria um caminho de resultado único, sinaliza o receptor e
espera o arquivo aparecer até um prazo explícito.
Lado receptor: complete() grava o resultado de forma atômica
(arquivo temporário + os.replace), então o chamador nunca lê meio arquivo.
"""

from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from rootstrap.modules import commands, log, utils

logger = log.get_logger("ipc")

DEFAULT_TIMEOUT = 3.0
DEFAULT_POLL = 0.05


@dataclass(frozen=True)
class RpcRequest:
    method: str
    args: str
    result_file: str


@dataclass(frozen=True)
class RpcResult:
    ok: bool
    output: str = ""
    timed_out: bool = False


def broadcast_signal(receiver: str, action: str) -> Callable[[RpcRequest], None]:
    """Sinal padrão: `am broadcast` com os mesmos extras dos scripts gerados."""
    def _signal(request: RpcRequest) -> None:
        utils.run([
            "am", "broadcast", "-n", receiver, "-a", action,
            "--es", "api_method", request.method,
            "--es", "api_args", request.args,
            "--es", "result_file", request.result_file,
        ])
    return _signal


class ResultFileChannel:
    def __init__(self, result_dir: str, signal: Optional[Callable[[RpcRequest], None]] = None,
                 poll_interval: float = DEFAULT_POLL,
                 receiver: str = commands.DEFAULT_RECEIVER,
                 action: str = commands.DEFAULT_ACTION):
        self.result_dir = result_dir
        self.signal = signal or broadcast_signal(receiver, action)
        self.poll_interval = poll_interval

    def new_request(self, method: str, args: str = "") -> RpcRequest:
        path = os.path.join(self.result_dir, f"api_result_{os.getpid()}_{uuid.uuid4().hex}")
        return RpcRequest(method, args, path)

    def wait(self, request: RpcRequest, timeout: float) -> RpcResult:
        deadline = time.monotonic() + timeout
        while True:
            if os.path.exists(request.result_file):
                output = utils.read_text(request.result_file) or ""
                utils.rm(request.result_file)
                return RpcResult(True, output)
            if time.monotonic() >= deadline:
                logger.debug("RPC %s sem resposta em %.2fs", request.method, timeout)
                return RpcResult(False, "", timed_out=True)
            time.sleep(self.poll_interval)

    def call(self, method: str, args: str = "", timeout: float = DEFAULT_TIMEOUT) -> RpcResult:
        utils.ensure_dir(self.result_dir)
        request = self.new_request(method, args)
        try:
            self.signal(request)
        except Exception as e:
            logger.warning("Falha sinalizando %s: %s", method, e)
            return RpcResult(False, str(e))
        return self.wait(request, timeout)

    @staticmethod
    def complete(request: RpcRequest, output: str) -> None:
        tmp = request.result_file + ".tmp"
        utils.write_text(tmp, output)
        os.replace(tmp, request.result_file)
