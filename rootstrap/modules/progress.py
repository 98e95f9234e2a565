#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
modules/progress.py — Canal de progresso, worker de instalação e wake lock

ProgressChannel: (percent, message) para callbacks e/ou fila iterável.
percent -1 sinaliza falha; None significa progresso indeterminado.
"""

from __future__ import annotations

import queue
import shlex
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Iterator, List, Optional, Sequence, Tuple, Union

from rootstrap.modules import log, utils

logger = log.get_logger("progress")

ProgressCallback = Callable[[Optional[int], str], None]
Event = Tuple[Optional[int], str]

_CLOSED = object()


class ProgressChannel:
    def __init__(self):
        self._callbacks: List[ProgressCallback] = []
        self._queue: "queue.Queue" = queue.Queue()
        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._closed = False
        self.last: Optional[Event] = None

    # ---------------------------
    # Assinantes
    # ---------------------------
    def subscribe(self, cb: ProgressCallback) -> None:
        if callable(cb):
            with self._lock:
                self._callbacks.append(cb)

    def unsubscribe(self, cb: ProgressCallback) -> None:
        with self._lock:
            if cb in self._callbacks:
                self._callbacks.remove(cb)

    def publish(self, percent: Optional[int], message: str) -> None:
        with self._lock:
            if self._closed:
                return
            callbacks = list(self._callbacks)
            self.last = (percent, message)
        logger.debug("progresso: %s %s", percent, message)
        self._queue.put((percent, message))
        for cb in callbacks:
            try:
                cb(percent, message)
            except Exception:
                logger.exception("callback de progresso falhou")

    __call__ = publish

    def __iter__(self) -> Iterator[Event]:
        """Consome eventos até close()."""
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._queue.put(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    # ---------------------------
    # Cancelamento
    # ---------------------------
    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()


class InstallWorker:
    """Uma thread de fundo; o job não depende do ciclo de vida de quem chamou."""

    def __init__(self):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rootstrap-install")

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        return self._executor.submit(fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


# ---------------------------
# Wake lock
# ---------------------------
class WakeLock:
    def acquire(self) -> None:
        raise NotImplementedError

    def release(self) -> None:
        raise NotImplementedError

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


class NullWakeLock(WakeLock):
    def acquire(self) -> None:
        pass

    def release(self) -> None:
        pass


class CommandWakeLock(WakeLock):
    """Roda comandos externos para segurar/soltar o lock. Falhas só geram warning."""

    def __init__(self, acquire_cmd: Union[str, Sequence[str]], release_cmd: Union[str, Sequence[str]]):
        self.acquire_cmd = shlex.split(acquire_cmd) if isinstance(acquire_cmd, str) else list(acquire_cmd)
        self.release_cmd = shlex.split(release_cmd) if isinstance(release_cmd, str) else list(release_cmd)
        self.held = False

    def _run(self, cmd: List[str]) -> bool:
        try:
            utils.run(cmd)
            return True
        except Exception as e:
            logger.warning("wake lock %s falhou: %s", " ".join(cmd), e)
            return False

    def acquire(self) -> None:
        self.held = self._run(self.acquire_cmd)

    def release(self) -> None:
        if self.held:
            self._run(self.release_cmd)
            self.held = False


def wake_lock_from_config(cfg: dict) -> WakeLock:
    acquire_cmd = cfg.get("wake_lock_acquire")
    release_cmd = cfg.get("wake_lock_release")
    if acquire_cmd and release_cmd:
        return CommandWakeLock(acquire_cmd, release_cmd)
    return NullWakeLock()
