"""Executor helpers."""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future
from typing import Any, Callable


class SynchronousExecutor(Executor):
    """Run submitted callables immediately on the calling thread.

    Makes scheduling deterministic in tests: ``submit`` returns an already
    completed future.
    """

    def __init__(self) -> None:
        self._shutdown = False
        self._lock = threading.Lock()

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        with self._lock:
            if self._shutdown:
                raise RuntimeError("cannot schedule new futures after shutdown")
        future: Future = Future()
        if not future.set_running_or_notify_cancel():
            return future
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)
        return future

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        with self._lock:
            self._shutdown = True
