"""Fire-and-forget execution of remote calls issued by the tree store."""

from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

from loguru import logger


def _run_logged(description: str, fn: Callable[[], Any]) -> None:
    try:
        fn()
    except Exception:
        logger.exception("Remote call failed: {}", description)
    else:
        logger.debug("Remote call done: {}", description)


class InlineDispatcher:
    """Run each remote call immediately on the caller's thread.

    Local state has already been committed when submit() is called, so a
    failure here only produces a log record.
    """

    def submit(self, description: str, fn: Callable[[], Any]) -> None:
        _run_logged(description, fn)


class BackgroundDispatcher:
    """Run remote calls on a single worker thread, in issuance order.

    One worker means a create can never be overtaken by a later delete or
    update of the same node.
    """

    def __init__(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="remote")
        self._pending: set[Future[None]] = set()

    def submit(self, description: str, fn: Callable[[], Any]) -> None:
        future = self._executor.submit(_run_logged, description, fn)
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    def flush(self, timeout: float | None = None) -> None:
        """Block until every call submitted so far has finished."""
        wait(list(self._pending), timeout=timeout)

    def close(self) -> None:
        """Finish pending calls and stop the worker."""
        self._executor.shutdown(wait=True)
