import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

logger = logging.getLogger(__name__)


class TaskSpawner(ABC):
    """Policy for running one unit of work (a datagram or a connection) concurrently"""

    @abstractmethod
    def spawn(self, fn: Callable[..., Any], *args: Any) -> None:
        """Start fn(*args) without waiting for it"""

    def shutdown(self, wait: bool = False) -> None:
        """Release resources; in-flight tasks are not cancelled"""


class ThreadSpawner(TaskSpawner):
    """One daemon thread per unit of work, no upper bound"""

    def spawn(self, fn: Callable[..., Any], *args: Any) -> None:
        thread = threading.Thread(target=fn, args=args, daemon=True)
        thread.start()


class PooledSpawner(TaskSpawner):
    """
    Run units of work on a fixed number of worker threads.

    Bounded workers, unbounded queue: units submitted while every worker is
    busy wait in memory. Units spawned after shutdown() are logged and dropped.
    """

    def __init__(self, max_workers: int = 32) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        self.max_workers: int = max_workers
        self.executor: ThreadPoolExecutor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix='syslog-worker'
        )
        self.is_shutdown: bool = False

    def spawn(self, fn: Callable[..., Any], *args: Any) -> None:
        if self.is_shutdown:
            logger.warning(f"Worker pool is shut down, dropping {getattr(fn, '__name__', fn)}")
            return
        try:
            future = self.executor.submit(fn, *args)
        except RuntimeError as e:
            logger.warning(f"Worker pool rejected task: {e}")
            return
        future.add_done_callback(self._log_failure)

    @staticmethod
    def _log_failure(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Unhandled error in worker: {exc}", exc_info=exc)

    def shutdown(self, wait: bool = False) -> None:
        self.is_shutdown = True
        self.executor.shutdown(wait=wait)
