import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from logging_utils import log_struct

logger = logging.getLogger(__name__)


class TaskPool:
    """
    Bounded pool for work that outlives the webhook request. Every task
    ends with a logged completion or failure entry; errors never propagate.
    """

    def __init__(self, max_workers: int = 4):
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="bot-task")

    def submit(self, name: str, fn: Callable, *args, **kwargs) -> Future:
        future = self.executor.submit(fn, *args, **kwargs)
        future.add_done_callback(lambda f: self._report(name, f))
        return future

    def _report(self, name: str, future: Future):
        if future.cancelled():
            log_struct("WARNING", "Task cancelled", logger, task=name)
            return
        error = future.exception()
        if error is not None:
            log_struct("ERROR", "Task failed", logger, task=name, error=str(error))
        else:
            log_struct("INFO", "Task completed", logger, task=name)

    def shutdown(self, wait: bool = True):
        self.executor.shutdown(wait=wait)
