"""
Best-effort side effects

Secondary work (draft cleanup after a booking is submitted) runs through a
dispatcher so its failure never fails the primary operation. Failures are
logged and kept in `failures` so they stay visible.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from starlette.concurrency import run_in_threadpool

from .utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class FailedSideEffect:
    name: str
    error: str
    failed_at: datetime


class SideEffectDispatcher:
    """Base dispatcher; subclasses decide when the callable runs"""

    def __init__(self):
        self.failures: list[FailedSideEffect] = []

    def dispatch(self, name: str, func: Callable, *args, retry_job: Optional[str] = None, **kwargs) -> None:
        raise NotImplementedError

    def _record_failure(self, name: str, error: Exception) -> None:
        logger.error(f"❌ Side effect '{name}' failed (non-blocking): {error}")
        self.failures.append(FailedSideEffect(name=name, error=repr(error), failed_at=utcnow()))

    def _run(self, name: str, func: Callable, *args, **kwargs) -> bool:
        try:
            func(*args, **kwargs)
            logger.debug(f"✅ Side effect '{name}' completed")
            return True
        except Exception as e:
            self._record_failure(name, e)
            return False


class InlineDispatcher(SideEffectDispatcher):
    """Runs the side effect immediately, after the caller's commit"""

    def dispatch(self, name: str, func: Callable, *args, retry_job: Optional[str] = None, **kwargs) -> None:
        self._run(name, func, *args, **kwargs)


class BackgroundTasksDispatcher(SideEffectDispatcher):
    """
    Runs the side effect after the HTTP response is sent (FastAPI BackgroundTasks).

    When retry_job is given, a failed side effect is queued on the ARQ worker
    under that job name with the same positional arguments.
    """

    def __init__(self, background_tasks):
        super().__init__()
        self.background_tasks = background_tasks

    def dispatch(self, name: str, func: Callable, *args, retry_job: Optional[str] = None, **kwargs) -> None:
        self.background_tasks.add_task(self._run_async, name, func, args, kwargs, retry_job)

    async def _run_async(self, name: str, func: Callable, args: tuple, kwargs: dict, retry_job: Optional[str]):
        try:
            await run_in_threadpool(func, *args, **kwargs)
            logger.debug(f"✅ Side effect '{name}' completed")
        except Exception as e:
            self._record_failure(name, e)
            if retry_job:
                await self._queue_retry(name, retry_job, args)

    async def _queue_retry(self, name: str, retry_job: str, args: tuple) -> None:
        from arq import create_pool

        from .worker import get_redis_settings

        try:
            pool = await create_pool(get_redis_settings())
            await pool.enqueue_job(retry_job, *args)
            logger.info(f"🔁 Queued retry of side effect '{name}' as {retry_job}")
        except Exception as queue_err:
            logger.warning(f"⚠️ Failed to queue retry of side effect '{name}': {queue_err}")
