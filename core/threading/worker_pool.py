"""
POSTURA Worker Thread Pool

ThreadPoolExecutor for pose inference so model latency never blocks the
async event loop.
"""

import asyncio
import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from core.config import settings

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Task:
    """Represents one unit of work submitted to the pool."""
    task_id: str
    func: Callable
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    status: TaskStatus = TaskStatus.PENDING
    error: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None


class WorkerPool:
    """
    Thread pool for CPU-bound inference.

    Features:
    - Fixed-size thread pool
    - Awaitable submission for async callers; cancelling the caller
      cancels work that has not started
    - Pending and running task counts
    """

    def __init__(self, max_workers: int = None, name: str = "worker_pool"):
        self.max_workers = max_workers or settings.THREAD_POOL_SIZE
        self.name = name

        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix=f"{name}_"
        )

        self._tasks: Dict[str, Task] = {}
        self._lock = threading.Lock()

        self._completed_count = 0
        self._failed_count = 0

        logger.info(f"🧵 WorkerPool '{name}' initialized (workers: {self.max_workers})")

    def submit(self, func: Callable, *args, task_id: str = None, **kwargs) -> Future:
        """
        Submit a task to the thread pool.

        Returns:
            Future resolving to the task result
        """
        task_id = task_id or f"task_{uuid.uuid4().hex[:12]}"
        task = Task(task_id=task_id, func=func, args=args, kwargs=kwargs)

        with self._lock:
            self._tasks[task_id] = task
        future = self._executor.submit(self._run_task, task)
        future.add_done_callback(lambda _: self._forget(task_id))

        logger.debug(f"Task {task_id} submitted")
        return future

    async def submit_async(self, func: Callable, *args, task_id: str = None, **kwargs) -> Any:
        """Submit a task and await its result without blocking the loop."""
        return await asyncio.wrap_future(self.submit(func, *args, task_id=task_id, **kwargs))

    def _run_task(self, task: Task) -> Any:
        """Execute a task in the thread pool."""
        task.status = TaskStatus.RUNNING

        try:
            result = task.func(*task.args, **task.kwargs)
        except Exception as e:
            task.status = TaskStatus.FAILED
            task.error = str(e)
            task.completed_at = datetime.now(timezone.utc)
            with self._lock:
                self._failed_count += 1
            logger.error(f"Task {task.task_id} failed: {e}")
            raise

        task.status = TaskStatus.COMPLETED
        task.completed_at = datetime.now(timezone.utc)
        with self._lock:
            self._completed_count += 1
        return result

    def _forget(self, task_id: str):
        with self._lock:
            self._tasks.pop(task_id, None)

    # ========================================
    # Lifecycle
    # ========================================

    def shutdown(self, wait: bool = True):
        """Shutdown the thread pool."""
        logger.info(f"Shutting down WorkerPool '{self.name}'...")
        self._executor.shutdown(wait=wait, cancel_futures=True)
        logger.info(f"WorkerPool '{self.name}' shutdown complete")

    def get_stats(self) -> dict:
        """Get pool statistics."""
        with self._lock:
            statuses = [t.status for t in self._tasks.values()]
        return {
            "name": self.name,
            "max_workers": self.max_workers,
            "pending_tasks": statuses.count(TaskStatus.PENDING),
            "running_tasks": statuses.count(TaskStatus.RUNNING),
            "completed_tasks": self._completed_count,
            "failed_tasks": self._failed_count,
        }


# ============================================
# Global Worker Pool
# ============================================

# Pose inference pool (MediaPipe)
inference_worker_pool = WorkerPool(name="pose_inference")


async def run_inference(model_fn: Callable, input_data: Any) -> Any:
    """
    Run model inference on the inference worker pool.

    Usage:
        keypoints = await run_inference(detector.detect_sync, frame)
    """
    return await inference_worker_pool.submit_async(model_fn, input_data)
