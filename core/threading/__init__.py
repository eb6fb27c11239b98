"""
POSTURA Threading Module
"""

from .worker_pool import (
    WorkerPool,
    Task,
    TaskStatus,
    inference_worker_pool,
    run_inference
)

__all__ = [
    'WorkerPool',
    'Task',
    'TaskStatus',
    'inference_worker_pool',
    'run_inference'
]
