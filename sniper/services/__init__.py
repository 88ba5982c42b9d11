from .work_queue import BatchSummary, SwapQueueRunner, WorkQueue, WorkQueueError

__all__ = ["BatchSummary", "SwapQueueRunner", "WorkQueue", "WorkQueueError"]
