"""Concurrency: a bounded, deduplicating scheduler for leaf tasks."""

from assetgraph.concurrency.pool import Scheduler, SchedulerStats, TaskResult

__all__ = ["Scheduler", "SchedulerStats", "TaskResult"]
