"""Scheduling module for periodic retention sweeps."""

from .service import SWEEP_JOB_ID, SchedulerService

__all__ = [
    "SchedulerService",
    "SWEEP_JOB_ID",
]
