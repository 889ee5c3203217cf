"""
Scheduling module: weekly export timer and its in-process locks.
"""

from scheduling.locks import ExpiringKeySet
from scheduling.scheduler import ExportScheduler, ScheduledRun, weekly_slot, coordination_key

__all__ = [
    'ExpiringKeySet',
    'ExportScheduler',
    'ScheduledRun',
    'weekly_slot',
    'coordination_key',
]
