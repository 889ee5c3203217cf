"""
Storage module for the export pipeline.

Provides read access to courses and attempts, and the Export Log.
"""

from storage.course_store import CourseStore
from storage.attempt_store import AttemptStore, AttemptRepository
from storage.export_log_store import ExportLogStore

__all__ = [
    'CourseStore',
    'AttemptStore',
    'AttemptRepository',
    'ExportLogStore',
]
