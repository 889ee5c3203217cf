"""
Middleware module: error tracking and global exception handling.
"""

from middleware.error_handler import init_sentry, sentry_exception_handler, set_user_context

__all__ = [
    'init_sentry',
    'sentry_exception_handler',
    'set_user_context',
]
