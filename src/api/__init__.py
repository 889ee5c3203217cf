"""
API module for the participation report service.

Provides the FastAPI application factory and routes.
"""

from api.app import create_app, get_app

__all__ = ['create_app', 'get_app']
