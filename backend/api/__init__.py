"""
Orchard Store API package.

Provides the FastAPI application. Import ``api.app`` for the application
factory; route modules import from ``api.middleware`` and
``api.dependencies`` without pulling in the app.
"""
