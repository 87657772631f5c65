"""
API Module
==========

FastAPI application exposing HTML to image rendering over HTTP.

Components:
- main: Application factory, middleware and exception handlers
- routes: Render and health endpoints
"""
