"""
API Routes
==========

Route modules for the FastAPI application.
"""
