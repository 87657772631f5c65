"""
Configuration Management
=======================

Environment-based configuration using Pydantic Settings.

Components:
- settings: Renderer defaults, HTTP surface and environment configuration
- logging: Structured logging configuration
"""
