"""
Core Business Logic
==================

Core modules for driving the external HTML renderer.

Modules:
- rendering: wkhtmltoimage process orchestration and the converter facade
"""
