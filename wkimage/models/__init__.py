"""
Data Models
===========

Pydantic data models for render configuration, process outcomes and API
request/response validation.

Models:
- schemas: Render options, exit outcomes, API request and response schemas
"""
