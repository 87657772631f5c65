"""
wkimage
=======

HTML to image rendering by driving the wkhtmltoimage command line tool.

This package provides:
- Process orchestration for the external renderer (stdio wiring, timeouts, exit codes)
- A synchronous converter facade and an async core
- An optional FastAPI HTTP surface and a command line entry point
"""

__version__ = "1.0.0"
__author__ = "wkimage Team"
