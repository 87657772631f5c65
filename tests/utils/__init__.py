"""
Test Utilities
==============

Helpers shared across the test suite.
"""
