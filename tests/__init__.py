"""Test suite for LandScout.

This package contains hermetic tests following the pytest framework.
Tests are structured to mirror the landscout/ package for discoverability.

Testing Philosophy:
    - Use pytest-mock for browser and network isolation
    - Focus coverage on normalization, caching and failure reporting
    - Avoid external dependencies - all I/O should be mocked
"""
