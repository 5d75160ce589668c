"""
Test suite for schemasync.

Unit tests live under ``tests/unit`` and run against the in-memory catalog
defined in ``conftest.py``.
"""
