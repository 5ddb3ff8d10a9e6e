"""
Tests for the Lane Runner Brain
===============================

Run all tests:
    pytest tests/

Skip the slower training tests:
    pytest tests/ -m "not slow"
"""
