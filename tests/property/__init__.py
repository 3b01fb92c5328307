# tests/property/__init__.py
"""Property-based tests for ledgertable.

Properties that must hold for ALL inputs: codec determinism, signature
binding to data and timestamp, and index membership operations.
"""
