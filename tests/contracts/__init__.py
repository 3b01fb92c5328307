# tests/contracts/__init__.py
"""Contract tests for the ledgertable.contracts leaf package."""
