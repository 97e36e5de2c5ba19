"""
Unit test fixtures. Entity tests need no store; engine tests run over both the
in-memory store and the SQLite-backed SQL store from the root conftest.
"""
