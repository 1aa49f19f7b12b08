"""
Integration tests for the harness.

These tests run VUs on real threads and, where a backend is needed,
send real HTTP to the fake ticketing app served by ``conftest``.
"""
