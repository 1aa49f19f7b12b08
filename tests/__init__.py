"""
Test suite for the seat-contention harness.

This package contains:
- unit/: pure engine logic (allocation, classification, ramp, config)
- integration/: real HTTP against an in-process fake ticketing backend,
  threaded runs, and the CLI
"""
