"""
cachesync test suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Session wiring and guarded mutations against the in-memory cache
"""
