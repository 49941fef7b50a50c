"""Adapter package for external I/O implementations.

Purpose:
    Collect concrete implementations for domain ports (HTTP, filesystem and
    in-memory test doubles) used by repositories.

Dependencies:
    Individual submodules depend on ``requests``, filesystem APIs, and domain
    protocol definitions.

Call context:
    Imported by composition code (for runtime wiring) and by tests (for
    mocks and transport-level behavior verification).
"""
