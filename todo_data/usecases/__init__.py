"""Use-case layer: repositories, error classification and task workflows.

Each module coordinates domain objects and ports without performing transport
I/O directly, keeping the hexagonal boundaries intact.
"""
