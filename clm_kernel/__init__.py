"""
CLM Kernel - contract lifecycle management core.

- Immutable entity snapshots with explicit state machines
- Tenant-scoped orchestration services
- Best-effort, append-only audit trail
"""

__version__ = "0.1.0"
