"""
Pure domain layer.

Immutable entity snapshots, their state machines and value objects, with
NO dependencies on the ORM, the database, the clock or any I/O.  Import
from the submodules directly.
"""
